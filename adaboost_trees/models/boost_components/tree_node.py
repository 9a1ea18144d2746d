"""
Decision Tree Node Implementation

This module contains the split, node and tree classes used by the weak
learners. Trees keep their nodes in one flat list and refer to children by
index, so a tree is a plain value that serializes without pointer chasing.
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple
import numpy as np


class Split:
    """
    ノードの二分割ルール

    Attributes:
    -----------
    feature_idx : int
        分割に使用する特徴のインデックス
    threshold : float or None
        順序変数の閾値（x <= threshold なら左）
    categories : tuple of int or None
        カテゴリ変数の場合、左に送るカテゴリの集合
    inverted : bool
        左右を反転するかどうか（代理分割で使用）
    agreement : float
        主分割との一致率（代理分割の場合）
    """

    def __init__(
        self,
        feature_idx: int,
        threshold: Optional[float] = None,
        categories: Optional[Sequence[int]] = None,
        inverted: bool = False,
        agreement: float = 1.0
    ):
        self.feature_idx = int(feature_idx)
        self.threshold = None if threshold is None else float(threshold)
        self.categories = None if categories is None else tuple(sorted(int(c) for c in categories))
        self.inverted = bool(inverted)
        self.agreement = float(agreement)

    @property
    def is_categorical(self) -> bool:
        return self.categories is not None

    def goes_left(self, values: np.ndarray) -> np.ndarray:
        """
        特徴量の値から左に進むかどうかを判定

        Parameters:
        -----------
        values : array-like, shape=(n_samples,)
            分割特徴量の値（欠損なし）

        Returns:
        --------
        left : array-like of bool, shape=(n_samples,)
        """
        if self.is_categorical:
            left = np.isin(values.astype(np.int64), self.categories)
        else:
            left = values <= self.threshold
        return ~left if self.inverted else left

    def to_dict(self) -> Dict[str, Any]:
        return {
            "feature_idx": self.feature_idx,
            "threshold": self.threshold,
            "categories": list(self.categories) if self.categories is not None else None,
            "inverted": self.inverted,
            "agreement": self.agreement,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Split":
        if (data.get("threshold") is None) == (data.get("categories") is None):
            raise ValueError("A split needs exactly one of threshold or categories")
        return cls(
            feature_idx=data["feature_idx"],
            threshold=data.get("threshold"),
            categories=data.get("categories"),
            inverted=data.get("inverted", False),
            agreement=data.get("agreement", 1.0),
        )

    def __repr__(self) -> str:
        rule = f"in {list(self.categories)}" if self.is_categorical else f"<= {self.threshold:.4f}"
        flip = ", inverted" if self.inverted else ""
        return f"Split(x[{self.feature_idx}] {rule}{flip}, agreement={self.agreement:.3f})"


class DecisionTreeNode:
    """
    決定木のノードクラス

    Attributes:
    -----------
    node_id : int
        ノードID（木のノード配列内の位置）
    depth : int
        ノードの深さ
    split : Split or None
        主分割（リーフノードの場合はNone）
    surrogates : list of Split
        代理分割（一致率の降順）
    default_left : bool
        代理分割が使えない欠損サンプルを左に送るかどうか
    left, right : int
        子ノードのインデックス（リーフノードの場合は -1）
    value : float
        リーフノードの予測値
    n_samples : int
        このノードのサンプル数
    weight : float
        このノードのサンプル重みの合計
    information_gain : float
        分割による不純度の減少量
    """

    def __init__(self, node_id: int = 0, depth: int = 0):
        self.node_id = node_id
        self.depth = depth
        self.split = None
        self.surrogates = []
        self.default_left = True
        self.left = -1
        self.right = -1
        self.value = 0.0
        self.n_samples = 0
        self.weight = 0.0
        self.information_gain = 0.0

    @property
    def is_leaf(self) -> bool:
        return self.split is None

    def route(self, X: np.ndarray, missing: np.ndarray) -> np.ndarray:
        """
        サンプルを左右に振り分ける

        The primary feature decides when present. Otherwise the first surrogate
        whose feature is present decides, and samples with no usable surrogate
        follow ``default_left``.

        Parameters:
        -----------
        X : array-like, shape=(n_samples, n_features)
        missing : array-like of bool, shape=(n_samples, n_features)

        Returns:
        --------
        go_left : array-like of bool, shape=(n_samples,)
        """
        feature_idx = self.split.feature_idx
        present = ~missing[:, feature_idx]
        go_left = np.full(X.shape[0], self.default_left, dtype=bool)
        go_left[present] = self.split.goes_left(X[present, feature_idx])

        undecided = ~present
        for surrogate in self.surrogates:
            if not np.any(undecided):
                break
            usable = undecided & ~missing[:, surrogate.feature_idx]
            go_left[usable] = surrogate.goes_left(X[usable, surrogate.feature_idx])
            undecided &= ~usable

        return go_left

    def to_dict(self) -> Dict[str, Any]:
        return {
            "depth": self.depth,
            "split": self.split.to_dict() if self.split is not None else None,
            "surrogates": [s.to_dict() for s in self.surrogates],
            "default_left": self.default_left,
            "left": self.left,
            "right": self.right,
            "value": self.value,
            "n_samples": self.n_samples,
            "weight": self.weight,
            "information_gain": self.information_gain,
        }

    @classmethod
    def from_dict(cls, node_id: int, data: Dict[str, Any]) -> "DecisionTreeNode":
        node = cls(node_id=node_id, depth=data["depth"])
        node.split = Split.from_dict(data["split"]) if data.get("split") is not None else None
        node.surrogates = [Split.from_dict(s) for s in data.get("surrogates", [])]
        node.default_left = bool(data.get("default_left", True))
        node.left = int(data.get("left", -1))
        node.right = int(data.get("right", -1))
        node.value = float(data.get("value", 0.0))
        node.n_samples = int(data.get("n_samples", 0))
        node.weight = float(data.get("weight", 0.0))
        node.information_gain = float(data.get("information_gain", 0.0))
        return node

    def __str__(self) -> str:
        if self.is_leaf:
            return f"Leaf(id={self.node_id}, depth={self.depth}, samples={self.n_samples}, value={self.value:.4f})"
        return (
            f"Node(id={self.node_id}, depth={self.depth}, samples={self.n_samples}, "
            f"split={self.split!r}, surrogates={len(self.surrogates)})"
        )

    def __repr__(self) -> str:
        return self.__str__()


class DecisionTree:
    """
    ノード配列で表現された決定木

    ``nodes[0]`` is the root. Internal nodes own their children exclusively
    through the ``left``/``right`` indices.
    """

    def __init__(self, nodes: Optional[List[DecisionTreeNode]] = None):
        self.nodes = nodes if nodes is not None else []

    @property
    def root(self) -> DecisionTreeNode:
        return self.nodes[0]

    def add_node(self, depth: int) -> DecisionTreeNode:
        node = DecisionTreeNode(node_id=len(self.nodes), depth=depth)
        self.nodes.append(node)
        return node

    def apply(self, X: np.ndarray, missing: Optional[np.ndarray] = None) -> np.ndarray:
        """
        各サンプルが到達するリーフのインデックスを返す

        Parameters:
        -----------
        X : array-like, shape=(n_samples, n_features)
        missing : array-like of bool, shape=(n_samples, n_features), optional

        Returns:
        --------
        leaf_ids : array-like of int, shape=(n_samples,)
        """
        if missing is None:
            missing = np.zeros(X.shape, dtype=bool)

        leaf_ids = np.zeros(X.shape[0], dtype=np.int64)
        stack: List[Tuple[int, np.ndarray]] = [(0, np.arange(X.shape[0]))]
        while stack:
            node_id, rows = stack.pop()
            node = self.nodes[node_id]
            if node.is_leaf or rows.size == 0:
                leaf_ids[rows] = node_id
                continue
            go_left = node.route(X[rows], missing[rows])
            stack.append((node.left, rows[go_left]))
            stack.append((node.right, rows[~go_left]))

        return leaf_ids

    def predict(self, X: np.ndarray, missing: Optional[np.ndarray] = None) -> np.ndarray:
        leaf_values = np.array([node.value for node in self.nodes], dtype=np.float64)
        return leaf_values[self.apply(X, missing)]

    def get_depth(self) -> int:
        return max(node.depth for node in self.nodes) if self.nodes else 0

    def count_nodes(self) -> int:
        return len(self.nodes)

    def used_features(self) -> List[int]:
        return sorted({node.split.feature_idx for node in self.nodes if not node.is_leaf})

    def feature_importance(self, n_features: int) -> np.ndarray:
        """
        特徴量重要度（正規化なし）

        Primary splits contribute their full gain, surrogates contribute the
        gain scaled by their agreement with the primary split.
        """
        importance = np.zeros(n_features)
        for node in self.nodes:
            if node.is_leaf:
                continue
            importance[node.split.feature_idx] += node.information_gain
            for surrogate in node.surrogates:
                importance[surrogate.feature_idx] += node.information_gain * surrogate.agreement
        return importance

    def to_dict(self) -> Dict[str, Any]:
        return {"nodes": [node.to_dict() for node in self.nodes]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DecisionTree":
        nodes = [DecisionTreeNode.from_dict(i, node) for i, node in enumerate(data["nodes"])]
        return cls(nodes)

    def check_structure(self, n_columns: int) -> None:
        """
        ノード配列の整合性を確認（不正なら ValueError）

        Every internal node must point at two later nodes that no other node
        claims, leaves must have no children, and every split must read one of
        the ``n_columns`` input columns.
        """
        if not self.nodes:
            raise ValueError("tree has no nodes")
        claimed = set()
        for node in self.nodes:
            if node.is_leaf:
                if node.left != -1 or node.right != -1:
                    raise ValueError(f"leaf {node.node_id} has children")
                continue
            for child in (node.left, node.right):
                if not node.node_id < child < len(self.nodes) or child in claimed:
                    raise ValueError(f"node {node.node_id} has an invalid child index {child}")
                claimed.add(child)
            for split in [node.split] + list(node.surrogates):
                if not 0 <= split.feature_idx < n_columns:
                    raise ValueError(f"node {node.node_id} splits on column {split.feature_idx} of {n_columns}")
        if len(claimed) != len(self.nodes) - 1:
            raise ValueError("tree has nodes unreachable from the root")

    def __str__(self) -> str:
        return f"DecisionTree(depth={self.get_depth()}, nodes={self.count_nodes()})"

    def __repr__(self) -> str:
        return self.__str__()
