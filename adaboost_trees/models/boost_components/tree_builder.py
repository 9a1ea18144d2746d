"""
Tree Builder

This module handles the construction of weighted decision trees used as weak
learners, including split finding for ordered and categorical features,
surrogate splits for missing measurements, and leaf value computation.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence, Tuple

import numpy as np

from ...exceptions import ConfigurationError, DataError
from ..params import SplitCriterion
from .data_transforms import resolve_var_types
from .tree_node import DecisionTree, DecisionTreeNode, Split

LEAF_RULES = ("majority", "log_ratio", "mean")

# クリッピング用の確率下限
_PROBA_EPS = 1e-10


class TreeBuilder:
    """
    重み付き決定木の構築を担当するクラス

    Attributes:
    -----------
    max_depth : int
        最大深度（1 ならスタンプ）
    criterion : SplitCriterion
        分割評価の不純度（gini / misclass / sqerr）
    leaf_rule : str
        リーフ値の計算方法（majority / log_ratio / mean）
    use_surrogates : bool
        代理分割を構築するかどうか
    min_sample_count : int
        分割に必要な最小サンプル数
    min_gain : float
        分割に必要な最小の不純度減少量
    n_jobs : int
        分割探索に使うスレッド数
    """

    def __init__(
        self,
        max_depth: int = 1,
        criterion: SplitCriterion = SplitCriterion.GINI,
        leaf_rule: str = "majority",
        use_surrogates: bool = True,
        min_sample_count: int = 2,
        min_gain: float = 1e-12,
        n_jobs: int = 1
    ):
        criterion = SplitCriterion(criterion)
        if criterion is SplitCriterion.DEFAULT:
            raise ConfigurationError("TreeBuilder needs a concrete criterion, not 'default'")
        if leaf_rule not in LEAF_RULES:
            raise ConfigurationError(f"Unknown leaf rule: {leaf_rule!r}")
        if criterion is SplitCriterion.SQERR and leaf_rule != "mean":
            raise ConfigurationError("The 'sqerr' criterion requires the 'mean' leaf rule")
        if criterion is not SplitCriterion.SQERR and leaf_rule == "mean":
            raise ConfigurationError(f"The {criterion.value!r} criterion cannot use the 'mean' leaf rule")

        self.max_depth = max_depth
        self.criterion = criterion
        self.leaf_rule = leaf_rule
        self.use_surrogates = use_surrogates
        self.min_sample_count = min_sample_count
        self.min_gain = min_gain
        self.n_jobs = n_jobs

    @property
    def is_classification(self) -> bool:
        return self.criterion is not SplitCriterion.SQERR

    def fit(
        self,
        X: np.ndarray,
        responses: np.ndarray,
        weights: np.ndarray,
        var_types: Optional[Sequence] = None,
        max_depth: Optional[int] = None,
        use_surrogates: Optional[bool] = None,
        priors: Optional[Sequence[float]] = None,
        missing: Optional[np.ndarray] = None,
        var_idx: Optional[Sequence[int]] = None,
        class_feature: Optional[int] = None
    ) -> DecisionTree:
        """
        重み付きサンプルに決定木を当てはめる

        Parameters:
        -----------
        X : array-like, shape=(n_samples, n_features)
            入力特徴量（カテゴリ変数は非負の整数インデックス）
        responses : array-like, shape=(n_samples,)
            クラスラベル（gini / misclass）または実数値（sqerr）
        weights : array-like, shape=(n_samples,)
            非負のサンプル重み
        var_types : sequence, optional
            特徴量ごとの型（'categorical' / 'ordered'）。省略時はすべて ordered
        max_depth : int, optional
            最大深度（省略時はコンストラクタの値）
        use_surrogates : bool, optional
            代理分割を構築するかどうか（省略時はコンストラクタの値）
        priors : sequence of float, optional
            クラスラベル順の事前確率。各クラスの重みの総量を事前確率に比例させる
        missing : array-like of bool, shape=(n_samples, n_features), optional
            欠損マスク
        var_idx : sequence of int, optional
            分割に使用する特徴量のインデックス
        class_feature : int, optional
            多クラス展開で追加したクラス列。各クラスの値を先に1つずつ分離する

        Returns:
        --------
        tree : DecisionTree
            構築された決定木
        """
        X = np.asarray(X, dtype=np.float64)
        responses = np.asarray(responses)
        weights = np.asarray(weights, dtype=np.float64)

        if X.ndim != 2:
            raise ConfigurationError(f"X must be 2D array, got {X.ndim}D")
        n_samples, n_features = X.shape
        if n_samples == 0:
            raise DataError("Cannot fit a tree on an empty sample set")
        if responses.shape != (n_samples,) or weights.shape != (n_samples,):
            raise ConfigurationError(
                f"responses {responses.shape} and weights {weights.shape} must both have shape ({n_samples},)"
            )
        if np.any(weights < 0) or not np.all(np.isfinite(weights)):
            raise DataError("Sample weights must be finite and non-negative")
        if weights.sum() <= 0:
            raise DataError("All sample weights are zero")

        if missing is None:
            missing = np.isnan(X)
        else:
            missing = np.asarray(missing, dtype=bool)
            if missing.shape != X.shape:
                raise ConfigurationError(f"missing mask shape {missing.shape} does not match X shape {X.shape}")
            missing = missing | np.isnan(X)

        self._X = X
        self._missing = missing
        self._categorical = resolve_var_types(var_types, n_features)
        self._features = self._resolve_features(var_idx, n_features)
        self._class_feature = class_feature
        if class_feature is not None:
            self._features = [f for f in self._features if f != class_feature]
        self._max_depth = self.max_depth if max_depth is None else max_depth
        self._use_surrogates = self.use_surrogates if use_surrogates is None else use_surrogates
        self._weights, self._stats = self._prepare_stats(responses, weights, priors)

        tree = DecisionTree()
        root = tree.add_node(depth=0)
        if self.n_jobs > 1 and len(self._features) > 1:
            with ThreadPoolExecutor(max_workers=self.n_jobs) as executor:
                self._executor = executor
                self._grow(tree, root, np.arange(n_samples))
        else:
            self._executor = None
            self._grow(tree, root, np.arange(n_samples))

        # 一時的な作業領域を解放
        del self._X, self._missing, self._stats, self._weights, self._executor
        self._responses = None
        return tree

    def _resolve_features(self, var_idx: Optional[Sequence[int]], n_features: int) -> List[int]:
        if var_idx is None:
            return list(range(n_features))
        features = sorted({int(f) for f in var_idx})
        if any(f < 0 or f >= n_features for f in features):
            raise ConfigurationError(f"var_idx contains indices outside [0, {n_features})")
        if not features:
            raise ConfigurationError("var_idx selects no features")
        return features

    def _prepare_stats(
        self,
        responses: np.ndarray,
        weights: np.ndarray,
        priors: Optional[Sequence[float]]
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        サンプルごとの集計用統計量を作成

        Classification criteria use one column of weight per class; the squared
        error criterion uses the columns ``[w, w*y, w*y^2]``.
        """
        if not self.is_classification:
            if priors is not None:
                raise ConfigurationError("priors only apply to classification criteria")
            y = responses.astype(np.float64)
            self._classes = None
            self._responses = y
            return weights, np.column_stack([weights, weights * y, weights * y * y])

        self._classes, class_idx = np.unique(responses, return_inverse=True)
        n_classes = len(self._classes)
        if self.leaf_rule == "log_ratio" and n_classes > 2:
            raise ConfigurationError("The 'log_ratio' leaf rule supports two classes only")

        if priors is not None:
            priors = np.asarray(priors, dtype=np.float64)
            if priors.shape != (n_classes,):
                raise ConfigurationError(f"Expected {n_classes} priors, got {priors.shape[0] if priors.ndim else 1}")
            class_mass = np.bincount(class_idx, weights=weights, minlength=n_classes)
            target_mass = priors / priors.sum() * weights.sum()
            with np.errstate(divide="ignore", invalid="ignore"):
                scale = np.where(class_mass > 0, target_mass / class_mass, 0.0)
            weights = weights * scale[class_idx]
            if weights.sum() <= 0:
                raise DataError("priors give zero weight to every sample")

        stats = np.zeros((len(weights), n_classes))
        stats[np.arange(len(weights)), class_idx] = weights
        return weights, stats

    def _grow(self, tree: DecisionTree, node: DecisionTreeNode, rows: np.ndarray, level: int = 0) -> None:
        """
        再帰的に決定木を構築

        Parameters:
        -----------
        tree : DecisionTree
            構築中の決定木
        node : DecisionTreeNode
            現在のノード
        rows : array-like of int
            このノードに到達したサンプルのインデックス
        level : int
            max_depth の対象となる深さ（クラス列の分割は数えない）
        """
        node_stats = self._stats[rows].sum(axis=0)
        node.n_samples = rows.size
        node.weight = float(self._weights[rows].sum())
        node.value = self._leaf_value(node_stats)

        if self._class_feature is not None:
            codes = np.unique(self._X[rows, self._class_feature])
            if codes.size > 1:
                self._split_on_class(tree, node, rows, codes[0], level)
                return

        if self._should_stop_splitting(rows, node_stats, level):
            return

        best = self._search_best_split(rows)
        if best is None or best[0] <= self.min_gain:
            return

        gain, split, default_left = best
        node.split = split
        node.default_left = default_left
        node.information_gain = gain
        if self._use_surrogates:
            node.surrogates = self._search_surrogates(rows, split)

        go_left = node.route(self._X[rows], self._missing[rows])
        left_rows, right_rows = rows[go_left], rows[~go_left]

        left = tree.add_node(depth=node.depth + 1)
        right = tree.add_node(depth=node.depth + 1)
        node.left, node.right = left.node_id, right.node_id
        self._grow(tree, left, left_rows, level + 1)
        self._grow(tree, right, right_rows, level + 1)

    def _split_on_class(
        self,
        tree: DecisionTree,
        node: DecisionTreeNode,
        rows: np.ndarray,
        code: float,
        level: int
    ) -> None:
        """
        クラス列の値を1つ左に分離する

        A tree fitted on unrolled samples first peels the class values off one
        at a time, so that every class gets its own subtree of ``max_depth``.
        A plain impurity search cannot find these splits: every sample
        contributes one positive and K - 1 negative copies to both children.
        """
        go_left = self._X[rows, self._class_feature] == code
        node.split = Split(self._class_feature, categories=[int(code)])
        node.default_left = bool(self._weights[rows[go_left]].sum() >= self._weights[rows[~go_left]].sum())

        left = tree.add_node(depth=node.depth + 1)
        right = tree.add_node(depth=node.depth + 1)
        node.left, node.right = left.node_id, right.node_id
        self._grow(tree, left, rows[go_left], level)
        self._grow(tree, right, rows[~go_left], level)

    def _should_stop_splitting(self, rows: np.ndarray, node_stats: np.ndarray, depth: int) -> bool:
        if depth >= self._max_depth or rows.size < self.min_sample_count:
            return True
        if self._mass(node_stats) <= 0:
            return True
        if self.is_classification:
            # 純粋なノード
            return np.count_nonzero(node_stats > 0) <= 1
        return np.ptp(self._responses[rows]) == 0

    def _impurity(self, stats: np.ndarray) -> np.ndarray:
        """
        集計統計量から重み付き不純度を計算

        gini: W - sum_c W_c^2 / W, misclass: W - max_c W_c,
        sqerr: sum w*y^2 - (sum w*y)^2 / W
        """
        with np.errstate(divide="ignore", invalid="ignore"):
            if self.criterion is SplitCriterion.SQERR:
                total = stats[..., 0]
                return stats[..., 2] - np.where(total > 0, stats[..., 1] ** 2 / total, 0.0)
            total = stats.sum(axis=-1)
            if self.criterion is SplitCriterion.GINI:
                return np.where(total > 0, total - (stats ** 2).sum(axis=-1) / total, 0.0)
            return total - stats.max(axis=-1)

    def _search_best_split(self, rows: np.ndarray) -> Optional[Tuple[float, Split, bool]]:
        """
        最適な分割を探索

        Every feature is evaluated independently; the arg-max reduction breaks
        ties by the lower feature index so that the result does not depend on
        the number of worker threads.

        Returns:
        --------
        best_split : tuple or None
            (information_gain, split, default_left)
        """
        if self._executor is not None:
            candidates = list(self._executor.map(lambda f: self._best_split_for_feature(rows, f), self._features))
        else:
            candidates = [self._best_split_for_feature(rows, f) for f in self._features]

        best = None
        for candidate in candidates:
            if candidate is not None and (best is None or candidate[0] > best[0]):
                best = candidate
        return best

    def _best_split_for_feature(self, rows: np.ndarray, feature_idx: int) -> Optional[Tuple[float, Split, bool]]:
        present = rows[~self._missing[rows, feature_idx]]
        if present.size < 2:
            return None

        values = self._X[present, feature_idx]
        stats = self._stats[present]
        parent_impurity = self._impurity(stats.sum(axis=0))

        if self._categorical[feature_idx]:
            return self._best_categorical_split(feature_idx, values, stats, parent_impurity)

        order = np.argsort(values, kind="mergesort")
        values = values[order]
        cum = np.cumsum(stats[order], axis=0)
        boundaries = np.nonzero(values[:-1] < values[1:])[0]
        if boundaries.size == 0:
            return None

        left = cum[boundaries]
        right = cum[-1] - left
        gains = parent_impurity - self._impurity(left) - self._impurity(right)
        best = int(np.argmax(gains))
        pos = boundaries[best]

        threshold = 0.5 * (values[pos] + values[pos + 1])
        if threshold >= values[pos + 1]:
            threshold = values[pos]
        default_left = self._mass(left[best]) >= self._mass(right[best])
        return float(gains[best]), Split(feature_idx, threshold=threshold), bool(default_left)

    def _best_categorical_split(
        self,
        feature_idx: int,
        values: np.ndarray,
        stats: np.ndarray,
        parent_impurity: float
    ) -> Optional[Tuple[float, Split, bool]]:
        """
        カテゴリ変数の部分集合分割を探索

        Categories are ordered by their mean response (share of the last class
        for classification) and every prefix of that order is tried.
        """
        codes = values.astype(np.int64)
        categories, inverse = np.unique(codes, return_inverse=True)
        if categories.size < 2:
            return None

        per_category = np.zeros((categories.size, stats.shape[1]))
        np.add.at(per_category, inverse, stats)

        mass = self._mass(per_category)
        with np.errstate(divide="ignore", invalid="ignore"):
            if self.is_classification:
                score = np.where(mass > 0, per_category[:, -1] / mass, 0.0)
            else:
                score = np.where(mass > 0, per_category[:, 1] / mass, 0.0)
        order = np.lexsort((categories, score))

        cum = np.cumsum(per_category[order], axis=0)[:-1]
        right = per_category.sum(axis=0) - cum
        gains = parent_impurity - self._impurity(cum) - self._impurity(right)
        best = int(np.argmax(gains))

        left_categories = categories[order[: best + 1]]
        default_left = self._mass(cum[best]) >= self._mass(right[best])
        return float(gains[best]), Split(feature_idx, categories=left_categories), bool(default_left)

    def _mass(self, stats: np.ndarray) -> np.ndarray:
        if self.is_classification:
            return stats.sum(axis=-1)
        return stats[..., 0]

    def _search_surrogates(self, rows: np.ndarray, primary: Split) -> List[Split]:
        """
        代理分割を探索

        For every other feature the split that best reproduces the primary
        partition is found. Surrogates are kept only when they agree with the
        primary split more often than sending everything to the heavier side,
        and are ranked by agreement (ties: lower feature index).
        """
        primary_present = rows[~self._missing[rows, primary.feature_idx]]
        if primary_present.size == 0:
            return []
        direction = primary.goes_left(self._X[primary_present, primary.feature_idx])

        surrogates = []
        for feature_idx in self._features:
            if feature_idx == primary.feature_idx:
                continue
            usable = ~self._missing[primary_present, feature_idx]
            if np.count_nonzero(usable) < 2:
                continue
            both = primary_present[usable]
            w = self._weights[both]
            total = w.sum()
            if total <= 0:
                continue
            w_left = np.where(direction[usable], w, 0.0)
            w_right = w - w_left
            majority = max(w_left.sum(), w_right.sum())

            values = self._X[both, feature_idx]
            if self._categorical[feature_idx]:
                surrogate = self._categorical_surrogate(feature_idx, values, w_left, w_right)
            else:
                surrogate = self._ordered_surrogate(feature_idx, values, w_left, w_right)
            if surrogate is None:
                continue
            agreement, split = surrogate
            if agreement > majority * (1.0 + 1e-12):
                split.agreement = agreement / total
                surrogates.append(split)

        surrogates.sort(key=lambda s: (-s.agreement, s.feature_idx))
        return surrogates

    def _ordered_surrogate(
        self,
        feature_idx: int,
        values: np.ndarray,
        w_left: np.ndarray,
        w_right: np.ndarray
    ) -> Optional[Tuple[float, Split]]:
        order = np.argsort(values, kind="mergesort")
        values = values[order]
        boundaries = np.nonzero(values[:-1] < values[1:])[0]
        if boundaries.size == 0:
            return None

        cum_left = np.cumsum(w_left[order])[boundaries]
        cum_right = np.cumsum(w_right[order])[boundaries]
        total_left, total_right = w_left.sum(), w_right.sum()
        normal = cum_left + (total_right - cum_right)
        inverted = cum_right + (total_left - cum_left)

        best_normal, best_inverted = int(np.argmax(normal)), int(np.argmax(inverted))
        if inverted[best_inverted] > normal[best_normal]:
            pos, agreement, flip = boundaries[best_inverted], inverted[best_inverted], True
        else:
            pos, agreement, flip = boundaries[best_normal], normal[best_normal], False

        threshold = 0.5 * (values[pos] + values[pos + 1])
        if threshold >= values[pos + 1]:
            threshold = values[pos]
        return float(agreement), Split(feature_idx, threshold=threshold, inverted=flip)

    def _categorical_surrogate(
        self,
        feature_idx: int,
        values: np.ndarray,
        w_left: np.ndarray,
        w_right: np.ndarray
    ) -> Optional[Tuple[float, Split]]:
        codes = values.astype(np.int64)
        categories, inverse = np.unique(codes, return_inverse=True)
        if categories.size < 2:
            return None
        left_mass = np.bincount(inverse, weights=w_left, minlength=categories.size)
        right_mass = np.bincount(inverse, weights=w_right, minlength=categories.size)
        to_left = left_mass >= right_mass
        if np.all(to_left) or not np.any(to_left):
            return None
        agreement = np.where(to_left, left_mass, right_mass).sum()
        return float(agreement), Split(feature_idx, categories=categories[to_left])

    def _leaf_value(self, stats: np.ndarray) -> float:
        """
        リーフノードの値を計算

        majority: 重み付き多数決のクラスラベル（同数なら大きいラベル）
        log_ratio: 0.5 * ln(p / (1 - p))、p は最後のクラスの重み比率
        mean: 重み付き平均
        """
        if self.leaf_rule == "mean":
            return float(stats[1] / stats[0]) if stats[0] > 0 else 0.0

        if self.leaf_rule == "majority":
            reverse_best = int(np.argmax(stats[::-1]))
            return float(self._classes[len(stats) - 1 - reverse_best])

        total = stats.sum()
        if len(stats) == 1:
            p = 1.0 if self._classes[0] > 0 else 0.0
        else:
            p = stats[-1] / total if total > 0 else 0.5
        p = min(max(p, _PROBA_EPS), 1.0 - _PROBA_EPS)
        return float(0.5 * np.log(p / (1.0 - p)))
