"""
Model State

This module contains the weak learner record and the immutable snapshot of a
trained ensemble, together with its JSON persistence.
"""

import json
import os
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from ...exceptions import ModelIOError
from ..params import BoostParams
from .tree_node import DecisionTree

FORMAT_NAME = "adaboost_trees.Boost"
FORMAT_VERSION = 1


class WeakLearner:
    """
    弱学習器（決定木と投票重み）

    Attributes:
    -----------
    tree : DecisionTree
        学習済みの決定木
    alpha : float
        アンサンブルでの投票重み
    """

    def __init__(self, tree: DecisionTree, alpha: float):
        self.tree = tree
        self.alpha = float(alpha)

    def vote(self, X: np.ndarray, missing: Optional[np.ndarray] = None) -> np.ndarray:
        return self.alpha * self.tree.predict(X, missing)

    def to_dict(self) -> Dict[str, Any]:
        return {"alpha": self.alpha, "tree": self.tree.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WeakLearner":
        return cls(DecisionTree.from_dict(data["tree"]), data["alpha"])

    def __repr__(self) -> str:
        return f"WeakLearner(alpha={self.alpha:.4f}, {self.tree})"


class ModelState:
    """
    学習済みモデルのスナップショット

    Instances are not mutated after construction; training, pruning, clearing
    and loading all build a new ``ModelState`` and swap it in.

    Attributes:
    -----------
    params : BoostParams
        学習に使用したパラメータ
    ensemble : tuple of WeakLearner
        ブースティングの順に並んだ弱学習器
    classes : array-like or None
        昇順の元のクラスラベル
    n_features : int
        学習時の特徴量数
    categorical : array-like of bool
        特徴量ごとのカテゴリ変数フラグ
    n_categories : array-like of int
        カテゴリ変数ごとのカテゴリ数
    var_idx : array-like of int or None
        学習に使用した特徴量
    unrolled : bool
        多クラス問題をクラス列の追加で展開したかどうか
    """

    def __init__(
        self,
        params: BoostParams,
        ensemble: Sequence[WeakLearner] = (),
        classes: Optional[np.ndarray] = None,
        n_features: int = 0,
        categorical: Optional[np.ndarray] = None,
        n_categories: Optional[np.ndarray] = None,
        var_idx: Optional[np.ndarray] = None,
        unrolled: bool = False
    ):
        self.params = params
        self.ensemble = tuple(ensemble)
        self.classes = classes
        self.n_features = int(n_features)
        self.categorical = (
            np.zeros(n_features, dtype=bool) if categorical is None else np.asarray(categorical, dtype=bool)
        )
        self.n_categories = (
            np.zeros(len(self.categorical), dtype=np.int64)
            if n_categories is None
            else np.asarray(n_categories, dtype=np.int64)
        )
        self.var_idx = None if var_idx is None else np.asarray(var_idx, dtype=np.int64)
        self.unrolled = bool(unrolled)

    @classmethod
    def empty(cls, params: Optional[BoostParams] = None) -> "ModelState":
        return cls(params if params is not None else BoostParams())

    @property
    def is_trained(self) -> bool:
        return len(self.ensemble) > 0

    @property
    def n_classes(self) -> int:
        return 0 if self.classes is None else len(self.classes)

    @property
    def weak_count(self) -> int:
        return len(self.ensemble)

    def with_ensemble(self, ensemble: Sequence[WeakLearner]) -> "ModelState":
        """同じ設定で弱学習器だけを入れ替えた新しい状態を返す"""
        return ModelState(
            self.params,
            ensemble,
            classes=self.classes,
            n_features=self.n_features,
            categorical=self.categorical,
            n_categories=self.n_categories,
            var_idx=self.var_idx,
            unrolled=self.unrolled,
        )

    def to_dict(self) -> Dict[str, Any]:
        classes = None
        if self.classes is not None:
            classes = {"dtype": self.classes.dtype.str, "values": self.classes.tolist()}
        return {
            "format": FORMAT_NAME,
            "version": FORMAT_VERSION,
            "params": self.params.to_dict(),
            "classes": classes,
            "n_features": self.n_features,
            "categorical": self.categorical.tolist(),
            "n_categories": self.n_categories.tolist(),
            "var_idx": self.var_idx.tolist() if self.var_idx is not None else None,
            "unrolled": self.unrolled,
            "ensemble": [learner.to_dict() for learner in self.ensemble],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModelState":
        if not isinstance(data, dict) or data.get("format") != FORMAT_NAME:
            raise ModelIOError("Not a boosted tree model snapshot")
        if data.get("version") != FORMAT_VERSION:
            raise ModelIOError(f"Unsupported snapshot version: {data.get('version')!r}")
        try:
            classes = None
            if data["classes"] is not None:
                dtype = np.dtype(data["classes"]["dtype"])
                classes = np.asarray(data["classes"]["values"], dtype=dtype)
            state = cls(
                BoostParams.from_dict(data["params"]),
                [WeakLearner.from_dict(learner) for learner in data["ensemble"]],
                classes=classes,
                n_features=data["n_features"],
                categorical=data["categorical"],
                n_categories=data["n_categories"],
                var_idx=data.get("var_idx"),
                unrolled=data.get("unrolled", False),
            )
            state._check_consistency()
        except (KeyError, TypeError, ValueError, IndexError) as exc:
            raise ModelIOError(f"Corrupt model snapshot: {exc}") from exc
        return state

    def _check_consistency(self) -> None:
        n_columns = self.n_features + (1 if self.unrolled else 0)
        if self.n_features <= 0 or self.categorical.shape != (n_columns,):
            raise ValueError(f"{len(self.categorical)} variable types for {self.n_features} features")
        if self.n_categories.shape != (n_columns,):
            raise ValueError(f"{len(self.n_categories)} category counts for {n_columns} columns")
        if self.var_idx is not None and np.any((self.var_idx < 0) | (self.var_idx >= self.n_features)):
            raise ValueError("var_idx refers to features outside the model")
        if self.is_trained:
            if self.classes is None or self.classes.ndim != 1:
                raise ValueError("a trained model needs its class labels")
            if (self.n_classes > 2) != self.unrolled or self.n_classes < 2:
                raise ValueError(f"{self.n_classes} classes do not match unrolled={self.unrolled}")
        for learner in self.ensemble:
            learner.tree.check_structure(n_columns)

    def save(self, file_path: str) -> None:
        """
        JSON ファイルに保存

        Parameters:
        -----------
        file_path : str
            保存先のパス
        """
        payload = self.to_dict()
        payload["saved_at"] = datetime.now().isoformat()
        try:
            with open(os.fspath(file_path), "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False)
        except (OSError, TypeError) as exc:
            raise ModelIOError(f"Cannot write model to {file_path}: {exc}") from exc

    @classmethod
    def load(cls, file_path: str) -> "ModelState":
        """
        JSON ファイルから読み込み

        Parameters:
        -----------
        file_path : str
            読み込むファイルのパス
        """
        try:
            with open(os.fspath(file_path), "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, UnicodeDecodeError) as exc:
            raise ModelIOError(f"Cannot read model from {file_path}: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise ModelIOError(f"Corrupt model snapshot in {file_path}: {exc}") from exc
        return cls.from_dict(data)

    def get_info(self) -> Dict[str, Any]:
        info = {
            "boost_type": self.params.boost_type.value,
            "weak_count": self.weak_count,
            "n_features": self.n_features,
            "n_classes": self.n_classes,
            "unrolled": self.unrolled,
        }
        if self.is_trained:
            depths: List[int] = [learner.tree.get_depth() for learner in self.ensemble]
            info["max_tree_depth"] = max(depths)
            info["n_nodes"] = sum(learner.tree.count_nodes() for learner in self.ensemble)
        return info
