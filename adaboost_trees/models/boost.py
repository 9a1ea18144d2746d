"""
Boosted Tree Classifier

This module contains the ``Boost`` classifier: Discrete, Real, Logit and
Gentle AdaBoost over decision trees [FHT98]. It owns one immutable
``ModelState`` that training, loading, pruning and clearing replace
atomically; predictions read the current state without locking.

[FHT98] Friedman, J. H., Hastie, T. and Tibshirani, R. Additive Logistic
    Regression: a Statistical View of Boosting. Technical Report, Dept. of
    Statistics, Stanford University, 1998.
"""

import threading
from typing import Any, Dict, Iterator, List, Optional, Tuple

import numpy as np

from ..exceptions import StateError
from .base import BoostBase
from .boost_components.boost_trainer import BoostTrainer, TrainStatus
from .boost_components.ensemble_predictor import EnsemblePredictor, resolve_slice
from .boost_components.model_state import ModelState, WeakLearner
from .params import BoostParams


class Boost(BoostBase):
    """
    Boosted tree classifier

    A weak classifier only has to be better than chance; boosting combines
    many of them, usually stumps, into a strong committee by weighted voting.
    Two-class problems are encoded as -1/+1 internally. Problems with more
    classes are unrolled: every sample is repeated once per class with an
    extra categorical variable holding the class index.

    Examples:
    ---------
    >>> model = Boost(boost_type="discrete", weak_count=10)
    >>> status = model.train(X, y)
    >>> labels = model.predict(X_test)
    >>> scores = model.predict(X_test, return_sum=True)
    """

    def __init__(self, params: Optional[BoostParams] = None, **kwargs):
        super().__init__(params, **kwargs)
        self._state = ModelState.empty(self._params)
        self._lock = threading.RLock()
        self.last_status: Optional[TrainStatus] = None

    @property
    def state(self) -> ModelState:
        return self._state

    @property
    def is_trained(self) -> bool:
        return self._state.is_trained

    @property
    def weak_count(self) -> int:
        return self._state.weak_count

    def train(
        self,
        X: np.ndarray,
        responses: np.ndarray,
        var_idx=None,
        sample_idx=None,
        var_type=None,
        missing_mask=None,
        params: Optional[BoostParams] = None,
        cancel_event: Optional[threading.Event] = None,
        **param_overrides
    ) -> TrainStatus:
        """
        ブースティング分類器を学習

        Training works on a scratch ensemble; the current model is replaced
        only when training succeeds and produced at least one weak learner.

        Parameters:
        -----------
        X : array-like, shape=(n_samples, n_features)
            学習データ（NaN は欠損）
        responses : array-like, shape=(n_samples,)
            クラスラベル
        var_idx : array-like of int or bool, optional
            分割に使用する特徴量
        sample_idx : array-like of int or bool, optional
            学習に使用するサンプル
        var_type : str or sequence, optional
            特徴量の型（'categorical' / 'ordered'）
        missing_mask : array-like of bool, optional
            欠損マスク
        params : BoostParams, optional
            この学習に使うパラメータ（省略時は現在のパラメータ）
        cancel_event : threading.Event, optional
            ラウンド間で確認される中断フラグ
        **param_overrides : dict
            BoostParams のフィールドの上書き

        Returns:
        --------
        status : TrainStatus
            学習結果の要約
        """
        params = params if params is not None else self._params
        if param_overrides:
            params = params.replace(**param_overrides)

        trainer = BoostTrainer(params)
        state, status = trainer.train(
            X,
            responses,
            var_idx=var_idx,
            sample_idx=sample_idx,
            var_type=var_type,
            missing_mask=missing_mask,
            cancel_event=cancel_event
        )

        with self._lock:
            self.last_status = status
            if state.is_trained:
                self._state = state
                self._params = params
        return status

    def fit(self, X: np.ndarray, y: np.ndarray, **kwargs) -> 'Boost':
        """Train and return ``self`` (see :meth:`train`)."""
        self.train(X, y, **kwargs)
        return self

    def _predictor(self) -> EnsemblePredictor:
        return EnsemblePredictor(self._state)

    def predict(
        self,
        X: np.ndarray,
        missing_mask=None,
        slice=None,
        raw_mode: bool = False,
        return_sum: bool = False
    ) -> np.ndarray:
        """
        サンプルの応答を予測

        Parameters:
        -----------
        X : array-like, shape=(n_samples, n_features)
            入力特徴量
        missing_mask : array-like of bool, optional
            欠損マスク。欠損の扱いには代理分割が使われ、使えない場合は
            重みの大きい側の子ノードに進む
        slice : None, "all", slice or (start, stop)
            使用する弱学習器の連続した範囲（0始まり、終端を含まない）
        raw_mode : bool
            元のラベルではなく内部表現（±1 またはクラスインデックス）で返す
        return_sum : bool
            クラスラベルの代わりに投票の合計を返す

        Returns:
        --------
        results : array-like
            予測ラベルまたは投票の合計
        """
        return self._predictor().predict(
            X, slice=slice, missing_mask=missing_mask, raw_mode=raw_mode, return_sum=return_sum
        )

    def predict_proba(self, X: np.ndarray, missing_mask=None, slice=None) -> np.ndarray:
        """
        クラス確率を予測

        Returns:
        --------
        probabilities : array-like, shape=(n_samples, n_classes)
            classes 順のクラス確率
        """
        return self._predictor().predict_proba(X, slice=slice, missing_mask=missing_mask)

    def staged_scores(self, X: np.ndarray, missing_mask=None) -> Iterator[np.ndarray]:
        """先頭 m 個の弱学習器による投票の合計を m = 1, 2, ... の順に返す"""
        return self._predictor().staged_sums(X, missing_mask=missing_mask)

    def calc_error(self, X: np.ndarray, y: np.ndarray, missing_mask=None, slice=None) -> float:
        """
        誤分類率（パーセント）を計算
        """
        y_pred = self.predict(X, missing_mask=missing_mask, slice=slice)
        return float(np.mean(y_pred != np.asarray(y).ravel()) * 100.0)

    def save(self, file_path: str) -> None:
        """
        モデルをファイルに保存

        Parameters:
        -----------
        file_path : str
            保存先のパス
        """
        with self._lock:
            if not self._state.is_trained:
                raise StateError("Cannot save a model that has not been trained")
            self._state.save(file_path)

    def load(self, file_path: str) -> None:
        """
        ファイルからモデルを読み込み、現在の状態を置き換える

        The snapshot is fully decoded before anything is replaced, so a failed
        load leaves the current model untouched.
        """
        with self._lock:
            state = ModelState.load(file_path)
            self._state = state
            self._params = state.params
            self.last_status = None

    def clear(self) -> None:
        """
        学習済みの状態を破棄し、未学習の状態に戻す
        """
        with self._lock:
            self._state = ModelState.empty(self._params)
            self.last_status = None

    def prune(self, slice) -> None:
        """
        指定した範囲の弱学習器だけを残す

        Parameters:
        -----------
        slice : slice or (start, stop)
            残す弱学習器の範囲
        """
        with self._lock:
            if not self._state.is_trained:
                raise StateError("Model has not been trained yet")
            start, stop = resolve_slice(slice, self._state.weak_count)
            self._state = self._state.with_ensemble(self._state.ensemble[start:stop])

    def get_weak_predictors(self) -> Tuple[WeakLearner, ...]:
        return self._state.ensemble

    def get_active_vars(self) -> List[int]:
        """
        主分割で使われている特徴量のインデックス
        """
        if not self._state.is_trained:
            raise StateError("Model has not been trained yet")
        used = set()
        for learner in self._state.ensemble:
            used.update(learner.tree.used_features())
        return sorted(f for f in used if f < self._state.n_features)

    def get_feature_importance(self) -> np.ndarray:
        """
        特徴量重要度

        Each tree's gains (surrogates included, scaled by agreement) are
        weighted by the absolute vote weight of its learner. The class column
        of unrolled multi-class models is left out.

        Returns:
        --------
        feature_importance : array-like, shape=(n_features,)
            合計が1になるよう正規化された重要度
        """
        if not self._state.is_trained:
            raise StateError("Model has not been trained yet")
        n_columns = len(self._state.categorical)
        importance = np.zeros(n_columns)
        for learner in self._state.ensemble:
            importance += abs(learner.alpha) * learner.tree.feature_importance(n_columns)

        importance = importance[: self._state.n_features]
        if np.sum(importance) > 0:
            importance = importance / np.sum(importance)
        return importance

    def get_info(self) -> Dict[str, Any]:
        info = self._state.get_info()
        info["params"] = self._params.to_dict()
        return info

    def print_training_summary(self) -> None:
        """
        Print training summary
        """
        info = self._state.get_info()
        print("\n=== Boost Training Summary ===")
        print(f"Boost type: {self._state.params.boost_type.value}")
        print(f"Weak learners: {info['weak_count']}")
        print(f"Features: {info['n_features']}")
        print(f"Classes: {info['n_classes']}{' (unrolled)' if info['unrolled'] else ''}")
        print(f"Max depth: {self._state.params.max_depth}")

        if self.last_status is not None:
            print(f"Training error: {self.last_status.train_error:.4f}")
            print(f"Last weighted error: {self.last_status.last_error:.4f}")
            if self.last_status.stopped_early:
                print("Stopped early: a weak learner was no better than chance")
            if self.last_status.cancelled:
                print("Training was cancelled")

        if self._state.is_trained:
            importance = self.get_feature_importance()
            print(f"Top 5 features: {np.argsort(importance)[-5:][::-1]}")

    def __repr__(self) -> str:
        if not self.is_trained:
            return f"Boost(not trained, boost_type={self._params.boost_type.value})"
        return f"Boost(boost_type={self._state.params.boost_type.value}, weak_count={self.weak_count})"
