"""
Ensemble Predictor

This module evaluates a contiguous slice of a trained ensemble and aggregates
the alpha-weighted votes into labels or raw scores. It only reads a finished
``ModelState``, so one predictor may serve many threads at once.
"""

import numbers
from typing import Iterator, Tuple

import numpy as np

from ...exceptions import ConfigurationError, DataError, RangeError, StateError
from .data_transforms import append_class_column, mask_unknown_categories, merge_missing_mask, validate_input_data
from .model_state import ModelState


def resolve_slice(slice_spec, weak_count: int) -> Tuple[int, int]:
    """
    スライス指定を [start, stop) の組に変換

    Accepts ``None`` or ``"all"`` (whole ensemble), a Python ``slice`` with
    step 1, or a ``(start, stop)`` pair. Indices are 0-based and half-open.
    """
    if slice_spec is None or (isinstance(slice_spec, str) and slice_spec.lower() == "all"):
        return 0, weak_count
    if isinstance(slice_spec, str):
        raise ConfigurationError(f"Invalid slice: {slice_spec!r}")

    if isinstance(slice_spec, slice):
        if slice_spec.step not in (None, 1):
            raise ConfigurationError("Only contiguous slices (step 1) are supported")
        start = 0 if slice_spec.start is None else slice_spec.start
        stop = weak_count if slice_spec.stop is None else slice_spec.stop
    else:
        try:
            start, stop = slice_spec
        except (TypeError, ValueError):
            raise ConfigurationError(f"Invalid slice: {slice_spec!r}") from None

    for bound in (start, stop):
        if isinstance(bound, bool) or not isinstance(bound, numbers.Integral):
            raise ConfigurationError(f"Slice bounds must be integers, got {bound!r}")
    start, stop = int(start), int(stop)
    if start < 0 or stop > weak_count or start >= stop:
        raise RangeError(f"Slice [{start}, {stop}) is outside the ensemble of {weak_count} weak learners")
    return start, stop


class EnsemblePredictor:
    """
    アンサンブルの重み付き投票による予測

    Attributes:
    -----------
    state : ModelState
        学習済みモデルの状態
    """

    def __init__(self, state: ModelState):
        if not state.is_trained:
            raise StateError("Model has not been trained yet")
        self.state = state

    def prepare(self, X, missing_mask=None) -> Tuple[np.ndarray, np.ndarray]:
        """
        入力の検証と欠損マスクの作成

        Categories that never appeared in training are treated as missing.
        """
        X, _ = validate_input_data(X)
        if X.shape[1] != self.state.n_features:
            raise DataError(f"X has {X.shape[1]} features, but the model was trained with {self.state.n_features}")
        missing = merge_missing_mask(X, missing_mask)
        n = self.state.n_features
        missing = mask_unknown_categories(
            X, missing, self.state.categorical[:n], self.state.n_categories[:n]
        )
        return X, missing

    def decision_function(self, X, slice=None, missing_mask=None) -> np.ndarray:
        """
        重み付き投票の合計

        Returns:
        --------
        sums : array-like, shape=(n_samples,) or (n_samples, n_classes)
            2クラスでは1次元、多クラスではクラスごとの列
        """
        X, missing = self.prepare(X, missing_mask)
        start, stop = resolve_slice(slice, self.state.weak_count)
        return self._sums(X, missing, start, stop)

    def _sums(self, X: np.ndarray, missing: np.ndarray, start: int, stop: int) -> np.ndarray:
        learners = self.state.ensemble[start:stop]
        if not self.state.unrolled:
            sums = np.zeros(X.shape[0])
            for learner in learners:
                sums += learner.vote(X, missing)
            return sums

        sums = np.zeros((X.shape[0], self.state.n_classes))
        for k in range(self.state.n_classes):
            X_k, missing_k = append_class_column(X, missing, k)
            for learner in learners:
                sums[:, k] += learner.vote(X_k, missing_k)
        return sums

    def staged_sums(self, X, missing_mask=None) -> Iterator[np.ndarray]:
        """
        先頭から m 個の弱学習器による合計を m = 1, 2, ... の順に返す
        """
        X, missing = self.prepare(X, missing_mask)
        if self.state.unrolled:
            for m in range(1, self.state.weak_count + 1):
                yield self._sums(X, missing, 0, m)
            return
        sums = np.zeros(X.shape[0])
        for learner in self.state.ensemble:
            sums = sums + learner.vote(X, missing)
            yield sums

    def labels_from_sums(self, sums: np.ndarray, raw_mode: bool = False) -> np.ndarray:
        """
        合計スコアをラベルに変換

        Two-class sums are thresholded at 0 (a sum of exactly 0 gives the
        first class); multi-class sums pick the class with the largest vote.
        ``raw_mode`` returns the internal encoding (±1 or class index).
        """
        if self.state.unrolled:
            class_idx = np.argmax(sums, axis=1)
            return class_idx if raw_mode else self.state.classes[class_idx]
        internal = np.where(sums > 0, 1, -1)
        if raw_mode:
            return internal
        return self.state.classes[(internal > 0).astype(np.int64)]

    def predict(
        self,
        X,
        slice=None,
        missing_mask=None,
        raw_mode: bool = False,
        return_sum: bool = False
    ) -> np.ndarray:
        """
        予測を実行

        Parameters:
        -----------
        X : array-like, shape=(n_samples, n_features) or (n_features,)
            入力特徴量（NaN は欠損）
        slice : None, "all", slice or (start, stop)
            使用する弱学習器の範囲
        missing_mask : array-like of bool, optional
            欠損マスク
        raw_mode : bool
            元のラベルに戻さず内部表現で返す
        return_sum : bool
            ラベルの代わりに投票の合計を返す

        Returns:
        --------
        results : array-like
            ラベルまたは合計スコア
        """
        sums = self.decision_function(X, slice=slice, missing_mask=missing_mask)
        if return_sum:
            return sums
        return self.labels_from_sums(sums, raw_mode=raw_mode)

    def predict_proba(self, X, slice=None, missing_mask=None) -> np.ndarray:
        """
        クラス確率の推定

        The ensemble sum F is mapped through the logistic link p = 1 / (1 +
        exp(-2F)) for two classes and a softmax over 2F for more classes.
        """
        sums = self.decision_function(X, slice=slice, missing_mask=missing_mask)
        if not self.state.unrolled:
            p = 1.0 / (1.0 + np.exp(-2.0 * np.clip(sums, -350, 350)))
            return np.column_stack([1.0 - p, p])
        logits = 2.0 * sums
        logits -= logits.max(axis=1, keepdims=True)
        exp = np.exp(logits)
        return exp / exp.sum(axis=1, keepdims=True)

