"""
Weighting Strategies Manager

This module contains the sample re-weighting rules of the boosting variants
(Discrete, Real, Logit and Gentle AdaBoost) together with weight trimming.
"""

from typing import Any, Dict, Optional, Sequence, Tuple

import numpy as np

from ...exceptions import DataError
from ..params import BoostType, SplitCriterion
from .data_transforms import _clip_probabilities, _normalize_array

# 誤り率のクリッピング範囲
ERROR_EPS = 1e-10
# LogitBoost の作業応答の上限 [FHT98]
LOGIT_Z_MAX = 4.0
# ゼロ重みを避けるための下限
WEIGHT_FLOOR = np.finfo(np.float64).tiny


class WeightingStrategyManager:
    """
    ブースティングの重み更新戦略を管理するクラス

    Attributes:
    -----------
    strategy : BoostType
        使用するブースティングの種類
    weight_trim_rate : float
        重みトリミングの閾値（0 または 1 で無効）
    """

    def __init__(self, boost_type: BoostType = BoostType.REAL, weight_trim_rate: float = 0.95):
        self.strategy = BoostType(boost_type)
        self.weight_trim_rate = weight_trim_rate

        # 利用可能な戦略
        self.available_strategies = {
            BoostType.DISCRETE: self._update_discrete,
            BoostType.REAL: self._update_real,
            BoostType.LOGIT: self._update_logit,
            BoostType.GENTLE: self._update_gentle,
        }

    @property
    def leaf_rule(self) -> str:
        """弱学習器のリーフ値の計算方法"""
        return {
            BoostType.DISCRETE: "majority",
            BoostType.REAL: "log_ratio",
            BoostType.LOGIT: "mean",
            BoostType.GENTLE: "mean",
        }[self.strategy]

    @property
    def fits_real_responses(self) -> bool:
        return self.strategy in (BoostType.LOGIT, BoostType.GENTLE)

    def default_criterion(self) -> SplitCriterion:
        return SplitCriterion.SQERR if self.fits_real_responses else SplitCriterion.GINI

    def initial_weights(
        self,
        active: np.ndarray,
        class_idx: np.ndarray,
        priors: Optional[Sequence[float]] = None
    ) -> np.ndarray:
        """
        初期重みを計算

        Weights are uniform over the active samples. With priors, each class
        receives a total mass proportional to its prior instead.

        Parameters:
        -----------
        active : array-like of bool, shape=(n_samples,)
            学習に参加するサンプル
        class_idx : array-like of int, shape=(n_samples,)
            各サンプルの（元の）クラスインデックス
        priors : sequence of float, optional
            クラスインデックス順の事前確率
        """
        if not np.any(active):
            raise DataError("No active samples to train on")
        weights = active.astype(np.float64)
        if priors is not None:
            priors = np.asarray(priors, dtype=np.float64)
            counts = np.bincount(class_idx[active], minlength=len(priors)).astype(np.float64)
            with np.errstate(divide="ignore", invalid="ignore"):
                per_sample = np.where(counts > 0, priors / counts, 0.0)
            weights = weights * per_sample[class_idx]
        return _normalize_array(weights)

    def working_responses(self, responses: np.ndarray, scores: np.ndarray) -> np.ndarray:
        """
        弱学習器が当てはめる応答を計算

        LogitBoost fits the Newton working response
        z = (y* - p) / (p (1 - p)) with p = 1 / (1 + exp(-2F)); the other
        variants fit the ±1 labels directly.
        """
        if self.strategy is not BoostType.LOGIT:
            return responses
        p = self._probability(scores)
        y_star = (responses + 1.0) / 2.0
        z = (y_star - p) / (p * (1.0 - p))
        return np.clip(z, -LOGIT_Z_MAX, LOGIT_Z_MAX)

    def update(
        self,
        weights: np.ndarray,
        predictions: np.ndarray,
        responses: np.ndarray,
        active: Optional[np.ndarray] = None,
        scores: Optional[np.ndarray] = None
    ) -> Tuple[np.ndarray, float]:
        """
        新しい弱学習器の出力から重みと投票重みを更新

        Parameters:
        -----------
        weights : array-like, shape=(n_samples,)
            現在の重み
        predictions : array-like, shape=(n_samples,)
            新しい弱学習器のリーフ値
        responses : array-like of {-1, +1}, shape=(n_samples,)
            真のラベル
        active : array-like of bool, optional
            トリミングされていないサンプル
        scores : array-like, shape=(n_samples,), optional
            この学習器を加える前のアンサンブルの合計スコア（LogitBoost で使用）

        Returns:
        --------
        new_weights : array-like, shape=(n_samples,)
            正規化された新しい重み
        alpha : float
            弱学習器の投票重み
        """
        if active is None:
            active = np.ones(len(weights), dtype=bool)
        new_weights, alpha = self.available_strategies[self.strategy](
            weights, predictions, responses, active, scores
        )
        new_weights = np.maximum(new_weights, WEIGHT_FLOOR)
        return _normalize_array(new_weights), alpha

    def weighted_error(
        self,
        weights: np.ndarray,
        predictions: np.ndarray,
        responses: np.ndarray,
        active: Optional[np.ndarray] = None
    ) -> float:
        """
        弱学習器の重み付き誤分類率（符号で判定、0 は -1 扱い）
        """
        if active is None:
            active = np.ones(len(weights), dtype=bool)
        w = weights[active]
        total = w.sum()
        if total <= 0:
            raise DataError("All active sample weights are zero")
        votes = np.where(predictions[active] > 0, 1.0, -1.0)
        return float(w[votes != responses[active]].sum() / total)

    def _update_discrete(self, weights, predictions, responses, active, scores):
        """Discrete AdaBoost: alpha = 0.5 * ln((1 - err) / err)"""
        err = self.weighted_error(weights, predictions, responses, active)
        err = min(max(err, ERROR_EPS), 1.0 - ERROR_EPS)
        alpha = 0.5 * np.log((1.0 - err) / err)
        wrong = np.where(predictions > 0, 1.0, -1.0) != responses
        return weights * np.exp(alpha * np.where(wrong, 1.0, -1.0)), float(alpha)

    def _update_real(self, weights, predictions, responses, active, scores):
        """Real AdaBoost: the leaves already hold half log-odds"""
        return weights * np.exp(-responses * predictions), 1.0

    def _update_gentle(self, weights, predictions, responses, active, scores):
        """Gentle AdaBoost: w *= exp(-y f(x))"""
        return weights * np.exp(-responses * predictions), 1.0

    def _update_logit(self, weights, predictions, responses, active, scores):
        """LogitBoost: half Newton step, weights p (1 - p)"""
        alpha = 0.5
        if scores is None:
            scores = np.zeros(len(weights))
        p = self._probability(scores + alpha * predictions)
        return p * (1.0 - p), alpha

    @staticmethod
    def _probability(scores: np.ndarray) -> np.ndarray:
        return _clip_probabilities(1.0 / (1.0 + np.exp(-2.0 * np.clip(scores, -350, 350))))

    def trim(self, weights: np.ndarray, active: np.ndarray, responses: np.ndarray) -> np.ndarray:
        """
        重みの小さいサンプルを除外

        Active samples are sorted by weight; the smallest set reaching
        ``weight_trim_rate`` of the active mass is kept, together with every
        sample whose weight ties the cut. At least one sample of each class
        stays active. Inactive samples never come back.

        Returns:
        --------
        new_active : array-like of bool
        """
        if self.weight_trim_rate <= 0.0 or self.weight_trim_rate >= 1.0:
            return active.copy()

        rows = np.nonzero(active)[0]
        if rows.size == 0:
            return active.copy()
        w = weights[rows]
        sorted_w = np.sort(w)[::-1]
        cum = np.cumsum(sorted_w)
        cut = min(int(np.searchsorted(cum, self.weight_trim_rate * cum[-1])), rows.size - 1)
        threshold = sorted_w[cut]

        new_active = np.zeros_like(active)
        new_active[rows[w >= threshold]] = True

        for label in np.unique(responses[rows]):
            class_rows = rows[responses[rows] == label]
            if not np.any(new_active[class_rows]):
                new_active[class_rows[np.argmax(weights[class_rows])]] = True

        return new_active

    def get_strategy_info(self) -> Dict[str, Any]:
        """
        現在の戦略情報を取得

        Returns:
        --------
        info : dict
            戦略情報
        """
        return {
            "strategy": self.strategy.value,
            "weight_trim_rate": self.weight_trim_rate,
            "leaf_rule": self.leaf_rule,
            "available_strategies": [s.value for s in self.available_strategies],
        }
