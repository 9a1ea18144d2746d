"""
Boosting Trainer

This module contains the round-by-round boosting loop: fit a weak learner
against the current sample weights, compute its vote weight, re-weight and
trim the samples, and stop once the ensemble is complete, a learner is no
better than chance, or the caller cancels.
"""

import logging
import warnings
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from ...exceptions import ConfigurationError
from ..params import BoostParams
from .data_transforms import (
    count_categories,
    encode_responses,
    merge_missing_mask,
    resolve_index,
    resolve_var_types,
    select_columns,
    to_signed_labels,
    unroll_classes,
    validate_input_data,
)
from .model_state import ModelState, WeakLearner
from .tree_builder import TreeBuilder
from .weighting_strategies import WeightingStrategyManager

logger = logging.getLogger(__name__)


@dataclass
class TrainStatus:
    """Outcome of one training call.

    Parameters
    ----------
    weak_count:
        Number of weak learners in the trained ensemble.
    last_error:
        Weighted error of the last fitted weak learner.
    train_error:
        Misclassification rate of the ensemble on the training samples.
    stopped_early:
        A weak learner after the first one was no better than chance.
    cancelled:
        The cancellation event was set between two rounds.
    history:
        One record per fitted weak learner.
    """

    weak_count: int = 0
    last_error: float = float("nan")
    train_error: float = float("nan")
    stopped_early: bool = False
    cancelled: bool = False
    history: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def active_counts(self) -> List[int]:
        return [record["n_active"] for record in self.history]

    def to_frame(self) -> pd.DataFrame:
        """Per-round history as a DataFrame indexed by round."""
        columns = ["round", "weighted_error", "alpha", "n_active", "n_nodes"]
        return pd.DataFrame(self.history, columns=columns).set_index("round")


class BoostTrainer:
    """
    ブースティング学習ループ

    Attributes:
    -----------
    params : BoostParams
        学習パラメータ（学習中は変更されない）
    """

    def __init__(self, params: Optional[BoostParams] = None):
        self.params = params if params is not None else BoostParams()
        self.weighting_manager = WeightingStrategyManager(
            boost_type=self.params.boost_type,
            weight_trim_rate=self.params.weight_trim_rate
        )
        self.tree_builder = TreeBuilder(
            max_depth=self.params.max_depth,
            criterion=self.params.criterion,
            leaf_rule=self.weighting_manager.leaf_rule,
            use_surrogates=self.params.use_surrogates,
            min_sample_count=self.params.min_sample_count,
            min_gain=self.params.min_gain,
            n_jobs=self.params.n_jobs
        )

    def train(
        self,
        X: np.ndarray,
        responses: np.ndarray,
        var_idx=None,
        sample_idx=None,
        var_type=None,
        missing_mask=None,
        cancel_event=None
    ) -> Tuple[ModelState, TrainStatus]:
        """
        ブースティングでアンサンブルを学習

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
        missing_mask : array-like of bool, shape=(n_samples, n_features), optional
            欠損マスク
        cancel_event : threading.Event, optional
            ラウンド間で確認される中断フラグ

        Returns:
        --------
        state : ModelState
            新しく構築されたモデル状態
        status : TrainStatus
            学習結果の要約
        """
        X, responses = validate_input_data(X, responses)
        n_samples, n_features = X.shape
        missing = merge_missing_mask(X, missing_mask)
        categorical = resolve_var_types(var_type, n_features)
        features = select_columns(var_idx, n_features)

        if sample_idx is not None:
            rows = resolve_index(sample_idx, n_samples, "sample_idx")
            if rows.size == 0:
                raise ConfigurationError("sample_idx selects no samples")
            X, responses, missing = X[rows], responses[rows], missing[rows]

        classes, class_idx = encode_responses(responses)
        n_classes = len(classes)
        n_categories = count_categories(X, missing, categorical)

        priors = self.params.priors
        if priors is not None and len(priors) != n_classes:
            raise ConfigurationError(f"Expected {n_classes} priors (one per class), got {len(priors)}")

        unrolled = n_classes > 2
        if unrolled:
            X_fit, missing_fit, y, source_rows = unroll_classes(X, missing, class_idx, n_classes)
            source_class = class_idx[source_rows]
            categorical_fit = np.append(categorical, True)
            features_fit = None if features is None else np.append(features, n_features)
        else:
            X_fit, missing_fit, y = X, missing, to_signed_labels(class_idx)
            source_class = class_idx
            categorical_fit = categorical
            features_fit = features

        ensemble, status = self._boost(
            X_fit, missing_fit, y, source_class, categorical_fit, features_fit, cancel_event,
            class_feature=n_features if unrolled else None
        )

        scores = np.zeros(len(y))
        for learner in ensemble:
            scores += learner.vote(X_fit, missing_fit)
        if unrolled:
            predicted = np.argmax(scores.reshape(-1, n_classes), axis=1)
            status.train_error = float(np.mean(predicted != class_idx))
        else:
            status.train_error = float(np.mean(np.where(scores > 0, 1.0, -1.0) != y))

        state = ModelState(
            self.params,
            ensemble,
            classes=classes,
            n_features=n_features,
            categorical=categorical_fit,
            n_categories=np.append(n_categories, n_classes) if unrolled else n_categories,
            var_idx=features,
            unrolled=unrolled
        )
        logger.info(
            "Trained %s boosting: %d weak learners, training error %.4f%s",
            self.params.boost_type.value,
            status.weak_count,
            status.train_error,
            " (stopped early)" if status.stopped_early else "",
        )
        return state, status

    def _boost(
        self,
        X: np.ndarray,
        missing: np.ndarray,
        y: np.ndarray,
        source_class: np.ndarray,
        categorical: np.ndarray,
        features: Optional[np.ndarray],
        cancel_event,
        class_feature: Optional[int] = None
    ) -> Tuple[List[WeakLearner], TrainStatus]:
        """
        Init -> {FitWeak -> UpdateWeights -> CheckStop} -> Done
        """
        manager = self.weighting_manager
        status = TrainStatus()
        ensemble: List[WeakLearner] = []

        # Init
        active = np.ones(len(y), dtype=bool)
        weights = manager.initial_weights(active, source_class, self.params.priors)
        scores = np.zeros(len(y))

        for iteration in range(self.params.weak_count):
            if cancel_event is not None and cancel_event.is_set():
                status.cancelled = True
                logger.info("Training cancelled after %d rounds", iteration)
                break

            # FitWeak
            targets = manager.working_responses(y, scores)
            tree = self.tree_builder.fit(
                X[active],
                targets[active],
                weights[active],
                var_types=categorical,
                missing=missing[active],
                var_idx=features,
                class_feature=class_feature
            )
            if tree.root.is_leaf and self.params.max_depth > 0:
                warnings.warn(f"Round {iteration}: no split improves the weak learner, it is a single leaf", RuntimeWarning)
            predictions = tree.predict(X, missing)

            # CheckStop
            error = manager.weighted_error(weights, predictions, y, active)
            status.last_error = error
            if error >= 0.5:
                if ensemble:
                    status.stopped_early = True
                    logger.info("Round %d: weighted error %.4f >= 0.5, stopping", iteration, error)
                    break
                warnings.warn(
                    f"The first weak learner is no better than chance (weighted error {error:.4f})",
                    RuntimeWarning,
                )

            # UpdateWeights
            weights, alpha = manager.update(weights, predictions, y, active, scores)
            scores += alpha * predictions
            ensemble.append(WeakLearner(tree, alpha))
            active = manager.trim(weights, active, y)

            status.history.append({
                "round": iteration,
                "weighted_error": error,
                "alpha": alpha,
                "n_active": int(np.count_nonzero(active)),
                "n_nodes": tree.count_nodes(),
            })
            logger.debug(
                "Round %d: error=%.4f alpha=%.4f active=%d nodes=%d",
                iteration, error, alpha, np.count_nonzero(active), tree.count_nodes()
            )

        status.weak_count = len(ensemble)
        return ensemble, status
