"""WeightingStrategyManager のテスト"""

import numpy as np
import pytest

from adaboost_trees import BoostType, DataError
from adaboost_trees.models.boost_components.weighting_strategies import (
    ERROR_EPS,
    LOGIT_Z_MAX,
    WeightingStrategyManager,
)


def test_discrete_update():
    manager = WeightingStrategyManager(BoostType.DISCRETE)
    weights = np.full(4, 0.25)
    predictions = np.array([1.0, 1.0, 1.0, -1.0])
    responses = np.ones(4)

    new_weights, alpha = manager.update(weights, predictions, responses)

    assert alpha == pytest.approx(0.5 * np.log(3.0))
    assert new_weights.sum() == pytest.approx(1.0)
    # 誤分類したサンプルの重みの合計は 1/2 になる
    assert new_weights[3] == pytest.approx(0.5)


def test_discrete_error_is_clipped():
    manager = WeightingStrategyManager(BoostType.DISCRETE)
    responses = np.array([1.0, -1.0, 1.0, -1.0])

    new_weights, alpha = manager.update(np.full(4, 0.25), responses.copy(), responses)

    assert np.isfinite(alpha)
    assert alpha == pytest.approx(0.5 * np.log((1.0 - ERROR_EPS) / ERROR_EPS))
    np.testing.assert_allclose(new_weights, 0.25)


def test_real_update():
    manager = WeightingStrategyManager(BoostType.REAL)
    weights = np.full(2, 0.5)
    predictions = np.array([0.5, 0.5])
    responses = np.array([1.0, -1.0])

    new_weights, alpha = manager.update(weights, predictions, responses)

    assert alpha == 1.0
    expected = np.array([np.exp(-0.5), np.exp(0.5)])
    np.testing.assert_allclose(new_weights, expected / expected.sum())


def test_gentle_update():
    manager = WeightingStrategyManager(BoostType.GENTLE)
    new_weights, alpha = manager.update(np.full(2, 0.5), np.array([-0.2, 0.0]), np.array([1.0, 1.0]))
    assert alpha == 1.0
    assert new_weights[0] > new_weights[1]


def test_logit_working_responses():
    manager = WeightingStrategyManager(BoostType.LOGIT)
    responses = np.array([1.0, -1.0])

    np.testing.assert_allclose(manager.working_responses(responses, np.zeros(2)), [2.0, -2.0])
    z = manager.working_responses(responses, np.array([-50.0, 50.0]))
    np.testing.assert_allclose(z, [LOGIT_Z_MAX, -LOGIT_Z_MAX])


def test_logit_update_uses_newton_step():
    manager = WeightingStrategyManager(BoostType.LOGIT)
    new_weights, alpha = manager.update(
        np.full(3, 1.0 / 3), np.zeros(3), np.array([1.0, -1.0, 1.0]), scores=np.zeros(3)
    )
    assert alpha == 0.5
    np.testing.assert_allclose(new_weights, 1.0 / 3)


def test_other_variants_fit_labels_directly():
    responses = np.array([1.0, -1.0])
    for boost_type in (BoostType.DISCRETE, BoostType.REAL, BoostType.GENTLE):
        manager = WeightingStrategyManager(boost_type)
        np.testing.assert_array_equal(manager.working_responses(responses, np.ones(2)), responses)


def test_weights_never_reach_zero():
    manager = WeightingStrategyManager(BoostType.REAL)
    new_weights, _ = manager.update(np.full(2, 0.5), np.array([800.0, -1.0]), np.array([1.0, 1.0]))
    assert np.all(new_weights > 0)


def test_weighted_error_ignores_inactive_samples():
    manager = WeightingStrategyManager(BoostType.DISCRETE)
    weights = np.array([0.25, 0.25, 0.25, 0.25])
    predictions = np.array([1.0, -1.0, 1.0, 1.0])
    responses = np.array([1.0, 1.0, 1.0, 1.0])
    active = np.array([True, False, True, True])

    assert manager.weighted_error(weights, predictions, responses) == pytest.approx(0.25)
    assert manager.weighted_error(weights, predictions, responses, active) == 0.0


def test_weighted_error_counts_zero_vote_as_negative():
    manager = WeightingStrategyManager(BoostType.GENTLE)
    error = manager.weighted_error(np.full(2, 0.5), np.zeros(2), np.array([1.0, -1.0]))
    assert error == pytest.approx(0.5)


def test_initial_weights():
    manager = WeightingStrategyManager(BoostType.REAL)
    active = np.ones(4, dtype=bool)
    class_idx = np.array([0, 0, 0, 1])

    np.testing.assert_allclose(manager.initial_weights(active, class_idx), 0.25)
    np.testing.assert_allclose(
        manager.initial_weights(active, class_idx, priors=(0.5, 0.5)),
        [1.0 / 6, 1.0 / 6, 1.0 / 6, 0.5]
    )

    with pytest.raises(DataError):
        manager.initial_weights(np.zeros(4, dtype=bool), class_idx)


def test_trim_keeps_heaviest_mass():
    manager = WeightingStrategyManager(BoostType.REAL, weight_trim_rate=0.85)
    weights = np.array([0.5, 0.3, 0.1, 0.05, 0.05])
    responses = np.array([1.0, 1.0, -1.0, -1.0, -1.0])

    active = manager.trim(weights, np.ones(5, dtype=bool), responses)

    np.testing.assert_array_equal(active, [True, True, True, False, False])


def test_trim_keeps_ties_at_the_cut():
    manager = WeightingStrategyManager(BoostType.REAL, weight_trim_rate=0.5)
    active = manager.trim(np.full(4, 0.25), np.ones(4, dtype=bool), np.array([1.0, 1.0, -1.0, -1.0]))
    assert active.all()


def test_trim_keeps_one_sample_per_class():
    manager = WeightingStrategyManager(BoostType.REAL, weight_trim_rate=0.9)
    weights = np.array([0.6, 0.35, 0.03, 0.02])
    responses = np.array([1.0, 1.0, -1.0, -1.0])

    active = manager.trim(weights, np.ones(4, dtype=bool), responses)

    np.testing.assert_array_equal(active, [True, True, True, False])


def test_trimmed_samples_stay_inactive():
    manager = WeightingStrategyManager(BoostType.REAL, weight_trim_rate=0.5)
    weights = np.array([0.1, 0.1, 0.7, 0.1])
    active = np.array([True, True, False, True])

    new_active = manager.trim(weights, active, np.array([1.0, -1.0, 1.0, -1.0]))

    assert not new_active[2]
    assert np.count_nonzero(new_active) <= np.count_nonzero(active)


@pytest.mark.parametrize("rate", [0.0, 1.0])
def test_trim_disabled(rate):
    manager = WeightingStrategyManager(BoostType.REAL, weight_trim_rate=rate)
    active = np.array([True, True, False, True])
    new_active = manager.trim(np.array([0.97, 0.01, 0.01, 0.01]), active, np.array([1.0, 1.0, -1.0, -1.0]))
    np.testing.assert_array_equal(new_active, active)
    assert new_active is not active


def test_strategy_info():
    info = WeightingStrategyManager(BoostType.GENTLE, 0.9).get_strategy_info()
    assert info["strategy"] == "gentle"
    assert info["leaf_rule"] == "mean"
    assert set(info["available_strategies"]) == {"discrete", "real", "logit", "gentle"}
