"""TreeBuilder と DecisionTree のテスト"""

import numpy as np
import pytest

from adaboost_trees import ConfigurationError, DataError
from adaboost_trees.models.boost_components.tree_builder import TreeBuilder
from adaboost_trees.models.boost_components.tree_node import DecisionTree


def _unit_weights(n):
    return np.ones(n)


def test_stump_threshold_is_midpoint():
    X = np.array([[0.0], [1.0], [2.0], [3.0]])
    y = np.array([-1.0, -1.0, 1.0, 1.0])

    tree = TreeBuilder(max_depth=1).fit(X, y, _unit_weights(4))

    assert tree.count_nodes() == 3
    assert tree.get_depth() == 1
    assert tree.root.split.feature_idx == 0
    assert tree.root.split.threshold == pytest.approx(1.5)
    assert tree.root.default_left
    np.testing.assert_array_equal(tree.predict(X), y)


def test_categorical_subset_split():
    X = np.array([[0], [1], [2], [3], [0], [1], [2], [3]], dtype=float)
    y = np.array([-1, 1, -1, 1, -1, 1, -1, 1], dtype=float)

    tree = TreeBuilder(max_depth=1).fit(X, y, _unit_weights(8), var_types="categorical")

    split = tree.root.split
    assert split.is_categorical
    assert set(split.categories) == {0, 2}
    np.testing.assert_array_equal(tree.predict(X), y)


def test_ordered_feature_cannot_isolate_alternating_categories():
    X = np.array([[0], [1], [2], [3]], dtype=float)
    y = np.array([-1, 1, -1, 1], dtype=float)

    ordered = TreeBuilder(max_depth=1).fit(X, y, _unit_weights(4))
    categorical = TreeBuilder(max_depth=1).fit(X, y, _unit_weights(4), var_types=["categorical"])

    assert np.mean(ordered.predict(X) == y) < 1.0
    assert np.mean(categorical.predict(X) == y) == 1.0


def test_boolean_var_type_mask_is_accepted():
    X = np.array([[0, 5.0], [1, 4.0], [2, 7.0], [3, 6.0]])
    y = np.array([-1, 1, -1, 1], dtype=float)

    from_mask = TreeBuilder(max_depth=1).fit(X, y, _unit_weights(4), var_types=np.array([True, False]))
    from_names = TreeBuilder(max_depth=1).fit(X, y, _unit_weights(4), var_types=["categorical", "ordered"])

    assert from_mask.root.split.is_categorical
    assert from_mask.root.split.categories == from_names.root.split.categories
    np.testing.assert_array_equal(from_mask.predict(X), y)


def test_boolean_var_type_mask_must_match_features():
    X = np.zeros((4, 2))
    y = np.array([-1, 1, -1, 1], dtype=float)
    with pytest.raises(ConfigurationError):
        TreeBuilder(max_depth=1).fit(X, y, _unit_weights(4), var_types=np.array([True]))


def _correlated_features():
    col0 = np.arange(10, dtype=float)
    X = np.column_stack([col0, 2.0 * col0 + 1.0])
    y = np.where(col0 < 5, -1.0, 1.0)
    return X, y


def test_surrogate_routes_missing_primary_feature():
    X, y = _correlated_features()
    tree = TreeBuilder(max_depth=1, use_surrogates=True).fit(X, y, _unit_weights(10))

    root = tree.root
    assert root.split.feature_idx == 0
    assert [s.feature_idx for s in root.surrogates] == [1]
    assert root.surrogates[0].agreement == pytest.approx(1.0)

    X_test = np.array([[np.nan, 19.0], [np.nan, 1.0]])
    np.testing.assert_array_equal(tree.predict(X_test, np.isnan(X_test)), [1.0, -1.0])


def test_without_surrogates_missing_follows_default_direction():
    X, y = _correlated_features()
    tree = TreeBuilder(max_depth=1, use_surrogates=False).fit(X, y, _unit_weights(10))

    assert tree.root.surrogates == []
    # 左右の重みが等しいので左
    assert tree.root.default_left

    X_test = np.array([[np.nan, 19.0], [np.nan, 1.0]])
    np.testing.assert_array_equal(tree.predict(X_test, np.isnan(X_test)), [-1.0, -1.0])


def test_default_direction_is_heavier_child():
    X = np.array([[0.0], [1.0], [2.0], [3.0]])
    y = np.array([-1.0, 1.0, 1.0, 1.0])
    weights = np.array([0.1, 0.3, 0.3, 0.3])

    tree = TreeBuilder(max_depth=1, use_surrogates=False).fit(X, y, weights)

    assert tree.root.split.threshold == pytest.approx(0.5)
    assert not tree.root.default_left
    assert tree.predict(np.array([[np.nan]]), np.array([[True]]))[0] == 1.0


def test_missing_values_are_excluded_from_split_search():
    X = np.array([[0.0], [1.0], [np.nan], [2.0], [3.0]])
    y = np.array([-1.0, -1.0, 1.0, 1.0, 1.0])

    tree = TreeBuilder(max_depth=1, use_surrogates=False).fit(X, y, _unit_weights(5))

    assert tree.root.split.threshold == pytest.approx(1.5)
    assert tree.root.n_samples == 5


def test_priors_rescale_class_mass():
    X = np.arange(10, dtype=float).reshape(-1, 1)
    y = np.array([-1.0] * 8 + [1.0] * 2)
    builder = TreeBuilder(max_depth=0)

    assert builder.fit(X, y, _unit_weights(10)).root.value == -1.0
    assert builder.fit(X, y, _unit_weights(10), priors=[0.1, 0.9]).root.value == 1.0


def test_majority_tie_goes_to_larger_label():
    X = np.zeros((2, 1))
    y = np.array([-1.0, 1.0])
    tree = TreeBuilder(max_depth=1).fit(X, y, _unit_weights(2))
    assert tree.root.is_leaf
    assert tree.root.value == 1.0


def test_log_ratio_leaf_values():
    X = np.array([[0.0], [0.0], [0.0], [0.0]])
    y = np.array([-1.0, 1.0, 1.0, 1.0])
    tree = TreeBuilder(max_depth=1, leaf_rule="log_ratio").fit(X, y, _unit_weights(4))
    assert tree.root.value == pytest.approx(0.5 * np.log(3.0))


def test_squared_error_mean_leaves():
    X = np.array([[0.0], [1.0], [2.0], [3.0]])
    y = np.array([0.0, 0.0, 2.0, 2.0])
    builder = TreeBuilder(max_depth=1, criterion="sqerr", leaf_rule="mean")

    tree = builder.fit(X, y, _unit_weights(4))

    np.testing.assert_allclose(tree.predict(X), y)


def test_max_depth_bounds_tree(noisy_data):
    X, labels = noisy_data
    y = np.where(labels == 1, 1.0, -1.0)
    tree = TreeBuilder(max_depth=3).fit(X, y, _unit_weights(len(y)))

    assert 1 <= tree.get_depth() <= 3
    assert tree.count_nodes() <= 15


def test_var_idx_restricts_features(noisy_data):
    X, labels = noisy_data
    y = np.where(labels == 1, 1.0, -1.0)
    tree = TreeBuilder(max_depth=2).fit(X, y, _unit_weights(len(y)), var_idx=[2, 3])
    assert set(tree.used_features()) <= {2, 3}


def test_thread_pool_gives_identical_tree(noisy_data):
    X, labels = noisy_data
    y = np.where(labels == 1, 1.0, -1.0)
    weights = np.random.RandomState(3).rand(len(y))

    serial = TreeBuilder(max_depth=3, n_jobs=1).fit(X, y, weights)
    parallel = TreeBuilder(max_depth=3, n_jobs=4).fit(X, y, weights)

    assert serial.to_dict() == parallel.to_dict()


def test_class_feature_gives_each_class_a_subtree():
    # 展開済み: 2サンプル x 2クラス、最後の列がクラス番号
    X = np.array([
        [0.0, 0.0], [0.0, 1.0],
        [1.0, 0.0], [1.0, 1.0],
    ])
    y = np.array([1.0, -1.0, -1.0, 1.0])

    tree = TreeBuilder(max_depth=1).fit(X, y, _unit_weights(4), var_types=["ordered", "categorical"], class_feature=1)

    assert tree.root.split.feature_idx == 1
    assert tree.root.split.categories == (0,)
    np.testing.assert_array_equal(tree.predict(X), y)


def test_tree_dict_round_trip(noisy_data):
    X, labels = noisy_data
    y = np.where(labels == 1, 1.0, -1.0)
    tree = TreeBuilder(max_depth=2).fit(X, y, _unit_weights(len(y)))

    restored = DecisionTree.from_dict(tree.to_dict())
    restored.check_structure(X.shape[1])

    np.testing.assert_array_equal(restored.predict(X), tree.predict(X))


def test_feature_importance_counts_surrogates():
    X, y = _correlated_features()
    tree = TreeBuilder(max_depth=1).fit(X, y, _unit_weights(10))

    importance = tree.feature_importance(2)
    assert importance[0] > 0
    assert importance[1] == pytest.approx(importance[0])


@pytest.mark.parametrize("X, y, w", [
    (np.zeros((0, 2)), np.zeros(0), np.zeros(0)),
    (np.zeros((3, 1)), np.array([-1.0, 1.0, 1.0]), np.zeros(3)),
    (np.zeros((3, 1)), np.array([-1.0, 1.0, 1.0]), np.array([0.5, -0.1, 0.6])),
])
def test_invalid_samples_raise_data_error(X, y, w):
    with pytest.raises(DataError):
        TreeBuilder().fit(X, y, w)


def test_shape_mismatch_raises_configuration_error():
    with pytest.raises(ConfigurationError):
        TreeBuilder().fit(np.zeros((3, 1)), np.array([-1.0, 1.0]), _unit_weights(3))


@pytest.mark.parametrize("kwargs", [
    {"criterion": "sqerr", "leaf_rule": "majority"},
    {"criterion": "gini", "leaf_rule": "mean"},
    {"criterion": "default"},
    {"leaf_rule": "median"},
])
def test_incompatible_builder_options(kwargs):
    with pytest.raises((ConfigurationError, ValueError)):
        TreeBuilder(**kwargs)
