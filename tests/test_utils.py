"""ユーティリティ（データ生成・評価・可視化）のテスト"""

import logging

import numpy as np
import pandas as pd

from adaboost_trees import Boost
from adaboost_trees.utils.model_interface import (
    compare_boost_types,
    generate_multiclass_data,
    generate_two_class_data,
    staged_evaluation,
)
from adaboost_trees.utils.visualization import (
    plot_boost_type_comparison,
    plot_feature_importance,
    plot_staged_accuracy,
    plot_training_history,
)


def test_generate_two_class_data():
    X_train, y_train, X_test, y_test = generate_two_class_data(n_samples=100, n_features=3, random_state=0)
    assert X_train.shape == (80, 3)
    assert X_test.shape == (20, 3)
    assert set(np.unique(np.concatenate([y_train, y_test]))) == {0, 1}
    assert np.sum(np.concatenate([y_train, y_test]) == 1) == 50


def test_generate_multiclass_data():
    X_train, y_train, X_test, y_test = generate_multiclass_data(n_samples=90, n_classes=3, random_state=0)
    assert X_train.shape[1] == 2
    assert len(y_train) + len(y_test) == 90
    assert set(np.unique(y_train)) == {0, 1, 2}


def test_data_generation_is_reproducible():
    a = generate_two_class_data(random_state=3)
    b = generate_two_class_data(random_state=3)
    for left, right in zip(a, b):
        np.testing.assert_array_equal(left, right)


def test_train_status_frame(noisy_data):
    X, y = noisy_data
    status = Boost(weak_count=6).train(X, y)

    frame = status.to_frame()
    assert isinstance(frame, pd.DataFrame)
    assert list(frame.columns) == ["weighted_error", "alpha", "n_active", "n_nodes"]
    assert len(frame) == status.weak_count
    assert frame["n_active"].is_monotonic_decreasing


def test_staged_evaluation(separable_data):
    X, y = separable_data
    model = Boost(boost_type="discrete", weak_count=5)
    model.train(X, y)

    history = staged_evaluation(model, X, y)

    assert list(history.index) == [1, 2, 3, 4, 5]
    assert history["accuracy"].iloc[-1] == model.evaluate(X, y)["accuracy"]
    assert np.allclose(history["error"], (1.0 - history["accuracy"]) * 100.0)


def test_compare_boost_types():
    results = compare_boost_types(n_samples=120, n_features=3, weak_count=5)
    assert list(results.index) == ["discrete", "real", "logit", "gentle"]
    assert (results["accuracy"] > 0.8).all()
    assert {"train_time", "weak_count", "balanced_accuracy"} <= set(results.columns)


def test_training_logs_summary(separable_data, caplog):
    X, y = separable_data
    with caplog.at_level(logging.INFO, logger="adaboost_trees"):
        Boost(weak_count=3).train(X, y)
    assert any("weak learners" in record.getMessage() for record in caplog.records)


def test_plots_are_saved(noisy_data, tmp_path):
    X, y = noisy_data
    model = Boost(weak_count=8)
    status = model.train(X, y)

    history = plot_training_history(status, save_path=str(tmp_path / "history.png"))
    importance = plot_feature_importance(model, feature_names=["a", "b", "c", "d"],
                                         save_path=str(tmp_path / "figures" / "importance.png"))
    plot_staged_accuracy({"train": staged_evaluation(model, X, y)}, save_path=str(tmp_path / "staged.png"))
    plot_boost_type_comparison(compare_boost_types(n_samples=80, weak_count=3),
                               save_path=str(tmp_path / "compare.png"))

    assert len(history) == status.weak_count
    assert importance["feature"].iloc[0] == "a"
    for name in ["history.png", "figures/importance.png", "staged.png", "compare.png"]:
        assert (tmp_path / name).exists()
