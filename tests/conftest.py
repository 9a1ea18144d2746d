"""共通のテスト用データセット"""

import matplotlib
matplotlib.use("Agg")

import numpy as np
import pytest

from adaboost_trees.utils.model_interface import generate_multiclass_data


@pytest.fixture
def separable_data():
    """2クラス、50点ずつ、中心 (-1, -1) と (1, 1) の分離可能なデータ"""
    rng = np.random.RandomState(0)
    X = np.vstack([
        rng.randn(50, 2) * 0.25 - 1.0,
        rng.randn(50, 2) * 0.25 + 1.0,
    ])
    y = np.concatenate([np.zeros(50, dtype=np.int64), np.ones(50, dtype=np.int64)])
    return X, y


@pytest.fixture
def unit_variance_data():
    """2クラス、50点ずつ、中心 (-1, -1) と (1, 1)、標準偏差 1 のデータ"""
    rng = np.random.RandomState(0)
    X = np.vstack([
        rng.randn(50, 2) - 1.0,
        rng.randn(50, 2) + 1.0,
    ])
    y = np.concatenate([np.zeros(50, dtype=np.int64), np.ones(50, dtype=np.int64)])
    return X, y


@pytest.fixture
def noisy_data():
    """クラスが重なる2クラスデータ（重みが偏りトリミングが起きる）"""
    rng = np.random.RandomState(1)
    X = rng.randn(200, 4)
    y = (X[:, 0] + 0.5 * X[:, 1] + 0.5 * rng.randn(200) > 0).astype(np.int64)
    return X, y


@pytest.fixture
def multiclass_data():
    X_train, y_train, _, _ = generate_multiclass_data(
        n_samples=150, n_features=2, n_classes=3, radius=3.0, noise=0.4, test_size=0.0, random_state=0
    )
    return X_train, y_train
