"""
モデル評価用ユーティリティモジュール

このモジュールは、ブースティング分類器の動作確認のための
合成データ生成と、段階的な評価・ブースティング種類の比較を提供します。
"""

import time
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from ..models.boost import Boost


def generate_two_class_data(n_samples: int = 200, n_features: int = 2, separation: float = 1.0,
                            noise: float = 0.5, test_size: float = 0.2,
                            random_state: Optional[int] = None) -> Tuple:
    """
    2つのガウス分布からなる2クラス分類データを生成

    Class ``0`` is centred at ``(-separation, ..., -separation)`` and class
    ``1`` at ``(+separation, ..., +separation)``.

    Parameters:
    -----------
    n_samples : int, default=200
        サンプル数（2クラスで半分ずつ）
    n_features : int, default=2
        特徴量の数
    separation : float, default=1.0
        クラス中心の座標の絶対値
    noise : float, default=0.5
        各クラスの標準偏差
    test_size : float, default=0.2
        テストデータの割合
    random_state : int, optional
        乱数シード

    Returns:
    --------
    X_train, y_train, X_test, y_test : array-like
        シャッフル済みの訓練・テストデータ
    """
    rng = np.random.RandomState(random_state)
    n_neg = n_samples // 2
    n_pos = n_samples - n_neg

    X = np.vstack([
        rng.randn(n_neg, n_features) * noise - separation,
        rng.randn(n_pos, n_features) * noise + separation,
    ])
    y = np.concatenate([np.zeros(n_neg, dtype=np.int64), np.ones(n_pos, dtype=np.int64)])

    # シャッフルして分割
    order = rng.permutation(n_samples)
    X, y = X[order], y[order]
    n_test = int(n_samples * test_size)
    n_train = n_samples - n_test
    return X[:n_train], y[:n_train], X[n_train:], y[n_train:]


def generate_multiclass_data(n_samples: int = 300, n_features: int = 2, n_classes: int = 3,
                             radius: float = 3.0, noise: float = 0.5, test_size: float = 0.2,
                             random_state: Optional[int] = None) -> Tuple:
    """
    円周上に中心を置いた多クラス分類データを生成

    Parameters:
    -----------
    n_samples : int, default=300
        サンプル数
    n_features : int, default=2
        特徴量の数（3番目以降はノイズ）
    n_classes : int, default=3
        クラス数
    radius : float, default=3.0
        クラス中心を置く円の半径
    noise : float, default=0.5
        各クラスの標準偏差
    test_size : float, default=0.2
        テストデータの割合
    random_state : int, optional
        乱数シード

    Returns:
    --------
    X_train, y_train, X_test, y_test : array-like
    """
    if n_features < 2:
        raise ValueError("n_features must be at least 2")
    rng = np.random.RandomState(random_state)

    y = np.arange(n_samples) % n_classes
    angles = 2.0 * np.pi * y / n_classes
    X = rng.randn(n_samples, n_features) * noise
    X[:, 0] += radius * np.cos(angles)
    X[:, 1] += radius * np.sin(angles)

    order = rng.permutation(n_samples)
    X, y = X[order], y[order]
    n_test = int(n_samples * test_size)
    n_train = n_samples - n_test
    return X[:n_train], y[:n_train], X[n_train:], y[n_train:]


def staged_evaluation(model: Boost, X: np.ndarray, y: np.ndarray, missing_mask=None) -> pd.DataFrame:
    """
    弱学習器を1つずつ加えたときの精度の推移を計算

    Parameters:
    -----------
    model : Boost
        学習済みモデル
    X : array-like, shape=(n_samples, n_features)
        入力特徴量
    y : array-like, shape=(n_samples,)
        真のクラスラベル

    Returns:
    --------
    history : pandas.DataFrame
        n_weak ごとの accuracy と error（パーセント）
    """
    y = np.asarray(y).ravel()
    predictor_state = model.state
    rows = []
    for m, sums in enumerate(model.staged_scores(X, missing_mask=missing_mask), start=1):
        if predictor_state.unrolled:
            y_pred = predictor_state.classes[np.argmax(sums, axis=1)]
        else:
            y_pred = predictor_state.classes[(sums > 0).astype(np.int64)]
        accuracy = float(np.mean(y_pred == y))
        rows.append({"n_weak": m, "accuracy": accuracy, "error": (1.0 - accuracy) * 100.0})
    return pd.DataFrame(rows, columns=["n_weak", "accuracy", "error"]).set_index("n_weak")


def evaluate_boost_type(boost_type: str, X_train: np.ndarray, y_train: np.ndarray,
                        X_test: np.ndarray, y_test: np.ndarray, **params) -> Dict:
    """
    1つのブースティング種類を学習・評価

    Returns:
    --------
    results : dict
        学習・予測時間、弱学習器の数、テスト精度
    """
    model = Boost(boost_type=boost_type, **params)

    # 学習時間を計測
    start_time = time.time()
    status = model.train(X_train, y_train)
    train_time = time.time() - start_time

    # 予測時間を計測
    start_time = time.time()
    eval_results = model.evaluate(X_test, y_test, metrics=['accuracy', 'balanced_accuracy'])
    predict_time = time.time() - start_time

    return {
        'boost_type': boost_type,
        'train_time': train_time,
        'predict_time': predict_time,
        'weak_count': status.weak_count,
        'train_error': status.train_error,
        'stopped_early': status.stopped_early,
        'evaluation': eval_results
    }


def compare_boost_types(boost_types: Sequence[str] = ('discrete', 'real', 'logit', 'gentle'),
                        n_samples: int = 400, n_features: int = 4, random_state: int = 42,
                        **params) -> pd.DataFrame:
    """
    ブースティングの種類を同じデータで比較

    Parameters:
    -----------
    boost_types : sequence of str
        比較するブースティングの種類
    n_samples : int, default=400
        サンプル数
    n_features : int, default=4
        特徴量の数
    random_state : int, default=42
        乱数シード
    **params : dict
        すべてのモデルに共通のパラメータ（weak_count など）

    Returns:
    --------
    results : pandas.DataFrame
        boost_type ごとの比較結果
    """
    X_train, y_train, X_test, y_test = generate_two_class_data(
        n_samples=n_samples, n_features=n_features, random_state=random_state
    )

    records: List[Dict] = []
    for boost_type in boost_types:
        result = evaluate_boost_type(boost_type, X_train, y_train, X_test, y_test, **params)
        evaluation = result.pop('evaluation')
        result.update(evaluation)
        records.append(result)

    return pd.DataFrame(records).set_index('boost_type')


if __name__ == "__main__":
    # ブースティングの種類を比較
    print(compare_boost_types(weak_count=50))
