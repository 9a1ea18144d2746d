"""
ブースティング分類器の基底クラスモジュール

このモジュールは、ブースティング木分類器の抽象基底クラスを提供します。
学習・予測のインターフェースと、評価・パラメータ取得の共通処理を定義します。
"""

from abc import ABC, abstractmethod
import numpy as np
from typing import Dict, List, Any

from ..exceptions import ConfigurationError
from .params import BoostParams


class BoostBase(ABC):
    """
    ブースティング木分類器の抽象基底クラス

    Attributes:
    -----------
    params : BoostParams
        現在のモデルパラメータ（読み取り専用）
    """

    def __init__(self, params: BoostParams = None, **kwargs):
        """
        初期化メソッド

        Parameters:
        -----------
        params : BoostParams, optional
            モデルパラメータ。省略時は既定値
        **kwargs : dict
            BoostParams のフィールドを個別に上書き
        """
        params = params if params is not None else BoostParams()
        self._params = params.replace(**kwargs) if kwargs else params

    @property
    def params(self) -> BoostParams:
        return self._params

    @abstractmethod
    def fit(self, X: np.ndarray, y: np.ndarray, **kwargs) -> 'BoostBase':
        """
        データでモデルを学習

        Parameters:
        -----------
        X : array-like, shape=(n_samples, n_features)
            入力特徴量
        y : array-like, shape=(n_samples,)
            クラスラベル
        **kwargs : dict
            追加のパラメータ

        Returns:
        --------
        self : BoostBase
            学習済みモデル
        """
        pass

    @abstractmethod
    def predict(self, X: np.ndarray, **kwargs) -> np.ndarray:
        """
        学習済みモデルで予測

        Parameters:
        -----------
        X : array-like, shape=(n_samples, n_features)
            入力特徴量

        Returns:
        --------
        y_pred : array-like, shape=(n_samples,)
            予測ラベル
        """
        pass

    def evaluate(self, X: np.ndarray, y: np.ndarray, metrics: List[str] = ['accuracy'], **kwargs) -> Dict[str, float]:
        """
        モデルの評価

        Parameters:
        -----------
        X : array-like, shape=(n_samples, n_features)
            入力特徴量
        y : array-like, shape=(n_samples,)
            真のクラスラベル
        metrics : list of str, default=['accuracy']
            使用する評価指標のリスト（accuracy / error / balanced_accuracy）
        **kwargs : dict
            predict に渡す追加のパラメータ

        Returns:
        --------
        results : dict
            各評価指標の値
        """
        y = np.asarray(y).ravel()
        y_pred = self.predict(X, **kwargs)
        if y_pred.shape[0] != y.shape[0]:
            raise ConfigurationError(f"X ({y_pred.shape[0]} samples) and y ({y.shape[0]} samples) differ in length")

        # 結果格納用辞書
        results = {}

        for metric in metrics:
            if metric.lower() == 'accuracy':
                results['accuracy'] = float(np.mean(y_pred == y))

            elif metric.lower() == 'error':
                results['error'] = float(np.mean(y_pred != y))

            elif metric.lower() == 'balanced_accuracy':
                # クラスごとの再現率の平均
                recalls = [np.mean(y_pred[y == label] == label) for label in np.unique(y)]
                results['balanced_accuracy'] = float(np.mean(recalls))

            else:
                raise ConfigurationError(f"Unknown metric: {metric}")

        return results

    def get_params(self) -> Dict[str, Any]:
        """
        モデルパラメータの取得

        Returns:
        --------
        params : dict
            モデルパラメータ
        """
        return self._params.to_dict()

    def set_params(self, **params) -> 'BoostBase':
        """
        次回の学習に使うモデルパラメータの設定

        Parameters:
        -----------
        **params : dict
            設定するパラメータ

        Returns:
        --------
        self : BoostBase
            パラメータを更新したモデル
        """
        self._params = self._params.replace(**params)
        return self
