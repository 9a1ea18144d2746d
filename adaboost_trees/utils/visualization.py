"""
学習結果の可視化ユーティリティモジュール

このモジュールは、ブースティングの学習履歴・特徴量重要度・
段階的な精度の推移をプロットする関数を提供します。
"""

import os
from typing import Dict, Optional, Sequence

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns

from ..models.boost import Boost
from ..models.boost_components.boost_trainer import TrainStatus


def _finish(fig, save_path: Optional[str]) -> None:
    plt.tight_layout()
    if save_path:
        directory = os.path.dirname(save_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        fig.savefig(save_path, dpi=150, bbox_inches='tight')
    plt.close(fig)


def plot_training_history(status: TrainStatus,
                          title: str = "Boosting Training History",
                          save_path: Optional[str] = None) -> pd.DataFrame:
    """
    ラウンドごとの重み付き誤り率・投票重み・アクティブなサンプル数をプロット

    Parameters:
    -----------
    status : TrainStatus
        学習結果
    title : str
        プロットのタイトル
    save_path : str, optional
        保存先のパス

    Returns:
    --------
    history : pandas.DataFrame
        プロットに使った履歴
    """
    history = status.to_frame()

    fig, axes = plt.subplots(1, 3, figsize=(15, 4))

    # 重み付き誤り率
    axes[0].plot(history.index, history['weighted_error'], marker='o', markersize=3)
    axes[0].axhline(0.5, color='gray', linestyle='--', linewidth=1)
    axes[0].set_title('Weighted Error')
    axes[0].set_xlabel('Round')

    # 投票重み
    axes[1].plot(history.index, history['alpha'], marker='o', markersize=3, color='tab:orange')
    axes[1].set_title('Vote Weight (alpha)')
    axes[1].set_xlabel('Round')

    # トリミング後のサンプル数
    axes[2].step(history.index, history['n_active'], where='post', color='tab:green')
    axes[2].set_title('Active Samples')
    axes[2].set_xlabel('Round')

    for ax in axes:
        ax.grid(True, linestyle='--', alpha=0.7)
    fig.suptitle(title)

    _finish(fig, save_path)
    return history


def plot_feature_importance(model: Boost,
                            feature_names: Optional[Sequence[str]] = None,
                            top_n: int = 20,
                            title: str = "Feature Importance",
                            save_path: Optional[str] = None) -> pd.DataFrame:
    """
    特徴量重要度を棒グラフでプロット

    Parameters:
    -----------
    model : Boost
        学習済みモデル
    feature_names : sequence of str, optional
        特徴量名（省略時は x0, x1, ...）
    top_n : int, default=20
        表示する上位の特徴量数
    title : str
        プロットのタイトル
    save_path : str, optional
        保存先のパス

    Returns:
    --------
    importance : pandas.DataFrame
        重要度の降順に並んだ特徴量
    """
    importance = model.get_feature_importance()
    if feature_names is None:
        feature_names = [f"x{i}" for i in range(len(importance))]
    if len(feature_names) != len(importance):
        raise ValueError(f"Expected {len(importance)} feature names, got {len(feature_names)}")

    df = pd.DataFrame({'feature': list(feature_names), 'importance': importance})
    df = df.sort_values('importance', ascending=False).head(top_n).reset_index(drop=True)

    fig = plt.figure(figsize=(8, max(3, 0.4 * len(df))))
    sns.barplot(data=df, x='importance', y='feature', color='steelblue')
    plt.title(title)

    _finish(fig, save_path)
    return df


def plot_staged_accuracy(staged: Dict[str, pd.DataFrame],
                         title: str = "Accuracy by Number of Weak Learners",
                         save_path: Optional[str] = None) -> None:
    """
    弱学習器の数に対する精度の推移をプロット

    Parameters:
    -----------
    staged : dict of pandas.DataFrame
        ラベル（'train', 'test' など）ごとの staged_evaluation の結果
    title : str
        プロットのタイトル
    save_path : str, optional
        保存先のパス
    """
    frames = []
    for label, frame in staged.items():
        frame = frame.reset_index()
        frame['dataset'] = label
        frames.append(frame)
    data = pd.concat(frames, ignore_index=True)

    fig = plt.figure(figsize=(10, 6))
    sns.lineplot(data=data, x='n_weak', y='accuracy', hue='dataset')
    plt.xlabel('Number of weak learners')
    plt.ylabel('Accuracy')
    plt.ylim(min(0.5, float(np.min(data['accuracy']))), 1.01)
    plt.title(title)
    plt.grid(True, linestyle='--', alpha=0.7)

    _finish(fig, save_path)


def plot_boost_type_comparison(results: pd.DataFrame,
                               metric: str = 'accuracy',
                               title: str = "Boost Type Comparison",
                               save_path: Optional[str] = None) -> None:
    """
    compare_boost_types の結果をプロット

    Parameters:
    -----------
    results : pandas.DataFrame
        boost_type をインデックスに持つ比較結果
    metric : str, default='accuracy'
        比較する列
    """
    fig, axes = plt.subplots(1, 2, figsize=(12, 5))

    sns.barplot(x=results.index, y=results[metric], ax=axes[0], color='steelblue')
    axes[0].set_title(metric)

    sns.barplot(x=results.index, y=results['train_time'], ax=axes[1], color='tab:orange')
    axes[1].set_title('Training Time (s)')
    fig.suptitle(title)

    _finish(fig, save_path)
