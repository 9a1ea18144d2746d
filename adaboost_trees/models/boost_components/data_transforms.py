"""
Data Transform Utilities

This module contains utility functions for input validation, missing-value
masks, variable types, response encoding and the multi-class unrolling used
by the boosting trainer and the ensemble predictor.
"""

from typing import Optional, Sequence, Tuple

import numpy as np
from sklearn.preprocessing import LabelEncoder

from ...exceptions import ConfigurationError, DataError, RangeError
from ..params import VarType


def validate_input_data(X, responses=None) -> tuple:
    """
    入力データの検証と前処理

    NaN entries are allowed in ``X``; they mark missing measurements.

    Parameters:
    -----------
    X : array-like, shape=(n_samples, n_features)
        特徴量行列
    responses : array-like, shape=(n_samples,), optional
        応答ベクトル

    Returns:
    --------
    X_validated : array-like, shape=(n_samples, n_features)
        検証済み特徴量行列
    responses_validated : array-like, shape=(n_samples,) or None
        検証済み応答ベクトル
    """
    try:
        X = np.array(X, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise DataError(f"X must be numeric: {exc}") from exc
    if X.ndim == 1:
        X = X.reshape(1, -1) if responses is None else X.reshape(-1, 1)
    if X.ndim != 2:
        raise ConfigurationError(f"X must be 2D array, got {X.ndim}D")
    if X.shape[0] == 0:
        raise DataError("X holds no samples")
    if np.any(np.isinf(X)):
        raise DataError("X contains inf values")

    if responses is not None:
        responses = np.asarray(responses)
        if responses.ndim == 2 and 1 in responses.shape:
            responses = responses.ravel()
        if responses.ndim != 1:
            raise ConfigurationError(f"responses must be 1D, got shape {responses.shape}")
        if X.shape[0] != responses.shape[0]:
            raise ConfigurationError(
                f"X and responses must have same number of samples, got {X.shape[0]} and {responses.shape[0]}"
            )

    return X, responses


def merge_missing_mask(X: np.ndarray, missing_mask=None) -> np.ndarray:
    """Combine an explicit missing mask with the NaN entries of ``X``."""
    missing = np.isnan(X)
    if missing_mask is None:
        return missing
    missing_mask = np.asarray(missing_mask)
    if missing_mask.ndim == 1 and X.shape[0] == 1:
        missing_mask = missing_mask.reshape(1, -1)
    if missing_mask.shape != X.shape:
        raise ConfigurationError(f"missing_mask shape {missing_mask.shape} does not match X shape {X.shape}")
    return missing | missing_mask.astype(bool)


def resolve_var_types(var_types, n_features: int) -> np.ndarray:
    """
    変数型の指定を真偽値配列（True = カテゴリ変数）に変換

    Parameters:
    -----------
    var_types : None, str, VarType or sequence
        None はすべて順序変数、単一の値は全特徴量に適用
        真偽値配列（解決済みのマスク）はそのまま返す
    n_features : int
        特徴量の数
    """
    if var_types is None:
        return np.zeros(n_features, dtype=bool)
    if isinstance(var_types, np.ndarray) and var_types.dtype == bool:
        if var_types.shape != (n_features,):
            raise ConfigurationError(f"var_type mask has shape {var_types.shape} for {n_features} features")
        return var_types.copy()
    if isinstance(var_types, (str, VarType)):
        var_types = [var_types] * n_features
    var_types = list(var_types)
    if len(var_types) != n_features:
        raise ConfigurationError(f"var_type has {len(var_types)} entries for {n_features} features")

    resolved = np.zeros(n_features, dtype=bool)
    for i, var_type in enumerate(var_types):
        try:
            resolved[i] = VarType(str(getattr(var_type, "value", var_type)).lower()) is VarType.CATEGORICAL
        except ValueError:
            raise ConfigurationError(f"Invalid var_type for feature {i}: {var_type!r}") from None
    return resolved


def resolve_index(index, size: int, name: str) -> np.ndarray:
    """
    インデックス指定（整数配列または真偽値マスク）を昇順の整数配列に変換
    """
    index = np.asarray(index)
    if index.dtype == bool:
        if index.shape != (size,):
            raise ConfigurationError(f"{name} mask must have length {size}, got {index.shape}")
        return np.nonzero(index)[0]
    if index.ndim != 1 or (index.size and not np.issubdtype(index.dtype, np.integer)):
        raise ConfigurationError(f"{name} must be a 1D array of integer indices or a boolean mask")
    index = np.unique(index.astype(np.int64))
    if index.size and (index[0] < 0 or index[-1] >= size):
        raise RangeError(f"{name} contains indices outside [0, {size})")
    return index


def _check_category_codes(values: np.ndarray, feature_idx: int) -> None:
    if np.any(values < 0) or np.any(values != np.floor(values)):
        raise DataError(f"Categorical feature {feature_idx} must hold non-negative integer indices")


def count_categories(X: np.ndarray, missing: np.ndarray, categorical: np.ndarray) -> np.ndarray:
    """
    カテゴリ変数ごとのカテゴリ数を数える（順序変数は 0）
    """
    n_categories = np.zeros(X.shape[1], dtype=np.int64)
    for feature_idx in np.nonzero(categorical)[0]:
        values = X[~missing[:, feature_idx], feature_idx]
        if values.size == 0:
            continue
        _check_category_codes(values, feature_idx)
        n_categories[feature_idx] = int(values.max()) + 1
    return n_categories


def mask_unknown_categories(
    X: np.ndarray,
    missing: np.ndarray,
    categorical: np.ndarray,
    n_categories: np.ndarray
) -> np.ndarray:
    """
    学習時に現れなかったカテゴリを欠損として扱う
    """
    missing = missing.copy()
    for feature_idx in np.nonzero(categorical)[0]:
        present = ~missing[:, feature_idx]
        values = X[present, feature_idx]
        _check_category_codes(values, feature_idx)
        unknown = np.zeros_like(present)
        unknown[present] = values >= n_categories[feature_idx]
        missing[unknown, feature_idx] = True
    return missing


def encode_responses(responses: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    応答ラベルをクラスインデックスに変換

    Returns:
    --------
    classes : array-like
        昇順に並んだ元のクラスラベル
    class_idx : array-like of int
        各サンプルのクラスインデックス
    """
    if responses.dtype.kind == "f" and np.any(np.isnan(responses)):
        raise DataError("responses contain NaN values")
    encoder = LabelEncoder()
    class_idx = encoder.fit_transform(responses)
    if len(encoder.classes_) < 2:
        raise DataError(f"Classification needs at least two classes, got {len(encoder.classes_)}")
    return encoder.classes_, class_idx.astype(np.int64)


def to_signed_labels(class_idx: np.ndarray) -> np.ndarray:
    """2クラスのインデックス {0, 1} を {-1, +1} に変換"""
    return np.where(class_idx == 1, 1.0, -1.0)


def unroll_classes(
    X: np.ndarray,
    missing: np.ndarray,
    class_idx: np.ndarray,
    n_classes: int
) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """
    多クラス問題を2クラス問題に展開

    Every sample is repeated once per class with an extra categorical column
    holding the class index; the response is +1 when the column matches the
    sample's class and -1 otherwise.

    Returns:
    --------
    X_unrolled : array-like, shape=(n_samples * n_classes, n_features + 1)
    missing_unrolled : array-like of bool, same shape
    responses_unrolled : array-like of {-1, +1}, shape=(n_samples * n_classes,)
    source_rows : array-like of int
        展開元のサンプルインデックス
    """
    n_samples = X.shape[0]
    source_rows = np.repeat(np.arange(n_samples), n_classes)
    class_column = np.tile(np.arange(n_classes, dtype=np.float64), n_samples)

    X_unrolled = np.column_stack([X[source_rows], class_column])
    missing_unrolled = np.column_stack([missing[source_rows], np.zeros(source_rows.size, dtype=bool)])
    responses_unrolled = np.where(class_idx[source_rows] == class_column, 1.0, -1.0)
    return X_unrolled, missing_unrolled, responses_unrolled, source_rows


def append_class_column(X: np.ndarray, missing: np.ndarray, class_index: int) -> Tuple[np.ndarray, np.ndarray]:
    """予測時に、指定したクラスのインデックス列を追加"""
    column = np.full((X.shape[0], 1), float(class_index))
    return np.hstack([X, column]), np.hstack([missing, np.zeros((X.shape[0], 1), dtype=bool)])


def _normalize_array(arr: np.ndarray, mask: Optional[np.ndarray] = None) -> np.ndarray:
    """
    合計が1になるよう正規化（mask が指定された場合はその範囲で）
    """
    arr = np.asarray(arr, dtype=np.float64)
    total = arr[mask].sum() if mask is not None else arr.sum()
    if total <= 0:
        raise DataError("Cannot normalize weights that sum to zero")
    return arr / total


def _clip_probabilities(probs: np.ndarray, epsilon: float = 1e-7) -> np.ndarray:
    """
    確率値をクリッピング

    Parameters:
    -----------
    probs : array-like
        確率値
    epsilon : float, default=1e-7
        クリッピング値

    Returns:
    --------
    clipped_probs : array-like
        クリッピング後の確率値
    """
    return np.clip(probs, epsilon, 1 - epsilon)


def select_columns(var_idx: Optional[Sequence[int]], n_features: int) -> Optional[np.ndarray]:
    """var_idx を特徴量インデックスの配列に変換（None はすべて）"""
    if var_idx is None:
        return None
    features = resolve_index(var_idx, n_features, "var_idx")
    if features.size == 0:
        raise ConfigurationError("var_idx selects no features")
    return features
