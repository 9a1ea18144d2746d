"""
Utilities Package

合成データ生成・評価・可視化のユーティリティを提供します。
"""

from .model_interface import (
    generate_two_class_data,
    generate_multiclass_data,
    staged_evaluation,
    evaluate_boost_type,
    compare_boost_types
)

__all__ = [
    'generate_two_class_data',
    'generate_multiclass_data',
    'staged_evaluation',
    'evaluate_boost_type',
    'compare_boost_types'
]
