"""
Boost Components Package

This package contains the building blocks of the boosted tree classifier:
tree nodes, the weak tree builder, sample re-weighting, the training loop,
the ensemble predictor and the persisted model state.
"""

from .tree_node import Split, DecisionTreeNode, DecisionTree
from .data_transforms import (
    validate_input_data,
    merge_missing_mask,
    resolve_var_types,
    encode_responses,
    unroll_classes,
    _normalize_array,
    _clip_probabilities
)
from .weighting_strategies import WeightingStrategyManager
from .tree_builder import TreeBuilder
from .model_state import ModelState, WeakLearner
from .boost_trainer import BoostTrainer, TrainStatus
from .ensemble_predictor import EnsemblePredictor, resolve_slice

__all__ = [
    'Split',
    'DecisionTreeNode',
    'DecisionTree',
    'validate_input_data',
    'merge_missing_mask',
    'resolve_var_types',
    'encode_responses',
    'unroll_classes',
    '_normalize_array',
    '_clip_probabilities',
    'WeightingStrategyManager',
    'TreeBuilder',
    'ModelState',
    'WeakLearner',
    'BoostTrainer',
    'TrainStatus',
    'EnsemblePredictor',
    'resolve_slice'
]
