"""
adaboost_trees

Discrete, Real, Logit and Gentle AdaBoost over decision trees with
categorical splits, surrogate splits for missing values and weight trimming.
"""

from .exceptions import BoostError, ConfigurationError, DataError, StateError, ModelIOError, RangeError
from .models import Boost, BoostBase, BoostParams, BoostType, VarType, SplitCriterion, TrainStatus

__version__ = "0.1.0"

__all__ = [
    'Boost',
    'BoostBase',
    'BoostParams',
    'BoostType',
    'VarType',
    'SplitCriterion',
    'TrainStatus',
    'BoostError',
    'ConfigurationError',
    'DataError',
    'StateError',
    'ModelIOError',
    'RangeError'
]
