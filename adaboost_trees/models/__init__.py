"""
Models Package

ブースティング木分類器と、そのパラメータ・基底クラスを提供します。
"""

from .params import BoostParams, BoostType, VarType, SplitCriterion
from .base import BoostBase
from .boost import Boost
from .boost_components import TrainStatus

__all__ = [
    'BoostParams',
    'BoostType',
    'VarType',
    'SplitCriterion',
    'BoostBase',
    'Boost',
    'TrainStatus'
]
