"""BoostParams のテスト"""

import numpy as np
import pytest

from adaboost_trees import BoostParams, BoostType, ConfigurationError, SplitCriterion


def test_defaults():
    params = BoostParams()
    assert params.boost_type is BoostType.REAL
    assert params.weak_count == 100
    assert params.weight_trim_rate == 0.95
    assert params.max_depth == 1
    assert params.use_surrogates is True
    assert params.priors is None
    assert params.criterion is SplitCriterion.GINI


def test_string_values_are_coerced():
    params = BoostParams(boost_type="Gentle", split_criteria="sqerr", weak_count=np.int64(5))
    assert params.boost_type is BoostType.GENTLE
    assert params.split_criteria is SplitCriterion.SQERR
    assert params.weak_count == 5
    assert isinstance(params.weak_count, int)


@pytest.mark.parametrize("boost_type, expected", [
    ("discrete", SplitCriterion.GINI),
    ("real", SplitCriterion.GINI),
    ("logit", SplitCriterion.SQERR),
    ("gentle", SplitCriterion.SQERR),
])
def test_default_criterion_per_variant(boost_type, expected):
    assert BoostParams(boost_type=boost_type).criterion is expected


@pytest.mark.parametrize("kwargs", [
    {"boost_type": "ada"},
    {"weak_count": 0},
    {"weak_count": 2.5},
    {"weak_count": True},
    {"max_depth": -1},
    {"weight_trim_rate": 1.5},
    {"weight_trim_rate": -0.1},
    {"priors": (1.0,)},
    {"priors": (0.5, -0.5)},
    {"min_sample_count": 1},
    {"n_jobs": 0},
    {"min_gain": -1.0},
    {"boost_type": "real", "split_criteria": "sqerr"},
    {"boost_type": "logit", "split_criteria": "gini"},
    {"boost_type": "gentle", "split_criteria": "misclass"},
])
def test_invalid_values_raise(kwargs):
    with pytest.raises(ConfigurationError):
        BoostParams(**kwargs)


def test_configuration_error_is_value_error():
    with pytest.raises(ValueError):
        BoostParams(weak_count=-3)


def test_params_are_frozen():
    params = BoostParams()
    with pytest.raises(AttributeError):
        params.weak_count = 3


def test_replace():
    params = BoostParams(weak_count=10)
    changed = params.replace(boost_type="discrete", priors=[0.2, 0.8])
    assert changed.boost_type is BoostType.DISCRETE
    assert changed.priors == (0.2, 0.8)
    assert changed.weak_count == 10
    assert params.boost_type is BoostType.REAL

    with pytest.raises(ConfigurationError):
        params.replace(learning_rate=0.1)


def test_dict_round_trip():
    params = BoostParams(boost_type="logit", weak_count=7, priors=(1.0, 2.0), n_jobs=2)
    data = params.to_dict()
    assert data["boost_type"] == "logit"
    assert data["priors"] == [1.0, 2.0]
    assert BoostParams.from_dict(data) == params
