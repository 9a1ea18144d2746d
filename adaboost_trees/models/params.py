"""Configuration objects for the boosted tree classifier."""

from __future__ import annotations

import numbers
from dataclasses import asdict, dataclass, fields
from dataclasses import replace as _replace
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from ..exceptions import ConfigurationError


class BoostType(str, Enum):
    """Boosting variants [FHT98]."""

    DISCRETE = "discrete"
    REAL = "real"
    LOGIT = "logit"
    GENTLE = "gentle"


class VarType(str, Enum):
    """Variable types for features."""

    CATEGORICAL = "categorical"
    ORDERED = "ordered"


class SplitCriterion(str, Enum):
    """Impurity criteria used by the tree builder."""

    DEFAULT = "default"
    GINI = "gini"
    MISCLASS = "misclass"
    SQERR = "sqerr"


def _as_int(value, name: str, minimum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, numbers.Integral) or value < minimum:
        raise ConfigurationError(f"{name} must be an integer >= {minimum}, got {value!r}")
    return int(value)


def _coerce_enum(enum_cls, value, name: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        choices = ", ".join(member.value for member in enum_cls)
        raise ConfigurationError(f"Invalid {name}: {value!r} (expected one of: {choices})") from None


@dataclass(frozen=True)
class BoostParams:
    """Hyper-parameters steering boosted tree training.

    Parameters
    ----------
    boost_type:
        Boosting algorithm. ``"real"`` and ``"gentle"`` are usually the
        preferable choices; ``"discrete"`` builds classic AdaBoost with hard
        votes, ``"logit"`` performs Newton steps on the binomial
        log-likelihood.
    weak_count:
        Number of weak classifiers (boosting rounds).
    weight_trim_rate:
        Samples whose summary weight falls below ``1 - weight_trim_rate`` do
        not take part in the next rounds. ``0`` turns trimming off.
    max_depth:
        Maximum depth of each tree. ``1`` grows stumps, ``0`` grows single
        leaves.
    use_surrogates:
        Build surrogate splits so that samples with missing measurements can
        be routed.
    priors:
        A priori class probabilities sorted by class label value. ``None``
        treats all classes alike.
    split_criteria:
        Impurity criterion of the tree builder. ``"default"`` picks gini for
        discrete/real boosting and squared error for logit/gentle boosting.
    min_sample_count:
        Nodes holding fewer samples than this are not split.
    min_gain:
        Minimal impurity reduction a split must achieve.
    n_jobs:
        Number of worker threads used for the per-feature split search.
    """

    boost_type: BoostType = BoostType.REAL
    weak_count: int = 100
    weight_trim_rate: float = 0.95
    max_depth: int = 1
    use_surrogates: bool = True
    priors: Optional[Tuple[float, ...]] = None
    split_criteria: SplitCriterion = SplitCriterion.DEFAULT
    min_sample_count: int = 2
    min_gain: float = 1e-12
    n_jobs: int = 1

    def __post_init__(self):
        # frozen: normalize through object.__setattr__
        object.__setattr__(self, "boost_type", _coerce_enum(BoostType, self.boost_type, "boost_type"))
        object.__setattr__(
            self, "split_criteria", _coerce_enum(SplitCriterion, self.split_criteria, "split_criteria")
        )

        object.__setattr__(self, "weak_count", _as_int(self.weak_count, "weak_count", 1))
        object.__setattr__(self, "max_depth", _as_int(self.max_depth, "max_depth", 0))
        object.__setattr__(self, "min_sample_count", _as_int(self.min_sample_count, "min_sample_count", 2))
        object.__setattr__(self, "n_jobs", _as_int(self.n_jobs, "n_jobs", 1))
        object.__setattr__(self, "weight_trim_rate", float(self.weight_trim_rate))
        object.__setattr__(self, "min_gain", float(self.min_gain))
        object.__setattr__(self, "use_surrogates", bool(self.use_surrogates))
        if not 0.0 <= self.weight_trim_rate <= 1.0:
            raise ConfigurationError(f"weight_trim_rate must lie in [0, 1], got {self.weight_trim_rate!r}")
        if self.min_gain < 0:
            raise ConfigurationError(f"min_gain must be non-negative, got {self.min_gain!r}")

        if self.priors is not None:
            priors = tuple(float(p) for p in self.priors)
            if len(priors) < 2:
                raise ConfigurationError("priors must hold one probability per class (at least two)")
            if any(p < 0 for p in priors) or sum(priors) <= 0:
                raise ConfigurationError(f"priors must be non-negative and not all zero, got {priors}")
            object.__setattr__(self, "priors", priors)

        if self.boost_type in (BoostType.DISCRETE, BoostType.REAL) and self.split_criteria is SplitCriterion.SQERR:
            raise ConfigurationError(
                f"{self.boost_type.value} boosting fits class labels; use split_criteria='gini' or 'misclass'"
            )
        if self.boost_type in (BoostType.LOGIT, BoostType.GENTLE) and self.split_criteria in (
            SplitCriterion.GINI,
            SplitCriterion.MISCLASS,
        ):
            raise ConfigurationError(
                f"{self.boost_type.value} boosting fits real-valued responses; "
                f"use split_criteria='sqerr' instead of {self.split_criteria.value!r}"
            )

    @property
    def criterion(self) -> SplitCriterion:
        """Criterion actually used by the tree builder."""
        if self.split_criteria is not SplitCriterion.DEFAULT:
            return self.split_criteria
        if self.boost_type in (BoostType.DISCRETE, BoostType.REAL):
            return SplitCriterion.GINI
        return SplitCriterion.SQERR

    def replace(self, **changes) -> "BoostParams":
        """Return a copy with the given fields changed."""
        known = {f.name for f in fields(self)}
        unknown = sorted(set(changes) - known)
        if unknown:
            raise ConfigurationError(f"Invalid parameter(s): {', '.join(unknown)}")
        return _replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["boost_type"] = self.boost_type.value
        data["split_criteria"] = self.split_criteria.value
        data["priors"] = list(self.priors) if self.priors is not None else None
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BoostParams":
        known = {f.name for f in fields(cls)}
        kwargs = {key: value for key, value in data.items() if key in known}
        if kwargs.get("priors") is not None:
            kwargs["priors"] = tuple(kwargs["priors"])
        return cls(**kwargs)
