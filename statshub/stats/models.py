"""
Stats Model

A stats bundle holds three mappings from stat name to integer value:

- counter: cumulative, merged by addition
- gauge: last write wins
- presence: last write wins indicator (1 = currently active)

Stat names are opaque client-defined strings. A missing mapping is an empty
mapping; ``null`` is rejected.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterator, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, conint, constr, field_validator

from statshub.errors import CounterOverflowError


INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1

# Dimensions
USER = "user"
COUNTRY = "country"
FALLBACK = "fallback"

KINDS = ("counter", "gauge", "presence")

# Longest names the warehouse columns hold
MAX_DIMENSION_LENGTH = 64
MAX_NAME_LENGTH = 255

StatValue = conint(strict=True, ge=INT64_MIN, le=INT64_MAX)
StatName = constr(max_length=MAX_NAME_LENGTH)
DimensionName = constr(max_length=MAX_DIMENSION_LENGTH)
EntityName = constr(max_length=MAX_NAME_LENGTH)


def validate_dimension_name(name: str) -> str:
    if not name or ":" in name:
        raise ValueError(f"Invalid dimension name: {name!r}")
    return name


class StatsBundle(BaseModel):
    """Counter, gauge and presence values for one entity"""

    model_config = ConfigDict(extra="ignore")

    counter: Dict[StatName, StatValue] = Field(default_factory=dict)
    gauge: Dict[StatName, StatValue] = Field(default_factory=dict)
    presence: Dict[StatName, StatValue] = Field(default_factory=dict)

    def is_empty(self) -> bool:
        return not (self.counter or self.gauge or self.presence)

    def values(self) -> Iterator[Tuple[str, str, int]]:
        """Yield (kind, stat, value) for every stat in the bundle."""
        for kind in KINDS:
            for stat, value in getattr(self, kind).items():
                yield kind, stat, value


class StatsSubmission(StatsBundle):
    """
    Body of a stats POST.

    Besides the bundle, a client may name additional dimension entities the
    submission also counts towards, e.g. ``{"dims": {"country": "ES"}}``.
    ``countryCode`` is accepted as shorthand for the country dimension.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    dims: Dict[DimensionName, EntityName] = Field(default_factory=dict)
    country_code: Optional[EntityName] = Field(default=None, alias="countryCode")

    @field_validator("dims")
    @classmethod
    def validate_dims(cls, v: Dict[str, str]) -> Dict[str, str]:
        for dimension, entity in v.items():
            validate_dimension_name(dimension)
            if dimension == USER:
                raise ValueError("The user dimension is always the submitting user")
            if not entity:
                raise ValueError(f"Empty entity for dimension {dimension}")
        return v

    @field_validator("country_code")
    @classmethod
    def validate_country_code(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip().upper()
        if not v:
            raise ValueError("countryCode must not be empty")
        return v

    def bundle(self) -> StatsBundle:
        """The stats part of the submission"""
        return StatsBundle(counter=self.counter, gauge=self.gauge, presence=self.presence)

    def targets(self, user_id: int) -> List[Tuple[str, str]]:
        """(dimension, entity) pairs this submission merges into, user first."""
        extra = dict(self.dims)
        if self.country_code and COUNTRY not in extra:
            extra[COUNTRY] = self.country_code
        return [(USER, str(user_id))] + sorted(extra.items())


def add_counters(current: Mapping[str, int], increments: Mapping[str, int]) -> Dict[str, int]:
    """
    Add increments onto current counter values.

    Returns the new value of every counter named in ``increments``; names not
    present in ``current`` start at 0.

    Raises:
        CounterOverflowError: if any sum leaves the signed 64-bit range
    """
    updated = {}
    for stat, delta in increments.items():
        total = current.get(stat, 0) + delta
        if total < INT64_MIN or total > INT64_MAX:
            raise CounterOverflowError(f"Counter {stat} would overflow")
        updated[stat] = total
    return updated


@dataclass(frozen=True)
class Snapshot:
    """One entity's aggregate state at one archive boundary"""

    dimension: str
    entity: str
    stats: StatsBundle
    boundary: datetime
