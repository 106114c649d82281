from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

import pandas as pd

from .hier_paths import is_internal_pair
from .record_loader import RawRecord, RecordSetContainer

DEFAULT_MIN_CONNECTIONS = 0.0
DEFAULT_MAX_WNS = 0.0
DEFAULT_MAX_TNS = 0.0


def coerce_bound(value: Any, default: float = 0.0) -> float:
    """Parse a user-entered bound. Anything non-numeric (blank, text, NaN) becomes `default`."""
    if isinstance(value, bool):
        return default
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number):
        return default
    return number


@dataclass(frozen=True)
class FilterOptions:
    min_connections: float = DEFAULT_MIN_CONNECTIONS
    max_wns: float = DEFAULT_MAX_WNS
    max_tns: float = DEFAULT_MAX_TNS
    exclude_internal: bool = False

    @classmethod
    def from_inputs(
        cls,
        min_connections: Any = None,
        max_wns: Any = None,
        max_tns: Any = None,
        exclude_internal: bool = False,
    ) -> "FilterOptions":
        return cls(
            min_connections=coerce_bound(min_connections, DEFAULT_MIN_CONNECTIONS),
            max_wns=coerce_bound(max_wns, DEFAULT_MAX_WNS),
            max_tns=coerce_bound(max_tns, DEFAULT_MAX_TNS),
            exclude_internal=bool(exclude_internal),
        )

    def normalised(self) -> "FilterOptions":
        return FilterOptions.from_inputs(
            self.min_connections, self.max_wns, self.max_tns, self.exclude_internal
        )


def record_passes(record: RawRecord, options: FilterOptions) -> bool:
    options = options.normalised()
    if record.connections < options.min_connections:
        return False
    if record.wns > options.max_wns or record.tns > options.max_tns:
        return False
    if options.exclude_internal and is_internal_pair(record.hier, record.connecting_hier):
        return False
    return True


def filter_records(record_set: RecordSetContainer, options: FilterOptions) -> RecordSetContainer:
    """Keep the records that satisfy every bound, in their original order."""
    options = options.normalised()
    df = record_set.df
    mask = (
        (df["connections"] >= options.min_connections)
        & (df["wns"] <= options.max_wns)
        & (df["tns"] <= options.max_tns)
    )
    if options.exclude_internal and not df.empty:
        internal = [is_internal_pair(src, dst) for src, dst in zip(df["hier"], df["connecting_hier"])]
        mask &= ~pd.Series(internal, index=df.index, dtype=bool)
    subset = df[mask].copy()
    return RecordSetContainer.from_dataframe(subset)
