from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, Mapping, Optional, Tuple, Union

import pandas as pd
from pandas.errors import EmptyDataError, ParserError

logger = logging.getLogger(__name__)

# Upstream timing reports spell the column with three n's; the misspelling is part of the format.
HIER_COLUMN = "hier"
CONNECTING_HIER_COLUMN = "connnecting_hier"
CONNECTIONS_COLUMN = "connections"
WNS_COLUMN = "wns"
TNS_COLUMN = "tns"
DIRECTION_COLUMN = "direction"

NUMERIC_COLUMNS = ("connections", "wns", "tns")
CANONICAL_COLUMNS = ("hier", "connecting_hier", "connections", "wns", "tns", "direction")
KNOWN_DIRECTIONS = {"to", "from"}

Number = Union[int, float]


class RecordFormatError(Exception):
    """Raised when a connectivity report cannot be parsed or lacks required columns."""


@dataclass(frozen=True)
class RawRecord:
    hier: Optional[str]
    connecting_hier: Optional[str]
    connections: Number = 0
    wns: float = 0.0
    tns: float = 0.0
    direction: Optional[str] = None


@dataclass(frozen=True)
class RecordSetContainer:
    """
    Keeps the canonical dataframe and the immutable record tuple in sync.

    The dataframe uses `hier`, `connecting_hier`, `connections`, `wns`, `tns` and `direction`
    as canonical columns, in input row order.
    """

    df: pd.DataFrame
    records: Tuple[RawRecord, ...]

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame) -> "RecordSetContainer":
        df = df.reset_index(drop=True)
        return cls(df=df, records=tuple(_dataframe_to_records(df)))

    @classmethod
    def from_records(cls, records: Iterable[RawRecord]) -> "RecordSetContainer":
        rows = [
            {
                "hier": record.hier,
                "connecting_hier": record.connecting_hier,
                "connections": record.connections,
                "wns": record.wns,
                "tns": record.tns,
                "direction": record.direction,
            }
            for record in records
        ]
        df = pd.DataFrame(rows, columns=list(CANONICAL_COLUMNS))
        return cls.from_dataframe(df)

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[RawRecord]:
        return iter(self.records)

    @property
    def is_empty(self) -> bool:
        return not self.records

    def to_csv_bytes(self) -> bytes:
        """Export the current record snapshot using the upstream column names."""
        exported = self.df.rename(columns={"connecting_hier": CONNECTING_HIER_COLUMN})
        return exported.to_csv(index=False).encode("utf-8")


def _optional_text(value: object) -> Optional[str]:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return None
    return str(value)


def coerce_number(value: object) -> Number:
    number = float(value)
    return int(number) if number.is_integer() else number


def _dataframe_to_records(df: pd.DataFrame) -> Iterator[RawRecord]:
    for row in df[list(CANONICAL_COLUMNS)].itertuples(index=False):
        yield RawRecord(
            hier=_optional_text(row.hier),
            connecting_hier=_optional_text(row.connecting_hier),
            connections=coerce_number(row.connections),
            wns=float(row.wns),
            tns=float(row.tns),
            direction=_optional_text(row.direction),
        )


def try_auto_detect_columns(df: pd.DataFrame) -> Dict[str, Optional[str]]:
    """
    Map canonical field names to the dataframe's actual column names.

    Header matching ignores case and surrounding whitespace. Optional fields that are not
    present map to None; the two path columns are required.
    """
    lowered = {str(col).strip().lower(): col for col in df.columns}

    def pick(options: Iterable[str]) -> Optional[str]:
        for option in options:
            if option in lowered:
                return lowered[option]
        return None

    mapping = {
        "hier": pick((HIER_COLUMN, "hierarchy", "source")),
        "connecting_hier": pick((CONNECTING_HIER_COLUMN, "connecting_hier", "connected_hier", "target")),
        "connections": pick((CONNECTIONS_COLUMN, "conn", "connection_count")),
        "wns": pick((WNS_COLUMN,)),
        "tns": pick((TNS_COLUMN,)),
        "direction": pick((DIRECTION_COLUMN, "dir")),
    }

    missing = [name for name in ("hier", "connecting_hier") if mapping[name] is None]
    if missing:
        labels = [HIER_COLUMN if name == "hier" else CONNECTING_HIER_COLUMN for name in missing]
        raise RecordFormatError(f"Missing required columns: {', '.join(labels)}")
    return mapping


def _normalise_dataframe(df: pd.DataFrame, column_map: Mapping[str, Optional[str]]) -> pd.DataFrame:
    """
    Rename mapped columns to canonical names and coerce types.

    Blank path cells become None. Missing or non-numeric metric cells become 0 so that
    filtering and statistics treat them the same way.
    """
    for name in ("hier", "connecting_hier"):
        source = column_map.get(name)
        if not source or source not in df.columns:
            raise RecordFormatError(f"Missing required column for '{name}': {source!r}")

    normalised = pd.DataFrame(index=df.index)
    for name in ("hier", "connecting_hier", "direction"):
        source = column_map.get(name)
        if source and source in df.columns:
            column = df[source].astype(object)
            normalised[name] = column.where(column.notna(), None)
        else:
            normalised[name] = None

    for name in ("hier", "connecting_hier"):
        blank = normalised[name].map(lambda value: isinstance(value, str) and not value.strip())
        normalised.loc[blank, name] = None

    for name in NUMERIC_COLUMNS:
        source = column_map.get(name)
        if source and source in df.columns:
            raw = df[source]
            numeric = pd.to_numeric(raw.map(lambda v: v.strip() if isinstance(v, str) else v), errors="coerce")
            coerced = int((numeric.isna() & raw.notna()).sum())
            if coerced:
                logger.warning("Column %s: %d non-numeric value(s) treated as 0.", source, coerced)
            normalised[name] = numeric.fillna(0)
        else:
            logger.info("Column for '%s' not present; defaulting to 0.", name)
            normalised[name] = 0

    connections = normalised["connections"]
    if (connections % 1 == 0).all():
        normalised["connections"] = connections.astype("int64")
    normalised["wns"] = normalised["wns"].astype(float)
    normalised["tns"] = normalised["tns"].astype(float)

    unexpected = sorted(
        {str(value) for value in normalised["direction"].dropna() if value not in KNOWN_DIRECTIONS}
    )
    if unexpected:
        # Anything other than the literal "to" is drawn reversed.
        logger.warning("Unexpected direction values will be treated as reversed edges: %s", unexpected)

    return normalised[list(CANONICAL_COLUMNS)].reset_index(drop=True)


def _read_delimited(file_bytes: bytes, *, sniff: bool = False, nrows: Optional[int] = None) -> pd.DataFrame:
    buffer = io.BytesIO(file_bytes)
    options = {"dtype": str, "keep_default_na": False, "na_values": [""], "nrows": nrows}
    try:
        if sniff:
            return pd.read_csv(buffer, sep=None, engine="python", **options)
        return pd.read_csv(buffer, **options)
    except EmptyDataError as exc:
        raise RecordFormatError("The file is empty; a header row is required.") from exc
    except UnicodeDecodeError as exc:
        raise RecordFormatError("The file is not UTF-8 encoded text.") from exc
    except (ParserError, csv.Error):
        buffer.seek(0)
        try:
            return pd.read_csv(buffer, sep=None, engine="python", **options)
        except (ParserError, csv.Error, UnicodeDecodeError) as exc_second:
            raise RecordFormatError(
                "Unable to parse report content. Ensure the file uses a consistent delimiter (e.g., comma or "
                "semicolon) and that embedded delimiters are quoted."
            ) from exc_second


def _read_comma_then_sniff(file_bytes: bytes, nrows: Optional[int] = None) -> pd.DataFrame:
    df = _read_delimited(file_bytes, nrows=nrows)
    if len(df.columns) == 1:
        # A single column usually means the delimiter is not a comma.
        try:
            sniffed = _read_delimited(file_bytes, sniff=True, nrows=nrows)
        except RecordFormatError:
            sniffed = df
        if len(sniffed.columns) > 1:
            df = sniffed
    return df


def load_records_from_dataframe(
    df: pd.DataFrame, column_map: Optional[Mapping[str, Optional[str]]] = None
) -> RecordSetContainer:
    mapping = dict(column_map) if column_map else try_auto_detect_columns(df)
    normalised = _normalise_dataframe(df, mapping)
    return RecordSetContainer.from_dataframe(normalised)


def load_records_from_csv(
    file_bytes: bytes, column_map: Optional[Mapping[str, Optional[str]]] = None
) -> RecordSetContainer:
    """
    Load a delimited connectivity report with a header row.

    `column_map` maps canonical names to file columns; when omitted the columns are detected.
    """
    df = _read_comma_then_sniff(file_bytes)
    container = load_records_from_dataframe(df, column_map)
    logger.info("Loaded %d connectivity records.", len(container))
    return container


def read_csv_summary(file_bytes: bytes) -> pd.DataFrame:
    """
    Read report content into a dataframe without normalisation.
    Useful for previewing column names to let the user map fields.
    """
    return _read_comma_then_sniff(file_bytes, nrows=50)
