# ABOUTME: Reads an exported spans parquet file into a dataframe-backed span source.
# ABOUTME: A SpanFrameQuery narrows rows by one column equality and a start-time window before analysis.

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
import re

import pandas as pd

from spanlens.sources.dataframe import DataFrameSpanSource

logger = logging.getLogger(__name__)

_COLUMN_NAME = re.compile(r"[\w.]+")
_QUOTES = ("'", '"')


def parse_filter_expr(filter_expr: str) -> tuple[str, str]:
    """Split ``column == 'value'`` into its column and unquoted value."""

    column, operator, literal = filter_expr.partition("==")
    column = column.strip()
    literal = literal.strip()
    quoted = len(literal) > 2 and literal[0] in _QUOTES and literal[-1] == literal[0]
    if not operator or not quoted or not _COLUMN_NAME.fullmatch(column):
        raise ValueError(f"unsupported filter expression: {filter_expr!r}")
    return column, literal[1:-1]


def _utc_bound(value: str | None) -> pd.Timestamp | None:
    if not value:
        return None
    try:
        bound = pd.Timestamp(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"invalid time bound: {value!r}") from exc
    return bound.tz_localize("UTC") if bound.tzinfo is None else bound.tz_convert("UTC")


@dataclass(frozen=True)
class SpanFrameQuery:
    column: str | None = None
    value: str | None = None
    window_start: pd.Timestamp | None = None
    window_end: pd.Timestamp | None = None

    @classmethod
    def build(
        cls,
        *,
        filter_expr: str | None = None,
        start_time: str | None = None,
        end_time: str | None = None,
    ) -> SpanFrameQuery:
        column, value = parse_filter_expr(filter_expr) if filter_expr else (None, None)
        return cls(
            column=column,
            value=value,
            window_start=_utc_bound(start_time),
            window_end=_utc_bound(end_time),
        )

    def apply(self, dataframe: pd.DataFrame) -> pd.DataFrame:
        keep = pd.Series(True, index=dataframe.index)
        if self.column is not None:
            if self.column not in dataframe.columns:
                return dataframe.iloc[0:0]
            keep &= dataframe[self.column].astype(str) == self.value
        has_window = self.window_start is not None or self.window_end is not None
        if has_window and "start_time" in dataframe.columns:
            started = pd.to_datetime(dataframe["start_time"], utc=True)
            if self.window_start is not None:
                keep &= started >= self.window_start
            if self.window_end is not None:
                keep &= started <= self.window_end
        return dataframe[keep]


class ParquetSpanSource(DataFrameSpanSource):
    def __init__(
        self,
        parquet_path: str | Path,
        *,
        filter_expr: str | None = None,
        start_time: str | None = None,
        end_time: str | None = None,
    ) -> None:
        self._parquet_path = Path(parquet_path)
        if not self._parquet_path.exists():
            raise FileNotFoundError(self._parquet_path)
        query = SpanFrameQuery.build(filter_expr=filter_expr, start_time=start_time, end_time=end_time)
        dataframe = query.apply(pd.read_parquet(self._parquet_path, engine="pyarrow"))
        logger.info("Read %d spans from %s", len(dataframe), self._parquet_path)
        super().__init__(dataframe)

    @property
    def parquet_path(self) -> Path:
        return self._parquet_path
