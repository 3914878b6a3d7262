"""
Partition sources.

A partition source is an independently readable segment of the input that
yields parsed values one at a time. Sources own the parse policy: with
``ParsePolicy.ABORT`` the first unparseable value raises ParseError; with
``ParsePolicy.SKIP`` it is logged (up to ``max_logged_errors`` times),
counted in ``stats["skipped"]``, and iteration continues.

An inaccessible segment raises PartitionReadError when iteration starts.
"""
import logging
import math
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator, Optional, Union

import polars as pl

from shared.partitioning import partition_id_for
from streamstats.core.enums import ParsePolicy, SourceFormat
from streamstats.core.errors import ParseError, PartitionReadError

logger = logging.getLogger(__name__)

Parser = Callable[[Any], Any]

_SKIPPED = object()


def parse_finite_float(raw: Any) -> float:
    """
    Parse a float, rejecting NaN and infinities.

    A single NaN would poison every sum it is folded into, so non-finite
    values are treated as parse failures.
    """
    value = float(raw)
    if not math.isfinite(value):
        raise ValueError(f"non-finite value: {raw!r}")
    return value


class PartitionSource(ABC):
    """
    Abstract base class for partition sources.

    Sources are responsible for:
    - Opening one data segment
    - Yielding values parsed to the expected type
    - Applying the parse policy to bad values
    """

    def __init__(
        self,
        partition_id: str,
        parse_policy: ParsePolicy = ParsePolicy.ABORT,
        max_logged_errors: int = 100,
    ):
        self.partition_id = partition_id
        self.parse_policy = ParsePolicy(parse_policy)
        self.max_logged_errors = max_logged_errors
        self.stats = {
            "values_read": 0,
            "skipped": 0,
        }

    @abstractmethod
    def __iter__(self) -> Iterator[Any]:
        """
        Yield parsed values in partition order.

        Raises:
            PartitionReadError: If the segment cannot be read.
            ParseError: If a value cannot be parsed under ParsePolicy.ABORT.
        """
        pass

    def _accept(self, value: Any) -> Any:
        self.stats["values_read"] += 1
        return value

    def _reject(self, raw: Any, line_number: Optional[int], reason: str) -> Any:
        """Apply the parse policy to a bad value; returns _SKIPPED or raises."""
        if self.parse_policy == ParsePolicy.ABORT:
            raise ParseError(
                self.partition_id,
                raw,
                line_number=line_number,
                details={"reason": reason},
            )

        self.stats["skipped"] += 1
        skipped = self.stats["skipped"]
        if skipped <= self.max_logged_errors:
            logger.warning(
                f"Skipping unparseable value {raw!r} at line {line_number} "
                f"in {self.partition_id}: {reason}"
            )
        elif skipped == self.max_logged_errors + 1:
            logger.warning(
                f"Max errors ({self.max_logged_errors}) reached for {self.partition_id}, "
                "suppressing further error logs"
            )
        return _SKIPPED

    def _parse(self, parser: Optional[Parser], raw: Any, line_number: Optional[int]) -> Any:
        if parser is None:
            return self._accept(raw)
        try:
            return self._accept(parser(raw))
        except (ValueError, TypeError) as e:
            return self._reject(raw, line_number, str(e))

    def get_stats(self) -> dict:
        """Get source statistics."""
        return self.stats.copy()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.partition_id!r})"


class IterableSource(PartitionSource):
    """
    In-memory partition over any iterable.

    Values pass through unchanged unless a parser is given.
    """

    def __init__(
        self,
        values: Iterable[Any],
        partition_id: str = "memory",
        parser: Optional[Parser] = None,
        parse_policy: ParsePolicy = ParsePolicy.ABORT,
        max_logged_errors: int = 100,
    ):
        super().__init__(partition_id, parse_policy, max_logged_errors)
        self.values = values
        self.parser = parser

    def __iter__(self) -> Iterator[Any]:
        for position, raw in enumerate(self.values, start=1):
            value = self._parse(self.parser, raw, position)
            if value is not _SKIPPED:
                yield value


class TextLineSource(PartitionSource):
    """
    Text file with one value per line. Blank lines are ignored.
    """

    def __init__(
        self,
        path: Union[str, Path],
        partition_id: Optional[str] = None,
        root: Optional[Union[str, Path]] = None,
        parser: Parser = parse_finite_float,
        parse_policy: ParsePolicy = ParsePolicy.ABORT,
        max_logged_errors: int = 100,
        encoding: str = "utf-8",
    ):
        super().__init__(
            partition_id or partition_id_for(path, root),
            parse_policy,
            max_logged_errors,
        )
        self.path = Path(path)
        self.parser = parser
        self.encoding = encoding

    def __iter__(self) -> Iterator[Any]:
        try:
            f = open(self.path, "r", encoding=self.encoding)
        except OSError as e:
            raise PartitionReadError(self.partition_id, str(e)) from e

        with f:
            line_number = 0
            while True:
                try:
                    line = f.readline()
                except (OSError, UnicodeDecodeError) as e:
                    raise PartitionReadError(
                        self.partition_id,
                        f"read failed after line {line_number}: {e}",
                    ) from e
                if not line:
                    break
                line_number += 1

                text = line.strip()
                if not text:
                    continue

                value = self._parse(self.parser, text, line_number)
                if value is not _SKIPPED:
                    yield value

        logger.debug(
            f"[TextLineSource] Read {self.stats['values_read']} values "
            f"from {self.partition_id} ({self.stats['skipped']} skipped)"
        )


class ColumnSource(PartitionSource):
    """
    One numeric column of a Parquet, CSV or NDJSON file, read with polars.

    The column is collected once and then walked in slices of
    ``batch_size`` rows. CSV and NDJSON columns are read as text and cast
    row by row. Values that cannot be cast to Float64, nulls and non-finite
    values are parse failures; ``line_number`` is the 1-based row.
    """

    def __init__(
        self,
        path: Union[str, Path],
        column: str,
        format: SourceFormat = SourceFormat.PARQUET,
        partition_id: Optional[str] = None,
        root: Optional[Union[str, Path]] = None,
        parse_policy: ParsePolicy = ParsePolicy.ABORT,
        max_logged_errors: int = 100,
        batch_size: int = 10_000,
    ):
        super().__init__(
            partition_id or partition_id_for(path, root),
            parse_policy,
            max_logged_errors,
        )
        self.path = Path(path)
        self.column = column
        self.format = SourceFormat(format)
        self.batch_size = batch_size

        if self.format == SourceFormat.TEXT:
            raise ValueError("ColumnSource does not read text partitions; use TextLineSource")

    def _scan(self) -> pl.LazyFrame:
        # Text formats read the column as strings so that a bad value past
        # polars' schema inference window is a per-row parse failure
        path = str(self.path)
        as_text = {self.column: pl.String}
        if self.format == SourceFormat.PARQUET:
            return pl.scan_parquet(path)
        elif self.format == SourceFormat.CSV:
            return pl.scan_csv(path, schema_overrides=as_text)
        elif self.format == SourceFormat.NDJSON:
            return pl.scan_ndjson(path, schema_overrides=as_text)
        raise ValueError(f"Unsupported column format: {self.format}")

    def _read_column(self) -> pl.DataFrame:
        if not self.path.is_file():
            raise PartitionReadError(self.partition_id, f"file not found: {self.path}")
        try:
            return self._scan().select(pl.col(self.column)).collect()
        except pl.exceptions.ColumnNotFoundError as e:
            raise PartitionReadError(
                self.partition_id, f"column '{self.column}' not found"
            ) from e
        except (OSError, pl.exceptions.PolarsError) as e:
            raise PartitionReadError(self.partition_id, str(e)) from e

    def __iter__(self) -> Iterator[float]:
        df = self._read_column()

        row = 0
        for chunk in df.iter_slices(n_rows=self.batch_size):
            raw = chunk.get_column(self.column)
            parsed = raw.cast(pl.Float64, strict=False)
            for raw_value, value in zip(raw.to_list(), parsed.to_list()):
                row += 1
                if value is None:
                    reason = "null value" if raw_value is None else "not numeric"
                    self._reject(raw_value, row, reason)
                    continue
                if not math.isfinite(value):
                    self._reject(raw_value, row, "non-finite value")
                    continue
                yield self._accept(value)

        logger.debug(
            f"[ColumnSource] Read {self.stats['values_read']} values "
            f"from {self.partition_id} ({self.stats['skipped']} skipped)"
        )


def make_source(
    path: Union[str, Path],
    format: SourceFormat = SourceFormat.TEXT,
    column: Optional[str] = None,
    root: Optional[Union[str, Path]] = None,
    parse_policy: ParsePolicy = ParsePolicy.ABORT,
    max_logged_errors: int = 100,
    batch_size: int = 10_000,
) -> PartitionSource:
    """
    Build the source matching a partition file's format.

    Raises:
        ValueError: If a columnar format is requested without a column.
    """
    format = SourceFormat(format)
    if format == SourceFormat.TEXT:
        return TextLineSource(
            path,
            root=root,
            parse_policy=parse_policy,
            max_logged_errors=max_logged_errors,
        )
    if not column:
        raise ValueError(f"A column name is required for {format} partitions")
    return ColumnSource(
        path,
        column,
        format=format,
        root=root,
        parse_policy=parse_policy,
        max_logged_errors=max_logged_errors,
        batch_size=batch_size,
    )
