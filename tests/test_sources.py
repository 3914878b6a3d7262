"""
Unit tests for partition sources.
"""
import polars as pl
import pytest

from streamstats.core.enums import ParsePolicy, SourceFormat
from streamstats.core.errors import ParseError, PartitionReadError
from streamstats.stream.sources import (
    ColumnSource,
    IterableSource,
    TextLineSource,
    make_source,
    parse_finite_float,
)


@pytest.fixture
def text_file(tmp_path):
    path = tmp_path / "shard=0001" / "values.txt"
    path.parent.mkdir()
    path.write_text("1.5\n\n2.5\n  3  \n", encoding="utf-8")
    return path


@pytest.fixture
def bad_text_file(tmp_path):
    path = tmp_path / "bad.txt"
    path.write_text("1.0\nabc\n2.0\nnan\n3.0\n", encoding="utf-8")
    return path


@pytest.fixture
def late_bad_csv(tmp_path):
    """500 integer rows, then one unparseable value, then one more number."""
    path = tmp_path / "late.csv"
    rows = [str(i) for i in range(500)] + ["oops", "1"]
    path.write_text("x\n" + "\n".join(rows) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def late_bad_ndjson(tmp_path):
    """300 integer records, then a string value, then a float."""
    path = tmp_path / "late.ndjson"
    lines = [f'{{"x": {i}}}' for i in range(300)] + ['{"x": "oops"}', '{"x": 7.5}']
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


class TestParseFiniteFloat:

    def test_parses(self):
        assert parse_finite_float(" 2.5 ") == 2.5

    @pytest.mark.parametrize("raw", ["nan", "inf", "-inf", "x"])
    def test_rejects(self, raw):
        with pytest.raises(ValueError):
            parse_finite_float(raw)


class TestTextLineSource:
    """Tests for one-value-per-line text partitions."""

    def test_reads_values_and_skips_blank_lines(self, text_file):
        source = TextLineSource(text_file)

        assert list(source) == [1.5, 2.5, 3.0]
        assert source.get_stats() == {"values_read": 3, "skipped": 0}

    def test_partition_id_relative_to_root(self, text_file, tmp_path):
        source = TextLineSource(text_file, root=tmp_path)

        assert source.partition_id == "shard=0001/values.txt"

    def test_abort_policy_raises_with_context(self, bad_text_file):
        source = TextLineSource(bad_text_file, partition_id="p-bad")

        with pytest.raises(ParseError) as excinfo:
            list(source)

        assert excinfo.value.partition_id == "p-bad"
        assert excinfo.value.value == "abc"
        assert excinfo.value.line_number == 2

    def test_skip_policy_counts_skipped(self, bad_text_file):
        source = TextLineSource(bad_text_file, parse_policy=ParsePolicy.SKIP)

        assert list(source) == [1.0, 2.0, 3.0]
        assert source.stats["skipped"] == 2

    def test_skip_policy_accepts_string(self, bad_text_file):
        source = TextLineSource(bad_text_file, parse_policy="skip")

        assert list(source) == [1.0, 2.0, 3.0]

    def test_missing_file(self, tmp_path):
        source = TextLineSource(tmp_path / "missing.txt", partition_id="gone")

        with pytest.raises(PartitionReadError) as excinfo:
            list(source)

        assert excinfo.value.partition_id == "gone"

    def test_undecodable_file(self, tmp_path):
        path = tmp_path / "binary.txt"
        path.write_bytes(b"1.0\n\xff\xfe\xfa\n")

        with pytest.raises(PartitionReadError):
            list(TextLineSource(path))

    def test_custom_parser(self, tmp_path):
        path = tmp_path / "ints.txt"
        path.write_text("3\n1\n", encoding="utf-8")

        assert list(TextLineSource(path, parser=int)) == [3, 1]


class TestIterableSource:

    def test_passthrough(self):
        assert list(IterableSource(["b", "a"])) == ["b", "a"]

    def test_parser_and_policy(self):
        source = IterableSource(
            ["1", "x", "3"],
            parser=float,
            parse_policy=ParsePolicy.SKIP,
        )

        assert list(source) == [1.0, 3.0]
        assert source.stats["skipped"] == 1

    def test_abort_reports_position(self):
        with pytest.raises(ParseError) as excinfo:
            list(IterableSource(["1", "x"], partition_id="mem", parser=float))

        assert excinfo.value.line_number == 2


class TestColumnSource:
    """Tests for polars-backed columnar partitions."""

    def test_parquet_column(self, tmp_path):
        path = tmp_path / "part.parquet"
        pl.DataFrame({"latency": [1.0, 2.0, 3.0], "host": ["a", "b", "c"]}).write_parquet(path)

        source = ColumnSource(path, "latency", batch_size=2)

        assert list(source) == [1.0, 2.0, 3.0]
        assert source.stats["values_read"] == 3

    def test_integer_column_cast_to_float(self, tmp_path):
        path = tmp_path / "part.parquet"
        pl.DataFrame({"n": [1, 2]}).write_parquet(path)

        values = list(ColumnSource(path, "n"))

        assert values == [1.0, 2.0]
        assert all(isinstance(v, float) for v in values)

    def test_csv_with_bad_value_skip(self, tmp_path):
        path = tmp_path / "part.csv"
        path.write_text("v\n1.5\noops\n2.5\n", encoding="utf-8")

        source = ColumnSource(path, "v", format=SourceFormat.CSV, parse_policy=ParsePolicy.SKIP)

        assert list(source) == [1.5, 2.5]
        assert source.stats["skipped"] == 1

    def test_csv_with_bad_value_abort(self, tmp_path):
        path = tmp_path / "part.csv"
        path.write_text("v\n1.5\noops\n", encoding="utf-8")

        with pytest.raises(ParseError) as excinfo:
            list(ColumnSource(path, "v", format="csv"))

        assert excinfo.value.value == "oops"
        assert excinfo.value.line_number == 2

    def test_csv_bad_value_after_many_numeric_rows_skip(self, late_bad_csv):
        """A bad value deep in the file only drops that row."""
        source = ColumnSource(late_bad_csv, "x", format="csv", parse_policy="skip")

        values = list(source)

        assert len(values) == 501
        assert values[-1] == 1.0
        assert source.stats == {"values_read": 501, "skipped": 1}

    def test_csv_bad_value_after_many_numeric_rows_abort(self, late_bad_csv):
        with pytest.raises(ParseError) as excinfo:
            list(ColumnSource(late_bad_csv, "x", format="csv"))

        assert excinfo.value.value == "oops"
        assert excinfo.value.line_number == 501

    def test_ndjson_bad_value_after_many_numeric_rows_skip(self, late_bad_ndjson):
        source = ColumnSource(late_bad_ndjson, "x", format="ndjson", parse_policy="skip")

        values = list(source)

        assert len(values) == 301
        assert values[:3] == [0.0, 1.0, 2.0]
        assert values[-1] == 7.5
        assert source.stats["skipped"] == 1

    def test_ndjson_bad_value_after_many_numeric_rows_abort(self, late_bad_ndjson):
        with pytest.raises(ParseError) as excinfo:
            list(ColumnSource(late_bad_ndjson, "x", format="ndjson"))

        assert excinfo.value.value == "oops"
        assert excinfo.value.line_number == 301

    def test_null_is_parse_failure(self, tmp_path):
        path = tmp_path / "part.parquet"
        pl.DataFrame({"v": [1.0, None, 2.0]}).write_parquet(path)

        source = ColumnSource(path, "v", parse_policy="skip")

        assert list(source) == [1.0, 2.0]
        assert source.stats["skipped"] == 1

    def test_ndjson(self, tmp_path):
        path = tmp_path / "part.ndjson"
        path.write_text('{"v": 1.0}\n{"v": 4.0}\n', encoding="utf-8")

        assert list(ColumnSource(path, "v", format="ndjson")) == [1.0, 4.0]

    def test_missing_column(self, tmp_path):
        path = tmp_path / "part.parquet"
        pl.DataFrame({"v": [1.0]}).write_parquet(path)

        with pytest.raises(PartitionReadError):
            list(ColumnSource(path, "nope"))

    def test_missing_file(self, tmp_path):
        with pytest.raises(PartitionReadError):
            list(ColumnSource(tmp_path / "none.parquet", "v"))

    def test_text_format_rejected(self, tmp_path):
        with pytest.raises(ValueError):
            ColumnSource(tmp_path / "x.txt", "v", format="text")


class TestMakeSource:

    def test_text(self, text_file):
        assert isinstance(make_source(text_file), TextLineSource)

    def test_columnar_requires_column(self, tmp_path):
        with pytest.raises(ValueError):
            make_source(tmp_path / "x.parquet", format=SourceFormat.PARQUET)

    def test_columnar(self, tmp_path):
        source = make_source(tmp_path / "x.csv", format="csv", column="v", root=tmp_path)

        assert isinstance(source, ColumnSource)
        assert source.partition_id == "x.csv"
