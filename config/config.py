"""Configuration management for streamstats."""
import os
import yaml
from pathlib import Path
from typing import Optional, Literal, TYPE_CHECKING
from pydantic import BaseModel, Field, field_validator

if TYPE_CHECKING:
    from streamstats.parallel.reducer import ParallelReducer


class SourceConfig(BaseModel):
    """How partition files are found and parsed."""
    format: Literal["text", "parquet", "csv", "ndjson"] = Field(
        default="text",
        description="Partition file format. 'text' is one value per line; the others read `column` with polars."
    )
    column: Optional[str] = Field(
        default=None,
        description="Numeric column to read (required for parquet, csv, ndjson)"
    )
    pattern: str = Field(default="*.txt", description="Glob pattern for partition files")
    recursive: bool = Field(default=True, description="Search subdirectories for partitions")
    parse_policy: Literal["abort", "skip"] = Field(
        default="abort",
        description=(
            "What to do with an unparseable value. 'abort' fails the partition "
            "with a ParseError; 'skip' logs and counts it."
        )
    )
    batch_size: int = Field(default=10_000, description="Rows per slice when walking columnar files")
    max_logged_errors: int = Field(default=100, description="Skipped values logged per partition before suppressing")


class ReducerConfig(BaseModel):
    """Parallel reducer settings."""
    aggregates: list[str] = Field(
        default_factory=lambda: ["mean", "variance", "min", "max", "percentile"],
        description="Registry names of the aggregates computed for every partition"
    )
    max_workers: Optional[int] = Field(
        default=4,
        description="Worker threads. 1 runs partitions sequentially; null lets the executor decide."
    )

    @field_validator("max_workers")
    @classmethod
    def _positive_workers(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError("max_workers must be >= 1")
        return v


class PercentileConfig(BaseModel):
    """Percentiles reported for the 'percentile' aggregate."""
    percentiles: list[float] = Field(default_factory=lambda: [0, 25, 50, 75, 90, 99, 100])

    @field_validator("percentiles")
    @classmethod
    def _within_range(cls, v: list[float]) -> list[float]:
        bad = [p for p in v if not 0 <= p <= 100]
        if bad:
            raise ValueError(f"percentiles must be within [0, 100], got {bad}")
        return v


class StreamStatsConfig(BaseModel):
    """Root configuration for streamstats."""
    source: SourceConfig = Field(default_factory=SourceConfig)
    reducer: ReducerConfig = Field(default_factory=ReducerConfig)
    percentiles: PercentileConfig = Field(default_factory=PercentileConfig)

    # Logging
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    def to_reducer(self, show_progress: bool = False) -> "ParallelReducer":
        """
        Build a ParallelReducer from the reducer settings.

        Returns:
            ParallelReducer computing the configured aggregates.
        """
        from streamstats.parallel.reducer import ParallelReducer

        return ParallelReducer(
            self.reducer.aggregates,
            max_workers=self.reducer.max_workers,
            show_progress=show_progress,
        )

    def source_options(self) -> dict:
        """
        Keyword arguments for streamstats.stream.sources.make_source().
        """
        from streamstats.core.enums import ParsePolicy, SourceFormat

        return {
            "format": SourceFormat(self.source.format),
            "column": self.source.column,
            "parse_policy": ParsePolicy(self.source.parse_policy),
            "max_logged_errors": self.source.max_logged_errors,
            "batch_size": self.source.batch_size,
        }


def load_config(config_path: Optional[str] = None) -> StreamStatsConfig:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to config file. If None, looks for:
            1. STREAMSTATS_CONFIG environment variable
            2. ./config/config.yaml
            3. ~/.streamstats/config.yaml

    Returns:
        StreamStatsConfig instance

    Raises:
        FileNotFoundError: If no config file can be found
    """
    if config_path is None:
        config_path = os.environ.get("STREAMSTATS_CONFIG")

        if config_path is None:
            candidates = [
                Path("./config/config.yaml"),
                Path.home() / ".streamstats" / "config.yaml",
            ]
            for candidate in candidates:
                if candidate.exists():
                    config_path = str(candidate)
                    break

    if config_path is None:
        raise FileNotFoundError(
            "No config file found. Set STREAMSTATS_CONFIG or create config/config.yaml"
        )

    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r') as f:
        yaml_data = yaml.safe_load(f) or {}

    return StreamStatsConfig(**yaml_data)


def save_example_config(output_path: str = "./config/config.example.yaml") -> Path:
    """
    Save an example configuration file.

    Args:
        output_path: Where to save the example config

    Returns:
        Path of the written file
    """
    example = {
        "source": {
            "format": "text",
            "pattern": "*.txt",
            "recursive": True,
            "parse_policy": "abort",
        },
        "reducer": {
            "aggregates": ["mean", "variance", "min", "max", "percentile"],
            "max_workers": 4,
        },
        "percentiles": {
            "percentiles": [0, 25, 50, 75, 90, 99, 100],
        },
        "log_level": "INFO",
    }

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w') as f:
        yaml.dump(example, f, default_flow_style=False, sort_keys=False)

    return output_path
