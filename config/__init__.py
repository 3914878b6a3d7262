"""Config package."""
from .config import StreamStatsConfig, load_config, save_example_config

__all__ = ["StreamStatsConfig", "load_config", "save_example_config"]
