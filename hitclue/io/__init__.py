"""I/O utilities for hitclue.

Provides logging helpers and CSV loading/writing of hit collections.
"""

from .logging import get_logger, get_timestamped_log_path, log_json, log_yaml
from .csv import (
    HIT_COLUMNS,
    ensure_output_dir,
    load_hits,
    split_events,
    write_dataframe,
)

__all__ = [
    # Logging
    "get_logger",
    "get_timestamped_log_path",
    "log_json",
    "log_yaml",
    # CSV I/O
    "HIT_COLUMNS",
    "ensure_output_dir",
    "load_hits",
    "split_events",
    "write_dataframe",
]
