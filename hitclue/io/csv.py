"""CSV I/O utilities for hitclue.

Provides functions for loading hit collections and writing result tables.
A hit table has one row per hit with columns ``x, y, layer, weight`` and,
optionally, ``hit_id`` and ``event``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator, List, Optional, Tuple, Union

import pandas as pd

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

HIT_COLUMNS = ["x", "y", "layer", "weight"]
DEFAULT_EVENT_COLUMN = "event"


def ensure_output_dir(path: PathLike) -> Path:
    """Create the directory at path if it does not exist and return it."""
    directory = Path(path)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def _validate_hit_columns(
    df: pd.DataFrame,
    path: PathLike,
    required_columns: Optional[List[str]] = None,
) -> None:
    """Validate that a hit table has every required column.

    Raises
    ------
    ValueError
        If any required columns are missing.
    """
    if required_columns is None:
        required_columns = HIT_COLUMNS
    missing = [col for col in required_columns if col not in df.columns]
    if missing:
        raise ValueError(f"Hit table {path} missing columns: {missing}")


def load_hits(
    path: PathLike,
    required_columns: Optional[List[str]] = None,
) -> pd.DataFrame:
    """Read a hit collection from CSV.

    Parameters
    ----------
    path : PathLike
        Path to the hit CSV file.
    required_columns : List[str], optional
        Columns that must be present. Defaults to HIT_COLUMNS.

    Returns
    -------
    pd.DataFrame
        Hit table with coordinates and weights as floats. ``layer`` keeps
        its parsed dtype; non-integral ids are rejected when the hits are
        loaded into a PointSet.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If required columns are missing.
    """
    csv_path = Path(path)
    if not csv_path.exists():
        raise FileNotFoundError(f"Hit table not found: {csv_path}")
    df = pd.read_csv(csv_path)
    _validate_hit_columns(df, csv_path, required_columns)

    for col in ("x", "y", "weight"):
        if col in df.columns:
            df[col] = df[col].astype(float)

    logger.info("Loaded %d hits from %s", len(df), csv_path)
    return df


def split_events(
    df: pd.DataFrame,
    event_column: str = DEFAULT_EVENT_COLUMN,
) -> Iterator[Tuple[int, pd.DataFrame]]:
    """Yield ``(event_id, hits)`` per event, in ascending event order.

    A table without ``event_column`` is treated as a single event 0.
    """
    if event_column not in df.columns:
        yield 0, df
        return
    for event_id, group in df.groupby(event_column, sort=True):
        yield int(event_id), group.reset_index(drop=True)


def write_dataframe(df: pd.DataFrame, path: PathLike, *, index: bool = False) -> Path:
    """Write DataFrame to path ensuring the parent directory exists."""
    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(output_path, index=index)
    return output_path
