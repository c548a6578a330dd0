"""Tabular diagnostic dump of clustering results.

The dump mirrors the per-hit arrays of a PointSet. Infinite ``delta`` is
shown as a fixed display value; the PointSet itself is never modified.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional, Sequence, TextIO, Union

import numpy as np
import pandas as pd

from ...io.csv import write_dataframe
from .points import PointSet

logger = logging.getLogger(__name__)

DELTA_DISPLAY_MAX = 999.0
CONSOLE_SINKS = ("cout", "-")

RESULT_COLUMNS = [
    "index",
    "x",
    "y",
    "layer",
    "weight",
    "rho",
    "delta",
    "nh",
    "isSeed",
    "clusterId",
]


def results_to_frame(
    points: PointSet,
    hit_ids: Optional[Sequence[int]] = None,
    n_verbose: int = -1,
) -> pd.DataFrame:
    """Build the diagnostic table for the first ``n_verbose`` hits.

    Parameters
    ----------
    points : PointSet
        Clustered hits
    hit_ids : Sequence[int], optional
        External hit ids aligned with the retained hits; adds a
        ``rechit_id`` column after ``index``
    n_verbose : int
        Number of rows to include; -1 includes every hit

    Returns
    -------
    pd.DataFrame
        Columns ``index[, rechit_id], x, y, layer, weight, rho, delta, nh,
        isSeed, clusterId``

    Raises
    ------
    ValueError
        If ``hit_ids`` is not aligned with the retained hits
    """
    n = points.n if n_verbose < 0 else min(n_verbose, points.n)
    rows = slice(0, n)

    delta = np.where(points.delta <= DELTA_DISPLAY_MAX, points.delta, DELTA_DISPLAY_MAX)
    df = pd.DataFrame({
        "index": np.arange(n, dtype=np.int64),
        "x": points.x[rows],
        "y": points.y[rows],
        "layer": points.layer[rows],
        "weight": points.weight[rows],
        "rho": points.rho[rows],
        "delta": delta[rows],
        "nh": points.nearest_higher[rows],
        "isSeed": points.seed_state[rows].astype(np.int64),
        "clusterId": points.cluster_index[rows],
    })

    if hit_ids is not None:
        hit_ids = np.asarray(hit_ids)
        if len(hit_ids) != points.n:
            raise ValueError(
                f"hit_ids has {len(hit_ids)} entries but {points.n} hits were retained"
            )
        df.insert(1, "rechit_id", hit_ids[rows])

    return df


def write_results(
    df: pd.DataFrame,
    output: Union[str, Path, None] = None,
    stream: Optional[TextIO] = None,
) -> Optional[Path]:
    """Write the diagnostic table to the console or a CSV file.

    Parameters
    ----------
    df : pd.DataFrame
        Table from :func:`results_to_frame`
    output : str or Path, optional
        CSV path. None, "cout" or "-" write to ``stream``.
    stream : TextIO, optional
        Console sink (default: sys.stdout)

    Returns
    -------
    Path or None
        Output path when written to a file
    """
    if output is None or str(output) in CONSOLE_SINKS:
        df.to_csv(stream or sys.stdout, index=False)
        return None

    path = write_dataframe(df, output)
    logger.info("Wrote %d result rows to %s", len(df), path)
    return path
