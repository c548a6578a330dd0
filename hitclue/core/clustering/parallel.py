"""Parallel execution of per-layer passes.

Layers never interact in the density or nearest-higher passes, so each
layer is an independent work item. Workers only read the PointSet and the
tile index and return their layer's values; the caller writes them back
after every layer has finished.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, List, Sequence, Tuple

import numpy as np
from joblib import Parallel, delayed

from .points import PointSet

logger = logging.getLogger(__name__)

LayerFunc = Callable[[int, np.ndarray], Any]


def _run_layer(func: LayerFunc, layer: int, indices: np.ndarray) -> Tuple[np.ndarray, Any]:
    return indices, func(layer, indices)


def run_per_layer(
    func: LayerFunc,
    points: PointSet,
    layers: Sequence[int],
    n_jobs: int = 1,
    batch_size: Any = "auto",
) -> List[Tuple[np.ndarray, Any]]:
    """Apply ``func(layer, indices)`` to every layer.

    Parameters
    ----------
    func : Callable
        Per-layer computation; receives the layer id and the ascending
        PointSet indices of its hits
    points : PointSet
        Hits of the event
    layers : Sequence[int]
        Layers to process
    n_jobs : int
        Number of threads (1 runs sequentially, -1 uses all cores)
    batch_size : int or "auto"
        Batch size for joblib

    Returns
    -------
    List[Tuple[np.ndarray, Any]]
        ``(indices, result)`` per layer, in the order of ``layers``
    """
    work = [(int(layer), points.layer_indices(layer)) for layer in layers]

    if n_jobs == 1 or len(work) <= 1:
        return [_run_layer(func, layer, idx) for layer, idx in work]

    logger.debug("Running %d layers on %s threads", len(work), n_jobs)
    # Threads share the read-only PointSet and tile grids without copying
    return Parallel(n_jobs=n_jobs, prefer="threads", batch_size=batch_size, verbose=0)(
        delayed(_run_layer)(func, layer, idx) for layer, idx in work
    )
