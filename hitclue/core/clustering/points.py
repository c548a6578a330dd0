"""PointSet: per-event hit data model and algorithm outputs.

All per-hit quantities are stored as index-aligned numpy arrays, so that
``points.rho[i]`` and ``points.x[i]`` always describe the same hit.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, Optional, Sequence

import numpy as np

from .noise import NoiseModel, energy_cut_mask
from .validation import (
    LayerOutOfRangeError,
    LengthMismatchError,
    NonFiniteValueError,
    ValidationResult,
)

logger = logging.getLogger(__name__)

NO_HIGHER = -1
UNCLUSTERED = -1


class SeedState(IntEnum):
    """Classification of a hit after the classification pass."""

    UNDETERMINED = -1
    FOLLOWER = 0
    SEED = 1
    OUTLIER = 2


def validate_hits(
    x: np.ndarray,
    y: np.ndarray,
    layer: np.ndarray,
    weight: np.ndarray,
    n_layers: int,
) -> ValidationResult:
    """Check raw hit arrays before they enter a PointSet.

    Parameters
    ----------
    x, y : np.ndarray
        Hit coordinates
    layer : np.ndarray
        Layer id per hit
    weight : np.ndarray
        Weight per hit
    n_layers : int
        Number of layers; valid ids are [0, n_layers)

    Returns
    -------
    ValidationResult
        Errors for mismatched lengths, bad layers and non-finite values
    """
    result = ValidationResult()
    lengths = {"x": len(x), "y": len(y), "layer": len(layer), "weight": len(weight)}
    if len(set(lengths.values())) > 1:
        result.add_error(
            LengthMismatchError(
                message="Hit arrays have mismatched lengths",
                expected="equal lengths",
                found=lengths,
                lengths=lengths,
            )
        )
        # Per-hit checks are meaningless without alignment
        return result

    for name, values in (("x", x), ("y", y), ("weight", weight)):
        bad = np.flatnonzero(~np.isfinite(values))
        if bad.size:
            result.add_error(
                NonFiniteValueError(
                    message=f"Non-finite value in '{name}' at hit {int(bad[0])}",
                    expected="finite floats",
                    found=values[bad[0]],
                    column_name=name,
                    hit_index=int(bad[0]),
                    context={"n_bad": int(bad.size)},
                )
            )

    layer_f = np.asarray(layer, dtype=np.float64)
    bad = np.flatnonzero(
        ~np.isfinite(layer_f)
        | (layer_f < 0)
        | (layer_f >= n_layers)
        | (layer_f != np.floor(layer_f))
    )
    if bad.size:
        first = int(bad[0])
        result.add_error(
            LayerOutOfRangeError(
                message=f"Layer id out of range at hit {first}",
                expected=f"integer in [0, {n_layers})",
                found=layer[first],
                hit_index=first,
                n_bad=int(bad.size),
            )
        )
    return result


@dataclass
class PointSet:
    """Filtered hits of one event plus the per-hit clustering outputs.

    Attributes
    ----------
    x, y : np.ndarray
        Hit coordinates (float64)
    layer : np.ndarray
        Layer id (int64)
    weight : np.ndarray
        Signal weight (float64)
    rho : np.ndarray
        Local density, 0 until the density pass
    delta : np.ndarray
        Distance to the nearest higher-density hit; inf when there is none
    nearest_higher : np.ndarray
        Index of the nearest higher-density hit, or NO_HIGHER
    seed_state : np.ndarray
        SeedState value per hit (int8)
    cluster_index : np.ndarray
        Cluster id, or UNCLUSTERED
    hit_id : np.ndarray
        Position of each retained hit in the raw input
    n_input : int
        Number of raw hits before the noise cut
    """

    x: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=np.float64))
    y: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=np.float64))
    layer: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=np.int64))
    weight: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=np.float64))
    rho: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=np.float64))
    delta: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=np.float64))
    nearest_higher: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=np.int64))
    seed_state: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=np.int8))
    cluster_index: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=np.int64))
    hit_id: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=np.int64))
    n_input: int = 0

    def __post_init__(self):
        lengths = {len(self.x), len(self.y), len(self.layer), len(self.weight)}
        if len(lengths) != 1:
            raise ValueError("PointSet input arrays must have identical lengths")
        n = len(self.x)
        if len(self.rho) != n:
            self.reset_outputs()
        if len(self.hit_id) != n:
            self.hit_id = np.arange(n, dtype=np.int64)
        if self.n_input < n:
            self.n_input = n

    @classmethod
    def from_hits(
        cls,
        x: Sequence[float],
        y: Sequence[float],
        layer: Sequence[int],
        weight: Sequence[float],
        ecut: float = 0.0,
        n_layers: int = 100,
        noise_model: Optional[NoiseModel] = None,
        hit_id: Optional[Sequence[int]] = None,
    ) -> "PointSet":
        """Validate raw hits, apply the noise cut and build a PointSet.

        Parameters
        ----------
        x, y : Sequence[float]
            Hit coordinates
        layer : Sequence[int]
            Layer id per hit
        weight : Sequence[float]
            Weight per hit
        ecut : float
            Noise-cut multiplier
        n_layers : int
            Number of layers
        noise_model : NoiseModel, optional
            Model providing sigma for the noise cut
        hit_id : Sequence[int], optional
            External hit ids. Defaults to the raw input position.

        Returns
        -------
        PointSet
            Fresh PointSet holding only hits that pass the noise cut

        Raises
        ------
        ValueError
            If the input fails validation; nothing is built in that case
        """
        x = np.asarray(x, dtype=np.float64).ravel()
        y = np.asarray(y, dtype=np.float64).ravel()
        layer_raw = np.asarray(layer).ravel()
        weight = np.asarray(weight, dtype=np.float64).ravel()

        validate_hits(x, y, layer_raw, weight, n_layers).raise_if_invalid("hit input")

        ids = (
            np.arange(len(x), dtype=np.int64)
            if hit_id is None
            else np.asarray(hit_id, dtype=np.int64).ravel()
        )
        if len(ids) != len(x):
            result = ValidationResult()
            lengths = {"x": len(x), "hit_id": len(ids)}
            result.add_error(
                LengthMismatchError(
                    message="hit_id length does not match the hit arrays",
                    expected="equal lengths",
                    found=lengths,
                    lengths=lengths,
                )
            )
            result.raise_if_invalid("hit input")

        layer_arr = layer_raw.astype(np.int64)
        keep = energy_cut_mask(layer_arr, weight, ecut, noise_model)
        n_dropped = int(len(keep) - keep.sum())
        if n_dropped:
            logger.info(
                "Noise cut (ecut=%.3f) dropped %d of %d hits", ecut, n_dropped, len(keep)
            )

        return cls(
            x=x[keep],
            y=y[keep],
            layer=layer_arr[keep],
            weight=weight[keep],
            hit_id=ids[keep],
            n_input=len(keep),
        )

    @property
    def n(self) -> int:
        return len(self.x)

    @property
    def n_dropped(self) -> int:
        return self.n_input - self.n

    @property
    def has_higher(self) -> np.ndarray:
        """Mask of hits with a defined nearest higher-density neighbour."""
        return self.nearest_higher != NO_HIGHER

    def reset_outputs(self) -> None:
        """Reset every algorithm output to its initial value."""
        n = self.n
        self.rho = np.zeros(n, dtype=np.float64)
        self.delta = np.full(n, math.inf, dtype=np.float64)
        self.nearest_higher = np.full(n, NO_HIGHER, dtype=np.int64)
        self.seed_state = np.full(n, SeedState.UNDETERMINED, dtype=np.int8)
        self.cluster_index = np.full(n, UNCLUSTERED, dtype=np.int64)

    def copy(self) -> "PointSet":
        """Independent copy of every input and output array."""
        return PointSet(
            x=self.x.copy(),
            y=self.y.copy(),
            layer=self.layer.copy(),
            weight=self.weight.copy(),
            rho=self.rho.copy(),
            delta=self.delta.copy(),
            nearest_higher=self.nearest_higher.copy(),
            seed_state=self.seed_state.copy(),
            cluster_index=self.cluster_index.copy(),
            hit_id=self.hit_id.copy(),
            n_input=self.n_input,
        )

    def clear(self) -> None:
        """Drop every hit, leaving an empty PointSet."""
        self.x = np.empty(0, dtype=np.float64)
        self.y = np.empty(0, dtype=np.float64)
        self.layer = np.empty(0, dtype=np.int64)
        self.weight = np.empty(0, dtype=np.float64)
        self.hit_id = np.empty(0, dtype=np.int64)
        self.n_input = 0
        self.reset_outputs()

    def layers_present(self) -> np.ndarray:
        """Sorted unique layer ids with at least one hit."""
        return np.unique(self.layer)

    def layer_indices(self, layer: int) -> np.ndarray:
        """Indices of the hits on ``layer`` in ascending order."""
        return np.flatnonzero(self.layer == layer)

    def distance(self, i: int, j: int) -> float:
        """Planar Euclidean distance between hits i and j."""
        return math.hypot(self.x[i] - self.x[j], self.y[i] - self.y[j])

    def mask(self, state: SeedState) -> np.ndarray:
        return self.seed_state == state

    def cluster_sizes(self) -> Dict[int, int]:
        """Map of cluster id to number of hits."""
        labels = self.cluster_index[self.cluster_index != UNCLUSTERED]
        ids, counts = np.unique(labels, return_counts=True)
        return {int(k): int(v) for k, v in zip(ids, counts)}
