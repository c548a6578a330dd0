"""Clustering engine for layered detector hits.

Runs CLUE on one event at a time: noise cut, per-layer tile index, local
density, nearest higher, seed/outlier/follower classification and cluster
propagation.
"""

import copy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Union
import logging
import time

import numpy as np
import pandas as pd

from .config import ClueRunConfig
from .export import results_to_frame, write_results
from .noise import NoiseModel
from .passes import (
    assign_clusters,
    build_follower_forest,
    check_forest_invariant,
    classify,
    compute_local_density,
    compute_nearest_higher,
)
from .points import PointSet, SeedState
from .tiles import LayerTileIndex


@dataclass
class ClusteringResult:
    """Result from clustering one event.

    Attributes
    ----------
    n_input : int
        Raw hits before the noise cut
    n_points : int
        Hits retained after the noise cut
    n_clusters : int
        Number of clusters (equals the number of seeds)
    n_seeds : int
        Hits classified as seeds
    n_followers : int
        Hits classified as followers
    n_outliers : int
        Hits classified as outliers, including relabelled followers
    n_relabelled : int
        Followers relabelled as outliers because their chain ended at one
    cluster_sizes : Dict[int, int]
        Map of cluster id to hit count
    timings : Dict[str, float]
        Seconds spent in each pass
    points : PointSet
        The clustered PointSet
    """

    n_input: int = 0
    n_points: int = 0
    n_clusters: int = 0
    n_seeds: int = 0
    n_followers: int = 0
    n_outliers: int = 0
    n_relabelled: int = 0
    cluster_sizes: Dict[int, int] = field(default_factory=dict)
    timings: Dict[str, float] = field(default_factory=dict)
    points: Optional[PointSet] = field(default=None, repr=False)

    @property
    def n_dropped(self) -> int:
        return self.n_input - self.n_points

    def summary_dict(self) -> Dict[str, Any]:
        """Return summary dictionary for JSON export."""
        return {
            "n_input": self.n_input,
            "n_points": self.n_points,
            "n_dropped": self.n_dropped,
            "n_clusters": self.n_clusters,
            "n_seeds": self.n_seeds,
            "n_followers": self.n_followers,
            "n_outliers": self.n_outliers,
            "n_relabelled": self.n_relabelled,
            "cluster_sizes": {str(k): v for k, v in self.cluster_sizes.items()},
            "timings": {k: round(v, 6) for k, v in self.timings.items()},
        }

    def to_frame(self, with_hit_id: bool = False) -> pd.DataFrame:
        """Per-hit result table (see :func:`results_to_frame`)."""
        if self.points is None:
            raise ValueError("Result does not hold a PointSet")
        hit_ids = self.points.hit_id if with_hit_id else None
        return results_to_frame(self.points, hit_ids=hit_ids)


class ClusteringEngine:
    """CLUE clustering engine for hits on parallel 2D layers.

    Owns the PointSet of the current event. Each call to
    :meth:`set_points` replaces it, so no state carries over between events.
    The configuration is copied at construction; later changes to the
    caller's object do not reach the engine.

    Parameters
    ----------
    config : ClueRunConfig, optional
        Run configuration. If None, uses defaults.
    noise_model : NoiseModel, optional
        Noise-sigma model. If None, built from ``config.noise``.
    logger : logging.Logger, optional
        Logger instance. If None, uses the module logger.

    Raises
    ------
    ValueError
        If the configuration has out-of-range parameters

    Example
    -------
    >>> from hitclue.core.clustering import ClusteringEngine, ClueRunConfig
    >>> engine = ClusteringEngine(ClueRunConfig.default())
    >>> engine.set_points(x, y, layer, weight)
    >>> result = engine.make_clusters()
    >>> engine.get_hits_cluster_id()
    """

    def __init__(
        self,
        config: Optional[ClueRunConfig] = None,
        noise_model: Optional[NoiseModel] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = copy.deepcopy(config) if config is not None else ClueRunConfig()
        self.config.clue.validate().raise_if_invalid("clustering configuration")
        self.noise_model = noise_model or NoiseModel(self.config.noise)
        self.logger = logger or logging.getLogger(__name__)
        self.points = PointSet()

    @property
    def dc(self) -> float:
        return self.config.clue.dc

    @property
    def verbose(self) -> bool:
        return self.config.clue.verbose

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def set_points(
        self,
        x: Sequence[float],
        y: Sequence[float],
        layer: Sequence[int],
        weight: Sequence[float],
        hit_id: Optional[Sequence[int]] = None,
    ) -> PointSet:
        """Load the hits of a new event.

        Validation runs before anything is replaced; on failure the previous
        PointSet is kept.

        Parameters
        ----------
        x, y : Sequence[float]
            Hit coordinates
        layer : Sequence[int]
            Layer id per hit, in [0, n_layers)
        weight : Sequence[float]
            Signal weight per hit
        hit_id : Sequence[int], optional
            External hit ids carried through the noise cut

        Returns
        -------
        PointSet
            The new PointSet, holding only hits that pass the noise cut

        Raises
        ------
        ValueError
            If the arrays are misaligned, a layer is out of range or a value
            is not finite
        """
        cfg = self.config.clue
        self.points = PointSet.from_hits(
            x,
            y,
            layer,
            weight,
            ecut=cfg.ecut,
            n_layers=cfg.n_layers,
            noise_model=self.noise_model,
            hit_id=hit_id,
        )
        self.logger.info(
            "Loaded %d of %d hits after noise cut", self.points.n, self.points.n_input
        )
        return self.points

    def set_points_from_frame(self, hits: pd.DataFrame) -> PointSet:
        """Load hits from a table with columns x, y, layer, weight[, hit_id]."""
        missing = [c for c in ("x", "y", "layer", "weight") if c not in hits.columns]
        if missing:
            raise ValueError(f"Hit table missing columns: {missing}")
        hit_id = hits["hit_id"].to_numpy() if "hit_id" in hits.columns else None
        return self.set_points(
            hits["x"].to_numpy(),
            hits["y"].to_numpy(),
            hits["layer"].to_numpy(),
            hits["weight"].to_numpy(),
            hit_id=hit_id,
        )

    def clear_points(self) -> None:
        """Discard the current event's hits and results."""
        self.points = PointSet()

    # ------------------------------------------------------------------
    # Clustering
    # ------------------------------------------------------------------

    def make_clusters(self) -> ClusteringResult:
        """Cluster the current PointSet in place.

        Pipeline: tile index -> density -> nearest higher -> classify ->
        propagate. Each step completes on every hit before the next starts.

        Returns
        -------
        ClusteringResult
            Cluster statistics and a snapshot of the clustered PointSet

        Raises
        ------
        ValueError
            If ``self.config`` was changed to out-of-range parameters; the
            current PointSet is left untouched
        """
        cfg = self.config.clue
        cfg.validate().raise_if_invalid("clustering configuration")
        points = self.points
        points.reset_outputs()
        timings: Dict[str, float] = {}

        t0 = time.perf_counter()
        index = LayerTileIndex.build(points, cfg.effective_tile_size, cfg.n_layers)
        timings["tiles"] = time.perf_counter() - t0

        t0 = time.perf_counter()
        compute_local_density(points, index, cfg.dc, n_jobs=cfg.n_jobs)
        timings["density"] = time.perf_counter() - t0

        t0 = time.perf_counter()
        compute_nearest_higher(
            points, index, cfg.dc, cfg.outlier_delta_factor, n_jobs=cfg.n_jobs
        )
        timings["nearest_higher"] = time.perf_counter() - t0

        t0 = time.perf_counter()
        classify(points, cfg.dc, cfg.kappa, cfg.outlier_delta_factor, self.noise_model)
        timings["classify"] = time.perf_counter() - t0

        t0 = time.perf_counter()
        n_clusters, n_relabelled = assign_clusters(points, build_follower_forest(points))
        timings["propagate"] = time.perf_counter() - t0

        if cfg.check_forest:
            check_forest_invariant(points)

        for step, seconds in timings.items():
            self.logger.debug("--- %s: %.6f s", step, seconds)

        result = ClusteringResult(
            n_input=points.n_input,
            n_points=points.n,
            n_clusters=n_clusters,
            n_seeds=int(points.mask(SeedState.SEED).sum()),
            n_followers=int(points.mask(SeedState.FOLLOWER).sum()),
            n_outliers=int(points.mask(SeedState.OUTLIER).sum()),
            n_relabelled=n_relabelled,
            cluster_sizes=points.cluster_sizes(),
            timings=timings,
            points=points.copy(),
        )
        self.logger.info(
            "Found %d clusters in %d hits (%d outliers, %d layers)",
            result.n_clusters,
            result.n_points,
            result.n_outliers,
            len(index),
        )
        return result

    def run(
        self,
        x: Sequence[float],
        y: Sequence[float],
        layer: Sequence[int],
        weight: Sequence[float],
        hit_id: Optional[Sequence[int]] = None,
    ) -> ClusteringResult:
        """Load one event and cluster it."""
        self.set_points(x, y, layer, weight, hit_id=hit_id)
        return self.make_clusters()

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def get_hits_cluster_x(self) -> np.ndarray:
        return self.points.x.copy()

    def get_hits_cluster_y(self) -> np.ndarray:
        return self.points.y.copy()

    def get_hits_weight(self) -> np.ndarray:
        return self.points.weight.copy()

    def get_hits_cluster_id(self) -> np.ndarray:
        return self.points.cluster_index.copy()

    def get_hits_layer_id(self) -> np.ndarray:
        return self.points.layer.copy()

    def results_frame(
        self,
        hit_ids: Optional[Sequence[int]] = None,
        n_verbose: int = -1,
    ) -> pd.DataFrame:
        """Diagnostic table of the current PointSet."""
        return results_to_frame(self.points, hit_ids=hit_ids, n_verbose=n_verbose)

    def verbose_results(
        self,
        output: Union[str, Path, None] = None,
        hit_ids: Optional[Sequence[int]] = None,
        n_verbose: int = -1,
    ) -> Optional[pd.DataFrame]:
        """Dump per-hit results when the engine is verbose.

        Parameters
        ----------
        output : str or Path, optional
            CSV path; None or "cout" prints to stdout
        hit_ids : Sequence[int], optional
            External hit ids aligned with the retained hits
        n_verbose : int
            Number of rows to dump; -1 dumps every hit

        Returns
        -------
        pd.DataFrame or None
            The dumped table, or None when verbose output is disabled
        """
        if not self.verbose:
            return None
        df = self.results_frame(hit_ids=hit_ids, n_verbose=n_verbose)
        write_results(df, output)
        return df
