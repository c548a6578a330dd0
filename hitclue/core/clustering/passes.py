"""The CLUE passes: local density, nearest higher, classification, propagation.

Each pass is a plain function over a PointSet and returns only once every
hit has been processed, so the order of calls is the barrier between passes:

    compute_local_density -> compute_nearest_higher -> classify
    -> build_follower_forest -> assign_clusters
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from .noise import NoiseModel
from .parallel import run_per_layer
from .points import NO_HIGHER, UNCLUSTERED, PointSet, SeedState
from .tiles import LayerTileIndex, LayerTiles

logger = logging.getLogger(__name__)


# ============================================================================
# Local density
# ============================================================================


def layer_density(
    points: PointSet,
    tiles: LayerTiles,
    indices: np.ndarray,
    dc: float,
) -> np.ndarray:
    """Flat-kernel density of the hits ``indices`` of one layer.

    Returns
    -------
    np.ndarray
        ``rho`` aligned with ``indices``; each value includes the hit's own
        weight since a hit is at distance 0 from itself
    """
    rho = np.zeros(len(indices), dtype=np.float64)
    for k, i in enumerate(indices):
        neighbours = tiles.query(points.x[i], points.y[i], dc)
        rho[k] = points.weight[neighbours].sum()
    return rho


def compute_local_density(
    points: PointSet,
    index: LayerTileIndex,
    dc: float,
    n_jobs: int = 1,
) -> np.ndarray:
    """Fill ``points.rho`` for every hit.

    Parameters
    ----------
    points : PointSet
        Hits of the event (modified in place)
    index : LayerTileIndex
        Tile grids built from ``points``
    dc : float
        Critical distance
    n_jobs : int
        Workers for the per-layer loop

    Returns
    -------
    np.ndarray
        The completed ``rho`` array
    """
    layers = list(index)
    results = run_per_layer(
        lambda layer, idx: layer_density(points, index[layer], idx, dc),
        points,
        layers,
        n_jobs=n_jobs,
    )
    for idx, rho in results:
        points.rho[idx] = rho
    return points.rho


# ============================================================================
# Nearest higher
# ============================================================================


def layer_nearest_higher(
    points: PointSet,
    tiles: LayerTiles,
    indices: np.ndarray,
    search_radius: float,
) -> Tuple[np.ndarray, np.ndarray]:
    """Nearest denser hit within ``search_radius`` for one layer.

    Density is compared as the pair (rho, -index): a hit with equal rho and a
    smaller index counts as denser, which keeps the relation a strict total
    order. Equidistant candidates are resolved in favour of the smallest index.

    Returns
    -------
    Tuple[np.ndarray, np.ndarray]
        ``delta`` and ``nearest_higher`` aligned with ``indices``; hits
        without a denser neighbour keep ``inf`` and NO_HIGHER
    """
    delta = np.full(len(indices), math.inf, dtype=np.float64)
    nearest = np.full(len(indices), NO_HIGHER, dtype=np.int64)
    rho = points.rho
    for k, i in enumerate(indices):
        neighbours, dist = tiles.query(
            points.x[i], points.y[i], search_radius, return_distance=True
        )
        higher = (rho[neighbours] > rho[i]) | ((rho[neighbours] == rho[i]) & (neighbours < i))
        if not higher.any():
            continue
        candidates = neighbours[higher]
        cand_dist = dist[higher]
        best = np.lexsort((candidates, cand_dist))[0]
        delta[k] = cand_dist[best]
        nearest[k] = candidates[best]
    return delta, nearest


def compute_nearest_higher(
    points: PointSet,
    index: LayerTileIndex,
    dc: float,
    outlier_delta_factor: float,
    n_jobs: int = 1,
) -> None:
    """Fill ``points.delta`` and ``points.nearest_higher`` for every hit.

    Requires the final ``rho`` of every hit.
    """
    search_radius = outlier_delta_factor * dc
    layers = list(index)
    results = run_per_layer(
        lambda layer, idx: layer_nearest_higher(points, index[layer], idx, search_radius),
        points,
        layers,
        n_jobs=n_jobs,
    )
    for idx, (delta, nearest) in results:
        points.delta[idx] = delta
        points.nearest_higher[idx] = nearest


# ============================================================================
# Classification
# ============================================================================


def classify(
    points: PointSet,
    dc: float,
    kappa: float,
    outlier_delta_factor: float,
    noise_model: Optional[NoiseModel] = None,
) -> np.ndarray:
    """Label every hit as seed, outlier or follower.

    Parameters
    ----------
    points : PointSet
        Hits with final ``rho``, ``delta`` and ``nearest_higher``
    dc : float
        Critical distance
    kappa : float
        Critical-density multiplier
    outlier_delta_factor : float
        Outlier distance threshold in units of dc
    noise_model : NoiseModel, optional
        Model providing sigma for the critical density

    Returns
    -------
    np.ndarray
        ``points.seed_state`` after classification
    """
    noise_model = noise_model or NoiseModel()
    rho_c = noise_model.critical_density(points.layer, points.weight, kappa)
    has_higher = points.has_higher

    dense = points.rho >= rho_c
    isolated_dc = ~has_higher | (points.delta > dc)
    isolated_dm = ~has_higher | (points.delta > outlier_delta_factor * dc)

    is_seed = dense & isolated_dc
    is_outlier = ~dense & isolated_dm
    is_follower = ~(is_seed | is_outlier)

    if not has_higher[is_follower].all():
        bad = int(np.flatnonzero(is_follower & ~has_higher)[0])
        raise AssertionError(f"Follower hit {bad} has no nearest higher neighbour")

    points.seed_state[is_seed] = SeedState.SEED
    points.seed_state[is_outlier] = SeedState.OUTLIER
    points.seed_state[is_follower] = SeedState.FOLLOWER

    logger.debug(
        "Classified %d seeds, %d followers, %d outliers",
        int(is_seed.sum()),
        int(is_follower.sum()),
        int(is_outlier.sum()),
    )
    return points.seed_state


# ============================================================================
# Propagation
# ============================================================================


@dataclass
class FollowerForest:
    """Parent to children adjacency of the follower relation (CSR layout).

    Attributes
    ----------
    offsets : np.ndarray
        ``children[offsets[i]:offsets[i + 1]]`` are the followers of hit i
    children : np.ndarray
        Follower indices grouped by parent, ascending within a parent
    """

    offsets: np.ndarray
    children: np.ndarray

    def followers(self, i: int) -> np.ndarray:
        return self.children[self.offsets[i]:self.offsets[i + 1]]

    @property
    def n_edges(self) -> int:
        return len(self.children)


def build_follower_forest(points: PointSet) -> FollowerForest:
    """Group every follower under its nearest higher hit in one scan."""
    followers = np.flatnonzero(points.seed_state == SeedState.FOLLOWER)
    parents = points.nearest_higher[followers]
    order = np.argsort(parents, kind="stable")
    counts = np.bincount(parents, minlength=points.n)
    offsets = np.zeros(points.n + 1, dtype=np.int64)
    np.cumsum(counts, out=offsets[1:])
    return FollowerForest(offsets=offsets, children=followers[order])


def assign_clusters(
    points: PointSet,
    forest: Optional[FollowerForest] = None,
) -> Tuple[int, int]:
    """Give each seed a cluster id and spread it to its transitive followers.

    Seeds are numbered 0..k-1 in ascending hit index. Followers whose chain
    ends at an outlier cannot reach a seed; they are relabelled as outliers
    and stay unclustered.

    Parameters
    ----------
    points : PointSet
        Classified hits (modified in place)
    forest : FollowerForest, optional
        Prebuilt adjacency. Built from ``points`` if None.

    Returns
    -------
    Tuple[int, int]
        Number of clusters, number of followers relabelled as outliers
    """
    if forest is None:
        forest = build_follower_forest(points)

    cluster_index = points.cluster_index
    cluster_index[:] = UNCLUSTERED
    seeds = np.flatnonzero(points.seed_state == SeedState.SEED)

    for cluster_id, seed in enumerate(seeds):
        cluster_index[seed] = cluster_id
        stack = [int(seed)]
        while stack:
            parent = stack.pop()
            for child in forest.followers(parent):
                assert cluster_index[child] == UNCLUSTERED, f"hit {child} reached twice"
                cluster_index[child] = cluster_id
                stack.append(int(child))

    orphans = (points.seed_state == SeedState.FOLLOWER) & (cluster_index == UNCLUSTERED)
    n_orphans = int(orphans.sum())
    if n_orphans:
        points.seed_state[orphans] = SeedState.OUTLIER
        logger.debug("Relabelled %d followers of outliers as outliers", n_orphans)

    return len(seeds), n_orphans


def check_forest_invariant(points: PointSet) -> None:
    """Verify that every non-outlier hit leads to a seed of its own cluster.

    Follows ``nearest_higher`` from all non-outlier hits at once for at most
    ``n`` steps.

    Raises
    ------
    AssertionError
        If a chain hits an outlier or an undefined parent, does not end at a
        seed within ``n`` steps, or ends at a seed of another cluster
    """
    state = points.seed_state
    if (state == SeedState.UNDETERMINED).any():
        raise AssertionError("Forest check requires classified hits")

    start = np.flatnonzero(state != SeedState.OUTLIER)
    current = start.copy()
    for _ in range(points.n + 1):
        moving = state[current] != SeedState.SEED
        if not moving.any():
            break
        parents = points.nearest_higher[current[moving]]
        if (parents == NO_HIGHER).any():
            raise AssertionError("Follower without nearest higher neighbour")
        if (state[parents] == SeedState.OUTLIER).any():
            raise AssertionError("Non-outlier chain passes through an outlier")
        current[moving] = parents
    else:
        raise AssertionError("Cycle in nearest-higher chain")

    if (points.cluster_index[start] != points.cluster_index[current]).any():
        raise AssertionError("Hit labelled with a cluster other than its seed's")

