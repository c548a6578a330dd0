"""Per-layer tile grids for bounded-cost radius queries.

Each layer's hits are binned into a regular grid of square tiles whose side
is tied to the critical distance, so a radius-``dc`` query only touches a
small, fixed block of tiles. Within the grid, points are stored sorted by
flat tile number with an offsets array (CSR layout), which makes the lookup
of a tile's contents O(1).
"""

from __future__ import annotations

import logging
import math
from typing import Dict, Iterator, Optional, Tuple

import numpy as np

from .points import PointSet

logger = logging.getLogger(__name__)

# Upper bound on dense grid cells per layer; sparser layers get coarser tiles
MAX_TILES_PER_LAYER = 1 << 22


class LayerTiles:
    """Tile grid over the hits of a single layer.

    Parameters
    ----------
    indices : np.ndarray
        Global PointSet indices of the layer's hits
    x, y : np.ndarray
        Coordinates of those hits, aligned with ``indices``
    tile_size : float
        Requested tile side; enlarged if the grid would exceed
        MAX_TILES_PER_LAYER cells
    """

    def __init__(
        self,
        indices: np.ndarray,
        x: np.ndarray,
        y: np.ndarray,
        tile_size: float,
    ):
        if tile_size <= 0:
            raise ValueError(f"tile_size must be positive, got {tile_size}")
        indices = np.asarray(indices, dtype=np.int64)
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)

        self.n_points = len(indices)
        self.tile_size = float(tile_size)

        if self.n_points == 0:
            self.x_min = self.y_min = 0.0
            self.n_bins_x = self.n_bins_y = 0
            self._points = indices
            self._px = x
            self._py = y
            self._offsets = np.zeros(1, dtype=np.int64)
            return

        self.x_min = float(x.min())
        self.y_min = float(y.min())
        span_x = float(x.max()) - self.x_min
        span_y = float(y.max()) - self.y_min

        n_bins_x = int(math.floor(span_x / self.tile_size)) + 1
        n_bins_y = int(math.floor(span_y / self.tile_size)) + 1
        if n_bins_x * n_bins_y > MAX_TILES_PER_LAYER:
            scale = math.sqrt(n_bins_x * n_bins_y / MAX_TILES_PER_LAYER)
            coarse = self.tile_size * math.ceil(scale + 1.0)
            logger.warning(
                "Layer grid of %d x %d tiles exceeds %d; using tile size %.4g instead of %.4g",
                n_bins_x,
                n_bins_y,
                MAX_TILES_PER_LAYER,
                coarse,
                self.tile_size,
            )
            self.tile_size = coarse
            n_bins_x = int(math.floor(span_x / self.tile_size)) + 1
            n_bins_y = int(math.floor(span_y / self.tile_size)) + 1
        self.n_bins_x = n_bins_x
        self.n_bins_y = n_bins_y

        flat = self._bin_x(x) * self.n_bins_y + self._bin_y(y)
        # Stable sort keeps ascending global index within each tile
        order = np.argsort(flat, kind="stable")
        self._points = indices[order]
        self._px = x[order]
        self._py = y[order]

        counts = np.bincount(flat, minlength=self.n_tiles)
        self._offsets = np.zeros(self.n_tiles + 1, dtype=np.int64)
        np.cumsum(counts, out=self._offsets[1:])

    @property
    def n_tiles(self) -> int:
        return self.n_bins_x * self.n_bins_y

    def _bin_x(self, values):
        bins = np.floor((np.asarray(values) - self.x_min) / self.tile_size).astype(np.int64)
        return np.clip(bins, 0, self.n_bins_x - 1)

    def _bin_y(self, values):
        bins = np.floor((np.asarray(values) - self.y_min) / self.tile_size).astype(np.int64)
        return np.clip(bins, 0, self.n_bins_y - 1)

    def search_box(self, x: float, y: float, radius: float) -> Tuple[int, int, int, int]:
        """Tile range (bx_min, bx_max, by_min, by_max) covering a query circle."""
        bx_min, bx_max = self._bin_x([x - radius, x + radius])
        by_min, by_max = self._bin_y([y - radius, y + radius])
        return int(bx_min), int(bx_max), int(by_min), int(by_max)

    def tile(self, bx: int, by: int) -> np.ndarray:
        """Global indices stored in tile (bx, by)."""
        flat = bx * self.n_bins_y + by
        return self._points[self._offsets[flat]:self._offsets[flat + 1]]

    def _candidates(self, x: float, y: float, radius: float) -> np.ndarray:
        """Positions into the sorted storage for every tile in the search box."""
        bx_min, bx_max, by_min, by_max = self.search_box(x, y, radius)
        spans = []
        for bx in range(bx_min, bx_max + 1):
            # Tiles of one column are contiguous in flat order
            row = bx * self.n_bins_y
            start = self._offsets[row + by_min]
            stop = self._offsets[row + by_max + 1]
            if stop > start:
                spans.append(np.arange(start, stop))
        if not spans:
            return np.empty(0, dtype=np.int64)
        return np.concatenate(spans)

    def query(
        self,
        x: float,
        y: float,
        radius: float,
        return_distance: bool = False,
    ):
        """Find hits within ``radius`` of (x, y).

        Parameters
        ----------
        x, y : float
            Query position
        radius : float
            Euclidean search radius (inclusive)
        return_distance : bool
            Also return the distance of each hit to the query position

        Returns
        -------
        np.ndarray or Tuple[np.ndarray, np.ndarray]
            Global indices in ascending order, and optionally their distances
        """
        if self.n_points == 0:
            empty = np.empty(0, dtype=np.int64)
            return (empty, np.empty(0, dtype=np.float64)) if return_distance else empty

        cand = self._candidates(x, y, radius)
        dist = np.hypot(self._px[cand] - x, self._py[cand] - y)
        inside = dist <= radius
        found = self._points[cand[inside]]
        order = np.argsort(found, kind="stable")
        if return_distance:
            return found[order], dist[inside][order]
        return found[order]

    def __len__(self) -> int:
        return self.n_points

    def __repr__(self) -> str:
        return (
            f"LayerTiles(n_points={self.n_points}, grid={self.n_bins_x}x{self.n_bins_y}, "
            f"tile_size={self.tile_size:g})"
        )


class LayerTileIndex:
    """Mapping from layer id to the tile grid of that layer.

    Built once per event from a PointSet and read-only afterwards.

    Parameters
    ----------
    n_layers : int
        Number of layers; valid ids are [0, n_layers)
    tile_size : float
        Tile side used for every layer's grid

    Example
    -------
    >>> index = LayerTileIndex.build(points, tile_size=dc, n_layers=100)
    >>> neighbours = index.query(layer=3, x=1.0, y=2.0, radius=dc)
    """

    def __init__(self, n_layers: int, tile_size: float):
        self.n_layers = n_layers
        self.tile_size = tile_size
        self._tiles: Dict[int, LayerTiles] = {}
        self._empty = LayerTiles(np.empty(0, dtype=np.int64), np.empty(0), np.empty(0), tile_size)

    @classmethod
    def build(
        cls,
        points: PointSet,
        tile_size: float,
        n_layers: Optional[int] = None,
    ) -> "LayerTileIndex":
        """Bin every hit of ``points`` into the grid of its layer."""
        if n_layers is None:
            n_layers = int(points.layer.max()) + 1 if points.n else 0
        index = cls(n_layers, tile_size)
        if points.n == 0:
            return index

        order = np.argsort(points.layer, kind="stable")
        layers, starts = np.unique(points.layer[order], return_index=True)
        bounds = np.append(starts, points.n)
        for k, layer in enumerate(layers):
            if not 0 <= layer < n_layers:
                raise ValueError(f"Layer {layer} outside [0, {n_layers})")
            idx = order[bounds[k]:bounds[k + 1]]
            index._tiles[int(layer)] = LayerTiles(idx, points.x[idx], points.y[idx], tile_size)

        logger.debug(
            "Built tile index for %d layers (%d hits, tile size %.4g)",
            len(index._tiles),
            points.n,
            tile_size,
        )
        return index

    def __getitem__(self, layer: int) -> LayerTiles:
        if not 0 <= layer < self.n_layers:
            raise IndexError(f"Layer {layer} outside [0, {self.n_layers})")
        return self._tiles.get(int(layer), self._empty)

    def __contains__(self, layer: int) -> bool:
        return int(layer) in self._tiles

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self._tiles))

    def __len__(self) -> int:
        return len(self._tiles)

    def query(self, layer: int, x: float, y: float, radius: float, return_distance: bool = False):
        """Radius query on one layer; see :meth:`LayerTiles.query`."""
        return self[layer].query(x, y, radius, return_distance=return_distance)
