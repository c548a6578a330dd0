"""hitclue: density-based clustering of layered detector hits.

This package provides tools for:
- Noise-cut filtering of raw hits by a per-hit noise-sigma estimate
- Per-layer tile indices for bounded-cost radius queries
- CLUE clustering: local density, nearest-higher neighbour, seed/outlier
  classification and cluster propagation
- Tabular diagnostic dumps and per-layer cluster plots

Clustering runs independently per event with all parameters loaded from
a small YAML configuration or passed directly.

Example usage:
    >>> from hitclue.core.clustering import ClusteringEngine, ClueRunConfig
    >>>
    >>> engine = ClusteringEngine(ClueRunConfig.default())
    >>> result = engine.run(x, y, layer, weight)
    >>> result.n_clusters
"""

__version__ = "0.1.0"
