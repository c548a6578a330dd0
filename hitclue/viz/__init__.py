"""Visualization helpers for clustered hits.

Provides per-layer scatter plots colored by cluster id.
"""

from .clusters import plot_layer_clusters, save_figure, save_layer_plots

__all__ = [
    "plot_layer_clusters",
    "save_figure",
    "save_layer_plots",
]
