"""Per-layer cluster maps.

Seeds are drawn as stars, outliers as grey crosses and followers in the
color of their cluster.
"""

from pathlib import Path
from typing import List, Optional, Union
import logging

import numpy as np

from ..core.clustering.points import PointSet, SeedState

logger = logging.getLogger(__name__)

OUTLIER_COLOR = "#95a5a6"


def save_figure(
    fig,
    output_path: Union[str, Path],
    dpi: int = 150,
    close: bool = True,
) -> Path:
    """Save a matplotlib figure, creating the parent directory."""
    import matplotlib.pyplot as plt

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(output_path, dpi=dpi, bbox_inches="tight")
    if close:
        plt.close(fig)
    return output_path


def plot_layer_clusters(
    points: PointSet,
    layer: int,
    ax=None,
    point_scale: float = 20.0,
):
    """Scatter the hits of one layer colored by cluster.

    Args:
        points: Clustered PointSet
        layer: Layer id to draw
        ax: Matplotlib axes; a new figure is created if None
        point_scale: Marker area for the heaviest hit of the layer

    Returns:
        The axes drawn on
    """
    import matplotlib.pyplot as plt

    if ax is None:
        _, ax = plt.subplots(figsize=(7, 6))

    idx = points.layer_indices(layer)
    if len(idx) == 0:
        logger.warning("Layer %d has no hits to plot", layer)
        ax.set_title(f"Layer {layer} (no hits)")
        return ax

    x = points.x[idx]
    y = points.y[idx]
    weight = points.weight[idx]
    state = points.seed_state[idx]
    labels = points.cluster_index[idx]

    w_max = np.abs(weight).max()
    sizes = point_scale * np.abs(weight) / w_max if w_max > 0 else np.full(len(idx), point_scale)

    cmap = plt.get_cmap("tab20")
    colors = [cmap(int(c) % cmap.N) if c >= 0 else OUTLIER_COLOR for c in labels]

    outlier = state == SeedState.OUTLIER
    seed = state == SeedState.SEED
    clustered = ~outlier & ~seed

    if outlier.any():
        ax.scatter(x[outlier], y[outlier], c=OUTLIER_COLOR, marker="x", s=sizes[outlier], label="outlier")
    if clustered.any():
        ax.scatter(
            x[clustered],
            y[clustered],
            c=[colors[k] for k in np.flatnonzero(clustered)],
            s=sizes[clustered],
            alpha=0.8,
            label="follower",
        )
    if seed.any():
        ax.scatter(
            x[seed],
            y[seed],
            c=[colors[k] for k in np.flatnonzero(seed)],
            marker="*",
            s=4 * point_scale,
            edgecolors="black",
            linewidths=0.5,
            label="seed",
        )

    n_clusters = len(np.unique(labels[labels >= 0]))
    ax.set_title(f"Layer {layer}: {len(idx)} hits, {n_clusters} clusters")
    ax.set_xlabel("x")
    ax.set_ylabel("y")
    ax.set_aspect("equal")
    ax.legend(loc="upper right", fontsize=8)
    return ax


def save_layer_plots(
    points: PointSet,
    output_dir: Union[str, Path],
    layers: Optional[List[int]] = None,
    prefix: str = "layer",
    dpi: int = 150,
) -> List[Path]:
    """Write one PNG per layer.

    Args:
        points: Clustered PointSet
        output_dir: Directory for the figures
        layers: Layers to draw; defaults to every layer with hits
        prefix: File name prefix
        dpi: Figure resolution

    Returns:
        Paths of the written figures
    """
    import matplotlib.pyplot as plt

    if layers is None:
        layers = [int(layer) for layer in points.layers_present()]

    paths = []
    for layer in layers:
        fig, ax = plt.subplots(figsize=(7, 6))
        plot_layer_clusters(points, layer, ax=ax)
        paths.append(save_figure(fig, Path(output_dir) / f"{prefix}_{layer:03d}.png", dpi=dpi))

    logger.info("Saved %d layer plots to %s", len(paths), output_dir)
    return paths
