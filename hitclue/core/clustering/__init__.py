"""Clustering module for layered detector hits (CLUE).

Provides density-based clustering of hits recorded on parallel 2D layers:
noise cut, per-layer tile index, local density, nearest higher-density
neighbour, seed/outlier/follower classification and cluster propagation.

Pipeline
--------
raw hits -> noise cut -> PointSet -> LayerTileIndex -> density pass
-> nearest-higher pass -> classification -> propagation

Example Usage
-------------
>>> from hitclue.core.clustering import ClusteringEngine, ClueRunConfig
>>> config = ClueRunConfig.default()
>>> config.clue.dc = 1.5
>>> engine = ClusteringEngine(config)
>>> result = engine.run(x, y, layer, weight)
>>> labels = engine.get_hits_cluster_id()
"""

__version__ = "1.0.0"

# Configuration classes
from .config import (
    ClueConfig,
    NoiseConfig,
    ClueRunConfig,
)

# Validation
from .validation import (
    ValidationError,
    ValidationResult,
    InvalidParameterError,
    LengthMismatchError,
    LayerOutOfRangeError,
    NonFiniteValueError,
)

# Noise model
from .noise import (
    NoiseModel,
    sigma_noise,
    energy_cut_mask,
)

# Data model
from .points import (
    PointSet,
    SeedState,
    NO_HIGHER,
    UNCLUSTERED,
    validate_hits,
)

# Tile index
from .tiles import (
    LayerTiles,
    LayerTileIndex,
)

# Passes
from .passes import (
    FollowerForest,
    compute_local_density,
    compute_nearest_higher,
    classify,
    build_follower_forest,
    assign_clusters,
    check_forest_invariant,
)

# Engine
from .engine import (
    ClusteringEngine,
    ClusteringResult,
)

# Export
from .export import (
    DELTA_DISPLAY_MAX,
    results_to_frame,
    write_results,
)

__all__ = [
    # Version
    "__version__",
    # Config
    "ClueConfig",
    "NoiseConfig",
    "ClueRunConfig",
    # Validation
    "ValidationError",
    "ValidationResult",
    "InvalidParameterError",
    "LengthMismatchError",
    "LayerOutOfRangeError",
    "NonFiniteValueError",
    # Noise model
    "NoiseModel",
    "sigma_noise",
    "energy_cut_mask",
    # Data model
    "PointSet",
    "SeedState",
    "NO_HIGHER",
    "UNCLUSTERED",
    "validate_hits",
    # Tile index
    "LayerTiles",
    "LayerTileIndex",
    # Passes
    "FollowerForest",
    "compute_local_density",
    "compute_nearest_higher",
    "classify",
    "build_follower_forest",
    "assign_clusters",
    "check_forest_invariant",
    # Engine
    "ClusteringEngine",
    "ClusteringResult",
    # Export
    "DELTA_DISPLAY_MAX",
    "results_to_frame",
    "write_results",
]
