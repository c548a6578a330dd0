"""Configuration classes for the clustering module.

All clustering parameters are plain numbers passed at construction time
or loaded from a YAML file.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .validation import InvalidParameterError, ValidationResult


@dataclass
class ClueConfig:
    """Configuration for CLUE clustering.

    Attributes
    ----------
    dc : float
        Critical distance; bandwidth of the flat density kernel
    kappa : float
        Critical-density multiplier applied to the noise sigma
    ecut : float
        Noise-cut multiplier; hits below ecut * sigma are dropped
    outlier_delta_factor : float
        Nearest-higher search radius and outlier threshold, in units of dc
    n_layers : int
        Number of sensing layers; valid layer ids are [0, n_layers)
    tile_size : float, optional
        Side of a tile in the per-layer grid. Defaults to dc.
    verbose : bool
        Enable the tabular diagnostic dump
    n_jobs : int
        Workers for the per-layer passes (1 runs in-process)
    check_forest : bool
        Assert the follower forest invariant after propagation
    """

    dc: float = 2.0
    kappa: float = 10.0
    ecut: float = 3.0
    outlier_delta_factor: float = 2.0
    n_layers: int = 100
    tile_size: Optional[float] = None
    verbose: bool = False
    n_jobs: int = 1
    check_forest: bool = False

    @property
    def effective_tile_size(self) -> float:
        return self.tile_size if self.tile_size is not None else self.dc

    def validate(self) -> ValidationResult:
        """Check parameter ranges.

        Returns
        -------
        ValidationResult
            Result with one InvalidParameterError per bad parameter
        """
        result = ValidationResult()
        positive = {
            "dc": self.dc,
            "kappa": self.kappa,
            "outlier_delta_factor": self.outlier_delta_factor,
            "n_layers": self.n_layers,
        }
        if self.tile_size is not None:
            positive["tile_size"] = self.tile_size
        for name, value in positive.items():
            if not value > 0:
                result.add_error(
                    InvalidParameterError(
                        message=f"Parameter '{name}' must be positive",
                        parameter=name,
                        expected="a value > 0",
                        found=value,
                    )
                )
        if not self.ecut >= 0:
            result.add_error(
                InvalidParameterError(
                    message="Parameter 'ecut' must be non-negative",
                    parameter="ecut",
                    expected="a value >= 0",
                    found=self.ecut,
                )
            )
        if self.n_jobs == 0:
            result.add_error(
                InvalidParameterError(
                    message="Parameter 'n_jobs' must not be zero",
                    parameter="n_jobs",
                    expected="a positive count or -1 for all cores",
                    found=self.n_jobs,
                )
            )
        return result


@dataclass
class NoiseConfig:
    """Configuration for the noise-sigma model.

    Attributes
    ----------
    en_mip : float
        MIP-equivalent energy scale in keV
    noise_fraction : float
        Noise per MIP is en_mip / noise_fraction
    sn_ratio : Dict[int, float]
        Signal-to-noise ratio per sensor thickness in microns. Reserved for
        layer-dependent calibration; not used by the noise model.
    """

    en_mip: float = 86.0
    noise_fraction: float = 6.0
    sn_ratio: Dict[int, float] = field(
        default_factory=lambda: {300: 7.2, 200: 4.8}
    )

    @property
    def noise_mip(self) -> float:
        return self.en_mip / self.noise_fraction


@dataclass
class ClueRunConfig:
    """Master configuration for a clustering run.

    Attributes
    ----------
    clue : ClueConfig
        Algorithm parameters
    noise : NoiseConfig
        Noise model constants
    """

    clue: ClueConfig = field(default_factory=ClueConfig)
    noise: NoiseConfig = field(default_factory=NoiseConfig)

    @classmethod
    def from_yaml(cls, path: Path) -> "ClueRunConfig":
        """Load configuration from YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}

        # Handle nested clue_run section
        if "clue_run" in data:
            data = data["clue_run"]

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClueRunConfig":
        """Create ClueRunConfig from a nested dictionary."""
        noise = dict(data.get("noise", {}))
        if "sn_ratio" in noise:
            noise["sn_ratio"] = {int(k): float(v) for k, v in noise["sn_ratio"].items()}
        return cls(
            clue=ClueConfig(**data.get("clue", {})),
            noise=NoiseConfig(**noise),
        )

    @classmethod
    def default(cls) -> "ClueRunConfig":
        """Create default configuration."""
        return cls()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "clue": {
                "dc": self.clue.dc,
                "kappa": self.clue.kappa,
                "ecut": self.clue.ecut,
                "outlier_delta_factor": self.clue.outlier_delta_factor,
                "n_layers": self.clue.n_layers,
                "tile_size": self.clue.tile_size,
                "verbose": self.clue.verbose,
                "n_jobs": self.clue.n_jobs,
                "check_forest": self.clue.check_forest,
            },
            "noise": {
                "en_mip": self.noise.en_mip,
                "noise_fraction": self.noise.noise_fraction,
                "sn_ratio": dict(self.noise.sn_ratio),
            },
        }

    def to_yaml(self) -> str:
        """Render configuration as a YAML document."""
        return yaml.safe_dump({"clue_run": self.to_dict()}, sort_keys=False)
