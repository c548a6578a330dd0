"""Noise-sigma model and the noise cut applied before clustering."""

from __future__ import annotations

from typing import Optional, Union

import numpy as np

from .config import NoiseConfig

ArrayOrFloat = Union[float, np.ndarray]

DEFAULT_EN_MIP = 86.0
DEFAULT_NOISE_FRACTION = 6.0


def sigma_noise(
    layer: ArrayOrFloat,
    weight: ArrayOrFloat,
    en_mip: float = DEFAULT_EN_MIP,
    noise_fraction: float = DEFAULT_NOISE_FRACTION,
) -> ArrayOrFloat:
    """Estimate the noise sigma of a hit from its weight.

    The estimate scales linearly with weight: ``weight / en_mip * noise_mip``
    with ``noise_mip = en_mip / noise_fraction``. ``layer`` is accepted for
    layer-dependent calibration and currently ignored.

    Parameters
    ----------
    layer : int or np.ndarray
        Layer id(s)
    weight : float or np.ndarray
        Signal weight(s) in keV
    en_mip : float
        MIP-equivalent energy scale in keV
    noise_fraction : float
        Ratio between the MIP scale and the noise per MIP

    Returns
    -------
    float or np.ndarray
        Noise sigma, same shape as ``weight``
    """
    noise_mip = en_mip / noise_fraction
    return weight / en_mip * noise_mip


class NoiseModel:
    """Noise-sigma model bound to a NoiseConfig.

    Subclasses may override :meth:`sigma` to add per-layer calibration.

    Parameters
    ----------
    config : NoiseConfig, optional
        Noise constants. If None, uses defaults.
    """

    def __init__(self, config: Optional[NoiseConfig] = None):
        self.config = config or NoiseConfig()

    def sigma(self, layer: ArrayOrFloat, weight: ArrayOrFloat) -> ArrayOrFloat:
        return sigma_noise(
            layer,
            weight,
            en_mip=self.config.en_mip,
            noise_fraction=self.config.noise_fraction,
        )

    def critical_density(
        self, layer: np.ndarray, weight: np.ndarray, kappa: float
    ) -> np.ndarray:
        """Per-hit density threshold ``kappa * sigma`` for seed candidacy."""
        return kappa * np.asarray(self.sigma(layer, weight), dtype=np.float64)


def energy_cut_mask(
    layer: np.ndarray,
    weight: np.ndarray,
    ecut: float,
    noise_model: Optional[NoiseModel] = None,
) -> np.ndarray:
    """Return the mask of hits that survive the noise cut.

    A hit is kept iff ``weight >= ecut * sigma(layer, weight)``.

    Parameters
    ----------
    layer : np.ndarray
        Layer id per hit
    weight : np.ndarray
        Weight per hit
    ecut : float
        Noise-cut multiplier
    noise_model : NoiseModel, optional
        Model providing sigma. If None, uses the default model.

    Returns
    -------
    np.ndarray
        Boolean keep mask aligned with the input
    """
    noise_model = noise_model or NoiseModel()
    weight = np.asarray(weight, dtype=np.float64)
    sigma = np.asarray(noise_model.sigma(np.asarray(layer), weight), dtype=np.float64)
    return weight >= ecut * sigma
