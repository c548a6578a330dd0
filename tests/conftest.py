"""Pytest configuration and shared fixtures for hitclue tests."""

import sys
from pathlib import Path

import matplotlib
import numpy as np
import pandas as pd
import pytest

matplotlib.use("Agg")

# Add package to path
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from hitclue.core.clustering import ClueConfig, ClueRunConfig, NoiseModel
from tests.fixtures import create_mock_hits, create_multi_event_hits


class FlatNoiseModel(NoiseModel):
    """Noise model with a constant sigma, independent of weight."""

    def __init__(self, sigma: float = 1.0):
        super().__init__()
        self.flat_sigma = sigma

    def sigma(self, layer, weight):
        return np.full(np.shape(weight), self.flat_sigma, dtype=np.float64)


# ============================================================================
# Hit Fixtures
# ============================================================================


@pytest.fixture
def mock_hits() -> pd.DataFrame:
    """Three layers of Gaussian blobs plus uniform noise."""
    return create_mock_hits()


@pytest.fixture
def small_hits() -> pd.DataFrame:
    """Single-layer hit table for quick tests."""
    return create_mock_hits(n_layers=1, n_clusters=2, hits_per_cluster=10, n_noise=5)


@pytest.fixture
def multi_event_hits() -> pd.DataFrame:
    """Hit table spanning several events."""
    return create_multi_event_hits()


@pytest.fixture
def hits_csv(tmp_path: Path, mock_hits: pd.DataFrame) -> Path:
    """Mock hits written to CSV."""
    path = tmp_path / "hits.csv"
    mock_hits.to_csv(path, index=False)
    return path


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def scenario_config() -> ClueRunConfig:
    """dc=1, kappa=1, ecut=0 with the default outlier factor."""
    return ClueRunConfig(clue=ClueConfig(dc=1.0, kappa=1.0, ecut=0.0))


@pytest.fixture
def blob_config() -> ClueRunConfig:
    """Parameters suited to the mock blobs."""
    return ClueRunConfig(
        clue=ClueConfig(dc=1.0, kappa=9.0, ecut=0.0, outlier_delta_factor=2.0, check_forest=True)
    )


@pytest.fixture
def flat_noise_model() -> NoiseModel:
    """Constant sigma of 1.0."""
    return FlatNoiseModel(1.0)


@pytest.fixture
def tmp_output_dir(tmp_path: Path) -> Path:
    """Create a temporary output directory for tests."""
    output_dir = tmp_path / "output"
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir
