"""Test fixtures for hitclue.

Provides mock hit generators and reference computations.
"""

from .mock_hits import (
    create_mock_hits,
    create_multi_event_hits,
    scenario_two_plus_one,
    brute_force_density,
)

__all__ = [
    "create_mock_hits",
    "create_multi_event_hits",
    "scenario_two_plus_one",
    "brute_force_density",
]
