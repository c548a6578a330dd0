"""Unit tests for the density, nearest-higher, classification and propagation passes."""

import math

import numpy as np
import pytest

from hitclue.core.clustering import (
    NO_HIGHER,
    UNCLUSTERED,
    LayerTileIndex,
    PointSet,
    SeedState,
    assign_clusters,
    build_follower_forest,
    check_forest_invariant,
    classify,
    compute_local_density,
    compute_nearest_higher,
)
from tests.fixtures import brute_force_density, scenario_two_plus_one


def _density(x, y, layer, weight, dc, n_jobs=1):
    points = PointSet.from_hits(x, y, layer, weight)
    index = LayerTileIndex.build(points, tile_size=dc)
    compute_local_density(points, index, dc, n_jobs=n_jobs)
    return points, index


def _prepared(x, y, layer, weight, dc, outlier_delta_factor=2.0):
    points, index = _density(x, y, layer, weight, dc)
    compute_nearest_higher(points, index, dc, outlier_delta_factor)
    return points


def _classified_points(rho, nearest_higher, delta, weight=None):
    """PointSet with hand-set pass outputs on a single layer."""
    n = len(rho)
    points = PointSet(
        x=np.zeros(n),
        y=np.zeros(n),
        layer=np.zeros(n, dtype=np.int64),
        weight=np.ones(n) if weight is None else np.asarray(weight, dtype=float),
    )
    points.rho = np.asarray(rho, dtype=float)
    points.nearest_higher = np.asarray(nearest_higher, dtype=np.int64)
    points.delta = np.asarray(delta, dtype=float)
    return points


# ============================================================================
# Local density
# ============================================================================


class TestLocalDensity:
    """Tests for compute_local_density."""

    def test_includes_self(self):
        points, _ = _density([0.0], [0.0], [0], [4.5], dc=1.0)
        assert points.rho.tolist() == [4.5]

    def test_scenario_values(self):
        points, _ = _density(*scenario_two_plus_one(), dc=1.0)
        assert points.rho.tolist() == [18.0, 18.0, 9.0]

    def test_radius_is_inclusive(self):
        points, _ = _density([0.0, 1.0], [0.0, 0.0], [0, 0], [10.0, 1.0], dc=1.0)
        assert points.rho.tolist() == [11.0, 11.0]

    def test_layers_are_independent(self):
        points, _ = _density([0.0, 0.0], [0.0, 0.0], [0, 1], [2.0, 3.0], dc=1.0)
        assert points.rho.tolist() == [2.0, 3.0]

    def test_matches_brute_force(self, mock_hits):
        points, _ = _density(
            mock_hits["x"], mock_hits["y"], mock_hits["layer"], mock_hits["weight"], dc=1.0
        )
        expected = brute_force_density(points.x, points.y, points.layer, points.weight, 1.0)
        np.testing.assert_allclose(points.rho, expected)

    def test_removing_neighbour_lowers_density_by_its_weight(self):
        x = [0.0, 0.5, 0.9, 3.0]
        y = [0.0, 0.0, 0.3, 3.0]
        weight = [3.0, 4.0, 5.0, 2.0]
        full, _ = _density(x, y, [0] * 4, weight, dc=1.0)
        keep = [0, 2, 3]
        reduced, _ = _density(
            [x[k] for k in keep], [y[k] for k in keep], [0] * 3, [weight[k] for k in keep], dc=1.0
        )
        assert full.rho[0] == 12.0
        assert full.rho[0] - reduced.rho[0] == 4.0
        assert reduced.rho[2] == full.rho[3]

    def test_threads_match_sequential(self, mock_hits):
        args = (mock_hits["x"], mock_hits["y"], mock_hits["layer"], mock_hits["weight"])
        sequential, _ = _density(*args, dc=1.0, n_jobs=1)
        threaded, _ = _density(*args, dc=1.0, n_jobs=2)
        assert np.array_equal(sequential.rho, threaded.rho)


# ============================================================================
# Nearest higher
# ============================================================================


class TestNearestHigher:
    """Tests for compute_nearest_higher."""

    def test_scenario_values(self):
        points = _prepared(*scenario_two_plus_one(), dc=1.0)
        assert points.nearest_higher.tolist() == [NO_HIGHER, 0, NO_HIGHER]
        assert points.delta[1] == pytest.approx(0.1)
        assert math.isinf(points.delta[0])
        assert math.isinf(points.delta[2])

    def test_equal_density_prefers_lower_index(self):
        points = _prepared([0.0, 1.0], [0.0, 0.0], [0, 0], [10.0, 1.0], dc=1.0)
        assert points.nearest_higher.tolist() == [NO_HIGHER, 0]
        assert points.delta[1] == 1.0

    def test_equidistant_candidates_take_smallest_index(self):
        points = _prepared([0.0, 1.0, -1.0], [0.0, 0.0, 0.0], [0, 0, 0], [1.0, 5.0, 5.0], dc=0.5)
        assert points.rho.tolist() == [1.0, 5.0, 5.0]
        assert points.nearest_higher[0] == 1
        assert points.delta[0] == 1.0
        assert points.nearest_higher[2] == NO_HIGHER

    def test_search_limited_to_outlier_distance(self):
        points = _prepared([0.0, 2.5], [0.0, 0.0], [0, 0], [5.0, 1.0], dc=1.0)
        assert points.nearest_higher.tolist() == [NO_HIGHER, NO_HIGHER]
        points = _prepared(
            [0.0, 2.5], [0.0, 0.0], [0, 0], [5.0, 1.0], dc=1.0, outlier_delta_factor=3.0
        )
        assert points.nearest_higher.tolist() == [NO_HIGHER, 0]
        assert points.delta[1] == 2.5

    def test_parent_is_denser(self, mock_hits):
        points = _prepared(
            mock_hits["x"], mock_hits["y"], mock_hits["layer"], mock_hits["weight"], dc=1.0
        )
        child = np.flatnonzero(points.has_higher)
        parent = points.nearest_higher[child]
        assert (points.layer[parent] == points.layer[child]).all()
        denser = (points.rho[parent] > points.rho[child]) | (
            (points.rho[parent] == points.rho[child]) & (parent < child)
        )
        assert denser.all()
        assert (points.delta[child] <= 2.0).all()


# ============================================================================
# Classification
# ============================================================================


class TestClassify:
    """Tests for classify with a constant sigma of 1."""

    def test_decision_rules(self, flat_noise_model):
        points = _classified_points(
            rho=[5.0, 1.0, 3.0, 1.5, 4.0, 1.0],
            nearest_higher=[NO_HIGHER, NO_HIGHER, 0, 0, 0, 0],
            delta=[math.inf, math.inf, 0.5, 3.0, 1.5, 1.5],
        )
        classify(points, dc=1.0, kappa=2.0, outlier_delta_factor=2.0, noise_model=flat_noise_model)
        assert points.seed_state.tolist() == [
            SeedState.SEED,
            SeedState.OUTLIER,
            SeedState.FOLLOWER,
            SeedState.OUTLIER,
            SeedState.SEED,
            SeedState.FOLLOWER,
        ]

    def test_thresholds_are_strict(self, flat_noise_model):
        # delta equal to dc or dm does not make a hit isolated
        points = _classified_points(
            rho=[5.0, 2.0, 1.0],
            nearest_higher=[NO_HIGHER, 0, 0],
            delta=[math.inf, 1.0, 2.0],
        )
        classify(points, dc=1.0, kappa=2.0, outlier_delta_factor=2.0, noise_model=flat_noise_model)
        assert points.seed_state.tolist() == [SeedState.SEED, SeedState.FOLLOWER, SeedState.FOLLOWER]

    def test_default_noise_model(self):
        # rho_c = kappa * weight / 6
        points = _classified_points(
            rho=[5.0, 9.0], nearest_higher=[NO_HIGHER, NO_HIGHER], delta=[math.inf, math.inf],
            weight=[5.0, 5.0],
        )
        classify(points, dc=1.0, kappa=10.0, outlier_delta_factor=2.0)
        assert points.seed_state.tolist() == [SeedState.OUTLIER, SeedState.SEED]

    def test_every_hit_classified(self, mock_hits):
        points = _prepared(
            mock_hits["x"], mock_hits["y"], mock_hits["layer"], mock_hits["weight"], dc=1.0
        )
        classify(points, dc=1.0, kappa=9.0, outlier_delta_factor=2.0)
        assert not (points.seed_state == SeedState.UNDETERMINED).any()
        followers = points.seed_state == SeedState.FOLLOWER
        assert points.has_higher[followers].all()


# ============================================================================
# Propagation
# ============================================================================


class TestPropagation:
    """Tests for build_follower_forest and assign_clusters."""

    @pytest.fixture
    def chain(self):
        points = _classified_points(
            rho=[5.0, 4.0, 3.0, 5.0, 2.0],
            nearest_higher=[NO_HIGHER, 0, 1, NO_HIGHER, 3],
            delta=[math.inf, 0.5, 0.5, math.inf, 0.5],
        )
        points.seed_state = np.array(
            [SeedState.SEED, SeedState.FOLLOWER, SeedState.FOLLOWER, SeedState.SEED, SeedState.FOLLOWER],
            dtype=np.int8,
        )
        return points

    def test_forest(self, chain):
        forest = build_follower_forest(chain)
        assert forest.n_edges == 3
        assert forest.followers(0).tolist() == [1]
        assert forest.followers(1).tolist() == [2]
        assert forest.followers(3).tolist() == [4]
        assert forest.followers(2).tolist() == []

    def test_transitive_labels(self, chain):
        n_clusters, n_relabelled = assign_clusters(chain)
        assert n_clusters == 2
        assert n_relabelled == 0
        assert chain.cluster_index.tolist() == [0, 0, 0, 1, 1]
        check_forest_invariant(chain)

    def test_seed_ids_follow_hit_order(self):
        points = _classified_points(
            rho=[1.0] * 3, nearest_higher=[NO_HIGHER] * 3, delta=[math.inf] * 3
        )
        points.seed_state = np.array(
            [SeedState.SEED, SeedState.OUTLIER, SeedState.SEED], dtype=np.int8
        )
        assign_clusters(points)
        assert points.cluster_index.tolist() == [0, UNCLUSTERED, 1]

    def test_followers_of_outliers_are_relabelled(self):
        points = _classified_points(
            rho=[2.0, 1.0, 0.5],
            nearest_higher=[NO_HIGHER, 0, 1],
            delta=[math.inf, 0.5, 0.5],
        )
        points.seed_state = np.array(
            [SeedState.OUTLIER, SeedState.FOLLOWER, SeedState.FOLLOWER], dtype=np.int8
        )
        n_clusters, n_relabelled = assign_clusters(points)
        assert (n_clusters, n_relabelled) == (0, 2)
        assert (points.seed_state == SeedState.OUTLIER).all()
        assert (points.cluster_index == UNCLUSTERED).all()
        check_forest_invariant(points)


class TestForestInvariant:
    """Tests for check_forest_invariant."""

    def test_rejects_cycle(self):
        points = _classified_points(rho=[1.0, 1.0], nearest_higher=[1, 0], delta=[0.5, 0.5])
        points.seed_state = np.array([SeedState.FOLLOWER, SeedState.FOLLOWER], dtype=np.int8)
        with pytest.raises(AssertionError, match="Cycle"):
            check_forest_invariant(points)

    def test_rejects_unclassified(self):
        points = _classified_points(rho=[1.0], nearest_higher=[NO_HIGHER], delta=[math.inf])
        with pytest.raises(AssertionError):
            check_forest_invariant(points)

    def test_rejects_chain_through_outlier(self):
        points = _classified_points(rho=[2.0, 1.0], nearest_higher=[NO_HIGHER, 0], delta=[math.inf, 0.5])
        points.seed_state = np.array([SeedState.OUTLIER, SeedState.FOLLOWER], dtype=np.int8)
        with pytest.raises(AssertionError, match="outlier"):
            check_forest_invariant(points)

    def test_rejects_wrong_cluster(self):
        points = _classified_points(rho=[2.0, 1.0], nearest_higher=[NO_HIGHER, 0], delta=[math.inf, 0.5])
        points.seed_state = np.array([SeedState.SEED, SeedState.FOLLOWER], dtype=np.int8)
        points.cluster_index = np.array([0, 5])
        with pytest.raises(AssertionError, match="cluster"):
            check_forest_invariant(points)
