"""Tests for persistence landscapes and their norms."""
import numpy as np
import pytest

from persistence_landscape import PersistenceLandscape, finite_diagram, landscape_norm


def _kth_tent(diagram, k, x):
    heights = sorted((max(0.0, min(x - b, d - x)) for b, d in diagram), reverse=True)
    return heights[k] if k < len(heights) else 0.0


def _random_diagram(n=12, seed=0):
    rng = np.random.RandomState(seed)
    births = rng.uniform(0, 5, n)
    return np.column_stack([births, births + rng.uniform(0.1, 3, n)])


class TestLandscape:
    def test_empty_diagram(self):
        landscape = PersistenceLandscape(np.empty((0, 2)))
        assert len(landscape) == 0
        assert landscape.norm(1.0) == 0.0
        assert landscape.norm(2.0) == 0.0
        assert landscape.norm(float("inf")) == 0.0
        assert landscape_norm([]) == 0.0

    def test_single_tent(self):
        landscape = PersistenceLandscape([(0.0, 2.0)])
        assert len(landscape) == 1
        expected = [[-np.inf, 0], [0, 0], [1, 1], [2, 0], [np.inf, 0]]
        assert np.array_equal(landscape.critical_points(0), np.array(expected, dtype=float))
        assert landscape.norm(1.0) == pytest.approx(1.0)
        assert landscape.norm(2.0) == pytest.approx(np.sqrt(2.0 / 3.0))
        assert landscape.norm(float("inf")) == pytest.approx(1.0)

    def test_overlapping_tents(self):
        landscape = PersistenceLandscape([(0.0, 4.0), (2.0, 6.0)])
        top = landscape.critical_points(0)
        assert np.allclose(top[1:-1], [[0, 0], [2, 2], [3, 1], [4, 2], [6, 0]])
        second = landscape.critical_points(1)
        assert np.allclose(second[1:-1], [[2, 0], [3, 1], [4, 0]])
        assert landscape.norm(1.0) == pytest.approx(8.0)

    def test_disjoint_tents_share_layer(self):
        landscape = PersistenceLandscape([(0.0, 1.0), (3.0, 5.0)])
        assert len(landscape) == 1
        assert np.allclose(
            landscape.critical_points(0)[1:-1],
            [[0, 0], [0.5, 0.5], [1, 0], [3, 0], [4, 1], [5, 0]],
        )

    def test_touching_tents(self):
        landscape = PersistenceLandscape([(0.0, 2.0), (2.0, 4.0)])
        assert len(landscape) == 1
        assert np.allclose(landscape.critical_points(0)[1:-1], [[0, 0], [1, 1], [2, 0], [3, 1], [4, 0]])

    @pytest.mark.parametrize("seed", [0, 1, 2])
    def test_layers_are_ordered_tent_values(self, seed):
        diagram = _random_diagram(seed=seed)
        landscape = PersistenceLandscape(diagram)
        for x in np.linspace(-1, 9, 201):
            for k in range(len(diagram)):
                assert landscape.value(k, x) == pytest.approx(_kth_tent(diagram, k, x), abs=1e-9)

    @pytest.mark.parametrize("seed", [3, 4])
    def test_l1_norm_is_total_tent_area(self, seed):
        diagram = _random_diagram(seed=seed)
        expected = float(np.sum((diagram[:, 1] - diagram[:, 0]) ** 2) / 4)
        assert landscape_norm(diagram, q=1.0) == pytest.approx(expected)

    def test_norm_non_negative(self):
        for seed in range(5):
            assert landscape_norm(_random_diagram(seed=seed), q=3.0) >= 0.0

    def test_sup_norm_is_highest_peak(self):
        diagram = _random_diagram(seed=5)
        expected = float(np.max(diagram[:, 1] - diagram[:, 0]) / 2)
        assert landscape_norm(diagram, q=float("inf")) == pytest.approx(expected)

    def test_max_layers(self):
        landscape = PersistenceLandscape([(0.0, 4.0), (1.0, 3.0)], max_layers=1)
        assert len(landscape) == 1
        assert landscape.norm(1.0) == pytest.approx(4.0)
        assert landscape.value(1, 2.0) == 0.0

    def test_essential_intervals_skipped(self):
        landscape = PersistenceLandscape([(0.0, 2.0), (0.5, np.inf)])
        assert len(landscape) == 1
        assert landscape.norm(1.0) == pytest.approx(1.0)

    def test_zero_length_intervals_ignored(self):
        assert landscape_norm([(1.0, 1.0), (2.0, 2.0)]) == 0.0

    def test_birth_after_death_rejected(self):
        with pytest.raises(ValueError):
            PersistenceLandscape([(2.0, 1.0)])

    def test_exponent_below_one_rejected(self):
        with pytest.raises(ValueError):
            PersistenceLandscape([(0.0, 1.0)]).norm(0.5)


class TestFiniteDiagram:
    def test_drops_infinite(self):
        diag = finite_diagram(np.array([[0.0, 1.0], [0.0, np.inf]]))
        assert diag.shape == (1, 2)

    def test_empty(self):
        assert finite_diagram([]).shape == (0, 2)
