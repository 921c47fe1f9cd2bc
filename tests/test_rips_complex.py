"""Tests for the Rips complex builder."""
import itertools

import numpy as np
import pytest

from rips_complex import FilteredComplex, RipsComplex, Simplex, distance_matrix


def _square():
    return np.array([[0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 1.0]])


class TestRipsComplex:
    def test_complete_counts(self):
        cloud = np.random.RandomState(0).randn(5, 3)
        complex_ = RipsComplex(cloud).create_complex(max_dimension=2)
        assert len(complex_.simplices(0)) == 5
        assert len(complex_.simplices(1)) == 10
        assert len(complex_.simplices(2)) == 10
        assert complex_.dimension == 2

    def test_edge_filtration_is_distance(self):
        complex_ = RipsComplex(_square()).create_complex(max_dimension=1)
        assert complex_.filtration((0, 1)) == pytest.approx(1.0)
        assert complex_.filtration((0, 2)) == pytest.approx(np.sqrt(2))
        assert complex_.filtration((3,)) == 0.0

    def test_threshold_drops_long_edges(self):
        complex_ = RipsComplex(_square(), max_edge_length=1.0).create_complex(max_dimension=2)
        assert (0, 2) not in complex_
        assert (1, 3) not in complex_
        assert len(complex_.simplices(1)) == 4
        assert complex_.simplices(2) == []

    def test_zero_threshold_has_no_edges(self):
        cloud = np.random.RandomState(1).randn(10, 2)
        complex_ = RipsComplex(cloud, max_edge_length=0.0).create_complex(max_dimension=3)
        assert complex_.dimension == 0
        assert len(complex_) == 10

    def test_triangle_takes_longest_edge(self):
        cloud = np.array([[0.0, 0.0], [3.0, 0.0], [0.0, 4.0]])
        complex_ = RipsComplex(cloud).create_complex(max_dimension=2)
        assert complex_.filtration((0, 1, 2)) == pytest.approx(5.0)

    def test_face_closed_and_monotone(self):
        rng = np.random.RandomState(7)
        cloud = rng.rand(14, 3)
        complex_ = RipsComplex(cloud, max_edge_length=0.6).create_complex(max_dimension=3)
        assert complex_.is_valid_filtration()
        for simplex in complex_:
            for face in simplex.faces():
                assert face in complex_
                assert complex_.filtration(face) <= simplex.filtration

    def test_cliques_only(self):
        rng = np.random.RandomState(3)
        cloud = rng.rand(10, 2)
        threshold = 0.5
        complex_ = RipsComplex(cloud, max_edge_length=threshold).create_complex(max_dimension=2)
        dist = distance_matrix(cloud)
        for triple in itertools.combinations(range(10), 3):
            is_clique = all(dist[a, b] <= threshold for a, b in itertools.combinations(triple, 2))
            assert (triple in complex_) == is_clique

    def test_order_is_total_and_deterministic(self):
        cloud = _square()
        first = [s.vertices for s in RipsComplex(cloud).create_complex(2)]
        second = [s.vertices for s in RipsComplex(cloud).create_complex(2)]
        assert first == second
        keys = [s.sort_key() for s in RipsComplex(cloud).create_complex(2)]
        assert keys == sorted(keys)

    def test_custom_metric(self):
        cloud = np.array([[0.0, 0.0], [1.0, 1.0]])

        def chebyshev(u, v):
            return float(np.max(np.abs(u - v)))

        complex_ = RipsComplex(cloud, metric=chebyshev).create_complex(1)
        assert complex_.filtration((0, 1)) == pytest.approx(1.0)
        complex_ = RipsComplex(cloud, metric="cityblock").create_complex(1)
        assert complex_.filtration((0, 1)) == pytest.approx(2.0)

    def test_single_and_empty_cloud(self):
        assert len(RipsComplex(np.zeros((1, 3))).create_complex(2)) == 1
        empty = RipsComplex(np.empty((0, 3))).create_complex(2)
        assert len(empty) == 0
        assert empty.dimension == -1

    def test_negative_dimension_rejected(self):
        with pytest.raises(ValueError):
            RipsComplex(_square()).create_complex(-1)

    @pytest.mark.parametrize(
        "threshold, max_dimension",
        [(float("inf"), 3), (float("inf"), 2), (1.2, 3), (1.5, 3), (0.5, 2), (1.0, 0)],
    )
    def test_complex_dimension_matches_built_complex(self, threshold, max_dimension):
        rips = RipsComplex(_square(), max_edge_length=threshold)
        assert rips.complex_dimension(max_dimension) == rips.create_complex(max_dimension).dimension

    def test_complex_dimension_of_empty_cloud(self):
        assert RipsComplex(np.empty((0, 2))).complex_dimension(2) == -1


class TestFilteredComplex:
    def test_boundary_signs(self):
        complex_ = RipsComplex(_square()).create_complex(2)
        position = complex_.position((0, 1, 2))
        boundary = complex_.boundary(position)
        faces = [complex_[face].vertices for face, _ in boundary]
        signs = [sign for _, sign in boundary]
        assert faces == [(1, 2), (0, 2), (0, 1)]
        assert signs == [1, -1, 1]

    def test_invalid_filtration_detected(self):
        simplices = [
            Simplex((0,), 0.0),
            Simplex((1,), 0.0),
            Simplex((0, 1), 0.5),
            Simplex((2,), 1.0),
            Simplex((0, 2), 0.2),
        ]
        assert not FilteredComplex(simplices).is_valid_filtration()

    def test_duplicate_rejected(self):
        with pytest.raises(ValueError):
            FilteredComplex([Simplex((0,), 0.0), Simplex((0,), 0.0)])
