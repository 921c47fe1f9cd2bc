"""
Vietoris-Rips filtered complexes over point clouds.

Edges are the point pairs within the maximal edge length; higher simplices are the
cliques of that neighbourhood graph (flag complex) up to the requested dimension.
Every simplex carries the largest pairwise distance among its vertices, which is also
the largest filtration value among its faces, so the filtration is monotone.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np
from scipy.spatial.distance import pdist, squareform

logger = logging.getLogger(__name__)

Metric = Union[str, Callable[[np.ndarray, np.ndarray], float]]


@dataclass(frozen=True)
class Simplex:
    vertices: Tuple[int, ...]
    filtration: float

    @property
    def dimension(self) -> int:
        return len(self.vertices) - 1

    def sort_key(self) -> Tuple[float, int, Tuple[int, ...]]:
        return (self.filtration, self.dimension, self.vertices)

    def faces(self) -> List[Tuple[int, ...]]:
        """Codimension-one faces, face ``i`` omitting vertex ``i``."""
        if self.dimension == 0:
            return []
        return [self.vertices[:i] + self.vertices[i + 1 :] for i in range(len(self.vertices))]


class FilteredComplex:
    """Simplices in filtration order: (filtration value, dimension, vertex tuple)."""

    def __init__(self, simplices: Sequence[Simplex]) -> None:
        ordered = sorted(simplices, key=Simplex.sort_key)
        self._simplices: List[Simplex] = ordered
        self._position: Dict[Tuple[int, ...], int] = {}
        for position, simplex in enumerate(ordered):
            if simplex.vertices in self._position:
                raise ValueError(f"Duplicate simplex {simplex.vertices} in complex.")
            self._position[simplex.vertices] = position

    def __len__(self) -> int:
        return len(self._simplices)

    def __iter__(self) -> Iterator[Simplex]:
        return iter(self._simplices)

    def __getitem__(self, position: int) -> Simplex:
        return self._simplices[position]

    def __contains__(self, vertices: Tuple[int, ...]) -> bool:
        return tuple(vertices) in self._position

    @property
    def dimension(self) -> int:
        if not self._simplices:
            return -1
        return max(simplex.dimension for simplex in self._simplices)

    def position(self, vertices: Tuple[int, ...]) -> int:
        return self._position[tuple(vertices)]

    def filtration(self, vertices: Tuple[int, ...]) -> float:
        return self._simplices[self.position(vertices)].filtration

    def simplices(self, dimension: Optional[int] = None) -> List[Simplex]:
        if dimension is None:
            return list(self._simplices)
        return [simplex for simplex in self._simplices if simplex.dimension == dimension]

    def boundary(self, position: int) -> List[Tuple[int, int]]:
        """Positions and incidence signs of the faces of the simplex at ``position``."""
        simplex = self._simplices[position]
        return [
            (self._position[face], 1 if i % 2 == 0 else -1)
            for i, face in enumerate(simplex.faces())
        ]

    def is_valid_filtration(self) -> bool:
        """Face closure plus monotonicity: each face present, no later than its coface."""
        for position, simplex in enumerate(self._simplices):
            for face in simplex.faces():
                face_position = self._position.get(face)
                if face_position is None or face_position > position:
                    return False
                if self._simplices[face_position].filtration > simplex.filtration:
                    return False
        return True


def distance_matrix(points: np.ndarray, metric: Metric = "euclidean") -> np.ndarray:
    """Pairwise distances; ``metric`` is a scipy metric name or a callable on two points."""
    points = np.asarray(points, dtype=float)
    if points.ndim == 1:
        points = points.reshape(-1, 1)
    n = len(points)
    if n < 2:
        return np.zeros((n, n), dtype=float)
    return squareform(pdist(points, metric=metric))


class RipsComplex:
    """Rips complex builder for one point cloud.

    The metric must be a true metric (non-negative, symmetric, triangle inequality);
    this is not checked.
    """

    def __init__(
        self,
        points: np.ndarray,
        max_edge_length: float = float("inf"),
        metric: Metric = "euclidean",
    ) -> None:
        self.distances = distance_matrix(points, metric=metric)
        self.max_edge_length = float(max_edge_length)
        self.num_points = int(self.distances.shape[0])

    def _neighbourhoods(self) -> List[List[int]]:
        """Higher-indexed neighbours of each vertex within the edge threshold."""
        upper: List[List[int]] = [[] for _ in range(self.num_points)]
        if self.num_points < 2:
            return upper
        rows, cols = np.triu_indices(self.num_points, k=1)
        within = self.distances[rows, cols] <= self.max_edge_length
        for u, v in zip(rows[within], cols[within]):
            upper[int(u)].append(int(v))
        return upper

    def complex_dimension(self, max_dimension: int = 1) -> int:
        """Dimension of ``create_complex(max_dimension)`` without listing its simplices."""
        if max_dimension < 0:
            raise ValueError("Maximal simplex dimension must be non-negative.")
        if self.num_points == 0:
            return -1
        if max_dimension == 0:
            return 0

        upper = self._neighbourhoods()
        upper_sets = [set(neighbours) for neighbours in upper]
        best = 0
        # (dimension of a clique, vertices that extend it)
        stack: List[Tuple[int, List[int]]] = [(0, upper[v]) for v in range(self.num_points) if upper[v]]
        while stack:
            dimension, candidates = stack.pop()
            best = max(best, dimension + 1)
            if best >= max_dimension:
                return max_dimension
            for v in candidates:
                narrowed = [u for u in candidates if u > v and u in upper_sets[v]]
                if narrowed:
                    stack.append((dimension + 1, narrowed))
        return best

    def create_complex(self, max_dimension: int = 1) -> FilteredComplex:
        if max_dimension < 0:
            raise ValueError("Maximal simplex dimension must be non-negative.")
        simplices: List[Simplex] = [Simplex((v,), 0.0) for v in range(self.num_points)]
        if max_dimension == 0:
            return FilteredComplex(simplices)

        upper = self._neighbourhoods()
        upper_sets = [set(neighbours) for neighbours in upper]
        dist = self.distances

        stack: List[Tuple[Tuple[int, ...], float, List[int]]] = [
            ((v,), 0.0, upper[v]) for v in range(self.num_points)
        ]
        while stack:
            vertices, value, candidates = stack.pop()
            for v in candidates:
                filtration = value
                for w in vertices:
                    if dist[w, v] > filtration:
                        filtration = float(dist[w, v])
                coface = vertices + (v,)
                simplices.append(Simplex(coface, filtration))
                if len(coface) <= max_dimension:
                    narrowed = [u for u in candidates if u > v and u in upper_sets[v]]
                    if narrowed:
                        stack.append((coface, filtration, narrowed))

        complex_ = FilteredComplex(simplices)
        logger.debug(
            "Rips complex on %d points (threshold %s): %d simplices, dimension %d",
            self.num_points,
            self.max_edge_length,
            len(complex_),
            complex_.dimension,
        )
        return complex_
