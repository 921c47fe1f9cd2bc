"""
Persistent cohomology of filtered complexes over the prime field Z/pZ.

Simplices are inserted in filtration order. Vertices and edges go through a
union-find structure (dimension 0, elder rule); every higher insertion evaluates the
alive cocycles on the simplex boundary. A zero evaluation creates a new cocycle,
otherwise the youngest cocycle with a non-zero value dies and the remaining ones are
reduced against it.

Classes of the complex's top dimension are only tracked when
``persistence_dim_max`` is set, so a 1-dimensional Rips complex has no loop features.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np
from ripser import ripser

from rips_complex import FilteredComplex, Metric, RipsComplex

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PersistenceInterval:
    dimension: int
    birth: float
    death: float

    @property
    def persistence(self) -> float:
        return self.death - self.birth

    @property
    def is_finite(self) -> bool:
        return math.isfinite(self.death)


def is_prime(value: int) -> bool:
    if value < 2:
        return False
    if value < 4:
        return True
    if value % 2 == 0:
        return False
    for divisor in range(3, math.isqrt(value) + 1, 2):
        if value % divisor == 0:
            return False
    return True


def check_field_characteristic(value: int) -> int:
    if int(value) != value or not is_prime(int(value)):
        raise ValueError(f"Coefficient field characteristic must be a prime number, got {value}.")
    return int(value)


class _UnionFind:
    def __init__(self) -> None:
        self.parent: Dict[int, int] = {}

    def add(self, key: int) -> None:
        self.parent[key] = key

    def find(self, key: int) -> int:
        parent = self.parent
        while parent[key] != key:
            parent[key] = parent[parent[key]]
            key = parent[key]
        return key

    def roots(self) -> List[int]:
        return [key for key in self.parent if self.find(key) == key]


class _CocycleMatrix:
    """Sparse cocycle basis, indexed both by cocycle and by simplex."""

    def __init__(self, characteristic: int) -> None:
        self.p = characteristic
        self.columns: Dict[int, Dict[int, int]] = {}
        self.rows: Dict[int, Dict[int, int]] = {}
        self.dimensions: Dict[int, int] = {}

    def create(self, key: int, dimension: int) -> None:
        self.columns[key] = {key: 1}
        self.rows.setdefault(key, {})[key] = 1
        self.dimensions[key] = dimension

    def evaluate(self, boundary: List[tuple]) -> Dict[int, int]:
        values: Dict[int, int] = {}
        for face, sign in boundary:
            for key, coefficient in self.rows.get(face, {}).items():
                values[key] = (values.get(key, 0) + sign * coefficient) % self.p
        return {key: value for key, value in values.items() if value}

    def _set(self, key: int, simplex: int, coefficient: int) -> None:
        if coefficient:
            self.columns[key][simplex] = coefficient
            self.rows.setdefault(simplex, {})[key] = coefficient
        else:
            self.columns[key].pop(simplex, None)
            row = self.rows.get(simplex)
            if row is not None:
                row.pop(key, None)
                if not row:
                    del self.rows[simplex]

    def axpy(self, target: int, factor: int, source: int) -> None:
        """Column ``target`` -= ``factor`` * column ``source``."""
        column = self.columns[target]
        for simplex, coefficient in list(self.columns[source].items()):
            updated = (column.get(simplex, 0) - factor * coefficient) % self.p
            self._set(target, simplex, updated)

    def remove(self, key: int) -> None:
        for simplex in list(self.columns[key]):
            self._set(key, simplex, 0)
        del self.columns[key]
        del self.dimensions[key]


class PersistentCohomology:
    def __init__(
        self,
        complex_: FilteredComplex,
        field_characteristic: int = 11,
        persistence_dim_max: bool = False,
    ) -> None:
        self.complex = complex_
        self.field_characteristic = check_field_characteristic(field_characteristic)
        self.dim_max = complex_.dimension + (1 if persistence_dim_max else 0)
        self._intervals: Optional[List[PersistenceInterval]] = None

    def compute_persistent_cohomology(self, min_persistence: float = 0.0) -> List[PersistenceInterval]:
        """All intervals with death - birth > ``min_persistence`` plus the essential classes.

        A negative ``min_persistence`` keeps zero-length intervals.
        """
        complex_ = self.complex
        p = self.field_characteristic
        components = _UnionFind()
        cocycles = _CocycleMatrix(p)
        intervals: List[PersistenceInterval] = []

        def record(dimension: int, birth: float, death: float) -> None:
            if death - birth > min_persistence:
                intervals.append(PersistenceInterval(dimension, birth, death))

        for position, simplex in enumerate(complex_):
            dimension = simplex.dimension
            if dimension == 0:
                components.add(position)
                continue

            if dimension == 1:
                u, v = (complex_.position((w,)) for w in simplex.vertices)
                root_u, root_v = components.find(u), components.find(v)
                if root_u != root_v:
                    younger, elder = max(root_u, root_v), min(root_u, root_v)
                    components.parent[younger] = elder
                    record(0, complex_[younger].filtration, simplex.filtration)
                elif dimension < self.dim_max:
                    cocycles.create(position, dimension)
                continue

            values = cocycles.evaluate(complex_.boundary(position))
            if not values:
                if dimension < self.dim_max:
                    cocycles.create(position, dimension)
                continue

            youngest = max(values)
            inverse = pow(values[youngest], -1, p)
            for key, value in values.items():
                if key != youngest:
                    cocycles.axpy(key, (value * inverse) % p, youngest)
            cocycles.remove(youngest)
            record(dimension - 1, complex_[youngest].filtration, simplex.filtration)

        for root in components.roots():
            intervals.append(PersistenceInterval(0, complex_[root].filtration, float("inf")))
        for key in sorted(cocycles.columns):
            intervals.append(
                PersistenceInterval(cocycles.dimensions[key], complex_[key].filtration, float("inf"))
            )

        self._intervals = intervals
        return intervals

    @property
    def intervals(self) -> List[PersistenceInterval]:
        if self._intervals is None:
            raise RuntimeError("compute_persistent_cohomology() must run before reading intervals.")
        return self._intervals

    def intervals_in_dimension(self, dimension: int) -> np.ndarray:
        """(birth, death) rows for one homological dimension, shape (n, 2)."""
        return intervals_to_diagram(self.intervals, dimension)

    def betti_numbers(self) -> List[int]:
        """Counts of essential classes per dimension."""
        top = max((interval.dimension for interval in self.intervals), default=-1)
        counts = [0] * (top + 1)
        for interval in self.intervals:
            if not interval.is_finite:
                counts[interval.dimension] += 1
        return counts


def intervals_to_diagram(intervals: List[PersistenceInterval], dimension: int) -> np.ndarray:
    pairs = [(iv.birth, iv.death) for iv in intervals if iv.dimension == dimension]
    if not pairs:
        return np.empty((0, 2))
    return np.array(pairs, dtype=float)


def ripser_intervals(
    points: np.ndarray,
    max_edge_length: float = float("inf"),
    max_dimension: int = 1,
    field_characteristic: int = 11,
    min_persistence: float = 0.0,
    metric: Metric = "euclidean",
) -> List[PersistenceInterval]:
    """Same contract as the native engine on a Rips complex, delegated to ripser.

    ripser never reports zero-length intervals, whatever ``min_persistence`` is. Essential
    classes in a dimension the thresholded complex cannot kill (no simplex one dimension up)
    are dropped, as the native engine never tracks them.
    """
    if max_dimension < 1:
        raise ValueError("The ripser backend needs a complex of dimension at least 1.")
    p = check_field_characteristic(field_characteristic)
    points = np.asarray(points, dtype=float)
    if len(points) == 0:
        return []
    result = ripser(
        points,
        maxdim=max_dimension - 1,
        thresh=max_edge_length,
        coeff=p,
        metric=metric,
    )
    intervals: List[PersistenceInterval] = []
    for dim, dgm in enumerate(result["dgms"]):
        for birth, death in dgm:
            birth, death = float(birth), float(death)
            if np.isfinite(death) and not death - birth > min_persistence:
                continue
            intervals.append(PersistenceInterval(dim, birth, death))
    if any(iv.dimension > 0 and not iv.is_finite for iv in intervals):
        top = RipsComplex(points, max_edge_length=max_edge_length, metric=metric).complex_dimension(max_dimension)
        intervals = [iv for iv in intervals if iv.dimension == 0 or iv.dimension < top]
    return intervals


def format_diagram(intervals: List[PersistenceInterval], field_characteristic: int) -> List[str]:
    """Lines ``p dim birth death``, longest-lived first."""
    ordered = sorted(intervals, key=lambda iv: (-iv.persistence, iv.dimension, iv.birth))
    return [
        f"{field_characteristic}  {iv.dimension} {iv.birth!r} {iv.death!r}"
        for iv in ordered
    ]
