from __future__ import annotations

import logging
import math
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

logger = logging.getLogger(__name__)

INF = float("inf")

DiagramLike = Union[np.ndarray, Sequence[Tuple[float, float]]]


def finite_diagram(diagram: DiagramLike) -> np.ndarray:
    diag = np.asarray(diagram, dtype=float)
    if diag.size == 0:
        return np.empty((0, 2))
    diag = diag.reshape(-1, 2)
    if np.isnan(diag).any():
        raise ValueError("Persistence diagram contains NaN values.")
    if np.any(diag[:, 0] > diag[:, 1]):
        raise ValueError("Persistence diagram contains intervals with birth after death.")
    keep = np.isfinite(diag[:, 0]) & np.isfinite(diag[:, 1])
    return diag[keep]


def _sorted_pairs(diagram: np.ndarray) -> List[Tuple[float, float]]:
    """Pairs by increasing birth, ties by decreasing death; zero-length tents dropped."""
    pairs = [(float(b), float(d)) for b, d in diagram if d > b]
    pairs.sort(key=lambda pair: (pair[0], -pair[1]))
    return pairs


def _build_layers(pairs: List[Tuple[float, float]], max_layers: Optional[int]) -> List[np.ndarray]:
    """Critical points of each layer, from the upper envelope sweep of the tents.

    Each layer starts at (-inf, 0) and ends at (inf, 0). The part of a tent hidden under
    a later, longer-lived tent is pushed back into the queue as the interval
    (later birth, earlier death) and resurfaces on the next layer.
    """
    queue = list(pairs)
    layers: List[np.ndarray] = []
    while queue and (max_layers is None or len(layers) < max_layers):
        birth, death = queue.pop(0)
        points = [(-INF, 0.0), (birth, 0.0), ((birth + death) / 2, (death - birth) / 2)]
        cursor = 0
        while True:
            nxt = next((i for i in range(cursor, len(queue)) if queue[i][1] > death), None)
            if nxt is None:
                points.extend([(death, 0.0), (INF, 0.0)])
                break
            next_birth, next_death = queue.pop(nxt)
            cursor = nxt
            if next_birth > death:
                points.append((death, 0.0))
            if next_birth >= death:
                points.append((next_birth, 0.0))
            else:
                points.append(((next_birth + death) / 2, (death - next_birth) / 2))
                key = (next_birth, -death)
                slot = cursor
                while slot < len(queue) and (queue[slot][0], -queue[slot][1]) < key:
                    slot += 1
                while slot > 0 and (queue[slot - 1][0], -queue[slot - 1][1]) > key:
                    slot -= 1
                queue.insert(slot, (next_birth, death))
            points.append(((next_birth + next_death) / 2, (next_death - next_birth) / 2))
            birth, death = next_birth, next_death
        layers.append(np.array(points, dtype=float))
    return layers


def _segment_integrals(xs: np.ndarray, ys: np.ndarray, q: float) -> float:
    """Exact integral of |y|^q over a piecewise-linear, sign-constant-per-segment function."""
    finite = np.isfinite(xs[:-1]) & np.isfinite(xs[1:])
    x0, x1 = xs[:-1][finite], xs[1:][finite]
    a, b = np.abs(ys[:-1][finite]), np.abs(ys[1:][finite])
    width = x1 - x0
    if q == 1.0:
        return float(np.sum(width * (a + b) / 2))
    same = a == b
    denom = np.where(same, 1.0, (q + 1) * (b - a))
    sloped = width * (b ** (q + 1) - a ** (q + 1)) / denom
    flat = width * a ** q
    return float(np.sum(np.where(same, flat, sloped)))


class PersistenceLandscape:
    """Persistence landscape of one diagram, layers stored as critical points.

    Intervals with an infinite end are skipped; birth > death is rejected.
    """

    def __init__(self, diagram: DiagramLike, max_layers: Optional[int] = None) -> None:
        if max_layers is not None and max_layers < 1:
            raise ValueError("max_layers must be positive when given.")
        raw = np.asarray(diagram, dtype=float).reshape(-1, 2)
        finite = finite_diagram(raw)
        if len(finite) < len(raw):
            logger.debug("Skipping %d essential intervals in landscape construction", len(raw) - len(finite))
        self.layers: List[np.ndarray] = _build_layers(_sorted_pairs(finite), max_layers)

    def __len__(self) -> int:
        return len(self.layers)

    def critical_points(self, level: int) -> np.ndarray:
        return self.layers[level]

    def value(self, level: int, x: float) -> float:
        """Value of layer ``level`` (0 is the top layer) at ``x``; 0 past the last layer."""
        if level < 0:
            raise ValueError("Landscape levels are numbered from 0.")
        if level >= len(self.layers):
            return 0.0
        points = self.layers[level][1:-1]
        return float(np.interp(x, points[:, 0], points[:, 1], left=0.0, right=0.0))

    def integral(self, q: float = 1.0) -> float:
        """Sum over layers of the integral of |layer|^q."""
        return float(sum(_segment_integrals(layer[:, 0], layer[:, 1], q) for layer in self.layers))

    def max_value(self) -> float:
        if not self.layers:
            return 0.0
        return float(max(np.max(np.abs(layer[:, 1])) for layer in self.layers))

    def norm(self, q: float = 1.0) -> float:
        """L^q norm; q = inf gives the supremum norm."""
        if q < 1:
            raise ValueError(f"Landscape norm exponent must be at least 1, got {q}.")
        if not self.layers:
            return 0.0
        if math.isinf(q):
            return self.max_value()
        total = self.integral(q)
        if q == 1.0:
            return total
        return total ** (1.0 / q)


def landscape_norm(diagram: DiagramLike, q: float = 1.0, max_layers: Optional[int] = None) -> float:
    return PersistenceLandscape(diagram, max_layers=max_layers).norm(q)
