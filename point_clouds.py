from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)


@dataclass
class PointCloudWindow:
    index: int
    label: str
    points: np.ndarray
    target: int
    start: Optional[int] = None
    end: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def last_point(self) -> np.ndarray:
        return self.points[-1]


def return_label(value: float) -> int:
    """Binary class of a return: 1 for non-negative, 0 for negative."""
    return 1 if value >= 0 else 0


class TimeSeriesWindows:
    """Overlapping fixed-size point clouds cut from a time series.

    Window ``i`` holds points ``[i, i + window_size)``; its target is the class of
    point ``i + window_size``'s last coordinate, so the final position that still has
    a next point bounds the window count at ``max(N - W, 0)``.
    """

    def __init__(self, series: np.ndarray, window_size: int) -> None:
        if window_size < 1:
            raise ValueError("Window size must be at least 1.")
        series = np.asarray(series, dtype=float)
        if series.ndim == 1:
            series = series.reshape(-1, 1)
        if series.ndim != 2:
            raise ValueError(f"Time series must be a 2-D array of points, got shape {series.shape}.")
        self._series = series
        self.window_size = int(window_size)

    @property
    def dimension(self) -> int:
        return int(self._series.shape[1])

    @property
    def series_length(self) -> int:
        return int(self._series.shape[0])

    def __len__(self) -> int:
        return max(self.series_length - self.window_size, 0)

    def __getitem__(self, index: int) -> PointCloudWindow:
        count = len(self)
        if index < 0:
            index += count
        if not 0 <= index < count:
            raise IndexError(f"Window index {index} out of range for {count} windows.")
        start = index
        end = index + self.window_size
        points = self._series[start:end].copy()
        points.setflags(write=False)
        next_value = float(self._series[end, -1])
        return PointCloudWindow(
            index=index,
            label=f"{start}_{end}",
            points=points,
            target=return_label(next_value),
            start=start,
            end=end,
            metadata={"next_value": next_value},
        )

    def __iter__(self) -> Iterator[PointCloudWindow]:
        for index in range(len(self)):
            yield self[index]


def delay_embedding(values: np.ndarray, dimension: int, delay: int = 1) -> np.ndarray:
    """Time-delay embedding whose rows end with the most recent value.

    Row ``t`` is ``[x(t - (m-1)*tau), ..., x(t - tau), x(t)]``.
    """
    if dimension < 1:
        raise ValueError("Embedding dimension must be at least 1.")
    if delay < 1:
        raise ValueError("Embedding delay must be at least 1.")
    arr = np.asarray(values, dtype=float).ravel()
    span = (dimension - 1) * delay
    count = arr.size - span
    if count <= 0:
        return np.empty((0, dimension), dtype=float)
    columns = [arr[offset * delay : offset * delay + count] for offset in range(dimension)]
    return np.column_stack(columns)


def _read_header(lines: List[str]) -> Tuple[int, Optional[int], Optional[int]]:
    """Return (rows to skip, declared dimension, declared point count)."""
    tokens: List[str] = []
    consumed = 0
    for raw in lines:
        consumed += 1
        content = raw.split("#", 1)[0].strip()
        if not content:
            continue
        tokens.extend(content.split())
        first = tokens[0]
        if first not in ("OFF", "nOFF"):
            return 0, None, None
        needed = 5 if first == "nOFF" else 4
        if len(tokens) >= needed:
            break
    if not tokens or tokens[0] not in ("OFF", "nOFF"):
        return 0, None, None

    try:
        if tokens[0] == "nOFF":
            dimension: Optional[int] = int(tokens[1])
            count = int(tokens[2])
        else:
            dimension = None
            count = int(tokens[1])
    except (IndexError, ValueError) as exc:
        raise ValueError(f"Malformed OFF header: {' '.join(tokens)!r}") from exc
    return consumed, dimension, count


def load_point_cloud(path: Path) -> np.ndarray:
    """Read a point file: ``OFF``/``nOFF`` header optional, one point per line."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Point file not found at {path}.")
    with path.open("r", encoding="utf-8") as handle:
        head = [handle.readline() for _ in range(4)]
    skip, dimension, count = _read_header(head)

    try:
        df = pd.read_csv(
            path,
            sep=r"\s+",
            header=None,
            comment="#",
            skiprows=skip,
            nrows=count,
            dtype=float,
            skip_blank_lines=True,
        )
    except pd.errors.EmptyDataError:
        df = pd.DataFrame()
    except ValueError as exc:
        raise ValueError(f"Point file {path} contains non-numeric or ragged records.") from exc

    if df.isna().any().any():
        raise ValueError(f"Point file {path} has records of differing dimension.")
    points = df.to_numpy(dtype=float)
    if dimension is not None and points.size and points.shape[1] != dimension:
        raise ValueError(
            f"Point file {path} declares dimension {dimension} but records have {points.shape[1]} coordinates."
        )
    if count is not None and points.shape[0] != count:
        raise ValueError(f"Point file {path} declares {count} points but contains {points.shape[0]}.")
    if points.size == 0:
        points = np.empty((0, dimension or 0), dtype=float)
    logger.info("Loaded %d points of dimension %d from %s", points.shape[0], points.shape[1], path)
    return points
