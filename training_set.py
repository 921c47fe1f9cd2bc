from __future__ import annotations

import json
import logging
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd

from persistence_landscape import landscape_norm
from persistent_cohomology import (
    PersistenceInterval,
    PersistentCohomology,
    format_diagram,
    intervals_to_diagram,
    ripser_intervals,
)
from pipeline_config import PipelineConfig
from point_clouds import PointCloudWindow, TimeSeriesWindows
from rips_complex import RipsComplex

try:
    from tqdm.auto import tqdm
except ImportError:  # pragma: no cover - tqdm is optional
    tqdm = None

logger = logging.getLogger(__name__)


class WindowComputationError(RuntimeError):
    def __init__(self, index: int, cause: BaseException) -> None:
        super().__init__(f"Window {index} failed: {cause}")
        self.index = index


@dataclass
class FeatureRow:
    index: int
    coordinates: np.ndarray
    norm: float
    label: int


def progress_iter(iterable: Iterable, total: Optional[int] = None, desc: str = "") -> Iterable:
    if tqdm is not None:
        return tqdm(iterable, total=total, desc=desc, leave=False)

    if total is None and hasattr(iterable, "__len__"):
        total = len(iterable)  # type: ignore[arg-type]

    def generator():
        count = 0
        checkpoints = max(1, (total or 100) // 10)
        for item in iterable:
            yield item
            count += 1
            if total:
                if count == 1 or count == total or count % checkpoints == 0:
                    prefix = f"{desc}: " if desc else ""
                    logger.info("%s%d/%d", prefix, count, total)
            elif count % checkpoints == 0:
                prefix = f"{desc}: " if desc else ""
                logger.info("%s%d", prefix, count)

    return generator()


def compute_intervals(points: np.ndarray, config: PipelineConfig) -> List[PersistenceInterval]:
    if config.backend == "ripser":
        return ripser_intervals(
            points,
            max_edge_length=config.max_edge_length,
            max_dimension=config.max_dimension,
            field_characteristic=config.field_characteristic,
            min_persistence=config.min_persistence,
            metric=config.metric,
        )
    rips = RipsComplex(points, max_edge_length=config.max_edge_length, metric=config.metric)
    complex_ = rips.create_complex(config.max_dimension)
    pcoh = PersistentCohomology(complex_, field_characteristic=config.field_characteristic)
    return pcoh.compute_persistent_cohomology(config.min_persistence)


def norm_of_landscape(points: np.ndarray, config: PipelineConfig) -> Tuple[float, List[PersistenceInterval]]:
    """Landscape norm of one point cloud's diagram in the configured homology dimension."""
    intervals = compute_intervals(points, config)
    diagram = intervals_to_diagram(intervals, config.homology_dimension)
    norm = landscape_norm(diagram, q=config.norm_exponent, max_layers=config.max_layers)
    return norm, intervals


def assemble_row(window: PointCloudWindow, norm: float) -> FeatureRow:
    return FeatureRow(
        index=window.index,
        coordinates=np.array(window.last_point, dtype=float),
        norm=float(norm),
        label=int(window.target),
    )


def _window_task(
    index: int, points: np.ndarray, config: PipelineConfig
) -> Tuple[int, float, List[PersistenceInterval]]:
    norm, intervals = norm_of_landscape(points, config)
    return index, norm, intervals


def _handle_failure(index: int, exc: Exception, config: PipelineConfig) -> float:
    if config.on_error == "abort":
        raise WindowComputationError(index, exc) from exc
    logger.warning("Window %d failed (%s); writing placeholder row", index, exc)
    return float("nan")


def compute_training_rows(
    series: np.ndarray,
    config: PipelineConfig,
) -> Tuple[List[FeatureRow], List[List[PersistenceInterval]]]:
    """One feature row per window, in window order, plus each window's intervals."""
    windows = TimeSeriesWindows(series, config.window_size)
    count = len(windows)
    norms: List[Optional[float]] = [None] * count
    diagrams: List[List[PersistenceInterval]] = [[] for _ in range(count)]
    if count == 0:
        logger.warning(
            "Series of %d points is not longer than the window size %d; no windows to process",
            windows.series_length,
            config.window_size,
        )
        return [], []

    logger.info("Processing %d windows of %d points with %d worker(s)", count, config.window_size, config.workers)
    if config.workers == 1 or count == 1:
        for window in progress_iter(windows, total=count, desc="TDA windows"):
            try:
                norms[window.index], diagrams[window.index] = norm_of_landscape(window.points, config)
            except Exception as exc:
                norms[window.index] = _handle_failure(window.index, exc, config)
    else:
        with ProcessPoolExecutor(max_workers=config.workers) as executor:
            futures = {
                executor.submit(_window_task, window.index, np.array(window.points), config): window.index
                for window in windows
            }
            for future in progress_iter(as_completed(futures), total=count, desc="TDA windows"):
                index = futures[future]
                try:
                    _, norms[index], diagrams[index] = future.result()
                except Exception as exc:
                    norms[index] = _handle_failure(index, exc, config)

    rows = [assemble_row(windows[index], norms[index]) for index in range(count)]
    return rows, diagrams


def training_frame(rows: List[FeatureRow], dimension: int) -> pd.DataFrame:
    columns = [f"x{i + 1}" for i in range(dimension)]
    frame = pd.DataFrame(
        [row.coordinates for row in rows] if rows else np.empty((0, dimension)),
        columns=columns,
        dtype=float,
    )
    frame["norm"] = pd.Series([row.norm for row in rows], dtype=float)
    frame["label"] = pd.Series([row.label for row in rows], dtype=int)
    return frame


def write_training_set(frame: pd.DataFrame, output_path: Path) -> None:
    """Space-separated ``coordinates... norm label`` lines, no header, overwriting."""
    frame.to_csv(
        output_path,
        sep=" ",
        header=False,
        index=False,
        na_rep="nan",
        lineterminator="\n",
    )


def read_training_set(path: Path) -> pd.DataFrame:
    try:
        df = pd.read_csv(path, sep=r"\s+", header=None)
    except pd.errors.EmptyDataError:
        return pd.DataFrame(columns=["norm", "label"])
    dimension = df.shape[1] - 2
    df.columns = [f"x{i + 1}" for i in range(dimension)] + ["norm", "label"]
    df["label"] = df["label"].astype(int)
    return df


def write_diagrams(
    output_path: Path,
    diagrams: List[List[PersistenceInterval]],
    field_characteristic: int,
) -> None:
    lines: List[str] = []
    for index, intervals in enumerate(diagrams):
        lines.append(f"# window {index}")
        lines.extend(format_diagram(intervals, field_characteristic))
    output_path.write_text("\n".join(lines) + ("\n" if lines else ""), encoding="utf-8")


def log_diagrams(diagrams: List[List[PersistenceInterval]], field_characteristic: int) -> None:
    if not logger.isEnabledFor(logging.DEBUG):
        return
    for index, intervals in enumerate(diagrams):
        logger.debug("Persistence diagram of window %d (%d intervals)", index, len(intervals))
        for line in format_diagram(intervals, field_characteristic):
            logger.debug("  %s", line)


def save_metadata(
    output_path: Path,
    observations: int,
    dimension: int,
    config: PipelineConfig,
    frame: pd.DataFrame,
) -> None:
    norms = frame["norm"].to_numpy(dtype=float) if not frame.empty else np.empty(0)
    finite = norms[np.isfinite(norms)]
    config_values = config.to_dict()
    for key, value in config_values.items():
        # JSON has no infinity literal
        if isinstance(value, float) and not np.isfinite(value):
            config_values[key] = str(value)
    metadata: Dict[str, object] = {
        "observations": observations,
        "dimension": dimension,
        "windows": int(len(frame)),
        "skipped_windows": int(len(norms) - len(finite)),
        "config": config_values,
        "norm": {
            "mean": float(np.mean(finite)) if finite.size else None,
            "max": float(np.max(finite)) if finite.size else None,
            "min": float(np.min(finite)) if finite.size else None,
        },
        "positive_labels": int(frame["label"].sum()) if not frame.empty else 0,
    }
    output_path.write_text(json.dumps(metadata, indent=2), encoding="utf-8")
