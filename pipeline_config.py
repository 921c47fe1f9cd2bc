from __future__ import annotations

import math
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np

from persistent_cohomology import is_prime
from rips_complex import distance_matrix

try:
    import yaml
except ImportError as exc:  # pragma: no cover - optional dependency
    raise ImportError("PyYAML is required. Install it via 'pip install pyyaml'.") from exc

BACKENDS = ("cohomology", "ripser")
ERROR_POLICIES = ("abort", "skip")

# three non-collinear points, so covariance-based metrics are defined
_METRIC_SAMPLE = np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]])


@dataclass(frozen=True)
class PipelineConfig:
    window_size: int = 50
    max_edge_length: float = float("inf")
    max_dimension: int = 1
    field_characteristic: int = 11
    min_persistence: float = 0.0
    homology_dimension: int = 1
    norm_exponent: float = 1.0
    metric: str = "euclidean"
    backend: str = "cohomology"
    workers: int = 1
    on_error: str = "abort"
    diagram_file: str = ""
    training_file: str = "training.txt"
    max_layers: Optional[int] = None
    embedding_dimension: Optional[int] = None
    embedding_delay: int = 1

    def validate(self) -> "PipelineConfig":
        if self.window_size < 1:
            raise ValueError(f"Window size must be at least 1, got {self.window_size}.")
        if math.isnan(self.max_edge_length) or self.max_edge_length < 0:
            raise ValueError(f"Maximal edge length must be non-negative, got {self.max_edge_length}.")
        if self.max_dimension < 0:
            raise ValueError(f"Complex dimension must be non-negative, got {self.max_dimension}.")
        if not is_prime(self.field_characteristic):
            raise ValueError(
                f"Coefficient field characteristic must be a prime number, got {self.field_characteristic}."
            )
        if math.isnan(self.min_persistence):
            raise ValueError("Minimal persistence must be a number.")
        if self.homology_dimension < 0:
            raise ValueError(f"Homology dimension must be non-negative, got {self.homology_dimension}.")
        if not self.norm_exponent >= 1:
            raise ValueError(f"Landscape norm exponent must be at least 1, got {self.norm_exponent}.")
        try:
            distance_matrix(_METRIC_SAMPLE, metric=self.metric)
        except ValueError as exc:
            raise ValueError(f"Unknown distance metric '{self.metric}': {exc}") from exc
        if self.backend not in BACKENDS:
            raise ValueError(f"Unknown backend '{self.backend}'; choose from {', '.join(BACKENDS)}.")
        if self.backend == "ripser" and self.max_dimension < 1:
            raise ValueError("The ripser backend needs a complex dimension of at least 1.")
        if self.on_error not in ERROR_POLICIES:
            raise ValueError(f"Unknown error policy '{self.on_error}'; choose from {', '.join(ERROR_POLICIES)}.")
        if self.workers < 1:
            raise ValueError(f"Worker count must be at least 1, got {self.workers}.")
        if self.max_layers is not None and self.max_layers < 1:
            raise ValueError(f"max_layers must be positive when given, got {self.max_layers}.")
        if self.embedding_dimension is not None and self.embedding_dimension < 1:
            raise ValueError(f"Embedding dimension must be at least 1, got {self.embedding_dimension}.")
        if self.embedding_delay < 1:
            raise ValueError(f"Embedding delay must be at least 1, got {self.embedding_delay}.")
        return self

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _as_int(value: Any) -> int:
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f"{value!r} is not an integer.")
    return int(value)


_COERCE = {
    "window_size": _as_int,
    "max_edge_length": float,
    "max_dimension": _as_int,
    "field_characteristic": _as_int,
    "min_persistence": float,
    "homology_dimension": _as_int,
    "norm_exponent": float,
    "metric": str,
    "backend": str,
    "workers": _as_int,
    "on_error": str,
    "diagram_file": str,
    "training_file": str,
    "max_layers": _as_int,
    "embedding_dimension": _as_int,
    "embedding_delay": _as_int,
}


def load_config(config_path: Path) -> Dict[str, object]:
    with config_path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file {config_path} must hold a mapping, got {type(data).__name__}.")
    return data


def build_config(
    file_cfg: Optional[Dict[str, object]] = None,
    overrides: Optional[Dict[str, object]] = None,
) -> PipelineConfig:
    """Defaults, then the ``tda`` section of a config file, then non-None overrides."""
    known = {f.name for f in fields(PipelineConfig)}
    values: Dict[str, object] = {}
    if file_cfg is not None and not isinstance(file_cfg, dict):
        raise ValueError(f"Configuration must be a mapping, got {type(file_cfg).__name__}.")
    section = (file_cfg or {}).get("tda", {}) or {}
    if not isinstance(section, dict):
        raise ValueError(f"The 'tda' configuration section must be a mapping, got {type(section).__name__}.")
    for source in (section, overrides or {}):
        for key, value in source.items():
            if key not in known:
                raise ValueError(f"Unknown configuration key '{key}'.")
            if value is None:
                continue
            try:
                values[key] = _COERCE[key](value)
            except (TypeError, ValueError) as exc:
                raise ValueError(f"Invalid value {value!r} for '{key}'.") from exc
    return replace(PipelineConfig(), **values).validate()
