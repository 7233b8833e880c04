"""Configuration loading helpers."""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

SUPPORTED_NORMS = ("euclidean", "l2", "2")
WEIGHT_FORMULAS = ("componentwise", "dot")


def _deep_merge(user_data: Dict[str, Any], default_data: Dict[str, Any]) -> Dict[str, Any]:
    """Merge user_data over default_data recursively."""
    merged = copy.deepcopy(default_data)
    for key, value in user_data.items():
        if isinstance(value, dict) and isinstance(default_data.get(key), dict):
            merged[key] = _deep_merge(value, default_data[key])
        else:
            merged[key] = value
    return merged


@dataclass(frozen=True)
class InputConfig:
    base_path: Optional[str]
    point_cloud_path: Optional[str]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InputConfig":
        base = data.get("base_path")
        path = data.get("point_cloud_path")
        return cls(base_path=str(base) if base else None, point_cloud_path=str(path) if path else None)

    def resolve(self) -> Optional[Path]:
        """Join base_path and point_cloud_path; absolute paths ignore the base."""
        if not self.point_cloud_path:
            return None
        path = Path(self.point_cloud_path)
        if self.base_path and not path.is_absolute():
            return Path(self.base_path) / path
        return path


@dataclass(frozen=True)
class GeometryConfig:
    dims: int
    norm: str
    radius: float
    centroid_radius: float

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GeometryConfig":
        dims = int(data.get("dims", 3))
        if dims < 1:
            raise ValueError(f"geometry.dims must be positive, got {dims}")
        norm = str(data.get("norm", "euclidean")).lower()
        if norm not in SUPPORTED_NORMS:
            raise ValueError(f"geometry.norm '{norm}' is not supported (only the Euclidean norm is)")
        radius = float(data.get("radius", 4.0))
        if not radius > 0.0:
            raise ValueError(f"geometry.radius must be > 0, got {radius}")
        centroid_value = data.get("centroid_radius")
        centroid_radius = radius if centroid_value is None else float(centroid_value)
        if not centroid_radius > 0.0:
            raise ValueError(f"geometry.centroid_radius must be > 0, got {centroid_radius}")
        return cls(dims=dims, norm="euclidean", radius=radius, centroid_radius=centroid_radius)


@dataclass(frozen=True)
class PlaneConfig:
    degenerate_tolerance: float

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlaneConfig":
        tolerance = float(data.get("degenerate_tolerance", 1e-12))
        if tolerance < 0.0:
            raise ValueError(f"plane.degenerate_tolerance must be >= 0, got {tolerance}")
        return cls(degenerate_tolerance=tolerance)


@dataclass(frozen=True)
class GraphConfig:
    weight_formula: str
    exclude_degenerate: bool

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GraphConfig":
        formula = str(data.get("weight_formula", "componentwise")).lower()
        if formula not in WEIGHT_FORMULAS:
            raise ValueError(f"graph.weight_formula must be one of {WEIGHT_FORMULAS}, got '{formula}'")
        return cls(weight_formula=formula, exclude_degenerate=bool(data.get("exclude_degenerate", False)))


@dataclass(frozen=True)
class ReportConfig:
    verbose: bool
    precision: int
    print_weights: bool

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReportConfig":
        precision = int(data.get("precision", 6))
        if precision < 0:
            raise ValueError(f"report.precision must be >= 0, got {precision}")
        return cls(
            verbose=bool(data.get("verbose", True)),
            precision=precision,
            print_weights=bool(data.get("print_weights", True)),
        )


@dataclass(frozen=True)
class TimingOutputConfig:
    format: str
    path: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimingOutputConfig":
        return cls(format=data["format"], path=data["path"])


@dataclass(frozen=True)
class InstrumentationConfig:
    enable_timing: bool
    enable_detailed_timing: bool
    timing_output: TimingOutputConfig
    sections: Dict[str, bool]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InstrumentationConfig":
        return cls(
            enable_timing=bool(data.get("enable_timing", False)),
            enable_detailed_timing=bool(data.get("enable_detailed_timing", False)),
            timing_output=TimingOutputConfig.from_dict(data["timing_output"]),
            sections={name: bool(flag) for name, flag in data.get("sections", {}).items()},
        )


@dataclass(frozen=True)
class Config:
    input: InputConfig
    geometry: GeometryConfig
    plane: PlaneConfig
    graph: GraphConfig
    report: ReportConfig
    instrumentation: InstrumentationConfig

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        return cls(
            input=InputConfig.from_dict(data.get("input", {})),
            geometry=GeometryConfig.from_dict(data["geometry"]),
            plane=PlaneConfig.from_dict(data.get("plane", {})),
            graph=GraphConfig.from_dict(data.get("graph", {})),
            report=ReportConfig.from_dict(data.get("report", {})),
            instrumentation=InstrumentationConfig.from_dict(data["instrumentation"]),
        )


DEFAULT_CONFIG: Dict[str, Any] = {
    "input": {
        "base_path": "PointClouds",
        "point_cloud_path": "xy_nearly.obj",
    },
    "geometry": {
        "dims": 3,
        "norm": "euclidean",
        # Should eventually follow the density and noise of the cloud.
        "radius": 4.0,
        "centroid_radius": None,
    },
    "plane": {"degenerate_tolerance": 1e-12},
    "graph": {"weight_formula": "componentwise", "exclude_degenerate": False},
    "report": {"verbose": True, "precision": 6, "print_weights": True},
    "instrumentation": {
        "enable_timing": False,
        "enable_detailed_timing": False,
        "timing_output": {"format": "jsonl", "path": "logs/timing.jsonl"},
        "sections": {
            "io": True,
            "build_point_index": True,
            "estimate_planes": True,
            "build_centroid_index": True,
            "patch_graphs": True,
        },
    },
}


def config_from_overrides(overrides: Optional[Dict[str, Any]] = None) -> Config:
    """Build a Config from DEFAULT_CONFIG plus nested overrides."""
    return Config.from_dict(_deep_merge(overrides or {}, DEFAULT_CONFIG))


def load_config(config_path: str | Path | None, overrides: Optional[Dict[str, Any]] = None) -> Config:
    """Load JSON config and fill missing fields with defaults.

    A missing ``config_path`` (None) yields the defaults. ``overrides`` are
    merged last, so CLI flags win over the file.
    """
    user_config: Dict[str, Any] = {}
    if config_path is not None:
        path = Path(config_path)
        with path.open("r", encoding="utf-8") as f:
            user_config = json.load(f)
    merged_config = _deep_merge(user_config, DEFAULT_CONFIG)
    if overrides:
        merged_config = _deep_merge(overrides, merged_config)
    return Config.from_dict(merged_config)


__all__ = [
    "Config",
    "DEFAULT_CONFIG",
    "GeometryConfig",
    "GraphConfig",
    "InputConfig",
    "InstrumentationConfig",
    "PlaneConfig",
    "ReportConfig",
    "TimingOutputConfig",
    "config_from_overrides",
    "load_config",
]
