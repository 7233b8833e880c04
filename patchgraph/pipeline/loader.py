"""Point cloud loading from mesh and point files."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import numpy as np
import open3d as o3d
import trimesh

LOGGER = logging.getLogger("pipeline.loader")

POINT_CLOUD_SUFFIXES = {".ply", ".pcd"}
NUMPY_SUFFIXES = {".npy", ".npz"}
TEXT_SUFFIXES = {".xyz", ".txt", ".csv", ".pts"}
_NPZ_KEYS = ("points", "pts", "point_cloud")


class PointCloudLoadError(RuntimeError):
    """Raised when the input cloud cannot be loaded; carries loader messages."""

    def __init__(self, source_path: Optional[Path], errors: List[str]):
        self.source_path = source_path
        self.errors = list(errors)
        detail = "; ".join(self.errors) if self.errors else "unknown error"
        super().__init__(f"could not load point cloud {source_path}: {detail}")


@dataclass
class LoadResult:
    """Outcome of a load attempt. ``points`` is (N, D) float64 when ``ok``."""

    ok: bool
    source_path: Optional[Path]
    points: np.ndarray
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def adapt_points(vertices: np.ndarray, dims: int = 3) -> np.ndarray:
    """Group a flat coordinate stream (or an (N, D) array) into (N, D) float64 rows.

    Only 1-D input is a flat stream; 2-D input must already have D columns.
    """
    data = np.asarray(vertices, dtype=np.float64)
    if data.ndim == 2:
        if data.shape[1] != dims:
            raise ValueError(f"expected {dims} coordinate columns, got {data.shape[1]}")
        return np.ascontiguousarray(data)
    flat = data.reshape(-1)
    if flat.size % dims != 0:
        raise ValueError(f"coordinate count {flat.size} is not a multiple of dims={dims}")
    return np.ascontiguousarray(flat.reshape(-1, dims))


def load_point_cloud(path: str | Path, dims: int = 3) -> LoadResult:
    """Read vertex positions from ``path``.

    Failures never raise; they come back as ``ok=False`` with messages in
    ``errors`` so the caller decides whether to abort.
    """
    source_path = Path(path)
    empty = np.empty((0, dims), dtype=np.float64)
    warnings: List[str] = []

    if not source_path.is_file():
        return LoadResult(ok=False, source_path=source_path, points=empty, errors=[f"{source_path} does not exist"])

    try:
        raw = _leading_columns(_read_vertices(source_path, dims, warnings), dims, source_path, warnings)
        points = adapt_points(raw, dims)
    except Exception as exc:
        LOGGER.debug("Reader raised for %s", source_path, exc_info=True)
        return LoadResult(ok=False, source_path=source_path, points=empty, errors=[str(exc)], warnings=warnings)

    errors: List[str] = []
    if points.shape[0] == 0:
        errors.append(f"{source_path} contains no vertices")
    elif not np.all(np.isfinite(points)):
        bad = int(np.count_nonzero(~np.all(np.isfinite(points), axis=1)))
        errors.append(f"{source_path} contains {bad} vertices with non-finite coordinates")
    if errors:
        return LoadResult(ok=False, source_path=source_path, points=empty, errors=errors, warnings=warnings)

    LOGGER.debug("Loaded %d vertices from %s", points.shape[0], source_path)
    return LoadResult(ok=True, source_path=source_path, points=points, warnings=warnings)


def _leading_columns(raw: np.ndarray, dims: int, path: Path, warnings: List[str]) -> np.ndarray:
    """Keep the first ``dims`` columns of wider tables such as ``x y z nx ny nz``."""
    data = np.asarray(raw)
    if data.ndim == 2 and data.shape[1] > dims:
        warnings.append(f"{path}: {data.shape[1]} columns per row, only the first {dims} are used as coordinates")
        return data[:, :dims]
    return data


def _read_vertices(path: Path, dims: int, warnings: List[str]) -> np.ndarray:
    suffix = path.suffix.lower()
    if suffix in POINT_CLOUD_SUFFIXES:
        cloud = o3d.io.read_point_cloud(str(path))
        if not cloud.has_points():
            raise ValueError(f"point cloud {path} is empty or unreadable")
        return np.asarray(cloud.points, dtype=np.float64)
    if suffix == ".npy":
        return np.load(path)
    if suffix == ".npz":
        with np.load(path) as data:
            for key in _NPZ_KEYS:
                if key in data:
                    return np.asarray(data[key])
        raise KeyError(f"{path} does not contain any of {_NPZ_KEYS}")
    # Suffixes trimesh cannot read fall back to plain text.
    if suffix in TEXT_SUFFIXES or suffix.lstrip(".") not in trimesh.available_formats():
        delimiter = "," if suffix == ".csv" else None
        return np.loadtxt(path, dtype=np.float64, ndmin=1, delimiter=delimiter)
    if dims != 3:
        raise ValueError(f"mesh files only carry 3-D vertices, dims={dims} requested")
    return _read_mesh_vertices(path, warnings)


def _read_mesh_vertices(path: Path, warnings: List[str]) -> np.ndarray:
    loaded = trimesh.load(str(path), process=False)
    if isinstance(loaded, trimesh.Scene):
        geometries = list(loaded.geometry.values())
        if not geometries:
            return np.empty((0, 3), dtype=np.float64)
        if len(geometries) > 1:
            warnings.append(f"{path} holds {len(geometries)} geometries; their vertices are concatenated")
        for geometry in geometries:
            _note_faces(geometry, path, warnings)
        return np.vstack([np.asarray(g.vertices, dtype=np.float64) for g in geometries])
    _note_faces(loaded, path, warnings)
    return np.asarray(loaded.vertices, dtype=np.float64)


def _note_faces(geometry: object, path: Path, warnings: List[str]) -> None:
    faces = getattr(geometry, "faces", None)
    if faces is not None and len(faces) > 0:
        message = f"{path}: {len(faces)} faces ignored, only vertex positions are used"
        if message not in warnings:
            warnings.append(message)


__all__ = ["LoadResult", "PointCloudLoadError", "adapt_points", "load_point_cloud"]
