"""Euclidean k-d tree over tagged points, backed by Open3D."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
import open3d as o3d

LOGGER = logging.getLogger("pipeline.spatial_index")


@dataclass
class NeighborSet:
    """Result of a radius query.

    Attributes:
        count: Number of neighbors k (self included when the query point is indexed).
        points: (k, D) neighbor coordinates; row order is unspecified.
        tags: (k,) integer tags aligned with ``points``.
    """

    count: int
    points: np.ndarray
    tags: np.ndarray

    def __len__(self) -> int:
        return self.count


def _validate_tags(tags: Sequence[int], n: int) -> np.ndarray:
    array = np.asarray(tags)
    if array.ndim != 1 or array.shape[0] != n:
        raise ValueError(f"expected {n} tags, got shape {array.shape}")
    if array.size and not np.issubdtype(array.dtype, np.integer):
        rounded = np.round(array)
        if not np.array_equal(rounded, array):
            raise ValueError("tags must be integers")
        array = rounded
    array = array.astype(np.int64)
    if np.unique(array).size != n:
        raise ValueError("tags must be unique per indexed point")
    return array


class SpatialIndex:
    """Static L2 k-d tree over N points with one integer tag per point.

    The index keeps its own copy of the points. Build a new index instead of
    mutating one.
    """

    def __init__(self, points: np.ndarray, tags: Optional[Sequence[int]] = None):
        data = np.array(points, dtype=np.float64, copy=True)
        if data.ndim != 2 or data.shape[0] == 0:
            raise ValueError(f"points must be a non-empty (N, D) array, got shape {data.shape}")
        self._points = data
        self._tagged = tags is not None
        if tags is None:
            self._tags = np.arange(data.shape[0], dtype=np.int64)
        else:
            self._tags = _validate_tags(tags, data.shape[0])
        self._tree = self._build_tree(data)
        LOGGER.debug("Built %s k-d tree over %d points (dims=%d)", "tagged" if self._tagged else "untagged", self.size, self.dims)

    @classmethod
    def build(cls, points: np.ndarray) -> "SpatialIndex":
        return cls(points)

    @classmethod
    def build_tagged(cls, points: np.ndarray, tags: Sequence[int]) -> "SpatialIndex":
        return cls(points, tags=tags)

    @staticmethod
    def _build_tree(data: np.ndarray) -> o3d.geometry.KDTreeFlann:
        if data.shape[1] == 3:
            cloud = o3d.geometry.PointCloud()
            cloud.points = o3d.utility.Vector3dVector(np.ascontiguousarray(data))
            return o3d.geometry.KDTreeFlann(cloud)
        # Matrix form expects one point per column.
        return o3d.geometry.KDTreeFlann(np.ascontiguousarray(data.T))

    @property
    def size(self) -> int:
        return int(self._points.shape[0])

    @property
    def dims(self) -> int:
        return int(self._points.shape[1])

    @property
    def tagged(self) -> bool:
        return self._tagged

    @property
    def points(self) -> np.ndarray:
        view = self._points.view()
        view.flags.writeable = False
        return view

    @property
    def tags(self) -> np.ndarray:
        view = self._tags.view()
        view.flags.writeable = False
        return view

    def query_radius(self, query: np.ndarray, radius: float) -> NeighborSet:
        """Return every indexed point within ``radius`` (inclusive) of ``query``."""
        radius = float(radius)
        if not radius > 0.0:
            raise ValueError(f"radius must be > 0, got {radius}")
        query_point = np.asarray(query, dtype=np.float64).reshape(-1)
        if query_point.shape[0] != self.dims:
            raise ValueError(f"query has {query_point.shape[0]} coordinates, index has dims={self.dims}")

        # The tree excludes points at exactly ``radius``; widen by one ulp and re-filter.
        search_radius = float(np.nextafter(radius, np.inf))
        if self.dims == 3:
            _, idx, dist2 = self._tree.search_radius_vector_3d(query_point, search_radius)
        else:
            _, idx, dist2 = self._tree.search_radius_vector_xd(query_point, search_radius)
        rows = np.asarray(idx, dtype=np.int64)
        if rows.size:
            keep = np.asarray(dist2, dtype=np.float64) <= radius * radius
            rows = rows[keep]
        return NeighborSet(count=int(rows.size), points=self._points[rows].copy(), tags=self._tags[rows].copy())


__all__ = ["NeighborSet", "SpatialIndex"]
