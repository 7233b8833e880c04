"""End-to-end pass: load -> per-point planes -> centroid index -> patch graphs.

- Load: `load_point_cloud`, aborting with `PointCloudLoadError` on failure.
- Planes: `estimate_planes` queries the point index once per point.
- Centroid index: `build_centroid_index`, tagged with source point indices.
- Graphs: `iter_patch_graphs`, one weight matrix per centroid, reported then dropped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np

from patchgraph.instrumentation.timing import TimingRecorder
from patchgraph.pipeline.loader import PointCloudLoadError, load_point_cloud
from patchgraph.pipeline.patch_graph import iter_patch_graphs
from patchgraph.pipeline.plane import PlaneStatus, estimate_plane
from patchgraph.pipeline.report import DiagnosticReporter, log_boxed_heading
from patchgraph.pipeline.spatial_index import SpatialIndex
from patchgraph.utils.config_loader import Config

LOGGER = logging.getLogger("pipeline")
LOADER_LOGGER = logging.getLogger("pipeline.loader")
PLANES_LOGGER = logging.getLogger("pipeline.planes")
GRAPH_LOGGER = logging.getLogger("pipeline.patch_graph")


@dataclass
class PlaneEstimationResult:
    """Index-aligned per-point plane data (row i belongs to point i)."""

    centroids: np.ndarray
    normals: np.ndarray
    eigenvalues: np.ndarray
    neighbor_counts: np.ndarray
    statuses: List[PlaneStatus]

    @property
    def valid_mask(self) -> np.ndarray:
        return np.array([status is PlaneStatus.VALID for status in self.statuses], dtype=bool)

    def status_counts(self) -> Dict[str, int]:
        counts = {status.value: 0 for status in PlaneStatus}
        for status in self.statuses:
            counts[status.value] += 1
        return counts


@dataclass
class PipelineResult:
    source_path: Optional[Path]
    points: np.ndarray
    planes: PlaneEstimationResult
    centroid_tags: np.ndarray
    graph_sizes: np.ndarray
    warnings: List[str] = field(default_factory=list)

    @property
    def centroids(self) -> np.ndarray:
        return self.planes.centroids

    @property
    def normals(self) -> np.ndarray:
        return self.planes.normals

    def summary(self) -> Dict[str, object]:
        sizes = self.graph_sizes
        return {
            "source": str(self.source_path) if self.source_path else None,
            "point_count": int(self.points.shape[0]),
            "plane_status": self.planes.status_counts(),
            "indexed_centroids": int(self.centroid_tags.size),
            "mean_graph_size": float(sizes.mean()) if sizes.size else 0.0,
            "max_graph_size": int(sizes.max()) if sizes.size else 0,
        }


def estimate_planes(
    points: np.ndarray,
    config: Config,
    recorder: TimingRecorder,
    reporter: Optional[DiagnosticReporter] = None,
) -> PlaneEstimationResult:
    """Fit one plane per point from its radius neighborhood."""
    radius = config.geometry.radius
    tolerance = config.plane.degenerate_tolerance
    point_count, dims = points.shape

    with recorder.section("pipeline/build_point_index"):
        index = SpatialIndex.build(points)

    centroids = np.empty((point_count, dims), dtype=np.float64)
    normals = np.empty((point_count, dims), dtype=np.float64)
    eigenvalues = np.empty((point_count, dims), dtype=np.float64)
    neighbor_counts = np.empty(point_count, dtype=np.int64)
    statuses: List[PlaneStatus] = []

    with recorder.section("pipeline/estimate_planes", {"points": point_count, "radius": radius}):
        for i in range(point_count):
            query = points[i]
            neighbors = index.query_radius(query, radius)
            plane = estimate_plane(neighbors.points, tolerance)
            centroids[i] = plane.centroid
            normals[i] = plane.normal
            eigenvalues[i] = plane.eigenvalues
            neighbor_counts[i] = neighbors.count
            statuses.append(plane.status)
            if not plane.is_valid:
                PLANES_LOGGER.debug("Point %d: %s plane from %d neighbors", i, plane.status.value, neighbors.count)
            if reporter is not None:
                reporter.point(i, query, radius, neighbors, plane)

    return PlaneEstimationResult(
        centroids=centroids,
        normals=normals,
        eigenvalues=eigenvalues,
        neighbor_counts=neighbor_counts,
        statuses=statuses,
    )


def build_centroid_index(planes: PlaneEstimationResult, config: Config, recorder: TimingRecorder) -> SpatialIndex:
    """Tagged index over centroids; each tag is the index of the source point.

    With ``graph.exclude_degenerate`` only centroids of VALID planes are indexed.
    """
    tags = np.arange(planes.centroids.shape[0], dtype=np.int64)
    if config.graph.exclude_degenerate:
        tags = tags[planes.valid_mask]
        if tags.size == 0:
            raise ValueError("no valid plane estimates left to index (graph.exclude_degenerate is set)")
    with recorder.section("pipeline/build_centroid_index"):
        return SpatialIndex.build_tagged(planes.centroids[tags], tags)


def run_pipeline(
    config: Config,
    recorder: TimingRecorder,
    source_path: Optional[Path] = None,
    reporter: Optional[DiagnosticReporter] = None,
) -> PipelineResult:
    """Execute the whole pass and return index-aligned arrays plus graph sizes.

    Args:
        config: Parsed config; ``source_path`` overrides ``config.input``.
        recorder: Timing recorder for the pipeline sections.
        reporter: Receives one block per point and per centroid when given.

    Raises:
        PointCloudLoadError: the input could not be loaded. Nothing is computed.
    """
    path = source_path if source_path is not None else config.input.resolve()
    if path is None:
        raise PointCloudLoadError(None, ["no input point cloud configured"])

    log_boxed_heading(LOGGER, "1", "Load point cloud")
    with recorder.section("pipeline/io"):
        loaded = load_point_cloud(path, config.geometry.dims)
    for message in loaded.warnings:
        LOADER_LOGGER.warning(message)
    if not loaded.ok:
        for message in loaded.errors:
            LOADER_LOGGER.error(message)
        raise PointCloudLoadError(loaded.source_path, loaded.errors)
    points = loaded.points
    LOGGER.info("Loaded point cloud source=%s count=%d dims=%d", loaded.source_path, points.shape[0], points.shape[1])

    log_boxed_heading(LOGGER, "2", "Estimate planes (centroid + PCA normal)")
    planes = estimate_planes(points, config, recorder, reporter)
    counts = planes.status_counts()
    PLANES_LOGGER.info(
        "Planes estimated: radius=%.6g neighbors min=%d max=%d status=%s",
        config.geometry.radius,
        int(planes.neighbor_counts.min()),
        int(planes.neighbor_counts.max()),
        counts,
    )
    not_valid = len(planes.statuses) - counts[PlaneStatus.VALID.value]
    if not_valid:
        PLANES_LOGGER.warning("%d of %d neighborhoods gave no reliable normal", not_valid, len(planes.statuses))

    log_boxed_heading(LOGGER, "3", "Centroid index + patch graphs")
    centroid_index = build_centroid_index(planes, config, recorder)
    radius = config.geometry.centroid_radius
    graph_sizes = np.empty(centroid_index.size, dtype=np.int64)
    with recorder.section("pipeline/patch_graphs", {"centroids": centroid_index.size, "radius": radius}):
        graphs = iter_patch_graphs(planes.centroids, planes.normals, centroid_index, radius, config.graph.weight_formula)
        for slot, graph in enumerate(graphs):
            graph_sizes[slot] = graph.size
            if reporter is not None:
                reporter.centroid(graph, radius)
    GRAPH_LOGGER.info(
        "Patch graphs built: centroids=%d formula=%s radius=%.6g",
        centroid_index.size,
        config.graph.weight_formula,
        radius,
    )

    return PipelineResult(
        source_path=loaded.source_path,
        points=points,
        planes=planes,
        centroid_tags=np.asarray(centroid_index.tags).copy(),
        graph_sizes=graph_sizes,
        warnings=list(loaded.warnings),
    )


__all__ = ["PipelineResult", "PlaneEstimationResult", "build_centroid_index", "estimate_planes", "run_pipeline"]
