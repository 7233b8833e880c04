"""Human-readable diagnostic blocks for points and centroids."""

from __future__ import annotations

import logging
from typing import List, Optional

import numpy as np

from patchgraph.pipeline.patch_graph import PatchGraph
from patchgraph.pipeline.plane import PlaneEstimate
from patchgraph.pipeline.spatial_index import NeighborSet
from patchgraph.utils.config_loader import ReportConfig

LOGGER = logging.getLogger("pipeline.report")


def format_boxed_heading(label: str, title: str) -> str:
    """Return a box-drawn heading, e.g. for ``("2", "Estimate planes")``."""
    content = f"{label.strip()} {title.strip()}".strip()
    bar = "═" * (len(content) + 4)
    return f"\n╔{bar}╗\n║  {content}  ║\n╚{bar}╝"


def log_boxed_heading(logger: logging.Logger, label: str, title: str, level: int = logging.INFO) -> None:
    logger.log(level, format_boxed_heading(label, title))


class DiagnosticReporter:
    """Formats per-point and per-centroid blocks and sends them to ``pipeline.report``."""

    def __init__(self, config: ReportConfig, logger: Optional[logging.Logger] = None):
        self.config = config
        self.logger = logger or LOGGER

    @property
    def enabled(self) -> bool:
        return self.config.verbose and self.logger.isEnabledFor(logging.INFO)

    def array(self, values: np.ndarray) -> str:
        return np.array2string(
            np.asarray(values),
            precision=self.config.precision,
            floatmode="fixed",
            separator=",",
            max_line_width=10_000,
            threshold=np.iinfo(np.int32).max,
        )

    def scalar(self, value: float) -> str:
        return format(float(value), f".{max(self.config.precision, 1)}g")

    def format_point_block(
        self,
        index: int,
        query: np.ndarray,
        radius: float,
        neighbors: NeighborSet,
        plane: PlaneEstimate,
    ) -> str:
        lines: List[str] = [
            f"POINT {index} :",
            f"For query point {self.array(query)} with radius {self.scalar(radius)}",
            f"The neighborhood ({neighbors.count} points) is {self.array(neighbors.points)}",
            f"The centroid is {self.array(plane.centroid)}",
            f"And the normal is {self.array(plane.normal)}",
            f"With tag index {index}",
        ]
        if not plane.is_valid:
            lines.append(f"Plane status: {plane.status.value} (eigenvalues {self.array(plane.eigenvalues)})")
        return "\n".join(lines) + "\n"

    def format_centroid_block(self, graph: PatchGraph, radius: float) -> str:
        lines: List[str] = [
            f"CENTROID {graph.query_tag} :",
            f"For centroid point {self.array(graph.centroid)} with radius {self.scalar(radius)}",
            f"The neighborhood ({graph.size} centroids) is {self.array(graph.neighbors.points)}",
            f"The neighborhood tags are {self.array(graph.neighbors.tags)}",
        ]
        if self.config.print_weights:
            for tag_u, tag_v, weight in graph.labeled_edges():
                lines.append(f"w({tag_u},{tag_v}) = {self.scalar(weight)}")
        return "\n".join(lines) + "\n"

    def point(self, index: int, query: np.ndarray, radius: float, neighbors: NeighborSet, plane: PlaneEstimate) -> None:
        if self.enabled:
            self.logger.info(self.format_point_block(index, query, radius, neighbors, plane))

    def centroid(self, graph: PatchGraph, radius: float) -> None:
        if self.enabled:
            self.logger.info(self.format_centroid_block(graph, radius))


__all__ = ["DiagnosticReporter", "format_boxed_heading", "log_boxed_heading"]
