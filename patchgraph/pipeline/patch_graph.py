"""Per-centroid neighborhood graphs weighted by normal alignment."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator

import numpy as np

from patchgraph.pipeline.spatial_index import NeighborSet, SpatialIndex

LOGGER = logging.getLogger("pipeline.patch_graph")

# Diagonal entries; a node is never its own neighbor.
SELF_WEIGHT = float(np.finfo(np.float64).max)

COMPONENTWISE = "componentwise"
DOT = "dot"


def edge_weight(normal_u: np.ndarray, normal_v: np.ndarray, formula: str = COMPONENTWISE) -> float:
    """Dissimilarity of two normals; 0 means parallel (up to sign).

    ``componentwise``: 1 - sum_i |u_i * v_i|
    ``dot``:           1 - |u . v|
    """
    u = np.asarray(normal_u, dtype=np.float64)
    v = np.asarray(normal_v, dtype=np.float64)
    if formula == COMPONENTWISE:
        return float(1.0 - np.sum(np.abs(u * v)))
    if formula == DOT:
        return float(1.0 - abs(float(np.dot(u, v))))
    raise ValueError(f"unknown weight formula '{formula}'")


def build_weight_matrix(tags: np.ndarray, normals: np.ndarray, formula: str = COMPONENTWISE) -> np.ndarray:
    """k x k weights between the normals addressed by ``tags``.

    ``normals`` is indexed by tag, so tags must be valid row indices into it.
    """
    tag_array = np.asarray(tags, dtype=np.int64)
    normal_rows = np.asarray(normals, dtype=np.float64)
    if tag_array.size and (tag_array.min() < 0 or tag_array.max() >= normal_rows.shape[0]):
        raise IndexError(f"tags {tag_array.tolist()} out of range for {normal_rows.shape[0]} normals")
    selected = normal_rows[tag_array]
    if formula == COMPONENTWISE:
        products = np.abs(selected[:, None, :] * selected[None, :, :]).sum(axis=2)
    elif formula == DOT:
        products = np.abs(selected @ selected.T)
    else:
        raise ValueError(f"unknown weight formula '{formula}'")
    weights = 1.0 - products
    np.fill_diagonal(weights, SELF_WEIGHT)
    return weights


@dataclass
class PatchGraph:
    """Local graph around the centroid tagged ``query_tag``."""

    query_tag: int
    centroid: np.ndarray
    neighbors: NeighborSet
    weights: np.ndarray

    @property
    def size(self) -> int:
        return self.neighbors.count

    def labeled_edges(self) -> Iterator[tuple]:
        """Yield (tag_u, tag_v, weight) for every matrix entry, row-major."""
        tags = self.neighbors.tags
        for u in range(self.size):
            for v in range(self.size):
                yield int(tags[u]), int(tags[v]), float(self.weights[u, v])


def build_patch_graph(
    query_tag: int,
    centroid: np.ndarray,
    normals: np.ndarray,
    index: SpatialIndex,
    radius: float,
    formula: str = COMPONENTWISE,
) -> PatchGraph:
    neighbors = index.query_radius(centroid, radius)
    if neighbors.count == 0:
        LOGGER.warning("Centroid %d has no neighbors within %.6g (not a member of the index?)", query_tag, radius)
    weights = build_weight_matrix(neighbors.tags, normals, formula)
    return PatchGraph(query_tag=int(query_tag), centroid=np.asarray(centroid, dtype=np.float64), neighbors=neighbors, weights=weights)


def iter_patch_graphs(
    centroids: np.ndarray,
    normals: np.ndarray,
    index: SpatialIndex,
    radius: float,
    formula: str = COMPONENTWISE,
) -> Iterator[PatchGraph]:
    """Yield one PatchGraph per indexed centroid, built lazily.

    Consumers that drop each graph before advancing keep memory at a single
    k x k matrix.
    """
    for tag in index.tags:
        yield build_patch_graph(int(tag), centroids[int(tag)], normals, index, radius, formula)


__all__ = [
    "COMPONENTWISE",
    "DOT",
    "PatchGraph",
    "SELF_WEIGHT",
    "build_patch_graph",
    "build_weight_matrix",
    "edge_weight",
    "iter_patch_graphs",
]
