"""Local plane fitting: centroid + PCA normal of a neighbor set."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Tuple

import numpy as np


class PlaneStatus(enum.Enum):
    VALID = "valid"
    INSUFFICIENT_NEIGHBORS = "insufficient_neighbors"
    DEGENERATE = "degenerate"


@dataclass
class PlaneEstimate:
    """Best-fitting plane of one neighborhood.

    ``normal`` is always filled, but only trustworthy when ``status`` is VALID:
    with fewer than D neighbors, or with coincident/collinear neighbors, the
    smallest-eigenvalue direction is not unique.
    """

    centroid: np.ndarray
    normal: np.ndarray
    eigenvalues: np.ndarray
    neighbor_count: int
    status: PlaneStatus

    @property
    def is_valid(self) -> bool:
        return self.status is PlaneStatus.VALID


def _as_matrix(neighbors: np.ndarray) -> np.ndarray:
    matrix = np.asarray(neighbors, dtype=np.float64)
    if matrix.ndim != 2:
        raise ValueError(f"neighbors must be a (k, D) array, got shape {matrix.shape}")
    return matrix


def compute_centroid(neighbors: np.ndarray) -> np.ndarray:
    """Per-dimension arithmetic mean of the neighbor rows."""
    matrix = _as_matrix(neighbors)
    if matrix.shape[0] == 0:
        raise ValueError("cannot compute the centroid of an empty neighbor set")
    return matrix.sum(axis=0) / matrix.shape[0]


def estimate_normal(neighbors: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """PCA of the neighbor covariance.

    Returns:
        (normal, eigenvalues): eigenvalues in descending order; the normal is
        the unit eigenvector paired with the smallest one.
    """
    matrix = _as_matrix(neighbors)
    k = matrix.shape[0]
    if k == 0:
        raise ValueError("cannot estimate a normal from an empty neighbor set")
    centered = matrix - matrix.mean(axis=0)
    covariance = centered.T @ centered / max(k - 1, 1)
    eigenvalues, eigenvectors = np.linalg.eigh(covariance)
    order = np.argsort(eigenvalues)[::-1]
    eigenvalues = np.clip(eigenvalues[order], 0.0, None)
    eigenvectors = eigenvectors[:, order]
    return eigenvectors[:, -1].copy(), eigenvalues


def classify_plane(eigenvalues: np.ndarray, neighbor_count: int, tolerance: float = 1e-12) -> PlaneStatus:
    dims = eigenvalues.shape[0]
    if neighbor_count < dims:
        return PlaneStatus.INSUFFICIENT_NEIGHBORS
    if dims >= 2:
        # Two vanishing directions: points coincide or lie on a line.
        scale = max(float(eigenvalues[0]), np.finfo(np.float64).tiny)
        if float(eigenvalues[-2]) <= tolerance * scale:
            return PlaneStatus.DEGENERATE
    return PlaneStatus.VALID


def estimate_plane(neighbors: np.ndarray, tolerance: float = 1e-12) -> PlaneEstimate:
    matrix = _as_matrix(neighbors)
    centroid = compute_centroid(matrix)
    normal, eigenvalues = estimate_normal(matrix)
    status = classify_plane(eigenvalues, matrix.shape[0], tolerance)
    return PlaneEstimate(
        centroid=centroid,
        normal=normal,
        eigenvalues=eigenvalues,
        neighbor_count=int(matrix.shape[0]),
        status=status,
    )


__all__ = ["PlaneEstimate", "PlaneStatus", "classify_plane", "compute_centroid", "estimate_normal", "estimate_plane"]
