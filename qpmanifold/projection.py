"""Projection of sampled optimal points to two or three display dimensions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .linalg import compute_covariance, compute_mean, eigen_decomposition


@dataclass(frozen=True)
class PCAProjection:
    """Result of :func:`pca_project`.

    Attributes
    ----------
    projected_points:
        ``(m, k)`` coordinates in the principal basis.
    principal_components:
        ``(k, n)`` unit vectors, largest variance first.
    eigenvalues:
        Variance along each component (clamped at zero).
    mean:
        Centre of the input points.
    explained_variance:
        Fraction of the total variance captured by each component.
    """

    projected_points: np.ndarray
    principal_components: np.ndarray
    eigenvalues: np.ndarray
    mean: np.ndarray
    explained_variance: np.ndarray


def manual_project(points: Sequence, axes: Sequence[int]) -> np.ndarray:
    """Keep only the coordinates listed in ``axes``."""
    pts = np.asarray(points, dtype=float)
    if pts.size == 0:
        return np.zeros((0, len(axes)))
    return pts[:, list(axes)]


def _all_same(centered: np.ndarray, tol: float = 1e-10) -> bool:
    return bool(np.all(np.abs(centered - centered[0]) < tol))


def pca_project(points: Sequence, dimensions: int = 2) -> PCAProjection:
    """Project points onto their leading principal components.

    Parameters
    ----------
    points:
        ``(m, n)`` array-like of points.
    dimensions:
        Number of components to keep (2 or 3 for display).

    Returns
    -------
    PCAProjection
        For a single point, or points that all coincide, every projection is
        zero and the components are the first ``dimensions`` unit axes.
    """

    pts = np.asarray(points, dtype=float)
    if pts.size == 0:
        empty = np.zeros(0)
        return PCAProjection(np.zeros((0, dimensions)), np.zeros((0, 0)), empty, empty, empty)

    m, n = pts.shape
    mean = compute_mean(pts)
    centered = pts - mean
    if m == 1 or _all_same(centered):
        return PCAProjection(
            projected_points=np.zeros((m, dimensions)),
            principal_components=np.eye(n)[:dimensions],
            eigenvalues=np.zeros(dimensions),
            mean=mean,
            explained_variance=np.zeros(dimensions),
        )

    decomposition = eigen_decomposition(compute_covariance(pts))
    values = np.asarray(decomposition.eigenvalues)
    order = np.argsort(-values, kind="stable")[:dimensions]
    top_values = np.maximum(values[order], 0.0)
    components = np.asarray(decomposition.eigenvectors)[:, order].T

    total = float(np.maximum(values, 0.0).sum())
    explained = top_values / total if total > 0 else np.zeros_like(top_values)
    return PCAProjection(
        projected_points=centered @ components.T,
        principal_components=components,
        eigenvalues=top_values,
        mean=mean,
        explained_variance=explained,
    )


def project_point_with_pca(point: Sequence[float], pca: PCAProjection) -> np.ndarray:
    """Project a new point with an existing PCA basis."""
    return pca.principal_components @ (np.asarray(point, dtype=float) - pca.mean)


def reconstruct_from_projection(
    projected: Sequence[float],
    pca: Optional[PCAProjection] = None,
    axes: Optional[Sequence[int]] = None,
    original_dimension: Optional[int] = None,
) -> np.ndarray:
    """Map display coordinates back to the original space.

    With ``pca`` the point is ``mean + sum_i p_i pc_i``; otherwise the
    coordinates are written into ``axes`` (default ``[0, 1]``) of a zero
    vector of length ``original_dimension``.
    """

    proj = np.asarray(projected, dtype=float).reshape(-1)
    if pca is not None:
        return pca.mean + proj @ pca.principal_components[: proj.shape[0]]
    axes = list(axes) if axes is not None else [0, 1]
    result = np.zeros(original_dimension or proj.shape[0])
    for value, axis in zip(proj, axes):
        result[axis] = value
    return result


def compute_bounding_box(points: Sequence) -> Optional[Tuple[np.ndarray, np.ndarray]]:
    """Per-axis ``(min, max)`` of the points, or ``None`` if there are none."""
    pts = np.asarray(points, dtype=float)
    if pts.size == 0:
        return None
    return pts.min(axis=0), pts.max(axis=0)


def expand_bounding_box(
    bbox: Optional[Tuple[np.ndarray, np.ndarray]], factor: float = 0.1
) -> Optional[Tuple[np.ndarray, np.ndarray]]:
    """Pad each axis by ``max(range * factor, 0.1)``."""
    if bbox is None:
        return None
    low, high = (np.asarray(v, dtype=float) for v in bbox)
    padding = np.maximum((high - low) * factor, 0.1)
    return low - padding, high + padding


def suggest_visualization_dimensions(n: int, num_points: int) -> int:
    """3 when the problem has at least three variables and four points, else 2."""
    return 3 if n >= 3 and num_points >= 4 else 2


def dimension_labels(axes: Sequence[int], projection: str = "pca") -> List[str]:
    """Axis labels: ``x1, x2, ...`` for manual axes, ``PC1, PC2, ...`` for PCA."""
    if projection == "manual":
        return [f"x{i + 1}" for i in axes]
    return [f"PC{i + 1}" for i in range(len(axes))]


__all__ = [
    "PCAProjection",
    "manual_project",
    "pca_project",
    "project_point_with_pca",
    "reconstruct_from_projection",
    "compute_bounding_box",
    "expand_bounding_box",
    "suggest_visualization_dimensions",
    "dimension_labels",
]
