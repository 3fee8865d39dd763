"""
Dense linear algebra helpers used by the solver, sampler and geometry code.

The routines operate on small NumPy vectors and matrices and are written so
that their failure modes are explicit: the Jacobi eigen-solver returns its
best effort after a fixed number of sweeps, null-space extraction returns an
empty list for full-rank inputs and :func:`solve_linear_system` returns
``None`` instead of raising when it meets a near-zero pivot.

References:
    - Golub & Van Loan, *Matrix Computations*, 4th edition (2013)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

PIVOT_TOL = 1e-12


@dataclass(frozen=True)
class EigenDecomposition:
    """Eigenvalues and column eigenvectors of a symmetric matrix."""

    eigenvalues: np.ndarray
    eigenvectors: np.ndarray


def _as_vector(v) -> np.ndarray:
    return np.asarray(v, dtype=float).reshape(-1)


def _as_matrix(m) -> np.ndarray:
    arr = np.asarray(m, dtype=float)
    if arr.ndim != 2:
        raise ValueError(f"Expected a 2D matrix, got array with shape {arr.shape}")
    return arr


def dot(a, b) -> float:
    """Inner product of two vectors."""
    return float(_as_vector(a) @ _as_vector(b))


def norm(v) -> float:
    """Euclidean norm of a vector."""
    return float(np.sqrt(dot(v, v)))


def normalize(v) -> np.ndarray:
    """Return ``v`` scaled to unit length, or the zero vector if ``|v| < 1e-12``."""
    vec = _as_vector(v)
    length = norm(vec)
    if length > PIVOT_TOL:
        return vec / length
    return np.zeros_like(vec)


def mat_vec(matrix, v) -> np.ndarray:
    """Matrix-vector product."""
    return _as_matrix(matrix) @ _as_vector(v)


def mat_mul(a, b) -> np.ndarray:
    """Matrix-matrix product."""
    return _as_matrix(a) @ _as_matrix(b)


def transpose(matrix) -> np.ndarray:
    """Return a transposed copy of ``matrix``."""
    return _as_matrix(matrix).T.copy()


def symmetrize(matrix: np.ndarray) -> np.ndarray:
    """
    Return the symmetric part of ``matrix``.

    Small asymmetries from floating-point error are removed by returning
    ``0.5 * (matrix + matrix.T)``.
    """

    matrix = _as_matrix(matrix)
    return 0.5 * (matrix + matrix.T)


def eigen_decomposition(
    matrix, max_iter: int = 100, tol: float = 1e-10
) -> EigenDecomposition:
    """
    Eigen-decompose a symmetric matrix by cyclic Jacobi rotations.

    Each sweep finds the largest off-diagonal entry ``A[p, q]`` and applies
    the rotation that annihilates it. Iteration stops once every off-diagonal
    magnitude drops below ``tol`` or after ``max_iter`` sweeps; in the latter
    case the current diagonal is returned without signalling a failure.

    Args:
        matrix: Symmetric ``(n, n)`` matrix. It is not modified.
        max_iter: Maximum number of rotations.
        tol: Convergence threshold on the largest off-diagonal magnitude.

    Returns:
        :class:`EigenDecomposition` with eigenvalues in diagonal order and
        the corresponding eigenvectors stored as columns.
    """

    work = np.array(_as_matrix(matrix), dtype=float, copy=True)
    n = work.shape[0]
    if work.shape != (n, n):
        raise ValueError("Eigen-decomposition requires a square matrix")
    vectors = np.eye(n)

    for _ in range(max_iter):
        max_val = 0.0
        p, q = 0, 1
        for i in range(n):
            for j in range(i + 1, n):
                if abs(work[i, j]) > max_val:
                    max_val = abs(work[i, j])
                    p, q = i, j
        if max_val < tol:
            break

        theta = (work[q, q] - work[p, p]) / (2.0 * work[p, q])
        sign = 1.0 if theta >= 0.0 else -1.0
        t = sign / (abs(theta) + np.sqrt(theta * theta + 1.0))
        c = 1.0 / np.sqrt(1.0 + t * t)
        s = t * c

        rotated = work.copy()
        rotated[p, p] = work[p, p] - t * work[p, q]
        rotated[q, q] = work[q, q] + t * work[p, q]
        rotated[p, q] = 0.0
        rotated[q, p] = 0.0
        for i in range(n):
            if i != p and i != q:
                rotated[i, p] = c * work[i, p] - s * work[i, q]
                rotated[p, i] = rotated[i, p]
                rotated[i, q] = s * work[i, p] + c * work[i, q]
                rotated[q, i] = rotated[i, q]
        work = rotated

        col_p = vectors[:, p].copy()
        col_q = vectors[:, q].copy()
        vectors[:, p] = c * col_p - s * col_q
        vectors[:, q] = s * col_p + c * col_q

    eigenvalues = np.diag(work).copy()
    eigenvalues.setflags(write=False)
    vectors.setflags(write=False)
    return EigenDecomposition(eigenvalues=eigenvalues, eigenvectors=vectors)


def is_psd(matrix, tolerance: float = -1e-10) -> bool:
    """Return True if every Jacobi eigenvalue of ``matrix`` is at least ``tolerance``."""
    decomposition = eigen_decomposition(matrix)
    return bool(np.all(decomposition.eigenvalues >= tolerance))


def gram_schmidt(rows: Sequence) -> List[np.ndarray]:
    """
    Classical Gram-Schmidt orthogonalization of ``rows``.

    The result has one (unnormalized) vector per input row. Rows that are
    linearly dependent on earlier rows come out as near-zero vectors and are
    skipped as projection targets for later rows.
    """

    result: List[np.ndarray] = []
    for row in rows:
        v = np.array(_as_vector(row), copy=True)
        for u in result:
            denom = float(u @ u)
            if denom > 0.0:
                v = v - (float(v @ u) / denom) * u
        result.append(v)
    return result


def compute_null_space(
    rows: Sequence, tol: float = 1e-10, n: Optional[int] = None
) -> List[np.ndarray]:
    """
    Orthonormal basis of the directions orthogonal to every row.

    The rows are orthonormalized first, dropping vectors whose norm falls
    below ``tol``. Each standard basis vector is then stripped of its
    row-space and already-found null-space components; survivors with norm
    above ``tol`` are renormalized and added to the basis.

    Args:
        rows: Sequence of length-``n`` vectors.
        tol: Norm threshold used both for rank decisions and for accepting
            new basis vectors.
        n: Ambient dimension. Needed only when ``rows`` is empty; in that
            case the whole space is returned. Without it an empty input
            yields an empty basis.

    Returns:
        List of orthonormal vectors; empty when the rows span the space.
    """

    rows = [_as_vector(r) for r in rows]
    if not rows:
        if n is None:
            return []
        return [row.copy() for row in np.eye(n)]

    dim = rows[0].shape[0]
    row_space = [v / norm(v) for v in gram_schmidt(rows) if norm(v) > tol]
    if len(row_space) >= dim:
        return []

    basis: List[np.ndarray] = []
    for i in range(dim):
        e = np.zeros(dim)
        e[i] = 1.0
        for r in row_space:
            e = e - float(e @ r) * r
        for b in basis:
            e = e - float(e @ b) * b
        length = norm(e)
        if length > tol:
            basis.append(e / length)
    return basis


def solve_linear_system(matrix, rhs) -> Optional[np.ndarray]:
    """
    Solve ``A x = b`` by Gaussian elimination with partial pivoting.

    Returns:
        The solution vector, or ``None`` when a pivot smaller than ``1e-12``
        in magnitude is met. Callers must check for ``None``.
    """

    a = np.array(_as_matrix(matrix), dtype=float, copy=True)
    b = np.array(_as_vector(rhs), dtype=float, copy=True)
    n = a.shape[0]
    if a.shape != (n, n) or b.shape[0] != n:
        raise ValueError("solve_linear_system requires a square matrix and matching rhs")
    aug = np.hstack([a, b[:, np.newaxis]])

    for col in range(n):
        pivot_row = col + int(np.argmax(np.abs(aug[col:, col])))
        if pivot_row != col:
            aug[[col, pivot_row]] = aug[[pivot_row, col]]
        if abs(aug[col, col]) < PIVOT_TOL:
            return None
        for row in range(col + 1, n):
            factor = aug[row, col] / aug[col, col]
            aug[row, col:] -= factor * aug[col, col:]

    x = np.zeros(n)
    for i in range(n - 1, -1, -1):
        x[i] = (aug[i, n] - aug[i, i + 1 : n] @ x[i + 1 :]) / aug[i, i]
    return x


def compute_mean(points) -> np.ndarray:
    """Sample mean of a set of points (empty array for no points)."""
    pts = np.asarray(points, dtype=float)
    if pts.size == 0:
        return np.zeros(0)
    return pts.mean(axis=0)


def compute_covariance(points) -> np.ndarray:
    """
    Sample covariance of a set of points.

    Uses the unbiased ``m - 1`` divisor; a single point has zero covariance.
    """

    pts = np.asarray(points, dtype=float)
    if pts.size == 0:
        return np.zeros((0, 0))
    m = pts.shape[0]
    centered = pts - pts.mean(axis=0)
    return centered.T @ centered / (m - 1 or 1)


def approx_equal(a, b, tol: float = 1e-8) -> bool:
    """Element-wise comparison with absolute tolerance ``tol`` (strict)."""
    va, vb = _as_vector(a), _as_vector(b)
    if va.shape != vb.shape:
        return False
    return bool(np.all(np.abs(va - vb) < tol))


def random_unit_vector(n: int, rng: np.random.Generator) -> np.ndarray:
    """Unit vector from coordinates drawn uniformly in ``[-1, 1]``."""
    return normalize(rng.uniform(-1.0, 1.0, size=n))


__all__ = [
    "EigenDecomposition",
    "dot",
    "norm",
    "normalize",
    "mat_vec",
    "mat_mul",
    "transpose",
    "symmetrize",
    "eigen_decomposition",
    "is_psd",
    "gram_schmidt",
    "compute_null_space",
    "solve_linear_system",
    "compute_mean",
    "compute_covariance",
    "approx_equal",
    "random_unit_vector",
]
