"""
Karush-Kuhn-Tucker diagnostics for convex quadratic programs.

Residuals follow the sign convention

```
    H x + g + A^T lam + G^T mu = 0,   A x = b,   G x <= h,   mu >= 0
```

so a multiplier vector can be checked independently of the primitive that
produced it. :func:`qpmanifold.solver.primitive_kkt_residuals` maps primitive
output onto this layout.
"""

from __future__ import annotations

from typing import Dict, Optional, Tuple

import numpy as np

from .linalg import symmetrize


def _block(
    mat: Optional[np.ndarray], rhs: Optional[np.ndarray], n: int
) -> Tuple[np.ndarray, np.ndarray]:
    # missing blocks become empty (0, n) systems
    if mat is None or np.asarray(mat).size == 0:
        return np.zeros((0, n)), np.zeros(0)
    mat = np.asarray(mat, dtype=float)
    if rhs is None:
        return mat, np.zeros(mat.shape[0])
    return mat, np.asarray(rhs, dtype=float).reshape(-1)


def _multipliers(values: Optional[np.ndarray], m: int) -> np.ndarray:
    return np.zeros(m) if values is None else np.asarray(values, dtype=float).reshape(-1)


def _inf_norm(vec: np.ndarray) -> float:
    return float(np.max(np.abs(vec))) if vec.size else 0.0


def kkt_residuals(
    hessian: Optional[np.ndarray],
    g_vec: Optional[np.ndarray],
    a_mat: Optional[np.ndarray],
    b_vec: Optional[np.ndarray],
    g_mat: Optional[np.ndarray],
    h_vec: Optional[np.ndarray],
    x: np.ndarray,
    lam: Optional[np.ndarray] = None,
    mu: Optional[np.ndarray] = None,
) -> Dict[str, float]:
    """
    Infinity-norm KKT residuals at ``x``.

    Returns:
        Mapping with keys ``primal_eq``, ``primal_ineq``, ``dual`` (the
        stationarity residual), ``complementary`` and ``dual_sign`` (the most
        negative inequality multiplier, reported as a positive number).

    Raises:
        ValueError: If a multiplier vector does not match its block.
    """

    x = np.asarray(x, dtype=float).reshape(-1)
    n = x.shape[0]
    hess = np.zeros((n, n)) if hessian is None else symmetrize(np.asarray(hessian, dtype=float))
    g_lin = np.zeros(n) if g_vec is None else np.asarray(g_vec, dtype=float).reshape(-1)

    a_eq, b_eq = _block(a_mat, b_vec, n)
    g_in, h_in = _block(g_mat, h_vec, n)
    lam_vec = _multipliers(lam, a_eq.shape[0])
    mu_vec = _multipliers(mu, g_in.shape[0])

    stationarity = hess @ x + g_lin + a_eq.T @ lam_vec + g_in.T @ mu_vec
    slack = h_in - g_in @ x
    return {
        "primal_eq": _inf_norm(a_eq @ x - b_eq),
        "primal_ineq": _inf_norm(np.minimum(slack, 0.0)),
        "dual": _inf_norm(stationarity),
        "complementary": _inf_norm(slack * mu_vec),
        "dual_sign": float(max(0.0, -mu_vec.min())) if mu_vec.size else 0.0,
    }


def is_kkt_optimal(
    hessian: Optional[np.ndarray],
    g_vec: Optional[np.ndarray],
    a_mat: Optional[np.ndarray],
    b_vec: Optional[np.ndarray],
    g_mat: Optional[np.ndarray],
    h_vec: Optional[np.ndarray],
    x: np.ndarray,
    lam: Optional[np.ndarray] = None,
    mu: Optional[np.ndarray] = None,
    tol: float = 1e-6,
) -> bool:
    """True if every residual of :func:`kkt_residuals` is at most ``tol``."""
    residuals = kkt_residuals(hessian, g_vec, a_mat, b_vec, g_mat, h_vec, x, lam, mu)
    return all(value <= tol for value in residuals.values())


__all__ = ["kkt_residuals", "is_kkt_optimal"]
