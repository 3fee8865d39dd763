"""
Phase I feasibility search by the revised simplex method.

The active-set primitive needs a feasible starting point. Free variables are
split as ``x = u - v`` with ``u, v >= 0``, inequalities receive slack
columns, rows with a negative right-hand side are negated, and one artificial
variable per row forms the initial basis. Minimizing the sum of the
artificials either drives them to zero (a feasible ``x`` is recovered from
``u - v``) or proves the constraint system infeasible.

References:
    - Nocedal & Wright, *Numerical Optimization*, 2nd edition, 2006, ch. 13.
    - Bertsimas & Tsitsiklis, *Introduction to Linear Optimization*, 1997.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from .logging import get_logger

logger = get_logger(__name__)


@dataclass
class FeasibilityResult:
    """Outcome of the phase I search."""

    x: Optional[np.ndarray]
    feasible: bool
    message: str
    nit: int
    max_violation: float = np.inf


@dataclass
class _PhaseOneState:
    z: np.ndarray
    objective: float
    basis: List[int]
    iterations: int
    converged: bool
    message: str


def _standard_form(
    a_eq: np.ndarray, b_eq: np.ndarray, g_mat: np.ndarray, h_vec: np.ndarray
) -> tuple[np.ndarray, np.ndarray]:
    n = a_eq.shape[1]
    m_eq = a_eq.shape[0]
    m_in = g_mat.shape[0]

    eq_block = np.hstack([a_eq, -a_eq, np.zeros((m_eq, m_in))])
    in_block = np.hstack([g_mat, -g_mat, np.eye(m_in)])
    a_std = np.vstack([eq_block, in_block])
    b_std = np.concatenate([b_eq, h_vec]).astype(float)

    negative = b_std < 0
    a_std[negative, :] *= -1.0
    b_std[negative] *= -1.0
    return a_std, b_std


def _phase_one(a_mat: np.ndarray, b: np.ndarray, maxiter: int, tol: float) -> _PhaseOneState:
    m, n_real = a_mat.shape
    a_phase = np.hstack([a_mat, np.eye(m)])
    cost = np.concatenate([np.zeros(n_real), np.ones(m)])
    basis = list(range(n_real, n_real + m))
    n_total = n_real + m

    nit = 0
    while nit < maxiter:
        nit += 1
        basis_matrix = a_phase[:, basis]
        try:
            x_basic = np.linalg.solve(basis_matrix, b)
            y = np.linalg.solve(basis_matrix.T, cost[basis])
        except np.linalg.LinAlgError:
            return _PhaseOneState(
                z=np.zeros(n_total),
                objective=np.inf,
                basis=basis,
                iterations=nit,
                converged=False,
                message="Basis matrix singular",
            )
        reduced = cost - a_phase.T @ y
        reduced[basis] = 0.0

        # Bland's rule: lowest-index improving column avoids cycling on
        # degenerate vertices.
        entering = None
        direction = None
        for j in range(n_total):
            if reduced[j] >= -tol:
                continue
            column_dir = np.linalg.solve(basis_matrix, a_phase[:, j])
            if np.any(column_dir > tol):
                entering, direction = j, column_dir
                break

        if entering is None:
            z = np.zeros(n_total)
            z[basis] = np.maximum(x_basic, 0.0)
            return _PhaseOneState(
                z=z,
                objective=float(cost @ z),
                basis=basis,
                iterations=nit,
                converged=True,
                message="Phase I optimal",
            )

        positive = direction > tol
        ratios = np.full_like(x_basic, np.inf)
        ratios[positive] = np.maximum(x_basic[positive], 0.0) / direction[positive]
        min_ratio = ratios.min()
        candidates = [i for i in range(m) if positive[i] and ratios[i] <= min_ratio + tol]
        leave_pos = min(candidates, key=lambda i: basis[i])
        basis[leave_pos] = entering

    return _PhaseOneState(
        z=np.zeros(n_total),
        objective=np.inf,
        basis=basis,
        iterations=nit,
        converged=False,
        message="Maximum iterations exceeded",
    )


def max_violation(
    x: np.ndarray,
    a_eq: np.ndarray,
    b_eq: np.ndarray,
    g_mat: np.ndarray,
    h_vec: np.ndarray,
    relative: bool = False,
) -> float:
    """
    Largest equality residual or positive inequality excess at ``x``.

    With ``relative=True`` each row's violation is divided by
    ``1 + |rhs|`` so that rows with large right-hand sides (such as the
    default ``1e6`` bounds) do not dominate the tolerance.
    """
    worst = 0.0
    if a_eq.shape[0]:
        eq_res = np.abs(a_eq @ x - b_eq)
        if relative:
            eq_res = eq_res / (1.0 + np.abs(b_eq))
        worst = max(worst, float(np.max(eq_res)))
    if g_mat.shape[0]:
        in_res = g_mat @ x - h_vec
        if relative:
            in_res = in_res / (1.0 + np.abs(h_vec))
        worst = max(worst, float(np.max(in_res)))
    return worst


def find_feasible_point(
    a_eq: np.ndarray,
    b_eq: np.ndarray,
    g_mat: np.ndarray,
    h_vec: np.ndarray,
    maxiter: Optional[int] = None,
    tol: float = 1e-9,
) -> FeasibilityResult:
    """
    Find ``x`` with ``A_eq x = b_eq`` and ``G x <= h`` or prove none exists.

    Args:
        a_eq: ``(m_eq, n)`` equality matrix (may have zero rows).
        b_eq: Equality right-hand side.
        g_mat: ``(m_in, n)`` inequality matrix (may have zero rows).
        h_vec: Inequality right-hand side.
        maxiter: Simplex iteration cap; defaults to ``50 * (rows + columns)``.
        tol: Pivoting tolerance. A point is accepted when every row is
            satisfied within ``1e3 * tol * (1 + |rhs|)``.

    Returns:
        :class:`FeasibilityResult`; ``feasible`` is False with a message
        containing "infeasible" when phase I cannot reach zero.
    """

    a_eq = np.asarray(a_eq, dtype=float)
    g_mat = np.asarray(g_mat, dtype=float)
    b_eq = np.asarray(b_eq, dtype=float).reshape(-1)
    h_vec = np.asarray(h_vec, dtype=float).reshape(-1)
    n = a_eq.shape[1]

    if a_eq.shape[0] + g_mat.shape[0] == 0:
        return FeasibilityResult(x=np.zeros(n), feasible=True, message="No constraints", nit=0, max_violation=0.0)

    origin = np.zeros(n)
    if max_violation(origin, a_eq, b_eq, g_mat, h_vec) <= tol:
        return FeasibilityResult(x=origin, feasible=True, message="Origin is feasible", nit=0, max_violation=0.0)

    a_std, b_std = _standard_form(a_eq, b_eq, g_mat, h_vec)
    if maxiter is None:
        maxiter = 50 * (a_std.shape[0] + a_std.shape[1])
    state = _phase_one(a_std, b_std, maxiter, tol)
    if not state.converged:
        logger.warning("Phase I did not converge: %s", state.message)
        return FeasibilityResult(x=None, feasible=False, message=f"Phase I failed: {state.message}", nit=state.iterations)

    x = state.z[:n] - state.z[n : 2 * n]
    violation = max_violation(x, a_eq, b_eq, g_mat, h_vec)
    relative = max_violation(x, a_eq, b_eq, g_mat, h_vec, relative=True)
    if relative > 1e3 * tol:
        logger.debug("Phase I residual %.3e, constraints infeasible", violation)
        return FeasibilityResult(
            x=None,
            feasible=False,
            message=f"Problem infeasible (phase I residual {violation:.3e})",
            nit=state.iterations,
            max_violation=violation,
        )
    return FeasibilityResult(
        x=x, feasible=True, message="Feasible point found", nit=state.iterations, max_violation=violation
    )


__all__ = ["FeasibilityResult", "find_feasible_point", "max_violation"]
