"""
QP primitives behind the solver.

Every backend implements the classic dense QP calling convention

```
    minimize    1/2 x^T D x - d^T x
    subject to  A^T x >= b      (the first ``meq`` columns hold with equality)
```

with ``D`` symmetric positive definite. :class:`qpmanifold.solver` owns the
translation between :class:`qpmanifold.core.Problem` and this convention, so
a backend can be swapped without touching the solver.

``ActiveSetBackend`` is the default: a primal active-set method (Nocedal &
Wright, ch. 16) started from a phase I simplex point. ``ScipyBackend`` wraps
SciPy's SLSQP when SciPy is installed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Protocol, Tuple, runtime_checkable

import numpy as np

from .errors import SolverError
from .feasibility import find_feasible_point, max_violation
from .linalg import symmetrize
from .logging import get_logger

try:
    from scipy.optimize import minimize as _scipy_minimize

    SCIPY_AVAILABLE = True
except Exception:  # pragma: no cover - SciPy is optional
    SCIPY_AVAILABLE = False
    _scipy_minimize = None

logger = get_logger(__name__)


@dataclass(frozen=True)
class QPPrimitiveResult:
    """
    Raw primitive output.

    Attributes:
        solution: Primal vector (may contain NaN on numerical failure).
        lagrangian: One multiplier per constraint column of ``A`` with
            ``D x - d = A lagrangian``, or ``None`` if the backend does not
            report multipliers. Inequality entries are non-negative at a KKT
            point.
        message: Backend message; contains "infeasible" when the constraint
            system has no solution.
        iterations: Iterations performed.
        converged: False when the backend stopped before reaching its
            optimality test, e.g. at an iteration cap. The primal vector is
            then only the last iterate.
    """

    solution: np.ndarray
    lagrangian: Optional[np.ndarray]
    message: str
    iterations: int = 0
    converged: bool = True


@runtime_checkable
class QPBackend(Protocol):
    """Interface of a dense QP primitive."""

    def solve_qp(
        self,
        Dmat: np.ndarray,
        dvec: np.ndarray,
        Amat: Optional[np.ndarray],
        bvec: Optional[np.ndarray],
        meq: int = 0,
    ) -> QPPrimitiveResult:
        ...


def _split_constraints(
    n: int, Amat: Optional[np.ndarray], bvec: Optional[np.ndarray], meq: int
) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """Return ``(A_eq, b_eq, G, h)`` with ``A_eq x = b_eq`` and ``G x <= h``."""
    if Amat is None or np.asarray(Amat).size == 0:
        return np.zeros((0, n)), np.zeros(0), np.zeros((0, n)), np.zeros(0)
    amat = np.asarray(Amat, dtype=float)
    if amat.ndim != 2 or amat.shape[0] != n:
        raise ValueError("Amat must have one row per variable")
    bv = np.zeros(amat.shape[1]) if bvec is None else np.asarray(bvec, dtype=float).reshape(-1)
    if bv.shape[0] != amat.shape[1]:
        raise ValueError("bvec must have one entry per constraint column")
    if not 0 <= meq <= amat.shape[1]:
        raise ValueError("meq must lie between 0 and the number of constraints")
    rows = amat.T
    return rows[:meq], bv[:meq], -rows[meq:], -bv[meq:]


def _kkt_solve(
    hessian: np.ndarray,
    grad: np.ndarray,
    a_mat: np.ndarray,
) -> Tuple[np.ndarray, np.ndarray]:
    n = hessian.shape[0]
    m = a_mat.shape[0]
    if m == 0:
        return -np.linalg.solve(hessian, grad), np.zeros(0)
    kkt_matrix = np.block([[hessian, a_mat.T], [a_mat, np.zeros((m, m))]])
    vec = np.concatenate([-grad, np.zeros(m)])
    try:
        sol = np.linalg.solve(kkt_matrix, vec)
    except np.linalg.LinAlgError:
        sol, *_ = np.linalg.lstsq(kkt_matrix, vec, rcond=None)
    return sol[:n], sol[n:]


class ActiveSetBackend:
    """
    Primal active-set QP primitive.

    The working set always contains the equality rows; inequality rows enter
    when they block a step and leave when their multiplier turns negative.
    Iteration stops when the equality-constrained step is negligible either
    in length (``tol``) or in predicted objective decrease (relative
    ``decrease_tol``) and every working multiplier is non-negative.

    Args:
        maxiter: Maximum number of active-set iterations.
        tol: Step-length and blocking tolerance.
        multiplier_tol: Multipliers below ``-multiplier_tol`` are dropped.
        decrease_tol: Relative objective decrease regarded as zero.
    """

    def __init__(
        self,
        maxiter: int = 200,
        tol: float = 1e-10,
        multiplier_tol: float = 1e-12,
        decrease_tol: float = 1e-15,
    ):
        self.maxiter = maxiter
        self.tol = tol
        self.multiplier_tol = multiplier_tol
        self.decrease_tol = decrease_tol

    def solve_qp(
        self,
        Dmat: np.ndarray,
        dvec: np.ndarray,
        Amat: Optional[np.ndarray],
        bvec: Optional[np.ndarray],
        meq: int = 0,
    ) -> QPPrimitiveResult:
        hessian = symmetrize(np.asarray(Dmat, dtype=float))
        g_vec = -np.asarray(dvec, dtype=float).reshape(-1)
        n = g_vec.shape[0]
        if hessian.shape != (n, n):
            raise ValueError("Dmat must be square and match the length of dvec")

        a_eq, b_eq, g_mat, h_vec = _split_constraints(n, Amat, bvec, meq)
        n_eq = a_eq.shape[0]
        n_in = g_mat.shape[0]

        start = find_feasible_point(a_eq, b_eq, g_mat, h_vec)
        if not start.feasible:
            return QPPrimitiveResult(
                solution=np.full(n, np.nan),
                lagrangian=None,
                message=start.message if "infeasible" in start.message.lower() else f"Phase I: {start.message}",
                iterations=start.nit,
            )
        x = np.array(start.x, dtype=float, copy=True)

        def objective(vector: np.ndarray) -> float:
            return float(0.5 * vector @ (hessian @ vector) + g_vec @ vector)

        active_ineq: List[int] = []
        nit = 0
        for nit in range(1, self.maxiter + 1):
            grad = hessian @ x + g_vec
            a_work = np.vstack([a_eq, g_mat[active_ineq]]) if active_ineq else a_eq

            try:
                p, multipliers = _kkt_solve(hessian, grad, a_work)
            except np.linalg.LinAlgError as exc:
                raise SolverError(f"KKT solve failed: {exc}") from exc

            decrease = -(grad @ p + 0.5 * p @ (hessian @ p))
            scale = max(1.0, abs(objective(x)))
            if np.linalg.norm(p) <= self.tol or decrease <= self.decrease_tol * scale:
                lam = multipliers[n_eq:]
                if lam.size and lam.min() < -self.multiplier_tol * max(1.0, np.linalg.norm(grad)):
                    del active_ineq[int(np.argmin(lam))]
                    continue
                return QPPrimitiveResult(
                    solution=x,
                    lagrangian=self._lagrangian(multipliers, active_ineq, n_eq, n_in),
                    message="KKT conditions satisfied",
                    iterations=nit,
                )

            alpha = 1.0
            blocker = -1
            for idx in range(n_in):
                if idx in active_ineq:
                    continue
                g_row = g_mat[idx]
                denom = g_row @ p
                if denom > self.tol * max(1.0, np.linalg.norm(g_row) * np.linalg.norm(p)):
                    step = max((h_vec[idx] - g_row @ x) / denom, 0.0)
                    if step < alpha:
                        alpha = step
                        blocker = idx

            x = x + alpha * p
            if blocker >= 0:
                active_ineq.append(blocker)

        logger.warning("Active-set iteration cap %d reached", self.maxiter)
        grad = hessian @ x + g_vec
        a_work = np.vstack([a_eq, g_mat[active_ineq]]) if active_ineq else a_eq
        _, multipliers = _kkt_solve(hessian, grad, a_work)
        return QPPrimitiveResult(
            solution=x,
            lagrangian=self._lagrangian(multipliers, active_ineq, n_eq, n_in),
            message="Maximum iterations reached",
            iterations=nit,
            converged=False,
        )

    @staticmethod
    def _lagrangian(
        multipliers: np.ndarray, active_ineq: List[int], n_eq: int, n_in: int
    ) -> np.ndarray:
        # KKT rows read H x + g + A_eq^T y + G_W^T mu = 0; the primitive
        # convention D x - d = A lambda flips the sign of the equality part.
        lagrangian = np.zeros(n_eq + n_in)
        lagrangian[:n_eq] = -multipliers[:n_eq]
        for pos, idx in enumerate(active_ineq):
            lagrangian[n_eq + idx] = multipliers[n_eq + pos]
        return lagrangian


class ScipyBackend:
    """
    QP primitive backed by SciPy's SLSQP.

    SLSQP does not expose multipliers, so ``lagrangian`` is ``None`` and the
    solver estimates duals from the active set instead.
    """

    def __init__(self, maxiter: int = 500, tol: float = 1e-12):
        self.maxiter = maxiter
        self.tol = tol

    def solve_qp(
        self,
        Dmat: np.ndarray,
        dvec: np.ndarray,
        Amat: Optional[np.ndarray],
        bvec: Optional[np.ndarray],
        meq: int = 0,
    ) -> QPPrimitiveResult:
        dvec = np.asarray(dvec, dtype=float).reshape(-1)
        n = dvec.shape[0]
        if not SCIPY_AVAILABLE:  # pragma: no cover - depends on SciPy
            return QPPrimitiveResult(
                solution=np.full(n, np.nan),
                lagrangian=None,
                message="SciPy is not available",
            )
        hessian = symmetrize(np.asarray(Dmat, dtype=float))
        a_eq, b_eq, g_mat, h_vec = _split_constraints(n, Amat, bvec, meq)

        constraints = []
        if a_eq.shape[0]:
            constraints.append(
                {"type": "eq", "fun": lambda x: a_eq @ x - b_eq, "jac": lambda x: a_eq}
            )
        if g_mat.shape[0]:
            constraints.append(
                {"type": "ineq", "fun": lambda x: h_vec - g_mat @ x, "jac": lambda x: -g_mat}
            )

        res = _scipy_minimize(
            lambda x: 0.5 * x @ (hessian @ x) - dvec @ x,
            np.zeros(n),
            jac=lambda x: hessian @ x - dvec,
            method="SLSQP",
            constraints=constraints,
            options={"maxiter": self.maxiter, "ftol": self.tol},
        )
        message = str(res.message)
        x = np.asarray(res.x, dtype=float)
        if not res.success:
            violation = max_violation(x, a_eq, b_eq, g_mat, h_vec, relative=True)
            if "incompatible" in message.lower() or violation > 1e-6:
                message = f"Problem infeasible ({message})"
        return QPPrimitiveResult(
            solution=x,
            lagrangian=None,
            message=message,
            iterations=int(getattr(res, "nit", 0)),
            converged=bool(res.success),
        )


__all__ = [
    "SCIPY_AVAILABLE",
    "QPPrimitiveResult",
    "QPBackend",
    "ActiveSetBackend",
    "ScipyBackend",
]
