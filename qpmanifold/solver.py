"""
Quadratic program solver front end.

:func:`solve` rewrites a :class:`~qpmanifold.core.Problem` into the dense
primitive convention

```
    minimize    1/2 x^T D x - d^T x,   D = Q + eps I,   d = -c
    subject to  A^T x >= b,            first meq columns are equalities
```

calls a :class:`~qpmanifold.backends.QPBackend` and turns the raw output into
a :class:`~qpmanifold.core.Solution`. The objective is always recomputed from
``x``; the set of active constraints and the multipliers are derived here,
not trusted from the primitive. Backend failures become statuses and never
propagate as exceptions.

Example:
    >>> import numpy as np
    >>> from qpmanifold import Problem, solve
    >>> problem = Problem(n=2, Q=2 * np.eye(2), c=np.zeros(2),
    ...                   inequalities=[([-1.0, -1.0], -2.0)])
    >>> solution = solve(problem)
    >>> solution.status
    <Status.OPTIMAL: 'optimal'>
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np

from .backends import ActiveSetBackend, QPBackend, QPPrimitiveResult
from .core import DualVariables, Problem, Solution, Status
from .kkt import kkt_residuals
from .linalg import solve_linear_system
from .logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SolverSettings:
    """
    Tunable constants of the solver front end.

    Attributes:
        regularization: ``eps`` added to the diagonal of ``Q`` so the
            primitive sees a positive definite matrix.
        active_tol: ``|a^T x - b|`` below which an inequality is active.
        include_bounds: Pass finite variable bounds to the primitive as
            extra inequality columns.
        dual_sign_tol: Raw inequality multipliers below ``-dual_sign_tol``
            are logged as sign-convention violations.
        max_iterations: Iteration cap of the default active-set primitive.
    """

    regularization: float = 1e-10
    active_tol: float = 1e-6
    include_bounds: bool = True
    dual_sign_tol: float = 1e-8
    max_iterations: int = 200


@dataclass(frozen=True)
class PrimitiveInputs:
    """Problem data in the primitive convention."""

    Dmat: np.ndarray
    dvec: np.ndarray
    Amat: np.ndarray
    bvec: np.ndarray
    meq: int
    n_inequalities: int
    n_bound_rows: int


def compute_objective(problem: Problem, x: np.ndarray) -> float:
    """Objective value ``1/2 x^T Q x + c^T x``."""
    return problem.objective(x)


def _bound_rows(problem: Problem) -> Tuple[np.ndarray, np.ndarray]:
    """Finite bounds as rows of ``G x <= h``: lower bounds first, then upper."""
    n = problem.n
    rows: List[np.ndarray] = []
    rhs: List[float] = []
    eye = np.eye(n)
    for i in range(n):
        if np.isfinite(problem.bounds.lower[i]):
            rows.append(-eye[i])
            rhs.append(-problem.bounds.lower[i])
    for i in range(n):
        if np.isfinite(problem.bounds.upper[i]):
            rows.append(eye[i])
            rhs.append(problem.bounds.upper[i])
    if not rows:
        return np.zeros((0, n)), np.zeros(0)
    return np.vstack(rows), np.asarray(rhs, dtype=float)


def build_primitive_inputs(
    problem: Problem, settings: Optional[SolverSettings] = None
) -> PrimitiveInputs:
    """
    Translate ``problem`` into the primitive's ``(D, d, A, b, meq)`` form.

    Equalities come first, then each inequality ``a^T x <= b`` as the column
    ``-a`` with right-hand side ``-b``, then the finite bounds.
    """

    settings = settings or SolverSettings()
    n = problem.n
    a_eq, b_eq, g_mat, h_vec = problem.constraint_matrices()
    if settings.include_bounds:
        g_bounds, h_bounds = _bound_rows(problem)
    else:
        g_bounds, h_bounds = np.zeros((0, n)), np.zeros(0)

    columns = np.vstack([a_eq, -g_mat, -g_bounds])
    rhs = np.concatenate([b_eq, -h_vec, -h_bounds])
    return PrimitiveInputs(
        Dmat=problem.Q + settings.regularization * np.eye(n),
        dvec=-problem.c,
        Amat=columns.T,
        bvec=rhs,
        meq=a_eq.shape[0],
        n_inequalities=g_mat.shape[0],
        n_bound_rows=g_bounds.shape[0],
    )


def is_feasible(problem: Problem, x: np.ndarray, tol: float = 1e-6) -> bool:
    """Check equalities, inequalities and bounds at ``x`` within ``tol``."""
    x = np.asarray(x, dtype=float).reshape(-1)
    if not np.all(np.isfinite(x)):
        return False
    for eq in problem.equalities:
        if abs(eq.value(x)) > tol:
            return False
    for ineq in problem.inequalities:
        if ineq.value(x) > tol:
            return False
    bounds = problem.bounds
    if np.any(x < bounds.lower - tol) or np.any(x > bounds.upper + tol):
        return False
    return True


def find_active_constraints(problem: Problem, x: np.ndarray, tol: float = 1e-6) -> Tuple[int, ...]:
    """
    Indices of active constraints in the combined list ``equalities + inequalities``.

    Equalities are always active; an inequality is active when
    ``|a^T x - b| < tol``.
    """

    n_eq = len(problem.equalities)
    active = list(range(n_eq))
    for i, ineq in enumerate(problem.inequalities):
        if abs(ineq.value(x)) < tol:
            active.append(n_eq + i)
    return tuple(active)


def get_constraint_gradient(problem: Problem, index: int) -> np.ndarray:
    """Gradient of constraint ``index`` in the combined constraint list."""
    n_eq = len(problem.equalities)
    if index < n_eq:
        return problem.equalities[index].a
    return problem.inequalities[index - n_eq].a


def active_constraint_gradients(problem: Problem, x: np.ndarray, tol: float = 1e-6) -> List[np.ndarray]:
    """Gradients of every equality and of the inequalities tight at ``x``."""
    return [
        np.array(get_constraint_gradient(problem, idx), copy=True)
        for idx in find_active_constraints(problem, x, tol)
    ]


def compute_dual_at_point(problem: Problem, x: np.ndarray, tol: float = 1e-6) -> DualVariables:
    """
    Estimate multipliers at ``x`` from the active constraints.

    Solves the least-squares problem
    ``Q x + c ~= sum_j lam_j e_j - sum_i mu_i a_i`` over the equalities and
    the inequalities tight at ``x`` through its normal equations; if those
    are singular, a least-squares solve is used instead. Inequality
    multipliers are clamped at zero.
    """

    x = np.asarray(x, dtype=float).reshape(-1)
    n_eq = len(problem.equalities)
    grad = problem.gradient(x)
    tight = [i for i, ineq in enumerate(problem.inequalities) if abs(ineq.value(x)) < tol]

    rows = [eq.a for eq in problem.equalities] + [-problem.inequalities[i].a for i in tight]
    dual_ineq = np.zeros(len(problem.inequalities))
    if not rows:
        return DualVariables(equalities=np.zeros(0), inequalities=dual_ineq)

    mat = np.vstack(rows)
    coeffs = solve_linear_system(mat @ mat.T, mat @ grad)
    if coeffs is None:
        coeffs, *_ = np.linalg.lstsq(mat.T, grad, rcond=None)

    for pos, idx in enumerate(tight):
        dual_ineq[idx] = max(0.0, float(coeffs[n_eq + pos]))
    return DualVariables(equalities=coeffs[:n_eq], inequalities=dual_ineq)


def _solve_unconstrained(problem: Problem) -> Solution:
    x = solve_linear_system(problem.Q, -problem.c)
    if x is None:
        logger.debug("Singular Q without constraints; reporting unbounded")
        return Solution(
            status=Status.UNBOUNDED,
            message="Objective is unbounded below: Q is singular and there are no constraints",
        )
    return Solution(
        status=Status.OPTIMAL,
        x=x,
        objective_value=compute_objective(problem, x),
        dual_variables=DualVariables.zeros(problem),
        active_constraints=(),
        message="Unconstrained minimizer of the quadratic",
    )


def primitive_kkt_residuals(
    problem: Problem,
    x: np.ndarray,
    inputs: PrimitiveInputs,
    lagrangian: np.ndarray,
) -> Dict[str, float]:
    """
    KKT residuals of a primitive multiplier vector against the original problem.

    The primitive reports ``D x - d = A lagrangian``. Rewritten in the
    convention of :func:`qpmanifold.kkt.kkt_residuals` the equality part
    changes sign, and the inequality part lines up with the rows of
    ``G x <= h`` followed by the finite bound rows.
    """

    lagrangian = np.asarray(lagrangian, dtype=float).reshape(-1)
    meq = inputs.meq
    a_eq, b_eq, g_mat, h_vec = problem.constraint_matrices()
    if inputs.n_bound_rows:
        g_bounds, h_bounds = _bound_rows(problem)
    else:
        g_bounds, h_bounds = np.zeros((0, problem.n)), np.zeros(0)
    return kkt_residuals(
        problem.Q,
        problem.c,
        a_eq,
        b_eq,
        np.vstack([g_mat, g_bounds]),
        np.concatenate([h_vec, h_bounds]),
        x,
        lam=-lagrangian[:meq],
        mu=lagrangian[meq:],
    )


def _dual_variables(
    problem: Problem,
    x: np.ndarray,
    inputs: PrimitiveInputs,
    lagrangian: Optional[np.ndarray],
    settings: SolverSettings,
) -> DualVariables:
    if lagrangian is None:
        return compute_dual_at_point(problem, x, settings.active_tol)

    lagrangian = np.asarray(lagrangian, dtype=float).reshape(-1)
    residuals = primitive_kkt_residuals(problem, x, inputs, lagrangian)
    if residuals["dual_sign"] > settings.dual_sign_tol:
        logger.warning(
            "Primitive returned inequality multiplier %.3e < 0; reporting its magnitude",
            -residuals["dual_sign"],
        )
    logger.debug("KKT residuals at solution: %s", residuals)
    lam_eq = lagrangian[: inputs.meq]
    mu_ineq = lagrangian[inputs.meq : inputs.meq + inputs.n_inequalities]
    return DualVariables(equalities=lam_eq, inequalities=np.abs(mu_ineq))


def _solution_from_primitive(
    problem: Problem,
    raw: QPPrimitiveResult,
    inputs: PrimitiveInputs,
    settings: SolverSettings,
) -> Solution:
    if "infeasible" in raw.message.lower():
        logger.debug("Primitive reports infeasibility: %s", raw.message)
        return Solution(
            status=Status.INFEASIBLE,
            message="Problem is infeasible - no solution satisfies all constraints",
            iterations=raw.iterations,
        )

    if not raw.converged:
        logger.warning("Primitive did not converge: %s", raw.message)
        return Solution(status=Status.ERROR, message=f"Solver error: {raw.message}", iterations=raw.iterations)

    x = np.asarray(raw.solution, dtype=float).reshape(-1)
    if x.shape[0] != problem.n or np.any(np.isnan(x)):
        logger.warning("Primitive returned an invalid primal vector: %s", raw.message)
        return Solution(status=Status.ERROR, message=f"Solver error: {raw.message}", iterations=raw.iterations)

    if not is_feasible(problem, x, settings.active_tol):
        logger.warning("Primitive solution violates the constraints: %s", raw.message)
        return Solution(
            status=Status.ERROR,
            message=f"Solver error: returned point is not feasible ({raw.message})",
            iterations=raw.iterations,
        )

    objective = compute_objective(problem, x)
    logger.debug("Solved in %d iterations, objective %.6g", raw.iterations, objective)
    return Solution(
        status=Status.OPTIMAL,
        x=x,
        objective_value=objective,
        dual_variables=_dual_variables(problem, x, inputs, raw.lagrangian, settings),
        active_constraints=find_active_constraints(problem, x, settings.active_tol),
        message=raw.message,
        iterations=raw.iterations,
    )


def solve(
    problem: Problem,
    backend: Optional[QPBackend] = None,
    settings: Optional[SolverSettings] = None,
) -> Solution:
    """
    Solve a convex QP.

    Args:
        problem: Validated problem description.
        backend: QP primitive; defaults to :class:`ActiveSetBackend`.
        settings: Solver constants; defaults to :class:`SolverSettings`.

    Returns:
        :class:`Solution` whose status is ``optimal``, ``infeasible``,
        ``unbounded`` or ``error``. A primitive that stops without
        converging gives ``error``. No exception escapes for numerical or
        backend failures, including malformed primitive output.
    """

    settings = settings or SolverSettings()
    if not problem.equalities and not problem.inequalities:
        return _solve_unconstrained(problem)

    backend = backend or ActiveSetBackend(maxiter=settings.max_iterations)
    inputs = build_primitive_inputs(problem, settings)
    try:
        raw = backend.solve_qp(inputs.Dmat, inputs.dvec, inputs.Amat, inputs.bvec, inputs.meq)
        return _solution_from_primitive(problem, raw, inputs, settings)
    except Exception as exc:
        logger.warning("QP primitive failed: %s", exc)
        return Solution(status=Status.ERROR, message=f"Solver error: {exc}")


__all__ = [
    "SolverSettings",
    "PrimitiveInputs",
    "build_primitive_inputs",
    "compute_objective",
    "is_feasible",
    "find_active_constraints",
    "get_constraint_gradient",
    "active_constraint_gradients",
    "compute_dual_at_point",
    "primitive_kkt_residuals",
    "solve",
]
