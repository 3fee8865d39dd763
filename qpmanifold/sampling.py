"""
Sampling of the optimal set of a convex QP.

When the optimum is not unique the optimal set is a face of the feasible
polyhedron (intersected with the flat directions of ``Q``). Starting from one
optimal point ``x0`` the sampler

1. estimates the face dimension from the null space of the active constraint
   gradients and the objective gradient at ``x0``;
2. explores the face with three randomized strategies: line sampling along
   null-space directions, re-solving with a slightly perturbed linear term,
   and solving LPs in random directions to reach extreme points;
3. removes near-duplicate points.

Every attempt produces an :class:`Accepted` or :class:`Rejected` value; the
aggregation loop tallies both so :func:`sample_optimal_set` always succeeds
and reports how many attempts each strategy needed. Randomness comes from an
explicit ``numpy.random.Generator``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np

from .backends import QPBackend
from .core import (
    DEFAULT_BOUND,
    Manifold,
    Problem,
    SamplePoint,
    SamplingDiagnostics,
    Solution,
    StrategyStats,
)
from .linalg import compute_null_space, norm, normalize, random_unit_vector
from .logging import get_logger
from .solver import active_constraint_gradients, compute_dual_at_point, is_feasible, solve

logger = get_logger(__name__)

OBJECTIVE_GRADIENT_TOL = 1e-8
DIRECTION_TOL = 1e-10
PERTURBATION_SCALE = 1e-4


@dataclass(frozen=True)
class SamplingOptions:
    """
    Sampling budget and acceptance tolerances.

    Attributes:
        sample_count: Total attempts, split 50/30/20 between null-space,
            perturbation and extreme-point sampling.
        include_extreme_points: Run the extreme-point LP strategy.
        seed: Seed for the default generator when none is injected.
        null_space_tol: Objective match required for null-space samples.
        perturbation_tol: Objective match required for perturbation samples.
        extreme_point_tol: Objective match required for extreme points.
        dedup_tol: Points closer than this (L2) are merged.
    """

    sample_count: int = 100
    include_extreme_points: bool = True
    seed: Optional[int] = None
    null_space_tol: float = 1e-6
    perturbation_tol: float = 1e-5
    extreme_point_tol: float = 1e-4
    dedup_tol: float = 1e-6


@dataclass(frozen=True)
class Accepted:
    """A sampling attempt that produced an optimal point."""

    point: SamplePoint


@dataclass(frozen=True)
class Rejected:
    """A sampling attempt that was discarded, with the reason."""

    reason: str


AttemptResult = Union[Accepted, Rejected]


def optimality_gradients(problem: Problem, x0: np.ndarray, tol: float = 1e-6) -> List[np.ndarray]:
    """
    Normalized gradients that every optimality-preserving direction must be orthogonal to.

    These are the gradients of the equalities, of the inequalities tight at
    ``x0`` and, when its norm exceeds ``1e-8``, of the objective.
    """

    gradients = [normalize(g) for g in active_constraint_gradients(problem, x0, tol) if norm(g) > 0.0]
    objective_gradient = problem.gradient(x0)
    if norm(objective_gradient) > OBJECTIVE_GRADIENT_TOL:
        gradients.append(normalize(objective_gradient))
    return gradients


def optimal_face_basis(problem: Problem, x0: np.ndarray) -> List[np.ndarray]:
    """Orthonormal basis of directions that keep ``x0`` on the optimal face to first order."""
    return compute_null_space(optimality_gradients(problem, x0), n=problem.n)


def estimate_manifold_dimension(problem: Problem, x0: np.ndarray) -> int:
    """Estimated dimension of the optimal face through ``x0`` (0 means unique)."""
    return len(optimal_face_basis(problem, x0))


def random_null_space_direction(basis: Sequence[np.ndarray], rng: np.random.Generator) -> np.ndarray:
    """Unit-length random combination of ``basis`` with coefficients in ``[-1, 1]``."""
    coeffs = rng.uniform(-1.0, 1.0, size=len(basis))
    direction = np.sum([c * b for c, b in zip(coeffs, basis)], axis=0)
    length = norm(direction)
    return direction / length if length > DIRECTION_TOL else direction


def find_step_bounds(problem: Problem, x0: np.ndarray, direction: np.ndarray) -> Tuple[float, float]:
    """
    Interval ``[t_min, t_max]`` with ``x0 + t d`` satisfying inequalities and bounds.

    Constraints nearly parallel to ``d`` (``|a^T d| <= 1e-10``) are ignored,
    and the interval is clamped to ``[-1e6, 1e6]``.
    """

    t_min, t_max = -np.inf, np.inf
    for ineq in problem.inequalities:
        ad = float(ineq.a @ direction)
        slack = -ineq.value(x0)
        if ad > DIRECTION_TOL:
            t_max = min(t_max, slack / ad)
        elif ad < -DIRECTION_TOL:
            t_min = max(t_min, slack / ad)

    lower, upper = problem.bounds.lower, problem.bounds.upper
    for i in range(problem.n):
        d_i = direction[i]
        if abs(d_i) < DIRECTION_TOL:
            continue
        lo = (lower[i] - x0[i]) / d_i
        hi = (upper[i] - x0[i]) / d_i
        if d_i < 0:
            lo, hi = hi, lo
        t_min = max(t_min, lo)
        t_max = min(t_max, hi)

    return max(t_min, -DEFAULT_BOUND), min(t_max, DEFAULT_BOUND)


def _accept_if_optimal(problem: Problem, x: np.ndarray, z0: float, tol: float) -> AttemptResult:
    if not is_feasible(problem, x):
        return Rejected("infeasible")
    if abs(problem.objective(x) - z0) >= tol:
        return Rejected("objective_mismatch")
    return Accepted(SamplePoint(x=x, dual=compute_dual_at_point(problem, x)))


def _guarded(strategy: str, attempt: Callable[[], AttemptResult]) -> AttemptResult:
    """Run one attempt; an exception discards only that attempt."""
    try:
        return attempt()
    except Exception as exc:
        logger.debug("%s attempt failed: %s", strategy, exc)
        return Rejected("exception")


def _null_space_attempt(
    problem: Problem,
    x0: np.ndarray,
    z0: float,
    basis: Sequence[np.ndarray],
    rng: np.random.Generator,
    tol: float,
) -> AttemptResult:
    if not basis:
        return Rejected("unique_optimum")
    direction = random_null_space_direction(basis, rng)
    t_min, t_max = find_step_bounds(problem, x0, direction)
    if t_max - t_min < DIRECTION_TOL:
        return Rejected("degenerate_interval")
    t = rng.uniform(t_min, t_max)
    return _accept_if_optimal(problem, x0 + t * direction, z0, tol)


def null_space_attempts(
    problem: Problem,
    x0: np.ndarray,
    z0: float,
    basis: Sequence[np.ndarray],
    count: int,
    rng: np.random.Generator,
    tol: float = 1e-6,
) -> Iterator[AttemptResult]:
    """Sample points uniformly along random null-space lines through ``x0``."""
    for _ in range(count):
        yield _guarded("null_space", lambda: _null_space_attempt(problem, x0, z0, basis, rng, tol))


def _resolve_attempt(
    problem: Problem,
    variant: Problem,
    z0: float,
    tol: float,
    backend: Optional[QPBackend],
) -> AttemptResult:
    result = solve(variant, backend=backend)
    if not result.is_optimal:
        return Rejected(f"solve_{result.status.value}")
    return _accept_if_optimal(problem, np.asarray(result.x), z0, tol)


def _perturbation_attempt(
    problem: Problem,
    z0: float,
    rng: np.random.Generator,
    backend: Optional[QPBackend],
    tol: float,
) -> AttemptResult:
    shift = PERTURBATION_SCALE * random_unit_vector(problem.n, rng)
    variant = problem.with_objective(c=problem.c + shift)
    return _resolve_attempt(problem, variant, z0, tol, backend)


def _extreme_point_attempt(
    problem: Problem,
    zero_q: np.ndarray,
    z0: float,
    rng: np.random.Generator,
    backend: Optional[QPBackend],
    tol: float,
) -> AttemptResult:
    variant = problem.with_objective(Q=zero_q, c=random_unit_vector(problem.n, rng))
    return _resolve_attempt(problem, variant, z0, tol, backend)


def perturbation_attempts(
    problem: Problem,
    z0: float,
    count: int,
    rng: np.random.Generator,
    backend: Optional[QPBackend] = None,
    tol: float = 1e-5,
) -> Iterator[AttemptResult]:
    """
    Re-solve with ``c`` nudged by ``1e-4`` times a random unit vector.

    A perturbed optimum is kept when it is feasible and within ``tol`` of
    ``z0`` under the original objective; this tends to land on different
    vertices of a degenerate optimal face.
    """

    for _ in range(count):
        yield _guarded("perturbation", lambda: _perturbation_attempt(problem, z0, rng, backend, tol))


def extreme_point_attempts(
    problem: Problem,
    z0: float,
    count: int,
    rng: np.random.Generator,
    backend: Optional[QPBackend] = None,
    tol: float = 1e-4,
) -> Iterator[AttemptResult]:
    """
    Solve the LP ``min u^T x`` over the feasible set for random unit ``u``.

    The LP vertex is kept only if it happens to be optimal for the original
    problem, which approximates sampling extreme points of the optimal face.
    """

    zero_q = np.zeros((problem.n, problem.n))
    for _ in range(count):
        yield _guarded("extreme_points", lambda: _extreme_point_attempt(problem, zero_q, z0, rng, backend, tol))


def deduplicate_samples(samples: Iterable[SamplePoint], tol: float = 1e-6) -> List[SamplePoint]:
    """Drop points within ``tol`` (L2) of an earlier point."""
    unique: List[SamplePoint] = []
    for sample in samples:
        if all(norm(sample.x - kept.x) >= tol for kept in unique):
            unique.append(sample)
    return unique


def _collect(
    name: str, attempts: Iterator[AttemptResult]
) -> Tuple[List[SamplePoint], StrategyStats]:
    points: List[SamplePoint] = []
    rejections: Dict[str, int] = {}
    attempted = 0
    for outcome in attempts:
        attempted += 1
        if isinstance(outcome, Accepted):
            points.append(outcome.point)
        else:
            rejections[outcome.reason] = rejections.get(outcome.reason, 0) + 1
    stats = StrategyStats(attempted=attempted, accepted=len(points), rejections=rejections)
    logger.debug("%s: %d/%d attempts accepted", name, stats.accepted, stats.attempted)
    return points, stats


def _seed_point(solution: Solution) -> SamplePoint:
    return SamplePoint(x=solution.x, dual=solution.dual_variables)


def _run_strategies(
    problem: Problem,
    solution: Solution,
    strategies: List[Tuple[str, Callable[[], Iterator[AttemptResult]]]],
    dimension: int,
    dedup_tol: float,
) -> Manifold:
    samples = [_seed_point(solution)]
    stats: Dict[str, StrategyStats] = {}
    for name, make_attempts in strategies:
        points, stats[name] = _collect(name, make_attempts())
        samples.extend(points)
    unique = deduplicate_samples(samples, dedup_tol)
    return Manifold(
        points=tuple(unique),
        dimension=dimension,
        optimal_value=float(solution.objective_value),
        diagnostics=SamplingDiagnostics(strategies=stats, duplicates_removed=len(samples) - len(unique)),
    )


def sample_optimal_set(
    problem: Problem,
    solution: Solution,
    options: Optional[SamplingOptions] = None,
    rng: Optional[np.random.Generator] = None,
    backend: Optional[QPBackend] = None,
) -> Manifold:
    """
    Characterize the optimal set around an optimal ``solution``.

    Args:
        problem: The problem that ``solution`` solves.
        solution: An optimal solution (its ``x`` and ``objective_value`` seed
            the search).
        options: Budget and tolerances; defaults to :class:`SamplingOptions`.
        rng: Random generator; ``np.random.default_rng(options.seed)`` when
            omitted.
        backend: QP primitive used for re-solves.

    Returns:
        :class:`Manifold` whose first point is the seed. When the estimated
        dimension is zero the seed is the only point and no sampling runs.
    """

    if not solution.is_optimal or solution.x is None:
        raise ValueError("sample_optimal_set requires an optimal solution")
    options = options or SamplingOptions()
    rng = rng if rng is not None else np.random.default_rng(options.seed)

    x0 = np.asarray(solution.x, dtype=float)
    z0 = float(solution.objective_value)
    basis = optimal_face_basis(problem, x0)
    dimension = len(basis)
    logger.debug("Estimated optimal face dimension %d", dimension)

    if dimension == 0:
        return Manifold(points=(_seed_point(solution),), dimension=0, optimal_value=z0)

    count = options.sample_count
    strategies: List[Tuple[str, Callable[[], Iterator[AttemptResult]]]] = [
        (
            "null_space",
            lambda: null_space_attempts(problem, x0, z0, basis, int(count * 0.5), rng, options.null_space_tol),
        ),
        (
            "perturbation",
            lambda: perturbation_attempts(problem, z0, int(count * 0.3), rng, backend, options.perturbation_tol),
        ),
    ]
    if options.include_extreme_points:
        strategies.append(
            (
                "extreme_points",
                lambda: extreme_point_attempts(problem, z0, int(count * 0.2), rng, backend, options.extreme_point_tol),
            )
        )
    return _run_strategies(problem, solution, strategies, dimension, options.dedup_tol)


def sample_optimal_manifold(
    problem: Problem,
    solution: Solution,
    sample_count: int = 100,
    rng: Optional[np.random.Generator] = None,
    backend: Optional[QPBackend] = None,
    seed: Optional[int] = None,
) -> Manifold:
    """
    Lighter variant: null-space (60%) and perturbation (40%) sampling only.

    Unlike :func:`sample_optimal_set` the strategies run even when the
    estimated dimension is zero; they then only return the seed point.
    ``seed`` feeds the default generator when ``rng`` is omitted.
    """

    if not solution.is_optimal or solution.x is None:
        raise ValueError("sample_optimal_manifold requires an optimal solution")
    rng = rng if rng is not None else np.random.default_rng(seed)
    x0 = np.asarray(solution.x, dtype=float)
    z0 = float(solution.objective_value)
    basis = optimal_face_basis(problem, x0)

    strategies: List[Tuple[str, Callable[[], Iterator[AttemptResult]]]] = [
        ("null_space", lambda: null_space_attempts(problem, x0, z0, basis, int(sample_count * 0.6), rng)),
        ("perturbation", lambda: perturbation_attempts(problem, z0, int(sample_count * 0.4), rng, backend)),
    ]
    return _run_strategies(problem, solution, strategies, len(basis), 1e-6)


__all__ = [
    "SamplingOptions",
    "Accepted",
    "Rejected",
    "AttemptResult",
    "optimality_gradients",
    "optimal_face_basis",
    "estimate_manifold_dimension",
    "random_null_space_direction",
    "find_step_bounds",
    "null_space_attempts",
    "perturbation_attempts",
    "extreme_point_attempts",
    "deduplicate_samples",
    "sample_optimal_set",
    "sample_optimal_manifold",
]
