"""
Problem, solution and geometry containers shared by every qpmanifold module.

Problems are stated in the form

```
    minimize    1/2 x^T Q x + c^T x
    subject to  a_i^T x <= b_i      (inequalities)
                e_j^T x  = f_j      (equalities)
                lower <= x <= upper (bounds)
```

with ``Q`` symmetric positive semidefinite. All containers are frozen
dataclasses whose arrays are copied and marked read-only on construction,
so a value produced by one call can never be altered by another.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Sequence, Tuple

import numpy as np

DEFAULT_BOUND = 1e6


def _frozen(values, ndim: int) -> np.ndarray:
    arr = np.array(values, dtype=float, copy=True)
    if ndim == 1:
        arr = arr.reshape(-1)
    elif arr.size == 0:
        arr = arr.reshape(0, 0)
    arr.setflags(write=False)
    return arr


class Status(Enum):
    """Solution status reported by :func:`qpmanifold.solver.solve`."""

    OPTIMAL = "optimal"
    INFEASIBLE = "infeasible"
    UNBOUNDED = "unbounded"
    ERROR = "error"


@dataclass(frozen=True)
class Constraint:
    """Linear constraint ``a^T x <= b`` (inequality) or ``a^T x = b`` (equality)."""

    a: np.ndarray
    b: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "a", _frozen(self.a, 1))
        object.__setattr__(self, "b", float(self.b))

    def value(self, x: np.ndarray) -> float:
        """Return ``a^T x - b``."""
        return float(self.a @ np.asarray(x, dtype=float)) - self.b


@dataclass(frozen=True)
class Bounds:
    """Element-wise box ``lower <= x <= upper``."""

    lower: np.ndarray
    upper: np.ndarray

    def __post_init__(self) -> None:
        object.__setattr__(self, "lower", _frozen(self.lower, 1))
        object.__setattr__(self, "upper", _frozen(self.upper, 1))
        if self.lower.shape != self.upper.shape:
            raise ValueError("Lower and upper bounds must have the same length")

    @classmethod
    def default(cls, n: int) -> "Bounds":
        return cls(lower=np.full(n, -DEFAULT_BOUND), upper=np.full(n, DEFAULT_BOUND))


def _as_constraints(items: Sequence) -> Tuple[Constraint, ...]:
    result = []
    for item in items:
        if isinstance(item, Constraint):
            result.append(item)
        elif isinstance(item, dict):
            result.append(Constraint(a=item["a"], b=item["b"]))
        else:
            a, b = item
            result.append(Constraint(a=a, b=b))
    return tuple(result)


@dataclass(frozen=True)
class Problem:
    """
    Convex quadratic program with linear constraints and box bounds.

    Constraints may be given as :class:`Constraint` objects, ``(a, b)``
    pairs or ``{"a": ..., "b": ...}`` mappings. Omitted bounds default to
    ``[-1e6, 1e6]`` per variable. Shape and PSD checks live in
    :func:`qpmanifold.io.validate_problem`.
    """

    n: int
    Q: np.ndarray
    c: np.ndarray
    inequalities: Tuple[Constraint, ...] = ()
    equalities: Tuple[Constraint, ...] = ()
    bounds: Optional[Bounds] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "n", int(self.n))
        object.__setattr__(self, "Q", _frozen(self.Q, 2))
        object.__setattr__(self, "c", _frozen(self.c, 1))
        object.__setattr__(self, "inequalities", _as_constraints(self.inequalities))
        object.__setattr__(self, "equalities", _as_constraints(self.equalities))
        if self.bounds is None:
            object.__setattr__(self, "bounds", Bounds.default(self.n))

    @property
    def n_constraints(self) -> int:
        return len(self.equalities) + len(self.inequalities)

    def objective(self, x: np.ndarray) -> float:
        """Evaluate ``1/2 x^T Q x + c^T x``."""
        x = np.asarray(x, dtype=float).reshape(-1)
        return float(0.5 * x @ (self.Q @ x) + self.c @ x)

    def gradient(self, x: np.ndarray) -> np.ndarray:
        """Objective gradient ``Q x + c``."""
        return self.Q @ np.asarray(x, dtype=float).reshape(-1) + self.c

    def with_objective(
        self, Q: Optional[np.ndarray] = None, c: Optional[np.ndarray] = None
    ) -> "Problem":
        """Return a copy sharing the constraints but with a new objective."""
        return Problem(
            n=self.n,
            Q=self.Q if Q is None else Q,
            c=self.c if c is None else c,
            inequalities=self.inequalities,
            equalities=self.equalities,
            bounds=self.bounds,
        )

    def constraint_matrices(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        """
        Stack the constraints as ``(A_eq, b_eq, G, h)``.

        Equalities read ``A_eq x = b_eq`` and inequalities ``G x <= h``;
        empty blocks have zero rows and ``n`` columns.
        """

        def _stack(items: Tuple[Constraint, ...]) -> Tuple[np.ndarray, np.ndarray]:
            if not items:
                return np.zeros((0, self.n)), np.zeros(0)
            return (
                np.vstack([con.a for con in items]),
                np.array([con.b for con in items], dtype=float),
            )

        a_eq, b_eq = _stack(self.equalities)
        g_mat, h_vec = _stack(self.inequalities)
        return a_eq, b_eq, g_mat, h_vec


@dataclass(frozen=True)
class DualVariables:
    """Lagrange multipliers for the equality and inequality constraints."""

    equalities: np.ndarray = field(default_factory=lambda: np.zeros(0))
    inequalities: np.ndarray = field(default_factory=lambda: np.zeros(0))

    def __post_init__(self) -> None:
        object.__setattr__(self, "equalities", _frozen(self.equalities, 1))
        object.__setattr__(self, "inequalities", _frozen(self.inequalities, 1))

    @classmethod
    def zeros(cls, problem: Problem) -> "DualVariables":
        return cls(
            equalities=np.zeros(len(problem.equalities)),
            inequalities=np.zeros(len(problem.inequalities)),
        )


@dataclass(frozen=True)
class Solution:
    """
    Result of a single QP solve.

    Attributes:
        status: Exit status.
        x: Primal point (``None`` unless the status is optimal).
        objective_value: ``1/2 x^T Q x + c^T x`` recomputed from ``x``.
        dual_variables: Multipliers in the convention
            ``Q x + c = sum_j lam_j e_j - sum_i mu_i a_i`` with ``mu >= 0``.
        active_constraints: Indices into ``equalities + inequalities``;
            every equality is always listed.
        message: Human-readable explanation of the status.
        iterations: Iterations reported by the QP primitive.
    """

    status: Status
    x: Optional[np.ndarray] = None
    objective_value: Optional[float] = None
    dual_variables: Optional[DualVariables] = None
    active_constraints: Tuple[int, ...] = ()
    message: str = ""
    iterations: int = 0

    def __post_init__(self) -> None:
        if self.x is not None:
            object.__setattr__(self, "x", _frozen(self.x, 1))
        object.__setattr__(self, "active_constraints", tuple(int(i) for i in self.active_constraints))

    @property
    def is_optimal(self) -> bool:
        return self.status is Status.OPTIMAL


@dataclass(frozen=True)
class SamplePoint:
    """One optimal point together with the multipliers estimated there."""

    x: np.ndarray
    dual: Optional[DualVariables] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "x", _frozen(self.x, 1))


@dataclass(frozen=True)
class StrategyStats:
    """Attempted and accepted counts of one sampling strategy."""

    attempted: int = 0
    accepted: int = 0
    rejections: Dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class SamplingDiagnostics:
    """
    Bookkeeping returned with every :class:`Manifold`.

    ``strategies`` maps the strategy name (``"null_space"``,
    ``"perturbation"``, ``"extreme_points"``) to its counts.
    ``duplicates_removed`` counts points discarded by deduplication.
    """

    strategies: Dict[str, StrategyStats] = field(default_factory=dict)
    duplicates_removed: int = 0

    @property
    def attempted(self) -> int:
        return sum(stats.attempted for stats in self.strategies.values())

    @property
    def accepted(self) -> int:
        return sum(stats.accepted for stats in self.strategies.values())


@dataclass(frozen=True)
class Manifold:
    """
    Sampled optimal set.

    Attributes:
        points: Deduplicated optimal points, the seed solution first.
        dimension: Estimated dimension of the optimal face (0 = unique).
        optimal_value: Objective value of the seed solution.
        diagnostics: Per-strategy attempt and acceptance counts.
    """

    points: Tuple[SamplePoint, ...]
    dimension: int
    optimal_value: float
    diagnostics: SamplingDiagnostics = field(default_factory=SamplingDiagnostics)

    def as_array(self) -> np.ndarray:
        """Stack the sample coordinates into a ``(k, n)`` array."""
        if not self.points:
            return np.zeros((0, 0))
        return np.vstack([p.x for p in self.points])


@dataclass(frozen=True)
class PolytopeResult:
    """
    Explicit feasible-region geometry for visualization.

    Attributes:
        vertices: ``(k, n)`` array of vertices (ordered for polygons).
        faces: Outward-oriented triangles as vertex index triples (3D only).
        feasible: Whether the clipped region is non-empty.
        message: Optional explanation (e.g. unsupported dimension).
    """

    vertices: np.ndarray
    faces: Tuple[Tuple[int, int, int], ...] = ()
    feasible: bool = True
    message: str = ""

    def __post_init__(self) -> None:
        verts = np.array(self.vertices, dtype=float, copy=True)
        if verts.size == 0:
            verts = verts.reshape(0, 0)
        verts.setflags(write=False)
        object.__setattr__(self, "vertices", verts)
        object.__setattr__(self, "faces", tuple(tuple(int(i) for i in f) for f in self.faces))

    @classmethod
    def empty(cls, message: str = "") -> "PolytopeResult":
        return cls(vertices=np.zeros((0, 0)), faces=(), feasible=False, message=message)


__all__ = [
    "DEFAULT_BOUND",
    "Status",
    "Constraint",
    "Bounds",
    "Problem",
    "DualVariables",
    "Solution",
    "SamplePoint",
    "StrategyStats",
    "SamplingDiagnostics",
    "Manifold",
    "PolytopeResult",
]
