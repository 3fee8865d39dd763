"""qpmanifold - convex QP solving with optimal-set sampling and feasible-region geometry."""

__version__ = "0.1.0"

# Backends
from .backends import SCIPY_AVAILABLE, ActiveSetBackend, QPBackend, QPPrimitiveResult, ScipyBackend

# Core types
from .core import (
    Bounds,
    Constraint,
    DualVariables,
    Manifold,
    PolytopeResult,
    Problem,
    SamplePoint,
    SamplingDiagnostics,
    Solution,
    Status,
    StrategyStats,
)
from .errors import InvalidProblemError, QPManifoldError, SolverError

# Problem I/O
from .io import dump_problem, load_problem, problem_from_dict, problem_to_dict, validate_problem
from .kkt import is_kkt_optimal, kkt_residuals
from .logging import configure_logging, get_logger, set_log_level

# Geometry
from .polytope import (
    clip_polygon_by_half_plane,
    compute_polytope,
    convex_hull_2d,
    convex_hull_3d,
    sample_polytope_boundary,
)
from .presets import get_preset, list_presets
from .projection import PCAProjection, manual_project, pca_project

# Sampling
from .sampling import (
    Accepted,
    Rejected,
    SamplingOptions,
    estimate_manifold_dimension,
    sample_optimal_manifold,
    sample_optimal_set,
)

# Solver
from .solver import SolverSettings, compute_dual_at_point, is_feasible, solve

__all__ = [
    "__version__",
    # Core types
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
    # Errors
    "QPManifoldError",
    "InvalidProblemError",
    "SolverError",
    # Backends
    "SCIPY_AVAILABLE",
    "QPBackend",
    "QPPrimitiveResult",
    "ActiveSetBackend",
    "ScipyBackend",
    # Solver
    "SolverSettings",
    "solve",
    "is_feasible",
    "compute_dual_at_point",
    "kkt_residuals",
    "is_kkt_optimal",
    # Sampling
    "SamplingOptions",
    "Accepted",
    "Rejected",
    "estimate_manifold_dimension",
    "sample_optimal_set",
    "sample_optimal_manifold",
    # Geometry
    "compute_polytope",
    "clip_polygon_by_half_plane",
    "convex_hull_2d",
    "convex_hull_3d",
    "sample_polytope_boundary",
    "PCAProjection",
    "manual_project",
    "pca_project",
    # I/O and presets
    "validate_problem",
    "problem_from_dict",
    "problem_to_dict",
    "load_problem",
    "dump_problem",
    "get_preset",
    "list_presets",
    # Logging
    "get_logger",
    "set_log_level",
    "configure_logging",
]
