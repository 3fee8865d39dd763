"""Problem import, export and validation.

Problems are exchanged as JSON objects of the form::

    {
        "n": <integer>,
        "Q": [[<float>, ...], ...],          # n x n, symmetric PSD
        "c": [<float>, ...],                 # length n
        "inequalities": [{"a": [...], "b": <float>}, ...],   # optional
        "equalities": [{"a": [...], "b": <float>}, ...],     # optional
        "bounds": {"lower": [...], "upper": [...]}           # optional
    }

Extra keys such as ``name`` and ``description`` are ignored on import.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List

import numpy as np

from .core import Bounds, Constraint, Problem
from .errors import InvalidProblemError
from .linalg import is_psd

SYMMETRY_TOL = 1e-10


def _check_constraints(kind: str, constraints, n: int) -> List[str]:
    errors = []
    for i, con in enumerate(constraints):
        if con.a.shape != (n,):
            errors.append(f"{kind} constraint {i}: a must have length {n}, got {con.a.shape[0]}")
        if not np.isfinite(con.b):
            errors.append(f"{kind} constraint {i}: b must be finite")
    return errors


def validate_problem(problem: Problem) -> None:
    """
    Check dimensions and convexity of a problem.

    Parameters
    ----------
    problem : Problem
        Problem to check.

    Raises
    ------
    InvalidProblemError
        Listing every violation found: ``n`` not positive, ``Q`` not
        ``n x n``, ``c`` not of length ``n``, constraint vectors of the wrong
        length, bounds of the wrong length or crossed, ``Q`` asymmetric
        beyond ``1e-10`` or ``Q`` with a Jacobi eigenvalue below ``-1e-10``.
    """
    n = problem.n
    if n < 1:
        raise InvalidProblemError([f"n must be a positive integer, got {n}"])

    errors: List[str] = []
    q_ok = problem.Q.shape == (n, n)
    if not q_ok:
        errors.append(f"Q must be {n}x{n}, got shape {problem.Q.shape}")
    if problem.c.shape != (n,):
        errors.append(f"c must have length {n}, got {problem.c.shape[0]}")
    errors.extend(_check_constraints("Inequality", problem.inequalities, n))
    errors.extend(_check_constraints("Equality", problem.equalities, n))

    bounds = problem.bounds
    if bounds.lower.shape != (n,):
        errors.append(f"bounds must have length {n}, got {bounds.lower.shape[0]}")
    elif np.any(bounds.lower > bounds.upper):
        errors.append("lower bounds must not exceed upper bounds")

    if q_ok:
        if not np.all(np.isfinite(problem.Q)):
            errors.append("Q must contain only finite values")
        elif np.max(np.abs(problem.Q - problem.Q.T)) > SYMMETRY_TOL:
            errors.append("Q must be symmetric")
        elif not is_psd(problem.Q):
            errors.append("Q must be positive semidefinite")

    if errors:
        raise InvalidProblemError(errors)


def problem_from_dict(obj: Dict[str, Any], validate: bool = True) -> Problem:
    """
    Build a :class:`Problem` from its JSON object form.

    Parameters
    ----------
    obj : dict
        Problem object; see the module docstring for the layout.
    validate : bool, default True
        Run :func:`validate_problem` on the result.

    Returns
    -------
    Problem

    Raises
    ------
    InvalidProblemError
        If required keys are missing, values have the wrong type or the
        problem fails validation.
    """
    missing = [key for key in ("n", "Q", "c") if key not in obj]
    if missing:
        raise InvalidProblemError([f"missing required field '{key}'" for key in missing])

    n = obj["n"]
    if isinstance(n, bool) or not isinstance(n, int) or n < 1:
        raise InvalidProblemError([f"n must be a positive integer, got {n!r}"])

    try:
        bounds = None
        if obj.get("bounds") is not None:
            bounds = Bounds(lower=obj["bounds"]["lower"], upper=obj["bounds"]["upper"])
        problem = Problem(
            n=n,
            Q=obj["Q"],
            c=obj["c"],
            inequalities=[Constraint(a=con["a"], b=con["b"]) for con in obj.get("inequalities") or []],
            equalities=[Constraint(a=con["a"], b=con["b"]) for con in obj.get("equalities") or []],
            bounds=bounds,
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise InvalidProblemError([f"malformed problem: {exc}"]) from exc

    if validate:
        validate_problem(problem)
    return problem


def problem_to_dict(problem: Problem) -> Dict[str, Any]:
    """Convert a :class:`Problem` to its JSON object form."""
    def _constraints(items):
        return [{"a": con.a.tolist(), "b": con.b} for con in items]

    return {
        "n": problem.n,
        "Q": problem.Q.tolist(),
        "c": problem.c.tolist(),
        "inequalities": _constraints(problem.inequalities),
        "equalities": _constraints(problem.equalities),
        "bounds": {
            "lower": problem.bounds.lower.tolist(),
            "upper": problem.bounds.upper.tolist(),
        },
    }


def dump_problem(problem: Problem, path: str) -> None:
    """Write ``problem`` to ``path`` as JSON."""
    with open(path, "w", encoding="utf-8") as f:
        json.dump(problem_to_dict(problem), f, indent=2)


def load_problem(path: str) -> Problem:
    """
    Load and validate a problem from a JSON file.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    InvalidProblemError
        If the file is not valid JSON or describes an invalid problem.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            obj = json.load(f)
    except FileNotFoundError:
        raise FileNotFoundError(f"Problem file not found: {path}")
    except json.JSONDecodeError as e:
        raise InvalidProblemError([f"Invalid JSON in file {path}: {e}"])

    if not isinstance(obj, dict):
        raise InvalidProblemError([f"Problem file {path} must contain a JSON object"])
    return problem_from_dict(obj)


__all__ = [
    "validate_problem",
    "problem_from_dict",
    "problem_to_dict",
    "dump_problem",
    "load_problem",
]
