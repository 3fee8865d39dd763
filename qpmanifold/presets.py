"""
Built-in example problems.

Each preset is stored in the JSON problem shape accepted by
:func:`qpmanifold.io.problem_from_dict` plus a display ``name`` and
``description``.
"""

from __future__ import annotations

from typing import Any, Dict, List, NamedTuple, Optional

from .core import Problem
from .io import problem_from_dict


class PresetInfo(NamedTuple):
    key: str
    name: str
    description: str


# Variables are [w1, w2, b]; samples (2,2), (3,3) are class +1 and
# (0,0), (1,1) are class -1, each giving -y (w.x + b) <= -1.
_LINEAR_SVM = {
    "name": "Linear SVM (2D)",
    "description": "2D linear SVM with 4 sample points. Finds maximum margin hyperplane.",
    "n": 3,
    "Q": [[1, 0, 0], [0, 1, 0], [0, 0, 0]],
    "c": [0, 0, 0],
    "inequalities": [
        {"a": [-2, -2, -1], "b": -1},
        {"a": [-3, -3, -1], "b": -1},
        {"a": [0, 0, 1], "b": -1},
        {"a": [1, 1, 1], "b": -1},
    ],
}

_SIMPLE_2D = {
    "name": "Simple 2D QP",
    "description": "Minimize quadratic with one linear constraint. Unique optimal solution.",
    "n": 2,
    "Q": [[2, 0], [0, 2]],
    "c": [0, 0],
    "inequalities": [{"a": [-1, -1], "b": -2}],
}

_LINEAR_PROGRAM = {
    "name": "Linear Program",
    "description": "LP with multiple optimal solutions forming a line segment.",
    "n": 2,
    "Q": [[0, 0], [0, 0]],
    "c": [1, 1],
    "inequalities": [
        {"a": [-1, 0], "b": 0},
        {"a": [0, -1], "b": 0},
        {"a": [1, 1], "b": 2},
    ],
}

_EQUALITY_CONSTRAINED = {
    "name": "Equality Constrained QP",
    "description": "QP with equality constraint. Solution lies on the constraint line.",
    "n": 2,
    "Q": [[2, 0], [0, 2]],
    "c": [-2, -2],
    "equalities": [{"a": [1, 1], "b": 1}],
}

_SIMPLE_3D = {
    "name": "Simple 3D QP",
    "description": "3D quadratic with one constraint. Shows 3D visualization.",
    "n": 3,
    "Q": [[2, 0, 0], [0, 2, 0], [0, 0, 2]],
    "c": [0, 0, 0],
    "inequalities": [{"a": [-1, -1, -1], "b": -3}],
}

_LINE_OF_OPTIMA = {
    "name": "Line of Optimal Solutions",
    "description": "QP where optimal solutions form a line segment (degenerate).",
    "n": 2,
    "Q": [[2, 0], [0, 0]],
    "c": [0, 0],
    "inequalities": [
        {"a": [-1, 0], "b": -1},
        {"a": [0, -1], "b": 0},
        {"a": [0, 1], "b": 1},
    ],
}

_PORTFOLIO = {
    "name": "Portfolio Optimization",
    "description": "Markowitz portfolio with 2 assets. Minimize risk for target return.",
    "n": 2,
    "Q": [[0.08, 0.02], [0.02, 0.04]],
    "c": [0, 0],
    "inequalities": [
        {"a": [-0.1, -0.05], "b": -0.07},
        {"a": [-1, 0], "b": 0},
        {"a": [0, -1], "b": 0},
    ],
    "equalities": [{"a": [1, 1], "b": 1}],
}

_INFEASIBLE = {
    "name": "Infeasible Problem",
    "description": "Example of an infeasible QP (no solution satisfies all constraints).",
    "n": 2,
    "Q": [[2, 0], [0, 2]],
    "c": [0, 0],
    "inequalities": [
        {"a": [1, 0], "b": -1},
        {"a": [-1, 0], "b": -1},
    ],
}

_BOUNDED_LEAST_SQUARES = {
    "name": "Bounded Least Squares",
    "description": "Project a point onto a box constraint.",
    "n": 2,
    "Q": [[2, 0], [0, 2]],
    "c": [-6, -6],
    "inequalities": [
        {"a": [-1, 0], "b": 0},
        {"a": [1, 0], "b": 2},
        {"a": [0, -1], "b": 0},
        {"a": [0, 1], "b": 2},
    ],
}

PRESETS: Dict[str, Dict[str, Any]] = {
    "linearSVM": _LINEAR_SVM,
    "simple2D": _SIMPLE_2D,
    "linearProgram": _LINEAR_PROGRAM,
    "equalityConstrained": _EQUALITY_CONSTRAINED,
    "simple3D": _SIMPLE_3D,
    "lineOfOptima": _LINE_OF_OPTIMA,
    "portfolio": _PORTFOLIO,
    "infeasible": _INFEASIBLE,
    "boundedLeastSquares": _BOUNDED_LEAST_SQUARES,
}


def get_preset(key: str) -> Optional[Problem]:
    """Return the preset problem registered under ``key``, or ``None``."""
    data = PRESETS.get(key)
    if data is None:
        return None
    return problem_from_dict(data)


def list_presets() -> List[PresetInfo]:
    """Keys, display names and descriptions of every preset, in registry order."""
    return [PresetInfo(key, data["name"], data["description"]) for key, data in PRESETS.items()]


__all__ = ["PRESETS", "PresetInfo", "get_preset", "list_presets"]
