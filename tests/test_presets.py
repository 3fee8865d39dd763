import numpy as np
import pytest

from qpmanifold import Problem, Status, get_preset, list_presets, solve
from qpmanifold.io import validate_problem


def test_list_presets_order_and_fields():
    presets = list_presets()
    keys = [p.key for p in presets]
    assert keys == [
        "linearSVM",
        "simple2D",
        "linearProgram",
        "equalityConstrained",
        "simple3D",
        "lineOfOptima",
        "portfolio",
        "infeasible",
        "boundedLeastSquares",
    ]
    assert all(p.name and p.description for p in presets)


def test_unknown_preset_is_none():
    assert get_preset("doesNotExist") is None


@pytest.mark.parametrize("key", [p.key for p in list_presets()])
def test_presets_are_valid_problems(key):
    problem = get_preset(key)
    assert isinstance(problem, Problem)
    validate_problem(problem)


def test_simple_3d_preset_solution():
    solution = solve(get_preset("simple3D"))
    assert solution.status is Status.OPTIMAL
    assert np.allclose(solution.x, [1.0, 1.0, 1.0], atol=1e-6)
    assert pytest.approx(3.0, rel=1e-6) == solution.objective_value


def test_line_of_optima_preset_optimal_value():
    solution = solve(get_preset("lineOfOptima"))
    assert solution.status is Status.OPTIMAL
    assert solution.x[0] == pytest.approx(1.0, abs=1e-6)
    assert 0.0 - 1e-6 <= solution.x[1] <= 1.0 + 1e-6
    assert pytest.approx(1.0, rel=1e-6) == solution.objective_value
