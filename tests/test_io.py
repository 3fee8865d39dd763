import json

import numpy as np
import pytest

from qpmanifold import InvalidProblemError, Problem, get_preset
from qpmanifold.io import (
    dump_problem,
    load_problem,
    problem_from_dict,
    problem_to_dict,
    validate_problem,
)


def _valid_dict():
    return {
        "n": 2,
        "Q": [[2.0, 0.0], [0.0, 2.0]],
        "c": [0.0, 0.0],
        "inequalities": [{"a": [-1.0, -1.0], "b": -2.0}],
    }


def test_problem_from_dict_defaults():
    problem = problem_from_dict(_valid_dict())
    assert problem.n == 2
    assert len(problem.inequalities) == 1
    assert problem.equalities == ()
    assert np.allclose(problem.bounds.lower, -1e6)
    assert np.allclose(problem.bounds.upper, 1e6)


def test_problem_inputs_are_copied():
    q = np.eye(2)
    problem = Problem(n=2, Q=q, c=np.zeros(2))
    q[0, 0] = 5.0
    assert problem.Q[0, 0] == 1.0
    with pytest.raises(ValueError):
        problem.Q[0, 0] = 3.0


def test_validate_collects_all_errors():
    obj = {
        "n": 2,
        "Q": [[1.0, 0.0, 0.0]],
        "c": [0.0],
        "inequalities": [{"a": [1.0], "b": 0.0}],
    }
    with pytest.raises(InvalidProblemError) as excinfo:
        problem_from_dict(obj)
    errors = excinfo.value.errors
    assert len(errors) == 3
    assert any("Q must be 2x2" in e for e in errors)
    assert any("c must have length 2" in e for e in errors)
    assert any("Inequality constraint 0" in e for e in errors)


def test_validate_rejects_asymmetric_q():
    obj = _valid_dict()
    obj["Q"] = [[1.0, 1.0], [0.0, 1.0]]
    with pytest.raises(InvalidProblemError, match="symmetric"):
        problem_from_dict(obj)


def test_validate_rejects_indefinite_q():
    obj = _valid_dict()
    obj["Q"] = [[1.0, 2.0], [2.0, 1.0]]
    with pytest.raises(InvalidProblemError, match="positive semidefinite"):
        problem_from_dict(obj)


def test_invalid_problem_error_is_value_error():
    with pytest.raises(ValueError):
        problem_from_dict({"n": 0, "Q": [], "c": []})


@pytest.mark.parametrize("n", [0, -1, 1.5, True, "2"])
def test_n_must_be_positive_integer(n):
    obj = _valid_dict()
    obj["n"] = n
    with pytest.raises(InvalidProblemError):
        problem_from_dict(obj)


def test_missing_fields_reported():
    with pytest.raises(InvalidProblemError) as excinfo:
        problem_from_dict({"n": 2})
    assert len(excinfo.value.errors) == 2


def test_malformed_constraint():
    obj = _valid_dict()
    obj["inequalities"] = [{"a": [1.0, 0.0]}]
    with pytest.raises(InvalidProblemError, match="malformed"):
        problem_from_dict(obj)


def test_crossed_bounds_rejected():
    obj = _valid_dict()
    obj["bounds"] = {"lower": [1.0, 0.0], "upper": [0.0, 1.0]}
    with pytest.raises(InvalidProblemError, match="lower bounds"):
        problem_from_dict(obj)


def test_validate_accepts_psd_singular_q():
    validate_problem(get_preset("linearSVM"))


def test_dict_round_trip_preserves_problem():
    problem = get_preset("portfolio")
    again = problem_from_dict(problem_to_dict(problem))
    assert np.allclose(again.Q, problem.Q)
    assert np.allclose(again.c, problem.c)
    assert [e.b for e in again.equalities] == [e.b for e in problem.equalities]
    assert np.allclose(again.bounds.lower, problem.bounds.lower)


def test_dump_and_load(tmp_path):
    path = tmp_path / "problem.json"
    dump_problem(get_preset("simple2D"), str(path))
    assert json.loads(path.read_text())["n"] == 2
    loaded = load_problem(str(path))
    assert loaded.inequalities[0].b == -2.0


def test_load_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_problem(str(tmp_path / "nope.json"))


def test_load_invalid_json(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text("{not json")
    with pytest.raises(InvalidProblemError):
        load_problem(str(path))
