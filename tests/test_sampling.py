import numpy as np
import pytest

import qpmanifold.sampling as sampling_module
from qpmanifold import Bounds, Problem, Status, get_preset, solve
from qpmanifold.core import SamplePoint, Solution
from qpmanifold.sampling import (
    Accepted,
    Rejected,
    SamplingOptions,
    deduplicate_samples,
    estimate_manifold_dimension,
    find_step_bounds,
    null_space_attempts,
    optimal_face_basis,
    random_null_space_direction,
    sample_optimal_manifold,
    sample_optimal_set,
)
from qpmanifold.solver import is_feasible


def _pairwise_min_distance(points):
    arr = np.vstack([p.x for p in points])
    best = np.inf
    for i in range(len(arr)):
        for j in range(i + 1, len(arr)):
            best = min(best, float(np.linalg.norm(arr[i] - arr[j])))
    return best


def test_dimension_of_line_of_optima(line_of_optima):
    assert estimate_manifold_dimension(line_of_optima, np.array([1.0, 0.5])) == 1
    basis = optimal_face_basis(line_of_optima, np.array([1.0, 0.5]))
    assert np.allclose(np.abs(basis[0]), [0.0, 1.0])


def test_dimension_at_vertex_is_zero(line_of_optima):
    assert estimate_manifold_dimension(line_of_optima, np.array([1.0, 0.0])) == 0


def test_step_bounds_along_segment(line_of_optima):
    t_min, t_max = find_step_bounds(line_of_optima, np.array([1.0, 0.5]), np.array([0.0, 1.0]))
    assert t_min == pytest.approx(-0.5)
    assert t_max == pytest.approx(0.5)


def test_step_bounds_clamped_without_constraints():
    problem = Problem(n=1, Q=np.zeros((1, 1)), c=np.zeros(1), bounds=Bounds(lower=[-np.inf], upper=[np.inf]))
    t_min, t_max = find_step_bounds(problem, np.zeros(1), np.array([1.0]))
    assert t_min == -1e6
    assert t_max == 1e6


def test_random_null_space_direction_is_unit(rng):
    basis = [np.array([1.0, 0.0, 0.0]), np.array([0.0, 1.0, 0.0])]
    d = random_null_space_direction(basis, rng)
    assert np.linalg.norm(d) == pytest.approx(1.0)
    assert d[2] == 0.0


def test_null_space_attempts_without_basis_are_rejected(line_of_optima, rng):
    results = list(null_space_attempts(line_of_optima, np.array([1.0, 0.0]), 1.0, [], 3, rng))
    assert results == [Rejected("unique_optimum")] * 3


def test_null_space_attempts_yield_tagged_results(line_of_optima, rng):
    x0 = np.array([1.0, 0.5])
    basis = optimal_face_basis(line_of_optima, x0)
    results = list(null_space_attempts(line_of_optima, x0, 1.0, basis, 5, rng))
    assert len(results) == 5
    assert all(isinstance(r, Accepted) for r in results)
    for r in results:
        assert r.point.x[0] == pytest.approx(1.0)
        assert -1e-9 <= r.point.x[1] <= 1.0 + 1e-9
        assert r.point.dual is not None


def test_sample_optimal_set_line_of_optima(line_of_optima, interior_face_solution, rng):
    manifold = sample_optimal_set(
        line_of_optima, interior_face_solution, SamplingOptions(sample_count=20), rng=rng
    )
    assert manifold.dimension == 1
    assert manifold.optimal_value == pytest.approx(1.0)
    assert np.allclose(manifold.points[0].x, interior_face_solution.x)
    assert len(manifold.points) > 1
    for point in manifold.points:
        assert is_feasible(line_of_optima, point.x)
        assert abs(line_of_optima.objective(point.x) - manifold.optimal_value) < 1e-5
    assert _pairwise_min_distance(manifold.points) >= 1e-6

    stats = manifold.diagnostics.strategies
    assert stats["null_space"].attempted == 10
    assert stats["perturbation"].attempted == 6
    assert stats["extreme_points"].attempted == 4
    assert manifold.diagnostics.attempted == 20
    assert manifold.diagnostics.accepted >= stats["null_space"].accepted
    for s in stats.values():
        assert s.accepted + sum(s.rejections.values()) == s.attempted


def test_sample_optimal_set_without_extreme_points(line_of_optima, interior_face_solution, rng):
    options = SamplingOptions(sample_count=10, include_extreme_points=False)
    manifold = sample_optimal_set(line_of_optima, interior_face_solution, options, rng=rng)
    assert set(manifold.diagnostics.strategies) == {"null_space", "perturbation"}


def test_sampling_is_reproducible_with_seed(line_of_optima, interior_face_solution):
    options = SamplingOptions(sample_count=20, seed=7)
    first = sample_optimal_set(line_of_optima, interior_face_solution, options)
    second = sample_optimal_set(line_of_optima, interior_face_solution, options)
    assert np.allclose(first.as_array(), second.as_array())


def test_unique_optimum_returns_seed_only():
    problem = get_preset("linearProgram")
    solution = solve(problem)
    assert solution.status is Status.OPTIMAL
    manifold = sample_optimal_set(problem, solution, SamplingOptions(sample_count=20, seed=0))
    assert manifold.dimension == 0
    assert len(manifold.points) == 1
    assert np.allclose(manifold.points[0].x, solution.x)
    assert manifold.diagnostics.attempted == 0


def test_sample_optimal_set_requires_optimal_solution(line_of_optima):
    with pytest.raises(ValueError):
        sample_optimal_set(line_of_optima, Solution(status=Status.INFEASIBLE))


def test_end_to_end_flat_objective(rng):
    # (x + y - 2)^2 with x, y >= 0: every point of the segment x + y = 2 is optimal
    problem = Problem(
        n=2,
        Q=np.array([[2.0, 2.0], [2.0, 2.0]]),
        c=np.array([-4.0, -4.0]),
        inequalities=[([-1.0, 0.0], 0.0), ([0.0, -1.0], 0.0)],
    )
    solution = solve(problem)
    assert solution.status is Status.OPTIMAL
    assert np.allclose(solution.x, [1.0, 1.0], atol=1e-4)

    manifold = sample_optimal_set(problem, solution, SamplingOptions(sample_count=40), rng=rng)
    assert manifold.dimension >= 1
    assert len(manifold.points) > 1
    for point in manifold.points:
        assert abs(problem.objective(point.x) - manifold.optimal_value) < 1e-5
        assert abs(point.x.sum() - 2.0) < 1e-2
        assert is_feasible(problem, point.x)
    assert _pairwise_min_distance(manifold.points) >= 1e-6


def test_sample_optimal_manifold_split(line_of_optima, interior_face_solution, rng):
    manifold = sample_optimal_manifold(line_of_optima, interior_face_solution, sample_count=10, rng=rng)
    stats = manifold.diagnostics.strategies
    assert stats["null_space"].attempted == 6
    assert stats["perturbation"].attempted == 4
    assert "extreme_points" not in stats


def test_deduplicate_keeps_earliest():
    a = SamplePoint(x=[0.0, 0.0])
    b = SamplePoint(x=[5e-7, 0.0])
    c = SamplePoint(x=[1.0, 0.0])
    unique = deduplicate_samples([a, b, c])
    assert len(unique) == 2
    assert unique[0] is a
    assert unique[1] is c


def _fail_first_call(func, exc):
    calls = {"n": 0}

    def wrapper(*args, **kwargs):
        calls["n"] += 1
        if calls["n"] == 1:
            raise exc
        return func(*args, **kwargs)

    return wrapper


def test_failing_attempt_does_not_end_its_strategy(
    line_of_optima, interior_face_solution, rng, monkeypatch
):
    monkeypatch.setattr(
        sampling_module, "find_step_bounds", _fail_first_call(find_step_bounds, TypeError("bad direction"))
    )
    monkeypatch.setattr(sampling_module, "solve", _fail_first_call(solve, RuntimeError("backend crashed")))

    options = SamplingOptions(sample_count=20)
    manifold = sample_optimal_set(line_of_optima, interior_face_solution, options, rng=rng)

    stats = manifold.diagnostics.strategies
    assert stats["null_space"].attempted == 10
    assert stats["null_space"].rejections["exception"] == 1
    assert stats["null_space"].accepted == 9
    assert stats["perturbation"].attempted == 6
    assert stats["perturbation"].rejections["exception"] == 1
    assert stats["extreme_points"].attempted == 4
    assert len(manifold.points) > 1


def test_sample_optimal_manifold_accepts_seed(line_of_optima, interior_face_solution):
    first = sample_optimal_manifold(line_of_optima, interior_face_solution, sample_count=20, seed=3)
    second = sample_optimal_manifold(line_of_optima, interior_face_solution, sample_count=20, seed=3)
    assert np.allclose(first.as_array(), second.as_array())
    assert len(first.points) > 1
