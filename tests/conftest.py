"""Pytest configuration and shared fixtures for qpmanifold tests.

This module provides:
- A deterministic numpy RNG fixture
- Small problem builders shared by several test modules
"""

import os

import numpy as np
import pytest

from qpmanifold import Problem, Solution, Status, solve


@pytest.fixture(scope="function")
def rng() -> np.random.Generator:
    """Provide a deterministic numpy RNG for tests.

    Uses seed from TEST_RNG_SEED environment variable (default: 0).
    This ensures tests are reproducible while allowing override for debugging.

    Returns:
        A seeded numpy.random.Generator instance.
    """
    seed = int(os.environ.get("TEST_RNG_SEED", "0"))
    return np.random.default_rng(seed)


@pytest.fixture
def line_of_optima() -> Problem:
    """min x^2 subject to x >= 1, 0 <= y <= 1; optimal set is {1} x [0, 1]."""
    return Problem(
        n=2,
        Q=np.array([[2.0, 0.0], [0.0, 0.0]]),
        c=np.zeros(2),
        inequalities=[([-1.0, 0.0], -1.0), ([0.0, -1.0], 0.0), ([0.0, 1.0], 1.0)],
    )


@pytest.fixture
def interior_face_solution(line_of_optima: Problem) -> Solution:
    """Optimal solution in the relative interior of the optimal segment."""
    x0 = np.array([1.0, 0.5])
    return Solution(status=Status.OPTIMAL, x=x0, objective_value=line_of_optima.objective(x0))


@pytest.fixture
def solved():
    """Solve a problem and assert that the solver found an optimum."""

    def _solve(problem: Problem) -> Solution:
        solution = solve(problem)
        assert solution.status is Status.OPTIMAL, solution.message
        return solution

    return _solve
