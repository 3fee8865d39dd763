import numpy as np
import pytest

from qpmanifold.backends import ActiveSetBackend, QPBackend, ScipyBackend


def test_backends_satisfy_protocol():
    assert isinstance(ActiveSetBackend(), QPBackend)
    assert isinstance(ScipyBackend(), QPBackend)


def test_active_set_inequality_multiplier_convention():
    dmat = np.eye(2)
    dvec = np.zeros(2)
    amat = np.array([[1.0], [1.0]])
    bvec = np.array([2.0])
    res = ActiveSetBackend().solve_qp(dmat, dvec, amat, bvec, meq=0)
    assert np.allclose(res.solution, [1.0, 1.0], atol=1e-8)
    assert np.allclose(res.lagrangian, [1.0], atol=1e-8)
    assert np.allclose(dmat @ res.solution - dvec, amat @ res.lagrangian, atol=1e-8)


def test_active_set_equality_multiplier_convention():
    dmat = np.eye(2)
    dvec = np.zeros(2)
    amat = np.array([[1.0], [1.0]])
    bvec = np.array([1.0])
    res = ActiveSetBackend().solve_qp(dmat, dvec, amat, bvec, meq=1)
    assert np.allclose(res.solution, [0.5, 0.5], atol=1e-8)
    assert np.allclose(dmat @ res.solution - dvec, amat @ res.lagrangian, atol=1e-8)
    assert res.message == "KKT conditions satisfied"


def test_active_set_inactive_constraint_has_zero_multiplier():
    dmat = np.eye(2)
    dvec = np.array([1.0, 1.0])
    amat = np.array([[-1.0], [-1.0]])
    bvec = np.array([-10.0])
    res = ActiveSetBackend().solve_qp(dmat, dvec, amat, bvec)
    assert np.allclose(res.solution, [1.0, 1.0], atol=1e-8)
    assert np.allclose(res.lagrangian, [0.0])


def test_active_set_reports_infeasible():
    res = ActiveSetBackend().solve_qp(
        np.eye(1), np.zeros(1), np.array([[1.0, -1.0]]), np.array([1.0, 0.0])
    )
    assert "infeasible" in res.message.lower()
    assert np.all(np.isnan(res.solution))


def test_active_set_rejects_bad_meq():
    with pytest.raises(ValueError):
        ActiveSetBackend().solve_qp(np.eye(2), np.zeros(2), np.ones((2, 1)), np.ones(1), meq=2)


def test_scipy_backend_matches_active_set():
    pytest.importorskip("scipy")
    dmat = np.array([[2.0, 0.5], [0.5, 1.0]])
    dvec = np.array([1.0, 1.0])
    amat = np.array([[-1.0, 1.0], [-1.0, 0.0]])
    bvec = np.array([-1.0, 0.0])
    ref = ActiveSetBackend().solve_qp(dmat, dvec, amat, bvec)
    res = ScipyBackend().solve_qp(dmat, dvec, amat, bvec)
    assert res.lagrangian is None
    assert np.allclose(res.solution, ref.solution, atol=1e-5)


def test_active_set_flags_iteration_cap():
    dmat = 2.0 * np.eye(2)
    dvec = np.array([10.0, 10.0])
    amat = np.array([[-1.0], [0.0]])
    bvec = np.array([-1.0])
    capped = ActiveSetBackend(maxiter=1).solve_qp(dmat, dvec, amat, bvec)
    assert not capped.converged
    assert capped.message == "Maximum iterations reached"
    full = ActiveSetBackend().solve_qp(dmat, dvec, amat, bvec)
    assert full.converged
    assert np.allclose(full.solution, [1.0, 5.0], atol=1e-8)
