import os

import numpy as np
import pytest

from qpmanifold.linalg import (
    approx_equal,
    compute_covariance,
    compute_mean,
    compute_null_space,
    dot,
    eigen_decomposition,
    gram_schmidt,
    is_psd,
    mat_mul,
    mat_vec,
    norm,
    normalize,
    random_unit_vector,
    solve_linear_system,
    transpose,
)


def test_vector_helpers():
    assert dot([1.0, 2.0], [3.0, 4.0]) == pytest.approx(11.0)
    assert norm([3.0, 4.0]) == pytest.approx(5.0)
    assert np.allclose(normalize([3.0, 4.0]), [0.6, 0.8])
    assert np.allclose(normalize([0.0, 0.0]), [0.0, 0.0])


def test_matrix_helpers():
    a = np.array([[1.0, 2.0], [3.0, 4.0]])
    assert np.allclose(mat_vec(a, [1.0, 1.0]), [3.0, 7.0])
    assert np.allclose(mat_mul(a, np.eye(2)), a)
    assert np.allclose(transpose(a), a.T)


def test_eigen_decomposition_symmetric_2x2():
    a = np.array([[2.0, 1.0], [1.0, 2.0]])
    dec = eigen_decomposition(a)
    assert sorted(dec.eigenvalues) == pytest.approx([1.0, 3.0], abs=1e-9)
    for i, value in enumerate(dec.eigenvalues):
        vec = dec.eigenvectors[:, i]
        assert np.allclose(a @ vec, value * vec, atol=1e-8)


def test_eigen_decomposition_diagonal_and_input_untouched():
    a = np.diag([3.0, -1.0, 2.0])
    original = a.copy()
    dec = eigen_decomposition(a)
    assert np.allclose(dec.eigenvalues, [3.0, -1.0, 2.0])
    assert np.allclose(dec.eigenvectors, np.eye(3))
    assert np.array_equal(a, original)


def test_eigen_decomposition_result_is_read_only():
    dec = eigen_decomposition(np.eye(2))
    with pytest.raises(ValueError):
        dec.eigenvalues[0] = 5.0


def test_eigen_decomposition_random_symmetric(rng):
    m = rng.standard_normal((4, 4))
    a = m + m.T
    dec = eigen_decomposition(a, max_iter=500)
    recon = dec.eigenvectors @ np.diag(dec.eigenvalues) @ dec.eigenvectors.T
    assert np.allclose(recon, a, atol=1e-6)


def test_is_psd():
    assert is_psd(np.array([[2.0, 0.0], [0.0, 0.0]]))
    assert not is_psd(np.array([[1.0, 2.0], [2.0, 1.0]]))


def test_gram_schmidt_dependent_rows_vanish():
    basis = gram_schmidt([[1.0, 0.0], [2.0, 0.0], [1.0, 1.0]])
    assert norm(basis[1]) < 1e-12
    assert abs(dot(basis[0], basis[2])) < 1e-12


def test_null_space_orthonormal_and_orthogonal():
    rows = [[1.0, 1.0, 0.0]]
    basis = compute_null_space(rows)
    assert len(basis) == 2
    for b in basis:
        assert norm(b) == pytest.approx(1.0)
        assert abs(dot(b, rows[0])) < 1e-10
    assert abs(dot(basis[0], basis[1])) < 1e-10


def test_null_space_full_rank_is_empty():
    assert compute_null_space([[1.0, 0.0], [0.0, 1.0]]) == []


def test_null_space_no_rows():
    assert compute_null_space([]) == []
    basis = compute_null_space([], n=3)
    assert np.allclose(np.vstack(basis), np.eye(3))


def test_null_space_ignores_duplicate_rows():
    basis = compute_null_space([[1.0, 0.0], [-1.0, 0.0]])
    assert len(basis) == 1
    assert np.allclose(np.abs(basis[0]), [0.0, 1.0])


def test_solve_linear_system():
    a = np.array([[0.0, 2.0], [1.0, 1.0]])
    b = np.array([4.0, 3.0])
    x = solve_linear_system(a, b)
    assert np.allclose(x, [1.0, 2.0])


def test_solve_linear_system_singular_returns_none():
    assert solve_linear_system(np.array([[1.0, 2.0], [2.0, 4.0]]), np.array([1.0, 2.0])) is None


def test_solve_linear_system_rejects_bad_shapes():
    with pytest.raises(ValueError):
        solve_linear_system(np.ones((2, 3)), np.ones(2))


def test_mean_and_covariance():
    points = np.array([[0.0, 0.0], [2.0, 2.0]])
    assert np.allclose(compute_mean(points), [1.0, 1.0])
    assert np.allclose(compute_covariance(points), [[2.0, 2.0], [2.0, 2.0]])
    assert np.allclose(compute_covariance([[1.0, 2.0]]), np.zeros((2, 2)))


def test_approx_equal_is_strict():
    assert approx_equal([1.0, 2.0], [1.0, 2.0 + 1e-9])
    assert not approx_equal([1.0], [1.5], tol=0.5)
    assert not approx_equal([1.0], [1.0, 2.0])


def test_random_unit_vector_is_reproducible(rng):
    v = random_unit_vector(5, rng)
    assert norm(v) == pytest.approx(1.0)
    again = random_unit_vector(5, np.random.default_rng(int(os.environ.get("TEST_RNG_SEED", "0"))))
    assert np.allclose(v, again)
