"""Tests for the SPD solver backends."""

import numpy as np
import pytest

from stompopt.algebra import BandedBackend, DenseBackend
from stompopt.algebra.banded import bandwidth_of, to_upper_banded, upper_banded_matvec
from stompopt.core.errors import NumericalDegeneracy


def _pentadiagonal(n=8):
    """Symmetric positive definite matrix with two superdiagonals."""
    A = 6.0 * np.eye(n)
    A += np.diag(-2.0 * np.ones(n - 1), 1) + np.diag(-2.0 * np.ones(n - 1), -1)
    A += np.diag(0.5 * np.ones(n - 2), 2) + np.diag(0.5 * np.ones(n - 2), -2)
    return A


def test_bandwidth_of():
    """Count nonzero superdiagonals."""
    assert bandwidth_of(np.eye(4)) == 0
    assert bandwidth_of(_pentadiagonal()) == 2


def test_upper_banded_storage_matvec():
    """Banded storage reproduces the dense product."""
    A = _pentadiagonal()
    x = np.arange(8, dtype=float)
    ab = to_upper_banded(A, 2)

    assert ab.shape == (3, 8)
    assert np.allclose(ab[2], np.diag(A))
    assert np.allclose(upper_banded_matvec(ab, x), A @ x)


def test_banded_and_dense_agree():
    """Both backends solve, invert and whiten identically."""
    A = _pentadiagonal()
    b = np.linspace(-1.0, 1.0, 8)
    z = np.cos(np.arange(8))

    banded = BandedBackend(bandwidth=2)
    dense = DenseBackend()
    fb = banded.factor(A)
    fd = dense.factor(A)

    assert np.allclose(banded.solve(fb, b), np.linalg.solve(A, b))
    assert np.allclose(dense.solve(fd, b), np.linalg.solve(A, b))
    assert np.allclose(banded.inverse(fb), dense.inverse(fd))
    assert np.allclose(banded.whiten(fb, z), dense.whiten(fd, z))


@pytest.mark.parametrize("backend", [BandedBackend(bandwidth=2), DenseBackend()])
def test_whiten_gives_inverse_covariance(backend):
    """W = U⁻¹ satisfies W Wᵀ = A⁻¹."""
    A = _pentadiagonal()
    factorization = backend.factor(A)
    W = backend.whiten(factorization, np.eye(8))

    assert np.allclose(W @ W.T, np.linalg.inv(A))


@pytest.mark.parametrize("backend", [BandedBackend(bandwidth=1), DenseBackend()])
def test_indefinite_matrix_raises(backend):
    """Factoring a non-SPD matrix raises NumericalDegeneracy."""
    A = np.array([[1.0, 2.0], [2.0, 1.0]])

    with pytest.raises(NumericalDegeneracy):
        backend.factor(A)


def test_negative_bandwidth_rejected():
    with pytest.raises(ValueError):
        BandedBackend(bandwidth=-1)
