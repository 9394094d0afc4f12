"""Banded Cholesky backend for finite-difference cost matrices."""

from typing import Tuple
import numpy as np
import scipy.linalg
from numpy.typing import NDArray

from stompopt.core.errors import NumericalDegeneracy


def bandwidth_of(A: NDArray, tol: float = 0.0) -> int:
    """Number of nonzero superdiagonals of a symmetric matrix."""
    n = A.shape[0]
    for k in range(n - 1, 0, -1):
        if np.any(np.abs(np.diagonal(A, k)) > tol):
            return k
    return 0


def to_upper_banded(A: NDArray, bandwidth: int) -> NDArray:
    """
    Pack the upper triangle of a symmetric matrix into LAPACK banded storage.

    ab[u + i - j, j] == A[i, j] for i <= j, with u = bandwidth.
    """
    n = A.shape[0]
    ab = np.zeros((bandwidth + 1, n))
    for k in range(bandwidth + 1):
        ab[bandwidth - k, k:] = np.diagonal(A, k)
    return ab


def upper_banded_matvec(ab: NDArray, x: NDArray) -> NDArray:
    """Compute A @ x for symmetric A stored in upper banded form."""
    u = ab.shape[0] - 1
    n = ab.shape[1]
    result = ab[u] * x
    for k in range(1, u + 1):
        band = ab[u - k, k:]
        result[:n - k] += band * x[k:]
        result[k:] += band * x[:n - k]
    return result


class BandedBackend:
    """SciPy banded Cholesky; cost O(n·u²) to factor, O(n·u) to solve."""

    def __init__(self, bandwidth: int):
        if bandwidth < 0:
            raise ValueError("bandwidth must be >= 0")
        self.bandwidth = bandwidth

    def factor(self, A: NDArray) -> Tuple[NDArray, bool]:
        """
        Banded Cholesky factorization of A.

        Returns:
            (cb, lower) tuple accepted by scipy.linalg.cho_solve_banded
        """
        ab = to_upper_banded(A, self.bandwidth)
        try:
            cb = scipy.linalg.cholesky_banded(ab, lower=False)
        except np.linalg.LinAlgError as exc:
            raise NumericalDegeneracy(
                f"Control cost matrix is not positive definite: {exc}"
            ) from exc
        return cb, False

    def solve(self, factorization: Tuple[NDArray, bool], b: NDArray) -> NDArray:
        return scipy.linalg.cho_solve_banded(factorization, b)

    def inverse(self, factorization: Tuple[NDArray, bool]) -> NDArray:
        n = factorization[0].shape[1]
        inv = self.solve(factorization, np.eye(n))
        # Symmetrize away round-off
        return 0.5 * (inv + inv.T)

    def whiten(self, factorization: Tuple[NDArray, bool], z: NDArray) -> NDArray:
        # cb holds U (R = UᵀU) in upper banded storage: solve U x = z
        cb = factorization[0]
        return scipy.linalg.solve_banded((0, self.bandwidth), cb, z)
