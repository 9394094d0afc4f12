"""Dense linear algebra backend using NumPy/SciPy."""

from typing import Tuple
import numpy as np
import scipy.linalg
from numpy.typing import NDArray

from stompopt.core.errors import NumericalDegeneracy


class DenseBackend:
    """NumPy/SciPy implementation of SPD operations."""

    def factor(self, A: NDArray) -> Tuple[NDArray, bool]:
        """
        Compute Cholesky factorization using scipy.

        Returns:
            (c, lower) tuple from scipy.linalg.cho_factor
        """
        try:
            return scipy.linalg.cho_factor(A, lower=False)
        except np.linalg.LinAlgError as exc:
            raise NumericalDegeneracy(
                f"Control cost matrix is not positive definite: {exc}"
            ) from exc

    def solve(self, factorization: Tuple[NDArray, bool], b: NDArray) -> NDArray:
        return scipy.linalg.cho_solve(factorization, b)

    def inverse(self, factorization: Tuple[NDArray, bool]) -> NDArray:
        n = factorization[0].shape[0]
        inv = self.solve(factorization, np.eye(n))
        return 0.5 * (inv + inv.T)

    def whiten(self, factorization: Tuple[NDArray, bool], z: NDArray) -> NDArray:
        # cho_factor leaves garbage below the diagonal; take the upper factor
        U = np.triu(factorization[0])
        return scipy.linalg.solve_triangular(U, z, lower=False)
