"""Linear algebra backend protocol."""

from typing import Protocol, Any
from numpy.typing import NDArray


class SPDBackend(Protocol):
    """
    Protocol for operations on a symmetric positive definite matrix R.
    Allows swapping between banded and dense factorizations.
    """

    def factor(self, A: NDArray) -> Any:
        """
        Compute the Cholesky factorization R = UᵀU.

        Args:
            A: Dense symmetric matrix

        Returns:
            Factorization object (implementation-specific)

        Raises:
            NumericalDegeneracy: If A is not positive definite
        """
        ...

    def solve(self, factorization: Any, b: NDArray) -> NDArray:
        """
        Solve R x = b using a precomputed factorization.

        Args:
            factorization: Result of ``factor``
            b: Right-hand side (n,) or (n, m)

        Returns:
            Solution x
        """
        ...

    def inverse(self, factorization: Any) -> NDArray:
        """Dense R⁻¹."""
        ...

    def whiten(self, factorization: Any, z: NDArray) -> NDArray:
        """
        Compute U⁻¹ z.

        For z ~ N(0, I) the result has covariance R⁻¹.
        """
        ...
