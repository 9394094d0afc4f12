"""Linear algebra backend abstractions."""

from stompopt.algebra.protocols import SPDBackend
from stompopt.algebra.banded import BandedBackend
from stompopt.algebra.dense import DenseBackend

__all__ = [
    "SPDBackend",
    "BandedBackend",
    "DenseBackend",
]
