"""Toeplitz, circulant, and Hankel matrices with FFT-based multiply and solve."""

from toeplitzmat.exceptions import (
    DimensionMismatchError,
    NotSquareError,
    SingularMatrixError,
)
from toeplitzmat.solvers.iterative import (
    NonConvergenceWarning,
    SolverResult,
    cg,
    cgs,
)
from toeplitzmat.solvers.levinson import levinson
from toeplitzmat.structures.circulant import Circulant, chan, strang
from toeplitzmat.structures.hankel import Hankel
from toeplitzmat.structures.symmetric import SymmetricToeplitz
from toeplitzmat.structures.toeplitz import Toeplitz
from toeplitzmat.structures.triangular import TriangularToeplitz

__all__ = [
    "Toeplitz",
    "SymmetricToeplitz",
    "Circulant",
    "TriangularToeplitz",
    "Hankel",
    "strang",
    "chan",
    "cg",
    "cgs",
    "levinson",
    "SolverResult",
    "NonConvergenceWarning",
    "DimensionMismatchError",
    "NotSquareError",
    "SingularMatrixError",
]
