"""Exceptions raised by structured matrices and their solvers."""

from torch.linalg import LinAlgError


class DimensionMismatchError(ValueError):
    """Raised if operand and result sizes of an operation disagree."""


class NotSquareError(NotImplementedError):
    """Raised if an operation that is only defined for square matrices is called
    on a rectangular one (division, inversion, adjoint products)."""


class SingularMatrixError(LinAlgError):
    """Raised if a matrix is (numerically) singular.

    This happens for vanishing eigenvalues of a circulant matrix, a zero on the
    diagonal of a triangular Toeplitz matrix, or a breakdown of the Levinson
    recursion.
    """
