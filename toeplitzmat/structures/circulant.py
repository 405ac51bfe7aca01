"""Circulant matrices and circulant preconditioners for Toeplitz systems."""

from __future__ import annotations

from typing import Union
from warnings import warn

from torch import Tensor, arange, cat, promote_types, where
from torch.fft import ifft

from toeplitzmat.exceptions import (
    DimensionMismatchError,
    NotSquareError,
    SingularMatrixError,
)
from toeplitzmat.structures.base import StructuredMatrix
from toeplitzmat.structures.fft import AbstractToeplitz
from toeplitzmat.structures.utils import (
    all_traces,
    as_generating_vector,
    machine_epsilon,
)


class Circulant(AbstractToeplitz):
    r"""Class for circulant matrices.

    A circulant matrix is a Toeplitz matrix whose columns are cyclic shifts of a
    single generating vector \(\mathbf{p} \in \mathbb{R}^N\):

    \(
    \begin{pmatrix}
        p_1 & p_N & \cdots & p_2 \\
        p_2 & p_1 & \ddots & \vdots \\
        \vdots & \ddots & \ddots & p_N \\
        p_N & \cdots & p_2 & p_1 \\
    \end{pmatrix}\,.
    \)

    The DFT diagonalizes circulant matrices. Its coefficients of \(\mathbf{p}\) are
    the eigenvalues, hence multiplication, division, and inversion reduce to
    element-wise operations in the Fourier domain.

    Rectangular circulant matrices consist of the leading columns (or rows) of a
    square one. Entry \((i, j)\) is \(p_{(i - j) \bmod \max(m, n)}\).
    """

    def __init__(self, ve: Tensor, cr: str = "c", k: Union[int, None] = None) -> None:
        """Store the circulant matrix internally.

        Args:
            ve: The generating vector.
            cr: Whether `ve` is the first column (`'c'`) or first row (`'r'`).
                Default: `'c'`.
            k: The other dimension. Must not exceed the length of `ve`.
                Default: length of `ve` (square).

        Raises:
            ValueError: If `cr` or `k` are invalid.
        """
        super().__init__()
        ve = as_generating_vector(ve, name="ve")
        if cr not in ["c", "r"]:
            raise ValueError(f"cr must be either 'c' or 'r'. Got {cr!r}.")
        k = ve.shape[0] if k is None else k
        if not 1 <= k <= ve.shape[0]:
            raise ValueError(f"k must be in [1, {ve.shape[0]}]. Got {k}.")

        self._ve: Tensor
        self.register_tensor(ve, "_ve")
        self.cr = cr
        self.k = k
        self._setup_transform(self._generator())

    @property
    def ve(self) -> Tensor:
        """Return the generating vector."""
        return self._ve

    @property
    def shape(self):
        """Return the number of rows and columns of the represented matrix."""
        n = self._ve.shape[0]
        return (n, self.k) if self.cr == "c" else (self.k, n)

    @property
    def eigenvalues(self) -> Tensor:
        """Return the eigenvalues, i.e. the DFT of the generating column.

        Returns:
            A complex tensor of length `max(rows, cols)`.
        """
        return self._embedding_dft.clone()

    @property
    def T(self) -> Circulant:
        """Return the transpose of the represented matrix."""
        return Circulant(self._ve, cr="r" if self.cr == "c" else "c", k=self.k)

    def _generator(self) -> Tensor:
        """Return the generating column of the square circulant matrix."""
        if self.cr == "c":
            return self._ve
        return cat([self._ve[:1], self._ve[1:].flip(0)])

    def _entries(self, i: Tensor, j: Tensor) -> Tensor:
        return self._generator()[(i - j) % self._ve.shape[0]]

    @classmethod
    def from_dense(cls, mat: Tensor) -> Circulant:
        """Construct from a PyTorch tensor by averaging the wrapped diagonals.

        Args:
            mat: A dense square matrix which will be approximated by a `Circulant`.

        Returns:
            `Circulant` approximating the passed matrix.

        Raises:
            NotSquareError: If `mat` is not square.
        """
        if mat.ndim != 2 or mat.shape[0] != mat.shape[1]:
            raise NotSquareError(f"Expected square matrix. Got {mat.shape}.")
        traces = all_traces(mat)

        # wrapped diagonal d collects sub-diagonal d and super-diagonal n - d
        dim = mat.shape[0]
        idx_main = dim - 1
        col = traces[idx_main::-1].clone()
        col[1:] += traces[-1:idx_main:-1]

        return cls(col / dim)

    @classmethod
    def from_spectrum(cls, eigenvalues: Tensor, real: bool = True) -> Circulant:
        """Construct a square circulant matrix from its eigenvalues.

        Args:
            eigenvalues: The DFT of the generating column.
            real: Whether to discard the imaginary part of the generating column.
                Default: `True`.

        Returns:
            The circulant matrix with the given eigenvalues.
        """
        ve = ifft(eigenvalues)
        return cls(ve.real if real else ve)

    def solve(self, b: Tensor) -> Tensor:
        """Solve `self @ x = b` by element-wise division in the Fourier domain.

        Args:
            b: Right-hand side vector, or matrix whose columns are solved
                individually.

        Returns:
            The solution, of the same shape as `b`.

        Raises:
            SingularMatrixError: If an eigenvalue is numerically zero.
        """
        self._check_square("Division")
        self._check_nonsingular()
        return super().solve(b)

    def _solve_vector(self, b: Tensor) -> Tensor:
        dtype = promote_types(self.dtype, b.dtype)
        with self._scratch_lock:
            buffer = self._scratch
            buffer.copy_(b)
            self._plan.forward_(buffer)
            buffer.div_(self._embedding_dft)
            self._plan.inverse_(buffer)
            x = buffer.clone()
        return x.to(dtype) if dtype.is_complex else x.real.to(dtype)

    def inv(self) -> Circulant:
        """Compute the inverse of the circulant matrix.

        Returns:
            A circulant matrix whose eigenvalues are the reciprocals of `self`'s.

        Raises:
            SingularMatrixError: If an eigenvalue is numerically zero.
        """
        self._check_square("Inverse")
        self._check_nonsingular()
        return Circulant.from_spectrum(
            1 / self._embedding_dft, real=not self.dtype.is_complex
        )

    def conj_matmul(self, other: Circulant) -> Circulant:
        """Multiply the conjugate transpose onto another circulant (`self^H @ other`).

        Args:
            other: A square circulant matrix of the same size.

        Returns:
            The product as circulant matrix.

        Raises:
            DimensionMismatchError: If the sizes of both matrices differ.
        """
        self._check_square("Multiplication")
        other._check_square("Multiplication")
        if self.shape != other.shape:
            raise DimensionMismatchError(
                f"Sizes must match. Got {self.shape} and {other.shape}."
            )
        eigenvalues = self._embedding_dft.conj() * other._embedding_dft
        real = not (self.dtype.is_complex or other.dtype.is_complex)
        return Circulant.from_spectrum(eigenvalues, real=real)

    def regularize(self) -> Circulant:
        """Replace numerically vanishing eigenvalues by the largest magnitude.

        Makes a singular circulant usable as preconditioner. Non-singular matrices
        are returned unchanged.

        Returns:
            A non-singular circulant matrix.

        Raises:
            NotSquareError: If the matrix is rectangular.
        """
        self._check_square("Regularization")
        vanishing = self._vanishing_eigenvalues()
        if not vanishing.any():
            return self

        largest = self._embedding_dft.abs().max()
        fill = largest if largest > 0 else largest.new_ones(())
        warn(
            f"Circulant matrix has {vanishing.sum().item()} vanishing eigenvalue(s). "
            + f"Replacing them by {fill.item():.3e}.",
            UserWarning,
        )
        fill = fill.to(self._embedding_dft.dtype)
        eigenvalues = where(vanishing, fill, self._embedding_dft)
        return Circulant.from_spectrum(eigenvalues, real=not self.dtype.is_complex)

    def _vanishing_eigenvalues(self) -> Tensor:
        """Flag eigenvalues that are zero relative to the largest one.

        Returns:
            Boolean mask over the eigenvalues.
        """
        magnitudes = self._embedding_dft.abs()
        largest = magnitudes.max()
        return magnitudes <= largest * machine_epsilon(magnitudes.dtype)

    def _check_nonsingular(self):
        """Make sure no eigenvalue vanishes relative to the largest one.

        Raises:
            SingularMatrixError: If the matrix is numerically singular.
        """
        if self._vanishing_eigenvalues().any():
            magnitudes = self._embedding_dft.abs()
            raise SingularMatrixError(
                "Circulant matrix is numerically singular. Smallest eigenvalue "
                + f"magnitude: {magnitudes.min().item():.3e}."
            )


def _first_column_and_row(mat: StructuredMatrix, name: str):
    num_rows, num_cols = mat.shape
    if num_rows != num_cols:
        raise NotSquareError(f"{name}: expected square matrix. Got {mat.shape}.")
    return mat.column(0), mat.row(0)


def strang(mat: StructuredMatrix) -> Circulant:
    """Construct Strang's circulant preconditioner of a square matrix.

    Copies the central diagonals of `mat` into a circulant matrix: the first
    `n // 2 + 1` entries of the generating vector come from the first column, the
    remaining ones from the tail of the first row.

    Args:
        mat: A square (Toeplitz) matrix.

    Returns:
        The Strang preconditioner.

    Raises:
        NotSquareError: If `mat` is not square.
    """
    col, row = _first_column_and_row(mat, "Strang preconditioner")
    dim = col.shape[0]
    idxs = arange(dim, device=col.device)
    return Circulant(where(idxs <= dim // 2, col, row[(dim - idxs) % dim]))


def chan(mat: StructuredMatrix) -> Circulant:
    """Construct T. Chan's optimal circulant preconditioner of a square matrix.

    Entry `i` of the generating vector is the weighted average
    `((n - i) * col[i] + i * row[n - i]) / n`, which yields the circulant
    matrix closest to a Toeplitz `mat` in Frobenius norm.

    Args:
        mat: A square (Toeplitz) matrix.

    Returns:
        The Chan preconditioner.

    Raises:
        NotSquareError: If `mat` is not square.
    """
    col, row = _first_column_and_row(mat, "Chan preconditioner")
    dim = col.shape[0]
    idxs = arange(dim, device=col.device)
    wrapped = row[(dim - idxs).clamp(max=dim - 1)]
    return Circulant(((dim - idxs) * col + idxs * wrapped) / dim)
