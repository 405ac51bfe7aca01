"""Triangular Toeplitz matrices and their fast inversion."""

from __future__ import annotations

from typing import Union

import torch
from torch import Tensor, cat, where, zeros

from toeplitzmat.exceptions import DimensionMismatchError, SingularMatrixError
from toeplitzmat.structures.base import StructuredMatrix
from toeplitzmat.structures.circulant import Circulant, chan
from toeplitzmat.structures.fft import AbstractToeplitz
from toeplitzmat.structures.toeplitz import Toeplitz
from toeplitzmat.structures.utils import (
    all_traces,
    as_generating_vector,
    diagonal_lengths,
    next_power_of_two,
)


class TriangularToeplitz(AbstractToeplitz):
    r"""Class for lower- or upper-triangular Toeplitz matrices.

    A lower-triangular Toeplitz matrix is defined by:

    \(
    \begin{pmatrix}
        d_1 & 0 & \cdots & 0 \\
        d_2 & d_1 & \ddots & \vdots \\
        \vdots & \ddots & \ddots & 0 \\
        d_K & \cdots & d_2 & d_1 \\
    \end{pmatrix} \in \mathbb{R}^{K \times K}
    \quad
    \text{with}
    \quad
    \mathbf{d}
    :=
    \begin{pmatrix}
        d_1 \\
        d_2 \\
        \vdots \\
        d_K \\
    \end{pmatrix} \in \mathbb{R}^K\,.
    \)

    Its upper-triangular counterpart is the transpose. Rectangular matrices are
    supported by specifying the other dimension `k`.

    Attributes:
        INV_BLOCKSIZE: Matrices up to this dimension are inverted with the quadratic
            forward recurrence. Larger ones are inverted by recursive doubling.
            Default: `64`.
        DIRECT_SOLVE_MAX_DIM: Largest dimension for which `solve` with
            `method='auto'` multiplies with the inverse. Larger systems are solved
            iteratively. Default: `1024`.
    """

    INV_BLOCKSIZE: int = 64
    DIRECT_SOLVE_MAX_DIM: int = 1024

    def __init__(self, ve: Tensor, uplo: str = "L", k: Union[int, None] = None) -> None:
        r"""Store the triangular Toeplitz matrix internally.

        Args:
            ve: The vector \(\mathbf{d}\) containing the constants of all non-zero
                diagonals, starting with the value on the main diagonal. This is the
                first column (`uplo='L'`) or first row (`uplo='U'`).
            uplo: `'L'` for lower-triangular, `'U'` for upper-triangular.
                Default: `'L'`.
            k: The other dimension. Default: length of `ve` (square).

        Raises:
            ValueError: If `uplo` or `k` are invalid.
        """
        super().__init__()
        ve = as_generating_vector(ve, name="ve")
        if uplo not in ["L", "U"]:
            raise ValueError(f"uplo must be either 'L' or 'U'. Got {uplo!r}.")
        k = ve.shape[0] if k is None else k
        if k < 1:
            raise ValueError(f"k must be positive. Got {k}.")

        self._ve: Tensor
        self.register_tensor(ve, "_ve")
        self.uplo = uplo
        self.k = k

        padding = ve.new_zeros(k - 1)
        if uplo == "L":
            self._setup_transform(cat([ve, padding]))
        else:
            self._setup_transform(cat([ve[:1], padding, ve[1:].flip(0)]))

    @property
    def ve(self) -> Tensor:
        """Return the generating vector."""
        return self._ve

    @property
    def shape(self):
        """Return the number of rows and columns of the represented matrix."""
        n = self._ve.shape[0]
        return (n, self.k) if self.uplo == "L" else (self.k, n)

    @property
    def T(self) -> TriangularToeplitz:
        """Return the transpose of the represented matrix."""
        uplo = "U" if self.uplo == "L" else "L"
        return TriangularToeplitz(self._ve, uplo=uplo, k=self.k)

    def _entries(self, i: Tensor, j: Tensor) -> Tensor:
        diff = i - j if self.uplo == "L" else j - i
        return where(diff >= 0, self._ve[diff.clamp(min=0)], self._ve.new_zeros(()))

    @classmethod
    def from_dense(cls, mat: Tensor, uplo: str = "L") -> TriangularToeplitz:
        """Construct from a PyTorch tensor by averaging the diagonals of one triangle.

        Args:
            mat: A dense matrix which will be approximated by a `TriangularToeplitz`.
            uplo: Which triangle to keep. Default: `'L'`.

        Returns:
            `TriangularToeplitz` approximating the passed matrix.
        """
        num_rows, num_cols = mat.shape
        means = all_traces(mat) / diagonal_lengths(
            num_rows, num_cols, device=mat.device
        ).to(mat.dtype)

        idx_main = num_rows - 1
        if uplo == "L":
            return cls(means[idx_main::-1], uplo="L", k=num_cols)
        return cls(means[idx_main:], uplo="U", k=num_rows)

    @classmethod
    def eye(
        cls,
        dim: int,
        uplo: str = "L",
        dtype: Union[torch.dtype, None] = None,
        device: Union[torch.device, None] = None,
    ) -> TriangularToeplitz:
        """Create a triangular Toeplitz matrix representing the identity matrix.

        Args:
            dim: Dimension of the (square) matrix.
            uplo: Orientation of the triangle. Default: `'L'`.
            dtype: Optional data type of the matrix. If not specified, uses the default
                tensor type.
            device: Optional device of the matrix. If not specified, uses the default
                tensor type.

        Returns:
            A triangular Toeplitz matrix representing the identity matrix.
        """
        coeffs = zeros(dim, dtype=dtype, device=device)
        coeffs[0] = 1.0
        return cls(coeffs, uplo=uplo)

    def to_toeplitz(self) -> Toeplitz:
        """Recast as a general Toeplitz matrix.

        Returns:
            The same matrix represented as `Toeplitz`.
        """
        other = cat([self._ve[:1], self._ve.new_zeros(self.k - 1)])
        if self.uplo == "L":
            return Toeplitz(self._ve, other)
        return Toeplitz(other, self._ve)

    def __matmul__(
        self, other: Union[StructuredMatrix, Tensor]
    ) -> Union[TriangularToeplitz, Tensor]:
        """Multiply onto another triangular Toeplitz matrix or a tensor (@ operator).

        Args:
            other: A vector or matrix represented by a PyTorch tensor, or another
                square `TriangularToeplitz` of the same size.

        Returns:
            Result of the multiplication. If both matrices are triangular with the
            same orientation, the result is a `TriangularToeplitz`. Otherwise, it is a
            dense tensor.

        Raises:
            DimensionMismatchError: If two triangular matrices differ in size.
        """
        if not isinstance(other, TriangularToeplitz):
            return super().__matmul__(other)

        self._check_square("Multiplication")
        other._check_square("Multiplication")
        if self.shape != other.shape:
            raise DimensionMismatchError(
                f"Sizes must match. Got {self.shape} and {other.shape}."
            )
        if self.uplo != other.uplo:
            self._warn_naive_implementation("__matmul__")
            return self.to_dense() @ other.to_dense()

        # product of the generating vectors' polynomials, truncated
        lower = self if self.uplo == "L" else self.T
        return TriangularToeplitz(lower @ other._ve, uplo=self.uplo)

    def inv(self) -> TriangularToeplitz:
        r"""Compute the inverse, which is again a triangular Toeplitz matrix.

        Small matrices are inverted by forward substitution. Larger ones are
        zero-padded to a power of two and inverted by recursive doubling with
        \(\mathcal{O}(n \log n)\) cost, where each level multiplies with the
        off-diagonal Toeplitz block through the FFT.

        Returns:
            The inverse with the same orientation.

        Raises:
            SingularMatrixError: If the diagonal is zero.
        """
        self._check_square("Inverse")
        if self._ve[0] == 0:
            raise SingularMatrixError("Triangular Toeplitz matrix has zero diagonal.")
        return TriangularToeplitz(self._inverse_generator(self._ve), uplo=self.uplo)

    @classmethod
    def _inverse_generator(cls, ve: Tensor) -> Tensor:
        """Compute the generating vector of the inverse by recursive doubling.

        Args:
            ve: Generating vector with non-zero leading entry.

        Returns:
            The generating vector of the inverse.
        """
        (dim,) = ve.shape
        if dim <= cls.INV_BLOCKSIZE:
            return cls._small_inverse_generator(ve)

        padded_dim = next_power_of_two(dim)
        if dim != padded_dim:
            padded = cat([ve, ve.new_zeros(padded_dim - dim)])
            return cls._inverse_generator(padded)[:dim]

        # [[A, 0], [B, A]]^{-1} = [[A^{-1}, 0], [-A^{-1} B A^{-1}, A^{-1}]]
        half = dim // 2
        top = cls._inverse_generator(ve[:half])
        off_diagonal = Toeplitz(ve[half:], ve[1 : half + 1].flip(0))
        bottom = TriangularToeplitz(top, uplo="L") @ (off_diagonal @ top)
        return cat([top, -bottom])

    @staticmethod
    def _small_inverse_generator(ve: Tensor) -> Tensor:
        """Compute the generating vector of the inverse by forward substitution.

        Args:
            ve: Generating vector with non-zero leading entry.

        Returns:
            The generating vector of the inverse.
        """
        (dim,) = ve.shape
        inverse = zeros(dim, dtype=ve.dtype, device=ve.device)
        inverse[0] = 1 / ve[0]
        for k in range(1, dim):
            inverse[k] = -(ve[1 : k + 1].flip(0) @ inverse[:k]) / ve[0]
        return inverse

    def solve(self, b: Tensor, method: str = "auto") -> Tensor:
        """Solve the linear system `self @ x = b`.

        Args:
            b: Right-hand side vector, or matrix whose columns are solved
                individually.
            method: `'inverse'` multiplies with `inv()`, `'iterative'` uses CGS with
                Chan's preconditioner, `'auto'` picks `'inverse'` for dimensions up to
                `DIRECT_SOLVE_MAX_DIM`. Default: `'auto'`.

        Returns:
            The solution, of the same shape as `b`.

        Raises:
            ValueError: If `method` is unknown.
        """
        if method not in ["auto", "inverse", "iterative"]:
            raise ValueError(
                f"method must be 'auto', 'inverse', or 'iterative'. Got {method!r}."
            )
        self._check_square("Division")
        self._check_size(b, self.shape[0], name="b")

        if method == "auto":
            use_inverse = self.shape[0] <= self.DIRECT_SOLVE_MAX_DIM
            method = "inverse" if use_inverse else "iterative"

        if method == "inverse":
            return self.inv() @ b
        return super().solve(b)

    def _build_preconditioner(self) -> Circulant:
        return chan(self).regularize()
