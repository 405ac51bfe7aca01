"""General (rectangular) Toeplitz matrices."""

from __future__ import annotations

from typing import TYPE_CHECKING

from torch import Tensor, cat, promote_types, where

from toeplitzmat.structures.circulant import Circulant, strang
from toeplitzmat.structures.fft import AbstractToeplitz
from toeplitzmat.structures.utils import (
    all_traces,
    as_generating_vector,
    diagonal_lengths,
)

if TYPE_CHECKING:
    from toeplitzmat.structures.triangular import TriangularToeplitz


class Toeplitz(AbstractToeplitz):
    r"""Class for general Toeplitz matrices.

    A Toeplitz matrix is constant along each diagonal and defined by its first
    column \(\mathbf{c} \in \mathbb{R}^m\) and first row
    \(\mathbf{r} \in \mathbb{R}^n\) (with \(c_1 = r_1\)):

    \(
    \begin{pmatrix}
        c_1 & r_2 & \cdots & r_n \\
        c_2 & c_1 & \ddots & \vdots \\
        \vdots & \ddots & \ddots & r_2 \\
        c_m & \cdots & c_2 & c_1 \\
    \end{pmatrix} \in \mathbb{R}^{m \times n}\,.
    \)

    Multiplication embeds the matrix into a circulant matrix of size
    \(m + n - 1\). Square systems are solved with CGS, preconditioned by Strang's
    circulant approximation.
    """

    def __init__(self, vc: Tensor, vr: Tensor) -> None:
        """Store the Toeplitz matrix internally.

        Args:
            vc: The first column.
            vr: The first row.

        Raises:
            ValueError: If the first entries of `vc` and `vr` differ.
        """
        super().__init__()
        vc = as_generating_vector(vc, name="vc")
        vr = as_generating_vector(vr, name="vr")
        if vc[0] != vr[0]:
            raise ValueError(
                "First element of the vectors must be the same. "
                + f"Got {vc[0].item()} and {vr[0].item()}."
            )
        dtype = promote_types(vc.dtype, vr.dtype)

        self._vc: Tensor
        self.register_tensor(vc.to(dtype), "_vc")
        self._vr: Tensor
        self.register_tensor(vr.to(dtype), "_vr")
        self._setup_transform(cat([self._vc, self._vr[1:].flip(0)]))

    @property
    def vc(self) -> Tensor:
        """Return the first column."""
        return self._vc

    @property
    def vr(self) -> Tensor:
        """Return the first row."""
        return self._vr

    @property
    def shape(self):
        """Return the number of rows and columns of the represented matrix."""
        return (self._vc.shape[0], self._vr.shape[0])

    @property
    def T(self) -> Toeplitz:
        """Return the transpose of the represented matrix."""
        return Toeplitz(self._vr, self._vc)

    def _entries(self, i: Tensor, j: Tensor) -> Tensor:
        diff = i - j
        return where(
            diff >= 0, self._vc[diff.clamp(min=0)], self._vr[(-diff).clamp(min=0)]
        )

    @classmethod
    def from_dense(cls, mat: Tensor) -> Toeplitz:
        """Construct from a PyTorch tensor by averaging each diagonal.

        Args:
            mat: A dense matrix which will be approximated by a `Toeplitz`.

        Returns:
            `Toeplitz` approximating the passed matrix.
        """
        num_rows, num_cols = mat.shape
        means = all_traces(mat) / diagonal_lengths(
            num_rows, num_cols, device=mat.device
        ).to(mat.dtype)

        idx_main = num_rows - 1
        return cls(means[idx_main::-1], means[idx_main:])

    def tril(self, k: int = 0) -> TriangularToeplitz:
        """Return the lower triangle, zeroing all entries above the `k`-th diagonal.

        Args:
            k: Diagonal offset. Must be non-positive. Default: `0`.

        Returns:
            A lower-triangular Toeplitz matrix of the same shape.

        Raises:
            ValueError: If `k` is positive.
        """
        if k > 0:
            raise ValueError(f"Second argument cannot be positive. Got {k}.")
        from toeplitzmat.structures.triangular import TriangularToeplitz

        ve = self._vc.clone()
        ve[:-k] = 0
        return TriangularToeplitz(ve, uplo="L", k=self.shape[1])

    def triu(self, k: int = 0) -> TriangularToeplitz:
        """Return the upper triangle, zeroing all entries below the `k`-th diagonal.

        Args:
            k: Diagonal offset. Must be non-negative. Default: `0`.

        Returns:
            An upper-triangular Toeplitz matrix of the same shape.

        Raises:
            ValueError: If `k` is negative.
        """
        if k < 0:
            raise ValueError(f"Second argument cannot be negative. Got {k}.")
        from toeplitzmat.structures.triangular import TriangularToeplitz

        ve = self._vr.clone()
        ve[:k] = 0
        return TriangularToeplitz(ve, uplo="U", k=self.shape[0])

    def _build_preconditioner(self) -> Circulant:
        return strang(self).regularize()
