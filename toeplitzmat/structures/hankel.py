"""Hankel matrices, implemented as Toeplitz matrices with reversed columns."""

from __future__ import annotations

from typing import Union

from torch import Tensor, cat, promote_types

from toeplitzmat.exceptions import DimensionMismatchError
from toeplitzmat.structures.base import StructuredMatrix
from toeplitzmat.structures.toeplitz import Toeplitz
from toeplitzmat.structures.utils import (
    all_traces,
    as_generating_vector,
    diagonal_lengths,
)


class Hankel(StructuredMatrix):
    r"""Class for Hankel matrices.

    A Hankel matrix is constant along each anti-diagonal. It is defined by its
    first column \(\mathbf{c} \in \mathbb{R}^m\) and its last row
    \(\mathbf{r} \in \mathbb{R}^n\) (with \(c_m = r_1\)):

    \(
    \begin{pmatrix}
        c_1 & c_2 & \cdots & r_{n - m + 1} \\
        c_2 & \iddots & \iddots & \vdots \\
        \vdots & \iddots & \iddots & r_{n-1} \\
        c_m & r_2 & \cdots & r_n \\
    \end{pmatrix}\,.
    \)

    Reversing the column order turns a Hankel into a Toeplitz matrix. All
    operations are forwarded to that Toeplitz matrix.
    """

    def __init__(self, vc: Tensor, vr: Tensor) -> None:
        """Store the Hankel matrix internally.

        Args:
            vc: The first column.
            vr: The last row.

        Raises:
            ValueError: If the last entry of `vc` and the first entry of `vr`
                differ.
        """
        super().__init__()
        vc = as_generating_vector(vc, name="vc")
        vr = as_generating_vector(vr, name="vr")
        if vc[-1] != vr[0]:
            raise ValueError(
                "Last element of vc must equal first element of vr. "
                + f"Got {vc[-1].item()} and {vr[0].item()}."
            )

        dtype = promote_types(vc.dtype, vr.dtype)
        self._vc: Tensor
        self.register_tensor(vc.to(dtype), "_vc")
        self._vr: Tensor
        self.register_tensor(vr.to(dtype), "_vr")

        # anti-diagonal constants, top left to bottom right
        p = cat([self._vc, self._vr[1:]])
        n = vr.shape[0]
        self.toeplitz = Toeplitz(p[n - 1 :], p[:n].flip(0))

    @property
    def shape(self):
        """Return the number of rows and columns of the represented matrix."""
        return self.toeplitz.shape

    @property
    def vc(self) -> Tensor:
        """Return the first column."""
        return self._vc

    @property
    def vr(self) -> Tensor:
        """Return the last row."""
        return self._vr

    @property
    def T(self) -> Hankel:
        """Return the transpose of the represented matrix."""
        return Hankel(self.row(0), self.column(self.shape[1] - 1))

    def _entries(self, i: Tensor, j: Tensor) -> Tensor:
        return self.toeplitz._entries(i, self.shape[1] - 1 - j)

    @classmethod
    def from_dense(cls, mat: Tensor) -> Hankel:
        """Construct from a PyTorch tensor by averaging each anti-diagonal.

        Args:
            mat: A dense matrix which will be approximated by a `Hankel`.

        Returns:
            `Hankel` approximating the passed matrix.
        """
        num_rows, num_cols = mat.shape
        means = all_traces(mat.flip(1)) / diagonal_lengths(
            num_rows, num_cols, device=mat.device
        ).to(mat.dtype)

        # means of the flipped matrix, lower left to top right, are the
        # anti-diagonal constants from bottom right to top left
        p = means.flip(0)
        return cls(p[:num_rows], p[num_rows - 1 :])

    def __matmul__(self, other: Union[StructuredMatrix, Tensor]) -> Tensor:
        """Multiply onto a vector or matrix (@ operator).

        Args:
            other: A vector or a matrix whose columns are multiplied individually.

        Returns:
            The product as a dense tensor.

        Raises:
            DimensionMismatchError: If `other` is neither 1d nor 2d.
        """
        if not isinstance(other, Tensor):
            return super().__matmul__(other)
        if other.ndim not in [1, 2]:
            raise DimensionMismatchError(
                f"Expected 1d or 2d tensor. Got {other.shape}."
            )
        return self.toeplitz @ other.flip(0)

    def rmatmat(self, mat: Tensor) -> Tensor:
        """Multiply `mat` with the transpose of the Hankel matrix.

        Args:
            mat: A vector or matrix which will be multiplied by the transpose.

        Returns:
            The result of `self.T @ mat`.
        """
        return self.toeplitz.rmatmat(mat).flip(0)
