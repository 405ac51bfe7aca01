"""Symmetric Toeplitz matrices."""

from __future__ import annotations

from typing import Union

from torch import Tensor, cat

from toeplitzmat.exceptions import NotSquareError
from toeplitzmat.solvers.iterative import cg
from toeplitzmat.solvers.levinson import levinson
from toeplitzmat.structures.circulant import Circulant, strang
from toeplitzmat.structures.fft import AbstractToeplitz
from toeplitzmat.structures.utils import (
    all_traces,
    as_generating_vector,
    diagonal_lengths,
)


class SymmetricToeplitz(AbstractToeplitz):
    r"""Class for symmetric Toeplitz matrices.

    A symmetric Toeplitz matrix is defined by a single vector
    \(\mathbf{v} \in \mathbb{R}^K\) that serves as first column and first row:

    \(
    \begin{pmatrix}
        v_1 & v_2 & \cdots & v_K \\
        v_2 & v_1 & \ddots & \vdots \\
        \vdots & \ddots & \ddots & v_2 \\
        v_K & \cdots & v_2 & v_1 \\
    \end{pmatrix}\,.
    \)

    Rectangular matrices keep the leading `k` columns (or rows). Square systems
    are solved with CG, preconditioned by Strang's circulant approximation, which
    assumes positive definiteness. For indefinite matrices use `levinson`.
    """

    _krylov_solver = staticmethod(cg)

    def __init__(self, ve: Tensor, cr: str = "c", k: Union[int, None] = None) -> None:
        """Store the symmetric Toeplitz matrix internally.

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

        if cr == "c":
            self._setup_transform(cat([ve, ve[1:k].flip(0)]))
        else:
            self._setup_transform(cat([ve[:k], ve[1:].flip(0)]))

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
    def T(self) -> SymmetricToeplitz:
        """Return the transpose of the represented matrix."""
        return SymmetricToeplitz(self._ve, cr="r" if self.cr == "c" else "c", k=self.k)

    def _entries(self, i: Tensor, j: Tensor) -> Tensor:
        return self._ve[(i - j).abs()]

    @classmethod
    def from_dense(cls, mat: Tensor) -> SymmetricToeplitz:
        """Construct from a square PyTorch tensor by averaging mirrored diagonals.

        Args:
            mat: A dense square matrix which will be approximated by a
                `SymmetricToeplitz`.

        Returns:
            `SymmetricToeplitz` approximating the passed matrix.

        Raises:
            NotSquareError: If `mat` is not square.
        """
        num_rows, num_cols = mat.shape
        if num_rows != num_cols:
            raise NotSquareError(f"Expected square matrix. Got {mat.shape}.")
        traces = all_traces(mat)

        # diagonals d and -d both hold dim - d entries
        idx_main = num_rows - 1
        sums = traces[idx_main:].clone()
        sums[1:] += traces[:idx_main].flip(0)
        counts = 2 * diagonal_lengths(num_rows, num_cols, device=mat.device)[
            idx_main:
        ].to(mat.dtype)
        counts[0] /= 2
        return cls(sums / counts)

    def levinson(self, b: Tensor) -> Tensor:
        """Solve `self @ x = b` with the Levinson-Durbin recursion.

        Unlike `solve`, this does not require positive definiteness, only
        non-singular leading principal submatrices.

        Args:
            b: Right-hand side vector, or matrix whose columns are solved
                individually.

        Returns:
            The solution, of the same shape as `b`.
        """
        self._check_square("Levinson")
        return levinson(self._ve, b)

    def _build_preconditioner(self) -> Circulant:
        return strang(self).regularize()
