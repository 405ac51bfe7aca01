"""FFT-based application of matrices that embed into a circulant matrix."""

from __future__ import annotations

from abc import abstractmethod
from threading import Lock
from typing import Callable, Union

import torch
from torch import Tensor, promote_types, stack, zeros
from torch.fft import fft, ifft

from toeplitzmat.exceptions import DimensionMismatchError
from toeplitzmat.solvers.iterative import SolverResult, cgs
from toeplitzmat.structures.base import StructuredMatrix
from toeplitzmat.structures.utils import complex_dtype


class FFTPlan:
    """Reusable in-place forward and inverse DFT of a fixed length.

    One plan is created per embedding length and kept for the lifetime of the
    matrix that owns it. PyTorch caches the underlying backend plans internally.

    Attributes:
        n: Length of the transformed buffers.
        dtype: Complex data type of the transformed buffers.
        device: Device of the transformed buffers.
    """

    def __init__(self, n: int, dtype: torch.dtype, device: torch.device) -> None:
        """Store the transform configuration.

        Args:
            n: Length of the transformed buffers.
            dtype: Complex data type of the transformed buffers.
            device: Device of the transformed buffers.

        Raises:
            ValueError: If ``n`` is not positive or ``dtype`` is not complex.
        """
        if n < 1:
            raise ValueError(f"Transform length must be positive. Got {n}.")
        if not dtype.is_complex:
            raise ValueError(f"Transform data type must be complex. Got {dtype}.")
        self.n = n
        self.dtype = dtype
        self.device = device

    def new_buffer(self) -> Tensor:
        """Allocate a zero buffer that can be transformed with this plan.

        Returns:
            A complex tensor of shape ``[n]``.
        """
        return zeros(self.n, dtype=self.dtype, device=self.device)

    def forward_(self, buffer: Tensor) -> Tensor:
        """Apply the forward DFT in place.

        Args:
            buffer: A buffer created by ``new_buffer``.

        Returns:
            Reference to the transformed buffer.
        """
        self._check_buffer(buffer)
        return buffer.copy_(fft(buffer))

    def inverse_(self, buffer: Tensor) -> Tensor:
        """Apply the inverse DFT in place.

        Args:
            buffer: A buffer created by ``new_buffer``.

        Returns:
            Reference to the transformed buffer.
        """
        self._check_buffer(buffer)
        return buffer.copy_(ifft(buffer))

    def _check_buffer(self, buffer: Tensor):
        if buffer.shape != (self.n,) or buffer.dtype != self.dtype:
            raise DimensionMismatchError(
                f"Expected {self.dtype} buffer of shape ({self.n},). "
                + f"Got {buffer.dtype} buffer of shape {tuple(buffer.shape)}."
            )


class AbstractToeplitz(StructuredMatrix):
    """Base class for Toeplitz-like matrices that embed into a circulant matrix.

    A child class describes its structure through `shape`, `_entries`, and the
    generating vector of the circulant embedding which it passes to
    `_setup_transform` at the end of its constructor. The transform of the embedding
    is computed once and re-used by every multiplication.

    Note:
        Multiplications use a scratch buffer owned by the instance. Access to it is
        serialized by an instance-local lock. To apply the same matrix from multiple
        threads without contention, pass a private buffer from `new_workspace` as
        `workspace`.

    Attributes:
        FFT_THRESHOLD: Embedding lengths below this value are multiplied directly
            rather than through the FFT. Default: `512`.
        MAX_ITER: Default iteration cap of `iterative_solve`. Default: `1000`.
        TOL: Default relative residual tolerance of `iterative_solve`. If `None`,
            uses `100` times the machine epsilon. Default: `None`.
    """

    FFT_THRESHOLD: int = 512
    MAX_ITER: int = 1000
    TOL: Union[float, None] = None
    _krylov_solver: Callable[..., SolverResult] = staticmethod(cgs)

    def _setup_transform(self, embedding: Tensor) -> None:
        """Build the cached transform state from the circulant embedding.

        Args:
            embedding: Generating column of the circulant embedding.
        """
        self._plan = FFTPlan(
            embedding.numel(), complex_dtype(embedding.dtype), embedding.device
        )
        self._embedding_dft = self._plan.forward_(
            embedding.to(self._plan.dtype, copy=True)
        )
        self._scratch = self._plan.new_buffer()
        self._scratch_lock = Lock()
        self._preconditioner_cache: Union[StructuredMatrix, None] = None

    @property
    def embedding_size(self) -> int:
        """Return the length of the circulant embedding."""
        return self._plan.n

    def new_workspace(self) -> Tensor:
        """Allocate a buffer that can be passed as `workspace` to `addmv_`.

        Returns:
            A complex zero tensor of the embedding's length.
        """
        return self._plan.new_buffer()

    @property
    @abstractmethod
    def T(self) -> AbstractToeplitz:
        """Return the transpose of the represented matrix.

        Raises:
            NotImplementedError: Must be implemented by a child class.
        """
        raise NotImplementedError

    def addmv_(
        self,
        out: Tensor,
        vec: Tensor,
        beta: float = 0.0,
        alpha: float = 1.0,
        workspace: Union[Tensor, None] = None,
    ) -> Tensor:
        """In-place compute `out = beta * out + alpha * self @ vec`.

        Small matrices (embedding shorter than `FFT_THRESHOLD`) are multiplied
        directly. Otherwise, `vec` is zero-padded to the embedding's length and
        multiplied with the circulant embedding in the Fourier domain.

        Args:
            out: Vector of length `rows` that is updated in-place.
            vec: Vector of length `cols`.
            beta: Scale applied to `out`. If zero, `out` is overwritten.
                Default: `0.0`.
            alpha: Scale applied to the product. Default: `1.0`.
            workspace: Optional buffer from `new_workspace`. If not specified, the
                instance's buffer is used under a lock.

        Returns:
            Reference to `out`.

        Raises:
            DimensionMismatchError: If `vec` or `out` have the wrong length.
        """
        num_rows, num_cols = self.shape
        if vec.ndim != 1:
            raise DimensionMismatchError(f"vec must be 1d. Got shape {vec.shape}.")
        self._check_size(vec, num_cols, name="vec")
        self._check_size(out, num_rows, name="out")

        if beta == 0:
            out.zero_()
        else:
            out.mul_(beta)

        if self._plan.n < self.FFT_THRESHOLD:
            dense = self.to_dense()
            compute_dtype = promote_types(dense.dtype, vec.dtype)
            product = dense.to(compute_dtype) @ vec.to(compute_dtype)
            return self._accumulate_(out, product, alpha)

        if workspace is not None:
            product = self._apply_embedding_(workspace, vec)
            return self._accumulate_(out, product, alpha)

        with self._scratch_lock:
            product = self._apply_embedding_(self._scratch, vec)
            return self._accumulate_(out, product, alpha)

    def addmm_(
        self,
        out: Tensor,
        mat: Tensor,
        beta: float = 0.0,
        alpha: float = 1.0,
        workspace: Union[Tensor, None] = None,
    ) -> Tensor:
        """In-place compute `out = beta * out + alpha * self @ mat` column by column.

        Args:
            out: Matrix of shape `[rows, K]` that is updated in-place.
            mat: Matrix of shape `[cols, K]`.
            beta: Scale applied to `out`. Default: `0.0`.
            alpha: Scale applied to the product. Default: `1.0`.
            workspace: Optional buffer from `new_workspace`.

        Returns:
            Reference to `out`.

        Raises:
            DimensionMismatchError: If the shapes of `out` and `mat` are incompatible.
        """
        if mat.ndim != 2 or out.ndim != 2 or mat.shape[1] != out.shape[1]:
            raise DimensionMismatchError(
                "input and output matrices must have same number of columns. "
                + f"Got {tuple(mat.shape)} and {tuple(out.shape)}."
            )
        for j in range(mat.shape[1]):
            self.addmv_(
                out[:, j], mat[:, j], beta=beta, alpha=alpha, workspace=workspace
            )
        return out

    def __matmul__(self, other: Union[StructuredMatrix, Tensor]) -> Tensor:
        """Multiply onto a vector or matrix (@ operator).

        Args:
            other: A vector, a matrix whose columns are multiplied individually, or
                a structured matrix (naive fallback).

        Returns:
            The product as a dense tensor.

        Raises:
            DimensionMismatchError: If `other` is neither 1d nor 2d.
        """
        if not isinstance(other, Tensor):
            return super().__matmul__(other)

        num_rows, _ = self.shape
        dtype = promote_types(self.dtype, other.dtype)
        if other.ndim == 1:
            out = zeros(num_rows, dtype=dtype, device=other.device)
            return self.addmv_(out, other)
        elif other.ndim == 2:
            out = zeros(num_rows, other.shape[1], dtype=dtype, device=other.device)
            return self.addmm_(out, other)

        raise DimensionMismatchError(f"Expected 1d or 2d tensor. Got {other.shape}.")

    def rmatmat(self, mat: Tensor) -> Tensor:
        """Multiply `mat` with the transpose of the structured matrix.

        Args:
            mat: A vector or matrix which will be multiplied by the transpose.

        Returns:
            The result of `self.T @ mat`.
        """
        return self.T @ mat

    def solve(self, b: Tensor) -> Tensor:
        """Solve the linear system `self @ x = b` (left division).

        Args:
            b: Right-hand side vector, or matrix whose columns are solved
                individually.

        Returns:
            The solution of the same shape as `b`.

        Raises:
            DimensionMismatchError: If `b` has the wrong shape.
        """
        self._check_square("Division")
        self._check_size(b, self.shape[0], name="b")
        if b.ndim == 1:
            return self._solve_vector(b)
        elif b.ndim == 2:
            return stack([self._solve_vector(col) for col in b.unbind(1)], dim=1)

        raise DimensionMismatchError(f"Expected 1d or 2d tensor. Got {b.shape}.")

    def iterative_solve(
        self,
        b: Tensor,
        x0: Union[Tensor, None] = None,
        max_iter: Union[int, None] = None,
        tol: Union[float, None] = None,
    ) -> SolverResult:
        """Solve `self @ x = b` with a circulant-preconditioned Krylov method.

        Args:
            b: Right-hand side vector.
            x0: Optional initial guess. Default: zero vector.
            max_iter: Optional iteration cap. Default: `MAX_ITER`.
            tol: Optional relative residual tolerance. Default: `TOL`.

        Returns:
            The solver result. Check its `converged` field for success.

        Raises:
            DimensionMismatchError: If `b` is not a vector of matching length.
        """
        self._check_square("Division")
        if b.ndim != 1:
            raise DimensionMismatchError(f"b must be 1d. Got shape {b.shape}.")
        self._check_size(b, self.shape[0], name="b")

        preconditioner = self.preconditioner()
        return self._krylov_solver(
            self.__matmul__,
            b.to(promote_types(self.dtype, b.dtype)),
            precond=preconditioner.solve,
            x0=x0,
            max_iter=self.MAX_ITER if max_iter is None else max_iter,
            tol=self.TOL if tol is None else tol,
        )

    def preconditioner(self) -> StructuredMatrix:
        """Return the circulant preconditioner used by `iterative_solve`.

        The preconditioner is built on first use and cached afterwards. Vanishing
        eigenvalues of the circulant approximation are regularized.

        Returns:
            The preconditioner.
        """
        if self._preconditioner_cache is None:
            self._preconditioner_cache = self._build_preconditioner()
        return self._preconditioner_cache

    def _build_preconditioner(self) -> StructuredMatrix:
        """Construct the preconditioner.

        Raises:
            NotImplementedError: Must be implemented by a child class that uses
                `iterative_solve`.
        """
        raise NotImplementedError(f"{self.__class__.__name__} has no preconditioner.")

    def _solve_vector(self, b: Tensor) -> Tensor:
        return self.iterative_solve(b).solution

    def _apply_embedding_(self, buffer: Tensor, vec: Tensor) -> Tensor:
        """Multiply the circulant embedding onto a zero-padded vector in `buffer`.

        Returns:
            View of the first `rows` entries of the buffer.
        """
        buffer.zero_()
        buffer[: vec.shape[0]].copy_(vec)
        self._plan.forward_(buffer)
        buffer.mul_(self._embedding_dft)
        self._plan.inverse_(buffer)
        return buffer[: self.shape[0]]

    @staticmethod
    def _accumulate_(out: Tensor, product: Tensor, alpha: float) -> Tensor:
        if product.is_complex() and not out.is_complex():
            product = product.real
        return out.add_(product.to(out.dtype), alpha=alpha)
