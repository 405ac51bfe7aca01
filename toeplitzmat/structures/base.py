"""Base class of matrices whose entries are described by a few generating vectors."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterator, List, Set, Tuple, Union
from warnings import warn

import torch
from torch import Tensor, arange, as_tensor

from toeplitzmat.exceptions import DimensionMismatchError, NotSquareError


class StructuredMatrix(ABC):
    """Base class for structured matrices.

    This base class defines the functions that need to be implemented to support
    a new structured matrix class.

    The minimum amount of work to add a new structured matrix class requires
    implementing the following methods:

    - `shape`
    - `_entries`
    - `from_dense`

    Entry access, conversion to a dense matrix, and multiplication will then work
    out of the box. Multiplication will use a naive implementation which internally
    re-constructs an unstructured dense matrix. By default, this will trigger a
    warning which can be used to identify functions that can be implemented more
    efficiently using structure.

    Note:
        You need to register tensors that represent parts of the represented
        matrix using the `register_tensor` method. This is similar to the
        mechanism in PyTorch modules, which have a `register_parameter` method.

    Attributes:
        WARN_NAIVE: Warn the user if a method falls back to a naive implementation
            of this base class. This indicates a method that should be implemented to
            save memory and run time by considering the represented structure.
            Default: `True`.
        WARN_NAIVE_EXCEPTIONS: Set of methods that should not trigger a warning even
            if `WARN_NAIVE` is `True`.
    """

    WARN_NAIVE: bool = True
    WARN_NAIVE_EXCEPTIONS: Set[str] = set()

    def __init__(self) -> None:
        """Initialize the structured matrix."""
        self._tensor_names: List[str] = []

    def register_tensor(self, tensor: Tensor, name: str) -> None:
        """Register a tensor that represents a part of the matrix structure.

        Args:
            tensor: A tensor that represents a part of the matrix structure.
            name: A name for the tensor. The tensor will be available under
                `self.name`.

        Raises:
            ValueError: If the name is already in use.
        """
        if hasattr(self, name):
            raise ValueError(f"Variable name {name!r} is already in use.")

        setattr(self, name, tensor)
        self._tensor_names.append(name)

    def named_tensors(self) -> Iterator[Tuple[str, Tensor]]:
        """Yield all tensors that represent the matrix and their names.

        Yields:
            A tuple of the tensor's name and the tensor itself.
        """
        for name in self._tensor_names:
            yield name, getattr(self, name)

    @property
    @abstractmethod
    def shape(self) -> Tuple[int, int]:
        """Return the number of rows and columns of the represented matrix.

        Raises:
            NotImplementedError: Must be implemented by a child class.
        """
        raise NotImplementedError

    @property
    def dtype(self) -> torch.dtype:
        """Return the data type of the represented matrix."""
        _, tensor = next(self.named_tensors())
        return tensor.dtype

    @property
    def device(self) -> torch.device:
        """Return the device the represented matrix lives on."""
        _, tensor = next(self.named_tensors())
        return tensor.device

    @abstractmethod
    def _entries(self, i: Tensor, j: Tensor) -> Tensor:
        """Look up the entries at the (broadcastable) index tensors ``i`` and ``j``.

        Indices are guaranteed to be in range.

        Args:
            i: Row indices.
            j: Column indices.

        Raises:
            NotImplementedError: Must be implemented by a child class.
        """
        raise NotImplementedError

    def __getitem__(self, idx: Tuple[int, int]) -> Tensor:
        """Return a single entry of the represented matrix.

        Args:
            idx: A tuple ``(i, j)`` of zero-based row and column indices.

        Returns:
            The entry as a 0d tensor.

        Raises:
            IndexError: If an index is out of range.
        """
        i, j = idx
        num_rows, num_cols = self.shape
        if not (0 <= i < num_rows and 0 <= j < num_cols):
            raise IndexError(
                f"Index ({i}, {j}) out of range for matrix of shape {self.shape}."
            )
        return self._entries(
            as_tensor(i, device=self.device), as_tensor(j, device=self.device)
        )

    def to_dense(self) -> Tensor:
        """Return a dense tensor representing the structured matrix.

        Returns:
            A dense PyTorch tensor representing the matrix.
        """
        num_rows, num_cols = self.shape
        i = arange(num_rows, device=self.device).unsqueeze(-1)
        j = arange(num_cols, device=self.device).unsqueeze(0)
        return self._entries(i, j)

    def column(self, j: int) -> Tensor:
        """Return a column of the represented matrix.

        Args:
            j: Index of the column.

        Returns:
            The column as 1d tensor.

        Raises:
            IndexError: If the column index is out of range.
        """
        num_rows, num_cols = self.shape
        if not 0 <= j < num_cols:
            raise IndexError(f"Column {j} out of range for shape {self.shape}.")
        return self._entries(
            arange(num_rows, device=self.device), as_tensor(j, device=self.device)
        )

    def row(self, i: int) -> Tensor:
        """Return a row of the represented matrix.

        Args:
            i: Index of the row.

        Returns:
            The row as 1d tensor.

        Raises:
            IndexError: If the row index is out of range.
        """
        num_rows, num_cols = self.shape
        if not 0 <= i < num_rows:
            raise IndexError(f"Row {i} out of range for shape {self.shape}.")
        return self._entries(
            as_tensor(i, device=self.device), arange(num_cols, device=self.device)
        )

    @classmethod
    @abstractmethod
    def from_dense(cls, mat: Tensor) -> StructuredMatrix:
        """Extract the represented structure from a dense matrix.

        This will discard elements that are not part of the structure.

        Args:
            mat: A dense matrix which will be converted into a structured one.

        Returns:
            Structured matrix.

        Raises:
            NotImplementedError: Must be implemented by a child class.
        """
        raise NotImplementedError

    def __matmul__(self, other: Union[StructuredMatrix, Tensor]) -> Tensor:
        """Multiply onto a matrix ([@ operator](https://peps.python.org/pep-0465/)).

        Args:
            other: A vector or matrix which will be multiplied onto. Can be
                represented by a PyTorch tensor or a structured matrix.

        Returns:
            Result of the multiplication as dense tensor.
        """
        self._warn_naive_implementation("__matmul__")

        dense = self.to_dense()
        if isinstance(other, Tensor):
            return dense @ other.to(dense.dtype)

        return dense @ other.to_dense()

    def rmatmat(self, mat: Tensor) -> Tensor:
        """Multiply the structured matrix's transpose onto a matrix (`self.T @ mat`).

        Args:
            mat: A dense matrix that will be multiplied onto.

        Returns:
            A dense PyTorch tensor resulting from the multiplication.
        """
        self._warn_naive_implementation("rmatmat")
        return self.to_dense().T @ mat

    def __repr__(self) -> str:
        """Return a short description of the structured matrix.

        Returns:
            The class name, shape, and the generating tensors.
        """
        tensors = ", ".join(f"{name}={t.tolist()}" for name, t in self.named_tensors())
        return f"{self.__class__.__name__}(shape={self.shape}, {tensors})"

    @classmethod
    def _warn_naive_implementation(cls, fn_name: str):
        """Warn the user that a naive implementation is called.

        This suggests that a child class does not implement a specialized version
        that is usually more efficient.

        You can turn off the warning by setting the `WARN_NAIVE` class attribute.

        Args:
            fn_name: Name of the function whose naive version is being called.
        """
        if cls.WARN_NAIVE and fn_name not in cls.WARN_NAIVE_EXCEPTIONS:
            cls_name = cls.__name__
            warn(
                f"Calling naive implementation of {cls_name}.{fn_name}."
                + f"Consider implementing {cls_name}.{fn_name} using structure."
            )

    def _check_square(self, operation: str):
        """Make sure the represented matrix is square.

        Args:
            operation: Name of the operation printed in the error message.

        Raises:
            NotSquareError: If the matrix is rectangular.
        """
        num_rows, num_cols = self.shape
        if num_rows != num_cols:
            raise NotSquareError(
                f"{operation}: rectangular case is not supported. Got {self.shape}."
            )

    @staticmethod
    def _check_size(t: Tensor, size: int, name: str = "tensor"):
        """Make sure the leading dimension of a tensor matches.

        Args:
            t: The tensor to be checked.
            size: The expected leading dimension.
            name: Optional name of the tensor to be printed in the error message.
                Default: `"tensor"`.

        Raises:
            DimensionMismatchError: If the leading dimension of `t` differs.
        """
        if t.ndim == 0 or t.shape[0] != size:
            raise DimensionMismatchError(
                f"{name} must have leading dimension {size}. Got shape {t.shape}."
            )
