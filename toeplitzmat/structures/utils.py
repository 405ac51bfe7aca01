"""Utility functions for the structured matrices."""

from typing import Any, Union

import torch
from torch import (
    Tensor,
    arange,
    as_tensor,
    complex64,
    complex128,
    finfo,
    float64,
    get_default_dtype,
    ones,
    zeros,
)


def as_generating_vector(vec: Any, name: str = "vector") -> Tensor:
    """Convert the input into a 1d floating point or complex tensor.

    Integer and boolean inputs are converted to the default floating point type.

    Args:
        vec: A tensor or anything ``torch.as_tensor`` accepts.
        name: Optional name of the vector used in the error message.
            Default: ``"vector"``.

    Returns:
        A 1d tensor.

    Raises:
        ValueError: If the input is not one-dimensional or empty.
    """
    vec = as_tensor(vec)
    if not (vec.is_floating_point() or vec.is_complex()):
        vec = vec.to(get_default_dtype())
    if vec.ndim != 1 or vec.numel() == 0:
        raise ValueError(f"{name} must be a non-empty 1d tensor. Got {vec.shape}.")
    return vec


def complex_dtype(dtype: torch.dtype) -> torch.dtype:
    """Return the complex data type used to transform tensors of ``dtype``.

    Half precision types are transformed in single precision.

    Args:
        dtype: A floating point or complex data type.

    Returns:
        ``complex128`` for double precision inputs, ``complex64`` otherwise.
    """
    if dtype in [float64, complex128]:
        return complex128
    return complex64


def machine_epsilon(dtype: torch.dtype) -> float:
    """Return the machine epsilon of a (real or complex) data type.

    Args:
        dtype: A floating point or complex data type.

    Returns:
        The machine epsilon of the real counterpart of ``dtype``.
    """
    if dtype.is_complex:
        dtype = float64 if dtype == complex128 else torch.float32
    return finfo(dtype).eps


def next_power_of_two(n: int) -> int:
    """Return the smallest power of two that is not smaller than ``n``.

    Args:
        n: A positive integer.

    Returns:
        The next power of two.
    """
    return 1 << (n - 1).bit_length()


def all_traces(mat: Tensor) -> Tensor:
    """Compute the traces of a matrix across all diagonals.

    A matrix of shape `[N, M]` has `N + M - 1` diagonals.

    Args:
        mat: A matrix of shape `[N, M]`.

    Returns:
        A tensor of shape `[N + M - 1]` containing the traces of the matrix. Element
        `[N - 1]` contains the main diagonal's trace. Elements to the left contain
        the traces of the negative off-diagonals, and elements to the right contain the
        traces of the positive off-diagonals.
    """
    num_rows, num_cols = mat.shape
    num_diags = 1 + (num_rows - 1) + (num_cols - 1)

    row_idxs = arange(num_rows, device=mat.device).unsqueeze(-1).expand(-1, num_cols)
    col_idxs = arange(num_cols, device=mat.device).unsqueeze(0).expand(num_rows, -1)
    idxs = col_idxs - row_idxs
    shift = num_rows - 1  # bottom left entry of idxs
    idxs = idxs.add_(shift).flatten()

    traces = zeros(num_diags, dtype=mat.dtype, device=mat.device)
    traces.scatter_add_(0, idxs, mat.flatten())

    return traces


def diagonal_lengths(
    num_rows: int, num_cols: int, device: Union[torch.device, None] = None
) -> Tensor:
    """Count the entries on each diagonal of a `[N, M]` matrix.

    The ordering matches `all_traces`.

    Args:
        num_rows: Number of rows `N`.
        num_cols: Number of columns `M`.
        device: Optional device of the result.

    Returns:
        A tensor of shape `[N + M - 1]` with the diagonal lengths.
    """
    return all_traces(ones((num_rows, num_cols), dtype=float64, device=device))
