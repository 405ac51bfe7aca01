"""Test utility functions of ``toeplitzmat.structures``."""

import torch
from pytest import mark, raises
from torch import Tensor, allclose, get_default_dtype, tensor

from toeplitzmat.structures.utils import (
    all_traces,
    as_generating_vector,
    complex_dtype,
    diagonal_lengths,
    machine_epsilon,
    next_power_of_two,
)


def test_all_traces():
    """Test the computation of all traces of a matrix."""
    # fat matrix
    A = Tensor(
        [
            [0.0, 1.0, 2.0, 3.0],
            [4.0, 5.0, 6.0, 7.0],
            [8.0, 9.0, 10.0, 11.0],
        ]
    )
    traces = Tensor([8.0, 13.0, 15.0, 18.0, 9.0, 3.0])
    assert allclose(all_traces(A), traces)

    # tall matrix
    B = Tensor(
        [
            [0.0, 4.0, 8.0],
            [1.0, 5.0, 9.0],
            [2.0, 6.0, 10.0],
            [3.0, 7.0, 11.0],
        ]
    )
    traces = Tensor([3.0, 9.0, 18.0, 15.0, 13.0, 8.0])
    assert allclose(all_traces(B), traces)


def test_diagonal_lengths():
    """Test counting the entries on each diagonal."""
    lengths = diagonal_lengths(3, 4)
    truth = tensor([1.0, 2.0, 3.0, 3.0, 2.0, 1.0], dtype=torch.float64)
    assert allclose(lengths, truth)


@mark.parametrize(
    "n, power", [(1, 1), (2, 2), (3, 4), (64, 64), (65, 128), (200, 256)]
)
def test_next_power_of_two(n: int, power: int):
    """Test rounding up to the next power of two.

    Args:
        n: Input integer.
        power: Expected power of two.
    """
    assert next_power_of_two(n) == power


def test_as_generating_vector():
    """Test conversion and validation of generating vectors."""
    vec = as_generating_vector([1, 2, 3])
    assert vec.dtype == get_default_dtype()

    vec = as_generating_vector(tensor([1.0, 2.0], dtype=torch.float64))
    assert vec.dtype == torch.float64

    vec = as_generating_vector(tensor([1j]))
    assert vec.is_complex()

    with raises(ValueError):
        as_generating_vector([])
    with raises(ValueError):
        as_generating_vector([[1.0, 2.0]])
    with raises(ValueError):
        as_generating_vector(1.0)


def test_complex_dtype():
    """Test the data type used for transforms."""
    assert complex_dtype(torch.float64) == torch.complex128
    assert complex_dtype(torch.complex128) == torch.complex128
    assert complex_dtype(torch.float32) == torch.complex64
    assert complex_dtype(torch.float16) == torch.complex64


def test_machine_epsilon():
    """Test the machine epsilon of real and complex data types."""
    assert machine_epsilon(torch.float64) == torch.finfo(torch.float64).eps
    assert machine_epsilon(torch.complex128) == torch.finfo(torch.float64).eps
    assert machine_epsilon(torch.complex64) == torch.finfo(torch.float32).eps
