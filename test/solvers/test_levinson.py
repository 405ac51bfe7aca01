"""Test ``toeplitzmat.solvers.levinson``."""

from test.utils import report_nonclose

from pytest import mark, raises
from torch import arange, float64, manual_seed, rand, tensor
from torch.linalg import solve

from toeplitzmat.exceptions import DimensionMismatchError, SingularMatrixError
from toeplitzmat.solvers.levinson import levinson


def dense_symmetric_toeplitz(r):
    """Build the dense symmetric Toeplitz matrix with first column `r`.

    Args:
        r: First column.

    Returns:
        The dense matrix.
    """
    idxs = arange(r.shape[0])
    return r[(idxs.unsqueeze(-1) - idxs.unsqueeze(0)).abs()]


@mark.parametrize("dim", [1, 2, 10, 50])
def test_levinson(dim: int):
    """Test the Levinson recursion against dense linear algebra.

    Args:
        dim: Dimension of the system.
    """
    manual_seed(0)
    r = 2.0 * 0.7 ** arange(dim, dtype=float64)
    b = rand(dim, dtype=float64)
    truth = solve(dense_symmetric_toeplitz(r), b)
    report_nonclose(truth, levinson(r, b), rtol=1e-10, atol=1e-12)

    B = rand(dim, 3, dtype=float64)
    truth = solve(dense_symmetric_toeplitz(r), B)
    report_nonclose(truth, levinson(r, B), rtol=1e-10, atol=1e-12)


def test_levinson_errors():
    """Test that singular systems and inconsistent shapes raise errors."""
    with raises(SingularMatrixError):
        levinson(tensor([0.0, 1.0]), tensor([1.0, 1.0]))
    # leading 2x2 minor is singular
    with raises(SingularMatrixError):
        levinson(tensor([1.0, 1.0, 0.0]), tensor([1.0, 1.0, 1.0]))
    with raises(DimensionMismatchError):
        levinson(tensor([1.0, 0.5]), tensor([1.0, 1.0, 1.0]))
    with raises(DimensionMismatchError):
        levinson(tensor([[1.0]]), tensor([1.0]))
