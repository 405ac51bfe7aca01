"""Levinson-Durbin recursion for symmetric Toeplitz systems."""

from torch import Tensor, promote_types, stack, zeros

from toeplitzmat.exceptions import DimensionMismatchError, SingularMatrixError


def levinson(r: Tensor, b: Tensor) -> Tensor:
    r"""Solve `T x = b` for the symmetric Toeplitz matrix `T` with first column `r`.

    Uses the Levinson recursion for general right-hand sides (Golub & Van Loan,
    *Matrix Computations*, Algorithm 4.7.2). It requires all leading principal
    submatrices of `T` to be non-singular, which holds for positive definite `T`
    (e.g. an autocovariance sequence). The run time is \(\mathcal{O}(n^2)\).

    Args:
        r: First column of `T` of shape `[n]`.
        b: Right-hand side of shape `[n]` or `[n, K]`. Matrices are solved column
            by column.

    Returns:
        The solution, of the same shape as `b`.

    Raises:
        DimensionMismatchError: If the shapes of `r` and `b` do not match.
        SingularMatrixError: If the recursion breaks down.
    """
    if r.ndim != 1 or b.ndim not in [1, 2] or b.shape[0] != r.shape[0]:
        raise DimensionMismatchError(
            "Expected r of shape [n] and b of shape [n] or [n, K]. "
            + f"Got {tuple(r.shape)} and {tuple(b.shape)}."
        )
    if b.ndim == 2:
        return stack([levinson(r, col) for col in b.unbind(1)], dim=1)

    if r[0] == 0:
        raise SingularMatrixError("Levinson recursion needs a non-zero diagonal.")

    dtype = promote_types(r.dtype, b.dtype)
    # normalize to unit diagonal
    diag = r[0].to(dtype)
    r = r.to(dtype) / diag
    b = b.to(dtype) / diag

    (n,) = r.shape
    x = zeros(n, dtype=dtype, device=r.device)
    y = zeros(n, dtype=dtype, device=r.device)
    x[0] = b[0]
    if n == 1:
        return x

    y[0] = -r[1]
    alpha, beta = -r[1], r.new_tensor(1.0)

    for k in range(1, n):
        beta = (1 - alpha**2) * beta
        if beta == 0:
            raise SingularMatrixError(
                f"Levinson recursion broke down at step {k}: singular leading minor."
            )

        mu = (b[k] - r[1 : k + 1] @ x[:k].flip(0)) / beta
        x[:k] += mu * y[:k].flip(0)
        x[k] = mu

        if k < n - 1:
            alpha = -(r[k + 1] + r[1 : k + 1] @ y[:k].flip(0)) / beta
            y[:k] += alpha * y[:k].flip(0)
            y[k] = alpha

    return x
