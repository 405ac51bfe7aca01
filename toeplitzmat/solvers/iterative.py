"""Matrix-free, preconditioned Krylov solvers.

The solvers only access the system matrix and the preconditioner through
callables that apply them to a vector. This allows to plug in the FFT-based
multiplication of structured matrices and the spectral division of circulant
preconditioners.
"""

from typing import Callable, NamedTuple, Union
from warnings import warn

from torch import Tensor, finfo, vdot, zeros_like
from torch.linalg import vector_norm

from toeplitzmat.exceptions import DimensionMismatchError

LinearMap = Callable[[Tensor], Tensor]


class NonConvergenceWarning(RuntimeWarning):
    """Warning emitted if a solver exhausts its iterations without converging."""


class SolverResult(NamedTuple):
    """Outcome of an iterative solve.

    Attributes:
        solution: The best iterate found.
        iterations: Number of performed iterations.
        residual_norm: Norm of the (recursively updated) residual of `solution`.
        converged: Whether the residual tolerance was met.
    """

    solution: Tensor
    iterations: int
    residual_norm: float
    converged: bool


def _identity(v: Tensor) -> Tensor:
    return v


def _setup(
    b: Tensor,
    x0: Union[Tensor, None],
    tol: Union[float, None],
):
    """Validate inputs and determine the initial guess and the absolute tolerance.

    Args:
        b: Right-hand side vector.
        x0: Initial guess or `None`.
        tol: Relative tolerance or `None`.

    Returns:
        The initial guess and the absolute residual tolerance.

    Raises:
        DimensionMismatchError: If `b` is not a vector or `x0` differs in shape.
    """
    if b.ndim != 1:
        raise DimensionMismatchError(f"b must be 1d. Got shape {b.shape}.")
    if x0 is None:
        x = zeros_like(b)
    elif x0.shape != b.shape:
        raise DimensionMismatchError(
            f"x0 must have the same shape as b ({b.shape}). Got {x0.shape}."
        )
    else:
        x = x0.to(b.dtype, copy=True)

    if tol is None:
        tol = 100 * finfo(b.real.dtype).eps
    return x, tol * vector_norm(b).item()


def _finish(
    name: str, best: Tensor, iterations: int, best_norm: float, converged: bool
) -> SolverResult:
    if not converged:
        warn(
            f"{name} did not converge after {iterations} iterations "
            + f"(residual norm {best_norm:.3e}). Returning the best iterate.",
            NonConvergenceWarning,
        )
    return SolverResult(best, iterations, best_norm, converged)


def cg(
    matvec: LinearMap,
    b: Tensor,
    precond: Union[LinearMap, None] = None,
    x0: Union[Tensor, None] = None,
    max_iter: int = 1000,
    tol: Union[float, None] = None,
) -> SolverResult:
    """Solve a symmetric positive definite system with preconditioned CG.

    Args:
        matvec: Function that applies the system matrix to a vector.
        b: Right-hand side vector.
        precond: Optional function that applies the inverse of the preconditioner
            to a vector. Default: identity.
        x0: Optional initial guess. Default: zero vector.
        max_iter: Maximum number of iterations. Default: `1000`.
        tol: Relative residual tolerance (`||r|| <= tol * ||b||`). If `None`, uses
            `100` times the machine epsilon of `b`'s data type.

    Returns:
        The solver result. If the tolerance is not met, `converged` is `False`,
        `solution` holds the best iterate, and a `NonConvergenceWarning` is issued.
    """
    precond = _identity if precond is None else precond
    x, atol = _setup(b, x0, tol)

    r = b - matvec(x)
    r_norm = vector_norm(r).item()
    best, best_norm = x.clone(), r_norm
    if r_norm <= atol:
        return SolverResult(best, 0, r_norm, True)

    z = precond(r)
    p = z.clone()
    rz = vdot(r, z)

    for iteration in range(1, max_iter + 1):
        Ap = matvec(p)
        pAp = vdot(p, Ap)
        if pAp == 0:
            return _finish("CG", best, iteration, best_norm, False)

        alpha = rz / pAp
        x.add_(alpha * p)
        r.sub_(alpha * Ap)

        r_norm = vector_norm(r).item()
        if r_norm < best_norm:
            best, best_norm = x.clone(), r_norm
        if r_norm <= atol:
            return SolverResult(best, iteration, best_norm, True)

        z = precond(r)
        rz_new = vdot(r, z)
        p = z + (rz_new / rz) * p
        rz = rz_new

    return _finish("CG", best, max_iter, best_norm, False)


def cgs(
    matvec: LinearMap,
    b: Tensor,
    precond: Union[LinearMap, None] = None,
    x0: Union[Tensor, None] = None,
    max_iter: int = 1000,
    tol: Union[float, None] = None,
) -> SolverResult:
    """Solve a general square system with the preconditioned CG-squared method.

    Follows the preconditioned CGS scheme from Barrett et al., *Templates for the
    Solution of Linear Systems* (1994).

    Args:
        matvec: Function that applies the system matrix to a vector.
        b: Right-hand side vector.
        precond: Optional function that applies the inverse of the preconditioner
            to a vector. Default: identity.
        x0: Optional initial guess. Default: zero vector.
        max_iter: Maximum number of iterations. Default: `1000`.
        tol: Relative residual tolerance (`||r|| <= tol * ||b||`). If `None`, uses
            `100` times the machine epsilon of `b`'s data type.

    Returns:
        The solver result. If the tolerance is not met (iteration cap or
        breakdown), `converged` is `False`, `solution` holds the best iterate, and a
        `NonConvergenceWarning` is issued.
    """
    precond = _identity if precond is None else precond
    x, atol = _setup(b, x0, tol)

    r = b - matvec(x)
    r_norm = vector_norm(r).item()
    best, best_norm = x.clone(), r_norm
    if r_norm <= atol:
        return SolverResult(best, 0, r_norm, True)

    r_tilde = r.clone()
    rho_prev = None
    u = p = q = None

    for iteration in range(1, max_iter + 1):
        rho = vdot(r_tilde, r)
        if rho == 0:
            return _finish("CGS", best, iteration, best_norm, False)

        if rho_prev is None:
            u = r.clone()
            p = u.clone()
        else:
            beta = rho / rho_prev
            u = r + beta * q
            p = u + beta * (q + beta * p)

        v = matvec(precond(p))
        sigma = vdot(r_tilde, v)
        if sigma == 0:
            return _finish("CGS", best, iteration, best_norm, False)

        alpha = rho / sigma
        q = u - alpha * v
        u_hat = precond(u + q)
        x.add_(alpha * u_hat)
        r.sub_(alpha * matvec(u_hat))
        rho_prev = rho

        r_norm = vector_norm(r).item()
        if r_norm < best_norm:
            best, best_norm = x.clone(), r_norm
        if r_norm <= atol:
            return SolverResult(best, iteration, best_norm, True)

    return _finish("CGS", best, max_iter, best_norm, False)
