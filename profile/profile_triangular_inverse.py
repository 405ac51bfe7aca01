"""Profiling script for ``TriangularToeplitz.inv``."""

from itertools import product
from timeit import timeit

import numpy as np
from torch import (
    Tensor,
    allclose,
    arange,
    cuda,
    device,
    float64,
    from_numpy,
    manual_seed,
    rand,
)

from toeplitzmat import TriangularToeplitz


def dense_inverse(ve: Tensor) -> Tensor:
    """Invert a lower-triangular Toeplitz matrix densely with NumPy.

    Args:
        ve: The generating vector.

    Returns:
        The first column of the inverse.
    """
    dense = TriangularToeplitz(ve).to_dense().cpu().numpy()
    inverse = np.linalg.inv(dense)
    return from_numpy(inverse[:, 0].copy()).to(ve.device)


def substitution_inverse(ve: Tensor) -> Tensor:
    """Invert by forward substitution.

    Args:
        ve: The generating vector.

    Returns:
        The first column of the inverse.
    """
    inverse = TriangularToeplitz._small_inverse_generator(ve)

    if ve.is_cuda:
        cuda.synchronize()

    return inverse


def doubling_inverse(ve: Tensor) -> Tensor:
    """Invert by recursive doubling, using the current implementation.

    Args:
        ve: The generating vector.

    Returns:
        The first column of the inverse.
    """
    inverse = TriangularToeplitz(ve).inv().ve

    if ve.is_cuda:
        cuda.synchronize()

    return inverse


if __name__ == "__main__":
    manual_seed(0)

    dims = [256, 1_024, 4_096]
    num_repeats = 5
    devices = (
        [device("cpu"), device("cuda")] if cuda.is_available() else [device("cpu")]
    )

    print("Benchmarking TriangularToeplitz.inv")
    print(50 * "=")

    for dev, dim in product(devices, dims):
        ve = 0.5 ** arange(dim, dtype=float64, device=dev)
        ve *= rand(dim, dtype=float64, device=dev)
        ve[0] = 4.0

        # check correctness
        current = doubling_inverse(ve)
        assert allclose(dense_inverse(ve), current, rtol=1e-8, atol=1e-10)
        assert allclose(substitution_inverse(ve), current, rtol=1e-8, atol=1e-10)

        # obtain timings
        functions = {
            "dense": dense_inverse,
            "substitution": substitution_inverse,
            "doubling": doubling_inverse,
        }

        best = {name: float("inf") for name in functions}

        for _ in range(num_repeats):
            for name, fn in functions.items():
                run_time = timeit(lambda: fn(ve), number=3)  # noqa: B023
                best[name] = min(best[name], run_time)

        print(f"Dim: {dim}, Device: {str(dev)}")
        for name, run_time in best.items():
            print(f"\t{name.capitalize()}: {run_time:.3e}")
        ratio = best["substitution"] / best["doubling"]
        print(f"\tRatio substitution/doubling: {ratio:.2f}")
