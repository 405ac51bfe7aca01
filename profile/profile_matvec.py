"""Profile run time and peak memory of Toeplitz matrix-vector products."""

from argparse import ArgumentParser
from time import time

from memory_profiler import memory_usage
from torch import Tensor, cat, cuda, device, manual_seed, rand

from toeplitzmat import Toeplitz
from toeplitzmat.structures.fft import AbstractToeplitz


def set_up_problem(dim: int, dev: device):
    """Create a random square Toeplitz matrix and a vector.

    Args:
        dim: Dimension of the matrix.
        dev: Device of the matrix and vector.

    Returns:
        The Toeplitz matrix and the vector.
    """
    vc = rand(dim, device=dev)
    vr = cat([vc[:1], rand(dim - 1, device=dev)])
    return Toeplitz(vc, vr), rand(dim, device=dev)


def maybe_synchronize(dev: device):
    """Synchronize the device if it is a CUDA device.

    Args:
        dev: The device to synchronize.
    """
    if "cuda" in str(dev):
        cuda.synchronize()


if __name__ == "__main__":
    parser = ArgumentParser("Parse parameters for profiling Toeplitz products")

    SUPPORTED_METHODS = ["fft", "direct", "dense"]
    SUPPORTED_DEVICES = ["cuda", "cpu"]
    SUPPORTED_METRICS = ["time", "peakmem"]

    parser.add_argument(
        "--method",
        type=str,
        choices=SUPPORTED_METHODS,
        help="Multiplication method",
        required=True,
    )
    parser.add_argument(
        "--device",
        type=str,
        choices=SUPPORTED_DEVICES,
        help="Device to use",
        required=True,
    )
    parser.add_argument(
        "--metric",
        type=str,
        choices=SUPPORTED_METRICS,
        help="Metric to measure",
        required=True,
    )
    parser.add_argument("--dim", type=int, help="Matrix dimension", default=4_096)
    parser.add_argument("--seed", type=int, help="Random seed", default=0)

    args = parser.parse_args()

    manual_seed(args.seed)  # make deterministic
    DEV = device(args.device)

    mat, vec = set_up_problem(args.dim, DEV)
    # "direct" multiplies the dense representation inside `addmv_`
    AbstractToeplitz.FFT_THRESHOLD = 0 if args.method == "fft" else args.dim**2
    maybe_synchronize(DEV)

    def step() -> Tensor:
        """Perform one matrix-vector product.

        Returns:
            The product.
        """
        if args.method == "dense":
            return mat.to_dense() @ vec
        return mat @ vec

    # warm-up
    step()

    num_steps = {"time": 50, "peakmem": 3}[args.metric]

    def f():
        """Run the products."""
        for _ in range(num_steps):
            step()

    description = (
        f"[{args.method}, dim={args.dim}, device={args.device}, seed={args.seed}]"
    )

    if args.metric == "time":
        t_start = time()
        f()
        maybe_synchronize(DEV)
        t_end = time()
        print(f"{description} Time taken: {(t_end - t_start) / num_steps:.2e} s / iter")

    elif args.metric == "peakmem":
        if "cuda" in str(DEV):
            f()
            peakmem_mib = cuda.max_memory_allocated() / 2**20
        else:
            peakmem_mib = memory_usage(f, interval=1e-4, max_usage=True)

        print(f"{description} Memory usage: {peakmem_mib / 2**10:.2e} GiB")

    else:
        raise NotImplementedError
