"""Utility functions for testing the interface of structured matrices."""

from abc import ABC, abstractmethod
from os import makedirs, path
from test.utils import DEVICE_IDS, DEVICES, report_nonclose
from typing import List, Tuple, Type, Union

import torch
from imageio import mimsave
from imageio.v2 import imread
from matplotlib import pyplot as plt
from pytest import MonkeyPatch, mark, raises
from torch import Tensor, arange, device, manual_seed, rand, zeros_like

from toeplitzmat.exceptions import DimensionMismatchError
from toeplitzmat.structures.base import StructuredMatrix
from toeplitzmat.structures.fft import AbstractToeplitz
from toeplitzmat.structures.toeplitz import Toeplitz

DTYPES = [torch.float32, torch.float64]
DTYPE_IDS = [str(dt).split(".")[-1] for dt in DTYPES]

FFT = [False, True]
FFT_IDS = [f"fft={fft}" for fft in FFT]


def tolerances(dtype: torch.dtype) -> dict:
    """Return tolerances for comparing results of the given precision.

    Args:
        dtype: The data type of the compared tensors.

    Returns:
        Keyword arguments for ``report_nonclose``.
    """
    if dtype == torch.float64:
        return {"rtol": 1e-10, "atol": 1e-12}
    return {"rtol": 1e-4, "atol": 1e-5}


def average_groups(mat: Tensor, keys: Tensor, mask: Union[Tensor, None] = None):
    """Replace each entry by the mean over all entries that share its key.

    Args:
        mat: A dense matrix.
        keys: Integer tensor of the same shape as ``mat``.
        mask: Optional boolean tensor. Entries where it is ``False`` are zeroed.

    Returns:
        The projected matrix.
    """
    projected = zeros_like(mat)
    for key in keys.unique():
        group = keys == key
        projected[group] = mat[group].mean()
    if mask is not None:
        projected[~mask] = 0
    return projected


def index_grids(
    num_rows: int, num_cols: int, dev: Union[device, None] = None
) -> Tuple[Tensor, Tensor]:
    """Return broadcasted row and column indices of a matrix.

    Args:
        num_rows: Number of rows.
        num_cols: Number of columns.
        dev: Optional device of the indices.

    Returns:
        Row and column index tensors of shape ``[num_rows, num_cols]``.
    """
    i = arange(num_rows, device=dev).unsqueeze(-1).expand(-1, num_cols)
    j = arange(num_cols, device=dev).unsqueeze(0).expand(num_rows, -1)
    return i, j


def random_toeplitz(
    num_rows: int,
    num_cols: int,
    dtype: Union[torch.dtype, None] = None,
    dev: Union[device, None] = None,
) -> Toeplitz:
    """Create a random Toeplitz matrix.

    Args:
        num_rows: Number of rows.
        num_cols: Number of columns.
        dtype: Optional data type of the matrix.
        dev: Optional device of the matrix.

    Returns:
        A random Toeplitz matrix.
    """
    vc = rand(num_rows, dtype=dtype, device=dev)
    vr = rand(num_cols, dtype=dtype, device=dev)
    vr[0] = vc[0]
    return Toeplitz(vc, vr)


def symmetrize(mat: Tensor) -> Tensor:
    """Symmetrize a matrix.

    Args:
        mat: A square matrix.

    Returns:
        The symmetrized matrix.
    """
    return (mat + mat.T) / 2.0


class _TestStructuredMatrix(ABC):
    """Abstract class for testing `StructuredMatrix` implementations.

    To test a new structured matrix type, create a new class and specify the class
    attributes and abstract methods, e.g.

    ```python
    class TestToeplitz(_TestStructuredMatrix):
        STRUCTURED_MATRIX_CLS = Toeplitz

        def make(self, num_rows, num_cols, dtype, dev):
            ...

        def project(self, mat):
            ...
    ```

    Attributes:
        STRUCTURED_MATRIX_CLS: The class of the structured matrix that is tested.
        SHAPES: Shapes of the random instances that are tested.
        FROM_DENSE_SHAPES: Shapes of the dense matrices passed to `from_dense`.
    """

    STRUCTURED_MATRIX_CLS: Type[StructuredMatrix]
    SHAPES: List[Tuple[int, int]] = [(1, 1), (4, 4), (7, 3), (3, 7), (33, 33)]
    FROM_DENSE_SHAPES: List[Tuple[int, int]] = [(1, 1), (5, 5), (6, 4), (4, 6)]

    @abstractmethod
    def make(
        self, num_rows: int, num_cols: int, dtype: torch.dtype, dev: device
    ) -> StructuredMatrix:
        """Create a random structured matrix of the specified shape.

        Args:
            num_rows: Number of rows.
            num_cols: Number of columns.
            dtype: Data type of the matrix.
            dev: Device of the matrix.

        Returns:
            A structured matrix of shape ``[num_rows, num_cols]``.
        """
        raise NotImplementedError

    @abstractmethod
    def project(self, mat: Tensor) -> Tensor:
        """Project a dense matrix onto the tested structure.

        Must be implemented by a child class.

        Args:
            mat: A dense matrix.

        Returns:
            The dense representation of the structured matrix that ``from_dense``
            should return.
        """
        raise NotImplementedError

    @mark.parametrize("dtype", DTYPES, ids=DTYPE_IDS)
    @mark.parametrize("dev", DEVICES, ids=DEVICE_IDS)
    def test_entries(self, dev: device, dtype: torch.dtype):
        """Test that entry access, rows, columns, and `to_dense` agree.

        Args:
            dev: The device on which to run the test.
            dtype: The data type of the matrices.
        """
        manual_seed(0)
        for num_rows, num_cols in self.SHAPES:
            structured = self.make(num_rows, num_cols, dtype, dev)
            assert structured.shape == (num_rows, num_cols)

            dense = structured.to_dense()
            assert dense.shape == (num_rows, num_cols)
            assert dense.dtype == dtype
            assert dense.device.type == dev.type

            for i in range(num_rows):
                report_nonclose(dense[i], structured.row(i))
                for j in range(num_cols):
                    assert structured[i, j] == dense[i, j]
            for j in range(num_cols):
                report_nonclose(dense[:, j], structured.column(j))

    def test_entries_out_of_range(self):
        """Test that invalid indices raise an `IndexError`."""
        manual_seed(0)
        structured = self.make(3, 4, torch.float64, device("cpu"))

        for i, j in [(-1, 0), (0, -1), (3, 0), (0, 4)]:
            with raises(IndexError):
                structured[i, j]
        with raises(IndexError):
            structured.row(3)
        with raises(IndexError):
            structured.column(4)

    @mark.parametrize("fft", FFT, ids=FFT_IDS)
    @mark.parametrize("dtype", DTYPES, ids=DTYPE_IDS)
    @mark.parametrize("dev", DEVICES, ids=DEVICE_IDS)
    def test_matmul(
        self, dev: device, dtype: torch.dtype, fft: bool, monkeypatch: MonkeyPatch
    ):
        """Test multiplication with vectors and matrices (@ operator).

        Args:
            dev: The device on which to run the test.
            dtype: The data type of the matrices.
            fft: Whether to force multiplication through the FFT.
            monkeypatch: Fixture to temporarily change the FFT threshold.
        """
        if fft:
            monkeypatch.setattr(AbstractToeplitz, "FFT_THRESHOLD", 0)

        manual_seed(0)
        for num_rows, num_cols in self.SHAPES:
            structured = self.make(num_rows, num_cols, dtype, dev)
            dense = structured.to_dense()

            vec = rand(num_cols, dtype=dtype, device=dev)
            report_nonclose(dense @ vec, structured @ vec, **tolerances(dtype))

            mat = rand(num_cols, 5, dtype=dtype, device=dev)
            report_nonclose(dense @ mat, structured @ mat, **tolerances(dtype))

    @mark.parametrize("fft", FFT, ids=FFT_IDS)
    @mark.parametrize("dtype", DTYPES, ids=DTYPE_IDS)
    @mark.parametrize("dev", DEVICES, ids=DEVICE_IDS)
    def test_rmatmat(
        self, dev: device, dtype: torch.dtype, fft: bool, monkeypatch: MonkeyPatch
    ):
        """Test multiplication with the transpose.

        Args:
            dev: The device on which to run the test.
            dtype: The data type of the matrices.
            fft: Whether to force multiplication through the FFT.
            monkeypatch: Fixture to temporarily change the FFT threshold.
        """
        if fft:
            monkeypatch.setattr(AbstractToeplitz, "FFT_THRESHOLD", 0)

        manual_seed(0)
        for num_rows, num_cols in self.SHAPES:
            structured = self.make(num_rows, num_cols, dtype, dev)
            dense = structured.to_dense()

            mat = rand(num_rows, 3, dtype=dtype, device=dev)
            report_nonclose(dense.T @ mat, structured.rmatmat(mat), **tolerances(dtype))
            report_nonclose(dense.T, structured.T.to_dense())

    def test_matmul_dimension_mismatch(self):
        """Test that multiplying with an operand of wrong size raises an error."""
        manual_seed(0)
        structured = self.make(4, 3, torch.float64, device("cpu"))

        with raises(DimensionMismatchError):
            structured @ rand(4, dtype=torch.float64)
        with raises(DimensionMismatchError):
            structured @ rand(3, 2, 2, dtype=torch.float64)

    @mark.parametrize("dtype", DTYPES, ids=DTYPE_IDS)
    @mark.parametrize("dev", DEVICES, ids=DEVICE_IDS)
    def test_from_dense(self, dev: device, dtype: torch.dtype):
        """Test projecting a dense matrix onto the structure.

        Args:
            dev: The device on which to run the test.
            dtype: The data type of the matrices.
        """
        manual_seed(0)
        for num_rows, num_cols in self.FROM_DENSE_SHAPES:
            mat = rand(num_rows, num_cols, dtype=dtype, device=dev)
            truth = self.project(mat)
            structured = self.STRUCTURED_MATRIX_CLS.from_dense(mat)
            report_nonclose(truth, structured.to_dense(), **tolerances(dtype))

    @mark.expensive
    def test_visual(self):
        """Create pictures and animations of the structure.

        This serves to verify the edge cases where a matrix is too small to show
        all the structural components.
        """
        manual_seed(0)
        dims = [1, 2, 4, 8, 16, 32, 64, 128]

        HEREDIR = path.dirname(path.abspath(__file__))
        structure_name = self.STRUCTURED_MATRIX_CLS.__name__
        FIGDIR = path.join(HEREDIR, "fig", structure_name)
        makedirs(FIGDIR, exist_ok=True)

        frames = []

        for d in dims:
            dense = symmetrize(rand(d, d))
            structured = self.STRUCTURED_MATRIX_CLS.from_dense(dense).to_dense()

            # share limits
            vmin = min(dense.min(), structured.min())
            vmax = max(dense.max(), structured.max())

            fig, (ax1, ax2) = plt.subplots(1, 2)
            plt.tight_layout()
            fig.suptitle(f"Dimension: {d}")
            ax1.set_title("Dense")
            ax1.imshow(dense, vmin=vmin, vmax=vmax)
            ax2.set_title(structure_name)
            ax2.imshow(structured, vmin=vmin, vmax=vmax)

            savepath = path.join(FIGDIR, f"dim_{d:05d}.png")
            fig.savefig(savepath)
            plt.close(fig)
            frames.append(savepath)

        # create gif
        images = [imread(frame) for frame in frames]
        mimsave(path.join(FIGDIR, "animated.gif"), images, duration=1_000, loop=0)
