"""# Overview of Structures.

This example visualizes the available structures by projecting a dense random
matrix onto each of them with `from_dense`.

First, the imports.
"""

from matplotlib import pyplot as plt
from torch import manual_seed, rand

from toeplitzmat import (
    Circulant,
    Hankel,
    SymmetricToeplitz,
    Toeplitz,
    TriangularToeplitz,
)

manual_seed(0)  # make deterministic

# %%
# ## Projections
#
# Each structure approximates a dense matrix by averaging the entries that
# share a value in the structured matrix: diagonals for Toeplitz matrices,
# wrapped diagonals for circulant matrices, and anti-diagonals for Hankel
# matrices.

dim = 16
dense = rand(dim, dim)

structures = [Toeplitz, SymmetricToeplitz, Circulant, TriangularToeplitz, Hankel]
matrices = {"original": dense}
for cls in structures:
    matrices[cls.__name__] = cls.from_dense(dense).to_dense()

# shared limits
vmin = min(mat.min() for mat in matrices.values())
vmax = max(mat.max() for mat in matrices.values())

# %%
#
# Here is what they look like:

fig, axes = plt.subplots(2, 3, figsize=(9, 6))
plt.tight_layout()

for ax, (name, mat) in zip(axes.flat, matrices.items()):
    ax.set_title(name)
    ax.set(xticks=[], yticks=[])  # turn off ticks
    ax.imshow(mat, vmin=vmin, vmax=vmax)

# %%
#
# ## Conclusion
#
# You now have a visual impression of the structures and know how to project
# a dense matrix onto them.
