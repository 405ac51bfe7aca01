"""# Basic usage.

This example demonstrates how to create Toeplitz matrices, multiply them onto
vectors, and solve linear systems with them. All matrices are represented by
a few generating vectors and never stored densely.

First, the imports.
"""

from torch import allclose, arange, cat, float64, manual_seed, rand, tensor
from torch.linalg import solve

from toeplitzmat import Toeplitz, TriangularToeplitz

manual_seed(0)  # make deterministic

# %%
# ## Construction
#
# A Toeplitz matrix is constant along its diagonals. It is described by its
# first column and its first row, which have to agree on their first entry:

mat = Toeplitz(tensor([2.0, 1.0, 0.0]), tensor([2.0, 3.0, 4.0]))
print(mat.to_dense())

# %%
#
# Entries are accessed with zero-based indices, just like for tensors:

print(mat[2, 0], mat[0, 2])

# %%
# ## Multiplication
#
# Multiplication with a vector or a matrix works through the `@` operator:

vec = tensor([1.0, 1.0, 1.0])
print(mat @ vec)

# %%
#
# Small matrices are multiplied directly. Large ones are embedded into a
# circulant matrix, whose multiplication reduces to element-wise products in
# the Fourier domain. This costs $\mathcal{O}(n \log n)$ instead of
# $\mathcal{O}(n^2)$:

dim = 2_000
decay = 0.5 ** arange(1, dim, dtype=float64)
vc = cat([tensor([4.0], dtype=float64), decay])
vr = cat([tensor([4.0], dtype=float64), -decay])
large = Toeplitz(vc, vr)
print(f"Embedding size: {large.embedding_size}")

x = rand(dim, dtype=float64)
assert allclose(large.to_dense() @ x, large @ x)

# %%
# ## Solving Linear Systems
#
# Square systems are solved iteratively with the CGS method. A circulant
# approximation of the matrix serves as pre-conditioner:

b = rand(dim, dtype=float64)
x = large.solve(b)
assert allclose(solve(large.to_dense(), b), x)

# %%
#
# The full solver result, including the number of iterations, is available
# through `iterative_solve`:

result = large.iterative_solve(b)
print(f"Converged: {result.converged} after {result.iterations} iterations.")

# %%
#
# Triangular Toeplitz matrices have an inverse that is again triangular
# Toeplitz. It is computed by recursive doubling:

lower = TriangularToeplitz(tensor([2.0, 4.0]))
print(lower.inv().ve)

# %%
#
# ## Conclusion
#
# You now know how to create structured Toeplitz matrices and how to multiply
# and solve with them.
