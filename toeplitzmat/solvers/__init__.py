"""Solvers that only access matrices through matrix-vector products."""
