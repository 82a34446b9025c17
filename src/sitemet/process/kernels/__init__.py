"""
Numerical kernels for sitemet.

Design Rules:
1. Functions take numpy arrays or scalars as input
2. Functions return numpy arrays or scalars as output
3. No file I/O, no `self`, no state mutation of inputs
4. Missing values are NaN and are propagated, never filled
5. Numba JIT compiled with cache=True
"""

from sitemet.process.kernels import interpolation, search

__all__ = [
    "interpolation",
    "search",
]
