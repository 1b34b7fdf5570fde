"""Linear algebra utilities built on top of JAX."""

from __future__ import annotations

from typing import Sequence

import numpy as np
import jax.numpy as jnp
from jax.experimental import sparse

from ..typing import Array, Scalar


def as_real_array(values: Sequence[Scalar] | Array) -> Array:
    """Return ``values`` as a 1-D floating array, keeping tracers intact."""

    if isinstance(values, (list, tuple)) and len(values) == 0:
        return jnp.zeros((0,), dtype=jnp.result_type(float))
    arr = jnp.asarray(values)
    if not jnp.issubdtype(arr.dtype, jnp.floating):
        arr = arr.astype(jnp.result_type(float))
    return jnp.reshape(arr, (-1,))


def column_major(flat: Array, n: int, m: int) -> Array:
    """Arrange ``n * m`` values so that element ``(i, j)`` is ``flat[j * n + i]``."""

    return jnp.reshape(flat, (m, n)).T


def flatten_column_major(matrix: Array) -> Array:
    """Inverse of :func:`column_major`."""

    return jnp.reshape(jnp.asarray(matrix).T, (-1,))


def lower_tri_rowwise(n: int) -> tuple[np.ndarray, np.ndarray]:
    """Row and column indices of the lower triangle of an ``n x n`` matrix, row by row."""

    return np.tril_indices(n)


def diag_positions_rowwise(n: int) -> np.ndarray:
    """Positions of the diagonal entries within a row-wise lower-triangular fill."""

    i = np.arange(n)
    return i * (i + 1) // 2 + i


def multiply_lower_tri_self_transpose(L: Array) -> Array:
    """Return ``L Lᵀ`` using only the lower triangle of ``L``."""

    if L.shape[0] == 0:
        return jnp.zeros((0, 0), dtype=L.dtype)
    L = jnp.tril(L)
    return L @ L.T


def sparse_from_triplets(
    rows: Sequence[int],
    cols: Sequence[int],
    values: Array,
    n: int,
    m: int,
) -> sparse.BCOO:
    """Assemble an ``n x m`` sparse matrix from ``(row, col, value)`` triplets.

    Duplicate cells are kept as separate entries and sum on densification.
    """

    indices = jnp.asarray(np.stack([np.asarray(rows, dtype=np.int32), np.asarray(cols, dtype=np.int32)], axis=-1).reshape(-1, 2))
    return sparse.BCOO((as_real_array(values), indices), shape=(int(n), int(m)))


def empty_sparse(n: int, m: int) -> sparse.BCOO:
    """An ``n x m`` sparse matrix with no stored entries."""

    return sparse_from_triplets([], [], jnp.zeros((0,), dtype=jnp.result_type(float)), n, m)


__all__ = [
    "as_real_array",
    "column_major",
    "flatten_column_major",
    "lower_tri_rowwise",
    "diag_positions_rowwise",
    "multiply_lower_tri_self_transpose",
    "sparse_from_triplets",
    "empty_sparse",
]
