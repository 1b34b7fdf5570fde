"""Sequential reader turning a flat unconstrained stream into model variables.

A :class:`Reader` borrows one sequence of reals and one of integers and walks
forward through them. Every accessor consumes a number of values that depends
only on the requested dimensions, never on the data. Matrices are assembled in
column-major order: element ``(i, j)`` of an ``n x m`` result is consumed
scalar ``j * n + i``.

Accessors come in three forms for each constrained family:

* plain (``simplex(k)``) reads the constrained representation and validates it;
* constrain (``simplex_constrain(k)``) reads the unconstrained representation
  and applies the transform from :mod:`paramio.math.transforms`;
* Jacobian constrain (``simplex_constrain(k, lp)``) additionally adds the log
  absolute Jacobian determinant into the caller's accumulator.

Errors propagate unchanged. A reader that has raised should be discarded
along with the partially read structure.
"""

from __future__ import annotations

from typing import Callable, List, Sequence

import jax.numpy as jnp
from jax.experimental import sparse

from .errors import BufferExhausted, InvalidShape
from .math import checks, transforms
from .math.linalg import as_real_array, column_major, empty_sparse, sparse_from_triplets
from .typing import Array, IntSequence, LogProbTarget, RealSequence, Scalar


class Reader:
    """Read constrained variables from borrowed real and integer sequences.

    Parameters
    ----------
    data_r:
        Reals in unconstrained (or, for plain reads, constrained) space. Any
        indexable sequence works: a list, a NumPy array or a JAX array,
        including traced arrays inside :func:`jax.grad`.
    data_i:
        Integer values.
    tolerance:
        Tolerance used by the unit-vector, simplex and matrix validity checks.

    The sequences are referenced, not copied, and must outlive the reader
    unmodified. A reader is not safe for concurrent use.
    """

    def __init__(
        self,
        data_r: RealSequence,
        data_i: IntSequence = (),
        tolerance: float = checks.CONSTRAINT_TOLERANCE,
    ) -> None:
        self._data_r = data_r
        self._data_i = data_i
        self._pos = 0
        self._int_pos = 0
        self._tolerance = float(tolerance)

    # ------------------------------------------------------------------
    # Cursors
    # ------------------------------------------------------------------

    @property
    def pos(self) -> int:
        """Index of the next unread real."""
        return self._pos

    @property
    def int_pos(self) -> int:
        """Index of the next unread integer."""
        return self._int_pos

    @property
    def tolerance(self) -> float:
        return self._tolerance

    def available(self) -> int:
        """Number of reals left to read."""
        return len(self._data_r) - self._pos

    def available_i(self) -> int:
        """Number of integers left to read."""
        return len(self._data_i) - self._int_pos

    @staticmethod
    def _check_dims(function: str, *dims: int) -> None:
        for d in dims:
            if d < 0:
                raise InvalidShape(f"{function}: dimensions must be non-negative, received {dims}")

    def _require(self, n: int) -> None:
        self._check_dims("Reader", n)
        if n > self.available():
            raise BufferExhausted("scalars", n, self.available())

    def _take(self, n: int) -> Array:
        """Return the next ``n`` reals as a 1-D array and advance past them.

        Availability is checked first; on failure the cursor does not move.
        """

        self._require(n)
        start = self._pos
        values = as_real_array(self._data_r[start:start + n])
        self._pos = start + n
        return values

    def integer(self) -> int:
        """Return the next integer."""

        if self._int_pos >= len(self._data_i):
            raise BufferExhausted("integers", 1, 0)
        value = int(self._data_i[self._int_pos])
        self._int_pos += 1
        return value

    def integer_constrain(self, lp: LogProbTarget | None = None) -> int:
        return self.integer()

    def scalar(self) -> Scalar:
        """Return the next real."""

        if self._pos >= len(self._data_r):
            raise BufferExhausted("scalars", 1, 0)
        value = self._data_r[self._pos]
        self._pos += 1
        return value

    def scalar_constrain(self, lp: LogProbTarget | None = None) -> Scalar:
        return self.scalar()

    # ------------------------------------------------------------------
    # Shapes
    # ------------------------------------------------------------------

    def std_vector(self, m: int) -> List[Scalar]:
        """Copy the next ``m`` reals into a list."""

        self._check_dims("Reader.std_vector", m)
        if m == 0:
            return []
        self._require(m)
        start = self._pos
        values = list(self._data_r[start:start + m])
        self._pos = start + m
        return values

    def vector(self, m: int) -> Array:
        """Next ``m`` reals as a column vector of shape ``(m,)``."""

        self._check_dims("Reader.vector", m)
        if m == 0:
            return jnp.zeros((0,), dtype=jnp.result_type(float))
        return self._take(m)

    def vector_constrain(self, m: int, lp: LogProbTarget | None = None) -> Array:
        return self.vector(m)

    def row_vector(self, m: int) -> Array:
        """Next ``m`` reals as a row vector of shape ``(1, m)``."""

        return jnp.reshape(self.vector(m), (1, m))

    def row_vector_constrain(self, m: int, lp: LogProbTarget | None = None) -> Array:
        return self.row_vector(m)

    def matrix(self, n: int, m: int) -> Array:
        """Next ``n * m`` reals as an ``n x m`` matrix in column-major order."""

        self._check_dims("Reader.matrix", n, m)
        if n == 0 or m == 0:
            return jnp.zeros((n, m), dtype=jnp.result_type(float))
        return column_major(self._take(n * m), n, m)

    def matrix_constrain(self, n: int, m: int, lp: LogProbTarget | None = None) -> Array:
        return self.matrix(n, m)

    @staticmethod
    def _check_triplet_indices(rows: Sequence[int], cols: Sequence[int], n: int, m: int) -> None:
        if len(rows) != len(cols):
            raise InvalidShape(
                f"sparse matrix needs as many row indices as column indices, received {len(rows)} and {len(cols)}"
            )
        for r, c in zip(rows, cols):
            if not (0 <= r < n and 0 <= c < m):
                raise InvalidShape(f"sparse matrix index ({r}, {c}) is outside a {n} x {m} matrix")

    def sparse_matrix(self, rows: IntSequence, cols: IntSequence, n: int, m: int) -> sparse.BCOO:
        """Sparse ``n x m`` matrix with one next real per listed ``(rows[k], cols[k])`` cell.

        Values are consumed in the listed order. Duplicate cells sum when the
        matrix is densified.
        """

        self._check_dims("Reader.sparse_matrix", n, m)
        if n == 0 or m == 0:
            return empty_sparse(n, m)
        self._check_triplet_indices(rows, cols, n, m)
        return sparse_from_triplets(rows, cols, self._take(len(rows)), n, m)

    def sparse_matrix_constrain(
        self, rows: IntSequence, cols: IntSequence, n: int, m: int, lp: LogProbTarget | None = None
    ) -> sparse.BCOO:
        return self.sparse_matrix(rows, cols, n, m)

    # ------------------------------------------------------------------
    # Bounded integers
    # ------------------------------------------------------------------

    def integer_lb(self, lb: int) -> int:
        """Next integer, which must be ``>= lb``; consumed even when the check fails."""

        i = self.integer()
        checks.check_greater_or_equal("Reader.integer_lb", "Constrained integer", i, lb)
        return i

    def integer_lb_constrain(self, lb: int, lp: LogProbTarget | None = None) -> int:
        return self.integer_lb(lb)

    def integer_ub(self, ub: int) -> int:
        """Next integer, which must be ``<= ub``; consumed even when the check fails."""

        i = self.integer()
        checks.check_less_or_equal("Reader.integer_ub", "Constrained integer", i, ub)
        return i

    def integer_ub_constrain(self, ub: int, lp: LogProbTarget | None = None) -> int:
        return self.integer_ub(ub)

    def integer_lub(self, lb: int, ub: int) -> int:
        """Next integer in ``[lb, ub]``.

        The integer is consumed before anything is checked, so the cursor
        position after an error does not depend on which check failed.
        """

        i = self.integer()
        checks.check_consistent_bounds("Reader.integer_lub", lb, ub)
        checks.check_greater_or_equal("Reader.integer_lub", "Constrained integer", i, lb)
        checks.check_less_or_equal("Reader.integer_lub", "Constrained integer", i, ub)
        return i

    def integer_lub_constrain(self, lb: int, ub: int, lp: LogProbTarget | None = None) -> int:
        return self.integer_lub(lb, ub)

    # ------------------------------------------------------------------
    # Constrained scalars
    # ------------------------------------------------------------------

    def scalar_pos(self) -> Scalar:
        x = self.scalar()
        checks.check_positive("Reader.scalar_pos", "Constrained scalar", x)
        return x

    def scalar_pos_constrain(self, lp: LogProbTarget | None = None) -> Array:
        return transforms.positive_constrain(self.scalar(), lp)

    def scalar_lb(self, lb: Scalar) -> Scalar:
        x = self.scalar()
        checks.check_greater_or_equal("Reader.scalar_lb", "Constrained scalar", x, lb)
        return x

    def scalar_lb_constrain(self, lb: Scalar, lp: LogProbTarget | None = None) -> Array:
        return transforms.lb_constrain(self.scalar(), lb, lp)

    def scalar_ub(self, ub: Scalar) -> Scalar:
        x = self.scalar()
        checks.check_less_or_equal("Reader.scalar_ub", "Constrained scalar", x, ub)
        return x

    def scalar_ub_constrain(self, ub: Scalar, lp: LogProbTarget | None = None) -> Array:
        return transforms.ub_constrain(self.scalar(), ub, lp)

    def scalar_lub(self, lb: Scalar, ub: Scalar) -> Scalar:
        x = self.scalar()
        checks.check_consistent_bounds("Reader.scalar_lub", lb, ub)
        checks.check_bounded("Reader.scalar_lub", "Constrained scalar", x, lb, ub)
        return x

    def scalar_lub_constrain(self, lb: Scalar, ub: Scalar, lp: LogProbTarget | None = None) -> Array:
        return transforms.lub_constrain(self.scalar(), lb, ub, lp)

    def scalar_offset_multiplier(self, offset: Scalar, multiplier: Scalar) -> Scalar:
        """Next real as is; offset and multiplier only matter when constraining."""

        return self.scalar()

    def scalar_offset_multiplier_constrain(
        self, offset: Scalar, multiplier: Scalar, lp: LogProbTarget | None = None
    ) -> Array:
        return transforms.offset_multiplier_constrain(self.scalar(), offset, multiplier, lp)

    def prob(self) -> Scalar:
        x = self.scalar()
        checks.check_bounded("Reader.prob", "Constrained probability", x, 0.0, 1.0)
        return x

    def prob_constrain(self, lp: LogProbTarget | None = None) -> Array:
        return transforms.prob_constrain(self.scalar(), lp)

    def corr(self) -> Scalar:
        x = self.scalar()
        checks.check_bounded("Reader.corr", "Correlation value", x, -1.0, 1.0)
        return x

    def corr_constrain(self, lp: LogProbTarget | None = None) -> Array:
        return transforms.corr_constrain(self.scalar(), lp)

    # ------------------------------------------------------------------
    # Constrained vectors
    # ------------------------------------------------------------------

    @staticmethod
    def _check_positive_size(function: str, what: str, k: int) -> None:
        if k <= 0:
            raise InvalidShape(f"{function}: {what} must have positive size, received {k}.")

    def unit_vector(self, k: int) -> Array:
        self._check_positive_size("Reader.unit_vector", "unit vectors", k)
        theta = self.vector(k)
        checks.check_unit_vector("Reader.unit_vector", "Constrained vector", theta, self._tolerance)
        return theta

    def unit_vector_constrain(self, k: int, lp: LogProbTarget | None = None) -> Array:
        """Unit vector of length ``k`` from ``k`` unconstrained reals."""

        self._check_positive_size("Reader.unit_vector_constrain", "unit vectors", k)
        return transforms.unit_vector_constrain(self.vector(k), lp)

    def simplex(self, k: int) -> Array:
        self._check_positive_size("Reader.simplex", "simplexes", k)
        theta = self.vector(k)
        checks.check_simplex("Reader.simplex", "Constrained vector", theta, self._tolerance)
        return theta

    def simplex_constrain(self, k: int, lp: LogProbTarget | None = None) -> Array:
        """Simplex of length ``k`` from ``k - 1`` unconstrained reals."""

        self._check_positive_size("Reader.simplex_constrain", "simplexes", k)
        return transforms.simplex_constrain(self.vector(k - 1), lp)

    def ordered(self, k: int) -> Array:
        x = self.vector(k)
        checks.check_ordered("Reader.ordered", "Constrained vector", x)
        return x

    def ordered_constrain(self, k: int, lp: LogProbTarget | None = None) -> Array:
        return transforms.ordered_constrain(self.vector(k), lp)

    def positive_ordered(self, k: int) -> Array:
        x = self.vector(k)
        checks.check_positive_ordered("Reader.positive_ordered", "Constrained vector", x)
        return x

    def positive_ordered_constrain(self, k: int, lp: LogProbTarget | None = None) -> Array:
        return transforms.positive_ordered_constrain(self.vector(k), lp)

    # ------------------------------------------------------------------
    # Constrained matrices
    # ------------------------------------------------------------------

    def cholesky_factor_cov(self, n: int, m: int) -> Array:
        """Next ``n x m`` Cholesky factor, read directly."""

        y = self.matrix(n, m)
        checks.check_cholesky_factor("Reader.cholesky_factor_cov", "Constrained matrix", y)
        return y

    def cholesky_factor_cov_constrain(self, n: int, m: int, lp: LogProbTarget | None = None) -> Array:
        """``n x m`` Cholesky factor from ``m(m+1)/2 + (n-m)m`` unconstrained reals."""

        self._check_dims("Reader.cholesky_factor_cov_constrain", n, m)
        size = transforms.cholesky_factor_size(n, m)
        return transforms.cholesky_factor_constrain(self.vector(size), n, m, lp)

    def cholesky_factor_corr(self, K: int) -> Array:
        y = self.matrix(K, K)
        checks.check_cholesky_factor_corr("Reader.cholesky_factor_corr", "Constrained matrix", y, self._tolerance)
        return y

    def cholesky_factor_corr_constrain(self, K: int, lp: LogProbTarget | None = None) -> Array:
        """``K x K`` correlation Cholesky factor from ``K(K-1)/2`` unconstrained reals."""

        self._check_dims("Reader.cholesky_factor_corr_constrain", K)
        return transforms.cholesky_corr_constrain(self.vector(K * (K - 1) // 2), K, lp)

    def cov_matrix(self, k: int) -> Array:
        y = self.matrix(k, k)
        checks.check_cov_matrix("Reader.cov_matrix", "Constrained matrix", y, self._tolerance)
        return y

    def cov_matrix_constrain(self, k: int, lp: LogProbTarget | None = None) -> Array:
        """``k x k`` covariance matrix from ``k + k(k-1)/2`` unconstrained reals."""

        self._check_dims("Reader.cov_matrix_constrain", k)
        return transforms.cov_matrix_constrain(self.vector(k + k * (k - 1) // 2), k, lp)

    def corr_matrix(self, k: int) -> Array:
        x = self.matrix(k, k)
        checks.check_corr_matrix("Reader.corr_matrix", "Constrained matrix", x, self._tolerance)
        return x

    def corr_matrix_constrain(self, k: int, lp: LogProbTarget | None = None) -> Array:
        """``k x k`` correlation matrix from ``k(k-1)/2`` unconstrained reals."""

        self._check_dims("Reader.corr_matrix_constrain", k)
        return transforms.corr_matrix_constrain(self.vector(k * (k - 1) // 2), k, lp)

    # ------------------------------------------------------------------
    # Elementwise batches
    # ------------------------------------------------------------------

    def _fill_vector(self, read_one: Callable[[], Scalar], m: int) -> Array:
        self._require(m)
        return as_real_array([read_one() for _ in range(m)])

    def _fill_row_vector(self, read_one: Callable[[], Scalar], m: int) -> Array:
        return jnp.reshape(self._fill_vector(read_one, m), (1, m))

    def _fill_matrix(self, read_one: Callable[[], Scalar], n: int, m: int) -> Array:
        self._check_dims("Reader", n, m)
        self._require(n * m)
        values = []
        for _j in range(m):
            for _i in range(n):
                values.append(read_one())
        return column_major(as_real_array(values), n, m)

    def _fill_sparse(
        self, read_one: Callable[[], Scalar], rows: IntSequence, cols: IntSequence, n: int, m: int
    ) -> sparse.BCOO:
        self._check_dims("Reader", n, m)
        if n == 0 or m == 0:
            return empty_sparse(n, m)
        self._check_triplet_indices(rows, cols, n, m)
        self._require(len(rows))
        values = [read_one() for _ in range(len(rows))]
        return sparse_from_triplets(rows, cols, as_real_array(values), n, m)

    # lower bound

    def vector_lb(self, lb: Scalar, m: int) -> Array:
        return self._fill_vector(lambda: self.scalar_lb(lb), m)

    def vector_lb_constrain(self, lb: Scalar, m: int, lp: LogProbTarget | None = None) -> Array:
        return self._fill_vector(lambda: self.scalar_lb_constrain(lb, lp), m)

    def row_vector_lb(self, lb: Scalar, m: int) -> Array:
        return self._fill_row_vector(lambda: self.scalar_lb(lb), m)

    def row_vector_lb_constrain(self, lb: Scalar, m: int, lp: LogProbTarget | None = None) -> Array:
        return self._fill_row_vector(lambda: self.scalar_lb_constrain(lb, lp), m)

    def matrix_lb(self, lb: Scalar, n: int, m: int) -> Array:
        return self._fill_matrix(lambda: self.scalar_lb(lb), n, m)

    def matrix_lb_constrain(self, lb: Scalar, n: int, m: int, lp: LogProbTarget | None = None) -> Array:
        return self._fill_matrix(lambda: self.scalar_lb_constrain(lb, lp), n, m)

    def sparse_matrix_lb(self, lb: Scalar, rows: IntSequence, cols: IntSequence, n: int, m: int) -> sparse.BCOO:
        """Sparse matrix whose listed cells are each checked to be ``>= lb``."""

        return self._fill_sparse(lambda: self.scalar_lb(lb), rows, cols, n, m)

    def sparse_matrix_lb_constrain(
        self, lb: Scalar, rows: IntSequence, cols: IntSequence, n: int, m: int, lp: LogProbTarget | None = None
    ) -> sparse.BCOO:
        return self._fill_sparse(lambda: self.scalar_lb_constrain(lb, lp), rows, cols, n, m)

    # upper bound

    def vector_ub(self, ub: Scalar, m: int) -> Array:
        return self._fill_vector(lambda: self.scalar_ub(ub), m)

    def vector_ub_constrain(self, ub: Scalar, m: int, lp: LogProbTarget | None = None) -> Array:
        return self._fill_vector(lambda: self.scalar_ub_constrain(ub, lp), m)

    def row_vector_ub(self, ub: Scalar, m: int) -> Array:
        return self._fill_row_vector(lambda: self.scalar_ub(ub), m)

    def row_vector_ub_constrain(self, ub: Scalar, m: int, lp: LogProbTarget | None = None) -> Array:
        return self._fill_row_vector(lambda: self.scalar_ub_constrain(ub, lp), m)

    def matrix_ub(self, ub: Scalar, n: int, m: int) -> Array:
        return self._fill_matrix(lambda: self.scalar_ub(ub), n, m)

    def matrix_ub_constrain(self, ub: Scalar, n: int, m: int, lp: LogProbTarget | None = None) -> Array:
        return self._fill_matrix(lambda: self.scalar_ub_constrain(ub, lp), n, m)

    def sparse_matrix_ub(self, ub: Scalar, rows: IntSequence, cols: IntSequence, n: int, m: int) -> sparse.BCOO:
        return self._fill_sparse(lambda: self.scalar_ub(ub), rows, cols, n, m)

    def sparse_matrix_ub_constrain(
        self, ub: Scalar, rows: IntSequence, cols: IntSequence, n: int, m: int, lp: LogProbTarget | None = None
    ) -> sparse.BCOO:
        return self._fill_sparse(lambda: self.scalar_ub_constrain(ub, lp), rows, cols, n, m)

    # lower and upper bound

    def vector_lub(self, lb: Scalar, ub: Scalar, m: int) -> Array:
        return self._fill_vector(lambda: self.scalar_lub(lb, ub), m)

    def vector_lub_constrain(self, lb: Scalar, ub: Scalar, m: int, lp: LogProbTarget | None = None) -> Array:
        return self._fill_vector(lambda: self.scalar_lub_constrain(lb, ub, lp), m)

    def row_vector_lub(self, lb: Scalar, ub: Scalar, m: int) -> Array:
        return self._fill_row_vector(lambda: self.scalar_lub(lb, ub), m)

    def row_vector_lub_constrain(self, lb: Scalar, ub: Scalar, m: int, lp: LogProbTarget | None = None) -> Array:
        return self._fill_row_vector(lambda: self.scalar_lub_constrain(lb, ub, lp), m)

    def matrix_lub(self, lb: Scalar, ub: Scalar, n: int, m: int) -> Array:
        return self._fill_matrix(lambda: self.scalar_lub(lb, ub), n, m)

    def matrix_lub_constrain(
        self, lb: Scalar, ub: Scalar, n: int, m: int, lp: LogProbTarget | None = None
    ) -> Array:
        return self._fill_matrix(lambda: self.scalar_lub_constrain(lb, ub, lp), n, m)

    def sparse_matrix_lub(
        self, lb: Scalar, ub: Scalar, rows: IntSequence, cols: IntSequence, n: int, m: int
    ) -> sparse.BCOO:
        return self._fill_sparse(lambda: self.scalar_lub(lb, ub), rows, cols, n, m)

    def sparse_matrix_lub_constrain(
        self,
        lb: Scalar,
        ub: Scalar,
        rows: IntSequence,
        cols: IntSequence,
        n: int,
        m: int,
        lp: LogProbTarget | None = None,
    ) -> sparse.BCOO:
        return self._fill_sparse(lambda: self.scalar_lub_constrain(lb, ub, lp), rows, cols, n, m)

    # offset and multiplier

    def vector_offset_multiplier(self, offset: Scalar, multiplier: Scalar, m: int) -> Array:
        return self._fill_vector(lambda: self.scalar_offset_multiplier(offset, multiplier), m)

    def vector_offset_multiplier_constrain(
        self, offset: Scalar, multiplier: Scalar, m: int, lp: LogProbTarget | None = None
    ) -> Array:
        return self._fill_vector(lambda: self.scalar_offset_multiplier_constrain(offset, multiplier, lp), m)

    def row_vector_offset_multiplier(self, offset: Scalar, multiplier: Scalar, m: int) -> Array:
        return self._fill_row_vector(lambda: self.scalar_offset_multiplier(offset, multiplier), m)

    def row_vector_offset_multiplier_constrain(
        self, offset: Scalar, multiplier: Scalar, m: int, lp: LogProbTarget | None = None
    ) -> Array:
        return self._fill_row_vector(lambda: self.scalar_offset_multiplier_constrain(offset, multiplier, lp), m)

    def matrix_offset_multiplier(self, offset: Scalar, multiplier: Scalar, n: int, m: int) -> Array:
        return self._fill_matrix(lambda: self.scalar_offset_multiplier(offset, multiplier), n, m)

    def matrix_offset_multiplier_constrain(
        self, offset: Scalar, multiplier: Scalar, n: int, m: int, lp: LogProbTarget | None = None
    ) -> Array:
        return self._fill_matrix(lambda: self.scalar_offset_multiplier_constrain(offset, multiplier, lp), n, m)

    def sparse_matrix_offset_multiplier(
        self, offset: Scalar, multiplier: Scalar, rows: IntSequence, cols: IntSequence, n: int, m: int
    ) -> sparse.BCOO:
        return self._fill_sparse(lambda: self.scalar_offset_multiplier(offset, multiplier), rows, cols, n, m)

    def sparse_matrix_offset_multiplier_constrain(
        self,
        offset: Scalar,
        multiplier: Scalar,
        rows: IntSequence,
        cols: IntSequence,
        n: int,
        m: int,
        lp: LogProbTarget | None = None,
    ) -> sparse.BCOO:
        return self._fill_sparse(
            lambda: self.scalar_offset_multiplier_constrain(offset, multiplier, lp), rows, cols, n, m
        )

    def __repr__(self) -> str:
        return (
            f"Reader(pos={self._pos}, available={self.available()}, "
            f"int_pos={self._int_pos}, available_i={self.available_i()})"
        )


__all__ = ["Reader"]
