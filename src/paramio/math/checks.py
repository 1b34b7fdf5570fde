"""Validity predicates for constrained values.

Each predicate takes a ``function`` label naming the caller, a ``name`` label
describing the checked value, and the value itself. Predicates return
``None`` on success and raise :class:`~paramio.errors.ValidationError`
otherwise. Values are inspected concretely with NumPy, so these checks are
meant for plain (already constrained) reads rather than traced code.
"""

from __future__ import annotations

import numpy as np

from ..errors import BoundInconsistent, ValidationError
from ..typing import Array, Scalar

CONSTRAINT_TOLERANCE = 1e-8


def _as_array(y: Array | Scalar) -> np.ndarray:
    return np.asarray(y, dtype=np.float64)


def _index_label(name: str, index: tuple[int, ...]) -> str:
    if not index:
        return name
    return f"{name}[{', '.join(str(i) for i in index)}]"


def _check_elementwise(function: str, name: str, y: Array | Scalar, ok, requirement: str) -> None:
    values = _as_array(y)
    mask = ok(values)
    if np.all(mask):
        return
    bad = tuple(int(i) for i in np.argwhere(~mask)[0]) if values.ndim else ()
    raise ValidationError(function, _index_label(name, bad), f"is {values[bad]}, but must be {requirement}")


def check_finite(function: str, name: str, y: Array | Scalar) -> None:
    """Every element of ``y`` is finite."""

    _check_elementwise(function, name, y, np.isfinite, "finite")


def check_positive(function: str, name: str, y: Array | Scalar) -> None:
    """Every element of ``y`` is strictly positive (NaN fails)."""

    _check_elementwise(function, name, y, lambda v: v > 0, "positive")


def check_positive_finite(function: str, name: str, y: Array | Scalar) -> None:
    """Every element of ``y`` is positive and finite."""

    _check_elementwise(function, name, y, lambda v: (v > 0) & np.isfinite(v), "positive finite")


def check_greater_or_equal(function: str, name: str, y: Array | Scalar, low: Scalar) -> None:
    """Every element of ``y`` is ``>= low``."""

    low = float(low)
    _check_elementwise(function, name, y, lambda v: v >= low, f"greater than or equal to {low}")


def check_less_or_equal(function: str, name: str, y: Array | Scalar, high: Scalar) -> None:
    """Every element of ``y`` is ``<= high``."""

    high = float(high)
    _check_elementwise(function, name, y, lambda v: v <= high, f"less than or equal to {high}")


def check_bounded(function: str, name: str, y: Array | Scalar, low: Scalar, high: Scalar) -> None:
    """Every element of ``y`` lies in the closed interval ``[low, high]``."""

    low = float(low)
    high = float(high)
    _check_elementwise(
        function, name, y, lambda v: (v >= low) & (v <= high), f"in the interval [{low}, {high}]"
    )


def check_consistent_bounds(function: str, lb: Scalar, ub: Scalar) -> None:
    """Raise :class:`~paramio.errors.BoundInconsistent` when ``lb > ub``."""

    if float(lb) > float(ub):
        raise BoundInconsistent(function, lb, ub)


def _check_nonempty(function: str, name: str, values: np.ndarray) -> None:
    if values.size == 0:
        raise ValidationError(function, name, "has size 0, but must have a non-zero size")


def check_unit_vector(function: str, name: str, theta: Array, tol: float = CONSTRAINT_TOLERANCE) -> None:
    """``theta`` is non-empty with squared norm within ``tol`` of one."""

    values = _as_array(theta)
    _check_nonempty(function, name, values)
    ssq = float(np.dot(values.ravel(), values.ravel()))
    if not abs(1.0 - ssq) <= tol:
        raise ValidationError(
            function, name, f"is not a valid unit vector. The sum of the squares of the elements should be 1, but is {ssq}"
        )


def check_simplex(function: str, name: str, theta: Array, tol: float = CONSTRAINT_TOLERANCE) -> None:
    """``theta`` is non-empty, non-negative and sums to one within ``tol``."""

    values = _as_array(theta)
    _check_nonempty(function, name, values)
    total = float(np.sum(values))
    if not abs(1.0 - total) <= tol:
        raise ValidationError(function, name, f"is not a valid simplex. sum({name}) = {total}, but should be 1")
    negative = np.flatnonzero(~(values.ravel() >= 0))
    if negative.size:
        i = int(negative[0])
        raise ValidationError(
            function, name, f"is not a valid simplex. {name}[{i}] = {values.ravel()[i]}, but should be greater than or equal to 0"
        )


def check_ordered(function: str, name: str, y: Array) -> None:
    """``y`` is strictly increasing."""

    values = _as_array(y).ravel()
    for n in range(1, values.size):
        if not values[n] > values[n - 1]:
            raise ValidationError(
                function,
                name,
                f"is not a valid ordered vector. The element at {n} is {values[n]}, "
                f"but should be greater than the previous element, {values[n - 1]}",
            )


def check_positive_ordered(function: str, name: str, y: Array) -> None:
    """``y`` is strictly increasing with a non-negative first element."""

    values = _as_array(y).ravel()
    if values.size and values[0] < 0:
        raise ValidationError(
            function, name, f"is not a valid positive_ordered vector. The element at 0 is {values[0]}, but should be positive"
        )
    check_ordered(function, name, values)


def _check_square(function: str, name: str, values: np.ndarray) -> None:
    if values.ndim != 2 or values.shape[0] != values.shape[1]:
        raise ValidationError(function, name, f"has shape {values.shape}, but must be square")


def _check_lower_triangular(function: str, name: str, values: np.ndarray) -> None:
    upper = np.triu(values, k=1)
    if np.any(upper != 0):
        i, j = (int(k) for k in np.argwhere(upper != 0)[0])
        raise ValidationError(function, f"{name}[{i}, {j}]", f"is {values[i, j]}, but {name} must be lower triangular")


def check_symmetric(function: str, name: str, y: Array, tol: float = CONSTRAINT_TOLERANCE) -> None:
    """``y`` is square and ``|y[i, j] - y[j, i]| <= tol``."""

    values = _as_array(y)
    _check_square(function, name, values)
    diff = np.abs(values - values.T)
    if np.any(~(diff <= tol)):
        i, j = (int(k) for k in np.argwhere(~(diff <= tol))[0])
        raise ValidationError(
            function, name, f"is not symmetric. {name}[{i}, {j}] = {values[i, j]}, but {name}[{j}, {i}] = {values[j, i]}"
        )


def check_pos_definite(function: str, name: str, y: Array, tol: float = CONSTRAINT_TOLERANCE) -> None:
    """``y`` is a non-empty symmetric positive definite matrix."""

    values = _as_array(y)
    _check_square(function, name, values)
    _check_nonempty(function, name, values)
    check_symmetric(function, name, values, tol)
    if np.any(np.isnan(values)):
        raise ValidationError(function, name, "is not positive definite: contains NaN")
    try:
        np.linalg.cholesky(values)
    except np.linalg.LinAlgError as exc:
        raise ValidationError(function, name, "is not positive definite") from exc


def check_cholesky_factor(function: str, name: str, y: Array) -> None:
    """``y`` is a lower-triangular ``n x m`` factor with ``n >= m`` and positive diagonal."""

    values = _as_array(y)
    if values.ndim != 2:
        raise ValidationError(function, name, f"has shape {values.shape}, but must be a matrix")
    rows, cols = values.shape
    if not cols <= rows:
        raise ValidationError(function, name, f"has {cols} columns, but must have at most {rows} (its rows)")
    if not cols > 0:
        raise ValidationError(function, name, "has 0 columns, but must have a positive number of columns")
    _check_lower_triangular(function, name, values)
    check_positive(function, name, np.diag(values))


def check_cholesky_factor_corr(function: str, name: str, y: Array, tol: float = CONSTRAINT_TOLERANCE) -> None:
    """``y`` is a square lower-triangular factor with positive diagonal and unit-norm rows."""

    values = _as_array(y)
    _check_square(function, name, values)
    _check_lower_triangular(function, name, values)
    check_positive(function, name, np.diag(values))
    for i in range(values.shape[0]):
        check_unit_vector(function, f"{name}[{i}, :]", values[i], tol)


def check_cov_matrix(function: str, name: str, y: Array, tol: float = CONSTRAINT_TOLERANCE) -> None:
    """``y`` is a valid covariance matrix."""

    check_pos_definite(function, name, y, tol)


def check_corr_matrix(function: str, name: str, y: Array, tol: float = CONSTRAINT_TOLERANCE) -> None:
    """``y`` is positive definite with a unit diagonal."""

    values = _as_array(y)
    _check_square(function, name, values)
    _check_nonempty(function, name, values)
    diag = np.diag(values)
    off = np.flatnonzero(~(np.abs(diag - 1.0) <= tol))
    if off.size:
        k = int(off[0])
        raise ValidationError(
            function, name, f"is not a valid correlation matrix. {name}[{k}, {k}] is {diag[k]}, but should be near 1"
        )
    check_pos_definite(function, name, values, tol)


__all__ = [
    "CONSTRAINT_TOLERANCE",
    "check_finite",
    "check_positive",
    "check_positive_finite",
    "check_greater_or_equal",
    "check_less_or_equal",
    "check_bounded",
    "check_consistent_bounds",
    "check_unit_vector",
    "check_simplex",
    "check_ordered",
    "check_positive_ordered",
    "check_symmetric",
    "check_pos_definite",
    "check_cholesky_factor",
    "check_cholesky_factor_corr",
    "check_cov_matrix",
    "check_corr_matrix",
]
