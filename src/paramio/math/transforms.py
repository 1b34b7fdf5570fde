"""Constraining transforms and their inverses.

Every ``*_constrain`` function maps unconstrained reals into a constrained
space. When an accumulator ``lp`` is supplied, the log absolute Jacobian
determinant of the map is added to it; without one the Jacobian term is never
computed. The ``*_free`` functions invert the maps and validate their input
first, so they expect concrete values.

All constrain paths use :mod:`jax.numpy` only and stay differentiable.
"""

from __future__ import annotations

import math
from typing import Optional

import numpy as np
import jax
import jax.numpy as jnp

from . import checks
from .linalg import (
    as_real_array,
    diag_positions_rowwise,
    lower_tri_rowwise,
    multiply_lower_tri_self_transpose,
)
from ..errors import InvalidShape
from ..typing import Array, LogProbTarget, Scalar

_LOG_TWO = math.log(2.0)


def _concrete(value: Scalar) -> Optional[float]:
    """``float(value)``, or ``None`` while tracing."""

    try:
        return float(value)
    except jax.errors.ConcretizationTypeError:
        return None


def _is_inf(bound: Scalar, sign: int) -> bool:
    value = _concrete(bound)
    return value is not None and value == sign * math.inf


def _check_size(function: str, x: Array, expected: int) -> None:
    if x.shape[0] != expected:
        raise InvalidShape(f"{function}: expected {expected} unconstrained values, received {x.shape[0]}")


# ---------------------------------------------------------------------------
# Scalar (and elementwise) transforms
# ---------------------------------------------------------------------------


def identity_constrain(x: Scalar, lp: LogProbTarget | None = None) -> Scalar:
    """Return ``x`` unchanged; the Jacobian is one."""

    return x


def identity_free(y: Scalar) -> Scalar:
    return y


def positive_constrain(x: Scalar, lp: LogProbTarget | None = None) -> Array:
    """``exp(x)``."""

    x = jnp.asarray(x)
    if lp is not None:
        lp.increment(jnp.sum(x))
    return jnp.exp(x)


def positive_free(y: Scalar) -> Array:
    checks.check_positive("positive_free", "Positive variable", y)
    return jnp.log(jnp.asarray(y))


def lb_constrain(x: Scalar, lb: Scalar, lp: LogProbTarget | None = None) -> Array:
    """``exp(x) + lb``; an ``lb`` of ``-inf`` leaves ``x`` unconstrained."""

    if _is_inf(lb, -1):
        return identity_constrain(x, lp)
    x = jnp.asarray(x)
    if lp is not None:
        lp.increment(jnp.sum(x))
    return jnp.exp(x) + lb


def lb_free(y: Scalar, lb: Scalar) -> Array:
    if _is_inf(lb, -1):
        return identity_free(y)
    checks.check_greater_or_equal("lb_free", "Lower bounded variable", y, lb)
    return jnp.log(jnp.asarray(y) - lb)


def ub_constrain(x: Scalar, ub: Scalar, lp: LogProbTarget | None = None) -> Array:
    """``ub - exp(x)``; an ``ub`` of ``+inf`` leaves ``x`` unconstrained."""

    if _is_inf(ub, 1):
        return identity_constrain(x, lp)
    x = jnp.asarray(x)
    if lp is not None:
        lp.increment(jnp.sum(x))
    return ub - jnp.exp(x)


def ub_free(y: Scalar, ub: Scalar) -> Array:
    if _is_inf(ub, 1):
        return identity_free(y)
    checks.check_less_or_equal("ub_free", "Upper bounded variable", y, ub)
    return jnp.log(ub - jnp.asarray(y))


def check_bound_order(function: str, lb: Scalar, ub: Scalar) -> None:
    """Raise :class:`~paramio.errors.BoundInconsistent` when concrete ``lb > ub``."""

    low, high = _concrete(lb), _concrete(ub)
    if low is None or high is None:
        return
    checks.check_consistent_bounds(function, low, high)


def lub_constrain(x: Scalar, lb: Scalar, ub: Scalar, lp: LogProbTarget | None = None) -> Array:
    """``lb + (ub - lb) * logistic(x)``.

    Infinite bounds fall back to the one-sided transforms, or to the
    identity when both are infinite.

    Equal bounds are accepted: the result is ``lb`` and the log-Jacobian
    term is ``-inf``.
    """

    lb_inf, ub_inf = _is_inf(lb, -1), _is_inf(ub, 1)
    if lb_inf and ub_inf:
        return identity_constrain(x, lp)
    if lb_inf:
        return ub_constrain(x, ub, lp)
    if ub_inf:
        return lb_constrain(x, lb, lp)
    check_bound_order("lub_constrain", lb, ub)
    x = jnp.asarray(x)
    diff = ub - lb
    if lp is not None:
        lp.increment(jnp.sum(jnp.log(diff) + jax.nn.log_sigmoid(x) + jax.nn.log_sigmoid(-x)))
    return lb + diff * jax.nn.sigmoid(x)


def lub_free(y: Scalar, lb: Scalar, ub: Scalar) -> Array:
    lb_inf, ub_inf = _is_inf(lb, -1), _is_inf(ub, 1)
    if lb_inf and ub_inf:
        return identity_free(y)
    if lb_inf:
        return ub_free(y, ub)
    if ub_inf:
        return lb_free(y, lb)
    check_bound_order("lub_free", lb, ub)
    checks.check_bounded("lub_free", "Bounded variable", y, lb, ub)
    u = (jnp.asarray(y) - lb) / (ub - lb)
    return jnp.log(u) - jnp.log1p(-u)


def offset_multiplier_constrain(
    x: Scalar, offset: Scalar, multiplier: Scalar, lp: LogProbTarget | None = None
) -> Array:
    """``offset + multiplier * x``; the multiplier must be positive and finite."""

    if _concrete(offset) is not None:
        checks.check_finite("offset_multiplier_constrain", "offset", offset)
    if _concrete(multiplier) is not None:
        checks.check_positive_finite("offset_multiplier_constrain", "multiplier", multiplier)
    x = jnp.asarray(x)
    if lp is not None:
        lp.increment(jnp.size(x) * jnp.log(multiplier))
    return offset + multiplier * x


def offset_multiplier_free(y: Scalar, offset: Scalar, multiplier: Scalar) -> Array:
    checks.check_finite("offset_multiplier_free", "offset", offset)
    checks.check_positive_finite("offset_multiplier_free", "multiplier", multiplier)
    return (jnp.asarray(y) - offset) / multiplier


def prob_constrain(x: Scalar, lp: LogProbTarget | None = None) -> Array:
    """``logistic(x)``."""

    x = jnp.asarray(x)
    if lp is not None:
        lp.increment(jnp.sum(jax.nn.log_sigmoid(x) + jax.nn.log_sigmoid(-x)))
    return jax.nn.sigmoid(x)


def prob_free(y: Scalar) -> Array:
    checks.check_bounded("prob_free", "Probability variable", y, 0.0, 1.0)
    y = jnp.asarray(y)
    return jnp.log(y) - jnp.log1p(-y)


def corr_constrain(x: Scalar, lp: LogProbTarget | None = None) -> Array:
    """``tanh(x)``."""

    t = jnp.tanh(jnp.asarray(x))
    if lp is not None:
        lp.increment(jnp.sum(jnp.log1p(-jnp.square(t))))
    return t


def corr_free(y: Scalar) -> Array:
    checks.check_bounded("corr_free", "Correlation variable", y, -1.0, 1.0)
    return jnp.arctanh(jnp.asarray(y))


# ---------------------------------------------------------------------------
# Vector transforms
# ---------------------------------------------------------------------------


def unit_vector_constrain(y: Array, lp: LogProbTarget | None = None) -> Array:
    """Normalise ``y``; the Jacobian term is ``-0.5 * y·y``."""

    y = as_real_array(y)
    sn = jnp.dot(y, y)
    if lp is not None:
        lp.increment(-0.5 * sn)
    return y / jnp.sqrt(sn)


def unit_vector_free(x: Array) -> Array:
    checks.check_unit_vector("unit_vector_free", "Unit vector variable", x)
    return as_real_array(x)


def simplex_constrain(y: Array, lp: LogProbTarget | None = None) -> Array:
    """Stick-breaking map from ``K - 1`` reals onto the ``K``-simplex.

    Entry ``k`` breaks off ``logistic(y[k] - log(N - k))`` of the remaining
    stick, with ``N = K - 1``, so that ``y = 0`` maps to the uniform simplex.
    """

    y = as_real_array(y)
    N = y.shape[0]
    if N == 0:
        return jnp.ones((1,), dtype=y.dtype)
    adj = y - jnp.log(jnp.arange(N, 0, -1, dtype=y.dtype))
    z = jax.nn.sigmoid(adj)
    log_stick = jnp.concatenate([jnp.zeros((1,), dtype=y.dtype), jnp.cumsum(jax.nn.log_sigmoid(-adj))])
    stick = jnp.exp(log_stick)
    if lp is not None:
        lp.increment(jnp.sum(log_stick[:N]) + jnp.sum(jax.nn.log_sigmoid(adj) + jax.nn.log_sigmoid(-adj)))
    return jnp.concatenate([stick[:N] * z, stick[N:]])


def simplex_free(x: Array) -> Array:
    checks.check_simplex("simplex_free", "Simplex variable", x)
    x = as_real_array(x)
    N = x.shape[0] - 1
    remaining = jnp.cumsum(x[::-1])[::-1]
    z = x[:N] / remaining[:N]
    return jnp.log(z) - jnp.log1p(-z) + jnp.log(jnp.arange(N, 0, -1, dtype=x.dtype))


def ordered_constrain(y: Array, lp: LogProbTarget | None = None) -> Array:
    """First element unchanged, then cumulative ``exp`` increments."""

    y = as_real_array(y)
    if y.shape[0] == 0:
        return y
    if lp is not None:
        lp.increment(jnp.sum(y[1:]))
    return jnp.concatenate([y[:1], y[0] + jnp.cumsum(jnp.exp(y[1:]))])


def ordered_free(x: Array) -> Array:
    checks.check_ordered("ordered_free", "Ordered variable", x)
    x = as_real_array(x)
    if x.shape[0] == 0:
        return x
    return jnp.concatenate([x[:1], jnp.log(jnp.diff(x))])


def positive_ordered_constrain(y: Array, lp: LogProbTarget | None = None) -> Array:
    """Cumulative sum of ``exp(y)``."""

    y = as_real_array(y)
    if lp is not None:
        lp.increment(jnp.sum(y))
    return jnp.cumsum(jnp.exp(y))


def positive_ordered_free(x: Array) -> Array:
    checks.check_positive_ordered("positive_ordered_free", "Positive ordered variable", x)
    x = as_real_array(x)
    if x.shape[0] == 0:
        return x
    return jnp.concatenate([jnp.log(x[:1]), jnp.log(jnp.diff(x))])


# ---------------------------------------------------------------------------
# Matrix transforms
# ---------------------------------------------------------------------------


def cholesky_factor_size(M: int, N: int) -> int:
    """Unconstrained length of an ``M x N`` Cholesky factor (``M >= N``)."""

    if M < N:
        raise InvalidShape(f"cholesky factor needs rows >= columns, received {M} x {N}")
    return N * (N + 1) // 2 + (M - N) * N


def cholesky_factor_constrain(x: Array, M: int, N: int, lp: LogProbTarget | None = None) -> Array:
    """Fill an ``M x N`` lower-trapezoidal factor with a positive diagonal.

    The top ``N x N`` triangle is filled row by row with ``exp`` on the
    diagonal; the remaining ``M - N`` rows are filled row by row unchanged.
    """

    x = as_real_array(x)
    _check_size("cholesky_factor_constrain", x, cholesky_factor_size(M, N))
    n_tri = N * (N + 1) // 2
    rows, cols = lower_tri_rowwise(N)
    diag = diag_positions_rowwise(N)
    head = x[:n_tri]
    head = head.at[diag].set(jnp.exp(head[diag]))
    L = jnp.zeros((M, N), dtype=x.dtype).at[rows, cols].set(head)
    if M > N:
        L = L.at[N:, :].set(jnp.reshape(x[n_tri:], (M - N, N)))
    if lp is not None:
        lp.increment(jnp.sum(x[diag]))
    return L


def _lower_to_unconstrained(L: Array) -> Array:
    M, N = L.shape
    rows, cols = lower_tri_rowwise(N)
    diag = diag_positions_rowwise(N)
    head = L[rows, cols]
    head = head.at[diag].set(jnp.log(head[diag]))
    return jnp.concatenate([head, jnp.reshape(L[N:, :], (-1,))])


def cholesky_factor_free(y: Array) -> Array:
    checks.check_cholesky_factor("cholesky_factor_free", "Cholesky factor", y)
    return _lower_to_unconstrained(jnp.asarray(y))


def cholesky_corr_constrain(y: Array, K: int, lp: LogProbTarget | None = None) -> Array:
    """Map ``K(K-1)/2`` reals to the Cholesky factor of a ``K x K`` correlation matrix.

    The reals pass through ``tanh`` to canonical partial correlations, which
    fill the strict lower triangle row by row; each row is scaled onto the
    unit sphere.
    """

    y = as_real_array(y)
    _check_size("cholesky_corr_constrain", y, K * (K - 1) // 2)
    z = corr_constrain(y, lp)
    if K == 0:
        return jnp.zeros((0, 0), dtype=y.dtype)
    x = jnp.zeros((K, K), dtype=y.dtype).at[0, 0].set(1.0)
    log_jac = jnp.zeros((), dtype=y.dtype)
    k = 0
    for i in range(1, K):
        x = x.at[i, 0].set(z[k])
        sum_sqs = jnp.square(z[k])
        k += 1
        for j in range(1, i):
            if lp is not None:
                log_jac = log_jac + 0.5 * jnp.log1p(-sum_sqs)
            value = z[k] * jnp.sqrt(1.0 - sum_sqs)
            k += 1
            x = x.at[i, j].set(value)
            sum_sqs = sum_sqs + jnp.square(value)
        x = x.at[i, i].set(jnp.sqrt(1.0 - sum_sqs))
    if lp is not None:
        lp.increment(log_jac)
    return x


def cholesky_corr_free(x: Array) -> Array:
    checks.check_cholesky_factor_corr("cholesky_corr_free", "Cholesky factor of correlation matrix", x)
    x = np.asarray(x, dtype=np.float64)
    K = x.shape[0]
    z = []
    for i in range(1, K):
        z.append(x[i, 0])
        sum_sqs = x[i, 0] ** 2
        for j in range(1, i):
            z.append(x[i, j] / math.sqrt(1.0 - sum_sqs))
            sum_sqs += x[i, j] ** 2
    return jnp.arctanh(jnp.asarray(z, dtype=jnp.result_type(float)).reshape(-1))


def cov_matrix_constrain(x: Array, K: int, lp: LogProbTarget | None = None) -> Array:
    """``L Lᵀ`` with ``L`` lower triangular, filled row by row with an ``exp`` diagonal."""

    x = as_real_array(x)
    _check_size("cov_matrix_constrain", x, K + K * (K - 1) // 2)
    L = cholesky_factor_constrain(x, K, K)
    if lp is not None:
        diag = x[diag_positions_rowwise(K)]
        weights = jnp.asarray(K - np.arange(K) + 1, dtype=x.dtype)
        lp.increment(K * _LOG_TWO + jnp.sum(weights * diag))
    return multiply_lower_tri_self_transpose(L)


def cov_matrix_free(y: Array) -> Array:
    checks.check_cov_matrix("cov_matrix_free", "Covariance matrix", y)
    y = jnp.asarray(y)
    return _lower_to_unconstrained(jnp.linalg.cholesky(y))


def read_corr_L(cpcs: Array, K: int, lp: LogProbTarget | None = None) -> Array:
    """Cholesky factor of a correlation matrix from canonical partial correlations.

    ``cpcs`` runs column by column down the strict lower triangle. With
    ``lp``, the Jacobian of the map from partial correlations to the factor
    is added.
    """

    cpcs = as_real_array(cpcs)
    if K == 0:
        return jnp.zeros((0, 0), dtype=cpcs.dtype)
    if K == 1:
        return jnp.eye(1, dtype=cpcs.dtype)
    if lp is not None:
        counts = K - 1 - np.arange(K - 1)
        weights = jnp.asarray(np.repeat(counts - 1, counts), dtype=cpcs.dtype)
        lp.increment(0.5 * jnp.sum(weights * jnp.log1p(-jnp.square(cpcs))))

    L = jnp.zeros((K, K), dtype=cpcs.dtype).at[0, 0].set(1.0)
    pull = K - 1
    position = 0
    L = L.at[1:, 0].set(cpcs[:pull])
    acc = 1.0 - jnp.square(cpcs[:pull])
    for i in range(1, K - 1):
        position += pull
        pull = K - 1 - i
        temp = cpcs[position:position + pull]
        L = L.at[i, i].set(jnp.sqrt(acc[i - 1]))
        L = L.at[i + 1:, i].set(temp * jnp.sqrt(acc[i:]))
        acc = acc.at[i:].multiply(1.0 - jnp.square(temp))
    return L.at[K - 1, K - 1].set(jnp.sqrt(acc[K - 2]))


def corr_matrix_constrain(x: Array, K: int, lp: LogProbTarget | None = None) -> Array:
    """``K(K-1)/2`` reals to a ``K x K`` correlation matrix via ``tanh`` partial correlations."""

    x = as_real_array(x)
    _check_size("corr_matrix_constrain", x, K * (K - 1) // 2)
    cpcs = corr_constrain(x, lp)
    return multiply_lower_tri_self_transpose(read_corr_L(cpcs, K, lp))


def corr_matrix_free(y: Array) -> Array:
    checks.check_corr_matrix("corr_matrix_free", "Correlation matrix", y)
    L = np.linalg.cholesky(np.asarray(y, dtype=np.float64))
    K = L.shape[0]
    cpcs = []
    for c in range(K - 1):
        for r in range(c + 1, K):
            remaining = 1.0 - float(np.sum(L[r, :c] ** 2))
            cpcs.append(L[r, c] / math.sqrt(remaining))
    return jnp.arctanh(jnp.asarray(cpcs, dtype=jnp.result_type(float)).reshape(-1))


__all__ = [
    "identity_constrain",
    "identity_free",
    "positive_constrain",
    "positive_free",
    "lb_constrain",
    "lb_free",
    "ub_constrain",
    "ub_free",
    "check_bound_order",
    "lub_constrain",
    "lub_free",
    "offset_multiplier_constrain",
    "offset_multiplier_free",
    "prob_constrain",
    "prob_free",
    "corr_constrain",
    "corr_free",
    "unit_vector_constrain",
    "unit_vector_free",
    "simplex_constrain",
    "simplex_free",
    "ordered_constrain",
    "ordered_free",
    "positive_ordered_constrain",
    "positive_ordered_free",
    "cholesky_factor_size",
    "cholesky_factor_constrain",
    "cholesky_factor_free",
    "cholesky_corr_constrain",
    "cholesky_corr_free",
    "cov_matrix_constrain",
    "cov_matrix_free",
    "read_corr_L",
    "corr_matrix_constrain",
    "corr_matrix_free",
]
