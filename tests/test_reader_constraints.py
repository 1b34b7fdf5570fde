"""Plain, constrain and Jacobian-constrain accessors of :class:`Reader`."""

from __future__ import annotations

import math

import numpy as np
import pytest

from paramio import (
    BoundInconsistent,
    InvalidShape,
    LogProbAccumulator,
    Reader,
    ValidationError,
)


def test_simplex_constrain_consumes_k_minus_one():
    reader = Reader([0.3, -0.7, 9.0])

    theta = np.asarray(reader.simplex_constrain(3))

    assert reader.pos == 2
    assert theta.shape == (3,)
    assert np.all(theta >= 0.0)
    np.testing.assert_allclose(theta.sum(), 1.0, atol=1e-12)


def test_simplex_constrain_zero_input_is_uniform():
    theta = np.asarray(Reader([0.0, 0.0, 0.0]).simplex_constrain(4))
    np.testing.assert_allclose(theta, np.full(4, 0.25), atol=1e-12)


def test_integer_out_of_range_is_consumed_then_rejected():
    reader = Reader([], [7, 3])

    with pytest.raises(ValidationError):
        reader.integer_lub(2, 5)
    assert reader.int_pos == 1
    assert reader.integer_lub(2, 5) == 3


def test_integer_bounds_out_of_order():
    reader = Reader([], [3])
    with pytest.raises(BoundInconsistent):
        reader.integer_lub(5, 2)
    assert reader.int_pos == 1


@pytest.mark.parametrize(
    "call",
    [
        lambda r: r.integer_lb(4),
        lambda r: r.integer_ub(2),
        lambda r: r.integer_lb_constrain(4, LogProbAccumulator()),
    ],
)
def test_integer_one_sided_bounds(call):
    reader = Reader([], [3])
    with pytest.raises(ValidationError):
        call(reader)
    assert reader.int_pos == 1


@pytest.mark.parametrize(
    "call",
    [
        lambda r: r.unit_vector(0),
        lambda r: r.simplex(0),
        lambda r: r.unit_vector_constrain(0),
        lambda r: r.simplex_constrain(0, LogProbAccumulator()),
    ],
)
def test_zero_size_unit_vector_and_simplex(call):
    reader = Reader([1.0, 2.0])
    with pytest.raises(InvalidShape):
        call(reader)
    assert reader.pos == 0


def test_cholesky_factor_cov_needs_rows_at_least_columns():
    reader = Reader(list(np.zeros(10)))
    with pytest.raises(InvalidShape):
        reader.cholesky_factor_cov_constrain(2, 3)
    assert reader.pos == 0


def test_scalar_lub_bounds_out_of_order_after_consuming():
    reader = Reader([0.5])
    with pytest.raises(BoundInconsistent):
        reader.scalar_lub(1.0, 0.0)
    assert reader.pos == 1

    with pytest.raises(BoundInconsistent):
        Reader([0.5]).scalar_lub_constrain(1.0, 0.0)


@pytest.mark.parametrize(
    "data, call",
    [
        ([-1.0], lambda r: r.scalar_pos()),
        ([0.5], lambda r: r.scalar_lb(1.0)),
        ([1.5], lambda r: r.scalar_ub(1.0)),
        ([2.0], lambda r: r.scalar_lub(0.0, 1.0)),
        ([1.5], lambda r: r.prob()),
        ([-1.5], lambda r: r.corr()),
        ([1.0, 1.0], lambda r: r.unit_vector(2)),
        ([0.5, 0.6], lambda r: r.simplex(2)),
        ([1.0, 1.0], lambda r: r.ordered(2)),
        ([-1.0, 2.0], lambda r: r.positive_ordered(2)),
        ([1.0, 0.0, 2.0, -1.0], lambda r: r.cholesky_factor_cov(2, 2)),
        ([1.0, 0.0, 0.0, 0.5], lambda r: r.cholesky_factor_corr(2)),
        ([1.0, 0.5, 0.2, 1.0], lambda r: r.cov_matrix(2)),
        ([2.0, 0.0, 0.0, 1.0], lambda r: r.corr_matrix(2)),
        ([0.5, 0.5, 0.5], lambda r: r.vector_lb(1.0, 3)),
    ],
)
def test_plain_reads_validate(data, call):
    with pytest.raises(ValidationError):
        call(Reader(data))


def test_validation_error_names_function_and_value():
    with pytest.raises(ValidationError) as excinfo:
        Reader([0.5, 0.6]).simplex(2)
    assert excinfo.value.function == "Reader.simplex"
    assert "Reader.simplex" in str(excinfo.value)


def test_offset_multiplier_rejects_bad_multiplier():
    with pytest.raises(ValidationError):
        Reader([1.0]).scalar_offset_multiplier_constrain(0.0, 0.0)
    with pytest.raises(ValidationError):
        Reader([1.0]).scalar_offset_multiplier_constrain(math.inf, 1.0)
    assert float(Reader([1.0]).scalar_offset_multiplier(0.0, -1.0)) == 1.0


def test_jacobian_accumulates_only_when_requested():
    lp = LogProbAccumulator(1.0)

    value = Reader([0.5]).scalar_lb_constrain(1.0)
    assert float(lp) == 1.0
    np.testing.assert_allclose(float(value), math.exp(0.5) + 1.0)

    value_lp = Reader([0.5]).scalar_lb_constrain(1.0, lp)
    np.testing.assert_allclose(float(value_lp), float(value))
    np.testing.assert_allclose(float(lp), 1.5)


def test_infinite_bounds_degrade():
    x = 0.3
    np.testing.assert_allclose(float(Reader([x]).scalar_lb_constrain(-math.inf)), x)
    np.testing.assert_allclose(float(Reader([x]).scalar_ub_constrain(math.inf)), x)
    np.testing.assert_allclose(float(Reader([x]).scalar_lub_constrain(-math.inf, 2.0)), 2.0 - math.exp(x))
    np.testing.assert_allclose(float(Reader([x]).scalar_lub_constrain(-1.0, math.inf)), math.exp(x) - 1.0)
    np.testing.assert_allclose(float(Reader([x]).scalar_lub_constrain(-math.inf, math.inf)), x)


def test_matrix_batch_is_column_major_and_accumulates_per_element():
    reader = Reader([0.0, 1.0, 2.0, 3.0])
    lp = LogProbAccumulator()

    mat = reader.matrix_offset_multiplier_constrain(1.0, 2.0, 2, 2, lp)

    np.testing.assert_allclose(np.asarray(mat), [[1.0, 5.0], [3.0, 7.0]])
    np.testing.assert_allclose(float(lp), 4 * math.log(2.0))
    assert reader.pos == 4


def test_row_vector_batch_shape():
    out = Reader([0.0, 0.0, 0.0]).row_vector_lub_constrain(-1.0, 1.0, 3)
    assert out.shape == (1, 3)
    np.testing.assert_allclose(np.asarray(out), np.zeros((1, 3)), atol=1e-12)


READS = [
    ("scalar_pos", (), 1, 1),
    ("prob", (), 1, 1),
    ("corr", (), 1, 1),
    ("unit_vector", (3,), 3, 3),
    ("simplex", (4,), 3, 4),
    ("ordered", (3,), 3, 3),
    ("positive_ordered", (3,), 3, 3),
    ("cholesky_factor_cov", (4, 2), 7, 8),
    ("cholesky_factor_corr", (3,), 3, 9),
    ("cov_matrix", (3,), 6, 9),
    ("corr_matrix", (3,), 3, 9),
]


@pytest.mark.parametrize("method, dims, unconstrained, constrained", READS)
def test_consumption_matches_size_table(method, dims, unconstrained, constrained):
    rng = np.random.default_rng(11)
    raw = list(rng.normal(scale=0.5, size=unconstrained))
    reader = Reader(raw + [0.0])
    lp = LogProbAccumulator()

    value = getattr(reader, f"{method}_constrain")(*dims, lp)
    assert reader.pos == unconstrained
    assert np.isfinite(float(lp))

    flat = np.asarray(value, dtype=np.float64).T.reshape(-1)
    assert flat.size == constrained
    plain = Reader(list(flat))
    again = getattr(plain, method)(*dims)
    assert plain.pos == constrained
    np.testing.assert_allclose(np.asarray(again), np.asarray(value))


def _session(reader: Reader):
    lp = LogProbAccumulator()
    out = [
        reader.scalar_lub_constrain(-2.0, 3.0, lp),
        reader.simplex_constrain(3, lp),
        reader.corr_matrix_constrain(3, lp),
        reader.matrix_ub_constrain(1.0, 2, 2, lp),
        reader.integer_lb(0),
    ]
    return out, lp


def test_identical_inputs_give_identical_results():
    rng = np.random.default_rng(5)
    data_r = rng.normal(size=10)
    data_i = [4]

    first = Reader(data_r.copy(), list(data_i))
    second = Reader(data_r.copy(), list(data_i))
    out_a, lp_a = _session(first)
    out_b, lp_b = _session(second)

    for a, b in zip(out_a, out_b):
        assert np.array_equal(np.asarray(a), np.asarray(b))
    assert float(lp_a) == float(lp_b)
    assert (first.pos, first.int_pos) == (second.pos, second.int_pos) == (10, 1)
