"""Constraint kinds and parameter layouts."""

from __future__ import annotations

import math

import numpy as np
import pytest

from paramio import (
    ConsumptionLedger,
    CholeskyFactorCorr,
    CholeskyFactorCov,
    Correlation,
    CorrMatrix,
    CovMatrix,
    InvalidShape,
    LogProbAccumulator,
    Lower,
    LowerUpper,
    OffsetMultiplier,
    Ordered,
    ParameterDecl,
    ParameterLayout,
    Positive,
    PositiveOrdered,
    Probability,
    Reader,
    Simplex,
    Unconstrained,
    UnitVector,
    Upper,
    constraint_from_mapping,
    layout_from_config,
)


DECLS = [
    ParameterDecl("alpha", "real"),
    ParameterDecl("sigma", "real", constraint=Positive()),
    ParameterDecl("n", "int", constraint=LowerUpper(0, 10)),
    ParameterDecl("beta", "vector", (3,), Lower(-1.0)),
    ParameterDecl("gamma", "row_vector", (2,), Upper(2.0)),
    ParameterDecl("B", "matrix", (2, 3), LowerUpper(-2.0, 5.0)),
    ParameterDecl("z", "matrix", (2, 2), OffsetMultiplier(1.0, 3.0)),
    ParameterDecl("p", "real", constraint=Probability()),
    ParameterDecl("rho", "real", constraint=Correlation()),
    ParameterDecl("u", "vector", (3,), UnitVector()),
    ParameterDecl("theta", "vector", (4,), Simplex()),
    ParameterDecl("cuts", "vector", (3,), Ordered()),
    ParameterDecl("scales", "vector", (2,), PositiveOrdered()),
    ParameterDecl("L_cov", "matrix", (3, 2), CholeskyFactorCov()),
    ParameterDecl("L_corr", "matrix", (3,), CholeskyFactorCorr()),
    ParameterDecl("Sigma", "matrix", (3,), CovMatrix()),
    ParameterDecl("Omega", "matrix", (3,), CorrMatrix()),
]


@pytest.fixture
def layout() -> ParameterLayout:
    return ParameterLayout(tuple(DECLS))


def test_sizes_follow_the_table():
    sizes = {d.name: (d.unconstrained_size, d.constrained_size) for d in DECLS}
    assert sizes["alpha"] == (1, 1)
    assert sizes["n"] == (0, 0)
    assert sizes["B"] == (6, 6)
    assert sizes["theta"] == (3, 4)
    assert sizes["L_cov"] == (5, 6)
    assert sizes["L_corr"] == (3, 9)
    assert sizes["Sigma"] == (6, 9)
    assert sizes["Omega"] == (3, 9)


@pytest.mark.parametrize("decl", DECLS, ids=lambda d: d.name)
def test_read_advances_by_declared_size(decl):
    rng = np.random.default_rng(3)
    reader = Reader(list(rng.normal(scale=0.3, size=decl.unconstrained_size + 2)), [4])

    value = decl.read(reader, lp=LogProbAccumulator())

    assert reader.pos == decl.unconstrained_size
    assert reader.int_pos == decl.integer_size
    if decl.container == "row_vector":
        assert np.shape(value) == (1,) + decl.dims
    elif decl.container == "matrix" and len(decl.dims) == 1:
        assert np.shape(value) == decl.dims * 2
    elif decl.container != "int":
        assert np.shape(value) == decl.dims


def test_layout_round_trip(layout):
    rng = np.random.default_rng(8)
    data_r = rng.normal(scale=0.4, size=layout.num_unconstrained())
    data_i = [7]

    values = layout.read(Reader(data_r, data_i))
    raw_r, raw_i = layout.unconstrain(values)
    again = layout.read(Reader(raw_r, raw_i))

    assert raw_r.shape == data_r.shape
    assert raw_i == data_i
    assert list(values) == layout.names()
    for name in layout.names():
        np.testing.assert_allclose(np.asarray(again[name]), np.asarray(values[name]), atol=1e-9)
    np.testing.assert_allclose(np.asarray(raw_r)[:3], data_r[:3], atol=1e-9)


def test_layout_plain_read_of_constrained_values(layout):
    rng = np.random.default_rng(2)
    values = layout.read(Reader(rng.normal(scale=0.4, size=layout.num_unconstrained()), [3]))

    flat = []
    for decl in layout:
        if decl.container == "int":
            continue
        flat.extend(np.asarray(values[decl.name], dtype=np.float64).T.reshape(-1))
    reader = Reader(flat, [3])
    again = layout.read(reader, constrain=False)

    assert reader.pos == layout.num_constrained() == len(flat)
    for name in layout.names():
        np.testing.assert_allclose(np.asarray(again[name]), np.asarray(values[name]), atol=1e-12)


def test_layout_ledger_and_jacobian(layout):
    data_r = np.full(layout.num_unconstrained(), 0.1)
    ledger = ConsumptionLedger()
    lp = LogProbAccumulator()

    layout.read(Reader(data_r, [1]), lp=lp, ledger=ledger, check_finite=True)

    assert ledger.scalars == layout.num_unconstrained()
    assert ledger.integers == layout.num_integers() == 1
    assert ledger.per_parameter["theta"] == {"scalars": 3, "integers": 0}
    assert ledger.per_parameter["n"] == {"scalars": 0, "integers": 1}
    assert np.isfinite(float(lp))
    assert float(lp) != 0.0


def test_layout_rejects_duplicates_and_missing_values():
    with pytest.raises(ValueError):
        ParameterLayout((ParameterDecl("a"), ParameterDecl("a")))
    with pytest.raises(KeyError):
        ParameterLayout((ParameterDecl("a"),)).unconstrain({})


@pytest.mark.parametrize(
    "container, dims, constraint",
    [
        ("vector", (), Unconstrained()),
        ("real", (), Simplex()),
        ("int", (), OffsetMultiplier()),
        ("matrix", (3,), Lower(0.0)),
        ("vector", (-1,), Ordered()),
    ],
)
def test_decl_rejects_unsupported_shapes(container, dims, constraint):
    with pytest.raises(InvalidShape):
        ParameterDecl("x", container, dims, constraint)


def test_unconstrain_rejects_values_outside_the_domain():
    layout = ParameterLayout((ParameterDecl("sigma", "real", constraint=Positive()),))
    with pytest.raises(ValueError):
        layout.unconstrain({"sigma": -1.0})


def test_constraint_from_mapping():
    assert constraint_from_mapping(None) == Unconstrained()
    assert constraint_from_mapping("simplex") == Simplex()
    assert constraint_from_mapping({"type": "lower_upper", "lb": 0, "ub": 1}) == LowerUpper(0.0, 1.0)
    assert constraint_from_mapping({"type": "offset_multiplier", "multiplier": 2}) == OffsetMultiplier(0.0, 2.0)
    assert constraint_from_mapping({"type": "upper", "ub": "inf"}) == Upper(math.inf)
    with pytest.raises(ValueError):
        constraint_from_mapping({"type": "banana"})
    with pytest.raises(ValueError):
        constraint_from_mapping({"type": "lower", "ub": 1.0})


def test_layout_from_config():
    layout = layout_from_config(
        [
            {"name": "mu", "container": "vector", "dims": 2},
            {"name": "tau", "constraint": {"type": "lower", "lb": 0.0}},
            {"name": "Omega", "container": "matrix", "dims": [2], "constraint": "corr_matrix"},
        ]
    )
    assert layout.names() == ["mu", "tau", "Omega"]
    assert layout.num_unconstrained() == 2 + 1 + 1
    assert layout.num_constrained() == 2 + 1 + 4


@pytest.mark.parametrize("constraint", [UnitVector(), Simplex()])
def test_zero_size_unit_vector_and_simplex_rejected_by_size(constraint):
    with pytest.raises(InvalidShape):
        constraint.unconstrained_size("vector", (0,))
