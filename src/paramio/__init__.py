"""paramio
=================

Sequential reader that rebuilds constrained model variables (bounded scalars,
simplices, ordered vectors, Cholesky factors, covariance and correlation
matrices) from the flat unconstrained stream a sampler works in, optionally
accumulating the log absolute Jacobian of every transform.
"""

from .utils import jax_setup  # noqa: F401

from .constraints import (
    Constraint,
    CholeskyFactorCorr,
    CholeskyFactorCov,
    Correlation,
    CorrMatrix,
    CovMatrix,
    Lower,
    LowerUpper,
    OffsetMultiplier,
    Ordered,
    Positive,
    PositiveOrdered,
    Probability,
    Simplex,
    Unconstrained,
    UnitVector,
    Upper,
    constraint_from_mapping,
)
from .errors import BoundInconsistent, BufferExhausted, InvalidShape, ReaderError, ValidationError
from .jacobian import LogProbAccumulator
from .layout import ParameterDecl, ParameterLayout, layout_from_config
from .reader import Reader
from .config import AppConfig, load_app_config
from .utils.logging import ConsumptionLedger, setup_logging

__all__ = [
    "Reader",
    "LogProbAccumulator",
    "Constraint",
    "Unconstrained",
    "Lower",
    "Upper",
    "LowerUpper",
    "OffsetMultiplier",
    "Positive",
    "Probability",
    "Correlation",
    "UnitVector",
    "Simplex",
    "Ordered",
    "PositiveOrdered",
    "CholeskyFactorCov",
    "CholeskyFactorCorr",
    "CovMatrix",
    "CorrMatrix",
    "constraint_from_mapping",
    "ParameterDecl",
    "ParameterLayout",
    "layout_from_config",
    "AppConfig",
    "load_app_config",
    "ConsumptionLedger",
    "setup_logging",
    "ReaderError",
    "BufferExhausted",
    "InvalidShape",
    "BoundInconsistent",
    "ValidationError",
]
