"""Constraint kinds as values.

Each kind is a frozen dataclass that knows which containers it applies to,
how many unconstrained and constrained values it consumes for given
dimensions, how to read itself through a :class:`~paramio.reader.Reader`, and
how to map a constrained value back to the raw reals a constrain read would
consume.

Containers are ``"real"``, ``"int"``, ``"vector"``, ``"row_vector"`` and
``"matrix"``. Dimensions are ``()`` for scalars, ``(m,)`` for vectors and
row vectors, ``(n, m)`` for matrices, and ``(k,)`` for the square matrix
families (``cov_matrix``, ``corr_matrix``, ``cholesky_factor_corr``).
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, ClassVar, Dict, Mapping, Sequence, Type

import jax.numpy as jnp

from .errors import InvalidShape
from .math import transforms
from .math.linalg import as_real_array, flatten_column_major
from .reader import Reader
from .typing import Array, Dims, LogProbTarget, Scalar

CONTAINERS = ("real", "int", "vector", "row_vector", "matrix")

_ARITY = {"real": 0, "int": 0, "vector": 1, "row_vector": 1, "matrix": 2}
_PREFIX = {"real": "scalar", "int": "integer", "vector": "vector", "row_vector": "row_vector", "matrix": "matrix"}


def _coerce_dims(dims: Sequence[int] | int) -> Dims:
    if isinstance(dims, int):
        dims = (dims,)
    out = tuple(int(d) for d in dims)
    if any(d < 0 for d in out):
        raise InvalidShape(f"dimensions must be non-negative, received {out}")
    return out


def _flatten(value: Any, container: str) -> Array:
    if container == "matrix":
        return flatten_column_major(jnp.asarray(value))
    return as_real_array(value)


@dataclass(frozen=True)
class Constraint:
    """Base class for constraint kinds."""

    kind: ClassVar[str] = ""
    containers: ClassVar[tuple[str, ...]] = ()

    def arity(self, container: str) -> int:
        return _ARITY[container]

    def check_container(self, container: str, dims: Sequence[int] | int = ()) -> Dims:
        """Validate ``container`` and ``dims`` for this kind and return the dims as a tuple."""

        if container not in self.containers:
            raise InvalidShape(f"{self.kind} does not apply to container {container!r}; expected one of {self.containers}")
        dims = _coerce_dims(dims)
        if len(dims) != self.arity(container):
            raise InvalidShape(
                f"{self.kind} {container} takes {self.arity(container)} dimension(s), received {dims}"
            )
        return dims

    def constrained_size(self, container: str, dims: Sequence[int] | int = ()) -> int:
        """Reals consumed by a plain read."""

        dims = self.check_container(container, dims)
        if container == "int":
            return 0
        size = 1
        for d in dims:
            size *= d
        return size

    def unconstrained_size(self, container: str, dims: Sequence[int] | int = ()) -> int:
        """Reals consumed by a constrain read."""

        return self.constrained_size(container, dims)

    def integer_size(self, container: str, dims: Sequence[int] | int = ()) -> int:
        """Integers consumed by either read."""

        self.check_container(container, dims)
        return 1 if container == "int" else 0

    def read(
        self,
        reader: Reader,
        container: str,
        dims: Sequence[int] | int = (),
        lp: LogProbTarget | None = None,
        constrain: bool = True,
    ) -> Any:
        raise NotImplementedError

    def free(self, value: Any, container: str) -> Array:
        """Unconstrained reals a constrain read of ``value`` would consume."""

        raise NotImplementedError


@dataclass(frozen=True)
class _Elementwise(Constraint):
    """Kinds applied independently to every element of a container."""

    suffix: ClassVar[str] = ""
    containers: ClassVar[tuple[str, ...]] = CONTAINERS

    def _args(self) -> tuple:
        return ()

    def _method_name(self, container: str) -> str:
        prefix = _PREFIX[container]
        return f"{prefix}_{self.suffix}" if self.suffix else prefix

    def read(self, reader, container, dims=(), lp=None, constrain=True):
        dims = self.check_container(container, dims)
        name = self._method_name(container)
        args = self._args() + dims
        if constrain:
            return getattr(reader, f"{name}_constrain")(*args, lp)
        return getattr(reader, name)(*args)

    def _free_values(self, y: Array) -> Array:
        return y

    def free(self, value, container):
        shape = jnp.shape(value) if container != "real" else ()
        if container == "row_vector" and len(shape) == 2:
            shape = shape[1:]
        self.check_container(container, shape)
        if container == "int":
            raise InvalidShape(f"{self.kind} int values are written as integers, not reals")
        return jnp.reshape(self._free_values(_flatten(value, container)), (-1,))


@dataclass(frozen=True)
class Unconstrained(_Elementwise):
    kind: ClassVar[str] = "unconstrained"


@dataclass(frozen=True)
class Lower(_Elementwise):
    lb: Scalar

    kind: ClassVar[str] = "lower"
    suffix: ClassVar[str] = "lb"

    def _args(self):
        return (self.lb,)

    def _free_values(self, y):
        return transforms.lb_free(y, self.lb)


@dataclass(frozen=True)
class Upper(_Elementwise):
    ub: Scalar

    kind: ClassVar[str] = "upper"
    suffix: ClassVar[str] = "ub"

    def _args(self):
        return (self.ub,)

    def _free_values(self, y):
        return transforms.ub_free(y, self.ub)


@dataclass(frozen=True)
class LowerUpper(_Elementwise):
    lb: Scalar
    ub: Scalar

    kind: ClassVar[str] = "lower_upper"
    suffix: ClassVar[str] = "lub"

    def _args(self):
        return (self.lb, self.ub)

    def _free_values(self, y):
        return transforms.lub_free(y, self.lb, self.ub)


@dataclass(frozen=True)
class OffsetMultiplier(_Elementwise):
    offset: Scalar = 0.0
    multiplier: Scalar = 1.0

    kind: ClassVar[str] = "offset_multiplier"
    suffix: ClassVar[str] = "offset_multiplier"
    containers: ClassVar[tuple[str, ...]] = ("real", "vector", "row_vector", "matrix")

    def _args(self):
        return (self.offset, self.multiplier)

    def _free_values(self, y):
        return transforms.offset_multiplier_free(y, self.offset, self.multiplier)


@dataclass(frozen=True)
class _RealOnly(_Elementwise):
    containers: ClassVar[tuple[str, ...]] = ("real",)
    method: ClassVar[str] = ""

    def _method_name(self, container):
        return self.method


@dataclass(frozen=True)
class Positive(_RealOnly):
    kind: ClassVar[str] = "positive"
    method: ClassVar[str] = "scalar_pos"

    def _free_values(self, y):
        return transforms.positive_free(y)


@dataclass(frozen=True)
class Probability(_RealOnly):
    kind: ClassVar[str] = "probability"
    method: ClassVar[str] = "prob"

    def _free_values(self, y):
        return transforms.prob_free(y)


@dataclass(frozen=True)
class Correlation(_RealOnly):
    kind: ClassVar[str] = "correlation"
    method: ClassVar[str] = "corr"

    def _free_values(self, y):
        return transforms.corr_free(y)


@dataclass(frozen=True)
class _Structured(Constraint):
    """Kinds whose transform couples the elements of a vector or matrix."""

    method: ClassVar[str] = ""

    def read(self, reader, container, dims=(), lp=None, constrain=True):
        dims = self.check_container(container, dims)
        if constrain:
            return getattr(reader, f"{self.method}_constrain")(*dims, lp)
        return getattr(reader, self.method)(*dims)


@dataclass(frozen=True)
class UnitVector(_Structured):
    kind: ClassVar[str] = "unit_vector"
    containers: ClassVar[tuple[str, ...]] = ("vector",)
    method: ClassVar[str] = "unit_vector"

    def unconstrained_size(self, container, dims=()):
        (k,) = self.check_container(container, dims)
        if k == 0:
            raise InvalidShape("unit vectors cannot be size 0.")
        return k

    def free(self, value, container):
        self.check_container(container, jnp.shape(value))
        return transforms.unit_vector_free(value)


@dataclass(frozen=True)
class Simplex(_Structured):
    kind: ClassVar[str] = "simplex"
    containers: ClassVar[tuple[str, ...]] = ("vector",)
    method: ClassVar[str] = "simplex"

    def unconstrained_size(self, container, dims=()):
        (k,) = self.check_container(container, dims)
        if k == 0:
            raise InvalidShape("simplexes cannot be size 0.")
        return k - 1

    def free(self, value, container):
        self.check_container(container, jnp.shape(value))
        return transforms.simplex_free(value)


@dataclass(frozen=True)
class Ordered(_Structured):
    kind: ClassVar[str] = "ordered"
    containers: ClassVar[tuple[str, ...]] = ("vector",)
    method: ClassVar[str] = "ordered"

    def free(self, value, container):
        self.check_container(container, jnp.shape(value))
        return transforms.ordered_free(value)


@dataclass(frozen=True)
class PositiveOrdered(_Structured):
    kind: ClassVar[str] = "positive_ordered"
    containers: ClassVar[tuple[str, ...]] = ("vector",)
    method: ClassVar[str] = "positive_ordered"

    def free(self, value, container):
        self.check_container(container, jnp.shape(value))
        return transforms.positive_ordered_free(value)


@dataclass(frozen=True)
class CholeskyFactorCov(_Structured):
    kind: ClassVar[str] = "cholesky_factor_cov"
    containers: ClassVar[tuple[str, ...]] = ("matrix",)
    method: ClassVar[str] = "cholesky_factor_cov"

    def unconstrained_size(self, container, dims=()):
        n, m = self.check_container(container, dims)
        return transforms.cholesky_factor_size(n, m)

    def free(self, value, container):
        self.check_container(container, jnp.shape(value))
        return transforms.cholesky_factor_free(value)


@dataclass(frozen=True)
class _Square(_Structured):
    containers: ClassVar[tuple[str, ...]] = ("matrix",)

    def arity(self, container):
        return 1

    def constrained_size(self, container, dims=()):
        (k,) = self.check_container(container, dims)
        return k * k

    def free(self, value, container):
        shape = jnp.shape(value)
        if len(shape) != 2 or shape[0] != shape[1]:
            raise InvalidShape(f"{self.kind} value must be square, received shape {shape}")
        self.check_container(container, shape[:1])
        return self._free_square(value)

    def _free_square(self, value: Array) -> Array:
        raise NotImplementedError


@dataclass(frozen=True)
class CholeskyFactorCorr(_Square):
    kind: ClassVar[str] = "cholesky_factor_corr"
    method: ClassVar[str] = "cholesky_factor_corr"

    def unconstrained_size(self, container, dims=()):
        (k,) = self.check_container(container, dims)
        return k * (k - 1) // 2

    def _free_square(self, value):
        return transforms.cholesky_corr_free(value)


@dataclass(frozen=True)
class CovMatrix(_Square):
    kind: ClassVar[str] = "cov_matrix"
    method: ClassVar[str] = "cov_matrix"

    def unconstrained_size(self, container, dims=()):
        (k,) = self.check_container(container, dims)
        return k + k * (k - 1) // 2

    def _free_square(self, value):
        return transforms.cov_matrix_free(value)


@dataclass(frozen=True)
class CorrMatrix(_Square):
    kind: ClassVar[str] = "corr_matrix"
    method: ClassVar[str] = "corr_matrix"

    def unconstrained_size(self, container, dims=()):
        (k,) = self.check_container(container, dims)
        return k * (k - 1) // 2

    def _free_square(self, value):
        return transforms.corr_matrix_free(value)


CONSTRAINT_TYPES: Dict[str, Type[Constraint]] = {
    cls.kind: cls
    for cls in (
        Unconstrained,
        Lower,
        Upper,
        LowerUpper,
        OffsetMultiplier,
        Positive,
        Probability,
        Correlation,
        UnitVector,
        Simplex,
        Ordered,
        PositiveOrdered,
        CholeskyFactorCov,
        CholeskyFactorCorr,
        CovMatrix,
        CorrMatrix,
    )
}
CONSTRAINT_TYPES["none"] = Unconstrained


def constraint_from_mapping(entry: Mapping[str, Any] | str | None) -> Constraint:
    """Build a constraint from a config entry such as ``{"type": "lower", "lb": 0}``.

    A bare string names a parameterless kind; ``None`` means unconstrained.
    """

    if entry is None:
        return Unconstrained()
    if isinstance(entry, str):
        entry = {"type": entry}
    params = dict(entry)
    type_name = str(params.pop("type", "unconstrained"))
    try:
        cls = CONSTRAINT_TYPES[type_name]
    except KeyError as exc:
        raise ValueError(f"Unknown constraint type {type_name!r}; expected one of {sorted(CONSTRAINT_TYPES)}") from exc
    allowed = {f.name for f in fields(cls)}
    unknown = set(params) - allowed
    if unknown:
        raise ValueError(f"Constraint {type_name!r} got unexpected parameters {sorted(unknown)}")
    return cls(**{key: float(value) for key, value in params.items()})


__all__ = [
    "CONTAINERS",
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
    "CONSTRAINT_TYPES",
    "constraint_from_mapping",
]
