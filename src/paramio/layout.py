"""Ordered parameter declarations read through a single :class:`Reader` pass."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Sequence, Tuple

import jax.numpy as jnp

from .constraints import Constraint, Unconstrained, constraint_from_mapping
from .errors import InvalidShape
from .jacobian import LogProbAccumulator
from .reader import Reader
from .typing import Array, Dims
from .utils.jax_setup import nan_guard
from .utils.logging import ConsumptionLedger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParameterDecl:
    """One model variable: its name, container, dimensions and constraint.

    Attributes:
        name: Parameter identifier.
        container: One of ``real``, ``int``, ``vector``, ``row_vector``, ``matrix``.
        dims: ``()`` for scalars, ``(m,)`` for vectors, ``(n, m)`` for matrices,
            ``(k,)`` for square matrix families.
        constraint: How raw values map onto the variable's domain.
    """

    name: str
    container: str = "real"
    dims: Dims = ()
    constraint: Constraint = field(default_factory=Unconstrained)

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Parameter name must be non-empty")
        object.__setattr__(self, "dims", self.constraint.check_container(self.container, self.dims))

    @property
    def unconstrained_size(self) -> int:
        return self.constraint.unconstrained_size(self.container, self.dims)

    @property
    def constrained_size(self) -> int:
        return self.constraint.constrained_size(self.container, self.dims)

    @property
    def integer_size(self) -> int:
        return self.constraint.integer_size(self.container, self.dims)

    def read(self, reader: Reader, lp: LogProbAccumulator | None = None, constrain: bool = True) -> Any:
        return self.constraint.read(reader, self.container, self.dims, lp=lp, constrain=constrain)


@dataclass(frozen=True)
class ParameterLayout:
    """Ordered, duplicate-free collection of :class:`ParameterDecl`.

    The declaration order is the order in which values are consumed from the
    unconstrained stream.
    """

    decls: Tuple[ParameterDecl, ...] = ()

    def __post_init__(self) -> None:
        decls = tuple(self.decls)
        names = [decl.name for decl in decls]
        if len(names) != len(set(names)):
            duplicates = sorted({n for n in names if names.count(n) > 1})
            raise ValueError(f"Duplicate parameter names: {duplicates}")
        object.__setattr__(self, "decls", decls)

    def __iter__(self) -> Iterator[ParameterDecl]:
        return iter(self.decls)

    def __len__(self) -> int:
        return len(self.decls)

    def names(self) -> List[str]:
        return [decl.name for decl in self.decls]

    def num_unconstrained(self) -> int:
        """Reals consumed by a constrain pass."""
        return sum(decl.unconstrained_size for decl in self.decls)

    def num_constrained(self) -> int:
        """Reals consumed by a plain pass."""
        return sum(decl.constrained_size for decl in self.decls)

    def num_integers(self) -> int:
        return sum(decl.integer_size for decl in self.decls)

    def read(
        self,
        reader: Reader,
        lp: LogProbAccumulator | None = None,
        constrain: bool = True,
        ledger: ConsumptionLedger | None = None,
        check_finite: bool = False,
    ) -> Dict[str, Any]:
        """Read every declared parameter in order.

        Args:
            reader: Source of raw values; its cursors advance past everything read.
            lp: Optional accumulator for the Jacobian adjustment of constrain reads.
            constrain: Read unconstrained values and transform them (default), or
                read constrained values and validate them.
            ledger: Optional record of how much each parameter consumed.
            check_finite: Raise if a real-valued result contains NaN or inf.

        Returns:
            Mapping from parameter name to value, in declaration order.
        """

        values: Dict[str, Any] = {}
        for decl in self.decls:
            start, start_i = reader.pos, reader.int_pos
            value = decl.read(reader, lp=lp, constrain=constrain)
            used, used_i = reader.pos - start, reader.int_pos - start_i
            if ledger is not None:
                ledger.incr(decl.name, scalars=used, integers=used_i)
            logger.debug(
                "Read %s (%s %s): %d reals, %d integers",
                decl.name,
                decl.constraint.kind,
                decl.container,
                used,
                used_i,
            )
            if check_finite and decl.container != "int":
                nan_guard(decl.name, value)
            values[decl.name] = value
        return values

    def unconstrain(self, values: Mapping[str, Any]) -> Tuple[Array, List[int]]:
        """Map constrained values back to the raw streams a constrain read consumes.

        Returns:
            ``(data_r, data_i)`` such that reading them with :meth:`read` in
            constrain mode reproduces ``values``.
        """

        parts: List[Array] = []
        data_i: List[int] = []
        for decl in self.decls:
            if decl.name not in values:
                raise KeyError(f"Missing value for parameter '{decl.name}'")
            value = values[decl.name]
            if decl.container == "int":
                data_i.append(int(value))
                continue
            raw = decl.constraint.free(value, decl.container)
            if raw.shape[0] != decl.unconstrained_size:
                raise InvalidShape(
                    f"Parameter '{decl.name}' expects {decl.unconstrained_size} unconstrained values, got {raw.shape[0]}"
                )
            parts.append(raw)
        data_r = jnp.concatenate(parts) if parts else jnp.zeros((0,), dtype=jnp.result_type(float))
        return data_r, data_i


def decl_from_mapping(entry: Mapping[str, Any]) -> ParameterDecl:
    """Build a :class:`ParameterDecl` from a config mapping.

    Expected keys: ``name``, optional ``container`` (default ``real``),
    optional ``dims`` (int or list), optional ``constraint`` (mapping or type name).
    """

    if "name" not in entry:
        raise KeyError("Parameter entry is missing 'name'")
    dims = entry.get("dims", ())
    if isinstance(dims, int):
        dims = (dims,)
    return ParameterDecl(
        name=str(entry["name"]),
        container=str(entry.get("container", "real")),
        dims=tuple(int(d) for d in dims),
        constraint=constraint_from_mapping(entry.get("constraint")),
    )


def layout_from_config(entries: Sequence[Mapping[str, Any]]) -> ParameterLayout:
    """Build a :class:`ParameterLayout` from a list of parameter mappings."""

    return ParameterLayout(tuple(decl_from_mapping(entry) for entry in entries))


__all__ = ["ParameterDecl", "ParameterLayout", "decl_from_mapping", "layout_from_config"]
