"""Caller-owned log-probability accumulator.

Constrain accessors that receive an accumulator push the log absolute
Jacobian determinant of their transform into it. Nothing in :mod:`paramio`
reads or resets the running total; it belongs to the caller.
"""

from __future__ import annotations

import jax.numpy as jnp

from .typing import Scalar


class LogProbAccumulator:
    """Mutable log-probability total passed to ``*_constrain(..., lp=...)`` calls.

    The held value may be a Python float, a concrete JAX scalar or a tracer,
    so a log density built around a :class:`~paramio.reader.Reader` stays
    differentiable under :func:`jax.grad`.
    """

    __slots__ = ("value",)

    def __init__(self, value: Scalar = 0.0) -> None:
        self.value = value

    def increment(self, term: Scalar) -> None:
        """Add ``term`` to the running total."""

        self.value = self.value + term

    def __iadd__(self, term: Scalar) -> "LogProbAccumulator":
        self.increment(term)
        return self

    def __float__(self) -> float:
        return float(jnp.asarray(self.value))

    def __repr__(self) -> str:
        return f"LogProbAccumulator(value={self.value!r})"


__all__ = ["LogProbAccumulator"]
