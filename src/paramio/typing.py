"""Shared typing aliases for the paramio package."""

from __future__ import annotations

from typing import Protocol, Sequence, Union

import jax
import jax.numpy as jnp
import numpy as np

Array = jnp.ndarray
Scalar = Union[float, int, jax.Array]
RealSequence = Union[Sequence[float], np.ndarray, jax.Array]
IntSequence = Union[Sequence[int], np.ndarray]
Dims = tuple[int, ...]


class LogProbTarget(Protocol):
    """Protocol for anything a transform can push a log-Jacobian term into."""

    def increment(self, term: Scalar) -> None:
        ...


__all__ = ["Array", "Scalar", "RealSequence", "IntSequence", "Dims", "LogProbTarget"]
