"""Error taxonomy raised by the reader, transforms and checks."""

from __future__ import annotations


class ReaderError(Exception):
    """Base class for every error raised by :mod:`paramio`."""


class BufferExhausted(ReaderError, IndexError):
    """A read asked for more reals or integers than remain unread."""

    def __init__(self, kind: str, requested: int, available: int) -> None:
        self.kind = kind
        self.requested = int(requested)
        self.available = int(available)
        super().__init__(
            f"no more {kind} to read: requested {self.requested}, {self.available} available"
        )


class InvalidShape(ReaderError, ValueError):
    """A shape request is not valid for the requested family."""


class BoundInconsistent(ReaderError, ValueError):
    """A lower/upper bound pair with ``lower > upper``."""

    def __init__(self, function: str, lb: object, ub: object) -> None:
        self.function = function
        self.lb = lb
        self.ub = ub
        super().__init__(f"{function}: lower bound {lb} must be less than or equal to upper bound {ub}")


class ValidationError(ReaderError, ValueError):
    """A value failed a validity predicate from :mod:`paramio.math.checks`."""

    def __init__(self, function: str, name: str, message: str) -> None:
        self.function = function
        self.name = name
        super().__init__(f"{function}: {name} {message}")


__all__ = [
    "ReaderError",
    "BufferExhausted",
    "InvalidShape",
    "BoundInconsistent",
    "ValidationError",
]
