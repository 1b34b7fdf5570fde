"""Numerical building blocks: transforms, validity checks and linear algebra."""

from . import checks, linalg, transforms

__all__ = ["checks", "linalg", "transforms"]
