"""Utility helpers for the :mod:`paramio` package."""

from .logging import ConsumptionLedger, setup_logging

__all__ = ["ConsumptionLedger", "setup_logging"]
