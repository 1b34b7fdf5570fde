"""Logging helpers for consistent instrumentation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(level: str = "INFO", rich_tracebacks: bool = True) -> None:
    """Configure the root logger with optional rich tracebacks."""

    console = Console()
    handler = RichHandler(console=console, rich_tracebacks=rich_tracebacks)
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )


@dataclass
class ConsumptionLedger:
    """Track how many reals and integers each parameter consumed."""

    scalars: int = 0
    integers: int = 0
    per_parameter: Dict[str, Dict[str, int]] = field(default_factory=dict)

    def incr(self, name: str, scalars: int = 0, integers: int = 0) -> None:
        self.scalars += int(scalars)
        self.integers += int(integers)
        entry = self.per_parameter.setdefault(name, {"scalars": 0, "integers": 0})
        entry["scalars"] += int(scalars)
        entry["integers"] += int(integers)


__all__ = ["setup_logging", "ConsumptionLedger"]
