"""Configuration utilities for :mod:`paramio`."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping

import yaml

from .layout import ParameterLayout, layout_from_config
from .math.checks import CONSTRAINT_TOLERANCE
from .reader import Reader
from .typing import IntSequence, RealSequence
from .utils import jax_setup

logger = logging.getLogger(__name__)


@dataclass
class LoggingConfig:
    """Logging verbosity and formatting options."""

    level: str = "INFO"
    rich_tracebacks: bool = True


@dataclass
class NumericsConfig:
    """Floating-point precision and validation tolerance."""

    enable_x64: bool = True
    constraint_tolerance: float = CONSTRAINT_TOLERANCE


@dataclass
class AppConfig:
    """Top-level configuration object composed of sub-configurations."""

    logging: LoggingConfig = field(default_factory=LoggingConfig)
    numerics: NumericsConfig = field(default_factory=NumericsConfig)
    parameters: List[Dict[str, Any]] = field(default_factory=list)

    def layout(self) -> ParameterLayout:
        """Parameter layout described by the ``parameters`` section."""

        return layout_from_config(self.parameters)

    def make_reader(self, data_r: RealSequence, data_i: IntSequence = ()) -> Reader:
        """Reader over ``data_r``/``data_i`` using the configured tolerance."""

        return Reader(data_r, data_i, tolerance=self.numerics.constraint_tolerance)


def load_yaml(path: Path) -> Mapping[str, Any]:
    """Load a YAML document and return a mapping."""

    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def load_app_config(path: Path) -> AppConfig:
    """Load :class:`AppConfig` from ``path`` and apply its numerics settings."""

    raw = load_yaml(Path(path))
    logging_cfg = raw.get("logging", {}) or {}
    numerics = raw.get("numerics", {}) or {}
    parameters = raw.get("parameters", []) or []
    if not isinstance(parameters, list):
        raise ValueError("'parameters' must be a list of parameter entries")

    app_config = AppConfig(
        logging=LoggingConfig(
            level=str(logging_cfg.get("level", "INFO")),
            rich_tracebacks=bool(logging_cfg.get("rich_tracebacks", True)),
        ),
        numerics=NumericsConfig(
            enable_x64=bool(numerics.get("enable_x64", True)),
            constraint_tolerance=float(numerics.get("constraint_tolerance", CONSTRAINT_TOLERANCE)),
        ),
        parameters=[dict(entry) for entry in parameters],
    )
    jax_setup.configure(enable_x64=app_config.numerics.enable_x64)
    logger.info("Loaded config %s with %d parameter(s)", path, len(app_config.parameters))
    return app_config


__all__ = [
    "LoggingConfig",
    "NumericsConfig",
    "AppConfig",
    "load_yaml",
    "load_app_config",
]
