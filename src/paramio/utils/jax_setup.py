"""JAX configuration shared by every module that builds arrays."""

from __future__ import annotations

import os

os.environ.setdefault("JAX_USE_PJRT_C_API_ON_CPU", "0")
os.environ.setdefault("JAX_PLATFORMS", "cpu")

import jax
import jax.numpy as jnp

from ..typing import Array

jax.config.update("jax_enable_x64", True)


def configure(enable_x64: bool = True) -> None:
    """Re-apply the precision flag, e.g. from :class:`paramio.config.NumericsConfig`."""

    jax.config.update("jax_enable_x64", bool(enable_x64))


def nan_guard(name: str, *arrays: Array) -> None:
    """Raise with diagnostics if any array contains NaNs or infs."""

    for arr in arrays:
        tensor = jnp.asarray(arr)
        if tensor.size and jnp.any(~jnp.isfinite(tensor)):
            stats = {
                "min": float(jnp.nanmin(tensor)),
                "max": float(jnp.nanmax(tensor)),
                "mean": float(jnp.nanmean(tensor)),
            }
            raise FloatingPointError(f"{name}: detected non-finite values with stats {stats}")


__all__ = ["configure", "nan_guard"]
