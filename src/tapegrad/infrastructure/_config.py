"""
Runtime configuration for tapegrad.

Settings are read from environment variables once per process and cached:

TAPEGRAD_DEFAULT_DEVICE : str, default "cpu"
    Device used when a graph is created without an explicit device.
TAPEGRAD_CPU_DTYPE : str, default "float64"
    Storage dtype of the CPU backend ("float32" or "float64").
TAPEGRAD_WGPU_POWER_PREFERENCE : str, default "high-performance"
    Adapter preference for the GPU backend ("high-performance" or
    "low-power").

Invalid values raise `ValueError` naming the offending variable. Use
`Settings.from_env(...)` to build settings from an explicit mapping (tests),
and `get_settings.cache_clear()` to force a re-read.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Mapping, Optional

from ..domain.device._device import Device

_CPU_DTYPES = ("float32", "float64")
_POWER_PREFERENCES = ("high-performance", "low-power")


@dataclass(frozen=True)
class Settings:
    """
    Immutable snapshot of the tapegrad configuration.

    Attributes
    ----------
    default_device : str
        Canonical device string used by `Graph()` with no argument.
    cpu_dtype : str
        NumPy dtype name used for CPU storage.
    wgpu_power_preference : str
        Power preference passed to the WebGPU adapter request.
    """

    default_device: str = "cpu"
    cpu_dtype: str = "float64"
    wgpu_power_preference: str = "high-performance"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables.

        Parameters
        ----------
        environ : Optional[Mapping[str, str]]
            Mapping to read from. Defaults to `os.environ`.

        Returns
        -------
        Settings
            Validated settings.

        Raises
        ------
        ValueError
            If a variable holds an unsupported value.
        """
        env = os.environ if environ is None else environ

        device = env.get("TAPEGRAD_DEFAULT_DEVICE", cls.default_device).strip()
        try:
            device = str(Device(device))
        except ValueError as exc:
            raise ValueError(f"TAPEGRAD_DEFAULT_DEVICE: {exc}") from exc

        dtype = env.get("TAPEGRAD_CPU_DTYPE", cls.cpu_dtype).strip().lower()
        if dtype not in _CPU_DTYPES:
            raise ValueError(
                f"TAPEGRAD_CPU_DTYPE must be one of {_CPU_DTYPES}, got {dtype!r}"
            )

        power = (
            env.get("TAPEGRAD_WGPU_POWER_PREFERENCE", cls.wgpu_power_preference)
            .strip()
            .lower()
        )
        if power not in _POWER_PREFERENCES:
            raise ValueError(
                "TAPEGRAD_WGPU_POWER_PREFERENCE must be one of "
                f"{_POWER_PREFERENCES}, got {power!r}"
            )

        return cls(default_device=device, cpu_dtype=dtype, wgpu_power_preference=power)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Return the process-wide settings, reading the environment on first use.
    """
    return Settings.from_env()
