"""
WebGPU device acquisition for the GPU backend.

`acquire_gpu(index, power_preference)` requests an adapter and a logical
device once per (index, preference) pair and caches the result for the rest
of the process. `wgpu` is imported here, lazily, so that the CPU path of
tapegrad never requires it.

Failure modes (all raised as `DeviceFailureError`):
- `wgpu` is not installed (install the `gpu` extra),
- no adapter matches the requested index,
- the wgpu runtime fails while creating the device.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any

from ....domain._errors import DeviceFailureError

logger = logging.getLogger(__name__)


def import_wgpu() -> Any:
    """
    Import and return the `wgpu` module with its native backend selected.

    Raises
    ------
    DeviceFailureError
        If `wgpu` cannot be imported.
    """
    try:
        import wgpu
        import wgpu.backends.wgpu_native  # noqa: F401
    except ImportError as exc:
        raise DeviceFailureError(
            "gpu", "wgpu is not installed (pip install 'tapegrad[gpu]')"
        ) from exc
    return wgpu


@lru_cache(maxsize=None)
def acquire_gpu(index: int, power_preference: str) -> Any:
    """
    Request (and cache) the wgpu logical device for adapter `index`.

    Parameters
    ----------
    index : int
        Adapter index. 0 selects the preferred adapter for
        `power_preference`; other values index the enumerated adapters.
    power_preference : str
        "high-performance" or "low-power".

    Returns
    -------
    wgpu.GPUDevice
        The logical device.

    Raises
    ------
    DeviceFailureError
        If no adapter is available or the device cannot be created.
    """
    wgpu = import_wgpu()
    name = f"gpu:{index}"

    try:
        if index == 0:
            adapter = wgpu.gpu.request_adapter_sync(power_preference=power_preference)
        else:
            adapters = wgpu.gpu.enumerate_adapters_sync()
            adapter = adapters[index] if index < len(adapters) else None
    except Exception as exc:
        raise DeviceFailureError(name, f"adapter request failed: {exc}") from exc

    if adapter is None:
        raise DeviceFailureError(name, "no GPU adapter available")

    try:
        gpu = adapter.request_device_sync()
    except Exception as exc:
        raise DeviceFailureError(name, f"device request failed: {exc}") from exc

    info = getattr(adapter, "info", None) or {}
    logger.info(
        "Acquired %s: %s (%s)",
        name,
        info.get("device", "unknown adapter"),
        info.get("backend_type", "unknown backend"),
    )
    return gpu
