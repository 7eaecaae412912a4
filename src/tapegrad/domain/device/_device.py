"""
Device abstraction utilities.

This module defines lightweight abstractions for representing the device a
computation graph executes on, independent of any backend library:

- `DeviceType`: an enumeration of supported device categories
- `Device`: a concrete device descriptor that validates and normalizes
  user-facing device strings such as "cpu", "gpu" or "gpu:1"

The descriptor carries no backend resources. Kernels for a device type are
registered separately (see `tapegrad.infrastructure.backend`).
"""

from enum import Enum
import re


class DeviceType(Enum):
    """
    Enumeration of supported device categories.

    Attributes
    ----------
    CPU : DeviceType
        Host CPU, backed by NumPy.
    GPU : DeviceType
        GPU compute through WebGPU (wgpu).
    """

    CPU = "cpu"
    GPU = "gpu"


class Device:
    """
    Concrete computation device descriptor.

    Parameters
    ----------
    device : str
        Device identifier string. Must be one of:
        - "cpu"
        - "gpu" (shorthand for "gpu:0")
        - "gpu:<index>", where <index> is a non-negative adapter index

    Raises
    ------
    ValueError
        If the provided device string does not match the supported formats.

    Notes
    -----
    `__slots__` is used to prevent dynamic attribute creation; the instance
    is hashable and can key dispatch tables and caches.
    """

    __slots__ = ("type", "index")

    _GPU_PATTERN = re.compile(r"^gpu(?::(\d+))?$")

    def __init__(self, device: str):
        if device == "cpu":
            self.type = DeviceType.CPU
            self.index = None
        else:
            m = self._GPU_PATTERN.match(device) if isinstance(device, str) else None
            if not m:
                raise ValueError(
                    f"Invalid device '{device}'. Expected 'cpu', 'gpu' or 'gpu:<index>'"
                )
            self.type = DeviceType.GPU
            self.index = int(m.group(1) or 0)

    def __str__(self) -> str:
        """
        Return the canonical string representation of the device.

        Returns
        -------
        str
            "cpu" for CPU devices, or "gpu:<index>" for GPU devices.
        """
        return "cpu" if self.type is DeviceType.CPU else f"gpu:{self.index}"

    def __repr__(self) -> str:
        return f"Device('{self}')"

    def __eq__(self, other: object) -> bool:
        """
        Devices are equal if they have the same type and (for GPUs) index.
        """
        if not isinstance(other, Device):
            return NotImplemented
        return (self.type, self.index) == (other.type, other.index)

    def __hash__(self) -> int:
        return hash((self.type, self.index))

    def is_cpu(self) -> bool:
        """
        Check whether this device represents the host CPU.
        """
        return self.type is DeviceType.CPU

    def is_gpu(self) -> bool:
        """
        Check whether this device represents a GPU.
        """
        return self.type is DeviceType.GPU
