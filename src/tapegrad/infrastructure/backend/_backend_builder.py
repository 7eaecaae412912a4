"""
Backend control-path manager for device-specific dispatch.

Backend kernels register themselves per device type:

    @backend_control_path_manager(Backend, Backend.add, DeviceType.CPU)
    def cpu_add(self, a, b): ...

    @backend_control_path_manager(Backend, Backend.add, DeviceType.GPU)
    def gpu_add(self, a, b): ...

Calling `Backend.add(...)` then runs the implementation registered for
`self._state`, which is the type of the backend's device. A device type with
no registered kernel raises `DeviceNotSupportedError`.
"""

from typing import Any, Callable, Hashable, Type

from ...domain.utils._control_path import create_path_builder
from ...domain._errors import DeviceNotSupportedError

_templator = create_path_builder("_state")


def _missing_kernel(op: str, state: Any) -> Exception:
    return DeviceNotSupportedError(op, getattr(state, "value", str(state)))


def backend_control_path_manager(
    cls: Type, method: Callable, device_type: Hashable
) -> Callable[[Callable], Callable]:
    """
    Register the decorated function as `cls.method` for `device_type`.
    """
    return _templator(cls, method, device_type, _missing_kernel)
