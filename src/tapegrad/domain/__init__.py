"""
Backend-agnostic contracts of tapegrad: errors, devices, operator tags,
shape rules and the storage-backend protocol.
"""

from ._errors import (
    ShapeError,
    ShapeMismatchError,
    UnsupportedOperatorError,
    DeviceNotSupportedError,
    DeviceMismatchError,
    DeviceFailureError,
    GraphConsistencyError,
)
from ._op import OpKind, Op, make_op
from ._backend import IBackend, IRawTensor
from .device import Device, DeviceType, DeviceLike
