"""
Graph-, shape- and device-related exceptions for tapegrad.

This module defines the custom errors raised by the computation graph, the
forward evaluator, the backward engine and the storage backends. Every error
is raised synchronously at the point of the offending call; none of them is
recovered or retried internally.

Hierarchy
---------
- `ShapeError` (ValueError)
    - `ShapeMismatchError`
- `UnsupportedOperatorError` (RuntimeError)
- `DeviceMismatchError` (RuntimeError)
- `DeviceNotSupportedError` (RuntimeError)
- `DeviceFailureError` (RuntimeError)
- `GraphConsistencyError` (RuntimeError)
"""

from __future__ import annotations

from typing import Optional, Sequence


class ShapeError(ValueError):
    """
    Raised when a value cannot be stored on a device because of its shape.

    Typical causes are a rank above what the device backend supports, or
    ragged (non-rectangular) input data.

    Attributes
    ----------
    shape : Optional[tuple[int, ...]]
        The offending shape, when it could be determined.
    device : Optional[str]
        String representation of the target device, if relevant.
    """

    def __init__(
        self,
        message: str,
        *,
        shape: Optional[Sequence[int]] = None,
        device: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.shape = tuple(shape) if shape is not None else None
        self.device = device


class ShapeMismatchError(ShapeError):
    """
    Raised when operand shapes are incompatible for the requested operator.

    Examples include non-broadcastable elementwise operands, mismatching
    matmul inner dimensions, a non-square operand to `expm`, or a backward
    seed whose shape differs from the target's.

    Attributes
    ----------
    op : str
        Name of the operation being applied (e.g., "add", "matmul").
    shapes : tuple[tuple[int, ...], ...]
        Shapes of the operands involved.
    """

    def __init__(self, op: str, *shapes: Sequence[int], reason: str = "") -> None:
        shape_text = ", ".join(str(tuple(s)) for s in shapes)
        message = f"{op}: incompatible shapes {shape_text}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.op = op
        self.shapes = tuple(tuple(int(d) for d in s) for s in shapes)
        self.reason = reason


class UnsupportedOperatorError(RuntimeError):
    """
    Raised when an operator cannot be applied to the given operands.

    The main case is `expm` of a matrix with non-zero off-diagonal entries:
    only diagonal matrix exponentials are supported. It is also raised for an
    unknown operator tag or a wrong number of operands.

    Attributes
    ----------
    op : str
        Name of the rejected operator.
    """

    def __init__(self, op: str, reason: str) -> None:
        super().__init__(f"{op} is not supported: {reason}")
        self.op = op
        self.reason = reason


class DeviceNotSupportedError(RuntimeError):
    """
    Raised when a backend capability is requested on a device type that has
    no registered kernel for it.

    Attributes
    ----------
    op : str
        The name of the capability that was attempted (e.g., "matmul").
    device : str
        String representation of the device on which it was attempted.
    """

    def __init__(self, op: str, device: str) -> None:
        super().__init__(f"{op} is not implemented for device '{device}'.")
        self.op = op
        self.device = device


class DeviceMismatchError(RuntimeError):
    """
    Raised when nodes from different graphs (and therefore possibly different
    devices) are combined in one operator application.

    There is no implicit copy between graphs or devices; callers must create
    the operand in the right graph explicitly.
    """

    def __init__(self, device_a: str, device_b: str) -> None:
        """
        Initialize the DeviceMismatchError.

        Parameters
        ----------
        device_a : str
            Device (or graph) identifier of the first operand.
        device_b : str
            Device (or graph) identifier of the second operand.
        """
        super().__init__(f"Device mismatch: '{device_a}' vs '{device_b}'.")
        self.device_a = device_a
        self.device_b = device_b


class DeviceFailureError(RuntimeError):
    """
    Raised when the underlying backend fails to execute, e.g., no GPU adapter
    is available or a submitted kernel fails.

    Attributes
    ----------
    device : str
        The device on which the failure happened.
    """

    def __init__(self, device: str, reason: str) -> None:
        super().__init__(f"Device '{device}' failed: {reason}")
        self.device = device
        self.reason = reason


class GraphConsistencyError(RuntimeError):
    """
    Raised when a graph query runs before its prerequisite pass.

    Reading `value()` of a node that was never evaluated and calling
    `backward()` on a node whose forward value is missing both raise it.

    Attributes
    ----------
    node_id : Optional[int]
        Identifier of the node the query was made on.
    """

    def __init__(self, message: str, *, node_id: Optional[int] = None) -> None:
        super().__init__(message)
        self.node_id = node_id
