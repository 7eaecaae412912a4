"""
Storage backend interface definitions.

The graph engine never touches raw numeric buffers directly. Every forward
kernel and every derivative rule is expressed through the capabilities listed
in `IBackend`, which a concrete backend implements once per device type
(NumPy on the CPU, WebGPU compute shaders on a GPU).

Raw tensors are whatever the backend hands back (a NumPy array on the CPU,
a GPU buffer wrapper on a GPU); the engine only relies on `IRawTensor`.
"""

from __future__ import annotations

from typing import Any, Protocol, Sequence, runtime_checkable

from .device._device_protocol import DeviceLike


@runtime_checkable
class IRawTensor(Protocol):
    """
    Minimal contract of a backend-owned numeric buffer.
    """

    @property
    def shape(self) -> tuple[int, ...]: ...

    @property
    def dtype(self) -> Any: ...


@runtime_checkable
class IBackend(Protocol):
    """
    Capability interface of a storage backend bound to one device.

    Notes
    -----
    - All binary elementwise kernels broadcast their operands.
    - Every kernel returns a new raw tensor; inputs are never modified.
    - `synchronize` blocks until all submitted work is complete, so results
      are safe to read when it returns.
    """

    @property
    def device(self) -> DeviceLike: ...

    @property
    def dtype(self) -> Any: ...

    # staging
    def from_numpy(self, array: Any) -> IRawTensor: ...
    def to_numpy(self, x: IRawTensor) -> Any: ...

    # constants
    def zeros(self, shape: Sequence[int]) -> IRawTensor: ...
    def ones(self, shape: Sequence[int]) -> IRawTensor: ...
    def eye(self, n: int) -> IRawTensor: ...

    # elementwise
    def add(self, a: IRawTensor, b: IRawTensor) -> IRawTensor: ...
    def sub(self, a: IRawTensor, b: IRawTensor) -> IRawTensor: ...
    def mul(self, a: IRawTensor, b: IRawTensor) -> IRawTensor: ...
    def neg(self, x: IRawTensor) -> IRawTensor: ...
    def exp(self, x: IRawTensor) -> IRawTensor: ...

    # linear algebra
    def matmul(self, a: IRawTensor, b: IRawTensor) -> IRawTensor: ...
    def transpose(self, x: IRawTensor) -> IRawTensor: ...

    # shape movement
    def broadcast_to(self, x: IRawTensor, shape: Sequence[int]) -> IRawTensor: ...
    def sum_to_shape(self, x: IRawTensor, shape: Sequence[int]) -> IRawTensor: ...

    def synchronize(self) -> None: ...
