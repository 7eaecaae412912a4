"""
Storage backend bound to one device.

`Backend` declares the capability interface used by the graph engine
(`tapegrad.domain._backend.IBackend`). The method bodies here are interface
declarations only: concrete CPU and GPU kernels are registered with
`backend_control_path_manager` and selected at call time from the type of
the backend's device.

Design notes
------------
- The engine (graph, forward evaluator, backward engine) is written against
  these methods only and never branches on the device itself.
- Kernels never modify their inputs; every call returns a new raw tensor.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

from ...domain.device._device import Device, DeviceType
from ...domain._backend import IRawTensor


class Backend:
    """
    Device-dispatched storage backend.

    Parameters
    ----------
    device : Device
        Device whose kernels this backend executes.
    dtype : Optional[str]
        Requested storage dtype name. `None` selects the device default
        (configured CPU dtype, `float32` on GPUs).
    """

    def __init__(self, device: Device, dtype: Optional[str] = None) -> None:
        self._device = device
        self._requested_dtype = dtype
        self._resolved_dtype = None

    @property
    def _state(self) -> DeviceType:
        """Dispatch key: the type of the bound device."""
        return self._device.type

    @property
    def device(self) -> Device:
        return self._device

    @property
    def dtype(self) -> Any:
        """
        NumPy dtype of every buffer this backend creates.
        """
        if self._resolved_dtype is None:
            self._resolved_dtype = self.storage_dtype()
        return self._resolved_dtype

    def __repr__(self) -> str:
        return f"Backend(device={self._device!r})"

    # ------------------------------------------------------------------
    # Capability interface (kernels registered per device type)
    # ------------------------------------------------------------------
    def storage_dtype(self) -> Any:
        """
        Resolve the storage dtype for this device from the requested dtype.

        Raises
        ------
        ValueError
            If the device cannot store the requested dtype.
        """
        ...

    def from_numpy(self, array: Any) -> IRawTensor:
        """
        Copy a host array into a new buffer of the backend dtype.

        Raises
        ------
        ShapeError
            If the device cannot hold an array of this shape.
        """
        ...

    def to_numpy(self, x: IRawTensor) -> Any:
        """
        Return a host (NumPy) copy of a raw tensor.
        """
        ...

    def zeros(self, shape: Sequence[int]) -> IRawTensor:
        """Buffer of `shape` filled with zeros."""
        ...

    def ones(self, shape: Sequence[int]) -> IRawTensor:
        """Buffer of `shape` filled with ones."""
        ...

    def eye(self, n: int) -> IRawTensor:
        """`n x n` identity matrix."""
        ...

    def add(self, a: IRawTensor, b: IRawTensor) -> IRawTensor:
        """Broadcasting elementwise `a + b`."""
        ...

    def sub(self, a: IRawTensor, b: IRawTensor) -> IRawTensor:
        """Broadcasting elementwise `a - b`."""
        ...

    def mul(self, a: IRawTensor, b: IRawTensor) -> IRawTensor:
        """Broadcasting elementwise `a * b`."""
        ...

    def neg(self, x: IRawTensor) -> IRawTensor:
        """Elementwise `-x`."""
        ...

    def exp(self, x: IRawTensor) -> IRawTensor:
        """Elementwise `e ** x`."""
        ...

    def matmul(self, a: IRawTensor, b: IRawTensor) -> IRawTensor:
        """
        Batched matrix product `[..., m, k] @ [..., k, n] -> [..., m, n]`.

        Batch dimensions broadcast against each other.
        """
        ...

    def transpose(self, x: IRawTensor) -> IRawTensor:
        """Swap the last two axes of `x`."""
        ...

    def broadcast_to(self, x: IRawTensor, shape: Sequence[int]) -> IRawTensor:
        """Materialize `x` broadcast to `shape`."""
        ...

    def sum_to_shape(self, x: IRawTensor, shape: Sequence[int]) -> IRawTensor:
        """
        Sum-reduce `x` over broadcast axes so that it has `shape`.

        This is the inverse of `broadcast_to` and is used to fold gradients
        back onto operands that were broadcast in the forward pass.
        """
        ...

    def synchronize(self) -> None:
        """Block until all submitted work on the device has completed."""
        ...
