"""
CPU control paths of the storage backend (NumPy).

Every kernel takes and returns `numpy.ndarray` objects in the backend dtype
(`TAPEGRAD_CPU_DTYPE`, float64 by default). Outputs are always freshly
allocated, so a raw tensor handed to the graph is never aliased by another
node's value or gradient.
"""

from __future__ import annotations

from typing import Any, Sequence

import numpy as np

from ....domain.device._device import DeviceType
from ....domain._errors import ShapeError
from ....domain._shapes import as_shape, sum_to_shape_reduce_axes
from ..._config import get_settings
from .._backend_builder import backend_control_path_manager
from .._base import Backend

CPU = DeviceType.CPU


@backend_control_path_manager(Backend, Backend.storage_dtype, CPU)
def cpu_storage_dtype(self: Backend) -> np.dtype:
    name = self._requested_dtype or get_settings().cpu_dtype
    dtype = np.dtype(name)
    if dtype not in (np.dtype(np.float32), np.dtype(np.float64)):
        raise ValueError(f"CPU backend stores float32 or float64, got {dtype}")
    return dtype


@backend_control_path_manager(Backend, Backend.from_numpy, CPU)
def cpu_from_numpy(self: Backend, array: Any) -> np.ndarray:
    try:
        return np.array(array, dtype=self.dtype, copy=True)
    except ValueError as exc:
        raise ShapeError(f"cannot store value on cpu: {exc}", device="cpu") from exc


@backend_control_path_manager(Backend, Backend.to_numpy, CPU)
def cpu_to_numpy(self: Backend, x: np.ndarray) -> np.ndarray:
    return np.array(x, copy=True)


@backend_control_path_manager(Backend, Backend.zeros, CPU)
def cpu_zeros(self: Backend, shape: Sequence[int]) -> np.ndarray:
    return np.zeros(as_shape(shape), dtype=self.dtype)


@backend_control_path_manager(Backend, Backend.ones, CPU)
def cpu_ones(self: Backend, shape: Sequence[int]) -> np.ndarray:
    return np.ones(as_shape(shape), dtype=self.dtype)


@backend_control_path_manager(Backend, Backend.eye, CPU)
def cpu_eye(self: Backend, n: int) -> np.ndarray:
    return np.eye(int(n), dtype=self.dtype)


# np ufuncs return numpy scalars for 0-d operands; keep everything an ndarray.
@backend_control_path_manager(Backend, Backend.add, CPU)
def cpu_add(self: Backend, a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return np.asarray(np.add(a, b), dtype=self.dtype)


@backend_control_path_manager(Backend, Backend.sub, CPU)
def cpu_sub(self: Backend, a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return np.asarray(np.subtract(a, b), dtype=self.dtype)


@backend_control_path_manager(Backend, Backend.mul, CPU)
def cpu_mul(self: Backend, a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return np.asarray(np.multiply(a, b), dtype=self.dtype)


@backend_control_path_manager(Backend, Backend.neg, CPU)
def cpu_neg(self: Backend, x: np.ndarray) -> np.ndarray:
    return np.asarray(np.negative(x), dtype=self.dtype)


@backend_control_path_manager(Backend, Backend.exp, CPU)
def cpu_exp(self: Backend, x: np.ndarray) -> np.ndarray:
    return np.asarray(np.exp(x), dtype=self.dtype)


@backend_control_path_manager(Backend, Backend.matmul, CPU)
def cpu_matmul(self: Backend, a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return np.asarray(np.matmul(a, b), dtype=self.dtype)


@backend_control_path_manager(Backend, Backend.transpose, CPU)
def cpu_transpose(self: Backend, x: np.ndarray) -> np.ndarray:
    return np.ascontiguousarray(np.swapaxes(x, -1, -2))


@backend_control_path_manager(Backend, Backend.broadcast_to, CPU)
def cpu_broadcast_to(self: Backend, x: np.ndarray, shape: Sequence[int]) -> np.ndarray:
    # broadcast_to returns a read-only view; materialize it.
    return np.array(np.broadcast_to(x, as_shape(shape)), copy=True)


@backend_control_path_manager(Backend, Backend.sum_to_shape, CPU)
def cpu_sum_to_shape(self: Backend, x: np.ndarray, shape: Sequence[int]) -> np.ndarray:
    """
    Sum-reduce a CPU array to `shape`.

    - Computes reduction axes via `sum_to_shape_reduce_axes`.
    - Sums over broadcast axes with `keepdims=True`.
    - Drops the leading padding dimensions to restore the target rank.
    """
    tgt_shape = as_shape(shape)
    _, reduce_axes, pad = sum_to_shape_reduce_axes(x.shape, tgt_shape)

    out = np.asarray(x)
    if reduce_axes:
        out = np.sum(out, axis=reduce_axes, keepdims=True)
    if pad:
        out = out.reshape(out.shape[pad:])

    if out.shape != tgt_shape:
        raise RuntimeError(
            f"sum_to_shape internal error: got shape {out.shape}, expected {tgt_shape}"
        )
    return np.array(out, dtype=self.dtype, copy=True)


@backend_control_path_manager(Backend, Backend.synchronize, CPU)
def cpu_synchronize(self: Backend) -> None:
    return None
