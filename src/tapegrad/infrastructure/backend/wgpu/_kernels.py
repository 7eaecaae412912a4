"""
GPU control paths of the storage backend (WebGPU via wgpu).

Arithmetic, exponential, matrix product and transpose run as compute shaders
on device buffers. Broadcasting, broadcast-reduction and constant creation
are staged through the host with NumPy: they move data rather than compute
on it, and keeping them on the host keeps the shader set small.

Storage is float32 only. Wider host input is cast down, with a
`RuntimeWarning` when the cast actually loses information. Empty tensors are
rejected because WebGPU cannot bind zero-sized buffers.
"""

from __future__ import annotations

import math
import struct
import warnings
from typing import Any, Sequence

import numpy as np

from ....domain.device._device import DeviceType
from ....domain._errors import DeviceFailureError, ShapeError
from ....domain._shapes import (
    as_shape,
    broadcast_shapes,
    matmul_shape,
    sum_to_shape_reduce_axes,
)
from ..._config import get_settings
from .._backend_builder import backend_control_path_manager
from .._base import Backend
from . import _shaders as shaders
from ._dispatch import dispatch_shader, wait_idle
from ._loader import acquire_gpu, import_wgpu
from ._tensor import WgpuTensor

GPU = DeviceType.GPU

_MAX_WORKGROUPS = 65535


def _gpu_of(backend: Backend) -> Any:
    return acquire_gpu(int(backend.device.index or 0), get_settings().wgpu_power_preference)


def _storage_usage() -> int:
    wgpu = import_wgpu()
    return wgpu.BufferUsage.STORAGE | wgpu.BufferUsage.COPY_DST | wgpu.BufferUsage.COPY_SRC


def _empty(backend: Backend, shape: tuple[int, ...]) -> WgpuTensor:
    """Allocate a zero-initialized device buffer for `shape`."""
    gpu = _gpu_of(backend)
    numel = int(np.prod(shape, dtype=np.int64))
    try:
        buffer = gpu.create_buffer(size=max(numel, 1) * 4, usage=_storage_usage())
    except Exception as exc:
        raise DeviceFailureError(str(backend.device), f"allocation failed: {exc}") from exc
    return WgpuTensor(buffer, shape, gpu)


def _uniform(gpu: Any, *values: int) -> Any:
    wgpu = import_wgpu()
    params = struct.pack("4I", *(list(values) + [0] * (4 - len(values))))
    return gpu.create_buffer_with_data(
        data=params, usage=wgpu.BufferUsage.UNIFORM | wgpu.BufferUsage.COPY_DST
    )


def _grid(numel: int) -> tuple[int, int]:
    """2-D workgroup grid covering `numel` threads of 256."""
    groups = max(1, math.ceil(numel / shaders.WORKGROUP_SIZE))
    if groups <= _MAX_WORKGROUPS:
        return groups, 1
    return _MAX_WORKGROUPS, math.ceil(groups / _MAX_WORKGROUPS)


def _run_binary(backend: Backend, wgsl: str, a: WgpuTensor, b: WgpuTensor, op: str) -> WgpuTensor:
    shape = broadcast_shapes(op, a.shape, b.shape)
    a = backend.broadcast_to(a, shape)
    b = backend.broadcast_to(b, shape)
    out = _empty(backend, shape)
    dispatch_shader(
        out.gpu,
        wgsl,
        [(a.buffer, "read"), (b.buffer, "read"), (out.buffer, "read_write")],
        _grid(out.numel),
    )
    return out


def _run_unary(backend: Backend, wgsl: str, x: WgpuTensor) -> WgpuTensor:
    out = _empty(backend, x.shape)
    dispatch_shader(
        out.gpu,
        wgsl,
        [(x.buffer, "read"), (out.buffer, "read_write")],
        _grid(out.numel),
    )
    return out


@backend_control_path_manager(Backend, Backend.storage_dtype, GPU)
def gpu_storage_dtype(self: Backend) -> np.dtype:
    if self._requested_dtype not in (None, "float32"):
        raise ValueError(f"GPU backend stores float32 only, got {self._requested_dtype}")
    return np.dtype(np.float32)


@backend_control_path_manager(Backend, Backend.from_numpy, GPU)
def gpu_from_numpy(self: Backend, array: Any) -> WgpuTensor:
    try:
        host = np.asarray(array)
    except ValueError as exc:
        raise ShapeError(f"cannot store value on {self.device}: {exc}", device=str(self.device)) from exc

    if host.size == 0:
        raise ShapeError(
            f"{self.device} cannot hold empty tensors", shape=host.shape, device=str(self.device)
        )

    host32 = np.ascontiguousarray(host, dtype=np.float32)
    if host.dtype.itemsize > 4 and not np.array_equal(host32, host, equal_nan=True):
        warnings.warn(
            f"casting {host.dtype} to float32 for {self.device} loses precision",
            RuntimeWarning,
            stacklevel=3,
        )

    gpu = _gpu_of(self)
    try:
        buffer = gpu.create_buffer_with_data(data=host32.tobytes(), usage=_storage_usage())
    except Exception as exc:
        raise DeviceFailureError(str(self.device), f"upload failed: {exc}") from exc
    return WgpuTensor(buffer, host32.shape, gpu)


@backend_control_path_manager(Backend, Backend.to_numpy, GPU)
def gpu_to_numpy(self: Backend, x: WgpuTensor) -> np.ndarray:
    try:
        return x.numpy()
    except Exception as exc:
        raise DeviceFailureError(str(self.device), f"read-back failed: {exc}") from exc


@backend_control_path_manager(Backend, Backend.zeros, GPU)
def gpu_zeros(self: Backend, shape: Sequence[int]) -> WgpuTensor:
    # WebGPU zero-initializes new buffers.
    return _empty(self, as_shape(shape))


@backend_control_path_manager(Backend, Backend.ones, GPU)
def gpu_ones(self: Backend, shape: Sequence[int]) -> WgpuTensor:
    return self.from_numpy(np.ones(as_shape(shape), dtype=np.float32))


@backend_control_path_manager(Backend, Backend.eye, GPU)
def gpu_eye(self: Backend, n: int) -> WgpuTensor:
    return self.from_numpy(np.eye(int(n), dtype=np.float32))


@backend_control_path_manager(Backend, Backend.add, GPU)
def gpu_add(self: Backend, a: WgpuTensor, b: WgpuTensor) -> WgpuTensor:
    return _run_binary(self, shaders.WGSL_ADD, a, b, "add")


@backend_control_path_manager(Backend, Backend.sub, GPU)
def gpu_sub(self: Backend, a: WgpuTensor, b: WgpuTensor) -> WgpuTensor:
    return _run_binary(self, shaders.WGSL_SUB, a, b, "sub")


@backend_control_path_manager(Backend, Backend.mul, GPU)
def gpu_mul(self: Backend, a: WgpuTensor, b: WgpuTensor) -> WgpuTensor:
    return _run_binary(self, shaders.WGSL_MUL, a, b, "mul")


@backend_control_path_manager(Backend, Backend.neg, GPU)
def gpu_neg(self: Backend, x: WgpuTensor) -> WgpuTensor:
    return _run_unary(self, shaders.WGSL_NEG, x)


@backend_control_path_manager(Backend, Backend.exp, GPU)
def gpu_exp(self: Backend, x: WgpuTensor) -> WgpuTensor:
    return _run_unary(self, shaders.WGSL_EXP, x)


@backend_control_path_manager(Backend, Backend.matmul, GPU)
def gpu_matmul(self: Backend, a: WgpuTensor, b: WgpuTensor) -> WgpuTensor:
    """
    Tiled batched matrix product.

    Batch dimensions are broadcast on the host first, then one workgroup
    layer (z) is dispatched per batch entry.
    """
    out_shape = matmul_shape(a.shape, b.shape)
    batch = out_shape[:-2]
    m, k, n = a.shape[-2], a.shape[-1], b.shape[-1]

    a = self.broadcast_to(a, batch + (m, k))
    b = self.broadcast_to(b, batch + (k, n))
    n_batch = int(np.prod(batch, dtype=np.int64))
    if n_batch > _MAX_WORKGROUPS:
        raise DeviceFailureError(
            str(self.device), f"matmul batch of {n_batch} exceeds the dispatch limit"
        )

    out = _empty(self, out_shape)
    dispatch_shader(
        out.gpu,
        shaders.WGSL_MATMUL,
        [
            (a.buffer, "read"),
            (b.buffer, "read"),
            (out.buffer, "read_write"),
            (_uniform(out.gpu, m, n, k), "uniform"),
        ],
        (
            math.ceil(n / shaders.TILE),
            math.ceil(m / shaders.TILE),
            n_batch,
        ),
    )
    return out


@backend_control_path_manager(Backend, Backend.transpose, GPU)
def gpu_transpose(self: Backend, x: WgpuTensor) -> WgpuTensor:
    rows, cols = x.shape[-2], x.shape[-1]
    out = _empty(self, x.shape[:-2] + (cols, rows))
    dispatch_shader(
        out.gpu,
        shaders.WGSL_TRANSPOSE,
        [
            (x.buffer, "read"),
            (out.buffer, "read_write"),
            (_uniform(out.gpu, rows, cols), "uniform"),
        ],
        _grid(out.numel),
    )
    return out


@backend_control_path_manager(Backend, Backend.broadcast_to, GPU)
def gpu_broadcast_to(self: Backend, x: WgpuTensor, shape: Sequence[int]) -> WgpuTensor:
    shape = as_shape(shape)
    if x.shape == shape:
        return x
    return self.from_numpy(np.broadcast_to(self.to_numpy(x), shape))


@backend_control_path_manager(Backend, Backend.sum_to_shape, GPU)
def gpu_sum_to_shape(self: Backend, x: WgpuTensor, shape: Sequence[int]) -> WgpuTensor:
    tgt_shape = as_shape(shape)
    _, reduce_axes, pad = sum_to_shape_reduce_axes(x.shape, tgt_shape)
    if x.shape == tgt_shape:
        return x

    host = self.to_numpy(x)
    if reduce_axes:
        host = np.sum(host, axis=reduce_axes, keepdims=True)
    if pad:
        host = host.reshape(host.shape[pad:])
    return self.from_numpy(host)


@backend_control_path_manager(Backend, Backend.synchronize, GPU)
def gpu_synchronize(self: Backend) -> None:
    wait_idle(_gpu_of(self))
