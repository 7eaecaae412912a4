"""
GPU raw tensor: a WebGPU storage buffer plus shape metadata.

A `WgpuTensor` is what the GPU backend hands to the graph as a node value or
gradient. Buffers are written once, by the kernel that produces them, and
are never modified afterwards, so several nodes may safely share one.
"""

from __future__ import annotations

from typing import Any

import numpy as np


class WgpuTensor:
    """
    GPU tensor wrapper around a wgpu storage buffer.

    Parameters
    ----------
    buffer : wgpu.GPUBuffer
        Storage buffer holding `numel` float32 values in row-major order.
    shape : tuple[int, ...]
        Logical shape.
    gpu : wgpu.GPUDevice
        Device that owns the buffer; used for read-back.

    Notes
    -----
    `numpy.asarray(t)` reads the buffer back to the host, which blocks until
    all work writing it has finished.
    """

    __slots__ = ("buffer", "_shape", "_gpu")

    dtype = np.dtype(np.float32)

    def __init__(self, buffer: Any, shape: tuple[int, ...], gpu: Any) -> None:
        self.buffer = buffer
        self._shape = tuple(int(d) for d in shape)
        self._gpu = gpu

    @property
    def shape(self) -> tuple[int, ...]:
        return self._shape

    @property
    def ndim(self) -> int:
        return len(self._shape)

    @property
    def numel(self) -> int:
        return int(np.prod(self._shape, dtype=np.int64))

    @property
    def gpu(self) -> Any:
        return self._gpu

    def numpy(self) -> np.ndarray:
        """Read tensor data back to the host as a float32 array."""
        data = self._gpu.queue.read_buffer(self.buffer)
        arr = np.frombuffer(data, dtype=np.float32, count=self.numel).copy()
        return arr.reshape(self._shape)

    def __array__(self, dtype: Any = None, copy: Any = None) -> np.ndarray:
        arr = self.numpy()
        return arr if dtype is None else arr.astype(dtype, copy=False)

    def __repr__(self) -> str:
        return f"WgpuTensor(shape={self._shape}, dtype=float32)"
