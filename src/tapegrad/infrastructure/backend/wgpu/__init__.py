"""
WebGPU kernels for GPU devices.

Importing this package registers the GPU control paths on `Backend`. The
`wgpu` library itself is only imported when a GPU kernel first runs.
"""

from . import _kernels  # noqa: F401
from ._tensor import WgpuTensor

__all__ = ["WgpuTensor"]
