"""
Device-dispatched storage backend.

`Backend` is the single capability interface the graph engine runs on. The
kernel packages below register its per-device implementations as a side
effect of being imported.
"""

from ._base import Backend
from . import cpu  # noqa: F401
from . import wgpu  # noqa: F401
from .wgpu import WgpuTensor

__all__ = ["Backend", "WgpuTensor"]
