"""
NumPy kernels for the CPU device.

Importing this package registers the CPU control paths on `Backend`.
"""

from . import _kernels  # noqa: F401
