"""
tapegrad: a lazy computation graph with reverse-mode automatic
differentiation over NumPy (CPU) and WebGPU (GPU) storage.

Quick start
-----------
>>> import tapegrad
>>> g = tapegrad.new("cpu")
>>> x = g.tensor([1.0, 2.0])
>>> y = g.tensor([3.0, 4.0])
>>> z = x * y
>>> z.forward()
>>> z.backward()
>>> x.grad()
array([3., 4.])
"""

import logging
from typing import Union

from .domain import (
    Device,
    DeviceType,
    OpKind,
    ShapeError,
    ShapeMismatchError,
    UnsupportedOperatorError,
    DeviceNotSupportedError,
    DeviceMismatchError,
    DeviceFailureError,
    GraphConsistencyError,
)
from .infrastructure import Graph, Node, Settings, get_settings, WgpuTensor

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"


def new(device: Union[Device, str] = "cpu") -> Graph:
    """
    Create an empty graph on `device`.

    Parameters
    ----------
    device : Union[Device, str]
        "cpu", "gpu" or "gpu:<index>".

    Returns
    -------
    Graph
        A new, empty graph.
    """
    return Graph(device)


__all__ = [
    "new",
    "Graph",
    "Node",
    "Device",
    "DeviceType",
    "OpKind",
    "Settings",
    "get_settings",
    "WgpuTensor",
    "ShapeError",
    "ShapeMismatchError",
    "UnsupportedOperatorError",
    "DeviceNotSupportedError",
    "DeviceMismatchError",
    "DeviceFailureError",
    "GraphConsistencyError",
]
