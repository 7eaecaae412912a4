"""
Concrete runtime of tapegrad: configuration, storage backends and the graph
engine.
"""

from ._config import Settings, get_settings
from .backend import Backend, WgpuTensor
from .graph import Graph, Node
