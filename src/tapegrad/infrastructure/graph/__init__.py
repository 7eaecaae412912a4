"""
Lazy computation graph with reverse-mode differentiation.
"""

from ._graph import Graph, MAX_RANK
from ._node import Node
from ._forward import FORWARD_RULES
from ._backward import BACKWARD_RULES

__all__ = ["Graph", "Node", "MAX_RANK", "FORWARD_RULES", "BACKWARD_RULES"]
