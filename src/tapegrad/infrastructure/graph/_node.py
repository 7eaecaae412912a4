"""
Tape entries and the user-facing node handle.

`NodeRecord` is the mutable per-node storage owned by a `Graph`: operator
record, shape, dtype, the memoized forward value and the gradient of the
last backward pass. Users never hold records; they hold `Node` handles,
which are a (graph, id) pair and carry no state of their own.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional

import numpy as np

from ...domain._op import Op, OpKind

if TYPE_CHECKING:
    from ._graph import Graph


@dataclass
class NodeRecord:
    """
    Storage of one tape entry.

    Attributes
    ----------
    op : Op
        Operator record with the parent identifiers.
    shape : tuple[int, ...]
        Output shape, fixed at creation.
    dtype : Any
        Storage dtype of the owning backend.
    value : Optional[Any]
        Forward value. Set once (at creation for leaves, by the forward
        evaluator otherwise) and never replaced.
    grad : Optional[Any]
        Gradient from the last backward pass that reached this node. `None`
        stands for the zero tensor of `shape`.
    """

    op: Op
    shape: tuple[int, ...]
    dtype: Any
    value: Optional[Any] = None
    grad: Optional[Any] = None


def freeze(raw: Any) -> Any:
    """
    Mark `raw` read-only when it is a host array, and return it.

    Values and gradients held by the tape are handed out without copying, so
    they must not be writable through the public API.
    """
    if isinstance(raw, np.ndarray):
        raw.setflags(write=False)
    return raw


class Node:
    """
    Lightweight handle to one node of a `Graph`.

    Handles are immutable and cheap to copy. Two handles are equal iff they
    refer to the same node of the same graph object.

    Arithmetic operators build new nodes in the same graph:

        z = (x + y) * x
        w = a @ b
        e = m.expm()

    Python numbers and array-likes on either side of `+ - * @` are lifted to
    new leaf nodes first.
    """

    __slots__ = ("_graph", "_id")

    # Make NumPy defer to the reflected operators below.
    __array_ufunc__ = None

    def __init__(self, graph: "Graph", node_id: int) -> None:
        self._graph = graph
        self._id = node_id

    @property
    def id(self) -> int:
        return self._id

    @property
    def graph(self) -> "Graph":
        return self._graph

    @property
    def _record(self) -> NodeRecord:
        return self._graph._records[self._id]

    @property
    def op(self) -> Op:
        return self._record.op

    @property
    def kind(self) -> OpKind:
        return self._record.op.kind

    @property
    def parents(self) -> tuple["Node", ...]:
        return tuple(Node(self._graph, p) for p in self._record.op.parents)

    @property
    def shape(self) -> tuple[int, ...]:
        return self._record.shape

    @property
    def ndim(self) -> int:
        return len(self._record.shape)

    @property
    def dtype(self) -> Any:
        return self._record.dtype

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------
    def forward(self) -> None:
        """Compute (and memoize) the value of this node and its ancestors."""
        self._graph.forward(self)

    def value(self) -> Any:
        """
        Return the forward value.

        Raises
        ------
        GraphConsistencyError
            If the node has not been evaluated yet.
        """
        return self._graph.value(self)

    def backward(self, seed: Any = None) -> None:
        """
        Propagate gradients from this node to all of its ancestors.

        Parameters
        ----------
        seed : array-like, optional
            Gradient of the final output with respect to this node. Must have
            this node's shape. Defaults to ones.
        """
        self._graph.backward(self, seed)

    def grad(self) -> Any:
        """Gradient from the last backward pass (zeros if never reached)."""
        return self._graph.grad(self)

    def to_numpy(self) -> Any:
        """Host (NumPy) copy of the forward value."""
        return self._graph.backend.to_numpy(self.value())

    # ------------------------------------------------------------------
    # Operators
    # ------------------------------------------------------------------
    def matmul(self, other: Any) -> "Node":
        return self._graph._apply(OpKind.MATMUL, (self, other))

    def expm(self) -> "Node":
        """Matrix exponential. Only diagonal operands are supported."""
        return self._graph._apply(OpKind.EXPM, (self,))

    def __add__(self, other: Any) -> "Node":
        return self._graph._apply(OpKind.ADD, (self, other))

    def __radd__(self, other: Any) -> "Node":
        return self._graph._apply(OpKind.ADD, (other, self))

    def __sub__(self, other: Any) -> "Node":
        return self._graph._apply(OpKind.SUB, (self, other))

    def __rsub__(self, other: Any) -> "Node":
        return self._graph._apply(OpKind.SUB, (other, self))

    def __mul__(self, other: Any) -> "Node":
        return self._graph._apply(OpKind.MUL, (self, other))

    def __rmul__(self, other: Any) -> "Node":
        return self._graph._apply(OpKind.MUL, (other, self))

    def __matmul__(self, other: Any) -> "Node":
        return self._graph._apply(OpKind.MATMUL, (self, other))

    def __rmatmul__(self, other: Any) -> "Node":
        return self._graph._apply(OpKind.MATMUL, (other, self))

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Node):
            return NotImplemented
        return self._graph is other._graph and self._id == other._id

    def __hash__(self) -> int:
        return hash((id(self._graph), self._id))

    def __repr__(self) -> str:
        return f"Node(id={self._id}, kind={self.kind.value}, shape={self.shape})"
