"""
The computation graph (tape).

A `Graph` owns an append-only list of node records for one device. Nodes are
identified by their position in that list, and a node can only reference
nodes created before it, so tape order is always a valid topological order.

The graph is the only entry point that mutates node storage:

- `tensor` and `apply` append nodes (after full validation, so a failing
  call appends nothing),
- `forward` fills in memoized values,
- `backward` replaces gradients of the nodes reachable from its target,
- `zero_grad` clears every gradient.

Graphs are not thread-safe; confine each graph to one thread.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import numpy as np

from ...domain.device._device import Device
from ...domain._errors import (
    DeviceMismatchError,
    GraphConsistencyError,
    ShapeError,
    UnsupportedOperatorError,
)
from ...domain._op import Leaf, OpKind, make_op
from ...domain._shapes import Shape, broadcast_shapes, expm_shape, matmul_shape
from .._config import get_settings
from ..backend._base import Backend
from ._backward import backpropagate
from ._forward import check_diagonal, evaluate
from ._node import Node, NodeRecord, freeze

logger = logging.getLogger(__name__)

MAX_RANK = 32

_SHAPE_RULES: Dict[OpKind, Callable[..., Shape]] = {
    OpKind.ADD: lambda a, b: broadcast_shapes("add", a, b),
    OpKind.SUB: lambda a, b: broadcast_shapes("sub", a, b),
    OpKind.MUL: lambda a, b: broadcast_shapes("mul", a, b),
    OpKind.MATMUL: matmul_shape,
    OpKind.EXPM: expm_shape,
}


class Graph:
    """
    Append-only computation tape bound to one device.

    Parameters
    ----------
    device : Union[Device, str, None]
        Execution device ("cpu", "gpu" or "gpu:<index>"). `None` selects
        `TAPEGRAD_DEFAULT_DEVICE`.
    dtype : Optional[str]
        Storage dtype. `None` selects the device default (the configured CPU
        dtype, or float32 on GPUs).

    Examples
    --------
    >>> g = Graph("cpu")
    >>> x = g.tensor([1.0, 2.0])
    >>> y = g.tensor([3.0, 4.0])
    >>> z = (x + y) * x
    >>> z.forward()
    >>> z.backward()
    >>> x.grad()
    array([5., 8.])
    """

    def __init__(
        self, device: Union[Device, str, None] = None, dtype: Optional[str] = None
    ) -> None:
        if device is None:
            device = get_settings().default_device
        self._device = device if isinstance(device, Device) else Device(device)
        self._backend = Backend(self._device, dtype)
        self._dtype = self._backend.dtype
        self._records: List[NodeRecord] = []

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    @property
    def device(self) -> Device:
        return self._device

    @property
    def backend(self) -> Backend:
        return self._backend

    @property
    def dtype(self) -> Any:
        return self._dtype

    def __len__(self) -> int:
        return len(self._records)

    def node(self, node_id: int) -> Node:
        """
        Return the handle of node `node_id`.

        Raises
        ------
        IndexError
            If no such node exists.
        """
        if not 0 <= node_id < len(self._records):
            raise IndexError(f"graph has no node {node_id}")
        return Node(self, node_id)

    def nodes(self) -> List[Node]:
        """Handles of all nodes, in tape order."""
        return [Node(self, i) for i in range(len(self._records))]

    def __repr__(self) -> str:
        lines = [f"Graph(device={self._device}, nodes={len(self._records)})"]
        for i, record in enumerate(self._records):
            parents = ", ".join(str(p) for p in record.op.parents)
            lines.append(f"  {i}: {record.op.kind.value}({parents}) shape={record.shape}")
        return "\n".join(lines)

    def _label(self) -> str:
        return f"{self._device} (graph {id(self):#x})"

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------
    def tensor(self, value: Any) -> Node:
        """
        Append a leaf node holding a copy of `value`.

        Parameters
        ----------
        value : array-like
            NumPy array, nested sequence, Python number, or a raw tensor of a
            backend. Cast to the graph dtype.

        Returns
        -------
        Node
            Handle of the new leaf.

        Raises
        ------
        ShapeError
            If `value` is ragged, has more than `MAX_RANK` dimensions, or
            cannot be held by the device.
        TypeError
            If `value` is not numeric.
        """
        return self._append(self._make_leaf(value))

    def apply(self, kind: OpKind, *operands: Node) -> Node:
        """
        Append a node applying operator `kind` to `operands`.

        Raises
        ------
        UnsupportedOperatorError
            If `kind` is not an operator kind, is `LEAF`, gets the wrong
            number of operands, or is `EXPM` on a non-diagonal value.
        DeviceMismatchError
            If an operand belongs to another graph.
        ShapeMismatchError
            If the operand shapes are incompatible with `kind`.
        TypeError
            If an operand is not a `Node`.
        """
        for x in operands:
            if not isinstance(x, Node):
                raise TypeError(f"apply() operands must be Node, got {type(x).__name__}")
        return self._apply(kind, operands)

    def _make_leaf(self, value: Any) -> NodeRecord:
        try:
            host = np.asarray(value)
        except ValueError as exc:
            raise ShapeError(
                f"cannot build a tensor from ragged input: {exc}", device=str(self._device)
            ) from exc

        if host.dtype.kind not in "biuf":
            raise TypeError(f"tensor values must be numeric, got dtype {host.dtype}")
        if host.ndim > MAX_RANK:
            raise ShapeError(
                f"rank {host.ndim} exceeds the maximum of {MAX_RANK}",
                shape=host.shape,
                device=str(self._device),
            )

        raw = freeze(self._backend.from_numpy(host))
        return NodeRecord(op=Leaf(), shape=tuple(host.shape), dtype=self.dtype, value=raw)

    def _apply(self, kind: Any, operands: Sequence[Any]) -> Node:
        if not isinstance(kind, OpKind):
            raise UnsupportedOperatorError(str(kind), "unknown operator kind")
        if kind is OpKind.LEAF:
            raise UnsupportedOperatorError("leaf", "leaves are created with Graph.tensor()")
        if len(operands) != kind.arity:
            raise UnsupportedOperatorError(
                kind.value, f"expected {kind.arity} operand(s), got {len(operands)}"
            )

        # Validate everything before the tape is touched. Non-node operands
        # become leaves, appended only once the operator itself is valid.
        records = []
        for x in operands:
            if isinstance(x, Node):
                self._check_owned(x)
                records.append(self._records[x.id])
            else:
                records.append(self._make_leaf(x))

        shape = _SHAPE_RULES[kind](*(r.shape for r in records))
        if kind is OpKind.EXPM and records[0].value is not None:
            check_diagonal(self._backend, records[0].value)

        parent_ids = [
            x.id if isinstance(x, Node) else self._append(r).id
            for x, r in zip(operands, records)
        ]
        return self._append(NodeRecord(op=make_op(kind, *parent_ids), shape=shape, dtype=self.dtype))

    def _append(self, record: NodeRecord) -> Node:
        self._records.append(record)
        node_id = len(self._records) - 1
        logger.debug(
            "appended node %d: %s%s shape=%s",
            node_id,
            record.op.kind.value,
            record.op.parents,
            record.shape,
        )
        return Node(self, node_id)

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------
    def _check_owned(self, node: Node) -> None:
        if node.graph is not self:
            raise DeviceMismatchError(node.graph._label(), self._label())

    def forward(self, node: Node) -> None:
        """Evaluate `node` and its unevaluated ancestors."""
        self._check_owned(node)
        evaluate(self._records, self._backend, node.id)

    def value(self, node: Node) -> Any:
        """
        Return the memoized value of `node`.

        The tape's own tensor is returned, read-only on the CPU; use
        `Node.to_numpy` for a writable host copy.

        Raises
        ------
        GraphConsistencyError
            If `node` has not been evaluated.
        """
        self._check_owned(node)
        record = self._records[node.id]
        if record.value is None:
            raise GraphConsistencyError(
                f"node {node.id} has no value; call forward() first", node_id=node.id
            )
        return record.value

    def backward(self, node: Node, seed: Any = None) -> None:
        """Back-propagate from `node` with `seed` (ones by default)."""
        self._check_owned(node)
        backpropagate(self._records, self._backend, node.id, seed)

    def grad(self, node: Node) -> Any:
        """Gradient of `node` from the last backward pass that reached it."""
        self._check_owned(node)
        record = self._records[node.id]
        if record.grad is None:
            return self._backend.zeros(record.shape)
        return record.grad

    def zero_grad(self) -> None:
        """Clear the gradient of every node."""
        for record in self._records:
            record.grad = None
