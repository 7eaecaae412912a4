"""
Backward (vector-Jacobian) rules and the reverse-mode engine.

Each operator kind registers exactly one backward rule with `backward_rule`.
A rule is called as

    rule(backend, g, out, *parent_values) -> tuple of contributions

where `g` is the incoming gradient (shaped like the node's output), `out` is
the node's forward value and the result holds one contribution per parent,
already reduced to that parent's shape.

Broadcasting
------------
An operand that was broadcast in the forward pass receives `g` summed over
the broadcast axes (`Backend.sum_to_shape`). This also covers the batch
dimensions of a batched matrix product.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

import numpy as np

from ...domain._errors import GraphConsistencyError, ShapeMismatchError
from ...domain._op import OpKind
from ..backend._base import Backend
from ._node import NodeRecord, freeze

logger = logging.getLogger(__name__)

BackwardRule = Callable[..., Tuple[Any, ...]]

BACKWARD_RULES: Dict[OpKind, BackwardRule] = {}


def backward_rule(kind: OpKind) -> Callable[[BackwardRule], BackwardRule]:
    """
    Register the decorated function as the backward rule of `kind`.

    Raises
    ------
    ValueError
        If `kind` already has a backward rule.
    """

    def decorator(fn: BackwardRule) -> BackwardRule:
        if kind in BACKWARD_RULES:
            raise ValueError(f"duplicate backward rule for {kind}")
        BACKWARD_RULES[kind] = fn
        return fn

    return decorator


@backward_rule(OpKind.ADD)
def _add(backend: Backend, g: Any, out: Any, a: Any, b: Any) -> Tuple[Any, Any]:
    return backend.sum_to_shape(g, a.shape), backend.sum_to_shape(g, b.shape)


@backward_rule(OpKind.SUB)
def _sub(backend: Backend, g: Any, out: Any, a: Any, b: Any) -> Tuple[Any, Any]:
    return backend.sum_to_shape(g, a.shape), backend.sum_to_shape(backend.neg(g), b.shape)


@backward_rule(OpKind.MUL)
def _mul(backend: Backend, g: Any, out: Any, a: Any, b: Any) -> Tuple[Any, Any]:
    return (
        backend.sum_to_shape(backend.mul(g, b), a.shape),
        backend.sum_to_shape(backend.mul(g, a), b.shape),
    )


@backward_rule(OpKind.MATMUL)
def _matmul(backend: Backend, g: Any, out: Any, a: Any, b: Any) -> Tuple[Any, Any]:
    grad_a = backend.matmul(g, backend.transpose(b))
    grad_b = backend.matmul(backend.transpose(a), g)
    return backend.sum_to_shape(grad_a, a.shape), backend.sum_to_shape(grad_b, b.shape)


def expm_divided_differences(a: np.ndarray) -> np.ndarray:
    """
    Fréchet-derivative weights of `expm` at a diagonal matrix.

    With `l = diag(a)`:

        D[i, j] = (exp(l[i]) - exp(l[j])) / (l[i] - l[j])    for l[i] != l[j]
        D[i, j] = exp(l[i])                                   for l[i] == l[j]

    The first case is evaluated as `exp(m) * -expm1(-|d|) / |d|` with
    `m = max(l[i], l[j])` and `d = l[i] - l[j]`. Factoring out the larger
    exponent keeps it accurate when the eigenvalues are close, and finite
    whenever `exp(m)` is, however far apart they are.

    Parameters
    ----------
    a : np.ndarray
        Diagonal matrix, or a batch of them (`[..., n, n]`).

    Returns
    -------
    np.ndarray
        `D`, same shape as `a`, in float64.
    """
    lam = np.diagonal(np.asarray(a, dtype=np.float64), axis1=-2, axis2=-1)
    li = lam[..., :, None]
    lj = lam[..., None, :]
    diff = li - lj
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        gap = np.abs(diff)
        weights = np.exp(np.maximum(li, lj)) * -np.expm1(-gap) / gap
    return np.where(diff == 0, np.exp(li), weights)


@backward_rule(OpKind.EXPM)
def _expm(backend: Backend, g: Any, out: Any, a: Any) -> Tuple[Any]:
    weights = expm_divided_differences(backend.to_numpy(a)).astype(backend.dtype)
    return (backend.mul(g, backend.from_numpy(weights)),)


def reachable(records: List[NodeRecord], target: int) -> List[int]:
    """Identifiers of `target` and all of its ancestors, in tape order."""
    seen = set()
    stack = [target]
    while stack:
        i = stack.pop()
        if i in seen:
            continue
        seen.add(i)
        stack.extend(records[i].op.parents)
    return sorted(seen)


def _seed(backend: Backend, record: NodeRecord, seed: Any) -> Any:
    if seed is None:
        return backend.ones(record.shape)

    host = np.asarray(seed)
    if host.shape != record.shape:
        raise ShapeMismatchError(
            "backward", host.shape, record.shape, reason="seed must have the target's shape"
        )
    return backend.from_numpy(host.astype(backend.dtype, copy=False))


def backpropagate(
    records: List[NodeRecord], backend: Backend, target: int, seed: Optional[Any] = None
) -> None:
    """
    Run reverse-mode differentiation from `records[target]`.

    Contributions are accumulated in a scratch table while the nodes
    reachable from the target are visited in reverse tape order. Only when
    the whole pass succeeded are the gradients committed: every reachable
    node has its gradient replaced by its accumulated sum (zero if nothing
    reached it). Gradients of unreachable nodes are left as they were.

    Raises
    ------
    GraphConsistencyError
        If the target has no forward value.
    ShapeMismatchError
        If `seed` does not have the target's shape.
    """
    record = records[target]
    if record.value is None:
        raise GraphConsistencyError(
            f"backward({target}) requires a forward value; call forward() first",
            node_id=target,
        )

    scratch: Dict[int, Any] = {target: _seed(backend, record, seed)}
    order = reachable(records, target)

    for i in reversed(order):
        g = scratch.get(i)
        node = records[i]
        if g is None or node.op.kind is OpKind.LEAF:
            continue

        parents = [records[p].value for p in node.op.parents]
        contributions = BACKWARD_RULES[node.op.kind](backend, g, node.value, *parents)
        for p, contribution in zip(node.op.parents, contributions):
            previous = scratch.get(p)
            scratch[p] = contribution if previous is None else backend.add(previous, contribution)

    backend.synchronize()

    for i in order:
        records[i].grad = freeze(scratch.get(i))
    logger.debug("backward(%d): visited %d node(s)", target, len(order))
