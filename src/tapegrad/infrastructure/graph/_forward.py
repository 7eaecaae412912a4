"""
Forward rules and the lazy forward evaluator.

Each operator kind registers exactly one forward rule with `forward_rule`.
A rule receives the backend and the values of the node's parents (in operand
order) and returns the node's value as a new raw tensor.

`evaluate` walks the unevaluated ancestors of a target in tape order, which
is a topological order because parents are always created before their
children. Nodes that already hold a value are skipped, so shared
sub-expressions are computed once no matter how many paths reach them.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List

import numpy as np

from ...domain._errors import UnsupportedOperatorError
from ...domain._op import OpKind
from ..backend._base import Backend
from ._node import NodeRecord, freeze

logger = logging.getLogger(__name__)

ForwardRule = Callable[..., Any]

FORWARD_RULES: Dict[OpKind, ForwardRule] = {}


def forward_rule(kind: OpKind) -> Callable[[ForwardRule], ForwardRule]:
    """
    Register the decorated function as the forward rule of `kind`.

    Raises
    ------
    ValueError
        If `kind` already has a forward rule.
    """

    def decorator(fn: ForwardRule) -> ForwardRule:
        if kind in FORWARD_RULES:
            raise ValueError(f"duplicate forward rule for {kind}")
        FORWARD_RULES[kind] = fn
        return fn

    return decorator


def check_diagonal(backend: Backend, x: Any) -> None:
    """
    Reject a (batch of) square matrix with non-zero off-diagonal entries.

    Raises
    ------
    UnsupportedOperatorError
        If any off-diagonal entry is non-zero.
    """
    host = np.asarray(backend.to_numpy(x))
    n = host.shape[-1]
    off_diagonal = host[..., ~np.eye(n, dtype=bool)]
    if np.any(off_diagonal != 0):
        raise UnsupportedOperatorError(
            "expm", "only diagonal matrices are supported (found non-zero off-diagonal entries)"
        )


@forward_rule(OpKind.ADD)
def _add(backend: Backend, a: Any, b: Any) -> Any:
    return backend.add(a, b)


@forward_rule(OpKind.SUB)
def _sub(backend: Backend, a: Any, b: Any) -> Any:
    return backend.sub(a, b)


@forward_rule(OpKind.MUL)
def _mul(backend: Backend, a: Any, b: Any) -> Any:
    return backend.mul(a, b)


@forward_rule(OpKind.MATMUL)
def _matmul(backend: Backend, a: Any, b: Any) -> Any:
    return backend.matmul(a, b)


@forward_rule(OpKind.EXPM)
def _expm(backend: Backend, a: Any) -> Any:
    # exp of a diagonal matrix is the diagonal of elementwise exponentials.
    check_diagonal(backend, a)
    return backend.mul(backend.eye(a.shape[-1]), backend.exp(a))


def pending_ancestors(records: List[NodeRecord], target: int) -> List[int]:
    """
    Identifiers of `target` and its ancestors that still need a value, in
    tape order.

    The walk stops at nodes that already hold a value: their own ancestors
    are not needed.
    """
    pending = set()
    stack = [target]
    while stack:
        i = stack.pop()
        if i in pending or records[i].value is not None:
            continue
        pending.add(i)
        stack.extend(records[i].op.parents)
    return sorted(pending)


def evaluate(records: List[NodeRecord], backend: Backend, target: int) -> None:
    """
    Populate the value of `records[target]` and every unevaluated ancestor.

    Values computed before a failing rule stay memoized; they are correct
    and are never recomputed. The backend is synchronized before returning.
    """
    order = pending_ancestors(records, target)
    for i in order:
        record = records[i]
        parents = [records[p].value for p in record.op.parents]
        record.value = freeze(FORWARD_RULES[record.op.kind](backend, *parents))

    backend.synchronize()
    logger.debug("forward(%d): evaluated %d node(s)", target, len(order))
