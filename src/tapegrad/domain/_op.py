"""
Operator tags recorded on the tape.

Every node of a graph carries exactly one operator record. The set of
operators is closed: `OpKind` enumerates it, and each kind has a frozen
dataclass variant holding the identifiers of its parent nodes.

    Leaf()          no parents, seeded with a value at creation
    Add(a, b)       elementwise a + b (broadcasting)
    Sub(a, b)       elementwise a - b (broadcasting)
    Mul(a, b)       elementwise a * b (broadcasting)
    MatMul(a, b)    batched matrix product
    Expm(a)         matrix exponential of a diagonal matrix

Parent identifiers are plain integers into the owning graph's node list, so
a record never owns or points at another node directly.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union


class OpKind(Enum):
    """
    Enumeration of the operators a node can record.
    """

    LEAF = "leaf"
    ADD = "add"
    SUB = "sub"
    MUL = "mul"
    MATMUL = "matmul"
    EXPM = "expm"

    @property
    def arity(self) -> int:
        """
        Number of parent nodes an operator of this kind takes.
        """
        return _ARITY[self]


_ARITY = {
    OpKind.LEAF: 0,
    OpKind.ADD: 2,
    OpKind.SUB: 2,
    OpKind.MUL: 2,
    OpKind.MATMUL: 2,
    OpKind.EXPM: 1,
}


@dataclass(frozen=True)
class Leaf:
    kind = OpKind.LEAF

    @property
    def parents(self) -> tuple[int, ...]:
        return ()


@dataclass(frozen=True)
class _Binary:
    a: int
    b: int

    @property
    def parents(self) -> tuple[int, ...]:
        return (self.a, self.b)


@dataclass(frozen=True)
class Add(_Binary):
    kind = OpKind.ADD


@dataclass(frozen=True)
class Sub(_Binary):
    kind = OpKind.SUB


@dataclass(frozen=True)
class Mul(_Binary):
    kind = OpKind.MUL


@dataclass(frozen=True)
class MatMul(_Binary):
    kind = OpKind.MATMUL


@dataclass(frozen=True)
class Expm:
    a: int
    kind = OpKind.EXPM

    @property
    def parents(self) -> tuple[int, ...]:
        return (self.a,)


Op = Union[Leaf, Add, Sub, Mul, MatMul, Expm]

_VARIANTS = {
    OpKind.LEAF: Leaf,
    OpKind.ADD: Add,
    OpKind.SUB: Sub,
    OpKind.MUL: Mul,
    OpKind.MATMUL: MatMul,
    OpKind.EXPM: Expm,
}


def make_op(kind: OpKind, *parents: int) -> Op:
    """
    Build the operator record of `kind` over the given parent identifiers.

    Parameters
    ----------
    kind : OpKind
        Operator tag.
    *parents : int
        Parent node identifiers, in operand order.

    Returns
    -------
    Op
        The frozen variant for `kind`.
    """
    return _VARIANTS[kind](*parents)
