"""
Shape rules for graph operators.

Pure functions on shape tuples, shared by the graph (to validate operands when
a node is appended), by the backends (to size outputs), and by the backward
engine (to reduce gradients back onto broadcast operands).

Broadcasting follows NumPy's rules: shapes are right-aligned, and each pair of
dimensions must be equal or contain a 1.
"""

from __future__ import annotations

from typing import Sequence

from ._errors import ShapeMismatchError

Shape = tuple[int, ...]


def as_shape(shape: Sequence[int]) -> Shape:
    return tuple(int(d) for d in shape)


def broadcast_shapes(op: str, a: Sequence[int], b: Sequence[int]) -> Shape:
    """
    Compute the broadcast result shape of two operand shapes.

    Parameters
    ----------
    op : str
        Operation name, used in the error message.
    a, b : Sequence[int]
        Operand shapes.

    Returns
    -------
    tuple[int, ...]
        The broadcast shape.

    Raises
    ------
    ShapeMismatchError
        If the shapes are not broadcast-compatible.
    """
    sa, sb = as_shape(a), as_shape(b)
    rank = max(len(sa), len(sb))
    pa = (1,) * (rank - len(sa)) + sa
    pb = (1,) * (rank - len(sb)) + sb

    out = []
    for i, (da, db) in enumerate(zip(pa, pb)):
        if da == db or db == 1:
            out.append(da)
        elif da == 1:
            out.append(db)
        else:
            raise ShapeMismatchError(
                op, sa, sb, reason=f"dim mismatch at axis {i - rank}: {da} vs {db}"
            )
    return tuple(out)


def matmul_shape(a: Sequence[int], b: Sequence[int]) -> Shape:
    """
    Compute the result shape of a batched matrix product.

    `a` must be `[..., m, k]` and `b` must be `[..., k, n]`; the batch
    dimensions broadcast against each other. The result is `batch + (m, n)`.

    Raises
    ------
    ShapeMismatchError
        If either operand has rank < 2, the inner dimensions differ, or the
        batch dimensions are not broadcast-compatible.
    """
    sa, sb = as_shape(a), as_shape(b)
    if len(sa) < 2 or len(sb) < 2:
        raise ShapeMismatchError("matmul", sa, sb, reason="operands must be at least 2-D")
    if sa[-1] != sb[-2]:
        raise ShapeMismatchError(
            "matmul", sa, sb, reason=f"inner dimensions {sa[-1]} and {sb[-2]} differ"
        )
    batch = broadcast_shapes("matmul", sa[:-2], sb[:-2])
    return batch + (sa[-2], sb[-1])


def expm_shape(a: Sequence[int]) -> Shape:
    """
    Validate the operand of a matrix exponential and return the result shape.

    Raises
    ------
    ShapeMismatchError
        If the operand is not a (batch of) square matrix.
    """
    sa = as_shape(a)
    if len(sa) < 2 or sa[-1] != sa[-2]:
        raise ShapeMismatchError("expm", sa, reason="operand must be a square matrix")
    return sa


def sum_to_shape_reduce_axes(
    src_shape: Sequence[int], target_shape: Sequence[int]
) -> tuple[Shape, Shape, int]:
    """
    Compute the padded target shape and reduction axes for `sum_to_shape`.

    Given a source shape `src_shape` (the broadcast result shape) and the
    original operand shape `target_shape`, this helper:

    1) Left-pads `target_shape` with ones so it has the same rank as
       `src_shape`.
    2) Validates that `target_shape` could have been broadcast to `src_shape`.
    3) Determines which axes must be summed to collapse broadcast dimensions
       back to size 1.

    Returns
    -------
    padded_target:
        `target_shape` left-padded with ones to match `len(src_shape)`.
    reduce_axes:
        Axes of the source to sum over with `keepdims=True`.
    pad:
        The number of leading dimensions added to the target.

    Raises
    ------
    ShapeMismatchError
        If `target_shape` has a higher rank than `src_shape`, or any dimension
        is not broadcast-compatible.
    """
    src = as_shape(src_shape)
    tgt = as_shape(target_shape)

    if len(tgt) > len(src):
        raise ShapeMismatchError(
            "sum_to_shape", src, tgt, reason=f"target rank {len(tgt)} > source rank {len(src)}"
        )

    pad = len(src) - len(tgt)
    padded_tgt = (1,) * pad + tgt

    for i, (sd, td) in enumerate(zip(src, padded_tgt)):
        if td not in (1, sd):
            raise ShapeMismatchError(
                "sum_to_shape", src, tgt, reason=f"dim mismatch at axis {i}: src={sd}, target={td}"
            )

    # Any axis where the target is 1 but the source is not.
    reduce_axes = tuple(
        i for i, (sd, td) in enumerate(zip(src, padded_tgt)) if td == 1 and sd != 1
    )

    return padded_tgt, reduce_axes, pad
