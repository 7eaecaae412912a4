import unittest

import numpy as np

from tapegrad.domain._errors import ShapeMismatchError
from tapegrad.domain._shapes import (
    as_shape,
    broadcast_shapes,
    expm_shape,
    matmul_shape,
    sum_to_shape_reduce_axes,
)


class TestBroadcastShapes(unittest.TestCase):
    def test_matches_numpy(self) -> None:
        cases = [
            ((2, 3), (2, 3)),
            ((2, 3), (3,)),
            ((4, 1, 3), (2, 1)),
            ((), (5, 2)),
            ((1,), (7,)),
        ]
        for a, b in cases:
            with self.subTest(a=a, b=b):
                self.assertEqual(broadcast_shapes("add", a, b), np.broadcast_shapes(a, b))

    def test_incompatible(self) -> None:
        with self.assertRaises(ShapeMismatchError) as cm:
            broadcast_shapes("mul", (2, 3), (4,))
        self.assertEqual(cm.exception.op, "mul")
        self.assertEqual(cm.exception.shapes, ((2, 3), (4,)))

    def test_as_shape_normalizes(self) -> None:
        self.assertEqual(as_shape([np.int64(2), 3]), (2, 3))


class TestMatmulShape(unittest.TestCase):
    def test_plain(self) -> None:
        self.assertEqual(matmul_shape((2, 3), (3, 4)), (2, 4))

    def test_batch_broadcast(self) -> None:
        self.assertEqual(matmul_shape((5, 1, 2, 3), (4, 3, 6)), (5, 4, 2, 6))

    def test_inner_mismatch(self) -> None:
        with self.assertRaises(ShapeMismatchError):
            matmul_shape((2, 3), (4, 2))

    def test_rank_one_rejected(self) -> None:
        with self.assertRaises(ShapeMismatchError):
            matmul_shape((3,), (3, 2))

    def test_batch_mismatch(self) -> None:
        with self.assertRaises(ShapeMismatchError):
            matmul_shape((2, 2, 3), (3, 3, 4))


class TestExpmShape(unittest.TestCase):
    def test_square(self) -> None:
        self.assertEqual(expm_shape((3, 3)), (3, 3))
        self.assertEqual(expm_shape((2, 4, 4)), (2, 4, 4))

    def test_non_square(self) -> None:
        for bad in ((3,), (2, 3), (1, 2, 3)):
            with self.subTest(shape=bad):
                with self.assertRaises(ShapeMismatchError):
                    expm_shape(bad)


class TestSumToShapeReduceAxes(unittest.TestCase):
    def test_leading_and_size_one_axes(self) -> None:
        padded, axes, pad = sum_to_shape_reduce_axes((4, 2, 3), (2, 1))
        self.assertEqual(padded, (1, 2, 1))
        self.assertEqual(axes, (0, 2))
        self.assertEqual(pad, 1)

    def test_identity(self) -> None:
        padded, axes, pad = sum_to_shape_reduce_axes((2, 3), (2, 3))
        self.assertEqual((padded, axes, pad), ((2, 3), (), 0))

    def test_to_scalar(self) -> None:
        padded, axes, pad = sum_to_shape_reduce_axes((2, 3), ())
        self.assertEqual((padded, axes, pad), ((1, 1), (0, 1), 2))

    def test_target_rank_too_high(self) -> None:
        with self.assertRaises(ShapeMismatchError):
            sum_to_shape_reduce_axes((3,), (1, 3))

    def test_incompatible_dim(self) -> None:
        with self.assertRaises(ShapeMismatchError):
            sum_to_shape_reduce_axes((2, 3), (2,))


if __name__ == "__main__":
    unittest.main()
