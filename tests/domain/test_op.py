import dataclasses
import unittest

from tapegrad.domain._op import (
    Add,
    Expm,
    Leaf,
    MatMul,
    Mul,
    OpKind,
    Sub,
    make_op,
)


class TestOpKind(unittest.TestCase):
    def test_closed_set(self) -> None:
        self.assertEqual(
            {k.value for k in OpKind}, {"leaf", "add", "sub", "mul", "matmul", "expm"}
        )

    def test_arity(self) -> None:
        self.assertEqual(OpKind.LEAF.arity, 0)
        self.assertEqual(OpKind.EXPM.arity, 1)
        for kind in (OpKind.ADD, OpKind.SUB, OpKind.MUL, OpKind.MATMUL):
            self.assertEqual(kind.arity, 2)


class TestOpVariants(unittest.TestCase):
    def test_make_op_builds_matching_variant(self) -> None:
        expected = {
            OpKind.ADD: Add,
            OpKind.SUB: Sub,
            OpKind.MUL: Mul,
            OpKind.MATMUL: MatMul,
        }
        for kind, cls in expected.items():
            op = make_op(kind, 3, 5)
            self.assertIsInstance(op, cls)
            self.assertIs(op.kind, kind)
            self.assertEqual(op.parents, (3, 5))

        expm = make_op(OpKind.EXPM, 7)
        self.assertIsInstance(expm, Expm)
        self.assertEqual(expm.parents, (7,))

        leaf = make_op(OpKind.LEAF)
        self.assertIsInstance(leaf, Leaf)
        self.assertEqual(leaf.parents, ())

    def test_records_are_frozen(self) -> None:
        op = Add(0, 1)
        with self.assertRaises(dataclasses.FrozenInstanceError):
            op.a = 2  # type: ignore[misc]

    def test_same_parents_compare_equal(self) -> None:
        self.assertEqual(Mul(1, 2), Mul(1, 2))
        self.assertNotEqual(Mul(1, 2), Add(1, 2))
        self.assertNotEqual(Sub(1, 2), Sub(2, 1))


if __name__ == "__main__":
    unittest.main()
