import unittest
from unittest import mock

import numpy as np

import tapegrad
from tapegrad import GraphConsistencyError, UnsupportedOperatorError
from tapegrad.infrastructure.graph._forward import pending_ancestors


def counting(graph, *names):
    """Patch backend kernels on `graph` with call-counting wrappers."""
    patches = [
        mock.patch.object(graph.backend, name, wraps=getattr(graph.backend, name))
        for name in names
    ]
    return [p.start() for p in patches], patches


class TestForward(unittest.TestCase):
    def setUp(self) -> None:
        self.g = tapegrad.new("cpu")
        self.x = self.g.tensor([1.0, 2.0])
        self.y = self.g.tensor([3.0, 4.0])

    def test_value_before_forward_raises(self) -> None:
        z = self.x * self.y
        with self.assertRaises(GraphConsistencyError) as cm:
            z.value()
        self.assertEqual(cm.exception.node_id, z.id)

    def test_leaf_values_available_immediately(self) -> None:
        np.testing.assert_array_equal(self.x.value(), [1.0, 2.0])

    def test_product(self) -> None:
        z = self.x * self.y
        self.assertIsNone(z.forward())
        np.testing.assert_allclose(z.value(), [3.0, 8.0])
        np.testing.assert_allclose(z.to_numpy(), [3.0, 8.0])

    def test_chain(self) -> None:
        z = (self.x + self.y) * self.x
        z.forward()
        np.testing.assert_allclose(z.value(), [4.0, 12.0])

    def test_forward_populates_ancestors_only(self) -> None:
        s = self.x + self.y
        unrelated = self.x - self.y
        z = s * self.x
        z.forward()
        np.testing.assert_allclose(s.value(), [4.0, 6.0])
        with self.assertRaises(GraphConsistencyError):
            unrelated.value()

    def test_pending_ancestors_in_tape_order(self) -> None:
        s = self.x + self.y
        d = self.x - self.y
        z = s * d
        self.assertEqual(pending_ancestors(self.g._records, z.id), [s.id, d.id, z.id])
        s.forward()
        self.assertEqual(pending_ancestors(self.g._records, z.id), [d.id, z.id])

    def test_broadcasting_and_lifting(self) -> None:
        col = self.g.tensor([[1.0], [10.0]])
        z = col * self.x + 1
        z.forward()
        np.testing.assert_allclose(z.value(), [[2.0, 3.0], [11.0, 21.0]])

    def test_batched_matmul(self) -> None:
        rng = np.random.default_rng(0)
        a = rng.standard_normal((3, 2, 4))
        b = rng.standard_normal((4, 5))
        z = self.g.tensor(a) @ self.g.tensor(b)
        z.forward()
        np.testing.assert_allclose(z.value(), a @ b)


class TestMemoization(unittest.TestCase):
    def test_shared_subexpression_computed_once(self) -> None:
        g = tapegrad.new()
        x = g.tensor([1.0, 2.0])
        y = g.tensor([3.0, 4.0])
        s = x + y
        z = s * s + s

        (add, mul), patches = counting(g, "add", "mul")
        try:
            z.forward()
            z.forward()
            (s * x).forward()
        finally:
            for p in patches:
                p.stop()

        # s and z are the two adds; s*s and s*x the two muls.
        self.assertEqual(add.call_count, 2)
        self.assertEqual(mul.call_count, 2)
        np.testing.assert_allclose(z.value(), [20.0, 42.0])

    def test_forward_synchronizes_backend(self) -> None:
        g = tapegrad.new()
        z = g.tensor([1.0]) + g.tensor([2.0])
        with mock.patch.object(g.backend, "synchronize", wraps=g.backend.synchronize) as sync:
            z.forward()
        self.assertEqual(sync.call_count, 1)

    def test_memoized_values_are_read_only(self) -> None:
        g = tapegrad.new()
        x = g.tensor([1.0, 2.0])
        y = g.tensor([3.0, 4.0])
        with self.assertRaises(ValueError):
            x.value()[0] = 99.0

        z = x * y
        z.forward()
        with self.assertRaises(ValueError):
            z.value()[:] = 0.0
        np.testing.assert_array_equal(z.value(), [3.0, 8.0])

        # Host copies stay writable.
        host = z.to_numpy()
        host[0] = -1.0
        np.testing.assert_array_equal(z.value(), [3.0, 8.0])


class TestExpmForward(unittest.TestCase):
    def test_diagonal(self) -> None:
        g = tapegrad.new()
        z = g.tensor(np.diag([1.0, 1.0, 2.0])).expm()
        z.forward()
        np.testing.assert_allclose(z.value(), np.diag(np.exp([1.0, 1.0, 2.0])))

    def test_batched_diagonal(self) -> None:
        g = tapegrad.new()
        a = np.stack([np.diag([0.0, 1.0]), np.diag([-1.0, 3.0])])
        z = g.tensor(a).expm()
        z.forward()
        expected = np.stack([np.diag(np.exp([0.0, 1.0])), np.diag(np.exp([-1.0, 3.0]))])
        np.testing.assert_allclose(z.value(), expected)

    def test_non_diagonal_intermediate_fails_during_forward(self) -> None:
        g = tapegrad.new()
        a = g.tensor(np.eye(2))
        b = g.tensor([[0.0, 1.0], [0.0, 0.0]])
        m = a + b
        z = m.expm()  # value of `m` unknown yet: accepted lazily
        with self.assertRaises(UnsupportedOperatorError):
            z.forward()
        # `m` was computed correctly and stays memoized; `z` was never written.
        np.testing.assert_allclose(m.value(), [[1.0, 1.0], [0.0, 1.0]])
        with self.assertRaises(GraphConsistencyError):
            z.value()

    def test_non_diagonal_evaluated_operand_fails_at_apply(self) -> None:
        g = tapegrad.new()
        m = g.tensor(np.eye(2)) + g.tensor([[0.0, 1.0], [0.0, 0.0]])
        m.forward()
        n = len(g)
        with self.assertRaises(UnsupportedOperatorError):
            m.expm()
        self.assertEqual(len(g), n)


if __name__ == "__main__":
    unittest.main()
