import unittest

import numpy as np

import tapegrad
from tapegrad import WgpuTensor

from ..backend._gpu_test_utils import try_get_gpu_backend


class TestGraphOnGpu(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls.available = try_get_gpu_backend() is not None

    def setUp(self) -> None:
        if not self.available:
            self.skipTest("GPU (wgpu adapter) not available")
        self.g = tapegrad.new("gpu")

    def test_chain_matches_cpu(self) -> None:
        x = self.g.tensor(np.array([1.0, 2.0], dtype=np.float32))
        y = self.g.tensor(np.array([3.0, 4.0], dtype=np.float32))
        z = (x + y) * x
        z.forward()
        self.assertIsInstance(z.value(), WgpuTensor)
        np.testing.assert_allclose(z.to_numpy(), [4.0, 12.0])
        z.backward(seed=np.ones(2, dtype=np.float32))
        np.testing.assert_allclose(np.asarray(x.grad()), [5.0, 8.0])
        np.testing.assert_allclose(np.asarray(y.grad()), [1.0, 2.0])

    def test_device_resident_input(self) -> None:
        raw = self.g.backend.from_numpy(np.eye(2, dtype=np.float32))
        x = self.g.tensor(raw)
        np.testing.assert_array_equal(x.to_numpy(), np.eye(2))

    def test_expm_diag_1_1_2(self) -> None:
        x = self.g.tensor(np.diag([1.0, 1.0, 2.0]).astype(np.float32))
        z = x.expm()
        z.forward()
        np.testing.assert_allclose(z.to_numpy(), np.diag(np.exp([1.0, 1.0, 2.0])), rtol=1e-5)
        z.backward()
        e1, e2 = np.e, np.e**2
        off = e2 - e1
        expected = np.array([[e1, e1, off], [e1, e1, off], [off, off, e2]])
        np.testing.assert_allclose(np.asarray(x.grad()), expected, rtol=1e-5)

    def test_batched_matmul_gradients(self) -> None:
        rng = np.random.default_rng(5)
        av = rng.standard_normal((3, 4, 5)).astype(np.float32)
        bv = rng.standard_normal((5, 6)).astype(np.float32)
        a, b = self.g.tensor(av), self.g.tensor(bv)
        z = a @ b
        z.forward()
        z.backward()
        seed = np.ones((3, 4, 6), dtype=np.float32)
        np.testing.assert_allclose(np.asarray(a.grad()), seed @ bv.T, rtol=1e-4, atol=1e-4)
        np.testing.assert_allclose(
            np.asarray(b.grad()),
            (np.swapaxes(av, -1, -2) @ seed).sum(axis=0),
            rtol=1e-4,
            atol=1e-4,
        )

    def test_unvisited_grad_is_zero(self) -> None:
        x = self.g.tensor(np.ones((2, 2), dtype=np.float32))
        np.testing.assert_array_equal(np.asarray(x.grad()), np.zeros((2, 2)))


if __name__ == "__main__":
    unittest.main()
