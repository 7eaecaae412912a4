import unittest
import warnings

import numpy as np

from tapegrad.domain._errors import ShapeError
from tapegrad.infrastructure.backend import WgpuTensor

from ._gpu_test_utils import GpuTestCase


class TestWgpuStaging(GpuTestCase, unittest.TestCase):
    def test_round_trip_float32(self) -> None:
        src = np.arange(12, dtype=np.float32).reshape(3, 4)
        x = self.be.from_numpy(src)
        self.assertIsInstance(x, WgpuTensor)
        self.assertEqual(x.shape, (3, 4))
        np.testing.assert_array_equal(self.be.to_numpy(x), src)
        np.testing.assert_array_equal(np.asarray(x), src)

    def test_exact_downcast_does_not_warn(self) -> None:
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            self.be.from_numpy(np.array([1.0, 0.5], dtype=np.float64))

    def test_nan_downcast_does_not_warn(self) -> None:
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            x = self.be.from_numpy(np.array([np.nan, 1.0], dtype=np.float64))
        host = self.be.to_numpy(x)
        self.assertTrue(np.isnan(host[0]))
        self.assertEqual(host[1], 1.0)

    def test_lossy_downcast_warns(self) -> None:
        with self.assertWarns(RuntimeWarning):
            self.be.from_numpy(np.array([0.1], dtype=np.float64))

    def test_empty_rejected(self) -> None:
        with self.assertRaises(ShapeError):
            self.be.from_numpy(np.zeros((0, 3), dtype=np.float32))

    def test_dtype_is_float32(self) -> None:
        self.assertEqual(self.be.dtype, np.float32)


class TestWgpuKernels(GpuTestCase, unittest.TestCase):
    def _up(self, arr) -> WgpuTensor:
        return self.be.from_numpy(np.asarray(arr, dtype=np.float32))

    def test_constants(self) -> None:
        np.testing.assert_array_equal(self.be.to_numpy(self.be.zeros((2, 3))), np.zeros((2, 3)))
        np.testing.assert_array_equal(self.be.to_numpy(self.be.ones((4,))), np.ones(4))
        np.testing.assert_array_equal(self.be.to_numpy(self.be.eye(3)), np.eye(3))

    def test_elementwise_broadcasting(self) -> None:
        a = np.array([[1.0, 2.0], [3.0, 4.0]], dtype=np.float32)
        b = np.array([10.0, 20.0], dtype=np.float32)
        for name, ref in (("add", a + b), ("sub", a - b), ("mul", a * b)):
            with self.subTest(kernel=name):
                out = getattr(self.be, name)(self._up(a), self._up(b))
                self.assertEqual(out.shape, (2, 2))
                np.testing.assert_allclose(self.be.to_numpy(out), ref, rtol=1e-6)

    def test_large_elementwise_uses_2d_grid(self) -> None:
        n = 256 * 65535 + 17
        a = np.ones(n, dtype=np.float32)
        out = self.be.to_numpy(self.be.add(self._up(a), self._up(a)))
        self.assertEqual(float(out[-1]), 2.0)
        self.assertEqual(float(out.min()), 2.0)

    def test_unary(self) -> None:
        x = np.array([-1.0, 0.0, 1.5], dtype=np.float32)
        np.testing.assert_allclose(self.be.to_numpy(self.be.neg(self._up(x))), -x)
        np.testing.assert_allclose(self.be.to_numpy(self.be.exp(self._up(x))), np.exp(x), rtol=1e-5)

    def test_matmul_matches_numpy(self) -> None:
        rng = np.random.default_rng(1)
        cases = [((2, 3), (3, 4)), ((17, 33), (33, 19)), ((3, 5, 7), (7, 2)), ((2, 1, 4, 3), (5, 3, 6))]
        for sa, sb in cases:
            with self.subTest(a=sa, b=sb):
                a = rng.standard_normal(sa).astype(np.float32)
                b = rng.standard_normal(sb).astype(np.float32)
                out = self.be.matmul(self._up(a), self._up(b))
                np.testing.assert_allclose(self.be.to_numpy(out), a @ b, rtol=1e-4, atol=1e-5)

    def test_batched_transpose(self) -> None:
        a = np.arange(2 * 3 * 5, dtype=np.float32).reshape(2, 3, 5)
        out = self.be.transpose(self._up(a))
        self.assertEqual(out.shape, (2, 5, 3))
        np.testing.assert_array_equal(self.be.to_numpy(out), np.swapaxes(a, -1, -2))

    def test_broadcast_and_sum_to_shape(self) -> None:
        x = np.array([[1.0], [2.0]], dtype=np.float32)
        y = self.be.broadcast_to(self._up(x), (3, 2, 4))
        self.assertEqual(y.shape, (3, 2, 4))
        back = self.be.sum_to_shape(y, (2, 1))
        np.testing.assert_allclose(self.be.to_numpy(back), x * 12)

    def test_scalar_tensor(self) -> None:
        s = self.be.mul(self._up(3.0), self._up(4.0))
        self.assertEqual(s.shape, ())
        self.assertEqual(float(self.be.to_numpy(s)), 12.0)


if __name__ == "__main__":
    unittest.main()
