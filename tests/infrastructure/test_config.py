import os
import unittest
from unittest import mock

from tapegrad.infrastructure._config import Settings, get_settings


class TestSettingsFromEnv(unittest.TestCase):
    def test_defaults(self) -> None:
        s = Settings.from_env({})
        self.assertEqual(s.default_device, "cpu")
        self.assertEqual(s.cpu_dtype, "float64")
        self.assertEqual(s.wgpu_power_preference, "high-performance")

    def test_overrides_are_normalized(self) -> None:
        s = Settings.from_env(
            {
                "TAPEGRAD_DEFAULT_DEVICE": " gpu ",
                "TAPEGRAD_CPU_DTYPE": "FLOAT32",
                "TAPEGRAD_WGPU_POWER_PREFERENCE": "Low-Power",
            }
        )
        self.assertEqual(s.default_device, "gpu:0")
        self.assertEqual(s.cpu_dtype, "float32")
        self.assertEqual(s.wgpu_power_preference, "low-power")

    def test_invalid_values_name_the_variable(self) -> None:
        cases = {
            "TAPEGRAD_DEFAULT_DEVICE": "tpu",
            "TAPEGRAD_CPU_DTYPE": "int8",
            "TAPEGRAD_WGPU_POWER_PREFERENCE": "fast",
        }
        for var, value in cases.items():
            with self.subTest(var=var):
                with self.assertRaises(ValueError) as cm:
                    Settings.from_env({var: value})
                self.assertIn(var, str(cm.exception))

    def test_settings_are_frozen(self) -> None:
        s = Settings()
        with self.assertRaises(AttributeError):
            s.cpu_dtype = "float32"  # type: ignore[misc]


class TestGetSettings(unittest.TestCase):
    def tearDown(self) -> None:
        get_settings.cache_clear()

    def test_reads_process_environment_once(self) -> None:
        get_settings.cache_clear()
        with mock.patch.dict(os.environ, {"TAPEGRAD_CPU_DTYPE": "float32"}):
            first = get_settings()
        self.assertEqual(first.cpu_dtype, "float32")
        # Cached: later environment changes are not observed.
        self.assertIs(get_settings(), first)


if __name__ == "__main__":
    unittest.main()
