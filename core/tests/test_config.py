"""Tests for environment-driven settings."""

import unittest

from core.config import EngineSettings, load_settings
from core.errors import AdapterError, BasketBusyError, StaleDataError, ValidationError


class LoadSettingsTests(unittest.TestCase):
    def test_defaults_when_environment_empty(self) -> None:
        self.assertEqual(load_settings({}), EngineSettings())

    def test_values_read_from_environment(self) -> None:
        settings = load_settings(
            {
                "BASKET_ENGINE_MAX_PRICE_AGE": "30",
                "BASKET_ENGINE_ADAPTER_TIMEOUT": "1.5",
                "BASKET_ENGINE_ADAPTER_RETRIES": "0",
                "BASKET_ENGINE_LOCK_TIMEOUT": "0",
                "BASKET_ENGINE_MAX_WORKERS": "2",
            }
        )

        self.assertEqual(settings.max_price_age_seconds, 30)
        self.assertEqual(settings.adapter_timeout_seconds, 1.5)
        self.assertEqual(settings.adapter_max_retries, 0)
        self.assertEqual(settings.lock_timeout_seconds, 0.0)
        self.assertEqual(settings.max_workers, 2)

    def test_malformed_value_names_variable(self) -> None:
        with self.assertRaises(RuntimeError) as ctx:
            load_settings({"BASKET_ENGINE_MAX_PRICE_AGE": "soon"})
        self.assertIn("BASKET_ENGINE_MAX_PRICE_AGE", str(ctx.exception))

    def test_out_of_range_value_rejected(self) -> None:
        with self.assertRaises(RuntimeError):
            load_settings({"BASKET_ENGINE_MAX_WORKERS": "0"})


class ErrorTaxonomyTests(unittest.TestCase):
    def test_retryable_classes(self) -> None:
        self.assertTrue(StaleDataError.retryable)
        self.assertTrue(BasketBusyError.retryable)
        self.assertFalse(ValidationError.retryable)
        self.assertTrue(issubclass(StaleDataError, AdapterError))
        self.assertTrue(issubclass(ValidationError, ValueError))


if __name__ == "__main__":
    unittest.main()
