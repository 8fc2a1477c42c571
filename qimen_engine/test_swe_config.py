"""Tests for Swiss Ephemeris context initialization."""

from __future__ import annotations

import os
import unittest
from unittest.mock import Mock, patch

from qimen_engine import swe_config


class TestSWEConfig(unittest.TestCase):
    def test_initialize_reports_swieph_backend(self) -> None:
        fake_logger = Mock()

        with (
            patch.dict(os.environ, {"SWE_EPHE_PATH": "/tmp/ephe", "SWE_REQUIRE_SWIEPH": "0"}, clear=False),
            patch.object(swe_config.swe, "set_ephe_path") as mock_set_ephe_path,
            patch.object(swe_config.swe, "calc_ut", return_value=([0.0] * 6, swe_config.swe.FLG_SWIEPH)),
            patch.object(swe_config.swe, "julday", return_value=2460000.5),
        ):
            status = swe_config.initialize_swe_context(fake_logger)

        self.assertEqual(status["zodiac"], "tropical")
        self.assertTrue(status["ephemeris_verified"])
        self.assertEqual(status["ephemeris_backend"], "swieph")
        self.assertEqual(status["ephemeris_path"], "/tmp/ephe")
        mock_set_ephe_path.assert_called_once_with("/tmp/ephe")

    def test_probe_failure_is_reported_not_raised(self) -> None:
        fake_logger = Mock()

        with (
            patch.dict(os.environ, {"SWE_REQUIRE_SWIEPH": "0"}, clear=False),
            patch.object(swe_config.swe, "set_ephe_path"),
            patch.object(swe_config.swe, "calc_ut", side_effect=RuntimeError("boom")),
        ):
            status = swe_config.initialize_swe_context(fake_logger)

        self.assertFalse(status["ephemeris_verified"])
        self.assertEqual(status["probe_error"], "boom")
        fake_logger.warning.assert_called()

    def test_initialize_raises_when_strict_and_moshier_fallback(self) -> None:
        fake_logger = Mock()

        with (
            patch.dict(os.environ, {"SWE_REQUIRE_SWIEPH": "1"}, clear=False),
            patch.object(swe_config.swe, "set_ephe_path"),
            patch.object(swe_config.swe, "calc_ut", return_value=([0.0] * 6, swe_config.swe.FLG_MOSEPH)),
            patch.object(swe_config.swe, "julday", return_value=2460000.5),
        ):
            with self.assertRaises(RuntimeError):
                swe_config.initialize_swe_context(fake_logger)


if __name__ == "__main__":
    unittest.main()
