"""
Tests for configuration loading.
"""

from __future__ import annotations

import os
import unittest
from unittest.mock import patch

import voluptuous as vol

from geotrace.config import GeoTraceConfig, load_config
from geotrace.const import OVERPASS_API_URL

LOAD_DOTENV = "geotrace.config.load_dotenv"


class TestLoadConfig(unittest.TestCase):

    def setUp(self):
        env = {k: v for k, v in os.environ.items() if not k.startswith("GEOTRACE_")}
        self.env_patch = patch.dict(os.environ, env, clear=True)
        self.env_patch.start()
        self.addCleanup(self.env_patch.stop)

    def test_defaults(self):
        with patch(LOAD_DOTENV):
            config = load_config()
        self.assertEqual(config, GeoTraceConfig())

    def test_environment_values_are_coerced(self):
        os.environ["GEOTRACE_MIN_REQUEST_DELAY"] = "0.2"
        os.environ["GEOTRACE_REQUEST_ATTEMPTS"] = "5"
        os.environ["GEOTRACE_OVERPASS_URL"] = "https://overpass.example/api/interpreter"
        with patch(LOAD_DOTENV):
            config = load_config()

        self.assertEqual(config.min_request_delay, 0.2)
        self.assertEqual(config.request_attempts, 5)
        self.assertEqual(config.overpass_url, "https://overpass.example/api/interpreter")

    def test_overrides_win_over_environment(self):
        os.environ["GEOTRACE_REQUEST_TIMEOUT"] = "30"
        with patch(LOAD_DOTENV):
            config = load_config(request_timeout=5, overpass_url=None)
        self.assertEqual(config.request_timeout, 5)
        self.assertEqual(config.overpass_url, OVERPASS_API_URL)

    def test_env_file_is_loaded(self):
        with patch(LOAD_DOTENV) as mock_load:
            load_config(env_file="/tmp/geotrace.env")
        mock_load.assert_called_once_with("/tmp/geotrace.env")

    def test_invalid_values_raise(self):
        with patch(LOAD_DOTENV):
            with self.assertRaises(vol.Invalid):
                load_config(request_attempts=0)
            with self.assertRaises(vol.Invalid):
                load_config(elevation_url="ftp://nope")
            with self.assertRaises(vol.Invalid):
                load_config(min_request_delay="fast")
