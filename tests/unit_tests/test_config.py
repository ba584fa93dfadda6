"""
Unit tests for configuration.
"""

import os
import unittest
from argparse import Namespace
from dataclasses import FrozenInstanceError
from unittest.mock import patch
from config import DeviceConfig, UpgradeOptions


class TestUpgradeOptions(unittest.TestCase):
    """Test UpgradeOptions data model."""

    def test_options_defaults(self):
        """Test default option values."""
        options = UpgradeOptions(target_version="9.0.3-h3")
        self.assertEqual(options.target_version, "9.0.3-h3")
        self.assertTrue(options.backup_config)
        self.assertTrue(options.backup_filename.startswith("panos-backup-"))
        self.assertTrue(options.backup_filename.endswith(".xml"))
        self.assertFalse(options.upgrade_content)
        self.assertFalse(options.download_base_version)
        self.assertEqual(options.base_version, "9.0.0")

    def test_options_require_target_version(self):
        """Test target_version is mandatory."""
        with self.assertRaises(ValueError):
            UpgradeOptions(target_version="")

    def test_options_reject_quote_characters(self):
        """Test values sent as quoted command arguments cannot contain quotes."""
        for kwargs in (
            {"backup_filename": 'my"backup.xml'},
            {"base_version": "9.0'0"},
            {"target_version": '9.0.3"-h3'},
        ):
            kwargs.setdefault("target_version", "9.0.3-h3")
            with self.subTest(**kwargs):
                with self.assertRaises(ValueError):
                    UpgradeOptions(**kwargs)

    def test_options_are_immutable(self):
        """Test options cannot change once created."""
        options = UpgradeOptions(target_version="9.0.3-h3")
        with self.assertRaises(FrozenInstanceError):
            options.upgrade_content = True

    def test_options_from_args(self):
        """Test creating options from command-line arguments."""
        args = Namespace(
            target_version="9.0.3-h3",
            backup_config=False,
            backup_filename="before-upgrade.xml",
            upgrade_content=True,
            download_base_version=True,
            base_version="9.0.0",
        )
        options = UpgradeOptions.from_args(args)

        self.assertEqual(options.target_version, "9.0.3-h3")
        self.assertFalse(options.backup_config)
        self.assertEqual(options.backup_filename, "before-upgrade.xml")
        self.assertTrue(options.upgrade_content)
        self.assertTrue(options.download_base_version)
        self.assertEqual(options.base_version, "9.0.0")


class TestDeviceConfig(unittest.TestCase):
    """Test DeviceConfig data model."""

    def _args(self, **overrides):
        values = dict(
            host="fw1.example.com",
            username=None,
            password=None,
            api_key=None,
            verify_ssl=False,
            request_timeout=60,
            http_retries=0,
        )
        values.update(overrides)
        return Namespace(**values)

    @patch.dict(os.environ, {}, clear=True)
    def test_config_from_args(self):
        """Test flags populate the device config."""
        config = DeviceConfig.from_args(
            self._args(username="ops", password="secret", verify_ssl=True, http_retries=2)
        )
        self.assertEqual(config.host, "fw1.example.com")
        self.assertEqual(config.username, "ops")
        self.assertEqual(config.password, "secret")
        self.assertIsNone(config.api_key)
        self.assertTrue(config.verify_ssl)
        self.assertEqual(config.max_retries, 2)

    @patch.dict(
        os.environ,
        {"PANOS_USERNAME": "envuser", "PANOS_PASSWORD": "envpass", "PANOS_API_KEY": "envkey"},
        clear=True,
    )
    def test_config_falls_back_to_environment(self):
        """Test environment variables fill in missing credentials."""
        config = DeviceConfig.from_args(self._args())
        self.assertEqual(config.username, "envuser")
        self.assertEqual(config.password, "envpass")
        self.assertEqual(config.api_key, "envkey")

    @patch.dict(os.environ, {}, clear=True)
    def test_validate_requires_credentials(self):
        """Test validation fails without a key or password."""
        config = DeviceConfig.from_args(self._args())
        self.assertEqual(config.username, "admin")
        with self.assertRaises(ValueError):
            config.validate()

    def test_validate_accepts_api_key(self):
        """Test an API key alone is enough."""
        DeviceConfig(host="fw1", api_key="abc").validate()


if __name__ == "__main__":
    unittest.main()
