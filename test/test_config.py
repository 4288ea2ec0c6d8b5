#!/usr/bin/env python3
"""Tests for config loading."""

import os
import shutil
import sys
import tempfile
import unittest
from pathlib import Path
from unittest import mock

SCRIPT_DIR = Path(__file__).parent.parent
sys.path.insert(0, str(SCRIPT_DIR))

from sweepy_config import ConfigError, load_config, resolve_home  # noqa: E402


class TestConfigLoading(unittest.TestCase):
    """Test config file loading."""

    def setUp(self):
        self.tmp_dir = tempfile.mkdtemp()
        self.home = Path(self.tmp_dir)

    def tearDown(self):
        shutil.rmtree(self.tmp_dir, ignore_errors=True)

    def test_default_config_when_no_file(self):
        config = load_config(home=self.home)
        self.assertEqual(config.home, self.home)
        self.assertEqual(config.target_name, "node_modules")
        self.assertEqual(config.days, 30)
        self.assertEqual(config.report_keep, 5)
        self.assertEqual(config.log_keep, 10)
        self.assertEqual(config.lock_files[0], "package-lock.json")
        self.assertIn(Path.home() / "Projects", config.roots)
        self.assertEqual(config.reports_dir, self.home / "reports")
        self.assertEqual(config.logs_dir, self.home / "logs")

    def test_loads_custom_config(self):
        (self.home / "config.yaml").write_text("""
roots:
  - ~/custom
days: 90
exclude:
  - "*/keep/*"
retention:
  reports: 3
""")
        config = load_config(home=self.home)
        self.assertEqual(config.roots, [Path("~/custom").expanduser()])
        self.assertEqual(config.days, 90)
        self.assertEqual(config.exclude, ["*/keep/*"])
        self.assertEqual(config.report_keep, 3)
        # Default values should be preserved
        self.assertEqual(config.log_keep, 10)

    def test_handles_empty_config(self):
        (self.home / "config.yaml").write_text("")
        config = load_config(home=self.home)
        self.assertEqual(config.days, 30)

    def test_explicit_config_path(self):
        other = self.home / "other.yaml"
        other.write_text("target_name: vendor\n")
        config = load_config(home=self.home, config_path=other)
        self.assertEqual(config.target_name, "vendor")

    def test_invalid_yaml(self):
        (self.home / "config.yaml").write_text("roots: [unclosed\n")
        with self.assertRaises(ConfigError):
            load_config(home=self.home)

    def test_not_a_mapping(self):
        (self.home / "config.yaml").write_text("- just\n- a list\n")
        with self.assertRaises(ConfigError):
            load_config(home=self.home)

    def test_bad_number(self):
        (self.home / "config.yaml").write_text("days: soon\n")
        with self.assertRaises(ConfigError):
            load_config(home=self.home)

    def test_negative_number(self):
        (self.home / "config.yaml").write_text("days: -1\n")
        with self.assertRaises(ConfigError):
            load_config(home=self.home)


class TestResolveHome(unittest.TestCase):
    """Working directory selection."""

    def test_explicit_wins(self):
        with mock.patch.dict(os.environ, {"SWEEPY_HOME": "/from/env"}):
            self.assertEqual(resolve_home(Path("/explicit")), Path("/explicit"))

    def test_environment(self):
        with mock.patch.dict(os.environ, {"SWEEPY_HOME": "/from/env"}):
            self.assertEqual(resolve_home(), Path("/from/env"))

    def test_default(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            with mock.patch.object(Path, "home", return_value=Path("/users/me")):
                self.assertEqual(resolve_home(), Path("/users/me/.sweepy"))


if __name__ == "__main__":
    unittest.main(verbosity=2)
