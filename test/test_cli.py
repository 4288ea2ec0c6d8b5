#!/usr/bin/env python3
"""Tests for the sweepy command line."""

import io
import os
import shutil
import sys
import tempfile
import time
import unittest
from pathlib import Path
from unittest import mock

from rich.console import Console

SCRIPT_DIR = Path(__file__).parent.parent
sys.path.insert(0, str(SCRIPT_DIR))

import sweepy  # noqa: E402
from sweepy_console import SweepyConsole  # noqa: E402


def make_stale_project(root: Path, name: str) -> Path:
    project = root / name
    node_modules = project / "node_modules"
    node_modules.mkdir(parents=True)
    (node_modules / "index.js").write_text("x" * 100)
    lock = project / "package-lock.json"
    lock.write_text("{}")
    old = time.time() - 90 * 86400
    os.utime(lock, (old, old))
    return node_modules


class TestCli(unittest.TestCase):
    def setUp(self):
        self.tmp_dir = tempfile.mkdtemp()
        self.home = Path(self.tmp_dir) / "home"
        self.work = Path(self.tmp_dir) / "work"
        self.work.mkdir()
        self.output = io.StringIO()
        self.ui = SweepyConsole(Console(file=self.output, width=300, highlight=False))

    def tearDown(self):
        shutil.rmtree(self.tmp_dir, ignore_errors=True)

    def run_cli(self, *args) -> int:
        return sweepy.main(list(args), ui=self.ui)

    def reports(self) -> list:
        return sorted((self.home / "reports").glob("report-*.txt"))

    def test_scan_writes_report_under_home(self):
        stale = make_stale_project(self.work, "app")

        code = self.run_cli("scan", str(self.work), "--home", str(self.home), "--days", "30")

        self.assertEqual(code, 0)
        reports = self.reports()
        self.assertEqual(len(reports), 1)
        self.assertEqual(reports[0].read_text(encoding="utf-8").splitlines(), [str(stale)])
        self.assertIn("Report saved", self.output.getvalue())

    def test_scan_nothing_stale(self):
        code = self.run_cli("scan", str(self.work), "--home", str(self.home))
        self.assertEqual(code, 0)
        self.assertEqual(self.reports(), [])
        self.assertIn("No stale dependency folders found", self.output.getvalue())

    def test_scan_missing_roots(self):
        code = self.run_cli("scan", str(self.work / "nope"), "--home", str(self.home))
        self.assertEqual(code, 1)
        self.assertIn("Error", self.output.getvalue())

    def test_negative_days_rejected(self):
        self.assertEqual(self.run_cli("scan", str(self.work), "--home", str(self.home), "--days", "-1"), 1)

    def test_bad_config_file(self):
        self.home.mkdir()
        (self.home / "config.yaml").write_text("days: [\n")
        self.assertEqual(self.run_cli("scan", str(self.work), "--home", str(self.home)), 1)

    def test_clean_without_report(self):
        code = self.run_cli("clean", "--home", str(self.home))
        self.assertEqual(code, 1)
        self.assertIn("sweepy scan", self.output.getvalue())

    def test_scan_then_what_if(self):
        stale = make_stale_project(self.work, "app")
        self.run_cli("scan", str(self.work), "--home", str(self.home))

        code = self.run_cli("clean", "--home", str(self.home), "--what-if")

        self.assertEqual(code, 0)
        self.assertTrue(stale.exists())

    def test_scan_then_force_clean(self):
        stale = make_stale_project(self.work, "app")
        self.run_cli("scan", str(self.work), "--home", str(self.home))

        code = self.run_cli("clean", "--home", str(self.home), "--force")

        self.assertEqual(code, 0)
        self.assertFalse(stale.exists())
        self.assertTrue((self.work / "app" / "package-lock.json").exists())
        logs = list((self.home / "logs").glob("clean-*.log"))
        self.assertEqual(len(logs), 1)
        self.assertEqual(logs[0].read_text(encoding="utf-8").splitlines(), [f"[SUCCESS] {stale}"])

    def test_clean_declined_exits_zero(self):
        stale = make_stale_project(self.work, "app")
        self.run_cli("scan", str(self.work), "--home", str(self.home))

        with mock.patch.object(SweepyConsole, "input", return_value="delete"):
            code = self.run_cli("clean", "--home", str(self.home))

        self.assertEqual(code, 0)
        self.assertTrue(stale.exists())

    def test_clean_malformed_report(self):
        report = Path(self.tmp_dir) / "bad.txt"
        report.write_text("relative/node_modules\n", encoding="utf-8")

        code = self.run_cli("clean", "--home", str(self.home), "--report", str(report), "--force")

        self.assertEqual(code, 1)

    def test_home_from_environment(self):
        make_stale_project(self.work, "app")
        with mock.patch.dict(os.environ, {"SWEEPY_HOME": str(self.home)}):
            self.assertEqual(self.run_cli("scan", str(self.work)), 0)
        self.assertEqual(len(self.reports()), 1)

    def test_help(self):
        with mock.patch("sys.stdout", new_callable=io.StringIO):
            with self.assertRaises(SystemExit) as ctx:
                self.run_cli("--help")
        self.assertEqual(ctx.exception.code, 0)

    def test_command_required(self):
        with mock.patch("sys.stderr", new_callable=io.StringIO):
            with self.assertRaises(SystemExit) as ctx:
                self.run_cli()
        self.assertEqual(ctx.exception.code, 2)


if __name__ == "__main__":
    unittest.main(verbosity=2)
