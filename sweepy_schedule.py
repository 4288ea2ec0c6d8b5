"""Register a periodic 'sweepy scan' with the OS scheduler (crontab or schtasks).

Scheduled scans always use the default lock-file strategy and never clean.
"""

import logging
import shlex
import subprocess
import sys
from pathlib import Path
from typing import Callable, Optional

from sweepy_config import SweepyError

logger = logging.getLogger("sweepy.schedule")

CRON_MARKER = "# sweepy-scan"
TASK_NAME = "SweepyScan"


class SchedulerError(SweepyError):
    pass


def _run(cmd: list, input_text: Optional[str] = None) -> subprocess.CompletedProcess:
    return subprocess.run(cmd, input=input_text, capture_output=True, text=True, timeout=30)


def _parse_time(at: str) -> tuple[int, int]:
    try:
        hour_str, minute_str = at.split(":")
        hour, minute = int(hour_str), int(minute_str)
    except ValueError:
        raise SchedulerError(f"Time must be HH:MM, got {at!r}") from None
    if not (0 <= hour < 24 and 0 <= minute < 60):
        raise SchedulerError(f"Time out of range: {at!r}")
    return hour, minute


def scan_command(home: Path, days: int) -> list[str]:
    return [sys.executable, "-m", "sweepy", "scan", "--home", str(home), "--days", str(days)]


class TaskInstaller:
    def __init__(self, home: Path, runner: Optional[Callable] = None, platform: Optional[str] = None):
        self.home = Path(home)
        self.runner = runner or _run
        self.platform = platform or sys.platform

    @property
    def uses_schtasks(self) -> bool:
        return self.platform.startswith("win")

    # === crontab ===
    def _read_crontab(self) -> list[str]:
        result = self.runner(["crontab", "-l"])
        if result.returncode != 0:
            # "no crontab for user" is not an error
            if "no crontab" in (result.stderr or "").lower():
                return []
            raise SchedulerError(f"crontab -l failed: {(result.stderr or '').strip()}")
        return result.stdout.splitlines()

    def _write_crontab(self, lines: list[str]) -> None:
        text = "\n".join(lines) + "\n" if lines else ""
        result = self.runner(["crontab", "-"], input_text=text)
        if result.returncode != 0:
            raise SchedulerError(f"crontab update failed: {(result.stderr or '').strip()}")

    def cron_line(self, days: int, every_days: int, at: str) -> str:
        hour, minute = _parse_time(at)
        day_field = "*" if every_days <= 1 else f"*/{every_days}"
        command = " ".join(shlex.quote(part) for part in scan_command(self.home, days))
        return f"{minute} {hour} {day_field} * * {command} >/dev/null 2>&1 {CRON_MARKER}"

    # === Public API ===
    def install(self, days: int = 30, every_days: int = 7, at: str = "09:00") -> str:
        """Install or replace the scheduled scan. Returns the registered entry."""
        if every_days < 1:
            raise SchedulerError("--every-days must be at least 1")

        if self.uses_schtasks:
            hour, minute = _parse_time(at)
            command = subprocess.list2cmdline(scan_command(self.home, days))
            result = self.runner([
                "schtasks", "/Create", "/F", "/TN", TASK_NAME, "/SC", "DAILY",
                "/MO", str(every_days), "/ST", f"{hour:02d}:{minute:02d}", "/TR", command,
            ])
            if result.returncode != 0:
                raise SchedulerError(f"schtasks /Create failed: {(result.stderr or result.stdout).strip()}")
            logger.info("Registered scheduled task %s", TASK_NAME)
            return command

        line = self.cron_line(days, every_days, at)
        lines = [entry for entry in self._read_crontab() if CRON_MARKER not in entry]
        lines.append(line)
        self._write_crontab(lines)
        logger.info("Installed crontab entry")
        return line

    def uninstall(self) -> bool:
        """Remove the scheduled scan. Returns False if none was registered."""
        if self.uses_schtasks:
            result = self.runner(["schtasks", "/Delete", "/F", "/TN", TASK_NAME])
            return result.returncode == 0

        lines = self._read_crontab()
        kept = [entry for entry in lines if CRON_MARKER not in entry]
        if len(kept) == len(lines):
            return False
        self._write_crontab(kept)
        return True

    def status(self) -> Optional[str]:
        """The registered entry, or None."""
        if self.uses_schtasks:
            result = self.runner(["schtasks", "/Query", "/TN", TASK_NAME, "/FO", "LIST"])
            return result.stdout.strip() if result.returncode == 0 else None

        for line in self._read_crontab():
            if CRON_MARKER in line:
                return line
        return None
