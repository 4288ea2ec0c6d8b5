"""Report Store: naming, writing, validation and rotation of scan reports.

A report is plain UTF-8 text, one absolute path per line, no header. Its
creation time is the file's mtime. A sidecar ``<report>.sha256`` holds the
SHA-256 of the report bytes so hand edits can be noticed.
"""

import hashlib
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path, PurePosixPath, PureWindowsPath
from typing import Iterable, Optional

from sweepy_config import SweepyConfig, SweepyError

logger = logging.getLogger("sweepy.reports")

REPORT_GLOB = "report-*.txt"
AUDIT_LOG_GLOB = "clean-*.log"
FAILED_GLOB = "failed-*.txt"
STAMP_SUFFIX = ".sha256"
ROTATION_MARKER = ".last-rotation"


class ReportError(SweepyError):
    """Base class for reports that cannot be used."""


class ReportNotFound(ReportError):
    pass


class ReportUnreadable(ReportError):
    pass


class ReportEmpty(ReportError):
    pass


class ReportMalformed(ReportError):
    pass


@dataclass
class ValidatedReport:
    path: Path
    paths: list[str]
    modified: datetime
    age_days: int
    is_stale: bool = False
    integrity_ok: Optional[bool] = None
    warnings: list[str] = field(default_factory=list)


def is_absolute_path(line: str) -> bool:
    """Accept POSIX and Windows absolute paths regardless of host OS."""
    if PurePosixPath(line).is_absolute():
        return True
    return PureWindowsPath(line).is_absolute()


def digest(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def stamp_path(report: Path) -> Path:
    return report.with_name(report.name + STAMP_SUFFIX)


class ReportStore:
    """Owns report files under reports/ and log file naming under logs/."""

    def __init__(self, config: SweepyConfig):
        self.config = config
        self.reports_dir = config.reports_dir
        self.logs_dir = config.logs_dir

    # === Naming ===
    def new_report_path(self, now: Optional[datetime] = None) -> Path:
        """Timestamped report path that does not exist yet."""
        now = now or datetime.now()
        base = f"report-{now:%Y%m%d-%H%M%S}"
        path = self.reports_dir / f"{base}.txt"
        counter = 1
        while path.exists():
            path = self.reports_dir / f"{base}-{counter}.txt"
            counter += 1
        return path

    def audit_log_path(self, now: Optional[datetime] = None) -> Path:
        now = now or datetime.now()
        base = f"clean-{now:%Y%m%d-%H%M%S}"
        path = self.logs_dir / f"{base}.log"
        counter = 1
        while path.exists():
            path = self.logs_dir / f"{base}-{counter}.log"
            counter += 1
        return path

    def failed_paths_path(self, today: Optional[date] = None) -> Path:
        today = today or date.today()
        return self.logs_dir / f"failed-{today:%Y%m%d}.txt"

    # === Writing ===
    def write_report(self, paths: Iterable[str], out: Optional[Path] = None) -> Path:
        """Write one path per line plus the integrity stamp. Returns the report path."""
        if out is None:
            self.reports_dir.mkdir(parents=True, exist_ok=True)
            target = self.new_report_path()
        else:
            target = Path(out).expanduser()
            target.parent.mkdir(parents=True, exist_ok=True)

        lines = [str(p) for p in paths]
        for line in lines:
            if not line.strip() or "\n" in line or not is_absolute_path(line):
                raise ReportMalformed(f"Refusing to write non-absolute path to report: {line!r}")

        data = ("\n".join(lines) + "\n").encode("utf-8")
        target.write_bytes(data)
        stamp_path(target).write_text(digest(data) + "\n", encoding="utf-8")
        logger.debug("Wrote %d paths to %s", len(lines), target)
        return target

    # === Reading ===
    def resolve_latest(self) -> Optional[Path]:
        """Newest report by mtime, or None if there are none."""
        if not self.reports_dir.is_dir():
            return None
        newest = None
        newest_mtime = None
        for path in self.reports_dir.glob(REPORT_GLOB):
            try:
                mtime = path.stat().st_mtime
            except OSError:
                continue
            if newest_mtime is None or mtime > newest_mtime:
                newest, newest_mtime = path, mtime
        return newest

    def validate(self, path: Path, freshness_days: Optional[int] = None,
                 now: Optional[datetime] = None) -> ValidatedReport:
        """Check a report is usable and return its paths.

        Raises ReportNotFound, ReportUnreadable, ReportEmpty or ReportMalformed.
        An old report or a stamp mismatch only produces warnings.
        """
        path = Path(path).expanduser()
        now = now or datetime.now()
        if freshness_days is None:
            freshness_days = self.config.report_freshness_days

        if not path.exists():
            raise ReportNotFound(f"Report not found: {path}")
        if not path.is_file():
            raise ReportUnreadable(f"Report is not a regular file: {path}")

        try:
            data = path.read_bytes()
            modified = datetime.fromtimestamp(path.stat().st_mtime)
        except PermissionError as e:
            raise ReportUnreadable(f"Permission denied reading report {path}") from e
        except OSError as e:
            raise ReportUnreadable(f"Cannot read report {path}: {e}") from e

        try:
            text = data.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise ReportUnreadable(f"Report {path} is not valid UTF-8") from e

        paths = []
        for lineno, raw_line in enumerate(text.splitlines(), start=1):
            line = raw_line.strip()
            if not line:
                continue
            if not is_absolute_path(line):
                raise ReportMalformed(f"{path}:{lineno}: not an absolute path: {line!r}")
            paths.append(line)

        if not paths:
            raise ReportEmpty(f"Report {path} contains no paths")

        age_days = max(0, (now - modified).days)
        report = ValidatedReport(path=path, paths=paths, modified=modified, age_days=age_days)

        if age_days > freshness_days:
            report.is_stale = True
            message = (f"Report is {age_days} days old (freshness window {freshness_days} days); "
                       "every path will be re-checked before deletion")
            report.warnings.append(message)
            logger.warning(message)

        stamp = stamp_path(path)
        if stamp.exists():
            try:
                expected = stamp.read_text(encoding="utf-8").strip()
            except OSError:
                expected = ""
            report.integrity_ok = expected == digest(data)
            if not report.integrity_ok:
                message = f"Report {path.name} changed since the scan wrote it (integrity stamp mismatch)"
                report.warnings.append(message)
                logger.warning(message)

        return report

    # === Rotation ===
    def rotate(self, directory: Path, keep: int, patterns: Iterable[str] = (REPORT_GLOB,),
               today: Optional[date] = None) -> list[Path]:
        """Delete the oldest files beyond keep, once per calendar day per directory.

        Returns the removed paths; a second call on the same day removes nothing.
        """
        directory = Path(directory)
        today = today or date.today()
        if not directory.is_dir():
            return []

        marker = directory / ROTATION_MARKER
        try:
            if marker.read_text(encoding="utf-8").strip() == today.isoformat():
                return []
        except OSError:
            pass

        removed = []
        for pattern in patterns:
            files = []
            for path in directory.glob(pattern):
                try:
                    files.append((path.stat().st_mtime, path.name, path))
                except OSError:
                    continue
            # Newest first
            files.sort(reverse=True)
            for _, _, path in files[keep:]:
                try:
                    path.unlink()
                except OSError as e:
                    logger.warning("Could not remove old file %s: %s", path, e)
                    continue
                removed.append(path)
                stamp = stamp_path(path)
                if stamp.exists():
                    try:
                        stamp.unlink()
                    except OSError as e:
                        logger.warning("Could not remove stamp %s: %s", stamp, e)

        marker.write_text(today.isoformat() + "\n", encoding="utf-8")
        if removed:
            logger.info("Rotated %d old file(s) in %s", len(removed), directory)
        return removed

    def rotate_all(self, today: Optional[date] = None) -> list[Path]:
        """Apply report and log retention. Run at the start of scan and clean."""
        removed = self.rotate(self.reports_dir, self.config.report_keep, (REPORT_GLOB,), today=today)
        removed += self.rotate(self.logs_dir, self.config.log_keep, (AUDIT_LOG_GLOB, FAILED_GLOB),
                               today=today)
        return removed
