"""Staleness classification for dependency directories.

Two strategies decide whether a candidate directory is stale:

- DEFAULT looks for a lock file (package-lock.json, yarn.lock, ...) next to
  the candidate and compares its modification time with the cutoff. Editing
  the lock file is the strongest sign a project is still being worked on.
  Without a lock file the parent directory's own modification time is used
  instead. That fallback is an approximation: a project whose files are edited
  in subdirectories only will not bump the parent's mtime and can be flagged.
  A missing lock file alone never makes a candidate stale.

- LEGACY compares the candidate's last-access time with the cutoff. Access
  times are unreliable: filesystems mounted with noatime/relatime never or
  rarely update them, and indexers, backup tools and antivirus scanners touch
  them without any real use. Treat LEGACY verdicts as a secondary signal and
  review them by hand; scheduled scans always use DEFAULT.

Ages are whole days. Staleness is strict: evidence exactly as many days old
as the threshold is fresh.
"""

import fnmatch
import os
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path, PurePath
from typing import Iterable, Optional


class Strategy(Enum):
    DEFAULT = "default"
    LEGACY = "legacy"


class Evidence(Enum):
    LOCKFILE_MTIME = "lockfile-mtime"
    FOLDER_ATIME = "folder-atime"
    PARENT_MTIME_FALLBACK = "parent-mtime-fallback"


@dataclass(frozen=True)
class Candidate:
    """A directory matching the target name, awaiting a verdict."""

    path: Path
    parent: Path
    atime: Optional[datetime] = None
    lock_file: Optional[Path] = None
    lock_mtime: Optional[datetime] = None
    parent_mtime: Optional[datetime] = None

    @classmethod
    def from_path(cls, path: Path, lock_files: Iterable[str]) -> "Candidate":
        """Stat the directory, its parent and the first lock file found."""
        path = Path(os.path.abspath(path))
        parent = path.parent

        lock_file = None
        lock_mtime = None
        for name in lock_files:
            lock_path = parent / name
            lock_mtime = _stat_time(lock_path, "st_mtime")
            if lock_mtime is not None:
                lock_file = lock_path
                break

        return cls(
            path=path,
            parent=parent,
            atime=_stat_time(path, "st_atime"),
            lock_file=lock_file,
            lock_mtime=lock_mtime,
            parent_mtime=_stat_time(parent, "st_mtime"),
        )


@dataclass(frozen=True)
class StalenessVerdict:
    stale: bool
    evidence: Evidence
    age_days: Optional[int] = None
    reason: str = ""


def _stat_time(path: Path, attr: str) -> Optional[datetime]:
    try:
        return datetime.fromtimestamp(getattr(os.stat(path), attr))
    except (OSError, ValueError, OverflowError):
        return None


def age_in_days(timestamp: datetime, now: datetime) -> int:
    """Whole days elapsed between timestamp and now."""
    return (now - timestamp).days


def _verdict(evidence: Evidence, timestamp: Optional[datetime], cutoff: datetime,
             now: datetime, describe: str) -> StalenessVerdict:
    if timestamp is None:
        return StalenessVerdict(stale=False, evidence=evidence)
    age = age_in_days(timestamp, now)
    # Whole days on both sides; an age equal to the threshold is fresh
    if age <= age_in_days(cutoff, now):
        return StalenessVerdict(stale=False, evidence=evidence, age_days=age)
    return StalenessVerdict(
        stale=True,
        evidence=evidence,
        age_days=age,
        reason=f"{describe} last changed {age} days ago ({timestamp:%Y-%m-%d})",
    )


def classify(candidate: Candidate, cutoff: datetime, strategy: Strategy = Strategy.DEFAULT,
             now: Optional[datetime] = None) -> StalenessVerdict:
    """Decide whether a candidate is stale relative to cutoff."""
    now = now or datetime.now()

    if strategy is Strategy.LEGACY:
        return _verdict(Evidence.FOLDER_ATIME, candidate.atime, cutoff, now,
                        f"{candidate.path.name} (access time)")

    if candidate.lock_file is not None:
        return _verdict(Evidence.LOCKFILE_MTIME, candidate.lock_mtime, cutoff, now,
                        candidate.lock_file.name)

    return _verdict(Evidence.PARENT_MTIME_FALLBACK, candidate.parent_mtime, cutoff, now,
                    f"{candidate.parent.name}/ (no lock file)")


def is_excluded(path: Path, patterns: Iterable[str]) -> bool:
    """Check if path matches any exclusion glob.

    Patterns are matched against the full path, and relative patterns also
    against the trailing components ("old/*/node_modules").
    """
    path_str = PurePath(path).as_posix()
    for pattern in patterns:
        if not pattern:
            continue
        pattern = pattern.replace("\\", "/")
        if fnmatch.fnmatch(path_str, pattern):
            return True
        if not PurePath(pattern).is_absolute() and PurePath(path_str).match(pattern):
            return True
    return False
