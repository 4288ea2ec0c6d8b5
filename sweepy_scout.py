"""Sweepy Scout - finds stale dependency folders and writes a report."""

import logging
import os
import queue
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Iterable, Iterator, NamedTuple, Optional

from sweepy_config import SweepyConfig, SweepyError
from sweepy_reports import ReportStore
from sweepy_staleness import Candidate, Evidence, Strategy, classify, is_excluded

logger = logging.getLogger("sweepy.scout")


class NoRootsError(SweepyError):
    pass


class ProgressEvent(NamedTuple):
    path: Path
    index: int
    total: int  # 0 while the total is still unknown
    phase: str  # "scanning" | "classifying" | "sizing"


@dataclass
class ReportEntry:
    path: Path
    size_bytes: int
    age_days: int
    evidence: Evidence
    reason: str = ""
    file_count: int = 0


@dataclass
class ScanSummary:
    count: int = 0
    total_bytes: int = 0
    report_path: Optional[Path] = None
    entries: list[ReportEntry] = field(default_factory=list)
    roots: list[Path] = field(default_factory=list)
    skipped_roots: list[Path] = field(default_factory=list)
    scanned: int = 0
    excluded: int = 0
    strategy: Strategy = Strategy.DEFAULT


def dir_size(path: Path) -> tuple[int, int]:
    """Approximate logical size and file count of a directory tree.

    Sums st_size without following symlinks. Unreadable entries are skipped,
    so the result may be a partial sum.
    """
    total_size = 0
    file_count = 0
    for dirpath, dirnames, filenames in os.walk(path, onerror=lambda e: None):
        for name in filenames:
            try:
                total_size += os.lstat(os.path.join(dirpath, name)).st_size
                file_count += 1
            except OSError:
                continue
    return total_size, file_count


class SweepyScout:
    def __init__(self, config: SweepyConfig, store: Optional[ReportStore] = None):
        self.config = config
        self.store = store or ReportStore(config)

    def _publish(self, events: Optional["queue.Queue"], event: ProgressEvent) -> None:
        if events is None:
            return
        try:
            events.put_nowait(event)
        except queue.Full:
            pass

    def resolve_roots(self, roots: Optional[Iterable[Path]] = None) -> tuple[list[Path], list[Path]]:
        """Split roots into (existing, missing). Raises NoRootsError if none exist."""
        requested = [Path(r).expanduser() for r in (roots or self.config.roots)]
        existing = []
        missing = []
        for root in requested:
            if root.is_dir():
                existing.append(Path(os.path.abspath(root)))
            else:
                logger.warning("Search root does not exist, skipping: %s", root)
                missing.append(root)
        if not existing:
            shown = ", ".join(str(r) for r in requested) or "(none)"
            raise NoRootsError(f"None of the search roots exist: {shown}")
        return existing, missing

    def find_candidates(self, root: Path) -> Iterator[Path]:
        """Yield directories named target_name under root.

        Matched directories are not descended into, symlinks are not followed
        and unreadable subtrees are skipped with a warning.
        """
        target = self.config.target_name

        def on_error(error: OSError) -> None:
            logger.warning("Skipping unreadable directory %s: %s", error.filename, error.strerror or error)

        for dirpath, dirnames, _ in os.walk(root, onerror=on_error):
            matched = [d for d in dirnames if d == target]
            # Don't descend into dependency folders
            dirnames[:] = [d for d in dirnames if d != target]
            for name in matched:
                path = Path(dirpath) / name
                if path.is_symlink():
                    continue
                yield path

    def scan(
        self,
        roots: Optional[Iterable[Path]] = None,
        days: Optional[int] = None,
        strategy: Strategy = Strategy.DEFAULT,
        exclude: Optional[Iterable[str]] = None,
        out: Optional[Path] = None,
        progress: Optional["queue.Queue"] = None,
        now: Optional[datetime] = None,
    ) -> ScanSummary:
        """Find stale candidates, write a report if any, and summarize."""
        now = now or datetime.now()
        days = self.config.days if days is None else days
        exclude_patterns = list(self.config.exclude) + list(exclude or [])
        cutoff = now - timedelta(days=days)

        existing, missing = self.resolve_roots(roots)
        summary = ScanSummary(roots=existing, skipped_roots=missing, strategy=strategy)

        if strategy is Strategy.LEGACY:
            logger.warning(
                "Legacy mode uses folder access times, which many systems do not update "
                "reliably. Review the report by hand before cleaning."
            )

        # Traversal
        paths = []
        for root in existing:
            logger.debug("Scanning %s", root)
            for path in self.find_candidates(root):
                paths.append(path)
                self._publish(progress, ProgressEvent(path, len(paths), 0, "scanning"))
        summary.scanned = len(paths)

        # Classification
        stale = []
        for index, path in enumerate(paths, start=1):
            self._publish(progress, ProgressEvent(path, index, len(paths), "classifying"))
            if is_excluded(path, exclude_patterns):
                logger.debug("Excluded %s", path)
                summary.excluded += 1
                continue
            candidate = Candidate.from_path(path, self.config.lock_files)
            verdict = classify(candidate, cutoff, strategy, now=now)
            if verdict.stale:
                stale.append((candidate, verdict))

        # Sizes are independent reads, so compute them in parallel
        with ThreadPoolExecutor(max_workers=self.config.size_workers) as pool:
            sizes = pool.map(dir_size, [c.path for c, _ in stale])
            for index, ((candidate, verdict), (size, file_count)) in enumerate(zip(stale, sizes), start=1):
                self._publish(progress, ProgressEvent(candidate.path, index, len(stale), "sizing"))
                summary.entries.append(ReportEntry(
                    path=candidate.path,
                    size_bytes=size,
                    age_days=verdict.age_days,
                    evidence=verdict.evidence,
                    reason=verdict.reason,
                    file_count=file_count,
                ))

        summary.count = len(summary.entries)
        summary.total_bytes = sum(e.size_bytes for e in summary.entries)

        if summary.count == 0:
            logger.info("No stale %s folders found; no report written", self.config.target_name)
            return summary

        summary.report_path = self.store.write_report([str(e.path) for e in summary.entries], out=out)
        logger.info("Saved %d stale folder(s) to %s", summary.count, summary.report_path)
        return summary
