"""Sweepy Clean - confirmation-gated deletion of the folders listed in a report.

Flow: load report -> validate -> re-check paths -> (select subset) -> preview
-> confirm -> delete one by one -> summarize.

Every attempted deletion is appended to the audit log as soon as it happens,
so an interrupted run still leaves a complete record of what was done.
Failures are recorded and the loop moves on; nothing is retried.
"""

import errno
import logging
import os
import shutil
import stat
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from sweepy_config import SweepyConfig
from sweepy_console import SweepyConsole
from sweepy_reports import ReportEmpty, ReportNotFound, ReportStore
from sweepy_scout import dir_size

logger = logging.getLogger("sweepy.clean")

CONFIRM_WORD = "DELETE"


class CleanState(Enum):
    LOADED = "loaded"
    VALIDATED = "validated"
    SELECTED = "selected"
    PREVIEWED = "previewed"
    CONFIRMED = "confirmed"
    EXECUTING = "executing"
    SUMMARIZED = "summarized"
    ABORTED = "aborted"


@dataclass
class DeletionOutcome:
    path: str
    success: bool
    reason: str = ""
    bytes_freed: int = 0

    def log_line(self) -> str:
        if self.success:
            return f"[SUCCESS] {self.path}"
        return f"[FAILED] {self.path} - {self.reason}"


@dataclass
class CleanResult:
    report_path: Optional[Path] = None
    states: list[CleanState] = field(default_factory=list)
    paths: list[str] = field(default_factory=list)
    dropped: list[str] = field(default_factory=list)
    outcomes: list[DeletionOutcome] = field(default_factory=list)
    audit_log: Optional[Path] = None
    failed_paths_file: Optional[Path] = None
    what_if: bool = False
    message: str = ""

    @property
    def state(self) -> Optional[CleanState]:
        return self.states[-1] if self.states else None

    @property
    def aborted(self) -> bool:
        return self.state is CleanState.ABORTED

    @property
    def succeeded(self) -> list[DeletionOutcome]:
        return [o for o in self.outcomes if o.success]

    @property
    def failed(self) -> list[DeletionOutcome]:
        return [o for o in self.outcomes if not o.success]

    @property
    def bytes_freed(self) -> int:
        return sum(o.bytes_freed for o in self.succeeded)


def _make_writable(path: Path) -> None:
    """Add owner write permission throughout a tree (read-only files block rmtree on Windows)."""
    for dirpath, dirnames, filenames in os.walk(path, onerror=lambda e: None):
        for name in dirnames + filenames:
            full = os.path.join(dirpath, name)
            try:
                mode = os.lstat(full).st_mode
                if not stat.S_ISLNK(mode):
                    os.chmod(full, mode | stat.S_IWUSR | stat.S_IRUSR | (stat.S_IXUSR if stat.S_ISDIR(mode) else 0))
            except OSError:
                continue
    os.chmod(path, os.stat(path).st_mode | stat.S_IRWXU)


def remove_tree(path: Path) -> None:
    """Recursively delete a directory. Raises OSError on failure."""
    if path.is_symlink():
        raise OSError(errno.ELOOP, "Refusing to delete through a symbolic link", str(path))
    if not path.is_dir():
        raise NotADirectoryError(errno.ENOTDIR, "Not a directory", str(path))
    try:
        shutil.rmtree(path)
    except PermissionError:
        _make_writable(path)
        shutil.rmtree(path)


def _default_selection_available() -> bool:
    from sweepy_select import selection_available
    return selection_available()


def _default_selector(sizes: dict) -> Optional[list[str]]:
    from sweepy_select import select_paths
    return select_paths(sizes)


class Cleaner:
    """Runs one clean over a report.

    ask, selector, selection_available and remover are injectable so the
    prompt, the TUI and the filesystem can be replaced in tests.
    """

    def __init__(
        self,
        config: SweepyConfig,
        store: Optional[ReportStore] = None,
        ui: Optional[SweepyConsole] = None,
        ask: Optional[Callable[[str], str]] = None,
        selector: Optional[Callable[[dict], Optional[list[str]]]] = None,
        selection_available: Optional[Callable[[], bool]] = None,
        remover: Optional[Callable[[Path], None]] = None,
    ):
        self.config = config
        self.store = store or ReportStore(config)
        self.ui = ui or SweepyConsole()
        self.ask = ask or self.ui.input
        self.selector = selector or _default_selector
        self.selection_available = selection_available or _default_selection_available
        self.remover = remover or remove_tree

    def _sizes(self, paths: list[str]) -> dict:
        with ThreadPoolExecutor(max_workers=self.config.size_workers) as pool:
            sizes = [size for size, _ in pool.map(dir_size, paths)]
        return dict(zip(paths, sizes))

    def _confirmed(self, count: int) -> bool:
        prompt = f"Type {CONFIRM_WORD} to permanently remove {count} folder(s), anything else cancels: "
        try:
            answer = self.ask(prompt)
        except EOFError:
            return False
        # Exact, case-sensitive; no stripping
        return answer == CONFIRM_WORD

    def run(self, report: Optional[Path] = None, force: bool = False, what_if: bool = False,
            interactive: bool = False) -> CleanResult:
        result = CleanResult()

        # Load and validate
        report_path = Path(report).expanduser() if report else self.store.resolve_latest()
        if report_path is None:
            raise ReportNotFound(f"No report found in {self.store.reports_dir}; run 'sweepy scan' first")
        result.report_path = report_path
        result.states.append(CleanState.LOADED)

        validated = self.store.validate(report_path)
        for warning in validated.warnings:
            self.ui.print_warning(f"Warning: {warning}")
        result.states.append(CleanState.VALIDATED)

        # The report is a hint; the filesystem has moved on since the scan
        paths = []
        seen = set()
        for path in validated.paths:
            if path in seen:
                continue
            seen.add(path)
            if os.path.lexists(path):
                paths.append(path)
            else:
                logger.warning("No longer exists, skipping: %s", path)
                result.dropped.append(path)
        if not paths:
            raise ReportEmpty(f"None of the {len(validated.paths)} path(s) in {report_path} exist any more")

        sizes = self._sizes(paths)

        if interactive:
            if self.selection_available():
                chosen = self.selector(sizes)
                if chosen is None:
                    result.states.append(CleanState.ABORTED)
                    result.message = "Selection cancelled, nothing deleted."
                    self.ui.print(result.message)
                    return result
                chosen_set = set(chosen)
                paths = [p for p in paths if p in chosen_set]
                result.states.append(CleanState.SELECTED)
                if not paths:
                    result.states.append(CleanState.ABORTED)
                    result.message = "Nothing selected, nothing deleted."
                    self.ui.print(result.message)
                    return result
            else:
                logger.warning("Interactive selection needs a terminal; using all %d path(s)", len(paths))

        result.paths = paths
        self.ui.show_preview({p: sizes[p] for p in paths})
        result.states.append(CleanState.PREVIEWED)

        if what_if:
            result.what_if = True
            result.message = "What-if: nothing deleted."
            self.ui.print(f"[bold]{result.message}[/]")
            return result

        if not force and not self._confirmed(len(paths)):
            result.states.append(CleanState.ABORTED)
            result.message = "Confirmation not given, nothing deleted."
            self.ui.print_warning(result.message)
            return result
        result.states.append(CleanState.CONFIRMED)

        self._execute(result, sizes)

        result.states.append(CleanState.SUMMARIZED)
        self.ui.show_clean_summary(result)
        return result

    def _delete(self, path: str, size: int) -> DeletionOutcome:
        try:
            self.remover(Path(path))
        except OSError as e:
            return DeletionOutcome(path=path, success=False, reason=e.strerror or str(e))
        return DeletionOutcome(path=path, success=True, bytes_freed=size)

    def _execute(self, result: CleanResult, sizes: dict) -> None:
        """Delete sequentially, appending each outcome to the audit log as it happens."""
        result.states.append(CleanState.EXECUTING)
        self.store.logs_dir.mkdir(parents=True, exist_ok=True)
        result.audit_log = self.store.audit_log_path()

        try:
            with open(result.audit_log, "a", encoding="utf-8") as log:
                for path in result.paths:
                    if not os.path.lexists(path):
                        logger.warning("Disappeared before deletion, skipping: %s", path)
                        result.dropped.append(path)
                        continue

                    outcome = self._delete(path, sizes.get(path, 0))
                    result.outcomes.append(outcome)
                    log.write(outcome.log_line() + "\n")
                    log.flush()
                    os.fsync(log.fileno())

                    if outcome.success:
                        logger.debug("Deleted %s", path)
                    else:
                        logger.warning("Failed to delete %s: %s", path, outcome.reason)
        finally:
            # Runs on interrupt too, so failures so far are not lost
            failed = result.failed
            failed_file = self.store.failed_paths_path()
            if failed:
                result.failed_paths_file = failed_file
                failed_file.write_text("".join(f"{o.path}\n" for o in failed), encoding="utf-8")
            elif failed_file.exists():
                # Holds the most recent run only
                failed_file.unlink()
