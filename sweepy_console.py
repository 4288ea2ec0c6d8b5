"""Console output for sweepy: logging handler, tables, progress, prompts."""

import logging
import queue
import threading
from typing import Optional

from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table


def format_size(size_bytes: float) -> str:
    """Format bytes as human readable."""
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size_bytes < 1024:
            return f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024
    return f"{size_bytes:.1f} PB"


def shorten_path(path: str, max_len: int = 70) -> str:
    """Shorten path in the middle if too long."""
    if len(path) <= max_len:
        return path
    keep = (max_len - 3) // 2
    return path[:keep] + "..." + path[-keep:]


def setup_logging(console: Console, verbose: bool = False) -> None:
    """Route the sweepy.* loggers through rich."""
    handler = RichHandler(console=console, show_time=False, show_path=False, markup=False)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger = logging.getLogger("sweepy")
    logger.handlers[:] = [handler]
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False


class SweepyConsole:
    """Thin presentation layer over a rich Console."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console(highlight=False)

    def print(self, *args, **kwargs) -> None:
        self.console.print(*args, **kwargs)

    def print_success(self, message: str) -> None:
        self.console.print(message, style="green", markup=False)

    def print_error(self, message: str) -> None:
        self.console.print(message, style="red bold", markup=False)

    def print_warning(self, message: str) -> None:
        self.console.print(message, style="yellow", markup=False)

    def input(self, prompt: str) -> str:
        return self.console.input(prompt)

    # === Scan ===
    def show_scan_summary(self, summary) -> None:
        if summary.skipped_roots:
            skipped = ", ".join(str(r) for r in summary.skipped_roots)
            self.console.print(f"[dim]Skipped missing roots: {escape(skipped)}[/]")
        roots = ", ".join(str(r) for r in summary.roots)
        self.console.print(f"[dim]Searched {escape(roots)} ({summary.strategy.value} strategy)[/]")

        if summary.count == 0:
            self.console.print(
                f"[green]No stale dependency folders found[/] "
                f"[dim]({summary.scanned} scanned, {summary.excluded} excluded)[/]"
            )
            return

        table = Table(box=box.SIMPLE, show_header=True, header_style="bold")
        table.add_column("Size", justify="right", style="cyan")
        table.add_column("Age", justify="right", style="yellow")
        table.add_column("Files", justify="right")
        table.add_column("Evidence", style="dim")
        table.add_column("Path")
        for entry in summary.entries:
            table.add_row(
                format_size(entry.size_bytes),
                f"{entry.age_days}d",
                str(entry.file_count),
                entry.evidence.value,
                escape(shorten_path(str(entry.path))),
            )
        self.console.print(table)
        self.console.print(
            f"[bold]{summary.count}[/] stale folder(s), about "
            f"[bold cyan]{format_size(summary.total_bytes)}[/] reclaimable "
            f"[dim]({summary.scanned} scanned, {summary.excluded} excluded)[/]"
        )
        self.console.print(f"Report saved to [bold]{escape(str(summary.report_path))}[/]")
        self.console.print("[dim]Review it, then run 'sweepy clean' to delete these folders.[/]")

    def progress(self):
        return Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("({task.completed}/{task.total})"),
            TimeElapsedColumn(),
            console=self.console,
            transient=True,
        )

    # === Clean ===
    def show_preview(self, sizes: dict, title: str = "Folders to delete") -> None:
        table = Table(title=title, box=box.SIMPLE, show_header=True, header_style="bold")
        table.add_column("Size", justify="right", style="cyan")
        table.add_column("Path")
        for path, size in sizes.items():
            table.add_row(format_size(size), escape(str(path)))
        self.console.print(table)
        total = sum(sizes.values())
        self.console.print(f"[bold]{len(sizes)}[/] folder(s), [bold cyan]{format_size(total)}[/] total")

    def show_clean_summary(self, result) -> None:
        if result.failed:
            self.console.print(
                f"[green]Deleted {len(result.succeeded)}[/], [red bold]failed {len(result.failed)}[/], "
                f"freed [bold cyan]{format_size(result.bytes_freed)}[/]"
            )
            for outcome in result.failed:
                self.console.print(f"[red dim]  - {escape(outcome.path)}: {escape(outcome.reason)}[/]")
            self.console.print(
                f"Failed paths from this run written to [bold]{escape(str(result.failed_paths_file))}[/]"
            )
        else:
            self.console.print(
                f"[green]Deleted {len(result.succeeded)} folder(s)[/], "
                f"freed [bold cyan]{format_size(result.bytes_freed)}[/]"
            )
        if result.audit_log:
            self.console.print(f"Audit log: [bold]{escape(str(result.audit_log))}[/]")


class ProgressConsumer(threading.Thread):
    """Drains scanner progress events into a rich Progress bar.

    The scanner only ever calls put_nowait, so a slow consumer drops events
    instead of slowing the scan down.
    """

    def __init__(self, ui: SweepyConsole, events: "queue.Queue"):
        super().__init__(daemon=True)
        self.ui = ui
        self.events = events

    def run(self) -> None:
        with self.ui.progress() as progress:
            task = progress.add_task("Scanning", total=None)
            while True:
                event = self.events.get()
                if event is None:
                    break
                progress.update(
                    task,
                    description=f"{event.phase.capitalize()} {escape(shorten_path(str(event.path), 40))}",
                    completed=event.index,
                    total=event.total or None,
                )

    def stop(self) -> None:
        # The sentinel must get through even if the queue is full
        while True:
            try:
                self.events.put_nowait(None)
                break
            except queue.Full:
                try:
                    self.events.get_nowait()
                except queue.Empty:
                    pass
        self.join()
