"""Textual picker for choosing which report paths to delete."""

import sys
from typing import Optional

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.widgets import ListItem, ListView, Static

from sweepy_console import format_size, shorten_path


def selection_available() -> bool:
    """The picker needs a real terminal on both ends."""
    return sys.stdin.isatty() and sys.stdout.isatty()


class PathItem(ListItem):
    """A single report path in the list."""

    def __init__(self, path: str, size_bytes: int) -> None:
        super().__init__()
        self.path = path
        self.size_bytes = size_bytes
        self.marked = False

    def compose(self) -> ComposeResult:
        yield Static(classes="content")

    def on_mount(self) -> None:
        self.update_display()

    def update_display(self) -> None:
        try:
            term_width = self.app.size.width if self.app else 80
        except Exception:
            term_width = 80
        target = shorten_path(self.path, max(20, term_width - 20))
        size = format_size(self.size_bytes).replace(" ", "")

        # ASCII marker to avoid Unicode width issues
        marker = " * " if self.marked else "   "
        content = f"{marker} {size:>8}  {target}"

        if self.marked:
            styled = Text(content)
            styled.stylize("black on rgb(255,140,0)")
            self.query_one(".content", Static).update(styled)
        else:
            self.query_one(".content", Static).update(Text(content))

    def toggle_mark(self) -> None:
        self.marked = not self.marked
        self.update_display()


class SelectApp(App):
    """Mark folders with space, ctrl+x to continue, esc to cancel."""

    CSS = """
    #path-list {
        height: 1fr;
        background: transparent;
    }

    #status-bar, #main-nav {
        height: 1;
        padding: 0 1;
    }

    #main-nav {
        dock: bottom;
        background: $primary-background;
    }

    ListItem.--highlight {
        background: cyan !important;
        color: black;
    }
    """

    BINDINGS = [
        Binding("space", "toggle_mark", "Mark", priority=True),
        Binding("a", "toggle_all", "All"),
        Binding("ctrl+x", "confirm", "Continue", priority=True),
        Binding("escape", "cancel", "Cancel", priority=True),
        Binding("ctrl+q", "cancel", "Quit"),
    ]

    def __init__(self, sizes: dict) -> None:
        super().__init__()
        self.sizes = sizes

    def compose(self) -> ComposeResult:
        with Vertical():
            yield Static(id="status-bar")
            yield ListView(*[PathItem(p, s) for p, s in self.sizes.items()], id="path-list")
        yield Static(
            "[bold magenta]space[/] Mark  [bold magenta]a[/] All  "
            "[bold magenta]esc[/] Cancel  [bold rgb(0,255,0)]^x Continue[/]",
            id="main-nav",
        )

    def on_mount(self) -> None:
        self.update_status()

    def _items(self) -> list[PathItem]:
        return [c for c in self.query_one("#path-list", ListView).children if isinstance(c, PathItem)]

    def update_status(self) -> None:
        marked = [i for i in self._items() if i.marked]
        marked_bytes = sum(i.size_bytes for i in marked)
        total_bytes = sum(self.sizes.values())
        self.query_one("#status-bar", Static).update(
            f"[bold magenta]Sweepy[/]  [dim]Folders:[/] [cyan]{len(self.sizes)}[/] "
            f"([cyan]{format_size(total_bytes)}[/])  "
            f"[dim]Selected:[/] [rgb(255,140,0)]{len(marked)}[/] "
            f"([rgb(255,140,0)]{format_size(marked_bytes)}[/])"
        )

    def action_toggle_mark(self) -> None:
        item = self.query_one("#path-list", ListView).highlighted_child
        if isinstance(item, PathItem):
            item.toggle_mark()
            self.update_status()

    def action_toggle_all(self) -> None:
        items = self._items()
        mark = not all(i.marked for i in items)
        for item in items:
            item.marked = mark
            item.update_display()
        self.update_status()

    def action_confirm(self) -> None:
        chosen = [i.path for i in self._items() if i.marked]
        if not chosen:
            self.notify("Nothing marked yet", severity="warning")
            return
        self.exit(result=chosen)

    def action_cancel(self) -> None:
        self.exit(result=None)


def select_paths(sizes: dict) -> Optional[list[str]]:
    """Run the picker. Returns the marked paths, or None if cancelled."""
    return SelectApp(sizes).run()
