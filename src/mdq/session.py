"""Interactive query loop."""

from __future__ import annotations

import logging
import re
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from mdq.errors import ExternalProcessError, IndexIOError, QuerySyntaxError
from mdq.index.search import Searcher, SearchResult
from mdq.launcher import open_with
from mdq.query.language import parse_query

LOGGER = logging.getLogger(__name__)

QUERY_PROMPT = "mdq> "
SELECT_PROMPT = "open [N to view, eN to edit, Enter for a new query]> "
QUIT_COMMANDS = frozenset({":q", "quit", "exit"})
_SELECTION = re.compile(r"(e)?\s*(\d+)\Z", re.IGNORECASE)


class SessionState(str, Enum):
    IDLE = "idle"
    EVALUATING = "evaluating"
    DISPLAYING = "displaying"
    SELECTED = "selected"
    EXITING = "exiting"


class InteractiveSession:
    """Read a query, show ranked hits, open the chosen note, repeat.

    Only one query is in flight at a time, and a launched pager or editor
    blocks the loop until it exits. Syntax errors are reported and the
    session goes back to waiting for input.
    """

    def __init__(
        self,
        searcher: Searcher,
        *,
        pager: str = "less",
        editor: str = "vim",
        top_k: int = 20,
        console: Optional[Console] = None,
        read_input: Optional[Callable[[str], str]] = None,
        launch: Callable[[str, Path], int] = open_with,
    ) -> None:
        self.searcher = searcher
        self.pager = pager
        self.editor = editor
        self.top_k = top_k
        self.console = console or Console()
        self.read_input = read_input or self._console_input
        self.launch = launch

        self.state = SessionState.IDLE
        self.results: List[SearchResult] = []
        self.opened: List[Path] = []
        self._query_text = ""
        self._selection: Optional[Tuple[str, Path]] = None

    def run(self, initial_query: Optional[str] = None) -> List[Path]:
        """Run until the user quits; return the paths that were opened."""
        if initial_query and initial_query.strip():
            self._query_text = initial_query.strip()
            self.state = SessionState.EVALUATING
        else:
            self.state = SessionState.IDLE

        handlers = {
            SessionState.IDLE: self._idle,
            SessionState.EVALUATING: self._evaluating,
            SessionState.DISPLAYING: self._displaying,
            SessionState.SELECTED: self._selected,
        }
        while self.state is not SessionState.EXITING:
            handlers[self.state]()
        return self.opened

    def _console_input(self, prompt: str) -> str:
        return self.console.input(escape(prompt))

    def _read(self, prompt: str) -> Optional[str]:
        try:
            return self.read_input(prompt)
        except (EOFError, KeyboardInterrupt):
            self.console.print()
            self.state = SessionState.EXITING
            return None

    def _idle(self) -> None:
        text = self._read(QUERY_PROMPT)
        if text is None:
            return
        text = text.strip()
        if not text:
            return
        if text in QUIT_COMMANDS:
            self.state = SessionState.EXITING
            return
        self._query_text = text
        self.state = SessionState.EVALUATING

    def _evaluating(self) -> None:
        try:
            query = parse_query(self._query_text)
        except QuerySyntaxError as exc:
            self.console.print(f"[red]Query error:[/red] {escape(str(exc))}")
            self.state = SessionState.IDLE
            return

        try:
            self.results = self.searcher.search(query, top_k=self.top_k)
        except IndexIOError as exc:
            LOGGER.debug("Query %r failed: %s", self._query_text, exc)
            self.console.print(f"[red]Index error:[/red] {escape(str(exc))}")
            self.state = SessionState.IDLE
            return

        if not self.results:
            self.console.print("[yellow]No matches found.[/yellow]")
            self.state = SessionState.IDLE
            return

        self.console.print(render_results(self.results))
        self.state = SessionState.DISPLAYING

    def _displaying(self) -> None:
        choice = self._read(SELECT_PROMPT)
        if choice is None:
            return
        choice = choice.strip()
        if not choice:
            self.state = SessionState.IDLE
            return
        if choice in QUIT_COMMANDS:
            self.state = SessionState.EXITING
            return

        match = _SELECTION.match(choice)
        number = int(match.group(2)) if match else 0
        if not 1 <= number <= len(self.results):
            self.console.print(f"[yellow]Pick a number between 1 and {len(self.results)}.[/yellow]")
            return

        command = self.editor if match.group(1) else self.pager
        self._selection = (command, self.results[number - 1].path)
        self.state = SessionState.SELECTED

    def _selected(self) -> None:
        command, path = self._selection
        try:
            self.launch(command, path)
            self.opened.append(path)
        except ExternalProcessError as exc:
            self.console.print(f"[red]{escape(str(exc))}[/red]")
        except KeyboardInterrupt:
            self.console.print("[yellow]Interrupted.[/yellow]")
        finally:
            self._selection = None
            self.state = SessionState.IDLE


def render_results(results: Sequence[SearchResult]) -> Table:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("#", justify="right")
    table.add_column("Score")
    table.add_column("Title")
    table.add_column("Path")
    table.add_column("Snippet")

    for number, result in enumerate(results, start=1):
        table.add_row(
            str(number),
            f"{result.score:.4f}",
            escape(result.title),
            escape(str(result.path)),
            escape(result.snippet),
        )
    return table
