"""Command line interface for mdq."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, NoReturn, Optional

import typer
from rich.console import Console
from rich.markup import escape

from mdq.config import DEFAULT_DB_PATH, AppConfig
from mdq.errors import IndexIOError
from mdq.index.indexer import Indexer
from mdq.index.search import Searcher
from mdq.index.storage import SQLiteTermIndex
from mdq.session import InteractiveSession
from mdq.utils.text import TextAnalyzer


LOGGER = logging.getLogger(__name__)

console = Console()
err_console = Console(stderr=True)
app = typer.Typer(
    help=(
        "mdq - index Markdown notes with YAML frontmatter and query them "
        "interactively, e.g. 'foo AND bar AND tag:qux'."
    ),
    pretty_exceptions_show_locals=False,
)


def _setup(verbosity: int) -> None:
    """One-time process setup, run before anything else."""
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _fail(exc: Exception) -> NoReturn:
    err_console.print(f"[red]Error:[/red] {escape(str(exc))}")
    raise typer.Exit(code=1)


def _analyzer(config: AppConfig) -> TextAnalyzer:
    return TextAnalyzer(language=config.language, min_length=config.min_token_length)


def _run_session(config: AppConfig, initial_query: Optional[str] = None) -> None:
    index_path = config.index_path
    try:
        if not index_path.exists():
            LOGGER.info("Creating empty index at %s; run 'mdq update <paths>' to add notes", index_path)
            SQLiteTermIndex(index_path).close()
        store = SQLiteTermIndex(index_path, read_only=True)
    except IndexIOError as exc:
        _fail(exc)

    with store:
        session = InteractiveSession(
            Searcher(store, _analyzer(config)),
            pager=config.pager,
            editor=config.editor,
            top_k=config.top_k,
            console=console,
        )
        opened = session.run(initial_query)

    for path in opened:
        typer.echo(str(path))


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    db_path: Path = typer.Option(
        DEFAULT_DB_PATH,
        "--db-path",
        "-d",
        envvar="MDQ_DB_PATH",
        help="Directory holding the index",
    ),
    verbose: int = typer.Option(0, "--verbose", "-v", count=True, help="Increase verbosity"),
    pager: str = typer.Option("less", envvar="MDQ_PAGER", help="Command used to view a note"),
    editor: str = typer.Option("vim", envvar="MDQ_EDITOR", help="Command used to edit a note"),
    limit: int = typer.Option(20, "--limit", "-n", min=1, help="Number of results to display"),
) -> None:
    """Without a subcommand, start the interactive query session."""
    _setup(verbose)
    ctx.obj = AppConfig(
        db_path=db_path,
        pager=pager,
        editor=editor,
        top_k=limit,
        verbosity=verbose,
    )
    if ctx.invoked_subcommand is None:
        _run_session(ctx.obj)


@app.command()
def update(
    ctx: typer.Context,
    paths: List[Path] = typer.Argument(
        ..., help="Directories (searched recursively) or files to index.", resolve_path=True
    ),
    force: bool = typer.Option(False, "--force", help="Re-index notes even if unchanged"),
) -> None:
    """Index the Markdown notes found under PATHS."""
    config: AppConfig = ctx.obj
    try:
        with SQLiteTermIndex(config.index_path) as store:
            indexer = Indexer(store, _analyzer(config), extension=config.extension)
            stats = indexer.index(paths, force=force)
    except IndexIOError as exc:
        _fail(exc)

    if config.verbosity > 0:
        for path in stats.indexed_files:
            console.print(f"✅ {path.name}", markup=False)
    console.print(
        f"Inserted: {stats.inserted}, updated: {stats.updated}, "
        f"skipped: {stats.skipped}, failed: {stats.failed}"
    )


@app.command()
def query(
    ctx: typer.Context,
    text: str = typer.Argument(..., metavar="QUERY", help="First query to run"),
) -> None:
    """Start the interactive session with QUERY already evaluated."""
    _run_session(ctx.obj, initial_query=text)


@app.command()
def prune(ctx: typer.Context) -> None:
    """Remove indexed notes that no longer exist on disk."""
    config: AppConfig = ctx.obj
    if not config.index_path.exists():
        console.print("[yellow]Index not found, nothing to prune.[/yellow]")
        return
    try:
        with SQLiteTermIndex(config.index_path) as store:
            removed = store.remove_missing_files()
            store.commit()
    except IndexIOError as exc:
        _fail(exc)
    console.print(f"Removed {removed} orphaned notes.")
