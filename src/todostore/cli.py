"""CLI entry point for todostore.

This module provides the Typer-based CLI with commands:
- todostore add / list / toggle / edit / rm: Manage todos
- todostore categories / category-add / category-rename / category-rm: Manage categories
- todostore status: Show counts and storage location
- todostore reset: Clear all stored data
- todostore validate: Validate configuration
- todostore shell: Interactive session with undo/redo and reordering

Every command opens the store from configuration and closes it before
exiting, which flushes the last debounced write.

Exit codes:
- 0: Success
- 1: Configuration error
- 2: Unknown todo or category, or rejected input
- 4: Fatal error
"""

from __future__ import annotations

import shlex
import sqlite3
from enum import IntEnum
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer

from todostore import __version__
from todostore.config import (
    BackendType,
    ConfigError,
    load_config,
    load_config_or_default,
)
from todostore.logging import configure_logging, get_logger, log_command, log_history, log_persisted
from todostore.persistence import SQLiteBackend
from todostore.state import ALL_CATEGORIES, MIN_TITLE_LENGTH, FilterStatus, TodoStore

if TYPE_CHECKING:
    from todostore.config import Config
    from todostore.state import Todo


class ExitCode(IntEnum):
    """CLI exit codes."""

    SUCCESS = 0
    CONFIG_ERROR = 1
    NOT_FOUND = 2
    FATAL_ERROR = 4


app = typer.Typer(
    name="todostore",
    help="todostore - a todo list with categories, filters and undo/redo.",
    add_completion=False,
    no_args_is_help=True,
)

ConfigOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        "-c",
        help="Path to configuration file.",
    ),
]
VerboseOption = Annotated[
    bool,
    typer.Option(
        "--verbose",
        "-v",
        help="Enable verbose output.",
    ),
]

# Length of the id prefix shown in listings
SHORT_ID_LENGTH = 8


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"todostore {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """todostore - a todo list with categories, filters and undo/redo."""


def _error(message: str) -> None:
    typer.echo(typer.style(f"✗ {message}", fg=typer.colors.RED), err=True)


def _load(config: Path | None, verbose: bool) -> Config:
    """Load configuration and set up logging, exiting on config errors."""
    try:
        cfg = load_config_or_default(config)
    except ConfigError as e:
        configure_logging(verbose=verbose, json_output=False)
        _error(str(e))
        raise typer.Exit(ExitCode.CONFIG_ERROR) from e

    configure_logging(verbose=verbose or cfg.logging.verbose, json_output=cfg.logging.json_output)
    return cfg


def _open_store(cfg: Config) -> TodoStore:
    try:
        store = TodoStore.from_config(cfg)
    except sqlite3.Error as e:
        _error(f"Cannot open state database: {e}")
        raise typer.Exit(ExitCode.FATAL_ERROR) from e
    get_logger("todostore.cli").debug("store_opened", todos=len(store.state.todos))
    return store


def _close_store(store: TodoStore) -> None:
    written = store.flush()
    if written:
        state = store.state
        log_persisted(type(store.backend).__name__, len(state.todos), len(state.categories))
    store.close()


def _resolve_todo(store: TodoStore, ref: str) -> Todo:
    """Find a todo by full id or unique id prefix, exiting if not found."""
    matches = [todo for todo in store.state.todos if todo.id.startswith(ref)]
    exact = [todo for todo in matches if todo.id == ref]
    if exact:
        return exact[0]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        msg = f"No todo matches '{ref}'"
    else:
        msg = f"'{ref}' matches {len(matches)} todos, use a longer prefix"
    raise LookupError(msg)


def _resolve_category(store: TodoStore, ref: str) -> str:
    """Find a category id by full id, unique id prefix, or exact name."""
    categories = store.categories
    for category in categories:
        if category.id == ref:
            return category.id
    by_name = [c for c in categories if c.name.lower() == ref.lower()]
    if len(by_name) == 1:
        return by_name[0].id
    by_prefix = [c for c in categories if c.id.startswith(ref)]
    if len(by_prefix) == 1:
        return by_prefix[0].id
    msg = f"No single category matches '{ref}'"
    raise LookupError(msg)


def _format_todo(store: TodoStore, todo: Todo) -> str:
    mark = "x" if todo.completed else " "
    category = store.category_map.get(todo.category_id)
    category_name = category.name if category else todo.category_id
    return f"[{mark}] {todo.id[:SHORT_ID_LENGTH]}  {todo.title}  ({category_name})"


def _print_todos(store: TodoStore) -> None:
    todos = store.filtered_todos
    filter_state = store.filter_state
    header = f"{store.active_category_name} · {filter_state.status.value}"
    if filter_state.search.strip():
        header += f" · search '{filter_state.search.strip()}'"
    typer.echo(typer.style(header, bold=True))
    if not todos:
        typer.echo("  (no todos)")
    for index, todo in enumerate(todos):
        typer.echo(f"{index:>3} {_format_todo(store, todo)}")
    counts = store.counts
    typer.echo(f"{counts.total} total, {counts.active} active, {counts.completed} completed")


@app.command()
def add(
    title: Annotated[list[str], typer.Argument(help="Todo title.")],
    category: Annotated[
        str | None,
        typer.Option("--category", "-C", help="Category id or name."),
    ] = None,
    config: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Add a todo to the top of the list."""
    store = _open_store(_load(config, verbose))
    try:
        category_id = _resolve_category(store, category) if category else None
        text = " ".join(title)
        todo_id = store.add_todo(text, category_id) if category_id else store.add_todo(text)
        if todo_id is None:
            _error("Title must be at least 3 characters")
            raise typer.Exit(ExitCode.NOT_FOUND)
        log_command("add_todo", recorded=True, todo_id=todo_id)
        typer.echo(typer.style(f"✓ Added {todo_id[:SHORT_ID_LENGTH]}", fg=typer.colors.GREEN))
    except LookupError as e:
        _error(str(e))
        raise typer.Exit(ExitCode.NOT_FOUND) from e
    finally:
        _close_store(store)


@app.command("list")
def list_todos(
    status: Annotated[
        FilterStatus | None,
        typer.Option("--status", "-s", help="Filter by status."),
    ] = None,
    category: Annotated[
        str | None,
        typer.Option("--category", "-C", help="Filter by category id or name."),
    ] = None,
    search: Annotated[
        str | None,
        typer.Option("--search", "-q", help="Case-insensitive title search."),
    ] = None,
    config: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """List todos, optionally filtered.

    Filters given here are remembered for the next listing.
    """
    store = _open_store(_load(config, verbose))
    try:
        if status is not None:
            store.set_filter_status(status)
        if category is not None:
            store.set_filter_category(
                ALL_CATEGORIES if category == ALL_CATEGORIES else _resolve_category(store, category)
            )
        if search is not None:
            store.set_search(search)
        _print_todos(store)
    except LookupError as e:
        _error(str(e))
        raise typer.Exit(ExitCode.NOT_FOUND) from e
    finally:
        _close_store(store)


@app.command()
def toggle(
    todo: Annotated[str, typer.Argument(help="Todo id or id prefix.")],
    config: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Mark a todo completed, or active again."""
    store = _open_store(_load(config, verbose))
    try:
        found = _resolve_todo(store, todo)
        store.toggle_todo(found.id)
        log_command("toggle_todo", recorded=True, todo_id=found.id)
        typer.echo(_format_todo(store, store.state.find_todo(found.id) or found))
    except LookupError as e:
        _error(str(e))
        raise typer.Exit(ExitCode.NOT_FOUND) from e
    finally:
        _close_store(store)


@app.command()
def edit(
    todo: Annotated[str, typer.Argument(help="Todo id or id prefix.")],
    title: Annotated[list[str], typer.Argument(help="New title.")],
    config: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Change the title of a todo."""
    store = _open_store(_load(config, verbose))
    try:
        found = _resolve_todo(store, todo)
        new_title = " ".join(title)
        if len(new_title.strip()) < MIN_TITLE_LENGTH:
            _error(f"Title must be at least {MIN_TITLE_LENGTH} characters")
            raise typer.Exit(ExitCode.NOT_FOUND)
        store.edit_todo_title(found.id, new_title)
        updated = store.state.find_todo(found.id) or found
        log_command("edit_todo_title", recorded=True, todo_id=found.id)
        typer.echo(_format_todo(store, updated))
    except LookupError as e:
        _error(str(e))
        raise typer.Exit(ExitCode.NOT_FOUND) from e
    finally:
        _close_store(store)


@app.command("rm")
def remove(
    todo: Annotated[str, typer.Argument(help="Todo id or id prefix.")],
    config: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Delete a todo."""
    store = _open_store(_load(config, verbose))
    try:
        found = _resolve_todo(store, todo)
        store.delete_todo(found.id)
        log_command("delete_todo", recorded=True, todo_id=found.id)
        typer.echo(f"✓ Deleted {found.title}")
    except LookupError as e:
        _error(str(e))
        raise typer.Exit(ExitCode.NOT_FOUND) from e
    finally:
        _close_store(store)


@app.command()
def categories(
    config: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """List categories with their todo counts."""
    store = _open_store(_load(config, verbose))
    try:
        per_category: dict[str, int] = {}
        for todo in store.state.todos:
            per_category[todo.category_id] = per_category.get(todo.category_id, 0) + 1
        for category in store.categories:
            count = per_category.get(category.id, 0)
            short_id = category.id[:SHORT_ID_LENGTH]
            typer.echo(f"{short_id:<{SHORT_ID_LENGTH}}  {category.name} ({count})")
    finally:
        _close_store(store)


@app.command("category-add")
def category_add(
    name: Annotated[list[str], typer.Argument(help="Category name.")],
    config: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Add a category."""
    store = _open_store(_load(config, verbose))
    try:
        category_id = store.add_category(" ".join(name))
        if category_id is None:
            _error("Category name must not be blank")
            raise typer.Exit(ExitCode.NOT_FOUND)
        log_command("add_category", recorded=True, category_id=category_id)
        message = f"✓ Added category {category_id[:SHORT_ID_LENGTH]}"
        typer.echo(typer.style(message, fg=typer.colors.GREEN))
    finally:
        _close_store(store)


@app.command("category-rename")
def category_rename(
    category: Annotated[str, typer.Argument(help="Category id or name.")],
    name: Annotated[list[str], typer.Argument(help="New name.")],
    config: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Rename a category."""
    store = _open_store(_load(config, verbose))
    try:
        category_id = _resolve_category(store, category)
        new_name = " ".join(name)
        if not new_name.strip():
            _error("Category name must not be blank")
            raise typer.Exit(ExitCode.NOT_FOUND)
        store.rename_category(category_id, new_name)
        log_command("rename_category", recorded=True, category_id=category_id)
        typer.echo(f"✓ Renamed to {store.category_map[category_id].name}")
    except LookupError as e:
        _error(str(e))
        raise typer.Exit(ExitCode.NOT_FOUND) from e
    finally:
        _close_store(store)


@app.command("category-rm")
def category_remove(
    category: Annotated[str, typer.Argument(help="Category id or name.")],
    config: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Delete a category; its todos move to Uncategorized."""
    store = _open_store(_load(config, verbose))
    try:
        category_id = _resolve_category(store, category)
        before = len(store.categories)
        store.delete_category(category_id)
        if len(store.categories) == before:
            _error("The fallback category cannot be deleted")
            raise typer.Exit(ExitCode.NOT_FOUND)
        log_command("delete_category", recorded=True, category_id=category_id)
        typer.echo("✓ Deleted category")
    except LookupError as e:
        _error(str(e))
        raise typer.Exit(ExitCode.NOT_FOUND) from e
    finally:
        _close_store(store)


@app.command()
def status(
    config: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Show todo counts and where state is stored."""
    cfg = _load(config, verbose)
    store = _open_store(cfg)
    try:
        counts = store.counts
        typer.echo(typer.style("todostore status", bold=True))
        typer.echo("─" * 40)
        if cfg.persistence.backend == BackendType.SQLITE:
            typer.echo(f"Database: {cfg.persistence.get_path()}")
        else:
            typer.echo("Database: (memory)")
        typer.echo(f"Storage key: {cfg.persistence.key}")
        if isinstance(store.backend, SQLiteBackend):
            typer.echo(f"Last saved: {store.backend.updated_at() or 'never'} (UTC)")
        typer.echo(f"Schema version: {store.state.meta.schema_version}")
        typer.echo()
        typer.echo(
            f"  Todos: {counts.total} ({counts.active} active, {counts.completed} completed)"
        )
        typer.echo(f"  Categories: {len(store.categories)}")
    finally:
        _close_store(store)


@app.command()
def reset(
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Do not ask for confirmation."),
    ] = False,
    config: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Delete all todos and categories."""
    if not yes:
        typer.confirm("Delete all todos and categories?", abort=True)
    store = _open_store(_load(config, verbose))
    try:
        store.reset_all()
        log_history("reset", past=0, future=0)
        typer.echo(typer.style("✓ All data cleared", fg=typer.colors.GREEN))
    finally:
        _close_store(store)


@app.command()
def validate(
    config: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Validate configuration without opening the store."""
    configure_logging(verbose=verbose, json_output=False)
    try:
        cfg = load_config(config)
    except ConfigError as e:
        _error(str(e))
        raise typer.Exit(ExitCode.CONFIG_ERROR) from e

    typer.echo(typer.style("✓ Configuration is valid", fg=typer.colors.GREEN))
    if verbose:
        typer.echo("\nConfiguration summary:")
        typer.echo(f"  Version: {cfg.version}")
        typer.echo(f"  Backend: {cfg.persistence.backend.value}")
        typer.echo(f"  Debounce: {cfg.persistence.debounce_ms}ms")
        typer.echo(f"  History limit: {cfg.history.limit}")
    raise typer.Exit(ExitCode.SUCCESS)


# Shell commands that push an undo step
RECORDED_SHELL_COMMANDS = frozenset({"add", "toggle", "edit", "rm", "move", "cat-add", "cat-rm"})

SHELL_HELP = """\
Commands:
  add TITLE            add a todo          edit N TITLE   rename todo at index N
  toggle N             toggle todo N       rm N           delete todo N
  move FROM TO         reorder the visible list
  filter all|active|completed              category ID|NAME|all
  search [TEXT]        set/clear search    cat-add NAME   add a category
  cat-rm ID|NAME       delete a category   list           show todos
  undo / redo          time travel         quit           leave the shell"""


def _visible_todo(store: TodoStore, index_text: str) -> Todo:
    visible = store.filtered_todos
    try:
        index = int(index_text)
    except ValueError as e:
        msg = f"Expected a list index, got '{index_text}'"
        raise LookupError(msg) from e
    if not 0 <= index < len(visible):
        msg = f"No todo at index {index}"
        raise LookupError(msg)
    return visible[index]


def _run_shell_command(store: TodoStore, name: str, args: list[str]) -> bool:  # noqa: PLR0912
    """Run one shell command. Returns False when the shell should exit."""
    before = store.state
    rest = " ".join(args)
    if name in {"quit", "exit"}:
        return False
    if name == "help":
        typer.echo(SHELL_HELP)
    elif name == "list":
        _print_todos(store)
    elif name == "add":
        if store.add_todo(rest) is None:
            _error("Title must be at least 3 characters")
    elif name == "toggle":
        store.toggle_todo(_visible_todo(store, rest).id)
    elif name == "edit":
        if not args:
            msg = "edit needs an index and a title"
            raise LookupError(msg)
        store.edit_todo_title(_visible_todo(store, args[0]).id, " ".join(args[1:]))
    elif name == "rm":
        store.delete_todo(_visible_todo(store, rest).id)
    elif name == "move":
        if len(args) != 2 or not all(arg.lstrip("-").isdigit() for arg in args):
            msg = "move needs two list indices"
            raise LookupError(msg)
        visible_ids = [todo.id for todo in store.filtered_todos]
        store.reorder_todos(visible_ids, int(args[0]), int(args[1]))
    elif name == "filter":
        store.set_filter_status(rest)
    elif name == "category":
        category_id = rest if rest == ALL_CATEGORIES else _resolve_category(store, rest)
        store.set_filter_category(category_id)
    elif name == "search":
        store.set_search(rest)
    elif name == "cat-add":
        if store.add_category(rest) is None:
            _error("Category name must not be blank")
    elif name == "cat-rm":
        store.delete_category(_resolve_category(store, rest))
    elif name in {"undo", "redo"}:
        if name == "undo":
            store.undo()
        else:
            store.redo()
    else:
        _error(f"Unknown command '{name}' (try 'help')")
        return True

    # Rejected commands and no-ops leave the present untouched
    if store.state is not before:
        if name in {"undo", "redo"}:
            log_history(name, past=store.undo_depth, future=store.redo_depth)
        log_command(name, recorded=name in RECORDED_SHELL_COMMANDS)
    return True


@app.command()
def shell(
    config: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Start an interactive session.

    Undo and redo history lives for the length of the session.
    """
    store = _open_store(_load(config, verbose))
    typer.echo("todostore shell - type 'help' for commands, 'quit' to leave.")
    try:
        _print_todos(store)
        while True:
            try:
                line = typer.prompt("todo", prompt_suffix="> ", default="", show_default=False)
            except typer.Abort:
                break
            try:
                words = shlex.split(line)
            except ValueError as e:
                _error(str(e))
                continue
            if not words:
                continue
            try:
                keep_going = _run_shell_command(store, words[0].lower(), words[1:])
            except LookupError as e:
                _error(str(e))
                continue
            if not keep_going:
                break
            if words[0].lower() not in {"list", "help"}:
                _print_todos(store)
    finally:
        _close_store(store)
