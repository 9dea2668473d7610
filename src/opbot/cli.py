"""Command line interface for administering the opbot store."""

from __future__ import annotations

import contextlib
import difflib
import logging
from typing import Any, Iterator, NoReturn

import click
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.syntax import Syntax
from rich.table import Table

from opbot.config import (
    ConfigError,
    ConfigManager,
    DatabaseSettings,
    OpbotConfig,
    flatten_for_env,
)
from opbot.store import (
    NotFoundError,
    PingError,
    Store,
    StoreConnectionError,
    StoreError,
)

console = Console()

_ERROR_CODES: dict[type[StoreError], str] = {
    StoreConnectionError: "connection_failed",
    PingError: "ping_failed",
    NotFoundError: "chapter_not_seeded",
}


def _handle_cli_error(
    message: str,
    *,
    code: str,
    json_output: bool,
    details: Any | None = None,
    original: Exception | None = None,
) -> NoReturn:
    """Emit a standardized error and terminate the command.

    Args:
        message: Human-readable error message.
        code: Machine-readable error identifier.
        json_output: Indicates whether JSON mode is active.
        details: Optional structured details to include in the payload.
        original: Original exception for chaining when not using JSON.

    Raises:
        SystemExit: When emitting JSON output to terminate the command.
        click.ClickException: For non-JSON flows to surface the error.
    """
    if json_output:
        payload: dict[str, Any] = {"error": {"code": code, "message": message}}
        if details is not None:
            payload["error"]["details"] = details
        console.print_json(data=payload)
        raise SystemExit(1)

    raise click.ClickException(message) from original


def _handle_store_error(exc: StoreError, *, json_output: bool) -> NoReturn:
    code = _ERROR_CODES.get(type(exc), "store_error")
    _handle_cli_error(
        str(exc),
        code=code,
        json_output=json_output,
        details={"operation": exc.operation, "exception": type(exc).__name__},
        original=exc,
    )


def _configure_logging(level: str) -> None:
    """Attach a rich handler to the root logger once and apply ``level``."""
    root = logging.getLogger()
    root.setLevel(level)
    if any(isinstance(handler, RichHandler) for handler in root.handlers):
        return
    handler = RichHandler(console=Console(stderr=True), show_path=False)
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    root.addHandler(handler)


def _load_config(ctx: click.Context, *, json_output: bool = False) -> OpbotConfig:
    """Resolve configuration for a command and configure logging from it.

    Args:
        ctx: Click context carrying global options.
        json_output: Whether errors should be reported as JSON.

    Returns:
        OpbotConfig: Effective configuration.
    """
    options = ctx.find_root().obj or {}
    try:
        config = ConfigManager().load(cli_overrides=options.get("cli_overrides"))
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)

    _configure_logging("DEBUG" if options.get("verbose") else config.logging.level)
    return config


def _open_store(settings: DatabaseSettings) -> Store:
    return Store.from_settings(settings)


@contextlib.contextmanager
def _store_session(config: OpbotConfig, *, json_output: bool) -> Iterator[Store]:
    """Open a store for one command and report store failures uniformly."""
    try:
        store = _open_store(config.database)
    except StoreError as exc:
        _handle_store_error(exc, json_output=json_output)

    try:
        yield store
    except StoreError as exc:
        _handle_store_error(exc, json_output=json_output)
    finally:
        store.close()


def _json_enabled(config: OpbotConfig, json_output: bool) -> bool:
    return json_output or config.cli.json_default


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="opbot")
@click.option("--uri", type=str, help="MongoDB connection string (overrides database.uri).")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, uri: str | None, verbose: bool) -> None:
    """opbot keeps track of chapter subscribers and the latest released chapter."""
    ctx.ensure_object(dict)
    ctx.obj["cli_overrides"] = {"database.uri": uri} if uri else {}
    ctx.obj["verbose"] = verbose


@cli.command()
@click.option("--json", "json_output", is_flag=True, help="Emit the result as JSON.")
@click.pass_context
def ping(ctx: click.Context, json_output: bool) -> None:
    """Connect to the database and check that it answers."""
    config = _load_config(ctx, json_output=json_output)
    json_enabled = _json_enabled(config, json_output)
    with _store_session(config, json_output=json_enabled) as store:
        store.ping()

    if json_enabled:
        console.print_json(data={"ok": True, "database": config.database.name})
        return
    console.print(f"[green]Database {config.database.name} is reachable.[/green]")


@cli.command()
@click.pass_context
def init(ctx: click.Context) -> None:
    """Create the indexes the store relies on."""
    config = _load_config(ctx)
    with _store_session(config, json_output=_json_enabled(config, False)) as store:
        store.ensure_indexes()
    console.print("[green]Indexes are in place.[/green]")


@cli.group()
def subscribers() -> None:
    """Inspect and edit subscribed chats.

    Negative chat ids (group chats) must follow `--`, for example
    `opbot subscribers add -- -100123`.
    """


@subscribers.command("list")
@click.option("--json", "json_output", is_flag=True, help="Emit subscribers as JSON.")
@click.pass_context
def subscribers_list(ctx: click.Context, json_output: bool) -> None:
    """List every subscribed chat id."""
    config = _load_config(ctx, json_output=json_output)
    json_enabled = _json_enabled(config, json_output)
    with _store_session(config, json_output=json_enabled) as store:
        chat_ids = sorted(store.list_subscriber_ids())

    if json_enabled:
        console.print_json(data={"subscribers": chat_ids})
        return

    if not chat_ids:
        console.print("[yellow]No subscribers registered.[/yellow]")
        return

    table = Table(title=f"Subscribers ({len(chat_ids)})", min_width=24)
    table.add_column("Chat id", justify="right")
    for chat_id in chat_ids:
        table.add_row(str(chat_id))
    console.print(table)


@subscribers.command("add")
@click.argument("chat_id", type=int)
@click.pass_context
def subscribers_add(ctx: click.Context, chat_id: int) -> None:
    """Subscribe CHAT_ID; already subscribed chats are left as they are."""
    config = _load_config(ctx)
    with _store_session(config, json_output=_json_enabled(config, False)) as store:
        store.add_subscriber(chat_id)
    console.print(f"[green]Chat {chat_id} is subscribed.[/green]")


@subscribers.command("remove")
@click.argument("chat_id", type=int)
@click.pass_context
def subscribers_remove(ctx: click.Context, chat_id: int) -> None:
    """Unsubscribe CHAT_ID; unknown chats are ignored."""
    config = _load_config(ctx)
    with _store_session(config, json_output=_json_enabled(config, False)) as store:
        store.remove_subscriber(chat_id)
    console.print(f"[green]Chat {chat_id} is not subscribed.[/green]")


@cli.group()
def chapter() -> None:
    """Inspect and update the latest chapter record."""


@chapter.command("show")
@click.option("--json", "json_output", is_flag=True, help="Emit the record as JSON.")
@click.pass_context
def chapter_show(ctx: click.Context, json_output: bool) -> None:
    """Display the latest known chapter."""
    config = _load_config(ctx, json_output=json_output)
    json_enabled = _json_enabled(config, json_output)
    with _store_session(config, json_output=json_enabled) as store:
        record = store.get_latest_chapter()

    if json_enabled:
        console.print_json(data=record.model_dump(mode="json"))
        return
    console.print(f"Chapter [bold]{record.chapter_number}[/bold]: {record.latest_url}")


@chapter.command("seed")
@click.argument("number", type=int)
@click.argument("url")
@click.pass_context
def chapter_seed(ctx: click.Context, number: int, url: str) -> None:
    """Create the chapter record at NUMBER/URL unless one already exists."""
    config = _load_config(ctx)
    with _store_session(config, json_output=_json_enabled(config, False)) as store:
        created = store.seed_chapter(number, url)

    if created:
        console.print(f"[green]Seeded chapter {number}.[/green]")
    else:
        console.print("[yellow]A chapter record already exists; nothing changed.[/yellow]")


@chapter.command("advance")
@click.argument("number", type=int)
@click.argument("url")
@click.pass_context
def chapter_advance(ctx: click.Context, number: int, url: str) -> None:
    """Advance the record stored at NUMBER to NUMBER + 1 with source URL."""
    config = _load_config(ctx)
    json_enabled = _json_enabled(config, False)
    with _store_session(config, json_output=json_enabled) as store:
        advanced = store.advance_chapter(number, url)

    if not advanced:
        _handle_cli_error(
            f"No chapter record is stored at {number}; nothing changed.",
            code="chapter_mismatch",
            json_output=json_enabled,
        )
    console.print(f"[green]Latest chapter is now {number + 1}.[/green]")


@cli.group()
def config() -> None:
    """Manage opbot configuration files and overrides."""


@config.command("view")
@click.option("--no-env", is_flag=True, help="Ignore OPBOT__ environment overrides.")
@click.option("--env", "as_env", is_flag=True, help="Print the result as OPBOT__ variables.")
def config_view(no_env: bool, as_env: bool) -> None:
    """Show the effective configuration, as YAML or as environment variables."""
    manager = ConfigManager()
    try:
        effective = manager.load(include_env=not no_env, ensure_file=True)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    if as_env:
        for name, rendered in flatten_for_env(effective).items():
            click.echo(f"{name}={rendered}")
        return

    yaml_text = yaml.safe_dump(effective.model_dump(mode="python"), sort_keys=False)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="YAML literal to store at KEY.")
def config_set(key: str, value: str) -> None:
    """Store VALUE at the dotted KEY of the config file and show the diff."""
    manager = ConfigManager()
    manager.ensure_exists()

    try:
        parsed_value = yaml.safe_load(value)
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Unable to parse value: {exc}") from exc

    before = manager.read_text().splitlines()
    try:
        written = manager.set_value(key, parsed_value)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    after = manager.read_text().splitlines()

    # The timestamp line changes on every write.
    diff = [
        line
        for line in difflib.unified_diff(
            before, after, fromfile="config.yaml", tofile="config.yaml", lineterm=""
        )
        if "Last updated:" not in line
    ]
    if not any(line[:1] in ("+", "-") and line[:3] not in ("+++", "---") for line in diff):
        console.print("[yellow]No changes applied; value already up to date.[/yellow]")
        return

    console.print(Syntax("\n".join(diff), "diff", word_wrap=False))
    console.print(f"[green]Updated {written}.[/green]")


def main() -> None:
    """Invoke the Click CLI as the console script entry point."""
    cli()


if __name__ == "__main__":
    main()
