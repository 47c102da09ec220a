"""Click-based CLI for EVALSYNC - offline evaluation queue and sync."""

from __future__ import annotations

import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Any, Optional

import click
import yaml
from rich.prompt import Confirm

from evalsync import __version__
from evalsync.config import (
    EvalsyncConfig,
    ensure_config_exists,
    get_config_path,
    load_config,
    validate_config_file,
)
from evalsync.errors import StorageFull
from evalsync.logger import setup_logging
from evalsync.output.console import Console
from evalsync.sync import (
    ConsoleNotificationBridge,
    CredentialProvider,
    DrainResult,
    FileCredentialProvider,
    MutationStatus,
    NullReplayBridge,
    StaticCredentialProvider,
    SyncContext,
)

TOKEN_ENV = "EVALSYNC_TOKEN"


@click.group()
@click.version_option(version=__version__, prog_name="evalsync")
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Configuration file (default: $EVALSYNC_CONFIG or ~/.config/evalsync/config.yaml)",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path]) -> None:
    """EVALSYNC - Offline queue for sales evaluations and record edits.

    Queues writes made while offline and replays them, oldest first,
    once the network and your session allow.

    \b
    Queue:    queue-evaluation, queue-update
    Inspect:  status, list, show
    Deliver:  drain, retry, discard, clear
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show connectivity and queue counts."""
    loaded, console = _load(ctx)
    context = _build_context(loaded, console)
    console.print_status(context.connectivity, context.store.counts())


@cli.command("list")
@click.option(
    "--status",
    "status_filter",
    type=click.Choice([s.value for s in MutationStatus if s != MutationStatus.SYNCED]),
    default=None,
    help="Only show items with this status",
)
@click.option("--verbose", "-v", is_flag=True, help="Show failure details")
@click.pass_context
def list_items(ctx: click.Context, status_filter: Optional[str], verbose: bool) -> None:
    """List queued items, oldest first."""
    loaded, console = _load(ctx, verbose=verbose)
    context = _build_context(loaded, console)
    items = context.store.list(MutationStatus(status_filter) if status_filter else None)
    console.print_queue(items)


@cli.command()
@click.argument("mutation_id")
@click.pass_context
def show(ctx: click.Context, mutation_id: str) -> None:
    """Show one queued item with its payload."""
    loaded, console = _load(ctx)
    context = _build_context(loaded, console)
    item = context.store.get(mutation_id)
    if item is None:
        console.print_error(f"No queued item '{mutation_id}'")
        sys.exit(1)
    console.print_mutation(item)


@cli.command("queue-evaluation")
@click.argument("file", type=click.File("r", encoding="utf-8"))
@click.pass_context
def queue_evaluation(ctx: click.Context, file) -> None:
    """Queue an evaluation submission from a JSON FILE ('-' for stdin)."""
    loaded, console = _load(ctx)
    body = _read_json(file, console)
    if not isinstance(body, dict):
        console.print_error("Evaluation payload must be a JSON object")
        sys.exit(1)

    context = _build_context(loaded, console)
    mutation_id = _enqueue(console, lambda: context.queue_evaluation(body))
    console.print_success(f"Queued evaluation {mutation_id}")


@cli.command("queue-update")
@click.argument("method", type=click.Choice(["POST", "PUT", "PATCH", "DELETE"], case_sensitive=False))
@click.argument("endpoint")
@click.argument("file", type=click.File("r", encoding="utf-8"), required=False)
@click.pass_context
def queue_update(ctx: click.Context, method: str, endpoint: str, file) -> None:
    """Queue a record edit: METHOD ENDPOINT with an optional JSON body FILE."""
    loaded, console = _load(ctx)
    body = _read_json(file, console) if file is not None else None

    context = _build_context(loaded, console)
    mutation_id = _enqueue(console, lambda: context.queue_update(method, endpoint, body))
    console.print_success(f"Queued {method.upper()} {endpoint} as {mutation_id}")


@cli.command()
@click.option("--offline", is_flag=True, help="Treat the network as unreachable (nothing is sent)")
@click.option("--verbose", "-v", is_flag=True, help="Show per-item outcomes")
@click.pass_context
def drain(ctx: click.Context, offline: bool, verbose: bool) -> None:
    """Deliver pending items now, oldest first."""
    loaded, console = _load(ctx, verbose=verbose)
    context = _build_context(loaded, console, online=not offline)

    try:
        result = asyncio.run(_run_drain(context))
    except StorageFull as e:
        console.print_error(f"{e.user_message} ({e})")
        sys.exit(1)
    console.print_drain_result(result)

    if result.has_issues:
        sys.exit(2)


@cli.command()
@click.argument("mutation_id", required=False)
@click.option("--all", "retry_all", is_flag=True, help="Retry every failed item")
@click.pass_context
def retry(ctx: click.Context, mutation_id: Optional[str], retry_all: bool) -> None:
    """Put failed items back in the queue."""
    loaded, console = _load(ctx)
    if not mutation_id and not retry_all:
        console.print_error("Give an item id or --all")
        sys.exit(1)

    context = _build_context(loaded, console)
    if retry_all:
        count = context.coordinator.retry_failed()
        console.print_success(f"Requeued {count} failed item(s)")
        return

    try:
        context.coordinator.retry(mutation_id)
    except (KeyError, ValueError) as e:
        console.print_error(str(e).strip("'\""))
        sys.exit(1)
    console.print_success(f"Requeued {mutation_id}")


@cli.command()
@click.argument("mutation_id")
@click.pass_context
def discard(ctx: click.Context, mutation_id: str) -> None:
    """Remove one queued item without sending it."""
    loaded, console = _load(ctx)
    context = _build_context(loaded, console)
    try:
        removed = context.coordinator.discard(mutation_id)
    except ValueError as e:
        console.print_error(str(e))
        sys.exit(1)

    if not removed:
        console.print_error(f"No queued item '{mutation_id}'")
        sys.exit(1)
    console.print_success(f"Discarded {mutation_id}")


@cli.command()
@click.option("--yes", "-y", is_flag=True, help="Don't ask for confirmation")
@click.pass_context
def clear(ctx: click.Context, yes: bool) -> None:
    """Remove every queued item, including failed ones."""
    loaded, console = _load(ctx)
    context = _build_context(loaded, console)

    total = len(context.store)
    if total == 0:
        console.print_info("Queue is already empty")
        return

    if not yes and not Confirm.ask(f"Discard {total} offline item(s)? They will never be sent", default=False):
        console.print_warning("Clear cancelled")
        return

    removed = context.store.clear()
    console.print_success(f"Discarded {removed} item(s)")
    if removed < total:
        console.print_warning(f"Kept {total - removed} item(s) that another drain is delivering right now")


@cli.group()
def config() -> None:
    """Manage EVALSYNC configuration."""
    pass


@config.command("init")
@click.option("--force", "-f", is_flag=True, help="Overwrite an existing configuration")
@click.pass_context
def config_init(ctx: click.Context, force: bool) -> None:
    """Create a default configuration file."""
    console = Console()
    path = _config_path(ctx)

    existed = path.exists()
    path, created = ensure_config_exists(path, overwrite=force)
    if created and existed:
        console.print_success(f"Configuration overwritten: {path}")
    elif created:
        console.print_success(f"Configuration created: {path}")
    else:
        console.print_info(f"Configuration already exists: {path} (use --force to overwrite)")


@config.command("show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Show the effective configuration."""
    loaded, console = _load(ctx)
    console.print(f"[dim]# {_config_path(ctx)}[/dim]")
    console.print(yaml.safe_dump(loaded.model_dump(mode="json"), sort_keys=False), markup=False)


@config.command("check")
@click.argument("file", type=click.Path(exists=True, path_type=Path), required=False)
@click.pass_context
def config_check(ctx: click.Context, file: Optional[Path]) -> None:
    """Validate a configuration file."""
    console = Console()
    path = file or _config_path(ctx)
    valid, errors = validate_config_file(path)

    if valid:
        console.print_success(f"✓ {path} is valid")
        return

    console.print_error(f"{path} is invalid:")
    for error in errors:
        console.print(f"  • {error}", markup=False)
    sys.exit(1)


def _config_path(ctx: click.Context) -> Path:
    root = ctx.find_root()
    path = (root.obj or {}).get("config_path")
    return path or get_config_path()


def _load(ctx: click.Context, *, verbose: bool = False) -> tuple[EvalsyncConfig, Console]:
    """Load configuration or exit with an error."""
    try:
        loaded = load_config(_config_path(ctx))
    except FileNotFoundError as e:
        Console().print_error(str(e))
        sys.exit(1)
    except (ValueError, yaml.YAMLError) as e:
        Console().print_error(f"Invalid configuration: {e}")
        sys.exit(1)

    output = loaded.output
    if verbose:
        output = output.model_copy(update={"verbose": True})
    setup_logging(output)
    return loaded, Console(verbose=output.verbose, colored=output.colored)


def _credential_provider(loaded: EvalsyncConfig) -> CredentialProvider:
    token = os.environ.get(TOKEN_ENV)
    if token:
        return StaticCredentialProvider(token.strip())
    if loaded.credentials.token_file:
        return FileCredentialProvider(Path(loaded.credentials.token_file))
    return StaticCredentialProvider(None)


def _build_context(loaded: EvalsyncConfig, console: Console, *, online: Optional[bool] = None) -> SyncContext:
    # A CLI run has no background scheduler; pending items wait for the next `drain`.
    return SyncContext.from_config(
        loaded,
        _credential_provider(loaded),
        replay_bridge=NullReplayBridge(),
        notifier=ConsoleNotificationBridge(console.rich),
        online=online,
    )


async def _run_drain(context: SyncContext) -> DrainResult:
    async with context:
        return await context.drain()


def _read_json(file, console: Console) -> Any:
    try:
        return json.load(file)
    except json.JSONDecodeError as e:
        console.print_error(f"Invalid JSON in {getattr(file, 'name', 'input')}: {e}")
        sys.exit(1)


def _enqueue(console: Console, enqueue) -> str:
    try:
        return enqueue()
    except StorageFull as e:
        console.print_error(f"{e.user_message} ({e})")
        sys.exit(1)
    except ValueError as e:
        console.print_error(str(e))
        sys.exit(1)
