"""CLI for the Freemind registry client."""

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Annotated

import typer
from loguru import logger

from freemind.api import RegistryApi
from freemind.config import CONFIG_PATH, AppConfig, AuthMethod, load_config, save_config
from freemind.core.working_set import WorkingSet
from freemind.errors import ConfigError, TransportError
from freemind.logging_config import configure_logging
from freemind.models.record import MAX_TIMESTAMP, FieldName, Record
from freemind.sync import Synchronizer

app = typer.Typer(help="Freemind: sync your tasks and events with a registry server.")


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Configuration file"),
    ] = None,
) -> None:
    configure_logging(verbose=verbose)
    ctx.obj = config_path or CONFIG_PATH


def _load_config(ctx: typer.Context) -> AppConfig:
    try:
        return load_config(ctx.obj)
    except ConfigError as e:
        logger.error("{}", e)
        raise typer.Exit(1) from e


def _connect(ctx: typer.Context) -> Synchronizer:
    """Build a synchronizer for a fresh working set and run the initial sync."""
    config = _load_config(ctx)
    if config.needs_setup():
        logger.error("No server configured. Run 'freemind config' first.")
        raise typer.Exit(1)
    syncer = Synchronizer(WorkingSet(), RegistryApi(config))
    _sync_or_exit(syncer)
    return syncer


def _sync_or_exit(syncer: Synchronizer) -> None:
    if not syncer.sync():
        typer.echo("Sync failed.", err=True)
        raise typer.Exit(1)


def _get_or_exit(syncer: Synchronizer, record_id: int) -> Record:
    record = syncer.working_set.get(record_id)
    if record is None or record.removed:
        typer.echo(f"Record {record_id} not found.")
        raise typer.Exit(1)
    return record


def _format_due(due: int | None) -> str:
    if due is None:
        return "-"
    return f"{datetime.fromtimestamp(due, tz=UTC).astimezone():%Y-%m-%d %H:%M}"


@app.command()
def config(ctx: typer.Context) -> None:
    """Enter the server configuration and save it."""
    current = _load_config(ctx)
    if current.needs_setup():
        current = AppConfig.default()

    server_address = typer.prompt("Server address", default=current.server_address)
    username = typer.prompt("Username", default=current.username)
    secret = typer.prompt("Secret", default=current.secret, hide_input=True)
    auth_method = typer.prompt(
        "Auth method (token/password)", default=current.auth_method.value
    ).lower()
    try:
        method = AuthMethod(auth_method)
    except ValueError as e:
        typer.echo(f"Unknown auth method {auth_method!r}.")
        raise typer.Exit(1) from e

    new_config = AppConfig(server_address, username, secret, method)
    save_config(new_config, ctx.obj)
    typer.echo(str(new_config))


@app.command()
def sync(ctx: typer.Context) -> None:
    """Synchronize with the server."""
    syncer = _connect(ctx)
    typer.echo(f"Synced {len(syncer.working_set)} records.")


@app.command(name="list")
def list_cmd(
    ctx: typer.Context,
    query: Annotated[
        str | None,
        typer.Option("--filter", "-f", help="Only records containing these words"),
    ] = None,
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
) -> None:
    """List records, ordered by due date."""
    syncer = _connect(ctx)
    working_set = syncer.working_set
    records = working_set.filter(query) if query else list(working_set)

    if output_json:
        data = {
            "records": [
                {"id": r.id, "title": r.title(), "due": r.due(), "tags": r.tags()}
                for r in records
            ],
            "count": len(records),
            "status": working_set.status(),
        }
        typer.echo(json.dumps(data, indent=2))
        return

    typer.echo(f"{len(records)} records ({working_set.status()}):\n")
    for r in records:
        typer.echo(f"  {r.id!s:>5}  {_format_due(r.due()):<16}  {r.title() or ''}")


@app.command()
def show(
    ctx: typer.Context,
    record_id: int = typer.Argument(..., help="Record ID"),
) -> None:
    """Show all fields of a record."""
    syncer = _connect(ctx)
    typer.echo(str(_get_or_exit(syncer, record_id)), nl=False)


@app.command()
def direct(
    ctx: typer.Context,
    record_id: int = typer.Argument(..., help="Record ID"),
) -> None:
    """Show the server's copy of a record, without syncing."""
    config = _load_config(ctx)
    syncer = Synchronizer(WorkingSet(), RegistryApi(config))
    try:
        dump = syncer.fetch_record_by_id(record_id)
    except TransportError as e:
        logger.error("{}", e)
        raise typer.Exit(1) from e
    typer.echo(dump or f"Record {record_id} not found on server.")


@app.command()
def add(
    ctx: typer.Context,
    title: str = typer.Argument(..., help="Title of the new record"),
    description: str = typer.Option("", "--description", "-d", help="Description"),
    due: Annotated[
        int | None,
        typer.Option("--due", min=0, max=MAX_TIMESTAMP, help="Due date as unix timestamp"),
    ] = None,
    tag: Annotated[
        list[str] | None,
        typer.Option("--tag", "-t", help="Tag (repeatable)"),
    ] = None,
) -> None:
    """Create a record and upload it."""
    syncer = _connect(ctx)
    record = syncer.working_set.add(Record.new(title, description, due, tag or []))
    _sync_or_exit(syncer)
    typer.echo(f"Added record {record.id}.")


def _parse_assignment(raw: str) -> tuple[FieldName, str]:
    tag, sep, value = raw.partition("=")
    if not sep or not tag:
        msg = f"Expected TAG=VALUE, got {raw!r}"
        raise typer.BadParameter(msg)
    return FieldName.from_tag(tag), value


@app.command()
def edit(
    ctx: typer.Context,
    record_id: int = typer.Argument(..., help="Record ID"),
    title: Annotated[str | None, typer.Option("--title", help="New title")] = None,
    description: Annotated[
        str | None,
        typer.Option("--description", "-d", help="New description"),
    ] = None,
    due: Annotated[
        int | None,
        typer.Option("--due", min=0, max=MAX_TIMESTAMP, help="New due date as unix timestamp"),
    ] = None,
    field: Annotated[
        list[str] | None,
        typer.Option("--field", help="Set any field, as TAG=VALUE (repeatable)"),
    ] = None,
    drop: Annotated[
        list[str] | None,
        typer.Option("--drop", help="Remove a field by tag (repeatable)"),
    ] = None,
) -> None:
    """Change fields of a record and upload the change."""
    assignments = [_parse_assignment(raw) for raw in field or []]
    syncer = _connect(ctx)
    record = _get_or_exit(syncer, record_id)

    record.modify(title=title, description=description, due=due)
    for name, value in assignments:
        record.set_field(name, value)
    for tag_name in drop or []:
        record.remove_field(FieldName.from_tag(tag_name))

    if not record.modified:
        typer.echo("Nothing to change.")
        return
    syncer.working_set.mark_unsynced()
    _sync_or_exit(syncer)
    typer.echo(f"Updated record {record_id}.")


@app.command()
def remove(
    ctx: typer.Context,
    record_id: int = typer.Argument(..., help="Record ID"),
) -> None:
    """Delete a record on the server."""
    syncer = _connect(ctx)
    if not syncer.working_set.remove(record_id):
        typer.echo(f"Record {record_id} not found.")
        raise typer.Exit(1)
    _sync_or_exit(syncer)
    typer.echo(f"Removed record {record_id}.")
