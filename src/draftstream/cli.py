"""CLI entry point for draftstream."""

import asyncio

import click
import uvicorn

from .config import Settings
from .errors import StoreError
from .export import conversation_to_json, conversation_to_markdown
from .records import record_to_turn
from .stores import get_store


@click.group()
def main():
    """Stream, segment and persist script-writing conversations."""
    pass


@main.command()
@click.option("--port", default=8080, help="Port to serve on.")
@click.option("--host", default="127.0.0.1", help="Host to bind to.")
def serve(port: int, host: str):
    """Start the HTTP API."""
    click.echo(f"Starting draftstream on http://{host}:{port}")
    uvicorn.run("draftstream.server:app", host=host, port=port, reload=False)


@main.command()
@click.argument("project_id")
@click.option("--format", "fmt", type=click.Choice(["md", "json"]), default="md", help="Output format.")
def show(project_id: str, fmt: str):
    """Print a stored conversation."""
    store = get_store(Settings.from_env())

    async def _load():
        try:
            return await store.load_project(project_id)
        finally:
            await store.close()

    try:
        records, metadata = asyncio.run(_load())
    except StoreError as e:
        raise click.ClickException(str(e))

    turns = [record_to_turn(r, r.id or str(i)) for i, r in enumerate(records, 1)]
    if fmt == "json":
        click.echo(conversation_to_json(project_id, metadata, turns))
    else:
        click.echo(conversation_to_markdown(metadata, turns))
