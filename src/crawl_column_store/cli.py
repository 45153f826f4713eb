from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Optional

import typer
from loguru import logger

from ccs_client.errors import CCSOperationalError, InvalidInput
from ccs_client.ring import RingResolver
from ccs_client.rowkey import create_key
from ccs_client.settings import get_settings, load_client_factory
from ccs_client.utils import iter_ndjson_records

from .session import ColumnStoreSession

app = typer.Typer(help="crawl column store operational CLI")

# ---------------------------
# Common options
# ---------------------------


def seeds_opt() -> Optional[str]:
    return typer.Option(None, "--seeds", help="Comma-separated seed hosts (default: CCS_SEEDS)")


def keyspace_opt() -> Optional[str]:
    return typer.Option(None, "--keyspace", help="Keyspace (default: CCS_KEYSPACE)")


def rpc_client_opt() -> Optional[str]:
    return typer.Option(
        None, "--rpc-client", help="module:attr of the RPC client factory (default: CCS_RPC_CLIENT)"
    )


@app.callback()
def main(log_level: str = typer.Option("INFO", "--log-level", help="loguru level for stderr")):
    logger.remove()
    logger.add(sys.stderr, level=log_level.upper())


def _config(seeds: Optional[str], keyspace: Optional[str]):
    return get_settings().to_cluster_config(seeds=seeds, keyspace=keyspace)


def _factory(rpc_client: Optional[str]):
    return load_client_factory(rpc_client or get_settings().RPC_CLIENT)


# ---------------------------
# Commands
# ---------------------------


@app.command("row-key")
def row_key(url: str = typer.Argument(..., help="URL to derive the row key for")):
    try:
        typer.echo(create_key(url))
    except InvalidInput as e:
        logger.error(str(e))
        raise typer.Exit(code=2)


@app.command("ring")
def ring(
    seeds: Optional[str] = seeds_opt(),
    keyspace: Optional[str] = keyspace_opt(),
    rpc_client: Optional[str] = rpc_client_opt(),
):
    """Resolve the token ring through the seeds and print the endpoints."""
    try:
        endpoints = RingResolver(_config(seeds, keyspace), _factory(rpc_client)).resolve()
    except CCSOperationalError as e:
        logger.error(f"Ring resolution failed: {e}")
        raise typer.Exit(code=1)
    typer.echo(json.dumps({"endpoints": sorted(endpoints)}, indent=2))


@app.command("exists")
def exists(
    url: str = typer.Argument(...),
    seeds: Optional[str] = seeds_opt(),
    keyspace: Optional[str] = keyspace_opt(),
    rpc_client: Optional[str] = rpc_client_opt(),
):
    """Check whether a row already exists for URL."""
    try:
        with ColumnStoreSession(_config(seeds, keyspace), _factory(rpc_client)) as session:
            found = session.check_exists(url)
    except CCSOperationalError as e:
        logger.error(f"Existence check failed: {e}")
        raise typer.Exit(code=1)
    typer.echo(json.dumps({"url": url, "row_key": create_key(url), "exists": found}, indent=2))


@app.command("submit-ndjson")
def submit_ndjson(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="NDJSON records file"),
    seeds: Optional[str] = seeds_opt(),
    keyspace: Optional[str] = keyspace_opt(),
    rpc_client: Optional[str] = rpc_client_opt(),
    skip_existing: bool = typer.Option(False, "--skip-existing", help="Skip URLs already stored"),
    max_total_bytes: int = typer.Option(0, "--max-total-bytes", help="Stop after N bytes (0=off)"),
):
    """Submit one record per line; request/response bodies are base64."""
    counts = {"written": 0, "deleted": 0, "skipped": 0, "failed": 0}
    try:
        session = ColumnStoreSession(
            _config(seeds, keyspace),
            _factory(rpc_client),
            skip_existing=skip_existing,
            max_total_bytes=max_total_bytes,
        )
        session.start()
    except CCSOperationalError as e:
        logger.error(f"Could not start session: {e}")
        raise typer.Exit(code=1)

    with session, path.open("r", encoding="utf-8") as fh:
        try:
            for record in iter_ndjson_records(fh):
                result = session.submit(record)
                if result.error is not None:
                    counts["failed"] += 1
                elif result.deleted:
                    counts["deleted"] += 1
                elif result.skipped:
                    counts["skipped"] += 1
                else:
                    counts["written"] += 1
                if result.finished:
                    logger.warning(f"Byte quota of {max_total_bytes} reached; stopping")
                    break
        except ValueError as e:
            # malformed JSON line or record fields
            logger.error(f"Invalid record in {path}: {e}")
            raise typer.Exit(code=1)

    counts["bytes"] = session.total_bytes_written
    logger.success(f"Submitted {path}")
    typer.echo(json.dumps(counts, indent=2))


if __name__ == "__main__":
    app()
