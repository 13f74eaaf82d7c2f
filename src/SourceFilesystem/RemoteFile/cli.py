"""Command line interface for the remote file pipeline.

Examples:
    sourcefs-remote fetch https://example.com/logo.png --root ./site
    sourcefs-remote fetch https://example.com/raw --ext .png --user bob --password s3cret
    sourcefs-remote config-show -c remote-file.yaml
"""

from __future__ import annotations

import json
import logging
import uuid
from pathlib import Path
from typing import Any, List, Optional

import typer

from .api import RemoteFileFetcher
from .cache_store import SqliteCache, StaticStore
from .config.loader import load_config
from .outcomes import Failed, Fetched, NotModified, Skipped
from .types import BasicAuthCredentials

LOGGER = logging.getLogger(__name__)

HEADER_CACHE_FILE = "headers.sqlite"

app = typer.Typer(help="Download remote files into the content-addressed cache")


def _create_node_id(seed: str) -> str:
    return str(uuid.uuid5(uuid.NAMESPACE_URL, seed))


def _discard_node(node: Any, owner: Optional[str] = None) -> None:
    LOGGER.debug(f"Registered node {getattr(node, 'id', node)!r} for {owner}")


@app.command()
def fetch(
    urls: List[str] = typer.Argument(..., help="URLs to download"),
    root: Path = typer.Option(Path("."), "--root", "-r", help="Program directory"),
    ext: Optional[str] = typer.Option(None, "--ext", help="Force this extension"),
    user: Optional[str] = typer.Option(None, "--user", help="Basic auth username"),
    password: Optional[str] = typer.Option(None, "--password", help="Basic auth password"),
    config_file: Optional[str] = typer.Option(
        None, "--config", "-c", help="Config file path (YAML/JSON)"
    ),
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level"),
) -> None:
    """Download URLs and print one line per outcome."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    try:
        config = load_config(config_file)
    except ValueError as e:
        typer.secho(f"Error loading config: {e}", fg="red", err=True)
        raise typer.Exit(2)

    store = StaticStore(root)
    cache_dir = store.program_directory / config.cache_dir_name / config.plugin_name
    cache = SqliteCache(cache_dir / HEADER_CACHE_FILE)
    auth = BasicAuthCredentials(user or "", password or "") if (user or password) else None

    failures = 0
    with RemoteFileFetcher(store=store, cache=cache, config=config) as fetcher:
        futures = [
            fetcher.submit(
                url,
                create_node=_discard_node,
                create_node_id=_create_node_id,
                auth=auth,
                ext=ext,
            )
            for url in urls
        ]
        for future in futures:
            outcome = future.result()
            if isinstance(outcome, Fetched):
                typer.echo(f"fetched\t{outcome.url}\t{outcome.artifact.path}")
            elif isinstance(outcome, NotModified):
                typer.echo(f"unchanged\t{outcome.url}\t{outcome.artifact.path}")
            elif isinstance(outcome, Skipped):
                failures += 1
                typer.echo(f"skipped\t{outcome.url}\t{outcome.reason}")
            elif isinstance(outcome, Failed):
                failures += 1
                typer.echo(f"failed\t{outcome.url}\t{outcome.reason}")

    if failures:
        raise typer.Exit(1)


@app.command("config-show")
def config_show(
    config_file: Optional[str] = typer.Option(
        None, "--config", "-c", help="Config file path (YAML/JSON)"
    ),
) -> None:
    """Print the merged configuration (file < env) as JSON."""
    try:
        cfg = load_config(config_file)
    except ValueError as e:
        typer.secho(f"Error loading config: {e}", fg="red", err=True)
        raise typer.Exit(2)
    typer.echo(json.dumps(cfg.model_dump(mode="json"), indent=2))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
