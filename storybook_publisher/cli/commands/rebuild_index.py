"""``storybook-publisher rebuild-index`` — regenerate the root site index.

Reads the commit metadata already in the store and rewrites ``index.html``
without building or uploading anything.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from storybook_publisher.cli.logs import configure_logging
from storybook_publisher.config import ConfigError, load_config
from storybook_publisher.core.pipeline import PublishPipeline

logger = logging.getLogger(__name__)

console = Console()
err_console = Console(stderr=True)


def rebuild_index_cmd(
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Local config JSON file."
    ),
    bucket: Optional[str] = typer.Option(None, "--bucket", help="S3 bucket holding the site."),
    local_store: Optional[Path] = typer.Option(
        None, "--local-store", help="Local directory holding the site."
    ),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Log verbosity (DEBUG, INFO, WARNING, ERROR)."
    ),
) -> None:
    """Rebuild the root site index from stored commit metadata."""
    try:
        config = load_config(
            config_file,
            {"bucket": bucket, "local_store_path": local_store, "log_level": log_level},
        )
    except ConfigError as exc:
        err_console.print(f"[bold red]{escape(str(exc))}[/bold red]")
        raise typer.Exit(code=1)

    configure_logging(config.effective_log_level)
    try:
        view = PublishPipeline(config).site_index().rebuild()
    except Exception as exc:
        logger.error("Site index rebuild failed: %s", exc)
        raise typer.Exit(code=1)

    console.print(
        f"[bold green]Site index rebuilt[/bold green] with {len(view.commits)} commit(s): "
        f"{escape(config.public_url)}/index.html"
    )
