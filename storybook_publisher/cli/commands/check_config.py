"""``storybook-publisher check-config`` — print the resolved configuration.

Secrets are masked unless ``--sensitive`` is given.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from storybook_publisher.config import ConfigError, load_config

console = Console()
err_console = Console(stderr=True)


def check_config_cmd(
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Local config JSON file."
    ),
    sensitive: bool = typer.Option(
        False, "--sensitive", help="Show secret values instead of masking them."
    ),
) -> None:
    """Validate the configuration and print it as JSON."""
    try:
        config = load_config(config_file)
    except ConfigError as exc:
        err_console.print(f"[bold red]{escape(str(exc))}[/bold red]")
        raise typer.Exit(code=1)

    console.print_json(json.dumps(config.dump(sensitive=sensitive)))
