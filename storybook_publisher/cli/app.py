"""Main Typer application — imports and registers all CLI commands.

Entry point: ``storybook-publisher`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import typer

from storybook_publisher.cli.commands.check_config import check_config_cmd
from storybook_publisher.cli.commands.publish import publish_cmd
from storybook_publisher.cli.commands.rebuild_index import rebuild_index_cmd

app = typer.Typer(
    name="storybook-publisher",
    help="Build, publish and index Storybooks for every commit.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="publish", help="Build and publish storybooks for this commit.")(publish_cmd)
app.command(name="rebuild-index", help="Rebuild the root site index.")(rebuild_index_cmd)
app.command(name="check-config", help="Print the resolved configuration.")(check_config_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
