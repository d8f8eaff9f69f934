"""``storybook-publisher publish`` — build, upload and index storybooks.

Runs the full pipeline for the current commit and prints the phase report.
Exits 0 on success and when there is nothing to publish, 1 on any failure.
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
from storybook_publisher.render.report import ReportRenderer

logger = logging.getLogger(__name__)

console = Console()
err_console = Console(stderr=True)


def publish_cmd(
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Local config JSON file."
    ),
    packages_root: Optional[Path] = typer.Option(
        None, "--packages-root", help="Directory searched for storybook packages."
    ),
    packages_depth: Optional[int] = typer.Option(
        None, "--packages-depth", help="Maximum directory depth searched."
    ),
    version_json: Optional[Path] = typer.Option(
        None, "--version-json", help="Read the commit hash from a version.json file."
    ),
    commit_branch: Optional[str] = typer.Option(
        None, "--commit-branch", help="Name of the branch this commit came from."
    ),
    commit_summary: Optional[Path] = typer.Option(
        None, "--commit-summary", help="Read the commit summary from a file."
    ),
    commit_description: Optional[Path] = typer.Option(
        None, "--commit-description", help="Read the commit description from a file."
    ),
    skip_build: bool = typer.Option(False, "--skip-build", help="Skip storybook build."),
    skip_publish: bool = typer.Option(False, "--skip-publish", help="Skip storybook publish."),
    skip_status: bool = typer.Option(
        False, "--skip-status", help="Skip setting the GitHub status check."
    ),
    upload_concurrency: Optional[int] = typer.Option(
        None, "--upload-concurrency", help="How many files to upload at once."
    ),
    bucket: Optional[str] = typer.Option(None, "--bucket", help="S3 bucket to publish to."),
    local_store: Optional[Path] = typer.Option(
        None, "--local-store", help="Publish into a local directory instead of S3."
    ),
    public_base_url: Optional[str] = typer.Option(
        None, "--public-base-url", help="Public URL of the published site."
    ),
    main_branch: Optional[str] = typer.Option(
        None, "--main-branch", help="Branch listed under 'Latest' in the site index."
    ),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Log verbosity (DEBUG, INFO, WARNING, ERROR)."
    ),
) -> None:
    """Build every storybook, publish it, and refresh the site index."""
    overrides = {
        "packages_root": packages_root,
        "packages_depth": packages_depth,
        "version_json": version_json,
        "commit_branch": commit_branch,
        "commit_summary_file": commit_summary,
        "commit_description_file": commit_description,
        "skip_build": skip_build or None,
        "skip_publish": skip_publish or None,
        "skip_status": skip_status or None,
        "upload_concurrency": upload_concurrency,
        "bucket": bucket,
        "local_store_path": local_store,
        "public_base_url": public_base_url,
        "main_branch": main_branch,
        "log_level": log_level,
    }
    try:
        config = load_config(config_file, overrides)
    except ConfigError as exc:
        err_console.print(f"[bold red]{escape(str(exc))}[/bold red]")
        raise typer.Exit(code=1)

    configure_logging(config.effective_log_level)
    renderer = ReportRenderer(console=console)
    pipeline = PublishPipeline(config)

    try:
        report = pipeline.run()
    except Exception as exc:
        logger.error("Publishing failed: %s", exc)
        renderer.print_report(pipeline.report())
        raise typer.Exit(code=1)

    renderer.print_report(report)
