"""Storybook publisher CLI — Typer-based command-line interface.

Provides the ``storybook-publisher`` command with subcommands for publishing
a commit's storybooks, rebuilding the root site index, and checking the
resolved configuration.

All output uses Rich for formatted terminal display.
"""
