"""HTML pages for the published site.

Two pages are rendered: the per-commit index listing that commit's
storybooks, and the root site index listing recent commits.  Every value
interpolated into markup goes through ``escape``; commit summaries and
descriptions are author-controlled text.
"""

from __future__ import annotations

from collections.abc import Iterable
from html import escape

from storybook_publisher.models.builds import BuildOutput
from storybook_publisher.models.commit import CommitMetadata
from storybook_publisher.models.site import SiteIndexView


def _format_date(metadata: CommitMetadata) -> str:
    return metadata.datestamp.isoformat()


def _join(fragments: Iterable[str]) -> str:
    return "\n".join(fragments)


def render_page(title: str, body: str, head: str = "") -> str:
    """Wrap *body* markup in a complete HTML document titled *title*."""
    safe_title = escape(title)
    return (
        "<!DOCTYPE html>\n"
        "<html>\n"
        "  <head>\n"
        '    <meta charset="utf-8">\n'
        f"    <title>{safe_title}</title>\n"
        f"{head}"
        "  </head>\n"
        "  <body>\n"
        f"    <h1>{safe_title}</h1>\n"
        f"{body}\n"
        "  </body>\n"
        "</html>\n"
    )


def render_commit_index(
    metadata: CommitMetadata, builds: Iterable[BuildOutput]
) -> str:
    """Render ``commits/<commit>/index.html``."""
    links = _join(
        f'      <li><a href="./{escape(build.name)}/index.html">'
        f"{escape(build.name)}</a></li>"
        for build in builds
    )
    body = (
        "    <ul>\n"
        f"{links}\n"
        "    </ul>\n"
        "    <dl>\n"
        "      <dt>Date</dt>\n"
        f"      <dd>{escape(_format_date(metadata))}</dd>\n"
        "      <dt>Branch</dt>\n"
        f"      <dd>{escape(metadata.branch)}</dd>\n"
        "      <dt>Summary</dt>\n"
        f"      <dd><pre>{escape(metadata.summary)}</pre></dd>\n"
        "      <dt>Description</dt>\n"
        f"      <dd><pre>{escape(metadata.description)}</pre></dd>\n"
        "    </dl>"
    )
    return render_page(f"Storybooks for commit {metadata.commit}", body)


def render_commit_item(metadata: CommitMetadata) -> str:
    """Render one ``<li>`` entry of the site index."""
    pull_request = ""
    if metadata.has_pull_request:
        pull_request = (
            f'<span>PR #<a href="{escape(metadata.pull_request_url or "")}">'
            f"{escape(metadata.pull_request or '')}</a></span> "
        )
    commit = escape(metadata.commit)
    return (
        "      <li>\n"
        f"        {pull_request}"
        f'<a href="commits/{commit}/index.html">{commit}</a>\n'
        f"        (<span>{escape(_format_date(metadata))}</span>)\n"
        f"        <pre>{escape(metadata.summary)}</pre>\n"
        "      </li>"
    )


def _section(heading: str, commits: list[CommitMetadata]) -> str:
    items = _join(render_commit_item(c) for c in commits)
    return (
        f"    <h2>{escape(heading)}</h2>\n"
        "    <ul>\n"
        f"{items}\n"
        "    </ul>"
    )


def render_site_index(
    view: SiteIndexView, *, project_name: str = "", repo: str = ""
) -> str:
    """Render the root ``index.html`` from a site index view."""
    title = f"Storybooks for {project_name or 'project'}"
    if repo:
        title += f" ({repo})"
    body = _join([
        _section(f"Latest {view.main_branch}", view.latest_main),
        _section("Pull Requests", view.pull_requests),
        _section("Commits", view.all_commits),
    ])
    return render_page(title, body)
