"""GitHub commit status notification.

Posts one ``success`` status per run, linking the commit's storybook index.
GitHub answers 201 Created; any other response is a hard failure.
"""

from __future__ import annotations

import logging
from typing import Any

import requests

logger = logging.getLogger(__name__)

STATUS_CREATED = 201


class StatusUpdateError(RuntimeError):
    """Raised when the status endpoint rejects the update or is unreachable."""

    def __init__(self, message: str, body: str = "") -> None:
        super().__init__(f"{message} {body}".strip())
        self.body = body


class GitHubStatusNotifier:
    """Posts commit statuses to the GitHub REST API.

    Parameters
    ----------
    repo:
        ``owner/name`` of the repository.
    token:
        Personal access token with ``repo:status`` scope.
    api_url:
        API root, ``https://api.github.com`` for github.com.
    context:
        Status check name shown on the pull request.
    session:
        Optional ``requests.Session`` (or compatible) to send through.
    timeout:
        Request timeout in seconds.
    """

    def __init__(
        self,
        repo: str,
        token: str,
        *,
        api_url: str = "https://api.github.com",
        context: str = "storybooks: pull request",
        session: requests.Session | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.repo = repo
        self._token = token
        self.api_url = api_url.rstrip("/")
        self.context = context
        self._session = session or requests.Session()
        self.timeout = timeout

    def status_url(self, commit: str) -> str:
        return f"{self.api_url}/repos/{self.repo}/statuses/{commit}"

    def payload(self, commit: str, target_url: str) -> dict[str, str]:
        return {
            "state": "success",
            "context": self.context,
            "description": f"Storybook deployment for {commit}",
            "target_url": target_url,
        }

    def notify(self, commit: str, target_url: str) -> dict[str, Any]:
        """Post the status and return GitHub's JSON response.

        Raises ``StatusUpdateError`` carrying the response body on any
        status other than 201, or on a transport failure.
        """
        try:
            response = self._session.post(
                self.status_url(commit),
                json=self.payload(commit, target_url),
                headers={
                    "Accept": "application/vnd.github.v3+json",
                    "Authorization": f"token {self._token}",
                    "User-Agent": "storybook-publisher",
                },
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise StatusUpdateError(f"Failed to update Github status: {exc}") from exc

        if response.status_code != STATUS_CREATED:
            raise StatusUpdateError(
                f"Failed to update Github status (HTTP {response.status_code})",
                response.text,
            )

        data = response.json()
        logger.info("Updated Github status check - id: %s", data.get("id"))
        logger.debug("Github status response: %s", data)
        return data
