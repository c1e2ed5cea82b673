from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

import requests

from .errors import APIError
from .models import Issue
from .retry import RetryConfig, run_with_retries

PUBLIC_DOMAIN = "github.com"
DEFAULT_API_URL = "https://api.github.com"
USER_AGENT = "glue-sync/0.2.0"
HTTP_ERROR_STATUS = 400

logger = logging.getLogger(__name__)


class GitHubAPIError(APIError):
    """Raised when the GitHub REST API returns an error."""


def api_url_for_domain(domain: str) -> str:
    """REST base URL for github.com or a GitHub Enterprise host."""
    domain = domain.strip().rstrip("/")
    if not domain or domain == PUBLIC_DOMAIN:
        return DEFAULT_API_URL
    return f"https://{domain}/api/v3"


def split_repository(repository: str) -> tuple[str, str]:
    parts = repository.split("/")
    if len(parts) != 2 or not all(parts):  # noqa: PLR2004
        raise ValueError(
            f"invalid repository format: {repository}, expected format: owner/repo"
        )
    return parts[0], parts[1]


@dataclass
class GitHubRestClient:
    """Lightweight REST client for the issue operations glue needs."""

    token: str
    repo: str
    base_url: str = DEFAULT_API_URL
    session: requests.Session | None = None
    dry_run: bool = False
    retry: RetryConfig | None = None
    _session: requests.Session = field(init=False, repr=False)

    def __post_init__(self) -> None:
        split_repository(self.repo)
        self._session = self.session or requests.Session()
        self._session.headers.setdefault("Authorization", f"Bearer {self.token}")
        self._session.headers.setdefault("Accept", "application/vnd.github+json")
        self._session.headers.setdefault("User-Agent", USER_AGENT)

    # ---- REST helpers -------------------------------------------------
    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any | None = None,
    ) -> Any:
        url = (
            path
            if path.startswith("http")
            else f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"
        )

        def _run() -> requests.Response:
            return self._session.request(
                method,
                url,
                params=params,
                json=json_body,
                headers=self._session.headers,
                timeout=30,
            )

        response = run_with_retries(_run, cfg=self.retry)
        if response.status_code >= HTTP_ERROR_STATUS:
            raise GitHubAPIError(
                f"GitHub API {method} {url} failed with {response.status_code}",
                status=response.status_code,
                response_text=response.text,
            )
        if response.text:
            try:
                return response.json()
            except ValueError:
                return response.text
        return None

    def _paginate(
        self, path: str, *, params: dict[str, Any] | None = None
    ) -> list[Any]:
        params = dict(params or {})
        per_page = params.setdefault("per_page", 100)
        params.setdefault("page", 1)
        results: list[Any] = []
        while True:
            data = self._request("GET", path, params=params)
            if not isinstance(data, list):
                break
            results.extend(data)
            if len(data) < per_page:
                break
            params["page"] = params.get("page", 1) + 1
        return results

    # ---- Queries ------------------------------------------------------
    def get_authenticated_user(self) -> dict[str, Any]:
        data = self._request("GET", "/user")
        return data if isinstance(data, dict) else {}

    def list_issues(
        self, *, state: str = "open", labels: Iterable[str] | None = None
    ) -> list[Issue]:
        """List issues (never pull requests) in ``state``.

        ``labels`` narrows the query; GitHub requires every label to match.
        """
        params: dict[str, Any] = {"state": state, "per_page": 100, "page": 1}
        label_list = list(labels or [])
        if label_list:
            params["labels"] = ",".join(label_list)
        data = self._paginate(f"/repos/{self.repo}/issues", params=params)
        out: list[Issue] = []
        for entry in data:
            if not isinstance(entry, dict) or "pull_request" in entry:
                continue
            out.append(Issue.from_api(entry))
        return out

    def list_closed_issues(self) -> list[Issue]:
        return self.list_issues(state="closed")

    def get_issue(self, number: int) -> Issue:
        data = self._request("GET", f"/repos/{self.repo}/issues/{number}")
        if not isinstance(data, dict):
            raise GitHubAPIError(f"unexpected payload for issue #{number}")
        return Issue.from_api(data)

    def list_issue_labels(self, number: int) -> list[str]:
        data = self._paginate(f"/repos/{self.repo}/issues/{number}/labels")
        return [
            entry["name"]
            for entry in data
            if isinstance(entry, dict) and isinstance(entry.get("name"), str)
        ]

    # ---- Mutations ----------------------------------------------------
    def add_labels(self, number: int, labels: Iterable[str]) -> None:
        """Add labels to an issue; GitHub creates labels that don't exist."""
        label_list = list(labels)
        if not label_list:
            return
        if self.dry_run:
            logger.info("[DRY-RUN] Would add labels %s to #%s", label_list, number)
            return
        self._request(
            "POST",
            f"/repos/{self.repo}/issues/{number}/labels",
            json_body={"labels": label_list},
        )

    def update_title(self, number: int, title: str) -> None:
        if self.dry_run:
            logger.info("[DRY-RUN] Would retitle #%s to %r", number, title)
            return
        self._request(
            "PATCH", f"/repos/{self.repo}/issues/{number}", json_body={"title": title}
        )


__all__ = [
    "GitHubAPIError",
    "GitHubRestClient",
    "api_url_for_domain",
    "split_repository",
]
