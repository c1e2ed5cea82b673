"""JIRA REST (v2) client.

Covers the handful of endpoints the sync needs: project metadata, issue
creation, issue links, status and transitions. Authentication uses a
personal access token sent as a bearer token.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date
from typing import Any

import requests

from .cache import IssueTypeCache
from .errors import APIError
from .models import Link, Ticket
from .retry import RetryConfig, run_with_retries

API_PATH = "rest/api/2"
USER_AGENT = "glue-sync/0.2.0"
HTTP_ERROR_STATUS = 400
DEFAULT_LINK_TYPE = "Relates"
DONE_STATUS = "Done"
CLOSING_TRANSITIONS = ("done", "close", "closed", "resolve", "resolved")

logger = logging.getLogger(__name__)


class JiraAPIError(APIError):
    """Raised when the JIRA REST API returns an error."""


def select_fix_version(
    versions: Iterable[dict[str, Any]], today: date | None = None
) -> dict[str, Any] | None:
    """Pick the fix version new tickets should target.

    Released and archived versions are ignored. Among versions whose
    ``startDate`` is on or before ``today`` the latest one wins; without any
    such version the first unreleased one is used.
    """
    today_s = (today or date.today()).isoformat()
    candidates = [
        v
        for v in versions
        if isinstance(v, dict) and not v.get("released") and not v.get("archived")
    ]
    best: dict[str, Any] | None = None
    for version in candidates:
        start = version.get("startDate") or ""
        if not start or start > today_s:
            continue
        if best is None or start > best.get("startDate", ""):
            best = version
    if best is None and candidates:
        best = candidates[0]
    return best


def _child_links(
    parent: str, issue_links: Iterable[dict[str, Any]], link_type: str
) -> dict[Link, str]:
    """Links of ``link_type`` in which ``parent`` is the outward issue.

    Seen from the parent, such a link carries the child as ``inwardIssue``.
    Links of other types and links pointing at the parent are not ours and
    are left out. Values are the JIRA link ids.
    """
    wanted = link_type.casefold()
    out: dict[Link, str] = {}
    for link in issue_links:
        if not isinstance(link, dict):
            continue
        type_name = str((link.get("type") or {}).get("name") or "")
        if type_name.casefold() != wanted:
            continue
        child = link.get("inwardIssue")
        if isinstance(child, dict) and isinstance(child.get("key"), str):
            out[Link(parent=parent, child=child["key"])] = str(link.get("id") or "")
    return out


@dataclass
class JiraRestClient:
    base_url: str
    token: str
    session: requests.Session | None = None
    link_type: str = DEFAULT_LINK_TYPE
    dry_run: bool = False
    retry: RetryConfig | None = None
    issue_types: IssueTypeCache = field(default_factory=IssueTypeCache)
    _session: requests.Session = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._session = self.session or requests.Session()
        self._session.headers.setdefault("Authorization", f"Bearer {self.token}")
        self._session.headers.setdefault("Accept", "application/json")
        self._session.headers.setdefault("Content-Type", "application/json")
        self._session.headers.setdefault("User-Agent", USER_AGENT)

    @property
    def api_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/{API_PATH}"

    # ---- REST helpers -------------------------------------------------
    def _request(
        self,
        method: str,
        endpoint: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any | None = None,
    ) -> Any:
        url = f"{self.api_url}/{endpoint.lstrip('/')}"

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
            raise JiraAPIError(
                f"JIRA API {method} {endpoint} failed with {response.status_code}",
                status=response.status_code,
                response_text=(response.text or "")[:500],
            )
        if response.text:
            try:
                return response.json()
            except ValueError:
                return response.text
        return None

    # ---- Queries ------------------------------------------------------
    def get_myself(self) -> dict[str, Any]:
        data = self._request("GET", "myself")
        return data if isinstance(data, dict) else {}

    def get_project(self, project: str) -> dict[str, Any]:
        data = self._request("GET", f"project/{project}")
        if not isinstance(data, dict):
            raise JiraAPIError(f"unexpected payload for project {project}")
        return data

    def _load_issue_types(self, project: str) -> dict[str, str]:
        logger.debug("loading issue types for project %s", project)
        types: dict[str, str] = {}
        for entry in self.get_project(project).get("issueTypes") or []:
            if isinstance(entry, dict) and entry.get("name") and entry.get("id"):
                types[str(entry["name"])] = str(entry["id"])
        return types

    def get_issue_type_id(self, project: str, type_name: str) -> str:
        types = self.issue_types.get_or_load(project, self._load_issue_types)
        type_id = types.get(type_name.lower())
        if type_id is None:
            raise JiraAPIError(
                f"issue type '{type_name}' not found in project '{project}'",
                status=404,
            )
        return type_id

    def default_fix_version(self, project: str) -> dict[str, Any] | None:
        versions = self.get_project(project).get("versions") or []
        return select_fix_version(versions)

    def get_issue(self, key: str, fields: str | None = None) -> dict[str, Any]:
        params = {"fields": fields} if fields else None
        data = self._request("GET", f"issue/{key}", params=params)
        if not isinstance(data, dict):
            raise JiraAPIError(f"unexpected payload for issue {key}")
        return data

    def child_links(self, parent: str) -> dict[Link, str]:
        issue = self.get_issue(parent, fields="issuelinks")
        links = (issue.get("fields") or {}).get("issuelinks") or []
        return _child_links(parent, links, self.link_type)

    def get_linked_keys(self, key: str) -> set[str]:
        return {link.child for link in self.child_links(key)}

    def find_link_id(self, parent: str, child: str) -> str | None:
        return self.child_links(parent).get(Link(parent=parent, child=child)) or None

    def get_ticket(self, key: str) -> Ticket:
        issue = self.get_issue(key, fields="status,issuetype")
        fields = issue.get("fields") or {}
        return Ticket(
            key=str(issue.get("key") or key),
            type=(fields.get("issuetype") or {}).get("name"),
            status=(fields.get("status") or {}).get("name"),
        )

    def get_status(self, key: str) -> str:
        return self.get_ticket(key).status or ""

    def count_tickets(self, project: str) -> int:
        data = self._request(
            "GET",
            "search",
            params={"jql": f"project = '{project}'", "maxResults": 0, "fields": "id"},
        )
        if isinstance(data, dict) and isinstance(data.get("total"), int):
            return int(data["total"])
        return 0

    # ---- Mutations ----------------------------------------------------
    def create_ticket(
        self,
        project: str,
        type_id: str,
        summary: str,
        description: str,
        *,
        fix_version: dict[str, Any] | None = None,
    ) -> str | None:
        fields: dict[str, Any] = {
            "project": {"key": project},
            "summary": summary,
            "description": description,
            "issuetype": {"id": type_id},
        }
        if fix_version and fix_version.get("id"):
            fields["fixVersions"] = [{"id": fix_version["id"]}]
        if self.dry_run:
            logger.info("[DRY-RUN] Would create %s ticket %r", project, summary)
            return None
        data = self._request("POST", "issue", json_body={"fields": fields})
        key = data.get("key") if isinstance(data, dict) else None
        if not isinstance(key, str) or not key:
            raise JiraAPIError("JIRA API returned no key for created ticket")
        logger.info("created jira ticket %s", key)
        return key

    def create_link(self, parent: str, child: str) -> None:
        payload = {
            "type": {"name": self.link_type},
            "inwardIssue": {"key": child},
            "outwardIssue": {"key": parent},
        }
        if self.dry_run:
            logger.info("[DRY-RUN] Would link %s -> %s", parent, child)
            return
        self._request("POST", "issueLink", json_body=payload)

    def delete_link(self, parent: str, child: str) -> None:
        link_id = self.find_link_id(parent, child)
        if link_id is None:
            logger.debug("no link between %s and %s to delete", parent, child)
            return
        if self.dry_run:
            logger.info("[DRY-RUN] Would delete link %s (%s -> %s)", link_id, parent, child)
            return
        self._request("DELETE", f"issueLink/{link_id}")

    def close_ticket(self, key: str) -> None:
        data = self._request("GET", f"issue/{key}/transitions")
        transitions = data.get("transitions") if isinstance(data, dict) else None
        transition_id: str | None = None
        for entry in transitions or []:
            if isinstance(entry, dict) and str(entry.get("name", "")).lower() in CLOSING_TRANSITIONS:
                transition_id = str(entry.get("id"))
                break
        if transition_id is None:
            raise JiraAPIError(f"no 'done' or 'close' transition found for ticket {key}")
        if self.dry_run:
            logger.info("[DRY-RUN] Would transition %s via %s", key, transition_id)
            return
        self._request(
            "POST",
            f"issue/{key}/transitions",
            json_body={"transition": {"id": transition_id}},
        )


__all__ = [
    "JiraAPIError",
    "JiraRestClient",
    "select_fix_version",
    "DEFAULT_LINK_TYPE",
    "DONE_STATUS",
]
