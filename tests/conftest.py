"""Pytest configuration for glue tests.

Ensures the in-repo ``src`` directory is importable without an editable
install and provides in-memory stand-ins for the GitHub and JIRA clients.
"""

from __future__ import annotations

import io
import json
import sys
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from gluesync.jira_rest import JiraAPIError  # noqa: E402
from gluesync.logging import StructuredLogger  # noqa: E402
from gluesync.models import Issue  # noqa: E402


class FakeJira:
    """In-memory ticket tracker holding parent -> child link sets."""

    def __init__(self, links: dict[str, set[str]] | None = None) -> None:
        self.links: dict[str, set[str]] = {k: set(v) for k, v in (links or {}).items()}
        self.calls: list[tuple[str, ...]] = []
        self.fail_fetch: set[str] = set()
        self.fail_create: set[str] = set()
        self.fail_delete: set[str] = set()
        self.issue_types: dict[str, dict[str, str]] = {}
        self.statuses: dict[str, str] = {}
        self.closed: list[str] = []
        self.created: list[dict[str, Any]] = []
        self._next = 100

    def get_linked_keys(self, key: str) -> set[str]:
        self.calls.append(("get", key))
        if key in self.fail_fetch:
            raise JiraAPIError(f"cannot fetch {key}", status=500)
        return set(self.links.get(key, set()))

    def create_link(self, parent: str, child: str) -> None:
        self.calls.append(("create", parent, child))
        if child in self.fail_create:
            raise JiraAPIError(f"cannot link {child}", status=400)
        self.links.setdefault(parent, set()).add(child)

    def delete_link(self, parent: str, child: str) -> None:
        self.calls.append(("delete", parent, child))
        if child in self.fail_delete:
            raise JiraAPIError(f"cannot unlink {child}", status=400)
        self.links.get(parent, set()).discard(child)

    def get_issue_type_id(self, project: str, type_name: str) -> str:
        types = self.issue_types.get(project, {})
        if type_name.lower() not in types:
            raise JiraAPIError(f"issue type '{type_name}' not found", status=404)
        return types[type_name.lower()]

    def default_fix_version(self, project: str) -> dict[str, Any] | None:
        return None

    def create_ticket(
        self,
        project: str,
        type_id: str,
        summary: str,
        description: str,
        *,
        fix_version: dict[str, Any] | None = None,
    ) -> str | None:
        self._next += 1
        key = f"{project}-{self._next}"
        self.created.append({"key": key, "type_id": type_id, "summary": summary})
        return key

    def get_status(self, key: str) -> str:
        return self.statuses.get(key, "Open")

    def close_ticket(self, key: str) -> None:
        self.closed.append(key)
        self.statuses[key] = "Done"

    def count_tickets(self, project: str) -> int:
        return sum(1 for c in self.created if c["key"].startswith(f"{project}-"))


class FakeGitHub:
    def __init__(self, issues: Iterable[Issue], repo: str = "org/repo") -> None:
        self.repo = repo
        self.issues = {i.number: i for i in issues}
        self.label_calls: list[tuple[int, list[str]]] = []
        self.title_calls: list[tuple[int, str]] = []
        self.fail_closed = False

    def list_issues(self, *, state: str = "open", labels: Iterable[str] | None = None) -> list[Issue]:
        if state == "all":
            return list(self.issues.values())
        return [i for i in self.issues.values() if i.state == state]

    def list_closed_issues(self) -> list[Issue]:
        if self.fail_closed:
            raise RuntimeError("closed issues unavailable")
        return self.list_issues(state="closed")

    def add_labels(self, number: int, labels: Iterable[str]) -> None:
        self.label_calls.append((number, list(labels)))

    def update_title(self, number: int, title: str) -> None:
        self.title_calls.append((number, title))


@dataclass
class DummyResponse:
    status_code: int
    payload: Any = None
    headers: dict[str, str] = field(default_factory=dict)

    def json(self) -> Any:
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload

    @property
    def text(self) -> str:
        if self.payload is None:
            return ""
        if isinstance(self.payload, (dict, list)):
            return json.dumps(self.payload)
        return str(self.payload)


class DummySession:
    """Replays queued responses and records every request."""

    def __init__(self, responses: list[Any]):
        self._responses = list(responses)
        self.request_log: list[tuple[str, str, dict[str, Any]]] = []
        self.headers: dict[str, str] = {}

    def request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str],
        json: Any | None = None,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> DummyResponse:
        snapshot = dict(params) if params is not None else None
        self.request_log.append((method, url, {"headers": headers, "json": json, "params": snapshot}))
        if not self._responses:
            raise AssertionError("No response queued for request")
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def log_stream() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def logger(log_stream: io.StringIO) -> StructuredLogger:
    return StructuredLogger(name="gluesync.test", level="DEBUG", stream=log_stream)


@pytest.fixture
def fake_jira() -> FakeJira:
    return FakeJira()


@pytest.fixture
def make_github() -> type[FakeGitHub]:
    return FakeGitHub


@pytest.fixture
def make_session() -> type[DummySession]:
    return DummySession


@pytest.fixture
def respond() -> type[DummyResponse]:
    return DummyResponse
