"""Label and title conventions linking GitHub issues to JIRA tickets.

Two encodings record the ticket key on an issue:

* a label ``jira-id: KEY`` (authoritative, structured and queryable)
* a title prefix ``[KEY] `` (decoration derived from the label)

Boards are selected with a ``jira-project: BOARD`` label.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from .models import Issue

PROJECT_LABEL_PREFIX = 'jira-project:'
JIRA_ID_LABEL_PREFIX = 'jira-id:'

_STRICT_KEY_RE = re.compile(r'^[A-Z]+-\d+$')
_TITLE_PREFIX_RE = re.compile(r'^\[[A-Z]+-\d+\]')
_TITLE_KEY_RE = re.compile(r'^\[([\w\-]+)\]')


def _extract_prefixed(labels: Iterable[str], prefix: str) -> tuple[str, bool]:
    for label in labels:
        if label.startswith(prefix):
            value = label[len(prefix):].strip()
            if value:
                return value, True
            # first match wins, even when empty
            return '', False
    return '', False


def extract_project_key(labels: Iterable[str]) -> tuple[str, bool]:
    return _extract_prefixed(labels, PROJECT_LABEL_PREFIX)


def extract_jira_id(labels: Iterable[str], *, strict: bool = False) -> tuple[str, bool]:
    """Return the ticket key recorded in a ``jira-id:`` label.

    With ``strict`` the value must look like ``ABC-123``; anything else is
    reported as not found.
    """
    key, found = _extract_prefixed(labels, JIRA_ID_LABEL_PREFIX)
    if found and strict and not _STRICT_KEY_RE.match(key):
        return '', False
    return key, found


def has_jira_prefix(title: str) -> bool:
    return bool(_TITLE_PREFIX_RE.match(title))


def extract_jira_id_from_title(title: str) -> tuple[str, bool]:
    m = _TITLE_KEY_RE.match(title)
    if not m:
        return '', False
    return m.group(1), True


def strip_jira_prefix(title: str) -> str:
    m = _TITLE_KEY_RE.match(title)
    if not m:
        return title
    return title[m.end():].lstrip()


def format_jira_id_label(key: str) -> str:
    return f'{JIRA_ID_LABEL_PREFIX} {key}'


def format_synced_title(key: str, title: str) -> str:
    return f'[{key}] {strip_jira_prefix(title)}'


def resolve_ticket_key(issue: Issue) -> tuple[str, bool]:
    """Ticket key for ``issue``: label first, title prefix as fallback."""
    key, found = extract_jira_id(issue.labels, strict=True)
    if found:
        return key, True
    return extract_jira_id_from_title(issue.title)


def is_synced(issue: Issue) -> bool:
    return resolve_ticket_key(issue)[1]


FEATURE_LABELS = ('feature', 'type: feature')
STORY_LABELS = ('story', 'type: story')


def issue_kind(issue: Issue) -> str | None:
    """``feature``, ``story`` or None depending on the type label."""
    if any(issue.has_label(lbl) for lbl in FEATURE_LABELS):
        return 'feature'
    if any(issue.has_label(lbl) for lbl in STORY_LABELS):
        return 'story'
    return None


def belongs_to_board(issue: Issue, board: str) -> bool:
    if issue.has_label(board):
        return True
    project, found = extract_project_key(issue.labels)
    return found and project.lower() == board.lower()


__all__ = [
    "PROJECT_LABEL_PREFIX",
    "JIRA_ID_LABEL_PREFIX",
    "extract_project_key",
    "extract_jira_id",
    "has_jira_prefix",
    "extract_jira_id_from_title",
    "strip_jira_prefix",
    "format_jira_id_label",
    "format_synced_title",
    "resolve_ticket_key",
    "is_synced",
    "belongs_to_board",
    "issue_kind",
    "FEATURE_LABELS",
    "STORY_LABELS",
]
