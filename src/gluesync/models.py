from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class Issue:
    """In-memory view of a GitHub issue as consumed by the sync logic.

    Built from REST payloads via :meth:`from_api`; only the fields the sync
    needs are retained.
    """

    number: int
    title: str
    description: str = ''
    labels: list[str] = field(default_factory=list)
    state: str = 'open'
    created_at: str | None = None
    updated_at: str | None = None

    def has_label(self, name: str) -> bool:
        target = name.lower()
        return any(label.lower() == target for label in self.labels)

    @property
    def is_closed(self) -> bool:
        return self.state == 'closed'

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> Issue:
        labels: list[str] = []
        for entry in payload.get('labels') or []:
            if isinstance(entry, dict):
                name = entry.get('name')
                if isinstance(name, str):
                    labels.append(name)
            elif isinstance(entry, str):
                labels.append(entry)
        return cls(
            number=int(payload['number']),
            title=str(payload.get('title') or ''),
            description=str(payload.get('body') or ''),
            labels=labels,
            state=str(payload.get('state') or 'open'),
            created_at=payload.get('created_at'),
            updated_at=payload.get('updated_at'),
        )


@dataclass
class Ticket:
    key: str  # PROJECT-123
    type: str | None = None
    status: str | None = None


@dataclass(frozen=True)
class Link:
    parent: str
    child: str


@dataclass(frozen=True)
class ChildReference:
    repository: str  # owner/repo
    number: int


__all__ = ["Issue", "Ticket", "Link", "ChildReference"]
