from __future__ import annotations

from collections.abc import Callable


class IssueTypeCache:
    """Per-project mapping of lowercased issue-type name to type id.

    ``get_or_load`` fills a project's entry on first access using ``loader``.
    """

    def __init__(self) -> None:
        self._entries: dict[str, dict[str, str]] = {}

    def get_or_load(
        self, project: str, loader: Callable[[str], dict[str, str]]
    ) -> dict[str, str]:
        if project not in self._entries:
            self._entries[project] = {k.lower(): v for k, v in loader(project).items()}
        return self._entries[project]

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, project: object) -> bool:
        return project in self._entries


class NullIssueTypeCache(IssueTypeCache):
    """Cache that never stores anything; every lookup hits the loader."""

    def get_or_load(
        self, project: str, loader: Callable[[str], dict[str, str]]
    ) -> dict[str, str]:
        return {k.lower(): v for k, v in loader(project).items()}


__all__ = ["IssueTypeCache", "NullIssueTypeCache"]
