"""Parent/child link reconciliation between feature issues and JIRA.

For each feature issue the desired child set is re-derived from the
``## Issues`` section of its description and the current child set is
re-fetched from JIRA; the difference decides which links to create and which
to delete. Nothing is persisted between runs, so a run that partially fails
is corrected by the next one, and a run with no description changes is a
no-op.

Every create/delete produces a :class:`LinkOutcome`; a parent whose current
links cannot be fetched produces a :class:`ReconcileResult` with ``error``
set. Neither case raises, so one bad parent never stops a batch.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Protocol

from .labels import issue_kind, resolve_ticket_key
from .logging import StructuredLogger
from .models import ChildReference, Issue
from .parser import find_child_references


class LinkTracker(Protocol):
    def get_linked_keys(self, key: str) -> set[str]: ...

    def create_link(self, parent: str, child: str) -> None: ...

    def delete_link(self, parent: str, child: str) -> None: ...


@dataclass
class LinkOutcome:
    action: str  # create | delete
    parent: str
    child: str
    ok: bool
    error: str | None = None


@dataclass
class ReconcileResult:
    parent: str
    created: int = 0
    removed: int = 0
    outcomes: list[LinkOutcome] = field(default_factory=list)
    error: str | None = None

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.ok)

    def as_tuple(self) -> tuple[int, int, str | None]:
        return self.created, self.removed, self.error


@dataclass
class HierarchySummary:
    results: list[ReconcileResult] = field(default_factory=list)

    @property
    def created(self) -> int:
        return sum(r.created for r in self.results)

    @property
    def removed(self) -> int:
        return sum(r.removed for r in self.results)

    @property
    def failed(self) -> int:
        return sum(r.failed for r in self.results)

    @property
    def errors(self) -> list[ReconcileResult]:
        return [r for r in self.results if r.error]


class HierarchyReconciler:
    def __init__(
        self, tracker: LinkTracker, logger: StructuredLogger, *, dry_run: bool = False
    ) -> None:
        self.tracker = tracker
        self.logger = logger
        self.dry_run = dry_run

    def desired_children(
        self,
        parent_key: str,
        child_references: Iterable[ChildReference],
        resolved_map: Mapping[int, str],
    ) -> set[str]:
        desired: set[str] = set()
        for ref in child_references:
            child_key = resolved_map.get(ref.number)
            if child_key is None:
                self.logger.debug(
                    "no jira key for referenced issue",
                    github_number=ref.number,
                    repository=ref.repository,
                    parent=parent_key,
                )
                continue
            if child_key == parent_key:
                continue
            desired.add(child_key)
        return desired

    def _apply(self, action: str, parent: str, child: str) -> LinkOutcome:
        op = self.tracker.create_link if action == "create" else self.tracker.delete_link
        try:
            op(parent, child)
        except Exception as exc:  # noqa: BLE001 - per-link failures are collected
            self.logger.log_error(
                f"failed to {action} parent-child link",
                error=str(exc),
                parent=parent,
                child=child,
            )
            return LinkOutcome(action, parent, child, ok=False, error=str(exc))
        self.logger.log_link_action(action, parent, child, dry_run=self.dry_run)
        return LinkOutcome(action, parent, child, ok=True)

    def reconcile(
        self,
        parent_key: str,
        child_references: Sequence[ChildReference],
        resolved_map: Mapping[int, str],
    ) -> ReconcileResult:
        result = ReconcileResult(parent=parent_key)
        desired = self.desired_children(parent_key, child_references, resolved_map)
        try:
            current = set(self.tracker.get_linked_keys(parent_key))
        except Exception as exc:  # noqa: BLE001 - reported on the result
            self.logger.log_error(
                "failed to fetch existing links", error=str(exc), parent=parent_key
            )
            result.error = str(exc)
            return result

        for child in sorted(desired - current):
            outcome = self._apply("create", parent_key, child)
            result.outcomes.append(outcome)
            if outcome.ok:
                result.created += 1
        for child in sorted(current - desired):
            outcome = self._apply("delete", parent_key, child)
            result.outcomes.append(outcome)
            if outcome.ok:
                result.removed += 1
        return result


def reconcile_features(
    reconciler: HierarchyReconciler,
    issues: Iterable[Issue],
    resolved_map: Mapping[int, str],
    domain: str,
) -> HierarchySummary:
    """Reconcile every synced feature issue in ``issues``."""
    summary = HierarchySummary()
    for issue in issues:
        if issue_kind(issue) != "feature":
            continue
        parent_key, found = resolve_ticket_key(issue)
        if not found:
            continue
        refs = find_child_references(issue.description, domain)
        result = reconciler.reconcile(parent_key, refs, resolved_map)
        if result.error:
            reconciler.logger.log_error(
                "error processing feature links",
                error=result.error,
                feature=issue.number,
            )
        summary.results.append(result)
    return summary


def format_summary(summary: HierarchySummary, board: str | None = None) -> list[str]:
    prefix = f"[hierarchy:{board}]" if board else "[hierarchy]"
    lines = [
        f"{prefix} created={summary.created} removed={summary.removed} "
        f"failed={summary.failed} parents={len(summary.results)}"
    ]
    for result in summary.results:
        if result.error:
            lines.append(f"  {result.parent}: fetch failed ({result.error})")
            continue
        for outcome in result.outcomes:
            if not outcome.ok:
                lines.append(
                    f"  {outcome.parent}: {outcome.action} {outcome.child} failed ({outcome.error})"
                )
    return lines


__all__ = [
    "LinkTracker",
    "LinkOutcome",
    "ReconcileResult",
    "HierarchySummary",
    "HierarchyReconciler",
    "reconcile_features",
    "format_summary",
]
