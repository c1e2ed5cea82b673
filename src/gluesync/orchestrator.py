"""Sync orchestration: GitHub issues -> JIRA tickets.

A run fetches the repository's open and closed issues once, then for each
board creates tickets for unsynced feature/story issues, tags them
(``jira-id:`` label, ``[KEY]`` title), reconciles feature hierarchies and
finally closes tickets whose issue was closed on GitHub. An issue that
already carries a ``jira-id:`` label but lost its ``[KEY]`` title prefix (for
instance after a failed retitle) gets the prefix back.

Per-issue and per-board failures are recorded on the summary and logged; only
a failure to fetch the open issues aborts the run.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Protocol

from .errors import classify_error
from .jira_rest import DONE_STATUS
from .labels import (
    belongs_to_board,
    extract_project_key,
    format_jira_id_label,
    format_synced_title,
    issue_kind,
    is_synced,
    resolve_ticket_key,
)
from .logging import StructuredLogger
from .mapping import build_issue_to_ticket_map
from .models import Issue
from .reconcile import HierarchyReconciler, HierarchySummary, reconcile_features


class IssueSource(Protocol):
    repo: str

    def list_issues(self, *, state: str = ..., labels: Iterable[str] | None = ...) -> list[Issue]: ...

    def list_closed_issues(self) -> list[Issue]: ...

    def add_labels(self, number: int, labels: Iterable[str]) -> None: ...

    def update_title(self, number: int, title: str) -> None: ...


class TicketTracker(Protocol):
    def get_issue_type_id(self, project: str, type_name: str) -> str: ...

    def default_fix_version(self, project: str) -> dict[str, Any] | None: ...

    def create_ticket(
        self,
        project: str,
        type_id: str,
        summary: str,
        description: str,
        *,
        fix_version: dict[str, Any] | None = ...,
    ) -> str | None: ...

    def get_linked_keys(self, key: str) -> set[str]: ...

    def create_link(self, parent: str, child: str) -> None: ...

    def delete_link(self, parent: str, child: str) -> None: ...

    def get_status(self, key: str) -> str: ...

    def close_ticket(self, key: str) -> None: ...

    def count_tickets(self, project: str) -> int: ...


@dataclass
class ItemFailure:
    item: str
    error: str
    category: str = "generic"


@dataclass
class BoardResult:
    board: str
    synced: list[int] = field(default_factory=list)
    retitled: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    failures: list[ItemFailure] = field(default_factory=list)
    hierarchy: HierarchySummary = field(default_factory=HierarchySummary)
    error: str | None = None


@dataclass
class SyncSummary:
    repository: str
    boards: list[BoardResult] = field(default_factory=list)
    closed: list[str] = field(default_factory=list)
    close_failures: list[ItemFailure] = field(default_factory=list)
    dry_run: bool = False

    @property
    def total_synced(self) -> int:
        return sum(len(b.synced) for b in self.boards)

    @property
    def failure_count(self) -> int:
        return (
            sum(len(b.failures) + b.hierarchy.failed + len(b.hierarchy.errors) for b in self.boards)
            + len(self.close_failures)
            + sum(1 for b in self.boards if b.error)
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "repository": self.repository,
            "dry_run": self.dry_run,
            "totals": {
                "synced": self.total_synced,
                "links_created": sum(b.hierarchy.created for b in self.boards),
                "links_removed": sum(b.hierarchy.removed for b in self.boards),
                "closed": len(self.closed),
                "failures": self.failure_count,
            },
            "boards": [
                {
                    "board": b.board,
                    "synced": b.synced,
                    "retitled": b.retitled,
                    "skipped": b.skipped,
                    "error": b.error,
                    "failures": [f.__dict__ for f in b.failures],
                    "links": [
                        {
                            "parent": r.parent,
                            "created": r.created,
                            "removed": r.removed,
                            "error": r.error,
                        }
                        for r in b.hierarchy.results
                    ],
                }
                for b in self.boards
            ],
            "closed": self.closed,
            "close_failures": [f.__dict__ for f in self.close_failures],
        }


def _failure(item: str, exc: BaseException) -> ItemFailure:
    info = classify_error(exc)
    return ItemFailure(item=item, error=info.message, category=info.category)


def discover_boards(issues: Iterable[Issue]) -> list[str]:
    """Project keys named by ``jira-project:`` labels, in first-seen order."""
    boards: list[str] = []
    for issue in issues:
        key, found = extract_project_key(issue.labels)
        if found and key not in boards:
            boards.append(key)
    return boards


class JiraSync:
    def __init__(
        self,
        github: IssueSource,
        jira: TicketTracker,
        logger: StructuredLogger,
        *,
        domain: str = "github.com",
        dry_run: bool = False,
    ) -> None:
        self.github = github
        self.jira = jira
        self.logger = logger
        self.domain = domain
        self.dry_run = dry_run
        self.reconciler = HierarchyReconciler(jira, logger, dry_run=dry_run)

    # ---- per issue ----------------------------------------------------
    def sync_issue(
        self, board: str, issue: Issue, type_id: str, fix_version: dict[str, Any] | None
    ) -> str | None:
        """Create the ticket for ``issue`` and tag the issue with its key."""
        key = self.jira.create_ticket(
            board, type_id, issue.title, issue.description, fix_version=fix_version
        )
        if key is None:  # dry run
            return None
        self.github.add_labels(issue.number, [format_jira_id_label(key)])
        issue.labels.append(format_jira_id_label(key))
        self.apply_title_prefix(issue, key)
        self.logger.log_operation(
            "issue_synced", board=board, issue_number=issue.number, key=key
        )
        return key

    def apply_title_prefix(self, issue: Issue, key: str) -> bool:
        """Make the issue title start with ``[KEY]``; False when it already does."""
        if issue.title.startswith(f"[{key}]"):
            return False
        title = format_synced_title(key, issue.title)
        self.github.update_title(issue.number, title)
        issue.title = title
        return True

    def _resolve_type_ids(self, board: str) -> tuple[str, str]:
        feature_id = self.jira.get_issue_type_id(board, "feature")
        try:
            story_id = self.jira.get_issue_type_id(board, "story")
        except Exception as exc:  # noqa: BLE001 - story falls back to feature
            self.logger.warning(
                "failed to get 'story' type id, using feature type", board=board, error=str(exc)
            )
            story_id = feature_id
        return feature_id, story_id

    def _fix_version(self, board: str) -> dict[str, Any] | None:
        try:
            return self.jira.default_fix_version(board)
        except Exception as exc:  # noqa: BLE001 - tickets are created without one
            self.logger.warning("failed to get default fix version", board=board, error=str(exc))
            return None

    # ---- per board ----------------------------------------------------
    def process_board(self, board: str, issues: list[Issue]) -> BoardResult:
        result = BoardResult(board=board)
        try:
            feature_id, story_id = self._resolve_type_ids(board)
        except Exception as exc:  # noqa: BLE001 - aborts this board only
            result.error = f"failed to get 'feature' type id: {exc}"
            self.logger.log_error("error processing board", error=result.error, board=board)
            return result
        fix_version = self._fix_version(board)

        for issue in issues:
            if issue.is_closed:
                continue
            key, found = resolve_ticket_key(issue)
            if found:
                try:
                    if self.apply_title_prefix(issue, key):
                        result.retitled.append(issue.number)
                        self.logger.log_operation(
                            "title_repaired", board=board, issue_number=issue.number, key=key
                        )
                except Exception as exc:  # noqa: BLE001 - retried on the next run
                    failure = _failure(f"#{issue.number}", exc)
                    result.failures.append(failure)
                    self.logger.log_error(
                        "failed to update issue title",
                        error=failure.error,
                        issue_number=issue.number,
                    )
                continue
            kind = issue_kind(issue)
            if kind is None:
                result.skipped.append(issue.number)
                self.logger.warning(
                    "skipping issue without feature or story label",
                    issue_number=issue.number,
                    title=issue.title,
                )
                continue
            type_id = feature_id if kind == "feature" else story_id
            try:
                new_key = self.sync_issue(board, issue, type_id, fix_version)
            except Exception as exc:  # noqa: BLE001 - recorded per issue
                failure = _failure(f"#{issue.number}", exc)
                result.failures.append(failure)
                self.logger.log_error(
                    "failed to sync issue", error=failure.error, issue_number=issue.number
                )
                continue
            if new_key is not None or self.dry_run:
                result.synced.append(issue.number)
        if result.skipped:
            self.logger.warning(
                "skipped issues without feature or story labels",
                board=board,
                skipped_count=len(result.skipped),
            )
        return result

    def establish_hierarchies(self, board: str, issues: list[Issue]) -> HierarchySummary:
        resolved = build_issue_to_ticket_map(issues)
        summary = reconcile_features(self.reconciler, issues, resolved, self.domain)
        self.logger.info(
            "parent-child relationship synchronization complete",
            board=board,
            relationships_created=summary.created,
            relationships_removed=summary.removed,
        )
        return summary

    # ---- closed issues ------------------------------------------------
    def sync_closed(self, closed_issues: Iterable[Issue], summary: SyncSummary) -> None:
        for issue in closed_issues:
            key, found = resolve_ticket_key(issue)
            if not found:
                continue
            try:
                if self.jira.get_status(key) == DONE_STATUS:
                    continue
                self.jira.close_ticket(key)
            except Exception as exc:  # noqa: BLE001 - recorded per ticket
                failure = _failure(key, exc)
                summary.close_failures.append(failure)
                self.logger.log_error(
                    "failed to close jira ticket",
                    error=failure.error,
                    issue_number=issue.number,
                    jira_ticket=key,
                )
                continue
            summary.closed.append(key)

    # ---- run ----------------------------------------------------------
    def run(self, boards: Iterable[str] | None = None) -> SyncSummary:
        summary = SyncSummary(repository=self.github.repo, dry_run=self.dry_run)
        open_issues = self.github.list_issues(state="open")
        try:
            closed_issues = self.github.list_closed_issues()
        except Exception as exc:  # noqa: BLE001 - mapping degrades to open issues
            self.logger.warning(
                "failed to fetch closed github issues for relationships", error=str(exc)
            )
            closed_issues = []

        board_list = list(boards or []) or discover_boards(open_issues)
        self.logger.info(
            "starting synchronization", repository=self.github.repo, boards=board_list
        )
        all_issues = open_issues + closed_issues
        for board in board_list:
            board_issues = [i for i in all_issues if belongs_to_board(i, board)]
            self.logger.info("processing board", board=board, issue_count=len(board_issues))
            with self.logger.timed_operation("board_sync", board=board):
                result = self.process_board(board, board_issues)
                if result.error is None:
                    result.hierarchy = self.establish_hierarchies(board, board_issues)
            summary.boards.append(result)

        self.sync_closed(closed_issues, summary)
        self.logger.info(
            "synchronization complete",
            total_synchronized=summary.total_synced,
            boards_processed=len(board_list),
            closed=len(summary.closed),
        )
        return summary


def format_sync_summary(summary: SyncSummary) -> list[str]:
    lines = [
        f"[sync] {summary.repository}: synced={summary.total_synced} "
        f"closed={len(summary.closed)} failures={summary.failure_count}"
        + (" [DRY]" if summary.dry_run else "")
    ]
    for board in summary.boards:
        if board.error:
            lines.append(f"  {board.board}: {board.error}")
            continue
        lines.append(
            f"  {board.board}: synced={len(board.synced)} skipped={len(board.skipped)} "
            f"links+={board.hierarchy.created} links-={board.hierarchy.removed}"
        )
        for failure in board.failures:
            lines.append(f"    {failure.item}: {failure.error}")
    for failure in summary.close_failures:
        lines.append(f"  close {failure.item}: {failure.error}")
    return lines


@dataclass
class StatusReport:
    repository: str
    board: str
    synced: int
    unsynced: int
    jira_total: int

    @property
    def total(self) -> int:
        return self.synced + self.unsynced


def status_report(github: IssueSource, jira: TicketTracker, board: str) -> StatusReport:
    issues = [i for i in github.list_issues(state="all") if belongs_to_board(i, board)]
    synced = sum(1 for i in issues if is_synced(i))
    return StatusReport(
        repository=github.repo,
        board=board,
        synced=synced,
        unsynced=len(issues) - synced,
        jira_total=jira.count_tickets(board),
    )


def format_status(report: StatusReport) -> list[str]:
    if report.unsynced == 0:
        status = "All GitHub issues are synchronized with JIRA"
    else:
        pct = report.synced / report.total * 100
        status = f"{pct:.1f}% synchronized ({report.synced}/{report.total} issues)"
    return [
        f"[status] {report.repository} -> {report.board}",
        f"  GitHub issues synchronized: {report.synced}",
        f"  GitHub issues not synchronized: {report.unsynced}",
        f"  JIRA tickets in board: {report.jira_total}",
        f"  {status}",
    ]


__all__ = [
    "BoardResult",
    "ItemFailure",
    "JiraSync",
    "StatusReport",
    "SyncSummary",
    "discover_boards",
    "format_status",
    "format_sync_summary",
    "status_report",
]
