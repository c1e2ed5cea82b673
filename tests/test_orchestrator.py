from gluesync.github_rest import GitHubAPIError
from gluesync.models import Issue
from gluesync.orchestrator import (
    JiraSync,
    discover_boards,
    format_status,
    format_sync_summary,
    status_report,
)


def _types(fake_jira, board="LEG", story=True):
    types = {"feature": "10"}
    if story:
        types["story"] = "11"
    fake_jira.issue_types[board] = types


def test_run_creates_tickets_tags_issues_and_links_children(fake_jira, make_github, logger):
    _types(fake_jira)
    feature = Issue(
        number=1,
        title="Auth feature",
        description="## Issues\n- https://github.com/org/repo/issues/2\n",
        labels=["feature", "jira-project: LEG"],
    )
    story = Issue(number=2, title="Login form", labels=["story", "LEG"])
    github = make_github([feature, story])

    summary = JiraSync(github, fake_jira, logger).run(["LEG"])

    assert summary.total_synced == 2
    assert [c["type_id"] for c in fake_jira.created] == ["10", "11"]
    assert github.label_calls == [(1, ["jira-id: LEG-101"]), (2, ["jira-id: LEG-102"])]
    assert github.title_calls == [(1, "[LEG-101] Auth feature"), (2, "[LEG-102] Login form")]
    assert fake_jira.links == {"LEG-101": {"LEG-102"}}
    assert summary.boards[0].hierarchy.created == 1
    assert summary.failure_count == 0


def test_second_run_changes_nothing(fake_jira, make_github, logger):
    _types(fake_jira)
    issues = [
        Issue(number=1, title="F", labels=["feature", "LEG"],
              description="## Issues\nhttps://github.com/org/repo/issues/2"),
        Issue(number=2, title="S", labels=["story", "LEG"]),
    ]
    github = make_github(issues)
    sync = JiraSync(github, fake_jira, logger)
    sync.run(["LEG"])

    again = sync.run(["LEG"])

    assert again.total_synced == 0
    assert again.boards[0].hierarchy.created == 0
    assert again.boards[0].hierarchy.removed == 0
    assert len(fake_jira.created) == 2


def test_story_type_falls_back_to_feature(fake_jira, make_github, logger, log_stream):
    _types(fake_jira, story=False)
    github = make_github([Issue(number=3, title="S", labels=["type: story", "LEG"])])

    JiraSync(github, fake_jira, logger).run(["LEG"])

    assert fake_jira.created[0]["type_id"] == "10"
    assert "using feature type" in log_stream.getvalue()


def test_missing_feature_type_aborts_only_that_board(fake_jira, make_github, logger):
    _types(fake_jira, board="OK")
    github = make_github(
        [
            Issue(number=1, title="A", labels=["feature", "BAD"]),
            Issue(number=2, title="B", labels=["feature", "OK"]),
        ]
    )

    summary = JiraSync(github, fake_jira, logger).run(["BAD", "OK"])

    bad, ok = summary.boards
    assert bad.error and "feature" in bad.error
    assert ok.synced == [2]
    assert summary.failure_count == 1


def test_unlabelled_and_already_synced_issues_are_not_created(fake_jira, make_github, logger):
    _types(fake_jira)
    github = make_github(
        [
            Issue(number=1, title="Chore", labels=["LEG"]),
            Issue(number=2, title="[LEG-9] Done already", labels=["feature", "LEG"]),
            Issue(number=3, title="Tagged", labels=["story", "LEG", "jira-id: LEG-8"]),
        ]
    )

    summary = JiraSync(github, fake_jira, logger).run(["LEG"])

    assert summary.boards[0].skipped == [1]
    assert fake_jira.created == []


def test_dry_run_counts_issues_without_tagging(fake_jira, make_github, logger):
    _types(fake_jira)

    class DryJira(type(fake_jira)):
        def create_ticket(self, *args, **kwargs):
            return None

    jira = DryJira()
    jira.issue_types = fake_jira.issue_types
    github = make_github([Issue(number=1, title="F", labels=["feature", "LEG"])])

    summary = JiraSync(github, jira, logger, dry_run=True).run(["LEG"])

    assert summary.boards[0].synced == [1]
    assert summary.dry_run
    assert github.label_calls == []
    assert format_sync_summary(summary)[0].endswith("[DRY]")


def test_closed_issues_close_their_tickets(fake_jira, make_github, logger):
    _types(fake_jira)
    fake_jira.statuses["LEG-5"] = "Done"
    github = make_github(
        [
            Issue(number=4, title="[LEG-4] Old", labels=["story"], state="closed"),
            Issue(number=5, title="[LEG-5] Older", labels=["story"], state="closed"),
            Issue(number=6, title="No ticket", labels=["story"], state="closed"),
        ]
    )

    summary = JiraSync(github, fake_jira, logger).run(["LEG"])

    assert summary.closed == ["LEG-4"]
    assert fake_jira.closed == ["LEG-4"]


def test_closed_issue_fetch_failure_is_not_fatal(fake_jira, make_github, logger, log_stream):
    _types(fake_jira)
    github = make_github([Issue(number=1, title="F", labels=["feature", "LEG"])])
    github.fail_closed = True

    summary = JiraSync(github, fake_jira, logger).run(["LEG"])

    assert summary.total_synced == 1
    assert "failed to fetch closed github issues" in log_stream.getvalue()


def test_closed_children_still_resolve_for_links(fake_jira, make_github, logger):
    _types(fake_jira)
    fake_jira.statuses["LEG-2"] = "Done"
    github = make_github(
        [
            Issue(number=1, title="[LEG-1] F", labels=["feature", "LEG"],
                  description="## Issues\nhttps://github.com/org/repo/issues/2"),
            Issue(number=2, title="[LEG-2] S", labels=["story", "LEG"], state="closed"),
        ]
    )

    JiraSync(github, fake_jira, logger).run(["LEG"])

    assert fake_jira.links == {"LEG-1": {"LEG-2"}}


def test_boards_are_discovered_from_project_labels(fake_jira, make_github, logger):
    _types(fake_jira, board="LEG")
    _types(fake_jira, board="WEB")
    github = make_github(
        [
            Issue(number=1, title="A", labels=["feature", "jira-project: LEG"]),
            Issue(number=2, title="B", labels=["story", "jira-project: WEB"]),
            Issue(number=3, title="C", labels=["story", "jira-project: LEG"]),
        ]
    )

    summary = JiraSync(github, fake_jira, logger).run()

    assert [b.board for b in summary.boards] == ["LEG", "WEB"]
    assert summary.total_synced == 3


def test_discover_boards_ignores_empty_values():
    issues = [
        Issue(number=1, title="a", labels=["jira-project:", "jira-project: X"]),
        Issue(number=2, title="b", labels=["jira-project: Y"]),
    ]
    assert discover_boards(issues) == ["Y"]


def test_summary_to_dict_totals(fake_jira, make_github, logger):
    _types(fake_jira)
    github = make_github([Issue(number=1, title="F", labels=["feature", "LEG"])])

    data = JiraSync(github, fake_jira, logger).run(["LEG"]).to_dict()

    assert data["repository"] == "org/repo"
    assert data["totals"]["synced"] == 1
    assert data["boards"][0]["board"] == "LEG"


def test_status_report_counts_synced_issues(fake_jira, make_github):
    fake_jira.created = [{"key": "LEG-1"}, {"key": "LEG-2"}, {"key": "WEB-1"}]
    github = make_github(
        [
            Issue(number=1, title="[LEG-1] a", labels=["LEG"]),
            Issue(number=2, title="b", labels=["LEG", "jira-id: LEG-2"], state="closed"),
            Issue(number=3, title="c", labels=["LEG"]),
            Issue(number=4, title="d", labels=["WEB"]),
        ]
    )

    report = status_report(github, fake_jira, "LEG")

    assert (report.synced, report.unsynced, report.jira_total) == (2, 1, 2)
    lines = format_status(report)
    assert lines[0] == "[status] org/repo -> LEG"
    assert lines[-1].strip() == "66.7% synchronized (2/3 issues)"


def test_status_fully_synced_message(fake_jira, make_github):
    github = make_github([Issue(number=1, title="[LEG-1] a", labels=["LEG"])])
    lines = format_status(status_report(github, fake_jira, "LEG"))
    assert lines[-1].strip() == "All GitHub issues are synchronized with JIRA"


def test_failed_retitle_is_repaired_on_next_run(fake_jira, make_github, logger):
    _types(fake_jira)

    class FlakyGitHub(make_github):
        fail_titles = True

        def update_title(self, number, title):
            if self.fail_titles:
                raise GitHubAPIError("GitHub API PATCH failed with 502", status=502)
            super().update_title(number, title)

    github = FlakyGitHub([Issue(number=1, title="Login form", labels=["story", "LEG"])])
    sync = JiraSync(github, fake_jira, logger)

    first = sync.run(["LEG"])
    assert github.label_calls == [(1, ["jira-id: LEG-101"])]
    assert github.title_calls == []
    assert first.boards[0].failures[0].item == "#1"

    github.fail_titles = False
    second = sync.run(["LEG"])

    assert github.title_calls == [(1, "[LEG-101] Login form")]
    assert second.boards[0].retitled == [1]
    assert len(fake_jira.created) == 1


def test_label_only_issue_gets_title_prefix(fake_jira, make_github, logger):
    _types(fake_jira)
    github = make_github(
        [
            Issue(number=1, title="[OLD-1] Renamed", labels=["story", "LEG", "jira-id: LEG-7"]),
            Issue(number=2, title="[LEG-8] Fine", labels=["story", "LEG", "jira-id: LEG-8"]),
        ]
    )

    summary = JiraSync(github, fake_jira, logger).run(["LEG"])

    assert github.title_calls == [(1, "[LEG-7] Renamed")]
    assert summary.boards[0].retitled == [1]
    assert fake_jira.created == []
