"""glue CLI.

Subcommands:
  jira    -> create JIRA tickets for GitHub issues, tag the issues, reconcile
             feature hierarchies and close tickets of closed issues
  status  -> synchronization statistics for one board
"""

from __future__ import annotations

import argparse
import json
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from gluesync.config import GlueConfig
from gluesync.github_rest import GitHubRestClient, api_url_for_domain
from gluesync.jira_rest import JiraRestClient
from gluesync.logging import StructuredLogger
from gluesync.orchestrator import (
    JiraSync,
    format_status,
    format_sync_summary,
    status_report,
)
from gluesync.runtime import execute_command, prepare_config

REPO_HELP = "GitHub repository name (e.g., 'owner/repo')"

_MAX_HELP_WIDTH = 100


class _HelpFormatter(argparse.RawDescriptionHelpFormatter):
    def __init__(self, prog: str) -> None:
        super().__init__(prog, max_help_position=30, width=_MAX_HELP_WIDTH)


class _FormatterArgumentParser(argparse.ArgumentParser):
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("formatter_class", _HelpFormatter)
        super().__init__(*args, **kwargs)


JIRA_EPILOG = """\
Issues labelled 'feature' become Feature tickets, 'story' become Story tickets;
other issues on a board are skipped. Feature issues may list children in a
'## Issues' section; links in JIRA are created and removed to match it.

Example:
  glue jira -r owner/repo -b PROJ1 -b PROJ2
"""


def _build_parser() -> argparse.ArgumentParser:
    p = _FormatterArgumentParser(
        prog="glue", description="Synchronize GitHub issues with JIRA"
    )
    p.add_argument("--config", help="Optional YAML config file (default: glue.config.yaml if present)")
    p.add_argument("--quiet", action="store_true", help="Only log errors")
    p.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")
    p.add_argument("--log-level", help="Override LOG_LEVEL (debug, info, warning, error)")
    sub = p.add_subparsers(
        dest="cmd",
        required=True,
        parser_class=_FormatterArgumentParser,
        metavar="<command>",
    )

    pj = sub.add_parser("jira", help="Synchronize GitHub issues with JIRA", epilog=JIRA_EPILOG)
    pj.add_argument("-r", "--repository", required=True, help=REPO_HELP)
    pj.add_argument(
        "-b",
        "--board",
        action="append",
        default=[],
        help="JIRA project board (repeatable; default: boards named by 'jira-project:' labels)",
    )
    pj.add_argument("--dry-run", action="store_true", help="Log mutations without applying them")
    pj.add_argument("--summary-json", help="Write the run summary to this JSON file")

    ps = sub.add_parser("status", help="Show synchronization status for a board")
    ps.add_argument("-r", "--repository", required=True, help=REPO_HELP)
    ps.add_argument("-b", "--board", required=True, help="JIRA project board")
    return p


def _print_lines(lines: Iterable[str]) -> None:
    for line in lines:
        print(line)


def build_clients(
    cfg: GlueConfig, repository: str, *, dry_run: bool = False
) -> tuple[GitHubRestClient, JiraRestClient]:
    retry = cfg.retry_config()
    github = GitHubRestClient(
        token=cfg.github_token,
        repo=repository,
        base_url=api_url_for_domain(cfg.github_domain),
        dry_run=dry_run,
        retry=retry,
    )
    jira = JiraRestClient(
        base_url=cfg.jira_url,
        token=cfg.jira_token,
        link_type=cfg.jira_link_type,
        dry_run=dry_run,
        retry=retry,
    )
    return github, jira


def _cmd_jira(cfg: GlueConfig, args: argparse.Namespace, logger: StructuredLogger) -> int:
    github, jira = build_clients(cfg, args.repository, dry_run=args.dry_run)
    me = jira.get_myself()
    user = me.get("emailAddress") or me.get("name")
    known = (me.get("emailAddress"), me.get("name"))
    if cfg.jira_username and user and cfg.jira_username not in known:
        logger.warning(
            "jira token belongs to a different user", configured=cfg.jira_username, user=user
        )
    logger.info("jira authentication successful", user=user)
    sync = JiraSync(github, jira, logger, domain=cfg.github_domain, dry_run=args.dry_run)
    summary = sync.run(args.board)
    if args.summary_json:
        Path(args.summary_json).write_text(json.dumps(summary.to_dict(), indent=2))
    _print_lines(format_sync_summary(summary))
    return 0


def _cmd_status(cfg: GlueConfig, args: argparse.Namespace, logger: StructuredLogger) -> int:
    github, jira = build_clients(cfg, args.repository)
    report = status_report(github, jira, args.board)
    logger.log_operation("status", board=args.board, synced=report.synced)
    _print_lines(format_status(report))
    return 0


_HANDLERS = {
    "jira": _cmd_jira,
    "status": _cmd_status,
}


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    # rebuilt once the config is loaded; both wrap the same "gluesync" logger
    logger = StructuredLogger(
        json_logging=args.json_logs,
        level="ERROR" if args.quiet else (args.log_level or "INFO"),
    )

    def _run() -> int:
        cfg = prepare_config(args)
        configured = StructuredLogger(
            json_logging=cfg.logging_json_enabled, level=cfg.logging_level
        )
        return _HANDLERS[args.cmd](cfg, args, configured)

    return execute_command(_run, args.cmd, logger=logger)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
