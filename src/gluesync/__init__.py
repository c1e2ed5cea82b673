"""glue - mirror GitHub issues into JIRA tickets.

High-level public API:

from gluesync import JiraSync, StructuredLogger, build_clients, load_config

cfg = load_config()
logger = StructuredLogger(level=cfg.logging_level)
github, jira = build_clients(cfg, 'owner/repo')
summary = JiraSync(github, jira, logger).run(['PROJ'])

The CLI (``glue``) is a thin layer over these pieces.
"""

from __future__ import annotations

from .cli import build_clients
from .config import GlueConfig, load_config
from .logging import StructuredLogger
from .models import ChildReference, Issue, Link, Ticket
from .orchestrator import JiraSync, SyncSummary
from .reconcile import HierarchyReconciler, ReconcileResult

__version__ = "0.2.0"

__all__ = [
    "build_clients",
    "load_config",
    "GlueConfig",
    "StructuredLogger",
    "Issue",
    "Ticket",
    "Link",
    "ChildReference",
    "JiraSync",
    "SyncSummary",
    "HierarchyReconciler",
    "ReconcileResult",
    "__version__",
]
