"""Runtime helpers for glue CLI orchestration."""

from __future__ import annotations

import sys
import time
from collections.abc import Callable
from typing import Any, Protocol

from gluesync.config import GlueConfig, load_config
from gluesync.errors import ConfigError, classify_error
from gluesync.logging import StructuredLogger


class _HandlerCallable(Protocol):
    def __call__(self) -> Any: ...


def prepare_config(
    args: Any, *, loader: Callable[..., GlueConfig] = load_config
) -> GlueConfig:
    """Load GlueConfig and apply command-line overrides."""
    cfg = loader(getattr(args, "config", None))
    if getattr(args, "log_level", None):
        cfg.logging_level = str(args.log_level).upper()
    if getattr(args, "json_logs", False):
        cfg.logging_json_enabled = True
    if getattr(args, "quiet", False):
        cfg.logging_level = "ERROR"
    return cfg


def execute_command(
    handler: _HandlerCallable, command: str, logger: StructuredLogger | None = None
) -> int:
    """Run a command handler, mapping top-level failures to exit code 1.

    Failures print a single redacted line to stderr.
    """
    start = time.monotonic()
    try:
        result = handler()
        exit_code = int(result) if result is not None else 0
    except ConfigError as exc:
        print(f"[{command}] configuration error: {exc}", file=sys.stderr)
        return 1
    except Exception as exc:  # noqa: BLE001 - top-level boundary
        info = classify_error(exc)
        if logger is not None:
            logger.log_error(
                "command execution failed", error=info.message, category=info.category
            )
        print(f"[{command}] {info.message}", file=sys.stderr)
        return 1
    if logger is not None:
        logger.log_performance(
            f"command_{command}", (time.monotonic() - start) * 1000, exit_code=exit_code
        )
    return exit_code


__all__ = ["prepare_config", "execute_command"]
