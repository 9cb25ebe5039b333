"""Logging setup that speaks the CI workflow-command dialect."""

from __future__ import annotations

import logging
import os
import sys
from typing import TextIO

from pr_assist.redaction import redact_secrets

ROOT_LOGGER_NAME = "pr_assist"

_HANDLER_MARKER = "_pr_assist_handler"


class WorkflowCommandFormatter(logging.Formatter):
    """Render warnings/errors as `::warning::`/`::error::` annotations when enabled."""

    def __init__(self, *, annotations: bool) -> None:
        super().__init__("%(message)s")
        self.annotations = annotations

    def format(self, record: logging.LogRecord) -> str:
        message = redact_secrets(super().format(record))
        if not self.annotations:
            if record.levelno >= logging.WARNING:
                return f"{record.levelname}: {message}"
            return message
        if record.levelno >= logging.ERROR:
            return f"::error::{escape_workflow_data(message)}"
        if record.levelno >= logging.WARNING:
            return f"::warning::{escape_workflow_data(message)}"
        if record.levelno <= logging.DEBUG:
            return f"::debug::{escape_workflow_data(message)}"
        return message


def escape_workflow_data(value: str) -> str:
    """Escape a workflow-command payload so it stays on one annotation line."""

    return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def running_in_github_actions() -> bool:
    return os.getenv("GITHUB_ACTIONS", "").strip().lower() == "true"


def configure_logging(*, verbose: bool = False, stream: TextIO | None = None) -> logging.Logger:
    """Install one stream handler on the package logger (idempotent)."""

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(WorkflowCommandFormatter(annotations=running_in_github_actions()))
    setattr(handler, _HANDLER_MARKER, True)
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    return logger
