from __future__ import annotations

import io
import logging

import allure

from pr_assist.ci_logging import (
    ROOT_LOGGER_NAME,
    WorkflowCommandFormatter,
    configure_logging,
    escape_workflow_data,
    running_in_github_actions,
)

pytestmark = [
    allure.epic("Observability"),
    allure.feature("CI Logging"),
]


def _record(level: int, message: str) -> logging.LogRecord:
    return logging.LogRecord(
        name="pr_assist.test",
        level=level,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=None,
        exc_info=None,
    )


def test_escape_workflow_data() -> None:
    assert escape_workflow_data("50% done\r\nnext") == "50%25 done%0D%0Anext"


def test_annotations_render_workflow_commands() -> None:
    formatter = WorkflowCommandFormatter(annotations=True)

    assert formatter.format(_record(logging.ERROR, "boom\nline2")) == "::error::boom%0Aline2"
    assert formatter.format(_record(logging.WARNING, "careful")) == "::warning::careful"
    assert formatter.format(_record(logging.DEBUG, "detail")) == "::debug::detail"
    assert formatter.format(_record(logging.INFO, "plain")) == "plain"


def test_plain_output_prefixes_warnings() -> None:
    formatter = WorkflowCommandFormatter(annotations=False)

    assert formatter.format(_record(logging.WARNING, "careful")) == "WARNING: careful"
    assert formatter.format(_record(logging.ERROR, "boom")) == "ERROR: boom"
    assert formatter.format(_record(logging.INFO, "plain")) == "plain"


def test_formatter_redacts_secrets() -> None:
    formatter = WorkflowCommandFormatter(annotations=True)

    rendered = formatter.format(_record(logging.ERROR, "token ghp_" + "x" * 36))

    assert "ghp_" not in rendered
    assert rendered.startswith("::error::")


def test_running_in_github_actions(clean_env) -> None:
    assert running_in_github_actions() is False
    clean_env.setenv("GITHUB_ACTIONS", "true")
    assert running_in_github_actions() is True


def test_configure_logging_is_idempotent(clean_env) -> None:
    stream = io.StringIO()
    configure_logging(stream=io.StringIO())
    logger = configure_logging(verbose=True, stream=stream)

    marked = [
        handler for handler in logger.handlers if getattr(handler, "_pr_assist_handler", False)
    ]
    assert len(marked) == 1
    assert logger.name == ROOT_LOGGER_NAME
    assert logger.level == logging.DEBUG

    logging.getLogger("pr_assist.workflows.review").warning("Failed to post summary comment")
    assert "WARNING: Failed to post summary comment" in stream.getvalue()


def test_configure_logging_uses_annotations_on_actions(clean_env) -> None:
    clean_env.setenv("GITHUB_ACTIONS", "true")
    stream = io.StringIO()
    configure_logging(stream=stream)

    logging.getLogger("pr_assist.controllers").error("review failed: 50%")

    assert "::error::review failed: 50%25" in stream.getvalue()
