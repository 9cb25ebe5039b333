"""CLI entrypoint for pr-assist."""

import rich_click as click

from pr_assist import __version__
from pr_assist.ci_logging import configure_logging
from pr_assist.controllers import (
    CommandResult,
    DescribePrCommand,
    PrAssistController,
    ReviewCommand,
    ScaffoldTestsCommand,
    VertexSmokeCommand,
)

click.rich_click.USE_MARKDOWN = True
CONTROLLER = PrAssistController()


@click.group()
@click.version_option(version=__version__, prog_name="pr-assist")
@click.option("--verbose", is_flag=True, default=False, help="Enable debug logging.")
def pr_assist(verbose: bool) -> None:
    """Gemini-powered pull request automation for GitHub Actions."""

    configure_logging(verbose=verbose)


@pr_assist.command("describe-pr")
def describe_pr() -> None:
    """Rewrite the pull request body with a generated description."""

    _finish("describe-pr", CONTROLLER.describe_pr(DescribePrCommand()))


@pr_assist.command("review")
def review() -> None:
    """Review changed code files and post one critical-issues summary comment."""

    _finish("review", CONTROLLER.review(ReviewCommand()))


@pr_assist.command("scaffold-tests")
@click.option(
    "--commit/--no-commit",
    default=None,
    help="Commit and push scaffolds instead of commenting. Defaults to `COMMIT_CHANGES`.",
)
def scaffold_tests(commit: bool | None) -> None:
    """Generate test scaffolds for new source files without tests."""

    _finish("scaffold-tests", CONTROLLER.scaffold_tests(ScaffoldTestsCommand(commit=commit)))


@pr_assist.command("vertex-smoke")
@click.option("--model", default=None, help="Model id. Defaults to `PR_ASSIST_VERTEX_MODEL`.")
def vertex_smoke(model: str | None) -> None:
    """Check Vertex AI credentials with a token-count request."""

    _finish("vertex-smoke", CONTROLLER.vertex_smoke(VertexSmokeCommand(model=model)))


def _finish(name: str, result: CommandResult) -> None:
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException(f"{name} failed: {result.error or 'unknown error'}")


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    pr_assist()
