"""Vertex AI connectivity smoke check."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from pr_assist.config import Settings
from pr_assist.llm import TextModel

logger = logging.getLogger(__name__)

SMOKE_PROMPT = "Return a short acknowledgement to confirm connectivity."


@dataclass(slots=True)
class VertexSmokeResult:
    project: str
    location: str
    model: str
    total_tokens: int
    service_account: str | None = None


def run_vertex_smoke(
    model_client: TextModel,
    settings: Settings,
    model: str | None = None,
) -> VertexSmokeResult:
    """Count tokens for a fixed prompt to prove auth and routing work end to end."""

    project = settings.require_vertex_project()
    location = settings.vertex.location
    model_name = model or settings.vertex.model
    service_account = settings.vertex.service_account_email
    via = f" via {service_account}" if service_account else ""
    logger.info("Running Vertex AI smoke test for project %s (%s)%s", project, location, via)

    total_tokens = model_client.count_tokens(model=model_name, prompt=SMOKE_PROMPT)
    logger.info("Vertex AI token check succeeded (estimated tokens: %d).", total_tokens)
    return VertexSmokeResult(
        project=project,
        location=location,
        model=model_name,
        total_tokens=total_tokens,
        service_account=service_account,
    )
