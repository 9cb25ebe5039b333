"""Gemini model access (API key or Vertex AI) behind a small protocol."""

from __future__ import annotations

import logging
from typing import Protocol

from google import genai
from google.genai import errors as genai_errors

logger = logging.getLogger(__name__)


class LlmError(RuntimeError):
    """Model request failed or returned nothing usable."""


class TextModel(Protocol):
    """Protocol implemented by model clients used by the workflows."""

    def generate(self, *, model: str, prompt: str) -> str:
        """Return the text completion for `prompt`."""

    def count_tokens(self, *, model: str, prompt: str) -> int:
        """Return the token count the model would bill for `prompt`."""


class GeminiClient:
    """Thin wrapper over `google.genai.Client` that normalizes SDK failures."""

    def __init__(self, client: genai.Client) -> None:
        self._client = client

    @classmethod
    def from_api_key(cls, api_key: str) -> GeminiClient:
        key = api_key.strip()
        if not key:
            raise ValueError("GEMINI_API_KEY is required")
        return cls(genai.Client(api_key=key))

    @classmethod
    def for_vertex(cls, *, project: str, location: str) -> GeminiClient:
        return cls(genai.Client(vertexai=True, project=project, location=location))

    def generate(self, *, model: str, prompt: str) -> str:
        logger.debug("Requesting %s completion (%d prompt chars)", model, len(prompt))
        try:
            response = self._client.models.generate_content(model=model, contents=prompt)
        except genai_errors.APIError as error:
            raise LlmError(f"{model} request failed: {error}") from error

        text = response.text
        if not text or not text.strip():
            raise LlmError(f"{model} returned an empty response")
        return text

    def count_tokens(self, *, model: str, prompt: str) -> int:
        try:
            response = self._client.models.count_tokens(model=model, contents=prompt)
        except genai_errors.APIError as error:
            raise LlmError(f"{model} token count failed: {error}") from error
        return response.total_tokens or 0
