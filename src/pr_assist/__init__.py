"""LLM-assisted pull request automation for CI pipelines."""

__version__ = "0.1.0"
