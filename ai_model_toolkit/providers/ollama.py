"""Ollama adapter for a local server through its OpenAI-compatible endpoint."""

from __future__ import annotations

from .openai import OpenAIChatModel


class OllamaChatModel(OpenAIChatModel):
    """Chat model for a local Ollama server. No API key is needed."""

    DEFAULT_MODEL = "mistral"
    API_ENV_VAR = "OLLAMA_API_KEY"
    DEFAULT_BASE_URL = "http://localhost:11434/v1"
    REQUIRES_API_KEY = False
