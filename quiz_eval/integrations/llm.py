from typing import Optional, Type

import openai
from langchain_openai import ChatOpenAI
from langfuse.openai import AsyncOpenAI

from quiz_eval.config.settings import Settings
from quiz_eval.errors import (
    RateLimitedError,
    UpstreamServiceError,
    UpstreamUnavailableError,
)


def get_llm(
    model: str = "gpt-4o-mini",
    temperature: float = 0.1,
    json_mode: bool = False,
    api_key: Optional[str] = None,
    base_url: Optional[str] = None,
    timeout: Optional[float] = None,
):
    """
    Get configured LLM client.
    """
    kwargs = {
        "model": model,
        "temperature": temperature,
        "api_key": api_key,
    }
    if base_url:
        kwargs["base_url"] = base_url
    if timeout:
        kwargs["timeout"] = timeout
    if json_mode:
        kwargs["model_kwargs"] = {"response_format": {"type": "json_object"}}

    return ChatOpenAI(**kwargs)


def get_embedding_client(settings: Settings) -> AsyncOpenAI:
    """
    OpenAI-compatible client for the configured embedding source.
    Ollama is reached through its /v1 compatibility endpoint.
    """
    if settings.EMBEDDING_SOURCE == "ollama":
        if not settings.OLLAMA_SERVER_URL:
            raise ValueError("OLLAMA_SERVER_URL is not set.")
        return AsyncOpenAI(
            base_url=f"{settings.OLLAMA_SERVER_URL.rstrip('/')}/v1",
            api_key="ollama",
            timeout=settings.LLM_TIMEOUT_SECONDS,
        )

    if not settings.OPENAI_API_KEY:
        raise ValueError("OPENAI_API_KEY is not set.")
    return AsyncOpenAI(api_key=settings.OPENAI_API_KEY, timeout=settings.LLM_TIMEOUT_SECONDS)


def translate_openai_error(error: openai.APIError, *, stage: str, collaborator: str) -> UpstreamServiceError:
    """Map an OpenAI SDK error onto the upstream error taxonomy."""
    error_cls: Type[UpstreamServiceError] = UpstreamServiceError
    if isinstance(error, openai.RateLimitError):
        error_cls = RateLimitedError
    elif isinstance(error, (openai.APIConnectionError, openai.InternalServerError)):
        error_cls = UpstreamUnavailableError
    return error_cls(
        f"{collaborator} request failed ({type(error).__name__})",
        stage=stage,
        collaborator=collaborator,
    )
