"""
Lazy-initialized OpenAI client to prevent import-time errors
when OPENAI_API_KEY is not set.

`generate_text` is the single text-generation call the flashcard generator
and test mode depend on: prompt in, text plus token usage out. Failures
propagate to the caller, which decides on a fallback; nothing here retries.
"""

import os
import logging
from dataclasses import dataclass
from typing import Optional

import httpx
from openai import OpenAI

logger = logging.getLogger(__name__)

_client: Optional[OpenAI] = None

# Timeout configuration: 60s total request, 10s connect
DEFAULT_TIMEOUT = httpx.Timeout(60.0, connect=10.0)

DEFAULT_MODEL = "gpt-4o-mini"


class AIConfigurationError(ValueError):
    """OPENAI_API_KEY is not set."""


@dataclass
class AIResponse:
    text: str
    model: str
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


def get_openai_client() -> OpenAI:
    """
    Get a lazily-initialized OpenAI client with timeout configuration.

    Returns:
        OpenAI: The OpenAI client instance

    Raises:
        AIConfigurationError: If OPENAI_API_KEY is not set
    """
    global _client

    if _client is None:
        api_key = os.getenv('OPENAI_API_KEY')
        if not api_key:
            raise AIConfigurationError(
                "OPENAI_API_KEY environment variable is not set. "
                "Please set it before using AI features."
            )
        _client = OpenAI(api_key=api_key, timeout=DEFAULT_TIMEOUT)

    return _client


def get_model() -> str:
    return os.getenv("OPENAI_MODEL", DEFAULT_MODEL)


def generate_text(
    prompt: str,
    system_prompt: Optional[str] = None,
    temperature: float = 0.3,
    max_tokens: int = 2000,
    json_mode: bool = False
) -> AIResponse:
    """Run one chat completion and return its text and token usage."""
    messages = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": prompt})

    kwargs = {}
    if json_mode:
        kwargs["response_format"] = {"type": "json_object"}

    model = get_model()
    response = get_openai_client().chat.completions.create(
        model=model,
        messages=messages,
        temperature=temperature,
        max_tokens=max_tokens,
        **kwargs
    )

    usage = response.usage
    result = AIResponse(
        text=response.choices[0].message.content or "",
        model=response.model or model,
        prompt_tokens=usage.prompt_tokens if usage else 0,
        completion_tokens=usage.completion_tokens if usage else 0,
    )
    logger.debug("OpenAI call model=%s tokens=%d", result.model, result.total_tokens)
    return result


def reset_client() -> None:
    """
    Reset the client (useful for testing or when API key changes).
    """
    global _client
    _client = None
