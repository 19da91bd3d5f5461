"""Suggestion model: the (text-generation) model that proposes the next tracks."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from openai import AsyncOpenAI, AuthenticationError, OpenAIError

from nonstop.constants import LOGGER_NAME
from nonstop.errors import ConfigurationError, TransientNetworkFailure
from nonstop.models.enums import AIProviderType

from .suggestions import SYSTEM_PROMPT

if TYPE_CHECKING:
    from nonstop.controllers.config import SettingsController

LOGGER = logging.getLogger(f"{LOGGER_NAME}.suggestion_model")

# (OpenAI-compatible) endpoint and default model per AI provider
AI_PROVIDER_ENDPOINTS: dict[AIProviderType, tuple[str | None, str]] = {
    AIProviderType.OPENAI: (None, "gpt-4o-mini"),
    AIProviderType.ANTHROPIC: ("https://api.anthropic.com/v1/", "claude-3-haiku-20240307"),
    AIProviderType.GOOGLE: (
        "https://generativelanguage.googleapis.com/v1beta/openai/",
        "gemini-1.5-flash",
    ),
    AIProviderType.GROQ: ("https://api.groq.com/openai/v1", "llama-3.1-8b-instant"),
}


@dataclass(frozen=True, kw_only=True)
class SuggestionRequest:
    """Request for a batch of track suggestions."""

    taste_summary: str
    recent_summary: str
    mood_directive: str = ""
    seed: str = ""
    system_prompt: str = SYSTEM_PROMPT

    @property
    def prompt(self) -> str:
        """Return the user prompt for this request."""
        prompt = (
            f"[{self.seed}] Recent tracks:\n{self.recent_summary}\n\n"
            f"Top artists:\n{self.taste_summary}"
        )
        if self.mood_directive:
            prompt += f"\n\n{self.mood_directive}"
        return prompt + (
            "\n\nSuggest 5 tracks that would flow well. "
            "Consider energy, mood, and genre continuity."
        )

    def to_messages(self) -> list[dict[str, str]]:
        """Return the request as a list of chat messages."""
        return [
            {"role": "system", "content": self.system_prompt},
            {"role": "user", "content": self.prompt},
        ]


class SuggestionModel(Protocol):
    """A (text-generation) model that answers a SuggestionRequest with free-form text."""

    async def generate(self, request: SuggestionRequest) -> str:
        """Generate the (free-form) response for the given request."""
        ...


class OpenAICompatibleModel:
    """SuggestionModel backed by an OpenAI-compatible chat completions endpoint."""

    def __init__(self, api_key: str, model: str, base_url: str | None = None) -> None:
        """Initialize the model client."""
        self.model = model
        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url)

    @classmethod
    def for_provider(cls, provider: AIProviderType, api_key: str) -> OpenAICompatibleModel:
        """Create a model client for one of the supported AI providers."""
        base_url, model = AI_PROVIDER_ENDPOINTS[provider]
        return cls(api_key=api_key, model=model, base_url=base_url)

    async def generate(self, request: SuggestionRequest) -> str:
        """Generate the (free-form) response for the given request."""
        LOGGER.debug("Requesting suggestions from %s", self.model)
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=request.to_messages(),  # type: ignore[arg-type]
            )
        except AuthenticationError as err:
            msg = f"Suggestion model rejected the API key: {err}"
            raise ConfigurationError(msg) from err
        except OpenAIError as err:
            msg = f"Suggestion model request failed: {err}"
            raise TransientNetworkFailure(msg) from err
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def close(self) -> None:
        """Close the underlying http client."""
        await self.client.close()


def create_suggestion_model(settings: SettingsController) -> OpenAICompatibleModel:
    """
    Create the suggestion model for the active AI provider in the settings.

    Raises ConfigurationError if no AI provider is configured or its API key is missing.
    """
    provider = settings.get_active_ai_provider()
    if not (api_key := settings.get_ai_api_key(provider)):
        raise ConfigurationError(f"No API key configured for AI provider {provider}")
    return OpenAICompatibleModel.for_provider(provider, api_key)
