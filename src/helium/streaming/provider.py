"""Chat-completion providers that stream text fragments."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Protocol

import structlog
from openai import AsyncOpenAI, OpenAIError

from helium.core.errors import UpstreamError

logger = structlog.get_logger()


class ChatProvider(Protocol):
    """Submits a prompt and yields text fragments as they arrive."""

    def stream(self, prompt: str) -> AsyncGenerator[str, None]: ...


class OpenAIChatProvider:
    """Streams chat completions from the OpenAI API."""

    def __init__(self, client: AsyncOpenAI, model: str = "gpt-4"):
        self._client = client
        self._model = model

    @property
    def model(self) -> str:
        return self._model

    async def stream(self, prompt: str) -> AsyncGenerator[str, None]:
        """Yield content deltas for a single user prompt.

        Raises:
            UpstreamError: If the request or the stream fails.
        """
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[{"role": "user", "content": prompt}],
                stream=True,
            )
        except OpenAIError as e:
            raise UpstreamError(str(e) or "An error occurred with the GPT service") from e

        try:
            async for chunk in response:
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    yield content
        except OpenAIError as e:
            raise UpstreamError(str(e) or "An error occurred with the GPT service") from e
        finally:
            await response.close()


def create_chat_provider(api_key: str | None, model: str = "gpt-4") -> ChatProvider | None:
    """Create the OpenAI provider, or None when no API key is configured."""
    if not api_key:
        logger.info("OpenAI API key not configured, chat uses synthetic replies")
        return None
    return OpenAIChatProvider(AsyncOpenAI(api_key=api_key), model=model)
