"""Tests for the chat stream encoder and chat providers."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from openai import APIConnectionError

from helium.core.errors import UpstreamError
from helium.protocol.messages import EndEvent, ErrorEvent, LiveEvent
from helium.streaming.encoder import (
    NO_MESSAGE,
    SYNTHETIC_TEMPLATE,
    StreamEncoder,
    synthetic_fragments,
)
from helium.streaming.provider import OpenAIChatProvider, create_chat_provider


class FakeProvider:
    """Provider yielding a fixed fragment list, optionally failing midway."""

    def __init__(self, fragments, fail_after: int | None = None):
        self.fragments = fragments
        self.fail_after = fail_after
        self.closed = False
        self.yielded = 0

    async def stream(self, prompt):
        try:
            for i, fragment in enumerate(self.fragments):
                if self.fail_after is not None and i == self.fail_after:
                    raise UpstreamError("upstream exploded")
                self.yielded += 1
                yield fragment
        finally:
            self.closed = True


async def collect(encoder, prompt):
    return [event async for event in encoder.events(prompt)]


class TestSyntheticMode:
    """Tests for replies produced without a provider."""

    def test_fragments_are_space_terminated_words(self):
        fragments = synthetic_fragments("hello")
        assert fragments[0] == "I "
        assert all(fragment.endswith(" ") for fragment in fragments)
        assert "".join(fragments) == SYNTHETIC_TEMPLATE.format(prompt="hello") + " "

    @pytest.mark.asyncio
    async def test_live_events_then_end(self):
        encoder = StreamEncoder(synthetic_delay=0)
        events = await collect(encoder, "hello")

        assert encoder.mode == "synthetic"
        assert all(isinstance(event, LiveEvent) for event in events[:-1])
        assert isinstance(events[-1], EndEvent)

        text = "".join(event.data for event in events[:-1])
        assert '"hello"' in text
        assert text == SYNTHETIC_TEMPLATE.format(prompt="hello") + " "

    @pytest.mark.asyncio
    async def test_deterministic(self):
        encoder = StreamEncoder(synthetic_delay=0)
        first = await collect(encoder, "same prompt")
        second = await collect(encoder, "same prompt")
        assert first == second


class TestRelayMode:
    """Tests for replies relayed from a provider."""

    @pytest.mark.asyncio
    async def test_relays_fragments_in_order(self):
        provider = FakeProvider(["Hel", "lo", " world"])
        encoder = StreamEncoder(provider)
        events = await collect(encoder, "hi")

        assert encoder.mode == "relay"
        assert events == [
            LiveEvent(data="Hel"),
            LiveEvent(data="lo"),
            LiveEvent(data=" world"),
            EndEvent(),
        ]
        assert provider.closed is True

    @pytest.mark.asyncio
    async def test_skips_empty_fragments(self):
        encoder = StreamEncoder(FakeProvider(["a", "", "b"]))
        events = await collect(encoder, "hi")
        assert [event.data for event in events[:-1]] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_upstream_failure_becomes_error_event(self):
        """Fragments before the failure are kept, then a single error ends the stream."""
        provider = FakeProvider(["one", "two", "three"], fail_after=2)
        events = await collect(StreamEncoder(provider), "hi")

        assert events == [
            LiveEvent(data="one"),
            LiveEvent(data="two"),
            ErrorEvent(data="upstream exploded"),
        ]
        assert provider.closed is True

    @pytest.mark.asyncio
    async def test_upstream_failure_without_message(self):
        class Broken:
            async def stream(self, prompt):
                raise RuntimeError()
                yield ""  # pragma: no cover

        events = await collect(StreamEncoder(Broken()), "hi")
        assert len(events) == 1
        assert isinstance(events[0], ErrorEvent)
        assert events[0].data == "An error occurred with the GPT service"

    @pytest.mark.asyncio
    async def test_consumer_stop_closes_upstream(self):
        """Closing the event stream early closes the provider stream."""
        provider = FakeProvider(["a", "b", "c", "d"])
        events = StreamEncoder(provider).events("hi")

        first = await events.__anext__()
        await events.aclose()

        assert first == LiveEvent(data="a")
        assert provider.closed is True
        assert provider.yielded == 1


class TestEmptyPrompt:
    """Tests for prompts that are missing or empty."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("prompt", [None, "", 42, ["hello"]])
    async def test_single_error_event(self, prompt):
        provider = FakeProvider(["never"])
        events = await collect(StreamEncoder(provider), prompt)

        assert events == [ErrorEvent(data=NO_MESSAGE)]
        assert provider.yielded == 0

    @pytest.mark.asyncio
    async def test_synthetic_mode_empty_prompt(self):
        events = await collect(StreamEncoder(synthetic_delay=0), "")
        assert events == [ErrorEvent(data=NO_MESSAGE)]


class TestOpenAIChatProvider:
    """Tests for the OpenAI-backed provider."""

    @staticmethod
    def _chunk(content):
        return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content))])

    @staticmethod
    def _client(response=None, error=None):
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=response, side_effect=error)
        return client

    @pytest.mark.asyncio
    async def test_streams_delta_content(self):
        chunks = [self._chunk("Hi"), self._chunk(None), SimpleNamespace(choices=[]), self._chunk(" there")]

        class Response:
            closed = False

            def __aiter__(self):
                return self._iter()

            async def _iter(self):
                for chunk in chunks:
                    yield chunk

            async def close(self):
                Response.closed = True

        client = self._client(response=Response())
        provider = OpenAIChatProvider(client, model="gpt-4")

        fragments = [fragment async for fragment in provider.stream("hello")]

        assert fragments == ["Hi", " there"]
        assert Response.closed is True
        kwargs = client.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "gpt-4"
        assert kwargs["stream"] is True
        assert kwargs["messages"] == [{"role": "user", "content": "hello"}]

    @pytest.mark.asyncio
    async def test_request_failure_raises_upstream_error(self):
        error = APIConnectionError(request=MagicMock())
        provider = OpenAIChatProvider(self._client(error=error))

        with pytest.raises(UpstreamError):
            async for _ in provider.stream("hello"):
                pass

    def test_factory_without_key(self):
        assert create_chat_provider(None) is None
        assert create_chat_provider("") is None

    def test_factory_with_key(self):
        provider = create_chat_provider("sk-test", model="gpt-4o")
        assert isinstance(provider, OpenAIChatProvider)
        assert provider.model == "gpt-4o"
