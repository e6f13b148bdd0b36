"""
Tests for Prompt Generator

Tests for storyreel/pipelines/prompt_generator.py
"""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from storyreel.core.exceptions import CompletionError, StoryNotInitializedError, TransientCompletionError
from storyreel.llm.completion_client import CompletionClient
from storyreel.pipelines.prompt_generator import PromptGenerator, StoryFrame

from tests.fakes import FailingChatClient, FakeChatClient

BASE_PROMPT = "A fox crosses a frozen lake"


def _generator(client, test_config):
    generator = PromptGenerator(client, test_config.completion)
    generator.initialize(BASE_PROMPT, fps=30, total_duration_seconds=10)
    return generator


class TestSessionLifecycle:
    """Tests for initialize/clear and state accessors."""

    @pytest.mark.asyncio
    async def test_requires_initialize(self, test_config):
        """Test prompts cannot be requested before initialize()."""
        generator = PromptGenerator(FakeChatClient(), test_config.completion)

        with pytest.raises(StoryNotInitializedError):
            await generator.next_frame_prompt(1, 10)

    @pytest.mark.asyncio
    async def test_clear_resets_state(self, test_config):
        """Test clear() empties memory and the ready flag."""
        generator = _generator(FakeChatClient(), test_config)
        await generator.next_frame_prompt(1, 10)

        generator.clear()

        assert generator.history() == []
        assert not generator.is_initialized
        assert generator.base_prompt == ""

    @pytest.mark.asyncio
    async def test_initialize_starts_new_story(self, test_config):
        """Test re-initializing discards the previous story."""
        generator = _generator(FakeChatClient(), test_config)
        await generator.next_frame_prompt(1, 10)

        generator.initialize("Another story", fps=24, total_duration_seconds=5)

        assert generator.history() == []
        assert generator.current_context() == "Another story"

    @pytest.mark.asyncio
    async def test_current_context(self, test_config):
        """Test current context is the base prompt, then the latest frame prompt."""
        generator = _generator(FakeChatClient(["The fox pauses at the shore."]), test_config)

        assert generator.current_context() == BASE_PROMPT
        await generator.next_frame_prompt(1, 10)
        assert generator.current_context() == "The fox pauses at the shore."


class TestStoryMemory:
    """Tests for story memory contents."""

    @pytest.mark.asyncio
    async def test_memory_tracks_every_call(self, test_config):
        """Test N calls, successes or fallbacks, leave frames 1..N in memory."""
        client = FakeChatClient([
            "Dawn over the ice.",
            httpx.ConnectError("down"), httpx.ConnectError("still down"),
            "The fox steps onto the lake.",
            "",
            "Snow begins to fall.",
        ])
        generator = _generator(client, test_config)

        for frame_number in range(1, 6):
            await generator.next_frame_prompt(frame_number, 5)

        history = generator.history()
        assert len(history) == 5
        assert [frame.frame_number for frame in history] == [1, 2, 3, 4, 5]

    @pytest.mark.asyncio
    async def test_history_is_a_copy(self, test_config):
        """Test the returned history is unaffected by later changes."""
        generator = _generator(FakeChatClient(), test_config)
        await generator.next_frame_prompt(1, 10)

        snapshot = generator.history()
        snapshot.append(StoryFrame(99, "intruder", "intruder"))
        await generator.next_frame_prompt(2, 10)

        assert len(snapshot) == 2
        assert [frame.frame_number for frame in generator.history()] == [1, 2]

    @pytest.mark.asyncio
    async def test_frames_must_be_sequential(self, test_config):
        """Test skipping a frame number is rejected."""
        generator = _generator(FakeChatClient(), test_config)

        with pytest.raises(ValueError):
            await generator.next_frame_prompt(2, 10)

    @pytest.mark.asyncio
    async def test_context_is_abbreviated(self, test_config):
        """Test stored context is the first 150 characters plus an ellipsis."""
        long_prompt = " ".join(["glittering"] * 30)
        generator = _generator(FakeChatClient([long_prompt]), test_config)

        prompt = await generator.next_frame_prompt(1, 10)

        frame = generator.history()[0]
        assert frame.prompt == prompt == long_prompt
        assert frame.context == long_prompt[:150] + "..."

    def test_story_frame_to_dict(self):
        """Test serialization uses camelCase keys."""
        frame = StoryFrame(frame_number=2, prompt="p", context="c")

        assert frame.to_dict() == {"frameNumber": 2, "prompt": "p", "context": "c"}


class TestFallback:
    """Tests for the fallback prompt policy."""

    @pytest.mark.asyncio
    async def test_always_failing_service_uses_fallback(self, test_config):
        """Test every prompt is the deterministic fallback when completion always fails."""
        client = FailingChatClient()
        generator = _generator(client, test_config)

        prompts = [await generator.next_frame_prompt(n, 3) for n in range(1, 4)]

        assert prompts == [f"{BASE_PROMPT} - Scene {n}" for n in range(1, 4)]
        assert [frame.context for frame in generator.history()] == [
            "Fallback scene 1", "Fallback scene 2", "Fallback scene 3"
        ]
        assert len(client.calls) == 3 * test_config.completion.max_attempts

    @pytest.mark.asyncio
    async def test_empty_completion_falls_back(self, test_config):
        """Test a blank completion counts as a failure."""
        generator = _generator(FakeChatClient(["   ", "   "]), test_config)

        prompt = await generator.next_frame_prompt(1, 10)

        assert prompt == generator.fallback_prompt(1)

    @pytest.mark.asyncio
    async def test_completion_retried_before_fallback(self, test_config):
        """Test a single transient failure is retried, not replaced."""
        client = FakeChatClient([TransientCompletionError("overloaded", status_code=503), "Recovered scene."])
        generator = _generator(client, test_config)

        prompt = await generator.next_frame_prompt(1, 10)

        assert prompt == "Recovered scene."
        assert len(client.calls) == 2

    @pytest.mark.asyncio
    async def test_missing_api_key_falls_back_without_waiting(self, test_config):
        """Test a missing key is not retried, so no backoff sleep happens."""
        test_config.completion.max_attempts = 3
        generator = _generator(CompletionClient(test_config.completion, api_key=""), test_config)

        with patch("storyreel.core.retry.asyncio.sleep", new_callable=AsyncMock) as sleep:
            prompt = await generator.next_frame_prompt(1, 300)

        assert prompt == f"{BASE_PROMPT} - Scene 1"
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rejected_request_not_retried(self, test_config):
        """Test a 401 from the service falls back after a single attempt."""
        client = FakeChatClient([CompletionError("invalid api key", status_code=401), "Never used."])
        generator = _generator(client, test_config)

        prompt = await generator.next_frame_prompt(1, 10)

        assert prompt == generator.fallback_prompt(1)
        assert len(client.calls) == 1

    @pytest.mark.asyncio
    async def test_connection_error_retried(self, test_config):
        """Test transport failures are retried before falling back."""
        client = FakeChatClient([httpx.ConnectError("refused"), "Back online."])
        generator = _generator(client, test_config)

        prompt = await generator.next_frame_prompt(1, 10)

        assert prompt == "Back online."
        assert len(client.calls) == 2


class TestSystemPrompt:
    """Tests for the per-frame system instruction."""

    @pytest.mark.asyncio
    async def test_only_recent_frames_included(self, test_config):
        """Test the context window limits how many frames are fed back."""
        client = FakeChatClient(["First scene.", "Second scene.", "Third scene.", "Fourth scene."])
        generator = _generator(client, test_config)
        for frame_number in range(1, 5):
            await generator.next_frame_prompt(frame_number, 10)

        system_prompt = generator.build_system_prompt(5, 10)

        assert "Frame 1:" not in system_prompt
        assert "Frame 2: Second scene...." in system_prompt
        assert "Frame 4: Fourth scene...." in system_prompt
        assert BASE_PROMPT in system_prompt

    def test_timing_included(self, test_config):
        """Test the frame's position in time is described."""
        generator = _generator(FakeChatClient(), test_config)

        system_prompt = generator.build_system_prompt(31, 300)

        assert "frame 31 of 300" in system_prompt
        assert "1.00s of a 10.00s video" in system_prompt
        assert "(this is the opening frame)" in system_prompt

    @pytest.mark.asyncio
    async def test_messages_sent_to_client(self, test_config):
        """Test the system and user messages for a frame."""
        client = FakeChatClient()
        generator = _generator(client, test_config)

        await generator.next_frame_prompt(1, 10)

        system, user = client.calls[0]
        assert system["role"] == "system"
        assert user == {"role": "user", "content": "Generate detailed visual description for frame 1/10"}
