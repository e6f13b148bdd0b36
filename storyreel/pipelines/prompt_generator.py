"""
StoryReel Prompt Generator

Writes one scene description per frame while keeping the story coherent.
Each request feeds the last few stored frames back to the language model,
together with where the frame sits in time, and stores the answer in the
story memory.

Completion failures never reach the caller: the generator substitutes a
deterministic templated prompt, records it in memory like any other frame,
and returns it. Only transient failures are retried first; a missing key
or rejected request falls back at once. Frame generation must never stall
on prompt writing.

A PromptGenerator is one story session. Create one per run; it is not
safe to share between concurrent runs.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import AsyncIterator, Dict, List, Optional, Protocol

from storyreel.core.config import CompletionConfig
from storyreel.core.exceptions import StoryNotInitializedError, TransientCompletionError
from storyreel.core.logging_config import get_logger
from storyreel.core.retry import RetryConfig, retry_async_call
from storyreel.llm.completion_client import RETRYABLE_ERRORS

logger = get_logger("pipelines.prompt_generator")


class ChatStreamer(Protocol):
    """Anything that streams chat-completion text chunks."""

    def stream_chat(self, messages: List[Dict[str, str]]) -> AsyncIterator[str]:
        ...


@dataclass(frozen=True)
class StoryFrame:
    """One entry of the story memory."""
    frame_number: int
    prompt: str
    context: str

    def to_dict(self) -> Dict[str, object]:
        return {
            "frameNumber": self.frame_number,
            "prompt": self.prompt,
            "context": self.context,
        }


STYLE_GUIDANCE = """Focus on visual details like:
- Scene composition and setting
- Character actions and expressions
- Lighting and atmosphere
- Camera angles and movement"""


class PromptGenerator:
    """
    Stateful frame-prompt writer for a single story.

    Usage:
        generator = PromptGenerator(CompletionClient(config.completion), config.completion)
        generator.initialize("A fox crosses a frozen lake", fps=30, total_duration_seconds=10)
        prompt = await generator.next_frame_prompt(1, 300)
        ...
        generator.clear()
    """

    def __init__(self, client: ChatStreamer, config: Optional[CompletionConfig] = None):
        """
        Initialize the generator.

        Args:
            client: Streaming completion client
            config: Completion settings (context window, retries)
        """
        self.client = client
        self.config = config or CompletionConfig()
        self.retry_config = RetryConfig(
            max_attempts=self.config.max_attempts,
            base_delay=self.config.base_delay,
            max_delay=self.config.max_delay,
            retryable_exceptions=RETRYABLE_ERRORS,
        )

        self._memory: List[StoryFrame] = []
        self._base_context: str = ""
        self._fps: float = 0
        self._total_duration: float = 0
        self._initialized: bool = False

    # =========================================================================
    # SESSION LIFECYCLE
    # =========================================================================

    def initialize(self, base_prompt: str, fps: float, total_duration_seconds: float) -> None:
        """Start a new story: reset memory and record timing parameters."""
        self._base_context = base_prompt
        self._fps = fps
        self._total_duration = total_duration_seconds
        self._memory = []
        self._initialized = True
        logger.info(f"Story initialized with prompt: {base_prompt!r}")

    def clear(self) -> None:
        """Reset memory, base context and the ready flag."""
        self._memory = []
        self._base_context = ""
        self._fps = 0
        self._total_duration = 0
        self._initialized = False
        logger.info("Story memory cleared")

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def base_prompt(self) -> str:
        return self._base_context

    def history(self) -> List[StoryFrame]:
        """Return a copy of the story memory in insertion order."""
        return list(self._memory)

    def current_context(self) -> str:
        """Return the latest stored prompt, or the base prompt before the first frame."""
        if self._memory:
            return self._memory[-1].prompt
        return self._base_context

    # =========================================================================
    # PROMPT GENERATION
    # =========================================================================

    async def next_frame_prompt(self, frame_number: int, total_frames: int) -> str:
        """
        Produce the prompt for a frame and append it to the story memory.

        Args:
            frame_number: 1-based frame number; must follow the last stored frame
            total_frames: Number of frames in the whole video

        Returns:
            The generated scene description, or the fallback prompt on failure

        Raises:
            StoryNotInitializedError: If initialize() has not been called
            ValueError: If frame_number does not continue the sequence
        """
        if not self._initialized:
            raise StoryNotInitializedError()

        expected = len(self._memory) + 1
        if frame_number != expected:
            raise ValueError(f"Expected frame {expected}, got frame {frame_number}")

        messages = [
            {"role": "system", "content": self.build_system_prompt(frame_number, total_frames)},
            {
                "role": "user",
                "content": f"Generate detailed visual description for frame {frame_number}/{total_frames}",
            },
        ]

        try:
            frame_prompt = await retry_async_call(
                self._collect_completion,
                messages,
                config=self.retry_config,
                description=f"frame prompt {frame_number}",
            )
        except Exception as e:
            logger.error(f"Error generating prompt for frame {frame_number}, using fallback: {e}")
            return self._store_fallback(frame_number)

        self._memory.append(StoryFrame(
            frame_number=frame_number,
            prompt=frame_prompt,
            context=self._abbreviate(frame_prompt),
        ))
        logger.info(f"Added frame {frame_number} to story memory. Total frames: {len(self._memory)}")
        return frame_prompt

    def fallback_prompt(self, frame_number: int) -> str:
        """The deterministic prompt used when the completion service fails."""
        return f"{self._base_context} - Scene {frame_number}"

    def build_system_prompt(self, frame_number: int, total_frames: int) -> str:
        """Compose the system instruction for a frame."""
        recent = self._memory[-self.config.context_window:] if self.config.context_window > 0 else []
        previous_context = "\n".join(
            f"Frame {frame.frame_number}: {frame.context}" for frame in recent
        ) or "(this is the opening frame)"

        elapsed = (frame_number - 1) / self._fps if self._fps else 0.0

        return f"""You are a creative visual storyteller. Create a detailed scene description for frame {frame_number} of {total_frames}
based on this story concept: "{self._base_context}".

Timing: this frame appears at {elapsed:.2f}s of a {self._total_duration:.2f}s video ({self._fps:g} frames per second).
Keep motion continuous with the previous frames at that pace.

Previous frames context:
{previous_context}

Generate a coherent next scene that progresses the story naturally.
{STYLE_GUIDANCE}

Keep transitions smooth and logical between scenes.

Response format: Provide only the scene description, no explanations or additional text.
Keep the description concise but vivid (50-100 words)."""

    async def _collect_completion(self, messages: List[Dict[str, str]]) -> str:
        """Accumulate the streamed completion into one string."""
        parts = []
        async for chunk in self.client.stream_chat(messages):
            parts.append(chunk)
        text = "".join(parts)
        if not text.strip():
            raise TransientCompletionError("Empty response from AI")
        return text.strip()

    def _abbreviate(self, text: str) -> str:
        return text[:self.config.context_chars] + "..."

    def _store_fallback(self, frame_number: int) -> str:
        prompt = self.fallback_prompt(frame_number)
        self._memory.append(StoryFrame(
            frame_number=frame_number,
            prompt=prompt,
            context=f"Fallback scene {frame_number}",
        ))
        return prompt
