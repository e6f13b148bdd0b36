"""
StoryReel Story Video Pipeline

Drives a full story-to-video run:

1. Frame generation - frames are processed in fixed-size batches. Inside a
   batch the prompts are written one after another (each depends on the
   story so far) while the image fetches run concurrently. Batches never
   overlap, so at most one batch of fetches is in flight.
2. Yield check - too few successful frames fails the run.
3. Sequence validation - successful frames are renumbered to close the
   gaps left by failed fetches, then the directory must hold exactly
   frames 0..N-1.
4. Video assembly - ffmpeg encodes the sequence.

Frame files and story memory are cleaned up whatever the outcome.
"""

from __future__ import annotations

import asyncio
import math
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from storyreel.core.config import GenerationConfig, StoryReelConfig
from storyreel.core.constants import VIDEO_EXTENSION
from storyreel.core.exceptions import InputValidationError, InsufficientFramesError
from storyreel.core.frame_files import cleanup_frames, compact_frames, validate_frame_sequence
from storyreel.core.image_fetcher import ImageFetcher
from storyreel.core.logging_config import get_logger
from storyreel.core.video_assembler import VideoAssembler
from storyreel.llm.completion_client import CompletionClient

from .base_pipeline import BasePipeline, PipelineResult, PipelineStep
from .progress import GenerationProgress, GenerationStage, ProgressCallback
from .prompt_generator import PromptGenerator, StoryFrame

logger = get_logger("pipelines.story_video")


# =============================================================================
# REQUEST
# =============================================================================

def compute_total_frames(duration: float, fps: int) -> int:
    """Number of frames for a duration, rounded half up."""
    return int(math.floor(duration * fps + 0.5))


@dataclass
class GenerationRequest:
    """A validated story-to-video request."""
    prompt: str
    duration: float
    fps: int

    @property
    def total_frames(self) -> int:
        return compute_total_frames(self.duration, self.fps)


def validate_request(
    prompt: Optional[str],
    duration: Any,
    config: GenerationConfig
) -> GenerationRequest:
    """
    Validate raw request parameters against the configured policy.

    Args:
        prompt: Story prompt (required, non-empty)
        duration: Duration in seconds; the configured default when None
        config: Generation settings holding the allowed duration range

    Returns:
        GenerationRequest ready to run

    Raises:
        InputValidationError: Missing prompt or out-of-range duration
    """
    if prompt is None or not str(prompt).strip():
        raise InputValidationError("prompt", "Prompt is required")

    if duration is None or duration == "":
        duration = config.default_duration
    try:
        duration = float(duration)
    except (TypeError, ValueError):
        raise InputValidationError("duration", f"Duration must be a number, got {duration!r}")

    if math.isnan(duration) or not config.min_duration <= duration <= config.max_duration:
        raise InputValidationError(
            "duration",
            f"Duration must be between {config.min_duration:g} and {config.max_duration:g} seconds"
        )

    request = GenerationRequest(prompt=str(prompt).strip(), duration=duration, fps=config.fps)
    if request.total_frames < 1:
        raise InputValidationError("duration", "Duration is too short to produce a single frame")
    return request


# =============================================================================
# RESULTS
# =============================================================================

@dataclass
class FrameBatchResult:
    """Outcome of the frame generation step."""
    total_frames: int
    frames: Dict[int, Path] = field(default_factory=dict)  # frame index -> file
    failed: List[int] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.frames)

    def ordered_paths(self) -> List[Path]:
        return [self.frames[index] for index in sorted(self.frames)]


@dataclass
class VideoResult:
    """Final output of a successful run."""
    video_path: Path
    frames_generated: int
    total_frames: int
    message: str
    story: List[StoryFrame] = field(default_factory=list)


# =============================================================================
# PIPELINE
# =============================================================================

class StoryVideoPipeline(BasePipeline[GenerationRequest, VideoResult]):
    """
    Batch orchestrator for one story-to-video run.

    The pipeline owns its frame directory and prompt generator for the
    duration of a run; give every concurrent run its own instance.

    Usage:
        pipeline = create_pipeline(config, frame_dir, on_progress=print)
        result = await pipeline.run(request)
        if result.success:
            print(result.output.video_path)
    """

    def __init__(
        self,
        prompt_generator: PromptGenerator,
        image_fetcher: ImageFetcher,
        assembler: VideoAssembler,
        frame_dir: Path,
        video_dir: Path,
        config: Optional[GenerationConfig] = None,
        on_progress: Optional[ProgressCallback] = None
    ):
        self.prompt_generator = prompt_generator
        self.image_fetcher = image_fetcher
        self.assembler = assembler
        self.frame_dir = Path(frame_dir)
        self.video_dir = Path(video_dir)
        self.config = config or GenerationConfig()
        self._on_progress = on_progress
        self._frames_done = 0
        super().__init__("story_video")

    def _define_steps(self) -> None:
        self._steps = [
            PipelineStep("generate_frames", "Write frame prompts and fetch images in batches"),
            PipelineStep("check_yield", "Enforce the minimum success ratio"),
            PipelineStep("validate_sequence", "Close gaps and verify the frame sequence"),
            PipelineStep("assemble_video", "Encode frames into a video"),
        ]

    async def run(
        self,
        input_data: GenerationRequest,
        context: Dict[str, Any] = None
    ) -> PipelineResult[VideoResult]:
        """Run the pipeline, always cleaning up frames and story memory afterwards."""
        context = context if context is not None else {}
        context["request"] = input_data
        try:
            self.frame_dir.mkdir(parents=True, exist_ok=True)
            self.prompt_generator.initialize(input_data.prompt, input_data.fps, input_data.duration)
            logger.info(
                f"Generating {input_data.total_frames} frames for prompt: {input_data.prompt!r}"
            )
            return await super().run(input_data, context)
        finally:
            cleanup_frames(self.frame_dir)
            self.prompt_generator.clear()

    async def _execute_step(
        self,
        step: PipelineStep,
        input_data: Any,
        context: Dict[str, Any]
    ) -> Any:
        request: GenerationRequest = context["request"]
        if step.name == "generate_frames":
            return await self._generate_frames(request)
        if step.name == "check_yield":
            return self._check_yield(input_data)
        if step.name == "validate_sequence":
            return self._validate_sequence(input_data)
        if step.name == "assemble_video":
            return await self._assemble_video(input_data, request)
        raise ValueError(f"Unknown step: {step.name}")

    # =========================================================================
    # STEP: GENERATE FRAMES
    # =========================================================================

    async def _generate_frames(self, request: GenerationRequest) -> FrameBatchResult:
        total = request.total_frames
        batch_size = self.config.batch_size
        result = FrameBatchResult(total_frames=total)
        self._frames_done = 0

        self._emit(GenerationProgress(
            frames_generated=0,
            total_frames=total,
            current_frame=0,
            story_progress=[],
            message="Starting frame generation...",
        ))

        batches = [range(start, min(start + batch_size, total)) for start in range(0, total, batch_size)]

        for batch_number, batch in enumerate(batches, start=1):
            tasks: Dict[int, asyncio.Task] = {}
            try:
                for index in batch:
                    frame_number = index + 1
                    prompt = await self.prompt_generator.next_frame_prompt(frame_number, total)
                    self._emit(GenerationProgress(
                        frames_generated=self._frames_done,
                        total_frames=total,
                        current_frame=frame_number,
                        current_prompt=prompt,
                        story_progress=self.prompt_generator.history(),
                        message=f"Generating frame {frame_number} of {total}",
                    ))
                    tasks[index] = asyncio.create_task(self._fetch_frame(prompt, index))
                    if self.config.launch_delay:
                        await asyncio.sleep(self.config.launch_delay)
            except BaseException:
                for task in tasks.values():
                    task.cancel()
                await asyncio.gather(*tasks.values(), return_exceptions=True)
                raise

            outcomes = await asyncio.gather(*tasks.values(), return_exceptions=True)
            for index, outcome in zip(tasks.keys(), outcomes):
                if isinstance(outcome, BaseException):
                    result.failed.append(index)
                    logger.error(f"Frame {index} failed: {outcome}")
                else:
                    result.frames[index] = outcome

            logger.info(
                f"Batch {batch_number}/{len(batches)} done: "
                f"{result.success_count} succeeded, {len(result.failed)} failed so far"
            )

            if batch_number < len(batches) and self.config.batch_delay:
                await asyncio.sleep(self.config.batch_delay)

        return result

    async def _fetch_frame(self, prompt: str, index: int) -> Path:
        path = await self.image_fetcher.fetch(prompt, index, self.frame_dir)
        self._frames_done += 1
        return path

    # =========================================================================
    # STEP: CHECK YIELD
    # =========================================================================

    def _check_yield(self, batch_result: FrameBatchResult) -> FrameBatchResult:
        generated = batch_result.success_count
        requested = batch_result.total_frames
        minimum = requested * self.config.min_success_ratio

        if generated == 0 or generated < minimum:
            raise InsufficientFramesError(generated, requested, self.config.min_success_ratio)

        if batch_result.failed:
            logger.warning(f"Proceeding with {generated} of {requested} frames")
        return batch_result

    # =========================================================================
    # STEP: VALIDATE SEQUENCE
    # =========================================================================

    def _validate_sequence(self, batch_result: FrameBatchResult) -> FrameBatchResult:
        compacted = compact_frames(batch_result.ordered_paths())
        validate_frame_sequence(self.frame_dir, len(compacted))
        batch_result.frames = dict(enumerate(compacted))
        return batch_result

    # =========================================================================
    # STEP: ASSEMBLE VIDEO
    # =========================================================================

    async def _assemble_video(self, batch_result: FrameBatchResult, request: GenerationRequest) -> VideoResult:
        generated = batch_result.success_count
        total = batch_result.total_frames
        story = self.prompt_generator.history()

        self._emit(GenerationProgress(
            frames_generated=generated,
            total_frames=total,
            current_frame=generated,
            stage=GenerationStage.PROCESSING,
            story_progress=story,
            message="Creating video from frames...",
        ))

        output_path = self.video_dir / f"video_{int(time.time() * 1000)}{VIDEO_EXTENSION}"
        video_path = await self.assembler.assemble(self.frame_dir, output_path, request.fps)

        if generated == total:
            message = "All frames generated successfully"
        else:
            message = f"Generated {generated} of {total} frames successfully"

        return VideoResult(
            video_path=video_path,
            frames_generated=generated,
            total_frames=total,
            message=message,
            story=story,
        )

    def _emit(self, progress: GenerationProgress) -> None:
        if not self._on_progress:
            return
        try:
            self._on_progress(progress)
        except Exception as e:
            logger.warning(f"Progress callback error: {e}")


def create_pipeline(
    config: StoryReelConfig,
    frame_dir: Path,
    on_progress: Optional[ProgressCallback] = None
) -> StoryVideoPipeline:
    """
    Build a pipeline with a fresh prompt generator and service clients.

    Args:
        config: Application configuration
        frame_dir: Directory owned exclusively by this run
        on_progress: Optional progress callback

    Returns:
        Ready-to-run StoryVideoPipeline
    """
    client = CompletionClient(config.completion)
    return StoryVideoPipeline(
        prompt_generator=PromptGenerator(client, config.completion),
        image_fetcher=ImageFetcher(config.image_service),
        assembler=VideoAssembler(config.encoder),
        frame_dir=frame_dir,
        video_dir=config.paths.videos_dir,
        config=config.generation,
        on_progress=on_progress,
    )
