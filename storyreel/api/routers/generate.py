"""Generation router for StoryReel API.

GET  /api/generate   streams progress as server-sent events
POST /api/generate   runs the same pipeline and answers once with JSON

Every run gets its own frame directory, prompt generator and progress
channel, so concurrent requests never share state.
"""

import asyncio
import shutil
import time
import uuid
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Set

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel
from slowapi import Limiter
from slowapi.util import get_remote_address

from storyreel.core.config import StoryReelConfig, get_config
from storyreel.core.constants import VIDEO_URL_PREFIX
from storyreel.core.exceptions import InputValidationError
from storyreel.core.logging_config import get_logger
from storyreel.pipelines.progress import GenerationProgress, GenerationStage
from storyreel.pipelines.story_video_pipeline import (
    GenerationRequest,
    create_pipeline,
    validate_request,
)

from .sse import SSE_HEADERS, ProgressChannel, event_generator

logger = get_logger("api.generate")

router = APIRouter()

# Rate limiter for expensive generation runs
limiter = Limiter(key_func=get_remote_address)

# Strong references to streaming runs still in flight
_active_runs: Set[asyncio.Task] = set()

UNEXPECTED_ERROR = "An unexpected error occurred"


class GenerateRequest(BaseModel):
    prompt: Optional[str] = None
    duration: Optional[float] = None


def _rate_limit() -> str:
    return get_config().server.rate_limit


def _error_response(message: str, status_code: int = 400) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _remove_run_dir(run_dir: Path) -> None:
    try:
        shutil.rmtree(run_dir)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Could not remove frame directory {run_dir}: {e}")


async def run_generation(
    gen_request: GenerationRequest,
    config: StoryReelConfig,
    publish: Optional[Callable[[Dict[str, Any]], None]] = None,
    run_id: Optional[str] = None
) -> Dict[str, Any]:
    """
    Run one generation and build its terminal event.

    Args:
        gen_request: Validated request
        config: Application configuration
        publish: Receives every progress event (with elapsedTime) as it happens
        run_id: Names the run's frame directory; random when omitted

    Returns:
        Terminal event: videoUrl on success, error on failure
    """
    started = time.monotonic()
    run_dir = config.paths.frames_dir / (run_id or uuid.uuid4().hex)

    def stamp(data: Dict[str, Any]) -> Dict[str, Any]:
        data["elapsedTime"] = round(time.monotonic() - started, 3)
        return data

    def on_progress(progress: GenerationProgress) -> None:
        if publish:
            publish(stamp(progress.to_dict()))

    try:
        pipeline = create_pipeline(config, run_dir, on_progress=on_progress)
        result = await pipeline.run(gen_request)
    except Exception as e:
        logger.exception(f"Generation run crashed: {e}")
        return stamp(_error_event(str(e) or UNEXPECTED_ERROR))
    finally:
        _remove_run_dir(run_dir)

    if not result.success:
        logger.error(f"Generation failed ({result.error_type}): {result.error}")
        return stamp(_error_event(result.error or UNEXPECTED_ERROR))

    video = result.output
    event = GenerationProgress(
        frames_generated=video.frames_generated,
        total_frames=video.total_frames,
        current_frame=video.frames_generated,
        stage=GenerationStage.COMPLETE,
        story_progress=video.story,
        message=video.message,
    ).to_dict()
    event["videoUrl"] = f"{VIDEO_URL_PREFIX}/{video.video_path.name}"
    return stamp(event)


def _error_event(message: str) -> Dict[str, Any]:
    return {
        "error": message,
        "stage": GenerationStage.GENERATING.value,
        "message": message,
        "storyProgress": [],
    }


async def _stream_run(gen_request: GenerationRequest, config: StoryReelConfig, channel: ProgressChannel):
    """Background task feeding one SSE stream; the channel always gets a terminal event."""
    try:
        terminal = await run_generation(gen_request, config, publish=channel.emit, run_id=channel.run_id)
    except Exception as e:
        logger.exception(f"Streamed run {channel.run_id} crashed: {e}")
        terminal = _error_event(str(e) or UNEXPECTED_ERROR)
    channel.finish(terminal)


@router.get("/generate")
@limiter.limit(_rate_limit)
async def generate_stream(request: Request, prompt: Optional[str] = None, duration: Optional[str] = None):
    """Generate a video, streaming progress as server-sent events.

    Every event is a JSON object with framesGenerated, totalFrames,
    currentFrame, stage, storyProgress, message and elapsedTime (plus
    currentPrompt while frames are being written). The final event carries
    videoUrl on success or error on failure.
    """
    config = get_config()
    try:
        gen_request = validate_request(prompt, duration, config.generation)
    except InputValidationError as e:
        return _error_response(str(e))

    channel = ProgressChannel()
    logger.info(f"Starting streamed run {channel.run_id}: {gen_request.total_frames} frames")

    task = asyncio.create_task(_stream_run(gen_request, config, channel))
    _active_runs.add(task)
    task.add_done_callback(_active_runs.discard)

    return StreamingResponse(
        event_generator(channel, request),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.post("/generate")
@limiter.limit(_rate_limit)
async def generate_video(request: Request, generate_request: GenerateRequest):
    """Generate a video and answer once it is ready."""
    config = get_config()
    try:
        gen_request = validate_request(generate_request.prompt, generate_request.duration, config.generation)
    except InputValidationError as e:
        return _error_response(str(e))

    terminal = await run_generation(gen_request, config)
    if "error" in terminal:
        return _error_response(terminal["error"], status_code=500)

    return {
        "videoUrl": terminal["videoUrl"],
        "framesGenerated": terminal["framesGenerated"],
        "totalFrames": terminal["totalFrames"],
        "message": terminal["message"],
    }
