"""
StoryReel Pipelines

Story session, progress model and the batch orchestrator that turns a
story prompt into a video.
"""

from .base_pipeline import BasePipeline, PipelineResult, PipelineStatus, PipelineStep
from .progress import GenerationProgress, GenerationStage, ProgressCallback
from .prompt_generator import PromptGenerator, StoryFrame
from .story_video_pipeline import (
    GenerationRequest,
    StoryVideoPipeline,
    VideoResult,
    compute_total_frames,
    create_pipeline,
    validate_request,
)

__all__ = [
    'BasePipeline',
    'PipelineResult',
    'PipelineStatus',
    'PipelineStep',
    'GenerationProgress',
    'GenerationStage',
    'ProgressCallback',
    'PromptGenerator',
    'StoryFrame',
    'GenerationRequest',
    'StoryVideoPipeline',
    'VideoResult',
    'compute_total_frames',
    'create_pipeline',
    'validate_request',
]
