"""
StoryReel Progress Model

Observational snapshots emitted while a video is being generated.
Never persisted; the transport layer serializes them as they arrive.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .prompt_generator import StoryFrame


class GenerationStage(Enum):
    """Stage of a generation run."""
    GENERATING = "generating"
    PROCESSING = "processing"
    COMPLETE = "complete"


@dataclass
class GenerationProgress:
    """Progress snapshot for one generation run."""
    frames_generated: int
    total_frames: int
    current_frame: int
    stage: GenerationStage = GenerationStage.GENERATING
    current_prompt: Optional[str] = None
    story_progress: Optional[List[StoryFrame]] = None
    message: Optional[str] = None

    @property
    def percent(self) -> float:
        if not self.total_frames:
            return 0.0
        return self.frames_generated / self.total_frames * 100

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with the camelCase keys the client expects."""
        data: Dict[str, Any] = {
            "framesGenerated": self.frames_generated,
            "totalFrames": self.total_frames,
            "currentFrame": self.current_frame,
            "stage": self.stage.value,
        }
        if self.current_prompt is not None:
            data["currentPrompt"] = self.current_prompt
        if self.story_progress is not None:
            data["storyProgress"] = [frame.to_dict() for frame in self.story_progress]
        if self.message is not None:
            data["message"] = self.message
        return data


ProgressCallback = Callable[[GenerationProgress], None]
