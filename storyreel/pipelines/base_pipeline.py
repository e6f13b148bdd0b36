"""
StoryReel Base Pipeline

Abstract base class for step-based processing pipelines.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

from storyreel.core.logging_config import get_logger

logger = get_logger("pipelines.base")

InputT = TypeVar('InputT')
OutputT = TypeVar('OutputT')


class PipelineStatus(Enum):
    """Status of a pipeline execution."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class PipelineResult(Generic[OutputT]):
    """Result from a pipeline execution."""
    status: PipelineStatus
    output: Optional[OutputT] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    duration_seconds: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.status == PipelineStatus.COMPLETED


@dataclass
class PipelineStep:
    """A step in a pipeline."""
    name: str
    description: str
    required: bool = True


class BasePipeline(ABC, Generic[InputT, OutputT]):
    """
    Abstract base class for processing pipelines.

    Each step receives the previous step's output. A failing required step
    ends the run with a FAILED result carrying the error message and type;
    a failing optional step is logged and skipped.
    """

    def __init__(self, name: str):
        """
        Initialize the pipeline.

        Args:
            name: Pipeline name
        """
        self.name = name
        self._steps: List[PipelineStep] = []
        self._current_step: int = 0
        self._status = PipelineStatus.PENDING

        self._define_steps()

    @abstractmethod
    def _define_steps(self) -> None:
        """Define the pipeline steps. Override in subclasses."""
        pass

    @abstractmethod
    async def _execute_step(
        self,
        step: PipelineStep,
        input_data: Any,
        context: Dict[str, Any]
    ) -> Any:
        """Execute a single step. Override in subclasses."""
        pass

    async def run(
        self,
        input_data: InputT,
        context: Dict[str, Any] = None
    ) -> PipelineResult[OutputT]:
        """
        Run the pipeline.

        Args:
            input_data: Input data
            context: Additional context shared by all steps

        Returns:
            PipelineResult with output
        """
        context = context if context is not None else {}
        start_time = datetime.now()

        self._status = PipelineStatus.RUNNING
        self._current_step = 0

        logger.info(f"Starting pipeline: {self.name}")

        try:
            current_data = input_data

            for i, step in enumerate(self._steps):
                self._current_step = i
                logger.debug(f"Executing step {i + 1}/{len(self._steps)}: {step.name}")

                try:
                    current_data = await self._execute_step(step, current_data, context)
                except Exception as e:
                    if step.required:
                        raise
                    logger.warning(f"Optional step failed: {step.name} - {e}")

            self._status = PipelineStatus.COMPLETED
            logger.info(f"Pipeline completed: {self.name} in {self._get_duration(start_time):.1f}s")

            return PipelineResult(
                status=PipelineStatus.COMPLETED,
                output=current_data,
                duration_seconds=self._get_duration(start_time),
                metadata={'steps_completed': len(self._steps)}
            )

        except Exception as e:
            self._status = PipelineStatus.FAILED
            failed_step = self._steps[self._current_step].name if self._steps else None
            logger.error(f"Pipeline failed: {self.name} at step '{failed_step}' - {e}")

            return PipelineResult(
                status=PipelineStatus.FAILED,
                error=str(e),
                error_type=type(e).__name__,
                duration_seconds=self._get_duration(start_time),
                metadata={'failed_step': failed_step}
            )

    def _get_duration(self, start_time: datetime) -> float:
        """Get duration since start time."""
        return (datetime.now() - start_time).total_seconds()

    @property
    def status(self) -> PipelineStatus:
        return self._status

    @property
    def progress(self) -> float:
        """Get current step progress (0-1)."""
        if not self._steps:
            return 0.0
        if self._status == PipelineStatus.COMPLETED:
            return 1.0
        return self._current_step / len(self._steps)

    @property
    def steps(self) -> List[PipelineStep]:
        return self._steps.copy()
