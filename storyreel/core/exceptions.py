"""
StoryReel Custom Exceptions

Custom exception classes for error handling throughout the StoryReel system.
"""

from typing import List, Optional


class StoryReelError(Exception):
    """Base exception for all StoryReel errors."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================

class ConfigurationError(StoryReelError):
    """Raised when there's an issue with configuration."""
    pass


class MissingConfigError(ConfigurationError):
    """Raised when a required configuration is missing."""
    pass


class InvalidConfigError(ConfigurationError):
    """Raised when a configuration value is invalid."""
    pass


# =============================================================================
# INPUT ERRORS
# =============================================================================

class InputValidationError(StoryReelError):
    """Raised when request parameters are missing or out of range."""

    def __init__(self, field: str, reason: str):
        super().__init__(reason, {"field": field})
        self.field = field

    def __str__(self):
        return self.message


# =============================================================================
# REMOTE SERVICE ERRORS
# =============================================================================

class RemoteServiceError(StoryReelError):
    """Base exception for failures talking to a remote service."""
    pass


class ImageFetchError(RemoteServiceError):
    """Raised when the image service returns an unusable payload."""

    def __init__(self, frame_index: int, reason: str):
        message = f"Image fetch for frame {frame_index} failed: {reason}"
        super().__init__(message, {"frame_index": frame_index, "reason": reason})
        self.frame_index = frame_index


class CompletionError(RemoteServiceError):
    """Raised when the text-completion service fails or returns nothing."""

    def __init__(self, reason: str, status_code: Optional[int] = None):
        message = f"Text completion failed: {reason}"
        details = {"reason": reason}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message, details)
        self.status_code = status_code


class TransientCompletionError(CompletionError):
    """Raised for completion failures worth retrying (rate limits, server errors, broken streams)."""
    pass


# =============================================================================
# PIPELINE ERRORS
# =============================================================================

class PipelineError(StoryReelError):
    """Base exception for pipeline errors."""
    pass


class StoryNotInitializedError(PipelineError):
    """Raised when a frame prompt is requested before the story is initialized."""

    def __init__(self):
        super().__init__("Story not initialized. Call initialize() first.")


class SequenceIntegrityError(PipelineError):
    """Raised when frame files do not form a gapless zero-based sequence."""

    def __init__(self, expected: int, found_indices: List[int]):
        found = set(found_indices)
        missing = sorted(set(range(expected)) - found)
        unexpected = sorted(found - set(range(expected)))
        message = (
            f"Frame sequence is not contiguous: expected frames 0..{expected - 1}, "
            f"found {len(found_indices)} file(s)"
        )
        super().__init__(message, {"missing": missing[:20], "unexpected": unexpected[:20]})
        self.expected = expected
        self.missing = missing
        self.unexpected = unexpected


class InsufficientFramesError(PipelineError):
    """Raised when fewer frames succeeded than the minimum success ratio allows."""

    def __init__(self, generated: int, requested: int, min_ratio: float):
        message = f"Not enough frames generated. Got {generated} of {requested} frames."
        super().__init__(message)
        self.generated = generated
        self.requested = requested
        self.min_ratio = min_ratio


# =============================================================================
# ENCODER ERRORS
# =============================================================================

class EncoderError(StoryReelError):
    """Base exception for video encoder errors."""
    pass


class EncoderUnavailableError(EncoderError):
    """Raised when the encoder binary cannot be found."""

    def __init__(self, binary: str):
        message = (
            f"Video encoder '{binary}' not found. "
            f"Install ffmpeg or set encoder.binary in the configuration."
        )
        super().__init__(message, {"binary": binary})
        self.binary = binary

    def __str__(self):
        return self.message


class EncoderFailedError(EncoderError):
    """Raised when the encoder exits with a non-zero status."""

    def __init__(self, return_code: int, stderr: str = "", stdout: str = ""):
        message = f"Encoder process exited with code {return_code}"
        super().__init__(message, {"return_code": return_code})
        self.return_code = return_code
        self.stderr = stderr
        self.stdout = stdout

    def __str__(self):
        tail = self.stderr.strip().splitlines()[-5:] if self.stderr else []
        if tail:
            return f"{self.message}: " + " / ".join(tail)
        return self.message
