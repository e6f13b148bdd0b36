"""
Tests for Exceptions Module

Tests for storyreel/core/exceptions.py
"""

from storyreel.core.exceptions import (
    CompletionError,
    EncoderFailedError,
    EncoderUnavailableError,
    InputValidationError,
    InsufficientFramesError,
    PipelineError,
    RemoteServiceError,
    StoryReelError,
)


class TestExceptionMessages:
    """Tests for user-facing exception messages."""

    def test_details_appended(self):
        """Test the base error appends its details."""
        error = StoryReelError("Something broke", {"frame": 3})

        assert str(error) == "Something broke | Details: {'frame': 3}"

    def test_insufficient_frames_message(self):
        """Test the yield error cites the counts."""
        error = InsufficientFramesError(6, 10, 0.9)

        assert str(error) == "Not enough frames generated. Got 6 of 10 frames."
        assert isinstance(error, PipelineError)

    def test_input_validation_message_only(self):
        """Test validation errors read as plain messages."""
        error = InputValidationError("prompt", "Prompt is required")

        assert str(error) == "Prompt is required"
        assert error.field == "prompt"

    def test_completion_error_status(self):
        """Test completion errors keep the HTTP status."""
        error = CompletionError("rate limited", status_code=429)

        assert error.status_code == 429
        assert isinstance(error, RemoteServiceError)

    def test_encoder_unavailable_names_binary(self):
        """Test the missing-encoder message names the binary."""
        assert "'ffmpeg' not found" in str(EncoderUnavailableError("ffmpeg"))

    def test_encoder_failure_shows_stderr_tail(self):
        """Test only the last stderr lines are shown."""
        stderr = "\n".join(f"line {i}" for i in range(10))
        message = str(EncoderFailedError(1, stderr=stderr))

        assert "line 9" in message
        assert "line 4" not in message
