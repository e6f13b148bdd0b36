"""API routers for StoryReel."""

from storyreel.api.routers import generate, sse, videos

__all__ = ["generate", "sse", "videos"]
