"""
StoryReel - AI Story-to-Video Generation Service

Turns a natural-language story prompt into a short video: a language model
writes one scene description per frame while keeping the narrative coherent,
an image service renders each scene, and ffmpeg stitches the frames together.

Version: 1.0.0
"""

__version__ = "1.0.0"
__author__ = "StoryReel Team"
__project__ = "StoryReel"

from pathlib import Path

# Load environment variables early - before any other imports that might need them
from storyreel.core.env_loader import ensure_env_loaded
ensure_env_loaded()

# Package root directory
PACKAGE_ROOT = Path(__file__).parent
PROJECT_ROOT = PACKAGE_ROOT.parent

__all__ = [
    # Version info
    "__version__",
    "__author__",
    "__project__",
    # Paths
    "PACKAGE_ROOT",
    "PROJECT_ROOT",
]
