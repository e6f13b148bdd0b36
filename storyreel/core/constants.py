"""
StoryReel Constants

Global constants used throughout the StoryReel system.
"""

import re

# =============================================================================
# FRAME FILES
# =============================================================================

# Zero-padded so a sorted directory listing is playback order
FRAME_PREFIX = "frame_"
FRAME_EXTENSION = ".jpg"
FRAME_INDEX_WIDTH = 4
FRAME_FILENAME_PATTERN = f"{FRAME_PREFIX}%0{FRAME_INDEX_WIDTH}d{FRAME_EXTENSION}"
FRAME_FILENAME_REGEX = re.compile(rf"^{FRAME_PREFIX}(\d{{{FRAME_INDEX_WIDTH}}}){re.escape(FRAME_EXTENSION)}$")

# Every frame is letterboxed onto this canvas before encoding
FRAME_WIDTH = 1024
FRAME_HEIGHT = 1024
FRAME_BACKGROUND = (0, 0, 0)
FRAME_JPEG_QUALITY = 95

VIDEO_EXTENSION = ".mp4"
VIDEO_URL_PREFIX = "/videos"

# =============================================================================
# REMOTE SERVICES
# =============================================================================

DEFAULT_IMAGE_SERVICE_URL = "https://image.pollinations.ai/prompt"
DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; StoryReel/1.0)"

DEFAULT_COMPLETION_URL = "https://api.together.xyz/v1"
DEFAULT_COMPLETION_MODEL = "deepseek-ai/DeepSeek-V3"
DEFAULT_COMPLETION_STOP = ["<｜end▁of▁sentence｜>"]
STREAM_DONE_MARKER = "[DONE]"

# =============================================================================
# STORY MEMORY
# =============================================================================

# Only the most recent frames are fed back into the next prompt
STORY_CONTEXT_WINDOW = 3
STORY_CONTEXT_CHARS = 150
