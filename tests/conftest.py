"""
Pytest Configuration and Fixtures

Shared fixtures for all tests.
"""

import io
import shutil
import tempfile
from pathlib import Path

import pytest
from PIL import Image

from storyreel.core.config import PathsConfig, StoryReelConfig


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def sample_config() -> dict:
    """Sample configuration for testing."""
    return {
        "project_name": "StoryReel Test",
        "version": "9.9.9",
        "generation": {
            "fps": 24,
            "batch_size": 3,
            "min_duration": 10,
            "max_duration": 30,
        },
        "completion": {
            "model": "test-model",
            "max_attempts": 10,
        },
        "encoder": {
            "crf": 18,
        },
    }


@pytest.fixture
def test_config(temp_dir) -> StoryReelConfig:
    """Configuration with temporary directories and no waiting between retries or batches."""
    config = StoryReelConfig()
    config.paths = PathsConfig(
        frames_dir=temp_dir / "frames",
        videos_dir=temp_dir / "videos",
        logs_dir=temp_dir / "logs",
    )
    config.generation.launch_delay = 0
    config.generation.batch_delay = 0
    config.image_service.max_attempts = 2
    config.image_service.base_delay = 0
    config.image_service.max_delay = 0
    config.completion.max_attempts = 2
    config.completion.base_delay = 0
    config.completion.max_delay = 0
    config.server.rate_limit = "1000/minute"
    return config


@pytest.fixture
def image_bytes() -> bytes:
    """A small landscape PNG."""
    buffer = io.BytesIO()
    Image.new("RGB", (64, 32), color=(200, 40, 40)).save(buffer, format="PNG")
    return buffer.getvalue()
