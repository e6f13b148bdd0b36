"""
Tests for Configuration Module

Tests for storyreel/core/config.py
"""

import json
from pathlib import Path

import pytest

from storyreel.core.config import (
    StoryReelConfig,
    get_config,
    load_config,
    set_config,
)
from storyreel.core.exceptions import ConfigurationError, InvalidConfigError


class TestStoryReelConfig:
    """Tests for StoryReelConfig class."""

    def test_default_config(self):
        """Test default configuration values."""
        config = StoryReelConfig()

        assert config.project_name == "StoryReel"
        assert config.generation.fps == 30
        assert config.generation.batch_size == 5
        assert config.generation.min_success_ratio == 0.9
        assert config.image_service.max_attempts == 5
        assert config.image_service.timeout == 60.0
        assert config.completion.api_key_env == "TOGETHER_API_KEY"
        assert config.encoder.crf == 23
        assert config.encoder.preset == "medium"
        assert config.paths.frames_dir == Path("public/frames")

    def test_config_from_dict(self, sample_config):
        """Test creating config from dictionary."""
        config = StoryReelConfig.from_dict(sample_config)

        assert config.project_name == "StoryReel Test"
        assert config.generation.fps == 24
        assert config.generation.min_duration == 10
        assert config.generation.max_duration == 30
        assert config.completion.model == "test-model"
        assert config.completion.max_attempts == 10
        assert config.encoder.crf == 18

    def test_from_dict_keeps_unset_defaults(self, sample_config):
        """Test sections only override the keys they name."""
        config = StoryReelConfig.from_dict(sample_config)

        assert config.generation.min_success_ratio == 0.9
        assert config.encoder.preset == "medium"
        assert config.image_service.width == 1024

    def test_from_dict_ignores_unknown_keys(self):
        """Test unknown section keys are ignored."""
        config = StoryReelConfig.from_dict({"generation": {"fps": 12, "turbo": True}})

        assert config.generation.fps == 12
        assert not hasattr(config.generation, "turbo")

    def test_paths_from_dict(self):
        """Test path values become Path objects."""
        config = StoryReelConfig.from_dict({"paths": {"frames_dir": "/tmp/f"}})

        assert config.paths.frames_dir == Path("/tmp/f")
        assert config.paths.videos_dir == Path("public/videos")

    def test_config_to_dict(self):
        """Test converting config to a JSON-compatible dictionary."""
        config_dict = StoryReelConfig().to_dict()

        assert config_dict["generation"]["fps"] == 30
        assert config_dict["paths"]["frames_dir"] == "public/frames"
        json.dumps(config_dict)

    def test_ensure_directories(self, temp_dir):
        """Test frames and videos directories are created."""
        config = StoryReelConfig.from_dict({
            "paths": {"frames_dir": str(temp_dir / "a" / "frames"), "videos_dir": str(temp_dir / "b")}
        })

        config.paths.ensure_directories()

        assert (temp_dir / "a" / "frames").is_dir()
        assert (temp_dir / "b").is_dir()


class TestConfigValidation:
    """Tests for rejected configuration values."""

    @pytest.mark.parametrize("section,values", [
        ("generation", {"batch_size": 0}),
        ("generation", {"fps": 0}),
        ("generation", {"min_success_ratio": 1.5}),
        ("generation", {"min_duration": 40, "max_duration": 30}),
        ("generation", {"batch_delay": -1}),
        ("image_service", {"max_attempts": 0}),
        ("completion", {"max_attempts": 0}),
    ])
    def test_invalid_values_rejected(self, section, values):
        """Test out-of-range values raise InvalidConfigError."""
        with pytest.raises(InvalidConfigError):
            StoryReelConfig.from_dict({section: values})


class TestLoadConfig:
    """Tests for config loading."""

    def test_load_config_from_file(self, temp_dir, sample_config):
        """Test loading config from JSON file."""
        config_path = temp_dir / "test_config.json"
        config_path.write_text(json.dumps(sample_config), encoding="utf-8")

        config = load_config(config_path)

        assert config.generation.fps == 24

    def test_load_config_missing_file(self, temp_dir):
        """Test loading config from non-existent file returns default."""
        config = load_config(temp_dir / "nonexistent.json")

        assert config.project_name == "StoryReel"

    def test_load_config_malformed_json(self, temp_dir):
        """Test malformed JSON raises InvalidConfigError."""
        config_path = temp_dir / "broken.json"
        config_path.write_text("{not json", encoding="utf-8")

        with pytest.raises(InvalidConfigError):
            load_config(config_path)

    def test_load_config_not_an_object(self, temp_dir):
        """Test a JSON array is rejected."""
        config_path = temp_dir / "list.json"
        config_path.write_text("[1, 2]", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            load_config(config_path)


class TestGlobalConfig:
    """Tests for the process-wide config accessors."""

    def test_set_and_get_config(self):
        """Test set_config replaces the global instance."""
        original = get_config()
        custom = StoryReelConfig(project_name="Custom")
        try:
            set_config(custom)
            assert get_config() is custom
        finally:
            set_config(original)
