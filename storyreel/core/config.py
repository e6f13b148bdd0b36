"""
StoryReel Configuration Management

Centralized configuration system with JSON loading and validation.
"""

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

from .constants import (
    DEFAULT_COMPLETION_MODEL,
    DEFAULT_COMPLETION_STOP,
    DEFAULT_COMPLETION_URL,
    DEFAULT_IMAGE_SERVICE_URL,
    DEFAULT_USER_AGENT,
    FRAME_HEIGHT,
    FRAME_WIDTH,
    STORY_CONTEXT_CHARS,
    STORY_CONTEXT_WINDOW,
)
from .exceptions import ConfigurationError, InvalidConfigError


@dataclass
class PathsConfig:
    """Filesystem layout for frames, videos and logs."""
    frames_dir: Path = field(default_factory=lambda: Path("public/frames"))
    videos_dir: Path = field(default_factory=lambda: Path("public/videos"))
    logs_dir: Path = field(default_factory=lambda: Path("logs"))

    @classmethod
    def from_dict(cls, data: dict) -> 'PathsConfig':
        defaults = cls()
        return cls(
            frames_dir=Path(data.get('frames_dir', defaults.frames_dir)),
            videos_dir=Path(data.get('videos_dir', defaults.videos_dir)),
            logs_dir=Path(data.get('logs_dir', defaults.logs_dir)),
        )

    def ensure_directories(self) -> None:
        """Create the frames and videos directories if missing."""
        for directory in (self.frames_dir, self.videos_dir):
            directory.mkdir(parents=True, exist_ok=True)


@dataclass
class GenerationConfig:
    """Frame generation pacing and acceptance policy."""
    fps: int = 30
    batch_size: int = 5
    launch_delay: float = 0.1  # Seconds between fetch launches inside a batch
    batch_delay: float = 2.0  # Seconds between batches
    min_success_ratio: float = 0.9
    min_duration: float = 1
    max_duration: float = 300
    default_duration: float = 10


@dataclass
class ImageServiceConfig:
    """Remote image service settings."""
    base_url: str = DEFAULT_IMAGE_SERVICE_URL
    width: int = FRAME_WIDTH
    height: int = FRAME_HEIGHT
    quality: int = 100
    timeout: float = 60.0
    max_attempts: int = 5
    base_delay: float = 1.0
    max_delay: float = 10.0
    user_agent: str = DEFAULT_USER_AGENT


@dataclass
class CompletionConfig:
    """Remote text-completion service settings."""
    base_url: str = DEFAULT_COMPLETION_URL
    model: str = DEFAULT_COMPLETION_MODEL
    api_key_env: str = "TOGETHER_API_KEY"  # Environment variable name for API key
    max_tokens: int = 200
    temperature: float = 0.7
    top_p: float = 0.7
    top_k: int = 50
    repetition_penalty: float = 1.0
    stop: List[str] = field(default_factory=lambda: list(DEFAULT_COMPLETION_STOP))
    timeout: float = 60.0
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    context_window: int = STORY_CONTEXT_WINDOW
    context_chars: int = STORY_CONTEXT_CHARS


@dataclass
class EncoderConfig:
    """External video encoder settings."""
    binary: str = "ffmpeg"
    codec: str = "libx264"
    crf: int = 23
    preset: str = "medium"
    pixel_format: str = "yuv420p"
    faststart: bool = True


@dataclass
class ServerConfig:
    """HTTP server settings."""
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: List[str] = field(
        default_factory=lambda: ["http://localhost:3000", "http://127.0.0.1:3000"]
    )
    rate_limit: str = "5/minute"


def _section_from_dict(section_cls, data: dict):
    """Build a flat dataclass section, ignoring unknown keys."""
    known = {f.name for f in fields(section_cls)}
    return section_cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class StoryReelConfig:
    """Main configuration class for StoryReel."""

    project_name: str = "StoryReel"
    version: str = "1.0.0"

    paths: PathsConfig = field(default_factory=PathsConfig)
    generation: GenerationConfig = field(default_factory=GenerationConfig)
    image_service: ImageServiceConfig = field(default_factory=ImageServiceConfig)
    completion: CompletionConfig = field(default_factory=CompletionConfig)
    encoder: EncoderConfig = field(default_factory=EncoderConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    verbose_logging: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> 'StoryReelConfig':
        """Create StoryReelConfig from dictionary."""
        config = cls()

        config.project_name = data.get('project_name', config.project_name)
        config.version = data.get('version', config.version)
        config.verbose_logging = data.get('verbose_logging', config.verbose_logging)

        if 'paths' in data:
            config.paths = PathsConfig.from_dict(data['paths'])
        if 'generation' in data:
            config.generation = _section_from_dict(GenerationConfig, data['generation'])
        if 'image_service' in data:
            config.image_service = _section_from_dict(ImageServiceConfig, data['image_service'])
        if 'completion' in data:
            config.completion = _section_from_dict(CompletionConfig, data['completion'])
        if 'encoder' in data:
            config.encoder = _section_from_dict(EncoderConfig, data['encoder'])
        if 'server' in data:
            config.server = _section_from_dict(ServerConfig, data['server'])

        config.validate()
        return config

    def validate(self) -> None:
        """Raise InvalidConfigError for values the pipeline cannot run with."""
        gen = self.generation
        if gen.fps <= 0:
            raise InvalidConfigError(f"generation.fps must be positive, got {gen.fps}")
        if gen.batch_size < 1:
            raise InvalidConfigError(f"generation.batch_size must be >= 1, got {gen.batch_size}")
        if not 0.0 <= gen.min_success_ratio <= 1.0:
            raise InvalidConfigError(
                f"generation.min_success_ratio must be within [0, 1], got {gen.min_success_ratio}"
            )
        if gen.min_duration <= 0 or gen.min_duration > gen.max_duration:
            raise InvalidConfigError(
                f"Invalid duration bounds: [{gen.min_duration}, {gen.max_duration}]"
            )
        if gen.launch_delay < 0 or gen.batch_delay < 0:
            raise InvalidConfigError("generation delays must not be negative")
        if self.image_service.max_attempts < 1:
            raise InvalidConfigError("image_service.max_attempts must be >= 1")
        if self.completion.max_attempts < 1:
            raise InvalidConfigError("completion.max_attempts must be >= 1")

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-compatible dictionary."""
        return {
            'project_name': self.project_name,
            'version': self.version,
            'verbose_logging': self.verbose_logging,
            'paths': {
                'frames_dir': str(self.paths.frames_dir),
                'videos_dir': str(self.paths.videos_dir),
                'logs_dir': str(self.paths.logs_dir),
            },
            'generation': {f.name: getattr(self.generation, f.name) for f in fields(self.generation)},
            'image_service': {f.name: getattr(self.image_service, f.name) for f in fields(self.image_service)},
            'completion': {f.name: getattr(self.completion, f.name) for f in fields(self.completion)},
            'encoder': {f.name: getattr(self.encoder, f.name) for f in fields(self.encoder)},
            'server': {f.name: getattr(self.server, f.name) for f in fields(self.server)},
        }


def load_config(config_path: Path = None) -> StoryReelConfig:
    """
    Load configuration from JSON file.

    Args:
        config_path: Path to configuration file. If None, uses default.

    Returns:
        Loaded StoryReelConfig instance
    """
    if config_path is None:
        config_path = Path("config/storyreel_config.json")
    config_path = Path(config_path)

    if not config_path.exists():
        # Return default config if file doesn't exist
        return StoryReelConfig()

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise InvalidConfigError(f"Invalid JSON in config file: {e}")
    except OSError as e:
        raise ConfigurationError(f"Failed to load config: {e}")

    if not isinstance(data, dict):
        raise InvalidConfigError("Config file must contain a JSON object")
    try:
        return StoryReelConfig.from_dict(data)
    except TypeError as e:
        raise InvalidConfigError(f"Invalid config value: {e}")


# Global config instance
_config: Optional[StoryReelConfig] = None


def get_config() -> StoryReelConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: StoryReelConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
