"""
Startup validation and environment checks.

Validates configuration, API keys and the encoder binary at application startup.
"""

import os
import shutil
from dataclasses import dataclass, field
from typing import List

from storyreel.core.config import StoryReelConfig
from storyreel.core.env_loader import get_api_key
from storyreel.core.exceptions import InvalidConfigError


@dataclass
class ValidationResult:
    """Result of environment validation."""
    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def validate_environment(config: StoryReelConfig) -> ValidationResult:
    """
    Validate the environment configuration.

    Checks:
    - Configuration values are usable (error)
    - The completion API key is set (warning: every frame falls back to templated prompts)
    - The encoder binary is on PATH (warning: runs fail at the assembly stage)

    Returns:
        ValidationResult with validation status and any errors/warnings
    """
    errors = []
    warnings = []

    try:
        config.validate()
    except InvalidConfigError as e:
        errors.append(str(e))

    key_env = config.completion.api_key_env
    if not get_api_key(key_env):
        warnings.append(
            f"{key_env} not set - frame prompts will use the templated fallback"
        )

    if shutil.which(config.encoder.binary) is None:
        warnings.append(
            f"Encoder '{config.encoder.binary}' not found on PATH - video assembly will fail"
        )

    for directory in (config.paths.frames_dir, config.paths.videos_dir):
        if directory.exists() and not os.access(directory, os.W_OK):
            errors.append(f"Directory is not writable: {directory}")

    return ValidationResult(
        valid=len(errors) == 0,
        errors=errors,
        warnings=warnings
    )
