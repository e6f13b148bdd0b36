"""
StoryReel Core Module

Contains core systems including configuration, constants, exceptions, logging,
and the image fetcher and video assembler that sit at the service boundaries.
"""

from .config import StoryReelConfig, load_config, get_config, set_config
from .constants import *
from .exceptions import *
from .logging_config import setup_logging, get_logger

__all__ = [
    'StoryReelConfig',
    'load_config',
    'get_config',
    'set_config',
    'setup_logging',
    'get_logger',
]
