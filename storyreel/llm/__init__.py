"""
StoryReel LLM Module

Client for the remote text-completion service used to write frame prompts.
"""

from .completion_client import CompletionClient

__all__ = [
    'CompletionClient',
]
