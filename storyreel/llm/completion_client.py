"""
StoryReel Completion Client

Streaming client for an OpenAI-compatible chat-completions endpoint
(Together AI by default). The stream is exposed as a plain async iterator
of text chunks; callers accumulate it themselves.
"""

from __future__ import annotations

import json
from typing import AsyncIterator, Dict, List, Optional

import httpx

from storyreel.core.config import CompletionConfig
from storyreel.core.constants import STREAM_DONE_MARKER
from storyreel.core.env_loader import get_api_key
from storyreel.core.exceptions import CompletionError, TransientCompletionError
from storyreel.core.logging_config import get_logger

logger = get_logger("llm.completion")

# Errors a later attempt can recover from. Anything else (missing key,
# rejected credentials, bad request) fails the same way every time.
RETRYABLE_ERRORS = (httpx.TransportError, TransientCompletionError)


def is_transient_status(status_code: int) -> bool:
    """Rate limiting and server-side failures are retried; other 4xx are not."""
    return status_code == 429 or status_code >= 500


class CompletionClient:
    """
    Text-completion client that streams tokens.

    Usage:
        client = CompletionClient(config.completion)
        async for chunk in client.stream_chat(messages):
            text += chunk
    """

    def __init__(
        self,
        config: Optional[CompletionConfig] = None,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize the client.

        Args:
            config: Completion settings (defaults if omitted)
            api_key: Explicit API key; read from config.api_key_env when omitted
            transport: Optional httpx transport, used to stub the service
        """
        self.config = config or CompletionConfig()
        self.api_key = api_key if api_key is not None else get_api_key(self.config.api_key_env)
        self._transport = transport

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }

    def build_payload(self, messages: List[Dict[str, str]]) -> Dict:
        """Build the request body for a streaming chat completion."""
        return {
            "model": self.config.model,
            "messages": messages,
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
            "top_p": self.config.top_p,
            "top_k": self.config.top_k,
            "repetition_penalty": self.config.repetition_penalty,
            "stop": self.config.stop,
            "stream": True,
        }

    async def stream_chat(self, messages: List[Dict[str, str]]) -> AsyncIterator[str]:
        """
        Stream a chat completion as text chunks.

        Args:
            messages: Role-tagged messages ({"role": ..., "content": ...})

        Yields:
            Non-empty text fragments in arrival order

        Raises:
            CompletionError: Missing API key or a rejected request (4xx)
            TransientCompletionError: 429, 5xx, or a malformed or failed stream
            httpx.HTTPError: Transport-level failures
        """
        if not self.api_key:
            raise CompletionError(f"{self.config.api_key_env} not set")

        url = f"{self.config.base_url.rstrip('/')}/chat/completions"
        logger.debug(f"Streaming completion from {self.config.model} ({len(messages)} messages)")

        async with httpx.AsyncClient(timeout=self.config.timeout, transport=self._transport) as client:
            async with client.stream(
                "POST", url, headers=self._get_headers(), json=self.build_payload(messages)
            ) as response:
                if response.status_code >= 400:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    error_class = (
                        TransientCompletionError if is_transient_status(response.status_code)
                        else CompletionError
                    )
                    raise error_class(body[:500] or response.reason_phrase, response.status_code)

                async for line in response.aiter_lines():
                    line = line.strip()
                    if not line.startswith("data:"):
                        continue
                    data = line[len("data:"):].strip()
                    if data == STREAM_DONE_MARKER:
                        break
                    content = self._parse_chunk(data)
                    if content:
                        yield content

    @staticmethod
    def _parse_chunk(data: str) -> Optional[str]:
        """
        Extract the text delta from one stream chunk payload.

        Returns None for chunks that carry no text (role-only deltas,
        usage summaries).
        """
        try:
            chunk = json.loads(data)
        except json.JSONDecodeError as e:
            raise TransientCompletionError(f"Malformed stream chunk: {data[:100]}") from e

        if "error" in chunk:
            error = chunk["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise TransientCompletionError(message or "stream reported an error")

        choices = chunk.get("choices") or []
        if not choices:
            return None
        delta = choices[0].get("delta") or {}
        return delta.get("content") or None
