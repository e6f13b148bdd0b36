"""
Image Fetcher - Remote frame image acquisition

Retrieves one rendered image per frame prompt from the remote image service,
letterboxes it onto a fixed square canvas and writes it under its
zero-padded frame index.

Failures are retried with exponential backoff; once the attempts are used up
the last error propagates to the caller, which treats the frame as a failed
unit of work. Nothing is recovered locally.

Usage:
    fetcher = ImageFetcher(config.image_service)
    path = await fetcher.fetch("A lighthouse at dusk", 0, Path("public/frames/run"))
"""

from __future__ import annotations

import asyncio
import io
from pathlib import Path
from typing import Optional
from urllib.parse import quote

import httpx
from PIL import Image, ImageOps

from storyreel.core.config import ImageServiceConfig
from storyreel.core.constants import FRAME_BACKGROUND, FRAME_JPEG_QUALITY
from storyreel.core.exceptions import ImageFetchError
from storyreel.core.frame_files import frame_path
from storyreel.core.logging_config import get_logger
from storyreel.core.retry import RetryConfig, retry_async_call

logger = get_logger("core.image_fetcher")


def letterbox_image(
    image_data: bytes,
    width: int,
    height: int,
    background: tuple = FRAME_BACKGROUND,
    quality: int = FRAME_JPEG_QUALITY
) -> bytes:
    """
    Decode an image and re-encode it as a JPEG of exactly width x height.

    The image is scaled to fit inside the canvas with its aspect ratio kept,
    then centered on a solid background.

    Args:
        image_data: Raw bytes in any format Pillow can read
        width: Output width in pixels
        height: Output height in pixels
        background: RGB fill for the letterbox bars
        quality: JPEG quality

    Returns:
        JPEG bytes
    """
    with Image.open(io.BytesIO(image_data)) as img:
        img = ImageOps.exif_transpose(img).convert("RGB")
        fitted = ImageOps.contain(img, (width, height))

    canvas = Image.new("RGB", (width, height), color=background)
    offset = ((width - fitted.width) // 2, (height - fitted.height) // 2)
    canvas.paste(fitted, offset)

    buffer = io.BytesIO()
    canvas.save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()


class ImageFetcher:
    """
    Fetches and normalizes frame images from the remote image service.

    Stateless apart from its configuration: concurrent calls for distinct
    frame indices are safe.
    """

    def __init__(
        self,
        config: Optional[ImageServiceConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize the fetcher.

        Args:
            config: Image service settings (defaults if omitted)
            transport: Optional httpx transport, used to stub the service
        """
        self.config = config or ImageServiceConfig()
        self._transport = transport
        self.retry_config = RetryConfig(
            max_attempts=self.config.max_attempts,
            base_delay=self.config.base_delay,
            max_delay=self.config.max_delay,
        )

    def build_url(self, prompt: str, frame_index: int) -> str:
        """
        Build the request URL for a prompt.

        The frame index is appended to the prompt text and doubles as the
        seed, so repeated prompts (fallbacks) still render distinct images.
        """
        encoded = quote(f"{prompt} {frame_index}", safe="")
        return (
            f"{self.config.base_url.rstrip('/')}/{encoded}"
            f"?seed={frame_index}&nologo=true&quality={self.config.quality}"
            f"&width={self.config.width}&height={self.config.height}"
        )

    async def fetch(self, prompt: str, frame_index: int, output_dir: Path) -> Path:
        """
        Fetch, normalize and save the image for one frame.

        Args:
            prompt: Scene description to render
            frame_index: Zero-based frame index (names the output file)
            output_dir: Directory to write the frame into

        Returns:
            Path of the written frame file

        Raises:
            Exception: The error from the final attempt, unchanged
        """
        return await retry_async_call(
            self._fetch_once,
            prompt,
            frame_index,
            Path(output_dir),
            config=self.retry_config,
            description=f"image {frame_index}",
        )

    async def _fetch_once(self, prompt: str, frame_index: int, output_dir: Path) -> Path:
        """Single attempt: download, letterbox, write."""
        url = self.build_url(prompt, frame_index)
        headers = {
            "Accept": "image/jpeg",
            "User-Agent": self.config.user_agent,
        }

        async with httpx.AsyncClient(timeout=self.config.timeout, transport=self._transport) as client:
            response = await client.get(url, headers=headers, follow_redirects=True)
            response.raise_for_status()
            image_data = response.content

        if not image_data:
            raise ImageFetchError(frame_index, "empty response body")

        try:
            processed = await asyncio.to_thread(
                letterbox_image, image_data, self.config.width, self.config.height
            )
        except (OSError, ValueError) as e:
            # Pillow raises UnidentifiedImageError (an OSError) for non-image payloads
            raise ImageFetchError(frame_index, f"could not decode image: {e}") from e

        target = frame_path(output_dir, frame_index)
        await asyncio.to_thread(target.write_bytes, processed)
        logger.debug(f"Saved frame {frame_index} to {target}")
        return target
