"""
Tests for Image Fetcher Module

Tests for storyreel/core/image_fetcher.py
"""

import io

import httpx
import pytest
from PIL import Image

from storyreel.core.exceptions import ImageFetchError
from storyreel.core.image_fetcher import ImageFetcher, letterbox_image


class RecordingHandler:
    """MockTransport handler that replays a list of responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


def _fetcher(config, handler):
    return ImageFetcher(config.image_service, transport=httpx.MockTransport(handler))


class TestLetterbox:
    """Tests for letterbox_image."""

    def test_output_is_square_jpeg(self, image_bytes):
        """Test any input becomes a JPEG of the requested size."""
        output = letterbox_image(image_bytes, 100, 100)

        with Image.open(io.BytesIO(output)) as img:
            assert img.format == "JPEG"
            assert img.size == (100, 100)

    def test_aspect_ratio_kept_with_bars(self, image_bytes):
        """Test a landscape image is centered between black bars."""
        output = letterbox_image(image_bytes, 128, 128)

        with Image.open(io.BytesIO(output)) as img:
            top = img.getpixel((64, 5))
            middle = img.getpixel((64, 64))

        assert max(top) < 30
        assert middle[0] > 150 and middle[1] < 100


class TestBuildUrl:
    """Tests for request URL construction."""

    def test_prompt_encoded_and_params_set(self, test_config):
        """Test the prompt plus frame index is URL-encoded and the index is the seed."""
        fetcher = ImageFetcher(test_config.image_service)

        url = fetcher.build_url("A fox/cat & moon", 3)

        assert url.startswith("https://image.pollinations.ai/prompt/A%20fox%2Fcat%20%26%20moon%203?")
        assert "seed=3" in url
        assert "nologo=true" in url
        assert "width=1024" in url
        assert "height=1024" in url
        assert "quality=100" in url

    def test_repeated_prompt_varies_by_frame(self, test_config):
        """Test the same fallback text yields a different prompt path per frame."""
        fetcher = ImageFetcher(test_config.image_service)

        first = fetcher.build_url("A fox - Scene 1", 0).split("?")[0]
        second = fetcher.build_url("A fox - Scene 1", 1).split("?")[0]

        assert first != second
        assert first.endswith("%200")


class TestImageFetcher:
    """Tests for ImageFetcher.fetch."""

    @pytest.mark.asyncio
    async def test_fetch_writes_letterboxed_frame(self, test_config, temp_dir, image_bytes):
        """Test a successful fetch writes a 1024x1024 JPEG under the frame index."""
        handler = RecordingHandler(httpx.Response(200, content=image_bytes))

        path = await _fetcher(test_config, handler).fetch("A lighthouse", 3, temp_dir)

        assert path == temp_dir / "frame_0003.jpg"
        with Image.open(path) as img:
            assert img.size == (1024, 1024)
            assert img.format == "JPEG"
        assert handler.requests[0].headers["Accept"] == "image/jpeg"

    @pytest.mark.asyncio
    async def test_transient_failure_retried(self, test_config, temp_dir, image_bytes):
        """Test a server error is retried and the next attempt succeeds."""
        handler = RecordingHandler(
            httpx.Response(500),
            httpx.Response(200, content=image_bytes),
        )

        path = await _fetcher(test_config, handler).fetch("A lighthouse", 0, temp_dir)

        assert path.exists()
        assert len(handler.requests) == 2

    @pytest.mark.asyncio
    async def test_final_error_propagates(self, test_config, temp_dir):
        """Test the last attempt's error reaches the caller once retries run out."""
        test_config.image_service.max_attempts = 3
        handler = RecordingHandler(httpx.Response(503))

        with pytest.raises(httpx.HTTPStatusError):
            await _fetcher(test_config, handler).fetch("A lighthouse", 0, temp_dir)

        assert len(handler.requests) == 3
        assert list(temp_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_non_image_payload_fails(self, test_config, temp_dir):
        """Test an undecodable body is an ImageFetchError."""
        handler = RecordingHandler(httpx.Response(200, content=b"<html>busy</html>"))

        with pytest.raises(ImageFetchError) as excinfo:
            await _fetcher(test_config, handler).fetch("A lighthouse", 4, temp_dir)

        assert excinfo.value.frame_index == 4

    @pytest.mark.asyncio
    async def test_empty_payload_fails(self, test_config, temp_dir):
        """Test an empty body is an ImageFetchError."""
        handler = RecordingHandler(httpx.Response(200, content=b""))

        with pytest.raises(ImageFetchError):
            await _fetcher(test_config, handler).fetch("A lighthouse", 0, temp_dir)
