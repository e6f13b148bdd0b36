"""
Video Assembler - ffmpeg invocation over the numbered frame sequence.

The encoder is treated as a black box: its presence is probed explicitly
before use, and its full stdout/stderr is captured and attached to any
failure so encoder problems can be diagnosed without re-running.
"""

import asyncio
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

from storyreel.core.config import EncoderConfig
from storyreel.core.constants import FRAME_FILENAME_PATTERN
from storyreel.core.exceptions import EncoderFailedError, EncoderUnavailableError
from storyreel.core.logging_config import get_logger

logger = get_logger("core.video_assembler")


@dataclass
class EncoderOutput:
    """Captured output of an encoder run."""
    return_code: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.return_code == 0


class VideoAssembler:
    """
    Encodes a directory of frame_%04d.jpg files into a single video.

    Usage:
        assembler = VideoAssembler(config.encoder)
        await assembler.assemble(Path("public/frames/run"), Path("public/videos/out.mp4"), fps=30)
    """

    def __init__(self, config: Optional[EncoderConfig] = None):
        self.config = config or EncoderConfig()

    def find_encoder(self) -> Optional[str]:
        """Resolve the encoder binary to an executable path, or None if unavailable."""
        return shutil.which(self.config.binary)

    def is_available(self) -> bool:
        """Check whether the encoder binary can be found."""
        return self.find_encoder() is not None

    def build_command(self, encoder: str, frame_dir: Path, output_path: Path, fps: int) -> List[str]:
        """Build the encoder argument list."""
        command = [
            encoder,
            "-y",
            "-framerate", str(fps),
            "-start_number", "0",
            "-i", str(Path(frame_dir) / FRAME_FILENAME_PATTERN),
            "-c:v", self.config.codec,
            "-pix_fmt", self.config.pixel_format,
            "-preset", self.config.preset,
            "-crf", str(self.config.crf),
        ]
        if self.config.faststart:
            command += ["-movflags", "+faststart"]
        command.append(str(output_path))
        return command

    async def assemble(
        self,
        frame_dir: Union[str, Path],
        output_path: Union[str, Path],
        fps: int
    ) -> Path:
        """
        Encode the frame sequence in frame_dir into output_path.

        Args:
            frame_dir: Directory holding a validated frame sequence
            output_path: Video file to write
            fps: Output frame rate

        Returns:
            Path of the encoded video

        Raises:
            EncoderUnavailableError: If the encoder binary is missing
            EncoderFailedError: If the encoder exits non-zero
        """
        encoder = self.find_encoder()
        if encoder is None:
            logger.error(f"Encoder binary not found: {self.config.binary}")
            raise EncoderUnavailableError(self.config.binary)

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        command = self.build_command(encoder, Path(frame_dir), output_path, fps)
        logger.info(f"Encoding video at {fps} fps -> {output_path}")
        logger.debug(f"Encoder command: {' '.join(command)}")

        result = await self._run(command)
        if not result.success:
            logger.error(f"Encoder failed with code {result.return_code}:\n{result.stderr}")
            raise EncoderFailedError(result.return_code, stderr=result.stderr, stdout=result.stdout)

        logger.info(f"Video created: {output_path}")
        return output_path

    async def _run(self, command: List[str]) -> EncoderOutput:
        """Run the encoder and capture both output streams in full."""
        process = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await process.communicate()
        return EncoderOutput(
            return_code=process.returncode,
            stdout=stdout.decode("utf-8", errors="replace") if stdout else "",
            stderr=stderr.decode("utf-8", errors="replace") if stderr else "",
        )
