"""
StoryReel Frame File Utilities

Naming, listing, renumbering, validation and cleanup of the numbered
frame files that the encoder consumes.
"""

from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from storyreel.core.constants import FRAME_FILENAME_PATTERN, FRAME_FILENAME_REGEX
from storyreel.core.exceptions import SequenceIntegrityError
from storyreel.core.logging_config import get_logger

logger = get_logger("core.frame_files")


def frame_filename(index: int) -> str:
    """Return the file name for a zero-based frame index (frame_0007.jpg)."""
    if index < 0:
        raise ValueError(f"Frame index must be non-negative, got {index}")
    return FRAME_FILENAME_PATTERN % index


def frame_path(frame_dir: Union[str, Path], index: int) -> Path:
    """Return the full path for a frame index inside frame_dir."""
    return Path(frame_dir) / frame_filename(index)


def parse_frame_index(path: Union[str, Path]) -> Optional[int]:
    """Return the frame index encoded in a file name, or None if it is not a frame file."""
    match = FRAME_FILENAME_REGEX.match(Path(path).name)
    if not match:
        return None
    return int(match.group(1))


def list_frame_files(frame_dir: Union[str, Path]) -> Dict[int, Path]:
    """
    Map frame index to path for every frame file in a directory.

    Args:
        frame_dir: Directory to scan

    Returns:
        Dictionary ordered by ascending frame index
    """
    frame_dir = Path(frame_dir)
    if not frame_dir.exists():
        return {}

    found = {}
    for entry in frame_dir.iterdir():
        if not entry.is_file():
            continue
        index = parse_frame_index(entry)
        if index is not None:
            found[index] = entry
    return dict(sorted(found.items()))


def compact_frames(frame_paths: Iterable[Union[str, Path]]) -> List[Path]:
    """
    Renumber successful frames so they occupy indices 0..N-1.

    Relative order is preserved; only the gaps left by failed fetches are
    closed. Frames are processed in ascending index order, so each target
    index is either the frame's own index or a slot already vacated.

    Args:
        frame_paths: Paths of the frames that were written successfully

    Returns:
        New paths, in playback order
    """
    indexed = []
    for path in frame_paths:
        path = Path(path)
        index = parse_frame_index(path)
        if index is None:
            raise ValueError(f"Not a frame file: {path}")
        indexed.append((index, path))
    indexed.sort(key=lambda item: item[0])

    compacted = []
    moved = 0
    for new_index, (old_index, path) in enumerate(indexed):
        if old_index == new_index:
            compacted.append(path)
            continue
        target = path.with_name(frame_filename(new_index))
        path.replace(target)
        compacted.append(target)
        moved += 1

    if moved:
        logger.info(f"Renumbered {moved} frame(s) to close sequence gaps")
    return compacted


def validate_frame_sequence(frame_dir: Union[str, Path], expected_count: int) -> List[Path]:
    """
    Check that frame_dir holds exactly frames 0..expected_count-1.

    Missing indices, extra indices and stale files from another run all
    fail the check, so the encoder never stitches a wrong frame into a gap.

    Args:
        frame_dir: Directory holding the frame files
        expected_count: Number of frames that succeeded

    Returns:
        Frame paths in playback order

    Raises:
        SequenceIntegrityError: If the sequence is not exactly 0..expected_count-1
    """
    frames = list_frame_files(frame_dir)
    indices = list(frames.keys())

    if indices != list(range(expected_count)):
        logger.error(
            f"Frame sequence validation failed in {frame_dir}: "
            f"expected {expected_count} contiguous frames, found {len(indices)}"
        )
        raise SequenceIntegrityError(expected_count, indices)

    logger.debug(f"Frame sequence validated: {expected_count} frames in {frame_dir}")
    return list(frames.values())


def cleanup_frames(frame_dir: Union[str, Path]) -> int:
    """
    Delete every file in the frame directory.

    Best effort: a file that cannot be removed is logged and skipped.

    Returns:
        Number of files removed
    """
    frame_dir = Path(frame_dir)
    if not frame_dir.exists():
        return 0

    removed = 0
    for entry in frame_dir.iterdir():
        if not entry.is_file():
            continue
        try:
            entry.unlink()
            removed += 1
        except OSError as e:
            logger.error(f"Error cleaning up {entry}: {e}")

    logger.info(f"Cleaned up {removed} file(s) from {frame_dir}")
    return removed
