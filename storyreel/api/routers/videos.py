"""Videos router for StoryReel API."""

from fastapi import APIRouter, HTTPException
from fastapi.responses import FileResponse

from storyreel.core.config import get_config
from storyreel.core.constants import VIDEO_EXTENSION

router = APIRouter()


@router.get("/{video_name}")
async def get_video(video_name: str):
    """Serve a finished video file."""
    videos_dir = get_config().paths.videos_dir.resolve()
    path = (videos_dir / video_name).resolve()

    if path.parent != videos_dir:
        raise HTTPException(status_code=400, detail="Invalid video path")

    if path.suffix.lower() != VIDEO_EXTENSION:
        raise HTTPException(status_code=400, detail="Invalid video format")

    if not path.is_file():
        raise HTTPException(status_code=404, detail="Video not found")

    return FileResponse(path, media_type="video/mp4")
