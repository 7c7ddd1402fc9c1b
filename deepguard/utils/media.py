"""
Media intake: file-type validation and scoped media handles.

The pipeline never validates its input; this layer does it once, up front,
and hands stages a ready-to-read MediaHandle. The handle is acquired and
released by the caller around the run's lifetime:

    with open_media(path) as media:
        run = runner.start(pipeline, media)
        await run.wait()
"""
import hashlib
import mimetypes
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Iterator, Optional, Union

from deepguard.core.logging import get_logger

logger = get_logger("utils.media")

# Read size used when fingerprinting files
CHUNK_SIZE = 1024 * 1024


class MediaType(str, Enum):
    """Media types recognized by intake."""
    VIDEO = "video"
    IMAGE = "image"
    UNKNOWN = "unknown"


# File extension mappings
VIDEO_EXTENSIONS = {
    ".mp4", ".avi", ".mov", ".mkv", ".webm", ".flv",
    ".wmv", ".m4v", ".mpeg", ".mpg", ".3gp"
}

IMAGE_EXTENSIONS = {
    ".jpg", ".jpeg", ".png", ".webp", ".gif", ".bmp",
    ".tiff", ".tif", ".heic", ".heif"
}


class InvalidMediaError(ValueError):
    """Input file is missing, unreadable or not a video."""


def detect_media_type(file_path: Union[str, Path], content_type: Optional[str] = None) -> MediaType:
    """
    Detect media type from a declared content type or the file path.

    A declared MIME type (e.g. from an upload) wins; otherwise the extension
    is checked first, then the guessed MIME type.
    """
    if content_type:
        major = content_type.split("/", 1)[0].strip().lower()
        if major == "video":
            return MediaType.VIDEO
        if major == "image":
            return MediaType.IMAGE
        if content_type != "application/octet-stream":
            return MediaType.UNKNOWN

    path = Path(file_path)
    ext = path.suffix.lower()

    # Check by extension first (most reliable)
    if ext in VIDEO_EXTENSIONS:
        return MediaType.VIDEO
    if ext in IMAGE_EXTENSIONS:
        return MediaType.IMAGE

    # Fallback to MIME type detection
    mime_type, _ = mimetypes.guess_type(str(path))
    if mime_type:
        if mime_type.startswith("video/"):
            return MediaType.VIDEO
        if mime_type.startswith("image/"):
            return MediaType.IMAGE

    logger.warning(f"Unknown media type for file: {file_path}")
    return MediaType.UNKNOWN


def is_video(file_path: Union[str, Path], content_type: Optional[str] = None) -> bool:
    """Check if file is a video."""
    return detect_media_type(file_path, content_type) == MediaType.VIDEO


def validate_video_file(file_path: Union[str, Path], content_type: Optional[str] = None) -> Path:
    """
    Validate that a file exists and is a video.

    Returns:
        The path as a Path

    Raises:
        InvalidMediaError: Missing file, not a file, or not a video
    """
    path = Path(file_path)

    if not path.exists():
        raise InvalidMediaError(f"File not found: {file_path}")

    if not path.is_file():
        raise InvalidMediaError(f"Not a file: {file_path}")

    if not is_video(path, content_type):
        raise InvalidMediaError(f"Please select a video file (got {content_type or path.suffix or 'unknown type'})")

    return path


def fingerprint_file(path: Path) -> str:
    """SHA-256 of the file contents."""
    digest = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


@dataclass
class MediaHandle:
    """
    Ready-to-use input artifact for stage work units.

    Attributes:
        path: Location of the video file
        size_bytes: File size
        fingerprint: Content hash, stable across copies of the same file
        content_type: Declared MIME type, if any
    """
    path: Path
    size_bytes: int
    fingerprint: str
    content_type: Optional[str] = None
    closed: bool = field(default=False, compare=False)

    @property
    def name(self) -> str:
        return self.path.name

    def open(self) -> BinaryIO:
        """Open the underlying file for reading."""
        if self.closed:
            raise ValueError(f"Media handle for {self.name} is closed")
        return self.path.open("rb")

    def read_bytes(self, limit: Optional[int] = None) -> bytes:
        with self.open() as f:
            return f.read() if limit is None else f.read(limit)

    def close(self) -> None:
        self.closed = True


@contextmanager
def open_media(file_path: Union[str, Path], content_type: Optional[str] = None) -> Iterator[MediaHandle]:
    """
    Validate `file_path` and yield a MediaHandle, closing it on exit.

    Raises:
        InvalidMediaError: See validate_video_file
    """
    path = validate_video_file(file_path, content_type)
    try:
        handle = MediaHandle(
            path=path,
            size_bytes=path.stat().st_size,
            fingerprint=fingerprint_file(path),
            content_type=content_type,
        )
    except OSError as e:
        raise InvalidMediaError(f"Cannot read {path}: {e}") from e

    logger.info(f"Opened media {handle.name} ({handle.size_bytes} bytes)")
    try:
        yield handle
    finally:
        handle.close()
        logger.debug(f"Released media {handle.name}")
