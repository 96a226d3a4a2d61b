"""
The walker module discovers the audio files beneath a directory.

Files are classified by content type, derived from the file extension. We keep a private content
type table instead of the process-wide `mimetypes` database, because the latter is extended from
files like /etc/mime.types, which would make the walk depend on the host.
"""

from __future__ import annotations

import logging
import mimetypes
import os
from collections.abc import Iterable
from pathlib import Path

from medialib.common import IndexingFailedError

logger = logging.getLogger(__name__)

CONTENT_TYPES = mimetypes.MimeTypes()
for _ctype, _ext in [
    ("audio/mpeg", ".mp3"),
    ("audio/mp4", ".m4a"),
    ("audio/ogg", ".ogg"),
    ("audio/ogg", ".opus"),
    ("audio/flac", ".flac"),
    # Playlists claim an audio content type. They are shortcuts to audio, not audio.
    ("audio/x-mpegurl", ".m3u"),
    ("audio/x-mpegurl", ".m3u8"),
]:
    CONTENT_TYPES.add_type(_ctype, _ext)


def content_type(path: Path) -> str | None:
    ctype, _ = CONTENT_TYPES.guess_type(path.name, strict=False)
    return ctype


def is_audio_content(path: Path) -> bool:
    ctype = content_type(path)
    return ctype is not None and ctype.startswith("audio") and not ctype.endswith("url")


def walk(root: Path, ignore_directories: Iterable[str] = ()) -> list[Path]:
    """
    Recursively list the audio files under `root`. Within a directory, files come before
    subdirectories and both are sorted by name, so the order is stable for a given tree.

    A directory that cannot be listed contributes nothing; the rest of the walk goes on.
    """
    if not root.is_dir():
        raise IndexingFailedError(f"Music source directory {root} does not exist or is not a directory")
    ignored = set(ignore_directories)
    files: list[Path] = []
    _walk_dir(root, ignored, files, set())
    logger.debug(f"Found {len(files)} audio files in {root}")
    return files


def _walk_dir(directory: Path, ignored: set[str], files: list[Path], visited: set[str]) -> None:
    # Symlinked directories may form cycles.
    realpath = os.path.realpath(directory)
    if realpath in visited:
        logger.debug(f"Skipping {directory}: already visited as {realpath}")
        return
    visited.add(realpath)

    try:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError as e:
        logger.warning(f"Skipping directory {directory}: failed to list it: {e}")
        return

    subdirs: list[Path] = []
    for entry in entries:
        try:
            if entry.is_dir():
                if entry.name in ignored:
                    logger.debug(f"Skipping ignored directory {entry.path}")
                    continue
                subdirs.append(Path(entry.path))
            elif entry.is_file() and is_audio_content(Path(entry.name)):
                files.append(Path(entry.path))
        except OSError as e:
            logger.warning(f"Skipping {entry.path}: failed to stat it: {e}")

    for d in subdirs:
        _walk_dir(d, ignored, files, visited)
