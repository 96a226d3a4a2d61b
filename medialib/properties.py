"""
The properties module defines the per-file metadata record that we cache between runs, along with
the logic that decides whether a cached record still describes the file on disk.

Reading tags is expensive, stat'ing a file is cheap. So every record carries a fingerprint of the
file (its size and modification time) captured when the tags were read. On the next run, if the
live fingerprint matches the cached one exactly, we trust the cached tags and skip the read.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from medialib.audiotags import AudioTags

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Fingerprint:
    # Either field is None if it could not be read from the filesystem.
    size: int | None
    mtime_ns: int | None

    @property
    def complete(self) -> bool:
        return self.size is not None and self.mtime_ns is not None


UNAVAILABLE_FINGERPRINT = Fingerprint(size=None, mtime_ns=None)


@dataclass(frozen=True, slots=True)
class MusicProperties:
    path: str
    fingerprint: Fingerprint
    title: str = ""
    artist: str = ""
    albumartist: str = ""
    album: str = ""
    genre: str = ""
    duration_ms: int | None = None
    tracknumber: int | None = None
    discnumber: int | None = None
    year: int | None = None

    @property
    def has_title(self) -> bool:
        return bool(self.title.strip())

    @classmethod
    def from_tags(cls, tags: AudioTags, fingerprint: Fingerprint) -> MusicProperties:
        artist = tags.artist or ""
        return MusicProperties(
            path=str(tags.path),
            fingerprint=fingerprint,
            title=tags.title or "",
            artist=artist,
            # Plenty of files only tag the track artist. Treat that artist as the album artist.
            albumartist=tags.albumartist or artist,
            album=tags.album or "",
            genre=tags.genre or "",
            duration_ms=tags.duration_ms,
            tracknumber=tags.tracknumber,
            discnumber=tags.discnumber,
            year=tags.year,
        )

    @classmethod
    def placeholder(cls, path: Path) -> MusicProperties:
        """
        A record with no tags, for a file whose tags could not be read. Caching it means that we do
        not retry the read until the file changes. Since it has no title, it never enters the
        library.
        """
        return MusicProperties(path=str(path), fingerprint=fingerprint_of(path))


def fingerprint_of(path: Path) -> Fingerprint:
    try:
        st = os.stat(path)
    except OSError as e:
        logger.debug(f"Failed to stat {path}, fingerprint unavailable: {e}")
        return UNAVAILABLE_FINGERPRINT
    # -1 is the cache's marker for an unavailable field, so a file stamped exactly 1ns before the
    # epoch is recorded as having no mtime. Such a file is never fresh and is re-read every run.
    mtime_ns = None if st.st_mtime_ns == -1 else st.st_mtime_ns
    return Fingerprint(size=st.st_size, mtime_ns=mtime_ns)


def extract_properties(path: Path) -> MusicProperties:
    """
    Read a fresh record from the file's embedded tags. The fingerprint is taken before the tags are
    read, so that a write racing with the read results in a stale fingerprint rather than a stale
    record that looks fresh.
    """
    fingerprint = fingerprint_of(path)
    tags = AudioTags.from_file(path)
    logger.debug(f"Extracted tags from {path}")
    return MusicProperties.from_tags(tags, fingerprint)


def is_fresh(cached: MusicProperties, path: Path) -> bool:
    """
    Whether the cached record can be reused for the file at `path`. Any doubt resolves to False:
    a missing field on either side is a mismatch.
    """
    if not cached.fingerprint.complete:
        return False
    live = fingerprint_of(path)
    if not live.complete:
        return False
    return live == cached.fingerprint
