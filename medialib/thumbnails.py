"""
The thumbnails module fetches album cover art for a track, on a best-effort basis.

We first look for a picture embedded in the track's tags, preferring the front cover. If the track
has none, we fall back to a cover art file (e.g. `cover.jpg`) in the track's directory.
"""

from __future__ import annotations

import base64
import binascii
import logging
import mimetypes
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

import mutagen
import mutagen.flac
import mutagen.id3
import mutagen.mp3
import mutagen.mp4
import mutagen.oggopus
import mutagen.oggvorbis

from medialib.config import DEFAULT_COVER_ART_STEMS, DEFAULT_VALID_ART_EXTS

logger = logging.getLogger(__name__)

ThumbnailKind = Literal["image", "none"]

FRONT_COVER = 3  # The front cover picture type, shared by ID3 and FLAC.

DEFAULT_COVER_ART_NAMES = [s + "." + e for s in DEFAULT_COVER_ART_STEMS for e in DEFAULT_VALID_ART_EXTS]


@dataclass(frozen=True, slots=True)
class Thumbnail:
    kind: ThumbnailKind
    data: bytes | None = None
    mime: str | None = None
    # The edge length the consumer asked for. We return the picture as stored; scaling it is the
    # consumer's job.
    size_hint: int = 0


def fetch_thumbnail(
    path: Path,
    size_hint: int,
    cover_art_names: Iterable[str] = DEFAULT_COVER_ART_NAMES,
) -> Thumbnail:
    if embedded := _read_embedded_picture(path):
        data, mime = embedded
        logger.debug(f"Found embedded cover art in {path}")
        return Thumbnail(kind="image", data=data, mime=mime, size_hint=size_hint)

    if cover := _find_cover_file(path.parent, cover_art_names):
        logger.debug(f"Found cover art file {cover} for {path}")
        mime, _ = mimetypes.guess_type(cover.name)
        return Thumbnail(kind="image", data=cover.read_bytes(), mime=mime, size_hint=size_hint)

    return Thumbnail(kind="none", size_hint=size_hint)


def _read_embedded_picture(path: Path) -> tuple[bytes, str | None] | None:
    try:
        m = mutagen.File(path)  # type: ignore
    except mutagen.MutagenError as e:  # type: ignore
        logger.debug(f"Failed to open {path} for cover art: {e}")
        return None

    # A list of (picture type, data, mime).
    pictures: list[tuple[int, bytes, str | None]] = []
    if isinstance(m, mutagen.mp3.MP3):
        if m.tags:
            for frame in m.tags.getall("APIC"):
                pictures.append((int(frame.type), frame.data, frame.mime or None))
    elif isinstance(m, mutagen.mp4.MP4):
        for cover in (m.tags or {}).get("covr", []):
            mime = "image/png" if cover.imageformat == mutagen.mp4.MP4Cover.FORMAT_PNG else "image/jpeg"
            # MP4 does not record a picture type; covers are front covers by convention.
            pictures.append((FRONT_COVER, bytes(cover), mime))
    elif isinstance(m, mutagen.flac.FLAC):
        for pic in m.pictures:
            pictures.append((pic.type, pic.data, pic.mime or None))
    elif isinstance(m, (mutagen.oggvorbis.OggVorbis, mutagen.oggopus.OggOpus)):
        for pic in _decode_ogg_pictures(m.tags):
            pictures.append((pic.type, pic.data, pic.mime or None))

    if not pictures:
        return None
    # Stable sort: the first front cover wins, else the first picture.
    pictures.sort(key=lambda p: p[0] != FRONT_COVER)
    _, data, mime = pictures[0]
    return data, mime


def _decode_ogg_pictures(tags: Any) -> list[mutagen.flac.Picture]:
    rv: list[mutagen.flac.Picture] = []
    if not tags:
        return rv
    for encoded in tags.get("metadata_block_picture", []):
        try:
            rv.append(mutagen.flac.Picture(base64.b64decode(encoded)))
        except (binascii.Error, mutagen.flac.error) as e:  # type: ignore
            logger.debug(f"Skipping undecodable embedded picture: {e}")
    return rv


def _find_cover_file(directory: Path, cover_art_names: Iterable[str]) -> Path | None:
    names = {n.lower() for n in cover_art_names}
    try:
        candidates = sorted(directory.iterdir())
    except OSError as e:
        logger.debug(f"Failed to list {directory} for cover art: {e}")
        return None
    for f in candidates:
        if f.name.lower() in names and f.is_file():
            return f
    return None
