"""
The audiotags module abstracts over tag reading for five different audio formats, exposing a single
standard interface for all audio files.

We only read tags here. Multi-valued tags are joined into one display string, since the library
treats artist, album artist and genre as single names.
"""

from __future__ import annotations

import contextlib
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import mutagen
import mutagen.flac
import mutagen.id3
import mutagen.mp3
import mutagen.mp4
import mutagen.oggopus
import mutagen.oggvorbis

from medialib.common import MediaLibExpectedError

logger = logging.getLogger(__name__)

YEAR_REGEX = re.compile(r"\d{4}$")
DATE_REGEX = re.compile(r"(\d{4})-\d{2}-\d{2}")

# Track and disc numbers outside this range are corrupt tags, treated as absent.
MAX_POSITION = 2**31 - 1

# Separator used when a tag holds several values, e.g. two genres.
MULTI_VALUE_SEPARATOR = "; "

SUPPORTED_AUDIO_EXTENSIONS = [
    ".mp3",
    ".m4a",
    ".ogg",
    ".opus",
    ".flac",
]


class UnsupportedFiletypeError(MediaLibExpectedError):
    pass


class UnsupportedTagValueTypeError(MediaLibExpectedError):
    pass


@dataclass
class AudioTags:
    title: str | None
    artist: str | None
    albumartist: str | None
    album: str | None
    genre: str | None
    year: int | None
    tracknumber: int | None
    discnumber: int | None

    duration_ms: int

    path: Path

    @classmethod
    def from_file(cls, p: Path) -> AudioTags:
        """Read the tags of an audio file on disk."""
        if not any(p.suffix.lower() == ext for ext in SUPPORTED_AUDIO_EXTENSIONS):
            raise UnsupportedFiletypeError(f"{p.suffix} not a supported filetype")
        try:
            m = mutagen.File(p)  # type: ignore
        except mutagen.MutagenError as e:  # type: ignore
            raise UnsupportedFiletypeError(f"Failed to open file: {e}") from e
        if isinstance(m, mutagen.mp3.MP3):
            # ID3 returns trackno/discno tags as no/total. We only keep the number.
            return AudioTags(
                title=_get_tag(m.tags, ["TIT2"]),
                artist=_get_tag(m.tags, ["TPE1"]),
                albumartist=_get_tag(m.tags, ["TPE2"]),
                album=_get_tag(m.tags, ["TALB"]),
                genre=_get_tag(m.tags, ["TCON"]),
                year=_parse_year(_get_tag(m.tags, ["TDRC", "TYER"])),
                tracknumber=_parse_position(_get_tag(m.tags, ["TRCK"], first=True)),
                discnumber=_parse_position(_get_tag(m.tags, ["TPOS"], first=True)),
                duration_ms=round(m.info.length * 1000),
                path=p,
            )
        if isinstance(m, mutagen.mp4.MP4):
            tracknumber = discnumber = None
            with contextlib.suppress(ValueError, TypeError):
                tracknumber = _parse_int(_get_tuple_tag(m.tags, ["trkn"])[0])
            with contextlib.suppress(ValueError, TypeError):
                discnumber = _parse_int(_get_tuple_tag(m.tags, ["disk"])[0])

            return AudioTags(
                title=_get_tag(m.tags, ["\xa9nam"]),
                artist=_get_tag(m.tags, ["\xa9ART"]),
                albumartist=_get_tag(m.tags, ["aART"]),
                album=_get_tag(m.tags, ["\xa9alb"]),
                genre=_get_tag(m.tags, ["\xa9gen"]),
                year=_parse_year(_get_tag(m.tags, ["\xa9day"])),
                tracknumber=tracknumber,
                discnumber=discnumber,
                duration_ms=round(m.info.length * 1000),  # type: ignore
                path=p,
            )
        if isinstance(m, (mutagen.flac.FLAC, mutagen.oggvorbis.OggVorbis, mutagen.oggopus.OggOpus)):
            return AudioTags(
                title=_get_tag(m.tags, ["title"]),
                artist=_get_tag(m.tags, ["artist"]),
                albumartist=_get_tag(m.tags, ["albumartist"]),
                album=_get_tag(m.tags, ["album"]),
                genre=_get_tag(m.tags, ["genre"]),
                year=_parse_year(_get_tag(m.tags, ["date", "year"])),
                tracknumber=_parse_position(_get_tag(m.tags, ["tracknumber"], first=True)),
                discnumber=_parse_position(_get_tag(m.tags, ["discnumber"], first=True)),
                duration_ms=round(m.info.length * 1000),  # type: ignore
                path=p,
            )
        raise UnsupportedFiletypeError(f"{p} is not a supported audio file")


def _get_tag(t: Any, keys: list[str], *, first: bool = False) -> str | None:
    if not t:
        return None
    for k in keys:
        try:
            values: list[str] = []
            raw_values = t[k].text if isinstance(t, mutagen.id3.ID3) else t[k]
            for val in raw_values:
                if isinstance(val, str):
                    values.append(val)
                elif isinstance(val, bytes):
                    values.append(val.decode())
                elif isinstance(val, mutagen.id3.ID3TimeStamp):  # type: ignore
                    values.append(val.text)
                else:
                    raise UnsupportedTagValueTypeError(f"Encountered a tag value of type {type(val)}")
            if first:
                return values[0] if values else None
            return MULTI_VALUE_SEPARATOR.join(values)
        except (KeyError, ValueError):
            pass
    return None


def _get_tuple_tag(t: Any, keys: list[str]) -> tuple[Any, Any] | tuple[None, None]:
    if not t:
        return None, None
    for k in keys:
        try:
            for val in t[k]:
                if isinstance(val, tuple):
                    return val
                raise UnsupportedTagValueTypeError(
                    f"Encountered a tag value of type {type(val)}: expected tuple"
                )
        except (KeyError, ValueError):
            pass
    return None, None


def _parse_int(x: Any) -> int | None:
    if x is None:
        return None
    try:
        value = int(x)
    except ValueError:
        return None
    return value if 0 <= value <= MAX_POSITION else None


def _parse_position(x: str | None) -> int | None:
    """Parse a track or disc position, which may be written as `no/total`."""
    if not x:
        return None
    return _parse_int(x.split("/", 1)[0].strip())


def _parse_year(value: str | None) -> int | None:
    if not value:
        return None
    if YEAR_REGEX.match(value):
        return int(value)
    # There may be a time value after the date... allow that and other crap.
    if m := DATE_REGEX.match(value):
        return int(m[1])
    return None
