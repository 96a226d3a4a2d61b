"""
The cachefile module reads and writes the metadata cache: the file that lets an indexing run skip
tag extraction for files that have not changed since the previous run.

The cache file is a back-to-back sequence of records with no header, no footer and no count. The
end of the file is the only terminator. Each record is, little endian:

    path           u32 length + filesystem-encoded bytes (see os.fsencode)
    size           i64 (-1 if unavailable)
    mtime_ns       i64 (-1 if unavailable)
    title          u32 length + UTF-8 bytes
    artist         u32 length + UTF-8 bytes
    albumartist    u32 length + UTF-8 bytes
    album          u32 length + UTF-8 bytes
    genre          u32 length + UTF-8 bytes
    duration_ms    i64 (-1 if absent)
    tracknumber    i64 (-1 if absent)
    discnumber     i64 (-1 if absent)
    year           i64 (-1 if absent)

The cache is rebuilt from scratch on every run. The previous cache is read to completion before the
new one is opened for writing, so a run never reads its own output. Because records are appended
one at a time, a cache file cut short at any point still decodes up to the last complete record.
"""

from __future__ import annotations

import logging
import os
import struct
from pathlib import Path
from types import TracebackType
from typing import BinaryIO

from medialib.common import IndexingFailedError, MediaLibError
from medialib.properties import Fingerprint, MusicProperties

logger = logging.getLogger(__name__)

_U32 = struct.Struct("<I")
_I64 = struct.Struct("<q")

# Tag strings are short. A length beyond this means we are reading garbage.
MAX_STRING_BYTES = 1 << 20

ABSENT = -1


class MalformedCacheEntryError(MediaLibError):
    pass


class UnencodableRecordError(MediaLibError):
    pass


def serialize(record: MusicProperties, fp: BinaryIO) -> None:
    """Append one record to the stream."""
    # One write per record, so that an interrupted run leaves at most one partial record behind.
    fp.write(encode_record(record))


def encode_record(record: MusicProperties) -> bytes:
    """
    Encode one record without writing it. Raises UnencodableRecordError if a field does not fit the
    layout, e.g. a number outside the i64 range.
    """
    try:
        return _encode_record(record)
    except (struct.error, UnicodeEncodeError) as e:
        raise UnencodableRecordError(f"Cannot encode cache record for {record.path!r}: {e}") from e


def _encode_record(record: MusicProperties) -> bytes:
    buf = bytearray()
    # Paths come from the filesystem and need not be valid UTF-8. Their undecodable bytes arrive as
    # surrogate escapes, which os.fsencode restores.
    _pack_bytes(buf, os.fsencode(record.path))
    _pack_int(buf, record.fingerprint.size)
    _pack_int(buf, record.fingerprint.mtime_ns)
    _pack_str(buf, record.title)
    _pack_str(buf, record.artist)
    _pack_str(buf, record.albumartist)
    _pack_str(buf, record.album)
    _pack_str(buf, record.genre)
    _pack_int(buf, record.duration_ms)
    _pack_int(buf, record.tracknumber)
    _pack_int(buf, record.discnumber)
    _pack_int(buf, record.year)
    return bytes(buf)


def deserialize(fp: BinaryIO) -> MusicProperties:
    """
    Read exactly one record from the stream. Raises MalformedCacheEntryError if the stream ends
    mid-record or a field is not validly framed.
    """
    path = os.fsdecode(_read_bytes(fp))
    size = _read_int(fp)
    mtime_ns = _read_int(fp)
    return MusicProperties(
        path=path,
        fingerprint=Fingerprint(size=size, mtime_ns=mtime_ns),
        title=_read_str(fp),
        artist=_read_str(fp),
        albumartist=_read_str(fp),
        album=_read_str(fp),
        genre=_read_str(fp),
        duration_ms=_read_int(fp),
        tracknumber=_read_int(fp),
        discnumber=_read_int(fp),
        year=_read_int(fp),
    )


def load_cache(path: Path) -> dict[str, MusicProperties]:
    """
    Read every record of the cache file into a map of file path -> record. A missing or empty file
    is an empty cache. On the first malformed record, keep what was read so far and stop: whatever
    follows is untrustworthy, and the affected files are simply re-extracted.
    """
    cache: dict[str, MusicProperties] = {}
    try:
        fp = path.open("rb")
    except FileNotFoundError:
        logger.debug(f"No metadata cache at {path}, starting from scratch")
        return cache
    except OSError as e:
        logger.warning(f"Failed to open metadata cache at {path}, starting from scratch: {e}")
        return cache

    with fp:
        try:
            while fp.peek(1):
                entry = deserialize(fp)
                if entry.path in cache:
                    raise MalformedCacheEntryError(f"Duplicate cache key {entry.path}")
                cache[entry.path] = entry
        except (MalformedCacheEntryError, OSError) as e:
            logger.warning(
                f"Stopped reading metadata cache at {path} after {len(cache)} entries: {e}"
            )

    logger.debug(f"Loaded {len(cache)} entries from metadata cache {path}")
    return cache


class CacheWriter:
    """
    Writes the new cache file. Open this only after the previous cache has been fully loaded: the
    file is truncated on open.
    """

    def __init__(self, path: Path):
        self.path = path
        self.count = 0
        self._fp: BinaryIO | None = None

    def __enter__(self) -> CacheWriter:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._fp = self.path.open("wb")
        except OSError as e:
            raise IndexingFailedError(f"Failed to open metadata cache {self.path} for writing: {e}") from e
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self._fp is not None:
            self._fp.close()
            self._fp = None
        logger.debug(f"Wrote {self.count} entries to metadata cache {self.path}")

    def write(self, record: MusicProperties) -> None:
        self.write_encoded(encode_record(record))

    def write_encoded(self, data: bytes) -> None:
        """Write a record already encoded with `encode_record`."""
        assert self._fp is not None, "CacheWriter must be entered before writing"
        try:
            self._fp.write(data)
        except OSError as e:
            raise IndexingFailedError(f"Failed to write to metadata cache {self.path}: {e}") from e
        self.count += 1


def _pack_str(buf: bytearray, value: str) -> None:
    _pack_bytes(buf, value.encode("utf-8"))


def _pack_bytes(buf: bytearray, value: bytes) -> None:
    buf += _U32.pack(len(value))
    buf += value


def _pack_int(buf: bytearray, value: int | None) -> None:
    buf += _I64.pack(ABSENT if value is None else value)


def _read_exact(fp: BinaryIO, n: int) -> bytes:
    data = fp.read(n)
    if len(data) != n:
        raise MalformedCacheEntryError(f"Unexpected end of stream: wanted {n} bytes, got {len(data)}")
    return data


def _read_bytes(fp: BinaryIO) -> bytes:
    (length,) = _U32.unpack(_read_exact(fp, _U32.size))
    if length > MAX_STRING_BYTES:
        raise MalformedCacheEntryError(f"String length {length} exceeds {MAX_STRING_BYTES} bytes")
    return _read_exact(fp, length)


def _read_str(fp: BinaryIO) -> str:
    try:
        return _read_bytes(fp).decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedCacheEntryError(f"Invalid UTF-8 in string field: {e}") from e


def _read_int(fp: BinaryIO) -> int | None:
    (value,) = _I64.unpack(_read_exact(fp, _I64.size))
    return None if value == ABSENT else value
