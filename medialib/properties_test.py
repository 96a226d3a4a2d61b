import os
from pathlib import Path

import pytest

from conftest import make_flac
from medialib.audiotags import UnsupportedFiletypeError
from medialib.properties import (
    UNAVAILABLE_FINGERPRINT,
    Fingerprint,
    MusicProperties,
    extract_properties,
    fingerprint_of,
    is_fresh,
)


def test_fingerprint_of(isolated_dir: Path) -> None:
    path = isolated_dir / "a.mp3"
    path.write_bytes(b"12345")
    os.utime(path, ns=(1_000_000_000, 2_000_000_000))
    assert fingerprint_of(path) == Fingerprint(size=5, mtime_ns=2_000_000_000)


def test_fingerprint_of_mtime_colliding_with_cache_marker(isolated_dir: Path) -> None:
    path = isolated_dir / "a.mp3"
    path.write_bytes(b"12345")
    os.utime(path, ns=(0, -1))
    if os.stat(path).st_mtime_ns != -1:
        pytest.skip("filesystem does not store pre-epoch timestamps")
    assert fingerprint_of(path) == Fingerprint(size=5, mtime_ns=None)


def test_fingerprint_of_missing_file(isolated_dir: Path) -> None:
    assert fingerprint_of(isolated_dir / "nope.mp3") == UNAVAILABLE_FINGERPRINT


def test_is_fresh_matching_fingerprint(isolated_dir: Path) -> None:
    path = isolated_dir / "a.mp3"
    path.write_bytes(b"12345")
    cached = MusicProperties(path=str(path), fingerprint=fingerprint_of(path), title="Song")
    assert is_fresh(cached, path)


def test_is_fresh_detects_mtime_change(isolated_dir: Path) -> None:
    path = isolated_dir / "a.mp3"
    path.write_bytes(b"12345")
    os.utime(path, ns=(1_000_000_000, 1_000_000_000))
    cached = MusicProperties(path=str(path), fingerprint=fingerprint_of(path))
    os.utime(path, ns=(1_000_000_000, 1_000_000_001))
    assert not is_fresh(cached, path)


def test_is_fresh_detects_size_change(isolated_dir: Path) -> None:
    path = isolated_dir / "a.mp3"
    path.write_bytes(b"12345")
    os.utime(path, ns=(1_000_000_000, 1_000_000_000))
    cached = MusicProperties(path=str(path), fingerprint=fingerprint_of(path))
    path.write_bytes(b"123456")
    os.utime(path, ns=(1_000_000_000, 1_000_000_000))
    assert not is_fresh(cached, path)


def test_is_fresh_is_conservative_on_unavailable_fields(isolated_dir: Path) -> None:
    path = isolated_dir / "a.mp3"
    path.write_bytes(b"12345")
    live = fingerprint_of(path)

    # Missing on the cached side.
    cached = MusicProperties(path=str(path), fingerprint=Fingerprint(size=live.size, mtime_ns=None))
    assert not is_fresh(cached, path)
    cached = MusicProperties(path=str(path), fingerprint=UNAVAILABLE_FINGERPRINT)
    assert not is_fresh(cached, path)

    # Missing on the live side.
    cached = MusicProperties(path=str(path), fingerprint=live)
    path.unlink()
    assert not is_fresh(cached, path)


def test_has_title() -> None:
    fingerprint = Fingerprint(size=1, mtime_ns=1)
    assert MusicProperties(path="a", fingerprint=fingerprint, title="Song").has_title
    assert not MusicProperties(path="a", fingerprint=fingerprint, title="").has_title
    assert not MusicProperties(path="a", fingerprint=fingerprint, title=" \t\n").has_title


def test_placeholder(isolated_dir: Path) -> None:
    path = isolated_dir / "broken.mp3"
    path.write_bytes(b"garbage")
    p = MusicProperties.placeholder(path)
    assert p.path == str(path)
    assert p.fingerprint == fingerprint_of(path)
    assert not p.has_title
    assert is_fresh(p, path)


def test_extract_properties(isolated_dir: Path) -> None:
    path = make_flac(
        isolated_dir / "01.flac",
        title="Track 1",
        artist="Artist A",
        albumartist="Artist B",
        album="A Cool Album",
        genre="House",
        tracknumber="1/9",
        discnumber="2",
        date="1990-02-05",
    )
    p = extract_properties(path)
    assert p == MusicProperties(
        path=str(path),
        fingerprint=fingerprint_of(path),
        title="Track 1",
        artist="Artist A",
        albumartist="Artist B",
        album="A Cool Album",
        genre="House",
        duration_ms=2000,
        tracknumber=1,
        discnumber=2,
        year=1990,
    )


def test_extract_properties_album_artist_fallback(isolated_dir: Path) -> None:
    path = make_flac(isolated_dir / "01.flac", title="Track 1", artist="Artist A")
    p = extract_properties(path)
    assert p.albumartist == "Artist A"
    assert p.album == ""
    assert p.genre == ""
    assert p.tracknumber is None


def test_extract_properties_unsupported_file(isolated_dir: Path) -> None:
    path = isolated_dir / "notes.txt"
    path.write_text("hello")
    with pytest.raises(UnsupportedFiletypeError):
        extract_properties(path)
