import logging
from collections.abc import Iterator
from pathlib import Path

import mutagen.flac
import pytest
from click.testing import CliRunner

from medialib.config import Config
from medialib.properties import MusicProperties, fingerprint_of
from medialib.thumbnails import Thumbnail

logger = logging.getLogger(__name__)


@pytest.fixture(autouse=True)
def debug_logging() -> None:
    logging.getLogger().setLevel(logging.DEBUG)


@pytest.fixture()
def isolated_dir() -> Iterator[Path]:
    with CliRunner().isolated_filesystem():
        yield Path.cwd()


@pytest.fixture()
def config(isolated_dir: Path) -> Config:
    cache_dir = isolated_dir / "cache"
    cache_dir.mkdir()

    music_source_dir = isolated_dir / "source"
    music_source_dir.mkdir()

    return Config(
        music_source_dir=music_source_dir,
        cache_dir=cache_dir,
        thumbnail_size=300,
        cover_art_stems=["cover", "folder", "art", "front"],
        valid_art_exts=["jpg", "jpeg", "png"],
        ignore_directories=[],
    )


def write_track(path: Path, **tags: str) -> Path:
    """
    Write a fake audio file. Instead of real embedded tags, the file holds `key=value` lines, which
    the FakeExtractor reads back.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w") as fp:
        for k, v in tags.items():
            fp.write(f"{k}={v}\n")
    return path


def make_flac(
    path: Path,
    *,
    seconds: int = 2,
    picture: bytes | None = None,
    **tags: str,
) -> Path:
    """
    Write a FLAC file that holds a stream header and tags, but no audio frames. That is enough for
    mutagen to read the duration and the tags.
    """
    sample_rate, channels, bits_per_sample = 44100, 2, 16
    packed = (
        (sample_rate << 44)
        | ((channels - 1) << 41)
        | ((bits_per_sample - 1) << 36)
        | (sample_rate * seconds)
    )
    streaminfo = (
        (4096).to_bytes(2, "big")
        + (4096).to_bytes(2, "big")
        + (0).to_bytes(3, "big")
        + (0).to_bytes(3, "big")
        + packed.to_bytes(8, "big")
        + bytes(16)
    )
    path.parent.mkdir(parents=True, exist_ok=True)
    # The high bit of the block header flags the last metadata block.
    path.write_bytes(b"fLaC" + bytes([0x80]) + len(streaminfo).to_bytes(3, "big") + streaminfo)

    m = mutagen.flac.FLAC(path)
    for k, v in tags.items():
        m[k] = v
    if picture is not None:
        pic = mutagen.flac.Picture()
        pic.type = 3
        pic.mime = "image/png"
        pic.data = picture
        m.add_picture(pic)
    m.save()
    return path


class FakeExtractor:
    """Extracts records from files written by `write_track` and remembers which files it read."""

    def __init__(self) -> None:
        self.calls: list[Path] = []
        self.fail_on: set[str] = set()

    def __call__(self, path: Path) -> MusicProperties:
        self.calls.append(path)
        if path.name in self.fail_on:
            raise ValueError(f"corrupt file {path.name}")
        fingerprint = fingerprint_of(path)
        tags: dict[str, str] = {}
        with path.open("r") as fp:
            for line in fp:
                k, _, v = line.rstrip("\n").partition("=")
                tags[k] = v
        artist = tags.get("artist", "")
        return MusicProperties(
            path=str(path),
            fingerprint=fingerprint,
            title=tags.get("title", ""),
            artist=artist,
            albumartist=tags.get("albumartist", artist),
            album=tags.get("album", ""),
            genre=tags.get("genre", ""),
            duration_ms=int(tags["duration_ms"]) if "duration_ms" in tags else None,
            tracknumber=int(tags["tracknumber"]) if "tracknumber" in tags else None,
        )


class FakeThumbnailer:
    def __init__(self, kind: str = "image") -> None:
        self.kind = kind
        self.calls: list[Path] = []

    def __call__(self, path: Path, size_hint: int) -> Thumbnail:
        self.calls.append(path)
        if self.kind == "image":
            return Thumbnail(kind="image", data=b"\x89PNG", mime="image/png", size_hint=size_hint)
        return Thumbnail(kind="none", size_hint=size_hint)


@pytest.fixture()
def extractor() -> FakeExtractor:
    return FakeExtractor()


@pytest.fixture()
def thumbnailer() -> FakeThumbnailer:
    return FakeThumbnailer()
