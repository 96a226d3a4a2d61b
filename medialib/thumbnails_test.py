from pathlib import Path

from conftest import make_flac
from medialib.thumbnails import Thumbnail, fetch_thumbnail

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + bytes(8)


def test_embedded_picture(isolated_dir: Path) -> None:
    path = make_flac(isolated_dir / "01.flac", title="Track 1", picture=PNG_BYTES)
    # The embedded picture wins over a cover file.
    (isolated_dir / "cover.jpg").write_bytes(b"jpeg")
    assert fetch_thumbnail(path, 300) == Thumbnail(
        kind="image", data=PNG_BYTES, mime="image/png", size_hint=300
    )


def test_cover_file_fallback(isolated_dir: Path) -> None:
    path = make_flac(isolated_dir / "01.flac", title="Track 1")
    (isolated_dir / "Folder.JPG").write_bytes(b"jpeg")
    thumbnail = fetch_thumbnail(path, 300)
    assert thumbnail.kind == "image"
    assert thumbnail.data == b"jpeg"
    assert thumbnail.mime == "image/jpeg"


def test_custom_cover_art_names(isolated_dir: Path) -> None:
    path = make_flac(isolated_dir / "01.flac", title="Track 1")
    (isolated_dir / "cover.jpg").write_bytes(b"jpeg")
    (isolated_dir / "albumart.png").write_bytes(b"png")
    thumbnail = fetch_thumbnail(path, 64, cover_art_names=["albumart.png"])
    assert thumbnail.data == b"png"
    assert thumbnail.size_hint == 64


def test_no_art(isolated_dir: Path) -> None:
    path = make_flac(isolated_dir / "01.flac", title="Track 1")
    assert fetch_thumbnail(path, 300) == Thumbnail(kind="none", size_hint=300)


def test_unreadable_audio_file_falls_back_to_cover_file(isolated_dir: Path) -> None:
    path = isolated_dir / "01.mp3"
    path.write_bytes(b"not really an mp3")
    (isolated_dir / "cover.png").write_bytes(b"png")
    thumbnail = fetch_thumbnail(path, 300)
    assert thumbnail.kind == "image"
    assert thumbnail.data == b"png"
