import json
from typing import Any

from medialib.library import Album, LibrarySnapshot, Song


def song_to_json(s: Song, with_album_info: bool = True) -> dict[str, Any]:
    p = s.properties
    r: dict[str, Any] = {
        "source_path": p.path,
        "title": s.title,
        "artist": s.artist,
        "tracknumber": p.tracknumber,
        "discnumber": p.discnumber,
        "duration_ms": p.duration_ms,
        "year": p.year,
    }
    if with_album_info:
        r.update(
            {
                "album": s.album,
                "albumartist": p.albumartist,
                "genre": s.genre,
            }
        )
    return r


def album_to_json(a: Album) -> dict[str, Any]:
    return {
        "name": a.name,
        "artist": a.artist.name,
        "genre": a.genre.name,
        "thumbnail_mime": a.thumbnail.mime if a.thumbnail else None,
        "songs": [song_to_json(s, with_album_info=False) for s in a.songs],
    }


def dump_albums(snapshot: LibrarySnapshot) -> str:
    return json.dumps([album_to_json(a) for a in snapshot.albums])


def dump_songs(snapshot: LibrarySnapshot) -> str:
    return json.dumps([song_to_json(s) for s in snapshot.songs])


def dump_artists(snapshot: LibrarySnapshot) -> str:
    return json.dumps([a.name for a in snapshot.artists])


def dump_genres(snapshot: LibrarySnapshot) -> str:
    return json.dumps([g.name for g in snapshot.genres])
