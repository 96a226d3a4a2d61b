"""
The library module builds the music library: it indexes every audio file under the music source
directory into songs, albums, artists and genres.

An indexing run goes like so:

1. Load the metadata cache written by the previous run.
2. Walk the music source directory for audio files.
3. For each file, reuse the cached record if the file is unchanged, and otherwise extract a fresh
   record from its tags. Every record, reused or fresh, goes into a new metadata cache. The new
   cache replaces the old one wholesale, which drops the records of deleted files for free.
4. Fold each titled record into the entity graph. Artists, genres and albums are deduplicated by
   name: the first song to mention a name creates the entity, and later songs share it.
5. Publish the graph as an immutable snapshot.

A single bad file never fails the run. It is logged and left out of the library. Only failures that
affect the run as a whole (e.g. the cache cannot be written) are fatal, in which case nothing is
published and the previous snapshot stays in place.
"""

from __future__ import annotations

import dataclasses
import functools
import logging
import threading
from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path
from types import TracebackType
from typing import Literal, overload

from medialib.cachefile import CacheWriter, encode_record, load_cache
from medialib.common import IndexingCancelledError, get_or_create
from medialib.config import Config
from medialib.properties import MusicProperties, extract_properties, is_fresh
from medialib.thumbnails import Thumbnail, fetch_thumbnail
from medialib.walker import walk

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]
Extractor = Callable[[Path], MusicProperties]
Thumbnailer = Callable[[Path, int], Thumbnail]

RunState = Literal["idle", "scanning", "finalizing", "published"]


@dataclass(frozen=True, slots=True)
class Artist:
    name: str


@dataclass(frozen=True, slots=True)
class Genre:
    name: str


@dataclass(frozen=True, slots=True)
class Song:
    title: str
    # Songs refer to their album, artist and genre by name, which is their identity. The album owns
    # the song, not the other way around.
    album: str
    artist: str
    genre: str
    properties: MusicProperties

    @property
    def path(self) -> Path:
        return Path(self.properties.path)


class SongCollection(Sequence[Song]):
    """An immutable, ordered collection of songs."""

    def __init__(self, songs: Iterable[Song] = ()):
        self._songs = tuple(songs)

    @overload
    def __getitem__(self, index: int) -> Song: ...

    @overload
    def __getitem__(self, index: slice) -> SongCollection: ...

    def __getitem__(self, index: int | slice) -> Song | SongCollection:
        if isinstance(index, slice):
            return SongCollection(self._songs[index])
        return self._songs[index]

    def __len__(self) -> int:
        return len(self._songs)

    def __iter__(self) -> Iterator[Song]:
        return iter(self._songs)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SongCollection):
            return NotImplemented
        return self._songs == other._songs

    def __hash__(self) -> int:
        return hash(self._songs)

    def __repr__(self) -> str:
        return f"SongCollection({list(self._songs)!r})"


@dataclass(frozen=True, slots=True)
class Album:
    name: str
    artist: Artist
    genre: Genre
    thumbnail: Thumbnail | None
    songs: SongCollection = dataclasses.field(default_factory=SongCollection)


class AlbumCollection(Sequence[Album]):
    """An immutable, ordered collection of albums."""

    def __init__(self, albums: Iterable[Album] = ()):
        self._albums = tuple(albums)

    @overload
    def __getitem__(self, index: int) -> Album: ...

    @overload
    def __getitem__(self, index: slice) -> AlbumCollection: ...

    def __getitem__(self, index: int | slice) -> Album | AlbumCollection:
        if isinstance(index, slice):
            return AlbumCollection(self._albums[index])
        return self._albums[index]

    def __len__(self) -> int:
        return len(self._albums)

    def __iter__(self) -> Iterator[Album]:
        return iter(self._albums)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AlbumCollection):
            return NotImplemented
        return self._albums == other._albums

    def __hash__(self) -> int:
        return hash(self._albums)

    def __repr__(self) -> str:
        return f"AlbumCollection({list(self._albums)!r})"


@dataclass(frozen=True)
class LibrarySnapshot:
    albums: AlbumCollection
    songs: SongCollection
    # In first-seen order.
    artists: tuple[Artist, ...] = ()
    genres: tuple[Genre, ...] = ()

    @classmethod
    def empty(cls) -> LibrarySnapshot:
        return LibrarySnapshot(albums=AlbumCollection(), songs=SongCollection())

    def album_of(self, song: Song) -> Album:
        for album in self.albums:
            if album.name == song.album:
                return album
        raise KeyError(f"Album {song.album} not in library")


class LibraryGraph:
    """
    Accumulates the entities of one indexing run. Albums are kept open for appending songs until
    `finalize`, which freezes every album's song list and returns the snapshot.
    """

    def __init__(self) -> None:
        self.artists: dict[str, Artist] = {}
        self.genres: dict[str, Genre] = {}
        self.albums: dict[str, Album] = {}
        self.album_songs: dict[str, list[Song]] = {}
        self.songs: list[Song] = []

    def add(self, properties: MusicProperties, fetch_album_thumbnail: Callable[[], Thumbnail]) -> Song:
        """
        Add a song to the graph, creating its artists, genre and album on first sight. If this
        raises, the graph is left untouched.
        """
        thumbnail: Thumbnail | None = None
        if properties.album not in self.albums:
            # Only fetched once per album, not once per song.
            fetched = fetch_album_thumbnail()
            thumbnail = fetched if fetched.kind == "image" else None

        artist = get_or_create(self.artists, properties.artist, Artist)
        albumartist = get_or_create(self.artists, properties.albumartist, Artist)
        genre = get_or_create(self.genres, properties.genre, Genre)
        album = get_or_create(
            self.albums,
            properties.album,
            lambda name: Album(name=name, artist=albumartist, genre=genre, thumbnail=thumbnail),
        )

        song = Song(
            title=properties.title,
            album=album.name,
            artist=artist.name,
            genre=genre.name,
            properties=properties,
        )
        self.album_songs.setdefault(album.name, []).append(song)
        self.songs.append(song)
        return song

    def finalize(self) -> LibrarySnapshot:
        albums = [
            dataclasses.replace(a, songs=SongCollection(self.album_songs.get(a.name, [])))
            for a in self.albums.values()
        ]
        return LibrarySnapshot(
            albums=AlbumCollection(albums),
            songs=SongCollection(self.songs),
            artists=tuple(self.artists.values()),
            genres=tuple(self.genres.values()),
        )


class ProgressReporter:
    """Reports whole percentages, each at most once and in increasing order, ending at 100."""

    def __init__(self, callback: ProgressCallback | None, total: int):
        self.callback = callback
        self.total = total
        self.last = 0

    def update(self, index: int) -> None:
        progress = 100 * index // self.total
        if progress > self.last:
            self.last = progress
            if self.callback is not None:
                self.callback(progress)

    def finish(self) -> None:
        self.last = 100
        if self.callback is not None:
            self.callback(100)


def build_library(
    root: Path,
    cache_path: Path,
    progress_callback: ProgressCallback | None = None,
    *,
    extractor: Extractor = extract_properties,
    thumbnailer: Thumbnailer = fetch_thumbnail,
    thumbnail_size: int = 300,
    ignore_directories: Iterable[str] = (),
    cancel_event: threading.Event | None = None,
) -> LibrarySnapshot:
    """
    Index the audio files under `root`, reusing the metadata cache at `cache_path`, and rewrite the
    cache. Raises IndexingFailedError if the run cannot complete and IndexingCancelledError if
    `cancel_event` is set mid-run. In both cases, the cache holds valid records for the files
    processed so far.
    """
    state: RunState = "idle"

    def _transition(to: RunState) -> None:
        nonlocal state
        logger.debug(f"Indexing run for {root}: {state} -> {to}")
        state = to

    # The old cache must be fully read before the new cache is opened: they are the same file.
    cache = load_cache(cache_path)
    files = walk(root, ignore_directories)
    total = len(files)
    logger.info(f"Indexing {total} audio files in {root}")

    _transition("scanning")
    graph = LibraryGraph()
    progress = ProgressReporter(progress_callback, total)
    num_reused = 0
    num_failed = 0
    with CacheWriter(cache_path) as writer:
        for i, path in enumerate(files):
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"Indexing run for {root} cancelled after {i}/{total} files")
                raise IndexingCancelledError(f"Indexing cancelled after {i} of {total} files")

            properties: MusicProperties
            try:
                cached = cache.get(str(path))
                if cached is not None and is_fresh(cached, path):
                    properties = cached
                    num_reused += 1
                else:
                    properties = extractor(path)
                record = encode_record(properties)
            except Exception as e:
                logger.warning(f"Failed to extract metadata from {path}: {e}")
                logger.debug("Extraction failure traceback", exc_info=True)
                num_failed += 1
                properties = MusicProperties.placeholder(path)
                record = encode_record(properties)

            # Written even if the file stays out of the library, so the next run can skip it.
            writer.write_encoded(record)

            if properties.has_title:
                try:
                    graph.add(properties, functools.partial(thumbnailer, path, thumbnail_size))
                except Exception as e:
                    logger.warning(f"Failed to add {path} to the library: {e}")
                    logger.debug("Library insertion failure traceback", exc_info=True)
                    num_failed += 1
            else:
                logger.debug(f"Skipping untitled file {path}")

            progress.update(i)

    _transition("finalizing")
    progress.finish()
    snapshot = graph.finalize()
    logger.info(
        f"Indexed {len(snapshot.songs)} songs in {len(snapshot.albums)} albums from {total} files "
        f"({num_reused} cached, {num_failed} failed)"
    )
    _transition("published")
    return snapshot


class MediaLibrary:
    """
    The published library. `load` runs an indexing run and swaps in its snapshot; the accessors
    return whatever snapshot was last published. A reader always sees one whole snapshot, never a
    mix of two.
    """

    def __init__(
        self,
        config: Config,
        *,
        extractor: Extractor | None = None,
        thumbnailer: Thumbnailer | None = None,
    ):
        self.config = config
        self.extractor: Extractor = extractor or extract_properties
        self.thumbnailer: Thumbnailer = thumbnailer or self._fetch_configured_thumbnail
        self._lock = threading.Lock()
        self._snapshot: LibrarySnapshot | None = None

    def load(
        self,
        progress_callback: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
    ) -> LibrarySnapshot:
        snapshot = build_library(
            self.config.music_source_dir,
            self.config.cache_file_path,
            progress_callback,
            extractor=self.extractor,
            thumbnailer=self.thumbnailer,
            thumbnail_size=self.config.thumbnail_size,
            ignore_directories=self.config.ignore_directories,
            cancel_event=cancel_event,
        )
        with self._lock:
            self._snapshot = snapshot
        logger.debug(f"Published library snapshot for {self.config.music_source_dir}")
        return snapshot

    def _fetch_configured_thumbnail(self, path: Path, size_hint: int) -> Thumbnail:
        return fetch_thumbnail(path, size_hint, self.config.valid_cover_arts)

    @property
    def snapshot(self) -> LibrarySnapshot:
        with self._lock:
            return self._snapshot or LibrarySnapshot.empty()

    def get_albums(self) -> AlbumCollection:
        return self.snapshot.albums

    def get_songs(self) -> SongCollection:
        return self.snapshot.songs

    def dispose(self) -> None:
        with self._lock:
            self._snapshot = None

    def __enter__(self) -> MediaLibrary:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.dispose()
