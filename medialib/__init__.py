from medialib.audiotags import (
    SUPPORTED_AUDIO_EXTENSIONS,
    AudioTags,
    UnsupportedFiletypeError,
)
from medialib.cachefile import (
    CacheWriter,
    MalformedCacheEntryError,
    deserialize,
    load_cache,
    serialize,
)
from medialib.common import (
    VERSION,
    IndexingCancelledError,
    IndexingFailedError,
    MediaLibError,
    MediaLibExpectedError,
    initialize_logging,
)
from medialib.config import Config
from medialib.library import (
    Album,
    AlbumCollection,
    Artist,
    Genre,
    LibrarySnapshot,
    MediaLibrary,
    Song,
    SongCollection,
    build_library,
)
from medialib.properties import Fingerprint, MusicProperties, extract_properties, fingerprint_of, is_fresh
from medialib.thumbnails import Thumbnail, fetch_thumbnail
from medialib.walker import is_audio_content, walk

__all__ = [
    # Plumbing
    "initialize_logging",
    "VERSION",
    # Errors
    "MediaLibError",
    "MediaLibExpectedError",
    "IndexingFailedError",
    "IndexingCancelledError",
    "MalformedCacheEntryError",
    "UnsupportedFiletypeError",
    # Configuration
    "Config",
    # Tagging
    "AudioTags",
    "SUPPORTED_AUDIO_EXTENSIONS",
    # Metadata records
    "Fingerprint",
    "MusicProperties",
    "extract_properties",
    "fingerprint_of",
    "is_fresh",
    # Metadata cache
    "CacheWriter",
    "deserialize",
    "load_cache",
    "serialize",
    # Discovery
    "is_audio_content",
    "walk",
    # Thumbnails
    "Thumbnail",
    "fetch_thumbnail",
    # Library
    "Album",
    "AlbumCollection",
    "Artist",
    "Genre",
    "LibrarySnapshot",
    "MediaLibrary",
    "Song",
    "SongCollection",
    "build_library",
]

initialize_logging(__name__)
