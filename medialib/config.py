"""
The config module provides the configuration schema and parsing logic.

We provide detailed errors when an invalid configuration is detected, and emit warnings when
unrecognized keys are found.
"""

from __future__ import annotations

import functools
import logging
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import appdirs
import tomllib

from medialib.common import MediaLibExpectedError, uniq

XDG_CONFIG_MEDIALIB = Path(appdirs.user_config_dir("medialib"))
CONFIG_PATH = XDG_CONFIG_MEDIALIB / "config.toml"

XDG_CACHE_MEDIALIB = Path(appdirs.user_cache_dir("medialib"))

CACHE_FILE_NAME = "MediaLibrary.cache"

DEFAULT_THUMBNAIL_SIZE = 300
DEFAULT_COVER_ART_STEMS = ["cover", "folder", "art", "front"]
DEFAULT_VALID_ART_EXTS = ["jpg", "jpeg", "png"]

logger = logging.getLogger(__name__)


class ConfigNotFoundError(MediaLibExpectedError):
    pass


class ConfigDecodeError(MediaLibExpectedError):
    pass


class MissingConfigKeyError(MediaLibExpectedError):
    pass


class InvalidConfigValueError(MediaLibExpectedError, ValueError):
    pass


@dataclass(frozen=True)
class Config:
    music_source_dir: Path
    cache_dir: Path
    # Edge length in pixels requested for album thumbnails.
    thumbnail_size: int = DEFAULT_THUMBNAIL_SIZE
    cover_art_stems: list[str] = field(default_factory=lambda: list(DEFAULT_COVER_ART_STEMS))
    valid_art_exts: list[str] = field(default_factory=lambda: list(DEFAULT_VALID_ART_EXTS))
    # Directory names that the file walker does not descend into.
    ignore_directories: list[str] = field(default_factory=list)

    @classmethod
    def parse(cls, config_path_override: Path | None = None) -> Config:
        # As we parse, delete consumed values from the data dictionary. If any are left over at the
        # end of the config, warn that unknown config keys were found.
        cfgpath = config_path_override or CONFIG_PATH
        try:
            with cfgpath.open("r") as fp:
                data = tomllib.loads(fp.read())
        except FileNotFoundError as e:
            raise ConfigNotFoundError(f"Configuration file not found ({cfgpath})") from e
        except tomllib.TOMLDecodeError as e:
            raise ConfigDecodeError(f"Failed to decode configuration file: invalid TOML: {e}") from e

        try:
            music_source_dir = Path(data["music_source_dir"]).expanduser()
            del data["music_source_dir"]
        except KeyError as e:
            raise MissingConfigKeyError(
                f"Missing key music_source_dir in configuration file ({cfgpath})"
            ) from e
        except (ValueError, TypeError) as e:
            raise InvalidConfigValueError(
                f"Invalid value for music_source_dir in configuration file ({cfgpath}): must be a path"
            ) from e

        try:
            cache_dir = Path(data["cache_dir"]).expanduser()
            del data["cache_dir"]
        except KeyError:
            cache_dir = XDG_CACHE_MEDIALIB
        except (TypeError, ValueError) as e:
            raise InvalidConfigValueError(
                f"Invalid value for cache_dir in configuration file ({cfgpath}): must be a path"
            ) from e
        cache_dir.mkdir(parents=True, exist_ok=True)

        try:
            thumbnail_size = data["thumbnail_size"]
            del data["thumbnail_size"]
            if not isinstance(thumbnail_size, int) or isinstance(thumbnail_size, bool):
                raise ValueError(f"must be an integer: got {type(thumbnail_size)}")
            if thumbnail_size <= 0:
                raise ValueError(f"must be a positive integer: got {thumbnail_size}")
        except KeyError:
            thumbnail_size = DEFAULT_THUMBNAIL_SIZE
        except ValueError as e:
            raise InvalidConfigValueError(
                f"Invalid value for thumbnail_size in configuration file ({cfgpath}): {e}"
            ) from e

        cover_art_stems = _parse_str_list(data, "cover_art_stems", cfgpath, DEFAULT_COVER_ART_STEMS)
        valid_art_exts = _parse_str_list(data, "valid_art_exts", cfgpath, DEFAULT_VALID_ART_EXTS)
        ignore_directories = _parse_str_list(data, "ignore_directories", cfgpath, [])

        if data:
            unrecognized_accessors: list[str] = []
            # Do a DFS over the data keys to assemble the map of unknown keys. State is a tuple of
            # ("accessor", node).
            dfs_state: deque[tuple[str, Any]] = deque([("", data)])
            while dfs_state:
                accessor, node = dfs_state.pop()
                if isinstance(node, dict):
                    for k, v in node.items():
                        child_accessor = k if not accessor else f"{accessor}.{k}"
                        dfs_state.append((child_accessor, v))
                    continue
                unrecognized_accessors.append(accessor)
            logger.warning(
                f"Unrecognized options found in configuration file: {', '.join(sorted(unrecognized_accessors))}"
            )

        return Config(
            music_source_dir=music_source_dir,
            cache_dir=cache_dir,
            thumbnail_size=thumbnail_size,
            cover_art_stems=cover_art_stems,
            valid_art_exts=valid_art_exts,
            ignore_directories=ignore_directories,
        )

    @functools.cached_property
    def valid_cover_arts(self) -> list[str]:
        return uniq([s + "." + e for s in self.cover_art_stems for e in self.valid_art_exts])

    @functools.cached_property
    def cache_file_path(self) -> Path:
        return self.cache_dir / CACHE_FILE_NAME


def _parse_str_list(data: dict[str, Any], key: str, cfgpath: Path, default: list[str]) -> list[str]:
    try:
        value = data[key]
        del data[key]
        if not isinstance(value, list):
            raise ValueError(f"Must be a list[str]: got {type(value)}")
        for s in value:
            if not isinstance(s, str):
                raise ValueError(f"Each entry must be of type str: got {type(s)}")
    except KeyError:
        return list(default)
    except ValueError as e:
        raise InvalidConfigValueError(
            f"Invalid value for {key} in configuration file ({cfgpath}): {e}"
        ) from e
    return value
