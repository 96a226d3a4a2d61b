"""
The common module is our ugly grab bag of common toys. Though a fully generalized common module is
_typically_ a bad idea, we have few enough things in it that it's OK for now.
"""

import logging
import logging.handlers
import os
import sys
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

import appdirs

with (Path(__file__).parent / ".version").open("r") as fp:
    VERSION = fp.read().strip()

K = TypeVar("K")
T = TypeVar("T")


class MediaLibError(Exception):
    pass


class MediaLibExpectedError(MediaLibError):
    """These errors are printed without traceback."""

    pass


class IndexingFailedError(MediaLibExpectedError):
    """The indexing run could not complete. Nothing is published."""

    pass


class IndexingCancelledError(MediaLibExpectedError):
    pass


def get_or_create(mapping: dict[K, T], key: K, factory: Callable[[K], T]) -> T:
    """
    Return the entity stored under `key`, creating it with `factory` the first time the key is seen.
    Since dicts preserve insertion order, iterating the mapping afterwards yields entities in
    first-seen order.
    """
    try:
        return mapping[key]
    except KeyError:
        value = factory(key)
        mapping[key] = value
        return value


def uniq(xs: list[T]) -> list[T]:
    rv: list[T] = []
    seen: set[T] = set()
    for x in xs:
        if x not in seen:
            rv.append(x)
            seen.add(x)
    return rv


__logging_initialized: set[str | None] = set()


def initialize_logging(logger_name: str | None = None) -> None:
    if logger_name in __logging_initialized:
        return
    __logging_initialized.add(logger_name)

    logger = logging.getLogger(logger_name)

    # appdirs by default has Unix log to $XDG_CACHE_HOME, but I'd rather write logs to $XDG_STATE_HOME.
    log_home = Path(appdirs.user_state_dir("medialib"))
    if appdirs.system == "darwin":
        log_home = Path(appdirs.user_log_dir("medialib"))

    # Useful for debugging a run under pytest, since pytest captures our logging output.
    log_despite_testing = os.environ.get("LOG_TEST", False)

    # Add a logging handler for stdout unless we are testing. Pytest
    # captures logging output on its own, so by default, we do not attach our own.
    if "pytest" not in sys.modules or log_despite_testing:  # pragma: no cover
        log_home.mkdir(parents=True, exist_ok=True)
        log_file = log_home / "medialib.log"

        simple_formatter = logging.Formatter(
            "[%(asctime)s] %(levelname)s: %(message)s",
            datefmt="%H:%M:%S",
        )
        verbose_formatter = logging.Formatter(
            "[ts=%(asctime)s.%(msecs)03d] [pid=%(process)d] [src=%(name)s:%(lineno)s] %(levelname)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setFormatter(simple_formatter if not log_despite_testing else verbose_formatter)
        logger.addHandler(stream_handler)

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=20 * 1024 * 1024,
            backupCount=10,
        )
        file_handler.setFormatter(verbose_formatter)
        logger.addHandler(file_handler)
