"""
The cli module defines the medialib CLI interface. It does not have any domain logic of its own. It
is dedicated to parsing, resolving arguments, and delegating to the appropriate module.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

import click

from medialib.config import Config
from medialib.library import LibrarySnapshot, MediaLibrary

logger = logging.getLogger(__name__)


@dataclass
class Context:
    config: Config


# fmt: off
@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Emit verbose logging.")
@click.option("--config", "-c", type=click.Path(path_type=Path), help="Override the config file location.")
@click.pass_context
# fmt: on
def cli(cc: click.Context, verbose: bool, config: Path | None = None) -> None:
    """Index a music directory into songs, albums, artists, and genres."""
    cc.obj = Context(
        config=Config.parse(config_path_override=config),
    )
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


def _load(config: Config, show_progress: bool = False) -> LibrarySnapshot:
    with MediaLibrary(config) as library:
        if not show_progress:
            return library.load()
        with click.progressbar(length=100, label="Indexing") as bar:
            reported = 0

            def _on_progress(progress: int) -> None:
                nonlocal reported
                bar.update(progress - reported)
                reported = progress

            return library.load(_on_progress)


@cli.command()
@click.pass_obj
def index(ctx: Context) -> None:
    """Index the music source directory, reusing the metadata cache for unchanged files."""
    snapshot = _load(ctx.config, show_progress=True)
    click.echo(
        f"{len(snapshot.songs)} songs, {len(snapshot.albums)} albums, "
        f"{len(snapshot.artists)} artists, {len(snapshot.genres)} genres"
    )


@cli.command()
@click.pass_obj
def albums(ctx: Context) -> None:
    """Print the albums of the library as JSON."""
    from medialib.dump import dump_albums

    click.echo(dump_albums(_load(ctx.config)))


@cli.command()
@click.pass_obj
def songs(ctx: Context) -> None:
    """Print the songs of the library as JSON."""
    from medialib.dump import dump_songs

    click.echo(dump_songs(_load(ctx.config)))


@cli.command()
@click.pass_obj
def artists(ctx: Context) -> None:
    """Print the artists of the library as JSON."""
    from medialib.dump import dump_artists

    click.echo(dump_artists(_load(ctx.config)))


@cli.command()
@click.pass_obj
def genres(ctx: Context) -> None:
    """Print the genres of the library as JSON."""
    from medialib.dump import dump_genres

    click.echo(dump_genres(_load(ctx.config)))


@cli.group()
def cache() -> None:
    """Manage the metadata cache."""


@cache.command()
@click.pass_obj
def path(ctx: Context) -> None:
    """Print the location of the metadata cache."""
    click.echo(str(ctx.config.cache_file_path))


@cache.command()
@click.pass_obj
def clear(ctx: Context) -> None:
    """Delete the metadata cache. The next index run re-reads every file."""
    if not ctx.config.cache_file_path.exists():
        logger.info("No-Op: No metadata cache to delete")
        return
    ctx.config.cache_file_path.unlink()
    logger.info(f"Deleted metadata cache {ctx.config.cache_file_path}")
