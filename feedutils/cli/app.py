"""feedutils - command line interface

This module implements the feedutils commands with click. They are available
as subcommands of the "feedutils" group and as standalone feed-update,
feed-unread, feed-read, feed-markasread and feed-delete scripts.
"""

import dataclasses
import sys
from typing import Optional

import click

from feedutils.config import LOG_LEVELS, Config, ConfigError, load_config
from feedutils.logging_config import setup_logging
from feedutils.services.executor import FetchError
from feedutils.services.feed_dirs import FeedDirError, FeedNotFoundError
from feedutils.storage.database import StoreError
from feedutils.tools import feed_tools


def _load(log_level: Optional[str] = None) -> Config:
    try:
        config = load_config()
    except ConfigError as e:
        click.echo(str(e), err=True)
        sys.exit(1)

    if log_level:
        config = dataclasses.replace(config, log_level=log_level.upper())
    setup_logging(config)
    return config


def _get_config(ctx: click.Context) -> Config:
    """Config from the group, or resolved here when run as a standalone script."""
    config = ctx.find_object(Config)
    if config is None:
        config = _load()
        ctx.obj = config
    return config


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default=None,
    help="Log level (defaults to FEEDUTILS_LOG_LEVEL or WARNING)",
)
@click.pass_context
def main(ctx: click.Context, log_level: Optional[str]) -> None:
    """Track entries from many feeds and which of them have been read."""
    ctx.obj = _load(log_level)


@main.command()
@click.argument("feeds", nargs=-1)
@click.pass_context
def update(ctx: click.Context, feeds) -> None:
    """Fetch FEEDS (default: all) and merge their entries into the store."""
    config = _get_config(ctx)

    try:
        results = feed_tools.update_feeds(config, list(feeds))
    except FeedDirError as e:
        click.echo(f"Cannot list feeds: {e}", err=True)
        ctx.exit(1)

    ok = True
    for result in results:
        if result.ok:
            click.echo(f"Updated feed {result.feed}: {result.added} new, {result.removed} removed")
            continue
        ok = False
        click.echo(f"{result.feed}: {result.error}", err=True)
        if isinstance(result.error, FetchError) and result.error.stderr:
            click.echo(result.error.stderr.decode("utf-8", errors="replace"), err=True, nl=False)

    if not ok:
        ctx.exit(1)


@main.command()
@click.pass_context
def unread(ctx: click.Context) -> None:
    """Show the number of unread entries per feed."""
    config = _get_config(ctx)

    try:
        counts = feed_tools.count_unread(config)
    except StoreError as e:
        click.echo(str(e), err=True)
        ctx.exit(1)

    for feed_name, count in sorted(counts.items(), key=lambda item: (item[1], item[0])):
        click.echo(f"{count:>4} {feed_name}")


@main.command()
@click.argument("feeds", nargs=-1, required=True)
@click.pass_context
def read(ctx: click.Context, feeds) -> None:
    """Open every unread entry of FEEDS, oldest first."""
    config = _get_config(ctx)
    ok = True

    for feed_name in feeds:
        try:
            result = feed_tools.read_feed(config, feed_name)
        except (FeedDirError, FeedNotFoundError) as e:
            click.echo(str(e), err=True)
            ok = False
            continue
        except StoreError as e:
            click.echo(str(e), err=True)
            ctx.exit(1)

        for error in result.errors:
            click.echo(str(error), err=True)
        if result.errors:
            ok = False

    if not ok:
        ctx.exit(1)


@main.command()
@click.argument("feed")
@click.pass_context
def markasread(ctx: click.Context, feed: str) -> None:
    """Mark every entry of FEED as read."""
    config = _get_config(ctx)

    try:
        feed_tools.mark_feed_read(config, feed)
    except (FeedDirError, FeedNotFoundError) as e:
        click.echo(str(e), err=True)
        ctx.exit(1)
    except StoreError as e:
        click.echo(f"Failed to mark {feed} as read: {e}", err=True)
        ctx.exit(1)


@main.command()
@click.argument("feed")
@click.pass_context
def delete(ctx: click.Context, feed: str) -> None:
    """Delete FEED's entries and its configuration directory."""
    config = _get_config(ctx)

    try:
        feed_tools.delete_feed(config, feed)
    except (FeedDirError, FeedNotFoundError) as e:
        click.echo(str(e), err=True)
        ctx.exit(1)
    except StoreError as e:
        click.echo(f"Failed to delete entries: {e}", err=True)
        ctx.exit(1)
    except OSError as e:
        click.echo(f"Failed to delete feed configuration: {e}", err=True)
        ctx.exit(1)


if __name__ == "__main__":
    sys.exit(main())
