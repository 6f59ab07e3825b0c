"""
Command-line interface for RETELL feed sync.

Usage:
    retell init-db                        # Create the database schema
    retell sync <podcast_id>              # Sync one podcast with its feed
    retell sync-author <author_id>        # Sync all of an author's podcasts
    retell sync-author <id> --dry-run     # Count new episodes without writing
    retell sync-all                       # Scheduled sync of approved podcasts
    retell sync-all --output-json         # JSON output for cron/CI
    retell preview <rss_url>              # Show a feed without importing it
    retell import <author_id> <rss_url>   # Create a podcast from a feed
    retell serve                          # Run the HTTP API
"""

import argparse
import logging
import sys

from retell.config import get_config
from retell.errors import RetellError
from retell.models.database import Database


def _open_db(config):
    db = Database(config.db_path)
    db.initialize()
    return db


def _fail(exc):
    print(f"ERROR: {exc}")
    sys.exit(1)


def cmd_init_db(args):
    """Create database tables."""
    config = get_config()
    _open_db(config)
    print(f"Database ready at {config.db_path}")


def cmd_sync(args):
    """Sync one podcast with its RSS feed."""
    config = get_config()
    db = _open_db(config)

    from retell.sync.rss_sync import sync_podcast

    try:
        result = sync_podcast(db, args.podcast_id, config=config, dry_run=args.dry_run)
    except RetellError as exc:
        _fail(exc)

    if args.output_json:
        print(result.to_json())
        return

    print(f"{result.title}: {result.new_episode_count} new of {result.total_episodes} feed episode(s)")
    for ep in result.new_episodes:
        print(f"  - #{ep.episode_number} {ep.title}")
    if result.podcast_updated:
        print("Podcast metadata updated" + (" (new cover image)" if result.image_updated else ""))
    if args.dry_run:
        print("\n[dry-run] Nothing written.")


def _print_batch(result, output_json):
    if output_json:
        print(result.to_json())
        if result.errors:
            sys.exit(1)
        return

    if not result.results:
        print("No podcasts with RSS feeds found.")
        return

    for entry in result.results:
        if entry.error:
            print(f"ERROR: {entry.title}: {entry.error}")
        else:
            print(f"{entry.title}: {entry.new_episodes} new of {entry.total_episodes}")
    print(
        f"\n{result.podcasts_processed} podcast(s), "
        f"{result.total_new_episodes} new episode(s), {result.total_errors} error(s)"
    )
    if result.dry_run:
        print("[dry-run] Nothing written.")
    if result.errors:
        sys.exit(1)


def cmd_sync_author(args):
    """Sync every podcast of one author."""
    config = get_config()
    db = _open_db(config)

    from retell.sync.rss_sync import sync_author_podcasts

    try:
        result = sync_author_podcasts(db, args.author_id, config=config, dry_run=args.dry_run)
    except RetellError as exc:
        _fail(exc)
    _print_batch(result, args.output_json)


def cmd_sync_all(args):
    """Sync every approved podcast on the platform."""
    config = get_config()
    db = _open_db(config)

    from retell.sync.rss_sync import sync_all_approved

    try:
        result = sync_all_approved(db, config=config, dry_run=args.dry_run)
    except RetellError as exc:
        _fail(exc)
    _print_batch(result, args.output_json)


def cmd_preview(args):
    """Show a feed's podcast details and first episodes."""
    config = get_config()

    from retell.sync.rss_sync import preview_feed

    try:
        preview = preview_feed(args.rss_url, limit=args.limit, config=config)
    except RetellError as exc:
        _fail(exc)

    if args.output_json:
        print(preview.to_json())
        return

    podcast = preview.podcast
    print(f"{podcast['title']} [{podcast['category']}, {podcast['language']}]")
    if podcast["author"]:
        print(f"By {podcast['author']}")
    print(f"{preview.total_episodes} episode(s) in feed")
    for ep in preview.episodes:
        duration_info = f", duration={ep['duration']}" if ep["duration"] else ""
        print(f"  - #{ep['episodeNumber']} {ep['title']}{duration_info}")


def cmd_import(args):
    """Import a feed as a podcast owned by an author."""
    config = get_config()
    db = _open_db(config)

    from retell.sync.rss_sync import import_feed

    try:
        result = import_feed(db, args.author_id, args.rss_url, config=config)
    except RetellError as exc:
        _fail(exc)

    if args.output_json:
        print(result.to_json())
        return

    verb = "Created" if result.is_new else "Updated"
    print(f"{verb} podcast {result.podcast_id}: {result.title}")
    print(
        f"Imported {result.imported_episodes} of {result.total_episodes} "
        f"episode(s), skipped {result.skipped_episodes}"
    )


def cmd_serve(args):
    """Run the HTTP API with uvicorn."""
    config = get_config()

    import uvicorn
    from retell.server.app import create_app

    app = create_app(config)
    uvicorn.run(
        app,
        host=args.host or config.host,
        port=args.port or config.port,
        log_level=config.log_level.lower(),
    )


def _add_output_json(sub):
    sub.add_argument(
        "--output-json",
        action="store_true",
        default=False,
        help="Output result as JSON (for cron/automation)",
    )


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="retell",
        description="RETELL feed sync -- keep marketplace podcasts in step with their RSS feeds",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # init-db
    sub_init = subparsers.add_parser("init-db", help="Create the database schema")
    sub_init.set_defaults(func=cmd_init_db)

    # sync
    sub_sync = subparsers.add_parser("sync", help="Sync one podcast with its RSS feed")
    sub_sync.add_argument("podcast_id", help="Podcast ID")
    sub_sync.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        help="Compute changes without writing them",
    )
    _add_output_json(sub_sync)
    sub_sync.set_defaults(func=cmd_sync)

    # sync-author
    sub_author = subparsers.add_parser("sync-author", help="Sync all podcasts of an author")
    sub_author.add_argument("author_id", help="Author profile ID")
    sub_author.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        help="Only count new episodes; nothing is written",
    )
    _add_output_json(sub_author)
    sub_author.set_defaults(func=cmd_sync_author)

    # sync-all
    sub_all = subparsers.add_parser(
        "sync-all",
        help="Sync all approved podcasts (for cron / scheduled jobs)",
    )
    sub_all.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        help="Only count new episodes; nothing is written",
    )
    _add_output_json(sub_all)
    sub_all.set_defaults(func=cmd_sync_all)

    # preview
    sub_preview = subparsers.add_parser("preview", help="Preview an RSS feed")
    sub_preview.add_argument("rss_url", help="Feed URL")
    sub_preview.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Number of episodes to show (default: preview_limit setting)",
    )
    _add_output_json(sub_preview)
    sub_preview.set_defaults(func=cmd_preview)

    # import
    sub_import = subparsers.add_parser("import", help="Create a podcast from an RSS feed")
    sub_import.add_argument("author_id", help="Author profile ID")
    sub_import.add_argument("rss_url", help="Feed URL")
    _add_output_json(sub_import)
    sub_import.set_defaults(func=cmd_import)

    # serve
    sub_serve = subparsers.add_parser("serve", help="Run the HTTP API")
    sub_serve.add_argument("--host", default=None, help="Bind address (default: host setting)")
    sub_serve.add_argument("--port", type=int, default=None, help="Port (default: port setting)")
    sub_serve.set_defaults(func=cmd_serve)

    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        sys.exit(0)

    logging.basicConfig(
        level=get_config().log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    args.func(args)


if __name__ == "__main__":
    main()
