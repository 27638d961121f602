#!/usr/bin/env python3
"""
rl - read it later

Command-line front end for the link store. Each subcommand is a thin
wrapper over one LinkStore operation.
"""
import sys
import argparse
import json
import logging
import webbrowser
from pathlib import Path
from typing import List, Optional
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from rl import __version__
from rl.config import RlConfig, get_config, init_config
from rl.db import LinkStore, ReadStatus
from rl.errors import RlError, NotFoundError, InvalidIDError, ImportAbortedError
from rl.exporters import export_json, export_file
from rl.importers import import_file
from rl.ids import require_valid_id
from rl.models import Link
from rl.timeutil import format_display

logger = logging.getLogger(__name__)


console = Console()
err_console = Console(stderr=True)

MAX_URL_LEN = 60
MAX_TITLE_LEN = 40
MAX_TAGS_LEN = 30


def truncate(value: Optional[str], max_len: int) -> str:
    """Shorten a string to max_len characters, ending in '...' when cut."""
    value = value or ""
    if len(value) <= max_len:
        return value
    return value[:max_len - 3] + "..."


def output_links(links: List[Link], config: RlConfig, format: str = "table"):
    """Output links in the specified format."""
    if format == "json":
        print(json.dumps([link.to_dict() for link in links], indent=2 if config.export_pretty else None))
    elif format == "urls":
        for link in links:
            print(link.url)
    else:
        table = Table(title="Links")
        table.add_column("ID", style="cyan", no_wrap=True)
        table.add_column("URL", style="blue")
        table.add_column("Title", style="green")
        table.add_column("Created", style="magenta")
        table.add_column("Tags", style="yellow")

        for link in links:
            table.add_row(
                link.id,
                escape(truncate(link.url, MAX_URL_LEN)),
                escape(truncate(link.title, MAX_TITLE_LEN)),
                format_display(link.created_at, config.display_timezone),
                escape(truncate(", ".join(link.tag_list), MAX_TAGS_LEN)),
            )

        console.print(table)


def cmd_add(args, store: LinkStore, config: RlConfig):
    """Add or update a link."""
    link, created = store.add(args.url, title=args.title, note=args.note, tags=args.tags)
    verb = "Added" if created else "Updated"
    console.print(f"[green]{verb} link {link.id}:[/green] {escape(link.url)}")


def cmd_list(args, store: LinkStore, config: RlConfig):
    """List links."""
    if args.all:
        status = ReadStatus.ALL
    elif args.read:
        status = ReadStatus.READ
    else:
        status = ReadStatus.UNREAD

    limit = args.limit if args.limit is not None else config.default_limit
    links = store.list(read_status=status, tag=args.tag, limit=limit)
    if not links:
        console.print("[yellow]No links found.[/yellow]")
        return
    output_links(links, config, args.output)


def cmd_open(args, store: LinkStore, config: RlConfig):
    """Open a link in the default browser."""
    link = store.get(args.id)
    if not webbrowser.open(link.url):
        raise RlError(f"could not launch a browser for {link.url}")
    console.print(f"Opened: {escape(link.url)}")


def cmd_done(args, store: LinkStore, config: RlConfig):
    """Mark a link as read."""
    store.mark_read(args.id)
    console.print(f"[green]Marked link {args.id} as read.[/green]")


def cmd_undo(args, store: LinkStore, config: RlConfig):
    """Mark a link as unread."""
    store.mark_unread(args.id)
    console.print(f"[green]Marked link {args.id} as unread.[/green]")


def cmd_remove(args, store: LinkStore, config: RlConfig):
    """Delete one or more links, reporting every id that failed."""
    deleted = []
    failed = []
    for link_id in args.ids:
        try:
            store.delete(link_id)
        except InvalidIDError:
            failed.append(f"{link_id} (invalid format)")
            continue
        except NotFoundError:
            failed.append(f"{link_id} (not found)")
            continue
        deleted.append(link_id)

    if len(deleted) == 1:
        console.print(f"[green]Deleted link {deleted[0]}.[/green]")
    elif deleted:
        console.print(f"[green]Deleted {len(deleted)} link(s): {', '.join(deleted)}[/green]")

    if failed:
        raise RlError(f"failed to delete: {', '.join(failed)}")


def cmd_export(args, store: LinkStore, config: RlConfig):
    """Export all links as JSON."""
    links = store.export()
    if args.file:
        export_file(links, Path(args.file), pretty=config.export_pretty)
        err_console.print(f"[green]Exported {len(links)} link(s) to {args.file}[/green]")
    else:
        export_json(links, sys.stdout, pretty=config.export_pretty)


def cmd_import(args, store: LinkStore, config: RlConfig):
    """Import links from a JSON export."""
    try:
        report = import_file(store, Path(args.file))
    except ImportAbortedError as e:
        if e.report is not None:
            console.print(f"[yellow]Imported {e.report.imported} link(s) before the failure.[/yellow]")
        raise

    console.print(
        f"[green]Imported {report.imported} link(s)[/green] "
        f"({report.created} new, {report.updated} merged)"
    )
    for skipped in report.skipped:
        console.print(f"[yellow]Skipped record {skipped.index}: {escape(skipped.reason)}[/yellow]")


def cmd_search(args, store: LinkStore, config: RlConfig):
    """Full-text search."""
    links = store.search(args.query)
    if not links:
        console.print("[yellow]No links found.[/yellow]")
        return
    output_links(links, config, args.output)


def cmd_stats(args, store: LinkStore, config: RlConfig):
    """Show store statistics."""
    stats = store.stats()
    table = Table(title="Store Statistics", show_header=False)
    table.add_column("Field", style="cyan bold")
    table.add_column("Value")
    for key, value in stats.items():
        table.add_row(key.replace("_", " ").capitalize(), str(value))
    console.print(table)


def _id_arg(value: str) -> str:
    try:
        return require_valid_id(value)
    except InvalidIDError as e:
        raise argparse.ArgumentTypeError(str(e))


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="rl",
        description="rl - save links now, read them later",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  rl add https://example.com --title "Example" --tags "web,demo"
  rl ls --all --tag web
  rl done <id>
  rl search "python AND asyncio"
  rl export > backup.json
  rl import backup.json

Configuration:
  Default database: ~/.config/rl/links.db
  Config file: ~/.config/rl/config.toml
  Environment: RL_DATABASE, RL_DISPLAY_TIMEZONE, RL_LOG_LEVEL
        """
    )

    parser.add_argument("--db", help="Database file")
    parser.add_argument("--config", help="Config file path")
    parser.add_argument("--version", action="version", version=f"rl {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    p_add = subparsers.add_parser("add", help="Add a link (merges into an existing one)")
    p_add.add_argument("url", help="URL to save")
    p_add.add_argument("--title", default="", help="Title for the link")
    p_add.add_argument("--note", default="", help="Note for the link")
    p_add.add_argument("--tags", default="", help="Comma-separated tags")
    p_add.set_defaults(func=cmd_add)

    p_list = subparsers.add_parser("ls", aliases=["list"], help="List links (unread by default)")
    status = p_list.add_mutually_exclusive_group()
    status.add_argument("--unread", action="store_true", help="Only unread links (default)")
    status.add_argument("--read", action="store_true", help="Only read links")
    status.add_argument("--all", action="store_true", help="All links")
    p_list.add_argument("--tag", default="", help="Filter by tag")
    p_list.add_argument("--limit", type=int, help="Maximum number of links")
    p_list.add_argument("-o", "--output", choices=["table", "json", "urls"], default="table")
    p_list.set_defaults(func=cmd_list)

    p_open = subparsers.add_parser("open", help="Open a link in the browser")
    p_open.add_argument("id", type=_id_arg)
    p_open.set_defaults(func=cmd_open)

    p_done = subparsers.add_parser("done", help="Mark a link as read")
    p_done.add_argument("id", type=_id_arg)
    p_done.set_defaults(func=cmd_done)

    p_undo = subparsers.add_parser("undo", help="Mark a link as unread")
    p_undo.add_argument("id", type=_id_arg)
    p_undo.set_defaults(func=cmd_undo)

    p_rm = subparsers.add_parser("rm", help="Delete links")
    p_rm.add_argument("ids", nargs="+", metavar="id")
    p_rm.set_defaults(func=cmd_remove)

    p_export = subparsers.add_parser("export", help="Export all links as JSON")
    p_export.add_argument("file", nargs="?", help="Output file (default: stdout)")
    p_export.set_defaults(func=cmd_export)

    p_import = subparsers.add_parser("import", help="Import links from a JSON export")
    p_import.add_argument("file", help="JSON file to import")
    p_import.set_defaults(func=cmd_import)

    p_search = subparsers.add_parser("search", aliases=["grep"], help="Full-text search")
    p_search.add_argument("query", help="Search query")
    p_search.add_argument("-o", "--output", choices=["table", "json", "urls"], default="table")
    p_search.set_defaults(func=cmd_search)

    p_stats = subparsers.add_parser("stats", help="Show store statistics")
    p_stats.set_defaults(func=cmd_stats)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point. Returns the process exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.config:
        get_config(reload=True, config_file=Path(args.config))
    config = init_config(database=args.db)

    logging.basicConfig(level=config.log_level.upper(), format="%(levelname)s: %(message)s")
    console.no_color = err_console.no_color = not config.color_output

    try:
        with LinkStore(config=config) as store:
            args.func(args, store, config)
    except KeyboardInterrupt:
        err_console.print("\n[yellow]Interrupted[/yellow]")
        return 130
    except (RlError, OSError) as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
