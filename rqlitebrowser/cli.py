"""
rqlitebrowser CLI - command-line interface for the rqlitebrowser package

Provides configuration, health checks, saved connections, table listing and
bulk CSV/SQL import and export.
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

from .config import DEFAULT_CONFIG_FILE, BrowserSettings, ConfigManager
from .database import ConnectionStore, RqliteClient
from .transfer import ExportManager, ImportManager
from .utils import LoggingManager, RqliteBrowserError, ValidationError


def get_version() -> str:
    """Get the rqlitebrowser package version."""
    try:
        from importlib.metadata import version

        return version("rqlitebrowser")
    except Exception:
        # Fallback to __init__.py version if metadata not available
        try:
            from rqlitebrowser import __version__

            return __version__
        except ImportError:
            return "unknown"


def _load_settings(args: argparse.Namespace) -> BrowserSettings:
    settings = ConfigManager(getattr(args, "config", None)).load()
    LoggingManager.setup_logging(settings.logging)
    return settings


def _make_client(
    settings: BrowserSettings, connection_name: Optional[str] = None
) -> RqliteClient:
    """Client for a saved connection, or for the configured default url"""
    if not connection_name:
        return RqliteClient.from_settings(settings.rqlite)
    connection = ConnectionStore(settings.connections_db).find_by_name(connection_name)
    if connection is None:
        raise ValidationError(f"No saved connection named '{connection_name}'")
    return RqliteClient(
        connection.url,
        username=connection.username,
        password=connection.password,
        timeout=settings.rqlite.timeout,
        console_timeout=settings.rqlite.console_timeout,
        read_consistency=settings.rqlite.read_consistency,
    )


def _print_progress(snapshot) -> None:
    if hasattr(snapshot, "rows_inserted"):
        line = (
            f"{snapshot.phase.value}: {snapshot.rows_parsed} parsed, "
            f"{snapshot.rows_inserted} inserted"
        )
    else:
        line = (
            f"{snapshot.phase.value}: {snapshot.rows_fetched}/{snapshot.total_rows} "
            f"fetched, {snapshot.rows_formatted} formatted"
        )
    end = "\n" if snapshot.phase.is_terminal else ""
    print(f"\r  {line}", end=end, file=sys.stderr, flush=True)


def cmd_version(args: argparse.Namespace) -> int:
    """Handle --version command."""
    print(f"rqlitebrowser version {get_version()}")
    return 0


def cmd_init(args: argparse.Namespace) -> int:
    """
    Handle init command - creates a starter rqlitebrowser.json config.

    Returns:
        0 on success, 1 on failure
    """
    config_path = Path(DEFAULT_CONFIG_FILE)
    existed = config_path.exists()

    if existed and not args.force:
        print(f"Error: {config_path} already exists. Use --force to overwrite.")
        return 1

    try:
        ConfigManager(config_path).save(BrowserSettings())
    except OSError as e:
        print(f"Error: Failed to create {config_path}: {e}")
        return 1

    action = "Overwritten" if existed else "Created"
    print(f"✓ {action} {config_path}")
    print("\nNext steps:")
    print(f"  1. Edit {config_path} and point rqlite.url at your cluster")
    print("  2. Or set RQLITE_URL / RQLITE_USERNAME / RQLITE_PASSWORD in the environment")
    print("  3. Run 'rqlitebrowser health --check-db' to verify the connection")
    return 0


def cmd_health(args: argparse.Namespace) -> int:
    """
    Handle health command - validates environment and configuration.

    Returns:
        0 if all checks pass, non-zero otherwise
    """
    print("rqlitebrowser Health Check")
    print("=" * 50)

    exit_code = 0

    print("\n1. Package Import Check...")
    print(f"   ✓ rqlitebrowser {get_version()} imported successfully")

    print("\n2. Core Dependencies Check...")
    required_deps = [
        ("httpx", "httpx"),
        ("pydantic", "Pydantic"),
        ("sqlalchemy", "SQLAlchemy"),
        ("loguru", "Loguru"),
        ("dotenv", "python-dotenv"),
    ]
    for module_name, display_name in required_deps:
        try:
            __import__(module_name)
            print(f"   ✓ {display_name} available")
        except ImportError:
            print(f"   ✗ {display_name} not installed")
            exit_code = 1

    print("\n3. Configuration File Check...")
    config_path = Path(args.config if args.config else DEFAULT_CONFIG_FILE)
    if not config_path.exists():
        print(f"   ⚠ Config file not found: {config_path}")
        print("     Run 'rqlitebrowser init' to create a starter configuration")

    settings = None
    try:
        settings = ConfigManager(config_path).load()
        if config_path.exists():
            print(f"   ✓ Config file valid: {config_path}")
        print(f"   ✓ rqlite url: {settings.rqlite.url}")
        print(f"   ✓ Connections database: {settings.connections_db.split(':')[0]}")
    except RqliteBrowserError as e:
        print(f"   ✗ Invalid configuration: {e}")
        exit_code = 1

    if args.check_db and settings is not None:
        print("\n4. rqlite Connectivity Check...")

        async def reachable() -> bool:
            async with RqliteClient.from_settings(settings.rqlite) as client:
                return await client.test_connection()

        if asyncio.run(reachable()):
            print(f"   ✓ Connected to {settings.rqlite.url}")
        else:
            print(f"   ✗ Could not reach {settings.rqlite.url}")
            exit_code = 1

    print("\n" + "=" * 50)
    if exit_code == 0:
        print("✓ All health checks passed!")
    else:
        print("✗ Some health checks failed. Please review the output above.")
    return exit_code


def cmd_connections(args: argparse.Namespace) -> int:
    """Handle connections list/add/remove."""
    try:
        settings = _load_settings(args)
        store = ConnectionStore(settings.connections_db)

        if args.action == "list":
            connections = store.list_connections()
            if not connections:
                print("No saved connections")
            for connection in connections:
                user = f" as {connection.username}" if connection.username else ""
                print(f"{connection.name}\t{connection.url}{user}\t{connection.id}")
            return 0

        if args.action == "add":
            if store.find_by_name(args.name) is not None:
                print(f"Error: a connection named '{args.name}' already exists")
                return 1
            if not args.skip_check:

                async def reachable() -> bool:
                    async with RqliteClient(
                        args.url,
                        username=args.username,
                        password=args.password,
                        timeout=settings.rqlite.timeout,
                    ) as client:
                        return await client.test_connection()

                if not asyncio.run(reachable()):
                    print(f"Error: could not connect to {args.url}; not saved")
                    return 1
            connection = store.add_connection(
                args.name, args.url, args.username, args.password
            )
            print(f"✓ Saved connection '{connection.name}' ({connection.id})")
            return 0

        connection = store.find_by_name(args.name) or store.get_connection(args.name)
        if connection is None or not store.remove_connection(connection.id):
            print(f"Error: no saved connection '{args.name}'")
            return 1
        print(f"✓ Removed connection '{connection.name}'")
        return 0
    except RqliteBrowserError as e:
        print(f"Error: {e}")
        return 1


def cmd_tables(args: argparse.Namespace) -> int:
    """Handle tables command - lists tables with row counts."""

    async def run(settings: BrowserSettings) -> None:
        async with _make_client(settings, args.connection) as client:
            for table in await client.get_tables():
                count = await client.get_table_count(table)
                print(f"{table}\t{count}")

    try:
        asyncio.run(run(_load_settings(args)))
        return 0
    except RqliteBrowserError as e:
        print(f"Error: {e}")
        return 1


def cmd_import(args: argparse.Namespace) -> int:
    """Handle import command - streams a CSV or SQL file into a table."""

    async def run(settings: BrowserSettings):
        async with _make_client(settings, args.connection) as client:
            manager = ImportManager(client, settings.transfer)
            job = manager.start_import(
                args.file,
                args.table,
                format=args.format,
                batch_size=args.batch_size,
                progress_callback=None if args.quiet else _print_progress,
                strict=args.strict,
            )
            try:
                return await job.result()
            except (KeyboardInterrupt, asyncio.CancelledError):
                job.cancel()
                raise

    try:
        final = asyncio.run(run(_load_settings(args)))
    except RqliteBrowserError as e:
        print(f"Error: {e}")
        return 1
    except KeyboardInterrupt:
        print("Import interrupted")
        return 130

    print(f"✓ Import {final.phase.value}: {final.rows_inserted} row(s) inserted")
    return 0


def cmd_export(args: argparse.Namespace) -> int:
    """Handle export command - writes a table to a CSV or SQL file."""

    async def run(settings: BrowserSettings):
        async with _make_client(settings, args.connection) as client:
            manager = ExportManager(client, settings.transfer)
            return await manager.export_to_file(
                args.table,
                args.output,
                format=args.format,
                page_size=args.page_size,
                concurrency=args.concurrency,
                include_schema=args.include_schema,
                progress_callback=None if args.quiet else _print_progress,
            )

    try:
        summary = asyncio.run(run(_load_settings(args)))
    except RqliteBrowserError as e:
        print(f"Error: {e}")
        return 1
    except KeyboardInterrupt:
        print("Export interrupted")
        return 130

    if summary is None:
        print(f"Table {args.table} is empty; nothing written")
        return 0
    print(
        f"✓ Exported {summary['row_count']} row(s) to {summary['export_path']} "
        f"({summary['file_size']} bytes, {summary['checksum_algorithm']} "
        f"{summary['checksum']})"
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rqlitebrowser",
        description="rqlitebrowser - browse and bulk-transfer rqlite data",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  rqlitebrowser --version                      Show version information
  rqlitebrowser init                           Create a starter rqlitebrowser.json
  rqlitebrowser health --check-db              Check config and connectivity
  rqlitebrowser connections add prod http://db:4001
  rqlitebrowser tables --connection prod
  rqlitebrowser import users.csv --table users
  rqlitebrowser export --table users --output users.sql --include-schema
        """,
    )

    parser.add_argument(
        "--version", action="store_true", help="Show version information"
    )

    config_parent = argparse.ArgumentParser(add_help=False)
    config_parent.add_argument(
        "--config",
        type=str,
        default=None,
        help=f"Path to configuration file (default: {DEFAULT_CONFIG_FILE})",
    )

    target_parent = argparse.ArgumentParser(add_help=False, parents=[config_parent])
    target_parent.add_argument(
        "--connection", default=None, help="Saved connection name (default: config url)"
    )
    target_parent.add_argument(
        "--quiet", action="store_true", help="Do not print progress"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    init_parser = subparsers.add_parser(
        "init", help=f"Create a starter {DEFAULT_CONFIG_FILE} configuration file"
    )
    init_parser.add_argument(
        "--force", action="store_true", help="Overwrite existing configuration file"
    )

    health_parser = subparsers.add_parser(
        "health",
        parents=[config_parent],
        help="Check environment, dependencies, and configuration",
    )
    health_parser.add_argument(
        "--check-db", action="store_true", help="Include rqlite connectivity check"
    )

    connections_parser = subparsers.add_parser(
        "connections", help="Manage saved connections"
    )
    actions = connections_parser.add_subparsers(dest="action", required=True)
    actions.add_parser("list", parents=[config_parent], help="List saved connections")
    add_parser = actions.add_parser(
        "add", parents=[config_parent], help="Test and save a connection"
    )
    add_parser.add_argument("name")
    add_parser.add_argument("url")
    add_parser.add_argument("--username", default=None)
    add_parser.add_argument("--password", default=None)
    add_parser.add_argument(
        "--skip-check", action="store_true", help="Save without probing the server"
    )
    remove_parser = actions.add_parser(
        "remove", parents=[config_parent], help="Remove a saved connection"
    )
    remove_parser.add_argument("name", help="Connection name or id")

    subparsers.add_parser(
        "tables", parents=[target_parent], help="List tables and row counts"
    )

    import_parser = subparsers.add_parser(
        "import", parents=[target_parent], help="Import a CSV or SQL file"
    )
    import_parser.add_argument("file", help="CSV or SQL file to import")
    import_parser.add_argument("--table", required=True, help="Target table")
    import_parser.add_argument(
        "--format", choices=["csv", "sql"], default=None, help="Default: from suffix"
    )
    import_parser.add_argument("--batch-size", type=int, default=None)
    import_parser.add_argument(
        "--strict", action="store_true", help="Reject unterminated quoted fields"
    )

    export_parser = subparsers.add_parser(
        "export", parents=[target_parent], help="Export a table to CSV or SQL"
    )
    export_parser.add_argument("--table", required=True, help="Table to export")
    export_parser.add_argument("--output", required=True, help="Output file path")
    export_parser.add_argument(
        "--format", choices=["csv", "sql"], default=None, help="Default: from suffix"
    )
    export_parser.add_argument("--page-size", type=int, default=None)
    export_parser.add_argument("--concurrency", type=int, default=None)
    export_parser.add_argument(
        "--include-schema",
        action="store_true",
        help="Write CREATE TABLE before the INSERTs (SQL only)",
    )

    return parser


def main(argv: Optional[list] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        return cmd_version(args)

    commands = {
        "init": cmd_init,
        "health": cmd_health,
        "connections": cmd_connections,
        "tables": cmd_tables,
        "import": cmd_import,
        "export": cmd_export,
    }
    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        return 0
    return handler(args)


if __name__ == "__main__":
    sys.exit(main())
