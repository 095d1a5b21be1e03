"""
Command-line interface for sam-backup.

Provides commands to export the store to an encrypted backup file, inspect
a backup, and restore from one.

Uses Python's argparse module (no external CLI libraries). Passwords are
always read interactively with getpass and never accepted as arguments.
"""

from __future__ import annotations

import argparse
import getpass
import json
import logging
import sys
from pathlib import Path
from typing import NoReturn

from sambackup import __version__
from sambackup.backup import BackupError, BackupService
from sambackup.config.settings import (
    ConfigurationError,
    Settings,
    get_config_path,
    load_config,
)
from sambackup.storage import SQLiteStore, StorageError

logger = logging.getLogger(__name__)

# Global quiet setting (set during main() based on args)
_quiet_mode = False


def set_output_mode(quiet: bool = False) -> None:
    """
    Set the output mode for the CLI.

    Args:
        quiet: If True, suppress non-essential output.
    """
    global _quiet_mode
    _quiet_mode = quiet


def output(message: str = "", force: bool = False) -> None:
    """Print a message to stdout, respecting quiet mode."""
    if force or not _quiet_mode:
        print(message)


def output_error(message: str) -> None:
    """Print an error message (always shown, even in quiet mode)."""
    print(message, file=sys.stderr)


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="sam-backup",
        description="Encrypted backup and restore for the SAM store",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"sam-backup {__version__}",
    )

    parser.add_argument(
        "--config",
        metavar="PATH",
        help="Override config file location (default: ~/.sam-backup/config.yaml)",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase output verbosity (can be repeated)",
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress non-essential output",
    )

    subparsers = parser.add_subparsers(
        title="commands",
        dest="command",
        metavar="<command>",
    )

    # info command
    info_parser = subparsers.add_parser(
        "info",
        help="Show configuration and store statistics",
        description="Display version, configuration paths, and record counts.",
    )
    info_parser.add_argument(
        "--json",
        action="store_true",
        help="Output as JSON",
    )
    info_parser.set_defaults(func=cmd_info)

    # export command
    export_parser = subparsers.add_parser(
        "export",
        help="Export the store to an encrypted backup file",
        description="Create an encrypted .sam-backup file of all people, contexts and evidence.",
    )
    export_parser.add_argument(
        "--output",
        "-o",
        metavar="DIR",
        help="Output directory for the backup file (default: configured backup dir)",
    )
    export_parser.add_argument(
        "--name",
        metavar="FILENAME",
        help="Backup file name (default: 'SAM Backup YYYY-MM-DD.sam-backup')",
    )
    export_parser.set_defaults(func=cmd_export)

    # inspect command
    inspect_parser = subparsers.add_parser(
        "inspect",
        help="Show what a backup file contains",
        description="Decrypt and validate a backup file without restoring it.",
    )
    inspect_parser.add_argument(
        "backup_file",
        metavar="FILE",
        help="Path to backup file (.sam-backup)",
    )
    inspect_parser.add_argument(
        "--json",
        action="store_true",
        help="Output as JSON",
    )
    inspect_parser.set_defaults(func=cmd_inspect)

    # restore command
    restore_parser = subparsers.add_parser(
        "restore",
        help="Restore the store from a backup file",
        description="Replace all people, contexts and evidence with the contents of a backup.",
    )
    restore_parser.add_argument(
        "backup_file",
        metavar="FILE",
        help="Path to backup file (.sam-backup)",
    )
    restore_parser.add_argument(
        "--no-backup",
        action="store_true",
        dest="no_backup",
        help="Skip backing up existing data before restore",
    )
    restore_parser.add_argument(
        "--force",
        action="store_true",
        help="Skip confirmation prompts",
    )
    restore_parser.set_defaults(func=cmd_restore)

    return parser


def setup_logging(verbose: int, quiet: bool, log_level: str | None = None) -> None:
    """Configure logging based on verbosity level and configured log level."""
    if quiet:
        level = logging.WARNING
    elif verbose >= 1:
        level = logging.DEBUG
    else:
        level = getattr(logging, log_level or "INFO", logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )


def _load_settings(args: argparse.Namespace) -> Settings:
    config_path = Path(args.config) if args.config else None
    return load_config(config_path)


def prompt_password(confirm: bool = False) -> str | None:
    """
    Read a backup password from the terminal.

    Args:
        confirm: Ask twice and require both entries to match.

    Returns:
        The password, or None if it was empty or did not match.
    """
    password = getpass.getpass("Backup password: ")
    if not password:
        output_error("Error: Password must not be empty.")
        return None

    if confirm:
        again = getpass.getpass("Confirm password: ")
        if again != password:
            output_error("Error: Passwords do not match.")
            return None

    return password


def cmd_info(args: argparse.Namespace) -> int:
    """Show configuration and store statistics."""
    settings = _load_settings(args)
    store = SQLiteStore(data_dir=settings.data_dir)

    info = {
        "version": __version__,
        "config_file": str(Path(args.config) if args.config else get_config_path()),
        "database": str(store.db_path),
        "backup_dir": settings.backup.output_dir,
        "counts": store.counts(),
    }

    if args.json:
        output(json.dumps(info, indent=2), force=True)
        return 0

    output(f"sam-backup {info['version']}")
    output("=" * 50)
    output(f"Config file:       {info['config_file']}")
    output(f"Database:          {info['database']}")
    output(f"Backup directory:  {info['backup_dir']}")
    output()
    output("Records:")
    for name, count in info["counts"].items():
        output(f"  {name}: {count}")
    return 0


def cmd_export(args: argparse.Namespace) -> int:
    """Export the store to an encrypted backup file."""
    settings = _load_settings(args)
    store = SQLiteStore(data_dir=settings.data_dir)
    output_dir = Path(args.output) if args.output else Path(settings.backup.output_dir)

    output("SAM Backup Export")
    output("=" * 50)
    output(f"Database: {store.db_path}")
    output(f"Output directory: {output_dir}")
    output()

    password = prompt_password(confirm=True)
    if password is None:
        return 1

    output("Encrypting backup...")
    result = BackupService().export_to_file(
        store, password, output_dir=output_dir, filename=args.name
    )

    output()
    output("Backup exported successfully!")
    output()
    output(f"  File: {result.path}")
    output(f"  Size: {result.size_bytes:,} bytes")
    for name, count in result.info.counts.items():
        output(f"  {name.capitalize()}: {count}")
    output()
    output("Keep the password safe: the backup cannot be restored without it.")
    return 0


def cmd_inspect(args: argparse.Namespace) -> int:
    """Show what a backup file contains."""
    backup_path = Path(args.backup_file)

    password = prompt_password()
    if password is None:
        return 1

    info = BackupService().preview_file(backup_path, password)

    if args.json:
        output(
            json.dumps(
                {
                    "file": str(backup_path),
                    "version": info.version,
                    "created_at": info.created_at,
                    "schema_match": info.schema_match,
                    "counts": info.counts,
                },
                indent=2,
            ),
            force=True,
        )
        return 0

    output("Backup information:")
    output(f"  File: {backup_path}")
    output(f"  Created: {info.created_at}")
    output(f"  Format version: {info.version}")
    if not info.schema_match:
        output("  (written by an older format version)")
    for name, count in info.counts.items():
        output(f"  {name.capitalize()}: {count}")
    return 0


def cmd_restore(args: argparse.Namespace) -> int:
    """Restore the store from a backup file."""
    settings = _load_settings(args)
    backup_path = Path(args.backup_file)

    if not backup_path.exists():
        output_error(f"Error: Backup file not found: {backup_path}")
        return 1

    output("SAM Backup Restore")
    output("=" * 50)
    output(f"Backup file: {backup_path}")
    output()

    password = prompt_password()
    if password is None:
        return 1

    service = BackupService()

    # Decrypt and validate before asking anything else
    info = service.preview_file(backup_path, password)
    output("Backup verified successfully.")
    output(f"  Created: {info.created_at}")
    for name, count in info.counts.items():
        output(f"  {name.capitalize()}: {count}")
    output()

    backup_existing = settings.backup.backup_before_restore and not args.no_backup

    if not args.force:
        output("WARNING: This will replace all people, contexts and evidence.")
        if backup_existing:
            output("(A backup of existing data will be created first)")
        output()
        response = input("Proceed with restore? [y/N]: ").strip().lower()
        if response not in ("y", "yes"):
            output("Restore cancelled.")
            return 0

    store = SQLiteStore(data_dir=settings.data_dir)

    output()
    output("Restoring...")
    result = service.import_from_file(
        backup_path,
        password,
        store,
        backup_existing=backup_existing,
        backup_dir=settings.backup.output_dir,
    )

    summary = result.summary
    output()
    output("Restore completed successfully!")
    output()
    output(f"  People: {summary.people}")
    output(f"  Contexts: {summary.contexts}")
    output(f"  Evidence items: {summary.evidence}")
    output(f"  Links restored: {summary.links_restored}")
    if summary.links_dropped:
        output(f"  Dangling links dropped: {summary.links_dropped}")
    if result.backup_created:
        output(f"  Previous data backed up to: {result.backup_created}")
    return 0


def main() -> NoReturn:
    """Main entry point for the sam-backup CLI."""
    parser = create_parser()
    args = parser.parse_args()

    set_output_mode(args.quiet)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    try:
        settings = _load_settings(args)
    except ConfigurationError as e:
        output_error(f"Configuration error: {e}")
        sys.exit(2)

    setup_logging(args.verbose, args.quiet, settings.log_level)

    try:
        exit_code = args.func(args)
        sys.exit(exit_code)
    except KeyboardInterrupt:
        output("\nOperation cancelled.")
        sys.exit(130)
    except ConfigurationError as e:
        output_error(f"Configuration error: {e}")
        sys.exit(2)
    except (BackupError, StorageError) as e:
        logger.debug("Command failed", exc_info=True)
        output_error(f"Error: {e}")
        sys.exit(1)
    except Exception as e:
        if args.verbose > 0:
            raise
        output_error(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
