#!/usr/bin/env python3
"""
notesync - Vault to knowledge base note sync

Main entry point for notesync. Parses the notes marked for sync in a vault,
converts them into structured documents and merges them into the local note
store.
"""

import argparse
import json
import logging
import sys
from typing import Optional

from notesync.config import ConfigManager, config
from notesync.database import DatabaseManager
from notesync.importers import BaseImporter, MockImporter, VaultImporter
from notesync.models import SourceCategory
from notesync.sync import ImageUploader, MergeResolver, NoteProcessor, ProcessingReport


def setup_logging(settings: ConfigManager = config):
    """Configure logging for the application."""
    level = getattr(logging, settings.get("logging.level", "INFO").upper())
    format_str = settings.get("logging.format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    log_file = settings.log_filename

    logging.basicConfig(
        level=level,
        format=format_str,
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_file)
        ]
    )


def create_importer(importer_type: str, vault_path: str) -> BaseImporter:
    """
    Create the vault source.

    Args:
        importer_type: 'vault' for a directory on disk, 'mock' for the sample vault
        vault_path: Vault directory (vault importer only)

    Returns:
        The importer
    """
    if importer_type == "mock":
        return MockImporter()
    return VaultImporter(vault_path)


def dump_documents(report: ProcessingReport):
    """Print the assembled documents as JSON."""
    documents = [document.model_dump(mode="json") for document in report.documents]
    print(json.dumps(documents, indent=2, ensure_ascii=False))

    for path, reason in report.failures.items():
        print(f"Failed: {path}: {reason}", file=sys.stderr)


def run_sync(settings: ConfigManager, importer: BaseImporter, note: Optional[str] = None,
             can_override: bool = False, dump: bool = False) -> bool:
    """
    Parse the marked notes and sync them into the local note store.

    Args:
        settings: Configuration
        importer: Vault source
        note: Only process this note
        can_override: Overwrite notes that conflict with existing ones
        dump: Print the documents instead of syncing them

    Returns:
        True if every note was processed and synced
    """
    with ImageUploader(settings.api_token, settings.upload_url, settings.api_timeout) as uploader:
        processor = NoteProcessor(importer, uploader=uploader, config=settings)

        if dump:
            if note:
                report = processor.process_single_file(note)
                if report is None:
                    print(f"{note} is not marked for sync ({settings.sync_flag}: true).")
                    return False
            else:
                report = processor.process_marked_files()
            dump_documents(report)
            return not report.failures

        with DatabaseManager(settings.database_filename) as db:
            db.initialize_database()
            logging.info("Database initialized")

            resolver = MergeResolver(
                db,
                processor.user_id,
                source_category=SourceCategory(**settings.source_category),
                source_type=settings.get("sync.source_type", "text")
            )

            if note:
                report = processor.process_single_file(note)
                if report is None:
                    print(f"{note} is not marked for sync ({settings.sync_flag}: true).")
                    return False
                response = resolver.sync(report.documents, can_override=can_override)
                if report.failures:
                    response.data.failed_notes.update(report.failures)
                    response.success = False
            else:
                response = processor.sync(resolver, can_override=can_override)

            print(NoteProcessor.summarize(response))

            for replacement in response.data.replacement_notes:
                print(f"  Conflict: {replacement['title']} (rerun with --override to replace)")

            return response.success


def parse_arguments():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="notesync - Vault to knowledge base note sync",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --vault ~/Notes                  # Sync every note marked with oe_sync: true
  python main.py --vault ~/Notes --file Ideas.md  # Sync a single note
  python main.py --vault ~/Notes --override       # Replace conflicting notes
  python main.py --importer mock --dump           # Print documents for the sample vault
        """
    )

    parser.add_argument(
        "--importer",
        choices=["vault", "mock"],
        default="vault",
        help="Vault source to use (default: vault)"
    )

    parser.add_argument(
        "--vault",
        type=str,
        help="Path to the vault directory (default: paths.vault_dir from config)"
    )

    parser.add_argument(
        "--file",
        type=str,
        help="Vault path of a single note to sync"
    )

    parser.add_argument(
        "--override",
        action="store_true",
        help="Overwrite existing notes that conflict with synced ones"
    )

    parser.add_argument(
        "--dump",
        action="store_true",
        help="Print the assembled documents as JSON instead of syncing"
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to the configuration file (default: config.yaml)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version="notesync 0.1.0"
    )

    return parser.parse_args()


def main():
    """Main entry point."""
    args = parse_arguments()
    settings = ConfigManager(args.config) if args.config else config
    setup_logging(settings)

    logging.info("notesync - Vault to knowledge base note sync")

    try:
        importer = create_importer(args.importer, args.vault or settings.vault_directory)
        ok = run_sync(settings, importer, note=args.file, can_override=args.override, dump=args.dump)

    except KeyboardInterrupt:
        logging.info("Sync interrupted by user")
        print("\nSync interrupted.")
        sys.exit(1)

    except Exception as e:
        logging.error(f"Sync failed: {e}")
        print(f"\nSync failed: {e}")
        sys.exit(1)

    if not ok:
        sys.exit(1)


if __name__ == "__main__":
    main()
