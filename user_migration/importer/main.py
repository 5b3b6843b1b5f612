"""
User Importer - Main Entry Point

Reads an exported users JSON array and upserts every user into the `users`
table. When a user's profilePicture names a file in the profile-files
directory, the file is uploaded to the storage bucket first and the field
is rewritten to the object's public URL.

Usage:
    python -m user_migration.importer.main [OPTIONS]

Options:
    --source PATH        Users JSON export (default: scripts/users.json)
    --files-dir PATH     Directory holding profile pictures (default: scripts/profile-files)
    --config PATH        YAML settings file (default: config/importer.yml)
    --dry-run            Normalize and log without uploading or writing
    --verbose            Enable debug logging
    --help               Show this message and exit

Environment:
    SUPABASE_URL         Project URL (required)
    SUPABASE_KEY         Service-role or anon key (required)
    SUPABASE_BUCKET      Storage bucket (default: "time station - data")
    DATABASE_URL         Write rows over a direct Postgres connection instead
                         of the REST API (optional)

Examples:
    # Import scripts/users.json:
    python -m user_migration.importer.main

    # Check what would be imported from another export:
    python -m user_migration.importer.main --source /tmp/users.json --dry-run

Exit Codes:
    0: Reached the end of the batch (individual users may have failed)
    1: Fatal error (missing configuration, missing or invalid source file)

SECURITY: a service-role key gives full database access. Only use it in a
secure environment.
"""

import argparse
import logging
import os
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from supabase import Client, create_client

from user_migration.common.config import ConfigError, ImporterConfig, load_config
from user_migration.common.source_loader import SourceFileError, load_users

from .db_operations import DatabaseError, PostgresUsersTable, SupabaseUsersTable, UsersTable
from .records import NormalizationError, UserRecord, upload_path_for
from .storage import ObjectStore, ProfilePictureStorage, StorageError

# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)

logger = logging.getLogger(__name__)


@dataclass
class PictureResult:
    """Result of the profile-picture step for one user."""

    profile_picture: Any
    upload_path: Optional[str] = None
    uploaded: bool = False
    upload_failed: bool = False


@dataclass
class RecordOutcome:
    """What happened to one user record."""

    index: int
    user_id: Any
    email: Optional[str]
    status: str  # 'upserted', 'failed' or 'dry_run'
    uploaded: bool = False
    upload_failed: bool = False
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status != 'failed'


@dataclass
class ImportSummary:
    """Running totals for a batch, folded one outcome at a time."""

    total: int = 0
    upserted: int = 0
    failed: int = 0
    uploaded: int = 0
    upload_failed: int = 0
    dry_run: int = 0
    outcomes: list[RecordOutcome] = field(default_factory=list)

    def add(self, outcome: RecordOutcome) -> "ImportSummary":
        self.total += 1
        if outcome.status == 'upserted':
            self.upserted += 1
        elif outcome.status == 'dry_run':
            self.dry_run += 1
        else:
            self.failed += 1
        if outcome.uploaded:
            self.uploaded += 1
        if outcome.upload_failed:
            self.upload_failed += 1
        self.outcomes.append(outcome)
        return self

    def as_dict(self) -> dict[str, int]:
        return {
            'total': self.total,
            'upserted': self.upserted,
            'failed': self.failed,
            'uploaded': self.uploaded,
            'upload_failed': self.upload_failed,
            'dry_run': self.dry_run,
        }


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        description='Upsert exported users into the users table',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    parser.add_argument(
        '--source',
        type=str,
        help='Path to the users JSON export',
        default=None
    )

    parser.add_argument(
        '--files-dir',
        type=str,
        help='Directory holding profile picture files',
        default=None,
        dest='files_dir'
    )

    parser.add_argument(
        '--config',
        type=str,
        help='YAML settings file (default: config/importer.yml)',
        default=None
    )

    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Normalize and log without uploading or writing',
        dest='dry_run'
    )

    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable debug logging'
    )

    return parser.parse_args(argv)


def _local_picture_file(files_dir: Path, filename: Any) -> Optional[Path]:
    """Return the local file a picture reference points to, if it exists inside files_dir."""
    if not filename or not isinstance(filename, str):
        return None

    # Containment is checked on the normalized path, not the symlink target
    root = os.path.abspath(files_dir)
    candidate = os.path.normpath(os.path.join(root, filename))
    if candidate == root or os.path.commonpath([root, candidate]) != root:
        return None
    if not os.path.isfile(candidate):
        return None
    return Path(candidate)


def resolve_profile_picture(
    record: UserRecord,
    files_dir: Path,
    storage: ObjectStore,
    upload_prefix: str = 'profiles',
    dry_run: bool = False
) -> PictureResult:
    """
    Upload a user's local profile picture and return the value to store.

    Pictures that are absent, already URLs, or missing from files_dir are
    passed through untouched and nothing is uploaded. A failed upload is
    logged and the original filename is kept; the user is still written.

    Raises:
        OSError: If the local file exists but cannot be read
    """
    filename = record.profile_picture
    local_file = _local_picture_file(files_dir, filename)
    if local_file is None:
        return PictureResult(profile_picture=filename)

    upload_path = upload_path_for(record.id, filename, prefix=upload_prefix)

    if dry_run:
        logger.info(f"DRY RUN: Would upload {local_file} to {upload_path}")
        return PictureResult(profile_picture=filename, upload_path=upload_path)

    data = local_file.read_bytes()

    try:
        storage.upload(upload_path, data)
        public_url = storage.public_url(upload_path)
    except StorageError as e:
        logger.error(
            f"Upload failed for {record.display_email}: {e}",
            extra={'user_id': record.id, 'upload_path': upload_path}
        )
        return PictureResult(
            profile_picture=filename,
            upload_path=upload_path,
            upload_failed=True
        )

    logger.info(f"Uploaded profile for {record.display_email} -> {public_url}")
    return PictureResult(profile_picture=public_url, upload_path=upload_path, uploaded=True)


def import_user(
    raw: Any,
    table: UsersTable,
    storage: ObjectStore,
    files_dir: Path,
    index: int = 0,
    upload_prefix: str = 'profiles',
    dry_run: bool = False,
    now: Optional[datetime] = None
) -> RecordOutcome:
    """
    Import one user: upload its picture, normalize it, upsert the row.

    Never raises for per-user failures; they are logged and reported in
    the returned outcome.
    """
    email = raw.get('email') if isinstance(raw, Mapping) else None
    user_id = raw.get('id') if isinstance(raw, Mapping) else None
    picture: Optional[PictureResult] = None

    def failed(error: Exception) -> RecordOutcome:
        return RecordOutcome(
            index=index,
            user_id=user_id,
            email=email,
            status='failed',
            uploaded=bool(picture and picture.uploaded),
            upload_failed=bool(picture and picture.upload_failed),
            error=str(error),
        )

    try:
        record = UserRecord.from_dict(raw)

        picture = resolve_profile_picture(
            record,
            files_dir,
            storage,
            upload_prefix=upload_prefix,
            dry_run=dry_run
        )
        record = replace(record, profile_picture=picture.profile_picture)

        row = record.to_row(now=now)

        if dry_run:
            logger.info(f"DRY RUN: Would upsert {email}", extra={'user_id': record.id})
            status = 'dry_run'
        else:
            table.upsert_user(row)
            logger.info(f"Upserted {email}")
            status = 'upserted'

        return RecordOutcome(
            index=index,
            user_id=record.id,
            email=email,
            status=status,
            uploaded=picture.uploaded,
            upload_failed=picture.upload_failed,
        )

    except NormalizationError as e:
        logger.warning(
            f"Skipping invalid user record #{index}: {e}",
            extra={'email': email}
        )
        return failed(e)

    except DatabaseError as e:
        logger.error(f"Upsert error for {email}: {e}", extra={'user_id': user_id})
        return failed(e)

    except Exception as e:
        logger.error(
            f"Error processing user {email}: {e}",
            extra={
                'user_id': user_id,
                'error': str(e),
                'error_type': type(e).__name__,
            }
        )
        return failed(e)


def run_importer(
    users: Sequence[Any],
    table: UsersTable,
    storage: ObjectStore,
    files_dir: Path,
    upload_prefix: str = 'profiles',
    dry_run: bool = False,
    now: Optional[datetime] = None
) -> ImportSummary:
    """
    Import every user in order, one at a time.

    Args:
        users: Records from the export, in file order
        table: Destination table store
        storage: Object store for profile pictures
        files_dir: Directory holding local profile picture files
        upload_prefix: Folder inside the bucket for uploaded pictures
        dry_run: If True, don't upload or write anything
        now: Timestamp for records without createdAt (defaults to current time)

    Returns:
        ImportSummary with per-user outcomes and totals
    """
    summary = ImportSummary()
    start_time = datetime.now(timezone.utc)

    logger.info(
        f"Starting import of {len(users)} users",
        extra={'files_dir': str(files_dir), 'dry_run': dry_run}
    )

    for index, raw in enumerate(users):
        summary.add(
            import_user(
                raw,
                table,
                storage,
                files_dir,
                index=index,
                upload_prefix=upload_prefix,
                dry_run=dry_run,
                now=now
            )
        )

    duration = (datetime.now(timezone.utc) - start_time).total_seconds()
    logger.info(
        "Import finished",
        extra={'duration_seconds': duration, **summary.as_dict()}
    )

    return summary


def build_users_table(config: ImporterConfig, client: Client, dry_run: bool = False) -> UsersTable:
    """
    Pick the table store: direct Postgres when DATABASE_URL is set, else the REST API.

    Dry runs never write, so the database connection is not opened.
    """
    if config.uses_direct_postgres:
        logger.info("Writing users over a direct database connection")
        return PostgresUsersTable(
            config.database_url,
            table=config.table,
            conflict_key=config.conflict_key,
            validate=not dry_run
        )
    return SupabaseUsersTable(client, table=config.table, conflict_key=config.conflict_key)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Main entry point for the user importer.

    Returns:
        Exit code (0 = reached end of batch, 1 = fatal error)
    """
    args = parse_args(argv)

    # Set logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.debug("Debug logging enabled")

    try:
        config = load_config(
            config_path=args.config,
            overrides={'source_path': args.source, 'files_dir': args.files_dir}
        )
    except ConfigError as e:
        logger.error(f"{e}. Aborting.")
        return 1

    try:
        users = load_users(config.source_path)
    except SourceFileError as e:
        logger.error(str(e))
        return 1

    try:
        client = create_client(config.supabase_url, config.supabase_key)
        storage = ProfilePictureStorage(client, config.bucket)
        table = build_users_table(config, client, dry_run=args.dry_run)

        summary = run_importer(
            users,
            table,
            storage,
            config.files_dir,
            upload_prefix=config.upload_prefix,
            dry_run=args.dry_run
        )

        if summary.failed > 0:
            logger.warning(
                f"Completed with errors: {summary.failed} of {summary.total} users failed"
            )
        if summary.upload_failed > 0:
            logger.warning(f"{summary.upload_failed} profile picture uploads failed")

        logger.info("Import complete. Verify records in Supabase Table Editor.")
        return 0

    except DatabaseError as e:
        logger.error(f"Database error: {e}")
        return 1

    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130  # Standard Unix exit code for SIGINT

    except Exception as e:
        logger.error(
            f"Fatal error: {e}",
            extra={
                'error': str(e),
                'error_type': type(e).__name__,
            },
            exc_info=True
        )
        return 1


if __name__ == '__main__':
    sys.exit(main())
