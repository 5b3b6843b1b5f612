"""
Reading the exported users JSON.

The export is a JSON array of user objects. Anything else (missing file,
invalid JSON, a non-array document) is fatal for the whole batch, so it is
reported before any remote call is made.
"""

import json
import logging
from pathlib import Path
from typing import Any, Union

logger = logging.getLogger(__name__)


class SourceFileError(Exception):
    """Raised when the users export cannot be read or parsed."""
    pass


def load_users(path: Union[str, Path]) -> list[Any]:
    """
    Load the ordered list of user records from a JSON file.

    Items are returned as-is; validating individual records is the
    importer's job so that one bad record does not sink the batch.

    Args:
        path: Path to the users JSON export

    Returns:
        List of records in file order

    Raises:
        SourceFileError: If the file is missing, unreadable, not valid JSON,
            or does not contain a top-level array
    """
    path = Path(path)
    if not path.is_file():
        raise SourceFileError(
            f"Expected file: {path} - please place the exported users JSON there"
        )

    try:
        with path.open("r", encoding="utf-8") as handle:
            users = json.load(handle)
    except json.JSONDecodeError as e:
        raise SourceFileError(f"Failed to parse {path.name}: {e}") from e
    except (OSError, UnicodeDecodeError) as e:
        raise SourceFileError(f"Failed to read {path}: {e}") from e

    if not isinstance(users, list):
        raise SourceFileError(
            f"{path.name} must contain a JSON array of users, got {type(users).__name__}"
        )

    logger.info(f"Loaded {len(users)} user records from {path}")
    return users
