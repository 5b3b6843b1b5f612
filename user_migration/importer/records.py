"""
User Record Normalization

This module turns one loosely-typed record from the users export into the
fixed row shape of the `users` table.

Key Responsibilities:
- Validate the record at the boundary (it must be an object with an id)
- Apply defaults for missing optional fields
- Lower-case emails and coerce the admin/disabled flags to strict booleans
- Compute the deterministic storage path for a profile picture
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

logger = logging.getLogger(__name__)

# Column order of the target table
ROW_FIELDS = (
    'id',
    'name',
    'email',
    'password',
    'createdAt',
    'isAdmin',
    'isDisabled',
    'department',
    'profilePicture',
)


class NormalizationError(Exception):
    """Raised when a user record cannot be normalized due to invalid or missing data."""
    pass


@dataclass(frozen=True)
class UserRecord:
    """
    One user from the export.

    Every field except `id` is optional. Values are kept exactly as they
    appear in the export; defaults are applied by `to_row()`.
    """

    id: Any
    name: Any = None
    email: Any = None
    password: Any = None
    created_at: Any = None
    is_admin: Any = None
    is_disabled: Any = None
    department: Any = None
    profile_picture: Any = None

    @classmethod
    def from_dict(cls, data: Any) -> "UserRecord":
        """
        Build a UserRecord from a raw export item.

        Raises:
            NormalizationError: If the item is not an object or has no id
        """
        if not isinstance(data, Mapping):
            raise NormalizationError(
                f"user record must be a JSON object, got {type(data).__name__}"
            )

        user_id = data.get('id')
        if user_id is None or user_id == '':
            raise NormalizationError("id is required")

        return cls(
            id=user_id,
            name=data.get('name'),
            email=data.get('email'),
            password=data.get('password'),
            created_at=data.get('createdAt'),
            is_admin=data.get('isAdmin'),
            is_disabled=data.get('isDisabled'),
            department=data.get('department'),
            profile_picture=data.get('profilePicture'),
        )

    @property
    def display_email(self) -> Optional[str]:
        """Email used to identify the record in log lines."""
        return str(self.email) if self.email else None

    def to_row(self, now: Optional[datetime] = None) -> dict[str, Any]:
        """
        Project this record into the `users` table row.

        Args:
            now: Timestamp used when createdAt is absent (defaults to current UTC time)

        Returns:
            Dictionary keyed by the table's column names (see ROW_FIELDS)
        """
        created_at = self.created_at
        if not created_at:
            created_at = _iso_timestamp(now or datetime.now(timezone.utc))

        return {
            'id': self.id,
            'name': self.name or None,
            'email': str(self.email).lower() if self.email else '',
            'password': self.password or None,
            'createdAt': created_at,
            'isAdmin': bool(self.is_admin),
            'isDisabled': bool(self.is_disabled),
            'department': self.department or None,
            'profilePicture': self.profile_picture or None,
        }


def normalize_user_record(data: Any, now: Optional[datetime] = None) -> dict[str, Any]:
    """
    Normalize a raw export item into a `users` row.

    Examples:
        >>> row = normalize_user_record({'id': 'u1', 'email': 'A@B.com', 'isAdmin': 1})
        >>> row['email'], row['isAdmin'], row['isDisabled']
        ('a@b.com', True, False)
    """
    return UserRecord.from_dict(data).to_row(now=now)


def upload_path_for(user_id: Any, filename: str, prefix: str = 'profiles') -> str:
    """
    Deterministic object path for a user's profile picture.

    The same id and filename always map to the same path, so re-running an
    import overwrites the object instead of creating a duplicate.
    """
    return f"{prefix}/{user_id}_{filename}" if prefix else f"{user_id}_{filename}"


def _iso_timestamp(moment: datetime) -> str:
    """Format a timestamp as UTC ISO-8601 with millisecond precision and a Z suffix."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec='milliseconds').replace('+00:00', 'Z')
