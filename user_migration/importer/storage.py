"""
Profile Picture Storage

Uploads profile-picture files to a Supabase Storage bucket and resolves
their public URLs.

Uploads always run with overwrite enabled: combined with the deterministic
path from `upload_path_for()`, re-running an import replaces objects
rather than duplicating them.
"""

import logging
import mimetypes
from typing import Protocol

from supabase import Client

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = 'application/octet-stream'


class StorageError(Exception):
    """Raised when an object store operation fails."""
    pass


class ObjectStore(Protocol):
    """Object store addressed by path."""

    def upload(self, path: str, data: bytes) -> None:
        """Store `data` at `path`, overwriting any existing object."""

    def public_url(self, path: str) -> str:
        """Return the publicly fetchable URL for `path`."""


class ProfilePictureStorage:
    """
    Supabase Storage bucket used for profile pictures.

    Example:
        >>> storage = ProfilePictureStorage(client, 'time station - data')
        >>> storage.upload('profiles/u1_pic.png', b'...')
        >>> storage.public_url('profiles/u1_pic.png')
        'https://xxx.supabase.co/storage/v1/object/public/...'
    """

    def __init__(self, client: Client, bucket: str):
        self.client = client
        self.bucket = bucket

    def _bucket(self):
        return self.client.storage.from_(self.bucket)

    def upload(self, path: str, data: bytes) -> None:
        """
        Upload bytes to the bucket with upsert enabled.

        Raises:
            StorageError: If the SDK reports a failure
        """
        content_type = mimetypes.guess_type(path)[0] or DEFAULT_CONTENT_TYPE
        try:
            self._bucket().upload(
                path,
                data,
                file_options={'content-type': content_type, 'upsert': 'true'},
            )
        except Exception as e:
            raise StorageError(f"Upload to {self.bucket}/{path} failed: {e}") from e

        logger.debug(
            "Uploaded object",
            extra={'bucket': self.bucket, 'path': path, 'bytes': len(data)}
        )

    def public_url(self, path: str) -> str:
        """
        Resolve the public URL of an uploaded object.

        Raises:
            StorageError: If the SDK cannot resolve the URL
        """
        try:
            url = self._bucket().get_public_url(path)
        except Exception as e:
            raise StorageError(f"Could not resolve public URL for {path}: {e}") from e

        if not url:
            raise StorageError(f"Empty public URL returned for {path}")
        return url
