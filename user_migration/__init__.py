"""User Migration Utilities Package.

This package contains the one-off migration tooling for moving exported
user records into the hosted backend:
- importer: Upserts users.json into the `users` table and uploads
  referenced profile pictures to object storage
- common: Configuration and source-file helpers shared by the tools
"""

__version__ = "0.1.0"
