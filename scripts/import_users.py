"""
Import exported users into the hosted users table.

Reads scripts/users.json (an array of user objects) and upserts each user.
Profile pictures found in scripts/profile-files/ are uploaded to the
storage bucket and the profilePicture field is set to the public URL.

Usage:
    export SUPABASE_URL="https://xxx.supabase.co"
    export SUPABASE_KEY="<service-role-or-anon-key>"
    export SUPABASE_BUCKET="time station - data"
    python scripts/import_users.py [--dry-run] [--verbose]

See `python -m user_migration.importer.main --help` for all options.
"""

import os
import sys

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

# Import after path modification
from user_migration.importer.main import main  # noqa: E402

if __name__ == "__main__":
    sys.exit(main())
