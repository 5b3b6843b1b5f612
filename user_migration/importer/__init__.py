"""
User Importer

Moves an exported users JSON array into the hosted `users` table.

Key responsibilities:
- Upload referenced profile pictures to the storage bucket
- Normalize each user into the table's row shape
- Upsert rows keyed by id, one user at a time
- Keep going when a single user fails, and report totals at the end
"""

__version__ = "0.1.0"
