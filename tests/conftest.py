"""
Pytest configuration and shared fixtures

This file contains test fixtures that can be used across all tests.
Fixtures are reusable components that set up test preconditions.

Learn more: https://docs.pytest.org/en/stable/fixture.html
"""

from datetime import datetime, timezone
from typing import Any

import pytest


class FakeUsersTable:
    """In-memory `users` table with upsert-by-id semantics."""

    def __init__(self, fail_ids: tuple = ()):
        self.rows: dict[Any, dict[str, Any]] = {}
        self.calls: list[dict[str, Any]] = []
        self.fail_ids = set(fail_ids)

    def upsert_user(self, row):
        from user_migration.importer.db_operations import DatabaseError

        self.calls.append(dict(row))
        if row['id'] in self.fail_ids:
            raise DatabaseError(f"duplicate key value violates unique constraint for {row['id']}")
        self.rows[row['id']] = dict(row)


class FakeObjectStore:
    """In-memory bucket that resolves public URLs like Supabase Storage."""

    base_url = "https://project.supabase.co/storage/v1/object/public/bucket"

    def __init__(self, fail_uploads: bool = False):
        self.objects: dict[str, bytes] = {}
        self.uploads: list[str] = []
        self.fail_uploads = fail_uploads

    def upload(self, path, data):
        from user_migration.importer.storage import StorageError

        self.uploads.append(path)
        if self.fail_uploads:
            raise StorageError(f"Upload to bucket/{path} failed: Payload too large")
        self.objects[path] = data

    def public_url(self, path):
        return f"{self.base_url}/{path}"


@pytest.fixture(scope="function")
def users_table() -> FakeUsersTable:
    """Provide an empty in-memory users table."""
    return FakeUsersTable()


@pytest.fixture(scope="function")
def object_store() -> FakeObjectStore:
    """Provide an empty in-memory object store."""
    return FakeObjectStore()


@pytest.fixture(scope="function")
def failing_object_store() -> FakeObjectStore:
    """Provide an object store whose uploads always fail."""
    return FakeObjectStore(fail_uploads=True)


@pytest.fixture(scope="function")
def files_dir(tmp_path):
    """
    Provide a profile-files directory containing one picture.

    Returns:
        Path: Directory with `pic.png` inside
    """
    directory = tmp_path / "profile-files"
    directory.mkdir()
    (directory / "pic.png").write_bytes(b"\x89PNG\r\n\x1a\nfake-image")
    return directory


@pytest.fixture(scope="session")
def fixed_now() -> datetime:
    """Timestamp used for records without createdAt."""
    return datetime(2025, 10, 15, 10, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="function")
def sample_user() -> dict:
    """
    Provide a typical exported user.

    Scope: function (created fresh for each test)

    Returns:
        dict: Sample user record as it appears in users.json
    """
    return {
        "id": "8452b4ad-3293-4379-8121-6f0b13d738a5",
        "name": "Dana Levi",
        "email": "Dana.Levi@Example.com",
        "password": "admin123",
        "createdAt": "2025-01-05T08:30:00.000Z",
        "isAdmin": True,
        "department": "Israel",
    }


@pytest.fixture(scope="function")
def sample_user_batch() -> list[dict]:
    """
    Provide a batch of exported users.

    Returns:
        list[dict]: Three users, the second one with a profile picture
    """
    return [
        {"id": "u1", "name": "Alice", "email": "ALICE@example.com"},
        {"id": "u2", "name": "Bob", "email": "bob@example.com", "profilePicture": "pic.png"},
        {"id": "u3", "name": "Carol", "email": "carol@example.com", "isDisabled": True},
    ]


@pytest.fixture(scope="function")
def supabase_env(monkeypatch) -> dict:
    """Set the required credentials in the environment."""
    env = {
        "SUPABASE_URL": "https://project.supabase.co",
        "SUPABASE_KEY": "service-role-key",
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    monkeypatch.delenv("SUPABASE_BUCKET", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    return env


# Mark tests based on their type for selective running
def pytest_configure(config):
    """
    Register custom pytest markers.

    This allows us to run specific test categories:
    - pytest -m unit        (run only unit tests)
    - pytest -m integration (run only integration tests)
    - pytest -m "not slow"  (skip slow tests)
    """
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test (isolated, fast)"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test (requires services)"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running (>1 second)"
    )
