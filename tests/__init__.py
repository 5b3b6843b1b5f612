"""User Migration Test Suite.

This package contains unit and integration tests for the migration tools.

Test Structure:
- unit/: Unit tests for individual functions and classes
- integration/: Tests against a real Supabase project (skipped by default)
"""
