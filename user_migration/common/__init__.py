"""
Common helpers shared across the migration tools.

Kept small and dependency-light: configuration loading and reading the
exported users JSON.
"""
