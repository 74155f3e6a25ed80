"""Storage-level constraint errors.

Raised by repositories the way a database driver raises an integrity
error; services translate them into domain errors.
"""

from __future__ import annotations


class UniqueViolation(Exception):
    """A uniqueness constraint rejected a write. Argument: constraint name."""
