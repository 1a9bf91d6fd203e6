"""Database package for SchemaNav.

Holds the connection registry and the backend service that lists schema objects and
executes queries through SQLAlchemy.
"""

__all__ = [
    "backend",
    "connection",
    "executor",
]
