"""Lazy schema tree state: object cache, expansion state and query dispatch.

The modules here only depend on QtCore (signals) and on the connection registry; they can
be driven without any widgets, which is how the tests exercise them.
"""

__all__ = [
    "dispatcher",
    "objects",
    "schema_cache",
    "session",
    "tree_state",
]
