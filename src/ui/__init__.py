"""UI package for SchemaNav: navigation panel, query view and connection dialog."""

__all__ = [
    "connection_dialog",
    "query_view",
    "schema_tree",
]
