"""docrag database layer."""

from docrag.db.connection import Database
from docrag.db.migrations import MIGRATIONS, run_migrations
from docrag.db.schema import initialize
from docrag.db.vectors import CollectionMismatchError, ensure_collection

__all__ = [
    "Database",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
    "ensure_collection",
    "CollectionMismatchError",
]
