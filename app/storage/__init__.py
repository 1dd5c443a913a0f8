"""Storage package exposing the SQLite stores."""

from .dao import (
    init_db,
    SqliteEventStore,
    SqliteUserStore,
)

__all__ = [
    "init_db",
    "SqliteEventStore",
    "SqliteUserStore",
]
