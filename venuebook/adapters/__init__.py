"""
Adapters layer - Persistence with SQLAlchemy.
"""

from .database import create_db_engine, make_session_factories
from .fixtures import load_seed_file, seed_from_mapping
from .sql_store import SqlBookingStore, SqlStoreSession

__all__ = [
    "SqlBookingStore",
    "SqlStoreSession",
    "create_db_engine",
    "load_seed_file",
    "make_session_factories",
    "seed_from_mapping",
]
