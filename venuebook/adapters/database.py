"""
Engine and session setup for the SQL booking store.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

# Execution option read by the SQLite begin hook
SQLITE_BEGIN_OPTION = "sqlite_begin"


def is_sqlite(engine: Engine) -> bool:
    return engine.dialect.name == "sqlite"


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create an engine for ``database_url``.

    SQLite gets foreign keys switched on and explicit BEGIN handling, so that
    writers can open their transaction with ``BEGIN IMMEDIATE``.
    """
    connect_args = {}
    if database_url.startswith("sqlite"):
        # check_same_thread=False: sessions are used from worker threads
        connect_args = {"check_same_thread": False, "timeout": 30}

    engine = create_engine(database_url, connect_args=connect_args, echo=echo)
    if is_sqlite(engine):
        _install_sqlite_hooks(engine)
    return engine


def _install_sqlite_hooks(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def enable_sqlite_fk(dbapi_connection, _):
        # pysqlite must not emit its own BEGIN; the begin hook does it
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def begin_sqlite_transaction(conn):
        mode = conn.get_execution_options().get(SQLITE_BEGIN_OPTION, "DEFERRED")
        conn.exec_driver_sql(f"BEGIN {mode}")


def make_session_factories(engine: Engine):
    """
    Build the (read, write) session factories.

    Reads see one snapshot per transaction. Writes on SQLite take the
    database write lock when they begin; server databases rely on row locks
    taken explicitly by the store.
    """
    if is_sqlite(engine):
        read_bind = engine
        write_bind = engine.execution_options(**{SQLITE_BEGIN_OPTION: "IMMEDIATE"})
    else:
        read_bind = engine.execution_options(isolation_level="REPEATABLE READ")
        write_bind = engine

    read_sessions = sessionmaker(bind=read_bind, autoflush=False, expire_on_commit=False)
    write_sessions = sessionmaker(bind=write_bind, autoflush=False, expire_on_commit=False)
    return read_sessions, write_sessions
