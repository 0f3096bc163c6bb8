from typing import Optional
from sqlalchemy import event
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine
from .config import settings

# Connection execution option read by the SQLite "begin" hook.
WRITE_LOCK = {"sqlite_begin": "IMMEDIATE"}


def make_engine(database_url: str, echo: bool = False, busy_timeout: Optional[float] = None):
    """
    Build an engine for the ledger store.

    SQLite transactions are deferred, so reads never take the write lock.
    Transactions opened through ``begin_write`` start with BEGIN IMMEDIATE so
    that a balance read and the writes that depend on it hold the write lock
    together. Other backends rely on SELECT ... FOR UPDATE issued by the services.
    """
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, echo=echo, pool_pre_ping=True)

    timeout = settings.SQLITE_BUSY_TIMEOUT_SECONDS if busy_timeout is None else busy_timeout
    connect_args = {"check_same_thread": False, "timeout": timeout}
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        engine = create_engine(database_url, echo=echo, connect_args=connect_args, poolclass=StaticPool)
    else:
        engine = create_engine(database_url, echo=echo, connect_args=connect_args)

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin(conn):
        if conn.get_execution_options().get("sqlite_begin") == "IMMEDIATE":
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")

    return engine


def holds_write_lock(session: Session) -> bool:
    if not session.in_transaction():
        return False
    return session.connection().get_execution_options().get("sqlite_begin") == "IMMEDIATE"


def begin_write(session: Session) -> None:
    """
    Open the session's transaction for a read-then-write operation.

    A read-only transaction left open by earlier lookups (the current user,
    say) is ended first, so the new one takes the write lock before anything
    is read. Callers must not have uncommitted writes pending.
    """
    if holds_write_lock(session):
        return
    if session.in_transaction():
        session.commit()
    session.connection(execution_options=WRITE_LOCK)


engine = make_engine(settings.DATABASE_URL, echo=settings.SQL_ECHO)


def create_db_and_tables(bind=None) -> None:
    from . import models  # noqa: F401  registers the tables on SQLModel.metadata

    SQLModel.metadata.create_all(bind or engine)


def get_session():
    with Session(engine, expire_on_commit=False) as session:
        yield session
