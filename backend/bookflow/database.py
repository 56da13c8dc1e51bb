from pathlib import Path

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from .config import settings


def make_engine(url: str) -> Engine:
    """
    Create a SQLite engine for the booking store.

    Every transaction starts with BEGIN IMMEDIATE, so writers take the
    database write lock up front and the overlap triggers on `bookings`
    always run against committed state.
    """
    # check_same_thread=False: required for SQLite across FastAPI threads
    engine = create_engine(
        url,
        connect_args={"check_same_thread": False, "timeout": 15},
    )

    @event.listens_for(engine, "connect")
    def configure_sqlite(dbapi_connection, _):
        # Let SQLAlchemy emit BEGIN itself (pysqlite would defer it)
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


engine = make_engine(settings.resolved_database_url)

# SessionLocal: main way to talk to the DB
SessionLocal = make_session_factory(engine)


# FastAPI dependency
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Engine | None = None) -> None:
    """Create tables and the booking overlap triggers (idempotent)."""
    from .models import Base, OVERLAP_TRIGGERS

    bind = bind or engine
    database = bind.url.database
    if database and database != ":memory:":
        Path(database).parent.mkdir(parents=True, exist_ok=True)

    Base.metadata.create_all(bind)
    with bind.begin() as conn:
        for ddl in OVERLAP_TRIGGERS:
            conn.execute(text(ddl))
