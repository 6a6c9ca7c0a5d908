from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base
from config import DATABASE_URL

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False
)

Base = declarative_base()

engine = None


def _set_sqlite_pragma(dbapi_connection, _):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.execute("PRAGMA busy_timeout=30000;")
    cursor.close()


def init_engine(database_url=DATABASE_URL):
    """Creates the engine for `database_url` and binds SessionLocal to it."""
    global engine
    is_sqlite = database_url.startswith("sqlite")
    connect_args = {"check_same_thread": False, "timeout": 30} if is_sqlite else {}
    engine = create_engine(database_url, connect_args=connect_args)
    if is_sqlite:
        event.listen(engine, "connect", _set_sqlite_pragma)
    SessionLocal.configure(bind=engine)
    return engine
