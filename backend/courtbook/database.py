from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from .config import settings

_url = settings.resolved_database_url
_connect_args = {"check_same_thread": False} if _url.startswith("sqlite") else {}

# check_same_thread=False lets FastAPI worker threads share the SQLite engine
engine = create_engine(_url, connect_args=_connect_args)


if _url.startswith("sqlite"):
    @event.listens_for(engine, "connect")
    def enable_sqlite_fk(dbapi_connection, _):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)


# FastAPI dependency
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Create missing tables (dev/test; production runs alembic)."""
    from .models import Base

    Base.metadata.create_all(bind=engine)
