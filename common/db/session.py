from contextlib import contextmanager
import os
from pathlib import Path
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///data/app.db")


def _ensure_sqlite_dir(database_url: str) -> None:
    # Ensure sqlite file parent directory exists to avoid 'unable to open database file'
    if database_url.startswith("sqlite:///") and ":memory:" not in database_url:
        db_path = database_url.split("sqlite:///")[-1]
        try:
            Path(db_path).expanduser().resolve().parent.mkdir(parents=True, exist_ok=True)
        except OSError:
            # real error will surface on connect if still invalid
            pass


def make_engine(database_url: str):
    _ensure_sqlite_dir(database_url)
    if database_url.startswith("sqlite") and ":memory:" in database_url:
        # one shared connection so every session sees the same in-memory database
        return create_engine(
            database_url,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(database_url, future=True)


def make_session_factory(engine):
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, future=True)

    @contextmanager
    def get_session():
        session = SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    return get_session


def init_db(engine) -> None:
    from ..models import Base

    Base.metadata.create_all(engine)


engine = make_engine(DATABASE_URL)
get_session = make_session_factory(engine)


@contextmanager
def session_scope(session_factory, session=None):
    """Join ``session`` when the caller already holds one, else open a fresh unit of work."""
    if session is not None:
        yield session
        return
    with session_factory() as own:
        yield own
