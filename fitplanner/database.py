# ===== fitplanner/database.py =====

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
import os

DEFAULT_DATABASE_URL = "sqlite:///./fitplanner.db"


def normalize_database_url(url: str) -> str:
    """Hosts hand out postgres:// URLs, SQLAlchemy only accepts postgresql://"""
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


def engine_options(url: str) -> dict:
    if url.startswith("postgresql"):
        # Managed Postgres drops idle connections
        return {"pool_pre_ping": True, "pool_recycle": 300, "echo": False}
    # Background tasks use the SQLite connection from another thread
    return {"connect_args": {"check_same_thread": False}, "echo": False}


def build_engine(url: str) -> Engine:
    url = normalize_database_url(url)
    return create_engine(url, **engine_options(url))


DATABASE_URL = normalize_database_url(os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL))

engine = build_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory():
    """Session factory for work that outlives the request, such as background tasks"""
    return SessionLocal
