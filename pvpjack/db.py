import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase
from sqlalchemy.pool import StaticPool

DATABASE_URL = os.getenv("DATABASE_URL")


def make_engine(url: str):
    if url.startswith("sqlite"):
        # In-memory SQLite must share one connection or every session sees an empty db
        if url in ("sqlite://", "sqlite:///:memory:"):
            return create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
        return create_engine(url, connect_args={"check_same_thread": False})
    # Neon requires SSL; add if missing for local envs.
    if "sslmode" not in url and url.startswith("postgresql"):
        sep = "&" if "?" in url else "?"
        url = f"{url}{sep}sslmode=require"
    return create_engine(url, pool_pre_ping=True, pool_recycle=300)


# Dev-friendly fallback: SQLite if no DATABASE_URL is set
if not DATABASE_URL:
    DATABASE_URL = "sqlite:///./dev.db"
engine = make_engine(DATABASE_URL)

class Base(DeclarativeBase):
    pass

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
