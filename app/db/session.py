from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker, declarative_base
from app.core.config import settings


def build_engine(database_url: str):
    """Engine for the ledger database. SQLite URLs (local runs, tests) need cross-thread access."""
    url = make_url(database_url)
    if url.drivername.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False})
    # For PostgreSQL, we might need to adjust pool_size and max_overflow in production
    return create_engine(database_url, pool_pre_ping=True)


engine = build_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
