"""Database engine, session factory, and base class for the SQL flag store.

Flags are read and written synchronously, so this uses the sync engine
(same driver style as the management CLI), not an async session.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from app.config import settings

engine = create_engine(
    settings.database_url_sync,
    echo=False,
    pool_pre_ping=True,
)

SessionLocal = sessionmaker(engine, expire_on_commit=False)


class Base(DeclarativeBase):
    """Models backing the onboarding flag store."""
    pass


def create_tables(bind=None) -> None:
    """Provision all tables registered on Base (idempotent)."""
    from app.models.flag import OnboardingFlag  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
