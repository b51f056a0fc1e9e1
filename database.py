"""Database module for Family Connect.

This module defines the SQLAlchemy model for the family state document and
database session management. The whole document (events, tasks, members,
scheduled reminders) lives in one row per family and is rewritten on every
save, last write wins.
"""

from typing import Optional

from sqlalchemy import create_engine, Column, String, DateTime, JSON
from sqlalchemy.orm import declarative_base, sessionmaker

from config import settings

# SQLAlchemy Base
Base = declarative_base()


class FamilyDocument(Base):
    """One family's state, keyed by the 6-digit family id.

    CRITICAL: JSON columns are replaced wholesale on save, never patched
    in place.
    """

    __tablename__ = "family_documents"

    family_id = Column(String, primary_key=True, doc="6-digit family identifier")

    events = Column(JSON, nullable=False, default=list, doc="Calendar events")
    tasks = Column(JSON, nullable=False, default=list, doc="Tasks")
    members = Column(JSON, nullable=False, default=list, doc="Family members")
    scheduled_reminders = Column(JSON, nullable=False, default=list, doc="Reminder records")

    last_updated = Column(
        DateTime(timezone=True),
        nullable=True,
        doc="When the document was last saved (timezone-aware)"
    )

    def __repr__(self):
        """String representation"""
        return (
            f"<FamilyDocument(family_id={self.family_id}, events={len(self.events or [])}, "
            f"tasks={len(self.tasks or [])}, reminders={len(self.scheduled_reminders or [])})>"
        )


def make_session_factory(database_url: str) -> sessionmaker:
    """Create an engine for a URL, make sure tables exist, return a session factory."""
    engine = create_engine(
        database_url,
        connect_args={"check_same_thread": False} if "sqlite" in database_url else {},
        echo=False  # Set to True for SQL debugging
    )
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


# Session Factories
SessionLocal = make_session_factory(settings.DATABASE_URL)

MirrorSessionLocal: Optional[sessionmaker] = (
    make_session_factory(settings.MIRROR_DATABASE_URL) if settings.MIRROR_DATABASE_URL else None
)
