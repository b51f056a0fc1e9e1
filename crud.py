"""CRUD operations for the family state document.

This module provides database operations on whole family documents.
IMPORTANT: the document is read and written as a unit. There is no
per-entity update and no concurrency check; the last save wins.
"""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from database import FamilyDocument
from schemas import FamilyState


def get_family_document(db: Session, family_id: str) -> Optional[FamilyDocument]:
    """Get the raw document row for a family.

    Args:
        db: Database session
        family_id: 6-digit family id

    Returns:
        Optional[FamilyDocument]: the row if found, None otherwise
    """
    return db.query(FamilyDocument).filter(FamilyDocument.family_id == family_id).first()


def load_family_state(db: Session, family_id: str) -> Optional[FamilyState]:
    """Load and validate a family's state.

    Returns:
        Optional[FamilyState]: parsed state, None if the family has no document
    """
    document = get_family_document(db, family_id)
    if not document:
        return None

    return FamilyState.model_validate({
        'family_id': document.family_id,
        'events': document.events or [],
        'tasks': document.tasks or [],
        'members': document.members or [],
        'scheduled_reminders': document.scheduled_reminders or [],
        'last_updated': document.last_updated,
    })


def save_family_state(db: Session, state: FamilyState) -> FamilyDocument:
    """Write the whole state document, creating the row if needed.

    Sets state.last_updated to the save time.

    Raises:
        SQLAlchemyError: On database errors
    """
    now = datetime.now(timezone.utc)
    state.last_updated = now
    data = state.model_dump(mode='json')

    document = get_family_document(db, state.family_id)
    if document is None:
        document = FamilyDocument(family_id=state.family_id)
        db.add(document)

    # Assign new lists so SQLAlchemy sees the JSON columns as changed
    document.events = data['events']
    document.tasks = data['tasks']
    document.members = data['members']
    document.scheduled_reminders = data['scheduled_reminders']
    document.last_updated = now

    db.commit()
    db.refresh(document)
    return document


def list_family_ids(db: Session) -> List[str]:
    """Get the ids of every family with a stored document."""
    return [row.family_id for row in db.query(FamilyDocument.family_id).order_by(FamilyDocument.family_id)]


def delete_family_state(db: Session, family_id: str) -> bool:
    """Delete a family's document.

    Returns:
        bool: True if deleted, False if not found
    """
    document = get_family_document(db, family_id)
    if not document:
        return False

    db.delete(document)
    db.commit()
    return True
