"""Persistence and sync layer for family state.

Every save goes to the local store first, then best-effort to an optional
mirror store shared by all devices of the family. Loads prefer the mirror
and fall back to the local copy.
"""

from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

import crud
import database
from logger_config import setup_logger
from schemas import FamilyState

logger = setup_logger(__name__, 'store.log')


class StateStore:
    """Loads and saves whole family documents.

    Args:
        local_sessions: session factory of the local store
        mirror_sessions: optional session factory of the shared mirror
    """

    def __init__(self, local_sessions: sessionmaker, mirror_sessions: Optional[sessionmaker] = None):
        self.local_sessions = local_sessions
        self.mirror_sessions = mirror_sessions

    @property
    def mirror_enabled(self) -> bool:
        return self.mirror_sessions is not None

    def load(self, family_id: str) -> FamilyState:
        """Load a family's state. Unknown families get an empty state."""
        if self.mirror_enabled:
            try:
                with self.mirror_sessions() as db:
                    state = crud.load_family_state(db, family_id)
                if state is not None:
                    # Keep the local copy current with the shared document
                    with self.local_sessions() as db:
                        crud.save_family_state(db, state.model_copy(deep=True))
                    return state
            except SQLAlchemyError as e:
                logger.error(f"Error loading family {family_id} from mirror: {str(e)}")

        with self.local_sessions() as db:
            state = crud.load_family_state(db, family_id)
        return state if state is not None else FamilyState(family_id=family_id)

    def save(self, state: FamilyState) -> None:
        """Save the whole document locally, then to the mirror if configured.

        Local failures propagate. Mirror failures are logged only.
        """
        with self.local_sessions() as db:
            crud.save_family_state(db, state)

        if not self.mirror_enabled:
            return

        try:
            with self.mirror_sessions() as db:
                crud.save_family_state(db, state)
            logger.debug(f"Synced family {state.family_id} to mirror")
        except SQLAlchemyError as e:
            logger.error(f"Error syncing family {state.family_id} to mirror: {str(e)}")

    def family_ids(self) -> List[str]:
        """Ids of every family known locally or in the mirror."""
        with self.local_sessions() as db:
            ids = set(crud.list_family_ids(db))

        if self.mirror_enabled:
            try:
                with self.mirror_sessions() as db:
                    ids.update(crud.list_family_ids(db))
            except SQLAlchemyError as e:
                logger.error(f"Error listing families in mirror: {str(e)}")

        return sorted(ids)


def get_store() -> StateStore:
    """Store over the configured local and mirror databases."""
    return StateStore(database.SessionLocal, database.MirrorSessionLocal)
