"""Administrative operations that touch several tables at once."""

from dataclasses import dataclass

from sqlalchemy import delete

from src.core.event_model import Event
from src.core.repositories import (
    BlacklistRecord,
    Database,
    EventRecord,
    delete_event,
    insert_blacklist_entry,
    record_to_event,
)
from src.logging import get_logger

logger = get_logger(__name__)

DEFAULT_DELETE_REASON = "Usuario lo eliminó desde UI"


@dataclass
class ResetResult:
    events_deleted: int
    blacklist_deleted: int


class AdminService:
    """Delete-and-blacklist and full reset, each in a single transaction.

    If any statement fails the whole operation is rolled back, so an event
    is never deleted without its blacklist entry.
    """

    def __init__(self, database: Database) -> None:
        self.db = database

    async def delete_event_and_blacklist(
        self,
        event_id: str,
        reason: str = DEFAULT_DELETE_REASON,
    ) -> Event:
        """Delete an event and blacklist its (source, external_id).

        Returns:
            The deleted event

        Raises:
            EventNotFoundError: no event has this id (nothing changes)
            StorageError: the transaction failed and was rolled back
        """
        with self.db.transaction() as session:
            record = delete_event(session, event_id)
            event = record_to_event(record)
            insert_blacklist_entry(session, record.source, record.external_id, reason)

        logger.info(
            "event_deleted_and_blacklisted",
            event_id=event_id,
            source=event.source,
            external_id=event.external_id,
            reason=reason,
        )
        return event

    async def reset_database(self) -> ResetResult:
        """Delete every event and every blacklist entry. Preferences are kept."""
        with self.db.transaction() as session:
            events_deleted = session.execute(delete(EventRecord)).rowcount or 0
            blacklist_deleted = session.execute(delete(BlacklistRecord)).rowcount or 0

        logger.warning("database_reset", events_deleted=events_deleted, blacklist_deleted=blacklist_deleted)
        return ResetResult(events_deleted=events_deleted, blacklist_deleted=blacklist_deleted)
