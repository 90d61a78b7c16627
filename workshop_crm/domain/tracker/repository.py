"""Tracker repository - persistence of welcome-call status entries"""

import logging
from collections.abc import Mapping

from sqlalchemy import update
from sqlalchemy.orm import Session, sessionmaker

from ...models import WelcomeCallStatus
from .schemas import DONE, TrackerEntry

logger = logging.getLogger(__name__)


def to_entry(row: WelcomeCallStatus) -> TrackerEntry:
    return TrackerEntry(
        status=row.status,
        createdAt=row.created_at,
        lastUpdatedAt=row.last_updated_at,
        updatedBy=row.updated_by,
    )


class TrackerRepository:
    """
    Store for tracker entries. Each call opens its own session so it can run
    in a worker thread outside any request.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def fetch_all(self) -> dict[str, TrackerEntry]:
        with self.session_factory() as db:
            rows = db.query(WelcomeCallStatus).all()
            return {row.child_id: to_entry(row) for row in rows}

    def write_entries(self, entries: Mapping[str, TrackerEntry]) -> dict[str, TrackerEntry]:
        """
        Persist entries in one transaction.

        Existing rows are only updated while their status is not done; keys
        whose stored row is already done are left untouched and returned with
        their stored state so the caller can converge on it.
        """
        conflicts: dict[str, TrackerEntry] = {}
        with self.session_factory() as db:
            for key, entry in entries.items():
                if self._conditional_update(db, key, entry):
                    continue
                row = db.get(WelcomeCallStatus, key)
                if row is None:
                    db.add(
                        WelcomeCallStatus(
                            child_id=key,
                            status=entry.status,
                            created_at=entry.createdAt,
                            last_updated_at=entry.lastUpdatedAt,
                            updated_by=entry.updatedBy,
                        )
                    )
                    db.flush()
                else:
                    logger.info(f"🔒 Tracker entry {key} already done in store; write rejected")
                    conflicts[key] = to_entry(row)
            db.commit()
        return conflicts

    @staticmethod
    def _conditional_update(db: Session, key: str, entry: TrackerEntry) -> bool:
        result = db.execute(
            update(WelcomeCallStatus)
            .where(WelcomeCallStatus.child_id == key, WelcomeCallStatus.status != DONE)
            .values(
                status=entry.status,
                created_at=entry.createdAt,
                last_updated_at=entry.lastUpdatedAt,
                updated_by=entry.updatedBy,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0
