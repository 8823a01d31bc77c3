"""Durable match records."""

from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from matchroom import db
from matchroom.models import MatchRecord, utc_now


class MatchStore:
    """SQLAlchemy-backed match records.

    Every write commits on its own. Failures roll the session back and
    propagate so the caller can abandon just the one action.
    """

    def get(self, match_id: str) -> Optional[MatchRecord]:
        return MatchRecord.query.filter_by(match_id=match_id).first()

    def is_open(self, match_id: str) -> bool:
        record = self.get(match_id)
        return bool(record and record.is_open)

    def create(self, match_id: str, fields: dict) -> MatchRecord:
        record = MatchRecord(match_id=match_id)
        record.apply_fields(fields)
        record.created_at = record.updated_at
        self._commit(record)
        return record

    def update(self, match_id: str, fields: dict) -> bool:
        record = self.get(match_id)
        if record is None:
            return False
        record.apply_fields(fields)
        self._commit(record)
        return True

    def finish(self, match_id: str, fields: dict) -> bool:
        """Write a terminal state. Only the first finish of a match lands."""
        record = self.get(match_id)
        if record is None or not record.is_open:
            return False
        record.apply_fields(dict(fields, ended_at=utc_now()))
        self._commit(record)
        return True

    def open_matches(self):
        return (MatchRecord.query
                .filter(MatchRecord.status.in_(('waiting', 'ongoing')))
                .order_by(MatchRecord.updated_at.desc())
                .all())

    def _commit(self, record: MatchRecord) -> None:
        try:
            db.session.add(record)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise
