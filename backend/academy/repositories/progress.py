"""Statement helpers for the ``user_data`` table."""

from __future__ import annotations

from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from ..db.models import ProgressModel


class ProgressRepository:
    def get(self, session: Session, uid: str) -> ProgressModel | None:
        return session.get(ProgressModel, uid)

    def insert_if_absent(self, session: Session, uid: str, data: Any) -> Any:
        """Create the row unless one exists; return whichever document is stored."""
        insert = self._dialect_insert(session)
        if insert is not None:
            session.execute(insert(ProgressModel).values(uid=uid, data=data).on_conflict_do_nothing())
        elif self.get(session, uid) is None:
            session.add(ProgressModel(uid=uid, data=data))
            session.flush()
        stmt = select(ProgressModel.data).where(ProgressModel.uid == uid)
        return session.execute(stmt).scalar_one()

    def upsert(self, session: Session, uid: str, data: Any) -> int:
        """Insert or replace the whole document in a single statement where the dialect allows it."""
        insert = self._dialect_insert(session)
        if insert is not None:
            stmt = insert(ProgressModel).values(uid=uid, data=data)
            stmt = stmt.on_conflict_do_update(
                index_elements=[ProgressModel.uid],
                set_={"data": stmt.excluded.data},
            )
            session.execute(stmt)
            return 1
        model = self.get(session, uid)
        if model is None:
            session.add(ProgressModel(uid=uid, data=data))
        else:
            model.data = data
        session.flush()
        return 1

    def delete(self, session: Session, uid: str) -> int:
        result = session.execute(delete(ProgressModel).where(ProgressModel.uid == uid))
        return result.rowcount or 0

    @staticmethod
    def _dialect_insert(session: Session):  # type: ignore[no-untyped-def]
        name = session.get_bind().dialect.name
        if name == "sqlite":
            return sqlite.insert
        if name == "postgresql":
            return postgresql.insert
        return None


progress_rows = ProgressRepository()

__all__ = ["ProgressRepository", "progress_rows"]
