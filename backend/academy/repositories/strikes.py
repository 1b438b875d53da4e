"""Statement helpers for the ``strikes`` table."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import Row, delete, func, select, update
from sqlalchemy.orm import Session

from ..db.models import AccountModel, StrikeModel


class StrikeRepository:
    def insert(self, session: Session, uid: str, reason: str, date: datetime) -> StrikeModel:
        model = StrikeModel(uid=uid, reason=reason, date=date)
        session.add(model)
        session.flush()
        return model

    def mark_removed(self, session: Session, strike_id: int, removed_at: datetime, reason: str) -> int:
        stmt = (
            update(StrikeModel)
            .where(StrikeModel.id == strike_id)
            .values(removed_at=removed_at, removed_reason=reason)
        )
        result = session.execute(stmt)
        return result.rowcount or 0

    def list_for_uid(self, session: Session, uid: str, *, active_only: bool) -> List[StrikeModel]:
        stmt = select(StrikeModel).where(StrikeModel.uid == uid)
        if active_only:
            stmt = stmt.where(StrikeModel.removed_at.is_(None))
        stmt = stmt.order_by(StrikeModel.date.desc(), StrikeModel.id.desc())
        return list(session.execute(stmt).scalars().all())

    def list_with_names(self, session: Session, *, active_only: bool) -> List[Tuple[StrikeModel, str]]:
        stmt = select(StrikeModel, AccountModel.display_name).join(
            AccountModel, AccountModel.uid == StrikeModel.uid
        )
        if active_only:
            stmt = stmt.where(StrikeModel.removed_at.is_(None))
        stmt = stmt.order_by(StrikeModel.date.desc(), StrikeModel.id.desc())
        return [(row[0], row[1]) for row in session.execute(stmt).all()]

    def active_count(self, session: Session, uid: str) -> int:
        stmt = (
            select(func.count(StrikeModel.id))
            .where(StrikeModel.uid == uid, StrikeModel.removed_at.is_(None))
        )
        return int(session.execute(stmt).scalar_one() or 0)

    def summary(self, session: Session) -> Sequence[Row]:
        strike_count = func.count(StrikeModel.id).label("strike_count")
        last_strike = func.max(StrikeModel.date).label("last_strike")
        stmt = (
            select(StrikeModel.uid, AccountModel.display_name.label("name"), strike_count, last_strike)
            .join(AccountModel, AccountModel.uid == StrikeModel.uid)
            .where(StrikeModel.removed_at.is_(None))
            .group_by(StrikeModel.uid, AccountModel.display_name)
            .order_by(strike_count.desc(), last_strike.desc())
        )
        return session.execute(stmt).all()

    def delete_for_uid(self, session: Session, uid: str) -> int:
        result = session.execute(delete(StrikeModel).where(StrikeModel.uid == uid))
        return result.rowcount or 0


strike_rows = StrikeRepository()

__all__ = ["StrikeRepository", "strike_rows"]
