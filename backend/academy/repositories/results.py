"""Statement helpers for the ``results`` table."""

from __future__ import annotations

from typing import List, Optional, Tuple

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from ..db.models import AccountModel, ResultModel


class ResultRepository:
    def insert(self, session: Session, **fields: object) -> ResultModel:
        model = ResultModel(**fields)
        session.add(model)
        session.flush()
        return model

    def list_for_uid(self, session: Session, uid: str, limit: Optional[int] = None) -> List[ResultModel]:
        stmt = (
            select(ResultModel)
            .where(ResultModel.uid == uid)
            .order_by(ResultModel.date.desc(), ResultModel.id.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(session.execute(stmt).scalars().all())

    def list_recent_with_names(self, session: Session, limit: int) -> List[Tuple[ResultModel, str]]:
        stmt = (
            select(ResultModel, AccountModel.display_name)
            .join(AccountModel, AccountModel.uid == ResultModel.uid)
            .order_by(ResultModel.date.desc(), ResultModel.id.desc())
            .limit(limit)
        )
        return [(row[0], row[1]) for row in session.execute(stmt).all()]

    def delete_for_uid(self, session: Session, uid: str) -> int:
        result = session.execute(delete(ResultModel).where(ResultModel.uid == uid))
        return result.rowcount or 0


results_rows = ResultRepository()

__all__ = ["ResultRepository", "results_rows"]
