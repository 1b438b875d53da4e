"""Statement helpers for the ``accounts`` table."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Iterator, Optional, Set

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from ..db.base import utcnow
from ..db.models import AccountModel

_STREAM_BATCH = 100


class AccountRepository:
    def get(self, session: Session, uid: str) -> AccountModel | None:
        return session.get(AccountModel, uid)

    def exists(self, session: Session, uid: str) -> bool:
        stmt = select(AccountModel.uid).where(AccountModel.uid == uid)
        return session.execute(stmt).scalar_one_or_none() is not None

    def missing(self, session: Session, uids: Iterable[str]) -> Set[str]:
        wanted = set(uids)
        if not wanted:
            return set()
        stmt = select(AccountModel.uid).where(AccountModel.uid.in_(wanted))
        found = set(session.execute(stmt).scalars().all())
        return wanted - found

    def find_by_credentials(self, session: Session, uid: str, password: str) -> AccountModel | None:
        stmt = select(AccountModel).where(AccountModel.uid == uid, AccountModel.password == password)
        return session.execute(stmt).scalar_one_or_none()

    def insert(
        self,
        session: Session,
        uid: str,
        password: str,
        display_name: str,
        created: Optional[datetime] = None,
    ) -> AccountModel:
        model = AccountModel(
            uid=uid,
            password=password,
            display_name=display_name,
            created=created or utcnow(),
        )
        session.add(model)
        session.flush()
        return model

    def stream(self, session: Session) -> Iterator[AccountModel]:
        stmt = select(AccountModel).execution_options(yield_per=_STREAM_BATCH)
        yield from session.execute(stmt).scalars()

    def delete(self, session: Session, uid: str) -> int:
        result = session.execute(delete(AccountModel).where(AccountModel.uid == uid))
        return result.rowcount or 0


accounts = AccountRepository()

__all__ = ["AccountRepository", "accounts"]
