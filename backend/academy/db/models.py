"""ORM models for accounts, progress documents, quiz results and strikes.

The tables carry no foreign keys: results and strikes reference ``uid`` by
value, and removing them when an account goes away is the coordinator's job.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from .base import Base, utcnow

JSONType = JSON


class AccountModel(Base):
    __tablename__ = "accounts"

    uid: Mapped[str] = mapped_column(String(128), primary_key=True)
    password: Mapped[str] = mapped_column(Text, nullable=False)
    display_name: Mapped[str] = mapped_column("displayName", Text, nullable=False)
    created: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=True)


class ProgressModel(Base):
    __tablename__ = "user_data"

    uid: Mapped[str] = mapped_column(String(128), primary_key=True)
    data: Mapped[Any] = mapped_column(JSONType, default=dict, nullable=False)


class ResultModel(Base):
    __tablename__ = "results"
    __table_args__ = (
        Index("ix_results_uid", "uid"),
        Index("ix_results_date", "date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    uid: Mapped[str] = mapped_column(String(128), nullable=False)
    qid: Mapped[str] = mapped_column(Text, nullable=False)
    qname: Mapped[Optional[str]] = mapped_column(Text)
    score: Mapped[Optional[int]] = mapped_column(Integer)
    total: Mapped[Optional[int]] = mapped_column(Integer)
    pct: Mapped[Optional[int]] = mapped_column(Integer)
    time: Mapped[Optional[int]] = mapped_column(Integer)
    passed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    num: Mapped[Optional[int]] = mapped_column(Integer)


class StrikeModel(Base):
    __tablename__ = "strikes"
    __table_args__ = (
        Index("ix_strikes_uid", "uid"),
        Index("ix_strikes_date", "date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    uid: Mapped[str] = mapped_column(String(128), nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(Text)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    removed_at: Mapped[Optional[datetime]] = mapped_column("removedAt", DateTime(timezone=True), nullable=True)
    removed_reason: Mapped[Optional[str]] = mapped_column("removedReason", Text, nullable=True)


__all__ = [
    "AccountModel",
    "ProgressModel",
    "ResultModel",
    "StrikeModel",
]
