# xsslab/db/models.py
from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, Boolean, CheckConstraint, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from xsslab.security.rules import Severity

# sqlite only autoincrements INTEGER PRIMARY KEY
_Id = BigInteger().with_variant(Integer, "sqlite")

_SEVERITY_VALUES = ", ".join(f"'{s.value}'" for s in Severity)


class Base(DeclarativeBase):
    pass


class Event(Base):
    __tablename__ = "events"

    id: Mapped[int] = mapped_column(_Id, primary_key=True, autoincrement=True)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    payload: Mapped[str] = mapped_column(Text, nullable=False, default="")
    actor_address: Mapped[str] = mapped_column(String(45), nullable=False, default="")
    actor_agent: Mapped[str] = mapped_column(Text, nullable=False, default="")
    session_id: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    severity: Mapped[str] = mapped_column(String(16), nullable=False, default=Severity.LOW.value)
    tag: Mapped[str] = mapped_column(String(32), nullable=False, default="none")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        CheckConstraint(f"severity IN ({_SEVERITY_VALUES})", name="ck_events_severity"),
        Index("ix_events_created_at", "created_at"),
        Index("ix_events_category", "category"),
        Index("ix_events_action", "action"),
        Index("ix_events_severity", "severity"),
        Index("ix_events_actor_created", "actor_address", "created_at"),
    )


class Comment(Base):
    __tablename__ = "comments"

    id: Mapped[int] = mapped_column(_Id, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(255), nullable=False, default="Anonymous")
    content: Mapped[str] = mapped_column(Text, nullable=False)
    actor_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    actor_agent: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_comments_created_at", "created_at"),
        Index("ix_comments_username", "username"),
    )
