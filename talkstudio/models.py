from __future__ import annotations

import uuid
from datetime import datetime, UTC

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


def _new_id() -> str:
    return uuid.uuid4().hex


def _now() -> datetime:
    return datetime.now(UTC)


STATUS_DRAFT = "draft"
STATUS_COMPLETED = "completed"


class Speech(Base):
    __tablename__ = "speeches"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    topic: Mapped[str] = mapped_column(String(500), nullable=False)
    key_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    audience_demographics: Mapped[str | None] = mapped_column(Text, nullable=True)
    speaker_background: Mapped[str | None] = mapped_column(Text, nullable=True)
    duration_minutes: Mapped[int] = mapped_column(Integer, default=15)
    tone: Mapped[str] = mapped_column(String(30), default="inspiring")
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=STATUS_DRAFT)  # draft | completed
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_now, onupdate=_now)

    analysis: Mapped[Analysis | None] = relationship(
        "Analysis", back_populates="speech", uselist=False, cascade="all, delete-orphan",
    )


class Analysis(Base):
    __tablename__ = "analyses"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    speech_id: Mapped[str] = mapped_column(String(64), ForeignKey("speeches.id"), nullable=False, unique=True)
    logos: Mapped[int] = mapped_column(Integer, nullable=False)
    pathos: Mapped[int] = mapped_column(Integer, nullable=False)
    ethos: Mapped[int] = mapped_column(Integer, nullable=False)
    logos_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    pathos_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    ethos_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    overall_score: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_now, onupdate=_now)

    speech: Mapped[Speech] = relationship("Speech", back_populates="analysis")
