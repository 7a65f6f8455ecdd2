from __future__ import annotations

import enum
from datetime import datetime, timezone

from typing import List, Optional

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TaskStatus(str, enum.Enum):
    OPEN = "open"
    DONE = "done"
    SKIPPED = "skipped"
    ARCHIVED = "archived"


class Task(Base):
    __tablename__ = "tasks"
    __table_args__ = (
        Index("ix_tasks_scheduled_status", "scheduled", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[TaskStatus] = mapped_column(Enum(TaskStatus), default=TaskStatus.OPEN)

    # Dates are stored as written (date or date-time with offset) so the
    # calendar day and time-of-day survive a round trip unchanged.
    recurrence: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    scheduled: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    due: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    completed_instances: Mapped[List[str]] = mapped_column(JSON, default=list)
    skipped_instances: Mapped[List[str]] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    time_entries: Mapped[List["TimeLog"]] = relationship(
        "TimeLog", back_populates="task", cascade="all, delete-orphan", order_by="TimeLog.id"
    )

    @property
    def owner_task_id(self) -> Optional[int]:
        return self.id


class TimeLog(Base):
    __tablename__ = "time_entries"
    __table_args__ = (
        Index("ix_time_entries_task_start", "task_id", "start_time"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    task_id: Mapped[int] = mapped_column(ForeignKey("tasks.id"), index=True)
    start_time: Mapped[str] = mapped_column(String(64))
    end_time: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    task: Mapped["Task"] = relationship("Task", back_populates="time_entries")

    @property
    def owner_task_id(self) -> Optional[int]:
        return self.task_id


# convenience list
ALL_MODELS = [Task, TimeLog]
