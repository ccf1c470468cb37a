from __future__ import annotations
"""Prompt ORM model — owned by the prompt editor, read by the generation engine."""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.services.clock import utcnow


class PromptType(str, enum.Enum):
    """Kind of media a prompt generates."""

    IMAGE = "IMAGE"
    VIDEO = "VIDEO"


class Prompt(Base):
    """A node in the prompt tree; derivative prompts point at their parent."""

    __tablename__ = "prompts"
    __table_args__ = {
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: uuid.uuid4().hex[:36],
    )
    parent_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("prompts.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False, default=PromptType.IMAGE.value)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
