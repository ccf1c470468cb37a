from __future__ import annotations
"""GenerationTask ORM model — one provider request tracked to a terminal state."""

import enum
import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.services.clock import utcnow
from app.services.errors import InvalidTransitionError, TaskAlreadyTerminalError


class TaskStatus(str, enum.Enum):
    """Uniform task lifecycle statuses."""

    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


TERMINAL_STATUSES = frozenset({TaskStatus.SUCCESS.value, TaskStatus.FAILED.value})


class GenerationService(str, enum.Enum):
    KIE = "KIE"
    GOOGLE = "GOOGLE"
    AZURE = "AZURE"
    OPENAI = "OPENAI"


class GenerationModel(str, enum.Enum):
    IMAGEN4 = "IMAGEN4"
    VEO3 = "VEO3"
    MIDJOURNEY = "MIDJOURNEY"
    SORA2 = "SORA2"
    GEMINI_2_0 = "GEMINI_2_0"
    DALL_E_3 = "DALL_E_3"
    GPT_4O = "GPT_4O"


# Allowed service → models pairs
VALID_SERVICE_MODELS: dict[str, frozenset[str]] = {
    GenerationService.KIE.value: frozenset({"IMAGEN4", "VEO3", "MIDJOURNEY", "SORA2"}),
    GenerationService.GOOGLE.value: frozenset({"IMAGEN4", "VEO3", "GEMINI_2_0"}),
    GenerationService.AZURE.value: frozenset({"DALL_E_3", "GPT_4O"}),
    GenerationService.OPENAI.value: frozenset({"DALL_E_3", "SORA2", "GPT_4O"}),
}


def is_valid_service_model(service: str, model: str) -> bool:
    return model in VALID_SERVICE_MODELS.get(service, frozenset())


class GenerationTask(Base):
    """A submitted generation request and its outcome."""

    __tablename__ = "generation_tasks"
    __table_args__ = {
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: uuid.uuid4().hex[:36],
    )
    prompt_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("prompts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    service: Mapped[str] = mapped_column(String(20), nullable=False)
    model: Mapped[str] = mapped_column(String(30), nullable=False)
    external_task_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True, index=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TaskStatus.PENDING.value, index=True
    )
    provider_params: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    result_payload: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    fail_code: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    fail_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, index=True
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


def check_terminal_transition(task: GenerationTask, fields: dict[str, Any]) -> None:
    """Validate a terminal write against the task's lifecycle invariants.

    Raises TaskAlreadyTerminalError if the task already left PENDING and
    InvalidTransitionError if the fields are inconsistent with the target status.
    """
    if task.status != TaskStatus.PENDING.value:
        raise TaskAlreadyTerminalError(
            f"Task {task.id} is already {task.status}; terminal write rejected"
        )

    status = fields.get("status")
    if status not in TERMINAL_STATUSES:
        raise InvalidTransitionError(f"Task {task.id}: {status!r} is not a terminal status")
    if fields.get("completed_at") is None:
        raise InvalidTransitionError(f"Task {task.id}: completed_at is required")

    has_result = fields.get("result_payload") is not None
    has_failure = fields.get("fail_code") is not None or fields.get("fail_message") is not None

    if status == TaskStatus.SUCCESS.value:
        if not task.external_task_id:
            raise InvalidTransitionError(
                f"Task {task.id} has no external task id and cannot succeed"
            )
        if not has_result or has_failure:
            raise InvalidTransitionError(
                f"Task {task.id}: SUCCESS needs result_payload and no failure detail"
            )
    else:
        if has_result or fields.get("fail_code") is None:
            raise InvalidTransitionError(
                f"Task {task.id}: FAILED needs fail_code and no result_payload"
            )
