"""Generation schema — prompts, generation_tasks, assets

Revision ID: 0001
Revises: None
Create Date: 2026-10-18 09:00:00
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- prompts (owned by the prompt editor) ---
    op.create_table(
        "prompts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("parent_id", sa.String(36), sa.ForeignKey("prompts.id", ondelete="SET NULL"), nullable=True),
        sa.Column("type", sa.String(20), nullable=False, comment="IMAGE | VIDEO"),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        mysql_charset="utf8mb4",
        mysql_collate="utf8mb4_unicode_ci",
    )
    op.create_index("ix_prompts_parent_id", "prompts", ["parent_id"])

    # --- generation_tasks ---
    op.create_table(
        "generation_tasks",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("prompt_id", sa.String(36), sa.ForeignKey("prompts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("service", sa.String(20), nullable=False),
        sa.Column("model", sa.String(30), nullable=False),
        sa.Column("external_task_id", sa.String(128), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING",
                  comment="PENDING | SUCCESS | FAILED"),
        sa.Column("provider_params", sa.Text, nullable=False),
        sa.Column("result_payload", sa.Text, nullable=True),
        sa.Column("fail_code", sa.String(100), nullable=True),
        sa.Column("fail_message", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("completed_at", sa.DateTime, nullable=True),
        mysql_charset="utf8mb4",
        mysql_collate="utf8mb4_unicode_ci",
    )
    op.create_index("ix_generation_tasks_prompt_id", "generation_tasks", ["prompt_id"])
    op.create_index("ix_generation_tasks_external_task_id", "generation_tasks", ["external_task_id"])
    op.create_index("ix_generation_tasks_status", "generation_tasks", ["status"])
    op.create_index("ix_generation_tasks_created_at", "generation_tasks", ["created_at"])

    # --- assets ---
    op.create_table(
        "assets",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("prompt_id", sa.String(36), sa.ForeignKey("prompts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("generation_task_id", sa.String(36),
                  sa.ForeignKey("generation_tasks.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.String(20), nullable=False, comment="IMAGE | VIDEO"),
        sa.Column("url", sa.String(1024), nullable=False),
        sa.Column("provider", sa.String(50), nullable=False),
        sa.Column("file_size", sa.Integer, nullable=False, server_default="0"),
        sa.Column("mime_type", sa.String(100), nullable=False),
        sa.Column("result_index", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        mysql_charset="utf8mb4",
        mysql_collate="utf8mb4_unicode_ci",
    )
    op.create_index("ix_assets_prompt_id", "assets", ["prompt_id"])
    op.create_index("ix_assets_generation_task_id", "assets", ["generation_task_id"])


def downgrade() -> None:
    op.drop_index("ix_assets_generation_task_id", table_name="assets")
    op.drop_index("ix_assets_prompt_id", table_name="assets")
    op.drop_table("assets")

    op.drop_index("ix_generation_tasks_created_at", table_name="generation_tasks")
    op.drop_index("ix_generation_tasks_status", table_name="generation_tasks")
    op.drop_index("ix_generation_tasks_external_task_id", table_name="generation_tasks")
    op.drop_index("ix_generation_tasks_prompt_id", table_name="generation_tasks")
    op.drop_table("generation_tasks")

    op.drop_index("ix_prompts_parent_id", table_name="prompts")
    op.drop_table("prompts")
