"""ORM model package — registers all models with Base.metadata."""

from app.models.prompt import Prompt, PromptType
from app.models.generation_task import (
    GenerationModel,
    GenerationService,
    GenerationTask,
    TaskStatus,
    VALID_SERVICE_MODELS,
)
from app.models.asset import Asset, AssetType

__all__ = [
    "Prompt",
    "PromptType",
    "GenerationTask",
    "GenerationModel",
    "GenerationService",
    "TaskStatus",
    "VALID_SERVICE_MODELS",
    "Asset",
    "AssetType",
]
