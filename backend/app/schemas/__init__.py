"""Pydantic v2 schemas package."""

from app.schemas.generation import (
    AssetRead,
    CreateGenerationTaskRequest,
    GenerationTaskRead,
    Imagen4Params,
    MidjourneyParams,
    ProviderParams,
    Sora2Params,
    Veo3Params,
    parse_provider_params,
)

__all__ = [
    "AssetRead",
    "CreateGenerationTaskRequest",
    "GenerationTaskRead",
    "Imagen4Params",
    "MidjourneyParams",
    "ProviderParams",
    "Sora2Params",
    "Veo3Params",
    "parse_provider_params",
]
