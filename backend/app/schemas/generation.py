from __future__ import annotations
"""Pydantic v2 schemas for generation requests, tasks and assets.

Provider parameters are a discriminated union on ``model``. Field names are
snake_case in Python and camelCase on the wire, matching the Kie.ai API.
"""

import json
from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator
from pydantic.alias_generators import to_camel

from app.models.generation_task import GenerationTask, is_valid_service_model


class _KieParams(BaseModel):
    """Fields shared by every Kie.ai request."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        protected_namespaces=(),
    )

    service: Literal["KIE"] = "KIE"
    call_back_url: Optional[str] = None

    @model_validator(mode="after")
    def _check_service_model(self):
        if not is_valid_service_model(self.service, self.model):
            raise ValueError(
                f"Invalid combination: {self.service} does not support {self.model}"
            )
        return self

    def to_request_body(self) -> dict[str, Any]:
        """Flat body: every set field except the routing keys."""
        return self.model_dump(by_alias=True, exclude_none=True, exclude={"service", "model"})

    def to_stored_json(self) -> str:
        return json.dumps(self.model_dump(mode="json", by_alias=True, exclude_none=True))


# ──────── Imagen4 (image) ────────

class Imagen4Input(BaseModel):
    prompt: str = Field(min_length=1, max_length=5000)
    negative_prompt: Optional[str] = Field(default=None, max_length=5000)
    aspect_ratio: Optional[Literal["1:1", "16:9", "9:16", "3:4", "4:3"]] = None
    num_images: Optional[Literal["1", "2", "3", "4"]] = None
    seed: Optional[int] = None


class Imagen4Params(_KieParams):
    model: Literal["IMAGEN4"]
    api_model: Literal["google/imagen4-fast"] = "google/imagen4-fast"
    input: Imagen4Input

    def to_request_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": self.api_model,
            "input": self.input.model_dump(exclude_none=True),
        }
        if self.call_back_url:
            body["callBackUrl"] = self.call_back_url
        return body


# ──────── Sora2 (video) ────────

class Sora2Input(BaseModel):
    prompt: str = Field(min_length=1, max_length=5000)
    aspect_ratio: Optional[Literal["portrait", "landscape"]] = None
    n_frames: Optional[Literal["10", "15"]] = None
    remove_watermark: Optional[bool] = None


class Sora2Params(_KieParams):
    model: Literal["SORA2"]
    api_model: Literal["sora-2-text-to-video"] = "sora-2-text-to-video"
    input: Sora2Input

    def to_request_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": self.api_model,
            "input": self.input.model_dump(exclude_none=True),
        }
        if self.call_back_url:
            body["callBackUrl"] = self.call_back_url
        return body


# ──────── Veo3 (video) ────────

class Veo3Params(_KieParams):
    model: Literal["VEO3"]
    prompt: str = Field(min_length=1, max_length=5000)
    model_variant: Literal["veo3", "veo3_fast"]
    generation_type: Optional[
        Literal["TEXT_2_VIDEO", "FIRST_AND_LAST_FRAMES_2_VIDEO", "REFERENCE_2_VIDEO"]
    ] = None
    image_urls: Optional[list[str]] = Field(default=None, max_length=3)
    aspect_ratio: Optional[Literal["16:9", "9:16", "Auto"]] = None
    seeds: Optional[int] = Field(default=None, ge=10000, le=99999)
    watermark: Optional[str] = None
    enable_translation: Optional[bool] = None


# ──────── Midjourney (image / video) ────────

class MidjourneyParams(_KieParams):
    model: Literal["MIDJOURNEY"]
    task_type: Literal[
        "mj_txt2img",
        "mj_img2img",
        "mj_style_reference",
        "mj_omni_reference",
        "mj_video",
        "mj_video_hd",
    ]
    prompt: str = Field(min_length=1, max_length=2000)
    speed: Optional[Literal["relaxed", "fast", "turbo"]] = None
    file_urls: Optional[list[str]] = None
    aspect_ratio: Optional[
        Literal["1:2", "9:16", "2:3", "3:4", "5:6", "6:5", "4:3", "3:2", "1:1", "16:9", "2:1"]
    ] = None
    version: Optional[Literal["7", "6.1", "6", "5.2", "5.1", "niji6"]] = None
    variety: Optional[int] = Field(default=None, ge=0, le=100)
    stylization: Optional[int] = Field(default=None, ge=0, le=1000)
    weirdness: Optional[int] = Field(default=None, ge=0, le=3000)
    ow: Optional[int] = Field(default=None, ge=1, le=1000)
    water_mark: Optional[str] = None
    enable_translation: Optional[bool] = None
    video_batch_size: Optional[Literal[1, 2, 4]] = None
    motion: Optional[Literal["high", "low"]] = None


ProviderParams = Annotated[
    Union[Imagen4Params, Veo3Params, MidjourneyParams, Sora2Params],
    Field(discriminator="model"),
]

provider_params_adapter: TypeAdapter[ProviderParams] = TypeAdapter(ProviderParams)


def parse_provider_params(data: Any) -> ProviderParams:
    """Validate raw provider params; raises pydantic.ValidationError."""
    return provider_params_adapter.validate_python(data)


# ──────── API payloads ────────

class CreateGenerationTaskRequest(BaseModel):
    """Body of POST /api/generation/tasks (validated further by the service)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    prompt_id: str
    provider_params: dict[str, Any]


class AssetRead(BaseModel):
    id: str
    prompt_id: str
    generation_task_id: str
    type: str
    url: str
    provider: str
    file_size: int
    mime_type: str
    result_index: int
    created_at: datetime

    model_config = {"from_attributes": True}


class GenerationTaskRead(BaseModel):
    id: str
    prompt_id: str
    service: str
    model: str
    external_task_id: str | None = None
    status: str
    provider_params: dict[str, Any] = {}
    result_payload: Any = None
    fail_code: str | None = None
    fail_message: str | None = None
    created_at: datetime
    completed_at: datetime | None = None
    assets: list[AssetRead] = []

    model_config = {"protected_namespaces": ()}

    @classmethod
    def from_task(cls, task: GenerationTask, assets: list | None = None) -> "GenerationTaskRead":
        """Build the response shape, decoding the stored JSON columns."""
        return cls(
            id=task.id,
            prompt_id=task.prompt_id,
            service=task.service,
            model=task.model,
            external_task_id=task.external_task_id,
            status=task.status,
            provider_params=_loads(task.provider_params) or {},
            result_payload=_loads(task.result_payload),
            fail_code=task.fail_code,
            fail_message=task.fail_message,
            created_at=task.created_at,
            completed_at=task.completed_at,
            assets=[AssetRead.model_validate(a) for a in assets or []],
        )


def _loads(value: str | None) -> Any:
    if not value:
        return None
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value
