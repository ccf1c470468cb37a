"""Tests for provider parameter schemas and the Kie model registry."""
from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from app.models import AssetType
from app.models.generation_task import is_valid_service_model
from app.schemas.generation import (
    GenerationTaskRead,
    MidjourneyParams,
    Sora2Params,
    parse_provider_params,
)
from app.services.providers.kie_models import KIE_MODELS


def test_discriminates_on_model():
    params = parse_provider_params({
        "service": "KIE",
        "model": "MIDJOURNEY",
        "taskType": "mj_txt2img",
        "prompt": "castle on a cliff",
        "aspectRatio": "16:9",
        "version": "7",
    })

    assert isinstance(params, MidjourneyParams)
    assert params.task_type == "mj_txt2img"
    assert params.to_request_body() == {
        "taskType": "mj_txt2img",
        "prompt": "castle on a cliff",
        "aspectRatio": "16:9",
        "version": "7",
    }


def test_sora2_body_wraps_input_with_api_model():
    params = parse_provider_params({
        "service": "KIE",
        "model": "SORA2",
        "callBackUrl": "https://example.com/hook",
        "input": {"prompt": "paper boats", "aspect_ratio": "landscape"},
    })

    assert isinstance(params, Sora2Params)
    assert params.to_request_body() == {
        "model": "sora-2-text-to-video",
        "input": {"prompt": "paper boats", "aspect_ratio": "landscape"},
        "callBackUrl": "https://example.com/hook",
    }


@pytest.mark.parametrize("data", [
    {"service": "KIE", "model": "GPT_4O", "prompt": "x"},
    {"service": "OPENAI", "model": "SORA2", "input": {"prompt": "x"}},
    {"service": "KIE", "model": "VEO3", "prompt": "x", "modelVariant": "veo4"},
    {"service": "KIE", "model": "VEO3", "prompt": "x", "modelVariant": "veo3", "seeds": 5},
    {"service": "KIE", "model": "MIDJOURNEY", "taskType": "mj_txt2img", "prompt": "x" * 2001},
])
def test_invalid_params_rejected(data):
    with pytest.raises(ValidationError):
        parse_provider_params(data)


def test_service_model_allow_list():
    assert is_valid_service_model("KIE", "VEO3")
    assert is_valid_service_model("OPENAI", "SORA2")
    assert not is_valid_service_model("AZURE", "SORA2")
    assert not is_valid_service_model("NOPE", "IMAGEN4")


def test_stored_json_is_camel_case():
    params = parse_provider_params({
        "service": "KIE", "model": "VEO3", "prompt": "x", "model_variant": "veo3",
    })

    assert json.loads(params.to_stored_json()) == {
        "service": "KIE", "model": "VEO3", "prompt": "x", "modelVariant": "veo3",
    }


def test_task_read_decodes_json_columns(store):
    task = store.add_task(provider_params='{"model": "IMAGEN4"}')
    task.result_payload = "not json"

    read = GenerationTaskRead.from_task(task)

    assert read.provider_params == {"model": "IMAGEN4"}
    assert read.result_payload == "not json"
    assert read.assets == []


@pytest.mark.parametrize("model,params,expected", [
    ("IMAGEN4", None, AssetType.IMAGE),
    ("SORA2", None, AssetType.VIDEO),
    ("VEO3", None, AssetType.VIDEO),
    ("MIDJOURNEY", '{"taskType": "mj_txt2img"}', AssetType.IMAGE),
    ("MIDJOURNEY", '{"taskType": "mj_video_hd"}', AssetType.VIDEO),
    ("MIDJOURNEY", "garbage", AssetType.IMAGE),
])
def test_asset_type_for(model, params, expected):
    assert KIE_MODELS.asset_type_for(model, params) == expected


def test_registry_rejects_unknown_models():
    assert KIE_MODELS.list_models() == ["IMAGEN4", "MIDJOURNEY", "SORA2", "VEO3"]
    with pytest.raises(ValueError):
        KIE_MODELS.get("GEMINI_2_0")
