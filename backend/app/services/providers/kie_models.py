"""Declarative registry of the Kie.ai models the engine can dispatch.

Every supported model's endpoints, status encoding and result kind live in
one table so the client, normalizer and poller never branch on model names.

Usage:
    from app.services.providers.kie_models import KIE_MODELS
    spec = KIE_MODELS.get("VEO3")
    spec.query_endpoint  # "/api/v1/veo/record-info"
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass

from app.models.asset import AssetType

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------

# Status encoding families
FAMILY_STRING_STATE = "string_state"    # data.state: "waiting" / "success" / "fail"
FAMILY_INTEGER_FLAG = "integer_flag"    # data.successFlag: 0 / 1 / 2 / 3


@dataclass(frozen=True)
class KieModelSpec:
    """Capability descriptor for a single Kie.ai model."""
    model: str
    create_endpoint: str
    query_endpoint: str
    status_family: str
    asset_type: AssetType
    provider: str


# ---------------------------------------------------------------------------
# Registry class
# ---------------------------------------------------------------------------

class KieModelRegistry:
    """In-memory registry of all dispatchable Kie.ai models."""

    def __init__(self) -> None:
        self._models: dict[str, KieModelSpec] = {}

    def register(self, spec: KieModelSpec) -> None:
        self._models[spec.model] = spec

    def get(self, model: str) -> KieModelSpec:
        """Return the spec for a model or raise ValueError."""
        spec = self._models.get(getattr(model, "value", model))
        if spec is None:
            raise ValueError(f"Unsupported Kie model: {model}")
        return spec

    def supports(self, model: str) -> bool:
        return getattr(model, "value", model) in self._models

    def list_models(self) -> list[str]:
        return sorted(self._models)

    def asset_type_for(self, model: str, provider_params: str | None = None) -> AssetType:
        """Resolve the kind of media a task produces.

        Midjourney renders video for its ``mj_video*`` task types; every other
        model has a fixed kind.
        """
        spec = self.get(model)
        if spec.model == "MIDJOURNEY" and provider_params:
            try:
                params = json.loads(provider_params)
            except (json.JSONDecodeError, TypeError):
                logger.warning("Unreadable provider params for %s, assuming %s", model, spec.asset_type.value)
                return spec.asset_type
            if isinstance(params, dict) and str(params.get("taskType", "")).startswith("mj_video"):
                return AssetType.VIDEO
        return spec.asset_type


KIE_MODELS = KieModelRegistry()

KIE_MODELS.register(KieModelSpec(
    model="IMAGEN4",
    create_endpoint="/api/v1/jobs/createTask",
    query_endpoint="/api/v1/jobs/recordInfo",
    status_family=FAMILY_STRING_STATE,
    asset_type=AssetType.IMAGE,
    provider="IMAGEN",
))
KIE_MODELS.register(KieModelSpec(
    model="SORA2",
    create_endpoint="/api/v1/jobs/createTask",
    query_endpoint="/api/v1/jobs/recordInfo",
    status_family=FAMILY_STRING_STATE,
    asset_type=AssetType.VIDEO,
    provider="SORA",
))
KIE_MODELS.register(KieModelSpec(
    model="VEO3",
    create_endpoint="/api/v1/veo/generate",
    query_endpoint="/api/v1/veo/record-info",
    status_family=FAMILY_INTEGER_FLAG,
    asset_type=AssetType.VIDEO,
    provider="VEO",
))
KIE_MODELS.register(KieModelSpec(
    model="MIDJOURNEY",
    create_endpoint="/api/v1/mj/generate",
    query_endpoint="/api/v1/mj/record-info",
    status_family=FAMILY_INTEGER_FLAG,
    asset_type=AssetType.IMAGE,
    provider="MIDJOURNEY",
))
