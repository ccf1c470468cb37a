"""Provider status normalization.

Kie.ai models report progress in two encodings:

- string state (IMAGEN4, SORA2): ``state`` is one of
  wait / queueing / generating / waiting / success / fail
- integer flag (VEO3, MIDJOURNEY): ``successFlag`` is 0 (generating),
  1 (success), 2 or 3 (failed)

Raw payloads are resolved once into a tagged variant; everything downstream
works on the uniform PENDING / SUCCESS / FAILED model. Unknown values raise
instead of being guessed. This module performs no I/O.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Union

from app.models.generation_task import TaskStatus
from app.services.errors import NoResultUrls, ResultParseError, UnknownStatus
from app.services.providers.kie_models import (
    FAMILY_INTEGER_FLAG,
    FAMILY_STRING_STATE,
    KIE_MODELS,
    KieModelRegistry,
)

_STRING_STATES = {
    "wait": TaskStatus.PENDING,
    "queueing": TaskStatus.PENDING,
    "generating": TaskStatus.PENDING,
    "waiting": TaskStatus.PENDING,
    "success": TaskStatus.SUCCESS,
    "fail": TaskStatus.FAILED,
}

_INTEGER_FLAGS = {
    0: TaskStatus.PENDING,
    1: TaskStatus.SUCCESS,
    2: TaskStatus.FAILED,
    3: TaskStatus.FAILED,
}

DEFAULT_FAIL_CODE = "UNKNOWN_ERROR"
DEFAULT_FAIL_MESSAGE = "Task failed without details"


@dataclass(frozen=True)
class StringStatePayload:
    state: Any
    raw: dict[str, Any]

    def status(self) -> TaskStatus:
        if self.state is None:
            raise UnknownStatus("Missing 'state' field in provider response")
        if not isinstance(self.state, str) or self.state not in _STRING_STATES:
            raise UnknownStatus(f"Unknown state: {self.state!r}")
        return _STRING_STATES[self.state]


@dataclass(frozen=True)
class IntegerFlagPayload:
    success_flag: Any
    raw: dict[str, Any]

    def status(self) -> TaskStatus:
        if self.success_flag is None:
            raise UnknownStatus("Missing 'successFlag' field in provider response")
        if isinstance(self.success_flag, bool) or not isinstance(self.success_flag, int):
            raise UnknownStatus(f"Unknown successFlag: {self.success_flag!r}")
        if self.success_flag not in _INTEGER_FLAGS:
            raise UnknownStatus(f"Unknown successFlag: {self.success_flag}")
        return _INTEGER_FLAGS[self.success_flag]


ProviderPayload = Union[StringStatePayload, IntegerFlagPayload]


@dataclass(frozen=True)
class NormalizedResult:
    """Uniform view of one record-info response."""
    status: TaskStatus
    result_urls: list[str] = field(default_factory=list)
    result_payload: str | None = None
    fail_code: str | None = None
    fail_message: str | None = None


def parse_payload(
    model: str, raw: dict[str, Any], registry: KieModelRegistry = KIE_MODELS
) -> ProviderPayload:
    """Tag a raw record-info payload with its model's status family."""
    if not registry.supports(model):
        raise UnknownStatus(f"Unsupported model: {model}")
    if not isinstance(raw, dict):
        raise UnknownStatus(f"Provider response is not an object: {raw!r}")

    family = registry.get(model).status_family
    if family == FAMILY_STRING_STATE:
        return StringStatePayload(state=raw.get("state"), raw=raw)
    if family == FAMILY_INTEGER_FLAG:
        return IntegerFlagPayload(success_flag=raw.get("successFlag"), raw=raw)
    raise UnknownStatus(f"Unsupported status family {family!r} for model {model}")


def normalize_status(model: str, raw: dict[str, Any]) -> TaskStatus:
    return parse_payload(model, raw).status()


def extract_result_urls(raw: dict[str, Any]) -> list[str]:
    """Extract the ordered result URLs from a successful payload.

    Encodings, tried in order:
      1. ``resultJson``: JSON string ``{"resultUrls": [...]}`` (IMAGEN4, SORA2)
      2. ``resultInfoJson.resultUrls``: ``[{"resultUrl": ...}, ...]`` (MIDJOURNEY)
      3. ``response.resultUrls``: ``[...]`` (VEO3)

    An explicitly empty list is a valid (zero asset) result.
    """
    result_json = raw.get("resultJson")
    if result_json:
        try:
            parsed = json.loads(result_json)
        except (json.JSONDecodeError, TypeError) as e:
            raise ResultParseError(f"Failed to parse resultJson: {e}") from e
        urls = parsed.get("resultUrls") if isinstance(parsed, dict) else None
        if not isinstance(urls, list):
            raise NoResultUrls("resultUrls not found in parsed resultJson")
        return [str(u) for u in urls]

    result_info = raw.get("resultInfoJson")
    if isinstance(result_info, dict) and isinstance(result_info.get("resultUrls"), list):
        urls = []
        for item in result_info["resultUrls"]:
            if isinstance(item, dict):
                if "resultUrl" not in item:
                    raise NoResultUrls(f"resultInfoJson entry without resultUrl: {item}")
                urls.append(str(item["resultUrl"]))
            else:
                urls.append(str(item))
        return urls

    response = raw.get("response")
    if isinstance(response, dict) and isinstance(response.get("resultUrls"), list):
        return [str(u) for u in response["resultUrls"]]

    raise NoResultUrls("Could not extract resultUrls from response")


def normalize(model: str, raw: dict[str, Any]) -> NormalizedResult:
    """Classify a record-info payload and pull out everything the poller needs."""
    status = parse_payload(model, raw).status()

    if status == TaskStatus.SUCCESS:
        urls = extract_result_urls(raw)
        result_payload = raw.get("resultJson") or json.dumps({"resultUrls": urls})
        return NormalizedResult(status=status, result_urls=urls, result_payload=result_payload)

    if status == TaskStatus.FAILED:
        return NormalizedResult(
            status=status,
            fail_code=str(raw.get("failCode") or DEFAULT_FAIL_CODE),
            fail_message=str(raw.get("failMsg") or DEFAULT_FAIL_MESSAGE),
        )

    return NormalizedResult(status=status)
