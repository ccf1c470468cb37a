"""Asset materializer — download provider result files into local storage.

Layout: ``{storage_dir}/{images|videos}/{task_id}_{index}.{ext}``, served at
``{url_prefix}/{images|videos}/{task_id}_{index}.{ext}``.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

import httpx

from app.models.asset import AssetType
from app.services.errors import AssetDownloadError

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"

_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
    "video/mp4": "mp4",
    "video/webm": "webm",
    "video/quicktime": "mov",
}

_DEFAULT_EXTENSIONS = {
    AssetType.IMAGE: "jpg",
    AssetType.VIDEO: "mp4",
}

_SUBDIRS = {
    AssetType.IMAGE: "images",
    AssetType.VIDEO: "videos",
}


def _mime_type(content_type: str | None) -> str | None:
    if not content_type:
        return None
    mime = content_type.split(";", 1)[0].strip().lower()
    return mime or None


def extension_from_content_type(content_type: str | None, asset_type: AssetType) -> str:
    """File extension for a response content type, defaulting by asset kind."""
    mime = _mime_type(content_type)
    return _EXTENSIONS.get(mime, _DEFAULT_EXTENSIONS[AssetType(asset_type)])


def _discard(path: str) -> None:
    """Remove a partially written file."""
    try:
        os.remove(path)
    except FileNotFoundError:
        pass


@dataclass(frozen=True)
class MaterializedAsset:
    local_path: str
    serving_url: str
    file_size: int
    mime_type: str


class AssetMaterializer:
    """Streams result files to disk, one call per result URL."""

    def __init__(
        self,
        storage_dir: str,
        url_prefix: str = "/api/assets",
        timeout: float = 120.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.storage_dir = storage_dir
        self.url_prefix = url_prefix.rstrip("/")
        self.timeout = timeout
        self._client = http_client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)
        self._own_client = http_client is None

    @classmethod
    def from_settings(cls, settings, **kwargs) -> "AssetMaterializer":
        return cls(
            settings.STORAGE_DIR,
            url_prefix=settings.ASSET_URL_PREFIX,
            timeout=settings.DOWNLOAD_TIMEOUT,
            **kwargs,
        )

    async def aclose(self) -> None:
        if self._own_client:
            await self._client.aclose()

    async def materialize(
        self,
        source_url: str,
        task_id: str,
        index: int,
        asset_type: AssetType,
    ) -> MaterializedAsset:
        """Download ``source_url`` and return where it landed.

        Raises AssetDownloadError on a non-2xx response or a transport failure.
        """
        asset_type = AssetType(asset_type)
        subdir = _SUBDIRS[asset_type]
        dir_path = os.path.join(self.storage_dir, subdir)
        os.makedirs(dir_path, exist_ok=True)

        filepath = None
        try:
            async with self._client.stream("GET", source_url, timeout=self.timeout) as response:
                if not response.is_success:
                    raise AssetDownloadError(
                        f"Failed to download {source_url}: HTTP {response.status_code}"
                    )

                content_type = response.headers.get("content-type")
                ext = extension_from_content_type(content_type, asset_type)
                filename = f"{task_id}_{index}.{ext}"
                filepath = os.path.join(dir_path, filename)

                size = 0
                with open(filepath, "wb") as f:
                    async for chunk in response.aiter_bytes(chunk_size=8192):
                        f.write(chunk)
                        size += len(chunk)
        except httpx.HTTPError as e:
            if filepath is not None:
                _discard(filepath)
            raise AssetDownloadError(f"Failed to download {source_url}: {e}") from e

        logger.info("Saved asset %s (%d bytes)", filepath, size)
        return MaterializedAsset(
            local_path=filepath,
            serving_url=f"{self.url_prefix}/{subdir}/{filename}",
            file_size=size,
            mime_type=_mime_type(content_type) or DEFAULT_MIME_TYPE,
        )
