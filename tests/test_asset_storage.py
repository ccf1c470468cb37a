"""
Unit tests for app/services/asset_storage.py
Downloads go through httpx.MockTransport and land in pytest's tmp_path.
"""
from __future__ import annotations

import asyncio
import os

import httpx
import pytest

from app.models import AssetType
from app.services.asset_storage import AssetMaterializer, extension_from_content_type
from app.services.errors import AssetDownloadError


def _materializer(tmp_path, handler) -> AssetMaterializer:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return AssetMaterializer(str(tmp_path), url_prefix="/api/assets", http_client=http)


def _serve(body: bytes, content_type: str | None, status: int = 200):
    def handler(request: httpx.Request) -> httpx.Response:
        headers = {"content-type": content_type} if content_type else {}
        return httpx.Response(status, content=body, headers=headers)
    return handler


# ─── extension_from_content_type ─────────────────────────────────────────────

class TestExtension:
    @pytest.mark.parametrize("content_type,ext", [
        ("image/jpeg", "jpg"),
        ("image/png", "png"),
        ("image/webp", "webp"),
        ("image/gif", "gif"),
        ("video/mp4", "mp4"),
        ("video/webm", "webm"),
        ("video/quicktime", "mov"),
        ("image/PNG; charset=binary", "png"),
    ])
    def test_known_types(self, content_type, ext):
        assert extension_from_content_type(content_type, AssetType.IMAGE) == ext

    def test_unknown_image_type_defaults_to_jpg(self):
        assert extension_from_content_type("image/zzz", AssetType.IMAGE) == "jpg"

    def test_unknown_video_type_defaults_to_mp4(self):
        assert extension_from_content_type("application/octet-stream", AssetType.VIDEO) == "mp4"

    def test_missing_content_type_uses_default(self):
        assert extension_from_content_type(None, AssetType.VIDEO) == "mp4"


# ─── materialize ─────────────────────────────────────────────────────────────

class TestMaterialize:
    def test_png_download(self, tmp_path):
        m = _materializer(tmp_path, _serve(b"\x89PNG-data", "image/png"))

        asset = asyncio.run(m.materialize("https://cdn.example/a", "task1", 0, AssetType.IMAGE))

        assert asset.local_path.endswith(os.path.join("images", "task1_0.png"))
        assert asset.serving_url == "/api/assets/images/task1_0.png"
        assert asset.file_size == len(b"\x89PNG-data")
        assert asset.mime_type == "image/png"
        with open(asset.local_path, "rb") as f:
            assert f.read() == b"\x89PNG-data"

    def test_unrecognized_image_type_still_succeeds(self, tmp_path):
        m = _materializer(tmp_path, _serve(b"xyz", "image/zzz"))

        asset = asyncio.run(m.materialize("https://cdn.example/a", "task2", 1, AssetType.IMAGE))

        assert asset.local_path.endswith("task2_1.jpg")
        assert asset.mime_type == "image/zzz"

    def test_video_goes_to_videos_dir(self, tmp_path):
        m = _materializer(tmp_path, _serve(b"\x00" * 2048, "video/quicktime"))

        asset = asyncio.run(m.materialize("https://cdn.example/v", "task3", 2, AssetType.VIDEO))

        assert asset.serving_url == "/api/assets/videos/task3_2.mov"
        assert os.path.getsize(tmp_path / "videos" / "task3_2.mov") == 2048

    def test_missing_content_type_is_octet_stream(self, tmp_path):
        m = _materializer(tmp_path, _serve(b"abc", None))

        asset = asyncio.run(m.materialize("https://cdn.example/v", "task4", 0, AssetType.VIDEO))

        assert asset.local_path.endswith("task4_0.mp4")
        assert asset.mime_type == "application/octet-stream"

    def test_http_error_raises(self, tmp_path):
        m = _materializer(tmp_path, _serve(b"gone", "text/plain", status=404))

        with pytest.raises(AssetDownloadError, match="HTTP 404"):
            asyncio.run(m.materialize("https://cdn.example/x", "task5", 0, AssetType.IMAGE))

        assert not os.listdir(tmp_path / "images")

    def test_transport_error_raises(self, tmp_path):
        def handler(request):
            raise httpx.ConnectError("refused")

        m = _materializer(tmp_path, handler)

        with pytest.raises(AssetDownloadError):
            asyncio.run(m.materialize("https://cdn.example/x", "task6", 0, AssetType.IMAGE))

    def test_interrupted_stream_leaves_no_partial_file(self, tmp_path):
        class BrokenStream(httpx.AsyncByteStream):
            async def __aiter__(self):
                yield b"first-chunk"
                raise httpx.ReadError("connection reset")

        def handler(request):
            return httpx.Response(200, headers={"content-type": "image/png"}, stream=BrokenStream())

        m = _materializer(tmp_path, handler)

        with pytest.raises(AssetDownloadError, match="connection reset"):
            asyncio.run(m.materialize("https://cdn.example/x", "task7", 0, AssetType.IMAGE))

        assert not os.path.exists(tmp_path / "images" / "task7_0.png")
