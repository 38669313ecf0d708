"""
test_sources.py - 원본 이미지 확보 테스트

DoD:
- URL 다운로드 성공 → origin="url", source_hash = SHA-256(bytes)
- 5xx/429 재시도, 4xx 즉시 실패
- 10KB 미만/비이미지 → INVALID_IMAGE
- URL 실패 → 표준 샘플 + SAMPLE_FALLBACK_USED 경고
- 둘 다 실패 → SOURCE_UNAVAILABLE
"""

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock

import httpx
import pytest

from src.app.services.sources import (
    SampleLibrary,
    SourceError,
    SourceImageLoader,
    SourceResolver,
    company_category,
    company_name_ko,
    detect_image_mime,
    extract_product_type,
    validate_image_data,
)
from src.core.hashing import compute_source_hash
from src.core.logging import create_run_log
from src.domain.errors import ErrorCodes

SOURCE_URL = "https://cdn.example.com/design.png"


@pytest.fixture(autouse=True)
def no_backoff_sleep(monkeypatch):
    """재시도 대기 제거."""
    monkeypatch.setattr(asyncio, "sleep", AsyncMock())


def mock_loader(handler, max_retries: int = 2) -> SourceImageLoader:
    return SourceImageLoader(max_retries=max_retries, transport=httpx.MockTransport(handler))


def write_sample(root: Path, key: str, data: bytes) -> Path:
    path = root / key
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path


# =============================================================================
# Validation
# =============================================================================


class TestValidateImageData:
    """이미지 검증 테스트."""

    def test_png_accepted(self, png_bytes):
        result = validate_image_data(png_bytes)
        assert result.valid is True
        assert result.mime_type == "image/png"

    def test_too_small(self):
        result = validate_image_data(b"\x89PNG" + b"\x00" * 100)
        assert result.valid is False
        assert "too small" in result.error

    def test_not_an_image(self):
        result = validate_image_data(b"<html>" + b" " * 20000)
        assert result.valid is False

    @pytest.mark.parametrize(("head", "mime"), [
        (b"\xff\xd8\xff\xe0", "image/jpeg"),
        (b"GIF89a", "image/gif"),
        (b"RIFF\x00\x00\x00\x00WEBP", "image/webp"),
    ])
    def test_detect_mime(self, head, mime):
        assert detect_image_mime(head + b"\x00" * 16) == mime


# =============================================================================
# Download
# =============================================================================


class TestSourceImageLoader:
    """SourceImageLoader 테스트."""

    @pytest.mark.asyncio
    async def test_download_success(self, png_bytes):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, content=png_bytes)

        image = await mock_loader(handler).download(SOURCE_URL)

        assert image.origin == "url"
        assert image.source_url == SOURCE_URL
        assert image.source_hash == compute_source_hash(png_bytes)
        assert image.mime_type == "image/png"
        assert "XIVIX" in seen[0].headers["User-Agent"]

    @pytest.mark.asyncio
    async def test_retries_server_errors(self, png_bytes):
        """503 → 재시도 후 성공."""
        responses = iter([httpx.Response(503), httpx.Response(429), httpx.Response(200, content=png_bytes)])

        image = await mock_loader(lambda request: next(responses)).download(SOURCE_URL)

        assert image.data == png_bytes

    @pytest.mark.asyncio
    async def test_retries_exhausted(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500)

        with pytest.raises(SourceError) as exc_info:
            await mock_loader(handler, max_retries=2).download(SOURCE_URL)

        assert exc_info.value.code == ErrorCodes.DOWNLOAD_FAILED
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(404)

        with pytest.raises(SourceError) as exc_info:
            await mock_loader(handler).download(SOURCE_URL)

        assert exc_info.value.code == ErrorCodes.DOWNLOAD_FAILED
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_transport_error_retried(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(SourceError) as exc_info:
            await mock_loader(handler, max_retries=1).download(SOURCE_URL)

        assert exc_info.value.code == ErrorCodes.DOWNLOAD_FAILED

    @pytest.mark.asyncio
    async def test_placeholder_rejected(self):
        """작은 placeholder 이미지 → INVALID_IMAGE."""
        handler = lambda request: httpx.Response(200, content=b"\x89PNG" + b"\x00" * 64)  # noqa: E731

        with pytest.raises(SourceError) as exc_info:
            await mock_loader(handler).download(SOURCE_URL)

        assert exc_info.value.code == ErrorCodes.INVALID_IMAGE


# =============================================================================
# Samples
# =============================================================================


class TestCompanyHelpers:
    """보험사/상품 매핑 테스트."""

    def test_extract_product_type(self):
        assert extract_product_type("30대 암보험 추천") == "암"
        assert extract_product_type("어린이 보험") == "어린이"
        assert extract_product_type("Driver insurance") == "운전자"
        assert extract_product_type("그냥 보험") is None

    def test_company_name_ko(self):
        assert company_name_ko("SAMSUNG_LIFE") == "삼성생명"
        assert company_name_ko("UNKNOWN") == "UNKNOWN"

    def test_company_category(self):
        assert company_category("SAMSUNG_LIFE") == "LIFE_19"
        assert company_category("MERITZ_FIRE") == "NON_LIFE_12"
        assert company_category("UNKNOWN") == "NON_LIFE_12"


class TestSampleLibrary:
    """SampleLibrary 테스트."""

    def test_select_by_product(self):
        library = SampleLibrary("unused")
        assert library.select_sample("SAMSUNG_LIFE", "암보험 추천") == (
            "samples/life/samsung/cancer.png", "암보험"
        )

    def test_select_first_when_no_match(self):
        library = SampleLibrary("unused")
        assert library.select_sample("SAMSUNG_LIFE", "화재보험") == (
            "samples/life/samsung/universal.png", "종신보험"
        )

    def test_unknown_company(self):
        library = SampleLibrary("unused")
        assert library.select_sample("UNKNOWN", "암보험") is None
        assert library.has_sample("UNKNOWN") is False
        assert library.has_sample("SAMSUNG_LIFE") is True

    def test_load_sample(self, tmp_path, png_bytes):
        write_sample(tmp_path, "samples/life/samsung/cancer.png", png_bytes)

        image = SampleLibrary(tmp_path).load_sample("SAMSUNG_LIFE", "암보험")

        assert image.origin == "sample"
        assert image.sample_key == "samples/life/samsung/cancer.png"
        assert image.source_url == "sample://samples/life/samsung/cancer.png"
        assert image.source_hash == compute_source_hash(png_bytes)

    def test_missing_file(self, tmp_path):
        assert SampleLibrary(tmp_path).load_sample("SAMSUNG_LIFE", "암보험") is None

    def test_invalid_sample_file(self, tmp_path):
        write_sample(tmp_path, "samples/life/samsung/cancer.png", b"broken")
        assert SampleLibrary(tmp_path).load_sample("SAMSUNG_LIFE", "암보험") is None


# =============================================================================
# Resolver
# =============================================================================


class TestSourceResolver:
    """SourceResolver 테스트."""

    @pytest.mark.asyncio
    async def test_url_preferred(self, tmp_path, png_bytes):
        write_sample(tmp_path, "samples/life/samsung/cancer.png", png_bytes)
        remote = png_bytes + b"remote"
        resolver = SourceResolver(
            mock_loader(lambda request: httpx.Response(200, content=remote)),
            SampleLibrary(tmp_path),
        )

        image = await resolver.resolve("SAMSUNG_LIFE", "암보험", source_url=SOURCE_URL)

        assert image.origin == "url"
        assert image.data == remote

    @pytest.mark.asyncio
    async def test_sample_fallback_on_download_failure(self, tmp_path, png_bytes):
        write_sample(tmp_path, "samples/life/samsung/cancer.png", png_bytes)
        resolver = SourceResolver(
            mock_loader(lambda request: httpx.Response(404)),
            SampleLibrary(tmp_path),
        )
        run_log = create_run_log("vix_test")

        image = await resolver.resolve(
            "SAMSUNG_LIFE", "암보험", source_url=SOURCE_URL, run_log=run_log
        )

        assert image.origin == "sample"
        assert run_log.warnings[0].code == ErrorCodes.SAMPLE_FALLBACK_USED
        assert run_log.warnings[0].original_value == SOURCE_URL

    @pytest.mark.asyncio
    async def test_sample_without_url_no_warning(self, tmp_path, png_bytes):
        write_sample(tmp_path, "samples/life/samsung/cancer.png", png_bytes)
        resolver = SourceResolver(mock_loader(lambda request: httpx.Response(500)), SampleLibrary(tmp_path))
        run_log = create_run_log("vix_test")

        image = await resolver.resolve("SAMSUNG_LIFE", "암보험", run_log=run_log)

        assert image.origin == "sample"
        assert run_log.warnings == []

    @pytest.mark.asyncio
    async def test_source_unavailable(self, tmp_path):
        resolver = SourceResolver(
            mock_loader(lambda request: httpx.Response(404)),
            SampleLibrary(tmp_path),
        )

        with pytest.raises(SourceError) as exc_info:
            await resolver.resolve("SAMSUNG_LIFE", "암보험", source_url=SOURCE_URL)

        assert exc_info.value.code == ErrorCodes.SOURCE_UNAVAILABLE
        assert "삼성생명" in exc_info.value.message

    def test_from_config(self, tmp_path):
        resolver = SourceResolver.from_config({
            "sources": {
                "samples_root": str(tmp_path),
                "download_timeout_seconds": 3,
                "download_max_retries": 1,
            }
        })

        assert resolver.samples.samples_root == tmp_path
        assert resolver.loader.timeout == 3.0
        assert resolver.loader.max_retries == 1
