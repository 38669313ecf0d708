"""
Source acquisition: 원본 이미지 확보.

우선순위:
1. source_url 다운로드 (httpx, 일시 실패 재시도)
2. 실패/미지정 → 보험사 표준 샘플 (로컬 samples_root)
3. 둘 다 없음 → SourceError(SOURCE_UNAVAILABLE)
"""

import logging
from dataclasses import dataclass
from pathlib import Path

import httpx

from src.core.hashing import compute_source_hash
from src.core.logging import emit_warning
from src.domain.constants import (
    IMAGE_MAGIC_BYTES,
    INSURANCE_COMPANIES,
    INSURANCE_TYPE_LIFE,
    INSURANCE_TYPE_NON_LIFE,
    MIN_IMAGE_SIZE_BYTES,
    PRODUCT_PATTERNS,
    get_mime_type,
)
from src.domain.errors import ErrorCodes
from src.domain.schemas import RunLog, SourceImage
from src.utils.retry import (
    RetryableError,
    raise_for_transient_status,
    retry_with_exponential_backoff,
)

logger = logging.getLogger(__name__)

DEFAULT_DOWNLOAD_TIMEOUT = 15.0
DEFAULT_SAMPLES_ROOT = "samples"
USER_AGENT = "Mozilla/5.0 (compatible; XIVIX-XIIM/1.0)"


class SourceError(Exception):
    """원본 확보 에러."""

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(f"[{code}] {message}")


# =============================================================================
# Validation
# =============================================================================


@dataclass
class ImageValidation:
    """이미지 검증 결과."""
    valid: bool
    mime_type: str | None = None
    error: str | None = None


def detect_image_mime(data: bytes) -> str | None:
    """매직 바이트 → MIME 타입 (JPEG/PNG/GIF/WebP)."""
    for mime_type, offset, magic in IMAGE_MAGIC_BYTES:
        if data[offset:offset + len(magic)] == magic:
            return mime_type
    # WebP: RIFF....WEBP
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return None


def validate_image_data(data: bytes) -> ImageValidation:
    """
    원본 이미지 검증.

    - 10KB 미만 → 깨진 파일/placeholder로 간주
    - 매직 바이트가 JPEG/PNG/GIF/WebP가 아니면 거부
    """
    if len(data) < MIN_IMAGE_SIZE_BYTES:
        return ImageValidation(
            valid=False,
            error=f"Image too small: {len(data)} bytes (min {MIN_IMAGE_SIZE_BYTES})",
        )

    mime_type = detect_image_mime(data)
    if mime_type is None:
        return ImageValidation(valid=False, error="Unsupported image format")

    return ImageValidation(valid=True, mime_type=mime_type)


# =============================================================================
# Download
# =============================================================================


class SourceImageLoader:
    """
    원격 원본 이미지 다운로드.

    5xx/429/전송 오류는 지수 백오프 재시도, 4xx는 즉시 실패.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_DOWNLOAD_TIMEOUT,
        max_retries: int = 2,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.timeout = timeout
        self.max_retries = max_retries
        self._transport = transport

    async def _fetch(self, url: str) -> httpx.Response:
        async with httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
            transport=self._transport,
        ) as client:
            try:
                response = await client.get(url)
            except httpx.TransportError as e:
                raise RetryableError(f"Transport error: {e}") from e

        raise_for_transient_status(response.status_code, url)
        return response

    async def download(self, url: str) -> SourceImage:
        """
        URL에서 이미지 다운로드 + 검증.

        Raises:
            SourceError: DOWNLOAD_FAILED / INVALID_IMAGE
        """
        try:
            response = await retry_with_exponential_backoff(
                self._fetch, url, max_retries=self.max_retries
            )
        except RetryableError as e:
            raise SourceError(ErrorCodes.DOWNLOAD_FAILED, str(e)) from e

        if response.status_code != 200:
            raise SourceError(
                ErrorCodes.DOWNLOAD_FAILED, f"HTTP {response.status_code} from {url}"
            )

        data = response.content
        validation = validate_image_data(data)
        if not validation.valid:
            raise SourceError(ErrorCodes.INVALID_IMAGE, validation.error or "invalid image")

        logger.info(f"Downloaded source image: {url} ({len(data)} bytes)")
        return SourceImage(
            data=data,
            source_hash=compute_source_hash(data),
            source_url=url,
            origin="url",
            mime_type=validation.mime_type or "image/png",
        )


# =============================================================================
# Standard Samples
# =============================================================================


def extract_product_type(keyword: str) -> str | None:
    """키워드 → 상품 유형 (종신, 암, 어린이 ...). 없으면 None."""
    lowered = keyword.lower()
    for product_type, patterns in PRODUCT_PATTERNS.items():
        if any(pattern.lower() in lowered for pattern in patterns):
            return product_type
    return None


def company_name_ko(company_code: str) -> str:
    """보험사 코드 → 한글명 (미등록이면 코드 그대로)."""
    entry = INSURANCE_COMPANIES.get(company_code)
    return entry[0] if entry else company_code


def company_category(company_code: str) -> str:
    """생명보험사 → LIFE_19, 그 외 → NON_LIFE_12."""
    entry = INSURANCE_COMPANIES.get(company_code)
    if entry and entry[1] == "LIFE":
        return INSURANCE_TYPE_LIFE
    return INSURANCE_TYPE_NON_LIFE


class SampleLibrary:
    """
    보험사 표준 설계안 샘플.

    경로: {samples_root}/samples/{life|nonlife}/{company}/{product}.png
    """

    def __init__(self, samples_root: Path | str = DEFAULT_SAMPLES_ROOT):
        self.samples_root = Path(samples_root)

    def has_sample(self, company_code: str) -> bool:
        entry = INSURANCE_COMPANIES.get(company_code)
        return bool(entry and entry[2])

    def select_sample(self, company_code: str, keyword: str | None = None) -> tuple[str, str] | None:
        """
        (sample_key, product_type) 선택.

        상품 유형이 일치하는 샘플 우선, 없으면 첫 번째 샘플.
        """
        entry = INSURANCE_COMPANIES.get(company_code)
        if not entry or not entry[2]:
            return None

        samples = entry[2]
        product_keyword = extract_product_type(keyword) if keyword else None
        if product_keyword:
            for sample_key, product_type in samples:
                if product_keyword in product_type or product_type in product_keyword:
                    return sample_key, product_type
        return samples[0]

    def load_sample(
        self,
        company_code: str,
        keyword: str | None = None,
    ) -> SourceImage | None:
        """
        표준 샘플 로드.

        Returns:
            SourceImage (origin="sample") 또는 None (미등록/파일 없음/검증 실패)
        """
        selected = self.select_sample(company_code, keyword)
        if selected is None:
            logger.info(f"No sample registered for {company_code}")
            return None

        sample_key, _ = selected
        path = self.samples_root / sample_key
        try:
            data = path.read_bytes()
        except OSError as e:
            logger.warning(f"Sample not readable: {path}: {e}")
            return None

        validation = validate_image_data(data)
        if not validation.valid:
            logger.warning(f"Sample failed validation: {path}: {validation.error}")
            return None

        logger.info(f"Loaded sample {sample_key} ({len(data)} bytes)")
        return SourceImage(
            data=data,
            source_hash=compute_source_hash(data),
            source_url=f"sample://{sample_key}",
            origin="sample",
            mime_type=validation.mime_type or get_mime_type(sample_key),
            sample_key=sample_key,
        )


# =============================================================================
# Resolver
# =============================================================================


class SourceResolver:
    """source_url → 표준 샘플 순으로 원본 확보."""

    def __init__(self, loader: SourceImageLoader, samples: SampleLibrary):
        self.loader = loader
        self.samples = samples

    @classmethod
    def from_config(cls, config: dict) -> "SourceResolver":
        sources_config = config.get("sources", {}) or {}
        return cls(
            loader=SourceImageLoader(
                timeout=float(sources_config.get("download_timeout_seconds", DEFAULT_DOWNLOAD_TIMEOUT)),
                max_retries=int(sources_config.get("download_max_retries", 2)),
            ),
            samples=SampleLibrary(sources_config.get("samples_root", DEFAULT_SAMPLES_ROOT)),
        )

    async def resolve(
        self,
        company_code: str,
        keyword: str,
        source_url: str | None = None,
        run_log: RunLog | None = None,
    ) -> SourceImage:
        """
        원본 이미지 확보.

        Raises:
            SourceError: SOURCE_UNAVAILABLE (URL/샘플 모두 실패)
        """
        download_error: SourceError | None = None
        if source_url:
            try:
                return await self.loader.download(source_url)
            except SourceError as e:
                logger.warning(f"Source download failed, trying sample: {e}")
                download_error = e

        sample = self.samples.load_sample(company_code, keyword)
        if sample is not None:
            if download_error is not None:
                emit_warning(
                    run_log,
                    code=ErrorCodes.SAMPLE_FALLBACK_USED,
                    action_id="resolve_source",
                    field_or_slot="source_url",
                    message=f"원본 확보 실패, 표준 샘플 사용: {download_error.message}",
                    original_value=source_url,
                    resolved_value=sample.source_url,
                )
            return sample

        detail = download_error.message if download_error else "source_url 없음"
        raise SourceError(
            ErrorCodes.SOURCE_UNAVAILABLE,
            f"{company_name_ko(company_code)} 원본 이미지를 확보하지 못했습니다 ({detail})",
        )
