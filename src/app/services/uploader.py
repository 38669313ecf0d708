"""
Cloudinary 업로드: 원본 이미지 → public_id.

서명 업로드 (SHA-1, folder + timestamp).
변환은 업로드 시 적용하지 않음: 최종 URL의 변환 문자열로만 렌더링.
"""

import logging
import os
import time
from dataclasses import dataclass

import httpx

from src.core.hashing import compute_upload_signature
from src.domain.constants import CLOUDINARY_DEFAULT_FOLDER, CLOUDINARY_UPLOAD_ENDPOINT, get_mime_type
from src.utils.retry import (
    RetryableError,
    raise_for_transient_status,
    retry_with_exponential_backoff,
)

logger = logging.getLogger(__name__)

DEFAULT_UPLOAD_TIMEOUT = 30.0


@dataclass
class UploadResult:
    """업로드 결과."""
    success: bool
    public_id: str | None = None
    url: str | None = None
    error: str | None = None


class CloudinaryUploader:
    """
    Cloudinary 서명 업로드.

    Usage:
        uploader = CloudinaryUploader.from_config(config)
        result = await uploader.upload(image_bytes, "vix_abc.png")
    """

    def __init__(
        self,
        cloud_name: str | None = None,
        api_key: str | None = None,
        api_secret: str | None = None,
        folder: str = CLOUDINARY_DEFAULT_FOLDER,
        timeout: float = DEFAULT_UPLOAD_TIMEOUT,
        max_retries: int = 2,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Args:
            cloud_name: Cloudinary cloud name (환경변수 CLOUDINARY_CLOUD_NAME 사용 가능)
            api_key: API 키 (환경변수 CLOUDINARY_API_KEY 사용 가능)
            api_secret: API secret (환경변수 CLOUDINARY_API_SECRET 사용 가능)
            folder: 업로드 폴더
        """
        self.cloud_name = cloud_name or os.environ.get("CLOUDINARY_CLOUD_NAME", "")
        self.api_key = api_key or os.environ.get("CLOUDINARY_API_KEY", "")
        self.api_secret = api_secret or os.environ.get("CLOUDINARY_API_SECRET", "")
        self.folder = folder
        self.timeout = timeout
        self.max_retries = max_retries
        self._transport = transport

    @classmethod
    def from_config(cls, config: dict) -> "CloudinaryUploader":
        cloudinary_config = config.get("cloudinary", {}) or {}
        return cls(
            cloud_name=cloudinary_config.get("cloud_name"),
            folder=cloudinary_config.get("folder", CLOUDINARY_DEFAULT_FOLDER),
            timeout=float(cloudinary_config.get("timeout_seconds", DEFAULT_UPLOAD_TIMEOUT)),
            max_retries=int(cloudinary_config.get("max_retries", 2)),
        )

    @property
    def configured(self) -> bool:
        return bool(self.cloud_name and self.api_key and self.api_secret)

    async def _post(self, data: bytes, filename: str, folder: str) -> httpx.Response:
        timestamp = int(time.time())
        signature = compute_upload_signature(
            {"folder": folder, "timestamp": timestamp}, self.api_secret
        )
        form = {
            "api_key": self.api_key,
            "timestamp": str(timestamp),
            "signature": signature,
            "folder": folder,
        }
        files = {"file": (filename, data, get_mime_type(filename))}

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await client.post(
                    CLOUDINARY_UPLOAD_ENDPOINT.format(cloud_name=self.cloud_name),
                    data=form,
                    files=files,
                )
            except httpx.TransportError as e:
                raise RetryableError(f"Transport error: {e}") from e

        raise_for_transient_status(response.status_code, "Cloudinary upload")
        return response

    async def upload(
        self,
        data: bytes,
        filename: str,
        folder: str | None = None,
    ) -> UploadResult:
        """
        이미지 업로드 (예외 없음, 실패는 UploadResult.error).

        Args:
            data: 이미지 바이트
            filename: 업로드 파일명 (MIME 추정용)
            folder: 업로드 폴더 (None이면 기본 폴더)
        """
        if not self.configured:
            return UploadResult(success=False, error="Cloudinary credentials not configured")

        target_folder = folder or self.folder
        try:
            response = await retry_with_exponential_backoff(
                self._post, data, filename, target_folder, max_retries=self.max_retries
            )
        except RetryableError as e:
            logger.error(f"Cloudinary upload failed after retries: {e}")
            return UploadResult(success=False, error=f"Cloudinary upload error: {e}")

        if response.status_code != 200:
            logger.error(f"Cloudinary upload rejected: {response.status_code} {response.text}")
            return UploadResult(
                success=False,
                error=f"Cloudinary upload failed: {response.status_code} - {response.text}",
            )

        try:
            payload = response.json()
        except ValueError as e:
            logger.error(f"Cloudinary upload returned non-JSON body: {response.text[:200]!r}")
            return UploadResult(success=False, error=f"Cloudinary upload invalid response: {e}")

        public_id = payload.get("public_id") if isinstance(payload, dict) else None
        if not public_id:
            logger.error(f"Cloudinary upload response without public_id: {payload!r}")
            return UploadResult(
                success=False, error="Cloudinary upload invalid response: missing public_id"
            )

        logger.info(f"Uploaded to Cloudinary: {public_id}")
        return UploadResult(
            success=True,
            public_id=public_id,
            url=payload.get("secure_url") or payload.get("url"),
        )
