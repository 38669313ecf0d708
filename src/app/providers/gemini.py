"""
Google Gemini 마스킹 영역 분류기.

Fallback 예외 정책:
- FALLBACK_ERRORS: NotFound, ServiceUnavailable, ResourceExhausted → fallback
- REJECT_IMMEDIATELY: InvalidArgument, PermissionDenied, Unauthenticated → 즉시 reject
"""

import json
import logging
import os
from datetime import UTC, datetime
from typing import Any

import google.generativeai as genai
from google.api_core.exceptions import (
    InvalidArgument,
    NotFound,
    PermissionDenied,
    ResourceExhausted,
    ServiceUnavailable,
    Unauthenticated,
)

from src.core.zones import normalize_zones
from src.domain.schemas import ImageDimensions, MaskingZone

from .base import (
    InsuranceInfo,
    ZoneClassifier,
    ZoneDetectionError,
    ZoneDetectionResult,
    compute_hash,
)

logger = logging.getLogger(__name__)

# =============================================================================
# Exception Mapping
# =============================================================================

# Fallback 타는 예외
FALLBACK_ERRORS: tuple[type[Exception], ...] = (
    NotFound,            # 모델명 오류/미지원
    ServiceUnavailable,  # 5xx
    ResourceExhausted,   # 429 쿼터/레이트리밋
)

# 즉시 reject하는 예외
REJECT_IMMEDIATELY: tuple[type[Exception], ...] = (
    InvalidArgument,    # 입력 오류
    PermissionDenied,   # 인증 오류
    Unauthenticated,    # API 키 오류
)

GENERATION_CONFIG = {
    "temperature": 0.1,
    "top_k": 1,
    "top_p": 0.8,
    "max_output_tokens": 2048,
}

ZONE_DETECTION_PROMPT = """
You are an expert image analyzer for insurance documents. Analyze this image and identify ALL regions that contain sensitive personal information that needs to be masked.

IMPORTANT: Return coordinates as PERCENTAGES (0-100) of the image dimensions, not pixel values.

Identify and return coordinates for:
1. **name** - Personal names (고객명, 피보험자, 계약자)
2. **logo** - Insurance company logos
3. **premium** - Premium amounts, coverage amounts (보험료, 보장금액)
4. **phone** - Phone numbers
5. **id_number** - ID numbers, registration numbers (주민번호, 증권번호)
6. **address** - Addresses
7. **other** - Any other personally identifiable information

Return ONLY a valid JSON object in this exact format:
{
  "success": true,
  "zones": [
    {
      "type": "name",
      "x_percent": 10.5,
      "y_percent": 20.3,
      "width_percent": 15.2,
      "height_percent": 3.5,
      "confidence": 0.95,
      "description": "Customer name field"
    }
  ],
  "insurance_info": {
    "company": "Detected company name or null",
    "product_name": "Detected product name or null",
    "coverage_type": "Life/Non-Life/Health or null"
  }
}

If no sensitive information is detected, return:
{"success": true, "zones": [], "insurance_info": null}

CRITICAL: Return ONLY the JSON object, no markdown formatting, no code blocks, no explanations.
"""


def strip_code_fences(text: str) -> str:
    """```json ... ``` 마크다운 블록 제거."""
    cleaned = text.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def parse_detection_payload(
    text: str,
    dimensions: ImageDimensions,
) -> tuple[list[MaskingZone], InsuranceInfo | None]:
    """
    분류기 JSON 응답 → (픽셀 영역 목록, 보험 정보).

    좌표 규약(퍼센트 / box_2d) 모두 허용, 캔버스 밖 영역은 클램핑 또는 버림.
    신뢰도 필터는 서비스 계층에서 적용.

    Raises:
        ZoneDetectionError: JSON 파싱 실패
    """
    try:
        payload = json.loads(strip_code_fences(text))
    except json.JSONDecodeError as e:
        raise ZoneDetectionError(
            "PARSE_FAILED",
            f"Failed to parse classifier response: {e}",
            raw_output_hash=compute_hash(text),
        ) from e

    if not isinstance(payload, dict):
        raise ZoneDetectionError(
            "PARSE_FAILED",
            "Classifier response is not a JSON object",
            raw_output_hash=compute_hash(text),
        )

    zones = normalize_zones(payload.get("zones") or [], dimensions, min_confidence=0.0)
    return zones, InsuranceInfo.from_dict(payload.get("insurance_info"))


class GeminiZoneClassifier(ZoneClassifier):
    """
    Gemini 마스킹 영역 분류기.

    Usage:
        classifier = GeminiZoneClassifier(
            model="gemini-1.5-flash",
            fallback="gemini-2.5-flash"
        )
        result = await classifier.detect_zones(image_bytes, "image/png", dims)
    """

    def __init__(
        self,
        model: str = "gemini-1.5-flash",
        fallback: str | None = "gemini-2.5-flash",
        api_key: str | None = None,
    ):
        """
        Args:
            model: 기본 모델 ID (config에서 주입)
            fallback: Fallback 모델 (None이면 재시도 없이 실패)
            api_key: API 키 (환경변수 GOOGLE_API_KEY 사용 가능)
        """
        self.model = model
        self.fallback = fallback
        self.api_key = api_key or os.environ.get("GOOGLE_API_KEY")
        self._client: Any = None

    def _get_client(self) -> Any:
        """Gemini 클라이언트 (lazy init)."""
        if self._client is None:
            genai.configure(api_key=self.api_key)
            self._client = genai
        return self._client

    async def detect_zones(
        self,
        image_bytes: bytes,
        mime_type: str,
        dimensions: ImageDimensions,
    ) -> ZoneDetectionResult:
        """
        이미지에서 마스킹 영역 탐지.

        Fallback 정책:
        - FALLBACK_ERRORS → fallback 모델로 재시도
        - REJECT_IMMEDIATELY → 즉시 에러
        """
        model_requested = self.model

        # 1차 시도: 기본 모델
        try:
            result = await self._call_api(self.model, image_bytes, mime_type, dimensions)
            result.model_requested = model_requested
            result.model_used = self.model
            result.fallback_triggered = False
            return result

        except FALLBACK_ERRORS as e:
            logger.warning(
                f"Primary model ({self.model}) failed with fallback error: {e}. "
                f"Attempting fallback..."
            )

            if self.fallback is None:
                raise ZoneDetectionError(
                    "NO_FALLBACK",
                    self._get_user_friendly_error_message(e),
                    model=self.model,
                ) from e

            try:
                logger.info(f"Trying fallback model: {self.fallback}")
                result = await self._call_api(
                    self.fallback, image_bytes, mime_type, dimensions
                )
                result.model_requested = model_requested
                result.model_used = self.fallback
                result.fallback_triggered = True
                logger.info("Fallback model succeeded")
                return result
            except ZoneDetectionError:
                raise
            except Exception as fallback_error:
                logger.error(f"Fallback model also failed: {fallback_error}")
                raise ZoneDetectionError(
                    "FALLBACK_FAILED",
                    f"{self._get_user_friendly_error_message(fallback_error)} "
                    f"기본 모델과 대체 모델 모두 실패했습니다.",
                    primary_model=self.model,
                    fallback_model=self.fallback,
                ) from fallback_error

        except REJECT_IMMEDIATELY as e:
            logger.error(f"Authentication or input error: {e}", exc_info=True)
            raise ZoneDetectionError(
                "AUTH_OR_INPUT_ERROR",
                self._get_user_friendly_error_message(e),
                model=self.model,
            ) from e

        except ZoneDetectionError:
            raise

        except Exception as e:
            logger.error(f"Zone detection failed with unexpected error: {e}", exc_info=True)
            raise ZoneDetectionError(
                "DETECTION_FAILED",
                self._get_user_friendly_error_message(e),
                model=self.model,
            ) from e

    def _get_user_friendly_error_message(self, error: Exception) -> str:
        """사용자 친화적인 에러 메시지 생성."""
        if isinstance(error, Unauthenticated):
            return "Google API 인증에 실패했습니다. GOOGLE_API_KEY 환경변수를 확인해주세요."
        if isinstance(error, PermissionDenied):
            return "이 작업을 수행할 권한이 없습니다. API 키의 권한을 확인해주세요."
        if isinstance(error, ResourceExhausted):
            return "API 사용량 한도를 초과했습니다. 잠시 후 다시 시도하거나 할당량을 확인해주세요."
        if isinstance(error, ServiceUnavailable):
            return "Google API 서비스를 일시적으로 사용할 수 없습니다. 잠시 후 다시 시도해주세요."
        if isinstance(error, InvalidArgument):
            return "요청 형식이 올바르지 않습니다. 이미지 형식과 크기를 확인해주세요."

        error_str = str(error)
        lowered = error_str.lower()
        if "timeout" in lowered:
            return "요청 시간이 초과되었습니다. 다시 시도해주세요."
        if "connection" in lowered:
            return "네트워크 연결 오류가 발생했습니다."

        return f"마스킹 영역 분석 중 오류가 발생했습니다: {error_str}"

    async def _call_api(
        self,
        model: str,
        image_bytes: bytes,
        mime_type: str,
        dimensions: ImageDimensions,
    ) -> ZoneDetectionResult:
        """실제 Gemini API 호출. 예외는 상위로 전파 (fallback 정책 적용)."""
        now = datetime.now(UTC).isoformat()

        client = self._get_client()
        model_instance = client.GenerativeModel(model)
        image_part = {"mime_type": mime_type, "data": image_bytes}

        response = await model_instance.generate_content_async(
            [image_part, ZONE_DETECTION_PROMPT],
            generation_config=GENERATION_CONFIG,
        )

        text = response.text if response.text else ""
        if not text.strip():
            raise ZoneDetectionError("EMPTY_RESPONSE", "No response from classifier", model=model)

        zones, insurance_info = parse_detection_payload(text, dimensions)

        return ZoneDetectionResult(
            success=True,
            zones=zones,
            dimensions=dimensions,
            insurance_info=insurance_info,
            processed_at=now,
            raw_output_hash=compute_hash(text),
        )
