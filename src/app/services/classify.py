"""
Zone Detection Service: 이미지 → 마스킹 영역 (기본 레이아웃 폴백 포함).

정책:
- 분류기 호출에 타임아웃 적용 (기본 8초)
- 신뢰도 기준(기본 0.5) 미만 영역은 버림
- 실패/타임아웃/감지 없음 → 기본 영역(상단 좌/우, 하단)으로 대체, 요청은 계속 진행
"""

import asyncio
import logging
from dataclasses import dataclass, field

from src.app.providers.base import (
    InsuranceInfo,
    ZoneClassifier,
    ZoneDetectionError,
    ZoneDetectionResult,
)
from src.app.providers.gemini import GeminiZoneClassifier
from src.core.logging import emit_warning
from src.core.zones import (
    DEFAULT_MIN_CONFIDENCE,
    build_central_zone,
    build_default_zones,
    filter_high_confidence_zones,
)
from src.domain.errors import ErrorCodes
from src.domain.schemas import ImageDimensions, MaskingZone, RunLog

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 8.0


@dataclass
class ZoneDetectionOutcome:
    """서비스 결과: 실제 마스킹에 사용할 영역."""
    zones: list[MaskingZone] = field(default_factory=list)
    used_default: bool = False
    insurance_info: InsuranceInfo | None = None
    model_used: str | None = None
    error_code: str | None = None
    error_message: str | None = None


class ZoneDetectionService:
    """
    마스킹 영역 탐지 서비스.

    분류기 결과는 판정 권한 없음: 신뢰도 필터와 폴백은 여기서 결정.
    """

    def __init__(
        self,
        config: dict,
        classifier: ZoneClassifier | None = None,
    ):
        """
        Args:
            config: 설정 (ai.zones 포함)
            classifier: 영역 분류기 (None이면 config 기반 Gemini 생성)
        """
        self.config = config
        zones_config = (config.get("ai", {}) or {}).get("zones", {}) or {}

        self.timeout_seconds = float(zones_config.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS))
        self.min_confidence = float(zones_config.get("min_confidence", DEFAULT_MIN_CONFIDENCE))
        # standard: 상단 좌/우 + 하단, central: 중앙 60% 단일 영역
        self.default_layout = zones_config.get("default_layout", "standard")

        if classifier is not None:
            self.classifier = classifier
        else:
            self.classifier = GeminiZoneClassifier(
                model=zones_config.get("model", "gemini-1.5-flash"),
                fallback=zones_config.get("fallback", "gemini-2.5-flash"),
            )

    async def detect(
        self,
        image_bytes: bytes,
        mime_type: str,
        dimensions: ImageDimensions,
        run_log: RunLog | None = None,
    ) -> ZoneDetectionOutcome:
        """
        마스킹 영역 탐지 (예외 없음).

        Args:
            image_bytes: 이미지 바이트
            mime_type: MIME 타입
            dimensions: 이미지 크기
            run_log: 경고 기록 대상 (선택)

        Returns:
            ZoneDetectionOutcome (used_default=True면 기본 레이아웃)
        """
        try:
            result = await asyncio.wait_for(
                self.classifier.detect_zones(image_bytes, mime_type, dimensions),
                timeout=self.timeout_seconds,
            )
        except TimeoutError:
            logger.warning(f"Zone detection timed out after {self.timeout_seconds}s")
            return self._fallback(
                dimensions, run_log, "TIMEOUT", f"{self.timeout_seconds}초 내 응답 없음"
            )
        except ZoneDetectionError as e:
            logger.warning(f"Zone detection failed: {e}")
            return self._fallback(dimensions, run_log, e.code, e.message)

        return self._accept(result, dimensions, run_log)

    def _accept(
        self,
        result: ZoneDetectionResult,
        dimensions: ImageDimensions,
        run_log: RunLog | None,
    ) -> ZoneDetectionOutcome:
        if not result.success:
            return self._fallback(
                dimensions,
                run_log,
                result.error_code or "DETECTION_FAILED",
                result.error_message or "분류기 실패",
            )

        zones = filter_high_confidence_zones(result.zones, self.min_confidence)
        if not zones:
            outcome = self._fallback(
                dimensions, run_log, "NO_ZONES", f"신뢰도 {self.min_confidence} 이상 영역 없음"
            )
            outcome.insurance_info = result.insurance_info
            outcome.model_used = result.model_used
            return outcome

        dropped = len(result.zones) - len(zones)
        if dropped:
            logger.info(f"Filtered {dropped} low-confidence zones (< {self.min_confidence})")

        return ZoneDetectionOutcome(
            zones=zones,
            used_default=False,
            insurance_info=result.insurance_info,
            model_used=result.model_used,
        )

    def _default_zones(self, dimensions: ImageDimensions) -> list[MaskingZone]:
        if self.default_layout == "central":
            return [build_central_zone(dimensions)]
        return build_default_zones(dimensions)

    def _fallback(
        self,
        dimensions: ImageDimensions,
        run_log: RunLog | None,
        error_code: str,
        error_message: str,
    ) -> ZoneDetectionOutcome:
        emit_warning(
            run_log,
            code=ErrorCodes.DEFAULT_ZONES_APPLIED,
            action_id="detect_zones",
            field_or_slot="zones",
            message=f"기본 마스킹 영역 적용: {error_message}",
            original_value=error_code,
            resolved_value=self.default_layout,
        )
        return ZoneDetectionOutcome(
            zones=self._default_zones(dimensions),
            used_default=True,
            error_code=error_code,
            error_message=error_message,
        )
