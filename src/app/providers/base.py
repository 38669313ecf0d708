"""
AI Provider 추상 인터페이스.

역할: 이미지 → 마스킹 영역 후보 (판정 권한 없음)
- Provider 추상화로 모델 교체 가능
- model_requested + model_used 필수 기록
- 좌표는 Provider 경계에서 픽셀 MaskingZone으로 정규화 (src/core/zones.py)
"""

import hashlib
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from src.domain.schemas import ImageDimensions, MaskingZone


def compute_hash(content: str) -> str:
    """SHA-256 해시 (응답 원문 추적용)."""
    return f"sha256:{hashlib.sha256(content.encode()).hexdigest()[:16]}"


# =============================================================================
# Result Data Classes
# =============================================================================

@dataclass
class InsuranceInfo:
    """분류기가 함께 감지한 보험 문서 정보."""
    company: str | None = None
    product_name: str | None = None
    coverage_type: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> "InsuranceInfo | None":
        if not isinstance(data, dict):
            return None
        return cls(
            company=data.get("company"),
            product_name=data.get("product_name"),
            coverage_type=data.get("coverage_type"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "company": self.company,
            "product_name": self.product_name,
            "coverage_type": self.coverage_type,
        }


@dataclass
class ZoneDetectionResult:
    """
    마스킹 영역 탐지 결과.

    필수 키:
    - model_requested: config에 설정된 모델
    - model_used: 실제 호출된 모델 (fallback 시 다를 수 있음)
    - fallback_triggered: fallback 발생 여부
    """
    success: bool
    zones: list[MaskingZone] = field(default_factory=list)
    dimensions: ImageDimensions = field(default_factory=ImageDimensions)
    insurance_info: InsuranceInfo | None = None

    # 모델 추적
    model_requested: str | None = None
    model_used: str | None = None
    fallback_triggered: bool = False

    processed_at: str | None = None
    raw_output_hash: str | None = None
    error_message: str | None = None
    error_code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result = {
            "success": self.success,
            "zones": [z.to_dict() for z in self.zones],
            "dimensions": {"width": self.dimensions.width, "height": self.dimensions.height},
            "insurance_info": self.insurance_info.to_dict() if self.insurance_info else None,
            "model_requested": self.model_requested,
            "model_used": self.model_used,
            "fallback_triggered": self.fallback_triggered,
            "processed_at": self.processed_at,
            "raw_output_hash": self.raw_output_hash,
            "error_message": self.error_message,
            "error_code": self.error_code,
        }
        # None 값 제거 (용량 절약)
        return {k: v for k, v in result.items() if v is not None}


# =============================================================================
# Provider Exceptions
# =============================================================================

class ProviderError(Exception):
    """Provider 관련 에러."""

    def __init__(self, code: str, message: str, **context: Any) -> None:
        self.code = code
        self.message = message
        self.context = context
        super().__init__(f"[{code}] {message}")


class ZoneDetectionError(ProviderError):
    """마스킹 영역 탐지 관련 에러."""
    pass


# =============================================================================
# Abstract Providers
# =============================================================================

class ZoneClassifier(ABC):
    """
    마스킹 영역 분류기 추상 인터페이스.

    역할: 이미지 → 개인정보 영역 (이름, 로고, 보험료, 연락처, 주민번호, 주소)
    """

    model: str

    @abstractmethod
    async def detect_zones(
        self,
        image_bytes: bytes,
        mime_type: str,
        dimensions: ImageDimensions,
    ) -> ZoneDetectionResult:
        """
        이미지에서 마스킹 영역 탐지.

        Args:
            image_bytes: 이미지 바이트
            mime_type: MIME 타입
            dimensions: 좌표 변환 기준 이미지 크기

        Returns:
            ZoneDetectionResult (신뢰도 필터 전, 캔버스 클램핑 후)

        Raises:
            ZoneDetectionError: 호출/파싱 실패
        """
        ...
