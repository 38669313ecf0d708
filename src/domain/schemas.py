"""
Data schemas for the variant pipeline.

규칙:
- 좌표는 파이프라인 내부에서 항상 절대 픽셀 (MaskingZone)
- 분류기 좌표 규약(퍼센트 / 0-1000 박스)은 수집 경계에서만 존재
- 변주 파라미터는 영속화하지 않음 (직렬화된 변환 문자열만 기록)
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

from src.domain.constants import (
    DEFAULT_IMAGE_HEIGHT,
    DEFAULT_IMAGE_WIDTH,
    TRANSFORM_SEPARATOR,
)

# =============================================================================
# Enums
# =============================================================================

class ZoneType(str, Enum):
    """마스킹 영역 의미 유형."""
    NAME = "name"            # 고객명, 피보험자, 계약자
    LOGO = "logo"            # 보험사 로고
    PREMIUM = "premium"      # 보험료, 보장금액
    PHONE = "phone"          # 전화번호
    ID_NUMBER = "id_number"  # 주민번호, 증권번호
    ADDRESS = "address"      # 주소
    OTHER = "other"          # 기타 개인정보

    @classmethod
    def parse(cls, value: Any) -> "ZoneType":
        """알 수 없는 값은 OTHER로."""
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.OTHER


class MaskingStyleType(str, Enum):
    """마스킹 기법."""
    BLUR = "blur"
    PIXELATE = "pixelate"
    SOLID = "solid"


class PipelineStep(str, Enum):
    """파이프라인 단계 (에러 보고용)."""
    REQUEST = "request"
    SCRAPING = "scraping"
    RAW_STORAGE = "raw_storage"
    AI_ANALYSIS = "ai_analysis"
    VARIATION = "variation"
    MASKING = "masking"
    LOGGING = "logging"
    RESPONSE = "response"


# =============================================================================
# Geometry
# =============================================================================

@dataclass(frozen=True)
class ImageDimensions:
    """이미지 픽셀 크기."""
    width: int = DEFAULT_IMAGE_WIDTH
    height: int = DEFAULT_IMAGE_HEIGHT


@dataclass
class MaskingZone:
    """
    마스킹 영역 (절대 픽셀 좌표).

    Transform Composer가 보는 유일한 좌표 형태.
    """
    type: ZoneType
    x: float
    y: float
    width: float
    height: float
    confidence: float = 0.5
    description: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "confidence": self.confidence,
            "description": self.description,
        }


@dataclass(frozen=True)
class PercentBox:
    """분류기 좌표 규약 1: 이미지 크기 대비 퍼센트 (0-100)."""
    type: ZoneType
    x_percent: float
    y_percent: float
    width_percent: float
    height_percent: float
    confidence: float = 0.5
    description: str | None = None


@dataclass(frozen=True)
class NormalizedBox:
    """분류기 좌표 규약 2: [ymin, xmin, ymax, xmax], 0-1000 정규화."""
    type: ZoneType
    ymin: float
    xmin: float
    ymax: float
    xmax: float
    confidence: float = 0.5
    description: str | None = None


# PercentBox | NormalizedBox
RawZone = PercentBox | NormalizedBox


# =============================================================================
# Variation / Masking
# =============================================================================

@dataclass(frozen=True)
class VariationParams:
    """
    기하/광학 변주 파라미터.

    - rotation: -3.0 ~ 3.0 (소수 1자리)
    - brightness, contrast: -10 ~ 10 (정수)
    - crop_scale: 0.70 ~ 0.90 (소수 2자리)
    - gamma: 0.90 ~ 1.10 (소수 2자리)
    """
    rotation: float
    brightness: int
    contrast: int
    crop_scale: float
    crop_gravity: str = "center"
    gamma: float = 1.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class MaskingStyle:
    """요청당 1회 선택되어 모든 영역에 공통 적용되는 마스킹 스타일."""
    type: MaskingStyleType
    intensity: int
    overlay_color: str | None = None  # solid 전용


@dataclass(frozen=True)
class TransformSpec:
    """
    순서가 고정된 변환 명세.

    variation → masking → title (빈 세그먼트는 생략)
    """
    variation: str = ""
    masking: str = ""
    title: str = ""

    @property
    def segments(self) -> list[str]:
        return [s for s in (self.variation, self.masking, self.title) if s]

    @property
    def value(self) -> str:
        return TRANSFORM_SEPARATOR.join(self.segments)

    def __str__(self) -> str:
        return self.value


# =============================================================================
# Registry / Dedup
# =============================================================================

@dataclass
class DuplicateCheckResult:
    """중복 체크 결과."""
    is_duplicate: bool
    existing_id: str | None = None


@dataclass
class RegisterResult:
    """
    지문 등록 결과.

    duplicate=True: 다른 요청이 먼저 등록함 (정상적인 경쟁 상태)
    """
    success: bool
    duplicate: bool = False
    error: str | None = None


@dataclass
class SeedResolution:
    """
    시드 확정 결과.

    attempts: 생성한 시드 수 (최초 1 + 재시도)
    retries: 충돌로 인한 재생성 횟수
    exhausted: 재시도 한도까지 모두 충돌
    """
    seed: str
    attempts: int = 1
    retries: int = 0
    exhausted: bool = False
    registry_available: bool = True


# =============================================================================
# Source Image
# =============================================================================

@dataclass(frozen=True)
class SourceImage:
    """원본 이미지 (요청 범위 내 불변)."""
    data: bytes
    source_hash: str
    source_url: str
    origin: str = "url"  # url, sample
    mime_type: str = "image/png"
    sample_key: str | None = None


# =============================================================================
# Logging Schemas
# =============================================================================

@dataclass
class WarningLog:
    """
    경고 로그.

    경고 필수 컨텍스트: level, code, action_id, field_or_slot,
                       original_value, resolved_value, message
    """
    level: str = "warning"
    code: str = ""
    action_id: str = ""
    field_or_slot: str = ""
    original_value: str | None = None
    resolved_value: str | None = None
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level,
            "code": self.code,
            "action_id": self.action_id,
            "field_or_slot": self.field_or_slot,
            "original_value": self.original_value,
            "resolved_value": self.resolved_value,
            "message": self.message,
        }


@dataclass
class RunLog:
    """
    요청 단위 실행 로그.

    request 단위 실행 결과 및 흡수된 이상 상황 기록.
    """
    run_id: str
    request_id: str
    started_at: str  # ISO 8601
    finished_at: str | None = None
    result: str = "pending"  # pending, success, failed

    # Dedup
    source_hash: str | None = None
    variant_seed: str | None = None

    # Output
    final_url: str | None = None
    transform_string: str | None = None

    # Events
    warnings: list[WarningLog] = field(default_factory=list)

    # Error (if failed)
    error_code: str | None = None
    error_context: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "request_id": self.request_id,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "result": self.result,
            "source_hash": self.source_hash,
            "variant_seed": self.variant_seed,
            "final_url": self.final_url,
            "transform_string": self.transform_string,
            "warnings": [w.to_dict() for w in self.warnings],
            "error_code": self.error_code,
            "error_context": self.error_context,
        }
