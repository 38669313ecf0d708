"""
Error definitions for the variant pipeline.

운영 규칙:
- 조용한 실패 금지 → PolicyRejectError로 명시적 실패
- 엔트로피 부족 → 항상 reject (약한 난수로 대체 금지)
- 중복 체크/등록 실패 → 로그만 남기고 계속 진행 (RegistryError는 호출자가 흡수)
"""

from typing import Any


class PolicyRejectError(Exception):
    """
    파이프라인 정책 위반 시 발생하는 에러.

    즉시 중단이 필요한 경우에만 사용:
    - 보안 난수 소스 사용 불가
    - 잘못된 마스킹 좌표 (음수 너비/높이)
    - 설정값 오류

    Usage:
        raise PolicyRejectError("ENTROPY_UNAVAILABLE", source="secrets", cause=e)
    """

    def __init__(self, code: str, **context: Any) -> None:
        self.code = code
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
        return f"[{self.code}] {ctx_str}" if ctx_str else f"[{self.code}]"

    def to_dict(self) -> dict[str, Any]:
        """로그/JSON 직렬화용."""
        return {
            "code": self.code,
            **{k: str(v) for k, v in self.context.items()},
        }


class RegistryError(Exception):
    """
    지문 레지스트리 저장소 에러 (연결 실패, 테이블 없음 등).

    uniqueness 위반은 RegistryError가 아님 → RegisterResult(duplicate=True)
    """

    def __init__(self, operation: str, message: str) -> None:
        self.operation = operation
        self.message = message
        super().__init__(f"[{operation}] {message}")


# =============================================================================
# Error Codes
# =============================================================================

class ErrorCodes:
    """에러/경고 코드 상수."""

    # === Fatal (PolicyRejectError) ===
    ENTROPY_UNAVAILABLE = "ENTROPY_UNAVAILABLE"
    INVALID_ZONE_GEOMETRY = "INVALID_ZONE_GEOMETRY"
    INVALID_CONFIG = "INVALID_CONFIG"

    # === Dedup (warning) ===
    SEED_COLLISION = "SEED_COLLISION"
    SEED_RETRY_EXHAUSTED = "SEED_RETRY_EXHAUSTED"
    REGISTRY_UNAVAILABLE = "REGISTRY_UNAVAILABLE"
    REGISTER_RACE_LOST = "REGISTER_RACE_LOST"
    REGISTER_FAILED = "REGISTER_FAILED"

    # === Zones (warning) ===
    ZONE_CLAMPED = "ZONE_CLAMPED"
    ZONE_DROPPED = "ZONE_DROPPED"
    ZONE_DETECTION_FAILED = "ZONE_DETECTION_FAILED"
    DEFAULT_ZONES_APPLIED = "DEFAULT_ZONES_APPLIED"

    # === Source / Upload (error response) ===
    DOWNLOAD_FAILED = "DOWNLOAD_FAILED"
    INVALID_IMAGE = "INVALID_IMAGE"
    SOURCE_UNAVAILABLE = "SOURCE_UNAVAILABLE"
    SAMPLE_FALLBACK_USED = "SAMPLE_FALLBACK_USED"  # warning
    UPLOAD_FAILED = "UPLOAD_FAILED"
    PIPELINE_ERROR = "PIPELINE_ERROR"
