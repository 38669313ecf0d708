"""
ID 생성: variant_seed, request_id, run_id

규칙:
- variant_seed: 구조만 결정적 (s_ + 12자리), 값은 매 호출 새로 생성
- 보안 난수 소스 실패 시 즉시 reject (예측 가능한 시드 금지)
- request_id, run_id: 요청/실행 단위 고유 ID
"""

import secrets
import time
import uuid
from datetime import UTC, datetime

from src.core.hashing import sha256_hex
from src.domain.constants import (
    REQUEST_ID_PREFIX,
    RUN_ID_PREFIX,
    VARIANT_SEED_HASH_LENGTH,
    VARIANT_SEED_PREFIX,
)
from src.domain.errors import ErrorCodes, PolicyRejectError


def now_ms() -> int:
    """현재 시각 (epoch milliseconds)."""
    return time.time_ns() // 1_000_000


def _secure_random_hex(nbytes: int = 16) -> str:
    """OS 보안 난수. 실패 시 PolicyRejectError."""
    try:
        return secrets.token_hex(nbytes)
    except (NotImplementedError, OSError) as e:
        raise PolicyRejectError(
            ErrorCodes.ENTROPY_UNAVAILABLE,
            source="secrets.token_hex",
            cause=e,
        ) from e


def generate_variant_seed(user_id: str) -> str:
    """
    변주 시드 생성.

    Seed = "s_" + SHA-256(f"{user_id}_{timestamp_ms}_{random_hex}")[:12]

    Args:
        user_id: 사용자 ID (재시도 시 salt가 붙은 값)

    Returns:
        시드 문자열 (예: "s_3fa91c0be2d4")

    Raises:
        PolicyRejectError: 보안 난수 소스 사용 불가 (ENTROPY_UNAVAILABLE)
    """
    random_hex = _secure_random_hex(16)
    digest = sha256_hex(f"{user_id}_{now_ms()}_{random_hex}")
    return f"{VARIANT_SEED_PREFIX}{digest[:VARIANT_SEED_HASH_LENGTH]}"


def build_retry_salt(user_id: str, attempt: int, timestamp_ms: int) -> str:
    """
    충돌 재시도용 salt가 붙은 사용자 ID.

    순수 함수: 동일 입력 → 동일 출력
    포맷: {user_id}_{timestamp_ms}_{attempt}
    """
    return f"{user_id}_{timestamp_ms}_{attempt}"


def generate_request_id() -> str:
    """
    요청 ID 생성.

    포맷: vix_{uuid4 hex[:12]}
    """
    return f"{REQUEST_ID_PREFIX}{uuid.uuid4().hex[:12]}"


def generate_run_id() -> str:
    """
    Run ID 생성.

    포맷: RUN-{timestamp}-{uuid[:8]}
    """
    timestamp = datetime.now(UTC).strftime("%Y%m%d%H%M%S")
    unique = uuid.uuid4().hex[:8]

    return f"{RUN_ID_PREFIX}{timestamp}-{unique}"
