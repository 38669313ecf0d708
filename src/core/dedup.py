"""
Duplicate-Avoidance Orchestrator: 시드 확정 + 지문 등록.

흐름:
1. 최초 시드 생성 → 레지스트리 중복 체크
2. 중복이면 salt가 붙은 user_id로 재생성 (최대 max_retries회, 기본 3)
3. 비중복 시드를 찾으면 즉시 중단
4. 한도 소진 시 마지막 시드로 그대로 진행 (경고만, 서비스 거부 금지)
5. 최종 URL 확정 후 (source_hash, seed, request_id) 등록, 실패해도 비치명적

레지스트리 호출:
- 저장소는 동기 인터페이스 → 워커 스레드에서 실행 (이벤트 루프 비차단)
- 호출마다 timeout 적용, 초과는 RegistryError와 동일 취급

에러 정책:
- 레지스트리 장애/타임아웃 (체크) → "중복 아님"으로 간주 (fail-open)
- 레지스트리 장애/타임아웃 (등록) → 로그만
- 엔트로피 실패 → 그대로 전파
"""

import asyncio
import logging
from collections.abc import Callable
from typing import TypeVar

from src.core.ids import build_retry_salt, generate_variant_seed, now_ms
from src.core.logging import emit_warning
from src.core.registry import FingerprintStore
from src.domain.errors import ErrorCodes, PolicyRejectError, RegistryError
from src.domain.schemas import RunLog, SeedResolution

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 3
DEFAULT_REGISTRY_TIMEOUT = 2.0


async def call_registry(
    operation: str,
    func: Callable[..., T],
    *args: object,
    timeout: float | None = DEFAULT_REGISTRY_TIMEOUT,
) -> T:
    """
    동기 저장소 호출을 워커 스레드에서 실행 (timeout 적용).

    Raises:
        RegistryError: 저장소 에러 또는 timeout 초과
    """
    try:
        return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=timeout)
    except TimeoutError as e:
        raise RegistryError(operation, f"timed out after {timeout}s") from e


async def _is_duplicate(
    registry: FingerprintStore,
    source_hash: str,
    seed: str,
    run_log: RunLog | None,
    timeout: float | None,
) -> tuple[bool, bool]:
    """
    중복 체크 (fail-open).

    Returns:
        (is_duplicate, registry_available)
    """
    try:
        result = await call_registry(
            "check_duplicate", registry.check_duplicate, source_hash, seed, timeout=timeout
        )
    except RegistryError as e:
        logger.warning(f"Registry unavailable during duplicate check, assuming unique: {e}")
        emit_warning(
            run_log,
            code=ErrorCodes.REGISTRY_UNAVAILABLE,
            action_id="resolve_seed",
            field_or_slot="variant_seed",
            message=f"중복 체크 실패, 중복 아님으로 간주: {e}",
            original_value=seed,
        )
        return False, False
    return result.is_duplicate, True


async def resolve_seed(
    user_id: str,
    source_hash: str,
    registry: FingerprintStore,
    max_retries: int = DEFAULT_MAX_RETRIES,
    seed_factory: Callable[[str], str] = generate_variant_seed,
    clock: Callable[[], int] = now_ms,
    run_log: RunLog | None = None,
    timeout: float | None = DEFAULT_REGISTRY_TIMEOUT,
) -> SeedResolution:
    """
    중복되지 않는 변주 시드 확정.

    Args:
        user_id: 사용자 ID
        source_hash: 원본 이미지 해시
        registry: 지문 저장소
        max_retries: 충돌 시 최대 재생성 횟수
        seed_factory: 시드 생성 함수 (테스트 주입용)
        clock: epoch ms 시계 (retry salt용)
        run_log: 경고 기록 대상 (선택)
        timeout: 중복 체크 1회당 제한 시간(초, None이면 무제한)

    Returns:
        SeedResolution (한도 소진 시 exhausted=True, 마지막 시드)

    Raises:
        PolicyRejectError: 엔트로피 실패 또는 잘못된 max_retries
    """
    if max_retries < 0:
        raise PolicyRejectError(ErrorCodes.INVALID_CONFIG, key="dedup.max_retries", value=max_retries)

    seed = seed_factory(user_id)
    is_duplicate, available = await _is_duplicate(registry, source_hash, seed, run_log, timeout)
    registry_available = available
    retries = 0

    while is_duplicate and retries < max_retries:
        logger.info(f"Seed collision on {seed} (retry {retries + 1}/{max_retries})")
        seed = seed_factory(build_retry_salt(user_id, retries, clock()))
        retries += 1
        is_duplicate, available = await _is_duplicate(
            registry, source_hash, seed, run_log, timeout
        )
        registry_available = registry_available and available

    if retries > 0:
        emit_warning(
            run_log,
            code=ErrorCodes.SEED_COLLISION,
            action_id="resolve_seed",
            field_or_slot="variant_seed",
            message=f"시드 충돌 감지, {retries}회 재생성",
            resolved_value=seed,
        )

    if is_duplicate:
        logger.warning(
            f"Seed retries exhausted after {retries} attempts for source "
            f"{source_hash[:12]}..., proceeding with {seed}"
        )
        emit_warning(
            run_log,
            code=ErrorCodes.SEED_RETRY_EXHAUSTED,
            action_id="resolve_seed",
            field_or_slot="variant_seed",
            message=f"재시도 {retries}회 모두 충돌, 마지막 시드로 진행",
            resolved_value=seed,
        )

    return SeedResolution(
        seed=seed,
        attempts=retries + 1,
        retries=retries,
        exhausted=is_duplicate,
        registry_available=registry_available,
    )


async def register_fingerprint(
    registry: FingerprintStore,
    source_hash: str,
    seed: str,
    request_id: str,
    run_log: RunLog | None = None,
    timeout: float | None = DEFAULT_REGISTRY_TIMEOUT,
) -> bool:
    """
    최종 지문 등록 (비치명적, timeout 초과도 장애로 취급).

    Returns:
        등록 성공 여부 (경쟁 패배/장애 시 False, 예외 없음)
    """
    try:
        result = await call_registry(
            "register", registry.register, source_hash, seed, request_id, timeout=timeout
        )
    except RegistryError as e:
        logger.error(f"[{request_id}] Fingerprint registration failed: {e}")
        emit_warning(
            run_log,
            code=ErrorCodes.REGISTER_FAILED,
            action_id="register_fingerprint",
            field_or_slot="variant_seed",
            message=f"지문 등록 실패: {e}",
            original_value=seed,
        )
        return False

    if result.duplicate:
        logger.info(f"[{request_id}] Fingerprint already registered by another request (race)")
        emit_warning(
            run_log,
            code=ErrorCodes.REGISTER_RACE_LOST,
            action_id="register_fingerprint",
            field_or_slot="variant_seed",
            message="다른 요청이 동일 지문을 먼저 등록함",
            original_value=seed,
        )
        return False

    if not result.success:
        logger.warning(f"[{request_id}] Fingerprint registration rejected: {result.error}")
        return False

    return True
