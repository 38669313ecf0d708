"""
재시도 로직 유틸리티.

외부 HTTP 호출(원본 다운로드, Cloudinary 업로드) 일시 실패 시 자동 재시도.
시드 충돌 재시도는 여기서 다루지 않음 (core/dedup.py, 대기 없음).

일시 실패 판정:
- 전송 계층 에러 (연결 실패, 타임아웃)
- HTTP 429, 5xx
그 외 4xx는 즉시 호출자에게 응답 그대로 반환 (재시도 무의미)
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_STATUS_CODES = frozenset({429})


class RetryableError(Exception):
    """일시 실패 (전송 에러, 429, 5xx)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


def is_transient_status(status_code: int) -> bool:
    """429 또는 5xx."""
    return status_code >= 500 or status_code in TRANSIENT_STATUS_CODES


def raise_for_transient_status(status_code: int, label: str) -> None:
    """일시 실패 상태 코드면 RetryableError."""
    if is_transient_status(status_code):
        raise RetryableError(f"{label}: HTTP {status_code}", status_code=status_code)


async def retry_with_exponential_backoff(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    max_retries: int = 2,
    initial_delay: float = 0.5,
    max_delay: float = 8.0,
    exponential_base: float = 2.0,
    exceptions: tuple[type[Exception], ...] = (RetryableError,),
    **kwargs: Any,
) -> T:
    """
    지수 백오프 재시도 (총 시도 = max_retries + 1).

    대기: initial_delay → ×exponential_base → ... (max_delay 상한)
    마지막 시도의 예외는 그대로 전파.
    """
    delay = initial_delay
    name = getattr(func, "__name__", repr(func))
    total = max_retries + 1

    for attempt in range(1, total + 1):
        try:
            result = await func(*args, **kwargs)
        except exceptions as e:
            if attempt == total:
                logger.error(f"{name}: giving up after {total} attempts: {e}")
                raise
            logger.warning(f"{name}: attempt {attempt}/{total} failed ({e}), next in {delay:.1f}s")
            await asyncio.sleep(delay)
            delay = min(delay * exponential_base, max_delay)
        else:
            if attempt > 1:
                logger.info(f"{name}: recovered on attempt {attempt}/{total}")
            return result

    raise RuntimeError("retry loop exited without result")
