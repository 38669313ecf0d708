"""
Run logging: 요청 단위 run log, 경고 이벤트, 저장

규칙:
- 흡수된 이상 상황(시드 재시도 소진, 레지스트리 장애, 기본 마스킹 적용 등)은
  사용자 응답을 막지 않고 run log 경고로만 기록
- 경고 필수 컨텍스트: level, code, action_id, field_or_slot,
                    original_value, resolved_value, message
"""

import json
import logging
import os
import tempfile
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from src.core.ids import generate_run_id
from src.domain.schemas import RunLog, WarningLog

logger = logging.getLogger(__name__)

# =============================================================================
# Run Log Management
# =============================================================================


def create_run_log(request_id: str) -> RunLog:
    """
    새 RunLog 생성.

    Args:
        request_id: 요청 ID

    Returns:
        초기화된 RunLog
    """
    return RunLog(
        run_id=generate_run_id(),
        request_id=request_id,
        started_at=datetime.now(UTC).isoformat(),
        result="pending",
    )


def emit_warning(
    run_log: RunLog | None,
    code: str,
    action_id: str,
    field_or_slot: str,
    message: str,
    original_value: str | None = None,
    resolved_value: str | None = None,
) -> None:
    """
    경고 이벤트 기록.

    run_log가 None이면 아무것도 하지 않음 (코어 함수 단독 호출 시).

    Args:
        run_log: RunLog 인스턴스
        code: 경고 코드 (ErrorCodes)
        action_id: 액션 ID (예: resolve_seed)
        field_or_slot: 대상 필드 (예: variant_seed)
        message: 경고 메시지
        original_value: 원래 값
        resolved_value: 해결된 값
    """
    if run_log is None:
        return

    run_log.warnings.append(
        WarningLog(
            level="warning",
            code=code,
            action_id=action_id,
            field_or_slot=field_or_slot,
            original_value=original_value,
            resolved_value=resolved_value,
            message=message,
        )
    )


def complete_run_log(
    run_log: RunLog,
    success: bool,
    final_url: str | None = None,
    transform_string: str | None = None,
    error_code: str | None = None,
    error_context: dict[str, Any] | None = None,
) -> None:
    """
    RunLog 완료 처리.

    Args:
        run_log: RunLog 인스턴스
        success: 성공 여부
        final_url: 최종 URL
        transform_string: 변환 문자열
        error_code: 에러 코드 (실패 시)
        error_context: 에러 컨텍스트 (실패 시)
    """
    run_log.finished_at = datetime.now(UTC).isoformat()
    run_log.result = "success" if success else "failed"
    run_log.final_url = final_url
    run_log.transform_string = transform_string

    if not success:
        run_log.error_code = error_code
        run_log.error_context = error_context


def atomic_write_json(path: Path, data: dict) -> None:
    """
    원자적 JSON 쓰기 (temp → rename).

    fsync 실패 시 경고 남기고 계속 진행, 실패 시 temp 파일 삭제.
    """
    dir_path = path.parent
    dir_path.mkdir(parents=True, exist_ok=True)

    temp_path = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w",
            dir=dir_path,
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        ) as f:
            temp_path = Path(f.name)
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.flush()
            try:
                os.fsync(f.fileno())
            except OSError as e:
                logger.warning(f"File fsync failed for {path}: {e}")

        os.replace(temp_path, path)
        temp_path = None
    finally:
        if temp_path is not None and temp_path.exists():
            temp_path.unlink()


def save_run_log(run_log: RunLog, logs_dir: Path) -> Path:
    """
    RunLog를 파일로 저장.

    Args:
        run_log: RunLog 인스턴스
        logs_dir: 로그 디렉터리

    Returns:
        저장된 파일 경로
    """
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_path = logs_dir / f"run_{run_log.run_id}.json"
    atomic_write_json(log_path, run_log.to_dict())
    return log_path


def load_run_log(log_path: Path) -> dict[str, Any]:
    """RunLog 파일 로드."""
    data: dict[str, Any] = json.loads(log_path.read_text(encoding="utf-8"))
    return data


def list_run_logs(logs_dir: Path) -> list[Path]:
    """
    로그 디렉터리의 모든 run log 파일 목록.

    Returns:
        로그 파일 경로 목록 (최신순)
    """
    if not logs_dir.exists():
        return []

    logs = list(logs_dir.glob("run_*.json"))
    logs.sort(key=lambda p: p.stat().st_mtime, reverse=True)
    return logs
