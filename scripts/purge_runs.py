#!/usr/bin/env python3
"""
purge_runs.py - run log 보관 정책 기반 정리 스크립트

default.yaml의 logs.retention 설정에 따라:
1. 보관 기간(retention_days) 초과 run log 정리
2. 최신 min_keep_count개는 기간과 무관하게 유지

purge_mode:
- delete: 완전 삭제
- compress: 날짜별 tar.gz로 묶어 archive_dir로 이동

사용법:
    # 기본 실행 (dry-run)
    uv run python scripts/purge_runs.py

    # 실제 정리
    uv run python scripts/purge_runs.py --execute

    # cron 예시 (매일 새벽 3시)
    0 3 * * * cd /path/to/project && uv run python scripts/purge_runs.py --execute >> /var/log/purge_runs.log 2>&1
"""

import argparse
import logging
import sys
import tarfile
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path

import yaml

sys.path.insert(0, str(Path(__file__).parent.parent))

from src.core.logging import list_run_logs

# 로깅 설정
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


@dataclass
class RunRetentionConfig:
    """run log 보관 정책 설정."""
    retention_days: int = 30
    min_keep_count: int = 100
    purge_mode: str = "compress"  # delete, compress
    archive_dir: str = "_archive"


@dataclass
class PurgeResult:
    """Purge 결과."""
    scanned_files: int = 0
    purged_files: int = 0
    purged_size_kb: float = 0.0
    compressed_archives: int = 0
    errors: list[str] = field(default_factory=list)


def load_retention_config(config_path: Path) -> RunRetentionConfig:
    """default.yaml에서 보관 정책 로드."""
    with open(config_path, encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}

    retention = (config.get("logs", {}) or {}).get("retention", {}) or {}

    return RunRetentionConfig(
        retention_days=retention.get("retention_days", 30),
        min_keep_count=retention.get("min_keep_count", 100),
        purge_mode=retention.get("purge_mode", "compress"),
        archive_dir=retention.get("archive_dir", "_archive"),
    )


def get_run_time(log_path: Path) -> datetime:
    """run log 생성 시각 (파일명 RUN-YYYYmmddHHMMSS에서 파싱, 실패 시 mtime)."""
    # 파일명 형식: run_RUN-20240115093000-abcd1234.json
    try:
        stamp = log_path.stem.split("-")[1]
        return datetime.strptime(stamp, "%Y%m%d%H%M%S")
    except (ValueError, IndexError):
        return datetime.fromtimestamp(log_path.stat().st_mtime)


def select_purge_candidates(
    logs: list[Path],
    config: RunRetentionConfig,
    now: datetime | None = None,
) -> list[Path]:
    """보관 기간 초과 로그 (최신 min_keep_count개 제외, 오래된 순)."""
    cutoff = (now or datetime.now()) - timedelta(days=config.retention_days)
    ordered = sorted(logs, key=get_run_time, reverse=True)
    protected = ordered[: config.min_keep_count]
    candidates = [p for p in ordered[config.min_keep_count:] if get_run_time(p) < cutoff]
    logger.debug(f"보호: {len(protected)}개, 후보: {len(candidates)}개")
    return list(reversed(candidates))


def compress_logs(logs: list[Path], archive_dir: Path, name: str) -> Path | None:
    """로그 묶음을 tar.gz로 압축."""
    try:
        archive_dir.mkdir(parents=True, exist_ok=True)
        archive_path = archive_dir / f"{name}.tar.gz"

        # 이미 존재하면 suffix 추가
        counter = 1
        while archive_path.exists():
            archive_path = archive_dir / f"{name}_{counter}.tar.gz"
            counter += 1

        with tarfile.open(archive_path, "w:gz") as tar:
            for log_path in logs:
                tar.add(log_path, arcname=log_path.name)

        return archive_path
    except (OSError, tarfile.TarError) as e:
        logger.error(f"압축 실패 {name}: {e}")
        return None


def purge_runs(
    runs_dir: Path,
    config: RunRetentionConfig,
    execute: bool,
    now: datetime | None = None,
) -> PurgeResult:
    """runs 디렉터리 정리."""
    result = PurgeResult()
    logs = list_run_logs(runs_dir)
    result.scanned_files = len(logs)

    candidates = select_purge_candidates(logs, config, now)
    if not candidates:
        return result

    if config.purge_mode == "compress":
        # 날짜별 묶음
        by_day: dict[str, list[Path]] = {}
        for log_path in candidates:
            by_day.setdefault(get_run_time(log_path).strftime("%Y%m%d"), []).append(log_path)

        for day, day_logs in by_day.items():
            if not execute:
                logger.info(f"[DRY-RUN] 압축 예정: {day} ({len(day_logs)}개)")
                result.compressed_archives += 1
                result.purged_files += len(day_logs)
                continue

            archive_path = compress_logs(day_logs, runs_dir / config.archive_dir, f"runs_{day}")
            if archive_path is None:
                result.errors.append(f"압축 실패: {day}")
                continue
            result.compressed_archives += 1
            logger.info(f"압축됨: {day} → {archive_path}")
            _unlink_all(day_logs, result)
        return result

    if config.purge_mode == "delete":
        if execute:
            _unlink_all(candidates, result)
        else:
            for log_path in candidates:
                logger.info(f"[DRY-RUN] 삭제 예정: {log_path.name}")
            result.purged_files += len(candidates)
        return result

    result.errors.append(f"알 수 없는 purge_mode: {config.purge_mode}")
    return result


def _unlink_all(logs: list[Path], result: PurgeResult) -> None:
    for log_path in logs:
        try:
            size = log_path.stat().st_size
            log_path.unlink()
            result.purged_files += 1
            result.purged_size_kb += size / 1024
        except OSError as e:
            result.errors.append(f"삭제 실패 {log_path}: {e}")
            logger.error(f"삭제 실패 {log_path}: {e}")


def main() -> int:
    parser = argparse.ArgumentParser(
        description="run log 보관 정책 기반 정리 스크립트",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--execute",
        action="store_true",
        help="실제 삭제/압축 실행 (기본: dry-run)",
    )
    parser.add_argument(
        "--config",
        type=str,
        default="default.yaml",
        help="설정 파일 경로 (기본: default.yaml)",
    )

    args = parser.parse_args()

    project_root = Path(__file__).parent.parent
    config_path = project_root / args.config
    if not config_path.exists():
        logger.error(f"설정 파일 없음: {config_path}")
        return 1

    with open(config_path, encoding="utf-8") as f:
        runs_dir = project_root / (yaml.safe_load(f) or {}).get("logs", {}).get("runs_dir", "runs")

    config = load_retention_config(config_path)
    logger.info(
        f"보관 정책: {config.retention_days}일, 최소 {config.min_keep_count}개 유지, "
        f"모드: {config.purge_mode}"
    )

    if not args.execute:
        logger.info("=" * 50)
        logger.info("DRY-RUN 모드 (실제 삭제 없음)")
        logger.info("실제 실행: --execute 옵션 추가")
        logger.info("=" * 50)

    result = purge_runs(runs_dir, config, args.execute)

    logger.info("=" * 50)
    logger.info("Purge 결과:")
    logger.info(f"  스캔: {result.scanned_files} files")
    logger.info(f"  정리: {result.purged_files} files ({result.purged_size_kb:.1f} KB)")
    if config.purge_mode == "compress":
        logger.info(f"  압축: {result.compressed_archives} archives")
    if result.errors:
        logger.warning(f"  에러: {len(result.errors)}개")
        for err in result.errors[:5]:  # 최대 5개만 출력
            logger.warning(f"    - {err}")

    return 0 if not result.errors else 1


if __name__ == "__main__":
    sys.exit(main())
