"""
test_purge_runs.py - purge_runs.py 스크립트 테스트

테스트 케이스:
- TC1: retention_days 초과 run log 정리
- TC2: min_keep_count 유지
- TC3: compress 모드 (날짜별 tar.gz)
- TC4: dry-run 모드 (실제 삭제 없음)
"""

import sys
import tarfile
from datetime import datetime, timedelta
from pathlib import Path

import pytest

# scripts 모듈 임포트를 위한 경로 추가
sys.path.insert(0, str(Path(__file__).parent.parent.parent.parent / "scripts"))

from purge_runs import (
    RunRetentionConfig,
    get_run_time,
    load_retention_config,
    purge_runs,
    select_purge_candidates,
)

NOW = datetime(2024, 3, 1, 12, 0, 0)


@pytest.fixture
def runs_dir(tmp_path: Path) -> Path:
    runs = tmp_path / "runs"
    runs.mkdir()
    return runs


def create_run_log_file(runs_dir: Path, when: datetime, suffix: str = "abcd1234") -> Path:
    """테스트용 run log 파일 생성 (파일명에 시각 포함)."""
    path = runs_dir / f"run_RUN-{when.strftime('%Y%m%d%H%M%S')}-{suffix}.json"
    path.write_text('{"result": "success"}', encoding="utf-8")
    return path


# =============================================================================
# get_run_time
# =============================================================================


class TestGetRunTime:
    def test_parses_file_name(self, runs_dir):
        path = create_run_log_file(runs_dir, datetime(2024, 1, 15, 9, 30, 0))
        assert get_run_time(path) == datetime(2024, 1, 15, 9, 30, 0)

    def test_falls_back_to_mtime(self, runs_dir):
        path = runs_dir / "run_unknown.json"
        path.write_text("{}", encoding="utf-8")
        assert isinstance(get_run_time(path), datetime)


# =============================================================================
# TC1 / TC2: 후보 선택
# =============================================================================


class TestSelectCandidates:
    def test_old_logs_selected(self, runs_dir):
        """TC1: 30일 초과만 선택."""
        old = create_run_log_file(runs_dir, NOW - timedelta(days=40))
        recent = create_run_log_file(runs_dir, NOW - timedelta(days=5))
        config = RunRetentionConfig(retention_days=30, min_keep_count=0)

        candidates = select_purge_candidates([old, recent], config, now=NOW)

        assert candidates == [old]

    def test_min_keep_count(self, runs_dir):
        """TC2: 모두 오래돼도 최신 N개는 유지."""
        logs = [
            create_run_log_file(runs_dir, NOW - timedelta(days=60 + i), suffix=f"{i:08d}")
            for i in range(5)
        ]
        config = RunRetentionConfig(retention_days=30, min_keep_count=2)

        candidates = select_purge_candidates(logs, config, now=NOW)

        assert len(candidates) == 3
        assert logs[0] not in candidates
        assert logs[1] not in candidates
        # 오래된 순
        assert candidates[0] == logs[4]


# =============================================================================
# TC3 / TC4: purge_runs
# =============================================================================


class TestPurgeRuns:
    def test_delete_mode(self, runs_dir):
        old = create_run_log_file(runs_dir, NOW - timedelta(days=40))
        recent = create_run_log_file(runs_dir, NOW - timedelta(days=1))
        config = RunRetentionConfig(retention_days=30, min_keep_count=0, purge_mode="delete")

        result = purge_runs(runs_dir, config, execute=True, now=NOW)

        assert result.scanned_files == 2
        assert result.purged_files == 1
        assert not old.exists()
        assert recent.exists()
        assert result.errors == []

    def test_compress_mode_groups_by_day(self, runs_dir):
        """TC3: 같은 날짜 로그는 한 아카이브로."""
        day = NOW - timedelta(days=45)
        first = create_run_log_file(runs_dir, day, suffix="00000001")
        second = create_run_log_file(runs_dir, day + timedelta(hours=1), suffix="00000002")
        other_day = create_run_log_file(runs_dir, NOW - timedelta(days=50), suffix="00000003")
        config = RunRetentionConfig(retention_days=30, min_keep_count=0, purge_mode="compress")

        result = purge_runs(runs_dir, config, execute=True, now=NOW)

        assert result.compressed_archives == 2
        assert result.purged_files == 3
        assert not first.exists() and not second.exists() and not other_day.exists()

        archive = runs_dir / "_archive" / f"runs_{day.strftime('%Y%m%d')}.tar.gz"
        with tarfile.open(archive, "r:gz") as tar:
            assert sorted(tar.getnames()) == sorted([first.name, second.name])

    def test_dry_run_keeps_files(self, runs_dir):
        """TC4: dry-run은 아무것도 지우지 않음."""
        old = create_run_log_file(runs_dir, NOW - timedelta(days=40))
        config = RunRetentionConfig(retention_days=30, min_keep_count=0, purge_mode="delete")

        result = purge_runs(runs_dir, config, execute=False, now=NOW)

        assert result.purged_files == 1
        assert old.exists()

    def test_unknown_mode(self, runs_dir):
        create_run_log_file(runs_dir, NOW - timedelta(days=40))
        config = RunRetentionConfig(retention_days=30, min_keep_count=0, purge_mode="shred")

        result = purge_runs(runs_dir, config, execute=True, now=NOW)

        assert result.errors

    def test_empty_dir(self, tmp_path):
        result = purge_runs(tmp_path / "missing", RunRetentionConfig(), execute=True, now=NOW)
        assert result.scanned_files == 0


class TestLoadRetentionConfig:
    def test_reads_logs_retention(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "logs:\n  retention:\n    retention_days: 7\n    purge_mode: delete\n",
            encoding="utf-8",
        )

        config = load_retention_config(path)

        assert config.retention_days == 7
        assert config.purge_mode == "delete"
        assert config.min_keep_count == 100

    def test_default_yaml(self, default_config_path):
        config = load_retention_config(default_config_path)
        assert config.retention_days == 30
        assert config.purge_mode == "compress"
