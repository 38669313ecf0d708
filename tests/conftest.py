"""
Pytest fixtures for the variant pipeline tests.

구성:
- 설정/경로 fixture
- 인메모리 지문 레지스트리
- 유효한 원본 이미지 바이트 (매직 바이트 + 10KB 이상)
- 외부 협력자 대역 (분류기, 업로더)
"""

import random
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
import yaml

from src.app.providers.base import ZoneClassifier, ZoneDetectionResult
from src.app.services.uploader import UploadResult
from src.core.registry import SqlFingerprintRegistry
from src.domain.schemas import ImageDimensions, MaskingZone, ZoneType

# =============================================================================
# Path / Config Fixtures
# =============================================================================

@pytest.fixture
def project_root() -> Path:
    """프로젝트 루트 경로."""
    return Path(__file__).parent.parent


@pytest.fixture
def default_config_path(project_root: Path) -> Path:
    """default.yaml 경로."""
    return project_root / "default.yaml"


@pytest.fixture
def default_config(default_config_path: Path) -> dict:
    """기본 설정 로드."""
    with open(default_config_path, encoding="utf-8") as f:
        return yaml.safe_load(f)


@pytest.fixture
def test_config(tmp_path: Path) -> dict:
    """테스트용 설정 (인메모리 DB, 임시 run log 경로)."""
    return {
        "dedup": {"max_retries": 3},
        "ai": {"zones": {"timeout_seconds": 1, "min_confidence": 0.5}},
        "image": {"width": 1200, "height": 1600},
        "registry": {"database_url": "sqlite://"},
        "sources": {"samples_root": str(tmp_path / "samples_root")},
        "title": {"enabled": True},
        "logs": {"runs_dir": str(tmp_path / "runs")},
    }


# =============================================================================
# Registry Fixtures
# =============================================================================

@pytest.fixture
def memory_registry() -> SqlFingerprintRegistry:
    """스키마가 준비된 인메모리 레지스트리."""
    registry = SqlFingerprintRegistry("sqlite://")
    registry.create_schema()
    return registry


# =============================================================================
# Image Fixtures
# =============================================================================

def make_png_bytes(size: int = 12 * 1024, fill: bytes = b"\x00") -> bytes:
    """PNG 시그니처 + 패딩 (검증 통과용, 디코딩 불가)."""
    header = b"\x89PNG\r\n\x1a\n"
    return header + fill * (size - len(header))


@pytest.fixture
def png_bytes() -> bytes:
    """유효한 PNG 원본 이미지 바이트."""
    return make_png_bytes()


@pytest.fixture
def dims() -> ImageDimensions:
    """기본 이미지 크기."""
    return ImageDimensions(width=1200, height=1600)


@pytest.fixture
def rng() -> random.Random:
    """재현 가능한 난수 소스."""
    return random.Random(20240115)


# =============================================================================
# Collaborator Doubles
# =============================================================================

class StaticZoneClassifier(ZoneClassifier):
    """고정 영역을 반환하는 분류기."""

    def __init__(self, zones: list[MaskingZone] | None = None):
        self.model = "static-test-model"
        self.zones = zones if zones is not None else [
            MaskingZone(type=ZoneType.NAME, x=50, y=20, width=200, height=40, confidence=0.9),
        ]
        self.calls = 0

    async def detect_zones(self, image_bytes, mime_type, dimensions):
        self.calls += 1
        return ZoneDetectionResult(
            success=True,
            zones=list(self.zones),
            dimensions=dimensions,
            model_requested=self.model,
            model_used=self.model,
        )


@pytest.fixture
def static_classifier() -> StaticZoneClassifier:
    return StaticZoneClassifier()


@pytest.fixture
def fake_uploader() -> MagicMock:
    """항상 성공하는 업로더 대역."""
    uploader = MagicMock()
    uploader.cloud_name = "demo-cloud"
    uploader.upload = AsyncMock(
        return_value=UploadResult(
            success=True,
            public_id="xivix/raw/vix_test",
            url="https://res.cloudinary.com/demo-cloud/image/upload/xivix/raw/vix_test.png",
        )
    )
    return uploader


@pytest.fixture
def classifier_factory():
    """영역 목록을 지정해 StaticZoneClassifier 생성."""
    return StaticZoneClassifier
