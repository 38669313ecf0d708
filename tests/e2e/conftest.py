"""
E2E 테스트 설정.

- tests/e2e 아래 테스트는 자동으로 e2e 마커 부여 (-m "not e2e"로 제외 가능)
- 앱 lifespan은 인메모리 레지스트리 설정으로 실행
- 외부 협력자(원본 다운로드, Cloudinary, Gemini)는 대역으로 교체
"""

import random
from collections.abc import Generator
from pathlib import Path
from unittest.mock import patch

import httpx
import pytest
from fastapi.testclient import TestClient

from src.app.main import app
from src.app.services.classify import ZoneDetectionService
from src.app.services.pipeline import VariantPipeline
from src.app.services.sources import SampleLibrary, SourceImageLoader, SourceResolver


def pytest_collection_modifyitems(config, items):
    e2e_root = Path(__file__).parent
    for item in items:
        if e2e_root in item.path.parents:
            item.add_marker(pytest.mark.e2e)


@pytest.fixture
def client(test_config, fake_uploader, static_classifier, png_bytes) -> Generator[TestClient, None, None]:
    """lifespan 실행 후 파이프라인 협력자를 대역으로 교체한 TestClient."""
    with patch("src.app.main.load_config", return_value=test_config):
        with TestClient(app) as client:
            registry = client.app.state.registry
            loader = SourceImageLoader(
                max_retries=0,
                transport=httpx.MockTransport(lambda request: httpx.Response(200, content=png_bytes)),
            )
            client.app.state.pipeline = VariantPipeline(
                config=test_config,
                registry=registry,
                sources=SourceResolver(loader, SampleLibrary(test_config["sources"]["samples_root"])),
                uploader=fake_uploader,
                zone_service=ZoneDetectionService(test_config, classifier=static_classifier),
                rng=random.Random(11),
            )
            yield client
