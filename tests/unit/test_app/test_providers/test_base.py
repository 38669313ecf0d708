"""
test_base.py - Provider 기본 타입 테스트
"""

import pytest

from src.app.providers.base import (
    InsuranceInfo,
    ProviderError,
    ZoneClassifier,
    ZoneDetectionError,
    ZoneDetectionResult,
    compute_hash,
)
from src.domain.schemas import ImageDimensions, MaskingZone, ZoneType


class TestComputeHash:
    def test_prefix_and_length(self):
        value = compute_hash("hello")
        assert value.startswith("sha256:")
        assert len(value) == len("sha256:") + 16

    def test_deterministic(self):
        assert compute_hash("same") == compute_hash("same")
        assert compute_hash("a") != compute_hash("b")


class TestInsuranceInfo:
    def test_from_dict(self):
        info = InsuranceInfo.from_dict({"company": "삼성생명", "product_name": None})
        assert info.company == "삼성생명"
        assert info.product_name is None

    @pytest.mark.parametrize("value", [None, "삼성생명", [1, 2]])
    def test_non_dict(self, value):
        assert InsuranceInfo.from_dict(value) is None

    def test_to_dict(self):
        assert InsuranceInfo(company="A", coverage_type="Life").to_dict() == {
            "company": "A",
            "product_name": None,
            "coverage_type": "Life",
        }


class TestZoneDetectionResult:
    def test_to_dict_drops_none(self):
        result = ZoneDetectionResult(
            success=True,
            zones=[MaskingZone(ZoneType.NAME, 1, 2, 3, 4, confidence=0.9)],
            dimensions=ImageDimensions(100, 200),
            model_requested="m1",
            model_used="m1",
        )

        data = result.to_dict()

        assert data["success"] is True
        assert data["dimensions"] == {"width": 100, "height": 200}
        assert data["zones"][0]["type"] == "name"
        assert "error_message" not in data
        assert "insurance_info" not in data
        assert data["fallback_triggered"] is False

    def test_default_dimensions(self):
        assert ZoneDetectionResult(success=False).dimensions == ImageDimensions(1200, 1600)


class TestErrors:
    def test_provider_error_fields(self):
        error = ZoneDetectionError("NO_FALLBACK", "실패", model="gemini-1.5-flash")

        assert isinstance(error, ProviderError)
        assert error.code == "NO_FALLBACK"
        assert error.message == "실패"
        assert error.context == {"model": "gemini-1.5-flash"}
        assert str(error) == "[NO_FALLBACK] 실패"


class TestZoneClassifier:
    def test_abstract(self):
        with pytest.raises(TypeError):
            ZoneClassifier()
