"""
test_variation.py - 변주 파라미터 / 마스킹 스타일 테스트

DoD:
- 10,000회 추출 시 모든 필드가 닫힌 구간 내
- rotation 소수 1자리, crop_scale/gamma 소수 2자리, brightness/contrast 정수
- 마스킹 스타일은 후보 중 하나, 강도는 후보 범위 내
- 엔트로피 실패 → PolicyRejectError
"""

import random

import pytest

from src.core.variation import (
    MaskingPolicy,
    StyleCandidate,
    VariationPolicy,
    generate_variation_params,
    select_masking_style,
)
from src.domain.errors import ErrorCodes, PolicyRejectError
from src.domain.schemas import MaskingStyleType

DRAWS = 10_000


class BrokenRandom(random.Random):
    """엔트로피 소스 실패 대역."""

    def random(self):
        raise NotImplementedError("entropy source unavailable")

    def randint(self, a, b):
        raise OSError("entropy source unavailable")

    def choice(self, seq):
        raise OSError("entropy source unavailable")


class TestVariationRanges:
    """10,000회 범위 불변식."""

    def test_all_fields_within_ranges(self):
        """기본 SystemRandom으로 모든 필드 범위 확인."""
        for _ in range(DRAWS):
            params = generate_variation_params()
            assert -3.0 <= params.rotation <= 3.0
            assert -10 <= params.brightness <= 10
            assert -10 <= params.contrast <= 10
            assert 0.70 <= params.crop_scale <= 0.90
            assert 0.90 <= params.gamma <= 1.10
            assert params.crop_gravity == "center"

    def test_precision(self, rng):
        """소수 자릿수 / 정수 타입."""
        for _ in range(1000):
            params = generate_variation_params(rng)
            assert round(params.rotation, 1) == params.rotation
            assert round(params.crop_scale, 2) == params.crop_scale
            assert round(params.gamma, 2) == params.gamma
            assert isinstance(params.brightness, int)
            assert isinstance(params.contrast, int)

    def test_injected_rng_is_reproducible(self):
        """같은 seed의 난수 소스 → 같은 파라미터."""
        a = generate_variation_params(random.Random(7))
        b = generate_variation_params(random.Random(7))
        assert a == b

    def test_custom_policy_respected(self, rng):
        """정책 범위를 좁히면 그 안에서만 추출."""
        policy = VariationPolicy(rotation=(1.0, 1.0), brightness=(5, 5), crop_scale=(0.8, 0.8))
        params = generate_variation_params(rng, policy)
        assert params.rotation == 1.0
        assert params.brightness == 5
        assert params.crop_scale == 0.8

    def test_entropy_failure_rejects(self):
        """난수 소스 실패 → ENTROPY_UNAVAILABLE."""
        with pytest.raises(PolicyRejectError) as exc_info:
            generate_variation_params(BrokenRandom())
        assert exc_info.value.code == ErrorCodes.ENTROPY_UNAVAILABLE


class TestSelectMaskingStyle:
    """select_masking_style 테스트."""

    def test_default_candidates(self):
        """기본 후보: blur 500-1499, pixelate 10-29."""
        seen = set()
        for _ in range(DRAWS):
            style = select_masking_style()
            seen.add(style.type)
            if style.type == MaskingStyleType.BLUR:
                assert 500 <= style.intensity <= 1499
            else:
                assert style.type == MaskingStyleType.PIXELATE
                assert 10 <= style.intensity <= 29
            assert style.overlay_color is None

        assert seen == {MaskingStyleType.BLUR, MaskingStyleType.PIXELATE}

    def test_solid_candidate_gets_overlay_color(self, rng):
        """solid 후보는 overlay_color 포함."""
        policy = MaskingPolicy(
            candidates=(StyleCandidate(MaskingStyleType.SOLID, 0, 0),),
            overlay_color="rgb:000000",
        )
        style = select_masking_style(rng, policy)
        assert style.type == MaskingStyleType.SOLID
        assert style.overlay_color == "rgb:000000"

    def test_entropy_failure_rejects(self):
        """난수 소스 실패 → ENTROPY_UNAVAILABLE."""
        with pytest.raises(PolicyRejectError) as exc_info:
            select_masking_style(BrokenRandom())
        assert exc_info.value.code == ErrorCodes.ENTROPY_UNAVAILABLE


class TestPolicyFromConfig:
    """default.yaml 정책 로드 테스트."""

    def test_default_yaml_matches_defaults(self, default_config):
        """default.yaml 값 = 코드 기본값."""
        assert VariationPolicy.from_config(default_config) == VariationPolicy()
        assert MaskingPolicy.from_config(default_config) == MaskingPolicy()

    def test_empty_config_uses_defaults(self):
        """섹션 없음 → 기본값."""
        assert VariationPolicy.from_config({}) == VariationPolicy()
        assert MaskingPolicy.from_config({}) == MaskingPolicy()

    def test_inverted_range_rejected(self):
        """lo > hi → INVALID_CONFIG."""
        with pytest.raises(PolicyRejectError) as exc_info:
            VariationPolicy.from_config({"variation": {"rotation": [3.0, -3.0]}})
        assert exc_info.value.code == ErrorCodes.INVALID_CONFIG

    def test_malformed_range_rejected(self):
        """구간 형태가 아님 → INVALID_CONFIG."""
        with pytest.raises(PolicyRejectError):
            VariationPolicy.from_config({"variation": {"gamma": 1.0}})

    def test_unknown_masking_type_rejected(self):
        """알 수 없는 마스킹 기법 → INVALID_CONFIG."""
        config = {"masking": {"candidates": [{"type": "swirl", "min": 1, "max": 2}]}}
        with pytest.raises(PolicyRejectError) as exc_info:
            MaskingPolicy.from_config(config)
        assert exc_info.value.code == ErrorCodes.INVALID_CONFIG

    @pytest.mark.parametrize("candidate", [
        "blur",
        42,
        {"type": "blur"},
        {"type": "blur", "min": "a", "max": "b"},
    ])
    def test_malformed_masking_candidate_rejected(self, candidate):
        """매핑이 아니거나 강도 구간이 잘못된 후보 → INVALID_CONFIG."""
        with pytest.raises(PolicyRejectError) as exc_info:
            MaskingPolicy.from_config({"masking": {"candidates": [candidate]}})
        assert exc_info.value.code == ErrorCodes.INVALID_CONFIG
        assert exc_info.value.context["key"] == "masking.candidates[0]"

    def test_masking_candidates_parsed(self):
        """후보 목록 파싱."""
        config = {"masking": {"candidates": [{"type": "pixelate", "min": 5, "max": 6}]}}
        policy = MaskingPolicy.from_config(config)
        assert policy.candidates == (StyleCandidate(MaskingStyleType.PIXELATE, 5, 6),)
