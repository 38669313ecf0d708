"""
변주 파라미터 생성 + 마스킹 스타일 선택.

지각적으로 눈에 띄지 않는 범위(≤3° 회전, ±10 밝기/대비, ±10% 감마)에서
렌더링 결과 픽셀을 충분히 바꿔 외부 플랫폼의 이미지 해시가 달라지게 한다.
crop_scale은 프레이밍 자체를 바꿔 crop 민감 해시도 무력화한다.

난수 소스는 주입 가능 (기본: random.SystemRandom → OS 엔트로피).
"""

import random
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from src.domain.constants import SOLID_OVERLAY_DEFAULT_COLOR
from src.domain.errors import ErrorCodes, PolicyRejectError
from src.domain.schemas import MaskingStyle, MaskingStyleType, VariationParams

T = TypeVar("T")

# =============================================================================
# Policies (default.yaml: variation / masking)
# =============================================================================


def _range(value: Any, default: tuple[float, float], name: str) -> tuple[float, float]:
    if value is None:
        return default
    try:
        lo, hi = value
        inverted = lo > hi
    except (TypeError, ValueError) as e:
        raise PolicyRejectError(ErrorCodes.INVALID_CONFIG, key=name, value=value) from e
    if inverted:
        raise PolicyRejectError(ErrorCodes.INVALID_CONFIG, key=name, value=value)
    return lo, hi


@dataclass(frozen=True)
class VariationPolicy:
    """변주 파라미터 샘플링 범위 (닫힌 구간)."""
    rotation: tuple[float, float] = (-3.0, 3.0)
    brightness: tuple[int, int] = (-10, 10)
    contrast: tuple[int, int] = (-10, 10)
    crop_scale: tuple[float, float] = (0.70, 0.90)
    gamma: tuple[float, float] = (0.90, 1.10)
    crop_gravity: str = "center"

    @classmethod
    def from_config(cls, config: dict) -> "VariationPolicy":
        section = config.get("variation", {}) or {}
        default = cls()
        return cls(
            rotation=_range(section.get("rotation"), default.rotation, "variation.rotation"),
            brightness=_range(section.get("brightness"), default.brightness, "variation.brightness"),
            contrast=_range(section.get("contrast"), default.contrast, "variation.contrast"),
            crop_scale=_range(section.get("crop_scale"), default.crop_scale, "variation.crop_scale"),
            gamma=_range(section.get("gamma"), default.gamma, "variation.gamma"),
            crop_gravity=section.get("crop_gravity", default.crop_gravity),
        )


@dataclass(frozen=True)
class StyleCandidate:
    """마스킹 스타일 후보 (강도 범위 포함)."""
    type: MaskingStyleType
    min_intensity: int
    max_intensity: int


@dataclass(frozen=True)
class MaskingPolicy:
    """
    마스킹 스타일 후보 목록.

    기본: blur 500-999, blur 800-1499, pixelate 10-29 (균등 선택)
    """
    candidates: tuple[StyleCandidate, ...] = field(default_factory=lambda: (
        StyleCandidate(MaskingStyleType.BLUR, 500, 999),
        StyleCandidate(MaskingStyleType.BLUR, 800, 1499),
        StyleCandidate(MaskingStyleType.PIXELATE, 10, 29),
    ))
    overlay_color: str = SOLID_OVERLAY_DEFAULT_COLOR

    @classmethod
    def from_config(cls, config: dict) -> "MaskingPolicy":
        section = config.get("masking", {}) or {}
        default = cls()
        raw_candidates = section.get("candidates")
        if not raw_candidates:
            candidates = default.candidates
        else:
            parsed = []
            for i, item in enumerate(raw_candidates):
                key = f"masking.candidates[{i}]"
                try:
                    style_type = MaskingStyleType(item["type"])
                    lo, hi = _range((item.get("min"), item.get("max")), (0, 0), key)
                    candidate = StyleCandidate(style_type, int(lo), int(hi))
                except (KeyError, TypeError, ValueError, AttributeError) as e:
                    raise PolicyRejectError(ErrorCodes.INVALID_CONFIG, key=key, value=item) from e
                parsed.append(candidate)
            candidates = tuple(parsed)
        return cls(
            candidates=candidates,
            overlay_color=section.get("overlay_color", default.overlay_color),
        )


# =============================================================================
# Random Source
# =============================================================================


def default_rng() -> random.Random:
    """OS 엔트로피 기반 난수 소스."""
    return random.SystemRandom()


def _draw(fn: Callable[[], T]) -> T:
    """난수 추출. 엔트로피 소스 실패는 치명적."""
    try:
        return fn()
    except (NotImplementedError, OSError) as e:
        raise PolicyRejectError(
            ErrorCodes.ENTROPY_UNAVAILABLE, source="random", cause=e
        ) from e


def _uniform_rounded(rng: random.Random, bounds: tuple[float, float], ndigits: int) -> float:
    lo, hi = bounds
    value = round(lo + _draw(rng.random) * (hi - lo), ndigits)
    return min(max(value, lo), hi)


# =============================================================================
# Generators
# =============================================================================


def generate_variation_params(
    rng: random.Random | None = None,
    policy: VariationPolicy | None = None,
) -> VariationParams:
    """
    변주 파라미터 생성.

    각 필드는 독립적으로 균등 추출:
    - rotation: 소수 1자리
    - brightness, contrast: 정수
    - crop_scale, gamma: 소수 2자리

    Args:
        rng: 난수 소스 (None이면 SystemRandom)
        policy: 샘플링 범위 (None이면 기본값)

    Returns:
        VariationParams
    """
    rng = rng or default_rng()
    policy = policy or VariationPolicy()

    return VariationParams(
        rotation=_uniform_rounded(rng, policy.rotation, 1),
        brightness=_draw(lambda: rng.randint(*policy.brightness)),
        contrast=_draw(lambda: rng.randint(*policy.contrast)),
        crop_scale=_uniform_rounded(rng, policy.crop_scale, 2),
        crop_gravity=policy.crop_gravity,
        gamma=_uniform_rounded(rng, policy.gamma, 2),
    )


def select_masking_style(
    rng: random.Random | None = None,
    policy: MaskingPolicy | None = None,
) -> MaskingStyle:
    """
    마스킹 스타일 선택 (요청당 1회, 모든 영역 공통).

    Args:
        rng: 난수 소스
        policy: 후보 목록

    Returns:
        MaskingStyle
    """
    rng = rng or default_rng()
    policy = policy or MaskingPolicy()

    candidate = _draw(lambda: rng.choice(policy.candidates))
    intensity = _draw(lambda: rng.randint(candidate.min_intensity, candidate.max_intensity))

    overlay_color = policy.overlay_color if candidate.type == MaskingStyleType.SOLID else None
    return MaskingStyle(type=candidate.type, intensity=intensity, overlay_color=overlay_color)
