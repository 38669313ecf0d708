"""
Zone Model: 분류기 좌표 → 절대 픽셀 MaskingZone 정규화.

수집 경계 규칙:
- 분류기는 두 가지 좌표 규약을 사용 (PercentBox: 0-100 %, NormalizedBox: 0-1000 box_2d)
- 경계에서 즉시 MaskingZone(픽셀)으로 변환 → Composer는 한 가지 형태만 봄
- 캔버스 밖 좌표는 클램핑, 남는 영역이 없으면 버림 (조합 중단 금지)
- 겹치는 영역은 병합하지 않고 각각 마스킹
"""

import logging
from collections.abc import Iterable
from dataclasses import replace
from typing import Any

from src.core.compose import round_half_up
from src.domain.schemas import (
    ImageDimensions,
    MaskingZone,
    NormalizedBox,
    PercentBox,
    RawZone,
    ZoneType,
)

logger = logging.getLogger(__name__)

DEFAULT_MIN_CONFIDENCE = 0.5
DEFAULT_ZONE_CONFIDENCE = 0.5

PERCENT_KEYS = ("x_percent", "y_percent", "width_percent", "height_percent")


# =============================================================================
# Ingestion (tagged union)
# =============================================================================


def _confidence(value: Any) -> float:
    try:
        confidence = DEFAULT_ZONE_CONFIDENCE if value is None else float(value)
    except (TypeError, ValueError):
        return DEFAULT_ZONE_CONFIDENCE
    return min(max(confidence, 0.0), 1.0)


def parse_raw_zone(item: dict[str, Any]) -> RawZone | None:
    """
    분류기 응답 항목 → PercentBox | NormalizedBox.

    판별 기준:
    - "box_2d" 키 → NormalizedBox ([ymin, xmin, ymax, xmax], 0-1000)
    - x_percent/y_percent/width_percent/height_percent → PercentBox

    Returns:
        RawZone 또는 None (인식 불가 형태)
    """
    if not isinstance(item, dict):
        return None

    zone_type = ZoneType.parse(item.get("type", "other"))
    confidence = _confidence(item.get("confidence"))
    description = item.get("description") or item.get("label")

    try:
        if "box_2d" in item:
            ymin, xmin, ymax, xmax = (float(v) for v in item["box_2d"])
            return NormalizedBox(
                type=zone_type,
                ymin=ymin,
                xmin=xmin,
                ymax=ymax,
                xmax=xmax,
                confidence=confidence,
                description=description,
            )

        if all(key in item for key in PERCENT_KEYS):
            return PercentBox(
                type=zone_type,
                x_percent=float(item["x_percent"]),
                y_percent=float(item["y_percent"]),
                width_percent=float(item["width_percent"]),
                height_percent=float(item["height_percent"]),
                confidence=confidence,
                description=description,
            )
    except (TypeError, ValueError) as e:
        logger.warning(f"Unparseable zone coordinates {item!r}: {e}")
        return None

    logger.warning(f"Unknown zone coordinate convention: {sorted(item)}")
    return None


def to_pixel_zone(raw: RawZone, dims: ImageDimensions) -> MaskingZone:
    """
    RawZone → 절대 픽셀 MaskingZone (0.5 올림, 합성 단계와 동일 규칙).

    Args:
        raw: PercentBox 또는 NormalizedBox
        dims: 이미지 크기

    Returns:
        MaskingZone
    """
    if isinstance(raw, PercentBox):
        x = raw.x_percent / 100 * dims.width
        y = raw.y_percent / 100 * dims.height
        width = raw.width_percent / 100 * dims.width
        height = raw.height_percent / 100 * dims.height
    else:
        x = raw.xmin / 1000 * dims.width
        y = raw.ymin / 1000 * dims.height
        width = (raw.xmax - raw.xmin) / 1000 * dims.width
        height = (raw.ymax - raw.ymin) / 1000 * dims.height

    return MaskingZone(
        type=raw.type,
        x=round_half_up(x),
        y=round_half_up(y),
        width=round_half_up(width),
        height=round_half_up(height),
        confidence=raw.confidence,
        description=raw.description,
    )


# =============================================================================
# Correction
# =============================================================================


def clamp_zone(zone: MaskingZone, dims: ImageDimensions) -> MaskingZone | None:
    """
    캔버스 범위로 클램핑.

    - 음수 너비/높이: 모서리를 뒤집어 보정
    - 캔버스 밖으로 나간 부분: 잘라냄
    - 남는 영역이 없으면 None (버림)
    """
    x, width = (zone.x + zone.width, -zone.width) if zone.width < 0 else (zone.x, zone.width)
    y, height = (zone.y + zone.height, -zone.height) if zone.height < 0 else (zone.y, zone.height)

    x0 = max(0, x)
    y0 = max(0, y)
    x1 = min(dims.width, x + width)
    y1 = min(dims.height, y + height)

    if x1 - x0 <= 0 or y1 - y0 <= 0:
        return None

    if (x0, y0, x1 - x0, y1 - y0) == (zone.x, zone.y, zone.width, zone.height):
        return zone

    return replace(zone, x=x0, y=y0, width=x1 - x0, height=y1 - y0)


def filter_high_confidence_zones(
    zones: Iterable[MaskingZone],
    min_confidence: float = DEFAULT_MIN_CONFIDENCE,
) -> list[MaskingZone]:
    """신뢰도 기준 이상의 영역만 (입력 순서 유지)."""
    return [zone for zone in zones if zone.confidence >= min_confidence]


def normalize_zones(
    items: Iterable[dict[str, Any]],
    dims: ImageDimensions,
    min_confidence: float = DEFAULT_MIN_CONFIDENCE,
) -> list[MaskingZone]:
    """
    분류기 원본 응답 목록 → 사용 가능한 MaskingZone 목록.

    parse → 픽셀 변환 → 신뢰도 필터 → 클램핑 (순서 유지)
    """
    zones: list[MaskingZone] = []
    for item in items:
        raw = parse_raw_zone(item)
        if raw is None:
            continue

        zone = to_pixel_zone(raw, dims)
        if zone.confidence < min_confidence:
            continue

        clamped = clamp_zone(zone, dims)
        if clamped is None:
            logger.warning(f"Dropped out-of-canvas zone: {zone.to_dict()}")
            continue
        if clamped is not zone:
            logger.info(f"Clamped zone {zone.type.value} to canvas {dims.width}x{dims.height}")

        zones.append(clamped)
    return zones


# =============================================================================
# Default Layouts
# =============================================================================

# (type, x, y, width, height) 비율, 설명
_DEFAULT_LAYOUT = (
    (ZoneType.NAME, 0.05, 0.02, 0.30, 0.05, "기본 상단 좌측 마스킹"),
    (ZoneType.LOGO, 0.70, 0.02, 0.25, 0.08, "기본 상단 우측 로고 마스킹"),
    (ZoneType.PHONE, 0.05, 0.90, 0.40, 0.08, "기본 하단 연락처 마스킹"),
)


def build_default_zones(dims: ImageDimensions) -> list[MaskingZone]:
    """
    기본 마스킹 영역 (분류 실패/타임아웃/미감지 시).

    상단: 성명(좌), 로고(우) / 하단: 연락처
    """
    return [
        MaskingZone(
            type=zone_type,
            x=round_half_up(dims.width * rx),
            y=round_half_up(dims.height * ry),
            width=round_half_up(dims.width * rw),
            height=round_half_up(dims.height * rh),
            confidence=DEFAULT_ZONE_CONFIDENCE,
            description=description,
        )
        for zone_type, rx, ry, rw, rh, description in _DEFAULT_LAYOUT
    ]


def build_central_zone(dims: ImageDimensions) -> MaskingZone:
    """중앙 60% 영역 단일 마스킹."""
    return MaskingZone(
        type=ZoneType.OTHER,
        x=round_half_up(dims.width * 0.2),
        y=round_half_up(dims.height * 0.2),
        width=round_half_up(dims.width * 0.6),
        height=round_half_up(dims.height * 0.6),
        confidence=DEFAULT_ZONE_CONFIDENCE,
        description="Default central masking",
    )
