"""
Transform Composer: 변주 + 마스킹 + 타이틀 → Cloudinary 변환 문자열.

규칙:
- 세그먼트 순서 고정: variation → masking → title
  (렌더러는 왼쪽부터 적용, crop/회전이 끝난 캔버스 위에 마스킹/타이틀)
- 빈 세그먼트 생략, 나머지 순서 유지
- 조합 자체에는 난수 없음: 동일 입력 → 동일 문자열
- 범위 밖 값은 포맷 전에 클램핑, 음수 좌표/크기는 호출자 에러
"""

import logging
from collections.abc import Sequence
from decimal import ROUND_HALF_UP, Decimal
from urllib.parse import quote

from src.core.title import summarize_title
from src.core.variation import VariationPolicy
from src.domain.constants import (
    CLOUDINARY_DELIVERY_BASE,
    MASKING_INTENSITY_LIMITS,
    SOLID_OVERLAY_DEFAULT_COLOR,
    TITLE_BACKGROUND,
    TITLE_BORDER,
    TITLE_FONT,
    TITLE_FONT_SIZE,
    TITLE_FONT_WEIGHT,
    TITLE_GRAVITY,
    TITLE_OFFSET_Y,
    TITLE_TEXT_COLOR,
    TOKEN_SEPARATOR,
    TRANSFORM_SEPARATOR,
)
from src.domain.errors import ErrorCodes, PolicyRejectError
from src.domain.schemas import (
    MaskingStyle,
    MaskingStyleType,
    MaskingZone,
    TransformSpec,
    VariationParams,
)

logger = logging.getLogger(__name__)

# encodeURIComponent와 동일한 비예약 문자 + 대괄호 유지
_TITLE_SAFE_CHARS = "[]!~*'()"


# =============================================================================
# Number Formatting
# =============================================================================


def round_half_up(value: float) -> int:
    """0.5는 항상 올림 (렌더러 규약)."""
    return int(Decimal(str(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def format_number(value: float) -> str:
    """1.5 → "1.5", 2.0 → "2", 0.82 → "0.82"."""
    if isinstance(value, int):
        return str(value)
    return f"{value:g}"


def gamma_to_backend(gamma: float) -> int:
    """
    감마 0.9~1.1 → 렌더러 정수 감마 (0이 기본값).

    round_half_up((gamma - 1) * 100), 부동소수 오차 없이 Decimal로 계산
    """
    delta = (Decimal(str(gamma)) - 1) * 100
    return int(delta.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def _clamp(value, bounds, name: str):
    lo, hi = bounds
    if value < lo or value > hi:
        clamped = min(max(value, lo), hi)
        logger.warning(f"{name}={value} out of range [{lo}, {hi}], clamped to {clamped}")
        return clamped
    return value


# =============================================================================
# Segments
# =============================================================================


def build_variation_segment(
    params: VariationParams,
    policy: VariationPolicy | None = None,
) -> str:
    """
    변주 파라미터 → 변환 세그먼트.

    순서: a_ (≠0) → e_brightness (≠0) → e_contrast (≠0) → e_gamma (delta≠0) → c_crop (필수)
    """
    policy = policy or VariationPolicy()

    rotation = _clamp(params.rotation, policy.rotation, "rotation")
    brightness = _clamp(params.brightness, policy.brightness, "brightness")
    contrast = _clamp(params.contrast, policy.contrast, "contrast")
    crop_scale = _clamp(params.crop_scale, policy.crop_scale, "crop_scale")
    gamma = _clamp(params.gamma, policy.gamma, "gamma")

    tokens: list[str] = []

    if rotation != 0:
        tokens.append(f"a_{format_number(rotation)}")

    if brightness != 0:
        tokens.append(f"e_brightness:{format_number(brightness)}")

    if contrast != 0:
        tokens.append(f"e_contrast:{format_number(contrast)}")

    gamma_value = gamma_to_backend(gamma)
    if gamma_value != 0:
        tokens.append(f"e_gamma:{gamma_value}")

    scale = format_number(crop_scale)
    tokens.append(f"c_crop,w_{scale},h_{scale},g_{params.crop_gravity}")

    return TRANSFORM_SEPARATOR.join(tokens)


def _zone_rect(zone: MaskingZone) -> tuple[int, int, int, int]:
    if zone.x < 0 or zone.y < 0 or zone.width < 0 or zone.height < 0:
        raise PolicyRejectError(
            ErrorCodes.INVALID_ZONE_GEOMETRY,
            type=zone.type.value,
            x=zone.x,
            y=zone.y,
            width=zone.width,
            height=zone.height,
        )
    return (
        round_half_up(zone.x),
        round_half_up(zone.y),
        round_half_up(zone.width),
        round_half_up(zone.height),
    )


def build_masking_segment(zones: Sequence[MaskingZone], style: MaskingStyle) -> str:
    """
    마스킹 영역 → 변환 세그먼트 (영역당 토큰 1개, 입력 순서 유지).

    - blur:     e_blur_region:{i},x_,y_,w_,h_
    - pixelate: e_pixelate_region:{i},x_,y_,w_,h_
    - solid:    l_{color},w_,h_,c_scale/fl_layer_apply,x_,y_,g_north_west

    Raises:
        PolicyRejectError: 음수 좌표/크기 (INVALID_ZONE_GEOMETRY)
    """
    intensity = style.intensity
    limits = MASKING_INTENSITY_LIMITS.get(style.type.value)
    if limits is not None:
        intensity = _clamp(intensity, limits, f"{style.type.value}_intensity")

    tokens: list[str] = []
    for zone in zones:
        x, y, w, h = _zone_rect(zone)
        if w == 0 or h == 0:
            logger.info(f"Skipping empty zone {zone.type.value} at ({x}, {y})")
            continue

        if style.type == MaskingStyleType.BLUR:
            tokens.append(f"e_blur_region:{intensity},x_{x},y_{y},w_{w},h_{h}")
        elif style.type == MaskingStyleType.PIXELATE:
            tokens.append(f"e_pixelate_region:{intensity},x_{x},y_{y},w_{w},h_{h}")
        else:
            color = style.overlay_color or SOLID_OVERLAY_DEFAULT_COLOR
            tokens.append(
                f"l_{color},w_{w},h_{h},c_scale"
                f"{TRANSFORM_SEPARATOR}fl_layer_apply,x_{x},y_{y},g_north_west"
            )

    return TRANSFORM_SEPARATOR.join(tokens)


def encode_title(title: str) -> str:
    """타이틀 URL 인코딩 (한글 깨짐 방지, 대괄호 유지)."""
    return quote(title, safe=_TITLE_SAFE_CHARS)


def build_text_overlay_segment(title: str) -> str:
    """
    완성된 타이틀 → 텍스트 오버레이 세그먼트.

    NotoSansKR Bold 40, 흰 글씨, 네이비 반투명 배경, 파란 테두리, 상단 중앙 y_25
    """
    layer = TOKEN_SEPARATOR.join([
        f"l_text:{TITLE_FONT}_{TITLE_FONT_SIZE}_{TITLE_FONT_WEIGHT}:{encode_title(title)}",
        f"co_{TITLE_TEXT_COLOR}",
        f"b_{TITLE_BACKGROUND}",
        f"bo_{TITLE_BORDER}",
    ])
    apply = TOKEN_SEPARATOR.join([
        "fl_layer_apply",
        f"g_{TITLE_GRAVITY}",
        f"y_{TITLE_OFFSET_Y}",
    ])
    return f"{layer}{TRANSFORM_SEPARATOR}{apply}"


def build_title_segment(keyword: str | None) -> str:
    """키워드 → 요약 타이틀 오버레이 세그먼트."""
    return build_text_overlay_segment(summarize_title(keyword))


# =============================================================================
# Composition
# =============================================================================


def compose_transform(
    variation: VariationParams,
    zones: Sequence[MaskingZone],
    masking_style: MaskingStyle,
    title: str | None = None,
    policy: VariationPolicy | None = None,
) -> TransformSpec:
    """
    전체 변환 명세 조합.

    Args:
        variation: 변주 파라미터
        zones: 마스킹 영역 (픽셀)
        masking_style: 요청 공통 마스킹 스타일
        title: 타이틀 원문 키워드 (None/빈 값이면 타이틀 세그먼트 없음)
        policy: 변주 파라미터 허용 범위 (클램핑 기준)

    Returns:
        TransformSpec (str()로 최종 문자열)
    """
    return TransformSpec(
        variation=build_variation_segment(variation, policy),
        masking=build_masking_segment(zones, masking_style),
        title=build_title_segment(title) if title else "",
    )


def build_final_url(cloud_name: str, public_id: str, spec: TransformSpec | str) -> str:
    """
    최종 전달 URL.

    https://res.cloudinary.com/{cloud}/image/upload/{transform}/{public_id}
    """
    base_url = CLOUDINARY_DELIVERY_BASE.format(cloud_name=cloud_name)
    transform = str(spec)
    if not transform:
        return f"{base_url}/{public_id}"
    return f"{base_url}/{transform}/{public_id}"


def insert_title_overlay(url: str, keyword: str | None, public_id: str | None = None) -> str:
    """
    기존 Cloudinary URL의 public_id 앞에 타이틀 오버레이 삽입.

    public_id를 모르면 마지막 "/" 뒤를 public_id로 간주 (폴더 포함 ID는 public_id 지정 필요).
    /upload/ 없는 URL 또는 키워드 없음 → 원본 그대로
    """
    if not keyword:
        return url

    marker = "/upload/"
    upload_index = url.find(marker)
    if upload_index == -1:
        return url

    head = url[: upload_index + len(marker)]
    tail = url[upload_index + len(marker):]
    overlay = build_title_segment(keyword)

    if public_id and tail.endswith(public_id):
        transformations = tail[: -len(public_id)].rstrip(TRANSFORM_SEPARATOR)
    else:
        transformations, sep, public_id = tail.rpartition(TRANSFORM_SEPARATOR)
        if not sep:
            transformations = ""

    if not transformations:
        return f"{head}{overlay}/{public_id}"

    return f"{head}{transformations}/{overlay}/{public_id}"
