"""
타이틀 요약: 사용자 키워드 → 이미지 상단 오버레이용 짧은 라벨.

예:
    "30대 워킹맘을 위한 삼성생명 암보험 추천해줘" → "[30대 워킹맘 삼성생명 암보험 맞춤안]"
"""

import re

from src.domain.constants import (
    CATEGORY_LABELS,
    DEFAULT_CATEGORY_LABEL,
    TITLE_ELLIPSIS,
    TITLE_FORBIDDEN_CHARS,
    TITLE_MAX_LENGTH,
    TITLE_PLACEHOLDER,
    TITLE_STRIP_PATTERNS,
    TITLE_SUFFIX,
)

_STRIP_RES = tuple(re.compile(p, re.IGNORECASE) for p in TITLE_STRIP_PATTERNS)
_WHITESPACE_RE = re.compile(r"\s+")
_FORBIDDEN_RE = re.compile(TITLE_FORBIDDEN_CHARS)


def clean_keyword(keyword: str) -> str:
    """조사/어미/문서 유형 단어 제거 + 공백 정리."""
    cleaned = keyword
    for pattern in _STRIP_RES:
        cleaned = pattern.sub(" ", cleaned)
    return _WHITESPACE_RE.sub(" ", cleaned).strip()


def summarize_title(keyword: str | None) -> str:
    """
    키워드 → 표시용 타이틀.

    - 빈 입력, 정제 후 빈 문자열 → 고정 placeholder
    - 20자 초과 → 19자 + ".."
    - "[... 맞춤안]" 형태로 감싸기

    Args:
        keyword: 사용자 입력 키워드

    Returns:
        타이틀 문자열
    """
    if not keyword:
        return TITLE_PLACEHOLDER

    label = clean_keyword(keyword)
    if not label:
        return TITLE_PLACEHOLDER

    if len(label) > TITLE_MAX_LENGTH:
        label = label[: TITLE_MAX_LENGTH - 1] + TITLE_ELLIPSIS

    return f"[{label} {TITLE_SUFFIX}]"


def build_company_product_title(company_name_ko: str, product_category: str) -> str:
    """
    보험사 + 상품 카테고리 기반 정형 타이틀 (샘플 폴백 시 사용).

    예: ("삼성생명", "cancer") → "[삼성생명 암보험 설계안]"
    """
    product_label = CATEGORY_LABELS.get(product_category, DEFAULT_CATEGORY_LABEL)
    return f"[{company_name_ko} {product_label} 설계안]"


def is_valid_title(title: str) -> bool:
    """3~50자, URL에 문제를 일으키는 문자 없음."""
    if len(title) < 3 or len(title) > 50:
        return False
    return _FORBIDDEN_RE.search(title) is None
