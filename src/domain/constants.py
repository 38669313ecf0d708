"""
Domain Constants: 파이프라인 전역 상수.

보험사 코드/샘플 매핑, 키워드 정제 규칙, Cloudinary 토큰 상수 등
시스템 전반에서 사용되는 읽기 전용 테이블.
"""

from types import MappingProxyType

# =============================================================================
# ID / Seed Prefixes
# =============================================================================

VARIANT_SEED_PREFIX = "s_"
VARIANT_SEED_HASH_LENGTH = 12
REQUEST_ID_PREFIX = "vix_"
RUN_ID_PREFIX = "RUN-"

# 결합 해시 구분자: Hash(source_hash + "_" + variant_seed)
FINGERPRINT_SEPARATOR = "_"

# =============================================================================
# Image Defaults
# =============================================================================

DEFAULT_IMAGE_WIDTH = 1200
DEFAULT_IMAGE_HEIGHT = 1600

MIN_IMAGE_SIZE_BYTES = 10 * 1024  # 10KB 미만은 깨진 파일/placeholder

# =============================================================================
# Cloudinary (Rendering Backend)
# =============================================================================

CLOUDINARY_DELIVERY_BASE = "https://res.cloudinary.com/{cloud_name}/image/upload"
CLOUDINARY_UPLOAD_ENDPOINT = "https://api.cloudinary.com/v1_1/{cloud_name}/image/upload"
CLOUDINARY_DEFAULT_FOLDER = "xivix/raw"

TRANSFORM_SEPARATOR = "/"
TOKEN_SEPARATOR = ","

# 렌더링 백엔드가 허용하는 강도 범위 (샘플링 범위보다 넓음)
MASKING_INTENSITY_LIMITS = MappingProxyType({
    "blur": (100, 2000),
    "pixelate": (5, 50),
})
SOLID_OVERLAY_DEFAULT_COLOR = "rgb:333333"

# 타이틀 오버레이
TITLE_FONT = "NotoSansKR-Bold.otf"
TITLE_FONT_SIZE = 40
TITLE_FONT_WEIGHT = "bold"
TITLE_TEXT_COLOR = "white"
TITLE_BACKGROUND = "rgb:1a1a2e_80"        # 진한 네이비, 80%
TITLE_BORDER = "2px_solid_rgb:4a90d9"     # 파란색 테두리
TITLE_GRAVITY = "north"                   # 상단 중앙
TITLE_OFFSET_Y = 25

# =============================================================================
# Title Summarizer
# =============================================================================

TITLE_PLACEHOLDER = "맞춤 설계안 예시"
TITLE_SUFFIX = "맞춤안"
TITLE_MAX_LENGTH = 20
TITLE_ELLIPSIS = ".."

# 제거 대상 표현 (그룹 순서대로 적용, 그룹 내 대안은 왼쪽부터 시도)
TITLE_STRIP_PATTERNS = (
    r"을 위한|를 위한|에 대한|에 관한",
    r"추천해줘|추천해주세요|알려줘|알려주세요|보여줘|보여주세요",
    r"해줘|해주세요|줘|주세요",
    r"좀|좀요|요|있을까요|있나요|할까요|할까",
    r"설계안|설계서|보장분석표|가입설계서",
)

TITLE_FORBIDDEN_CHARS = r"[<>'\"\\`]"

CATEGORY_LABELS = MappingProxyType({
    "universal": "종합보험",
    "cancer": "암보험",
    "whole_life": "종신보험",
    "term_life": "정기보험",
    "child": "어린이보험",
    "driver": "운전자보험",
    "pension": "연금보험",
    "health": "건강보험",
    "accident": "상해보험",
    "real_loss": "실손보험",
    "savings": "저축보험",
    "variable": "변액보험",
    "fire": "화재보험",
    "dental": "치아보험",
    "prenatal": "태아보험",
})
DEFAULT_CATEGORY_LABEL = "맞춤보험"

# 키워드 → 상품 유형
PRODUCT_PATTERNS = MappingProxyType({
    "종신": ("종신", "종신보험", "universal", "whole"),
    "암": ("암", "암보험", "cancer"),
    "어린이": ("어린이", "자녀", "아이", "태아", "child", "kids"),
    "운전자": ("운전자", "운전", "driver"),
    "연금": ("연금", "pension", "annuity"),
    "건강": ("건강", "health"),
    "상해": ("상해", "injury"),
    "화재": ("화재", "fire"),
    "실손": ("실손", "실비", "real"),
    "치아": ("치아", "dental"),
})

# =============================================================================
# Insurance Companies / Standard Samples
# =============================================================================
# 샘플 경로: samples/{life|nonlife}/{company}/{product}.png

INSURANCE_TYPE_LIFE = "LIFE_19"
INSURANCE_TYPE_NON_LIFE = "NON_LIFE_12"


def _life(code: str, name_ko: str, folder: str, *products: tuple[str, str]) -> tuple:
    return code, name_ko, "LIFE", tuple(
        (f"samples/life/{folder}/{file}.png", product) for file, product in products
    )


def _nonlife(code: str, name_ko: str, folder: str, *products: tuple[str, str]) -> tuple:
    return code, name_ko, "NON_LIFE", tuple(
        (f"samples/nonlife/{folder}/{file}.png", product) for file, product in products
    )


_COMPANY_ROWS = (
    # 생명보험사 (19개)
    _life("SAMSUNG_LIFE", "삼성생명", "samsung", ("universal", "종신보험"), ("cancer", "암보험")),
    _life("HANWHA_LIFE", "한화생명", "hanwha", ("universal", "종신보험")),
    _life("KYOBO_LIFE", "교보생명", "kyobo", ("universal", "종신보험")),
    _life("NH_LIFE", "NH농협생명", "nh", ("universal", "종신보험")),
    _life("SHINHAN_LIFE", "신한라이프", "shinhan", ("universal", "종신보험")),
    _life("MIRAE_LIFE", "미래에셋생명", "mirae", ("universal", "변액보험")),
    _life("KB_LIFE", "KB라이프생명", "kb", ("universal", "종신보험")),
    _life("AIA", "AIA생명", "aia", ("universal", "종신보험")),
    _life("METLIFE", "메트라이프생명", "metlife", ("universal", "종신보험")),
    _life("PRUDENTIAL", "푸르덴셜생명", "prudential", ("universal", "종신보험")),
    _life("LINA", "라이나생명", "lina", ("cancer", "암보험")),
    _life("DB_LIFE", "DB생명", "db", ("universal", "종신보험")),
    _life("DONGYANG_LIFE", "동양생명", "dongyang", ("universal", "종신보험")),
    _life("ABL_LIFE", "ABL생명", "abl", ("universal", "종신보험")),
    _life("CHUBB_LIFE", "처브라이프생명", "chubb", ("universal", "종신보험")),
    _life("KDB_LIFE", "KDB생명", "kdb", ("universal", "종신보험")),
    _life("IBK_LIFE", "IBK연금보험", "ibk", ("pension", "연금보험")),
    _life("HANA_LIFE", "하나생명", "hana", ("universal", "종신보험")),
    _life("HEUNGKUK_LIFE", "흥국생명", "heungkuk", ("universal", "종신보험")),
    # 손해보험사 (12개)
    _nonlife("SAMSUNG_FIRE", "삼성화재", "samsung", ("driver", "운전자보험"), ("child", "어린이보험")),
    _nonlife("HYUNDAI_MARINE", "현대해상", "hyundai", ("child", "어린이보험"), ("driver", "운전자보험")),
    _nonlife("DB_INSURANCE", "DB손해보험", "db", ("driver", "운전자보험")),
    _nonlife("KB_INSURANCE", "KB손해보험", "kb", ("child", "어린이보험")),
    _nonlife("MERITZ_FIRE", "메리츠화재", "meritz", ("driver", "운전자보험")),
    _nonlife("HANWHA_GENERAL", "한화손해보험", "hanwha", ("driver", "운전자보험")),
    _nonlife("NH_INSURANCE", "NH농협손해보험", "nh", ("driver", "운전자보험")),
    _nonlife("LOTTE_INSURANCE", "롯데손해보험", "lotte", ("driver", "운전자보험")),
    _nonlife("MG_INSURANCE", "MG손해보험", "mg", ("driver", "운전자보험")),
    _nonlife("HEUNGKUK_FIRE", "흥국화재", "heungkuk", ("driver", "운전자보험")),
    _nonlife("AXA_GENERAL", "AXA손해보험", "axa", ("driver", "운전자보험")),
    _nonlife("CHUBB_GENERAL", "처브손해보험", "chubb", ("driver", "운전자보험")),
)

# {code: (name_ko, category, ((sample_key, product_type), ...))}
INSURANCE_COMPANIES = MappingProxyType({
    code: (name_ko, category, samples)
    for code, name_ko, category, samples in _COMPANY_ROWS
})

# =============================================================================
# MIME Types
# =============================================================================

IMAGE_MAGIC_BYTES = (
    ("image/jpeg", 0, b"\xff\xd8\xff"),
    ("image/png", 0, b"\x89PNG"),
    ("image/gif", 0, b"GIF8"),
)

MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
}


def get_mime_type(filename: str) -> str:
    """
    파일명에서 MIME 타입 추출.

    Args:
        filename: 파일명 (확장자 포함)

    Returns:
        MIME 타입 문자열 (알 수 없으면 image/png)
    """
    import os

    ext = os.path.splitext(filename)[1].lower()
    return MIME_TYPES.get(ext, "image/png")
