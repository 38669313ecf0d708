"""
Core layer: 변주/중복 회피 핵심 모듈.

이 모듈만 건드리면 중복 이미지 사고 → 가장 보수적으로 관리

역할:
- 해시/시드, 변주 파라미터, 마스킹 영역, 변환 문자열 조합, 지문 레지스트리
- 네트워크 I/O 없음 (레지스트리 저장소 제외)
"""

from .compose import build_final_url, compose_transform
from .dedup import register_fingerprint, resolve_seed
from .hashing import compute_combined_hash, compute_source_hash
from .ids import generate_request_id, generate_variant_seed
from .logging import create_run_log, emit_warning, save_run_log
from .registry import FingerprintStore, SqlFingerprintRegistry
from .title import summarize_title
from .variation import generate_variation_params, select_masking_style
from .zones import build_default_zones, normalize_zones

__all__ = [
    # compose
    "compose_transform",
    "build_final_url",
    # dedup
    "resolve_seed",
    "register_fingerprint",
    # hashing
    "compute_source_hash",
    "compute_combined_hash",
    # ids
    "generate_variant_seed",
    "generate_request_id",
    # logging
    "create_run_log",
    "emit_warning",
    "save_run_log",
    # registry
    "FingerprintStore",
    "SqlFingerprintRegistry",
    # title
    "summarize_title",
    # variation
    "generate_variation_params",
    "select_masking_style",
    # zones
    "normalize_zones",
    "build_default_zones",
]
