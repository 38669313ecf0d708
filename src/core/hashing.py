"""
해시 계산: source_hash, combined fingerprint, upload signature

규칙:
- source_hash: 원본 이미지 바이트의 SHA-256 (내용 주소)
- combined fingerprint: SHA-256(source_hash + "_" + variant_seed) → 중복 판정 단위
- 동일 원본 + 동일 시드만 충돌, 시드가 다르면 충돌 아님
"""

import hashlib

from src.domain.constants import FINGERPRINT_SEPARATOR


def sha256_hex(message: str) -> str:
    """문자열 SHA-256 (hex)."""
    return hashlib.sha256(message.encode("utf-8")).hexdigest()


def compute_source_hash(data: bytes) -> str:
    """
    원본 이미지 해시 계산.

    Args:
        data: 이미지 원본 바이트

    Returns:
        SHA-256 hex 문자열
    """
    return hashlib.sha256(data).hexdigest()


def compute_combined_hash(source_hash: str, variant_seed: str) -> str:
    """
    결합 지문 계산 (중복 체크 키).

    Combined = SHA-256(f"{source_hash}_{variant_seed}")

    Args:
        source_hash: 원본 이미지 해시
        variant_seed: 변주 시드

    Returns:
        SHA-256 hex 문자열
    """
    return sha256_hex(f"{source_hash}{FINGERPRINT_SEPARATOR}{variant_seed}")


def compute_upload_signature(params: dict[str, str | int], api_secret: str) -> str:
    """
    Cloudinary 서명 업로드용 SHA-1 서명.

    파라미터를 키 순으로 정렬해 "k=v&k=v" + secret 형태로 해싱.

    Args:
        params: 서명 대상 파라미터 (folder, timestamp 등)
        api_secret: Cloudinary API secret

    Returns:
        SHA-1 hex 문자열
    """
    to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params))
    return hashlib.sha1(f"{to_sign}{api_secret}".encode()).hexdigest()
