#!/usr/bin/env python
"""
외부 서비스 연결 점검 스크립트 (Gemini 영역 탐지, Cloudinary 업로드).

실행:
    uv run python scripts/check_connections.py [이미지 경로]
"""

import asyncio
import os
import sys
from pathlib import Path

# 프로젝트 루트를 path에 추가
sys.path.insert(0, str(Path(__file__).parent.parent))

# .env 파일 로드
from dotenv import load_dotenv
load_dotenv()

from src.app.providers.base import ZoneDetectionError
from src.app.providers.gemini import GeminiZoneClassifier
from src.app.services.sources import validate_image_data
from src.app.services.uploader import CloudinaryUploader
from src.domain.schemas import ImageDimensions


def find_test_image(argv: list[str]) -> Path | None:
    if len(argv) > 1:
        return Path(argv[1])
    candidates = list(Path("samples").rglob("*.png")) + list(Path("tests/fixtures").rglob("*.png"))
    return candidates[0] if candidates else None


async def check_gemini(image_bytes: bytes, mime_type: str) -> bool:
    """Google Gemini 영역 탐지 점검."""
    print("\n" + "=" * 60)
    print("🧪 Google Gemini 영역 탐지")
    print("=" * 60)

    api_key = os.environ.get("GOOGLE_API_KEY")
    if not api_key:
        print("❌ GOOGLE_API_KEY가 설정되지 않았습니다.")
        return False

    print(f"✅ API 키 발견: {api_key[:8]}...")
    classifier = GeminiZoneClassifier(api_key=api_key)

    try:
        print("📤 탐지 요청 전송 중...")
        result = await classifier.detect_zones(image_bytes, mime_type, ImageDimensions())
    except ZoneDetectionError as e:
        print(f"❌ Gemini 오류: [{e.code}] {e.message}")
        return False

    print(f"📥 감지 영역: {len(result.zones)}개 (모델: {result.model_used})")
    for zone in result.zones:
        print(f"   - {zone.type.value}: ({zone.x}, {zone.y}, {zone.width}x{zone.height}) "
              f"conf={zone.confidence}")
    print("✅ Gemini 연결 성공!")
    return True


async def check_cloudinary(image_bytes: bytes, filename: str) -> bool:
    """Cloudinary 서명 업로드 점검."""
    print("\n" + "=" * 60)
    print("🧪 Cloudinary 업로드")
    print("=" * 60)

    uploader = CloudinaryUploader(folder="xivix/connection-check")
    if not uploader.configured:
        print("❌ CLOUDINARY_CLOUD_NAME / CLOUDINARY_API_KEY / CLOUDINARY_API_SECRET 확인 필요")
        return False

    print("📤 업로드 중...")
    result = await uploader.upload(image_bytes, filename)
    if not result.success:
        print(f"❌ 업로드 실패: {result.error}")
        return False

    print(f"📥 public_id: {result.public_id}")
    print(f"   url: {result.url}")
    print("✅ Cloudinary 연결 성공!")
    return True


async def main() -> int:
    """점검 실행."""
    print("🚀 외부 서비스 연결 점검 시작")

    image_path = find_test_image(sys.argv)
    if image_path is None or not image_path.exists():
        print("⏭️ 점검용 이미지가 없습니다. 경로를 인자로 전달하세요.")
        return 1

    image_bytes = image_path.read_bytes()
    validation = validate_image_data(image_bytes)
    if not validation.valid:
        print(f"❌ 이미지 검증 실패: {validation.error}")
        return 1

    results = {
        "gemini": await check_gemini(image_bytes, validation.mime_type or "image/png"),
        "cloudinary": await check_cloudinary(image_bytes, image_path.name),
    }

    print("\n" + "=" * 60)
    print("📊 점검 결과 요약")
    print("=" * 60)
    for name, passed in results.items():
        print(f"  {name}: {'✅ PASS' if passed else '❌ FAIL'}")

    all_passed = all(results.values())
    print("=" * 60)
    print("🎉 모든 연결 점검 통과!" if all_passed else "⚠️ 일부 점검 실패. .env 파일을 확인하세요.")
    return 0 if all_passed else 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
