"""
Application Services.

역할:
- classify: Gemini 마스킹 영역 탐지 + 기본 영역 폴백
- sources: 원본 다운로드 + 보험사 표준 샘플
- uploader: Cloudinary 서명 업로드
- pipeline: 요청 → 최종 URL 오케스트레이션
"""

from .classify import ZoneDetectionService
from .pipeline import GenerateRequest, VariantPipeline
from .sources import SampleLibrary, SourceImageLoader, SourceResolver
from .uploader import CloudinaryUploader

__all__ = [
    "ZoneDetectionService",
    "GenerateRequest",
    "VariantPipeline",
    "SampleLibrary",
    "SourceImageLoader",
    "SourceResolver",
    "CloudinaryUploader",
]
