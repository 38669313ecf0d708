"""
AI Provider Abstraction.

모델 교체 가능하게 설계.
모델명은 config에서만 주입.
"""

from .base import (
    InsuranceInfo,
    ProviderError,
    ZoneClassifier,
    ZoneDetectionError,
    ZoneDetectionResult,
)
from .gemini import GeminiZoneClassifier

__all__ = [
    "InsuranceInfo",
    "ProviderError",
    "ZoneClassifier",
    "ZoneDetectionError",
    "ZoneDetectionResult",
    "GeminiZoneClassifier",
]
