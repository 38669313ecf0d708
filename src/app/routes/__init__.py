"""
FastAPI Routes.

API 라우트 (REST)
"""

from . import generate

__all__ = ["generate"]
