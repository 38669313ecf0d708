"""
FastAPI 애플리케이션 진입점.

실행:
- 개발: uv run uvicorn src.app.main:app --reload
- 프로덕션: uv run uvicorn src.app.main:app
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import yaml
from fastapi import FastAPI

# Routes
from src.app.routes import generate
from src.app.services.pipeline import VariantPipeline
from src.core.registry import SqlFingerprintRegistry

logger = logging.getLogger(__name__)

# =============================================================================
# Configuration
# =============================================================================


def load_config(config_path: Path | None = None) -> dict:
    """설정 파일 로드."""
    if config_path is None:
        # 프로젝트 루트의 default.yaml
        config_path = Path(__file__).parent.parent.parent / "default.yaml"

    if not config_path.exists():
        return {}

    with open(config_path, encoding="utf-8") as f:
        data: dict[Any, Any] = yaml.safe_load(f) or {}
        return data


# =============================================================================
# Lifespan
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    애플리케이션 생명주기 관리.

    시작 시: 설정 로드, 지문 레지스트리 스키마 준비, 파이프라인 구성
    종료 시: DB 연결 정리
    """
    # Startup
    config = load_config()
    registry = SqlFingerprintRegistry.from_config(config)
    registry.create_schema()

    app.state.config = config
    app.state.registry = registry
    app.state.pipeline = VariantPipeline.from_config(config, registry)
    logger.info(f"Registry ready: {registry.database_url}")

    yield

    # Shutdown
    registry.engine.dispose()


# =============================================================================
# App Instance
# =============================================================================

app = FastAPI(
    title="XIVIX XIIM",
    description="보험 설계안 이미지 → 개인정보 마스킹 + 중복 회피 변주 이미지",
    version="0.1.0",
    lifespan=lifespan,
)


# =============================================================================
# Routes
# =============================================================================

app.include_router(generate.api_router, prefix="/api/generate", tags=["Generate API"])


# =============================================================================
# Root Endpoints
# =============================================================================


@app.get("/")
async def root() -> dict[str, Any]:
    """서비스 안내."""
    return {
        "message": "XIVIX XIIM",
        "endpoints": {
            "generate": "/api/generate",
            "companies": "/api/generate/companies",
            "preview": "/api/generate/preview",
            "health": "/health",
        },
    }


@app.get("/health")
async def health() -> dict[str, str]:
    """헬스 체크."""
    return {"status": "ok"}


# =============================================================================
# CLI Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.app.main:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
    )
