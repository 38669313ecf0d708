"""
Generate Routes: 변주 이미지 생성 요청.

- POST /api/generate → 원본 확보 → 마스킹 + 변주 → 최종 URL
- GET /api/generate/companies → 지원 보험사 목록
- POST /api/generate/preview → 업로드된 이미지에 변주만 적용한 미리보기 URL

응답 규칙:
- 파이프라인 error 응답 → HTTP 500 (본문은 그대로)
- PolicyRejectError (엔트로피/좌표/설정) → HTTP 500 + 에러 코드
"""

import logging
from typing import Any, Literal

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from src.app.services.pipeline import MAX_VARIATION_COUNT, GenerateRequest, VariantPipeline
from src.core.compose import build_final_url, build_variation_segment, insert_title_overlay
from src.core.variation import VariationPolicy, generate_variation_params
from src.domain.constants import INSURANCE_COMPANIES
from src.domain.errors import PolicyRejectError

logger = logging.getLogger(__name__)

# Routers
api_router = APIRouter()  # API endpoints


# =============================================================================
# Request Models
# =============================================================================


class RequestInfo(BaseModel):
    keyword: str = Field(min_length=1)
    target_company: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    variation_count: int = Field(default=1, ge=1, le=MAX_VARIATION_COUNT)
    source_url: str | None = None


class GenerateBody(BaseModel):
    request_info: RequestInfo


class PreviewBody(BaseModel):
    public_id: str = Field(min_length=1)
    keyword: str | None = None


# =============================================================================
# API Routes
# =============================================================================


@api_router.post("")
async def generate_variant(request: Request, body: GenerateBody) -> JSONResponse:
    """
    변주 이미지 생성.

    Body:
        {"request_info": {keyword, target_company, user_id, variation_count?, source_url?}}
    """
    pipeline: VariantPipeline = request.app.state.pipeline
    info = body.request_info

    try:
        result = await pipeline.run(
            GenerateRequest(
                keyword=info.keyword,
                target_company=info.target_company,
                user_id=info.user_id,
                variation_count=info.variation_count,
                source_url=info.source_url,
            )
        )
    except PolicyRejectError as e:
        logger.error(f"Generate rejected: {e}")
        raise HTTPException(status_code=500, detail=e.to_dict()) from e

    status_code = 200 if result["status"] == "success" else 500
    return JSONResponse(content=result, status_code=status_code)


@api_router.get("/companies")
async def list_companies(
    category: Literal["LIFE", "NON_LIFE"] | None = None,
) -> dict[str, Any]:
    """지원 보험사 목록 (category로 생명/손해 필터)."""
    companies = [
        {
            "code": code,
            "name_ko": name_ko,
            "category": company_category,
            "products": [product_type for _, product_type in samples],
        }
        for code, (name_ko, company_category, samples) in INSURANCE_COMPANIES.items()
        if category is None or company_category == category
    ]
    return {"count": len(companies), "companies": companies}


@api_router.post("/preview")
async def preview_transform(request: Request, body: PreviewBody) -> dict[str, Any]:
    """
    변주 미리보기 (이미 업로드된 public_id 기준, 레지스트리 등록 없음).

    keyword가 있으면 타이틀 오버레이를 public_id 앞에 삽입.
    """
    config: dict = request.app.state.config
    pipeline: VariantPipeline = request.app.state.pipeline

    policy = VariationPolicy.from_config(config)
    try:
        params = generate_variation_params(policy=policy)
    except PolicyRejectError as e:
        raise HTTPException(status_code=500, detail=e.to_dict()) from e

    transform_string = build_variation_segment(params, policy)
    preview_url = build_final_url(pipeline.uploader.cloud_name, body.public_id, transform_string)
    preview_url = insert_title_overlay(preview_url, body.keyword, public_id=body.public_id)

    return {
        "preview_url": preview_url,
        "transform_string": transform_string,
        "parameters": params.to_dict(),
    }
