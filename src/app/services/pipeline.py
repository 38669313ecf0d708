"""
Variant Pipeline: 요청 → 원본 확보 → 업로드/영역 탐지 → 변주 → 최종 URL.

단계 (에러 보고용 current_step):
    request → scraping → raw_storage → ai_analysis → variation → masking → logging → response

에러 정책:
- 원본 확보/업로드 실패 → error 응답 (서비스 정상 종료)
- 영역 탐지 실패 → 기본 영역으로 계속
- 레지스트리 장애 → 경고만 (fail-open)
- PolicyRejectError (엔트로피, 좌표, 설정) → run log 기록 후 전파
"""

import asyncio
import logging
import random
import time
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from src.app.services.classify import ZoneDetectionOutcome, ZoneDetectionService
from src.app.services.sources import SourceError, SourceResolver, company_category, company_name_ko
from src.app.services.uploader import CloudinaryUploader
from src.core.compose import build_final_url, build_text_overlay_segment, compose_transform
from src.core.dedup import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_REGISTRY_TIMEOUT,
    register_fingerprint,
    resolve_seed,
)
from src.core.ids import generate_request_id
from src.core.logging import complete_run_log, create_run_log, save_run_log
from src.core.registry import FingerprintStore
from src.core.title import build_company_product_title, is_valid_title, summarize_title
from src.core.variation import (
    MaskingPolicy,
    VariationPolicy,
    generate_variation_params,
    select_masking_style,
)
from src.domain.constants import (
    DEFAULT_IMAGE_HEIGHT,
    DEFAULT_IMAGE_WIDTH,
    INSURANCE_COMPANIES,
    TITLE_PLACEHOLDER,
)
from src.domain.errors import ErrorCodes, PolicyRejectError
from src.domain.schemas import (
    ImageDimensions,
    MaskingZone,
    PipelineStep,
    RunLog,
    SourceImage,
)

logger = logging.getLogger(__name__)

MAX_VARIATION_COUNT = 5
DEFAULT_RUNS_DIR = "runs"


@dataclass
class GenerateRequest:
    """변주 이미지 생성 요청."""
    keyword: str
    target_company: str
    user_id: str
    variation_count: int = 1
    source_url: str | None = None


@dataclass
class VariantOutput:
    """변주 1건 결과."""
    image_id: str
    final_url: str
    transform_string: str
    variant_seed: str
    seed_retries: int = 0
    registered: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "image_id": self.image_id,
            "final_url": self.final_url,
            "transform_string": self.transform_string,
            "variant_seed": self.variant_seed,
        }


@dataclass
class PipelineContext:
    """요청 범위 상태."""
    request_id: str
    user_id: str
    started_at: float
    current_step: PipelineStep = PipelineStep.REQUEST
    source: SourceImage | None = None
    public_id: str | None = None
    zones: list[MaskingZone] = field(default_factory=list)
    used_default_zones: bool = False

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started_at) * 1000)


def create_error_response(
    request_id: str,
    code: str,
    message: str,
    details: str | None = None,
) -> dict[str, Any]:
    """에러 응답 생성."""
    return {
        "status": "error",
        "error": {
            "code": code,
            "message": message,
            "details": details,
        },
        "request_id": request_id,
    }


class VariantPipeline:
    """
    변주 이미지 생성 파이프라인.

    Usage:
        pipeline = VariantPipeline.from_config(config, registry)
        response = await pipeline.run(GenerateRequest(...))
    """

    def __init__(
        self,
        config: dict,
        registry: FingerprintStore,
        sources: SourceResolver,
        uploader: CloudinaryUploader,
        zone_service: ZoneDetectionService,
        rng: random.Random | None = None,
        runs_dir: Path | None = None,
    ):
        """
        Args:
            config: 설정 (variation, masking, dedup, image, title, logs)
            registry: 지문 저장소
            sources: 원본 확보
            uploader: Cloudinary 업로드
            zone_service: 마스킹 영역 탐지
            rng: 난수 소스 (None이면 SystemRandom)
            runs_dir: run log 저장 경로 (None이면 config logs.runs_dir)
        """
        self.config = config
        self.registry = registry
        self.sources = sources
        self.uploader = uploader
        self.zone_service = zone_service
        self.rng = rng

        self.variation_policy = VariationPolicy.from_config(config)
        self.masking_policy = MaskingPolicy.from_config(config)
        dedup_config = config.get("dedup", {}) or {}
        self.max_retries = int(dedup_config.get("max_retries", DEFAULT_MAX_RETRIES))
        self.registry_timeout = float(
            dedup_config.get("registry_timeout_seconds", DEFAULT_REGISTRY_TIMEOUT)
        )

        image_config = config.get("image", {}) or {}
        self.dimensions = ImageDimensions(
            width=int(image_config.get("width", DEFAULT_IMAGE_WIDTH)),
            height=int(image_config.get("height", DEFAULT_IMAGE_HEIGHT)),
        )
        self.title_enabled = bool((config.get("title", {}) or {}).get("enabled", True))
        self.runs_dir = runs_dir or Path(
            (config.get("logs", {}) or {}).get("runs_dir", DEFAULT_RUNS_DIR)
        )

    @classmethod
    def from_config(cls, config: dict, registry: FingerprintStore) -> "VariantPipeline":
        return cls(
            config=config,
            registry=registry,
            sources=SourceResolver.from_config(config),
            uploader=CloudinaryUploader.from_config(config),
            zone_service=ZoneDetectionService(config),
        )

    async def run(self, request: GenerateRequest) -> dict[str, Any]:
        """
        파이프라인 실행.

        Returns:
            성공: {"status": "success", "data": {...}, "request_id"}
            실패: {"status": "error", "error": {code, message, details}, "request_id"}

        Raises:
            PolicyRejectError: 엔트로피/좌표/설정 정책 위반
        """
        request_id = generate_request_id()
        ctx = PipelineContext(
            request_id=request_id,
            user_id=request.user_id,
            started_at=time.monotonic(),
        )
        run_log = create_run_log(request_id)

        try:
            response = await self._execute(ctx, request, run_log)
        except PolicyRejectError as e:
            logger.error(f"[{request_id}] Policy violation at {ctx.current_step.value}: {e}")
            complete_run_log(
                run_log, success=False, error_code=e.code, error_context=e.to_dict()
            )
            self._save_run_log(run_log)
            raise
        except Exception as e:
            logger.error(
                f"[{request_id}] Pipeline error ({ctx.current_step.value}): {e}", exc_info=True
            )
            complete_run_log(
                run_log,
                success=False,
                error_code=ErrorCodes.PIPELINE_ERROR,
                error_context={"step": ctx.current_step.value, "message": str(e)},
            )
            self._save_run_log(run_log)
            return create_error_response(
                request_id,
                ErrorCodes.PIPELINE_ERROR,
                f"파이프라인 오류 ({ctx.current_step.value}): {e}",
                ctx.current_step.value,
            )

        self._save_run_log(run_log)
        return response

    async def _execute(
        self,
        ctx: PipelineContext,
        request: GenerateRequest,
        run_log: RunLog,
    ) -> dict[str, Any]:
        request_id = ctx.request_id

        # 1. 요청 수신
        ctx.current_step = PipelineStep.REQUEST
        count = min(max(int(request.variation_count or 1), 1), MAX_VARIATION_COUNT)
        logger.info(
            f"[{request_id}] Request: keyword={request.keyword!r}, "
            f"company={request.target_company}, variants={count}"
        )

        # 2. 원본 확보
        ctx.current_step = PipelineStep.SCRAPING
        try:
            ctx.source = await self.sources.resolve(
                request.target_company,
                request.keyword,
                source_url=request.source_url,
                run_log=run_log,
            )
        except SourceError as e:
            return self._fail(run_log, request_id, e.code, e.message, ctx.current_step)
        run_log.source_hash = ctx.source.source_hash
        logger.info(f"[{request_id}] Source: {ctx.source.source_url} ({ctx.source.origin})")

        # 3. 업로드 + 영역 탐지 (병렬)
        ctx.current_step = PipelineStep.RAW_STORAGE
        upload_result, detection = await asyncio.gather(
            self.uploader.upload(ctx.source.data, f"{request_id}.png"),
            self.zone_service.detect(
                ctx.source.data, ctx.source.mime_type, self.dimensions, run_log=run_log
            ),
        )

        if not upload_result.success or not upload_result.public_id:
            error = upload_result.error or "Cloudinary 업로드 실패"
            logger.error(f"[{request_id}] Upload failed: {error}")
            return self._fail(
                run_log,
                request_id,
                ErrorCodes.UPLOAD_FAILED,
                f"이미지 업로드 실패: {error}. 잠시 후 다시 시도해주세요.",
                ctx.current_step,
            )
        ctx.public_id = upload_result.public_id

        # 4. 영역 확정
        ctx.current_step = PipelineStep.AI_ANALYSIS
        self._apply_detection(ctx, detection)

        # 5-6. 변주 + 마스킹 (변주별 독립 시드/파라미터)
        title = self._select_title(request, ctx.source) if self.title_enabled else None
        variants = [
            await self._build_variant(ctx, run_log, title, index) for index in range(count)
        ]

        # 7. 기록
        ctx.current_step = PipelineStep.LOGGING
        primary = variants[0]
        run_log.variant_seed = primary.variant_seed
        complete_run_log(
            run_log,
            success=True,
            final_url=primary.final_url,
            transform_string=primary.transform_string,
        )

        # 8. 응답
        ctx.current_step = PipelineStep.RESPONSE
        processing_time_ms = ctx.elapsed_ms()
        logger.info(f"[{request_id}] Completed in {processing_time_ms}ms")

        data: dict[str, Any] = {
            "image_id": primary.image_id,
            "final_url": primary.final_url,
            "transform_string": primary.transform_string,
            "metadata": {
                "masking_applied": [zone.type.value for zone in ctx.zones],
                "variant_seed": primary.variant_seed,
                "insurance_type": company_category(request.target_company),
                "processing_time_ms": processing_time_ms,
                "used_default_zones": ctx.used_default_zones,
                "source": ctx.source.origin,
            },
        }
        if count > 1:
            data["variants"] = [variant.to_dict() for variant in variants]

        return {"status": "success", "data": data, "request_id": request_id}

    def _apply_detection(self, ctx: PipelineContext, detection: ZoneDetectionOutcome) -> None:
        ctx.zones = detection.zones
        ctx.used_default_zones = detection.used_default
        if detection.used_default:
            logger.info(f"[{ctx.request_id}] Default masking zones applied ({detection.error_code})")
        else:
            logger.info(f"[{ctx.request_id}] Detected {len(ctx.zones)} masking zones")
        if detection.insurance_info and detection.insurance_info.company:
            logger.info(f"[{ctx.request_id}] Detected company: {detection.insurance_info.company}")

    def _select_title(self, request: GenerateRequest, source: SourceImage) -> str:
        """
        오버레이 타이틀 결정.

        키워드 요약 우선, 요약할 내용이 없는 샘플 원본은 보험사 + 상품 유형 타이틀.
        """
        title = summarize_title(request.keyword)
        if title == TITLE_PLACEHOLDER and source.origin == "sample":
            title = build_company_product_title(
                company_name_ko(request.target_company),
                self._sample_category(request.target_company, source.sample_key),
            )
        if not is_valid_title(title):
            logger.warning(f"Invalid overlay title {title!r}, using placeholder")
            return TITLE_PLACEHOLDER
        return title

    @staticmethod
    def _sample_category(company_code: str, sample_key: str | None) -> str:
        """샘플 키 파일명 (universal, cancer, driver ...) = 상품 카테고리."""
        if sample_key:
            return Path(sample_key).stem
        entry = INSURANCE_COMPANIES.get(company_code)
        return Path(entry[2][0][0]).stem if entry and entry[2] else ""

    async def _build_variant(
        self,
        ctx: PipelineContext,
        run_log: RunLog,
        title: str | None,
        index: int,
    ) -> VariantOutput:
        image_id = ctx.request_id if index == 0 else f"{ctx.request_id}_{index}"

        ctx.current_step = PipelineStep.VARIATION
        resolution = await resolve_seed(
            ctx.user_id,
            ctx.source.source_hash,
            self.registry,
            max_retries=self.max_retries,
            run_log=run_log,
            timeout=self.registry_timeout,
        )
        params = generate_variation_params(self.rng, self.variation_policy)
        style = select_masking_style(self.rng, self.masking_policy)
        logger.info(
            f"[{image_id}] seed={resolution.seed}, rotation={params.rotation}, "
            f"brightness={params.brightness}, crop={params.crop_scale}, style={style.type.value}"
        )

        ctx.current_step = PipelineStep.MASKING
        spec = compose_transform(params, ctx.zones, style, policy=self.variation_policy)
        if title:
            spec = replace(spec, title=build_text_overlay_segment(title))
        final_url = build_final_url(self.uploader.cloud_name, ctx.public_id, spec)

        registered = await register_fingerprint(
            self.registry,
            ctx.source.source_hash,
            resolution.seed,
            image_id,
            run_log=run_log,
            timeout=self.registry_timeout,
        )

        return VariantOutput(
            image_id=image_id,
            final_url=final_url,
            transform_string=str(spec),
            variant_seed=resolution.seed,
            seed_retries=resolution.retries,
            registered=registered,
        )

    def _fail(
        self,
        run_log: RunLog,
        request_id: str,
        code: str,
        message: str,
        step: PipelineStep,
    ) -> dict[str, Any]:
        complete_run_log(
            run_log,
            success=False,
            error_code=code,
            error_context={"step": step.value, "message": message},
        )
        return create_error_response(request_id, code, message, step.value)

    def _save_run_log(self, run_log: RunLog) -> None:
        try:
            path = save_run_log(run_log, self.runs_dir)
            logger.debug(f"Run log saved: {path}")
        except OSError as e:
            logger.error(f"Failed to save run log {run_log.run_id}: {e}")
