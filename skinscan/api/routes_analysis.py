import logging
from functools import lru_cache

from fastapi import APIRouter, Depends, HTTPException

from skinscan.analysis.service import AnalysisConfig, AnalysisService
from skinscan.api.schemas_analysis import AnalyzeSkinRequest, CompareProgressionRequest, ErrorResponse
from skinscan.config import settings
from skinscan.preprocessing.image_compress import estimate_decoded_size

router = APIRouter(
    prefix="/analyze",
    tags=["analyze"],
    responses={413: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_analysis_service() -> AnalysisService:
    # Built once per process; config is read-only afterwards
    return AnalysisService(AnalysisConfig.from_settings(settings))


def _enforce_size(image: str, field: str) -> None:
    limit = settings.max_image_mb * 1024 * 1024
    if estimate_decoded_size(image) > limit:
        raise HTTPException(
            status_code=413,
            detail={"code": "payload_too_large", "message": f"{field} exceeds max size of {settings.max_image_mb}MB"},
        )


@router.post("/skin")
async def analyze_skin(
    body: AnalyzeSkinRequest,
    service: AnalysisService = Depends(get_analysis_service),
):
    _enforce_size(body.image, "image")

    result = await service.analyze_image(body.image)

    logger.info("analyze_skin is_skin=%s disease=%s", result.is_skin, result.disease_name)
    return result.to_wire()


@router.post("/progression")
async def analyze_progression(
    body: CompareProgressionRequest,
    service: AnalysisService = Depends(get_analysis_service),
):
    image_a, image_b = body.image_pair()
    _enforce_size(image_a, "imageA")
    _enforce_size(image_b, "imageB")

    result = await service.compare_progression(image_a, image_b)

    logger.info("analyze_progression verdict=%s", result.verdict.value)
    return result.to_wire()
