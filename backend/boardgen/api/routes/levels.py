"""Level post-processing API routes."""
import random

from fastapi import APIRouter, HTTPException

from ...models.level import GeneratedLevel
from ...models.schemas import (
    ColorAnalysisRequest,
    ColorAnalysisResponse,
    RefillRequest,
    RefillResponse,
)
from ...utils.helpers import analyze_colors, refill_level, validate_level_json

router = APIRouter(prefix="/api", tags=["levels"])


def _parse_level(level_json) -> GeneratedLevel:
    is_valid, error = validate_level_json(level_json)
    if not is_valid:
        raise HTTPException(status_code=422, detail=f"Invalid level: {error}")
    try:
        return GeneratedLevel.from_dict(level_json)
    except (KeyError, TypeError, ValueError) as e:
        raise HTTPException(status_code=422, detail=f"Invalid level: {str(e)}")


@router.post("/refill", response_model=RefillResponse)
async def refill(request: RefillRequest) -> RefillResponse:
    """Reshuffle the plain block colors of a level."""
    level = _parse_level(request.level)
    refilled = refill_level(level, random.Random(request.seed))
    return RefillResponse(level=refilled.to_dict())


@router.post("/colors", response_model=ColorAnalysisResponse)
async def colors(request: ColorAnalysisRequest) -> ColorAnalysisResponse:
    """Color summary and bars for a level."""
    level = _parse_level(request.level)
    return ColorAnalysisResponse(**analyze_colors(level))
