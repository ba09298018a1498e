"""Board generation API routes."""
import logging
import random

from fastapi import APIRouter, Depends, HTTPException

from ...config import Settings
from ...core.generator import GeneratorStrategy, LevelGenerator
from ...core.validator import check_symmetry, count_colors, validate_board
from ...errors import GenerationError, ValidationError
from ...models.level import GeneratedLevel
from ...models.schemas import (
    GenerateRequest,
    GenerateResponse,
    ValidateRequest,
    ValidateResponse,
)
from ...utils.helpers import validate_level_json
from ..deps import get_app_settings, get_level_generator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["generate"])


@router.post("/generate", response_model=GenerateResponse)
async def generate_level(
    request: GenerateRequest,
    generator: LevelGenerator = Depends(get_level_generator),
    settings: Settings = Depends(get_app_settings),
) -> GenerateResponse:
    """
    Generate a board.

    Args:
        request: GenerateRequest with the level configuration.
        generator: LevelGenerator dependency.
        settings: Application settings.

    Returns:
        GenerateResponse with the generated level.
    """
    strategy = GeneratorStrategy(request.strategy or settings.default_strategy)
    rng = random.Random(request.seed)
    try:
        config = request.to_config()
        level, run = generator.generate_with_trace(config, strategy, rng)
    except GenerationError as e:
        logger.warning(f"Generation failed: {e}")
        raise HTTPException(status_code=422, detail=f"Generation failed: {str(e)}")

    return GenerateResponse(
        level=level.to_dict(),
        generator=level.generator,
        used_fallback=run.used_fallback,
        primary_error=run.primary_error,
        generation_time_ms=run.generation_time_ms,
    )


@router.post("/validate", response_model=ValidateResponse)
async def validate_level(request: ValidateRequest) -> ValidateResponse:
    """
    Run the board invariant checks on a level.

    Args:
        request: ValidateRequest with the level and tolerance.

    Returns:
        ValidateResponse describing the first failed check, if any.
    """
    is_valid, error = validate_level_json(request.level)
    if not is_valid:
        raise HTTPException(status_code=422, detail=f"Invalid level: {error}")

    try:
        level = GeneratedLevel.from_dict(request.level)
    except (KeyError, TypeError, ValueError) as e:
        raise HTTPException(status_code=422, detail=f"Invalid level: {str(e)}")

    counts = count_colors(level.board)
    response = ValidateResponse(
        valid=True,
        color_counts=dict(counts),
        total_blocks=sum(counts.values()),
        symmetry_mismatches=[list(p) for p in check_symmetry(level.board)],
    )
    try:
        validate_board(level.board, level.config, request.tolerance)
    except ValidationError as e:
        response.valid = False
        response.check = e.check
        response.message = str(e)
        response.expected = e.expected
        response.actual = e.actual
    return response
