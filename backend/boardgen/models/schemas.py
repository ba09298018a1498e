"""Pydantic schemas for API request/response validation."""
from pydantic import BaseModel, Field
from typing import Dict, List, Any, Literal, Optional

from .level import LevelConfig


class GenerateRequest(BaseModel):
    """Request schema for board generation."""
    name: str = Field(default="Level", description="Level name")
    width: int = Field(default=9, ge=1, le=50, description="Grid width (columns)")
    height: int = Field(default=10, ge=1, le=50, description="Grid height (rows)")
    block_count: int = Field(..., ge=1, description="Total colored blocks including pipe contents")
    selected_colors: List[str] = Field(..., min_length=2, description="Colors to use")
    color_count: Optional[int] = Field(default=None, ge=2, description="How many of the selected colors are in play")
    generation_mode: Literal["random", "symmetric"] = Field(default="random", description="Layout mode")
    elements: Dict[str, int] = Field(default={}, description="Mechanic counts by name")
    difficulty: Literal["Normal", "Hard", "Super Hard"] = Field(default="Normal", description="Difficulty band")
    pipe_block_count: Optional[int] = Field(default=None, ge=1, description="Fixed capacity for every pipe")
    pipe_block_counts: Optional[List[int]] = Field(default=None, description="Per-pipe capacity overrides")
    moving_block_count: Optional[int] = Field(default=None, ge=1, description="Fixed capacity for every belt")
    moving_block_counts: Optional[List[int]] = Field(default=None, description="Per-belt capacity overrides")
    bomb_counts: Optional[List[int]] = Field(default=None, description="Per-bomb hit counts")
    ice_counts: Optional[List[int]] = Field(default=None, description="Per-ice hit counts")
    strategy: Optional[Literal["classified", "legacy"]] = Field(
        default=None, description="Generator to try first (server default when omitted)"
    )
    seed: Optional[int] = Field(default=None, description="Random seed for reproducible boards")

    def to_config(self) -> LevelConfig:
        return LevelConfig(
            name=self.name,
            width=self.width,
            height=self.height,
            block_count=self.block_count,
            selected_colors=tuple(self.selected_colors),
            color_count=self.color_count or len(self.selected_colors),
            generation_mode=self.generation_mode,
            elements=dict(self.elements),
            difficulty=self.difficulty,
            pipe_block_count=self.pipe_block_count,
            pipe_block_counts=self.pipe_block_counts,
            moving_block_count=self.moving_block_count,
            moving_block_counts=self.moving_block_counts,
            bomb_counts=self.bomb_counts,
            ice_counts=self.ice_counts,
        )


class GenerateResponse(BaseModel):
    """Response schema for board generation."""
    level: Dict[str, Any] = Field(..., description="Generated level")
    generator: str = Field(..., description="Generator that produced the board")
    used_fallback: bool = Field(default=False, description="Whether the legacy fallback was used")
    primary_error: Optional[str] = Field(default=None, description="Why the primary generator failed")
    generation_time_ms: int = Field(default=0, description="Generation time in milliseconds")


class ValidateRequest(BaseModel):
    """Request schema for validating a level."""
    level: Dict[str, Any] = Field(..., description="Level with config and board")
    tolerance: int = Field(default=0, ge=0, le=4, description="Allowed distance from a color multiple")


class ValidateResponse(BaseModel):
    """Response schema for level validation."""
    valid: bool = Field(..., description="Whether every check passed")
    check: Optional[str] = Field(default=None, description="Name of the failed check")
    message: str = Field(default="", description="Failure message")
    expected: Optional[Any] = Field(default=None, description="Expected value of the failed check")
    actual: Optional[Any] = Field(default=None, description="Observed value of the failed check")
    color_counts: Dict[str, int] = Field(default={}, description="Per-color totals including contents")
    total_blocks: int = Field(default=0, description="Total colored cells including contents")
    symmetry_mismatches: List[List[int]] = Field(default=[], description="Asymmetric left-half positions")


class RefillRequest(BaseModel):
    """Request schema for reshuffling a level's plain blocks."""
    level: Dict[str, Any] = Field(..., description="Level to refill")
    seed: Optional[int] = Field(default=None, description="Random seed")


class RefillResponse(BaseModel):
    """Response schema for refill."""
    level: Dict[str, Any] = Field(..., description="Refilled level")


class ColorAnalysisRequest(BaseModel):
    """Request schema for color analysis."""
    level: Dict[str, Any] = Field(..., description="Level to analyze")


class ColorAnalysisResponse(BaseModel):
    """Response schema for color analysis."""
    total_blocks: int = Field(..., description="Colored cells including contents")
    color_summary: List[Dict[str, Any]] = Field(default=[], description="Count and percentage per color")
    bars: List[List[str]] = Field(default=[], description="Color bars of up to three blocks")


class ErrorResponse(BaseModel):
    """Error response schema."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(default=None, description="Detailed error information")
