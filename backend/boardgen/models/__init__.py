"""Data models package.

This package contains the level data models and the API schemas.
"""
from .level import (
    BoardCell,
    Container,
    Difficulty,
    Direction,
    Element,
    GeneratedLevel,
    GenerationMode,
    LevelConfig,
    LockInfo,
    MovingInfo,
    PipeInfo,
)
from .schemas import (
    GenerateRequest,
    GenerateResponse,
    ValidateRequest,
    ValidateResponse,
    RefillRequest,
    RefillResponse,
    ColorAnalysisRequest,
    ColorAnalysisResponse,
    ErrorResponse,
)

__all__ = [
    # Level models
    "BoardCell",
    "Container",
    "Difficulty",
    "Direction",
    "Element",
    "GeneratedLevel",
    "GenerationMode",
    "LevelConfig",
    "LockInfo",
    "MovingInfo",
    "PipeInfo",
    # API schemas
    "GenerateRequest",
    "GenerateResponse",
    "ValidateRequest",
    "ValidateResponse",
    "RefillRequest",
    "RefillResponse",
    "ColorAnalysisRequest",
    "ColorAnalysisResponse",
    "ErrorResponse",
]
