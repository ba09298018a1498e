"""Error taxonomy for board generation.

Fatal errors derive from GenerationError and abort the current generator
attempt. ElementPlacementShortfall is a plain record: it is logged and
attached to the generated level, never raised.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional


class GenerationError(Exception):
    """Base class for every fatal generation failure."""


class InvalidConfigError(GenerationError, ValueError):
    """The LevelConfig is malformed. Raised before any generator runs."""


class DistributionError(GenerationError):
    """The block count cannot be split into per-color multiples of the divisor."""

    def __init__(self, message: str, block_count: int = 0, divisor: int = 0):
        super().__init__(message)
        self.block_count = block_count
        self.divisor = divisor


class PlacementExhaustedError(GenerationError):
    """Connected growth ran out of frontier before placing every block."""

    def __init__(self, requested: int, placed: int):
        super().__init__(
            f"Could only place {placed}/{requested} connected blocks "
            f"(no frontier cell left)"
        )
        self.requested = requested
        self.placed = placed


class UnsupportedElementError(GenerationError):
    """The generator does not know how to place the requested mechanic."""

    def __init__(self, element: str, generator: str):
        super().__init__(f"{generator} generator does not support element '{element}'")
        self.element = element
        self.generator = generator


class ValidationError(GenerationError):
    """A post-generation invariant check failed."""

    def __init__(self, check: str, expected: Any, actual: Any, detail: Optional[str] = None):
        message = f"Validation '{check}' failed: expected {expected}, got {actual}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.check = check
        self.expected = expected
        self.actual = actual
        self.detail = detail

    def to_dict(self) -> Dict[str, Any]:
        return {
            "check": self.check,
            "expected": self.expected,
            "actual": self.actual,
            "detail": self.detail,
        }


@dataclass
class ElementPlacementShortfall:
    """A mechanic was placed fewer times than requested."""
    element: str
    requested: int
    placed: int
    reason: str = ""

    @property
    def missing(self) -> int:
        return self.requested - self.placed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "element": self.element,
            "requested": self.requested,
            "placed": self.placed,
            "reason": self.reason,
        }
