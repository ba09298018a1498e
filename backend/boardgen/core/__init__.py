"""Core business logic package.

This package contains the board generators, the placement and
rebalancing passes they share, and the board validator.
"""
from .classified_generator import ClassifiedLevelGenerator
from .generator import AdapterState, GeneratorStrategy, LevelGenerator, get_generator
from .legacy_generator import LegacyLevelGenerator
from .validator import validate_board

__all__ = [
    "AdapterState",
    "ClassifiedLevelGenerator",
    "GeneratorStrategy",
    "LegacyLevelGenerator",
    "LevelGenerator",
    "get_generator",
    "validate_board",
]
