"""Level generator entry point with primary/fallback selection."""
import logging
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple

from ..errors import GenerationError, InvalidConfigError
from ..models.level import GeneratedLevel, LevelConfig
from .classified_generator import ClassifiedLevelGenerator
from .legacy_generator import LegacyLevelGenerator
from .rebalance import MAX_COLOR_DEVIATION

logger = logging.getLogger(__name__)


class GeneratorStrategy(str, Enum):
    """Which generator to try first."""
    CLASSIFIED = "classified"
    LEGACY = "legacy"


class AdapterState(str, Enum):
    IDLE = "idle"
    TRY_PRIMARY = "try_primary"
    PRIMARY_FAILED = "primary_failed"
    TRY_FALLBACK = "try_fallback"
    SUCCESS = "success"
    FALLBACK_FAILED = "fallback_failed"


TRANSITIONS: Dict[AdapterState, Set[AdapterState]] = {
    AdapterState.IDLE: {AdapterState.TRY_PRIMARY, AdapterState.TRY_FALLBACK},
    AdapterState.TRY_PRIMARY: {AdapterState.SUCCESS, AdapterState.PRIMARY_FAILED},
    AdapterState.PRIMARY_FAILED: {AdapterState.TRY_FALLBACK},
    AdapterState.TRY_FALLBACK: {AdapterState.SUCCESS, AdapterState.FALLBACK_FAILED},
    AdapterState.SUCCESS: set(),
    AdapterState.FALLBACK_FAILED: set(),
}


@dataclass
class GenerationRun:
    """Trace of one generate() call through the adapter states."""
    states: List[AdapterState] = field(default_factory=lambda: [AdapterState.IDLE])
    primary_error: Optional[str] = None
    generation_time_ms: int = 0

    @property
    def state(self) -> AdapterState:
        return self.states[-1]

    @property
    def used_fallback(self) -> bool:
        return AdapterState.TRY_FALLBACK in self.states

    def advance(self, state: AdapterState) -> None:
        if state not in TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal generator transition {self.state.value} -> {state.value}")
        self.states.append(state)


class LevelGenerator:
    """Generates levels, falling back to the legacy generator once on failure."""

    def __init__(self, max_color_deviation: int = MAX_COLOR_DEVIATION, symmetric_retries: int = 5):
        self.primary = ClassifiedLevelGenerator(symmetric_retries=symmetric_retries)
        self.fallback = LegacyLevelGenerator(
            max_color_deviation=max_color_deviation,
            symmetric_retries=symmetric_retries,
        )

    def generate(
        self,
        config: LevelConfig,
        strategy: GeneratorStrategy = GeneratorStrategy.CLASSIFIED,
        rng: Optional[random.Random] = None,
    ) -> GeneratedLevel:
        """
        Generate a level for config.

        Args:
            config: Level configuration.
            strategy: CLASSIFIED tries the classified generator and falls
                back to the legacy one; LEGACY goes straight to legacy.
            rng: Seedable random source; a fresh one is used when omitted.

        Returns:
            GeneratedLevel that passed validation.

        Raises:
            InvalidConfigError: If the config is malformed.
            GenerationError: If the fallback attempt fails too.
        """
        level, _ = self.generate_with_trace(config, strategy, rng)
        return level

    def generate_with_trace(
        self,
        config: LevelConfig,
        strategy: GeneratorStrategy = GeneratorStrategy.CLASSIFIED,
        rng: Optional[random.Random] = None,
    ) -> Tuple[GeneratedLevel, GenerationRun]:
        """Same as generate(), also returning the adapter state trace."""
        start_time = time.time()
        config.validate()
        rng = rng or random.Random()
        strategy = GeneratorStrategy(strategy)
        run = GenerationRun()

        if strategy == GeneratorStrategy.CLASSIFIED:
            run.advance(AdapterState.TRY_PRIMARY)
            try:
                level = self.primary.generate(config, rng)
            except InvalidConfigError:
                raise
            except GenerationError as e:
                run.advance(AdapterState.PRIMARY_FAILED)
                run.primary_error = f"{type(e).__name__}: {e}"
                logger.warning(f"Classified generator failed ({run.primary_error}); using legacy generator")
            else:
                run.advance(AdapterState.SUCCESS)
                run.generation_time_ms = int((time.time() - start_time) * 1000)
                return level, run

        run.advance(AdapterState.TRY_FALLBACK)
        try:
            level = self.fallback.generate(config, rng)
        except GenerationError:
            run.advance(AdapterState.FALLBACK_FAILED)
            logger.error(f"Legacy generator failed for '{config.name}'")
            raise
        run.advance(AdapterState.SUCCESS)
        run.generation_time_ms = int((time.time() - start_time) * 1000)
        return level, run


# Singleton instance
_generator = None


def get_generator(max_color_deviation: int = MAX_COLOR_DEVIATION, symmetric_retries: int = 5) -> LevelGenerator:
    """Get or create generator singleton instance (rebuilt when its settings change)."""
    global _generator
    if (
        _generator is None
        or _generator.fallback.max_color_deviation != max_color_deviation
        or _generator.fallback.symmetric_retries != symmetric_retries
    ):
        _generator = LevelGenerator(max_color_deviation, symmetric_retries)
    return _generator
