"""Legacy generator: permissive, never gives up on an over-constrained config.

Blocks are grown first and mechanics are attached to them afterwards.
Counts that cannot be honoured are degraded (fewer elements, a non-exact
color split within MAX_COLOR_DEVIATION) rather than raised, so this
generator is the fallback for the classified one.
"""
import logging
import random
from typing import Dict, List, Optional, Tuple

from ..errors import ElementPlacementShortfall
from ..models.level import (
    BoardCell,
    Element,
    GeneratedLevel,
    LevelConfig,
    empty_board,
)
from .assembly import build_level
from .distribution import plan_colors
from .elements import ElementPlacer, moving_sizes_for, pipe_sizes_for
from .geometry import is_removable, step
from .placement import ConnectedPlacementEngine
from .rebalance import (
    MAX_COLOR_DEVIATION,
    collect_units,
    content_pool,
    fill_contents,
    rebalance,
    spread_overflow,
)
from .validator import check_symmetry, count_colors, validate_board

logger = logging.getLogger(__name__)


def fit_reserved(pipe_sizes: List[int], moving_sizes: List[int], budget: int) -> Tuple[List[int], List[int]]:
    """
    Shrink content capacities until they fit in budget.

    The largest capacity is reduced first; once every capacity is 1 whole
    instances are dropped, belts before pipes.
    """
    pipes, belts = list(pipe_sizes), list(moving_sizes)
    budget = max(0, budget)
    while sum(pipes) + sum(belts) > budget:
        largest = max(pipes + belts)
        if largest > 1:
            if largest in pipes:
                pipes[pipes.index(largest)] -= 1
            else:
                belts[belts.index(largest)] -= 1
        elif belts:
            belts.pop()
        else:
            pipes.pop()
    return pipes, belts


def fit_housings(pipes: int, belts: int, pull_pins: int, free: int) -> Dict[Element, int]:
    """
    How many pipes, belts and pull pins get a grown block of their own.

    Every housing is grown as one extra cell beside the plain blocks. When
    the grid has fewer free cells than housings, pull pins are dropped
    first, then belts, then pipes.
    """
    kept = {Element.PIPE: pipes, Element.MOVING: belts, Element.PULL_PIN: pull_pins}
    excess = sum(kept.values()) - max(0, free)
    for element in (Element.PULL_PIN, Element.MOVING, Element.PIPE):
        if excess <= 0:
            break
        cut = min(kept[element], excess)
        kept[element] -= cut
        excess -= cut
    return kept


def _holder_contents(cell: BoardCell) -> List[str]:
    if cell.element == Element.PIPE.value:
        return cell.pipe_contents
    return cell.moving_contents


def _holder_capacity(cell: BoardCell) -> int:
    if cell.element == Element.PIPE.value:
        return cell.pipe_size or 0
    return cell.moving_size or 0


class LegacyLevelGenerator:
    """Fallback generator working directly on canonical cells."""

    name = "legacy"

    def __init__(self, max_color_deviation: int = MAX_COLOR_DEVIATION, symmetric_retries: int = 5):
        self.max_color_deviation = max_color_deviation
        self.symmetric_retries = symmetric_retries

    def _grow(self, engine: ConnectedPlacementEngine, config: LevelConfig, colors: List[str]) -> None:
        if config.symmetric:
            engine.place_symmetric(colors, self.symmetric_retries)
        else:
            engine.place_random(colors)

    @staticmethod
    def _housing_colors(config: LevelConfig, count: int, rng: random.Random) -> List[str]:
        if not config.symmetric:
            return [rng.choice(config.colors) for _ in range(count)]
        # Same-color pairs keep every color's parity for mirrored growth
        colors = []
        while len(colors) + 2 <= count:
            colors += [rng.choice(config.colors)] * 2
        if len(colors) < count:
            colors.append(rng.choice(config.colors))
        return colors

    def generate(self, config: LevelConfig, rng: Optional[random.Random] = None) -> GeneratedLevel:
        """
        Generate a level, degrading gracefully on over-constrained configs.

        Args:
            config: Level configuration.
            rng: Random source.

        Returns:
            GeneratedLevel whose color totals are within max_color_deviation
            of a multiple of the divisor. In symmetric mode, cells that
            could not be mirrored are listed in symmetry_mismatches.

        Raises:
            PlacementExhaustedError: The grid has no room for the blocks.
            ValidationError: The board still breaks an invariant.
        """
        rng = rng or random.Random()
        pipe_sizes, moving_sizes = fit_reserved(
            pipe_sizes_for(config, rng),
            moving_sizes_for(config, rng),
            config.block_count - 1,
        )
        reserved = sum(pipe_sizes) + sum(moving_sizes)
        paired = config.symmetric and config.width % 2 == 0
        plan = plan_colors(config.block_count, config.colors, reserved, rng, strict=False, paired=paired)

        # Each housing turns one grown block colorless, so grow one extra per housing
        housings = fit_housings(
            len(pipe_sizes),
            len(moving_sizes),
            config.element_count(Element.PULL_PIN),
            config.width * config.height - plan.plain_count,
        )
        plain, _ = plan.split(rng, paired=config.symmetric)
        colors = plain + self._housing_colors(config, sum(housings.values()), rng)

        board = empty_board(config.width, config.height)
        engine = ConnectedPlacementEngine(board, rng, BoardCell.block)
        self._grow(engine, config, colors)

        placer = ElementPlacer(board, config, rng, pipe_sizes, moving_sizes, caps=housings)
        placer.place_all()
        self._settle_count(board, engine, config, plan.targets, placer, rng)
        shortfalls = placer.shortfalls

        holders = placer.content_holders()
        units = collect_units(
            board,
            config.symmetric,
            lambda cell: cell.element == Element.BLOCK_LOCK.value,
            [_holder_contents(cell) for cell in holders],
        )
        residual = rebalance(units, plan.targets, rng)
        beyond = {c: d for c, d in residual.items() if abs(d) > self.max_color_deviation}
        if beyond:
            logger.warning(f"Color deviation beyond tolerance {self.max_color_deviation}: {beyond}")
        elif residual:
            logger.warning(f"Accepting color deviation within tolerance: {residual}")

        validate_board(board, config, tolerance=self.max_color_deviation)
        mismatches = check_symmetry(board) if config.symmetric else []
        if mismatches:
            logger.warning(f"Symmetric board degraded: {len(mismatches)} cell(s) without a mirror match")
        logger.info(
            f"Legacy generator built {config.width}x{config.height} board "
            f"with {config.block_count} blocks ({len(shortfalls)} shortfall(s))"
        )
        return build_level(config, board, rng, self.name, shortfalls, residual, mismatches)

    def _settle_count(self, board, engine, config: LevelConfig, targets, placer: ElementPlacer,
                      rng: random.Random) -> None:
        """Make board colors plus queued contents add up to block_count exactly."""
        holders = placer.content_holders()
        on_board = sum(1 for row in board for cell in row if cell.occupied and cell.color is not None)
        need = config.block_count - on_board
        if need < 0:
            removed = self._trim_surplus(board, -need, rng)
            if removed < -need:
                logger.warning(f"Could only remove {removed}/{-need} surplus block(s)")
            need = 0

        pool = content_pool(targets, count_colors(board), need, rng)
        overflow = fill_contents([(_holder_contents(c), _holder_capacity(c)) for c in holders], pool)
        if overflow:
            if holders:
                spread_overflow([_holder_contents(c) for c in holders], overflow)
            else:
                overflow = self._reclaim_pull_pins(board, placer, overflow)
                self._grow(engine, config, overflow)

        for cell in holders:
            if cell.element == Element.PIPE.value:
                cell.pipe_size = len(cell.pipe_contents)
            else:
                cell.moving_size = len(cell.moving_contents)

    @staticmethod
    def _reclaim_pull_pins(board, placer: ElementPlacer, overflow: List[str]) -> List[str]:
        """Turn pull pins back into color blocks until the rest of overflow fits the grid."""
        overflow = list(overflow)
        room = sum(1 for row in board for cell in row if not cell.occupied)
        pins = placer.positions.get(Element.PULL_PIN, [])
        reclaimed = 0
        while len(overflow) > room and pins:
            x, y = pins.pop()
            board[y][x] = BoardCell.block(overflow.pop())
            reclaimed += 1
        if reclaimed:
            requested = placer.requested().get(Element.PULL_PIN, 0)
            placer.shortfalls[:] = [s for s in placer.shortfalls if s.element != Element.PULL_PIN.value]
            placer.shortfalls.append(ElementPlacementShortfall(
                Element.PULL_PIN.value, requested, len(pins), "no free cell for the housing"))
            logger.warning(f"Turned {reclaimed} pull pin(s) back into blocks to fit the board")
        return overflow

    @staticmethod
    def _trim_surplus(board, surplus: int, rng: random.Random) -> int:
        """Remove up to surplus plain blocks without disconnecting the board."""
        targeted = set()
        for y, row in enumerate(board):
            for x, cell in enumerate(row):
                if cell.element == Element.PIPE.value and cell.pipe_direction:
                    targeted.add(step(x, y, cell.pipe_direction))

        removed = 0
        while removed < surplus:
            candidates = [
                (x, y)
                for y, row in enumerate(board)
                for x, cell in enumerate(row)
                if cell.is_plain and (x, y) not in targeted
            ]
            rng.shuffle(candidates)
            for x, y in candidates:
                if is_removable(board, x, y):
                    board[y][x] = BoardCell.empty()
                    removed += 1
                    break
            else:
                break
        return removed
