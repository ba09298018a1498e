"""Post-generation invariant checks.

Validation is pure: it reads the board and raises, it never repairs.
"""
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Any

from ..errors import ValidationError
from ..models.level import Element, LevelConfig
from .distribution import effective_divisor
from .geometry import (
    DIRECTION_OFFSETS,
    Position,
    board_size,
    in_bounds,
    is_connected,
    mirror_x,
    occupied_positions,
    step,
)

CHECK_COUNT = "count"
CHECK_COLORS = "colors"
CHECK_DIVISIBILITY = "divisibility"
CHECK_CONNECTIVITY = "connectivity"
CHECK_LOCK_KEY = "lock_key"
CHECK_PIPE_DIRECTION = "pipe_direction"
CHECK_SYMMETRY = "symmetry"


@dataclass
class ValidationReport:
    """Summary of a board that passed validation."""
    total: int
    block_cells: int
    divisor: int
    color_counts: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "blockCells": self.block_cells,
            "divisor": self.divisor,
            "colorCounts": dict(self.color_counts),
        }


def cell_colors(cell) -> List[str]:
    """Every color a canonical cell contributes: its own plus queued contents."""
    if not cell.occupied:
        return []
    colors = [cell.color] if cell.color is not None else []
    colors.extend(cell.pipe_contents or [])
    colors.extend(cell.moving_contents or [])
    return colors


def count_colors(board) -> Counter:
    counts: Counter = Counter()
    for row in board:
        for cell in row:
            counts.update(cell_colors(cell))
    return counts


def count_colored_cells(board) -> int:
    """Board colors plus pipe and belt contents."""
    return sum(count_colors(board).values())


def _distance_to_multiple(count: int, divisor: int) -> int:
    remainder = count % divisor
    return min(remainder, divisor - remainder)


def check_lock_pairs(board) -> None:
    """Every lock id has exactly one lock and one key, and keys sit on color blocks."""
    locks: Dict[str, List[Position]] = defaultdict(list)
    keys: Dict[str, List[Position]] = defaultdict(list)
    for y, row in enumerate(board):
        for x, cell in enumerate(row):
            if cell.element == Element.BLOCK_LOCK.value:
                locks[cell.lock_id].append((x, y))
            elif cell.element == Element.KEY.value:
                keys[cell.key_id].append((x, y))
                if cell.color is None:
                    raise ValidationError(CHECK_LOCK_KEY, "key on a color block", "key without color",
                                          f"key {cell.key_id} at ({x}, {y})")
    if set(locks) != set(keys):
        raise ValidationError(CHECK_LOCK_KEY, sorted(locks, key=str), sorted(keys, key=str),
                              "lock ids and key ids differ")
    for lock_id in locks:
        if len(locks[lock_id]) != 1 or len(keys[lock_id]) != 1:
            raise ValidationError(CHECK_LOCK_KEY, "1 lock and 1 key",
                                  f"{len(locks[lock_id])} lock(s), {len(keys[lock_id])} key(s)",
                                  f"id {lock_id}")


def check_pipe_directions(board) -> None:
    """Every pipe points at an in-grid block cell."""
    width, height = board_size(board)
    for y, row in enumerate(board):
        for x, cell in enumerate(row):
            if cell.element != Element.PIPE.value:
                continue
            if cell.pipe_direction not in DIRECTION_OFFSETS:
                raise ValidationError(CHECK_PIPE_DIRECTION, "a direction", cell.pipe_direction,
                                      f"pipe at ({x}, {y})")
            tx, ty = step(x, y, cell.pipe_direction)
            if not in_bounds(tx, ty, width, height) or not board[ty][tx].occupied:
                raise ValidationError(CHECK_PIPE_DIRECTION, "block target", (tx, ty),
                                      f"pipe at ({x}, {y}) points {cell.pipe_direction}")


def check_symmetry(board) -> List[Position]:
    """Left-half positions whose mirror differs in occupancy or color."""
    width, _ = board_size(board)
    mismatches = []
    for y, row in enumerate(board):
        for x in range(width // 2):
            cell = row[x]
            mirror = row[mirror_x(x, width)]
            if cell.occupied != mirror.occupied or (cell.occupied and cell.color != mirror.color):
                mismatches.append((x, y))
    return mismatches


def validate_board(board, config: LevelConfig, tolerance: int = 0) -> ValidationReport:
    """
    Check a canonical board against its config.

    Checks run in order: total count, color set, per-color divisibility,
    connectivity, lock/key pairing, pipe directions. The first failure
    raises.

    Args:
        board: Canonical board.
        config: Config the board was generated for.
        tolerance: How far (in cells) a color total may sit from the
            nearest multiple of the divisor.

    Returns:
        ValidationReport for the passing board.

    Raises:
        ValidationError: On the first failed check.
    """
    counts = count_colors(board)
    total = sum(counts.values())
    if total != config.block_count:
        raise ValidationError(CHECK_COUNT, config.block_count, total)

    allowed = set(config.colors)
    unknown = sorted(c for c in counts if c not in allowed)
    if unknown:
        raise ValidationError(CHECK_COLORS, sorted(allowed), unknown, "colors outside the selection")

    divisor = effective_divisor(config.block_count, len(config.colors))
    for color in config.colors:
        count = counts.get(color, 0)
        if _distance_to_multiple(count, divisor) > tolerance:
            raise ValidationError(CHECK_DIVISIBILITY, f"multiple of {divisor}", count, f"color {color}")

    if not is_connected(board):
        raise ValidationError(CHECK_CONNECTIVITY, "one connected component", "disconnected")

    check_lock_pairs(board)
    check_pipe_directions(board)

    return ValidationReport(
        total=total,
        block_cells=len(occupied_positions(board)),
        divisor=divisor,
        color_counts=dict(counts),
    )


def is_valid(board, config: LevelConfig, tolerance: int = 0) -> bool:
    try:
        validate_board(board, config, tolerance)
    except ValidationError:
        return False
    return True
