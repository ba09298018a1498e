"""Grid geometry helpers: adjacency, connectivity, frontier and mirroring.

Boards are indexed board[y][x]. Any cell object exposing an ``occupied``
property works, so the same helpers serve the canonical and classified
cell schemas.
"""
from collections import deque
from typing import Dict, List, Optional, Set, Tuple

from ..models.level import Direction

Position = Tuple[int, int]

DIRECTION_OFFSETS: Dict[str, Tuple[int, int]] = {
    Direction.UP.value: (0, -1),
    Direction.DOWN.value: (0, 1),
    Direction.LEFT.value: (-1, 0),
    Direction.RIGHT.value: (1, 0),
}
DIRECTIONS = tuple(DIRECTION_OFFSETS)

_MIRRORED = {"left": "right", "right": "left", "up": "up", "down": "down"}


def board_size(board) -> Tuple[int, int]:
    """Return (width, height)."""
    height = len(board)
    width = len(board[0]) if height else 0
    return width, height


def in_bounds(x: int, y: int, width: int, height: int) -> bool:
    return 0 <= x < width and 0 <= y < height


def neighbors(x: int, y: int, width: int, height: int) -> List[Position]:
    """4-neighbors of (x, y) that lie inside the grid."""
    result = []
    for dx, dy in DIRECTION_OFFSETS.values():
        nx, ny = x + dx, y + dy
        if in_bounds(nx, ny, width, height):
            result.append((nx, ny))
    return result


def step(x: int, y: int, direction: str, distance: int = 1) -> Position:
    dx, dy = DIRECTION_OFFSETS[direction]
    return x + dx * distance, y + dy * distance


def mirror_x(x: int, width: int) -> int:
    return width - 1 - x


def mirror_direction(direction: str) -> str:
    """Reflect a direction across the vertical axis."""
    return _MIRRORED[direction]


def is_center_column(x: int, width: int) -> bool:
    return x == mirror_x(x, width)


def occupied_positions(board) -> List[Position]:
    return [
        (x, y)
        for y, row in enumerate(board)
        for x, cell in enumerate(row)
        if cell.occupied
    ]


def has_occupied_neighbor(board, x: int, y: int) -> bool:
    width, height = board_size(board)
    return any(board[ny][nx].occupied for nx, ny in neighbors(x, y, width, height))


def connected_component(board, start: Position, skip: Optional[Position] = None) -> Set[Position]:
    """BFS over occupied cells from start, optionally treating one cell as empty."""
    width, height = board_size(board)
    seen = {start}
    queue = deque([start])
    while queue:
        x, y = queue.popleft()
        for nx, ny in neighbors(x, y, width, height):
            pos = (nx, ny)
            if pos in seen or pos == skip or not board[ny][nx].occupied:
                continue
            seen.add(pos)
            queue.append(pos)
    return seen


def connected_component_size(board, start: Position) -> int:
    return len(connected_component(board, start))


def is_connected(board) -> bool:
    """True when all occupied cells form one 4-connected component."""
    occupied = occupied_positions(board)
    if not occupied:
        return True
    return len(connected_component(board, occupied[0])) == len(occupied)


def is_removable(board, x: int, y: int) -> bool:
    """True when emptying (x, y) keeps the remaining blocks connected."""
    remaining = [p for p in occupied_positions(board) if p != (x, y)]
    if not remaining:
        return True
    return len(connected_component(board, remaining[0], skip=(x, y))) == len(remaining)


def frontier(board, max_x: Optional[int] = None) -> List[Position]:
    """Empty cells 4-adjacent to at least one occupied cell, row-major order.

    Args:
        board: Grid of cells.
        max_x: When given, only columns 0..max_x are returned (the left
            half plus center used by symmetric growth).
    """
    width, height = board_size(board)
    result = []
    for y in range(height):
        for x in range(width):
            if max_x is not None and x > max_x:
                continue
            if board[y][x].occupied:
                continue
            if has_occupied_neighbor(board, x, y):
                result.append((x, y))
    return result


def valid_pipe_directions(board, x: int, y: int) -> List[str]:
    """Directions whose adjacent cell is in-grid and occupied."""
    width, height = board_size(board)
    result = []
    for direction in DIRECTIONS:
        nx, ny = step(x, y, direction)
        if in_bounds(nx, ny, width, height) and board[ny][nx].occupied:
            result.append(direction)
    return result


def open_run_length(board, x: int, y: int, direction: str, limit: int) -> int:
    """Number of consecutive empty in-grid cells from (x, y) toward direction."""
    width, height = board_size(board)
    length = 0
    cx, cy = x, y
    while length < limit:
        cx, cy = step(cx, cy, direction)
        if not in_bounds(cx, cy, width, height) or board[cy][cx].occupied:
            break
        length += 1
    return length


def valid_pull_pin_directions(board, x: int, y: int) -> List[str]:
    """Directions with at least one empty in-grid cell for the gate to open into."""
    return [d for d in DIRECTIONS if open_run_length(board, x, y, d, 1) > 0]


def valid_moving_directions(board, x: int, y: int, distance: int = 1) -> List[str]:
    """Directions with at least distance empty in-grid cells ahead for the belt to travel."""
    return [d for d in DIRECTIONS if open_run_length(board, x, y, d, distance) >= distance]
