"""Connected block placement (random and mirror-symmetric growth)."""
import logging
import random
from collections import Counter
from typing import Any, Callable, List, Optional, Sequence

from ..errors import PlacementExhaustedError
from .geometry import (
    Position,
    board_size,
    frontier,
    has_occupied_neighbor,
    in_bounds,
    is_center_column,
    mirror_x,
    occupied_positions,
)

logger = logging.getLogger(__name__)

# Template offsets relative to the seed, left half and center only.
# Ordered so every offset touches an earlier one.
SYMMETRIC_TEMPLATES = {
    "cross": [(0, -1), (0, 1), (-1, 0), (-2, 0), (0, -2), (0, 2), (-3, 0)],
    "diamond": [(0, -1), (-1, 0), (0, 1), (-1, -1), (-1, 1), (0, -2), (-2, 0), (0, 2)],
    "freeform": [],
}


class ConnectedPlacementEngine:
    """Grows a single 4-connected cluster of blocks on a board.

    The engine only knows about occupancy; ``make_block(color)`` builds the
    cell objects, so it is shared by both cell schemas.
    """

    def __init__(self, board, rng: random.Random, make_block: Callable[[Optional[str]], Any]):
        self.board = board
        self.rng = rng
        self.make_block = make_block
        self.width, self.height = board_size(board)
        self.placed: List[Position] = []
        # Blocks that symmetric growth had to place without a mirror partner
        self.unmirrored = 0
        self._has_blocks = bool(occupied_positions(board))

    @property
    def center_x(self) -> int:
        """Rightmost column of the left half (the center column for odd widths)."""
        return (self.width - 1) // 2

    def _put(self, pos: Position, color: Optional[str]) -> None:
        x, y = pos
        self.board[y][x] = self.make_block(color)
        self.placed.append(pos)
        self._has_blocks = True

    def _seed(self) -> Position:
        return self.center_x, self.height // 2

    def _next_position(self) -> Optional[Position]:
        if not self._has_blocks:
            return self._seed()
        candidates = frontier(self.board)
        if not candidates:
            return None
        return self.rng.choice(candidates)

    def place_random(self, colors: Sequence[Optional[str]]) -> List[Position]:
        """
        Place one block per color, each on a uniformly random frontier cell.

        Raises:
            PlacementExhaustedError: If the frontier empties before all
                colors are placed.
        """
        positions = []
        for i, color in enumerate(colors):
            pos = self._next_position()
            if pos is None:
                raise PlacementExhaustedError(len(colors), i)
            self._put(pos, color)
            positions.append(pos)
        return positions

    def grow_extra(self, color: Optional[str]) -> Position:
        """Attach one more block to the cluster."""
        return self.place_random([color])[0]

    # ---- symmetric growth ----

    def _mirror(self, pos: Position) -> Position:
        return mirror_x(pos[0], self.width), pos[1]

    def _mirror_ok(self, pos: Position) -> bool:
        mx, my = self._mirror(pos)
        if self.board[my][mx].occupied:
            return False
        return abs(mx - pos[0]) == 1 or has_occupied_neighbor(self.board, mx, my)

    def _pair_color(self, remaining: Counter, order: List[str]) -> Optional[str]:
        eligible = [c for c in order if remaining[c] >= 2]
        return self.rng.choice(eligible) if eligible else None

    def _single_color(self, remaining: Counter, order: List[str]) -> Optional[str]:
        odd = [c for c in order if remaining[c] % 2 == 1]
        if odd:
            return self.rng.choice(odd)
        left = [c for c in order if remaining[c] > 0]
        return self.rng.choice(left) if left else None

    def _place_site(self, pos: Position, remaining: Counter, order: List[str]) -> bool:
        """Place a center single or a mirrored pair at pos."""
        if is_center_column(pos[0], self.width):
            color = self._single_color(remaining, order)
            if color is None:
                return False
            self._put(pos, color)
            remaining[color] -= 1
            return True
        color = self._pair_color(remaining, order)
        if color is None or not self._mirror_ok(pos):
            return False
        self._put(pos, color)
        self._put(self._mirror(pos), color)
        remaining[color] -= 2
        return True

    def _apply_template(self, name: str, seed: Position, remaining: Counter, order: List[str]) -> None:
        sx, sy = seed
        for dx, dy in SYMMETRIC_TEMPLATES[name]:
            if sum(remaining.values()) == 0:
                return
            x, y = sx + dx, sy + dy
            if not in_bounds(x, y, self.width, self.height) or x > self.center_x:
                continue
            if self.board[y][x].occupied or not has_occupied_neighbor(self.board, x, y):
                continue
            self._place_site((x, y), remaining, order)

    def place_symmetric(self, colors: Sequence[str], retries: int = 5) -> List[Position]:
        """
        Place blocks mirrored across the vertical center axis.

        Mirrored pairs share one color. Colors with an odd count get a
        center-column single first so the rest can be placed in pairs.
        After ``retries`` consecutive rejected candidates, or when an
        unpaired block has no center cell to go to, the remaining blocks
        are placed without the mirror constraint and counted in
        ``unmirrored``.

        Args:
            colors: Color multiset to place, in shuffled order.
            retries: Consecutive rejections tolerated before giving up on
                symmetry.

        Returns:
            Positions placed by this call.
        """
        start = len(self.placed)
        remaining = Counter(colors)
        order = list(dict.fromkeys(colors))
        has_center = self.width % 2 == 1

        if not self._has_blocks and colors:
            seed = self._seed()
            if self._place_site(seed, remaining, order):
                template = self.rng.choice(list(SYMMETRIC_TEMPLATES))
                logger.debug(f"Symmetric growth using '{template}' template")
                self._apply_template(template, seed, remaining, order)
            else:
                # Even width with a single block left
                self._put(seed, self._single_color(remaining, order))
                self.unmirrored += 1
                remaining[self.board[seed[1]][seed[0]].color] -= 1

        rejections = 0
        while sum(remaining.values()) > 0 and rejections < retries:
            candidates = frontier(self.board, max_x=self.center_x)
            if not candidates:
                break
            center = [p for p in candidates if is_center_column(p[0], self.width)]
            sides = [p for p in candidates if not is_center_column(p[0], self.width)]
            needs_single = any(remaining[c] % 2 == 1 for c in order)

            if has_center and center and (needs_single or not sides):
                pos = self.rng.choice(center)
            elif sides and self._pair_color(remaining, order) is not None:
                pos = self.rng.choice(sides)
            else:
                break

            if self._place_site(pos, remaining, order):
                rejections = 0
            else:
                rejections += 1

        leftover = [c for c in order for _ in range(remaining[c])]
        if leftover:
            logger.warning(
                f"Symmetric growth stopped with {len(leftover)} block(s) left; "
                f"placing them without mirroring"
            )
            self.unmirrored += len(leftover)
            self.place_random(leftover)
        return self.placed[start:]
