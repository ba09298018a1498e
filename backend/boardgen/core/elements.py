"""Special element placement on canonical boards.

Used by the legacy generator: elements are attached to blocks that were
already grown, so every housing conversion costs one colored cell that
the content pass later makes up for.
"""
import logging
import random
from collections import defaultdict
from typing import Dict, List, Optional, Sequence

from ..errors import ElementPlacementShortfall
from ..models.level import (
    BoardCell,
    CELL_BLOCK,
    Difficulty,
    Element,
    LevelConfig,
    PIPE_SIZE_RANGES,
    normalize_element_name,
)
from .geometry import (
    Position,
    board_size,
    frontier,
    has_occupied_neighbor,
    is_center_column,
    mirror_direction,
    mirror_x,
    open_run_length,
    valid_moving_directions,
    valid_pipe_directions,
    valid_pull_pin_directions,
)

logger = logging.getLogger(__name__)

DURABILITY_RANGE = (1, 3)
MOVING_DISTANCE_RANGE = (1, 3)
MAX_GATE_SIZE = 3


def sample_pipe_size(difficulty: Difficulty, rng: random.Random) -> int:
    low, high = PIPE_SIZE_RANGES[Difficulty(difficulty)]
    return rng.randint(low, high)


def _sizes_for(
    count: int,
    per_instance: Optional[Sequence[int]],
    fixed: Optional[int],
    difficulty: Difficulty,
    rng: random.Random,
    mirrored: bool = False,
) -> List[int]:
    sizes = []
    for i in range(count):
        if per_instance and i < len(per_instance):
            sizes.append(per_instance[i])
        elif fixed:
            sizes.append(fixed)
        elif mirrored and i % 2 == 1:
            # Mirrored instances are placed in pairs and share a capacity
            sizes.append(sizes[i - 1])
        else:
            sizes.append(sample_pipe_size(difficulty, rng))
    return sizes


def pipe_sizes_for(config: LevelConfig, rng: random.Random) -> List[int]:
    """Capacity of each requested pipe: per-instance override, fixed override, or sampled."""
    return _sizes_for(
        config.element_count(Element.PIPE),
        config.pipe_block_counts,
        config.pipe_block_count,
        config.difficulty,
        rng,
        mirrored=config.symmetric,
    )


def moving_sizes_for(config: LevelConfig, rng: random.Random) -> List[int]:
    """Capacity of each requested moving belt, sized like pipes."""
    return _sizes_for(
        config.element_count(Element.MOVING),
        config.moving_block_counts,
        config.moving_block_count,
        config.difficulty,
        rng,
        mirrored=config.symmetric,
    )


def durability_for(overrides: Optional[Sequence[int]], index: int, rng: random.Random) -> int:
    """Hit count for a bomb or ice block."""
    if overrides and index < len(overrides):
        return overrides[index]
    return rng.randint(*DURABILITY_RANGE)


class ElementPlacer:
    """Attaches mechanics to an already grown canonical board."""

    RETRY_FACTOR = 3

    def __init__(
        self,
        board: List[List[BoardCell]],
        config: LevelConfig,
        rng: random.Random,
        pipe_sizes: Optional[List[int]] = None,
        moving_sizes: Optional[List[int]] = None,
        caps: Optional[Dict[Element, int]] = None,
    ):
        self.board = board
        self.config = config
        self.rng = rng
        self.width, self.height = board_size(board)
        self.symmetric = config.symmetric
        self.pipe_sizes = list(pipe_sizes) if pipe_sizes is not None else pipe_sizes_for(config, rng)
        self.moving_sizes = list(moving_sizes) if moving_sizes is not None else moving_sizes_for(config, rng)
        # Upper bounds for housings that need a grown block of their own
        self.caps = dict(caps or {})
        self.positions: Dict[Element, List[Position]] = defaultdict(list)
        self.shortfalls: List[ElementPlacementShortfall] = []
        self._lock_counter = 0
        self._handlers = {
            Element.PIPE: self._make_pipe,
            Element.BLOCK_LOCK: self._make_lock,
            Element.BOMB: self._make_bomb,
            Element.ICE_BLOCK: self._make_ice,
            Element.BARREL: self._make_barrel,
            Element.PULL_PIN: self._make_pull_pin,
            Element.MOVING: self._make_moving,
        }

    def requested(self) -> Dict[Element, int]:
        counts: Dict[Element, int] = {}
        for name, count in self.config.requested_elements().items():
            element = normalize_element_name(name)
            if element is None or element == Element.KEY:
                # Keys are placed together with their locks
                continue
            counts[element] = counts.get(element, 0) + count
        return counts

    def place_all(self) -> List[ElementPlacementShortfall]:
        """Place every requested element type, in shuffled order."""
        order = list(self.requested().items())
        self.rng.shuffle(order)
        for element, count in order:
            self.place(element, count)
        return self.shortfalls

    def place(self, element: Element, count: int) -> int:
        """Place up to count instances of one element type. Returns how many were placed."""
        if count <= 0:
            return 0
        limit = count
        reason = "no valid position"
        if element == Element.PIPE and len(self.pipe_sizes) < count:
            limit = len(self.pipe_sizes)
            reason = "not enough blocks for pipe contents"
        elif element == Element.MOVING and len(self.moving_sizes) < count:
            limit = len(self.moving_sizes)
            reason = "not enough blocks for belt contents"
        if element in self.caps and self.caps[element] < limit:
            limit = self.caps[element]
            reason = "no free cell for the housing"

        if self.symmetric:
            placed = self._place_mirrored(element, limit)
        else:
            placed = self._place_scattered(element, limit)

        if placed < count:
            shortfall = ElementPlacementShortfall(element.value, count, placed, reason)
            self.shortfalls.append(shortfall)
            logger.warning(f"Placed {placed}/{count} {element.value}: {reason}")
        return placed

    def content_holders(self) -> List[BoardCell]:
        """Pipes then belts, each in placement order."""
        holders = []
        for element in (Element.PIPE, Element.MOVING):
            for x, y in self.positions.get(element, []):
                holders.append(self.board[y][x])
        return holders

    # ---- candidate selection ----

    def _plain_positions(self, max_x: Optional[int] = None) -> List[Position]:
        return [
            (x, y)
            for y, row in enumerate(self.board)
            for x, cell in enumerate(row)
            if cell.is_plain and (max_x is None or x <= max_x)
        ]

    def _candidates(self, element: Element) -> List[Position]:
        max_x = (self.width - 1) // 2 if self.symmetric else None
        if element == Element.BARRIER:
            candidates = frontier(self.board, max_x=max_x)
        else:
            candidates = self._plain_positions(max_x)
        self.rng.shuffle(candidates)
        return candidates

    def _site_ok(self, element: Element, pos: Position) -> bool:
        cell = self.board[pos[1]][pos[0]]
        if element == Element.BARRIER:
            return not cell.occupied
        return cell.is_plain

    def _mirror_attached(self, pos: Position, mirror: Position) -> bool:
        """A new block at mirror touches the cluster or its partner at pos."""
        return abs(mirror[0] - pos[0]) == 1 or has_occupied_neighbor(self.board, *mirror)

    def _place_scattered(self, element: Element, count: int) -> int:
        placed = 0
        candidates = self._candidates(element)
        budget = self.RETRY_FACTOR * max(len(candidates), 1)
        attempts = 0
        while placed < count and candidates and attempts < budget:
            pos = candidates[attempts % len(candidates)]
            attempts += 1
            if self._place_one(element, pos, placed):
                placed += 1
                if element == Element.BARRIER:
                    candidates = self._candidates(element)
        return placed

    def _place_mirrored(self, element: Element, count: int) -> int:
        placed = 0
        candidates = self._candidates(element)
        # Pairs first, then a center single for an odd remainder
        candidates.sort(key=lambda p: is_center_column(p[0], self.width))
        for pos in candidates:
            if placed >= count:
                break
            if not self._site_ok(element, pos):
                continue
            if is_center_column(pos[0], self.width):
                # The center column only takes the odd one out
                if (count - placed) % 2 == 1 and self._place_one(element, pos, placed):
                    placed += 1
                continue
            if count - placed < 2:
                continue
            mirror = (mirror_x(pos[0], self.width), pos[1])
            if not self._site_ok(element, mirror):
                continue
            if element == Element.BARRIER and not self._mirror_attached(pos, mirror):
                continue
            color = self.board[pos[1]][pos[0]].color
            if not self._place_one(element, pos, placed):
                continue
            template = self.board[pos[1]][pos[0]]
            if self._place_one(element, mirror, placed + 1, template=template):
                placed += 2
            else:
                self._rollback(element, pos, color)
        return placed

    # ---- per-element construction ----

    def _place_one(self, element: Element, pos: Position, index: int,
                   template: Optional[BoardCell] = None) -> bool:
        x, y = pos
        cell = self.board[y][x]
        if element == Element.BARRIER:
            if cell.occupied:
                return False
            self.board[y][x] = BoardCell(type=CELL_BLOCK, element=Element.BARRIER.value)
            self.positions[element].append(pos)
            return True
        if not cell.is_plain:
            return False
        handler = self._handlers.get(element)
        if handler is None or not handler(cell, x, y, index, template):
            return False
        self.positions[element].append(pos)
        return True

    def _rollback(self, element: Element, pos: Position, color: Optional[str]) -> None:
        x, y = pos
        cell = self.board[y][x]
        if element == Element.BARRIER:
            self.board[y][x] = BoardCell.empty()
        else:
            if element == Element.BLOCK_LOCK:
                for row in self.board:
                    for other in row:
                        if other.element == Element.KEY.value and other.key_id == cell.lock_id:
                            other.clear_element()
            cell.clear_element()
            cell.color = color
        self.positions[element].remove(pos)

    def _pick_direction(self, valid: List[str], template_direction: Optional[str]) -> Optional[str]:
        if template_direction is not None:
            wanted = mirror_direction(template_direction)
            return wanted if wanted in valid else None
        return self.rng.choice(valid) if valid else None

    def _make_pipe(self, cell, x, y, index, template) -> bool:
        direction = self._pick_direction(
            valid_pipe_directions(self.board, x, y),
            template.pipe_direction if template else None,
        )
        if direction is None:
            return False
        cell.color = None
        cell.element = Element.PIPE.value
        cell.pipe_direction = direction
        cell.pipe_size = template.pipe_size if template else self.pipe_sizes[index]
        cell.pipe_contents = []
        return True

    def _make_lock(self, cell, x, y, index, template) -> bool:
        key_sites = [p for p in self._plain_positions() if p != (x, y)]
        if not key_sites:
            # Rolled back: a lock without a key is never placed
            return False
        self._lock_counter += 1
        lock_id = f"lock_{self._lock_counter}"
        kx, ky = self.rng.choice(key_sites)
        key = self.board[ky][kx]
        key.element = Element.KEY.value
        key.key_id = lock_id
        key.lock_pair_number = self._lock_counter
        cell.element = Element.BLOCK_LOCK.value
        cell.lock_id = lock_id
        cell.lock_pair_number = self._lock_counter
        return True

    def _make_bomb(self, cell, x, y, index, template) -> bool:
        cell.element = Element.BOMB.value
        cell.bomb_count = template.bomb_count if template else \
            durability_for(self.config.bomb_counts, index, self.rng)
        return True

    def _make_ice(self, cell, x, y, index, template) -> bool:
        cell.element = Element.ICE_BLOCK.value
        cell.ice_count = template.ice_count if template else \
            durability_for(self.config.ice_counts, index, self.rng)
        return True

    def _make_barrel(self, cell, x, y, index, template) -> bool:
        cell.element = Element.BARREL.value
        return True

    def _make_pull_pin(self, cell, x, y, index, template) -> bool:
        direction = self._pick_direction(
            valid_pull_pin_directions(self.board, x, y),
            template.pull_pin_direction if template else None,
        )
        if direction is None:
            return False
        room = open_run_length(self.board, x, y, direction, MAX_GATE_SIZE)
        gate = template.pull_pin_gate_size if template else self.rng.randint(1, MAX_GATE_SIZE)
        cell.color = None
        cell.element = Element.PULL_PIN.value
        cell.pull_pin_direction = direction
        cell.pull_pin_gate_size = min(gate, room)
        return True

    def _make_moving(self, cell, x, y, index, template) -> bool:
        if template:
            distance = template.moving_distance
            valid = valid_moving_directions(self.board, x, y, distance)
        else:
            distance = self.rng.randint(*MOVING_DISTANCE_RANGE)
            valid = valid_moving_directions(self.board, x, y, distance)
            if not valid:
                distance = 1
                valid = valid_moving_directions(self.board, x, y, distance)
        direction = self._pick_direction(valid, template.moving_direction if template else None)
        if direction is None:
            return False
        cell.color = None
        cell.element = Element.MOVING.value
        cell.moving_direction = direction
        cell.moving_distance = distance
        cell.moving_size = template.moving_size if template else self.moving_sizes[index]
        cell.moving_contents = []
        return True
