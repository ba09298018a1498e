"""Primary generator built on a classification-aware cell schema.

Cells here know whether they are plain color blocks, color elements
(bomb, ice, barrel, lock) or non-color elements (pipe, barrier). Every
cell count is planned up front and must come out exact; anything the
generator cannot satisfy raises so the caller can fall back to the
legacy generator. Cells are converted to BoardCell before they leave
this module.
"""
import logging
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..errors import (
    ElementPlacementShortfall,
    UnsupportedElementError,
    ValidationError,
)
from ..models.level import (
    BoardCell,
    Element,
    GeneratedLevel,
    LevelConfig,
    normalize_element_name,
)
from .assembly import build_level
from .distribution import plan_colors
from .elements import durability_for, pipe_sizes_for
from .geometry import (
    Position,
    frontier,
    has_occupied_neighbor,
    is_center_column,
    mirror_direction,
    mirror_x,
    valid_pipe_directions,
    step,
)
from .placement import ConnectedPlacementEngine
from .rebalance import ColorUnit, collect_units, fill_contents, rebalance
from .validator import CHECK_SYMMETRY, check_symmetry, validate_board

logger = logging.getLogger(__name__)

CLASSIFIED_EMPTY = "empty"
CLASSIFIED_BLOCK = "block"
CLASSIFIED_ELEMENT = "element"


class ElementType(str, Enum):
    """Element kinds known to the classified schema."""
    PIPE = "pipe"
    BLOCK_LOCK = "block_lock"
    KEY = "key"
    BOMB = "bomb"
    ICE = "ice"
    BARREL = "barrel"
    BARRIER = "barrier"


COLOR_ELEMENTS = (ElementType.BOMB, ElementType.ICE, ElementType.BARREL, ElementType.BLOCK_LOCK)

SUPPORTED_ELEMENTS: Dict[Element, ElementType] = {
    Element.PIPE: ElementType.PIPE,
    Element.BLOCK_LOCK: ElementType.BLOCK_LOCK,
    Element.BOMB: ElementType.BOMB,
    Element.ICE_BLOCK: ElementType.ICE,
    Element.BARREL: ElementType.BARREL,
    Element.BARRIER: ElementType.BARRIER,
}


@dataclass
class ClassifiedCell:
    """Cell of the classified schema."""
    type: str = CLASSIFIED_EMPTY
    color: Optional[str] = None
    is_color_element: bool = False
    element_type: Optional[ElementType] = None
    element_properties: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def color_block(cls, color: Optional[str]) -> "ClassifiedCell":
        return cls(type=CLASSIFIED_BLOCK, color=color)

    @classmethod
    def color_element(cls, element_type: ElementType, color: str, **properties) -> "ClassifiedCell":
        return cls(
            type=CLASSIFIED_ELEMENT,
            color=color,
            is_color_element=True,
            element_type=element_type,
            element_properties=properties,
        )

    @classmethod
    def non_color_element(cls, element_type: ElementType, **properties) -> "ClassifiedCell":
        return cls(type=CLASSIFIED_ELEMENT, element_type=element_type, element_properties=properties)

    @property
    def occupied(self) -> bool:
        return self.type != CLASSIFIED_EMPTY

    @property
    def is_plain(self) -> bool:
        return self.type == CLASSIFIED_BLOCK and self.element_type is None

    def to_board_cell(self) -> BoardCell:
        """Convert to the canonical BoardCell."""
        if not self.occupied:
            return BoardCell.empty()
        props = self.element_properties
        cell = BoardCell.block(self.color)
        kind = self.element_type
        if kind is None:
            return cell
        if kind == ElementType.KEY:
            cell.element = Element.KEY.value
            cell.key_id = props["key_id"]
            cell.lock_pair_number = props.get("pair_number")
        elif kind == ElementType.BLOCK_LOCK:
            cell.element = Element.BLOCK_LOCK.value
            cell.lock_id = props["lock_id"]
            cell.lock_pair_number = props.get("pair_number")
        elif kind == ElementType.BOMB:
            cell.element = Element.BOMB.value
            cell.bomb_count = props.get("durability")
        elif kind == ElementType.ICE:
            cell.element = Element.ICE_BLOCK.value
            cell.ice_count = props.get("durability")
        elif kind == ElementType.BARREL:
            cell.element = Element.BARREL.value
        elif kind == ElementType.PIPE:
            contents = list(props.get("pipe_contents", []))
            cell.color = None
            cell.element = Element.PIPE.value
            cell.pipe_direction = props["pipe_direction"]
            cell.pipe_contents = contents
            cell.pipe_size = len(contents)
        elif kind == ElementType.BARRIER:
            cell.color = None
            cell.element = Element.BARRIER.value
        return cell


def to_canonical(board: List[List[ClassifiedCell]]) -> List[List[BoardCell]]:
    return [[cell.to_board_cell() for cell in row] for row in board]


class _ClassifiedBoard:
    """Mutable board state for one generation attempt."""

    def __init__(self, config: LevelConfig, rng: random.Random, symmetric_retries: int):
        self.config = config
        self.rng = rng
        self.width = config.width
        self.height = config.height
        self.symmetric = config.symmetric
        self.symmetric_retries = symmetric_retries
        self.cells = [[ClassifiedCell() for _ in range(self.width)] for _ in range(self.height)]
        self.engine = ConnectedPlacementEngine(self.cells, rng, ClassifiedCell.color_block)
        self.pipes: List[ClassifiedCell] = []
        self.shortfalls: List[ElementPlacementShortfall] = []
        self._lock_counter = 0

    def cell(self, pos: Position) -> ClassifiedCell:
        return self.cells[pos[1]][pos[0]]

    def set(self, pos: Position, cell: ClassifiedCell) -> None:
        self.cells[pos[1]][pos[0]] = cell

    def grow(self, colors: List[str]) -> None:
        if self.symmetric:
            self.engine.place_symmetric(colors, self.symmetric_retries)
        else:
            self.engine.place_random(colors)

    def _mirror(self, pos: Position) -> Position:
        return mirror_x(pos[0], self.width), pos[1]

    def _mirror_ok(self, pos: Position) -> bool:
        mx, my = self._mirror(pos)
        if self.cells[my][mx].occupied:
            return False
        return abs(mx - pos[0]) == 1 or has_occupied_neighbor(self.cells, mx, my)

    def sites(self, remaining: int) -> List[Position]:
        """Frontier cells for the next element: a mirrored pair or a single."""
        if not self.symmetric:
            candidates = frontier(self.cells)
            return [self.rng.choice(candidates)] if candidates else []
        candidates = frontier(self.cells, max_x=(self.width - 1) // 2)
        center = [p for p in candidates if is_center_column(p[0], self.width)]
        sides = [p for p in candidates if not is_center_column(p[0], self.width)]
        paired = [p for p in sides if self._mirror_ok(p)]
        if remaining >= 2 and paired:
            pos = self.rng.choice(paired)
            return [pos, self._mirror(pos)]
        if center:
            return [self.rng.choice(center)]
        if sides:
            raise ValidationError(
                CHECK_SYMMETRY, "mirrored pair or center cell", "unpaired element",
                f"{remaining} element(s) left and no mirror site on the frontier",
            )
        return []

    def take_color(self, pool: List[str], paired: bool) -> str:
        """Pop a color from pool; a mirrored pair consumes two of the same color."""
        if paired:
            for i, color in enumerate(pool):
                if pool.count(color) >= 2:
                    pool.pop(i)
                    pool.remove(color)
                    return color
            color = pool.pop(0)
            if pool:
                pool.pop(0)
            return color
        return pool.pop(0)

    def record_shortfall(self, element: Element, requested: int, placed: int, reason: str) -> None:
        shortfall = ElementPlacementShortfall(element.value, requested, placed, reason)
        self.shortfalls.append(shortfall)
        logger.warning(f"Placed {placed}/{requested} {element.value}: {reason}")

    # ---- color elements ----

    def _element_cell(self, kind: ElementType, color: str, index: int) -> ClassifiedCell:
        if kind == ElementType.BOMB:
            return ClassifiedCell.color_element(
                kind, color, durability=durability_for(self.config.bomb_counts, index, self.rng))
        if kind == ElementType.ICE:
            return ClassifiedCell.color_element(
                kind, color, durability=durability_for(self.config.ice_counts, index, self.rng))
        if kind == ElementType.BLOCK_LOCK:
            self._lock_counter += 1
            return ClassifiedCell.color_element(
                kind, color, lock_id=f"lock_{self._lock_counter}", pair_number=self._lock_counter)
        return ClassifiedCell.color_element(kind, color)

    def _attach_key(self, lock_pos: Position) -> bool:
        lock = self.cell(lock_pos)
        candidates = [
            (x, y)
            for y, row in enumerate(self.cells)
            for x, cell in enumerate(row)
            if cell.is_plain
        ]
        if not candidates:
            return False
        key = self.cell(self.rng.choice(candidates))
        key.element_type = ElementType.KEY
        key.is_color_element = True
        key.element_properties = {
            "key_id": lock.element_properties["lock_id"],
            "pair_number": lock.element_properties["pair_number"],
        }
        return True

    def place_color_elements(self, kind: ElementType, element: Element, count: int, pool: List[str]) -> None:
        placed = 0
        while placed < count and pool:
            sites = self.sites(count - placed)
            if not sites:
                break
            color = self.take_color(pool, paired=len(sites) == 2)
            for pos in sites:
                self.set(pos, self._element_cell(kind, color, placed))
                if kind == ElementType.BLOCK_LOCK and not self._attach_key(pos):
                    # No plain block for the key: keep the color, drop the lock
                    self.set(pos, ClassifiedCell.color_block(color))
                    continue
                placed += 1
            if kind == ElementType.BLOCK_LOCK and placed < count and not any(
                    self.cell(p).element_type == ElementType.BLOCK_LOCK for p in sites):
                break
        if placed < count:
            self.record_shortfall(element, count, placed, "no frontier or key position")

    def place_barriers(self, count: int) -> None:
        placed = 0
        while placed < count:
            sites = self.sites(count - placed)
            if not sites:
                break
            for pos in sites:
                self.set(pos, ClassifiedCell.non_color_element(ElementType.BARRIER))
                placed += 1
        if placed < count:
            self.record_shortfall(Element.BARRIER, count, placed, "no frontier cell")

    # ---- pipes ----

    def _pipe_direction(self, pos: Position, mirrored_from: Optional[str]) -> Optional[str]:
        valid = valid_pipe_directions(self.cells, *pos)
        if not valid:
            return None
        if mirrored_from is not None and mirror_direction(mirrored_from) in valid:
            return mirror_direction(mirrored_from)
        colored = []
        for direction in valid:
            tx, ty = step(pos[0], pos[1], direction)
            if self.cells[ty][tx].color is not None:
                colored.append(direction)
        return self.rng.choice(colored or valid)

    def place_pipes(self, sizes: List[int]) -> None:
        placed = 0
        while placed < len(sizes):
            sites = self.sites(len(sizes) - placed)
            if not sites:
                break
            previous = None
            before = placed
            for pos in sites:
                direction = self._pipe_direction(pos, previous)
                if direction is None:
                    continue
                cell = ClassifiedCell.non_color_element(
                    ElementType.PIPE,
                    pipe_direction=direction,
                    pipe_capacity=sizes[placed],
                    pipe_contents=[],
                )
                self.set(pos, cell)
                self.pipes.append(cell)
                previous = direction
                placed += 1
            if placed == before:
                break
        if placed < len(sizes):
            self.record_shortfall(Element.PIPE, len(sizes), placed, "no frontier cell")

    def fill_pipes(self, pool: List[str]) -> List[str]:
        containers = [
            (pipe.element_properties["pipe_contents"], pipe.element_properties["pipe_capacity"])
            for pipe in self.pipes
        ]
        return fill_contents(containers, pool)

    def color_units(self) -> List[ColorUnit]:
        return collect_units(
            self.cells,
            self.symmetric,
            lambda cell: cell.element_type == ElementType.BLOCK_LOCK,
            [pipe.element_properties["pipe_contents"] for pipe in self.pipes],
        )


class ClassifiedLevelGenerator:
    """Primary generator: exact counts or an exception."""

    name = "classified"

    def __init__(self, symmetric_retries: int = 5):
        self.symmetric_retries = symmetric_retries

    def classify(self, config: LevelConfig) -> Dict[ElementType, int]:
        """
        Map requested mechanics to classified element types.

        Raises:
            UnsupportedElementError: For mechanics this generator cannot place.
        """
        requested: Dict[ElementType, int] = {}
        for name, count in config.requested_elements().items():
            element = normalize_element_name(name)
            if element == Element.KEY:
                continue
            kind = SUPPORTED_ELEMENTS.get(element)
            if kind is None:
                raise UnsupportedElementError(name, self.name)
            requested[kind] = requested.get(kind, 0) + count
        return requested

    def generate(self, config: LevelConfig, rng: Optional[random.Random] = None) -> GeneratedLevel:
        """
        Generate a level with exact counts.

        Raises:
            UnsupportedElementError: A requested mechanic is not supported.
            DistributionError: The counts cannot be planned exactly.
            PlacementExhaustedError: The grid has no room left to grow.
            ValidationError: The finished board breaks an invariant.
        """
        rng = rng or random.Random()
        requested = self.classify(config)
        pipe_sizes = pipe_sizes_for(config, rng) if requested.get(ElementType.PIPE) else []
        color_elements = sum(requested.get(kind, 0) for kind in COLOR_ELEMENTS)
        reserved = sum(pipe_sizes) + color_elements

        # Without a center column every color needs an even count on the board
        paired = config.symmetric and config.width % 2 == 0
        plan = plan_colors(config.block_count, config.colors, reserved, rng, strict=True, paired=paired)
        plain, pool = plan.split(rng, paired=config.symmetric)

        state = _ClassifiedBoard(config, rng, self.symmetric_retries)
        state.grow(plain)

        order = [kind for kind in COLOR_ELEMENTS + (ElementType.BARRIER,) if requested.get(kind)]
        rng.shuffle(order)
        element_names = {kind: element for element, kind in SUPPORTED_ELEMENTS.items()}
        for kind in order:
            if kind == ElementType.BARRIER:
                state.place_barriers(requested[kind])
            else:
                state.place_color_elements(kind, element_names[kind], requested[kind], pool)

        state.place_pipes(pipe_sizes)
        overflow = state.fill_pipes(pool)
        if overflow:
            logger.debug(f"Growing {len(overflow)} overflow block(s)")
            state.grow(overflow)

        residual = rebalance(state.color_units(), plan.targets, rng)
        if residual:
            raise ValidationError("balance", plan.targets, residual, "rebalance left a residual")

        board = to_canonical(state.cells)
        validate_board(board, config, tolerance=0)
        if config.symmetric:
            mismatches = check_symmetry(board)
            if mismatches:
                raise ValidationError(CHECK_SYMMETRY, [], mismatches, "board is not mirror-symmetric")
        logger.info(
            f"Classified generator built {config.width}x{config.height} board "
            f"with {config.block_count} blocks"
        )
        return build_level(config, board, rng, self.name, state.shortfalls)
