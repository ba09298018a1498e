"""Level data models and structures."""
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from typing import Dict, List, Any, Optional, Tuple
from enum import Enum

from ..errors import InvalidConfigError


class GenerationMode(str, Enum):
    """Board layout mode."""
    RANDOM = "random"
    SYMMETRIC = "symmetric"


class Difficulty(str, Enum):
    """Difficulty band. Drives pipe and belt size sampling."""
    NORMAL = "Normal"
    HARD = "Hard"
    SUPER_HARD = "Super Hard"


class Direction(str, Enum):
    """Outlet direction on the grid (y grows downward)."""
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"


class Element(str, Enum):
    """Canonical mechanic tags."""
    PIPE = "Pipe"
    BLOCK_LOCK = "BlockLock"
    KEY = "Key"
    BOMB = "Bomb"
    ICE_BLOCK = "IceBlock"
    BARREL = "Barrel"
    PULL_PIN = "PullPin"
    MOVING = "Moving"
    BARRIER = "Barrier"


# Alternate spellings accepted on input, mapped to canonical tags
ELEMENT_ALIASES: Dict[str, Element] = {
    "pipe": Element.PIPE,
    "blocklock": Element.BLOCK_LOCK,
    "block_lock": Element.BLOCK_LOCK,
    "lock": Element.BLOCK_LOCK,
    "key": Element.KEY,
    "bomb": Element.BOMB,
    "iceblock": Element.ICE_BLOCK,
    "ice_block": Element.ICE_BLOCK,
    "ice": Element.ICE_BLOCK,
    "barrel": Element.BARREL,
    "pullpin": Element.PULL_PIN,
    "pull_pin": Element.PULL_PIN,
    "pin": Element.PULL_PIN,
    "moving": Element.MOVING,
    "belt": Element.MOVING,
    "barrier": Element.BARRIER,
    "wall": Element.BARRIER,
}

# Elements that are housings: occupied cells with no color of their own
HOUSING_ELEMENTS = {Element.PIPE, Element.MOVING, Element.PULL_PIN, Element.BARRIER}

# Inclusive pipe size ranges per difficulty
PIPE_SIZE_RANGES: Dict[Difficulty, Tuple[int, int]] = {
    Difficulty.NORMAL: (1, 4),
    Difficulty.HARD: (4, 6),
    Difficulty.SUPER_HARD: (6, 8),
}

CELL_EMPTY = "empty"
CELL_BLOCK = "block"

MAX_GRID_SIDE = 50
# Fewest colors a playable level can have
MIN_COLORS = 2


def normalize_element_name(name: str) -> Optional[Element]:
    """Map a mechanic name (canonical or alias) to its canonical tag."""
    if isinstance(name, Element):
        return name
    try:
        return Element(name)
    except ValueError:
        return ELEMENT_ALIASES.get(str(name).strip().lower())


@dataclass(frozen=True)
class LevelConfig:
    """Input configuration for one board."""
    width: int
    height: int
    block_count: int
    selected_colors: Tuple[str, ...]
    color_count: int = 0
    generation_mode: GenerationMode = GenerationMode.RANDOM
    elements: Dict[str, int] = field(default_factory=dict)
    difficulty: Difficulty = Difficulty.NORMAL
    name: str = "Level"
    pipe_block_count: Optional[int] = None
    pipe_block_counts: Optional[Tuple[int, ...]] = None
    moving_block_count: Optional[int] = None
    moving_block_counts: Optional[Tuple[int, ...]] = None
    bomb_counts: Optional[Tuple[int, ...]] = None
    ice_counts: Optional[Tuple[int, ...]] = None

    def __post_init__(self):
        set_ = object.__setattr__
        set_(self, "selected_colors", tuple(str(c) for c in self.selected_colors))
        if not self.color_count:
            set_(self, "color_count", len(self.selected_colors))
        try:
            set_(self, "generation_mode", GenerationMode(self.generation_mode))
            set_(self, "difficulty", Difficulty(self.difficulty))
        except ValueError as e:
            raise InvalidConfigError(str(e)) from e

        elements: Dict[str, int] = {}
        for name, count in (self.elements or {}).items():
            canonical = normalize_element_name(name)
            key = canonical.value if canonical else str(name)
            elements[key] = elements.get(key, 0) + int(count)
        set_(self, "elements", elements)

        for attr in ("pipe_block_counts", "moving_block_counts", "bomb_counts", "ice_counts"):
            value = getattr(self, attr)
            if value is not None:
                set_(self, attr, tuple(int(v) for v in value))

    def __hash__(self):
        return hash((self.width, self.height, self.block_count, self.selected_colors,
                     self.generation_mode, self.difficulty, tuple(sorted(self.elements.items()))))

    @property
    def symmetric(self) -> bool:
        return self.generation_mode == GenerationMode.SYMMETRIC

    @property
    def colors(self) -> List[str]:
        """Colors actually in play (the first color_count of the selection)."""
        return list(self.selected_colors[:self.color_count])

    def element_count(self, element: Element) -> int:
        return max(0, self.elements.get(element.value, 0))

    @property
    def total_elements(self) -> int:
        return sum(max(0, v) for v in self.elements.values())

    def requested_elements(self) -> Dict[str, int]:
        """Non-zero element requests."""
        return {k: v for k, v in self.elements.items() if v > 0}

    def validate(self) -> None:
        """Raise InvalidConfigError when the config cannot describe a board."""
        if not (1 <= self.width <= MAX_GRID_SIDE and 1 <= self.height <= MAX_GRID_SIDE):
            raise InvalidConfigError(
                f"Grid {self.width}x{self.height} out of range (1..{MAX_GRID_SIDE})"
            )
        if self.block_count < 1:
            raise InvalidConfigError(f"block_count must be positive, got {self.block_count}")
        if self.block_count > self.width * self.height:
            raise InvalidConfigError(
                f"block_count {self.block_count} exceeds grid area {self.width * self.height}"
            )
        if not self.selected_colors:
            raise InvalidConfigError("selected_colors must not be empty")
        if len(set(self.selected_colors)) != len(self.selected_colors):
            raise InvalidConfigError("selected_colors must be distinct")
        if self.color_count < MIN_COLORS:
            raise InvalidConfigError(
                f"At least {MIN_COLORS} colors are needed, got {self.color_count}"
            )
        if self.color_count > len(self.selected_colors):
            raise InvalidConfigError(
                f"color_count {self.color_count} exceeds the {len(self.selected_colors)} selected colors"
            )
        for name, count in self.elements.items():
            if normalize_element_name(name) is None:
                raise InvalidConfigError(f"Unknown element '{name}'")
            if count < 0:
                raise InvalidConfigError(f"Element count for '{name}' must be >= 0")
        for attr in ("pipe_block_count", "moving_block_count"):
            value = getattr(self, attr)
            if value is not None and value < 1:
                raise InvalidConfigError(f"{attr} must be >= 1")
        for attr in ("pipe_block_counts", "moving_block_counts", "bomb_counts", "ice_counts"):
            value = getattr(self, attr)
            if value is not None and any(v < 1 for v in value):
                raise InvalidConfigError(f"{attr} entries must be >= 1")

    def with_elements(self, elements: Dict[str, int]) -> "LevelConfig":
        return replace(self, elements=dict(elements))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase wire dictionary."""
        data: Dict[str, Any] = {
            "name": self.name,
            "width": self.width,
            "height": self.height,
            "blockCount": self.block_count,
            "colorCount": self.color_count,
            "selectedColors": list(self.selected_colors),
            "generationMode": self.generation_mode.value,
            "elements": dict(self.elements),
            "difficulty": self.difficulty.value,
        }
        optional = {
            "pipeBlockCount": self.pipe_block_count,
            "pipeBlockCounts": self.pipe_block_counts,
            "movingBlockCount": self.moving_block_count,
            "movingBlockCounts": self.moving_block_counts,
            "bombCounts": self.bomb_counts,
            "iceCounts": self.ice_counts,
        }
        for key, value in optional.items():
            if value is not None:
                data[key] = list(value) if isinstance(value, tuple) else value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LevelConfig":
        """Build from a camelCase (or snake_case) dictionary."""
        def pick(camel: str, snake: str, default=None):
            if camel in data:
                return data[camel]
            return data.get(snake, default)

        colors = pick("selectedColors", "selected_colors", [])
        return cls(
            width=int(data["width"]),
            height=int(data["height"]),
            block_count=int(pick("blockCount", "block_count", 0)),
            selected_colors=tuple(colors),
            color_count=int(pick("colorCount", "color_count", 0) or 0),
            generation_mode=pick("generationMode", "generation_mode", GenerationMode.RANDOM),
            elements=dict(data.get("elements") or {}),
            difficulty=data.get("difficulty", Difficulty.NORMAL),
            name=data.get("name", "Level"),
            pipe_block_count=pick("pipeBlockCount", "pipe_block_count"),
            pipe_block_counts=pick("pipeBlockCounts", "pipe_block_counts"),
            moving_block_count=pick("movingBlockCount", "moving_block_count"),
            moving_block_counts=pick("movingBlockCounts", "moving_block_counts"),
            bomb_counts=pick("bombCounts", "bomb_counts"),
            ice_counts=pick("iceCounts", "ice_counts"),
        )


# snake_case attribute -> camelCase wire key for the optional cell fields
_CELL_WIRE_KEYS = {
    "pipe_direction": "pipeDirection",
    "pipe_size": "pipeSize",
    "pipe_contents": "pipeContents",
    "lock_id": "lockId",
    "key_id": "keyId",
    "lock_pair_number": "lockPairNumber",
    "pull_pin_direction": "pullPinDirection",
    "pull_pin_gate_size": "pullPinGateSize",
    "ice_count": "iceCount",
    "bomb_count": "bombCount",
    "moving_direction": "movingDirection",
    "moving_distance": "movingDistance",
    "moving_size": "movingSize",
    "moving_contents": "movingContents",
}


@dataclass
class BoardCell:
    """One grid cell of the canonical board.

    Occupied cells have type "block". Plain blocks carry a color and no
    element; housings (pipe, belt, pull pin, barrier) carry no color.
    Element-specific fields are only set on the matching element.
    """
    type: str = CELL_EMPTY
    color: Optional[str] = None
    element: Optional[str] = None
    pipe_direction: Optional[str] = None
    pipe_size: Optional[int] = None
    pipe_contents: Optional[List[str]] = None
    lock_id: Optional[str] = None
    key_id: Optional[str] = None
    lock_pair_number: Optional[int] = None
    pull_pin_direction: Optional[str] = None
    pull_pin_gate_size: Optional[int] = None
    ice_count: Optional[int] = None
    bomb_count: Optional[int] = None
    moving_direction: Optional[str] = None
    moving_distance: Optional[int] = None
    moving_size: Optional[int] = None
    moving_contents: Optional[List[str]] = None

    @classmethod
    def empty(cls) -> "BoardCell":
        return cls()

    @classmethod
    def block(cls, color: Optional[str]) -> "BoardCell":
        return cls(type=CELL_BLOCK, color=color)

    @property
    def occupied(self) -> bool:
        return self.type == CELL_BLOCK

    @property
    def is_plain(self) -> bool:
        """A color block with no mechanic attached."""
        return self.occupied and self.color is not None and self.element is None

    @property
    def is_housing(self) -> bool:
        return self.occupied and self.element is not None and \
            normalize_element_name(self.element) in HOUSING_ELEMENTS

    def clear_element(self) -> None:
        """Drop the mechanic and its fields, keeping type and color."""
        for name in _CELL_WIRE_KEYS:
            setattr(self, name, None)
        self.element = None

    def copy(self) -> "BoardCell":
        cell = replace(self)
        if self.pipe_contents is not None:
            cell.pipe_contents = list(self.pipe_contents)
        if self.moving_contents is not None:
            cell.moving_contents = list(self.moving_contents)
        return cell

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, omitting unset optional fields."""
        data: Dict[str, Any] = {"type": self.type}
        if self.color is not None:
            data["color"] = self.color
        if self.element is not None:
            data["element"] = self.element
        for name, key in _CELL_WIRE_KEYS.items():
            value = getattr(self, name)
            if value is not None:
                data[key] = list(value) if isinstance(value, list) else value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BoardCell":
        kwargs: Dict[str, Any] = {
            "type": data.get("type", CELL_EMPTY),
            "color": data.get("color"),
            "element": data.get("element"),
        }
        for name, key in _CELL_WIRE_KEYS.items():
            value = data.get(key, data.get(name))
            if value is not None:
                kwargs[name] = list(value) if isinstance(value, (list, tuple)) else value
        return cls(**kwargs)


Board = List[List[BoardCell]]


def empty_board(width: int, height: int) -> Board:
    """Create a height x width grid of empty cells (indexed board[y][x])."""
    return [[BoardCell.empty() for _ in range(width)] for _ in range(height)]


def copy_board(board) -> Board:
    return [[cell.copy() for cell in row] for row in board]


def board_to_dicts(board) -> List[List[Dict[str, Any]]]:
    return [[cell.to_dict() for cell in row] for row in board]


def board_from_dicts(rows: List[List[Dict[str, Any]]]) -> Board:
    return [[BoardCell.from_dict(cell) for cell in row] for row in rows]


@dataclass
class Container:
    """Side container shown next to the board."""
    id: str
    slots: int
    contents: List[Dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "slots": self.slots, "contents": list(self.contents)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Container":
        return cls(id=data["id"], slots=int(data["slots"]), contents=list(data.get("contents", [])))


def _position(x: int, y: int) -> Dict[str, int]:
    return {"x": x, "y": y}


@dataclass
class PipeInfo:
    id: str
    contents: List[str]
    direction: str
    x: int
    y: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "contents": list(self.contents),
            "direction": self.direction,
            "position": _position(self.x, self.y),
        }


@dataclass
class LockInfo:
    id: str
    lock_x: int
    lock_y: int
    key_x: int
    key_y: int
    color: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "lockPosition": _position(self.lock_x, self.lock_y),
            "keyPosition": _position(self.key_x, self.key_y),
            "color": self.color,
        }


@dataclass
class MovingInfo:
    id: str
    contents: List[str]
    direction: str
    distance: int
    x: int
    y: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "contents": list(self.contents),
            "direction": self.direction,
            "distance": self.distance,
            "position": _position(self.x, self.y),
        }


@dataclass(frozen=True)
class GeneratedLevel:
    """A finished level. Frozen; edits go through copy_board()."""
    id: str
    config: LevelConfig
    board: Tuple[Tuple[BoardCell, ...], ...]
    containers: Tuple[Container, ...] = ()
    difficulty_score: float = 0.0
    solvable: bool = True
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    pipe_info: Optional[Tuple[PipeInfo, ...]] = None
    lock_info: Optional[Tuple[LockInfo, ...]] = None
    moving_info: Optional[Tuple[MovingInfo, ...]] = None
    generator: str = ""
    shortfalls: Tuple[Dict[str, Any], ...] = ()
    color_deviation: Dict[str, int] = field(default_factory=dict)
    # Left-half cells a degraded symmetric board could not mirror
    symmetry_mismatches: Tuple[Tuple[int, int], ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "board", tuple(tuple(row) for row in self.board))
        object.__setattr__(self, "symmetry_mismatches", tuple(tuple(p) for p in self.symmetry_mismatches))
        object.__setattr__(self, "containers", tuple(self.containers))
        object.__setattr__(self, "shortfalls", tuple(self.shortfalls))
        for attr in ("pipe_info", "lock_info", "moving_info"):
            value = getattr(self, attr)
            if value is not None:
                object.__setattr__(self, attr, tuple(value))

    __hash__ = object.__hash__

    @property
    def width(self) -> int:
        return len(self.board[0]) if self.board else 0

    @property
    def height(self) -> int:
        return len(self.board)

    def copy_board(self) -> Board:
        return copy_board(self.board)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase wire dictionary."""
        data: Dict[str, Any] = {
            "id": self.id,
            "config": self.config.to_dict(),
            "board": board_to_dicts(self.board),
            "containers": [c.to_dict() for c in self.containers],
            "difficultyScore": round(self.difficulty_score, 2),
            "solvable": self.solvable,
            "timestamp": self.timestamp.isoformat(),
            "generator": self.generator,
        }
        if self.pipe_info is not None:
            data["pipeInfo"] = [p.to_dict() for p in self.pipe_info]
        if self.lock_info is not None:
            data["lockInfo"] = [l.to_dict() for l in self.lock_info]
        if self.moving_info is not None:
            data["movingInfo"] = [m.to_dict() for m in self.moving_info]
        if self.shortfalls:
            data["shortfalls"] = list(self.shortfalls)
        if self.color_deviation:
            data["colorDeviation"] = dict(self.color_deviation)
        if self.symmetry_mismatches:
            data["symmetryMismatches"] = [list(p) for p in self.symmetry_mismatches]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GeneratedLevel":
        """Rebuild a level from its wire dictionary. Info lists are not re-parsed."""
        timestamp = data.get("timestamp")
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp)
        return cls(
            id=data.get("id", "level"),
            config=LevelConfig.from_dict(data["config"]),
            board=board_from_dicts(data["board"]),
            containers=[Container.from_dict(c) for c in data.get("containers", [])],
            difficulty_score=float(data.get("difficultyScore", 0.0)),
            solvable=bool(data.get("solvable", True)),
            timestamp=timestamp or datetime.now(timezone.utc),
            generator=data.get("generator", ""),
            shortfalls=list(data.get("shortfalls", [])),
            color_deviation=dict(data.get("colorDeviation", {})),
            symmetry_mismatches=data.get("symmetryMismatches", []),
        )


# Field names exported for callers building cells dynamically
CELL_FIELDS = tuple(f.name for f in fields(BoardCell))
