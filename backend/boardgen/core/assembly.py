"""Turns a finished canonical board into a GeneratedLevel."""
import math
import random
import uuid
from typing import Dict, List, Optional, Sequence, Tuple

from ..errors import ElementPlacementShortfall
from ..models.level import (
    Container,
    Element,
    GeneratedLevel,
    LevelConfig,
    LockInfo,
    MovingInfo,
    PipeInfo,
)

BLOCKS_PER_CONTAINER = 12
MIN_CONTAINERS = 3
CONTAINER_SLOTS = (3, 5)


def difficulty_score(config: LevelConfig) -> float:
    """Heuristic score: colors weigh 3, blocks 1, each element 1.5."""
    return config.color_count * 3 + config.block_count + 1.5 * config.total_elements


def generate_containers(config: LevelConfig, rng: random.Random) -> List[Container]:
    """Side containers with 3-5 slots, each pre-filled with 1..slots-2 random colors."""
    count = max(MIN_CONTAINERS, math.ceil(config.block_count / BLOCKS_PER_CONTAINER))
    colors = config.colors
    containers = []
    for i in range(count):
        slots = rng.randint(*CONTAINER_SLOTS)
        fill = max(1, rng.randrange(slots - 1))
        contents = [{"color": rng.choice(colors), "type": "block"} for _ in range(fill)]
        containers.append(Container(id=f"container_{i}", slots=slots, contents=contents))
    return containers


def extract_pipe_info(board) -> Optional[List[PipeInfo]]:
    pipes = []
    for y, row in enumerate(board):
        for x, cell in enumerate(row):
            if cell.element == Element.PIPE.value and cell.pipe_contents is not None:
                pipes.append(PipeInfo(
                    id=f"pipe_{len(pipes)}",
                    contents=list(cell.pipe_contents),
                    direction=cell.pipe_direction,
                    x=x,
                    y=y,
                ))
    return pipes or None


def extract_lock_info(board) -> Optional[List[LockInfo]]:
    locks = {}
    keys = {}
    for y, row in enumerate(board):
        for x, cell in enumerate(row):
            if cell.element == Element.BLOCK_LOCK.value:
                locks[cell.lock_id] = (x, y, cell.color)
            elif cell.element == Element.KEY.value:
                keys[cell.key_id] = (x, y)
    info = []
    for lock_id, (x, y, color) in locks.items():
        if lock_id in keys:
            kx, ky = keys[lock_id]
            info.append(LockInfo(id=lock_id, lock_x=x, lock_y=y, key_x=kx, key_y=ky, color=color))
    return info or None


def extract_moving_info(board) -> Optional[List[MovingInfo]]:
    belts = []
    for y, row in enumerate(board):
        for x, cell in enumerate(row):
            if cell.element == Element.MOVING.value:
                belts.append(MovingInfo(
                    id=f"moving_{len(belts)}",
                    contents=list(cell.moving_contents or []),
                    direction=cell.moving_direction,
                    distance=cell.moving_distance or 1,
                    x=x,
                    y=y,
                ))
    return belts or None


def new_level_id(rng: random.Random) -> str:
    return f"level_{uuid.UUID(int=rng.getrandbits(128)).hex[:12]}"


def build_level(
    config: LevelConfig,
    board,
    rng: random.Random,
    generator: str,
    shortfalls: Sequence[ElementPlacementShortfall] = (),
    color_deviation: Optional[Dict[str, int]] = None,
    symmetry_mismatches: Sequence[Tuple[int, int]] = (),
) -> GeneratedLevel:
    """Wrap a validated canonical board. The board is frozen from here on."""
    return GeneratedLevel(
        id=new_level_id(rng),
        config=config,
        board=board,
        containers=generate_containers(config, rng),
        difficulty_score=difficulty_score(config),
        solvable=True,
        pipe_info=extract_pipe_info(board),
        lock_info=extract_lock_info(board),
        moving_info=extract_moving_info(board),
        generator=generator,
        shortfalls=[s.to_dict() for s in shortfalls],
        color_deviation=dict(color_deviation or {}),
        symmetry_mismatches=symmetry_mismatches,
    )
