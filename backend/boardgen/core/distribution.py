"""Color count planning.

Every color's total on the finished board (board cells plus pipe and
belt contents) must be a multiple of the divisor so it can be cleared in
full matching groups.
"""
import logging
import math
import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from ..errors import DistributionError

logger = logging.getLogger(__name__)

# Boards with at least this many blocks per color match in groups of nine
LARGE_BOARD_BLOCKS_PER_COLOR = 9


def choose_divisor(block_count: int, color_count: int) -> int:
    """Return 9 for large boards, otherwise 3."""
    if block_count >= LARGE_BOARD_BLOCKS_PER_COLOR * color_count:
        return 9
    return 3


@dataclass
class ColorPlan:
    """Per-color target totals for one board."""
    divisor: int
    targets: Dict[str, int] = field(default_factory=dict)
    reserved: int = 0
    remainder: int = 0

    @property
    def total(self) -> int:
        return sum(self.targets.values())

    @property
    def plain_count(self) -> int:
        """Blocks left for plain connected growth after reserving special slots."""
        return self.total - self.reserved

    def queue(self, rng: random.Random) -> List[str]:
        """Flatten the targets into one shuffled color sequence."""
        colors = [color for color, count in self.targets.items() for _ in range(count)]
        rng.shuffle(colors)
        return colors

    def split(self, rng: random.Random, paired: bool = False) -> Tuple[List[str], List[str]]:
        """
        Split the targets into plain blocks and the reserved pool.

        With paired, the pool is drawn in same-color pairs so each color
        keeps the parity of its target among the plain blocks; an odd
        reserve takes its last single from a color whose count is odd.
        """
        if not paired:
            queue = self.queue(rng)
            return queue[:self.plain_count], queue[self.plain_count:]

        remaining = dict(self.targets)
        pool: List[str] = []
        while self.reserved - len(pool) >= 2:
            eligible = [c for c, n in remaining.items() if n >= 2]
            if not eligible:
                break
            color = rng.choice(eligible)
            pool += [color, color]
            remaining[color] -= 2
        while len(pool) < self.reserved:
            odd = [c for c, n in remaining.items() if n % 2 == 1]
            color = rng.choice(odd or [c for c, n in remaining.items() if n > 0])
            pool.append(color)
            remaining[color] -= 1

        plain = [color for color, count in remaining.items() for _ in range(count)]
        rng.shuffle(plain)
        return plain, pool

    def to_dict(self) -> Dict[str, object]:
        return {
            "divisor": self.divisor,
            "targets": dict(self.targets),
            "reserved": self.reserved,
            "plainCount": self.plain_count,
            "remainder": self.remainder,
        }


def plan_colors(
    block_count: int,
    colors: Sequence[str],
    reserved: int = 0,
    rng: Optional[random.Random] = None,
    strict: bool = True,
    paired: bool = False,
) -> ColorPlan:
    """
    Split block_count into per-color targets.

    Each color gets an equal base share rounded down to the divisor, then
    the remaining divisor-sized increments are dealt round-robin over a
    shuffled color order, so some colors end up with more than others.

    Args:
        block_count: Total colored blocks on the finished board.
        colors: Colors in play.
        reserved: Slots held back for pipe contents and color elements.
        rng: Random source for the increment order.
        strict: When True, a block count that is not a multiple of the
            divisor raises. When False the divisor drops from 9 to 3 and
            any leftover goes to the color with the smallest target.
        paired: Every target must also be even, as on a mirrored board
            without a center column. Shares are dealt in steps of
            lcm(divisor, 2); when block_count is not a multiple of that
            step, strict mode raises and permissive mode deals plain
            divisor steps.

    Returns:
        ColorPlan whose targets sum to block_count.

    Raises:
        DistributionError: If the counts cannot be planned.
    """
    rng = rng or random.Random()
    if not colors:
        raise DistributionError("No colors to distribute", block_count=block_count)

    color_count = len(colors)
    divisor = choose_divisor(block_count, color_count)

    if block_count - reserved < 1:
        raise DistributionError(
            f"Reserved slots ({reserved}) leave no room for plain blocks "
            f"out of {block_count}",
            block_count=block_count,
            divisor=divisor,
        )

    if block_count % divisor != 0:
        if strict:
            raise DistributionError(
                f"Block count {block_count} is not divisible by {divisor}",
                block_count=block_count,
                divisor=divisor,
            )
        if divisor == 9:
            divisor = 3

    unit = divisor
    if paired:
        pair_unit = divisor * 2 // math.gcd(divisor, 2)
        if block_count % pair_unit == 0:
            unit = pair_unit
        elif strict:
            raise DistributionError(
                f"Block count {block_count} cannot be split into even "
                f"multiples of {divisor}",
                block_count=block_count,
                divisor=divisor,
            )
        else:
            logger.warning(
                f"Block count {block_count} is not a multiple of {pair_unit}; "
                f"some colors get an odd count"
            )

    base = block_count // color_count // unit * unit
    targets = {color: base for color in colors}
    increments = (block_count - base * color_count) // unit

    order = list(colors)
    rng.shuffle(order)
    for i in range(increments):
        targets[order[i % color_count]] += unit

    remainder = block_count - sum(targets.values())
    if remainder:
        smallest = min(order, key=lambda c: targets[c])
        targets[smallest] += remainder
        logger.warning(
            f"Block count {block_count} not divisible by {divisor}; "
            f"{remainder} extra block(s) assigned to {smallest}"
        )

    if sum(targets.values()) != block_count:
        raise DistributionError(
            f"Planned {sum(targets.values())} blocks instead of {block_count}",
            block_count=block_count,
            divisor=divisor,
        )

    plan = ColorPlan(divisor=divisor, targets=targets, reserved=reserved, remainder=remainder)
    logger.debug(f"Color plan: {plan.to_dict()}")
    return plan


def effective_divisor(block_count: int, color_count: int) -> int:
    """Divisor a finished board is checked against.

    Same as choose_divisor, except that a large board whose count is not a
    multiple of nine is checked in groups of three.
    """
    divisor = choose_divisor(block_count, color_count)
    if divisor == 9 and block_count % 9 != 0:
        return 3
    return divisor
