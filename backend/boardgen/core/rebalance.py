"""Content filling and color rebalancing.

Color locations (plain cells, color elements, pipe and belt content
entries) are wrapped as ColorSlots so one pass works on either cell
schema. Slots that must change color together, such as the two halves
of a mirrored pair, are grouped into a ColorUnit.
"""
import logging
import random
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)

# Largest per-color residual accepted from the legacy generator
MAX_COLOR_DEVIATION = 2


@dataclass
class ColorSlot:
    """One recolorable location.

    ``key`` is an attribute name for a cell's own color, or an index into
    a contents list for pipe and belt entries.
    """
    holder: Any
    key: Union[str, int] = "color"

    def get(self) -> Optional[str]:
        if isinstance(self.key, int):
            return self.holder[self.key]
        return getattr(self.holder, self.key)

    def set(self, color: str) -> None:
        if isinstance(self.key, int):
            self.holder[self.key] = color
        else:
            setattr(self.holder, self.key, color)


@dataclass
class ColorUnit:
    """Slots repainted together. Locked units count toward totals but never donate."""
    slots: List[ColorSlot] = field(default_factory=list)
    locked: bool = False

    @property
    def size(self) -> int:
        return len(self.slots)

    @property
    def color(self) -> Optional[str]:
        return self.slots[0].get() if self.slots else None

    def paint(self, color: str) -> None:
        for slot in self.slots:
            slot.set(color)


def cell_unit(cell, locked: bool = False) -> ColorUnit:
    return ColorUnit([ColorSlot(cell, "color")], locked=locked)


def content_units(contents: List[str]) -> List[ColorUnit]:
    return [ColorUnit([ColorSlot(contents, i)]) for i in range(len(contents))]


def count_unit_colors(units: Iterable[ColorUnit]) -> Counter:
    counts: Counter = Counter()
    for unit in units:
        for slot in unit.slots:
            color = slot.get()
            if color is not None:
                counts[color] += 1
    return counts


def content_pool(
    targets: Dict[str, int],
    current: Dict[str, int],
    size: int,
    rng: random.Random,
) -> List[str]:
    """
    Build a shuffled sequence of size colors from what is left of the budget.

    Colors still under target contribute their shortfall. If that is not
    enough to reach size, colors are appended cycling from the largest
    target down; if it is too much, the sequence is cut.
    """
    pool = [
        color
        for color, target in targets.items()
        for _ in range(max(0, target - current.get(color, 0)))
    ]
    rng.shuffle(pool)
    if len(pool) > size:
        pool = pool[:size]
    by_target = sorted(targets, key=lambda c: -targets[c])
    i = 0
    while len(pool) < size and by_target:
        pool.append(by_target[i % len(by_target)])
        i += 1
    return pool


def fill_contents(containers: List[Tuple[List[str], int]], pool: List[str]) -> List[str]:
    """
    Fill (contents, capacity) containers left to right from pool.

    Returns:
        The part of the pool that did not fit.
    """
    pool = list(pool)
    for contents, capacity in containers:
        while len(contents) < capacity and pool:
            contents.append(pool.pop(0))
    return pool


def spread_overflow(contents_lists: List[List[str]], overflow: List[str]) -> None:
    """Append overflow colors round-robin to the given content lists."""
    if not contents_lists:
        return
    for i, color in enumerate(overflow):
        contents_lists[i % len(contents_lists)].append(color)


def rebalance(
    units: List[ColorUnit],
    targets: Dict[str, int],
    rng: Optional[random.Random] = None,
) -> Dict[str, int]:
    """
    Repaint donor units from over-represented colors to deficient colors.

    A donor is only used when its whole unit fits inside both the donor
    color's surplus and the receiving color's deficit, so a pass never
    overshoots. Every colored location must be present in ``units``
    (locked ones included) so the totals are right.

    Args:
        units: All color locations, grouped into units.
        targets: Planned total per color.
        rng: Shuffles donor order.

    Returns:
        Per-color residual (actual minus target), non-zero entries only.
    """
    counts = count_unit_colors(units)
    donors = [u for u in units if not u.locked and u.size > 0]
    if rng is not None:
        rng.shuffle(donors)

    moves = 0
    max_moves = sum(u.size for u in units) * 2
    while moves < max_moves:
        deficits = {c: t - counts[c] for c, t in targets.items() if counts[c] < t}
        if not deficits:
            break
        moved = False
        for color in sorted(deficits, key=lambda c: -deficits[c]):
            need = deficits[color]
            best = None
            for unit in donors:
                source = unit.color
                if source is None or source == color:
                    continue
                surplus = counts[source] - targets.get(source, 0)
                if unit.size > min(need, surplus):
                    continue
                if best is None or unit.size > best.size:
                    best = unit
            if best is not None:
                source = best.color
                best.paint(color)
                counts[source] -= best.size
                counts[color] += best.size
                moved = True
                break
        if not moved:
            break
        moves += 1

    residual = {}
    for color in set(targets) | set(counts):
        diff = counts[color] - targets.get(color, 0)
        if diff:
            residual[color] = diff
    if residual:
        logger.debug(f"Rebalance residual: {residual}")
    return residual


def collect_units(
    board,
    symmetric: bool,
    is_locked: Callable[[Any], bool],
    content_lists: Iterable[List[str]] = (),
) -> List[ColorUnit]:
    """
    Wrap every colored location of a board as a ColorUnit.

    In symmetric mode a left cell and its mirror with the same color form
    one 2-cell unit so repainting keeps the board mirrored. Locked cells
    are never paired.
    """
    units: List[ColorUnit] = []
    paired = set()
    if symmetric:
        for row in board:
            width = len(row)
            for x in range(width // 2):
                left, right = row[x], row[width - 1 - x]
                if left.color is None or right.color is None or left.color != right.color:
                    continue
                if is_locked(left) or is_locked(right):
                    continue
                units.append(ColorUnit([ColorSlot(left), ColorSlot(right)]))
                paired.update((id(left), id(right)))
    for row in board:
        for cell in row:
            if not cell.occupied or cell.color is None or id(cell) in paired:
                continue
            units.append(cell_unit(cell, locked=is_locked(cell)))
    for contents in content_lists:
        units.extend(content_units(contents))
    return units
