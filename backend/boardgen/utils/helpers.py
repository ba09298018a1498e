"""Utility helper functions."""
import random
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional, Tuple

from ..models.level import CELL_BLOCK, CELL_EMPTY, Element, GeneratedLevel
from ..core.assembly import new_level_id
from ..core.validator import check_symmetry

# Single-character glyphs used by format_board_for_display
ELEMENT_GLYPHS = {
    Element.PIPE.value: "P",
    Element.BLOCK_LOCK.value: "L",
    Element.KEY.value: "K",
    Element.BOMB.value: "B",
    Element.ICE_BLOCK.value: "I",
    Element.BARREL.value: "R",
    Element.PULL_PIN.value: "N",
    Element.MOVING.value: "M",
    Element.BARRIER.value: "#",
}


def validate_level_json(level_json: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate level JSON structure before it is parsed.

    Args:
        level_json: Level data to validate.

    Returns:
        Tuple of (is_valid, error_message).
    """
    if "config" not in level_json or not isinstance(level_json["config"], dict):
        return False, "Missing 'config' object"

    config = level_json["config"]
    for field in ("width", "height", "blockCount", "selectedColors"):
        if field not in config:
            return False, f"'config' missing '{field}' field"

    board = level_json.get("board")
    if not isinstance(board, list) or not board:
        return False, "'board' must be a non-empty array of rows"

    width = len(board[0]) if isinstance(board[0], list) else -1
    if len(board) != config["height"] or width != config["width"]:
        return False, f"'board' must be {config['height']} rows of {config['width']} cells"

    for y, row in enumerate(board):
        if not isinstance(row, list) or len(row) != width:
            return False, f"Row {y} must be an array of {width} cells"
        for x, cell in enumerate(row):
            if not isinstance(cell, dict):
                return False, f"Cell ({x}, {y}) must be an object"
            if cell.get("type") not in (CELL_EMPTY, CELL_BLOCK):
                return False, f"Cell ({x}, {y}) has invalid type: '{cell.get('type')}'"

    return True, None


def format_board_for_display(board) -> str:
    """
    Format a board for human-readable display.

    Plain blocks show the first letter of their color, mechanics show a
    glyph and empty cells a dot.

    Args:
        board: Canonical board (rows of BoardCell).

    Returns:
        Formatted string representation.
    """
    lines = []
    for row in board:
        glyphs = []
        for cell in row:
            if not cell.occupied:
                glyphs.append(".")
            elif cell.element:
                glyphs.append(ELEMENT_GLYPHS.get(cell.element, "?"))
            else:
                glyphs.append((cell.color or "?")[0].upper())
        lines.append(" ".join(glyphs))
    return "\n".join(lines)


def _board_color_sequence(board) -> List[str]:
    """Colors in reading order; a pipe or belt contributes its queued contents."""
    colors = []
    for row in board:
        for cell in row:
            if not cell.occupied:
                continue
            if cell.element == Element.PIPE.value:
                colors.extend(cell.pipe_contents or [])
            elif cell.element == Element.MOVING.value:
                colors.extend(cell.moving_contents or [])
            elif cell.color is not None:
                colors.append(cell.color)
    return colors


def analyze_colors(level: GeneratedLevel) -> Dict[str, Any]:
    """
    Summarize the colors of a level and group them into bars.

    Colors are ordered by first appearance in reading order. Bars take up
    to three blocks of one color, cycling through the colors so that
    consecutive bars differ.

    Args:
        level: Generated level.

    Returns:
        Dict with total_blocks, color_summary and bars.
    """
    sequence = _board_color_sequence(level.board)
    groups: Dict[str, int] = {}
    for color in sequence:
        groups[color] = groups.get(color, 0) + 1

    total = len(sequence)
    summary = [
        {
            "color": color,
            "count": count,
            "percentage": round(count / total * 100, 1) if total else 0.0,
        }
        for color, count in groups.items()
    ]

    remaining = dict(groups)
    order = list(groups)
    bars: List[List[str]] = []
    while any(remaining.values()):
        for color in order:
            if remaining[color]:
                take = min(3, remaining[color])
                bars.append([color] * take)
                remaining[color] -= take

    return {"total_blocks": total, "color_summary": summary, "bars": bars}


def refill_level(level: GeneratedLevel, rng: Optional[random.Random] = None) -> GeneratedLevel:
    """
    Reshuffle the colors of plain blocks.

    Mechanics, pipe contents and per-color totals are unchanged. Mirror
    symmetry is not kept; a symmetric level lists its new mismatches.

    Args:
        level: Level to refill. It is not modified.
        rng: Random source.

    Returns:
        New GeneratedLevel with a fresh id and timestamp.
    """
    rng = rng or random.Random()
    board = level.copy_board()
    positions = [
        (x, y)
        for y, row in enumerate(board)
        for x, cell in enumerate(row)
        if cell.is_plain
    ]
    colors = [board[y][x].color for x, y in positions]
    rng.shuffle(colors)
    for (x, y), color in zip(positions, colors):
        board[y][x].color = color

    return replace(
        level,
        id=new_level_id(rng),
        board=board,
        timestamp=datetime.now(timezone.utc),
        symmetry_mismatches=check_symmetry(board) if level.config.symmetric else (),
    )
