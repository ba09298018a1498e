"""Tests for utility helpers."""
import random
from collections import Counter

import pytest
from boardgen.core.generator import LevelGenerator
from boardgen.core.validator import count_colors
from boardgen.models.level import BoardCell, GeneratedLevel, LevelConfig, empty_board
from boardgen.utils.helpers import (
    analyze_colors,
    format_board_for_display,
    refill_level,
    validate_level_json,
)


@pytest.fixture
def level():
    """Small hand-built level: a row of colors plus a pipe."""
    board = empty_board(4, 2)
    for x, color in enumerate(["Red", "Red", "Blue", "Red"]):
        board[0][x] = BoardCell.block(color)
    board[1][0] = BoardCell(type="block", element="Pipe", pipe_direction="up",
                            pipe_size=2, pipe_contents=["Blue", "Blue"])
    config = LevelConfig(width=4, height=2, block_count=6, selected_colors=("Red", "Blue"))
    return GeneratedLevel(id="level_small", config=config, board=board)


class TestValidateLevelJson:
    """Test cases for validate_level_json."""

    def test_valid_level(self, level):
        """Test that a serialized level passes."""
        assert validate_level_json(level.to_dict()) == (True, None)

    def test_missing_config(self):
        """Test that a level without a config fails."""
        is_valid, error = validate_level_json({"board": []})
        assert not is_valid
        assert "config" in error

    def test_wrong_board_shape(self, level):
        """Test that the board must match the configured size."""
        data = level.to_dict()
        data["board"] = data["board"][:1]
        is_valid, error = validate_level_json(data)

        assert not is_valid
        assert "rows" in error

    def test_bad_cell_type(self, level):
        """Test that unknown cell types fail."""
        data = level.to_dict()
        data["board"][0][0]["type"] = "hole"
        is_valid, error = validate_level_json(data)

        assert not is_valid
        assert "hole" in error


class TestDisplay:
    """Test cases for format_board_for_display."""

    def test_glyphs(self, level):
        """Test color letters, element glyphs and empty dots."""
        assert format_board_for_display(level.board) == "R R B R\nP . . ."


class TestAnalyzeColors:
    """Test cases for analyze_colors."""

    def test_summary(self, level):
        """Test counts and percentages, contents included."""
        result = analyze_colors(level)

        assert result["total_blocks"] == 6
        assert result["color_summary"] == [
            {"color": "Red", "count": 3, "percentage": 50.0},
            {"color": "Blue", "count": 3, "percentage": 50.0},
        ]

    def test_bars_cycle_colors(self):
        """Test that bars hold up to three blocks and alternate colors."""
        board = empty_board(7, 1)
        for x, color in enumerate(["Red"] * 5 + ["Blue"] * 2):
            board[0][x] = BoardCell.block(color)
        config = LevelConfig(width=7, height=1, block_count=7, selected_colors=("Red", "Blue"))
        level = GeneratedLevel(id="bars", config=config, board=board)

        assert analyze_colors(level)["bars"] == [
            ["Red", "Red", "Red"],
            ["Blue", "Blue"],
            ["Red", "Red"],
        ]


class TestRefillLevel:
    """Test cases for refill_level."""

    def test_keeps_totals_and_mechanics(self):
        """Test that a refill only moves plain colors around."""
        config = LevelConfig(width=9, height=10, block_count=27,
                             selected_colors=("Red", "Blue", "Green"), elements={"Bomb": 2})
        level = LevelGenerator().generate(config, rng=random.Random(4))
        refilled = refill_level(level, random.Random(9))

        assert refilled.id != level.id
        assert count_colors(refilled.board) == count_colors(level.board)
        for before_row, after_row in zip(level.board, refilled.board):
            for before, after in zip(before_row, after_row):
                assert before.occupied == after.occupied
                assert before.element == after.element
                if not before.is_plain:
                    assert before.color == after.color

    def test_original_untouched(self, level):
        """Test that the input level is not modified."""
        before = Counter(cell.color for row in level.board for cell in row)
        refill_level(level, random.Random(1))

        assert Counter(cell.color for row in level.board for cell in row) == before
