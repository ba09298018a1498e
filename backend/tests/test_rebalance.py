"""Tests for content filling and color rebalancing."""
import random
from collections import Counter

import pytest
from boardgen.core.rebalance import (
    ColorSlot,
    ColorUnit,
    cell_unit,
    collect_units,
    content_pool,
    count_unit_colors,
    fill_contents,
    rebalance,
    spread_overflow,
)
from boardgen.models.level import BoardCell


def plain_cells(colors):
    return [BoardCell.block(c) for c in colors]


class TestFillContents:
    """Test cases for pipe content filling."""

    def test_fills_left_to_right(self):
        """Test that containers fill in order and overflow is returned."""
        first, second = [], []
        overflow = fill_contents([(first, 2), (second, 1)], ["Red", "Blue", "Green", "Red"])

        assert first == ["Red", "Blue"]
        assert second == ["Green"]
        assert overflow == ["Red"]

    def test_short_pool_leaves_room(self):
        """Test that a short pool leaves later containers partly empty."""
        first, second = [], []
        overflow = fill_contents([(first, 2), (second, 2)], ["Red", "Blue", "Green"])

        assert first == ["Red", "Blue"]
        assert second == ["Green"]
        assert overflow == []

    def test_spread_overflow_round_robin(self):
        """Test that overflow is appended round-robin."""
        lists = [["Red"], ["Blue"]]
        spread_overflow(lists, ["Green", "Green", "Red"])

        assert lists == [["Red", "Green", "Red"], ["Blue", "Green"]]

    def test_content_pool_uses_remaining_budget(self):
        """Test that the pool is built from what each color still lacks."""
        pool = content_pool({"Red": 9, "Blue": 9}, {"Red": 7, "Blue": 9}, 2, random.Random(0))
        assert pool == ["Red", "Red"]

    def test_content_pool_pads_and_cuts(self):
        """Test that the pool always has the requested size."""
        rng = random.Random(0)
        padded = content_pool({"Red": 3, "Blue": 6}, {"Red": 3, "Blue": 6}, 2, rng)
        cut = content_pool({"Red": 9, "Blue": 9}, {}, 4, rng)

        assert padded == ["Blue", "Red"]
        assert len(cut) == 4


class TestRebalance:
    """Test cases for the rebalance pass."""

    def test_repaints_surplus_to_deficit(self):
        """Test that surplus colors donate to deficient ones."""
        cells = plain_cells(["Red"] * 5 + ["Blue"] * 1)
        units = [cell_unit(c) for c in cells]
        residual = rebalance(units, {"Red": 3, "Blue": 3}, random.Random(0))

        assert residual == {}
        assert Counter(c.color for c in cells) == {"Red": 3, "Blue": 3}

    def test_locked_units_never_donate(self):
        """Test that locked cells keep their color."""
        locked = plain_cells(["Red"] * 3)
        units = [cell_unit(c, locked=True) for c in locked]
        units.append(cell_unit(BoardCell.block("Blue")))
        residual = rebalance(units, {"Red": 2, "Blue": 2})

        assert all(c.color == "Red" for c in locked)
        assert residual == {"Red": 1, "Blue": -1}

    def test_pair_units_move_together(self):
        """Test that mirrored pairs are repainted as one unit."""
        left, right = BoardCell.block("Red"), BoardCell.block("Red")
        pair = ColorUnit([ColorSlot(left), ColorSlot(right)])
        units = [pair, cell_unit(BoardCell.block("Red")), cell_unit(BoardCell.block("Red"))]
        residual = rebalance(units, {"Red": 2, "Blue": 2})

        assert residual == {}
        assert count_unit_colors(units) == {"Red": 2, "Blue": 2}
        assert left.color == right.color

    def test_pair_never_overshoots(self):
        """Test that a pair is not used when only one cell is needed."""
        pair = ColorUnit([ColorSlot(BoardCell.block("Red")), ColorSlot(BoardCell.block("Red"))])
        units = [pair, cell_unit(BoardCell.block("Blue"))]
        residual = rebalance(units, {"Red": 1, "Blue": 2})

        assert residual == {"Red": 1, "Blue": -1}
        assert pair.color == "Red"

    def test_pipe_contents_are_slots(self):
        """Test that pipe content entries can be repainted."""
        contents = ["Red", "Red"]
        units = [cell_unit(BoardCell.block("Blue"))]
        units.extend(ColorUnit([ColorSlot(contents, i)]) for i in range(2))
        rebalance(units, {"Red": 1, "Blue": 2})

        assert sorted(contents) == ["Blue", "Red"]


class TestCollectUnits:
    """Test cases for collect_units."""

    @pytest.fixture
    def board(self):
        """Mirrored row Red . Red plus a locked Blue lock."""
        lock = BoardCell.block("Blue")
        lock.element = "BlockLock"
        return [
            [BoardCell.block("Red"), BoardCell.empty(), BoardCell.block("Red")],
            [BoardCell.empty(), lock, BoardCell.empty()],
        ]

    def test_symmetric_pairs(self, board):
        """Test that mirrored same-color cells form one unit."""
        units = collect_units(board, True, lambda c: c.element == "BlockLock")

        assert sorted(u.size for u in units) == [1, 2]
        assert [u.locked for u in units if u.size == 1] == [True]

    def test_random_mode_singles(self, board):
        """Test that random mode keeps every cell separate and adds contents."""
        units = collect_units(board, False, lambda c: False, [["Green", "Green"]])

        assert len(units) == 5
        assert count_unit_colors(units) == {"Red": 2, "Blue": 1, "Green": 2}
