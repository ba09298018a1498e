"""Tests for connected block placement."""
import random
from collections import Counter

import pytest
from boardgen.core.geometry import is_connected, occupied_positions
from boardgen.core.placement import ConnectedPlacementEngine
from boardgen.core.validator import check_symmetry
from boardgen.errors import PlacementExhaustedError
from boardgen.models.level import BoardCell, empty_board


def board_colors(board):
    return Counter(cell.color for row in board for cell in row if cell.occupied)


@pytest.fixture
def colors():
    """27 blocks, nine of each color, shuffled."""
    queue = ["Red"] * 9 + ["Blue"] * 9 + ["Green"] * 9
    random.Random(1).shuffle(queue)
    return queue


class TestRandomPlacement:
    """Test cases for random connected growth."""

    @pytest.mark.parametrize("seed", [0, 1, 2, 3, 4])
    def test_places_connected_cluster(self, seed, colors):
        """Test that every block lands and the cluster stays connected."""
        board = empty_board(9, 10)
        engine = ConnectedPlacementEngine(board, random.Random(seed), BoardCell.block)
        positions = engine.place_random(colors)

        assert len(positions) == 27
        assert len(set(positions)) == 27
        assert len(occupied_positions(board)) == 27
        assert is_connected(board)
        assert board_colors(board) == Counter(colors)

    def test_first_block_seeds_center(self):
        """Test that growth starts in the middle of the grid."""
        board = empty_board(9, 10)
        engine = ConnectedPlacementEngine(board, random.Random(0), BoardCell.block)

        assert engine.place_random(["Red"]) == [(4, 5)]

    def test_exhausted_grid_raises(self):
        """Test that asking for more blocks than cells raises."""
        board = empty_board(2, 2)
        engine = ConnectedPlacementEngine(board, random.Random(0), BoardCell.block)

        with pytest.raises(PlacementExhaustedError) as exc_info:
            engine.place_random(["Red"] * 5)
        assert exc_info.value.placed == 4

    def test_grow_extra_attaches(self):
        """Test that grow_extra adds a block touching the cluster."""
        board = empty_board(5, 5)
        engine = ConnectedPlacementEngine(board, random.Random(0), BoardCell.block)
        engine.place_random(["Red"] * 4)
        engine.grow_extra("Blue")

        assert len(occupied_positions(board)) == 5
        assert is_connected(board)


class TestSymmetricPlacement:
    """Test cases for mirror-symmetric growth."""

    @pytest.mark.parametrize("seed", [0, 1, 2, 3, 4, 5])
    def test_odd_width_is_mirrored(self, seed, colors):
        """Test that every block has a same-colored mirror partner."""
        board = empty_board(9, 10)
        engine = ConnectedPlacementEngine(board, random.Random(seed), BoardCell.block)
        engine.place_symmetric(colors)

        assert check_symmetry(board) == []
        assert is_connected(board)
        assert board_colors(board) == Counter(colors)

    @pytest.mark.parametrize("seed", [0, 1, 2])
    def test_even_width_with_even_counts(self, seed):
        """Test that even widths mirror cleanly when every count is even."""
        queue = ["Red"] * 6 + ["Blue"] * 6 + ["Green"] * 6
        random.Random(seed).shuffle(queue)
        board = empty_board(8, 8)
        engine = ConnectedPlacementEngine(board, random.Random(seed), BoardCell.block)
        engine.place_symmetric(queue)

        assert check_symmetry(board) == []
        assert engine.unmirrored == 0
        assert is_connected(board)
        assert board_colors(board) == Counter(queue)

    def test_even_width_odd_count_is_reported(self):
        """Test that an unpaired block on an even width is counted as unmirrored."""
        board = empty_board(8, 8)
        engine = ConnectedPlacementEngine(board, random.Random(0), BoardCell.block)
        engine.place_symmetric(["Red"] * 3)

        assert len(occupied_positions(board)) == 3
        assert is_connected(board)
        assert engine.unmirrored == 1
        assert len(check_symmetry(board)) == 1
