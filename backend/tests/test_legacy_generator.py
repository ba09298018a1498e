"""Tests for the legacy generator."""
import random

import pytest
from boardgen.core.geometry import is_connected
from boardgen.core.legacy_generator import LegacyLevelGenerator, fit_housings, fit_reserved
from boardgen.core.validator import check_symmetry, count_colors
from boardgen.models.level import Element, LevelConfig


@pytest.fixture
def generator():
    return LegacyLevelGenerator()


class TestFitReserved:
    """Test cases for capacity fitting."""

    def test_fits_already(self):
        """Test that capacities inside the budget are kept."""
        assert fit_reserved([2, 3], [1], 10) == ([2, 3], [1])

    def test_shrinks_largest_first(self):
        """Test that the largest capacity is reduced first."""
        assert fit_reserved([4, 2], [], 5) == ([3, 2], [])

    def test_drops_belts_before_pipes(self):
        """Test that whole instances are dropped once every capacity is 1."""
        assert fit_reserved([1, 1], [1], 2) == ([1, 1], [])
        assert fit_reserved([1, 1], [1], 1) == ([1], [])

    def test_negative_budget(self):
        """Test that a negative budget drops everything."""
        assert fit_reserved([3], [2], -1) == ([], [])


class TestFitHousings:
    """Test cases for fitting housings into the free cells."""

    def test_room_for_all(self):
        """Test that every housing is kept when the grid has room."""
        assert fit_housings(1, 1, 2, 10) == {Element.PIPE: 1, Element.MOVING: 1, Element.PULL_PIN: 2}

    def test_pull_pins_go_first(self):
        """Test that pull pins are dropped before belts and pipes."""
        assert fit_housings(1, 1, 3, 3) == {Element.PIPE: 1, Element.MOVING: 1, Element.PULL_PIN: 1}
        assert fit_housings(2, 1, 1, 1) == {Element.PIPE: 1, Element.MOVING: 0, Element.PULL_PIN: 0}

    def test_full_grid(self):
        """Test that a grid without free cells keeps no housing."""
        assert fit_housings(2, 0, 1, 0) == {Element.PIPE: 0, Element.MOVING: 0, Element.PULL_PIN: 0}


class TestLegacyLevelGenerator:
    """Test cases for LegacyLevelGenerator."""

    @pytest.mark.parametrize("seed", range(4))
    def test_pipes_and_belts(self, generator, seed):
        """Test that contents make up for colorless housings."""
        config = LevelConfig(
            width=9, height=10, block_count=27, selected_colors=("Red", "Blue", "Green"),
            elements={"Pipe": 2, "Moving": 1}, pipe_block_count=3, moving_block_count=2,
        )
        level = generator.generate(config, random.Random(seed))
        counts = count_colors(level.board)

        assert sum(counts.values()) == 27
        assert is_connected(level.board)
        assert level.generator == "legacy"
        assert all(abs(d) <= generator.max_color_deviation for d in level.color_deviation.values())

    def test_non_divisible_count(self, generator):
        """Test that a count off the divisor is accepted within tolerance."""
        config = LevelConfig(width=6, height=6, block_count=10, selected_colors=("Red", "Blue"))
        level = generator.generate(config, random.Random(1))

        assert sum(count_colors(level.board).values()) == 10

    def test_symmetric_with_elements(self, generator):
        """Test symmetric growth with mirrored bombs."""
        config = LevelConfig(
            width=9, height=10, block_count=27, selected_colors=("Red", "Blue", "Green"),
            generation_mode="symmetric", elements={"Bomb": 2},
        )
        level = generator.generate(config, random.Random(2))

        assert sum(count_colors(level.board).values()) == 27
        assert is_connected(level.board)
        assert check_symmetry(level.board) == []
        assert level.symmetry_mismatches == ()

    @pytest.mark.parametrize("seed", range(12))
    def test_housings_on_a_nearly_full_grid(self, generator, seed):
        """Test that housings beyond the free cells are dropped, not grown past the grid."""
        config = LevelConfig(
            width=4, height=3, block_count=11, selected_colors=("Red", "Blue", "Green"),
            elements={"PullPin": 3, "Pipe": 1, "Barrel": 1},
        )
        level = generator.generate(config, random.Random(seed))

        assert sum(count_colors(level.board).values()) == 11
        assert is_connected(level.board)
        pins = [cell for row in level.board for cell in row if cell.element == Element.PULL_PIN.value]
        shortfalls = {s["element"]: s for s in level.shortfalls}
        assert len(pins) == 3 or shortfalls[Element.PULL_PIN.value]["placed"] == len(pins)

    @pytest.mark.parametrize("seed", range(6))
    def test_even_width_degradation_is_recorded(self, generator, seed):
        """Test that unmirrored cells of a degraded symmetric board are listed on the level."""
        config = LevelConfig(
            width=8, height=5, block_count=9, selected_colors=("Red", "Blue", "Green"),
            generation_mode="symmetric", elements={"BlockLock": 2, "Barrier": 2},
        )
        level = generator.generate(config, random.Random(seed))

        assert sum(count_colors(level.board).values()) == 9
        assert is_connected(level.board)
        assert list(level.symmetry_mismatches) == check_symmetry(level.board)
        assert level.symmetry_mismatches
