"""Tests for level generator."""
import random

import pytest
from boardgen.core.assembly import generate_containers
from boardgen.core.distribution import choose_divisor
from boardgen.core.generator import (
    AdapterState,
    GenerationRun,
    GeneratorStrategy,
    LevelGenerator,
    get_generator,
)
from boardgen.core.geometry import is_connected, step
from boardgen.core.validator import check_lock_pairs, check_symmetry, count_colors
from boardgen.errors import GenerationError, InvalidConfigError, PlacementExhaustedError
from boardgen.models.level import Element, LevelConfig, board_to_dicts

COLORS = ("Red", "Blue", "Green")


@pytest.fixture
def generator():
    """Create generator instance."""
    return LevelGenerator()


def make_config(**kwargs):
    defaults = dict(width=9, height=10, block_count=27, selected_colors=COLORS)
    defaults.update(kwargs)
    return LevelConfig(**defaults)


def assert_symmetry_reported(level):
    mismatches = check_symmetry(level.board)
    if not level.config.symmetric:
        assert level.symmetry_mismatches == ()
    elif level.generator == "classified":
        assert mismatches == []
    else:
        assert list(level.symmetry_mismatches) == mismatches


def cells_with(level, element):
    return [
        (x, y, cell)
        for y, row in enumerate(level.board)
        for x, cell in enumerate(row)
        if cell.element == element.value
    ]


class TestScenarios:
    """End-to-end generation cases."""

    @pytest.mark.parametrize("seed", [0, 1, 2, 3])
    def test_single_pipe(self, generator, seed):
        """Test 27 blocks with one pipe: exact counts in groups of nine."""
        config = make_config(elements={"Pipe": 1})
        level, run = generator.generate_with_trace(config, rng=random.Random(seed))

        counts = count_colors(level.board)
        assert sum(counts.values()) == 27
        assert all(counts[c] % 9 == 0 for c in COLORS)
        assert is_connected(level.board)
        assert run.states == [AdapterState.IDLE, AdapterState.TRY_PRIMARY, AdapterState.SUCCESS]
        assert level.generator == "classified"

        pipes = cells_with(level, Element.PIPE)
        assert len(pipes) == 1
        x, y, pipe = pipes[0]
        tx, ty = step(x, y, pipe.pipe_direction)
        assert level.board[ty][tx].occupied
        assert level.pipe_info[0].contents == pipe.pipe_contents

    @pytest.mark.parametrize("block_count,divisor", [(18, 9), (15, 3)])
    def test_divisor_boundary(self, generator, block_count, divisor):
        """Test that two colors switch divisor at exactly 18 blocks."""
        config = make_config(width=7, height=7, block_count=block_count,
                             selected_colors=("Red", "Blue"))
        level = generator.generate(config, rng=random.Random(7))
        counts = count_colors(level.board)

        assert choose_divisor(block_count, 2) == divisor
        assert sum(counts.values()) == block_count
        assert all(count % divisor == 0 for count in counts.values())

    @pytest.mark.parametrize("seed", [0, 1, 2])
    def test_locks_and_keys(self, generator, seed):
        """Test that two locks each get one key on a color block."""
        level = generator.generate(make_config(elements={"BlockLock": 2}), rng=random.Random(seed))

        locks = cells_with(level, Element.BLOCK_LOCK)
        keys = cells_with(level, Element.KEY)
        assert len({cell.lock_id for _, _, cell in locks}) == 2
        assert sorted(c.key_id for _, _, c in keys) == sorted(c.lock_id for _, _, c in locks)
        assert all(cell.color is not None for _, _, cell in keys)
        assert len(level.lock_info) == 2
        check_lock_pairs(level.board)
        assert is_connected(level.board)

    @pytest.mark.parametrize("seed", range(6))
    def test_over_constrained_falls_back(self, generator, seed):
        """Test that an impossible request degrades through the legacy generator."""
        config = make_config(width=5, height=5, block_count=5,
                             elements={"Pipe": 3, "BlockLock": 2})
        level, run = generator.generate_with_trace(config, rng=random.Random(seed))

        assert run.states == [
            AdapterState.IDLE,
            AdapterState.TRY_PRIMARY,
            AdapterState.PRIMARY_FAILED,
            AdapterState.TRY_FALLBACK,
            AdapterState.SUCCESS,
        ]
        assert run.used_fallback
        assert run.primary_error.startswith("DistributionError")
        assert level.generator == "legacy"
        assert sum(count_colors(level.board).values()) == 5
        assert is_connected(level.board)
        assert level.shortfalls

    @pytest.mark.parametrize("seed", [0, 1, 2, 3])
    def test_symmetric_mirror(self, generator, seed):
        """Test that a symmetric board mirrors every cell except the center column."""
        config = make_config(generation_mode="symmetric")
        level = generator.generate(config, rng=random.Random(seed))

        assert check_symmetry(level.board) == []
        assert is_connected(level.board)
        assert sum(count_colors(level.board).values()) == 27

    @pytest.mark.parametrize("seed", range(20))
    def test_even_width_symmetric(self, generator, seed):
        """Test that an 8-wide symmetric board mirrors every cell."""
        config = make_config(width=8, height=10, block_count=36, generation_mode="symmetric")
        level = generator.generate(config, rng=random.Random(seed))

        assert check_symmetry(level.board) == []
        assert level.generator == "classified"
        assert sum(count_colors(level.board).values()) == 36
        assert is_connected(level.board)

    @pytest.mark.parametrize("width,height,block_count", [(9, 10, 27), (8, 5, 9)])
    @pytest.mark.parametrize("seed", range(5))
    def test_symmetric_barriers_and_locks(self, generator, width, height, block_count, seed):
        """Test symmetric runs with barriers and locks: mirrored, or the degradation is listed."""
        config = make_config(width=width, height=height, block_count=block_count,
                             generation_mode="symmetric",
                             elements={"Barrier": 2, "BlockLock": 2})
        level = generator.generate(config, rng=random.Random(seed))

        assert sum(count_colors(level.board).values()) == block_count
        assert is_connected(level.board)
        check_lock_pairs(level.board)
        assert_symmetry_reported(level)


class TestSeededSweep:
    """Mixed configs over many seeds: a valid level or a typed error, never anything else."""

    CONFIGS = [
        dict(width=8, height=10, block_count=36, generation_mode="symmetric"),
        dict(width=9, height=9, block_count=27, generation_mode="symmetric",
             elements={"Barrier": 2, "BlockLock": 2, "Pipe": 2}),
        dict(width=8, height=5, block_count=9, generation_mode="symmetric",
             elements={"BlockLock": 2, "Barrier": 2}),
        dict(width=3, height=5, block_count=9, generation_mode="symmetric",
             elements={"Barrier": 1, "BlockLock": 1, "Bomb": 1}),
        dict(width=4, height=3, block_count=11, elements={"PullPin": 3, "Pipe": 1, "Barrel": 1}),
        dict(width=6, height=6, block_count=18, generation_mode="symmetric",
             elements={"Pipe": 2, "Moving": 1, "IceBlock": 2}),
        dict(width=7, height=7, block_count=21,
             elements={"Pipe": 1, "Bomb": 2, "IceBlock": 1, "PullPin": 1, "Barrier": 1}),
    ]

    @pytest.mark.parametrize("overrides", CONFIGS)
    def test_sweep(self, generator, overrides):
        """Test count, connectivity and symmetry over twenty seeds."""
        config = make_config(**overrides)
        errors = []
        for seed in range(20):
            try:
                level = generator.generate(config, rng=random.Random(seed))
            except GenerationError as e:
                errors.append(type(e).__name__)
                continue
            assert sum(count_colors(level.board).values()) == config.block_count
            assert is_connected(level.board)
            assert_symmetry_reported(level)

        assert len(errors) < 20, errors


class TestAdapter:
    """Test cases for primary/fallback selection."""

    def test_legacy_strategy_skips_primary(self, generator):
        """Test that the legacy strategy goes straight to the fallback."""
        level, run = generator.generate_with_trace(
            make_config(elements={"Bomb": 2}), GeneratorStrategy.LEGACY, random.Random(0))

        assert run.states == [AdapterState.IDLE, AdapterState.TRY_FALLBACK, AdapterState.SUCCESS]
        assert run.primary_error is None
        assert level.generator == "legacy"

    def test_unsupported_element_falls_back(self, generator):
        """Test that a mechanic the primary cannot place triggers the fallback."""
        level, run = generator.generate_with_trace(
            make_config(elements={"PullPin": 1}), rng=random.Random(3))

        assert run.state == AdapterState.SUCCESS
        assert "UnsupportedElementError" in run.primary_error
        assert level.generator == "legacy"
        assert len(cells_with(level, Element.PULL_PIN)) == 1

    def test_invalid_config_never_falls_back(self, generator):
        """Test that a malformed config raises before any generator runs."""
        with pytest.raises(InvalidConfigError):
            generator.generate(make_config(block_count=0))

    def test_fallback_failure_propagates(self, generator, monkeypatch):
        """Test that a fallback error reaches the caller."""
        def fail(config, rng=None):
            raise PlacementExhaustedError(27, 3)

        monkeypatch.setattr(generator.fallback, "generate", fail)
        with pytest.raises(PlacementExhaustedError):
            generator.generate(make_config(elements={"PullPin": 1}), rng=random.Random(0))

    def test_same_seed_same_level(self, generator):
        """Test that generation is reproducible for a seed."""
        config = make_config(elements={"Pipe": 1, "Bomb": 1})
        first = generator.generate(config, rng=random.Random(11))
        second = generator.generate(config, rng=random.Random(11))

        assert first.id == second.id
        assert board_to_dicts(first.board) == board_to_dicts(second.board)

    def test_illegal_transition(self):
        """Test that the state trace refuses skipped states."""
        run = GenerationRun()
        with pytest.raises(RuntimeError):
            run.advance(AdapterState.SUCCESS)

    def test_generation_time_recorded(self, generator):
        """Test that the trace carries a non-negative duration."""
        _, run = generator.generate_with_trace(make_config(), rng=random.Random(0))
        assert run.generation_time_ms >= 0


class TestGetGenerator:
    """Test cases for the generator singleton."""

    def test_returns_same_instance(self):
        """Test that get_generator returns the same instance."""
        assert get_generator() is get_generator()

    def test_rebuilt_on_new_settings(self):
        """Test that changed settings produce a new instance."""
        default = get_generator()
        strict = get_generator(max_color_deviation=0)

        assert strict is not default
        assert strict.fallback.max_color_deviation == 0


class TestContainers:
    """Test cases for side containers."""

    @pytest.mark.parametrize("seed", range(5))
    def test_containers_are_never_full(self, seed):
        """Test that each container holds between one and slots-2 blocks."""
        config = make_config(block_count=54, width=9, height=10)
        containers = generate_containers(config, random.Random(seed))

        assert len(containers) == 5
        for container in containers:
            assert 3 <= container.slots <= 5
            assert 1 <= len(container.contents) <= container.slots - 2
