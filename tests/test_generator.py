"""
Tests for candidate generation and the validate/retry loop.
"""

import dataclasses

import pytest

from shift_engine.runs_core.config_loader import load_config
from shift_engine.runs_core.errors import GenerationExhaustedError, InvalidParameterError
from shift_engine.runs_core.generator import (
    GenerationResult,
    compute_time_limit,
    generate_candidate,
    generate_valid_level,
    roll_variant,
)
from shift_engine.runs_core.level import (
    RANKS,
    ObjectiveKind,
    Rank,
    SpecialFeature,
    Variant,
)
from shift_engine.runs_core.rng import SEED_MASK, rank_seed
from shift_engine.runs_core.validation import validate_level


@pytest.fixture
def config():
    return load_config()


@pytest.fixture
def strict_config(config):
    """Config whose validation can never pass."""
    gen = dataclasses.replace(config.generation, min_usable_tiles=10 ** 9)
    return dataclasses.replace(config, generation=gen)


SAMPLE_SEEDS = [0, 1, 42, 12345, 7919, 99991, 123456789, 3735928559, SEED_MASK]


class TestDeterminism:
    """Test that generation is a pure function of (seed, rank)."""

    def test_seed_12345_green_reproducible(self, config):
        """Two calls return the same used seed and level."""
        a = generate_valid_level(12345, Rank.GREEN, config)
        b = generate_valid_level(12345, Rank.GREEN, config)
        assert a.ok and b.ok
        assert a.used_seed == b.used_seed
        assert a.level == b.level

    def test_seed_12345_green_bounds(self, config):
        level, _ = generate_valid_level(12345, "green", config).unwrap()
        lo, hi = config.envelope(Rank.GREEN).coverage_range
        assert lo <= level.target_coverage <= hi
        assert level.time_limit > 0

    @pytest.mark.parametrize("rank", RANKS)
    def test_candidate_deterministic(self, config, rank):
        assert generate_candidate(777, rank, config=config) == generate_candidate(777, rank, config=config)

    @pytest.mark.parametrize("rank", RANKS)
    def test_used_seed_reproduces_level(self, config, rank):
        """Regenerating from the used seed gives the identical level."""
        for seed in SAMPLE_SEEDS[:5]:
            level, used = generate_valid_level(seed, rank, config).unwrap()
            again, used_again = generate_valid_level(used, rank, config).unwrap()
            assert used_again == used
            assert again == level

    def test_rank_accepts_string(self, config):
        assert generate_valid_level(5, "Blue", config).rank == Rank.BLUE


class TestValidityInvariant:
    """Every returned level satisfies its envelope and solvability rules."""

    @pytest.mark.parametrize("rank", RANKS)
    def test_returned_levels_are_valid(self, config, rank):
        for seed in SAMPLE_SEEDS:
            result = generate_valid_level(seed, rank, config)
            assert result.ok, result.issues
            level = result.level
            assert validate_level(level, config) == []
            assert level.rank == rank
            assert level.seed == result.used_seed
            assert 0 < level.target_coverage <= 100
            assert level.time_limit > 0
            assert level.area > 0
            assert len(level.bonus_objectives) <= config.generation.max_objectives

    @pytest.mark.parametrize("rank", RANKS)
    def test_envelope_bounds(self, config, rank):
        env = config.envelope(rank)
        for seed in SAMPLE_SEEDS:
            level, _ = generate_valid_level(seed, rank, config).unwrap()
            ranges = env.park if level.is_park else env
            assert ranges.width_range[0] <= level.width <= ranges.width_range[1]
            assert ranges.height_range[0] <= level.height <= ranges.height_range[1]
            assert ranges.coverage_range[0] <= level.target_coverage <= ranges.coverage_range[1]
            assert env.time_range[0] <= level.time_limit <= env.time_range[1]

    def test_time_limit_step(self, config):
        for rank in RANKS:
            for seed in SAMPLE_SEEDS:
                level = generate_candidate(seed, rank, config=config)
                assert compute_time_limit(level, config) == level.time_limit
                assert level.time_limit % config.generation.time_step == 0


class TestRankSeparation:
    """Different ranks of one base seed give different levels."""

    def test_ranks_differ(self, config):
        for base in SAMPLE_SEEDS[:5]:
            levels = [
                generate_valid_level(rank_seed(base, r, config), r, config).unwrap()[0]
                for r in RANKS
            ]
            signatures = {
                (lv.difficulty, lv.width, lv.height, lv.target_coverage) for lv in levels
            }
            assert len(signatures) == 4


class TestVariants:
    """Test park variant selection."""

    def test_only_green_has_parks(self, config):
        for rank in (Rank.BLUE, Rank.RED, Rank.BLACK):
            for seed in range(30):
                assert roll_variant(seed, rank, config) == Variant.REGULAR

    def test_green_rolls_both_variants(self, config):
        variants = {roll_variant(seed, Rank.GREEN, config) for seed in range(100)}
        assert variants == {Variant.PARK, Variant.REGULAR}

    def test_zero_park_chance_never_rolls_park(self, config):
        green = config.envelope(Rank.GREEN)
        ranks = dict(config.ranks)
        ranks[Rank.GREEN] = dataclasses.replace(green, park=dataclasses.replace(green.park, chance=0.0))
        cfg = dataclasses.replace(config, ranks=ranks)
        assert cfg.envelope(Rank.GREEN).park_chance == 0.0
        for seed in range(100):
            assert roll_variant(seed, Rank.GREEN, cfg) == Variant.REGULAR

    def test_certain_park_chance_always_rolls_park(self, config):
        green = config.envelope(Rank.GREEN)
        ranks = dict(config.ranks)
        ranks[Rank.GREEN] = dataclasses.replace(green, park=dataclasses.replace(green.park, chance=1.0))
        cfg = dataclasses.replace(config, ranks=ranks)
        for seed in range(30):
            assert roll_variant(seed, Rank.GREEN, cfg) == Variant.PARK

    def test_variant_fixed_across_retries(self, config):
        """The returned used seed rolls the same variant as the requested one."""
        for seed in range(40):
            result = generate_valid_level(seed, Rank.GREEN, config)
            assert result.ok
            assert result.variant == roll_variant(seed, Rank.GREEN, config)
            assert roll_variant(result.used_seed, Rank.GREEN, config) == result.variant
            assert result.level.is_park == (result.variant == Variant.PARK)

    def test_park_levels(self, config):
        parks = [
            generate_valid_level(seed, Rank.GREEN, config).level
            for seed in range(30)
            if roll_variant(seed, Rank.GREEN, config) == Variant.PARK
        ]
        assert parks
        for level in parks:
            assert level.difficulty == "park"
            assert level.name_key == "rank_park"
            assert level.special_features
            assert not level.obstacles
            assert not level.steep_zones
            assert level.bonus_objectives[0].kind == ObjectiveKind.PRECISION_GROOMING.value
            has_pipe = any(o.kind == ObjectiveKind.PIPE_MASTERY.value for o in level.bonus_objectives)
            assert has_pipe == level.has_feature(SpecialFeature.HALFPIPE)

    def test_explicit_park_on_rank_without_parks(self, config):
        with pytest.raises(ValueError):
            generate_candidate(1, Rank.RED, Variant.PARK, config)


class TestCandidateContent:
    """Test rank-governed content of candidates."""

    def test_regular_fields(self, config):
        level = generate_candidate(4242, Rank.BLACK, config=config)
        assert level.name_key == "rank_black"
        assert level.task_key == "dailyRun_levelTask"
        assert level.id == config.generation.level_id_base + 4242 % 1000
        assert len(level.steep_zones) == 3
        assert level.has_winch
        assert len(level.winch_anchors) == 3
        assert "avalanche" in level.hazards
        assert level.intro_speaker == "Thierry"
        assert level.name

    def test_green_has_no_precision_objective(self, config):
        for seed in range(60):
            level = generate_candidate(seed, Rank.GREEN, Variant.REGULAR, config)
            kinds = {o.kind for o in level.bonus_objectives}
            assert ObjectiveKind.PRECISION_GROOMING.value not in kinds
            assert ObjectiveKind.WINCH_MASTERY.value not in kinds

    def test_exploration_matches_paths(self, config):
        found = False
        for seed in range(200):
            level = generate_candidate(seed, Rank.RED, config=config)
            for obj in level.bonus_objectives:
                if obj.kind == ObjectiveKind.EXPLORATION.value:
                    found = True
                    assert obj.total == len(level.access_paths)
                    assert 1 <= obj.target <= obj.total
        assert found

    def test_speed_run_within_time_limit(self, config):
        for seed in range(100):
            level = generate_candidate(seed, Rank.BLUE, config=config)
            for obj in level.bonus_objectives:
                if obj.kind == ObjectiveKind.SPEED_RUN.value:
                    assert obj.target <= level.time_limit

    def test_slalom_gates_sorted_downhill(self, config):
        for seed in range(50):
            level = generate_candidate(seed, Rank.BLACK, config=config)
            ys = [g.y for g in level.slalom_gates]
            assert ys == sorted(ys)
            assert all(0.1 < y < 0.85 for y in ys)

    def test_to_dict_is_plain(self, config):
        data = generate_candidate(9, Rank.RED, config=config).to_dict()
        assert data["rank"] == "red"
        assert isinstance(data["steep_zones"], list)
        assert isinstance(data["piste_variation"], dict)


class TestExhaustion:
    """Test the bounded retry loop."""

    def test_exhausted_result(self, strict_config):
        result = generate_valid_level(12345, Rank.RED, strict_config)
        assert not result.ok
        assert result.level is None
        assert result.used_seed is None
        assert result.attempts == strict_config.generation.max_attempts
        assert any("Insufficient groomable area" in i for i in result.issues)

    def test_unwrap_raises(self, strict_config):
        result = generate_valid_level(12345, Rank.RED, strict_config)
        with pytest.raises(GenerationExhaustedError) as excinfo:
            result.unwrap()
        assert excinfo.value.result is result
        assert "12345" in str(excinfo.value)

    def test_exhaustion_logged(self, strict_config, caplog):
        with caplog.at_level("WARNING", logger="shift_engine.runs_core.generator"):
            generate_valid_level(1, Rank.BLUE, strict_config)
        assert "Generation exhausted" in caplog.text

    def test_exhaustion_deterministic(self, strict_config):
        a = generate_valid_level(99, Rank.BLACK, strict_config)
        b = generate_valid_level(99, Rank.BLACK, strict_config)
        assert a == b

    def test_success_result(self, config):
        result = generate_valid_level(3, Rank.RED, config)
        assert isinstance(result, GenerationResult)
        assert result.ok
        assert result.requested_seed == 3
        assert result.attempts >= 1
        assert result.unwrap() == (result.level, result.used_seed)


class TestInvalidParameters:
    """Bad input is rejected without retrying."""

    @pytest.mark.parametrize("seed", [-1, SEED_MASK + 1, True, 2.5])
    def test_bad_seed(self, config, seed):
        with pytest.raises(InvalidParameterError):
            generate_valid_level(seed, Rank.GREEN, config)

    @pytest.mark.parametrize("rank", ["purple", "", None])
    def test_bad_rank(self, config, rank):
        with pytest.raises(InvalidParameterError):
            generate_valid_level(1, rank, config)
