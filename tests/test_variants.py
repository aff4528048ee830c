"""
Tests for the game variant presets.
Each preset must build a valid config and behave like its version of the game.
"""

import sys
import os
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from physics import GameConfig
from controller import BreakoutController, GameState
from variants import Variant, VARIANTS, DEFAULT_VARIANT, load_variant


class TestPresets:

    PRESETS = [
        Variant.variant_1_paddle,
        Variant.variant_2_bricks,
        Variant.variant_3_rounds,
    ]

    @pytest.mark.parametrize("preset", PRESETS)
    def test_returns_valid_config(self, preset):
        cfg = preset()
        assert isinstance(cfg, GameConfig)
        assert cfg.validate() is cfg

    @pytest.mark.parametrize("preset", PRESETS)
    def test_steering_in_tuned_range(self, preset):
        assert 0.25 <= preset().steering_coefficient <= 0.35

    @pytest.mark.parametrize("preset", PRESETS)
    def test_controller_runs(self, preset):
        ctrl = BreakoutController(preset())
        for _ in range(600):
            ctrl.tick()
        assert ctrl.state == GameState.RUNNING
        assert ctrl.grid.bricks_left == ctrl.grid.live_count()


class TestVariantBehaviour:

    def test_paddle_variant_has_no_bricks(self):
        ctrl = BreakoutController(Variant.variant_1_paddle())
        ctrl.start()
        assert ctrl.grid.cells.size == 0
        assert ctrl.grid.bricks_left == 0

    def test_paddle_variant_never_counts_rounds(self):
        """An empty grid on every paddle hit is not a cleared wall."""
        ctrl = BreakoutController(Variant.variant_1_paddle())
        for _ in range(2000):
            ctrl.move_paddle(min(700.0, max(0.0, ctrl.ball.x - 50.0)))
            ctrl.tick()
        assert ctrl.round == 1

    def test_bricks_variant_fills_from_ceiling(self):
        cfg = Variant.variant_2_bricks()
        ctrl = BreakoutController(cfg)
        ctrl.start()
        assert ctrl.grid.is_alive(0, 0)
        assert ctrl.grid.bricks_left == cfg.brick_rows * cfg.columns_per_row

    def test_rounds_variant_keeps_top_band_empty(self):
        cfg = Variant.variant_3_rounds()
        ctrl = BreakoutController(cfg)
        ctrl.start()
        for row in range(cfg.reset_offset_rows):
            assert not any(ctrl.grid.is_alive(col, row) for col in range(cfg.columns_per_row))
        assert ctrl.grid.bricks_left == cfg.bricks_per_round


class TestLookup:

    def test_default_variant_registered(self):
        assert DEFAULT_VARIANT in VARIANTS

    @pytest.mark.parametrize("name", sorted(VARIANTS))
    def test_load_by_name(self, name):
        fn, label = VARIANTS[name]
        assert load_variant(name) == fn()
        assert label

    def test_unknown_name(self):
        with pytest.raises(KeyError, match="unknown variant"):
            load_variant("pinball")
