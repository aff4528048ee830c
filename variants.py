"""
Game Variants
The three successive versions of the game, expressed as configuration
presets over the same engine.
"""

from physics import GameConfig, BRICK_ROWS, RESET_OFFSET_ROWS


class Variant:
    """Each preset returns a validated GameConfig."""

    @staticmethod
    def variant_1_paddle() -> GameConfig:
        """Paddle and ball only: no brick wall, strong steering."""
        return GameConfig(
            brick_rows=0,
            reset_offset_rows=0,
            steering_coefficient=0.35,
        ).validate()

    @staticmethod
    def variant_2_bricks() -> GameConfig:
        """Full brick wall from the ceiling down."""
        return GameConfig(
            brick_rows=10,
            reset_offset_rows=0,
            steering_coefficient=0.35,
        ).validate()

    @staticmethod
    def variant_3_rounds() -> GameConfig:
        """Brick wall with an empty band under the ceiling; a cleared wall starts a new round."""
        return GameConfig(
            brick_rows=BRICK_ROWS,
            reset_offset_rows=RESET_OFFSET_ROWS,
            steering_coefficient=0.25,
        ).validate()


VARIANTS = {
    "paddle": (Variant.variant_1_paddle, "1: Paddle"),
    "bricks": (Variant.variant_2_bricks, "2: Bricks"),
    "rounds": (Variant.variant_3_rounds, "3: Rounds"),
}

DEFAULT_VARIANT = "rounds"


def load_variant(name: str) -> GameConfig:
    """Look up a preset by name; raises KeyError listing the known names."""
    try:
        fn, _label = VARIANTS[name]
    except KeyError:
        raise KeyError(f"unknown variant '{name}', expected one of {sorted(VARIANTS)}") from None
    return fn()
