"""
Breakout Physics Engine
Tick-based motion integrator, brick-grid collision and paddle steering.

All velocities are in surface units per tick. There is no delta-time
scaling: one call to ``PhysicsEngine.update`` is one tick.
"""

import enum
import math
import numpy as np
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

# ──────────────────────────────────────────────
# Constants (surface units, px)
# ──────────────────────────────────────────────
SURFACE_WIDTH: float = 800.0
SURFACE_HEIGHT: float = 600.0

BRICK_WIDTH: float = 80.0
BRICK_HEIGHT: float = 20.0
BRICK_ROWS: int = 14
RESET_OFFSET_ROWS: int = 3          # top rows left empty after every reset

BALL_RADIUS: float = 10.0
BALL_VELOCITY: Tuple[float, float] = (3.0, 5.0)    # units per tick

PADDLE_WIDTH: float = 100.0
PADDLE_HEIGHT: float = 10.0
PADDLE_BOTTOM_OFFSET: float = 50.0  # paddle.y = surface_height - offset

STEERING_COEFFICIENT: float = 0.25  # paddle-hit offset -> new vx


class Color(enum.Enum):
    BLACK = "black"
    RED = "red"
    GREEN = "green"
    BLUE = "blue"


class ConfigError(ValueError):
    """Raised once at startup for a physically nonsensical configuration."""


@dataclass(frozen=True)
class GameConfig:
    """Run-wide constants. Fixed for the lifetime of an engine."""
    surface_width: float = SURFACE_WIDTH
    surface_height: float = SURFACE_HEIGHT
    brick_width: float = BRICK_WIDTH
    brick_height: float = BRICK_HEIGHT
    brick_rows: int = BRICK_ROWS
    reset_offset_rows: int = RESET_OFFSET_ROWS
    steering_coefficient: float = STEERING_COEFFICIENT
    ball_radius: float = BALL_RADIUS
    ball_velocity: Tuple[float, float] = BALL_VELOCITY
    paddle_width: float = PADDLE_WIDTH
    paddle_height: float = PADDLE_HEIGHT
    paddle_bottom_offset: float = PADDLE_BOTTOM_OFFSET

    @property
    def columns_per_row(self) -> int:
        return int(self.surface_width // self.brick_width)

    @property
    def bricks_per_round(self) -> int:
        """Alive cells right after a reset."""
        return (self.brick_rows - self.reset_offset_rows) * self.columns_per_row

    def validate(self) -> "GameConfig":
        """Check startup preconditions; raise ConfigError listing every violation."""
        problems = []
        if self.surface_width <= 0 or self.surface_height <= 0:
            problems.append("surface dimensions must be positive")
        if self.brick_width <= 0 or self.brick_height <= 0:
            problems.append("brick dimensions must be positive")
        elif self.surface_width > 0 and math.fmod(self.surface_width, self.brick_width) != 0:
            problems.append(
                f"brick_width {self.brick_width} does not tile surface_width {self.surface_width}"
            )
        if self.brick_rows < 0:
            problems.append("brick_rows must be >= 0")
        elif self.brick_height > 0 and self.brick_rows * self.brick_height > self.surface_height:
            problems.append("brick grid is taller than the surface")
        if not 0 <= self.reset_offset_rows <= max(self.brick_rows, 0):
            problems.append("reset_offset_rows must lie in [0, brick_rows]")
        if self.ball_radius <= 0:
            problems.append("ball_radius must be positive")
        elif self.brick_rows > 0 and self.ball_radius > min(self.brick_width, self.brick_height):
            problems.append("ball_radius is larger than a brick cell")
        if not 0 < self.paddle_width <= self.surface_width:
            problems.append("paddle_width must lie in (0, surface_width]")
        if self.paddle_height <= 0:
            problems.append("paddle_height must be positive")
        if not 0 < self.paddle_bottom_offset < self.surface_height:
            problems.append("paddle_bottom_offset must lie inside the surface")
        if problems:
            raise ConfigError("invalid game config: " + "; ".join(problems))
        return self


# ──────────────────────────────────────────────
# State primitives
# ──────────────────────────────────────────────
@dataclass
class Ball:
    """Ball with per-tick velocity. Radius never changes."""
    position: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0]))
    velocity: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0]))
    radius: float = BALL_RADIUS
    color: Color = Color.BLUE

    def __post_init__(self):
        self.position = np.array(self.position, dtype=float)
        self.velocity = np.array(self.velocity, dtype=float)

    @property
    def x(self) -> float:
        return float(self.position[0])

    @property
    def y(self) -> float:
        return float(self.position[1])

    @property
    def vx(self) -> float:
        return float(self.velocity[0])

    @property
    def vy(self) -> float:
        return float(self.velocity[1])

    @property
    def speed(self) -> float:
        return float(np.linalg.norm(self.velocity))


@dataclass
class Paddle:
    """Paddle rectangle. Position is owned by the input side."""
    x: float = 0.0
    y: float = 0.0
    width: float = PADDLE_WIDTH
    height: float = PADDLE_HEIGHT
    color: Color = Color.GREEN

    @property
    def center_x(self) -> float:
        return self.x + self.width / 2


class BrickGrid:
    """Row-major alive/destroyed cells with an incrementally kept ``bricks_left``."""

    def __init__(self, rows: int, columns: int, reset_offset_rows: int = 0,
                 brick_width: float = BRICK_WIDTH, brick_height: float = BRICK_HEIGHT):
        self.rows = rows
        self.columns = columns
        self.reset_offset_rows = reset_offset_rows
        self.brick_width = brick_width
        self.brick_height = brick_height
        self.cells = np.zeros(rows * columns, dtype=bool)
        self.bricks_left = 0

    @classmethod
    def from_config(cls, config: GameConfig) -> "BrickGrid":
        return cls(config.brick_rows, config.columns_per_row, config.reset_offset_rows,
                   config.brick_width, config.brick_height)

    def reset(self) -> None:
        """Clear the offset rows and fill everything below them."""
        offset = self.reset_offset_rows * self.columns
        self.cells[:offset] = False
        self.cells[offset:] = True
        self.bricks_left = (self.rows - self.reset_offset_rows) * self.columns

    def index(self, col: int, row: int) -> Optional[int]:
        if 0 <= col < self.columns and 0 <= row < self.rows:
            return row * self.columns + col
        return None

    def is_alive(self, col: int, row: int) -> bool:
        """Out-of-range cells read as not alive."""
        idx = self.index(col, row)
        return idx is not None and bool(self.cells[idx])

    def destroy(self, col: int, row: int) -> bool:
        """Destroy a live cell. Returns False if there was nothing to destroy."""
        idx = self.index(col, row)
        if idx is None or not self.cells[idx]:
            return False
        self.cells[idx] = False
        self.bricks_left -= 1
        return True

    def cell_at(self, x: float, y: float) -> Tuple[int, int]:
        return (int(math.floor(x / self.brick_width)),
                int(math.floor(y / self.brick_height)))

    def cell_rect(self, col: int, row: int) -> Tuple[float, float, float, float]:
        return (col * self.brick_width, row * self.brick_height,
                self.brick_width, self.brick_height)

    def live_count(self) -> int:
        return int(np.count_nonzero(self.cells))

    def alive_indices(self) -> List[int]:
        return [int(i) for i in np.flatnonzero(self.cells)]

    def is_empty(self) -> bool:
        return self.bricks_left == 0


# ──────────────────────────────────────────────
# Brick collision inference
# ──────────────────────────────────────────────
class BrickCollisionResolver:
    """Strategy for deciding which face of a brick the ball struck.

    ``resolve`` destroys the struck cell (if any), reflects the ball and
    returns the destroyed ``(col, row)`` or ``None``.
    """

    def resolve(self, ball: Ball, grid: BrickGrid) -> Optional[Tuple[int, int]]:
        raise NotImplementedError


class CellDeltaResolver(BrickCollisionResolver):
    """Infers the struck face from the cell the ball occupied one tick ago.

    Tunnels when speed exceeds one cell per tick.
    """

    def resolve(self, ball: Ball, grid: BrickGrid) -> Optional[Tuple[int, int]]:
        col, row = grid.cell_at(ball.x, ball.y)
        if not grid.destroy(col, row):
            return None

        prev_col, prev_row = grid.cell_at(ball.x - ball.vx, ball.y - ball.vy)
        col_changed = prev_col != col
        row_changed = prev_row != row

        if col_changed and not grid.is_alive(prev_col, row):
            ball.velocity[0] = -ball.velocity[0]
        if row_changed and not grid.is_alive(col, prev_row):
            ball.velocity[1] = -ball.velocity[1]
        if not col_changed and not row_changed:
            ball.velocity[0] = -ball.velocity[0]
            ball.velocity[1] = -ball.velocity[1]
        return col, row


class PhysicsEngine:
    """Per-tick ball physics against walls, bricks and the paddle."""

    def __init__(self, config: Optional[GameConfig] = None,
                 brick_resolver: Optional[BrickCollisionResolver] = None):
        self.config = (config or GameConfig()).validate()
        self.brick_resolver = brick_resolver or CellDeltaResolver()
        self.events: list = []

    # ──────────────────────────────────────────
    # Factories
    # ──────────────────────────────────────────
    def make_ball(self) -> Ball:
        c = self.config
        ball = Ball(velocity=list(c.ball_velocity), radius=c.ball_radius)
        self.reset_ball(ball)
        return ball

    def make_paddle(self) -> Paddle:
        c = self.config
        return Paddle(x=c.surface_width / 2, y=c.surface_height - c.paddle_bottom_offset,
                      width=c.paddle_width, height=c.paddle_height)

    def make_grid(self) -> BrickGrid:
        grid = BrickGrid.from_config(self.config)
        grid.reset()
        return grid

    def reset_ball(self, ball: Ball) -> None:
        """Re-centre the ball. Velocity is untouched."""
        c = self.config
        ball.position[0] = c.surface_width / 2 - ball.radius
        ball.position[1] = c.surface_height / 2 - ball.radius

    def reset_grid(self, grid: BrickGrid, reason: str) -> None:
        grid.reset()
        self.events.append({"type": "reset_bricks", "reason": reason,
                            "bricks_left": grid.bricks_left})

    # ──────────────────────────────────────────
    # Motion integrator
    # ──────────────────────────────────────────
    def advance(self, ball: Ball, grid: BrickGrid) -> None:
        """Move one tick, then apply floor, wall and ceiling in that order."""
        ball.position = ball.position + ball.velocity
        self._check_floor(ball, grid)
        self._check_walls(ball)
        self._check_ceiling(ball)

    def _check_floor(self, ball: Ball, grid: BrickGrid) -> None:
        R = ball.radius
        if ball.position[1] > self.config.surface_height - R:
            self.events.append({"type": "floor", "x": ball.x, "speed": ball.speed})
            self.reset_ball(ball)
            self.reset_grid(grid, "floor")

    def _check_walls(self, ball: Ball) -> None:
        R = ball.radius
        x, vx = ball.position[0], ball.velocity[0]
        # direction guard keeps a ball past the edge from flipping every tick
        if (x >= self.config.surface_width - R and vx > 0) or (x <= R and vx < 0):
            ball.velocity[0] = -vx
            self.events.append({"type": "wall", "speed": abs(float(vx))})

    def _check_ceiling(self, ball: Ball) -> None:
        R = ball.radius
        if ball.position[1] <= R and ball.velocity[1] < 0:
            ball.velocity[1] = -ball.velocity[1]
            self.events.append({"type": "ceiling", "speed": abs(ball.vy)})

    # ──────────────────────────────────────────
    # Collision resolvers
    # ──────────────────────────────────────────
    def resolve_brick(self, ball: Ball, grid: BrickGrid) -> None:
        hit = self.brick_resolver.resolve(ball, grid)
        if hit is not None:
            col, row = hit
            self.events.append({"type": "brick", "col": col, "row": row,
                                "bricks_left": grid.bricks_left, "speed": ball.speed})

    @staticmethod
    def paddle_contact(ball: Ball, paddle: Paddle) -> bool:
        R = ball.radius
        return (paddle.y - R < ball.y < paddle.y
                and paddle.x - R < ball.x < paddle.x + paddle.width)

    def resolve_paddle(self, ball: Ball, paddle: Paddle, grid: BrickGrid) -> None:
        """Bounce off the paddle, steering by the offset from its centre."""
        if not self.paddle_contact(ball, paddle):
            return
        ball.velocity[1] = -ball.velocity[1]
        ball.velocity[0] = (paddle.center_x - ball.x) * self.config.steering_coefficient
        self.events.append({"type": "paddle", "offset": paddle.center_x - ball.x,
                            "speed": ball.speed})
        if grid.is_empty():
            self.reset_grid(grid, "round")

    # ──────────────────────────────────────────
    # Main update
    # ──────────────────────────────────────────
    def update(self, ball: Ball, paddle: Paddle, grid: BrickGrid) -> None:
        """One tick: advance, bricks, paddle."""
        self.events.clear()
        self.advance(ball, grid)
        self.resolve_brick(ball, grid)
        self.resolve_paddle(ball, paddle, grid)
