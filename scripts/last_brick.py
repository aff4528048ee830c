"""Last brick — one brick left; the next paddle hit after clearing it starts a new round"""

# grid of the "rounds" variant: 10 columns, rows 3..13 alive after reset
_KEEP = (4, 13)

SCRIPT = {
    "label": "last brick",
    "setup": {
        "ball":   {"pos": [360.0, 300.0], "vel": [0.0, -5.0]},
        "paddle": {"x": 310.0},
        "bricks": {
            "destroyed": [[c, r] for r in range(3, 14) for c in range(10) if (c, r) != _KEEP],
        },
    },
}
