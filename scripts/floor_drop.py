"""Floor drop — paddle parked in the corner, ball falls past it and the wall resets"""

SCRIPT = {
    "label": "floor drop",
    "setup": {
        "ball":   {"pos": [600.0, 520.0], "vel": [0.0, 5.0]},
        "paddle": {"x": 0.0},
        "bricks": {"destroyed": [[0, 13], [1, 13], [2, 13]]},
    },
}
