"""Corner hit — ball drops into a brick from inside the cell it already occupies"""

SCRIPT = {
    "label": "corner hit",
    "setup": {
        "ball":   {"pos": [395.0, 275.0], "vel": [3.0, -5.0]},
        "paddle": {"x": 350.0},
        "bricks": {"destroyed": []},
    },
}
