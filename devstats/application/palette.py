from typing import List

BASE_COLORS = [
    "#4e79a7",  # blue
    "#f28e2c",  # orange
    "#e15759",  # red
    "#76b7b2",  # teal
    "#59a14f",  # green
    "#edc949",  # yellow
    "#af7aa1",  # purple
    "#ff9da7",  # pink
    "#9c755f",  # brown
    "#bab0ab",  # grey
]


def _scale_channel(value: int, factor: float) -> int:
    # round half up, then clamp
    return min(255, int(value * factor + 0.5))


def adjust_brightness(hex_color: str, factor: float) -> str:
    r = _scale_channel(int(hex_color[1:3], 16), factor)
    g = _scale_channel(int(hex_color[3:5], 16), factor)
    b = _scale_channel(int(hex_color[5:7], 16), factor)
    return f"#{r:02x}{g:02x}{b:02x}"


def generate_colors(count: int) -> List[str]:
    """
    Returns `count` chart colors. The base palette is used as-is while it
    lasts; further colors cycle through it with growing brightness.
    """
    if count <= 0:
        return []
    if count <= len(BASE_COLORS):
        return BASE_COLORS[:count]

    colors = list(BASE_COLORS)
    while len(colors) < count:
        index = len(colors)
        factor = 0.8 + (index / len(BASE_COLORS)) * 0.4
        colors.append(adjust_brightness(BASE_COLORS[index % len(BASE_COLORS)], factor))
    return colors
