"""
text.py — Greedy word wrapping.

Line breaking is a pure function of the text, the width budget, the font and
the backend's measurement callable, so the sizing pass and the paint pass
always produce the same lines.
"""

from typing import Callable

from lookup_reports.config import FontSpec

Measure = Callable[[str, FontSpec], float]


def wrap(text: str, max_width: float, font: FontSpec, measure: Measure) -> tuple:
    """Break `text` into lines no wider than `max_width` under `font`.

    A word that is wider than the budget on its own is emitted alone on its own
    line rather than split. Runs of whitespace collapse to a single space.
    Empty text yields a single empty line so every slot occupies one line.

    Args:
        text: Text run to wrap.
        max_width: Width budget in backend units.
        font: Font used for measurement.
        measure: Backend measurement callable `(text, font) -> width`.

    Returns:
        Tuple of line strings.
    """
    words = str(text).split()
    if not words:
        return ("",)

    lines = []
    current = words[0]
    for word in words[1:]:
        candidate = f"{current} {word}"
        if measure(candidate, font) <= max_width:
            current = candidate
        else:
            lines.append(current)
            current = word
    lines.append(current)
    return tuple(lines)
