"""
layout.py — Block Layout Engine.

Turns one upstream record into a self-contained rectangular block: a coloured
avatar column carrying the title initial, the wrapped title and the wrapped
detail lines. Sizing (`measure`, `layout`) is pure and never touches a
surface; `paint` only draws the lines the sized box already carries, so the
sizing pass and the paint pass cannot diverge.

    height = box_padding_top
           + (title lines + detail lines) * line_height
           + box_padding_bottom            (floored at min_box_height)
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from lookup_reports.config import LayoutConfig, Theme
from lookup_reports.errors import FontMetricsError
from lookup_reports.report_types import ReportType, TextBlock, build_text_block
from lookup_reports.text import wrap

logger = logging.getLogger(__name__)

_FIELD_ERRORS = (ValueError, TypeError, KeyError, UnicodeError)


@dataclass(frozen=True)
class LayoutBox:
    """A positioned, sized block for one record."""
    x: float
    y: float
    width: float
    height: float
    block: TextBlock
    title_lines: tuple
    detail_lines: tuple     # one tuple of wrapped lines per detail string

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def line_count(self) -> int:
        return len(self.title_lines) + sum(len(lines) for lines in self.detail_lines)


class BlockLayoutEngine:
    """Sizes and paints record blocks for one output format."""

    def __init__(
        self,
        layout: LayoutConfig,
        metrics,
        theme: Optional[Theme] = None,
        placeholder: str = "N/A",
        accents: Optional[dict] = None,
    ):
        self.config = layout
        self.metrics = metrics
        self.theme = theme or Theme()
        self.placeholder = placeholder
        self.accents = accents or {}

    # -- sizing --------------------------------------------------------------

    def text_block(self, record: Any, report_type: ReportType) -> TextBlock:
        return build_text_block(record, report_type, self.placeholder,
                                accent=self.accents.get(report_type.key))

    def _wrap_field(self, text: str, font, kind: str) -> tuple:
        budget = self.config.text_width
        try:
            return wrap(text, budget, font, self.metrics.width)
        except FontMetricsError:
            raise
        except _FIELD_ERRORS as exc:
            logger.warning("Could not measure %s %r (%s); using placeholder", kind, text, exc)

        # Detail lines read "Label: value"; only the value is replaced
        label, sep, _ = str(text).partition(": ")
        if kind == "detail" and sep:
            try:
                return wrap(f"{label}: {self.placeholder}", budget, font, self.metrics.width)
            except _FIELD_ERRORS as exc:
                logger.warning("Could not measure label %r (%s); dropping it", label, exc)
        return wrap(self.placeholder, budget, font, self.metrics.width)

    def wrap_block(self, block: TextBlock) -> tuple:
        """Wrap title and details; returns (title_lines, detail_lines)."""
        title_lines = self._wrap_field(block.title, self.config.title_font, "title")
        detail_lines = tuple(
            self._wrap_field(detail, self.config.body_font, "detail")
            for detail in block.details
        )
        return title_lines, detail_lines

    def height_for(self, line_count: int) -> float:
        cfg = self.config
        height = cfg.box_padding_top + line_count * cfg.line_height + cfg.box_padding_bottom
        return max(height, cfg.min_box_height)

    def layout(self, record: Any, report_type: ReportType, x: float, y: float) -> LayoutBox:
        """Compute the box for `record` placed at (x, y). Pure."""
        block = self.text_block(record, report_type)
        title_lines, detail_lines = self.wrap_block(block)
        line_count = len(title_lines) + sum(len(lines) for lines in detail_lines)
        return LayoutBox(
            x=x,
            y=y,
            width=self.config.box_width,
            height=self.height_for(line_count),
            block=block,
            title_lines=title_lines,
            detail_lines=detail_lines,
        )

    def measure(self, record: Any, report_type: ReportType) -> float:
        """Height the record's box needs. Pure."""
        return self.layout(record, report_type, 0.0, 0.0).height

    # -- painting ------------------------------------------------------------

    def _baseline(self, line_top: float, font) -> float:
        return line_top + (self.config.line_height + font.size * 0.7) / 2

    def paint(self, surface, box: LayoutBox, shaded: bool = False) -> None:
        """Draw `box` on `surface` using the lines computed at sizing time."""
        cfg = self.config
        theme = self.theme

        surface.draw_rect(box.x, box.y, box.width, box.height,
                          fill=theme.box_fill_alt if shaded else theme.box_fill,
                          stroke=theme.border)
        surface.draw_rect(box.x, box.y, cfg.avatar_width, box.height, fill=box.block.accent)

        initial = next((ch for ch in box.block.title if ch.isalnum()), "#").upper()
        surface.draw_text(
            box.x + cfg.avatar_width / 2,
            box.y + box.height / 2 + cfg.title_font.size * 0.35,
            initial, cfg.title_font, theme.avatar_text, align="center",
        )

        text_x = box.x + cfg.avatar_width + cfg.box_padding_x
        line_top = box.y + cfg.box_padding_top
        for line in box.title_lines:
            surface.draw_text(text_x, self._baseline(line_top, cfg.title_font),
                              line, cfg.title_font, theme.text)
            line_top += cfg.line_height
        for lines in box.detail_lines:
            for line in lines:
                surface.draw_text(text_x, self._baseline(line_top, cfg.body_font),
                                  line, cfg.body_font, theme.text)
                line_top += cfg.line_height
