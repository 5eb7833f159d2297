"""
flow.py — Flow & Pagination Engine (sizing pass).

Stacks record boxes vertically in input order and decides, before anything is
drawn, where every box and the terminal footer go:

    - advance after each box: box height + box_spacing
    - paginated output: a box that would cross page_bottom starts a new page at
      continuation_top; boxes are never split across pages
    - footer: directly under the last box (after footer_gap) unless it would
      end inside the safety margin, in which case it moves to a new page
    - single canvas: one page whose height is computed from the content

The composer's paint pass reuses these coordinates verbatim.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from lookup_reports.layout import BlockLayoutEngine
from lookup_reports.report_types import ReportType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Placement:
    """Where record `index` lands on its page."""
    index: int
    y: float
    height: float

    @property
    def bottom(self) -> float:
        return self.y + self.height


@dataclass
class Page:
    number: int
    placements: list = field(default_factory=list)


@dataclass
class FlowResult:
    pages: list
    footer_page: int
    footer_y: float
    canvas_height: Optional[float] = None

    @property
    def page_count(self) -> int:
        return len(self.pages)

    @property
    def placements(self) -> list:
        return [p for page in self.pages for p in page.placements]


def flow(
    records: Sequence[Any],
    report_type: ReportType,
    engine: BlockLayoutEngine,
    footer_height: float,
) -> FlowResult:
    """Size every record and assign page + y coordinates.

    Args:
        records: Upstream records, already capped by the caller if needed.
        report_type: Field map used for sizing.
        engine: Block layout engine of the target format.
        footer_height: Height of the terminal footer band.

    Returns:
        FlowResult with one Page per output page (a single page for the
        unbounded canvas, plus its computed height).
    """
    cfg = engine.config
    bottom = cfg.page_bottom
    pages = [Page(number=1)]
    y = cfg.body_top

    for index, record in enumerate(records):
        height = engine.measure(record, report_type)
        page = pages[-1]
        fits_fresh_page = bottom is not None and cfg.continuation_top + height <= bottom
        if bottom is not None and y + height > bottom and (page.placements or fits_fresh_page):
            pages.append(Page(number=len(pages) + 1))
            page = pages[-1]
            y = cfg.continuation_top
        if bottom is not None and y + height > bottom:
            logger.warning("Record %d (%.0f high) exceeds the page body; placed alone", index, height)
        page.placements.append(Placement(index=index, y=y, height=height))
        y += height + cfg.box_spacing

    last = pages[-1].placements[-1].bottom if records else cfg.body_top
    footer_page = len(pages)
    footer_y = last + cfg.footer_gap

    threshold = cfg.footer_threshold(footer_height)
    if threshold is not None and footer_y > threshold:
        pages.append(Page(number=len(pages) + 1))
        footer_page = len(pages)
        footer_y = cfg.continuation_top

    canvas_height = None
    if not cfg.paginated:
        canvas_height = footer_y + footer_height + cfg.margin_bottom

    logger.debug("Flowed %d %s records onto %d page(s); footer on page %d at y=%.1f",
                 len(records), report_type.key, len(pages), footer_page, footer_y)
    return FlowResult(pages=pages, footer_page=footer_page, footer_y=footer_y,
                      canvas_height=canvas_height)
