"""
composer.py — Document Composer.

Assembles the final report around the flowed record body:

    Page 1:       header (report title, brand label) + information banner
                  (subject id, generation date) + section bar + body
    Pages 2..n:   running header (title, subject, page n/N) + body
    Terminal:     footer band — record count, disclaimer and scan-to-download
                  QR code, placed right after the last record box

The same composer drives the paginated PDF and the single PNG canvas; only the
surface and the LayoutConfig differ. Rendering is two-pass: `flow` sizes
everything first, then the surface is allocated at the exact size and every
record is re-laid out at its precomputed position and painted.
"""

import logging
from datetime import datetime
from typing import Any, Optional, Sequence

from lookup_reports.backends import metrics_for, open_surface, qr_matrix
from lookup_reports.config import AppConfig
from lookup_reports.errors import InputError, LayoutError
from lookup_reports.flow import FlowResult, flow
from lookup_reports.layout import BlockLayoutEngine
from lookup_reports.report_types import ReportType
from lookup_reports.text import wrap

logger = logging.getLogger(__name__)

# Information banner cell widths as fractions of the content width
_CELL_FRACTIONS = (0.25, 0.25, 0.19, 0.31)


class DocumentComposer:
    """Renders one report type in one output format."""

    def __init__(self, config: AppConfig, fmt: str):
        self.fmt = fmt
        self.config = config
        self.layout = config.layout_for(fmt)
        self.theme = config.theme
        self.text = config.text
        self.metrics = metrics_for(fmt, self.layout)
        self.engine = BlockLayoutEngine(
            self.layout, self.metrics, self.theme,
            placeholder=self.text.placeholder, accents=config.accents,
        )
        self._qr = qr_matrix(self.text.qr_link) if self.text.qr_link else None

    # -- footer geometry -------------------------------------------------------

    def _disclaimer_lines(self) -> tuple:
        if not self.text.disclaimer:
            return ()
        return wrap(self.text.disclaimer, self.layout.disclaimer_width,
                    self.layout.small_font, self.metrics.width)

    def footer_height(self) -> float:
        cfg = self.layout
        text_height = (
            cfg.label_font.size + cfg.small_line_height * 0.5
            + len(self._disclaimer_lines()) * cfg.small_line_height
        )
        qr_height = cfg.qr_size + cfg.caption_font.size + 4 if self._qr else 0.0
        return max(text_height, qr_height)

    def plan(self, records: Sequence[Any], report_type: ReportType) -> FlowResult:
        """Sizing pass only."""
        return flow(records, report_type, self.engine, self.footer_height())

    def _check_canvas(self, plan: FlowResult) -> None:
        limit = self.layout.max_canvas_height
        if plan.canvas_height and limit and plan.canvas_height > limit:
            raise InputError(
                f"report needs a {plan.canvas_height:.0f}px canvas (limit {limit:.0f}px); "
                f"request the pdf format instead"
            )

    # -- decorations -----------------------------------------------------------

    def _draw_header(self, surface, subject: str, report_type: ReportType, date_text: str):
        cfg = self.layout
        theme = self.theme
        left = cfg.margin_left
        right = cfg.page_width - cfg.margin_right

        baseline = cfg.margin_top + cfg.heading_font.size
        surface.draw_text(left, baseline, report_type.title, cfg.heading_font, theme.text)
        surface.draw_text(right, baseline, self.text.brand_label, cfg.body_font, theme.text,
                          align="right")

        band_y = cfg.margin_top + cfg.banner_offset
        self._draw_band(surface, band_y, self.text.banner_title)

        cell_y = band_y + cfg.band_height
        cells = (
            (self.text.subject_label, cfg.label_font),
            (subject, cfg.body_font),
            (self.text.date_label, cfg.label_font),
            (date_text, cfg.body_font),
        )
        x = left
        text_baseline = cell_y + cfg.cell_height / 2 + cfg.label_font.size * 0.35
        for (value, font), fraction in zip(cells, _CELL_FRACTIONS):
            width = cfg.box_width * fraction
            surface.draw_rect(x, cell_y, width, cfg.cell_height, stroke=theme.text)
            surface.draw_text(x + 5, text_baseline, self._fit(surface, value, font, width - 10),
                              font, theme.text)
            x += width

        section_y = cell_y + cfg.cell_height + cfg.section_gap
        self._draw_band(surface, section_y, f"{self.text.section_prefix} {report_type.label}")

    @staticmethod
    def _fit(surface, text: str, font, width: float) -> str:
        """Trim `text` with a trailing ellipsis until it fits `width`."""
        if surface.measure_text(text, font) <= width:
            return text
        while text and surface.measure_text(text + "...", font) > width:
            text = text[:-1]
        return text + "..."

    def _draw_band(self, surface, y: float, label: str):
        cfg = self.layout
        surface.draw_rect(cfg.margin_left, y, cfg.box_width, cfg.band_height,
                          fill=self.theme.band, stroke=self.theme.text)
        surface.draw_text(cfg.margin_left + 5, y + cfg.band_height / 2 + cfg.label_font.size * 0.35,
                          label, cfg.label_font, self.theme.text)

    def _draw_running_header(self, surface, subject: str, report_type: ReportType,
                             page_number: int, page_count: int):
        cfg = self.layout
        y = cfg.margin_top
        surface.draw_rect(cfg.margin_left, y, cfg.box_width, cfg.running_header_height,
                          fill=self.theme.band)
        baseline = y + cfg.running_header_height / 2 + cfg.title_font.size * 0.35
        surface.draw_text(cfg.margin_left + 5, baseline,
                          f"{report_type.title} | {self.text.subject_label}: {subject}",
                          cfg.title_font, self.theme.text)
        surface.draw_text(cfg.page_width - cfg.margin_right - 5, baseline,
                          f"{self.text.page_label} {page_number}/{page_count}",
                          cfg.body_font, self.theme.muted, align="right")

    def _draw_page_number(self, surface, page_number: int, page_count: int):
        cfg = self.layout
        surface.draw_text(cfg.page_width - cfg.margin_right,
                          cfg.page_height - cfg.margin_bottom / 2,
                          f"{self.text.page_label} {page_number}/{page_count}",
                          cfg.caption_font, self.theme.muted, align="right")

    def footer_total(self, shown: int, quantity: Optional[int] = None) -> str:
        """'Total de registros: 3', or '50 de 1200' when the body was capped."""
        if quantity is None or quantity <= shown:
            return f"{self.text.total_label}: {shown}"
        return f"{self.text.total_label}: {shown} de {quantity}"

    def _draw_footer(self, surface, y: float, shown: int, quantity: Optional[int] = None):
        cfg = self.layout
        theme = self.theme
        left = cfg.margin_left

        rule_y = y - cfg.body_gap / 2
        surface.draw_line(left, rule_y, cfg.page_width - cfg.margin_right, rule_y, theme.border)

        baseline = y + cfg.label_font.size
        surface.draw_text(left, baseline, self.footer_total(shown, quantity),
                          cfg.label_font, theme.text)
        baseline += cfg.small_line_height * 0.5
        for line in self._disclaimer_lines():
            baseline += cfg.small_line_height
            surface.draw_text(left, baseline, line, cfg.small_font, theme.muted)

        if self._qr:
            qr_x = cfg.page_width - cfg.margin_right - cfg.qr_size
            surface.draw_qr(qr_x, y, cfg.qr_size, self._qr, theme.text)
            surface.draw_text(qr_x + cfg.qr_size / 2, y + cfg.qr_size + cfg.caption_font.size + 2,
                              self.text.qr_caption, cfg.caption_font, theme.text, align="center")

    # -- rendering -------------------------------------------------------------

    def render(
        self,
        subject: str,
        records: Sequence[Any],
        report_type: ReportType,
        generated_at: Optional[datetime] = None,
        quantity: Optional[int] = None,
    ) -> bytes:
        """Render the full document and return the encoded bytes.

        Args:
            subject: Subject identifier printed in the banner.
            records: Upstream records in display order.
            report_type: Field map / accent descriptor.
            generated_at: Timestamp printed as the generation date.
            quantity: Upstream match count when `records` was capped;
                defaults to the number of records.

        Returns:
            PDF or PNG bytes.
        """
        records = list(records)
        cfg = self.layout
        generated_at = generated_at or datetime.now()
        date_text = generated_at.strftime(self.text.date_format)

        plan = self.plan(records, report_type)
        self._check_canvas(plan)
        surface = open_surface(self.fmt, cfg, self.theme, self.metrics,
                               title=f"{report_type.title} - {subject}", author=self.text.author)

        for page in plan.pages:
            surface.new_page_or_extend(plan.canvas_height or cfg.page_height)
            if page.number == 1:
                self._draw_header(surface, subject, report_type, date_text)
            else:
                self._draw_running_header(surface, subject, report_type,
                                          page.number, plan.page_count)

            for placement in page.placements:
                box = self.engine.layout(records[placement.index], report_type,
                                         cfg.margin_left, placement.y)
                if box.height != placement.height:
                    raise LayoutError(
                        f"record {placement.index} sized {placement.height} "
                        f"but painted {box.height}"
                    )
                self.engine.paint(surface, box, shaded=placement.index % 2 == 0)

            if page.number == plan.footer_page:
                self._draw_footer(surface, plan.footer_y, len(records), quantity)
            if cfg.paginated:
                self._draw_page_number(surface, page.number, plan.page_count)

        data = surface.finish()
        logger.info("Rendered %s %s for %s: %d records, %d page(s), %d bytes",
                    report_type.key, self.fmt, subject, len(records),
                    plan.page_count, len(data))
        return data


def render_report(
    subject: str,
    records: Sequence[Any],
    report_type: ReportType,
    fmt: str,
    config: AppConfig,
    generated_at: Optional[datetime] = None,
    quantity: Optional[int] = None,
) -> bytes:
    """Render `records` for `subject` as a PDF ('pdf') or PNG ('image')."""
    composer = DocumentComposer(config, fmt)
    return composer.render(subject, records, report_type, generated_at, quantity)
