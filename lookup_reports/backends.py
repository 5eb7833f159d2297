"""
backends.py — Output Surfaces.

Two interchangeable surfaces expose the capability set the layout engine and
composer need: text measurement, rectangles, text runs, lines, page/canvas
allocation and final encoding to bytes.

    PdfSurface    — ReportLab pdfgen canvas, one page per `new_page_or_extend`
    ImageSurface  — Pillow RGB canvas, extended to the precomputed height

Layout coordinates are top-down on both surfaces (y grows towards the bottom
of the page); the PDF surface flips them into ReportLab's bottom-up space.
Text measurement lives in separate metrics objects so the sizing pass can run
before any surface exists.
"""

import io
import logging
import math

from PIL import Image, ImageDraw, ImageFont
from reportlab.graphics.barcode import qrencoder
from reportlab.lib.colors import HexColor
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfgen import canvas as pdf_canvas

from lookup_reports.config import FontSpec, LayoutConfig, Theme
from lookup_reports.errors import FontMetricsError

logger = logging.getLogger(__name__)

CONTENT_TYPES = {"pdf": "application/pdf", "image": "image/png"}
EXTENSIONS = {"pdf": "pdf", "image": "png"}


def _layout_fonts(layout: LayoutConfig) -> list[FontSpec]:
    return [
        layout.heading_font, layout.title_font, layout.body_font,
        layout.label_font, layout.small_font, layout.caption_font,
    ]


def qr_matrix(value: str, level: str = "M") -> list[list[bool]]:
    """Encode `value` as a QR module matrix (True = dark)."""
    qr = qrencoder.QRCode(None, getattr(qrencoder.QRErrorCorrectLevel, level))
    qr.addData(value)
    qr.make()
    return [[bool(cell) for cell in row] for row in qr.modules]


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------

class PdfMetrics:
    """String widths from ReportLab's font metrics (points)."""

    def __init__(self, layout: LayoutConfig):
        for spec in _layout_fonts(layout):
            try:
                pdfmetrics.getFont(spec.name)
            except KeyError as exc:
                raise FontMetricsError(f"no PDF font metrics for {spec.name!r}") from exc

    def width(self, text: str, font: FontSpec) -> float:
        return pdfmetrics.stringWidth(text, font.name, font.size)


class ImageMetrics:
    """String widths from Pillow FreeType fonts (pixels).

    Fonts are resolved by file name (Pillow searches the system font
    directories); when a face is missing, Pillow's bundled scalable default
    font is used at the same size.
    """

    def __init__(self, layout: LayoutConfig):
        self._fonts: dict[tuple, ImageFont.FreeTypeFont] = {}
        for spec in _layout_fonts(layout):
            self.font(spec)

    def font(self, spec: FontSpec) -> ImageFont.FreeTypeFont:
        key = (spec.name, spec.size)
        if key not in self._fonts:
            self._fonts[key] = self._load(spec)
        return self._fonts[key]

    @staticmethod
    def _load(spec: FontSpec) -> ImageFont.FreeTypeFont:
        size = max(1, int(round(spec.size)))
        try:
            return ImageFont.truetype(spec.name, size)
        except OSError:
            logger.warning("Font %s not found, using Pillow default at %dpx", spec.name, size)
        try:
            font = ImageFont.load_default(size=size)
        except (OSError, TypeError) as exc:
            raise FontMetricsError(f"no image font metrics for {spec.name!r}") from exc
        if not isinstance(font, ImageFont.FreeTypeFont):
            raise FontMetricsError("Pillow was built without FreeType support")
        return font

    def width(self, text: str, font: FontSpec) -> float:
        return float(self.font(font).getlength(text))


# ---------------------------------------------------------------------------
# Surfaces
# ---------------------------------------------------------------------------

class Surface:
    """Drawing capability set shared by the paginated and single-canvas outputs."""

    fmt = ""

    def __init__(self, layout: LayoutConfig, theme: Theme, metrics):
        self.layout = layout
        self.theme = theme
        self.metrics = metrics

    def measure_text(self, text: str, font: FontSpec) -> float:
        return self.metrics.width(text, font)

    def new_page_or_extend(self, height: float) -> None:
        raise NotImplementedError

    def draw_rect(self, x, y, width, height, fill=None, stroke=None, stroke_width=0.5) -> None:
        raise NotImplementedError

    def draw_text(self, x, baseline, text, font: FontSpec, color: str, align="left") -> None:
        raise NotImplementedError

    def draw_line(self, x1, y1, x2, y2, color: str, width=0.5) -> None:
        raise NotImplementedError

    def draw_qr(self, x, y, size, matrix, color: str, border: int = 1) -> None:
        count = len(matrix)
        module = size / (count + 2 * border)
        for r, row in enumerate(matrix):
            for c, dark in enumerate(row):
                if dark:
                    self.draw_rect(x + (c + border) * module, y + (r + border) * module,
                                   module, module, fill=color)

    def finish(self) -> bytes:
        raise NotImplementedError


class PdfSurface(Surface):
    """ReportLab canvas writing into memory — no temp files."""

    fmt = "pdf"

    def __init__(self, layout: LayoutConfig, theme: Theme, metrics: PdfMetrics,
                 title: str = "", author: str = ""):
        super().__init__(layout, theme, metrics)
        self._buf = io.BytesIO()
        self.c = pdf_canvas.Canvas(self._buf, pagesize=(layout.page_width, layout.page_height))
        self.c.setTitle(title)
        self.c.setAuthor(author)
        self.page_count = 0

    def _y(self, y: float) -> float:
        return self.layout.page_height - y

    def new_page_or_extend(self, height: float = 0.0) -> None:
        if self.page_count:
            self.c.showPage()
        self.page_count += 1

    def draw_rect(self, x, y, width, height, fill=None, stroke=None, stroke_width=0.5):
        self.c.saveState()
        if fill:
            self.c.setFillColor(HexColor(fill))
        if stroke:
            self.c.setStrokeColor(HexColor(stroke))
            self.c.setLineWidth(stroke_width)
        self.c.rect(x, self._y(y + height), width, height,
                    fill=1 if fill else 0, stroke=1 if stroke else 0)
        self.c.restoreState()

    def draw_text(self, x, baseline, text, font, color, align="left"):
        self.c.saveState()
        self.c.setFont(font.name, font.size)
        self.c.setFillColor(HexColor(color))
        if align == "right":
            self.c.drawRightString(x, self._y(baseline), text)
        elif align == "center":
            self.c.drawCentredString(x, self._y(baseline), text)
        else:
            self.c.drawString(x, self._y(baseline), text)
        self.c.restoreState()

    def draw_line(self, x1, y1, x2, y2, color, width=0.5):
        self.c.saveState()
        self.c.setStrokeColor(HexColor(color))
        self.c.setLineWidth(width)
        self.c.line(x1, self._y(y1), x2, self._y(y2))
        self.c.restoreState()

    def finish(self) -> bytes:
        if not self.page_count:
            self.new_page_or_extend()
        self.c.save()
        return self._buf.getvalue()


class ImageSurface(Surface):
    """Pillow canvas of fixed width whose height is set from the sizing pass."""

    fmt = "image"

    def __init__(self, layout: LayoutConfig, theme: Theme, metrics: ImageMetrics):
        super().__init__(layout, theme, metrics)
        self.width = int(math.ceil(layout.page_width))
        self.image = None
        self.draw = None

    def new_page_or_extend(self, height: float) -> None:
        new_height = max(1, int(math.ceil(height)))
        canvas = Image.new("RGB", (self.width, new_height), self.theme.background)
        if self.image is not None:
            canvas.paste(self.image, (0, 0))
        self.image = canvas
        self.draw = ImageDraw.Draw(self.image)

    def draw_rect(self, x, y, width, height, fill=None, stroke=None, stroke_width=0.5):
        x0, y0 = round(x), round(y)
        x1 = max(x0, round(x + width) - 1)
        y1 = max(y0, round(y + height) - 1)
        self.draw.rectangle([x0, y0, x1, y1], fill=fill, outline=stroke,
                            width=max(1, int(round(stroke_width))) if stroke else 0)

    def draw_text(self, x, baseline, text, font, color, align="left"):
        anchor = {"right": "rs", "center": "ms"}.get(align, "ls")
        self.draw.text((x, baseline), text, font=self.metrics.font(font), fill=color, anchor=anchor)

    def draw_line(self, x1, y1, x2, y2, color, width=0.5):
        self.draw.line([(x1, y1), (x2, y2)], fill=color, width=max(1, int(round(width))))

    def draw_qr(self, x, y, size, matrix, color, border=1):
        count = len(matrix)
        modules = Image.new("1", (count + 2 * border, count + 2 * border), 1)
        for r, row in enumerate(matrix):
            for c, dark in enumerate(row):
                if dark:
                    modules.putpixel((c + border, r + border), 0)
        side = max(1, int(round(size)))
        tile = modules.resize((side, side), Image.NEAREST).convert("RGB")
        if color.upper() != "#000000":
            ink = Image.new("RGB", tile.size, color)
            tile = Image.composite(tile, ink, modules.resize((side, side), Image.NEAREST))
        self.image.paste(tile, (int(round(x)), int(round(y))))

    def finish(self) -> bytes:
        if self.image is None:
            self.new_page_or_extend(self.layout.margin_top + self.layout.margin_bottom)
        buf = io.BytesIO()
        self.image.save(buf, format="PNG", optimize=True)
        return buf.getvalue()


def metrics_for(fmt: str, layout: LayoutConfig):
    """Build the measurement object for an output format."""
    if fmt == "pdf":
        return PdfMetrics(layout)
    if fmt == "image":
        return ImageMetrics(layout)
    raise ValueError(f"unknown output format: {fmt}")


def open_surface(fmt: str, layout: LayoutConfig, theme: Theme, metrics,
                 title: str = "", author: str = "") -> Surface:
    if fmt == "pdf":
        return PdfSurface(layout, theme, metrics, title=title, author=author)
    if fmt == "image":
        return ImageSurface(layout, theme, metrics)
    raise ValueError(f"unknown output format: {fmt}")
