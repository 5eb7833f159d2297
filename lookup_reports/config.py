"""
config.py — Configuration Loader.

Reads config.yaml once and freezes it into dataclasses that are passed
explicitly to every engine. Layout constants live per output format
(`layout.pdf`, `layout.image`) so both variants can be rendered side by side
without sharing mutable state.

Credentials (GITHUB_TOKEN, GITHUB_REPO) are read exclusively from environment
variables (.env file). No credentials in config.yaml.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

logger = logging.getLogger(__name__)

FORMATS = ("pdf", "image")


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FontSpec:
    """A font face (backend-specific name or TTF file) at a given size."""
    name: str
    size: float


@dataclass(frozen=True)
class LayoutConfig:
    """Geometry for one output format. Units are points (PDF) or pixels (PNG)."""
    page_width: float
    page_height: Optional[float]      # None -> unbounded single canvas
    margin_top: float
    margin_bottom: float
    margin_left: float
    margin_right: float
    # Header / banner band (first page)
    banner_offset: float
    band_height: float
    cell_height: float
    section_gap: float
    body_gap: float
    running_header_height: float
    # Record boxes
    avatar_width: float
    box_padding_top: float
    box_padding_bottom: float
    box_padding_x: float
    line_height: float
    min_box_height: float
    box_spacing: float
    # Footer
    footer_gap: float
    safety_margin: float
    small_line_height: float
    disclaimer_width: float
    qr_size: float
    # Fonts
    heading_font: FontSpec
    title_font: FontSpec
    body_font: FontSpec
    label_font: FontSpec
    small_font: FontSpec
    caption_font: FontSpec
    # Single canvas only; taller content is refused instead of allocated
    max_canvas_height: Optional[float] = None

    @property
    def paginated(self) -> bool:
        return self.page_height is not None

    @property
    def box_width(self) -> float:
        return self.page_width - self.margin_left - self.margin_right

    @property
    def text_width(self) -> float:
        return self.box_width - self.avatar_width - 2 * self.box_padding_x

    @property
    def body_top(self) -> float:
        """First-page y where the first record box starts."""
        return (
            self.margin_top + self.banner_offset + self.band_height
            + self.cell_height + self.section_gap + self.band_height
            + self.body_gap
        )

    @property
    def continuation_top(self) -> float:
        return self.margin_top + self.running_header_height + self.body_gap

    @property
    def page_bottom(self) -> Optional[float]:
        if self.page_height is None:
            return None
        return self.page_height - self.margin_bottom

    def footer_threshold(self, footer_height: float) -> Optional[float]:
        """Lowest footer start y that still leaves the safety margin."""
        if self.page_height is None:
            return None
        return self.page_height - footer_height - self.safety_margin


@dataclass(frozen=True)
class Theme:
    """Colour palette shared by both surfaces (hex strings, with '#')."""
    text: str = "#000000"
    muted: str = "#666666"
    band: str = "#F0F0F0"
    border: str = "#CCCCCC"
    box_fill: str = "#FFFFFF"
    box_fill_alt: str = "#F9F9F9"
    avatar_text: str = "#FFFFFF"
    background: str = "#FFFFFF"


@dataclass(frozen=True)
class ReportText:
    """Fixed wording printed around the record body."""
    brand_label: str = "Consulta pe apk"
    banner_title: str = "Información General"
    subject_label: str = "DNI Consultado"
    date_label: str = "Fecha"
    section_prefix: str = "Detalle de"
    total_label: str = "Total de registros"
    page_label: str = "Página"
    disclaimer: str = ""
    qr_link: Optional[str] = None
    qr_caption: str = "ESCANEA PARA DESCARGAR APP"
    placeholder: str = "N/A"
    date_format: str = "%d/%m/%Y"
    author: str = "Consulta pe"


@dataclass(frozen=True)
class UpstreamConfig:
    """Lookup endpoints keyed by ReportType.upstream."""
    base_url: str
    endpoints: dict = field(default_factory=dict)
    subject_param: str = "dni"
    timeout_seconds: float = 20.0


@dataclass(frozen=True)
class StoreConfig:
    backend: str = "auto"                 # auto | github | local
    github_api_url: str = "https://api.github.com"
    github_raw_url: str = "https://raw.githubusercontent.com"
    github_branch: str = "main"
    github_repo: Optional[str] = None     # owner/repo, from env
    github_token: Optional[str] = None    # from env
    prefix: str = "reportes"
    local_dir: str = "data/artifacts"
    local_base_url: str = "http://localhost:3000/artifacts"
    timeout_seconds: float = 30.0


@dataclass(frozen=True)
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 3000
    public_base_url: str = "http://localhost:3000"
    proxy_downloads: bool = False
    max_records: Optional[int] = None


@dataclass(frozen=True)
class AppConfig:
    """Complete, immutable application configuration."""
    layouts: dict
    theme: Theme
    text: ReportText
    upstream: UpstreamConfig
    store: StoreConfig
    server: ServerConfig
    accents: dict = field(default_factory=dict)
    log_dir: str = "logs"

    def layout_for(self, fmt: str) -> LayoutConfig:
        return self.layouts[fmt]


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def load_env(env_path: str = ".env") -> dict[str, str]:
    """Load environment variables, falling back to .env file parsing.

    Args:
        env_path: Location of the optional .env file.

    Returns:
        Dict of environment variable name → value.
    """
    env = dict(os.environ)

    path = Path(env_path)
    if path.exists():
        with open(path, "r", encoding="utf-8") as fh:
            for line in fh:
                line = line.strip()
                if line and not line.startswith("#") and "=" in line:
                    key, val = line.split("=", 1)
                    key = key.strip()
                    val = val.strip().strip('"').strip("'")
                    if key not in env and val:
                        env[key] = val
    return env


def _font(raw: dict[str, Any]) -> FontSpec:
    return FontSpec(name=str(raw["name"]), size=float(raw["size"]))


def _layout(raw: dict[str, Any]) -> LayoutConfig:
    values = dict(raw)
    for key in list(values):
        if key.endswith("_font"):
            values[key] = _font(values[key])
        elif key in ("page_height", "max_canvas_height"):
            values[key] = None if values[key] is None else float(values[key])
        else:
            values[key] = float(values[key])
    return LayoutConfig(**values)


def build_config(cfg: dict[str, Any], env: Optional[dict[str, str]] = None) -> AppConfig:
    """Freeze a parsed YAML document into an AppConfig.

    Args:
        cfg: Parsed configuration mapping.
        env: Environment mapping used for credentials (defaults to os.environ).

    Returns:
        AppConfig.
    """
    env = dict(os.environ) if env is None else env

    layouts = {fmt: _layout(cfg["layout"][fmt]) for fmt in FORMATS if fmt in cfg["layout"]}
    if not layouts:
        raise ValueError("config.yaml defines no layout.pdf or layout.image section")

    store_raw = dict(cfg.get("store", {}))
    store_raw["github_repo"] = env.get("GITHUB_REPO") or store_raw.get("github_repo")
    store_raw["github_token"] = env.get("GITHUB_TOKEN") or store_raw.get("github_token")

    server_raw = dict(cfg.get("server", {}))
    if env.get("PORT"):
        server_raw["port"] = int(env["PORT"])

    upstream_raw = cfg["upstream"]
    return AppConfig(
        layouts=layouts,
        theme=Theme(**cfg.get("theme", {})),
        text=ReportText(**cfg.get("text", {})),
        upstream=UpstreamConfig(
            base_url=upstream_raw["base_url"].rstrip("/"),
            endpoints=dict(upstream_raw.get("endpoints", {})),
            subject_param=upstream_raw.get("subject_param", "dni"),
            timeout_seconds=float(upstream_raw.get("timeout_seconds", 20)),
        ),
        store=StoreConfig(**store_raw),
        server=ServerConfig(**server_raw),
        accents=dict(cfg.get("accents", {})),
        log_dir=cfg.get("paths", {}).get("log_dir", "logs"),
    )


def load_config(config_path: str = "config.yaml") -> AppConfig:
    """Read config.yaml (plus .env credentials) into an AppConfig."""
    with open(config_path, "r", encoding="utf-8") as fh:
        cfg = yaml.safe_load(fh)
    config = build_config(cfg, load_env())
    logger.debug("Loaded configuration from %s (formats: %s)",
                 config_path, ", ".join(config.layouts))
    return config
