"""
conftest.py — Shared fixtures.

Layout tests run against a deterministic fixed-width measurer so expected
line counts and heights can be computed by hand; rendering tests use the real
ReportLab / Pillow metrics from config.yaml.
"""

import sys
from dataclasses import replace
from pathlib import Path

import pytest
import requests
import yaml

ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT))

from lookup_reports.config import build_config  # noqa: E402


class FixedWidthMetrics:
    """Every character is half the font size wide."""

    def width(self, text, font):
        return len(text) * font.size * 0.5


class FakeResponse:
    def __init__(self, status_code=200, payload=None, content=b"", text=""):
        self.status_code = status_code
        self._payload = payload
        self.content = content
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")


class FakeSession:
    """Records calls and replays queued responses (or raises queued exceptions)."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []
        self.headers = {}

    def _next(self, method, url, kwargs):
        self.calls.append((method, url, kwargs))
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def get(self, url, **kwargs):
        return self._next("GET", url, kwargs)

    def put(self, url, **kwargs):
        return self._next("PUT", url, kwargs)


@pytest.fixture
def raw_config():
    with open(ROOT / "config.yaml", "r", encoding="utf-8") as fh:
        return yaml.safe_load(fh)


@pytest.fixture
def app_config(raw_config, tmp_path):
    config = build_config(raw_config, env={})
    store = replace(config.store, local_dir=str(tmp_path / "artifacts"),
                    local_base_url="http://test/artifacts")
    return replace(config, store=store)


@pytest.fixture
def compact_layout(app_config):
    """500pt-high page: body_top=50, continuation_top=30, page_bottom=480."""
    return replace(
        app_config.layout_for("pdf"),
        page_height=500.0,
        margin_top=20.0,
        margin_bottom=20.0,
        banner_offset=0.0,
        band_height=10.0,
        cell_height=10.0,
        section_gap=0.0,
        body_gap=0.0,
        running_header_height=10.0,
    )


@pytest.fixture
def fixed_metrics():
    return FixedWidthMetrics()


@pytest.fixture
def fake_session():
    return FakeSession


@pytest.fixture
def fake_response():
    return FakeResponse


@pytest.fixture
def salary_record():
    return {
        "empresa": "ACME SAC",
        "sueldo": 2500,
        "periodo": "2024-05",
        "situacion": "ACTIVO",
        "ruc": "20123456789",
    }
