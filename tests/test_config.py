"""
test_config.py — Unit tests for configuration loading and derived geometry.
"""

import json
import logging

import pytest

import main
from lookup_reports.config import build_config, load_config

from conftest import ROOT


class TestBuildConfig:

    def test_both_formats_loaded(self, raw_config):
        config = build_config(raw_config, env={})
        assert set(config.layouts) == {"pdf", "image"}
        assert config.layout_for("pdf").paginated
        assert not config.layout_for("image").paginated

    def test_credentials_from_env(self, raw_config):
        config = build_config(raw_config, env={"GITHUB_REPO": "acme/reports",
                                               "GITHUB_TOKEN": "ghp_x", "PORT": "8080"})
        assert config.store.github_repo == "acme/reports"
        assert config.store.github_token == "ghp_x"
        assert config.server.port == 8080

    def test_no_credentials_in_yaml(self, raw_config):
        config = build_config(raw_config, env={})
        assert config.store.github_token is None

    def test_missing_layouts_rejected(self, raw_config):
        raw_config["layout"] = {}
        with pytest.raises(ValueError):
            build_config(raw_config, env={})

    def test_load_config_from_file(self):
        config = load_config(str(ROOT / "config.yaml"))
        assert config.upstream.endpoints["salary"] == "/sueldos"


class TestDerivedGeometry:

    def test_a4_thresholds(self, app_config):
        layout = app_config.layout_for("pdf")
        assert layout.page_bottom == pytest.approx(801.89)
        assert layout.footer_threshold(100) == pytest.approx(701.89)
        assert layout.box_width == pytest.approx(515.28)
        assert layout.text_width == pytest.approx(515.28 - 34 - 16)

    def test_body_starts_below_banner(self, app_config):
        layout = app_config.layout_for("pdf")
        assert layout.body_top == 40 + 60 + 20 + 25 + 25 + 20 + 8
        assert layout.continuation_top < layout.body_top

    def test_unbounded_canvas_has_no_thresholds(self, app_config):
        layout = app_config.layout_for("image")
        assert layout.page_bottom is None
        assert layout.footer_threshold(100) is None

    def test_image_canvas_ceiling(self, app_config):
        assert app_config.layout_for("image").max_canvas_height == 20000


class TestCli:

    def test_render_writes_pdf(self, tmp_path, salary_record):
        records = tmp_path / "records.json"
        records.write_text(json.dumps({"result": {"quantity": 1, "coincidences": [salary_record]}}))
        output = tmp_path / "out" / "report.pdf"
        args = main._parse_args([
            "--config", str(ROOT / "config.yaml"), "--render", "--dni", "12345678",
            "--type", "sueldos", "--input", str(records), "--output", str(output),
        ])
        assert main.run(args, logging.getLogger("test")) == 0
        assert output.read_bytes().startswith(b"%PDF")

    def test_render_requires_output(self, tmp_path):
        args = main._parse_args(["--config", str(ROOT / "config.yaml"), "--render", "--dni", "1"])
        assert main.run(args, logging.getLogger("test")) == 1

    def test_render_rejects_bad_subject(self, tmp_path):
        records = tmp_path / "records.json"
        records.write_text("[]")
        args = main._parse_args([
            "--config", str(ROOT / "config.yaml"), "--render", "--dni", "",
            "--input", str(records), "--output", str(tmp_path / "x.png"), "--format", "png",
        ])
        assert main.run(args, logging.getLogger("test")) == 1

    def test_missing_config(self, tmp_path):
        args = main._parse_args(["--config", str(tmp_path / "nope.yaml"), "--render"])
        assert main.run(args, logging.getLogger("test")) == 1
