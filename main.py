"""
main.py — Lookup Report Renderer — CLI Entry Point.

Runs the HTTP service or a single report from the command line. Every mode
shares the same configuration, logging and rendering pipeline.

Usage:
    python main.py --serve                                   # HTTP service on $PORT / config port
    python main.py --lookup --dni 12345678 --type salary     # fetch + publish, print JSON
    python main.py --render --dni 12345678 --type consumption \\
        --input records.json --output out.pdf                # local render, no publish
    python main.py --serve --config custom.yaml --log-level DEBUG

Outputs:
    <store>/SUELDO_{dni}.pdf | CONSUMO_{dni}.png | ...   — published artifacts
"""

import argparse
import json
import logging
import logging.handlers
import os
import sys
from datetime import datetime
from pathlib import Path

import yaml


def _configure_logging(log_dir: str = "logs", level: str = "INFO") -> None:
    """Configure rotating file handler + stream handler.

    Args:
        log_dir: Directory for log files.
        level: Log level string.
    """
    effective_level = os.environ.get("LOG_LEVEL", level).upper()
    numeric = getattr(logging, effective_level, logging.INFO)

    Path(log_dir).mkdir(parents=True, exist_ok=True)
    log_file = Path(log_dir) / f"renderer_{datetime.today().strftime('%Y%m%d')}.log"

    fmt = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)-35s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    fh = logging.handlers.RotatingFileHandler(
        log_file, maxBytes=10 * 1024 * 1024, backupCount=7, encoding="utf-8"
    )
    fh.setFormatter(fmt)
    sh = logging.StreamHandler(sys.stdout)
    sh.setFormatter(fmt)

    root = logging.getLogger()
    root.setLevel(numeric)
    root.addHandler(fh)
    root.addHandler(sh)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)


def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="lookup-report-renderer",
        description="Render lookup results as PDF/PNG reports and publish them.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --serve
  python main.py --lookup --dni 12345678 --type salary --format pdf
  python main.py --render --dni 12345678 --type company --input records.json --output out.png
        """,
    )
    parser.add_argument("--config", default="config.yaml",
                        help="Path to config.yaml (default: config.yaml)")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])

    modes = parser.add_argument_group("Modes")
    modes.add_argument("--serve", action="store_true", help="Run the HTTP service")
    modes.add_argument("--lookup", action="store_true",
                       help="Fetch records upstream, render and publish one report")
    modes.add_argument("--render", action="store_true",
                       help="Render records from a JSON file to a local file (no publish)")

    report = parser.add_argument_group("Report")
    report.add_argument("--dni", help="Subject identifier")
    report.add_argument("--type", default="salary",
                        help="salary | consumption | employment | company (default: salary)")
    report.add_argument("--format", default="pdf", help="pdf | png (default: pdf)")
    report.add_argument("--input", help="JSON file: upstream payload or list of records")
    report.add_argument("--output", help="Output file for --render")
    report.add_argument("--port", type=int, help="Port for --serve (default: $PORT or config)")
    return parser.parse_args(argv)


def _read_records(path: str) -> list:
    from lookup_reports.source import parse_lookup

    with open(path, "r", encoding="utf-8") as fh:
        payload = json.load(fh)
    if isinstance(payload, list):
        return payload
    return parse_lookup(payload).coincidences


def run(args: argparse.Namespace, logger: logging.Logger) -> int:
    """Execute the requested mode.

    Args:
        args: Parsed CLI arguments.
        logger: Configured logger.

    Returns:
        0 on success, 1 on error.
    """
    from lookup_reports.composer import render_report
    from lookup_reports.config import load_config
    from lookup_reports.errors import ReportError
    from lookup_reports.report_types import get_report_type
    from lookup_reports.server import serve
    from lookup_reports.service import ReportService, error_payload, resolve_format, validate_subject

    try:
        config = load_config(args.config)
    except FileNotFoundError as exc:
        logger.error("Config not found: %s", exc)
        return 1

    if args.serve:
        service = ReportService(config)
        serve(service, config.server.host, args.port or config.server.port)
        return 0

    if args.lookup:
        service = ReportService(config)
        try:
            payload = service.lookup(args.dni, args.type, args.format)
        except ReportError as exc:
            logger.error("Lookup failed: %s", exc)
            print(json.dumps(error_payload(exc), ensure_ascii=False, indent=2))
            return 1
        print(json.dumps(payload, ensure_ascii=False, indent=2))
        return 0

    if args.render:
        if not args.input or not args.output:
            logger.error("--render needs --input and --output")
            return 1
        try:
            subject = validate_subject(args.dni)
            report_type = get_report_type(args.type)
            fmt = resolve_format(args.format)
            records = _read_records(args.input)
            data = render_report(subject, records, report_type, fmt, config)
        except (ReportError, OSError, ValueError) as exc:
            logger.error("Render failed: %s", exc, exc_info=True)
            return 1
        Path(args.output).parent.mkdir(parents=True, exist_ok=True)
        Path(args.output).write_bytes(data)
        logger.info("Report written to %s (%d bytes)", args.output, len(data))
        return 0

    return 1


def main() -> None:
    """Parse args, configure logging, and run the selected mode."""
    args = _parse_args()

    try:
        with open(args.config, "r") as fh:
            cfg = yaml.safe_load(fh)
        log_dir = cfg.get("paths", {}).get("log_dir", "logs")
    except (OSError, yaml.YAMLError):
        log_dir = "logs"

    _configure_logging(log_dir=log_dir, level=args.log_level)
    logger = logging.getLogger(__name__)

    if not any([args.serve, args.lookup, args.render]):
        _parse_args(["--help"])

    logger.info(
        "Lookup Report Renderer v1.0 | %s",
        datetime.today().strftime("%Y-%m-%d %H:%M:%S"),
    )
    sys.exit(run(args, logger))


if __name__ == "__main__":
    main()
