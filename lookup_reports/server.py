"""
server.py — HTTP Routing Layer.

A ThreadingHTTPServer from the standard library is enough for the handful of
GET routes: requests are served in parallel threads while each report's
layout runs sequentially inside its own thread.

Routes:
    GET /, /health, /healthz, /ping        -> 200 {"status": "healthy"}
    GET /consultar-sueldos?dni=..&formato=pdf|png
    GET /consultar-consumos?dni=..
    GET /consultar-empleos?dni=..
    GET /consultar-empresas?dni=..
    GET /descargar/<artifact name>         -> stored bytes (download proxy)
    GET /artifacts/<artifact name>         -> stored bytes (local store URLs)
"""

import json
import logging
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import parse_qs, unquote, urlsplit

from lookup_reports.errors import ReportError
from lookup_reports.report_types import by_route
from lookup_reports.service import ReportService, error_payload

logger = logging.getLogger(__name__)

_HEALTH_PATHS = frozenset(("/", "/health", "/healthz", "/ping"))
_HEALTH_BODY = {"status": "healthy", "service": "lookup-report-renderer"}
_DOWNLOAD_PREFIXES = ("/descargar/", "/artifacts/")


class ReportRequestHandler(BaseHTTPRequestHandler):
    """Maps query strings onto ReportService calls and faults onto JSON errors."""

    service: ReportService = None

    def _send(self, status: int, body: bytes, content_type: str, extra_headers=None) -> None:
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.send_header("Access-Control-Allow-Origin", "*")
        for key, value in (extra_headers or {}).items():
            self.send_header(key, value)
        self.end_headers()
        self.wfile.write(body)

    def _send_json(self, status: int, payload: dict) -> None:
        body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        self._send(status, body, "application/json; charset=utf-8")

    def _send_error(self, exc: Exception) -> None:
        status = exc.status if isinstance(exc, ReportError) else 500
        self._send_json(status, error_payload(exc))

    def do_GET(self) -> None:  # noqa: N802
        parts = urlsplit(self.path)
        path = parts.path.rstrip("/") or "/"
        query = parse_qs(parts.query)

        if path in _HEALTH_PATHS:
            self._send_json(200, _HEALTH_BODY)
            return

        try:
            prefix = next((p for p in _DOWNLOAD_PREFIXES if path.startswith(p)), None)
            if prefix:
                name = unquote(path[len(prefix):])
                data, content_type = self.service.download(name)
                self._send(200, data, content_type,
                           {"Content-Disposition": f'inline; filename="{name}"'})
                return

            report_type = by_route(path)
            if report_type is None:
                self._send_json(404, {"message": "error", "detail": f"unknown route: {path}"})
                return

            subject = query.get("dni", [""])[0]
            fmt = query.get("formato", query.get("format", ["pdf"]))[0]
            self._send_json(200, self.service.lookup(subject, report_type, fmt))
        except ReportError as exc:
            logger.warning("%s %s -> %s: %s", self.command, path, exc.status, exc)
            self._send_error(exc)
        except Exception as exc:
            logger.error("Unhandled error serving %s: %s", path, exc, exc_info=True)
            self._send_error(exc)

    def log_message(self, fmt: str, *args: object) -> None:  # noqa: D102
        logger.debug("%s - %s", self.address_string(), fmt % args)


def make_server(service: ReportService, host: str, port: int) -> ThreadingHTTPServer:
    """Bind a server whose handler class is bound to `service`."""
    handler = type("BoundReportRequestHandler", (ReportRequestHandler,), {"service": service})
    return ThreadingHTTPServer((host, port), handler)


def serve(service: ReportService, host: str, port: int) -> None:
    """Serve forever (blocks until interrupted)."""
    server = make_server(service, host, port)
    logger.info("Report server listening on http://%s:%d", host, port)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutdown signal; stopping server")
    finally:
        server.server_close()
