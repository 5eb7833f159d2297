"""
service.py — Report Request Orchestration.

One request runs strictly in sequence:

    validate subject -> fetch records -> no-data check -> (cap) ->
    publication gate [-> two-pass render -> upload] -> response payload

Response shapes:
    success  {"message": "found data", "result": {"quantity", "url", "is_new", "format", "name"}}
    no data  {"message": "not found", "detail": ..., "result": {"quantity": 0}}
    failure  {"message": "error", "detail": ...}
"""

import logging
import re
from datetime import datetime
from typing import Any, Callable, Optional

from lookup_reports.backends import CONTENT_TYPES
from lookup_reports.composer import DocumentComposer
from lookup_reports.config import AppConfig
from lookup_reports.errors import InputError, NoDataError, ReportError, StoreError, UpstreamError
from lookup_reports.publisher import PublicationGate
from lookup_reports.report_types import REPORT_TYPES, ReportType, get_report_type
from lookup_reports.source import LookupClient
from lookup_reports.stores import build_store

logger = logging.getLogger(__name__)

_SUBJECT = re.compile(r"^[A-Za-z0-9-]{1,20}$")
_ARTIFACT = re.compile(r"^[A-Z]+_[A-Z0-9-]{1,20}\.(pdf|png)$")
_FORMAT_ALIASES = {"pdf": "pdf", "image": "image", "png": "image", "imagen": "image"}


def validate_subject(raw: Optional[str]) -> str:
    """Return the trimmed subject id or raise InputError."""
    subject = (raw or "").strip()
    if not subject:
        raise InputError("DNI requerido")
    if not _SUBJECT.match(subject):
        raise InputError(f"invalid subject identifier: {subject!r}")
    return subject


def resolve_format(raw: Optional[str]) -> str:
    token = (raw or "pdf").strip().lower()
    try:
        return _FORMAT_ALIASES[token]
    except KeyError:
        raise InputError(f"unknown output format: {raw!r}") from None


def error_payload(exc: Exception) -> dict[str, Any]:
    """Structured error body for any fault."""
    if isinstance(exc, NoDataError):
        return {"message": exc.message, "detail": str(exc), "result": {"quantity": 0}}
    if isinstance(exc, ReportError):
        return {"message": exc.message, "detail": str(exc)}
    return {"message": "error", "detail": str(exc) or exc.__class__.__name__}


class ReportService:
    """Glues the lookup client, composers and publication gate together."""

    def __init__(self, config: AppConfig, client: Optional[LookupClient] = None, store=None,
                 clock: Callable[[], datetime] = datetime.now):
        self.config = config
        self.client = client or LookupClient(config.upstream)
        self.store = store if store is not None else build_store(config.store)
        self.gate = PublicationGate(self.store)
        self.clock = clock
        self._composers: dict[str, DocumentComposer] = {}

    def composer(self, fmt: str) -> DocumentComposer:
        if fmt not in self._composers:
            self._composers[fmt] = DocumentComposer(self.config, fmt)
        return self._composers[fmt]

    def _cap(self, records: list) -> list:
        limit = self.config.server.max_records
        if limit and len(records) > limit:
            logger.info("Capping %d records to %d", len(records), limit)
            return records[:limit]
        return records

    def _public_url(self, name: str, url: str) -> str:
        if self.config.server.proxy_downloads:
            return f"{self.config.server.public_base_url.rstrip('/')}/descargar/{name}"
        return url

    def lookup(self, subject: str, report_type, fmt: str = "pdf") -> dict[str, Any]:
        """Serve one report request.

        Args:
            subject: Raw subject identifier from the caller.
            report_type: ReportType or its key/alias.
            fmt: 'pdf' or 'image' (aliases 'png', 'imagen').

        Returns:
            Success payload.

        Raises:
            ReportError: Any input, no-data, upstream, render or publish fault.
        """
        subject = validate_subject(subject)
        if not isinstance(report_type, ReportType):
            report_type = get_report_type(report_type)
        fmt = resolve_format(fmt)

        result = self.client.fetch(subject, report_type)
        if result.empty:
            raise NoDataError(f"Sin datos para {subject}")

        records = self._cap(list(result.coincidences))
        composer = self.composer(fmt)

        def render() -> bytes:
            return composer.render(subject, records, report_type, self.clock(),
                                   quantity=result.quantity)

        published = self.gate.publish(subject, report_type, render, fmt)
        return {
            "message": "found data",
            "result": {
                "quantity": result.quantity,
                "url": self._public_url(published.name, published.url),
                "is_new": published.is_new,
                "format": fmt,
                "name": published.name,
            },
        }

    def download(self, name: str) -> tuple[bytes, str]:
        """Stream a stored artifact back for the download proxy."""
        if not _ARTIFACT.match(name or ""):
            raise InputError(f"invalid artifact name: {name!r}")
        prefix = name.split("_", 1)[0]
        if prefix not in {rt.file_prefix for rt in REPORT_TYPES.values()}:
            raise InputError(f"invalid artifact name: {name!r}")
        try:
            data = self.store.fetch(name)
        except FileNotFoundError:
            raise NoDataError(f"artifact not found: {name}") from None
        except StoreError as exc:
            raise UpstreamError(f"artifact store unavailable: {exc}") from exc
        content_type = CONTENT_TYPES["pdf" if name.endswith(".pdf") else "image"]
        return data, content_type
