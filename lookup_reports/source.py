"""
source.py — Upstream Lookup Client.

The data source answers `GET <base_url><endpoint>?dni=<subject>` with

    { "result": { "quantity": <int>, "coincidences": [record, ...] } }

Calls are one-shot: no retries, so a failure surfaces to the caller at once.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

import requests

from lookup_reports.config import UpstreamConfig
from lookup_reports.errors import UpstreamError
from lookup_reports.report_types import ReportType

logger = logging.getLogger(__name__)


@dataclass
class LookupResult:
    quantity: int
    coincidences: list = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return self.quantity == 0 or not self.coincidences


def parse_lookup(payload) -> LookupResult:
    """Normalise an upstream payload; a missing result means zero matches."""
    result = payload.get("result") if isinstance(payload, dict) else None
    if not isinstance(result, dict):
        return LookupResult(quantity=0)

    coincidences = result.get("coincidences") or []
    if not isinstance(coincidences, list):
        coincidences = [coincidences]
    try:
        quantity = int(result.get("quantity", len(coincidences)))
    except (TypeError, ValueError):
        quantity = len(coincidences)
    return LookupResult(quantity=quantity, coincidences=coincidences)


class LookupClient:
    """Fetches lookup records for a subject from the upstream service."""

    def __init__(self, cfg: UpstreamConfig, session: Optional[requests.Session] = None):
        self.cfg = cfg
        self.session = session or requests.Session()

    def url_for(self, report_type: ReportType) -> str:
        try:
            endpoint = self.cfg.endpoints[report_type.upstream]
        except KeyError:
            raise UpstreamError(f"no upstream endpoint configured for {report_type.key}") from None
        return f"{self.cfg.base_url}/{endpoint.lstrip('/')}"

    def fetch(self, subject: str, report_type: ReportType) -> LookupResult:
        url = self.url_for(report_type)
        try:
            resp = self.session.get(url, params={self.cfg.subject_param: subject},
                                    timeout=self.cfg.timeout_seconds)
            resp.raise_for_status()
            payload = resp.json()
        except requests.RequestException as exc:
            raise UpstreamError(f"lookup request failed: {exc}") from exc
        except ValueError as exc:
            raise UpstreamError(f"lookup returned invalid JSON: {exc}") from exc

        result = parse_lookup(payload)
        logger.info("Upstream %s lookup for %s: quantity=%d, records=%d",
                    report_type.key, subject, result.quantity, len(result.coincidences))
        return result
