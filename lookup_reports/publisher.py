"""
publisher.py — Artifact Publication Gate.

Identical (subject, report type, format) requests map to one artifact name.
The gate looks the name up before rendering and only renders + uploads on a
miss, so repeated lookups cost one existence check instead of a render.

    hit                       -> existing URL, is_new=False, render skipped
    miss                      -> render, upload, new URL, is_new=True
    existence check failed    -> treated as a miss (availability over dedup)
    upload failed             -> PublishError, no URL returned
    lost a concurrent upload  -> winner's URL, is_new=False
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable

from lookup_reports.backends import CONTENT_TYPES, EXTENSIONS
from lookup_reports.errors import ArtifactExistsError, InputError, PublishError, StoreError
from lookup_reports.report_types import ReportType

logger = logging.getLogger(__name__)

_SAFE_NAME = re.compile(r"[^A-Z0-9-]")


@dataclass(frozen=True)
class PublishResult:
    url: str
    is_new: bool
    name: str


def artifact_name(subject: str, report_type: ReportType, fmt: str = "pdf") -> str:
    """Deterministic, case-normalised file name, e.g. 'SUELDO_12345678.pdf'."""
    if fmt not in EXTENSIONS:
        raise InputError(f"unknown output format: {fmt!r}")
    token = _SAFE_NAME.sub("", (subject or "").strip().upper())
    if not token:
        raise InputError("subject identifier is required")
    return f"{report_type.file_prefix}_{token}.{EXTENSIONS[fmt]}"


class PublicationGate:
    """Deduplicating front door to an artifact store."""

    def __init__(self, store):
        self.store = store

    def lookup(self, name: str):
        try:
            return self.store.exists(name)
        except StoreError as exc:
            logger.warning("Existence check failed for %s (%s); rendering anyway", name, exc)
            return None

    def publish(
        self,
        subject: str,
        report_type: ReportType,
        render_fn: Callable[[], bytes],
        fmt: str = "pdf",
    ) -> PublishResult:
        """Return the artifact URL, rendering and uploading only on a miss.

        Args:
            subject: Subject identifier.
            report_type: Report type (part of the artifact identity).
            render_fn: Zero-argument callable returning the encoded bytes.
            fmt: 'pdf' or 'image'.

        Returns:
            PublishResult.

        Raises:
            PublishError: The upload failed.
        """
        name = artifact_name(subject, report_type, fmt)

        url = self.lookup(name)
        if url:
            logger.info("Artifact %s already published; skipping render", name)
            return PublishResult(url=url, is_new=False, name=name)

        data = render_fn()
        try:
            url = self.store.upload(name, data, CONTENT_TYPES[fmt])
        except ArtifactExistsError as exc:
            logger.info("Artifact %s was published concurrently; using existing copy", name)
            return PublishResult(url=exc.url, is_new=False, name=name)
        except StoreError as exc:
            raise PublishError(f"could not publish {name}: {exc}") from exc

        logger.info("Published %s -> %s", name, url)
        return PublishResult(url=url, is_new=True, name=name)
