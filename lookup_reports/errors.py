"""
errors.py — Error taxonomy.

Every fault raised while serving a report request derives from `ReportError`
and carries the HTTP status and the `message` key used in the structured
response. Store-level errors never reach the caller directly: the publication
gate translates them.
"""


class ReportError(Exception):
    """Base class for faults surfaced to the caller as a structured payload."""
    status = 500
    message = "error"


class InputError(ReportError):
    """Missing or invalid subject identifier, report type or format."""
    status = 400


class NoDataError(ReportError):
    """Upstream returned zero matches for the subject."""
    status = 404
    message = "not found"


class UpstreamError(ReportError):
    """Transport or decoding failure talking to the data source."""
    status = 502


class FontMetricsError(ReportError):
    """No font metrics can be obtained from the rendering backend."""
    status = 500


class LayoutError(ReportError):
    """The paint pass disagreed with the sizing pass."""
    status = 500


class PublishError(ReportError):
    """The artifact store rejected or failed the upload."""
    status = 502


class StoreError(Exception):
    """Low-level artifact store failure (network, auth, unexpected status)."""


class ArtifactExistsError(StoreError):
    """An artifact with the same name was published first."""

    def __init__(self, name: str, url: str):
        super().__init__(f"artifact already exists: {name}")
        self.name = name
        self.url = url
