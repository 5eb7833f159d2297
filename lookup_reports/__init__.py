"""
lookup-report-renderer — Source package.

Modules:
    config        — YAML configuration loaded into immutable dataclasses
    errors        — Error taxonomy shared by the service and HTTP layer
    report_types  — Salary / Consumption / Employment / Company field maps
    text          — Greedy word wrapping against backend font metrics
    backends      — ReportLab PDF surface + Pillow PNG surface, QR matrix
    layout        — Block layout engine (measure / layout / paint)
    flow          — Two-pass flow and pagination engine
    composer      — Header, banner, body and footer composition
    stores        — GitHub contents API + local directory artifact stores
    publisher     — Deterministic naming and idempotent publication gate
    source        — Upstream lookup client
    service       — Request orchestration and structured responses
    server        — Thin HTTP routing layer
"""
