"""
report_types.py — Report Type Descriptors.

A ReportType decides which fields of an upstream record become the block
title and which become the ordered detail lines, plus the accent colour used
for the block's avatar column. Records are treated as read-only mappings whose
schema varies by report type; anything missing or malformed is rendered with
the placeholder instead of failing.

Variants:
    salary       — /consultar-sueldos   (empresa, sueldo, periodo, situacion)
    consumption  — /consultar-consumos  (razonSocial, monto, fecha, numRucEmisor)
    employment   — /consultar-empleos   (empresa, ruc, cargo, fechaIngreso, fechaCese)
    company      — /consultar-empresas  (razonSocial, ruc, estado, condicion, direccion)
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional

from lookup_reports.errors import InputError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DetailField:
    """One rendered detail slot: a label and the record keys that may feed it."""
    label: str
    keys: tuple
    kind: str = "text"     # 'text' | 'money'


@dataclass(frozen=True)
class ReportType:
    key: str
    label: str             # upper-case name printed in the section bar
    title: str             # document heading
    file_prefix: str
    route: str
    upstream: str
    accent: str
    title_keys: tuple
    details: tuple


@dataclass(frozen=True)
class TextBlock:
    """Title, accent colour and ordered detail lines derived from one record."""
    title: str
    accent: str
    details: tuple


SALARY = ReportType(
    key="salary",
    label="SUELDOS",
    title="Reporte de Sueldos",
    file_prefix="SUELDO",
    route="/consultar-sueldos",
    upstream="salary",
    accent="#1E6FB8",
    title_keys=("empresa", "razonSocial"),
    details=(
        DetailField("Sueldo", ("sueldo", "monto"), "money"),
        DetailField("Período", ("periodo",)),
        DetailField("Situación", ("situacion",)),
        DetailField("RUC", ("ruc", "numRuc")),
    ),
)

CONSUMPTION = ReportType(
    key="consumption",
    label="CONSUMOS",
    title="Reporte de Consumos",
    file_prefix="CONSUMO",
    route="/consultar-consumos",
    upstream="consumption",
    accent="#C0392B",
    title_keys=("razonSocial", "empresa"),
    details=(
        DetailField("Monto", ("monto",), "money"),
        DetailField("Fecha", ("fecha",)),
        DetailField("RUC Emisor", ("numRucEmisor", "ruc")),
    ),
)

EMPLOYMENT = ReportType(
    key="employment",
    label="EMPLEOS",
    title="Reporte Laboral",
    file_prefix="EMPLEO",
    route="/consultar-empleos",
    upstream="employment",
    accent="#1E8449",
    title_keys=("empresa", "razonSocial", "empleador"),
    details=(
        DetailField("RUC", ("ruc", "numRuc")),
        DetailField("Cargo", ("cargo", "ocupacion")),
        DetailField("Fecha de ingreso", ("fechaIngreso", "fechaInicio")),
        DetailField("Fecha de cese", ("fechaCese", "fechaFin")),
        DetailField("Situación", ("situacion", "estado")),
    ),
)

COMPANY = ReportType(
    key="company",
    label="EMPRESAS",
    title="Reporte de Empresas",
    file_prefix="EMPRESA",
    route="/consultar-empresas",
    upstream="company",
    accent="#7D3C98",
    title_keys=("razonSocial", "nombre", "empresa"),
    details=(
        DetailField("RUC", ("ruc", "numRuc")),
        DetailField("Estado", ("estado",)),
        DetailField("Condición", ("condicion",)),
        DetailField("Dirección", ("direccion", "domicilioFiscal")),
    ),
)

REPORT_TYPES = {rt.key: rt for rt in (SALARY, CONSUMPTION, EMPLOYMENT, COMPANY)}

_ALIASES = {
    "sueldos": "salary", "sueldo": "salary",
    "consumos": "consumption", "consumo": "consumption",
    "empleos": "employment", "empleo": "employment", "laboral": "employment",
    "empresas": "company", "empresa": "company",
}


def get_report_type(name: str) -> ReportType:
    """Resolve a report type by key, Spanish alias or upper-case label."""
    token = (name or "").strip().lower()
    token = _ALIASES.get(token, token)
    try:
        return REPORT_TYPES[token]
    except KeyError:
        raise InputError(f"unknown report type: {name!r}") from None


def by_route(path: str) -> Optional[ReportType]:
    for rt in REPORT_TYPES.values():
        if rt.route == path:
            return rt
    return None


# ---------------------------------------------------------------------------
# Field mapping
# ---------------------------------------------------------------------------

def _format_money(value: Any) -> Optional[str]:
    """Render a numeric amount as 'S/ 1,234.50'; pass other text through."""
    if isinstance(value, (bool, dict, list, tuple, set)):
        return None
    if isinstance(value, (int, float, Decimal)):
        amount = Decimal(str(value))
    else:
        text = str(value).strip()
        try:
            amount = Decimal(text.replace(",", ""))
        except InvalidOperation:
            return f"S/ {text}"
    if not amount.is_finite():
        return None
    return f"S/ {amount:,.2f}"


def _pick(record: Mapping, keys: tuple) -> Optional[Any]:
    for key in keys:
        value = record.get(key)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def _as_text(value: Any) -> Optional[str]:
    if isinstance(value, (dict, list, tuple, set)):
        return None
    text = " ".join(str(value).split())
    return text or None


def build_text_block(
    record: Any,
    report_type: ReportType,
    placeholder: str = "N/A",
    accent: Optional[str] = None,
) -> TextBlock:
    """Derive the block text for one record.

    Args:
        record: Upstream record (normally a mapping). Never mutated.
        report_type: Field map to apply.
        placeholder: Text substituted for missing or malformed fields.
        accent: Optional colour overriding the report type default.

    Returns:
        TextBlock with a stable detail-line order.
    """
    if not isinstance(record, Mapping):
        logger.warning("Non-mapping %s record (%s) rendered with placeholders",
                       report_type.key, type(record).__name__)
        record = {}

    title_raw = _pick(record, report_type.title_keys)
    title = (_as_text(title_raw) if title_raw is not None else None) or placeholder

    details = []
    for slot in report_type.details:
        raw = _pick(record, slot.keys)
        text = None
        if raw is not None:
            text = _format_money(raw) if slot.kind == "money" else _as_text(raw)
        details.append(f"{slot.label}: {text or placeholder}")

    return TextBlock(title=title, accent=accent or report_type.accent, details=tuple(details))
