"""Placeholder substitution for consent template bodies"""

import html
import re
from datetime import date, datetime
from typing import Optional

from ...models import Appointment, Business, Client, Service

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([a-zA-Z_][a-zA-Z0-9_]*)\s*\}\}")

KNOWN_PLACEHOLDERS = (
    "negocio_nombre",
    "negocio_direccion",
    "negocio_telefono",
    "negocio_email",
    "cliente_nombre",
    "cliente_email",
    "cliente_telefono",
    "cliente_documento",
    "cliente_fecha_nacimiento",
    "servicio_nombre",
    "fecha_firma",
    "fecha_cita",
)


def _format_date(value) -> str:
    if isinstance(value, (datetime, date)):
        return value.strftime("%d/%m/%Y")
    return ""


def build_placeholder_values(
    business: Optional[Business],
    customer: Optional[Client],
    service: Optional[Service] = None,
    appointment: Optional[Appointment] = None,
    signed_at: Optional[datetime] = None,
) -> dict:
    """Values for every known placeholder; missing data becomes an empty string"""
    return {
        "negocio_nombre": business.name if business else "",
        "negocio_direccion": (business.address if business else None) or "",
        "negocio_telefono": (business.phone if business else None) or "",
        "negocio_email": (business.email if business else None) or "",
        "cliente_nombre": customer.full_name if customer else "",
        "cliente_email": (customer.email if customer else None) or "",
        "cliente_telefono": (customer.phone if customer else None) or "",
        "cliente_documento": (customer.document_number if customer else None) or "",
        "cliente_fecha_nacimiento": _format_date(customer.birth_date if customer else None),
        "servicio_nombre": service.name if service else "",
        "fecha_firma": _format_date(signed_at or datetime.utcnow()),
        "fecha_cita": _format_date(appointment.start_time if appointment else None),
    }


def render_placeholders(content: str, values: dict) -> str:
    """Replace {{name}} tokens with HTML-escaped values; unknown names are left as written"""

    def _replace(match: re.Match) -> str:
        name = match.group(1)
        if name in values:
            return html.escape(str(values[name]), quote=False)
        return match.group(0)

    return PLACEHOLDER_PATTERN.sub(_replace, content or "")


def render_consent_content(
    content: str,
    business: Optional[Business],
    customer: Optional[Client],
    service: Optional[Service] = None,
    appointment: Optional[Appointment] = None,
    signed_at: Optional[datetime] = None,
) -> str:
    values = build_placeholder_values(business, customer, service, appointment, signed_at)
    return render_placeholders(content, values)


def find_placeholders(content: str) -> list:
    """Distinct placeholder names used in a template, in order of appearance"""
    seen = []
    for name in PLACEHOLDER_PATTERN.findall(content or ""):
        if name not in seen:
            seen.append(name)
    return seen


def unknown_placeholders(content: str) -> list:
    """Placeholder names the renderer will leave untouched"""
    return [name for name in find_placeholders(content) if name not in KNOWN_PLACEHOLDERS]
