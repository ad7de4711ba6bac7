"""
Consent PDF Generator
Renders a signed consent snapshot into a PDF document with reportlab
"""

import base64
import io
import logging
import re
from datetime import date, datetime
from typing import Optional
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.lib.utils import ImageReader
from reportlab.platypus import (
    HRFlowable,
    Image,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from ..models import ConsentSignature
from ..security_utils import strip_html

logger = logging.getLogger(__name__)

DATA_URL_PATTERN = re.compile(r"^data:image/[a-zA-Z0-9.+-]+;base64,(?P<data>.+)$", re.DOTALL)

AUTHORIZATIONS = [
    ("agreedToTerms", "Acepto los términos y condiciones"),
    ("agreedToTreatment", "Autorizo la realización del tratamiento"),
    ("agreedToPhotos", "Autorizo el registro fotográfico"),
]
AUTHORIZATION_KEYS = {key for key, _ in AUTHORIZATIONS}


def calculate_age(birth_date: Optional[date], today: Optional[date] = None) -> Optional[int]:
    """Completed years between birth_date and today"""
    if not birth_date:
        return None
    today = today or date.today()
    age = today.year - birth_date.year
    if (today.month, today.day) < (birth_date.month, birth_date.day):
        age -= 1
    return age


def format_datetime(value: Optional[datetime]) -> str:
    return value.strftime("%d/%m/%Y %H:%M") if value else ""


def decode_signature_image(signature_data: Optional[str]) -> Optional[bytes]:
    """Bytes of a base64 data URL image, or None when it can't be decoded"""
    if not signature_data:
        return None
    match = DATA_URL_PATTERN.match(signature_data.strip())
    if not match:
        return None
    try:
        raw = base64.b64decode(match.group("data"), validate=False)
        ImageReader(io.BytesIO(raw)).getSize()
    except Exception as e:
        logger.warning(f"⚠️ Signature image could not be decoded: {e}")
        return None
    return raw


class ConsentPDFGenerator:
    """Generate the PDF copy of a consent signature"""

    def __init__(self, signature: ConsentSignature, generated_at: Optional[datetime] = None):
        self.signature = signature
        self.template = signature.template
        self.business = signature.business
        self.customer = signature.customer
        self.service = signature.service
        self.generated_at = generated_at or datetime.utcnow()

        self.margin = 0.75 * inch
        self.brand_color = colors.HexColor("#7c3aed")
        self.dark_gray = colors.HexColor("#1e293b")
        self.muted = colors.HexColor("#64748b")

        styles = getSampleStyleSheet()
        self.title_style = ParagraphStyle(
            "ConsentTitle",
            parent=styles["Heading1"],
            fontSize=18,
            textColor=self.brand_color,
            alignment=1,
            spaceAfter=6,
        )
        self.subtitle_style = ParagraphStyle(
            "ConsentSubtitle", parent=styles["Normal"], fontSize=10, textColor=self.muted, alignment=1
        )
        self.heading_style = ParagraphStyle(
            "ConsentHeading",
            parent=styles["Heading2"],
            fontSize=12,
            textColor=self.dark_gray,
            spaceBefore=14,
            spaceAfter=6,
        )
        self.body_style = ParagraphStyle(
            "ConsentBody", parent=styles["Normal"], fontSize=10, textColor=self.dark_gray, leading=14
        )
        self.small_style = ParagraphStyle(
            "ConsentSmall", parent=styles["Normal"], fontSize=8, textColor=self.muted, leading=10
        )

    def generate(self) -> bytes:
        """Generate PDF and return bytes"""
        logger.info(f"📄 Generating consent PDF for signature {self.signature.id}")
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=letter,
            rightMargin=self.margin,
            leftMargin=self.margin,
            topMargin=self.margin,
            bottomMargin=self.margin,
            title=f"Consentimiento - {self.template.name if self.template else ''}",
        )

        story = []
        story += self._header()
        story += self._client_section()
        story += self._service_section()
        story += self._dynamic_fields_section()
        story += self._consent_text_section()
        story += self._authorizations_section()
        story += self._signature_section()
        story += self._footer()

        doc.build(story)
        pdf_bytes = buffer.getvalue()
        buffer.close()
        logger.info(f"✅ Consent PDF generated: {len(pdf_bytes)} bytes")
        return pdf_bytes

    def _p(self, text: str, style=None) -> Paragraph:
        return Paragraph(escape(text or "").replace("\n", "<br/>"), style or self.body_style)

    def _header(self) -> list:
        title = self.template.name if self.template else "Consentimiento informado"
        parts = [self._p(title.upper(), self.title_style)]
        if self.business:
            parts.append(self._p(self.business.name, self.subtitle_style))
            contact = " • ".join(v for v in (self.business.address, self.business.phone) if v)
            if contact:
                parts.append(self._p(contact, self.subtitle_style))
        parts.append(Spacer(1, 6))
        parts.append(HRFlowable(width="100%", thickness=1, color=self.brand_color))
        return parts

    def _rows_table(self, rows: list) -> Table:
        table = Table(
            [[self._p(label, self.small_style), self._p(value)] for label, value in rows],
            colWidths=[1.8 * inch, None],
        )
        table.setStyle(
            TableStyle(
                [
                    ("VALIGN", (0, 0), (-1, -1), "TOP"),
                    ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
                ]
            )
        )
        return table

    def _client_section(self) -> list:
        customer = self.customer
        age = calculate_age(customer.birth_date if customer else None, self.signature.signed_at.date())
        rows = [
            ("Nombre", self.signature.signed_by),
            ("Documento", (customer.document_number if customer else None) or "N/A"),
        ]
        if age is not None:
            rows.append(("Edad", f"{age} años"))
        rows += [
            ("Email", (customer.email if customer else None) or "N/A"),
            ("Teléfono", (customer.phone if customer else None) or "N/A"),
            ("Fecha", format_datetime(self.signature.signed_at)),
        ]
        return [self._p("INFORMACIÓN DEL CLIENTE", self.heading_style), self._rows_table(rows)]

    def _service_section(self) -> list:
        if not self.service:
            return []
        rows = [("Servicio", self.service.name)]
        if self.service.category:
            rows.append(("Categoría", self.service.category))
        return [self._p("SERVICIO", self.heading_style), self._rows_table(rows)]

    def _dynamic_fields_section(self) -> list:
        data = {
            k: v
            for k, v in (self.signature.editable_fields_data or {}).items()
            if k not in AUTHORIZATION_KEYS and v not in (None, "")
        }
        if not data:
            return []

        labels = {
            f.get("name"): f.get("label") or f.get("name")
            for f in (self.template.editable_fields or [] if self.template else [])
            if isinstance(f, dict)
        }
        rows = []
        for name, value in data.items():
            if isinstance(value, bool):
                value = "Sí" if value else "No"
            elif isinstance(value, list):
                value = ", ".join(str(v) for v in value)
            rows.append((labels.get(name, name), str(value)))
        return [self._p("INFORMACIÓN MÉDICA", self.heading_style), self._rows_table(rows)]

    def _consent_text_section(self) -> list:
        parts = [self._p("CONSENTIMIENTO", self.heading_style)]
        text = strip_html(self.signature.template_content or "")
        for block in text.split("\n\n"):
            if block.strip():
                parts.append(self._p(block.strip()))
                parts.append(Spacer(1, 4))
        return parts

    def _authorizations_section(self) -> list:
        data = self.signature.editable_fields_data or {}
        if not any(key in data for key in AUTHORIZATION_KEYS):
            return []
        parts = [self._p("AUTORIZACIONES", self.heading_style)]
        for key, label in AUTHORIZATIONS:
            mark = "[X]" if data.get(key) else "[  ]"
            parts.append(self._p(f"{mark} {label}"))
        return parts

    def _signature_section(self) -> list:
        parts = [self._p("FIRMA", self.heading_style)]
        raw = decode_signature_image(self.signature.signature_data)
        if raw:
            width, height = ImageReader(io.BytesIO(raw)).getSize()
            # Scale into a 3x1 inch box keeping aspect ratio
            scale = min(3 * inch / width, 1 * inch / height, 1)
            image = Image(io.BytesIO(raw), width=width * scale, height=height * scale)
            image.hAlign = "LEFT"
            parts.append(image)
        else:
            parts.append(self._p("[Firma digital registrada]"))

        parts.append(HRFlowable(width="40%", thickness=0.5, color=self.dark_gray, hAlign="LEFT"))
        parts.append(self._p(self.signature.signed_by))
        parts.append(self._p(f"Firmado el {format_datetime(self.signature.signed_at)}", self.small_style))
        if self.signature.ip_address:
            parts.append(self._p(f"IP: {self.signature.ip_address}", self.small_style))
        parts.append(self._p(f"ID: {self.signature.id[:8]}", self.small_style))
        return parts

    def _footer(self) -> list:
        return [
            Spacer(1, 18),
            HRFlowable(width="100%", thickness=0.5, color=self.muted),
            self._p(
                f"Versión de plantilla {self.signature.template_version} • "
                f"Documento generado el {format_datetime(self.generated_at)}",
                self.small_style,
            ),
        ]
