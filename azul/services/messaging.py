"""
Mensajes de WhatsApp para documentos: texto (plantillas Jinja2) y deep link.

Sin emojis: algunos dispositivos los muestran rotos.
"""
from __future__ import annotations

import re
from typing import NamedTuple, Optional
from urllib.parse import quote

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from azul.config import DELIVERY_WHATSAPP, STORE_INFO, TEMPLATES_DIR
from azul.models.client import Client
from azul.models.document import Document
from azul.services import pricing as engine


class OutboundMessage(NamedTuple):
    phone: str
    text: str
    link: str


# ---------- Formatos ---------- #

def format_currency(amount: Optional[int]) -> str:
    """259900 -> "$259.900" (pesos, sin decimales)."""
    if amount is None:
        return "$0"
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(int(amount)):,}".replace(",", ".")


def format_document_number(number: Optional[int]) -> str:
    if not number:
        return "00000"
    return f"{int(number):05d}"


def phone_for_whatsapp(phone: str) -> str:
    digits = re.sub(r"\D", "", phone or "")
    if not digits.startswith("549"):
        digits = f"549{digits}"
    return digits


# mismo set de caracteres sin escapar que encodeURIComponent
_URI_SAFE = "-_.!~*'()"


def whatsapp_link(phone: str, message: str) -> str:
    return f"https://wa.me/{phone_for_whatsapp(phone)}?text={quote(message, safe=_URI_SAFE)}"


# ---------- Plantillas ---------- #

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR / "messages")),
    autoescape=False,
    trim_blocks=True,
    lstrip_blocks=True,
    undefined=StrictUndefined,
)
_env.filters["money"] = format_currency


def _valid_days(doc: Document) -> Optional[int]:
    if doc.type != "QUOTE" or doc.valid_until is None:
        return None
    return (doc.valid_until.date() - doc.created_at.date()).days or None


def build_delivery_message(doc: Document, client: Client) -> str:
    """Remito para el repartidor: sin precios."""
    return _env.get_template("delivery_note.txt.j2").render(doc=doc, client=client, store=STORE_INFO)


def build_client_message(doc: Document, client: Client) -> str:
    """Presupuesto / recibo para el cliente, con importes."""
    return _env.get_template("client.txt.j2").render(
        doc=doc,
        client=client,
        store=STORE_INFO,
        installment_amount=engine.compute_installment_amount(doc.total, doc.installments),
        has_stock=doc.has_source("STOCK"),
        has_catalog=doc.has_source("CATALOG"),
        valid_days=_valid_days(doc),
    )


def message_for(doc: Document, client: Client, delivery_phone: str = DELIVERY_WHATSAPP) -> OutboundMessage:
    """Remitos van al repartidor, el resto al cliente."""
    if doc.type == "DELIVERY_NOTE":
        text = build_delivery_message(doc, client)
        phone = delivery_phone
    else:
        text = build_client_message(doc, client)
        phone = client.phone
    return OutboundMessage(phone=phone_for_whatsapp(phone), text=text, link=whatsapp_link(phone, text))
