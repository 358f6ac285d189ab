"""
Ciclo de vida de los documentos comerciales.

    DRAFT → SENT → APPROVED → COMPLETED
              │        └────→ CANCELLED
              ├────→ CANCELLED
              └────→ EXPIRED   (solo presupuestos, vencido valid_until)

COMPLETED, CANCELLED y EXPIRED son terminales.
"""
from __future__ import annotations

from datetime import datetime
from typing import Dict, FrozenSet, Optional

from azul.errors import InvalidTransition
from azul.models.document import DocumentStatus, DocumentType

INITIAL_STATUS: DocumentStatus = "DRAFT"
TERMINAL_STATUSES: FrozenSet[str] = frozenset({"COMPLETED", "CANCELLED", "EXPIRED"})

TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "DRAFT": frozenset({"SENT"}),
    "SENT": frozenset({"APPROVED", "CANCELLED", "EXPIRED"}),
    "APPROVED": frozenset({"COMPLETED", "CANCELLED"}),
    "COMPLETED": frozenset(),
    "CANCELLED": frozenset(),
    "EXPIRED": frozenset(),
}

# tipo -> (estado requerido, tipo generado)
CONVERSIONS: Dict[str, tuple] = {
    "QUOTE": ("APPROVED", "RECEIPT"),
    "RECEIPT": ("COMPLETED", "DELIVERY_NOTE"),
}


def is_expired(
    document_type: DocumentType,
    status: DocumentStatus,
    valid_until: Optional[datetime],
    now: Optional[datetime] = None,
) -> bool:
    if document_type != "QUOTE" or status != "SENT" or valid_until is None:
        return False
    return (now or datetime.now()) > valid_until


def allowed_transitions(
    status: DocumentStatus,
    document_type: DocumentType,
    valid_until: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> FrozenSet[str]:
    out = set(TRANSITIONS.get(status, frozenset()))
    if "EXPIRED" in out and not is_expired(document_type, status, valid_until, now):
        out.discard("EXPIRED")
    return frozenset(out)


def _check(
    current: str,
    requested: str,
    document_type: str,
    valid_until: Optional[datetime],
    now: Optional[datetime],
) -> str:
    if current not in TRANSITIONS:
        return "estado desconocido"
    if requested not in TRANSITIONS:
        return "estado destino desconocido"
    if current in TERMINAL_STATUSES:
        return "estado terminal"
    if requested not in TRANSITIONS[current]:
        return "no permitida"
    if requested == "EXPIRED":
        if document_type != "QUOTE":
            return "solo los presupuestos vencen"
        if valid_until is None or not is_expired(document_type, current, valid_until, now):
            return "el presupuesto sigue vigente"
    return ""


def can_transition(
    current: DocumentStatus,
    requested: DocumentStatus,
    document_type: DocumentType,
    valid_until: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> bool:
    return _check(current, requested, document_type, valid_until, now) == ""


def transition(
    current: DocumentStatus,
    requested: DocumentStatus,
    document_type: DocumentType,
    valid_until: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> DocumentStatus:
    reason = _check(current, requested, document_type, valid_until, now)
    if reason:
        raise InvalidTransition(current, requested, reason)
    return requested


def conversion_target(document_type: DocumentType, status: DocumentStatus) -> DocumentType:
    """Presupuesto aprobado → recibo; recibo completado → remito."""
    rule = CONVERSIONS.get(document_type)
    if rule is None:
        raise InvalidTransition(document_type, "-", "el tipo no admite conversión")
    required, target = rule
    if status != required:
        raise InvalidTransition(status, target, f"requiere {document_type} en {required}")
    return target
