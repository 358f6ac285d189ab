from __future__ import annotations

import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from azul.config import DEFAULT_VALID_DAYS, data_dir
from azul.errors import (
    DocumentError,
    DocumentNotFound,
    EmptyItemList,
    InvalidAmount,
    InvalidTransition,
    MissingClient,
)
from azul.models.document import Document, DocumentStatus, DocumentType
from azul.models.draft import Draft
from azul.services import lifecycle
from azul.services import pricing as engine
from azul.services.pricing import RateTable
from azul.storage.json_repo import JsonRepository

logger = logging.getLogger(__name__)

# tipos que mueven stock al completarse
STOCK_DOCUMENT_TYPES = ("RECEIPT", "DELIVERY_NOTE")


# ---------- Construcción (pura) ---------- #

def build_document(draft: Draft, rates: RateTable, number: int, now: Optional[datetime] = None) -> Document:
    """Documento listo para persistir a partir del borrador. No toca el borrador."""
    now = now or datetime.now()
    if draft.client is None:
        raise MissingClient()
    if not draft.items:
        raise EmptyItemList()

    p = engine.price(draft.items, draft.payment, draft.shipping_cost, rates)
    if p.overpaid:
        raise InvalidAmount(f"El monto pagado (${p.amount_paid}) no puede ser mayor al total (${p.total})")

    return Document(
        number=number,
        type=draft.document_type,
        status=lifecycle.INITIAL_STATUS,
        client_id=draft.client.id,
        client_name=draft.client.name,
        items=[it.model_copy() for it in draft.items],
        subtotal=p.subtotal,
        surcharge_rate=p.surcharge_rate,
        surcharge=p.surcharge,
        total=p.total,
        shipping_type=draft.shipping_type,
        shipping_cost=p.shipping_cost,
        payment_type=draft.payment.payment_type,
        installments=p.installments,
        amount_paid=p.amount_paid,
        balance=p.balance,
        valid_until=now + timedelta(days=draft.valid_days) if draft.document_type == "QUOTE" else None,
        observations=draft.observations.strip() or None,
        internal_notes=draft.internal_notes.strip() or None,
        created_at=now,
        updated_at=now,
    )


# ---------- Servicio ---------- #

class DocumentService:
    def __init__(self, data_dir_: Optional[str | Path] = None, catalog=None) -> None:
        base = Path(data_dir_) if data_dir_ else data_dir()
        self.repo = JsonRepository(base / "documents.json", entity_name="document", key="id")
        self.catalog = catalog

    # ----- Hidratación ----- #

    @staticmethod
    def _hydrate(d: Dict[str, Any]) -> Optional[Document]:
        try:
            return Document.model_validate(d)
        except ValidationError as e:
            logger.warning("Documento inválido ignorado (%s): %s", d.get("id"), e.error_count())
            return None

    def _save(self, doc: Document) -> Document:
        doc.touch()
        self.repo.update(doc)
        return doc

    # ----- Numeración ----- #

    def _next_number(self) -> int:
        max_n = 0
        for d in self.repo.list_all():
            try:
                max_n = max(max_n, int(d.get("number") or 0))
            except (TypeError, ValueError):
                continue
        return max_n + 1

    def _insert(self, build) -> Document:
        # número y alta bajo el mismo lock: secuencia única y creciente
        with self.repo.lock:
            doc = build(self._next_number())
            self.repo.add(doc)
        logger.info("Documento creado: %s #%s (%s)", doc.type, doc.display_number, doc.client_name)
        return doc

    # ----- Alta ----- #

    def create_from_draft(self, draft: Draft, rates: RateTable, now: Optional[datetime] = None) -> Document:
        if self.catalog is not None:
            for it in draft.items:
                if not it.is_custom:
                    self.catalog.get_variant(it.variant_id)
        return self._insert(lambda n: build_document(draft, rates, n, now))

    # ----- Consultas ----- #

    def get(self, document_id: str) -> Document:
        d = self.repo.get_by_id(document_id)
        doc = self._hydrate(d) if d else None
        if doc is None:
            raise DocumentNotFound(document_id)
        return doc

    def get_by_number(self, number: int) -> Document:
        d = self.repo.find_one(lambda x: x.get("number") == number)
        doc = self._hydrate(d) if d else None
        if doc is None:
            raise DocumentNotFound(number)
        return doc

    def list_documents(
        self,
        type: Optional[DocumentType] = None,
        status: Optional[DocumentStatus] = None,
        client_id: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[Document]:
        out: List[Document] = []
        q = (search or "").strip().casefold()
        for d in self.repo.list_all():
            doc = self._hydrate(d)
            if doc is None:
                continue
            if type and doc.type != type:
                continue
            if status and doc.status != status:
                continue
            if client_id and doc.client_id != client_id:
                continue
            if q and not (q in doc.client_name.casefold() or q == str(doc.number) or q == doc.display_number):
                continue
            out.append(doc)
        return sorted(out, key=lambda x: (x.created_at, x.number), reverse=True)

    def list_by_client(self, client_id: str) -> List[Document]:
        return self.list_documents(client_id=client_id)

    # ----- Estados ----- #

    def _moves_stock(self, doc: Document) -> bool:
        if self.catalog is None or doc.type not in STOCK_DOCUMENT_TYPES:
            return False
        if doc.type == "DELIVERY_NOTE" and doc.derived_from_id:
            # el recibo de origen ya descontó al completarse
            src = self.repo.get_by_id(doc.derived_from_id)
            return not (src and src.get("type") == "RECEIPT")
        return True

    def _apply(self, doc: Document, update: Dict[str, Any]) -> Document:
        if update.get("status") == "COMPLETED" and self._moves_stock(doc):
            self.catalog.withdraw_stock(doc.items)
        return self._save(doc.model_copy(update=update))

    def change_status(self, document_id: str, requested: DocumentStatus, now: Optional[datetime] = None) -> Document:
        doc = self.get(document_id)
        new_status = lifecycle.transition(doc.status, requested, doc.type, doc.valid_until, now)
        updated = self._apply(doc, {"status": new_status})
        logger.info("Documento #%s: %s → %s", doc.display_number, doc.status, new_status)
        return updated

    def mark_sent(self, document_id: str) -> Document:
        return self.change_status(document_id, "SENT")

    def approve(self, document_id: str) -> Document:
        return self.change_status(document_id, "APPROVED")

    def complete(self, document_id: str) -> Document:
        return self.change_status(document_id, "COMPLETED")

    def cancel(self, document_id: str) -> Document:
        return self.change_status(document_id, "CANCELLED")

    def expire_overdue(self, now: Optional[datetime] = None) -> List[Document]:
        now = now or datetime.now()
        expired: List[Document] = []
        for doc in self.list_documents(type="QUOTE", status="SENT"):
            if lifecycle.is_expired(doc.type, doc.status, doc.valid_until, now):
                expired.append(self.change_status(doc.id, "EXPIRED", now))
        if expired:
            logger.info("%d presupuestos vencidos", len(expired))
        return expired

    # ----- Pagos ----- #

    def record_payment(self, document_id: str, amount_paid: int, payment_type: Optional[str] = None) -> Document:
        """
        Registra el monto pagado acumulado y recalcula el saldo.
        Un recibo aprobado que queda en saldo 0 pasa a COMPLETED.
        """
        doc = self.get(document_id)
        if doc.status in lifecycle.TERMINAL_STATUSES:
            raise DocumentError(f"No se pueden registrar pagos en un documento {doc.status_label.lower()}")
        bal = engine.compute_balance(doc.total, amount_paid)
        if bal.overpaid:
            raise InvalidAmount(f"El monto pagado (${amount_paid}) no puede ser mayor al total (${doc.total})")

        update: Dict[str, Any] = {"amount_paid": amount_paid, "balance": bal.pending}
        if payment_type is not None:
            update["payment_type"] = payment_type or None
        if bal.paid_in_full and doc.type == "RECEIPT" and doc.status == "APPROVED":
            update["status"] = lifecycle.transition(doc.status, "COMPLETED", doc.type)
            logger.info("Recibo #%s saldado, se completa", doc.display_number)
        return self._apply(doc, update)

    # ----- Derivados ----- #

    def _derive(self, source: Document, new_type: DocumentType, now: datetime, **overrides: Any) -> Document:
        def build(number: int) -> Document:
            data = source.model_dump(exclude={"id", "number", "type", "status", "created_at", "updated_at"})
            data.update(
                number=number,
                type=new_type,
                status=lifecycle.INITIAL_STATUS,
                derived_from_id=source.id,
                created_at=now,
                updated_at=now,
                valid_until=now + timedelta(days=DEFAULT_VALID_DAYS) if new_type == "QUOTE" else None,
            )
            data.update(overrides)
            return Document.model_validate(data)

        return self._insert(build)

    def duplicate(self, document_id: str, now: Optional[datetime] = None) -> Document:
        src = self.get(document_id)
        obs = f"(Copia) {src.observations}" if src.observations else "(Copia de documento anterior)"
        return self._derive(
            src, src.type, now or datetime.now(),
            observations=obs, amount_paid=0, balance=src.total,
        )

    def convert(self, document_id: str, now: Optional[datetime] = None) -> Document:
        src = self.get(document_id)
        target = lifecycle.conversion_target(src.type, src.status)
        overrides: Dict[str, Any] = {}
        if target == "RECEIPT":
            overrides.update(amount_paid=0, balance=src.total)
        with self.repo.lock:
            # una sola conversión por documento
            prev = self.repo.find_one(lambda d: d.get("derived_from_id") == src.id and d.get("type") == target)
            if prev is not None:
                raise InvalidTransition(src.status, target, f"ya convertido en #{int(prev['number']):05d}")
            return self._derive(src, target, now or datetime.now(), **overrides)
