from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Literal, NamedTuple, Optional

from azul.models.document import Document
from azul.services.catalog_service import CatalogService
from azul.services.client_service import ClientService
from azul.services.document_service import DocumentService
from azul.services.draft_store import DraftStore
from azul.services.messaging import OutboundMessage, message_for
from azul.services.settings_service import SettingsService

logger = logging.getLogger(__name__)

SubmitAction = Literal["draft", "send"]


class SubmitResult(NamedTuple):
    document: Document
    message: Optional[OutboundMessage]


class WorkflowService:
    def __init__(self, data_dir: Optional[str | Path] = None):
        self.settings = SettingsService(data_dir)
        self.catalog = CatalogService(data_dir_=data_dir)
        self.clients = ClientService(data_dir)
        self.documents = DocumentService(data_dir, catalog=self.catalog)

    def new_draft_store(self, path: Optional[str | Path] = None) -> DraftStore:
        return DraftStore(rates=self.settings.get_payment_rates(), path=path)

    # Alta desde el borrador: "draft" solo guarda, "send" además marca SENT y arma el WhatsApp
    def submit(self, store: DraftStore, action: SubmitAction = "draft", now: Optional[datetime] = None) -> SubmitResult:
        client = store.draft.client
        doc = self.documents.create_from_draft(store.draft, store.rates, now)
        # el borrador se descarta recién con el documento guardado
        store.reset()

        if action != "send":
            return SubmitResult(doc, None)
        doc = self.documents.mark_sent(doc.id)
        msg = message_for(doc, client)
        logger.info("Documento #%s enviado a %s", doc.display_number, msg.phone)
        return SubmitResult(doc, msg)

    # Reenvío desde el listado
    def send_document(self, document_id: str) -> SubmitResult:
        doc = self.documents.get(document_id)
        client = self.clients.get_by_id(doc.client_id)
        if client is None:
            raise LookupError(f"Cliente {doc.client_id} no encontrado")
        if doc.status == "DRAFT":
            doc = self.documents.mark_sent(doc.id)
        return SubmitResult(doc, message_for(doc, client))

    def refresh_expired(self, now: Optional[datetime] = None) -> int:
        return len(self.documents.expire_overdue(now))
