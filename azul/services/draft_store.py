"""
Borrador (carrito) del documento en edición.

Vive durante un flujo de edición; opcionalmente se guarda en un archivo JSON
local para sobrevivir a una recarga. Nunca es la fuente de verdad de un
documento emitido: al confirmar se construye un Document nuevo y se limpia.

Cada operación valida antes de modificar; si falla, el borrador queda igual.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from azul.errors import InvalidAmount, InvalidQuantity, UnknownVariant
from azul.models.client import Client
from azul.models.common import gen_id
from azul.models.document import DocumentType, LineItem
from azul.models.draft import Draft
from azul.models.product import ItemSource
from azul.services import pricing as engine
from azul.services.pricing import DEFAULT_PAYMENT_RATES, Pricing, RateTable

logger = logging.getLogger(__name__)

_DOCUMENT_TYPES = ("QUOTE", "RECEIPT", "DELIVERY_NOTE")


class DraftStore:
    def __init__(self, rates: Optional[RateTable] = None, path: Optional[str | Path] = None) -> None:
        self.rates: RateTable = engine.normalize_rates(rates) if rates is not None else dict(DEFAULT_PAYMENT_RATES)
        self.path = Path(path) if path else None
        self.draft = self._fit_installments(self._load())

    # ---------- Persistencia local ---------- #

    def _load(self) -> Draft:
        if self.path is None or not self.path.exists():
            return Draft()
        try:
            return Draft.model_validate(json.loads(self.path.read_text(encoding="utf-8")))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning("Borrador local ilegible (%s), se descarta: %s", self.path, e)
            return Draft()

    def _save(self, draft: Draft) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(f".{self.path.name}.tmp")
        try:
            tmp.write_text(json.dumps(draft.model_dump(mode="json"), ensure_ascii=False, indent=2), encoding="utf-8")
            tmp.replace(self.path)
        except OSError:
            tmp.unlink(missing_ok=True)
            raise

    def _commit(self, draft: Draft) -> Draft:
        # si no se pudo guardar, el borrador en memoria no cambia
        self._save(draft)
        self.draft = draft
        return draft

    def _fit_installments(self, draft: Draft) -> Draft:
        """Si las cuotas del borrador no están en la tabla vigente vuelve a contado."""
        current = draft.payment.installments
        if current in self.rates:
            return draft
        fallback = 1 if 1 in self.rates else min(self.rates)
        logger.info("Cuotas %s fuera de la tabla, se pasa a %s", current, fallback)
        payment = draft.payment.model_copy(update={"installments": fallback})
        return draft.model_copy(update={"payment": payment})

    # ---------- Cliente ---------- #

    def set_client(self, client: Optional[Client]) -> Draft:
        return self._commit(self.draft.model_copy(update={"client": client}))

    # ---------- Items ---------- #

    def add_item(self, item: LineItem) -> Draft:
        """Si la variante ya está en el carrito suma la cantidad, si no la agrega al final."""
        if item.quantity < 1:
            raise InvalidQuantity(item.quantity)
        items = list(self.draft.items)
        idx = self.draft.index_of(item.variant_id)
        if idx >= 0:
            current = items[idx]
            items[idx] = current.model_copy(update={"quantity": current.quantity + item.quantity})
        else:
            items.append(item.model_copy())
        return self._commit(self.draft.model_copy(update={"items": items}))

    def add_variant(self, variant_id: str, quantity: int, catalog) -> Draft:
        """Agrega una variante del catálogo con su precio vigente."""
        return self.add_item(catalog.line_item(variant_id, quantity))

    def add_custom_item(
        self,
        name: str,
        unit_price: int,
        quantity: int = 1,
        size: str = "",
        source: ItemSource = "CATALOG",
    ) -> Draft:
        """Item fuera de catálogo con precio cargado a mano. Nunca se fusiona con otro."""
        if quantity < 1:
            raise InvalidQuantity(quantity)
        if unit_price < 0:
            raise InvalidAmount(f"El precio no puede ser negativo ({unit_price})")
        if len((name or "").strip()) < 2:
            raise ValueError("El nombre del producto debe tener al menos 2 caracteres")
        item = LineItem(
            variant_id=f"custom-{gen_id()}",
            product_name=name.strip(),
            product_size=(size or "").strip() or "Único",
            unit_price=unit_price,
            quantity=quantity,
            source=source,
            is_custom=True,
        )
        return self._commit(self.draft.model_copy(update={"items": [*self.draft.items, item]}))

    def remove_item(self, variant_id: str) -> Draft:
        items = [it for it in self.draft.items if it.variant_id != variant_id]
        return self._commit(self.draft.model_copy(update={"items": items}))

    def update_quantity(self, variant_id: str, quantity: int) -> Draft:
        # para quitar un item se usa remove_item; 0 no es válido acá
        if quantity < 1:
            raise InvalidQuantity(quantity)
        idx = self.draft.index_of(variant_id)
        if idx < 0:
            raise UnknownVariant(variant_id)
        items = list(self.draft.items)
        items[idx] = items[idx].model_copy(update={"quantity": quantity})
        return self._commit(self.draft.model_copy(update={"items": items}))

    def set_free(self, variant_id: str, free: bool = True) -> Draft:
        idx = self.draft.index_of(variant_id)
        if idx < 0:
            raise UnknownVariant(variant_id)
        items = list(self.draft.items)
        items[idx] = items[idx].model_copy(update={"is_free": free})
        return self._commit(self.draft.model_copy(update={"items": items}))

    def clear_items(self) -> Draft:
        return self._commit(self.draft.model_copy(update={"items": []}))

    # ---------- Documento ---------- #

    def set_type(self, document_type: DocumentType) -> Draft:
        if document_type not in _DOCUMENT_TYPES:
            raise ValueError(f"Tipo de documento inválido: {document_type}")
        return self._commit(self.draft.model_copy(update={"document_type": document_type}))

    def set_installments(self, installments: int) -> Draft:
        engine.surcharge_rate(installments, self.rates)
        payment = self.draft.payment.model_copy(update={"installments": installments})
        return self._commit(self.draft.model_copy(update={"payment": payment}))

    def set_amount_paid(self, amount: int) -> Draft:
        if amount < 0:
            raise InvalidAmount(f"El monto pagado no puede ser negativo ({amount})")
        payment = self.draft.payment.model_copy(update={"amount_paid": amount})
        return self._commit(self.draft.model_copy(update={"payment": payment}))

    def set_payment_type(self, payment_type: Optional[str]) -> Draft:
        payment = self.draft.payment.model_copy(update={"payment_type": payment_type or None})
        return self._commit(self.draft.model_copy(update={"payment": payment}))

    def set_shipping(self, shipping_type: str, cost: int = 0) -> Draft:
        if cost < 0:
            raise InvalidAmount(f"El costo de envío no puede ser negativo ({cost})")
        return self._commit(self.draft.model_copy(update={"shipping_type": shipping_type, "shipping_cost": cost}))

    def set_observations(self, text: str) -> Draft:
        return self._commit(self.draft.model_copy(update={"observations": text or ""}))

    def set_internal_notes(self, text: str) -> Draft:
        return self._commit(self.draft.model_copy(update={"internal_notes": text or ""}))

    def set_valid_days(self, days: int) -> Draft:
        if days < 1:
            raise ValueError(f"Días de validez inválidos: {days}")
        return self._commit(self.draft.model_copy(update={"valid_days": days}))

    def set_rates(self, rates: Mapping[Any, Any]) -> None:
        """Nueva tabla de recargos; si las cuotas elegidas ya no existen vuelve a contado."""
        self.rates = engine.normalize_rates(rates)
        fitted = self._fit_installments(self.draft)
        if fitted is not self.draft:
            self._commit(fitted)

    def reset(self) -> Draft:
        return self._commit(Draft())

    # ---------- Calculados ---------- #

    def pricing(self) -> Pricing:
        d = self.draft
        return engine.price(d.items, d.payment, d.shipping_cost, self.rates)

    @property
    def subtotal(self) -> int:
        return engine.compute_subtotal(self.draft.items)

    @property
    def surcharge_rate(self):
        return engine.surcharge_rate(self.draft.payment.installments, self.rates)

    @property
    def surcharge(self) -> int:
        return engine.compute_surcharge(self.subtotal, self.draft.payment.installments, self.rates)

    @property
    def total(self) -> int:
        return engine.compute_total(self.subtotal, self.surcharge, self.draft.shipping_cost)

    @property
    def installment_amount(self) -> int:
        return engine.compute_installment_amount(self.total, self.draft.payment.installments)

    @property
    def balance(self) -> int:
        return engine.compute_balance(self.total, self.draft.payment.amount_paid).pending

    @property
    def has_stock_items(self) -> bool:
        return any(it.source == "STOCK" for it in self.draft.items)

    @property
    def has_catalog_items(self) -> bool:
        return any(it.source == "CATALOG" for it in self.draft.items)

    @property
    def has_free_items(self) -> bool:
        return any(it.is_free for it in self.draft.items)
