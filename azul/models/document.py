from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from .common import TimeStamped, gen_id
from .product import ItemSource

DocumentType = Literal["QUOTE", "RECEIPT", "DELIVERY_NOTE"]
DocumentStatus = Literal["DRAFT", "SENT", "APPROVED", "COMPLETED", "CANCELLED", "EXPIRED"]

DOCUMENT_TYPE_LABELS = {
    "QUOTE": "Presupuesto",
    "RECEIPT": "Recibo",
    "DELIVERY_NOTE": "Remito",
}

STATUS_LABELS = {
    "DRAFT": "Borrador",
    "SENT": "Enviado",
    "APPROVED": "Aprobado",
    "COMPLETED": "Completado",
    "CANCELLED": "Cancelado",
    "EXPIRED": "Vencido",
}


class LineItem(BaseModel):
    # importes en pesos enteros
    model_config = ConfigDict(extra="ignore")

    variant_id: str = Field(min_length=1)
    product_name: str
    product_size: str = ""
    unit_price: int = Field(ge=0)
    quantity: int = Field(ge=1)
    source: ItemSource = "CATALOG"
    # sin variante de catálogo: precio cargado a mano, no mueve stock
    is_custom: bool = False
    # bonificado: se lista pero no suma
    is_free: bool = False

    @computed_field  # type: ignore[prop-decorator]
    @property
    def subtotal(self) -> int:
        if self.is_free:
            return 0
        return self.unit_price * self.quantity

    @property
    def label(self) -> str:
        return f"{self.product_name} {self.product_size}".strip()


class PaymentPlan(BaseModel):
    installments: int = 1
    amount_paid: int = Field(default=0, ge=0)
    payment_type: Optional[str] = None


class Document(TimeStamped):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(default_factory=gen_id)
    number: int
    type: DocumentType
    status: DocumentStatus = "DRAFT"

    client_id: str
    client_name: str = ""

    items: List[LineItem] = Field(min_length=1)

    subtotal: int
    surcharge_rate: Decimal = Decimal(0)
    surcharge: int = 0
    total: int

    shipping_type: str = ""
    shipping_cost: int = 0

    payment_type: Optional[str] = None
    installments: int = 1
    amount_paid: int = 0
    balance: int = 0

    valid_until: Optional[datetime] = None
    observations: Optional[str] = None
    internal_notes: Optional[str] = None
    derived_from_id: Optional[str] = None

    @model_validator(mode="after")
    def _check_total(self) -> "Document":
        expected = self.subtotal + self.surcharge + self.shipping_cost
        if self.total != expected:
            raise ValueError(f"Total inconsistente: {self.total} != {expected}")
        return self

    @property
    def display_number(self) -> str:
        return f"{self.number:05d}"

    @property
    def type_label(self) -> str:
        return DOCUMENT_TYPE_LABELS.get(self.type, self.type)

    @property
    def status_label(self) -> str:
        return STATUS_LABELS.get(self.status, self.status)

    def has_source(self, source: str) -> bool:
        return any(it.source == source for it in self.items)
