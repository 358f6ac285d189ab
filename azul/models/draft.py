from __future__ import annotations
from typing import List, Optional

from pydantic import BaseModel, Field

from azul.config import DEFAULT_SHIPPING_TYPE, DEFAULT_VALID_DAYS
from .client import Client
from .document import DocumentType, LineItem, PaymentPlan


class Draft(BaseModel):
    document_type: DocumentType = "QUOTE"
    client: Optional[Client] = None
    items: List[LineItem] = Field(default_factory=list)
    payment: PaymentPlan = Field(default_factory=PaymentPlan)
    shipping_type: str = DEFAULT_SHIPPING_TYPE
    shipping_cost: int = Field(default=0, ge=0)
    observations: str = ""
    internal_notes: str = ""
    valid_days: int = Field(default=DEFAULT_VALID_DAYS, ge=1)

    def index_of(self, variant_id: str) -> int:
        for i, it in enumerate(self.items):
            if it.variant_id == variant_id:
                return i
        return -1
