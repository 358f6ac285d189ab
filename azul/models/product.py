from __future__ import annotations
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from .common import TimeStamped, gen_id

ItemSource = Literal["STOCK", "CATALOG"]


class ProductVariant(BaseModel):
    id: str = Field(default_factory=gen_id)
    size: str = Field(min_length=1)
    price: int = Field(gt=0)
    cost_price: Optional[int] = Field(default=None, gt=0)
    source: ItemSource = "CATALOG"
    # unidades en showroom; solo cuenta para source STOCK
    stock_qty: int = Field(default=0, ge=0)
    active: bool = True


class Product(TimeStamped):
    id: str = Field(default_factory=gen_id)
    sku: str = Field(min_length=1)
    name: str = Field(min_length=2)
    category: Optional[str] = None
    brand: str = "PIERO"
    description: Optional[str] = None
    warranty_years: int = Field(default=5, ge=0)
    active: bool = True
    variants: List[ProductVariant] = Field(default_factory=list)

    def find_variant(self, variant_id: str) -> Optional[ProductVariant]:
        for v in self.variants:
            if v.id == variant_id:
                return v
        return None
