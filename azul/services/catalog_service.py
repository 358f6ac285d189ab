from __future__ import annotations

import logging
from pathlib import Path
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError

from azul.config import data_dir
from azul.errors import InsufficientStock, InvalidQuantity, UnknownVariant
from azul.models.document import LineItem
from azul.models.product import Product, ProductVariant
from azul.storage.json_repo import JsonRepository

logger = logging.getLogger(__name__)


class CatalogService:
    """
    Productos y sus variantes (medidas).
    - Repo auto (data/products.json) si no se pasa uno
    - Hidrata JSON -> Product, descarta filas inválidas
    - Upsert "inteligente": por id y después por SKU, para evitar duplicados
    - Resuelve variantes a LineItem con el precio vigente
    """

    def __init__(
        self,
        products_repo: Optional[JsonRepository] = None,
        data_dir_: Optional[str | Path] = None,
    ) -> None:
        base = Path(data_dir_) if data_dir_ else data_dir()
        self.products_repo = products_repo or JsonRepository(
            base / "products.json", entity_name="product", key="id"
        )

    # ---------- Helpers ---------- #

    @staticmethod
    def _hydrate(d: Dict[str, Any]) -> Optional[Product]:
        try:
            return Product.model_validate(d)
        except ValidationError as e:
            logger.warning("Producto inválido ignorado (%s): %s", d.get("id"), e.error_count())
            return None

    @staticmethod
    def _match_row(row: Dict[str, Any], wanted: Dict[str, Any]) -> bool:
        """Prioridad: id -> sku."""
        if wanted.get("id") and str(row.get("id")) == str(wanted["id"]):
            return True
        sku = (wanted.get("sku") or "").strip()
        return bool(sku) and (row.get("sku") or "").strip().casefold() == sku.casefold()

    # ---------- Productos ---------- #

    def list_products(self, include_inactive: bool = False) -> List[Product]:
        out: List[Product] = []
        for d in self.products_repo.list_all():
            p = self._hydrate(d)
            if p is not None and (include_inactive or p.active):
                out.append(p)
        return out

    def get_product(self, product_id: str) -> Optional[Product]:
        row = self.products_repo.get_by_id(product_id)
        return self._hydrate(row) if row else None

    def add_product(self, p: Product) -> Product:
        with self.products_repo.lock:
            payload = p.model_dump(mode="json")
            if any(self._match_row(r, {"sku": p.sku}) for r in self.products_repo.list_all()):
                raise ValueError(f"Ya existe un producto con SKU {p.sku}")
            self.products_repo.add(payload)
        logger.info("Producto agregado: %s (%s)", p.name, p.sku)
        return p

    def update_product(self, p: Product) -> Product:
        p.touch()
        payload = p.model_dump(mode="json")
        with self.products_repo.lock:
            rows = self.products_repo.list_all()
            for i, r in enumerate(rows):
                if self._match_row(r, payload):
                    payload["id"] = r.get("id") or payload["id"]
                    rows[i] = {**r, **payload}
                    self.products_repo.replace_all(rows)
                    return Product.model_validate(rows[i])
            self.products_repo.add(payload)
        return p

    def delete_product(self, product_id: str) -> bool:
        return self.products_repo.delete(product_id)

    def search(self, query: str, limit: int = 20) -> List[Product]:
        q = (query or "").strip().casefold()
        if not q:
            return self.list_products()[:limit]
        out: List[Product] = []
        for p in self.list_products():
            haystack = [p.name, p.sku, p.brand, p.category or ""] + [v.size for v in p.variants]
            if any(q in (h or "").casefold() for h in haystack):
                out.append(p)
                if len(out) >= limit:
                    break
        return out

    # ---------- Variantes ---------- #

    def add_variant(self, product_id: str, variant: ProductVariant) -> ProductVariant:
        p = self.get_product(product_id)
        if p is None:
            raise KeyError(f"Producto {product_id} no encontrado")
        p.variants.append(variant)
        self.update_product(p)
        return variant

    def get_variant(self, variant_id: str) -> Tuple[Product, ProductVariant]:
        for p in self.list_products():
            v = p.find_variant(variant_id)
            if v is not None and v.active:
                return p, v
        raise UnknownVariant(variant_id)

    def line_item(self, variant_id: str, quantity: int = 1) -> LineItem:
        if quantity < 1:
            raise InvalidQuantity(quantity)
        product, variant = self.get_variant(variant_id)
        return LineItem(
            variant_id=variant.id,
            product_name=product.name,
            product_size=variant.size,
            unit_price=variant.price,
            quantity=quantity,
            source=variant.source,
        )

    # ---------- Stock ---------- #

    @staticmethod
    def _stock_demand(items: Iterable[LineItem]) -> Counter:
        demand: Counter = Counter()
        for it in items:
            if it.source == "STOCK" and not it.is_custom:
                demand[it.variant_id] += it.quantity
        return demand

    def withdraw_stock(self, items: Iterable[LineItem]) -> None:
        """
        Descuenta del showroom las unidades de los items STOCK.
        Valida todo antes de tocar nada: si falta stock de una variante no se
        descuenta ninguna. Variantes que ya no existen se ignoran con aviso.
        """
        items = list(items)
        demand = self._stock_demand(items)
        if not demand:
            return
        labels = {it.variant_id: it.label for it in items}
        with self.products_repo.lock:
            rows = self.products_repo.list_all()
            targets = []
            for variant_id, qty in demand.items():
                row = next(
                    (v for p in rows for v in p.get("variants") or [] if v.get("id") == variant_id),
                    None,
                )
                if row is None:
                    logger.warning("Variante %s sin registro de stock, no se descuenta", variant_id)
                    continue
                available = int(row.get("stock_qty") or 0)
                if available < qty:
                    raise InsufficientStock(labels[variant_id], available, qty)
                targets.append((row, qty))
            for row, qty in targets:
                row["stock_qty"] = int(row.get("stock_qty") or 0) - qty
            self.products_repo.replace_all(rows)
        logger.info("Stock descontado: %s", dict(demand))
