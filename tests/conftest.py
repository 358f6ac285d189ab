from datetime import datetime

import pytest

from azul.models.client import Client
from azul.models.document import LineItem
from azul.models.product import Product, ProductVariant
from azul.services.catalog_service import CatalogService
from azul.services.client_service import ClientService
from azul.services.document_service import DocumentService
from azul.services.draft_store import DraftStore
from azul.services.pricing import DEFAULT_PAYMENT_RATES

NOW = datetime(2026, 3, 10, 12, 0)


@pytest.fixture
def data_dir(tmp_path):
    d = tmp_path / "data"
    d.mkdir()
    return d


@pytest.fixture
def rates():
    return dict(DEFAULT_PAYMENT_RATES)


@pytest.fixture
def client():
    return Client(id="c-1", name="Juan Perez", phone="353 456-7890", address="San Martín 120")


@pytest.fixture
def catalog(data_dir):
    svc = CatalogService(data_dir_=data_dir)
    svc.add_product(Product(
        id="p-1", sku="PIE-CONT", name="Colchón Continental", category="Colchones",
        variants=[
            ProductVariant(id="v-140", size="140x190", price=259900, source="STOCK", stock_qty=3),
            ProductVariant(id="v-160", size="160x200", price=329900, source="CATALOG"),
            ProductVariant(id="v-old", size="80x190", price=99900, active=False),
        ],
    ))
    svc.add_product(Product(
        id="p-2", sku="ALM-VISCO", name="Almohada Visco",
        variants=[ProductVariant(id="v-alm", size="70x40", price=25000, source="STOCK", stock_qty=10)],
    ))
    return svc


@pytest.fixture
def clients(data_dir, client):
    svc = ClientService(data_dir)
    svc.add_client(client)
    return svc


@pytest.fixture
def documents(data_dir, catalog):
    return DocumentService(data_dir, catalog=catalog)


@pytest.fixture
def store(rates):
    return DraftStore(rates=rates)


def make_item(variant_id="A", quantity=1, unit_price=100000, source="STOCK", name="Colchón", size="140x190"):
    return LineItem(
        variant_id=variant_id, product_name=name, product_size=size,
        unit_price=unit_price, quantity=quantity, source=source,
    )
