import json

import pytest

from azul.errors import InvalidAmount, InvalidInstallmentCount, InvalidQuantity, UnknownVariant
from azul.services.draft_store import DraftStore
from conftest import make_item


def test_starts_empty_with_defaults(store):
    d = store.draft
    assert d.document_type == "QUOTE"
    assert d.client is None
    assert d.items == []
    assert d.payment.installments == 1
    assert d.shipping_type == "Sin cargo en Villa María"
    assert d.valid_days == 7


def test_add_item_merges_same_variant(store):
    store.add_item(make_item("A", 2))
    store.add_item(make_item("A", 3))
    assert len(store.draft.items) == 1
    assert store.draft.items[0].variant_id == "A"
    assert store.draft.items[0].quantity == 5


def test_add_item_keeps_insertion_order(store):
    store.add_item(make_item("B"))
    store.add_item(make_item("A"))
    store.add_item(make_item("B"))
    assert [it.variant_id for it in store.draft.items] == ["B", "A"]


def test_update_quantity_zero_is_rejected(store):
    store.add_item(make_item("A", 2))
    with pytest.raises(InvalidQuantity):
        store.update_quantity("A", 0)
    assert store.draft.items[0].quantity == 2


def test_update_quantity(store):
    store.add_item(make_item("A", 2))
    store.update_quantity("A", 7)
    assert store.draft.items[0].quantity == 7
    with pytest.raises(UnknownVariant):
        store.update_quantity("Z", 1)


def test_remove_and_clear(store):
    store.add_item(make_item("A"))
    store.add_item(make_item("B"))
    store.remove_item("A")
    assert [it.variant_id for it in store.draft.items] == ["B"]
    store.clear_items()
    assert store.draft.items == []


def test_add_variant_resolves_price_from_catalog(store, catalog):
    store.add_variant("v-140", 2, catalog)
    it = store.draft.items[0]
    assert (it.product_name, it.product_size, it.unit_price, it.source) == ("Colchón Continental", "140x190", 259900, "STOCK")
    with pytest.raises(UnknownVariant):
        store.add_variant("nope", 1, catalog)
    with pytest.raises(UnknownVariant):
        store.add_variant("v-old", 1, catalog)
    assert len(store.draft.items) == 1


def test_computed_values(store):
    store.add_item(make_item("A", 1, 100000))
    store.set_installments(3)
    store.set_amount_paid(50000)
    assert store.subtotal == 100000
    assert store.surcharge == 18000
    assert store.total == 118000
    assert store.balance == 68000
    assert store.installment_amount == 39333
    p = store.pricing()
    assert (p.total, p.balance) == (118000, 68000)


def test_set_installments_validates_against_table(store):
    with pytest.raises(InvalidInstallmentCount):
        store.set_installments(4)
    assert store.draft.payment.installments == 1


def test_negative_amounts_leave_draft_unchanged(store):
    store.set_shipping("Envío interior (+costo)", 5000)
    with pytest.raises(InvalidAmount):
        store.set_shipping("Retira en local", -1)
    with pytest.raises(InvalidAmount):
        store.set_amount_paid(-10)
    assert store.draft.shipping_type == "Envío interior (+costo)"
    assert store.draft.shipping_cost == 5000
    assert store.draft.payment.amount_paid == 0


def test_source_flags(store):
    assert not store.has_stock_items and not store.has_catalog_items
    store.add_item(make_item("A", source="STOCK"))
    assert store.has_stock_items and not store.has_catalog_items
    store.add_item(make_item("B", source="CATALOG"))
    assert store.has_catalog_items


def test_set_rates_falls_back_when_plan_disappears(store):
    store.set_installments(12)
    store.set_rates({"1": 0, "3": 20})
    assert store.draft.payment.installments == 1
    store.set_installments(3)
    assert store.surcharge_rate == 20


def test_reset(store, client):
    store.set_client(client)
    store.add_item(make_item("A"))
    store.set_type("RECEIPT")
    store.reset()
    assert store.draft.client is None
    assert store.draft.items == []
    assert store.draft.document_type == "QUOTE"


def test_invalid_type_is_rejected(store):
    with pytest.raises(ValueError):
        store.set_type("INVOICE")


def test_persists_between_instances(tmp_path, rates, client):
    path = tmp_path / "draft.json"
    s1 = DraftStore(rates=rates, path=path)
    s1.set_client(client)
    s1.add_item(make_item("A", 2))
    s1.set_observations("Entregar por la tarde")

    s2 = DraftStore(rates=rates, path=path)
    assert s2.draft.client.name == "Juan Perez"
    assert s2.draft.items[0].quantity == 2
    assert s2.draft.observations == "Entregar por la tarde"


def test_corrupt_local_draft_starts_empty(tmp_path, rates):
    path = tmp_path / "draft.json"
    path.write_text("{not json", encoding="utf-8")
    assert DraftStore(rates=rates, path=path).draft.items == []
    path.write_text(json.dumps({"items": [{"variant_id": "A", "quantity": 0}]}), encoding="utf-8")
    assert DraftStore(rates=rates, path=path).draft.items == []


def test_reloaded_draft_adapts_to_new_rate_table(tmp_path, rates):
    path = tmp_path / "draft.json"
    s1 = DraftStore(rates=rates, path=path)
    s1.add_item(make_item("A", 1, 100000))
    s1.set_installments(12)

    s2 = DraftStore(rates={1: 0, 3: 18}, path=path)
    assert s2.draft.payment.installments == 1
    assert s2.total == 100000
    assert s2.pricing().surcharge == 0


def test_failed_save_keeps_previous_draft(tmp_path, rates):
    path = tmp_path / "draft.json"
    s = DraftStore(rates=rates, path=path)
    # el destino pasa a ser un directorio: la escritura falla
    path.mkdir()
    with pytest.raises(OSError):
        s.add_item(make_item("A", 2))
    assert s.draft.items == []
    assert not (tmp_path / ".draft.json.tmp").exists()


def test_add_custom_item(store):
    store.add_custom_item("Base de sommier a medida", 80000, quantity=2)
    store.add_custom_item("Base de sommier a medida", 80000)
    items = store.draft.items
    assert len(items) == 2
    assert items[0].is_custom
    assert items[0].product_size == "Único"
    assert items[0].variant_id != items[1].variant_id
    assert store.subtotal == 240000


def test_add_custom_item_validates(store):
    with pytest.raises(InvalidQuantity):
        store.add_custom_item("Respaldo", 1000, quantity=0)
    with pytest.raises(InvalidAmount):
        store.add_custom_item("Respaldo", -1)
    with pytest.raises(ValueError):
        store.add_custom_item(" ", 1000)
    assert store.draft.items == []


def test_free_items_do_not_add_to_total(store):
    store.add_item(make_item("A", 1, 100000))
    store.add_item(make_item("B", 2, 25000))
    store.set_free("B")
    assert store.has_free_items
    assert store.subtotal == 100000
    store.set_installments(3)
    assert store.surcharge == 18000
    store.set_free("B", False)
    assert store.subtotal == 150000
    with pytest.raises(UnknownVariant):
        store.set_free("Z")
