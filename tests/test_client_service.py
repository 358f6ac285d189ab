import pytest
from pydantic import ValidationError

from azul.models.client import Client
from azul.services.client_service import ClientService


def test_client_validation():
    with pytest.raises(ValidationError):
        Client(name="J", phone="3534567890")
    with pytest.raises(ValidationError):
        Client(name="Juan", phone="353-abc-1234")
    with pytest.raises(ValidationError):
        Client(name="Juan", phone="3534567890", email="no-es-mail")
    c = Client(name="  Maria Lopez ", phone="3534567890", email="")
    assert c.name == "Maria Lopez"
    assert c.email is None
    assert c.first_name == "Maria"


def test_crud_and_sorting(clients):
    clients.add_client(Client(id="c-2", name="ana gomez", phone="3534111111"))
    assert [c.id for c in clients.list_clients()] == ["c-2", "c-1"]

    c = clients.get_by_id("c-2")
    c.address = "Bv. España 300"
    clients.update_client(c)
    assert clients.get_by_id("c-2").address == "Bv. España 300"

    assert clients.delete_client("c-2") is True
    assert clients.get_by_id("c-2") is None


def test_search(clients):
    clients.add_client(Client(id="c-2", name="Ana Gomez", phone="3534111111", dni="30111222"))
    assert [c.id for c in clients.search("ana")] == ["c-2"]
    assert [c.id for c in clients.search("456-7890")] == ["c-1"]
    assert [c.id for c in clients.search("30111")] == ["c-2"]
    assert len(clients.search("")) == 2


def test_broken_rows_are_skipped(data_dir, clients):
    clients.repo.add({"id": "broken", "name": "X"})
    assert [c.id for c in ClientService(data_dir).list_clients()] == ["c-1"]
    assert clients.get_by_id("broken") is None


def test_update_refreshes_updated_at(clients):
    c = clients.get_by_id("c-1")
    before = c.updated_at
    c.phone = "3534999999"
    clients.update_client(c)
    stored = clients.get_by_id("c-1")
    assert stored.phone == "3534999999"
    assert stored.updated_at >= before
    assert stored.created_at == c.created_at
