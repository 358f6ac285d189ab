import json
from datetime import datetime
from decimal import Decimal

import pytest

from azul.models.client import Client
from azul.storage.json_repo import JsonRepository


@pytest.fixture
def repo(tmp_path):
    return JsonRepository(tmp_path / "items.json", entity_name="item")


def test_creates_empty_file(tmp_path):
    path = tmp_path / "nested" / "things.json"
    JsonRepository(path)
    assert json.loads(path.read_text(encoding="utf-8")) == []


def test_crud(repo):
    rec = repo.add({"name": "a"})
    assert rec["id"]
    assert repo.get_by_id(rec["id"])["name"] == "a"

    repo.update({"id": rec["id"], "price": 10})
    assert repo.get_by_id(rec["id"]) == {"id": rec["id"], "name": "a", "price": 10}

    assert repo.delete(rec["id"]) is True
    assert repo.delete(rec["id"]) is False
    assert repo.list_all() == []


def test_add_duplicate_and_update_missing(repo):
    repo.add({"id": "x"})
    with pytest.raises(ValueError):
        repo.add({"id": "x"})
    with pytest.raises(KeyError):
        repo.update({"id": "y"})
    with pytest.raises(ValueError):
        repo.update({"name": "sin id"})


def test_upsert_and_custom_key(tmp_path):
    repo = JsonRepository(tmp_path / "settings.json", key="key")
    repo.upsert({"key": "a", "value": 1})
    repo.upsert({"key": "a", "value": 2})
    assert repo.list_all() == [{"key": "a", "value": 2}]


def test_serializes_models_and_special_types(repo):
    repo.add(Client(id="c-1", name="Juan Perez", phone="3534567890"))
    repo.add({"id": "d", "when": datetime(2026, 3, 10, 12), "rate": Decimal("18"), "half": Decimal("2.5")})
    assert repo.get_by_id("c-1")["name"] == "Juan Perez"
    d = repo.get_by_id("d")
    assert d["when"] == "2026-03-10T12:00:00"
    assert d["rate"] == 18
    assert d["half"] == 2.5


def test_find_one(repo):
    repo.add({"id": "1", "n": 1})
    repo.add({"id": "2", "n": 2})
    assert repo.find_one(lambda r: r["n"] == 1)["id"] == "1"
    assert repo.find_one(lambda r: r["n"] == 9) is None


def test_corrupt_file_is_quarantined(tmp_path):
    path = tmp_path / "items.json"
    path.write_text("[{broken", encoding="utf-8")
    repo = JsonRepository(path)
    assert repo.list_all() == []
    assert (tmp_path / "items.corrupt.json").read_text(encoding="utf-8") == "[{broken"


def test_non_list_file_reads_as_empty(tmp_path):
    path = tmp_path / "items.json"
    path.write_text('{"id": "x"}', encoding="utf-8")
    assert JsonRepository(path).list_all() == []


def test_replace_all(repo):
    repo.add({"id": "1"})
    repo.replace_all([{"id": "2"}, Client(id="c-1", name="Juan Perez", phone="3534567890")])
    assert [r["id"] for r in repo.list_all()] == ["2", "c-1"]


def test_writes_leave_no_temp_files(tmp_path, repo):
    for i in range(3):
        repo.add({"id": str(i)})
    repo.delete("1")
    assert [p.name for p in tmp_path.iterdir()] == ["items.json"]
