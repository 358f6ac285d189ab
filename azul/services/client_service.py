from __future__ import annotations
from pathlib import Path
from typing import List, Optional
import logging

from pydantic import ValidationError

from azul.config import data_dir
from azul.models.client import Client
from azul.storage.json_repo import JsonRepository

logger = logging.getLogger(__name__)


class ClientService:
    def __init__(self, data_dir_: Optional[str | Path] = None):
        base = Path(data_dir_) if data_dir_ else data_dir()
        self.repo = JsonRepository(base / "clients.json", entity_name="client", key="id")

    def list_clients(self) -> List[Client]:
        out: List[Client] = []
        for d in self.repo.list_all():
            try:
                out.append(Client(**d))
            except ValidationError:
                # una fila rota no debe tumbar el listado
                logger.warning("Cliente inválido ignorado: %s", d.get("id"))
                continue
        return sorted(out, key=lambda c: c.name.casefold())

    def add_client(self, client: Client) -> Client:
        self.repo.add(client)
        return client

    def update_client(self, client: Client) -> Client:
        client.touch()
        self.repo.update(client)
        return client

    def delete_client(self, client_id: str) -> bool:
        return self.repo.delete(client_id)

    def get_by_id(self, client_id: str) -> Optional[Client]:
        d = self.repo.get_by_id(client_id)
        if not d:
            return None
        try:
            return Client(**d)
        except ValidationError as e:
            logger.warning("Cliente inválido (%s): %s", client_id, e.error_count())
            return None

    def search(self, query: str, limit: int = 10) -> List[Client]:
        q = (query or "").strip().casefold()
        if not q:
            return self.list_clients()[:limit]
        out = [
            c for c in self.list_clients()
            if q in c.name.casefold() or q in c.phone or (c.dni and q in c.dni)
        ]
        return out[:limit]
