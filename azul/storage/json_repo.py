from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
import threading
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union
from uuid import uuid4

from pydantic import BaseModel

logger = logging.getLogger(__name__)

Record = Dict[str, Any]
Item = Union[BaseModel, Mapping[str, Any]]


def _encode(o: Any) -> Any:
    if isinstance(o, (date, datetime)):
        return o.isoformat()
    if isinstance(o, Decimal):
        return int(o) if o == o.to_integral_value() else float(o)
    raise TypeError(f"{o.__class__.__name__} no es serializable a JSON")


class JsonRepository:
    """
    Colección de registros en un archivo JSON (lista de objetos).

    - ``key`` es el campo que identifica cada registro ("id", "key", ...)
    - Escritura atómica: archivo temporal en el mismo directorio + ``os.replace``
    - Un archivo ilegible se aparta como ``.corrupt.json`` y se arranca vacío
    - ``lock`` es reentrante: los servicios lo toman para leer-modificar-escribir
    """

    def __init__(self, filepath: Union[str, Path], entity_name: str = "entity", key: str = "id") -> None:
        self.filepath = Path(filepath)
        self.entity_name = entity_name
        self.key = key
        self.lock = threading.RLock()

        self.filepath.parent.mkdir(parents=True, exist_ok=True)
        if not self.filepath.exists():
            self._dump([])

    # ---------- Archivo ---------- #

    def _load(self) -> List[Record]:
        try:
            raw = self.filepath.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            quarantine = self.filepath.with_suffix(".corrupt.json")
            logger.warning("%s ilegible, se aparta en %s", self.filepath, quarantine)
            shutil.copy2(self.filepath, quarantine)
            return []
        if not isinstance(data, list):
            logger.warning("%s no contiene una lista, se ignora", self.filepath)
            return []
        return data

    def _dump(self, rows: Iterable[Mapping[str, Any]]) -> None:
        payload = json.dumps(list(rows), ensure_ascii=False, indent=2, default=_encode)
        fd, tmp = tempfile.mkstemp(prefix=f".{self.filepath.name}.", dir=self.filepath.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp, self.filepath)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def _record(self, item: Item) -> Record:
        if isinstance(item, BaseModel):
            return item.model_dump(mode="json")
        return dict(item)

    def _position(self, rows: List[Record], obj_id: Any) -> int:
        for i, row in enumerate(rows):
            if str(row.get(self.key)) == str(obj_id):
                return i
        return -1

    # ---------- Lectura ---------- #

    def list_all(self) -> List[Record]:
        return self._load()

    def get_by_id(self, obj_id: Any) -> Optional[Record]:
        rows = self._load()
        i = self._position(rows, obj_id)
        return rows[i] if i >= 0 else None

    def find_one(self, predicate: Callable[[Record], bool]) -> Optional[Record]:
        return next((r for r in self._load() if predicate(r)), None)

    # ---------- Escritura ---------- #

    def add(self, item: Item) -> Record:
        record = self._record(item)
        record.setdefault(self.key, None)
        if not record[self.key]:
            record[self.key] = uuid4().hex
        with self.lock:
            rows = self._load()
            if self._position(rows, record[self.key]) >= 0:
                raise ValueError(f"{self.entity_name} {self.key}={record[self.key]} ya existe")
            rows.append(record)
            self._dump(rows)
        return record

    def update(self, item: Item) -> Record:
        """Mezcla los campos recibidos sobre el registro existente."""
        record = self._record(item)
        obj_id = record.get(self.key)
        if not obj_id:
            raise ValueError(f"{self.entity_name} sin '{self.key}'")
        with self.lock:
            rows = self._load()
            i = self._position(rows, obj_id)
            if i < 0:
                raise KeyError(f"{self.entity_name} {self.key}={obj_id} no encontrado")
            rows[i] = {**rows[i], **record}
            self._dump(rows)
            return rows[i]

    def upsert(self, item: Item) -> Record:
        with self.lock:
            record = self._record(item)
            if record.get(self.key) and self.get_by_id(record[self.key]) is not None:
                return self.update(record)
            return self.add(record)

    def delete(self, obj_id: Any) -> bool:
        with self.lock:
            rows = self._load()
            i = self._position(rows, obj_id)
            if i < 0:
                return False
            del rows[i]
            self._dump(rows)
        return True

    def replace_all(self, rows: Iterable[Item]) -> None:
        with self.lock:
            self._dump([self._record(r) for r in rows])
