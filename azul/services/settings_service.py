from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from azul.config import data_dir
from azul.errors import InvalidRateTable
from azul.services.pricing import DEFAULT_PAYMENT_RATES, normalize_rates
from azul.storage.json_repo import JsonRepository

logger = logging.getLogger(__name__)

PAYMENT_RATES_KEY = "payment_rates"


class SettingsService:
    """Ajustes clave/valor persistidos en settings.json."""

    def __init__(self, data_dir_: Optional[str | Path] = None) -> None:
        base = Path(data_dir_) if data_dir_ else data_dir()
        self.repo = JsonRepository(base / "settings.json", entity_name="setting", key="key")

    def get(self, key: str, default: Any = None) -> Any:
        row = self.repo.get_by_id(key)
        if row is None:
            return default
        return row.get("value", default)

    def set(self, key: str, value: Any) -> Any:
        self.repo.upsert({"key": key, "value": value, "updated_at": datetime.now()})
        return value

    # ----- Tabla de recargos ----- #

    def get_payment_rates(self) -> Dict[int, Any]:
        raw = self.get(PAYMENT_RATES_KEY)
        if raw is None:
            return dict(DEFAULT_PAYMENT_RATES)
        try:
            return normalize_rates(raw)
        except InvalidRateTable as e:
            logger.warning("Tabla de recargos guardada inválida (%s), uso valores por defecto", e)
            return dict(DEFAULT_PAYMENT_RATES)

    def save_payment_rates(self, rates: Mapping[Any, Any]) -> Dict[int, Any]:
        normalized = normalize_rates(rates)
        stored = {str(k): (int(v) if v == v.to_integral_value() else float(v)) for k, v in normalized.items()}
        self.set(PAYMENT_RATES_KEY, stored)
        logger.info("Tabla de recargos actualizada: %s", stored)
        return normalized

    def reset_payment_rates(self) -> None:
        self.repo.delete(PAYMENT_RATES_KEY)
