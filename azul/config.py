from __future__ import annotations

import os
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

DATA_DIR = Path(os.environ.get("AZUL_DATA_DIR") or ROOT_DIR / "data")

STORE_INFO = {
    "name": "AZUL COLCHONES",
    "address": "Balerdi 855, Villa María",
    "phone": "3534096566",
    "brand": "PIERO",
}

# WhatsApp del repartidor (remitos)
DELIVERY_WHATSAPP = os.environ.get("AZUL_DELIVERY_WHATSAPP", "5493535694658")

DEFAULT_SHIPPING_TYPE = "Sin cargo en Villa María"
DEFAULT_VALID_DAYS = 7


def data_dir() -> Path:
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    return DATA_DIR
