from __future__ import annotations
from datetime import datetime
from uuid import uuid4

from pydantic import BaseModel, Field


def gen_id() -> str:
    return str(uuid4())


class TimeStamped(BaseModel):
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    def touch(self) -> None:
        # sin pasar por la validación de asignación
        object.__setattr__(self, "updated_at", datetime.now())
