from __future__ import annotations
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from .common import TimeStamped, gen_id

_PHONE_CHARS = set("0123456789 -+()")


class Client(TimeStamped):
    id: str = Field(default_factory=gen_id)
    name: str = Field(min_length=2)
    phone: str = Field(min_length=8)
    dni: Optional[str] = None
    email: Optional[EmailStr] = None
    address: Optional[str] = None
    city: str = "Villa María"
    province: str = "Córdoba"
    notes: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 2:
            raise ValueError("El nombre debe tener al menos 2 caracteres")
        return v

    @field_validator("phone")
    @classmethod
    def _check_phone(cls, v: str) -> str:
        if not set(v) <= _PHONE_CHARS:
            raise ValueError("Formato de teléfono inválido")
        return v

    @field_validator("email", mode="before")
    @classmethod
    def _blank_email(cls, v):
        # el formulario manda "" cuando no hay email
        return v or None

    @property
    def first_name(self) -> str:
        return self.name.split(" ")[0]

    def full_address(self) -> str:
        if self.address and self.city:
            return f"{self.address}, {self.city}"
        return self.city or "A COORDINAR"
