"""
Motor de precios: subtotal, recargo por cuotas, envío, total y saldo.

Todas las funciones son puras. La tabla de recargos se pasa siempre como
argumento (ver ``SettingsService.get_payment_rates``); nunca se lee de un global.
Los importes son pesos enteros; el único redondeo es half-up a la unidad.
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel

from azul.errors import InvalidAmount, InvalidInstallmentCount, InvalidRateTable
from azul.models.document import LineItem, PaymentPlan

RateTable = Mapping[int, Decimal]

DEFAULT_PAYMENT_RATES: Dict[int, Decimal] = {
    1: Decimal(0),
    3: Decimal(18),
    6: Decimal(25),
    9: Decimal(35),
    12: Decimal(47),
}


class Balance(BaseModel):
    pending: int
    overpaid: int = 0
    paid_in_full: bool


class Pricing(BaseModel):
    subtotal: int
    surcharge_rate: Decimal
    surcharge: int
    shipping_cost: int
    total: int
    installments: int
    installment_amount: int
    amount_paid: int
    balance: int
    overpaid: int
    paid_in_full: bool


# ---------- Helpers ---------- #

def round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def _non_negative(name: str, value: int) -> int:
    if value < 0:
        raise InvalidAmount(f"{name} no puede ser negativo ({value})")
    return value


def normalize_rates(raw: Optional[Mapping[Any, Any]]) -> Dict[int, Decimal]:
    """
    Acepta claves str o int ({"3": 18} o {3: 18}) y devuelve {int: Decimal}.
    Las claves deben ser enteros positivos y las tasas números >= 0.
    """
    if raw is None:
        return dict(DEFAULT_PAYMENT_RATES)
    if not isinstance(raw, Mapping) or not raw:
        raise InvalidRateTable("La tabla de recargos debe ser un mapeo no vacío")
    out: Dict[int, Decimal] = {}
    for k, v in raw.items():
        try:
            count = int(str(k).strip())
        except ValueError:
            raise InvalidRateTable(f"Cuotas inválidas en la tabla: {k!r}") from None
        if count < 1:
            raise InvalidRateTable(f"Cuotas inválidas en la tabla: {k!r}")
        if isinstance(v, bool):
            raise InvalidRateTable(f"Tasa inválida para {count} cuotas: {v!r}")
        try:
            rate = Decimal(str(v))
        except InvalidOperation:
            raise InvalidRateTable(f"Tasa inválida para {count} cuotas: {v!r}") from None
        if not rate.is_finite() or rate < 0:
            raise InvalidRateTable(f"Tasa inválida para {count} cuotas: {v!r}")
        out[count] = rate
    return dict(sorted(out.items()))


def surcharge_rate(installments: int, rates: RateTable) -> Decimal:
    try:
        return Decimal(rates[installments])
    except KeyError:
        raise InvalidInstallmentCount(installments, sorted(rates)) from None


# ---------- Operaciones ---------- #

def compute_subtotal(items: Iterable[LineItem]) -> int:
    # los bonificados suman 0
    return sum((it.subtotal for it in items), 0)


def compute_surcharge(subtotal: int, installments: int, rates: RateTable = DEFAULT_PAYMENT_RATES) -> int:
    _non_negative("El subtotal", subtotal)
    rate = surcharge_rate(installments, rates)
    return round_half_up(Decimal(subtotal) * rate / 100)


def compute_total(subtotal: int, surcharge: int, shipping_cost: int) -> int:
    _non_negative("El costo de envío", shipping_cost)
    return subtotal + surcharge + shipping_cost


def compute_installment_amount(total: int, installments: int) -> int:
    if installments < 1:
        raise InvalidInstallmentCount(installments)
    return round_half_up(Decimal(total) / installments)


def compute_installment_schedule(total: int, installments: int) -> List[int]:
    """Cuotas que suman exactamente ``total``; la última absorbe el resto."""
    if installments < 1:
        raise InvalidInstallmentCount(installments)
    base = total // installments
    return [base] * (installments - 1) + [total - base * (installments - 1)]


def compute_balance(total: int, amount_paid: int) -> Balance:
    _non_negative("El monto pagado", amount_paid)
    diff = total - amount_paid
    return Balance(pending=max(0, diff), overpaid=max(0, -diff), paid_in_full=diff <= 0)


def price(
    items: Iterable[LineItem],
    payment: PaymentPlan,
    shipping_cost: int = 0,
    rates: RateTable = DEFAULT_PAYMENT_RATES,
) -> Pricing:
    subtotal = compute_subtotal(items)
    rate = surcharge_rate(payment.installments, rates)
    surcharge = compute_surcharge(subtotal, payment.installments, rates)
    total = compute_total(subtotal, surcharge, shipping_cost)
    bal = compute_balance(total, payment.amount_paid)
    return Pricing(
        subtotal=subtotal,
        surcharge_rate=rate,
        surcharge=surcharge,
        shipping_cost=shipping_cost,
        total=total,
        installments=payment.installments,
        installment_amount=compute_installment_amount(total, payment.installments),
        amount_paid=payment.amount_paid,
        balance=bal.pending,
        overpaid=bal.overpaid,
        paid_in_full=bal.paid_in_full,
    )
