from __future__ import annotations

import calendar
import logging
from collections import defaultdict
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from azul.models.document import Document

logger = logging.getLogger(__name__)

SALE_STATUSES = ("APPROVED", "COMPLETED")
PENDING_STATUSES = ("SENT", "APPROVED")
PERIODS = ("day", "week", "month")


class SalesSummary(BaseModel):
    total: int = 0
    count: int = 0
    change: int = 0  # % contra el período anterior


class PendingPayments(BaseModel):
    total: int = 0
    count: int = 0


class TopProduct(BaseModel):
    name: str
    quantity: int
    revenue: int


class RecentDocument(BaseModel):
    id: str
    number: int
    type: str
    client: str
    total: int
    status: str
    date: datetime


class DailySales(BaseModel):
    day: date
    total: int = 0
    count: int = 0


class Dashboard(BaseModel):
    period: str
    period_start: datetime
    period_end: datetime
    sales: SalesSummary
    documents_in_period: int
    documents_today: int
    pending_payments: PendingPayments
    top_products: List[TopProduct] = Field(default_factory=list)
    recent_documents: List[RecentDocument] = Field(default_factory=list)
    daily_sales: List[DailySales] = Field(default_factory=list)


# ---------- Helpers ---------- #

def _day_bounds(d: date) -> Tuple[datetime, datetime]:
    return datetime.combine(d, time.min), datetime.combine(d, time.max)


def period_ranges(period: str, reference: date) -> Tuple[datetime, datetime, datetime, datetime]:
    """(inicio, fin, inicio anterior, fin anterior). Las semanas empiezan el lunes."""
    if period == "day":
        start, end = _day_bounds(reference)
        prev_start, prev_end = _day_bounds(reference - timedelta(days=1))
    elif period == "week":
        monday = reference - timedelta(days=reference.weekday())
        start, _ = _day_bounds(monday)
        _, end = _day_bounds(monday + timedelta(days=6))
        prev_start, _ = _day_bounds(monday - timedelta(days=7))
        _, prev_end = _day_bounds(monday - timedelta(days=1))
    elif period == "month":
        first = reference.replace(day=1)
        last = reference.replace(day=calendar.monthrange(reference.year, reference.month)[1])
        start, _ = _day_bounds(first)
        _, end = _day_bounds(last)
        prev_last = first - timedelta(days=1)
        prev_start, _ = _day_bounds(prev_last.replace(day=1))
        _, prev_end = _day_bounds(prev_last)
    else:
        raise ValueError(f"Período inválido: {period} (opciones: {', '.join(PERIODS)})")
    return start, end, prev_start, prev_end


def percentage_change(current: int, previous: int) -> int:
    if previous == 0:
        return 100 if current > 0 else 0
    return round((current - previous) / previous * 100)


def _is_sale(doc: Document) -> bool:
    return doc.type == "RECEIPT" and doc.status in SALE_STATUSES


def _within(doc: Document, start: datetime, end: datetime) -> bool:
    return start <= doc.created_at <= end


# ---------- Servicio ---------- #

class StatsService:
    def __init__(self, documents) -> None:
        self.documents = documents

    def dashboard(self, period: str = "month", reference: Optional[date] = None) -> Dashboard:
        ref = reference or date.today()
        if isinstance(ref, datetime):
            ref = ref.date()
        start, end, prev_start, prev_end = period_ranges(period, ref)
        docs = self.documents.list_documents()

        in_period = [d for d in docs if _within(d, start, end)]
        sales = [d for d in in_period if _is_sale(d)]
        prev_sales_total = sum(d.total for d in docs if _is_sale(d) and _within(d, prev_start, prev_end))
        sales_total = sum(d.total for d in sales)
        logger.debug("Dashboard %s %s..%s: %d documentos", period, start.date(), end.date(), len(in_period))

        today_start, today_end = _day_bounds(ref)
        pending = [
            d for d in docs
            if d.type == "RECEIPT" and d.status in PENDING_STATUSES and d.balance > 0
        ]

        return Dashboard(
            period=period,
            period_start=start,
            period_end=end,
            sales=SalesSummary(
                total=sales_total,
                count=len(sales),
                change=percentage_change(sales_total, prev_sales_total),
            ),
            documents_in_period=len(in_period),
            documents_today=sum(1 for d in docs if _within(d, today_start, today_end)),
            pending_payments=PendingPayments(total=sum(d.balance for d in pending), count=len(pending)),
            top_products=self._top_products(sales),
            recent_documents=[
                RecentDocument(
                    id=d.id, number=d.number, type=d.type, client=d.client_name,
                    total=d.total, status=d.status, date=d.created_at,
                )
                for d in in_period[:10]
            ],
            daily_sales=self._daily_sales(sales, start.date(), end.date()),
        )

    @staticmethod
    def _top_products(sales: List[Document], limit: int = 5) -> List[TopProduct]:
        qty: Dict[str, int] = defaultdict(int)
        revenue: Dict[str, int] = defaultdict(int)
        for doc in sales:
            for it in doc.items:
                qty[it.label] += it.quantity
                revenue[it.label] += it.subtotal
        ranked = sorted(revenue, key=lambda k: (-revenue[k], k))[:limit]
        return [TopProduct(name=k, quantity=qty[k], revenue=revenue[k]) for k in ranked]

    @staticmethod
    def _daily_sales(sales: List[Document], first: date, last: date) -> List[DailySales]:
        by_day: Dict[date, DailySales] = {}
        d = first
        while d <= last:
            by_day[d] = DailySales(day=d)
            d += timedelta(days=1)
        for doc in sales:
            row = by_day.get(doc.created_at.date())
            if row is not None:
                row.total += doc.total
                row.count += 1
        return list(by_day.values())
