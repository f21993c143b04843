"""
RMX Persistence - Django ORM Engine Store
=========================================
Relational implementation of EngineStore.

Serialization scopes open transaction.atomic() and take a
select_for_update() row lock on the order, client or cash-month row
before the block runs; saves inside the block commit with it or roll
back with it. A lock that cannot be taken surfaces as
ConcurrencyConflict; retrying is the caller's decision.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Iterator, List, Optional

from django.db import OperationalError, transaction
from django.db.models import F

from core.errors import ConcurrencyConflict, EntityNotFound
from core.persistence.models import (
    CashMonthRecord,
    CashPaymentRecord,
    ClientRecord,
    DeliveryRecord,
    InvoiceRecord,
    OrderRecord,
    QuoteRecord,
)
from core.primitives.workflow import StateTransition
from engines.clients.ledger import Client
from engines.deliveries.delivery_engine import Delivery, PaymentStatus
from engines.invoicing.invoice_engine import Invoice
from engines.orders.order_engine import Order, OrderStatus, VolumeLedger
from engines.payments.cash_ledger import CashPayment
from engines.payments.payment_engine import PaymentMethod
from engines.quotes.quote_engine import Quote, QuoteStatus

logger = logging.getLogger("rmx.persistence")


# ══════════════════════════════════════════════════════════════
# ROW ↔ ENTITY
# ══════════════════════════════════════════════════════════════

def _transition_from_dict(data: dict) -> StateTransition:
    at = data.get("transitioned_at")
    return StateTransition(
        from_state=data["from_state"],
        to_state=data["to_state"],
        actor_id=data.get("actor_id") or "system",
        transitioned_at=datetime.fromisoformat(at) if at else None,
        reason=data.get("reason", ""),
    )


def _client(row: ClientRecord) -> Client:
    return Client(
        client_id=row.client_id,
        name=row.name,
        credit_ceiling=row.credit_ceiling,
        credit_used=row.credit_used,
        payment_term_days=row.payment_term_days,
    )


def _quote(row: QuoteRecord) -> Quote:
    return Quote(
        quote_id=row.quote_id,
        client_id=row.client_id,
        formula_id=row.formula_id,
        volume_m3=row.volume_m3,
        unit_price=row.unit_price,
        tax_rate_pct=row.tax_rate_pct,
        net_amount=row.net_amount,
        total_amount=row.total_amount,
        status=QuoteStatus(row.status),
        technical_validated=row.technical_validated,
        administrative_validated=row.administrative_validated,
        rejection_reason=row.rejection_reason,
        history=tuple(_transition_from_dict(t) for t in row.history),
    )


def _order(row: OrderRecord) -> Order:
    return Order(
        order_id=row.order_id,
        client_id=row.client_id,
        formula_id=row.formula_id,
        quote_id=row.quote_id,
        unit_price=row.unit_price,
        ledger=VolumeLedger(
            ordered=row.ordered,
            delivered=row.delivered,
            remaining=row.remaining,
        ),
        status=OrderStatus(row.status),
    )


def _delivery(row: DeliveryRecord) -> Delivery:
    return Delivery(
        delivery_id=row.delivery_id,
        order_id=row.order_id,
        client_id=row.client_id,
        formula_id=row.formula_id,
        volume_m3=row.volume_m3,
        unit_price=row.unit_price,
        actual_cement_kg=row.actual_cement_kg,
        theoretical_cement_kg=row.theoretical_cement_kg,
        variance_pct=row.variance_pct,
        technical_validated=row.technical_validated,
        delivered_on=row.delivered_on,
        actual_admixture_l=row.actual_admixture_l,
        payment_status=PaymentStatus(row.payment_status),
        invoice_id=row.invoice_id,
    )


def _invoice(row: InvoiceRecord) -> Invoice:
    return Invoice(
        invoice_id=row.invoice_id,
        client_id=row.client_id,
        delivery_ids=tuple(row.delivery_ids),
        net_amount=row.net_amount,
        tax_rate_pct=row.tax_rate_pct,
        tax_amount=row.tax_amount,
        total_amount=row.total_amount,
        issued_on=row.issued_on,
        due_on=row.due_on,
        status=PaymentStatus(row.status),
        amount_paid=row.amount_paid,
        credit_accrued=row.credit_accrued,
        days_overdue=row.days_overdue,
    )


def _cash_payment(row: CashPaymentRecord) -> CashPayment:
    return CashPayment(
        payment_id=row.payment_id,
        counterparty_id=row.counterparty_id,
        amount=row.amount,
        declared_source=row.declared_source,
        declared_on=row.declared_on,
        method=PaymentMethod(row.method),
        invoice_id=row.invoice_id,
        penalty_cost=row.penalty_cost,
        override_actor_id=row.override_actor_id,
        override_reason=row.override_reason,
    )


# ══════════════════════════════════════════════════════════════
# STORE
# ══════════════════════════════════════════════════════════════

class DjangoEngineStore:

    # ── Serialization scopes ──────────────────────────────────

    @staticmethod
    def _lock_row(model, entity: str, **lookup) -> None:
        try:
            list(
                model.objects.select_for_update()
                .filter(**lookup)
                .values_list("pk", flat=True)
            )
        except OperationalError as exc:
            key = ":".join(str(v) for v in lookup.values())
            raise ConcurrencyConflict(entity, key, str(exc)) from exc
        logger.debug(f"{entity} row locked: {lookup}")

    @contextmanager
    def order_transaction(self, order_id: str) -> Iterator[None]:
        with transaction.atomic():
            self._lock_row(OrderRecord, "Order", order_id=order_id)
            yield

    @contextmanager
    def client_transaction(self, client_id: str) -> Iterator[None]:
        with transaction.atomic():
            self._lock_row(ClientRecord, "Client", client_id=client_id)
            yield

    @contextmanager
    def cash_transaction(self, counterparty_id: str, month: str) -> Iterator[None]:
        with transaction.atomic():
            CashMonthRecord.objects.get_or_create(
                counterparty_id=counterparty_id, month=month,
            )
            self._lock_row(
                CashMonthRecord, "CashLedger",
                counterparty_id=counterparty_id, month=month,
            )
            yield

    # ── Clients ───────────────────────────────────────────────

    def get_client(self, client_id: str) -> Client:
        try:
            return _client(ClientRecord.objects.get(client_id=client_id))
        except ClientRecord.DoesNotExist:
            raise EntityNotFound("Client", client_id)

    def save_client(self, client: Client) -> None:
        ClientRecord.objects.update_or_create(
            client_id=client.client_id,
            defaults={
                "name": client.name,
                "credit_ceiling": client.credit_ceiling,
                "credit_used": client.credit_used,
                "payment_term_days": client.payment_term_days,
            },
        )

    # ── Quotes ────────────────────────────────────────────────

    def get_quote(self, quote_id: str) -> Quote:
        try:
            return _quote(QuoteRecord.objects.get(quote_id=quote_id))
        except QuoteRecord.DoesNotExist:
            raise EntityNotFound("Quote", quote_id)

    def save_quote(self, quote: Quote) -> None:
        QuoteRecord.objects.update_or_create(
            quote_id=quote.quote_id,
            defaults={
                "client_id": quote.client_id,
                "formula_id": quote.formula_id,
                "volume_m3": quote.volume_m3,
                "unit_price": quote.unit_price,
                "tax_rate_pct": quote.tax_rate_pct,
                "net_amount": quote.net_amount,
                "total_amount": quote.total_amount,
                "status": quote.status.value,
                "technical_validated": quote.technical_validated,
                "administrative_validated": quote.administrative_validated,
                "rejection_reason": quote.rejection_reason,
                "history": [t.to_dict() for t in quote.history],
            },
        )

    # ── Orders ────────────────────────────────────────────────

    def get_order(self, order_id: str) -> Order:
        try:
            return _order(OrderRecord.objects.get(order_id=order_id))
        except OrderRecord.DoesNotExist:
            raise EntityNotFound("Order", order_id)

    def save_order(self, order: Order) -> None:
        OrderRecord.objects.update_or_create(
            order_id=order.order_id,
            defaults={
                "client_id": order.client_id,
                "formula_id": order.formula_id,
                "quote_id": order.quote_id,
                "unit_price": order.unit_price,
                "ordered": order.ordered,
                "delivered": order.delivered,
                "remaining": order.remaining,
                "status": order.status.value,
            },
        )

    def list_orders(
        self, *, client_id: Optional[str] = None, quote_id: Optional[str] = None
    ) -> List[Order]:
        query = OrderRecord.objects.all()
        if client_id is not None:
            query = query.filter(client_id=client_id)
        if quote_id is not None:
            query = query.filter(quote_id=quote_id)
        return [_order(row) for row in query.order_by("order_id")]

    # ── Deliveries ────────────────────────────────────────────

    def get_delivery(self, delivery_id: str) -> Delivery:
        try:
            return _delivery(DeliveryRecord.objects.get(delivery_id=delivery_id))
        except DeliveryRecord.DoesNotExist:
            raise EntityNotFound("Delivery", delivery_id)

    def save_delivery(self, delivery: Delivery) -> None:
        DeliveryRecord.objects.update_or_create(
            delivery_id=delivery.delivery_id,
            defaults={
                "order_id": delivery.order_id,
                "client_id": delivery.client_id,
                "formula_id": delivery.formula_id,
                "volume_m3": delivery.volume_m3,
                "unit_price": delivery.unit_price,
                "actual_cement_kg": delivery.actual_cement_kg,
                "theoretical_cement_kg": delivery.theoretical_cement_kg,
                "variance_pct": delivery.variance_pct,
                "technical_validated": delivery.technical_validated,
                "delivered_on": delivery.delivered_on,
                "actual_admixture_l": delivery.actual_admixture_l,
                "payment_status": delivery.payment_status.value,
                "invoice_id": delivery.invoice_id,
            },
        )

    def list_deliveries(
        self,
        *,
        order_id: Optional[str] = None,
        client_id: Optional[str] = None,
        invoice_id: Optional[str] = None,
    ) -> List[Delivery]:
        query = DeliveryRecord.objects.all()
        if order_id is not None:
            query = query.filter(order_id=order_id)
        if client_id is not None:
            query = query.filter(client_id=client_id)
        if invoice_id is not None:
            query = query.filter(invoice_id=invoice_id)
        return [_delivery(row) for row in query.order_by("delivery_id")]

    # ── Invoices ──────────────────────────────────────────────

    def get_invoice(self, invoice_id: str) -> Invoice:
        try:
            return _invoice(InvoiceRecord.objects.get(invoice_id=invoice_id))
        except InvoiceRecord.DoesNotExist:
            raise EntityNotFound("Invoice", invoice_id)

    def save_invoice(self, invoice: Invoice) -> None:
        InvoiceRecord.objects.update_or_create(
            invoice_id=invoice.invoice_id,
            defaults={
                "client_id": invoice.client_id,
                "delivery_ids": list(invoice.delivery_ids),
                "net_amount": invoice.net_amount,
                "tax_rate_pct": invoice.tax_rate_pct,
                "tax_amount": invoice.tax_amount,
                "total_amount": invoice.total_amount,
                "issued_on": invoice.issued_on,
                "due_on": invoice.due_on,
                "status": invoice.status.value,
                "amount_paid": invoice.amount_paid,
                "credit_accrued": invoice.credit_accrued,
                "days_overdue": invoice.days_overdue,
            },
        )

    def list_invoices(self, *, client_id: Optional[str] = None) -> List[Invoice]:
        query = InvoiceRecord.objects.all()
        if client_id is not None:
            query = query.filter(client_id=client_id)
        return [_invoice(row) for row in query.order_by("invoice_id")]

    # ── Cash ledger ───────────────────────────────────────────

    def cash_month_total(self, counterparty_id: str, month: str) -> Decimal:
        row = CashMonthRecord.objects.filter(
            counterparty_id=counterparty_id, month=month,
        ).first()
        return row.total if row else Decimal("0")

    def append_cash_payment(self, payment: CashPayment) -> None:
        with transaction.atomic():
            CashPaymentRecord.objects.create(
                payment_id=payment.payment_id,
                counterparty_id=payment.counterparty_id,
                month=payment.month,
                amount=payment.amount,
                declared_source=payment.declared_source,
                declared_on=payment.declared_on,
                method=payment.method.value,
                invoice_id=payment.invoice_id,
                penalty_cost=payment.penalty_cost,
                override_actor_id=payment.override_actor_id,
                override_reason=payment.override_reason,
            )
            if payment.is_cash:
                month_row, _ = CashMonthRecord.objects.get_or_create(
                    counterparty_id=payment.counterparty_id, month=payment.month,
                )
                CashMonthRecord.objects.filter(pk=month_row.pk).update(
                    total=F("total") + payment.amount
                )

    def list_cash_payments(self, counterparty_id: str, month: str) -> List[CashPayment]:
        rows = CashPaymentRecord.objects.filter(
            counterparty_id=counterparty_id, month=month,
        ).order_by("recorded_at", "payment_id")
        return [_cash_payment(row) for row in rows]
