"""
End-to-end tests for the order-to-cash services wired by
engines.bootstrap over the in-memory store.
"""

import threading
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from core.config.rules import EngineConfig
from core.errors import (
    AlreadyBilled,
    CashComplianceFlagged,
    CashPaymentRequiresTransfer,
    CreditLimitExceeded,
    EntityNotFound,
    MixedClientDeliveries,
    OverrideNotAuthorized,
    RegistryLocked,
    SequenceViolation,
    VolumeExceedsRemaining,
)
from core.events import WILDCARD, SubscriberRegistry
from core.time.clock import FixedClock
from engines.bootstrap import build_engine
from engines.clients.ledger import Client
from engines.deliveries.delivery_engine import PaymentStatus
from engines.formulas.catalog import Formula
from engines.payments.cash_ledger import CashPayment
from engines.payments.payment_engine import PaymentMethod
from engines.payments.policies import ComplianceOverride
from engines.quotes.pricing import MaterialPrices

NOW = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


class Harness:
    def __init__(self, **config):
        self.events = []
        registry = SubscriberRegistry()
        registry.register_subscriber(WILDCARD, self.events.append, "recorder")
        self.clock = FixedClock(NOW)
        self.engine = build_engine(
            config=EngineConfig(**config), clock=self.clock, subscribers=registry,
        )

    def event_types(self):
        return [e.event_type for e in self.events]

    def client(self, client_id="CLI-1", ceiling=100000):
        return self.engine.clients.register_client(
            Client(client_id=client_id, name=f"Client {client_id}", credit_ceiling=ceiling)
        )

    def approved_quote(self, client_id="CLI-1", volume=50, quote_id=None):
        quotes = self.engine.quotes
        quote = quotes.create_quote(
            client_id, "F-B25", volume, 1330, quote_id=quote_id or f"DEV-{client_id}",
        )
        quotes.validate_technical(quote.quote_id, actor_id="lab-1")
        return quotes.validate_administrative(quote.quote_id, actor_id="dir-1")

    def order(self, client_id="CLI-1", volume=50):
        quote = self.approved_quote(client_id, volume)
        return self.engine.orders.create_order(quote.quote_id, order_id=f"BC-{client_id}")

    def deliver(self, order_id, volume, delivery_id=None, variance_factor=1):
        return self.engine.deliveries.record_delivery(
            order_id, volume, Decimal("350") * volume * variance_factor,
            delivery_id=delivery_id,
        )

    def invoice(self, client_id="CLI-1", volumes=(6, 4), invoice_id=None):
        order_id = f"BC-{client_id}"
        ids = [self.deliver(order_id, v)[0].delivery_id for v in volumes]
        return self.engine.invoicing.generate_invoice(ids, invoice_id=invoice_id)


# ── Bootstrap ────────────────────────────────────────────────

class TestBootstrap:
    def test_catalog_locked(self):
        engine = build_engine()
        assert engine.formulas.is_locked
        with pytest.raises(RegistryLocked):
            engine.formulas.register(
                Formula(formula_id="F-X", name="X", cement_kg_per_m3=300, water_l_per_m3=150)
            )

    def test_services_share_store(self):
        harness = Harness()
        harness.client()
        assert harness.engine.store.get_client("CLI-1").name == "Client CLI-1"


# ── Quotes and orders ────────────────────────────────────────

class TestQuoteAndOrderServices:
    def test_handshake_publishes_events(self):
        harness = Harness()
        harness.client()
        quote = harness.approved_quote()
        assert quote.status.value == "approved"
        assert harness.event_types()[-3:] == [
            "quotes.quote.created",
            "quotes.quote.technically_approved",
            "quotes.quote.approved",
        ]
        stored = harness.engine.store.get_quote(quote.quote_id)
        assert [t.actor_id for t in stored.history] == ["lab-1", "dir-1"]
        assert stored.history[0].transitioned_at == NOW

    def test_default_tax_from_config(self):
        harness = Harness(default_tax_rate_pct=18)
        harness.client()
        quote = harness.engine.quotes.create_quote("CLI-1", "F-B25", 10, 1000)
        assert quote.total_amount == Decimal("11800.00")

    def test_unknown_client(self):
        harness = Harness()
        with pytest.raises(EntityNotFound):
            harness.engine.quotes.create_quote("nobody", "F-B25", 10, 1000)

    def test_price_helper(self):
        harness = Harness()
        prices = MaterialPrices(1200, 120, 150, 15, 35)
        breakdown = harness.engine.quotes.price("F-B25", prices, 10, 40)
        assert breakdown.transport_cost_per_m3 == Decimal("100.00")

    def test_reject_is_final(self):
        harness = Harness()
        harness.client()
        quotes = harness.engine.quotes
        quotes.create_quote("CLI-1", "F-B25", 10, 1000, quote_id="DEV-9")
        quotes.reject("DEV-9", "client went elsewhere", actor_id="sales-1")
        with pytest.raises(SequenceViolation):
            quotes.validate_technical("DEV-9")
        assert harness.engine.store.get_quote("DEV-9").status.value == "rejected"

    def test_one_order_per_quote(self):
        harness = Harness()
        harness.client()
        harness.order()
        with pytest.raises(SequenceViolation, match="already produced"):
            harness.engine.orders.create_order("DEV-CLI-1")

    def test_advisory_gate_does_not_block(self):
        harness = Harness()
        harness.client(ceiling=50000)
        quote = harness.approved_quote()
        gate = harness.engine.orders.check_credit("CLI-1", quote.total_amount)
        assert not gate.allowed
        order = harness.engine.orders.create_order(quote.quote_id)
        assert order.ordered == Decimal("50")
        assert "clients.credit.denied" in harness.event_types()

    def test_enforced_gate_blocks(self):
        harness = Harness(credit_gate_mode="enforced")
        harness.client(ceiling=50000)
        quote = harness.approved_quote()
        with pytest.raises(CreditLimitExceeded) as exc:
            harness.engine.orders.create_order(quote.quote_id)
        assert exc.value.projected_usage == Decimal("79800.00")
        assert harness.engine.store.list_orders(quote_id=quote.quote_id) == []

    def test_enforced_gate_allows_within_ceiling(self):
        harness = Harness(credit_gate_mode="enforced")
        harness.client(ceiling=100000)
        assert harness.order().client_id == "CLI-1"


# ── Deliveries ───────────────────────────────────────────────

class TestDeliveryService:
    def test_delivery_and_order_saved_together(self):
        harness = Harness()
        harness.client()
        harness.order()
        delivery, order = harness.deliver("BC-CLI-1", 8, "BL-1")
        store = harness.engine.store
        assert store.get_delivery("BL-1") == delivery
        assert store.get_order("BC-CLI-1").remaining == Decimal("42")
        assert delivery.delivered_on == date(2026, 3, 1)

    def test_variance_flag_event(self):
        harness = Harness()
        harness.client()
        harness.order()
        delivery, _ = harness.deliver("BC-CLI-1", 8, variance_factor=Decimal("1.1"))
        assert delivery.variance_pct == Decimal("10.00")
        assert "deliveries.delivery.variance_flagged" in harness.event_types()

    def test_completion_and_closed_order(self):
        harness = Harness()
        harness.client()
        harness.order(volume=20)
        harness.deliver("BC-CLI-1", 12)
        _, order = harness.deliver("BC-CLI-1", 8)
        assert order.is_closed
        assert "orders.order.completed" in harness.event_types()
        assert len(harness.engine.deliveries.deliveries_for_order("BC-CLI-1")) == 2

    def test_failed_delivery_leaves_no_trace(self):
        harness = Harness()
        harness.client()
        harness.order(volume=10)
        with pytest.raises(VolumeExceedsRemaining):
            harness.deliver("BC-CLI-1", 11)
        assert harness.engine.deliveries.deliveries_for_order("BC-CLI-1") == []
        assert harness.engine.store.get_order("BC-CLI-1").remaining == Decimal("10")

    def test_concurrent_deliveries_never_overdraw(self):
        harness = Harness()
        harness.client()
        harness.order(volume=50)
        failures = []
        barrier = threading.Barrier(10)

        def truck():
            barrier.wait()
            try:
                harness.deliver("BC-CLI-1", 6)
            except VolumeExceedsRemaining as exc:
                failures.append(exc)

        threads = [threading.Thread(target=truck) for _ in range(10)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        order = harness.engine.store.get_order("BC-CLI-1")
        deliveries = harness.engine.deliveries.deliveries_for_order("BC-CLI-1")
        assert len(deliveries) == 8
        assert len(failures) == 2
        assert order.delivered == Decimal("48")
        assert order.delivered + order.remaining == order.ordered


# ── Invoicing ────────────────────────────────────────────────

class TestInvoiceService:
    def test_invoice_bills_deliveries(self):
        harness = Harness()
        harness.client()
        harness.order()
        invoice = harness.invoice(invoice_id="FAC-1")
        assert invoice.total_amount == Decimal("15960.00")
        assert invoice.due_on == date(2026, 3, 31)
        billed = harness.engine.store.list_deliveries(invoice_id="FAC-1")
        assert len(billed) == 2
        assert "invoicing.invoice.issued" in harness.event_types()

    def test_second_invoice_for_same_delivery(self):
        harness = Harness()
        harness.client()
        harness.order()
        delivery, _ = harness.deliver("BC-CLI-1", 6)
        harness.engine.invoicing.generate_invoice([delivery.delivery_id])
        with pytest.raises(AlreadyBilled):
            harness.engine.invoicing.generate_invoice([delivery.delivery_id])

    def test_mixed_clients(self):
        harness = Harness()
        for client_id in ("CLI-1", "CLI-2"):
            harness.client(client_id)
            harness.order(client_id)
        ids = [
            harness.deliver("BC-CLI-1", 6)[0].delivery_id,
            harness.deliver("BC-CLI-2", 6)[0].delivery_id,
        ]
        with pytest.raises(MixedClientDeliveries):
            harness.engine.invoicing.generate_invoice(ids)
        assert harness.engine.store.list_invoices() == []

    def test_technical_gate_when_configured(self):
        harness = Harness(invoice_requires_technical_validation=True)
        harness.client()
        harness.order()
        delivery, _ = harness.deliver("BC-CLI-1", 8, variance_factor=Decimal("1.1"))
        with pytest.raises(SequenceViolation):
            harness.engine.invoicing.generate_invoice([delivery.delivery_id])
        assert not harness.engine.store.get_delivery(delivery.delivery_id).is_billed

    def test_refresh_overdue_and_credit_gate(self):
        harness = Harness(max_overdue_invoices=1)
        harness.client()
        harness.order()
        harness.invoice(invoice_id="FAC-1")
        overdue = harness.engine.invoicing.refresh_overdue(date(2026, 4, 10))
        assert [i.invoice_id for i in overdue] == ["FAC-1"]
        assert overdue[0].days_overdue == 10
        assert "invoicing.invoice.overdue" in harness.event_types()
        assert harness.engine.invoicing.refresh_overdue(date(2026, 4, 11)) == []
        gate = harness.engine.clients.check_credit("CLI-1", 100)
        assert not gate.allowed


# ── Payments ─────────────────────────────────────────────────

class TestPaymentService:
    def test_partial_then_full_transfer(self):
        harness = Harness()
        harness.client()
        harness.order()
        invoice = harness.invoice(invoice_id="FAC-1")

        outcome = harness.engine.payments.apply_payment("FAC-1", 10000)
        assert outcome.invoice.status == PaymentStatus.PARTIAL
        assert harness.engine.store.get_client("CLI-1").credit_used == Decimal("5960.00")
        statuses = {
            d.payment_status for d in harness.engine.store.list_deliveries(invoice_id="FAC-1")
        }
        assert statuses == {PaymentStatus.PARTIAL}

        outcome = harness.engine.payments.apply_payment("FAC-1", invoice.total_amount - 10000)
        assert outcome.invoice.is_paid
        assert harness.engine.store.get_client("CLI-1").credit_used == Decimal("0.00")
        assert "clients.credit.adjusted" in harness.event_types()
        assert harness.event_types()[-1] == "payments.payment.applied"

    def test_cash_and_transfer_on_one_invoice_both_count(self, monkeypatch):
        harness = Harness()
        harness.client()
        harness.order()
        harness.invoice(invoice_id="FAC-1")
        store = harness.engine.store
        payments = harness.engine.payments
        appending = threading.Event()
        release = threading.Event()
        append = store.append_cash_payment

        def slow_append(record):
            appending.set()
            release.wait(2)
            append(record)

        monkeypatch.setattr(store, "append_cash_payment", slow_append)
        cash = threading.Thread(
            target=payments.apply_payment, args=("FAC-1", 10000),
            kwargs={"method": PaymentMethod.CASH},
        )
        transfer = threading.Thread(target=payments.apply_payment, args=("FAC-1", 5960))
        cash.start()
        assert appending.wait(2)
        transfer.start()
        transfer.join(0.2)
        assert transfer.is_alive()
        release.set()
        cash.join()
        transfer.join()

        invoice = store.get_invoice("FAC-1")
        assert invoice.is_paid
        assert invoice.amount_paid == Decimal("15960.00")
        assert store.get_client("CLI-1").credit_used == Decimal("0.00")
        assert store.cash_month_total("CLI-1", "2026-03") == Decimal("10000.00")

    def test_cash_within_ceiling_recorded(self):
        harness = Harness()
        harness.client()
        harness.order()
        harness.invoice(invoice_id="FAC-1")
        harness.engine.payments.apply_payment(
            "FAC-1", 15960, method=PaymentMethod.CASH, declared_source="site cashier",
        )
        assert harness.engine.store.cash_month_total("CLI-1", "2026-03") == Decimal("15960.00")
        assert "payments.cash_payment.recorded" in harness.event_types()

    def test_cash_flagged_without_override_changes_nothing(self):
        harness = Harness(cash_monthly_ceiling=20000)
        harness.client()
        harness.order()
        harness.invoice(invoice_id="FAC-1")
        harness.invoice(invoice_id="FAC-2")
        payments = harness.engine.payments
        payments.apply_payment("FAC-1", 15960, method=PaymentMethod.CASH)

        with pytest.raises(CashComplianceFlagged) as exc:
            payments.apply_payment("FAC-2", 15960, method=PaymentMethod.CASH)
        result = exc.value.result
        assert result.excess == Decimal("11920.00")
        assert result.penalty == Decimal("715.20")
        assert result.stamp_duty == Decimal("39.90")
        assert result.total_penalty_cost == Decimal("755.10")

        store = harness.engine.store
        assert store.get_invoice("FAC-2").status == PaymentStatus.PENDING
        assert store.cash_month_total("CLI-1", "2026-03") == Decimal("15960.00")
        assert "payments.cash_payment.flagged" in harness.event_types()

    def test_cash_override_records_penalty(self):
        harness = Harness(cash_monthly_ceiling=20000)
        harness.client()
        harness.order()
        harness.invoice(invoice_id="FAC-1")
        harness.invoice(invoice_id="FAC-2")
        payments = harness.engine.payments
        payments.apply_payment("FAC-1", 15960, method=PaymentMethod.CASH)

        with pytest.raises(OverrideNotAuthorized):
            payments.apply_payment(
                "FAC-2", 15960, method=PaymentMethod.CASH,
                override=ComplianceOverride("acc-1", "accountant", "urgent"),
            )
        outcome = payments.apply_payment(
            "FAC-2", 15960, method=PaymentMethod.CASH,
            override=ComplianceOverride("dir-1", "ceo", "site closing this week"),
        )
        assert outcome.invoice.is_paid
        records = harness.engine.store.list_cash_payments("CLI-1", "2026-03")
        assert records[-1].penalty_cost == Decimal("755.10")
        assert records[-1].override_actor_id == "dir-1"
        assert "payments.cash_payment.overridden" in harness.event_types()

    def test_large_cash_requires_transfer(self):
        harness = Harness(cash_single_payment_ceiling=10000)
        harness.client()
        harness.order()
        harness.invoice(invoice_id="FAC-1")
        with pytest.raises(CashPaymentRequiresTransfer):
            harness.engine.payments.apply_payment(
                "FAC-1", 15960, method=PaymentMethod.CASH,
                override=ComplianceOverride("dir-1", "ceo", "please"),
            )
        paid = harness.engine.payments.apply_payment("FAC-1", 15960)
        assert paid.invoice.is_paid

    def test_supplier_cash_payment_and_preview(self):
        harness = Harness()
        payments = harness.engine.payments
        receipt = payments.record_cash_payment(CashPayment(
            counterparty_id="SUP-CEMENT", amount=45000,
            declared_source="petty cash", declared_on=date(2026, 3, 3),
        ))
        assert receipt.compliance.allowed
        preview = payments.check_cash("SUP-CEMENT", 10000, date(2026, 3, 20))
        assert preview.total_penalty_cost == Decimal("325.00")
        assert payments.check_cash("SUP-CEMENT", 10000, date(2026, 4, 1)).allowed

    def test_transfer_record_skips_screening(self):
        harness = Harness()
        receipt = harness.engine.payments.record_cash_payment(CashPayment(
            counterparty_id="SUP-CEMENT", amount=900000, declared_source="bank",
            declared_on=date(2026, 3, 3), method=PaymentMethod.TRANSFER,
        ))
        assert receipt.compliance is None
        assert harness.engine.store.cash_month_total("SUP-CEMENT", "2026-03") == Decimal("0")
