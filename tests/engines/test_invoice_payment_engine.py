"""
Tests for engines.invoicing (aggregation, ageing) and engines.payments
(cumulative payments, cash compliance, monthly cash ledger).
"""

from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from core.config.rules import EngineConfig
from core.errors import (
    AlreadyBilled,
    InvalidInput,
    MixedClientDeliveries,
    OverrideNotAuthorized,
    SequenceViolation,
)
from engines.clients.ledger import Client
from engines.deliveries.delivery_engine import PaymentStatus, record_delivery
from engines.formulas.catalog import build_standard_registry
from engines.invoicing.invoice_engine import (
    generate_invoice,
    mark_billed,
    refresh_overdue,
)
from engines.orders.order_engine import create_order
from engines.payments.cash_ledger import CashLedger, CashPayment, reconcile_month
from engines.payments.payment_engine import PaymentMethod, apply_payment
from engines.payments.policies import (
    ComplianceOverride,
    authorize_override,
    cash_compliance_check,
)
from engines.quotes.quote_engine import (
    create_quote,
    validate_administrative,
    validate_technical,
)

B25 = build_standard_registry().get("F-B25")
ISSUED = date(2026, 3, 1)


def _client(client_id="CLI-1", used=0):
    return Client(client_id=client_id, name=f"Client {client_id}", credit_ceiling=100000, credit_used=used)


def _order(client_id="CLI-1"):
    quote = create_quote(_client(client_id), B25, 50, 1330, quote_id=f"DEV-{client_id}")
    quote = validate_administrative(validate_technical(quote, B25))
    return create_order(quote, order_id=f"BC-{client_id}")


def _deliveries(client_id="CLI-1", volumes=(6, 4)):
    order = _order(client_id)
    deliveries = []
    for index, volume in enumerate(volumes):
        delivery, order = record_delivery(
            order, volume, B25.cement_kg_per_m3 * volume, B25,
            delivery_id=f"BL-{client_id}-{index}",
        )
        deliveries.append(delivery)
    return deliveries


def _invoice(total_volumes=(6, 4)):
    return generate_invoice(_deliveries(volumes=total_volumes), ISSUED, 30, 20, invoice_id="FAC-1")


# ── Invoice generation ───────────────────────────────────────

class TestGenerateInvoice:
    def test_amounts_and_due_date(self):
        invoice = _invoice()
        assert invoice.net_amount == Decimal("13300.00")
        assert invoice.tax_amount == Decimal("2660.00")
        assert invoice.total_amount == Decimal("15960.00")
        assert invoice.due_on == date(2026, 3, 31)
        assert invoice.status == PaymentStatus.PENDING
        assert invoice.delivery_ids == ("BL-CLI-1-0", "BL-CLI-1-1")

    def test_empty_rejected(self):
        with pytest.raises(InvalidInput):
            generate_invoice([], ISSUED, 30)

    def test_mixed_clients_rejected(self):
        mixed = _deliveries("CLI-1", (6,)) + _deliveries("CLI-2", (4,))
        with pytest.raises(MixedClientDeliveries) as exc:
            generate_invoice(mixed, ISSUED, 30)
        assert exc.value.client_ids == ("CLI-1", "CLI-2")

    def test_already_billed(self):
        first, second = _deliveries()
        billed = mark_billed(first, "FAC-0")
        with pytest.raises(AlreadyBilled) as exc:
            generate_invoice([billed, second], ISSUED, 30)
        assert exc.value.invoice_id == "FAC-0"

    def test_listed_twice(self):
        first, _ = _deliveries()
        with pytest.raises(AlreadyBilled):
            generate_invoice([first, first], ISSUED, 30)

    def test_technical_gate_optional(self):
        first, second = _deliveries()
        rejected = replace(first, technical_validated=False, variance_pct=Decimal("10.00"))
        assert generate_invoice([rejected, second], ISSUED, 30).total_amount
        with pytest.raises(SequenceViolation, match="technical"):
            generate_invoice(
                [rejected, second], ISSUED, 30, require_technical_validation=True,
            )

    def test_mark_billed_once(self):
        first, _ = _deliveries()
        billed = mark_billed(first, "FAC-1")
        assert billed.invoice_id == "FAC-1"
        with pytest.raises(AlreadyBilled):
            mark_billed(billed, "FAC-2")


class TestOverdue:
    def test_not_overdue_on_due_date(self):
        invoice = _invoice()
        assert refresh_overdue(invoice, date(2026, 3, 31)) is invoice

    def test_overdue_counter(self):
        invoice = refresh_overdue(_invoice(), date(2026, 4, 10))
        assert invoice.days_overdue == 10
        assert invoice.is_overdue

    def test_paid_never_overdue(self):
        paid = apply_payment(_invoice(), _client(), 15960).invoice
        assert refresh_overdue(paid, date(2026, 6, 1)).days_overdue == 0


# ── Payments ─────────────────────────────────────────────────

class TestApplyPayment:
    def _twelve_thousand(self):
        first, = _deliveries(volumes=(10,))
        cheap = replace(first, unit_price=Decimal("1000"))
        return generate_invoice([cheap], ISSUED, 30, 20, invoice_id="FAC-12")

    def test_partial_payment_accrues_credit(self):
        invoice = self._twelve_thousand()
        assert invoice.total_amount == Decimal("12000.00")
        outcome = apply_payment(invoice, _client(), 8000)
        assert outcome.invoice.status == PaymentStatus.PARTIAL
        assert outcome.invoice.amount_paid == Decimal("8000.00")
        assert outcome.credit_delta == Decimal("4000.00")
        assert outcome.client.credit_used == Decimal("4000.00")

    def test_full_payment_reverses_accrual(self):
        first = apply_payment(self._twelve_thousand(), _client(), 8000)
        second = apply_payment(first.invoice, first.client, 4000)
        assert second.invoice.status == PaymentStatus.PAID
        assert second.credit_delta == Decimal("-4000.00")
        assert second.client.credit_used == Decimal("0.00")

    def test_overpayment_reported(self):
        outcome = apply_payment(self._twelve_thousand(), _client(), 12500)
        assert outcome.invoice.is_paid
        assert outcome.amount_applied == Decimal("12000.00")
        assert outcome.overpaid_amount == Decimal("500.00")

    def test_paid_invoice_accepts_nothing(self):
        outcome = apply_payment(self._twelve_thousand(), _client(), 12000)
        with pytest.raises(SequenceViolation):
            apply_payment(outcome.invoice, outcome.client, 1)

    def test_wrong_client(self):
        with pytest.raises(InvalidInput, match="belongs to client"):
            apply_payment(self._twelve_thousand(), _client("CLI-9"), 100)

    def test_non_positive_amount(self):
        with pytest.raises(InvalidInput):
            apply_payment(self._twelve_thousand(), _client(), 0)

    def test_sub_cent_amount_rejected(self):
        invoice = self._twelve_thousand()
        with pytest.raises(InvalidInput, match="amount_paid"):
            apply_payment(invoice, _client(), "0.004")
        with pytest.raises(InvalidInput, match="amount_paid"):
            apply_payment(invoice, _client(), "8000.005")


# ── Cash compliance ──────────────────────────────────────────

class TestCashCompliance:
    def test_within_ceiling(self):
        result = cash_compliance_check(20000, 10000, 50000)
        assert result.allowed
        assert not result.flagged
        assert result.new_monthly_total == Decimal("30000.00")
        assert result.total_penalty_cost == Decimal("0")

    def test_exactly_at_ceiling_allowed(self):
        assert cash_compliance_check(40000, 10000, 50000).allowed

    def test_penalty_breakdown(self):
        result = cash_compliance_check(45000, 10000, 50000)
        assert result.flagged
        assert result.requires_override
        assert not result.allowed
        assert result.new_monthly_total == Decimal("55000.00")
        assert result.excess == Decimal("5000.00")
        assert result.penalty == Decimal("300.00")
        assert result.stamp_duty == Decimal("25.00")
        assert result.total_penalty_cost == Decimal("325.00")

    def test_pure_function(self):
        assert cash_compliance_check(45000, 10000, 50000) == cash_compliance_check(45000, 10000, 50000)

    def test_single_payment_requires_transfer(self):
        result = cash_compliance_check(0, 60000, 100000, single_payment_ceiling=50000)
        assert result.requires_transfer
        assert not result.allowed

    def test_warnings(self):
        result = cash_compliance_check(40000, 10000, 50000, warning_amount=10000, warning_ratio=0.8)
        assert result.allowed
        assert len(result.warnings) == 2

    def test_approaching_warning_follows_prior_total(self):
        result = cash_compliance_check(30000, 12000, 50000, warning_amount=10000, warning_ratio=0.8)
        assert [w for w in result.warnings if "approaching" in w] == []
        result = cash_compliance_check(45000, 1000, 50000, warning_ratio=0.8)
        assert len(result.warnings) == 1
        assert "45000.00" in result.warnings[0]

    def test_approaching_warning_kept_when_flagged(self):
        result = cash_compliance_check(42000, 9000, 50000, warning_ratio=0.8)
        assert result.flagged
        assert any("approaching" in w for w in result.warnings)

    def test_sub_cent_amount_rejected(self):
        with pytest.raises(InvalidInput, match="new_amount"):
            cash_compliance_check(0, "0.004", 50000)

    def test_negative_prior_rejected(self):
        with pytest.raises(InvalidInput):
            cash_compliance_check(-1, 100, 50000)


class TestOverrideAuthorization:
    def test_elevated_authority(self):
        override = ComplianceOverride("dir-1", "CEO", "supplier urgency")
        assert authorize_override(override) is override

    def test_ordinary_authority_refused(self):
        with pytest.raises(OverrideNotAuthorized, match="authority"):
            authorize_override(ComplianceOverride("acc-1", "accountant", "why not"))

    def test_justification_required(self):
        with pytest.raises(OverrideNotAuthorized, match="justification"):
            authorize_override(ComplianceOverride("dir-1", "supervisor", "  "))

    def test_justification_minimum_length(self):
        with pytest.raises(OverrideNotAuthorized, match="10 characters"):
            authorize_override(ComplianceOverride("dir-1", "ceo", "  urgent   "))
        override = ComplianceOverride("dir-1", "ceo", "site close")
        assert authorize_override(override) is override

    def test_missing_override(self):
        with pytest.raises(OverrideNotAuthorized):
            authorize_override(None)


class TestCashLedger:
    def _payment(self, amount, day, method=PaymentMethod.CASH, counterparty="CLI-1"):
        return CashPayment(
            counterparty_id=counterparty, amount=amount,
            declared_source="site cashier", declared_on=date(2026, 3, day),
            method=method,
        )

    def test_declared_source_required(self):
        with pytest.raises(InvalidInput, match="source"):
            CashPayment(counterparty_id="CLI-1", amount=10, declared_source="", declared_on=ISSUED)

    def test_sub_cent_amount_rejected(self):
        with pytest.raises(InvalidInput, match="amount"):
            self._payment("0.004", 2)

    def test_month_total(self):
        ledger = CashLedger([
            self._payment(20000, 2),
            self._payment(90000, 3, PaymentMethod.TRANSFER),
            self._payment(5000, 4, counterparty="CLI-2"),
        ])
        assert ledger.month_total("CLI-1", "2026-03") == Decimal("20000.00")
        assert len(ledger.payments_for("CLI-1", "2026-03")) == 2
        assert ledger.month_total("CLI-1", "2026-04") == Decimal("0")

    def test_reconcile_month_in_declaration_order(self):
        results = reconcile_month(
            [self._payment(10000, 20), self._payment(45000, 5)],
            EngineConfig(),
        )
        assert [p.declared_on.day for p, _ in results] == [5, 20]
        assert results[0][1].allowed
        assert results[1][1].penalty == Decimal("300.00")
