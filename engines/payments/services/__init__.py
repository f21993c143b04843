"""
RMX Payment Engine — Application Service
==========================================
Applies payments to invoices and screens cash through the monthly
compliance policy.

Write flow for a cash payment (NON-NEGOTIABLE):
    1. cash scope (counterparty, month) opened; prior total read
    2. compliance check
         requires transfer        → CashPaymentRequiresTransfer
         flagged, no override     → CashComplianceFlagged (nothing saved)
         flagged, override        → authority checked, penalty recorded
    3. client scope opened; invoice, client and deliveries updated
    4. cash record appended; both scopes commit together
    5. subscribers notified

Transfers and checks skip steps 1, 2 and 4.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date
from typing import Optional, Tuple

from core.config.rules import EngineConfig
from core.errors import CashComplianceFlagged, CashPaymentRequiresTransfer
from core.events import SubscriberRegistry, publish
from core.time.clock import Clock, get_default_clock
from core.time.temporal import month_key
from engines.clients.events import CLIENT_CREDIT_ADJUSTED, build_credit_adjusted_payload
from engines.clients.ledger import Client
from engines.deliveries.delivery_engine import with_payment_status
from engines.payments import payment_engine
from engines.payments.cash_ledger import CashPayment
from engines.payments.events import (
    CASH_PAYMENT_FLAGGED,
    CASH_PAYMENT_OVERRIDDEN,
    CASH_PAYMENT_RECORDED,
    PAYMENT_APPLIED,
    build_cash_payment_payload,
    build_payment_applied_payload,
)
from engines.payments.payment_engine import PaymentMethod, PaymentOutcome
from engines.payments.policies import (
    CashComplianceResult,
    ComplianceOverride,
    authorize_override,
    cash_compliance_check,
)

logger = logging.getLogger("rmx.payments")


@dataclass(frozen=True)
class CashPaymentReceipt:
    payment: CashPayment
    compliance: Optional[CashComplianceResult] = None
    override: Optional[ComplianceOverride] = None

    def to_dict(self) -> dict:
        return {
            "payment": self.payment.to_dict(),
            "compliance": self.compliance.to_dict() if self.compliance else None,
            "override": self.override.to_dict() if self.override else None,
        }


class PaymentService:

    def __init__(
        self,
        store,
        config: Optional[EngineConfig] = None,
        clock: Optional[Clock] = None,
        subscribers: Optional[SubscriberRegistry] = None,
    ):
        self._store = store
        self._config = config or EngineConfig()
        self._clock = clock or get_default_clock()
        self._subscribers = subscribers

    def _notify(self, event_type: str, subject_id: str, payload: dict) -> None:
        publish(self._subscribers, self._clock, event_type, subject_id, payload)

    # ══════════════════════════════════════════════════════════
    # CASH COMPLIANCE
    # ══════════════════════════════════════════════════════════

    def check_cash(
        self,
        counterparty_id: str,
        amount,
        declared_on: Optional[date] = None,
    ) -> CashComplianceResult:
        """Preview the compliance result without recording anything."""
        month = month_key(declared_on or self._clock.today())
        return self._check(self._store.cash_month_total(counterparty_id, month), amount)

    def _check(self, prior_total, amount) -> CashComplianceResult:
        config = self._config
        return cash_compliance_check(
            prior_total,
            amount,
            config.cash_monthly_ceiling,
            config.cash_penalty_rate_pct,
            config.stamp_duty_rate_pct,
            single_payment_ceiling=config.cash_single_payment_ceiling,
            warning_amount=config.cash_warning_amount,
            warning_ratio=config.cash_warning_ratio,
        )

    def _screen(
        self,
        record: CashPayment,
        override: Optional[ComplianceOverride],
    ) -> Tuple[CashPayment, CashComplianceResult, Optional[ComplianceOverride]]:
        """Must run inside the record's cash scope."""
        prior = self._store.cash_month_total(record.counterparty_id, record.month)
        result = self._check(prior, record.amount)

        if result.requires_transfer:
            logger.warning(
                f"Cash payment of {record.amount} to {record.counterparty_id} "
                f"refused: bank transfer required"
            )
            raise CashPaymentRequiresTransfer(
                record.amount, self._config.cash_single_payment_ceiling
            )

        if not result.flagged:
            return record, result, None

        if override is None:
            logger.warning(
                f"Cash payment of {record.amount} to {record.counterparty_id} "
                f"flagged: month total {result.new_monthly_total} > "
                f"{result.monthly_ceiling}, penalty cost {result.total_penalty_cost}"
            )
            self._notify(
                CASH_PAYMENT_FLAGGED, record.payment_id,
                build_cash_payment_payload(record, result),
            )
            raise CashComplianceFlagged(record.counterparty_id, result)

        authorize_override(override)
        logger.warning(
            f"Cash ceiling override by {override.actor_id} ({override.authority}) "
            f"for {record.counterparty_id}: penalty cost {result.total_penalty_cost}"
        )
        record = replace(
            record,
            penalty_cost=result.total_penalty_cost,
            override_actor_id=override.actor_id,
            override_reason=override.reason.strip(),
        )
        return record, result, override

    def record_cash_payment(
        self,
        record: CashPayment,
        override: Optional[ComplianceOverride] = None,
    ) -> CashPaymentReceipt:
        if not record.is_cash:
            with self._store.cash_transaction(record.counterparty_id, record.month):
                self._store.append_cash_payment(record)
            logger.info(
                f"{record.method.value} payment {record.payment_id} recorded "
                f"without cash screening"
            )
            self._notify(
                CASH_PAYMENT_RECORDED, record.payment_id,
                build_cash_payment_payload(record),
            )
            return CashPaymentReceipt(payment=record)

        with self._store.cash_transaction(record.counterparty_id, record.month):
            record, result, accepted = self._screen(record, override)
            self._store.append_cash_payment(record)

        return self._cash_recorded(record, result, accepted)

    def _cash_recorded(self, record, result, accepted) -> CashPaymentReceipt:
        logger.info(
            f"Cash payment {record.payment_id} recorded: {record.amount} to "
            f"{record.counterparty_id}, month total {result.new_monthly_total}"
        )
        if accepted is not None:
            payload = build_cash_payment_payload(record, result)
            payload["override"] = accepted.to_dict()
            self._notify(CASH_PAYMENT_OVERRIDDEN, record.payment_id, payload)
        self._notify(
            CASH_PAYMENT_RECORDED, record.payment_id,
            build_cash_payment_payload(record, result),
        )
        return CashPaymentReceipt(payment=record, compliance=result, override=accepted)

    # ══════════════════════════════════════════════════════════
    # INVOICE PAYMENTS
    # ══════════════════════════════════════════════════════════

    def _apply(self, invoice_id: str, client_id: str, amount) -> Tuple[PaymentOutcome, Client]:
        with self._store.client_transaction(client_id):
            invoice = self._store.get_invoice(invoice_id)
            client = self._store.get_client(client_id)
            outcome = payment_engine.apply_payment(invoice, client, amount)
            self._store.save_invoice(outcome.invoice)
            self._store.save_client(outcome.client)
            for delivery in self._store.list_deliveries(invoice_id=invoice_id):
                self._store.save_delivery(
                    with_payment_status(delivery, outcome.invoice.status)
                )
        return outcome, client

    def apply_payment(
        self,
        invoice_id: str,
        amount,
        *,
        method: PaymentMethod = PaymentMethod.TRANSFER,
        declared_source: str = "",
        declared_on: Optional[date] = None,
        override: Optional[ComplianceOverride] = None,
    ) -> PaymentOutcome:
        client_id = self._store.get_invoice(invoice_id).client_id
        receipt = None

        if method == PaymentMethod.CASH:
            record = CashPayment(
                counterparty_id=client_id,
                amount=amount,
                declared_source=declared_source or f"payment of {invoice_id}",
                declared_on=declared_on or self._clock.today(),
                method=method,
                invoice_id=invoice_id,
            )
            with self._store.cash_transaction(client_id, record.month):
                record, result, accepted = self._screen(record, override)
                outcome, before = self._apply(invoice_id, client_id, amount)
                self._store.append_cash_payment(record)
            receipt = (record, result, accepted)
        else:
            outcome, before = self._apply(invoice_id, client_id, amount)

        logger.info(
            f"Payment of {outcome.amount_applied} ({method.value}) applied to "
            f"{invoice_id}: {outcome.invoice.status.value}, "
            f"credit used {outcome.client.credit_used}"
        )
        if outcome.overpaid_amount:
            logger.warning(
                f"Invoice {invoice_id} overpaid by {outcome.overpaid_amount}"
            )
        if receipt is not None:
            self._cash_recorded(*receipt)
        if outcome.credit_delta:
            self._notify(
                CLIENT_CREDIT_ADJUSTED, client_id,
                build_credit_adjusted_payload(before, outcome.client, f"payment of {invoice_id}"),
            )
        self._notify(
            PAYMENT_APPLIED, invoice_id,
            build_payment_applied_payload(outcome, method),
        )
        return outcome
