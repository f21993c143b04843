from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from core.config import EngineConfig, load_engine_config
from core.errors import (
    CashComplianceFlagged,
    EntityNotFound,
    InvalidInput,
    VolumeExceedsRemaining,
    VolumeOutOfRange,
)
from core.persistence.django_store import DjangoEngineStore
from core.persistence.models import CashMonthRecord, DeliveryRecord
from core.time.clock import FixedClock
from engines.bootstrap import build_engine
from engines.clients.ledger import Client
from engines.deliveries.delivery_engine import PaymentStatus
from engines.payments.payment_engine import PaymentMethod
from engines.payments.policies import ComplianceOverride

pytestmark = pytest.mark.django_db(transaction=True)


NOW = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def _engine(**config):
    return build_engine(
        store=DjangoEngineStore(),
        config=EngineConfig(**config),
        clock=FixedClock(NOW),
    )


def _ordered(engine, volume=50):
    engine.clients.register_client(
        Client(client_id="CLI-1", name="Batiplus", credit_ceiling=100000)
    )
    engine.quotes.create_quote("CLI-1", "F-B25", volume, 1330, quote_id="DEV-1")
    engine.quotes.validate_technical("DEV-1", actor_id="lab-1")
    engine.quotes.validate_administrative("DEV-1", actor_id="dir-1")
    return engine.orders.create_order("DEV-1", order_id="BC-1")


def test_quote_history_round_trips() -> None:
    engine = _engine()
    _ordered(engine)
    quote = engine.store.get_quote("DEV-1")
    assert quote.status.value == "approved"
    assert [t.to_state for t in quote.history] == ["technically_approved", "approved"]
    assert quote.history[1].actor_id == "dir-1"
    assert quote.history[1].transitioned_at == NOW


def test_missing_rows_raise_entity_not_found() -> None:
    store = DjangoEngineStore()
    with pytest.raises(EntityNotFound):
        store.get_order("BC-404")
    with pytest.raises(EntityNotFound):
        store.get_invoice("FAC-404")


def test_delivery_commits_with_order_ledger() -> None:
    engine = _engine()
    _ordered(engine)
    delivery, order = engine.deliveries.record_delivery("BC-1", 8, 2800, delivery_id="BL-1")
    stored = engine.store.get_order("BC-1")
    assert stored.remaining == Decimal("42")
    assert stored.delivered + stored.remaining == stored.ordered
    assert engine.store.get_delivery("BL-1") == delivery


def test_rejected_delivery_rolls_back() -> None:
    engine = _engine()
    _ordered(engine, volume=10)
    engine.deliveries.record_delivery("BC-1", 8, 2800)
    with pytest.raises(VolumeExceedsRemaining):
        engine.deliveries.record_delivery("BC-1", 3, 1050)
    assert DeliveryRecord.objects.filter(order_id="BC-1").count() == 1
    assert engine.store.get_order("BC-1").remaining == Decimal("2")


def test_invoice_and_payment_update_rows() -> None:
    engine = _engine()
    _ordered(engine)
    ids = [
        engine.deliveries.record_delivery("BC-1", v, Decimal("350") * v)[0].delivery_id
        for v in (6, 4)
    ]
    invoice = engine.invoicing.generate_invoice(ids, invoice_id="FAC-1")
    assert invoice.total_amount == Decimal("15960.00")
    assert {d.invoice_id for d in engine.store.list_deliveries(order_id="BC-1")} == {"FAC-1"}

    engine.payments.apply_payment("FAC-1", 10000)
    assert engine.store.get_client("CLI-1").credit_used == Decimal("5960.00")
    assert engine.store.get_invoice("FAC-1").status == PaymentStatus.PARTIAL
    assert {
        d.payment_status for d in engine.store.list_deliveries(invoice_id="FAC-1")
    } == {PaymentStatus.PARTIAL}


def test_cash_month_total_and_flag_rollback() -> None:
    engine = _engine(cash_monthly_ceiling=20000)
    _ordered(engine)
    for invoice_id in ("FAC-1", "FAC-2"):
        ids = [
            engine.deliveries.record_delivery("BC-1", v, Decimal("350") * v)[0].delivery_id
            for v in (6, 4)
        ]
        engine.invoicing.generate_invoice(ids, invoice_id=invoice_id)

    engine.payments.apply_payment("FAC-1", 15960, method=PaymentMethod.CASH)
    assert engine.store.cash_month_total("CLI-1", "2026-03") == Decimal("15960.00")

    with pytest.raises(CashComplianceFlagged):
        engine.payments.apply_payment("FAC-2", 15960, method=PaymentMethod.CASH)
    assert engine.store.get_invoice("FAC-2").status == PaymentStatus.PENDING
    assert CashMonthRecord.objects.get(counterparty_id="CLI-1", month="2026-03").total == Decimal("15960.00")

    engine.payments.apply_payment(
        "FAC-2", 15960, method=PaymentMethod.CASH,
        override=ComplianceOverride("dir-1", "supervisor", "end of site"),
    )
    records = engine.store.list_cash_payments("CLI-1", "2026-03")
    assert [r.penalty_cost for r in records] == [Decimal("0"), Decimal("755.10")]
    assert engine.store.cash_month_total("CLI-1", "2026-03") == Decimal("31920.00")


def test_overdue_refresh_persists_counter() -> None:
    engine = _engine()
    _ordered(engine)
    delivery, _ = engine.deliveries.record_delivery("BC-1", 6, 2100)
    engine.invoicing.generate_invoice([delivery.delivery_id], invoice_id="FAC-1")
    overdue = engine.invoicing.refresh_overdue(date(2026, 4, 5))
    assert [i.invoice_id for i in overdue] == ["FAC-1"]
    assert engine.store.get_invoice("FAC-1").days_overdue == 5


def test_engine_config_from_settings(settings) -> None:
    settings.RMX_ENGINE = {"maxVehicleVolumeM3": 10, "creditGateMode": "enforced"}
    config = load_engine_config()
    assert config.max_vehicle_volume_m3 == Decimal("10")
    assert config.credit_gate_enforced

    engine = build_engine(store=DjangoEngineStore(), config=config, clock=FixedClock(NOW))
    _ordered(engine)
    with pytest.raises(VolumeOutOfRange):
        engine.deliveries.record_delivery("BC-1", 11, 3850)


def test_build_engine_defaults_to_settings(settings) -> None:
    settings.RMX_ENGINE = {"maxVehicleVolumeM3": 8, "cashMonthlyCeiling": 30000}
    engine = build_engine(store=DjangoEngineStore(), clock=FixedClock(NOW))
    assert engine.config.max_vehicle_volume_m3 == Decimal("8")
    assert engine.payments.check_cash("CLI-1", 31000).flagged


def test_build_engine_rejects_unknown_setting(settings) -> None:
    settings.RMX_ENGINE = {"maxTruckVolume": 8}
    with pytest.raises(InvalidInput, match="maxTruckVolume"):
        build_engine()
