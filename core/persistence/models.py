"""
RMX Persistence - Relational Order-to-Cash State
================================================
One row per engine entity. Rows are written only by DjangoEngineStore,
inside transaction.atomic() with select_for_update() row locks on the
order or client being changed.
"""

from __future__ import annotations

from django.db import models

MONEY = {"max_digits": 16, "decimal_places": 2}
VOLUME = {"max_digits": 10, "decimal_places": 3}
MASS = {"max_digits": 14, "decimal_places": 3}
RATE = {"max_digits": 8, "decimal_places": 2}


class ClientRecord(models.Model):
    client_id = models.CharField(max_length=64, primary_key=True)
    name = models.CharField(max_length=255)
    credit_ceiling = models.DecimalField(**MONEY)
    credit_used = models.DecimalField(default=0, **MONEY)
    payment_term_days = models.PositiveIntegerField(default=30)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "rmx_clients"
        ordering = ["client_id"]

    def __str__(self) -> str:
        return f"{self.client_id} ({self.name})"


class QuoteRecord(models.Model):
    quote_id = models.CharField(max_length=64, primary_key=True)
    client_id = models.CharField(max_length=64, db_index=True)
    formula_id = models.CharField(max_length=64)
    volume_m3 = models.DecimalField(**VOLUME)
    unit_price = models.DecimalField(**MONEY)
    tax_rate_pct = models.DecimalField(**RATE)
    net_amount = models.DecimalField(**MONEY)
    total_amount = models.DecimalField(**MONEY)
    status = models.CharField(max_length=32)
    technical_validated = models.BooleanField(default=False)
    administrative_validated = models.BooleanField(default=False)
    rejection_reason = models.TextField(blank=True, default="")
    history = models.JSONField(default=list)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "rmx_quotes"
        ordering = ["quote_id"]


class OrderRecord(models.Model):
    order_id = models.CharField(max_length=64, primary_key=True)
    client_id = models.CharField(max_length=64, db_index=True)
    formula_id = models.CharField(max_length=64)
    quote_id = models.CharField(max_length=64, unique=True)
    unit_price = models.DecimalField(**MONEY)
    ordered = models.DecimalField(**VOLUME)
    delivered = models.DecimalField(**VOLUME)
    remaining = models.DecimalField(**VOLUME)
    status = models.CharField(max_length=16)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "rmx_orders"
        ordering = ["order_id"]


class DeliveryRecord(models.Model):
    delivery_id = models.CharField(max_length=64, primary_key=True)
    order_id = models.CharField(max_length=64, db_index=True)
    client_id = models.CharField(max_length=64, db_index=True)
    formula_id = models.CharField(max_length=64)
    volume_m3 = models.DecimalField(**VOLUME)
    unit_price = models.DecimalField(**MONEY)
    actual_cement_kg = models.DecimalField(**MASS)
    theoretical_cement_kg = models.DecimalField(**MASS)
    variance_pct = models.DecimalField(**RATE)
    technical_validated = models.BooleanField()
    delivered_on = models.DateField(null=True, blank=True)
    actual_admixture_l = models.DecimalField(null=True, blank=True, **MASS)
    payment_status = models.CharField(max_length=16)
    invoice_id = models.CharField(max_length=64, null=True, blank=True, db_index=True)

    class Meta:
        db_table = "rmx_deliveries"
        ordering = ["delivery_id"]


class InvoiceRecord(models.Model):
    invoice_id = models.CharField(max_length=64, primary_key=True)
    client_id = models.CharField(max_length=64, db_index=True)
    delivery_ids = models.JSONField(default=list)
    net_amount = models.DecimalField(**MONEY)
    tax_rate_pct = models.DecimalField(**RATE)
    tax_amount = models.DecimalField(**MONEY)
    total_amount = models.DecimalField(**MONEY)
    issued_on = models.DateField()
    due_on = models.DateField()
    status = models.CharField(max_length=16)
    amount_paid = models.DecimalField(default=0, **MONEY)
    credit_accrued = models.DecimalField(default=0, **MONEY)
    days_overdue = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "rmx_invoices"
        ordering = ["invoice_id"]


class CashMonthRecord(models.Model):
    """Lock anchor and running total for one counterparty-month."""

    counterparty_id = models.CharField(max_length=64)
    month = models.CharField(max_length=7)
    total = models.DecimalField(default=0, **MONEY)

    class Meta:
        db_table = "rmx_cash_months"
        constraints = [
            models.UniqueConstraint(
                fields=["counterparty_id", "month"],
                name="uniq_cash_counterparty_month",
            ),
        ]


class CashPaymentRecord(models.Model):
    payment_id = models.CharField(max_length=64, primary_key=True)
    counterparty_id = models.CharField(max_length=64)
    month = models.CharField(max_length=7)
    amount = models.DecimalField(**MONEY)
    declared_source = models.CharField(max_length=255)
    declared_on = models.DateField()
    method = models.CharField(max_length=16)
    invoice_id = models.CharField(max_length=64, null=True, blank=True)
    penalty_cost = models.DecimalField(default=0, **MONEY)
    override_actor_id = models.CharField(max_length=64, null=True, blank=True)
    override_reason = models.TextField(blank=True, default="")
    recorded_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "rmx_cash_payments"
        ordering = ["declared_on", "recorded_at"]
        indexes = [
            models.Index(fields=["counterparty_id", "month"], name="idx_cash_cp_month"),
        ]
