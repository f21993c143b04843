from django.db import migrations, models


MONEY = {"max_digits": 16, "decimal_places": 2}
VOLUME = {"max_digits": 10, "decimal_places": 3}
MASS = {"max_digits": 14, "decimal_places": 3}
RATE = {"max_digits": 8, "decimal_places": 2}


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="ClientRecord",
            fields=[
                ("client_id", models.CharField(max_length=64, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=255)),
                ("credit_ceiling", models.DecimalField(**MONEY)),
                ("credit_used", models.DecimalField(default=0, **MONEY)),
                ("payment_term_days", models.PositiveIntegerField(default=30)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "rmx_clients",
                "ordering": ["client_id"],
            },
        ),
        migrations.CreateModel(
            name="QuoteRecord",
            fields=[
                ("quote_id", models.CharField(max_length=64, primary_key=True, serialize=False)),
                ("client_id", models.CharField(db_index=True, max_length=64)),
                ("formula_id", models.CharField(max_length=64)),
                ("volume_m3", models.DecimalField(**VOLUME)),
                ("unit_price", models.DecimalField(**MONEY)),
                ("tax_rate_pct", models.DecimalField(**RATE)),
                ("net_amount", models.DecimalField(**MONEY)),
                ("total_amount", models.DecimalField(**MONEY)),
                ("status", models.CharField(max_length=32)),
                ("technical_validated", models.BooleanField(default=False)),
                ("administrative_validated", models.BooleanField(default=False)),
                ("rejection_reason", models.TextField(blank=True, default="")),
                ("history", models.JSONField(default=list)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "rmx_quotes",
                "ordering": ["quote_id"],
            },
        ),
        migrations.CreateModel(
            name="OrderRecord",
            fields=[
                ("order_id", models.CharField(max_length=64, primary_key=True, serialize=False)),
                ("client_id", models.CharField(db_index=True, max_length=64)),
                ("formula_id", models.CharField(max_length=64)),
                ("quote_id", models.CharField(max_length=64, unique=True)),
                ("unit_price", models.DecimalField(**MONEY)),
                ("ordered", models.DecimalField(**VOLUME)),
                ("delivered", models.DecimalField(**VOLUME)),
                ("remaining", models.DecimalField(**VOLUME)),
                ("status", models.CharField(max_length=16)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "rmx_orders",
                "ordering": ["order_id"],
            },
        ),
        migrations.CreateModel(
            name="DeliveryRecord",
            fields=[
                ("delivery_id", models.CharField(max_length=64, primary_key=True, serialize=False)),
                ("order_id", models.CharField(db_index=True, max_length=64)),
                ("client_id", models.CharField(db_index=True, max_length=64)),
                ("formula_id", models.CharField(max_length=64)),
                ("volume_m3", models.DecimalField(**VOLUME)),
                ("unit_price", models.DecimalField(**MONEY)),
                ("actual_cement_kg", models.DecimalField(**MASS)),
                ("theoretical_cement_kg", models.DecimalField(**MASS)),
                ("variance_pct", models.DecimalField(**RATE)),
                ("technical_validated", models.BooleanField()),
                ("delivered_on", models.DateField(blank=True, null=True)),
                ("actual_admixture_l", models.DecimalField(blank=True, null=True, **MASS)),
                ("payment_status", models.CharField(max_length=16)),
                ("invoice_id", models.CharField(blank=True, db_index=True, max_length=64, null=True)),
            ],
            options={
                "db_table": "rmx_deliveries",
                "ordering": ["delivery_id"],
            },
        ),
        migrations.CreateModel(
            name="InvoiceRecord",
            fields=[
                ("invoice_id", models.CharField(max_length=64, primary_key=True, serialize=False)),
                ("client_id", models.CharField(db_index=True, max_length=64)),
                ("delivery_ids", models.JSONField(default=list)),
                ("net_amount", models.DecimalField(**MONEY)),
                ("tax_rate_pct", models.DecimalField(**RATE)),
                ("tax_amount", models.DecimalField(**MONEY)),
                ("total_amount", models.DecimalField(**MONEY)),
                ("issued_on", models.DateField()),
                ("due_on", models.DateField()),
                ("status", models.CharField(max_length=16)),
                ("amount_paid", models.DecimalField(default=0, **MONEY)),
                ("credit_accrued", models.DecimalField(default=0, **MONEY)),
                ("days_overdue", models.PositiveIntegerField(default=0)),
            ],
            options={
                "db_table": "rmx_invoices",
                "ordering": ["invoice_id"],
            },
        ),
        migrations.CreateModel(
            name="CashMonthRecord",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("counterparty_id", models.CharField(max_length=64)),
                ("month", models.CharField(max_length=7)),
                ("total", models.DecimalField(default=0, **MONEY)),
            ],
            options={
                "db_table": "rmx_cash_months",
                "constraints": [
                    models.UniqueConstraint(
                        fields=("counterparty_id", "month"),
                        name="uniq_cash_counterparty_month",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="CashPaymentRecord",
            fields=[
                ("payment_id", models.CharField(max_length=64, primary_key=True, serialize=False)),
                ("counterparty_id", models.CharField(max_length=64)),
                ("month", models.CharField(max_length=7)),
                ("amount", models.DecimalField(**MONEY)),
                ("declared_source", models.CharField(max_length=255)),
                ("declared_on", models.DateField()),
                ("method", models.CharField(max_length=16)),
                ("invoice_id", models.CharField(blank=True, max_length=64, null=True)),
                ("penalty_cost", models.DecimalField(default=0, **MONEY)),
                ("override_actor_id", models.CharField(blank=True, max_length=64, null=True)),
                ("override_reason", models.TextField(blank=True, default="")),
                ("recorded_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "db_table": "rmx_cash_payments",
                "ordering": ["declared_on", "recorded_at"],
                "indexes": [
                    models.Index(fields=["counterparty_id", "month"], name="idx_cash_cp_month"),
                ],
            },
        ),
    ]
