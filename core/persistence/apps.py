"""
RMX Persistence - App Configuration
===================================
Relational state for clients, quotes, orders, deliveries, invoices and
the monthly cash ledger.
"""

from django.apps import AppConfig


class RmxPersistenceConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "core.persistence"
    label = "rmx_persistence"
    verbose_name = "RMX Order-to-Cash Persistence"
