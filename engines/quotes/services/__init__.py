"""
RMX Quote Engine — Application Service
========================================
Loads, transitions and saves quotes; notifies subscribers after save.
Transitions on one client's quotes are serialized on the client scope.
"""

from __future__ import annotations

import logging
from typing import Optional

from core.config.rules import EngineConfig
from core.errors import FormulaOutOfSpec
from core.events import SubscriberRegistry, publish
from core.time.clock import Clock, get_default_clock
from engines.formulas.catalog import FormulaRegistry
from engines.quotes import quote_engine
from engines.quotes.events import (
    QUOTE_APPROVED,
    QUOTE_CREATED,
    QUOTE_REJECTED,
    QUOTE_TECHNICALLY_APPROVED,
    build_quote_payload,
    build_quote_rejected_payload,
)
from engines.quotes.pricing import (
    MaterialPrices,
    PriceBreakdown,
    price_breakdown,
    theoretical_unit_cost,
)
from engines.quotes.quote_engine import Quote

logger = logging.getLogger("rmx.quotes")


class QuoteService:

    def __init__(
        self,
        store,
        formulas: FormulaRegistry,
        config: Optional[EngineConfig] = None,
        clock: Optional[Clock] = None,
        subscribers: Optional[SubscriberRegistry] = None,
    ):
        self._store = store
        self._formulas = formulas
        self._config = config or EngineConfig()
        self._clock = clock or get_default_clock()
        self._subscribers = subscribers

    def _notify(self, event_type: str, payload: dict) -> None:
        publish(self._subscribers, self._clock, event_type, payload["quote_id"], payload)

    def price(
        self,
        formula_id: str,
        prices: MaterialPrices,
        volume,
        distance_km=20,
    ) -> PriceBreakdown:
        """Minimum selling price for a formula at current material prices."""
        formula = self._formulas.get(formula_id)
        return price_breakdown(
            theoretical_unit_cost(formula, prices), volume, distance_km
        )

    def create_quote(
        self,
        client_id: str,
        formula_id: str,
        volume,
        unit_price,
        tax_rate_pct=None,
        *,
        quote_id: Optional[str] = None,
        actor_id: str = "system",
    ) -> Quote:
        client = self._store.get_client(client_id)
        formula = self._formulas.get(formula_id)
        quote = quote_engine.create_quote(
            client, formula, volume, unit_price,
            self._config.default_tax_rate_pct if tax_rate_pct is None else tax_rate_pct,
            quote_id=quote_id,
        )
        with self._store.client_transaction(client_id):
            self._store.save_quote(quote)
        logger.info(
            f"Quote created: {quote.quote_id} for {client_id} "
            f"({quote.volume_m3} m3 {formula_id}, total {quote.total_amount})"
        )
        self._notify(QUOTE_CREATED, build_quote_payload(quote, actor_id))
        return quote

    def validate_technical(self, quote_id: str, *, actor_id: str = "system") -> Quote:
        client_id = self._store.get_quote(quote_id).client_id
        with self._store.client_transaction(client_id):
            quote = self._store.get_quote(quote_id)
            formula = self._formulas.get(quote.formula_id)
            try:
                quote = quote_engine.validate_technical(
                    quote, formula, self._config,
                    actor_id=actor_id, at=self._clock.now_utc(),
                )
            except FormulaOutOfSpec as exc:
                logger.warning(f"Technical validation refused for {quote_id}: {exc}")
                raise
            self._store.save_quote(quote)
        logger.info(f"Quote {quote_id} technically approved by {actor_id}")
        self._notify(QUOTE_TECHNICALLY_APPROVED, build_quote_payload(quote, actor_id))
        return quote

    def validate_administrative(self, quote_id: str, *, actor_id: str = "system") -> Quote:
        client_id = self._store.get_quote(quote_id).client_id
        with self._store.client_transaction(client_id):
            quote = quote_engine.validate_administrative(
                self._store.get_quote(quote_id),
                actor_id=actor_id, at=self._clock.now_utc(),
            )
            self._store.save_quote(quote)
        logger.info(f"Quote {quote_id} approved by {actor_id}")
        self._notify(QUOTE_APPROVED, build_quote_payload(quote, actor_id))
        return quote

    def reject(self, quote_id: str, reason: str, *, actor_id: str = "system") -> Quote:
        client_id = self._store.get_quote(quote_id).client_id
        with self._store.client_transaction(client_id):
            quote = quote_engine.reject(
                self._store.get_quote(quote_id), reason,
                actor_id=actor_id, at=self._clock.now_utc(),
            )
            self._store.save_quote(quote)
        logger.info(f"Quote {quote_id} rejected by {actor_id}: {quote.rejection_reason}")
        self._notify(QUOTE_REJECTED, build_quote_rejected_payload(quote, actor_id))
        return quote
