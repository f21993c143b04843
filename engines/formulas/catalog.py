"""
RMX Formula Registry — Concrete Mix Catalog
=============================================
Read-only catalog of mix formulas: theoretical material per m³ and
the declared strength class.

RULES (NON-NEGOTIABLE):
- Formulas are immutable reference data
- Registration happens at bootstrap only; after lock() the catalog
  is read-only
- Band checks (cement, water/cement ratio) are NOT done here; the
  Quote Engine's technical validation applies them

Standard formulas (per m³):
    F-B25  cement 350 kg, water 175 L, sand 800 kg, gravel 1000 kg, C25/30
    F-B40  cement 420 kg, water 185 L, sand 750 kg, gravel 1000 kg, C40/50
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from threading import Lock
from typing import Dict, Iterable, List

from core.errors import EntityNotFound, InvalidInput, RegistryLocked
from core.primitives.money import (
    require_non_negative,
    require_positive,
    to_decimal,
)

logger = logging.getLogger("rmx.formulas")


# ══════════════════════════════════════════════════════════════
# FORMULA
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Formula:
    formula_id: str
    name: str
    cement_kg_per_m3: Decimal
    water_l_per_m3: Decimal
    sand_kg_per_m3: Decimal = Decimal("0")
    gravel_kg_per_m3: Decimal = Decimal("0")
    admixture_l_per_m3: Decimal = Decimal("0")
    strength_class: str = ""

    def __post_init__(self):
        if not self.formula_id or not isinstance(self.formula_id, str):
            raise InvalidInput(
                "formula_id", self.formula_id,
                "formula_id must be non-empty string.",
            )
        if not self.name:
            raise InvalidInput("name", self.name, "name must be non-empty.")
        object.__setattr__(self, "cement_kg_per_m3", require_positive(
            self.cement_kg_per_m3, "cement_kg_per_m3"
        ))
        for field_name in (
            "water_l_per_m3",
            "sand_kg_per_m3",
            "gravel_kg_per_m3",
            "admixture_l_per_m3",
        ):
            object.__setattr__(self, field_name, require_non_negative(
                getattr(self, field_name), field_name
            ))

    @property
    def water_cement_ratio(self) -> Decimal:
        """Water mass over cement mass (1 L of water = 1 kg)."""
        return self.water_l_per_m3 / self.cement_kg_per_m3

    def theoretical_cement_kg(self, volume_m3) -> Decimal:
        return self.cement_kg_per_m3 * to_decimal(volume_m3, "volume_m3")

    def to_dict(self) -> dict:
        return {
            "formula_id": self.formula_id,
            "name": self.name,
            "cement_kg_per_m3": str(self.cement_kg_per_m3),
            "water_l_per_m3": str(self.water_l_per_m3),
            "sand_kg_per_m3": str(self.sand_kg_per_m3),
            "gravel_kg_per_m3": str(self.gravel_kg_per_m3),
            "admixture_l_per_m3": str(self.admixture_l_per_m3),
            "strength_class": self.strength_class,
        }


# ══════════════════════════════════════════════════════════════
# REGISTRY
# ══════════════════════════════════════════════════════════════

class FormulaRegistry:
    """
    In-memory formula catalog.

    Populated during bootstrap, then locked. Thread-safe.
    """

    def __init__(self, formulas: Iterable[Formula] = ()):
        self._formulas: Dict[str, Formula] = {}
        self._locked = False
        self._lock = Lock()
        for formula in formulas:
            self.register(formula)

    def register(self, formula: Formula) -> None:
        if not isinstance(formula, Formula):
            raise InvalidInput(
                "formula", formula,
                f"Expected Formula, got {type(formula).__name__}.",
            )
        with self._lock:
            if self._locked:
                raise RegistryLocked("FormulaRegistry")
            if formula.formula_id in self._formulas:
                raise InvalidInput(
                    "formula_id", formula.formula_id,
                    f"Formula '{formula.formula_id}' already registered.",
                )
            self._formulas[formula.formula_id] = formula
        logger.info(f"Formula registered: {formula.formula_id} ({formula.name})")

    def lock(self) -> None:
        with self._lock:
            self._locked = True

    @property
    def is_locked(self) -> bool:
        return self._locked

    def get(self, formula_id: str) -> Formula:
        with self._lock:
            formula = self._formulas.get(formula_id)
        if formula is None:
            raise EntityNotFound("Formula", formula_id)
        return formula

    def list_formulas(self) -> List[Formula]:
        with self._lock:
            return [self._formulas[k] for k in sorted(self._formulas)]

    def __contains__(self, formula_id: str) -> bool:
        with self._lock:
            return formula_id in self._formulas

    def __len__(self) -> int:
        with self._lock:
            return len(self._formulas)


# ══════════════════════════════════════════════════════════════
# STANDARD CATALOG
# ══════════════════════════════════════════════════════════════

STANDARD_FORMULAS = (
    Formula(
        formula_id="F-B25",
        name="B25 S3",
        cement_kg_per_m3=Decimal("350"),
        water_l_per_m3=Decimal("175"),
        sand_kg_per_m3=Decimal("800"),
        gravel_kg_per_m3=Decimal("1000"),
        admixture_l_per_m3=Decimal("2.5"),
        strength_class="C25/30",
    ),
    Formula(
        formula_id="F-B40",
        name="B40 S4",
        cement_kg_per_m3=Decimal("420"),
        water_l_per_m3=Decimal("185"),
        sand_kg_per_m3=Decimal("750"),
        gravel_kg_per_m3=Decimal("1000"),
        admixture_l_per_m3=Decimal("4.0"),
        strength_class="C40/50",
    ),
)


def build_standard_registry(lock: bool = True) -> FormulaRegistry:
    registry = FormulaRegistry(STANDARD_FORMULAS)
    if lock:
        registry.lock()
    return registry
