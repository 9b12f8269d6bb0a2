"""
Safety band and calcium:magnesium ratio enforcement.

The last numeric stage before assembly. Every electrolyte is clamped into the
use case's [min, max] band, then the Ca:Mg ratio is pulled toward its target
when it falls outside the use case's ratio band. The safety band always wins
over the ratio: calcium is re-clamped after any ratio adjustment.
"""

from typing import List, Tuple

from loguru import logger
from pydantic import BaseModel, Field

from potions.constants import SAFETY_LIMITS, USE_CASE_RATIOS
from potions.schemas import (
    Electrolyte,
    ElectrolyteAmounts,
    RatioOptimization,
    UseCase,
)

RATIO_WITHIN_RANGE = "within range"
RATIO_ADJUSTED = "calcium adjusted toward target"
RATIO_LIMITED = "calcium adjusted, limited by safety band"


class ClampReport(BaseModel):
    """Clamped amounts plus a record of what the clamp changed."""

    amounts: ElectrolyteAmounts
    safety_limits_applied: bool = Field(
        ..., description="True if any band or ratio adjustment changed a value"
    )
    clamped: List[Electrolyte] = Field(
        default_factory=list, description="Electrolytes moved into their safety band"
    )
    ratio: RatioOptimization


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class SafetyClamp:
    """Enforces per-use-case safety bands and the Ca:Mg ratio band."""

    def clamp(self, amounts: ElectrolyteAmounts, use_case: UseCase) -> ElectrolyteAmounts:
        return self.apply(amounts, use_case).amounts

    def apply(self, amounts: ElectrolyteAmounts, use_case: UseCase) -> ClampReport:
        """
        Clamp amounts into the use case's safety bands and fix the Ca:Mg ratio.

        Args:
            amounts: Pre-clamp per-serving amounts
            use_case: Use case selecting the bands

        Returns:
            ClampReport with the final amounts and a record of adjustments
        """
        limits = SAFETY_LIMITS[use_case.value]

        banded, clamped = self._clamp_to_bands(amounts, use_case)
        final, ratio = self._optimize_ratio(banded, use_case)

        for electrolyte in clamped:
            band = limits[electrolyte.value]
            logger.debug(
                f"{electrolyte.value} {amounts.get(electrolyte):.1f} mg clamped into "
                f"[{band['min']}, {band['max']}] for {use_case.value}"
            )

        changed = bool(clamped) or ratio.ratio_adjustment != RATIO_WITHIN_RANGE
        return ClampReport(
            amounts=final,
            safety_limits_applied=changed,
            clamped=clamped,
            ratio=ratio,
        )

    def _clamp_to_bands(
        self, amounts: ElectrolyteAmounts, use_case: UseCase
    ) -> Tuple[ElectrolyteAmounts, List[Electrolyte]]:
        limits = SAFETY_LIMITS[use_case.value]
        clamped = []

        def clamp_one(electrolyte: Electrolyte, amount: float) -> float:
            band = limits[electrolyte.value]
            bounded = _clamp(amount, band["min"], band["max"])
            if bounded != amount:
                clamped.append(electrolyte)
            return bounded

        return amounts.map(clamp_one), clamped

    def _optimize_ratio(
        self, amounts: ElectrolyteAmounts, use_case: UseCase
    ) -> Tuple[ElectrolyteAmounts, RatioOptimization]:
        band = USE_CASE_RATIOS[use_case.value]
        calcium_band = SAFETY_LIMITS[use_case.value]["calcium"]

        # Magnesium band minimums are all positive, so the ratio is defined.
        ratio = amounts.calcium / amounts.magnesium
        adjustment = RATIO_WITHIN_RANGE

        if not band["min"] <= ratio <= band["max"]:
            wanted = amounts.magnesium * band["target"]
            calcium = _clamp(wanted, calcium_band["min"], calcium_band["max"])
            adjustment = RATIO_ADJUSTED if calcium == wanted else RATIO_LIMITED
            logger.debug(
                f"Ca:Mg ratio {ratio:.2f} outside [{band['min']}, {band['max']}] "
                f"for {use_case.value}; calcium {amounts.calcium:.1f} -> {calcium:.1f} mg"
            )
            amounts = amounts.replace(calcium=calcium)
            ratio = amounts.calcium / amounts.magnesium

        return amounts, RatioOptimization(
            calcium_magnesium_ratio=round(ratio, 2),
            target_ratio=band["target"],
            ratio_adjustment=adjustment,
        )
