"""
Intake format detection and milligram normalization.

Survey intake answers arrive in one of two self-describing encodings:
- Legacy buckets: weekly servings of high-intake foods ("0", "1-3", ... "14")
- Numeric servings: a direct decimal serving count ("3.5")

Both are converted to a daily dietary mg estimate per electrolyte. Conversion
never raises on a bad value; it falls back to the bucket "7" default and
reports a warning on the returned IntakeConversion instead.
"""

import math
import re
from typing import Any, Callable, Dict, Optional, Union

from loguru import logger

from potions.constants import (
    BASE_INTAKE_AMOUNTS,
    DEFAULT_INTAKE_VALUE,
    LEGACY_INTAKE_ESTIMATES,
    LEGACY_INTAKE_VALUES,
    SERVING_AMOUNTS,
)
from potions.errors import UnknownElectrolyteError
from potions.schemas import (
    ConversionSource,
    Electrolyte,
    ElectrolyteAmounts,
    IntakeAnalysis,
    IntakeConversion,
    IntakeFormat,
    SurveyRecord,
    coerce_intake_value,
    intake_field_label,
)

_DECIMAL = re.compile(r"^(\d+(\.\d*)?|\.\d+)$")


# ============================================================================
# Format Detection
# ============================================================================


def is_legacy_format(value: Any) -> bool:
    """True iff value is exactly one of the seven legacy bucket tokens."""
    return isinstance(value, str) and value in LEGACY_INTAKE_VALUES


def detect_format(value: Any) -> IntakeFormat:
    """
    Classify an intake value by its shape alone.

    Anything that is not a legacy bucket is reported as numeric; whether it
    actually parses is checked by the validator and the converter.
    """
    return IntakeFormat.LEGACY if is_legacy_format(value) else IntakeFormat.NUMERIC


def parse_serving_count(value: Any) -> Optional[float]:
    """
    Parse a numeric serving count.

    Returns:
        The count as a float, or None if value is not a non-negative decimal
    """
    if not isinstance(value, str) or not _DECIMAL.match(value):
        return None
    number = float(value)
    return number if math.isfinite(number) else None


def to_electrolyte(electrolyte: Union[Electrolyte, str]) -> Electrolyte:
    """
    Resolve an electrolyte name.

    Raises:
        UnknownElectrolyteError: If the name is not one of the four electrolytes
    """
    try:
        return Electrolyte(electrolyte)
    except ValueError:
        raise UnknownElectrolyteError(electrolyte)


# ============================================================================
# Conversion
# ============================================================================


def _default_conversion(
    electrolyte: Electrolyte, value: str, warning: Optional[str] = None
) -> IntakeConversion:
    return IntakeConversion(
        electrolyte=electrolyte,
        value=value,
        format=IntakeFormat.LEGACY if not value else IntakeFormat.NUMERIC,
        mg=LEGACY_INTAKE_ESTIMATES[electrolyte.value][DEFAULT_INTAKE_VALUE],
        source=ConversionSource.LEGACY_INTAKE_ESTIMATES,
        warning=warning,
    )


def convert_intake(value: Any, electrolyte: Union[Electrolyte, str]) -> IntakeConversion:
    """
    Convert one intake value to a daily mg estimate.

    - Missing/empty: bucket "7" default
    - Legacy bucket: table lookup (base + midpoint/7 * weekly increment)
    - Numeric: base + servings * per-serving mg
    - Anything else: bucket "7" default with a warning

    Args:
        value: Intake value in either format (None or "" when not supplied)
        electrolyte: Which electrolyte the value describes

    Returns:
        IntakeConversion with mg, detected format and conversion source

    Raises:
        UnknownElectrolyteError: If electrolyte is not recognized
    """
    electrolyte = to_electrolyte(electrolyte)
    text = coerce_intake_value(value)
    text = "" if text is None else str(text)

    if not text:
        return _default_conversion(electrolyte, text)

    if is_legacy_format(text):
        return IntakeConversion(
            electrolyte=electrolyte,
            value=text,
            format=IntakeFormat.LEGACY,
            mg=LEGACY_INTAKE_ESTIMATES[electrolyte.value][text],
            source=ConversionSource.LEGACY_INTAKE_ESTIMATES,
        )

    servings = parse_serving_count(text)
    if servings is not None:
        return IntakeConversion(
            electrolyte=electrolyte,
            value=text,
            format=IntakeFormat.NUMERIC,
            mg=BASE_INTAKE_AMOUNTS[electrolyte.value]
            + servings * SERVING_AMOUNTS[electrolyte.value],
            source=ConversionSource.DIRECT_NUMERIC,
        )

    default_mg = LEGACY_INTAKE_ESTIMATES[electrolyte.value][DEFAULT_INTAKE_VALUE]
    warning = (
        f"{intake_field_label(electrolyte)}: could not parse '{text}', "
        f"using default of {default_mg:g} mg"
    )
    logger.warning(warning)
    return _default_conversion(electrolyte, text, warning)


def convert_intake_to_mg(value: Any, electrolyte: Union[Electrolyte, str]) -> float:
    """Convert one intake value to mg. Never raises for a malformed value."""
    return convert_intake(value, electrolyte).mg


def convert_mg_to_servings(mg: float, electrolyte: Union[Electrolyte, str]) -> float:
    """
    Reverse conversion: how many numeric servings a daily mg figure represents.

    Amounts below the dietary base map to zero servings.
    """
    electrolyte = to_electrolyte(electrolyte)
    servings = (mg - BASE_INTAKE_AMOUNTS[electrolyte.value]) / SERVING_AMOUNTS[electrolyte.value]
    return max(0.0, servings)


# ============================================================================
# Memoization
# ============================================================================


class ConversionCache:
    """
    Bounded memo of intake conversions keyed by "<electrolyte>:<value>".

    When the cache reaches capacity it is cleared wholesale before the next
    insert. It is owned by whoever builds the normalizer and is never
    required for correct results.
    """

    def __init__(self, capacity: int = 1000):
        if capacity < 1:
            raise ValueError("Cache capacity must be at least 1")
        self.capacity = capacity
        self._entries: Dict[str, IntakeConversion] = {}
        self.hits = 0
        self.misses = 0

    def get_or_compute(
        self, key: str, compute: Callable[[], IntakeConversion]
    ) -> IntakeConversion:
        cached = self._entries.get(key)
        if cached is not None:
            self.hits += 1
            return cached

        self.misses += 1
        if len(self._entries) >= self.capacity:
            logger.debug(f"Conversion cache full ({self.capacity} entries), clearing")
            self._entries.clear()

        result = compute()
        self._entries[key] = result
        return result

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries


# ============================================================================
# Normalizer
# ============================================================================


class IntakeNormalizer:
    """
    Converts all four intake fields of a survey record to mg.

    Fields are independent; there is no coupling between electrolytes at this
    stage.
    """

    def __init__(self, cache: Optional[ConversionCache] = None):
        """
        Args:
            cache: Optional bounded cache; None disables memoization
        """
        self.cache = cache

    def convert(self, value: Any, electrolyte: Union[Electrolyte, str]) -> IntakeConversion:
        if self.cache is None:
            return convert_intake(value, electrolyte)

        electrolyte = to_electrolyte(electrolyte)
        text = coerce_intake_value(value)
        key = f"{electrolyte.value}:{'' if text is None else text}"
        return self.cache.get_or_compute(key, lambda: convert_intake(value, electrolyte))

    def convert_to_mg(self, value: Any, electrolyte: Union[Electrolyte, str]) -> float:
        return self.convert(value, electrolyte).mg

    def convert_all(self, record: SurveyRecord) -> Dict[Electrolyte, IntakeConversion]:
        return {e: self.convert(record.intake_value(e), e) for e in Electrolyte}

    def convert_all_to_mg(self, record: SurveyRecord) -> ElectrolyteAmounts:
        conversions = self.convert_all(record)
        return ElectrolyteAmounts(**{e.value: c.mg for e, c in conversions.items()})

    def detect_formats(self, record: SurveyRecord) -> Dict[str, IntakeFormat]:
        return {
            e.value: detect_format(record.intake_value(e)) if record.intake_value(e)
            else IntakeFormat.LEGACY
            for e in Electrolyte
        }

    def analyze(self, record: SurveyRecord) -> IntakeAnalysis:
        """Formats, mg amounts and conversion warnings for all intake fields."""
        conversions = self.convert_all(record)
        return IntakeAnalysis(
            formats=self.detect_formats(record),
            converted=ElectrolyteAmounts(
                **{e.value: c.mg for e, c in conversions.items()}
            ),
            warnings=[c.warning for c in conversions.values() if c.warning],
        )


def convert_all_intakes_to_mg(
    record: SurveyRecord, cache: Optional[ConversionCache] = None
) -> ElectrolyteAmounts:
    """Convert the record's four intake fields to mg."""
    return IntakeNormalizer(cache).convert_all_to_mg(record)


def detect_intake_formats(record: SurveyRecord) -> Dict[str, IntakeFormat]:
    return IntakeNormalizer().detect_formats(record)


def analyze_intakes(
    record: SurveyRecord, cache: Optional[ConversionCache] = None
) -> IntakeAnalysis:
    return IntakeNormalizer(cache).analyze(record)
