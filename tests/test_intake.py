"""
Tests for intake format detection and mg normalization.

Test scenarios:
1. Legacy buckets reproduce the published interpolation figures
2. Numeric servings follow base + servings * per-serving mg
3. Malformed values fall back to the bucket "7" default with a warning
4. Results are identical with the conversion cache enabled or disabled
"""

import json
from pathlib import Path

import pytest

from potions.constants import (
    BASE_INTAKE_AMOUNTS,
    LEGACY_BUCKET_MIDPOINTS,
    LEGACY_INTAKE_VALUES,
    SERVING_AMOUNTS,
    WEEKLY_INTAKE_INCREMENTS,
)
from potions.errors import UnknownElectrolyteError
from potions.intake import (
    ConversionCache,
    IntakeNormalizer,
    analyze_intakes,
    convert_all_intakes_to_mg,
    convert_intake,
    convert_intake_to_mg,
    convert_mg_to_servings,
    detect_format,
    detect_intake_formats,
    is_legacy_format,
    parse_serving_count,
)
from potions.schemas import ConversionSource, Electrolyte, IntakeFormat, SurveyRecord

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture
def mixed_record():
    with open(FIXTURES / "survey_mixed_formats.json") as f:
        return SurveyRecord.model_validate(json.load(f))


# Format detection


@pytest.mark.parametrize("value", list(LEGACY_INTAKE_VALUES))
def test_legacy_tokens_detected(value):
    assert is_legacy_format(value)
    assert detect_format(value) == IntakeFormat.LEGACY


@pytest.mark.parametrize("value", ["3.5", "8", "15", "1-2", "lots", " 7", "7 "])
def test_everything_else_is_numeric(value):
    assert detect_format(value) == IntakeFormat.NUMERIC


@pytest.mark.parametrize(
    "value, expected",
    [("3.5", 3.5), ("0", 0.0), (".5", 0.5), ("4.", 4.0), ("-1", None), ("1e3", None),
     ("abc", None), ("", None), ("nan", None), ("inf", None)],
)
def test_parse_serving_count(value, expected):
    assert parse_serving_count(value) == expected


# Legacy conversion


@pytest.mark.parametrize(
    "electrolyte, bucket, mg",
    [
        ("sodium", "0", 1500),
        ("sodium", "7", 2000),
        ("sodium", "14", 2500),
        ("potassium", "0", 2000),
        ("potassium", "14", 2800),
        ("magnesium", "0", 200),
        ("magnesium", "14", 400),
        ("calcium", "0", 800),
        ("calcium", "14", 1400),
    ],
)
def test_published_legacy_figures(electrolyte, bucket, mg):
    assert convert_intake_to_mg(bucket, electrolyte) == pytest.approx(mg, abs=1e-9)


@pytest.mark.parametrize("electrolyte", [e.value for e in Electrolyte])
@pytest.mark.parametrize("bucket", list(LEGACY_INTAKE_VALUES))
def test_legacy_interpolation(electrolyte, bucket):
    expected = (
        BASE_INTAKE_AMOUNTS[electrolyte]
        + LEGACY_BUCKET_MIDPOINTS[bucket] / 7 * WEEKLY_INTAKE_INCREMENTS[electrolyte]
    )
    conversion = convert_intake(bucket, electrolyte)

    assert conversion.mg == pytest.approx(expected, abs=1e-9)
    assert conversion.source == ConversionSource.LEGACY_INTAKE_ESTIMATES
    assert conversion.warning is None


# Numeric conversion


@pytest.mark.parametrize("electrolyte", [e.value for e in Electrolyte])
@pytest.mark.parametrize("servings", ["0.0", "0.5", "1", "3.5", "12.8", "60"])
def test_numeric_conversion(electrolyte, servings):
    conversion = convert_intake(servings, electrolyte)

    assert conversion.mg == pytest.approx(
        BASE_INTAKE_AMOUNTS[electrolyte] + float(servings) * SERVING_AMOUNTS[electrolyte]
    )
    assert conversion.format == IntakeFormat.NUMERIC
    assert conversion.source == ConversionSource.DIRECT_NUMERIC


def test_json_number_is_accepted():
    assert convert_intake_to_mg(3.5, "potassium") == 3400


# Fallbacks


@pytest.mark.parametrize("value", [None, ""])
def test_missing_value_uses_default_silently(value):
    conversion = convert_intake(value, "sodium")

    assert conversion.mg == 2000
    assert conversion.warning is None
    assert conversion.used_default


@pytest.mark.parametrize("value", ["lots", "-2", "3,5", "NaN", "1e2", "two"])
def test_malformed_value_uses_default_with_warning(value):
    conversion = convert_intake(value, "magnesium")

    assert conversion.mg == convert_intake_to_mg("7", "magnesium")
    assert conversion.warning is not None
    assert conversion.warning.startswith("magnesium-intake: could not parse")
    assert conversion.used_default


def test_unknown_electrolyte_raises():
    with pytest.raises(UnknownElectrolyteError) as exc_info:
        convert_intake("7", "iron")

    assert exc_info.value.code == "INVALID_ELECTROLYTE"


def test_reverse_conversion():
    assert convert_mg_to_servings(2000, "sodium") == pytest.approx(1.0)
    assert convert_mg_to_servings(3400, "potassium") == pytest.approx(3.5)
    assert convert_mg_to_servings(100, "magnesium") == 0.0


# Whole-record conversion


def test_mixed_format_record(mixed_record):
    formats = detect_intake_formats(mixed_record)
    converted = convert_all_intakes_to_mg(mixed_record)

    assert formats == {
        "sodium": IntakeFormat.LEGACY,
        "potassium": IntakeFormat.NUMERIC,
        "magnesium": IntakeFormat.LEGACY,
        "calcium": IntakeFormat.NUMERIC,
    }
    assert converted.potassium == 2000 + 3.5 * 400 == 3400
    assert converted.calcium == pytest.approx(800 + 12.8 * 300)
    assert converted.sodium == pytest.approx(1500 + 9 / 7 * 500)


def test_analysis_collects_conversion_warnings():
    record = SurveyRecord.model_validate({"sodiumIntake": "lots", "calciumIntake": "2"})
    analysis = analyze_intakes(record)

    assert analysis.converted.sodium == 2000
    assert analysis.converted.calcium == 1400
    assert len(analysis.warnings) == 1
    assert "sodium-intake" in analysis.warnings[0]


def test_conversion_is_idempotent_with_and_without_cache(mixed_record):
    cached = IntakeNormalizer(ConversionCache(capacity=10))
    uncached = IntakeNormalizer()

    first = cached.convert_all_to_mg(mixed_record)
    second = cached.convert_all_to_mg(mixed_record)

    assert first == second == uncached.convert_all_to_mg(mixed_record)
    assert first == convert_all_intakes_to_mg(mixed_record)


# Cache


def test_cache_hits_and_misses():
    cache = ConversionCache(capacity=10)
    normalizer = IntakeNormalizer(cache)

    normalizer.convert("7", "sodium")
    normalizer.convert("7", "sodium")
    normalizer.convert(7, "sodium")

    assert cache.misses == 1
    assert cache.hits == 2
    assert "sodium:7" in cache
    assert len(cache) == 1


def test_cache_clears_wholesale_when_full():
    cache = ConversionCache(capacity=2)
    normalizer = IntakeNormalizer(cache)

    normalizer.convert("1", "sodium")
    normalizer.convert("2", "sodium")
    assert len(cache) == 2

    normalizer.convert("3", "sodium")
    assert len(cache) == 1
    assert "sodium:3" in cache
    assert "sodium:1" not in cache


def test_cache_capacity_must_be_positive():
    with pytest.raises(ValueError):
        ConversionCache(capacity=0)
