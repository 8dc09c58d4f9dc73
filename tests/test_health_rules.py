"""
Tests for the health status rules.

Covers:
- blood pressure banding and its priority order
- blood sugar banding per reading type
- weight trend from the two latest readings
- medication adherence, including the all-reminders denominator
- dashboard summary assembly
"""

from __future__ import annotations

from datetime import UTC, date, datetime

import pytest

from health_rules import (
    AdherenceStatus,
    Category,
    Trend,
    classify_blood_pressure,
    classify_blood_sugar,
    color_for,
    health_summary,
    medication_adherence,
    weight_trend,
)

TODAY = date(2026, 3, 10)


def _at(day: int, hour: int = 9) -> datetime:
    return datetime(2026, 3, day, hour, 0, tzinfo=UTC)


@pytest.mark.parametrize(
    ("systolic", "diastolic", "expected"),
    [
        (180, 70, "Hypertensive Crisis"),
        (110, 120, "Hypertensive Crisis"),
        (140, 70, "High BP (Stage 2)"),
        (125, 90, "High BP (Stage 2)"),
        (130, 70, "High BP (Stage 1)"),
        (115, 80, "High BP (Stage 1)"),
        (121, 79, "Elevated"),
        (120, 60, "Elevated"),
        (119, 79, "Normal"),
    ],
)
def test_blood_pressure_bands(systolic: int, diastolic: int, expected: str) -> None:
    assert classify_blood_pressure(systolic, diastolic) == expected


def test_blood_pressure_worst_category_wins() -> None:
    # both readings qualify for several bands; the most severe one is reported
    assert classify_blood_pressure(185, 95) is Category.HYPERTENSIVE_CRISIS
    assert classify_blood_pressure(150, 85) is Category.HIGH_BP_STAGE_2


@pytest.mark.parametrize(
    ("value", "reading_type", "expected"),
    [
        (95, "fasting", "Normal"),
        (100, "fasting", "Prediabetes"),
        (110, "fasting", "Prediabetes"),
        (125, "fasting", "Prediabetes"),
        (126, "fasting", "Diabetes"),
        (139, "post-meal", "Normal"),
        (140, "post-meal", "Prediabetes"),
        (199, "post-meal", "Prediabetes"),
        (200, "post-meal", "Diabetes"),
        (139, "random", "Normal"),
        (150, "random", "Elevated"),
        (205, "random", "High"),
        (205, "hba1c", "High"),
        (150, None, "Elevated"),
    ],
)
def test_blood_sugar_bands(value: float, reading_type: str | None, expected: str) -> None:
    assert classify_blood_sugar(value, reading_type) == expected


def test_category_colors_are_a_lookup() -> None:
    assert color_for(Category.NORMAL) == "text-green-400"
    assert color_for(Category.ELEVATED) == "text-yellow-400"
    assert color_for(Category.HYPERTENSIVE_CRISIS) == "text-red-400"
    assert color_for(classify_blood_sugar(130, "fasting")) == "text-red-400"


@pytest.mark.parametrize(
    ("values", "expected"),
    [
        ([], Trend.NO_TREND),
        ([150], Trend.NO_TREND),
        ([150.2, 150.6, 170.0], Trend.STABLE),
        ([152, 150], Trend.GAINING),
        ([148, 150], Trend.LOSING),
        ([150.5, 150.0], Trend.GAINING),
    ],
)
def test_weight_trend(values: list[float], expected: Trend) -> None:
    assert weight_trend(values) is expected


def test_weight_trend_ignores_older_history() -> None:
    assert weight_trend([150, 150.1, 100, 200]) == "Stable"


def _meds(*reminder_counts: int) -> list[dict]:
    return [
        {"name": f"med-{i}", "reminders": [{"time": "08:00", "days": ["monday"]}] * n}
        for i, n in enumerate(reminder_counts)
    ]


def _logs(taken_today: int, day: int = 10) -> list[dict]:
    return [{"medication_id": "x", "taken": True, "timestamp": _at(day, 8 + i)} for i in range(taken_today)]


def test_adherence_without_reminders() -> None:
    result = medication_adherence([], _logs(3), TODAY)
    assert result.percentage == 0
    assert result.status is AdherenceStatus.NO_MEDICATIONS
    assert result.as_dict() == {"percentage": 0, "status": "No medications", "color": "text-gray-400"}


def test_adherence_excellent() -> None:
    result = medication_adherence(_meds(3, 2), _logs(4), TODAY)
    assert (result.percentage, result.status) == (80, "Excellent")


def test_adherence_bands() -> None:
    assert medication_adherence(_meds(5), _logs(3), TODAY).status == "Good"
    assert medication_adherence(_meds(3), _logs(1), TODAY).status == "Needs improvement"
    assert medication_adherence(_meds(3), _logs(1), TODAY).percentage == 33


def test_adherence_rounds_half_up() -> None:
    assert medication_adherence(_meds(8), _logs(1), TODAY).percentage == 13


def test_adherence_only_counts_taken_logs_from_reference_day() -> None:
    logs = _logs(2) + _logs(3, day=9) + [{"medication_id": "x", "taken": False, "timestamp": _at(10)}]
    assert medication_adherence(_meds(4), logs, TODAY).percentage == 50


def test_adherence_counts_reminders_not_scheduled_for_the_day() -> None:
    # 2026-03-10 is a Tuesday; a Monday-only reminder still counts in the denominator
    meds = [
        {"reminders": [{"time": "08:00", "days": ["monday"]}]},
        {"reminders": [{"time": "20:00", "days": ["tuesday"]}]},
    ]
    assert medication_adherence(meds, _logs(1), TODAY).percentage == 50


def test_adherence_is_not_capped() -> None:
    assert medication_adherence(_meds(1), _logs(2), TODAY).percentage == 200


def test_health_summary_uses_latest_readings() -> None:
    summary = health_summary(
        blood_pressure=[{"systolic": 142, "diastolic": 85}, {"systolic": 110, "diastolic": 70}],
        blood_sugar=[{"value": 95, "type": "fasting"}],
        weight=[{"value": 80.0}, {"value": 81.0}],
        medications=_meds(2),
        medication_logs=_logs(2),
        reference_day=TODAY,
    )
    assert summary["blood_pressure"]["status"] == "High BP (Stage 2)"
    assert summary["blood_sugar"]["status"] == "Normal"
    assert summary["weight"]["trend"] == "Losing"
    assert summary["weight"]["color"] == "text-green-400"
    assert summary["medication_adherence"]["percentage"] == 100


def test_health_summary_empty() -> None:
    summary = health_summary([], [], [], [], [], TODAY)
    assert summary["blood_pressure"] == {"latest": None, "status": None, "color": "text-gray-400"}
    assert summary["weight"]["trend"] == "No trend"
    assert summary["medication_adherence"]["status"] == "No medications"


def test_rules_are_repeatable() -> None:
    meds, logs = _meds(3, 2), _logs(4)
    first = medication_adherence(meds, logs, TODAY)
    assert medication_adherence(meds, logs, TODAY) == first
    assert classify_blood_pressure(135, 85) == classify_blood_pressure(135, 85)
