"""
Health status rules for the dashboard.

- Blood pressure banding (worst category wins)
- Blood sugar banding, thresholds depend on the reading type
- Weight trend from the two most recent readings
- Medication adherence for a reference day

Everything here is pure: no I/O, no clock reads, same input -> same output.
Inputs are taken as plain numbers / Mongo documents; no range validation happens here.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence


class Category(str, Enum):
    HYPERTENSIVE_CRISIS = "Hypertensive Crisis"
    HIGH_BP_STAGE_2 = "High BP (Stage 2)"
    HIGH_BP_STAGE_1 = "High BP (Stage 1)"
    ELEVATED = "Elevated"
    NORMAL = "Normal"
    PREDIABETES = "Prediabetes"
    DIABETES = "Diabetes"
    HIGH = "High"

    def __str__(self) -> str:
        return self.value


class Trend(str, Enum):
    NO_TREND = "No trend"
    STABLE = "Stable"
    GAINING = "Gaining"
    LOSING = "Losing"

    def __str__(self) -> str:
        return self.value


class AdherenceStatus(str, Enum):
    NO_MEDICATIONS = "No medications"
    EXCELLENT = "Excellent"
    GOOD = "Good"
    NEEDS_IMPROVEMENT = "Needs improvement"

    def __str__(self) -> str:
        return self.value


GREEN = "text-green-400"
YELLOW = "text-yellow-400"
RED = "text-red-400"
GRAY = "text-gray-400"

_COLORS: Dict[Enum, str] = {
    Category.HYPERTENSIVE_CRISIS: RED,
    Category.HIGH_BP_STAGE_2: RED,
    Category.HIGH_BP_STAGE_1: YELLOW,
    Category.ELEVATED: YELLOW,
    Category.NORMAL: GREEN,
    Category.PREDIABETES: YELLOW,
    Category.DIABETES: RED,
    Category.HIGH: RED,
    Trend.NO_TREND: GRAY,
    Trend.STABLE: GRAY,
    Trend.GAINING: RED,
    Trend.LOSING: GREEN,
    AdherenceStatus.NO_MEDICATIONS: GRAY,
    AdherenceStatus.EXCELLENT: GREEN,
    AdherenceStatus.GOOD: YELLOW,
    AdherenceStatus.NEEDS_IMPROVEMENT: RED,
}

STABLE_WEIGHT_DELTA = 0.5


def color_for(status: Enum) -> str:
    """Display color class for a category, trend or adherence status."""
    return _COLORS[status]


# ---------------- Classification ----------------
def classify_blood_pressure(systolic: float, diastolic: float) -> Category:
    if systolic >= 180 or diastolic >= 120:
        return Category.HYPERTENSIVE_CRISIS
    if systolic >= 140 or diastolic >= 90:
        return Category.HIGH_BP_STAGE_2
    if systolic >= 130 or diastolic >= 80:
        return Category.HIGH_BP_STAGE_1
    if systolic >= 120 and diastolic < 80:
        return Category.ELEVATED
    return Category.NORMAL


def classify_blood_sugar(value: float, reading_type: Optional[str] = None) -> Category:
    """Band a glucose value (mg/dL).

    ``fasting`` and ``post-meal`` readings use diagnostic thresholds; any other
    type (``random``, ``hba1c``, missing) falls back to the general bands.
    """
    if reading_type == "fasting":
        if value < 100:
            return Category.NORMAL
        if value <= 125:
            return Category.PREDIABETES
        return Category.DIABETES
    if reading_type == "post-meal":
        if value < 140:
            return Category.NORMAL
        if value <= 199:
            return Category.PREDIABETES
        return Category.DIABETES
    if value < 140:
        return Category.NORMAL
    if value < 200:
        return Category.ELEVATED
    return Category.HIGH


# ---------------- Trend / adherence ----------------
def weight_trend(values: Sequence[float]) -> Trend:
    """Compare the latest weight to the previous one. ``values`` is newest first."""
    if len(values) < 2:
        return Trend.NO_TREND
    diff = values[0] - values[1]
    if abs(diff) < STABLE_WEIGHT_DELTA:
        return Trend.STABLE
    if diff > 0:
        return Trend.GAINING
    return Trend.LOSING


@dataclass(frozen=True)
class Adherence:
    percentage: int
    status: AdherenceStatus

    @property
    def color(self) -> str:
        return color_for(self.status)

    def as_dict(self) -> Dict[str, Any]:
        return {"percentage": self.percentage, "status": str(self.status), "color": self.color}


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def _day(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return None


def medication_adherence(
    medications: Iterable[Mapping[str, Any]],
    logs: Iterable[Mapping[str, Any]],
    reference_day: date,
) -> Adherence:
    """Doses marked taken on ``reference_day`` against every reminder on file.

    Reminders are counted across all medications regardless of their weekday set
    or end date, so the percentage can drift from "scheduled today" and can exceed 100.
    """
    total_reminders = sum(len(m.get("reminders") or []) for m in medications)
    target = _day(reference_day)
    taken_today = sum(
        1 for log in logs
        if log.get("taken") is True and _day(log.get("timestamp")) == target
    )

    if total_reminders == 0:
        return Adherence(0, AdherenceStatus.NO_MEDICATIONS)

    percentage = _round_half_up(taken_today / total_reminders * 100)
    if percentage >= 80:
        return Adherence(percentage, AdherenceStatus.EXCELLENT)
    if percentage >= 60:
        return Adherence(percentage, AdherenceStatus.GOOD)
    return Adherence(percentage, AdherenceStatus.NEEDS_IMPROVEMENT)


def _status_entry(status: Optional[Enum]) -> Dict[str, Any]:
    if status is None:
        return {"status": None, "color": GRAY}
    return {"status": str(status), "color": color_for(status)}


def health_summary(
    blood_pressure: List[Mapping[str, Any]],
    blood_sugar: List[Mapping[str, Any]],
    weight: List[Mapping[str, Any]],
    medications: List[Mapping[str, Any]],
    medication_logs: List[Mapping[str, Any]],
    reference_day: date,
) -> Dict[str, Any]:
    """Overview cards: latest BP / sugar status, weight trend, today's adherence.

    Reading lists are expected newest first, as returned by the store.
    """
    bp_status = None
    latest_bp = blood_pressure[0] if blood_pressure else None
    if latest_bp is not None:
        bp_status = classify_blood_pressure(latest_bp["systolic"], latest_bp["diastolic"])

    bs_status = None
    latest_bs = blood_sugar[0] if blood_sugar else None
    if latest_bs is not None:
        bs_status = classify_blood_sugar(latest_bs["value"], latest_bs.get("type"))

    latest_weight = weight[0] if weight else None
    trend = weight_trend([w["value"] for w in weight[:2]])
    adherence = medication_adherence(medications, medication_logs, reference_day)

    return {
        "blood_pressure": {
            "latest": latest_bp,
            **_status_entry(bp_status),
        },
        "blood_sugar": {
            "latest": latest_bs,
            **_status_entry(bs_status),
        },
        "weight": {
            "latest": latest_weight,
            "trend": str(trend),
            "color": color_for(trend),
        },
        "medication_adherence": adherence.as_dict(),
    }
