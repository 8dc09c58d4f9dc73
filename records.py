"""
Health record types and the documents stored for them.

``RecordType`` is the closed set of record kinds the health API accepts; each
kind owns exactly one Mongo collection. ``build_record`` turns a request payload
into the stored document, doing type/range checks only.
"""
from __future__ import annotations

import math
import numbers
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from errors import InvalidInput


class RecordType(str, Enum):
    BLOOD_PRESSURE = "blood-pressure"
    BLOOD_SUGAR = "blood-sugar"
    WEIGHT = "weight"
    MEDICATION = "medication"
    MEDICATION_LOG = "medication-log"

    @property
    def collection(self) -> str:
        return COLLECTIONS[self]

    @property
    def is_reading(self) -> bool:
        return self in (RecordType.BLOOD_PRESSURE, RecordType.BLOOD_SUGAR, RecordType.WEIGHT)

    @classmethod
    def parse(cls, value: Optional[str]) -> "RecordType":
        if value in _ALIASES:
            return _ALIASES[value]
        try:
            return cls(value)
        except ValueError:
            raise InvalidInput("Invalid type")


COLLECTIONS: Dict[RecordType, str] = {
    RecordType.BLOOD_PRESSURE: "blood_pressure",
    RecordType.BLOOD_SUGAR: "blood_sugar",
    RecordType.WEIGHT: "weight",
    RecordType.MEDICATION: "medications",
    RecordType.MEDICATION_LOG: "medication_logs",
}

_missing = set(RecordType) - set(COLLECTIONS)
if _missing:
    raise RuntimeError(f"Record types without a collection: {sorted(t.value for t in _missing)}")

# plural forms used by list queries
_ALIASES = {
    "medications": RecordType.MEDICATION,
    "medication-logs": RecordType.MEDICATION_LOG,
}

# response keys for GET /api/health
RESPONSE_KEYS: Dict[RecordType, str] = {
    RecordType.BLOOD_PRESSURE: "blood_pressure",
    RecordType.BLOOD_SUGAR: "blood_sugar",
    RecordType.WEIGHT: "weight",
    RecordType.MEDICATION: "medications",
    RecordType.MEDICATION_LOG: "medication_logs",
}


class BloodSugarType(str, Enum):
    FASTING = "fasting"
    POST_MEAL = "post-meal"
    RANDOM = "random"
    HBA1C = "hba1c"


class Severity(str, Enum):
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"


WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


# ---------------- Field helpers ----------------
def parse_timestamp(value: Any, default: Optional[datetime] = None) -> Optional[datetime]:
    """ISO-8601 string or datetime -> timezone-aware UTC datetime."""
    if value is None or value == "":
        return default
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            raise InvalidInput(f"Invalid timestamp: {value}")
    else:
        raise InvalidInput(f"Invalid timestamp: {value}")
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _number(data: Dict[str, Any], field: str) -> float:
    value = data.get(field)
    # bool is an int subclass, reject it explicitly
    if isinstance(value, bool) or not isinstance(value, numbers.Real) or not math.isfinite(value):
        raise InvalidInput(f"{field} must be a number")
    if value <= 0:
        raise InvalidInput(f"{field} must be positive")
    return value


def _text(data: Dict[str, Any], field: str, required: bool = False) -> str:
    value = data.get(field)
    if value is None:
        value = ""
    if not isinstance(value, str):
        raise InvalidInput(f"{field} must be a string")
    value = value.strip()
    if required and not value:
        raise InvalidInput(f"Missing required field: {field}")
    return value


def _reminders(value: Any) -> List[Dict[str, Any]]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise InvalidInput("reminders must be an array")
    out = []
    for idx, item in enumerate(value):
        if not isinstance(item, dict) or not isinstance(item.get("time"), str):
            raise InvalidInput(f"Reminder #{idx + 1} needs a time")
        days = item.get("days") or []
        if not isinstance(days, list) or any(str(d).lower() not in WEEKDAYS for d in days):
            raise InvalidInput(f"Reminder #{idx + 1} has invalid days")
        # days is a set; keep weekday order for stable output
        wanted = {str(d).lower() for d in days}
        out.append({"time": item["time"], "days": [d for d in WEEKDAYS if d in wanted]})
    return out


# ---------------- Builders ----------------
def _blood_pressure(data, now):
    return {
        "systolic": _number(data, "systolic"),
        "diastolic": _number(data, "diastolic"),
        "timestamp": parse_timestamp(data.get("timestamp"), now),
        "notes": _text(data, "notes"),
    }


def _blood_sugar(data, now):
    raw_type = data.get("type") or BloodSugarType.RANDOM.value
    try:
        sugar_type = BloodSugarType(raw_type)
    except ValueError:
        raise InvalidInput(f"Invalid blood sugar type: {raw_type}")
    return {
        "value": _number(data, "value"),
        "type": sugar_type.value,
        "timestamp": parse_timestamp(data.get("timestamp"), now),
        "notes": _text(data, "notes"),
    }


def _weight(data, now):
    return {
        "value": _number(data, "value"),
        "timestamp": parse_timestamp(data.get("timestamp"), now),
        "notes": _text(data, "notes"),
    }


def _medication(data, now):
    start_date = parse_timestamp(data.get("start_date"))
    if start_date is None:
        raise InvalidInput("Missing required field: start_date")
    # end_date before start_date is accepted as-is
    return {
        "name": _text(data, "name", required=True),
        "dosage": _text(data, "dosage", required=True),
        "frequency": _text(data, "frequency", required=True),
        "start_date": start_date,
        "end_date": parse_timestamp(data.get("end_date")),
        "reminders": _reminders(data.get("reminders")),
        "notes": _text(data, "notes"),
    }


def _medication_log(data, now):
    taken = data.get("taken")
    if not isinstance(taken, bool):
        raise InvalidInput("taken must be true or false")
    # medication_id is a weak reference, existence is not checked
    return {
        "medication_id": _text(data, "medication_id", required=True),
        "taken": taken,
        "timestamp": parse_timestamp(data.get("timestamp"), now),
        "notes": _text(data, "notes"),
    }


_BUILDERS = {
    RecordType.BLOOD_PRESSURE: _blood_pressure,
    RecordType.BLOOD_SUGAR: _blood_sugar,
    RecordType.WEIGHT: _weight,
    RecordType.MEDICATION: _medication,
    RecordType.MEDICATION_LOG: _medication_log,
}

_missing = set(RecordType) - set(_BUILDERS)
if _missing:
    raise RuntimeError(f"Record types without a builder: {sorted(t.value for t in _missing)}")


def build_record(record_type: RecordType, user_id: str, data: Any, now: datetime) -> Dict[str, Any]:
    """Validate ``data`` and return the document to store for ``record_type``."""
    if not isinstance(data, dict):
        raise InvalidInput("Type and data are required")
    doc = {"user_id": user_id}
    doc.update(_BUILDERS[record_type](data, now))
    doc["created_at"] = now
    return doc


def build_symptom_request(data: Dict[str, Any]) -> Dict[str, Any]:
    """Validate a symptom-analysis request body."""
    symptoms = data.get("symptoms")
    if not isinstance(symptoms, list) or not symptoms:
        raise InvalidInput("Symptoms array is required")
    cleaned = [s.strip() for s in symptoms if isinstance(s, str) and s.strip()]
    if len(cleaned) != len(symptoms):
        raise InvalidInput("Symptoms must be non-empty strings")
    raw_severity = data.get("severity") or Severity.MILD.value
    try:
        severity = Severity(raw_severity)
    except ValueError:
        raise InvalidInput(f"Invalid severity: {raw_severity}")
    return {
        "symptoms": cleaned,
        "additional_info": _text(data, "additional_info"),
        "severity": severity.value,
    }
