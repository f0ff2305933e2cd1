"""Record types for the five imported source families.

Records arrive already parsed from the CSV adapters (or from a persisted
snapshot) as camelCase dictionaries. ``from_dict`` is tolerant: a row that
lacks its identifying fields yields ``None`` and the caller drops it, which
is how a structurally broken export row is skipped without failing the
whole import.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .config import DIAGNOSIS_CATEGORY_ALIASES
from .diseases import categorize_disease_name

logger = logging.getLogger(__name__)

_ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}")


class SnapshotFormatError(ValueError):
    """Raised when a payload is not an array of record objects."""


def _pick(data: Dict[str, Any], camel: str, snake: str, default: Any = None) -> Any:
    if camel in data:
        return data[camel]
    return data.get(snake, default)


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


def is_iso_date(value: Optional[str]) -> bool:
    """Return True when ``value`` starts with a valid YYYY-MM-DD date."""
    if not value or not _ISO_DATE_PATTERN.match(value):
        return False
    try:
        date.fromisoformat(value[:10])
    except ValueError:
        return False
    return True


@dataclass(frozen=True)
class VisitRecord:
    """One billed visit row from the karte export."""
    date_iso: str
    month_key: str
    visit_type: str
    department: str
    patient_number: Optional[str] = None
    birth_date_iso: Optional[str] = None
    points: Optional[float] = None
    patient_name_normalized: Optional[str] = None
    patient_address: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["VisitRecord"]:
        """Build a visit from a snapshot row, or None if the row is unusable."""
        date_iso = _optional_str(_pick(data, "dateIso", "date_iso"))
        if not is_iso_date(date_iso):
            return None
        month_key = _optional_str(_pick(data, "monthKey", "month_key")) or date_iso[:7]
        return cls(
            date_iso=date_iso[:10],
            month_key=month_key,
            visit_type=_optional_str(_pick(data, "visitType", "visit_type")) or "",
            department=_optional_str(data.get("department")) or "",
            patient_number=_optional_str(_pick(data, "patientNumber", "patient_number")),
            birth_date_iso=_optional_str(_pick(data, "birthDateIso", "birth_date_iso")),
            points=_optional_float(data.get("points")),
            patient_name_normalized=_optional_str(
                _pick(data, "patientNameNormalized", "patient_name_normalized")
            ),
            patient_address=_optional_str(_pick(data, "patientAddress", "patient_address")),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase snapshot row."""
        return {
            "dateIso": self.date_iso,
            "monthKey": self.month_key,
            "visitType": self.visit_type,
            "patientNumber": self.patient_number,
            "birthDateIso": self.birth_date_iso,
            "department": self.department,
            "points": self.points,
            "patientNameNormalized": self.patient_name_normalized,
            "patientAddress": self.patient_address,
        }


@dataclass(frozen=True)
class ReservationRecord:
    """One booking row from the reservation export."""
    department: str
    visit_type: str
    reservation_date_iso: str
    reservation_hour: int
    received_at_iso: str
    patient_id: str
    appointment_iso: Optional[str] = None
    patient_name: Optional[str] = None
    is_same_day: bool = False

    @property
    def reservation_id(self) -> str:
        """Stable identifier built from the natural key fields."""
        return "|".join(
            [
                self.department,
                self.visit_type,
                self.received_at_iso,
                self.patient_id,
                self.appointment_iso or "",
            ]
        )

    @property
    def date_key(self) -> str:
        """Calendar date of the visit this booking is for."""
        if self.appointment_iso and is_iso_date(self.appointment_iso):
            return self.appointment_iso[:10]
        return self.reservation_date_iso

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["ReservationRecord"]:
        """Build a reservation from a snapshot row, or None if the row is unusable."""
        received_at = _optional_str(_pick(data, "receivedAtIso", "received_at_iso"))
        reservation_date = _optional_str(
            _pick(data, "reservationDateIso", "reservation_date_iso", data.get("reservationDate"))
        )
        if reservation_date is None and received_at:
            reservation_date = received_at[:10]
        if not received_at or not is_iso_date(reservation_date):
            return None

        hour_value = _pick(data, "reservationHour", "reservation_hour")
        try:
            hour = int(hour_value) if hour_value is not None else int(received_at[11:13])
        except (TypeError, ValueError):
            hour = 0

        return cls(
            department=_optional_str(data.get("department")) or "",
            visit_type=_optional_str(_pick(data, "visitType", "visit_type")) or "",
            reservation_date_iso=reservation_date[:10],
            reservation_hour=hour,
            received_at_iso=received_at,
            patient_id=_optional_str(_pick(data, "patientId", "patient_id")) or "",
            appointment_iso=_optional_str(_pick(data, "appointmentIso", "appointment_iso")),
            patient_name=_optional_str(_pick(data, "patientName", "patient_name")),
            is_same_day=_as_bool(_pick(data, "isSameDay", "is_same_day", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase snapshot row."""
        return {
            "key": self.reservation_id,
            "department": self.department,
            "visitType": self.visit_type,
            "reservationDateIso": self.reservation_date_iso,
            "reservationHour": self.reservation_hour,
            "receivedAtIso": self.received_at_iso,
            "appointmentIso": self.appointment_iso,
            "patientId": self.patient_id,
            "patientName": self.patient_name,
            "isSameDay": self.is_same_day,
        }


@dataclass(frozen=True)
class DiagnosisRecord:
    """One disease registration row from the diagnosis export."""
    department: str
    start_date: str
    disease_name: str
    category: str
    patient_number: Optional[str] = None
    patient_name_normalized: Optional[str] = None
    birth_date_iso: Optional[str] = None

    @property
    def month_key(self) -> str:
        return self.start_date[:7]

    @property
    def record_id(self) -> str:
        return "|".join(
            [
                self.department,
                self.month_key,
                self.disease_name,
                self.start_date,
                self.patient_number or "",
            ]
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["DiagnosisRecord"]:
        """Build a diagnosis from a snapshot row, or None if the row is unusable."""
        start_date = _optional_str(_pick(data, "startDate", "start_date"))
        disease_name = _optional_str(_pick(data, "diseaseName", "disease_name"))
        if not is_iso_date(start_date) or not disease_name:
            return None
        category = _optional_str(data.get("category"))
        if category:
            category = DIAGNOSIS_CATEGORY_ALIASES.get(category, category)
        else:
            category = categorize_disease_name(disease_name)
        return cls(
            department=_optional_str(data.get("department")) or "",
            start_date=start_date[:10],
            disease_name=disease_name,
            category=category,
            patient_number=_optional_str(_pick(data, "patientNumber", "patient_number")),
            patient_name_normalized=_optional_str(
                _pick(data, "patientNameNormalized", "patient_name_normalized")
            ),
            birth_date_iso=_optional_str(_pick(data, "birthDateIso", "birth_date_iso")),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase snapshot row."""
        return {
            "id": self.record_id,
            "department": self.department,
            "startDate": self.start_date,
            "monthKey": self.month_key,
            "diseaseName": self.disease_name,
            "category": self.category,
            "patientNumber": self.patient_number,
            "patientNameNormalized": self.patient_name_normalized,
            "birthDateIso": self.birth_date_iso,
        }


@dataclass(frozen=True)
class ListingEntry:
    """Daily ad-listing performance for one listing category."""
    category: str
    date: str
    amount: float = 0.0
    cv: float = 0.0
    cvr: float = 0.0
    cpa: float = 0.0
    hourly_cv: Tuple[float, ...] = field(default_factory=lambda: (0.0,) * 24)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["ListingEntry"]:
        category = _optional_str(data.get("category"))
        entry_date = _optional_str(data.get("date"))
        if not category or not is_iso_date(entry_date):
            return None
        hourly = list(_pick(data, "hourlyCV", "hourly_cv", []) or [])
        hourly = [_optional_float(value) or 0.0 for value in hourly[:24]]
        hourly += [0.0] * (24 - len(hourly))
        return cls(
            category=category,
            date=entry_date[:10],
            amount=_optional_float(data.get("amount")) or 0.0,
            cv=_optional_float(data.get("cv")) or 0.0,
            cvr=_optional_float(data.get("cvr")) or 0.0,
            cpa=_optional_float(data.get("cpa")) or 0.0,
            hourly_cv=tuple(hourly),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "date": self.date,
            "amount": self.amount,
            "cv": self.cv,
            "cvr": self.cvr,
            "cpa": self.cpa,
            "hourlyCV": list(self.hourly_cv),
        }


@dataclass(frozen=True)
class SurveyEntry:
    """Daily patient-survey channel counts for one survey file type."""
    date: str
    month: str
    file_type: str
    channels: Tuple[Tuple[str, float], ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["SurveyEntry"]:
        entry_date = _optional_str(data.get("date"))
        file_type = _optional_str(_pick(data, "fileType", "file_type"))
        if not is_iso_date(entry_date) or not file_type:
            return None
        raw_channels = data.get("channels") or {}
        if not isinstance(raw_channels, dict):
            return None
        channels = tuple(
            (str(name), _optional_float(count) or 0.0)
            for name, count in raw_channels.items()
        )
        return cls(
            date=entry_date[:10],
            month=_optional_str(data.get("month")) or entry_date[:7],
            file_type=file_type,
            channels=channels,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "month": self.month,
            "fileType": self.file_type,
            "channels": dict(self.channels),
        }


RECORD_TYPES = {
    "visits": VisitRecord,
    "reservations": ReservationRecord,
    "diagnoses": DiagnosisRecord,
    "listings": ListingEntry,
    "surveys": SurveyEntry,
}


def records_from_rows(family: str, rows: Any) -> Tuple[List[Any], int]:
    """Parse snapshot rows for a family, dropping unusable rows.

    Args:
        family: Record family name (see ``RECORD_TYPES``)
        rows: Decoded JSON payload, expected to be a list of objects

    Returns:
        Tuple of (records, skipped_count)

    Raises:
        ValueError: If the family is unknown
        SnapshotFormatError: If ``rows`` is not a list
    """
    record_type = RECORD_TYPES.get(family)
    if record_type is None:
        raise ValueError(f"Unknown record family: {family}")
    if not isinstance(rows, list):
        raise SnapshotFormatError(
            f"Expected a JSON array for {family}, got {type(rows).__name__}"
        )

    records = []
    skipped = 0
    for row in rows:
        record = record_type.from_dict(row) if isinstance(row, dict) else None
        if record is None:
            skipped += 1
            continue
        records.append(record)

    if skipped:
        logger.debug(f"Dropped {skipped} malformed {family} rows")
    return records, skipped


def records_to_rows(records: Iterable[Any]) -> List[Dict[str, Any]]:
    """Convert records back to snapshot rows."""
    return [record.to_dict() for record in records]
