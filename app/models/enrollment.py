"""
Enrollment domain models.

Records are built once per source row and never mutated; aggregated
metrics are reduced from a filtered view of the record snapshot.
"""
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

from app.utils.date_utils import parse_date_string


@dataclass(frozen=True)
class EnrollmentRecord:
    """
    One enrollment row from the source CSV files.

    Stores daily enrollment counts by state, district, pincode, and age group.
    Expected snapshot size: ~1,000,000+ records
    """
    date: str  # DD-MM-YYYY, as written in the CSV
    calendar_date: date
    state: str
    district: str
    pincode: str
    age_0_5: int
    age_5_17: int
    age_18_plus: int  # age_18_greater in CSV

    @property
    def total(self) -> int:
        return self.age_0_5 + self.age_5_17 + self.age_18_plus

    def to_row(self) -> List[Any]:
        """Compact cache representation, in CSV column order."""
        return [
            self.date, self.state, self.district, self.pincode,
            self.age_0_5, self.age_5_17, self.age_18_plus
        ]

    @classmethod
    def from_row(cls, row: List[Any]) -> Optional["EnrollmentRecord"]:
        """Rebuild a record from `to_row` output. Returns None for a bad date."""
        calendar_date = parse_date_string(row[0])
        if calendar_date is None:
            return None
        return cls(
            date=row[0],
            calendar_date=calendar_date,
            state=row[1],
            district=row[2],
            pincode=row[3],
            age_0_5=int(row[4]),
            age_5_17=int(row[5]),
            age_18_plus=int(row[6]),
        )


@dataclass
class AgeGroupTotals:
    """Summed counts per age bracket."""
    age_0_5: int = 0
    age_5_17: int = 0
    age_18_plus: int = 0

    @property
    def total(self) -> int:
        return self.age_0_5 + self.age_5_17 + self.age_18_plus

    def to_dict(self) -> Dict[str, int]:
        return {
            "age_0_5": self.age_0_5,
            "age_5_17": self.age_5_17,
            "age_18_plus": self.age_18_plus
        }


@dataclass
class AggregatedMetrics:
    """Grouped totals over a filtered record set."""
    total_count: int = 0
    by_state: Dict[str, int] = field(default_factory=dict)
    by_district: Dict[str, int] = field(default_factory=dict)  # "state|district"
    by_date: Dict[str, int] = field(default_factory=dict)  # DD-MM-YYYY
    by_age_group: AgeGroupTotals = field(default_factory=AgeGroupTotals)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_count": self.total_count,
            "by_state": dict(self.by_state),
            "by_district": dict(self.by_district),
            "by_date": dict(self.by_date),
            "by_age_group": self.by_age_group.to_dict()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AggregatedMetrics":
        return cls(
            total_count=int(data["total_count"]),
            by_state=dict(data["by_state"]),
            by_district=dict(data["by_district"]),
            by_date=dict(data["by_date"]),
            by_age_group=AgeGroupTotals(**data["by_age_group"])
        )


def district_key(state: str, district: str) -> str:
    """Key used in `AggregatedMetrics.by_district`."""
    return f"{state}|{district}"
