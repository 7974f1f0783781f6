"""
Common Pydantic schemas shared across endpoints.
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Optional, List, Dict, Any
from datetime import date
import json

from app.utils.date_utils import parse_date_string


class EnrollmentFilter(BaseModel):
    """
    Geography and date-range filter for aggregation queries.

    Dates are inclusive and compared by calendar value. They accept date
    objects, ISO strings, or the CSV's DD-MM-YYYY form.
    """
    model_config = ConfigDict(frozen=True)

    state: Optional[str] = Field(None, description="Filter by state name")
    district: Optional[str] = Field(None, description="Filter by district name")
    start_date: Optional[date] = Field(None, description="First day included")
    end_date: Optional[date] = Field(None, description="Last day included")

    @field_validator('start_date', 'end_date', mode='before')
    @classmethod
    def parse_dates(cls, v):
        if v is None or isinstance(v, date):
            return v
        parsed = parse_date_string(str(v))
        if parsed is None:
            raise ValueError(f"Unrecognised date: {v!r}")
        return parsed

    @field_validator('state', 'district', mode='before')
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode='after')
    def check_range(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date cannot be after end_date")
        return self

    @property
    def is_empty(self) -> bool:
        return not any([self.state, self.district, self.start_date, self.end_date])

    def cache_key(self) -> str:
        """Deterministic, field-ordered serialisation for cache keys."""
        return json.dumps(self.model_dump(mode="json"), sort_keys=True, separators=(",", ":"))


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    cache: Dict[str, Any]
    last_load: Optional[Dict[str, Any]] = None


class ListResponse(BaseModel):
    """Plain list of names with a count."""
    items: List[str]
    count: int
