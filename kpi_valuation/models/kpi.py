from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

DateLike = Union[datetime, date, str, None]


class InputType(str, Enum):
    PLANNED = "Planned"
    ACTUAL = "Actual"

    @classmethod
    def parse(cls, raw: Any) -> Optional["InputType"]:
        if isinstance(raw, InputType):
            return raw
        value = str(raw or "").strip().lower()
        for member in cls:
            if member.value.lower() == value:
                return member
        return None


class RateSource(str, Enum):
    CATALOG_TOTALS = "catalog_totals"
    CATALOG_RATE = "catalog_rate"
    RECORD_RATE = "record_rate"
    ZONE_FALLBACK = "zone_fallback"
    NONE = "none"


class ValueSource(str, Enum):
    RATE = "rate"
    REPORTED_VALUE = "reported_value"
    PLANNED_VALUE = "planned_value"
    ACTUAL_VALUE = "actual_value"
    SUSPECT_QUANTITY = "suspect_quantity"
    MISSING_RATE = "missing_rate"
    NONE = "none"


class ProgressRecord(BaseModel):
    """One reported quantity for one activity/zone/date/input type."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    project_code: str = Field(default="", alias="projectCode")
    project_full_code: str = Field(default="", alias="projectFullCode")
    activity_name: str = Field(default="", alias="activityName")
    zone_label: str = Field(default="", alias="zoneLabel")
    input_type: InputType = Field(alias="inputType")
    quantity: float = 0.0
    unit: str = ""
    reported_value: Optional[float] = Field(default=None, alias="reportedValue")
    planned_value: Optional[float] = Field(default=None, alias="plannedValue")
    actual_value: Optional[float] = Field(default=None, alias="actualValue")
    effective_date: Optional[date] = Field(default=None, alias="effectiveDate")
    actual_date: DateLike = Field(default=None, alias="actualDate")
    target_date: DateLike = Field(default=None, alias="targetDate")
    activity_date: DateLike = Field(default=None, alias="activityDate")
    day: Optional[str] = None
    raw_fields: Dict[str, Any] = Field(default_factory=dict, alias="rawFields")

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        return value if value is None else str(value)

    @field_validator("input_type", mode="before")
    @classmethod
    def _coerce_input_type(cls, value: Any) -> Any:
        parsed = InputType.parse(value)
        return parsed if parsed is not None else value

    @field_validator("project_code", "project_full_code", "activity_name", "zone_label", "unit", mode="before")
    @classmethod
    def _blank_none(cls, value: Any) -> Any:
        if value is None:
            return ""
        return str(value).strip()


class RateCatalogEntry(BaseModel):
    """Contracted unit economics for an activity within a project zone ("Activity")."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: Optional[str] = None
    project_code: str = Field(default="", alias="projectCode")
    project_full_code: str = Field(default="", alias="projectFullCode")
    activity_name: str = Field(default="", alias="activityName")
    zone_ref: str = Field(default="", alias="zoneRef")
    total_value: float = Field(default=0.0, alias="totalValue")
    total_units: float = Field(default=0.0, alias="totalUnits")
    rate: Optional[float] = None
    use_virtual_material: bool = Field(default=False, alias="useVirtualMaterial")

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        return value if value is None else str(value)

    @field_validator("project_code", "project_full_code", "activity_name", "zone_ref", mode="before")
    @classmethod
    def _blank_none(cls, value: Any) -> Any:
        if value is None:
            return ""
        return str(value).strip()

    @property
    def effective_rate(self) -> float:
        if self.total_units > 0 and self.total_value > 0:
            return self.total_value / self.total_units
        if self.rate is not None and self.rate > 0:
            return float(self.rate)
        return 0.0

    @property
    def rate_source(self) -> RateSource:
        if self.total_units > 0 and self.total_value > 0:
            return RateSource.CATALOG_TOTALS
        if self.rate is not None and self.rate > 0:
            return RateSource.CATALOG_RATE
        return RateSource.NONE


class ScopeMapping(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    activity_name_key: str = Field(alias="activityNameKey")
    scope_label: str = Field(alias="scopeLabel")

    @field_validator("activity_name_key", mode="before")
    @classmethod
    def _lower_key(cls, value: Any) -> str:
        return str(value or "").strip().lower()


class Valuation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    record_id: str = Field(alias="recordId")
    rate: float = 0.0
    base_value: float = Field(default=0.0, alias="baseValue")
    virtual_material_percentage: float = Field(default=0.0, alias="virtualMaterialPercentage")
    virtual_material_amount: float = Field(default=0.0, alias="virtualMaterialAmount")
    total_value: float = Field(default=0.0, alias="totalValue")
    rate_source: RateSource = Field(default=RateSource.NONE, alias="rateSource")
    value_source: ValueSource = Field(default=ValueSource.NONE, alias="valueSource")
    matched_activity: Optional[RateCatalogEntry] = Field(default=None, alias="matchedActivity")


class Aggregate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    record_id: str = Field(alias="recordId")
    daily_quantity: float = Field(default=0.0, alias="dailyQuantity")
    weekly_quantity: float = Field(default=0.0, alias="weeklyQuantity")
    monthly_quantity: float = Field(default=0.0, alias="monthlyQuantity")
    daily_value: float = Field(default=0.0, alias="dailyValue")
    weekly_value: float = Field(default=0.0, alias="weeklyValue")
    monthly_value: float = Field(default=0.0, alias="monthlyValue")


class WorkValueStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total: float = 0.0
    planned: float = 0.0
    earned: float = 0.0
    spi: Optional[float] = None
    as_of: date = Field(alias="asOf")
