"""Data models for devices, tariffs, usage sessions and energy logs."""

from dataclasses import dataclass, field
from datetime import date, datetime

PERIOD_IDS = ("offPeak", "midPeak", "onPeak", "superOffPeak")

# Logs entered as a kWh total for a date range, with no usage session
BULK_SOURCE = "bulk"


@dataclass
class User:
    """A household member."""

    id: str
    name: str
    household_id: str
    email: str | None = None


@dataclass
class Device:
    """An appliance whose usage is logged."""

    id: str
    name: str
    wattage: float
    household_id: str
    is_shared: bool = False
    created_by: str | None = None


@dataclass
class DeviceGroup:
    """A named set of devices that are often used together."""

    id: str
    name: str
    household_id: str
    device_ids: list[str] = field(default_factory=list)
    created_by: str | None = None


@dataclass(frozen=True)
class RateBand:
    """A rate period within a tariff."""

    period_id: str  # one of PERIOD_IDS
    season: str
    start_time: str  # HH:MM format
    end_time: str  # HH:MM format, <= start_time wraps past midnight
    price_per_kwh: float
    days: str = "*"  # '*' = all, 'weekdays', 'weekends'


@dataclass
class RateSchedule:
    """An electricity tariff with seasonal time-of-use rates."""

    name: str
    valid_from: datetime
    valid_to: datetime | None
    seasons: dict[str, list[int]]  # season name -> months (1-12)
    bands: list[RateBand]


@dataclass(frozen=True)
class RateResolution:
    """The rate period in force at a given moment."""

    period_id: str
    price_per_kwh: float


@dataclass(frozen=True)
class SubInterval:
    """A slice of a session that falls entirely within one rate period."""

    start: datetime
    end: datetime
    period_id: str
    price_per_kwh: float

    @property
    def duration_hours(self) -> float:
        return (self.end - self.start).total_seconds() / 3600


@dataclass
class PeriodUsage:
    """Energy and cost attributed to one rate period."""

    kwh: float = 0.0
    cost: float = 0.0

    def to_dict(self) -> dict:
        return {"kwh": self.kwh, "cost": self.cost}


RateBreakdown = dict[str, PeriodUsage]


@dataclass
class SessionCost:
    """Result of costing a usage session."""

    total_kwh: float
    calculated_cost: float
    rate_breakdown: RateBreakdown

    def breakdown_dict(self) -> dict:
        """JSON-serialisable form of the rate breakdown."""
        return {period: usage.to_dict() for period, usage in self.rate_breakdown.items()}


@dataclass
class UsageSession:
    """A logged period of device use."""

    device_id: str
    usage_date: date
    start_time: str  # HH:MM or HH:MM:SS
    end_time: str
    household_id: str
    created_by: str
    assigned_user_ids: list[str] = field(default_factory=list)
    end_date: date | None = None  # only for sessions spanning more than a day


@dataclass
class EnergyLog:
    """A persisted usage session with its computed cost."""

    id: str
    device_id: str
    usage_date: date
    start_time: str
    end_time: str
    household_id: str
    created_by: str
    assigned_user_ids: list[str] = field(default_factory=list)
    end_date: date | None = None
    total_kwh: float | None = None
    calculated_cost: float | None = None
    rate_breakdown: RateBreakdown | None = None
    cost_shares: dict[str, float] | None = None  # user id -> weight
    source_type: str = "manual"  # 'manual', 'recurring', 'template', 'bulk', 'import'
    source_id: str | None = None
    created_at: datetime | None = None

    @property
    def session(self) -> UsageSession:
        return UsageSession(
            device_id=self.device_id,
            usage_date=self.usage_date,
            start_time=self.start_time,
            end_time=self.end_time,
            household_id=self.household_id,
            created_by=self.created_by,
            assigned_user_ids=list(self.assigned_user_ids),
            end_date=self.end_date,
        )


@dataclass
class AggregateEntry:
    """Rolled-up usage for one group key."""

    kwh: float = 0.0
    cost: float = 0.0
    log_count: int = 0
    is_estimated: bool = False


@dataclass
class AggregationResult:
    """Usage grouped by user, device, month or rate period."""

    group_by: str
    groups: dict[str, AggregateEntry]
    total_kwh: float = 0.0
    total_cost: float = 0.0
    bulk_kwh: float = 0.0  # share of the totals from bulk entries
    bulk_cost: float = 0.0
    skipped_log_ids: list[str] = field(default_factory=list)

    @property
    def is_estimated(self) -> bool:
        return any(entry.is_estimated for entry in self.groups.values())


@dataclass
class RecurringSchedule:
    """A repeating usage pattern that generates energy logs."""

    id: str
    household_id: str
    name: str
    device_id: str
    days_of_week: list[int]  # 0=Monday, 6=Sunday
    start_time: str
    end_time: str
    start_date: date
    created_by: str
    end_date: date | None = None
    assigned_user_ids: list[str] = field(default_factory=list)
    is_active: bool = True


@dataclass
class BillSplit:
    """Allocation of a household bill across its members."""

    household_id: str
    period_start: date
    period_end: date
    total_bill_amount: float
    personal_costs: dict[str, float]
    shared_cost: float
    shared_cost_per_user: float
    final_amounts: dict[str, float]
    id: str | None = None


@dataclass
class UsageTemplate:
    """A named device and time preset that logs can be created from."""

    id: str
    household_id: str
    name: str
    device_id: str
    start_time: str
    end_time: str
    created_by: str
    assigned_user_ids: list[str] = field(default_factory=list)
