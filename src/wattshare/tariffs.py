"""Tariff loading and time-of-use rate resolution."""

import json
import logging
import os
from datetime import date, datetime, time, timedelta
from pathlib import Path

import httpx
import yaml

from .db import get_connection
from .models import PERIOD_IDS, RateBand, RateResolution, RateSchedule

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "config" / "tariffs.yaml"
ALL_MONTHS = list(range(1, 13))


class ScheduleError(ValueError):
    """Base exception for rate schedule configuration errors."""
    pass


class ScheduleGapError(ScheduleError):
    """No rate band covers a season, day type and time of day."""
    pass


class ScheduleOverlapError(ScheduleError):
    """More than one rate band covers a season, day type and time of day."""
    pass


class TariffFetchError(ValueError):
    """Fetching a remote tariff definition failed."""
    pass


def get_config_path() -> Path:
    """Find the tariffs.yaml config file."""
    candidates = [
        Path.cwd() / "config" / "tariffs.yaml",
        DEFAULT_CONFIG_PATH,
        Path.home() / ".config" / "wattshare" / "tariffs.yaml",
    ]
    env_path = os.environ.get("WATTSHARE_TARIFFS")
    if env_path:
        candidates.insert(0, Path(env_path))
    for path in candidates:
        if path.exists():
            return path
    raise FileNotFoundError("Could not find config/tariffs.yaml")


def _to_datetime(value) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    return datetime.fromisoformat(str(value))


def parse_tariffs(data: dict) -> list[RateSchedule]:
    """Build rate schedules from a parsed tariffs document."""
    schedules = []
    for t in (data or {}).get("tariffs", []):
        seasons = {
            name: [int(m) for m in months]
            for name, months in (t.get("seasons") or {"all": ALL_MONTHS}).items()
        }
        bands = []
        for r in t.get("rates", []):
            period_id = r["period"]
            if period_id not in PERIOD_IDS:
                raise ScheduleError(f"Unknown rate period {period_id!r} in tariff {t['name']}")
            season = r.get("season", "all")
            if season not in seasons:
                raise ScheduleError(f"Unknown season {season!r} in tariff {t['name']}")
            bands.append(
                RateBand(
                    period_id=period_id,
                    season=season,
                    start_time=r["start"],
                    end_time=r["end"],
                    price_per_kwh=float(r["rate"]),
                    days=r.get("days", "*"),
                )
            )
        schedules.append(
            RateSchedule(
                name=t["name"],
                valid_from=_to_datetime(t["valid_from"]),
                valid_to=_to_datetime(t["valid_to"]) if t.get("valid_to") else None,
                seasons=seasons,
                bands=bands,
            )
        )
    return schedules


def load_tariffs_from_yaml(config_path: Path | None = None) -> list[RateSchedule]:
    """Load tariff definitions from YAML config file."""
    path = config_path or get_config_path()
    with open(path) as f:
        data = yaml.safe_load(f)
    return parse_tariffs(data)


def load_tariffs_from_url(url: str, timeout: float = 30.0) -> list[RateSchedule]:
    """Fetch tariff definitions published as YAML at a URL."""
    try:
        with httpx.Client() as client:
            response = client.get(url, timeout=timeout)
            response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise TariffFetchError(f"HTTP error fetching tariffs: {e.response.status_code}")
    except httpx.HTTPError as e:
        raise TariffFetchError(f"Network error fetching tariffs: {e}")

    return parse_tariffs(yaml.safe_load(response.text))


def save_tariffs_to_db(schedules: list[RateSchedule], db_path: Path | None = None) -> int:
    """Save tariffs to the database. Returns number of tariffs saved."""
    count = 0
    with get_connection(db_path) as conn:
        for schedule in schedules:
            existing = conn.execute(
                "SELECT id FROM tariffs WHERE name = ? AND valid_from = ?",
                (schedule.name, schedule.valid_from.isoformat()),
            ).fetchone()
            values = (
                schedule.name,
                schedule.valid_from.isoformat(),
                schedule.valid_to.isoformat() if schedule.valid_to else None,
                json.dumps(schedule.seasons),
            )
            if existing:
                tariff_id = existing["id"]
                conn.execute(
                    "UPDATE tariffs SET name = ?, valid_from = ?, valid_to = ?, seasons = ? WHERE id = ?",
                    (*values, tariff_id),
                )
            else:
                cursor = conn.execute(
                    "INSERT INTO tariffs (name, valid_from, valid_to, seasons) VALUES (?, ?, ?, ?)",
                    values,
                )
                tariff_id = cursor.lastrowid

            # Delete old rates for this tariff
            conn.execute("DELETE FROM tariff_rates WHERE tariff_id = ?", (tariff_id,))

            # Band order is the resolution priority order
            for position, band in enumerate(schedule.bands):
                conn.execute(
                    """INSERT INTO tariff_rates
                       (tariff_id, position, period_id, season, start_time, end_time, price_per_kwh, days)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        tariff_id,
                        position,
                        band.period_id,
                        band.season,
                        band.start_time,
                        band.end_time,
                        band.price_per_kwh,
                        band.days,
                    ),
                )
            logger.debug("Saved tariff %s with %d rate bands", schedule.name, len(schedule.bands))
            count += 1
        conn.commit()
    return count


def load_tariffs_from_db(db_path: Path | None = None) -> list[RateSchedule]:
    """Load every stored tariff, oldest first."""
    with get_connection(db_path) as conn:
        rows = conn.execute(
            "SELECT id, name, valid_from, valid_to, seasons FROM tariffs ORDER BY valid_from"
        ).fetchall()

        schedules = []
        for row in rows:
            rates = conn.execute(
                """SELECT period_id, season, start_time, end_time, price_per_kwh, days
                   FROM tariff_rates WHERE tariff_id = ? ORDER BY position""",
                (row["id"],),
            ).fetchall()
            schedules.append(
                RateSchedule(
                    name=row["name"],
                    valid_from=datetime.fromisoformat(row["valid_from"]),
                    valid_to=(
                        datetime.fromisoformat(row["valid_to"]) if row["valid_to"] else None
                    ),
                    seasons=json.loads(row["seasons"]) if row["seasons"] else {"all": ALL_MONTHS},
                    bands=[
                        RateBand(
                            period_id=r["period_id"],
                            season=r["season"],
                            start_time=r["start_time"],
                            end_time=r["end_time"],
                            price_per_kwh=r["price_per_kwh"],
                            days=r["days"],
                        )
                        for r in rates
                    ],
                )
            )
    return schedules


def select_schedule(schedules: list[RateSchedule], when: datetime) -> RateSchedule:
    """Pick the tariff version in force at a given instant."""
    active = [
        s for s in schedules
        if s.valid_from <= when and (s.valid_to is None or s.valid_to > when)
    ]
    if not active:
        raise ScheduleGapError(f"No active tariff found for {when}")
    return max(active, key=lambda s: s.valid_from)


def parse_time(time_str: str) -> time:
    """Parse HH:MM string to time object."""
    parts = time_str.split(":")
    return time(int(parts[0]), int(parts[1]))


def time_in_range(check_time: time, start: time, end: time) -> bool:
    """Check if a time falls within a range (handles overnight ranges)."""
    if start == end:
        # Whole day
        return True
    if start < end:
        return start <= check_time < end
    else:
        # Overnight range (e.g., 21:00 to 08:00)
        return check_time >= start or check_time < end


def is_weekend(day: date) -> bool:
    return day.weekday() >= 5


def get_season(day: date, schedule: RateSchedule) -> str:
    """Name of the schedule season containing the day's month."""
    for name, months in schedule.seasons.items():
        if day.month in months:
            return name
    raise ScheduleGapError(f"Tariff {schedule.name} has no season covering month {day.month}")


def applicable_bands(schedule: RateSchedule, season: str, weekend: bool) -> list[RateBand]:
    """Bands for a season and day type, in priority order."""
    bands = []
    for band in schedule.bands:
        if band.season != season:
            continue
        # Check day restriction
        if band.days == "weekdays" and weekend:
            continue
        if band.days == "weekends" and not weekend:
            continue
        bands.append(band)
    return bands


def rate_at(moment: datetime, schedule: RateSchedule) -> RateResolution:
    """Get the rate period and $/kWh price in force at a moment."""
    day = moment.date()
    season = get_season(day, schedule)
    check_time = moment.time()

    for band in applicable_bands(schedule, season, is_weekend(day)):
        if time_in_range(check_time, parse_time(band.start_time), parse_time(band.end_time)):
            return RateResolution(period_id=band.period_id, price_per_kwh=band.price_per_kwh)

    day_type = "weekend" if is_weekend(day) else "weekday"
    raise ScheduleGapError(
        f"No rate found for {moment} ({season} {day_type}) in tariff {schedule.name}"
    )


def resolve_rate(day: date, hour: int, schedule: RateSchedule) -> RateResolution:
    """Get the rate period for an hour of a given day."""
    if not 0 <= hour < 24:
        raise ValueError(f"Hour must be between 0 and 23, got {hour}")
    return rate_at(datetime.combine(day, time(hour)), schedule)


def period_price(day: date, period_id: str, schedule: RateSchedule) -> float:
    """$/kWh of a rate period on a given day, from its first matching band."""
    season = get_season(day, schedule)
    for band in applicable_bands(schedule, season, is_weekend(day)):
        if band.period_id == period_id:
            return band.price_per_kwh

    day_type = "weekend" if is_weekend(day) else "weekday"
    raise ScheduleGapError(
        f"Tariff {schedule.name} has no {period_id} rate on {day} ({season} {day_type})"
    )


def _boundary_times(bands: list[RateBand]) -> list[time]:
    return sorted({parse_time(t) for band in bands for t in (band.start_time, band.end_time)})


def next_boundary(moment: datetime, schedule: RateSchedule) -> datetime:
    """The next instant after moment at which the applicable rate can change.

    Midnight is always a boundary since season and day type are per day.
    """
    day = moment.date()
    bands = applicable_bands(schedule, get_season(day, schedule), is_weekend(day))
    current = moment.time()
    for boundary in _boundary_times(bands):
        if boundary > current:
            return datetime.combine(day, boundary)
    return datetime.combine(day + timedelta(days=1), time.min)


def check_schedule(schedule: RateSchedule) -> None:
    """Verify exactly one band covers every month, day type and time of day."""
    for month in ALL_MONTHS:
        owners = [name for name, months in schedule.seasons.items() if month in months]
        if not owners:
            raise ScheduleGapError(f"Tariff {schedule.name} has no season covering month {month}")
        if len(owners) > 1:
            raise ScheduleOverlapError(
                f"Tariff {schedule.name} has month {month} in seasons {', '.join(owners)}"
            )

    for season in schedule.seasons:
        for weekend in (False, True):
            day_type = "weekend" if weekend else "weekday"
            bands = applicable_bands(schedule, season, weekend)
            # Band membership is constant between consecutive boundaries
            for check_time in sorted({time.min, *_boundary_times(bands)}):
                matches = [
                    band for band in bands
                    if time_in_range(check_time, parse_time(band.start_time), parse_time(band.end_time))
                ]
                label = f"{season} {day_type} at {check_time.strftime('%H:%M')}"
                if not matches:
                    raise ScheduleGapError(f"Tariff {schedule.name} has no rate for {label}")
                if len(matches) > 1:
                    periods = ", ".join(band.period_id for band in matches)
                    raise ScheduleOverlapError(
                        f"Tariff {schedule.name} has overlapping rates ({periods}) for {label}"
                    )
