"""Tests for rolling energy logs up by user, device, month and period."""

from datetime import date

import pytest
from wattshare.analysis.aggregation import UNCLASSIFIED, aggregate, month_key, user_allocation
from wattshare.models import Device, EnergyLog, PeriodUsage

from conftest import HOUSEHOLD

DEVICES = {
    "heater": Device(id="heater", name="Heater", wattage=1000, household_id=HOUSEHOLD),
    "lamp": Device(id="lamp", name="Lamp", wattage=150, household_id=HOUSEHOLD),
}


def make_log(log_id, device_id="heater", usage_date=date(2024, 7, 10), breakdown=None, **kwargs):
    fields = {
        "start_time": "20:00",
        "end_time": "22:00",
        "created_by": "alice",
    }
    fields.update(kwargs)
    if breakdown is not None:
        fields.setdefault("total_kwh", sum(u.kwh for u in breakdown.values()))
        fields.setdefault("calculated_cost", sum(u.cost for u in breakdown.values()))
    return EnergyLog(
        id=log_id,
        device_id=device_id,
        usage_date=usage_date,
        household_id=HOUSEHOLD,
        rate_breakdown=breakdown,
        **fields,
    )


def heater_breakdown():
    return {"onPeak": PeriodUsage(kwh=1.0, cost=0.55), "offPeak": PeriodUsage(kwh=1.0, cost=0.25)}


def test_group_by_period():
    logs = [make_log("a", breakdown=heater_breakdown()), make_log("b", breakdown=heater_breakdown())]
    result = aggregate(logs, "period")
    assert set(result.groups) == {"onPeak", "offPeak"}
    assert result.groups["onPeak"].kwh == pytest.approx(2.0)
    assert result.groups["onPeak"].cost == pytest.approx(1.10)
    assert result.groups["offPeak"].log_count == 2
    assert result.total_cost == pytest.approx(1.60)
    assert not result.is_estimated


def test_group_by_device_and_month():
    logs = [
        make_log("a", breakdown=heater_breakdown()),
        make_log("b", device_id="lamp", usage_date=date(2024, 8, 1), breakdown={"offPeak": PeriodUsage(0.3, 0.075)}),
    ]
    by_device = aggregate(logs, "device")
    assert by_device.groups["heater"].cost == pytest.approx(0.80)
    assert by_device.groups["lamp"].kwh == pytest.approx(0.3)

    by_month = aggregate(logs, "month")
    assert set(by_month.groups) == {"2024-07", "2024-08"}
    assert by_month.total_kwh == pytest.approx(2.3)


def test_user_split_is_even_across_assigned_users():
    log = make_log("a", breakdown=heater_breakdown(), assigned_user_ids=["alice", "bob"])
    result = aggregate([log], "user")
    assert result.groups["alice"].cost == pytest.approx(0.40)
    assert result.groups["bob"].kwh == pytest.approx(1.0)
    assert result.total_cost == pytest.approx(0.80)


def test_user_split_falls_back_to_creator():
    result = aggregate([make_log("a", breakdown=heater_breakdown(), created_by="bob")], "user")
    assert list(result.groups) == ["bob"]
    assert result.groups["bob"].cost == pytest.approx(0.80)


def test_cost_shares_are_normalised():
    log = make_log(
        "a",
        breakdown=heater_breakdown(),
        assigned_user_ids=["alice", "bob"],
        cost_shares={"alice": 3, "bob": 1},
    )
    assert user_allocation(log) == {"alice": 0.75, "bob": 0.25}
    result = aggregate([log], "user")
    assert result.groups["alice"].cost == pytest.approx(0.60)
    assert result.groups["bob"].cost == pytest.approx(0.20)


def test_duplicate_assigned_users_count_once():
    log = make_log("a", assigned_user_ids=["alice", "alice", "bob"])
    assert user_allocation(log) == {"alice": 0.5, "bob": 0.5}


def test_log_without_breakdown_is_estimated():
    """kWh comes from wattage and duration; cost is the stored value or zero."""
    logs = [
        make_log("a", device_id="lamp", start_time="10:00", end_time="14:00"),
        make_log("b", calculated_cost=1.5),
    ]
    result = aggregate(logs, "period", devices=DEVICES)
    assert list(result.groups) == [UNCLASSIFIED]
    entry = result.groups[UNCLASSIFIED]
    assert entry.kwh == pytest.approx(0.6 + 2.0)
    assert entry.cost == pytest.approx(1.5)
    assert entry.is_estimated
    assert result.is_estimated


def test_estimated_flag_only_marks_affected_groups():
    logs = [
        make_log("a", breakdown=heater_breakdown()),
        make_log("b", device_id="lamp", start_time="10:00", end_time="11:00"),
    ]
    result = aggregate(logs, "device", devices=DEVICES)
    assert not result.groups["heater"].is_estimated
    assert result.groups["lamp"].is_estimated


def test_unknown_device_is_skipped():
    logs = [make_log("a", breakdown=heater_breakdown()), make_log("ghost", device_id="missing")]
    result = aggregate(logs, "device", devices=DEVICES)
    assert result.skipped_log_ids == ["ghost"]
    assert list(result.groups) == ["heater"]


def test_logs_with_breakdown_need_no_devices():
    result = aggregate([make_log("a", device_id="gone", breakdown=heater_breakdown())], "device")
    assert result.groups["gone"].kwh == pytest.approx(2.0)


def test_date_range_is_inclusive():
    logs = [
        make_log("a", usage_date=date(2024, 7, 1), breakdown=heater_breakdown()),
        make_log("b", usage_date=date(2024, 7, 31), breakdown=heater_breakdown()),
        make_log("c", usage_date=date(2024, 8, 1), breakdown=heater_breakdown()),
    ]
    result = aggregate(logs, "month", date_range=(date(2024, 7, 1), date(2024, 7, 31)))
    assert result.groups["2024-07"].log_count == 2
    assert "2024-08" not in result.groups


def test_invalid_group_by():
    with pytest.raises(ValueError, match="group_by"):
        aggregate([], "household")


def test_empty_logs():
    result = aggregate([], "user")
    assert result.groups == {}
    assert result.total_kwh == 0
    assert not result.is_estimated


def test_month_key():
    assert month_key(date(2024, 3, 9)) == "2024-03"


def test_bulk_entries_are_reported_separately():
    bulk = make_log(
        "bulk", breakdown={"offPeak": PeriodUsage(kwh=40.0, cost=10.0)}, source_type="bulk",
        start_time="00:00", end_time="00:00",
    )
    result = aggregate([bulk, make_log("a", breakdown=heater_breakdown())], "period")
    assert result.total_kwh == pytest.approx(42.0)
    assert result.bulk_kwh == pytest.approx(40.0)
    assert result.bulk_cost == pytest.approx(10.0)
    assert result.groups["offPeak"].kwh == pytest.approx(41.0)


def test_bulk_entry_without_breakdown_is_not_estimated():
    bulk = make_log(
        "bulk", source_type="bulk", start_time="00:00", end_time="00:00", total_kwh=12.0, calculated_cost=3.0
    )
    result = aggregate([bulk], "period")
    assert result.groups[UNCLASSIFIED].kwh == pytest.approx(12.0)
    assert result.groups[UNCLASSIFIED].cost == pytest.approx(3.0)
    assert not result.is_estimated
    assert result.skipped_log_ids == []
