"""Tests for splitting a household bill."""

from datetime import date

import pytest
from wattshare.analysis.bill_split import format_bill_split_text, get_bill_splits, save_bill_split, split_bill
from wattshare.models import EnergyLog, PeriodUsage
from wattshare.validation import ValidationError

from conftest import HOUSEHOLD

JULY = (date(2024, 7, 1), date(2024, 7, 31))


def make_log(log_id, cost, created_by="alice", usage_date=date(2024, 7, 10), **kwargs):
    return EnergyLog(
        id=log_id,
        device_id="heater",
        usage_date=usage_date,
        start_time="20:00",
        end_time="22:00",
        household_id=HOUSEHOLD,
        created_by=created_by,
        total_kwh=2.0,
        calculated_cost=cost,
        rate_breakdown={"onPeak": PeriodUsage(kwh=2.0, cost=cost)},
        **kwargs,
    )


def test_split_personal_plus_even_shared():
    logs = [
        make_log("a", 30.0),
        make_log("b", 10.0, created_by="bob"),
    ]
    split = split_bill(100, logs, ["alice", "bob"], HOUSEHOLD, *JULY)

    assert split.personal_costs == {"alice": pytest.approx(30.0), "bob": pytest.approx(10.0)}
    assert split.shared_cost == pytest.approx(60.0)
    assert split.shared_cost_per_user == pytest.approx(30.0)
    assert split.final_amounts == {"alice": pytest.approx(60.0), "bob": pytest.approx(40.0)}
    assert sum(split.final_amounts.values()) == pytest.approx(100.0)


def test_members_without_usage_still_pay_shared():
    split = split_bill(90, [make_log("a", 30.0)], ["alice", "bob", "carol"], HOUSEHOLD, *JULY)
    assert split.final_amounts["carol"] == pytest.approx(20.0)
    assert split.final_amounts["alice"] == pytest.approx(50.0)


def test_assigned_users_share_personal_cost():
    log = make_log("a", 30.0, assigned_user_ids=["alice", "bob"])
    split = split_bill(30, [log], ["alice", "bob"], HOUSEHOLD, *JULY)
    assert split.personal_costs == {"alice": pytest.approx(15.0), "bob": pytest.approx(15.0)}
    assert split.shared_cost == 0


def test_usage_above_bill_leaves_nothing_shared():
    split = split_bill(20, [make_log("a", 30.0)], ["alice", "bob"], HOUSEHOLD, *JULY)
    assert split.shared_cost == 0
    assert split.final_amounts["bob"] == 0


def test_logs_outside_period_are_ignored():
    logs = [make_log("a", 30.0), make_log("b", 50.0, usage_date=date(2024, 8, 2))]
    split = split_bill(60, logs, ["alice"], HOUSEHOLD, *JULY)
    assert split.personal_costs["alice"] == pytest.approx(30.0)


def test_invalid_inputs():
    with pytest.raises(ValidationError, match="Amount"):
        split_bill(0, [], ["alice"], HOUSEHOLD, *JULY)
    with pytest.raises(ValidationError, match="unusually high"):
        split_bill(100_001, [], ["alice"], HOUSEHOLD, *JULY)
    with pytest.raises(ValidationError, match="members"):
        split_bill(50, [], [], HOUSEHOLD, *JULY)
    with pytest.raises(ValidationError, match="End date"):
        split_bill(50, [], ["alice"], HOUSEHOLD, date(2024, 7, 31), date(2024, 7, 1))


def test_save_and_load_bill_split(db_path):
    split = split_bill(100, [make_log("a", 30.0)], ["alice", "bob"], HOUSEHOLD, *JULY)
    split_id = save_bill_split(split, "alice", db_path)

    [stored] = get_bill_splits(HOUSEHOLD, db_path)
    assert stored.id == split_id
    assert stored.period_start == date(2024, 7, 1)
    assert stored.final_amounts == split.final_amounts
    assert get_bill_splits("home-2", db_path) == []


def test_format_bill_split_text():
    split = split_bill(100, [make_log("a", 30.0)], ["alice", "bob"], HOUSEHOLD, *JULY)
    text = format_bill_split_text(split, {"alice": "Alice", "bob": "Bob"})
    assert "Total bill: $100.00" in text
    assert "Alice: Personal $30.00 + Shared $35.00 = $65.00" in text
    assert "Bob: Personal $0.00 + Shared $35.00 = $35.00" in text
