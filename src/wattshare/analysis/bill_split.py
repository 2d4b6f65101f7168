"""Allocate a household electricity bill across its members."""

import json
import uuid
from datetime import date, datetime
from pathlib import Path

from ..db import get_connection
from ..models import BillSplit, Device, EnergyLog
from ..validation import ValidationError, validate_amount, validate_date_range
from .aggregation import aggregate


def split_bill(
    total_bill_amount: float,
    logs: list[EnergyLog],
    household_user_ids: list[str],
    household_id: str,
    period_start: date,
    period_end: date,
    devices: dict[str, Device] | None = None,
) -> BillSplit:
    """Split a bill into personal usage plus an even share of the remainder.

    Each member pays for the logged usage attributed to them. Whatever the
    bill covers beyond logged usage (standing charges, taxes, unlogged
    devices) is shared equally across all household members.
    """
    amount = validate_amount(total_bill_amount)
    if not household_user_ids:
        raise ValidationError("Household has no members to split the bill between")
    period_start, period_end = validate_date_range(period_start, period_end)

    by_user = aggregate(logs, "user", (period_start, period_end), devices)

    personal_costs = {user_id: 0.0 for user_id in household_user_ids}
    for user_id, entry in by_user.groups.items():
        personal_costs[user_id] = personal_costs.get(user_id, 0.0) + entry.cost

    shared_cost = max(0.0, amount - sum(personal_costs.values()))
    shared_cost_per_user = shared_cost / len(household_user_ids)

    final_amounts = {
        user_id: cost + (shared_cost_per_user if user_id in household_user_ids else 0.0)
        for user_id, cost in personal_costs.items()
    }

    return BillSplit(
        household_id=household_id,
        period_start=period_start,
        period_end=period_end,
        total_bill_amount=amount,
        personal_costs=personal_costs,
        shared_cost=shared_cost,
        shared_cost_per_user=shared_cost_per_user,
        final_amounts=final_amounts,
    )


def save_bill_split(split: BillSplit, created_by: str, db_path: Path | None = None) -> str:
    """Store a bill split. Returns its id."""
    split_id = split.id or str(uuid.uuid4())
    allocations = {
        "personal_costs": split.personal_costs,
        "shared_cost": split.shared_cost,
        "shared_cost_per_user": split.shared_cost_per_user,
        "final_amounts": split.final_amounts,
    }
    with get_connection(db_path) as conn:
        conn.execute(
            """INSERT INTO bill_splits
               (id, household_id, period_start, period_end, total_bill_amount,
                user_allocations, created_by, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                split_id,
                split.household_id,
                split.period_start.isoformat(),
                split.period_end.isoformat(),
                split.total_bill_amount,
                json.dumps(allocations),
                created_by,
                datetime.now().isoformat(),
            ),
        )
        conn.commit()
    split.id = split_id
    return split_id


def get_bill_splits(household_id: str, db_path: Path | None = None) -> list[BillSplit]:
    """Stored bill splits for a household, most recent period first."""
    with get_connection(db_path) as conn:
        rows = conn.execute(
            """SELECT id, household_id, period_start, period_end, total_bill_amount, user_allocations
               FROM bill_splits WHERE household_id = ?
               ORDER BY period_start DESC""",
            (household_id,),
        ).fetchall()

    splits = []
    for row in rows:
        allocations = json.loads(row["user_allocations"])
        splits.append(
            BillSplit(
                id=row["id"],
                household_id=row["household_id"],
                period_start=date.fromisoformat(row["period_start"]),
                period_end=date.fromisoformat(row["period_end"]),
                total_bill_amount=row["total_bill_amount"],
                personal_costs=allocations["personal_costs"],
                shared_cost=allocations["shared_cost"],
                shared_cost_per_user=allocations["shared_cost_per_user"],
                final_amounts=allocations["final_amounts"],
            )
        )
    return splits


def format_bill_split_text(split: BillSplit, names: dict[str, str] | None = None) -> str:
    """Format a bill split as human-readable text."""
    names = names or {}
    lines = [
        f"Bill Split: {split.period_start.isoformat()} to {split.period_end.isoformat()}",
        f"Total bill: ${split.total_bill_amount:.2f}",
        f"Shared amount: ${split.shared_cost:.2f} (${split.shared_cost_per_user:.2f} each)",
        "",
    ]
    for user_id, amount in split.final_amounts.items():
        personal = split.personal_costs.get(user_id, 0.0)
        shared = amount - personal
        lines.append(
            f"{names.get(user_id, user_id)}: Personal ${personal:.2f} + Shared ${shared:.2f}"
            f" = ${amount:.2f}"
        )
    return "\n".join(lines)
