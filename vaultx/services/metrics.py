"""Derived figures for budgets and goals.

Pure functions of stored values and a reference time. Nothing here touches
the database and nothing computed here is ever persisted.
"""
import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional, Tuple

# Days per month used when spreading what is left of a goal over its deadline
DAYS_PER_MONTH = 30


@dataclass(frozen=True)
class BudgetMetrics:
    spent: float
    remaining: float
    percentage: float


@dataclass(frozen=True)
class GoalMetrics:
    percentage: float
    days_remaining: Optional[int] = None
    monthly_needed: Optional[float] = None


def month_start(value: date) -> date:
    return value.replace(day=1)


def shift_month(value: date, months: int) -> date:
    month_index = (value.year * 12 + value.month - 1) + months
    year = month_index // 12
    month = month_index % 12 + 1
    return date(year, month, 1)


def current_period(today: date) -> Tuple[date, date]:
    """Half-open ``[start, end)`` window that budget spending is bucketed into.

    Always the calendar month containing ``today``, whatever the budget's own
    period says.
    """
    start = month_start(today)
    return start, shift_month(start, 1)


def budget_metrics(budgeted: float, spent: float) -> BudgetMetrics:
    percentage = (spent / budgeted) * 100 if budgeted > 0 else 0.0
    return BudgetMetrics(spent=spent, remaining=budgeted - spent, percentage=percentage)


def days_until(deadline: date, now: datetime) -> int:
    """Whole days from ``now`` to midnight of ``deadline``; negative once past."""
    delta = datetime.combine(deadline, datetime.min.time()) - now
    return math.floor(delta / timedelta(days=1))


def goal_metrics(target: float, current: float, deadline: Optional[date], now: datetime) -> GoalMetrics:
    percentage = (current / target) * 100 if target > 0 else 0.0
    if deadline is None:
        return GoalMetrics(percentage=percentage)

    days_remaining = days_until(deadline, now)
    monthly_needed = None
    if days_remaining > 0:
        monthly_needed = (target - current) / (days_remaining / DAYS_PER_MONTH)
    return GoalMetrics(
        percentage=percentage,
        days_remaining=days_remaining,
        monthly_needed=monthly_needed,
    )
