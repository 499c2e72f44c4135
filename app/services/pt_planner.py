"""
PT Duration/Fee Planner

Generates personal-training renewal options that chain onto the previous PT
window and never run past the gym membership.
"""
import calendar
import math
from dataclasses import dataclass, asdict
from datetime import date, datetime, timedelta
from fractions import Fraction
from typing import Optional, List

from app.config import PT_MAX_MONTHS, PT_DAYS_PER_MONTH


@dataclass(frozen=True)
class DurationOption:
    label: str
    end_date: date
    days: int
    fee: int
    is_valid: bool

    def to_dict(self) -> dict:
        data = asdict(self)
        data["end_date"] = self.end_date.isoformat()
        return data


def _as_day(value) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str):
        return date.fromisoformat(value[:10])
    return value


def add_months(start: date, months: int) -> date:
    """Calendar-month addition, clamping to the last day of a shorter month"""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def compute_pt_start_date(existing_pt_end_date=None, membership_start_date=None,
                          today: Optional[date] = None) -> date:
    """
    The day a new PT window starts.

    Extending an existing PT subscription starts the day after it ends, so
    windows never overlap or leave a gap; otherwise the membership start,
    and today as a last resort.
    """
    existing_pt_end_date = _as_day(existing_pt_end_date)
    if existing_pt_end_date:
        return existing_pt_end_date + timedelta(days=1)

    membership_start_date = _as_day(membership_start_date)
    if membership_start_date:
        return membership_start_date

    return _as_day(today) or date.today()


def prorated_fee(monthly_fee, days: int, days_per_month: int = PT_DAYS_PER_MONTH) -> int:
    """ceil(monthly_fee / 30 * days), computed exactly so whole amounts never round up by a rupee"""
    daily_rate = Fraction(str(monthly_fee)) / days_per_month
    return math.ceil(daily_rate * days)


def format_till_label(end_date: date) -> str:
    return f"Till {end_date.day} {end_date.strftime('%b %Y')}"


def plan(existing_pt_end_date, membership_start_date, membership_end_date, monthly_fee,
         today: Optional[date] = None, max_months: int = PT_MAX_MONTHS) -> List[DurationOption]:
    """
    Build the ordered PT duration options.

    Invalid month options (ending after the membership) are kept and marked
    is_valid=False so they can be shown disabled. A "Till <end>" option is
    appended when no valid option already ends within a day of the
    membership end.

    Args:
        existing_pt_end_date: end of the current non-expired PT window, or None
        membership_start_date: gym membership start, or None
        membership_end_date: gym membership end
        monthly_fee: trainer's monthly rate

    Returns:
        List of DurationOption; may contain no valid option at all
    """
    membership_end_date = _as_day(membership_end_date)
    start = compute_pt_start_date(existing_pt_end_date, membership_start_date, today)

    options = []
    for months in range(1, max_months + 1):
        end_date = add_months(start, months)
        days = (end_date - start).days
        options.append(DurationOption(
            label=f"{months} Month{'s' if months > 1 else ''}",
            end_date=end_date,
            days=days,
            fee=prorated_fee(monthly_fee, days),
            is_valid=end_date <= membership_end_date,
        ))

    days_to_membership_end = (membership_end_date - start).days
    has_matching_option = any(
        opt.is_valid and abs((opt.end_date - membership_end_date).days) <= 1
        for opt in options
    )

    if not has_matching_option and days_to_membership_end > 0:
        options.append(DurationOption(
            label=format_till_label(membership_end_date),
            end_date=membership_end_date,
            days=days_to_membership_end,
            fee=prorated_fee(monthly_fee, days_to_membership_end),
            is_valid=True,
        ))

    return options


def valid_options(options: List[DurationOption]) -> List[DurationOption]:
    return [opt for opt in options if opt.is_valid]
