"""Calendar helpers shared by the effective date rules."""

from __future__ import annotations

from datetime import date, datetime

SELECTED_DATE_FORMAT = "%m/%d/%Y"


def first_of_next_month(day: date) -> date:
    if day.month == 12:
        return date(day.year + 1, 1, 1)
    return date(day.year, day.month + 1, 1)


def first_of_month_after_next(day: date) -> date:
    return first_of_next_month(first_of_next_month(day))


def parse_selected_date(text: str) -> date:
    """Parse a user-selected `MM/DD/YYYY` date option.

    Raises:
        ValueError: if the text is not a valid `MM/DD/YYYY` date
    """
    return datetime.strptime(text.strip(), SELECTED_DATE_FORMAT).date()


def format_selected_date(day: date) -> str:
    return day.strftime(SELECTED_DATE_FORMAT)
