"""
Case Number Generation Service.

Generates case numbers in the format CM-YYYYMMDD-NNNN, numbered per UTC day.
"""

import re
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from ..models.case import Case


CASE_NUMBER_PATTERN = re.compile(r"^CM-(\d{8})-(\d{4,})$")


def _day_prefix(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"CM-{now.astimezone(timezone.utc).strftime('%Y%m%d')}-"


def generate_case_number(db: Session, now: Optional[datetime] = None, max_retries: int = 10) -> str:
    """
    Generate the next case number for the current UTC day.

    Takes the highest sequence already issued today and increments it,
    stepping forward if that number is already taken.

    Example:
        >>> generate_case_number(db)
        "CM-20260115-0003"
    """
    prefix = _day_prefix(now)

    existing = (
        db.query(Case.case_number)
        .filter(Case.case_number.like(f"{prefix}%"))
        .all()
    )
    highest = 0
    for (number,) in existing:
        match = CASE_NUMBER_PATTERN.match(number)
        if match:
            highest = max(highest, int(match.group(2)))

    for attempt in range(max_retries):
        case_number = f"{prefix}{highest + 1 + attempt:04d}"
        exists = db.query(Case.id).filter(Case.case_number == case_number).first()
        if not exists:
            return case_number

    raise RuntimeError(f"Unable to allocate case number after {max_retries} attempts")


def validate_case_number_format(case_number: str) -> bool:
    """
    Example:
        >>> validate_case_number_format("CM-20260115-0001")
        True
        >>> validate_case_number_format("CM-2026-001")
        False
    """
    return bool(CASE_NUMBER_PATTERN.match(case_number))
