"""Clinic wall clock.

Appointments are civil times in the clinic timezone, stored naive. Every
"now" comparison goes through here so nothing is normalized to UTC.
"""

from datetime import date, datetime
from zoneinfo import ZoneInfo

from ...config import CLINIC_TIMEZONE

CLINIC_TZ = ZoneInfo(CLINIC_TIMEZONE)


def clinic_now() -> datetime:
    """Current clinic-local time without tzinfo"""
    return datetime.now(CLINIC_TZ).replace(tzinfo=None, microsecond=0)


def clinic_today() -> date:
    return clinic_now().date()
