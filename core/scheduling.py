"""
Helpers to turn PRICE_UPDATE_TIME into a Celery crontab.
"""

import logging

from celery.schedules import crontab

logger = logging.getLogger(__name__)

DEFAULT_UPDATE_HOUR = 9
DEFAULT_UPDATE_MINUTE = 0


def parse_update_time(value: str | None) -> tuple[int, int]:
    """
    Parse an "HH:MM" string into (hour, minute).

    Invalid values are logged and replaced by 09:00.
    """
    try:
        hours, minutes = (value or "").split(":")
        hour = int(hours)
        minute = int(minutes)
    except ValueError:
        hour = minute = -1

    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        logger.warning('Invalid PRICE_UPDATE_TIME "%s" supplied. Falling back to 09:00.', value)
        return DEFAULT_UPDATE_HOUR, DEFAULT_UPDATE_MINUTE

    return hour, minute


def daily_crontab(value: str | None) -> crontab:
    hour, minute = parse_update_time(value)
    return crontab(hour=hour, minute=minute)
