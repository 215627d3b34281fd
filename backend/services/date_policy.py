"""
Delivery-date and take-effect-date rules.

All calendar math happens in the app timezone (America/New_York by default)
so that a UTC server never shifts "today" or the weekday of a delivery.
Weeks run Sunday through Saturday; the take-effect date is always a Sunday.
"""

import logging
import re
from datetime import date, datetime, time, timedelta
from typing import Any, Iterable, List, Optional
from zoneinfo import ZoneInfo

from catalog import AppSettings, Vendor
from config import settings
from constants import (
    DEFAULT_CUTOFF_DAY,
    DEFAULT_CUTOFF_TIME,
    DELIVERY_SEARCH_DAYS,
    LOGGER_NAME,
    WEEKDAY_NAMES,
)

logger = logging.getLogger(LOGGER_NAME)

_DATE_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")


def app_timezone() -> ZoneInfo:
    return ZoneInfo(settings.app_timezone)


def to_app_tz(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=app_timezone())
    return value.astimezone(app_timezone())


def current_time() -> datetime:
    """Aware "now" in the app timezone; FAKE_TIME pins it for simulations."""
    if settings.fake_time:
        try:
            fake = datetime.fromisoformat(settings.fake_time.replace("Z", "+00:00"))
            return to_app_tz(fake)
        except ValueError:
            logger.warning("Ignoring unparseable FAKE_TIME=%s", settings.fake_time)
    return datetime.now(app_timezone())


def today_in_app_tz(now: Optional[datetime] = None) -> date:
    return to_app_tz(now or current_time()).date()


def normalize_day_name(day_name: str) -> str:
    text = str(day_name or "").strip().capitalize()
    if text not in WEEKDAY_NAMES:
        raise ValueError(f"Unknown weekday: {day_name!r}")
    return text


def weekday_index(day_name: str) -> int:
    return WEEKDAY_NAMES.index(normalize_day_name(day_name))


def date_weekday_index(value: date) -> int:
    # date.weekday() is Monday=0; shift to Sunday=0.
    return (value.weekday() + 1) % 7


def week_start(value: date) -> date:
    return value - timedelta(days=date_weekday_index(value))


def week_end(value: date) -> date:
    return week_start(value) + timedelta(days=6)


def week_range_string(value: date) -> str:
    start = week_start(value)
    end = week_end(value)
    return f"{start:%b} {start.day} - {end:%b} {end.day}, {end.year}"


def is_date_in_week(value: date, week_start_date: date) -> bool:
    return week_start(value) == week_start(week_start_date)


def week_options(
    weeks_back: int = 8,
    weeks_forward: int = 2,
    now: Optional[datetime] = None,
) -> List[date]:
    current = week_start(today_in_app_tz(now))
    return [current + timedelta(weeks=offset) for offset in range(-weeks_back, weeks_forward + 1)]


def parse_cutoff_time(text: str) -> time:
    hour_text, _, minute_text = str(text or "").partition(":")
    return time(int(hour_text), int(minute_text or 0))


def _cutoff_moment(app_settings: AppSettings, reference_week: date, tz) -> datetime:
    try:
        day_offset = weekday_index(app_settings.weekly_cutoff_day)
    except ValueError:
        logger.warning("Invalid weekly cutoff day %r", app_settings.weekly_cutoff_day)
        day_offset = weekday_index(DEFAULT_CUTOFF_DAY)
    try:
        cutoff_time = parse_cutoff_time(app_settings.weekly_cutoff_time)
    except ValueError:
        logger.warning("Invalid weekly cutoff time %r", app_settings.weekly_cutoff_time)
        cutoff_time = parse_cutoff_time(DEFAULT_CUTOFF_TIME)
    cutoff_date = reference_week + timedelta(days=day_offset)
    return datetime.combine(cutoff_date, cutoff_time, tzinfo=tz)


def get_take_effect_date(app_settings: AppSettings, now: Optional[datetime] = None) -> date:
    local_now = to_app_tz(now or current_time())
    start = week_start(local_now.date())
    boundary = start + timedelta(days=7)
    if local_now >= _cutoff_moment(app_settings, start, local_now.tzinfo):
        boundary += timedelta(days=7)
    return boundary


def get_next_occurrence(day_name: str, now: Optional[datetime] = None) -> date:
    today = today_in_app_tz(now)
    offset = (weekday_index(day_name) - date_weekday_index(today)) % 7
    return today + timedelta(days=offset)


def _find_vendor(vendors: Iterable[Vendor], vendor_id: Optional[str]) -> Optional[Vendor]:
    if not vendor_id:
        return None
    for vendor in vendors:
        if vendor.id == str(vendor_id):
            return vendor
    return None


def vendor_delivers_on(vendor: Vendor, day_name: str) -> bool:
    if not vendor.delivery_days:
        return True
    target = normalize_day_name(day_name)
    return any(day.capitalize() == target for day in vendor.delivery_days)


def get_next_delivery_date_for_day(
    day_name: str,
    vendors: Iterable[Vendor],
    vendor_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Optional[date]:
    target = weekday_index(day_name)
    vendor = _find_vendor(vendors, vendor_id)
    if vendor and not vendor_delivers_on(vendor, day_name):
        return None
    cutoff_hours = vendor.cutoff_hours if vendor else 0
    local_now = to_app_tz(now or current_time())
    earliest = (local_now + timedelta(hours=cutoff_hours)).date()
    for offset in range(DELIVERY_SEARCH_DAYS + 1):
        candidate = earliest + timedelta(days=offset)
        if date_weekday_index(candidate) == target:
            return candidate
    return None


def get_first_delivery_date(vendor: Vendor, now: Optional[datetime] = None) -> Optional[date]:
    dates = []
    for day in vendor.delivery_days:
        try:
            found = get_next_delivery_date_for_day(day, [vendor], vendor.id, now)
        except ValueError:
            logger.warning("Vendor %s has invalid delivery day %r", vendor.id, day)
            continue
        if found:
            dates.append(found)
    return min(dates) if dates else None


def to_calendar_date(value: Any) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_app_tz(value).date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if _DATE_PREFIX.match(text):
        return date.fromisoformat(text[:10])
    try:
        return to_app_tz(datetime.fromisoformat(text.replace("Z", "+00:00"))).date()
    except ValueError:
        return None
