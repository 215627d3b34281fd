import asyncio
import logging
from typing import List

from catalog import AppSettings, BoxType, MenuItem, ReferenceData, Vendor
from constants import LOGGER_NAME, WEEKDAY_NAMES
from repositories.reference_repository import (
    fetch_app_settings,
    fetch_box_types,
    fetch_menu_items,
    fetch_vendors,
    upsert_app_settings,
)

logger = logging.getLogger(LOGGER_NAME)


def load_vendors() -> List[Vendor]:
    return [Vendor.from_row(row) for row in fetch_vendors()]


def load_menu_items() -> List[MenuItem]:
    return [MenuItem.from_row(row) for row in fetch_menu_items()]


def load_box_types() -> List[BoxType]:
    return [BoxType.from_row(row) for row in fetch_box_types()]


def load_app_settings() -> AppSettings:
    return AppSettings.from_row(fetch_app_settings())


def load_reference_data_sync() -> ReferenceData:
    return ReferenceData(
        vendors=load_vendors(),
        menu_items=load_menu_items(),
        box_types=load_box_types(),
        settings=load_app_settings(),
    )


async def load_reference_data() -> ReferenceData:
    return await asyncio.to_thread(load_reference_data_sync)


def _validate_cutoff(day: str, time_text: str) -> None:
    if day.capitalize() not in WEEKDAY_NAMES:
        raise ValueError(f"Unknown weekday: {day}")
    parts = time_text.split(":")
    if len(parts) != 2 or not all(part.isdigit() for part in parts):
        raise ValueError(f"Cutoff time must be HH:MM, got {time_text!r}")
    hour, minute = int(parts[0]), int(parts[1])
    if not (0 <= hour < 24 and 0 <= minute < 60):
        raise ValueError(f"Cutoff time out of range: {time_text!r}")


async def update_app_settings(settings: AppSettings) -> AppSettings:
    _validate_cutoff(settings.weekly_cutoff_day, settings.weekly_cutoff_time)
    row = await asyncio.to_thread(
        upsert_app_settings,
        weekly_cutoff_day=settings.weekly_cutoff_day.capitalize(),
        weekly_cutoff_time=settings.weekly_cutoff_time,
    )
    logger.info(
        "Weekly cutoff set to %s %s",
        row.get("weekly_cutoff_day"),
        row.get("weekly_cutoff_time"),
    )
    return AppSettings.from_row(row)
