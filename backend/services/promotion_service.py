import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from catalog import ReferenceData
from config import settings
from constants import LOGGER_NAME, ORDER_STATUS_PENDING
from repositories import orders_repository, upcoming_orders_repository
from repositories.clients_repository import fetch_client
from repositories.order_children_repository import (
    PLACED_TABLES,
    UPCOMING_TABLES,
    fetch_box_selections,
    fetch_items,
    fetch_vendor_selections,
    insert_box_selection,
    insert_item,
    insert_vendor_selection,
)
from services.billing_service import ensure_billing_record_sync
from services.date_policy import current_time, get_next_delivery_date_for_day, today_in_app_tz
from services.order_normalizer import from_stored_order
from services.order_sync_service import children_total, sync_client_order
from services.reference_service import load_reference_data_sync

logger = logging.getLogger(LOGGER_NAME)

_COPIED_ITEM_FIELDS = (
    "menu_item_id",
    "custom_name",
    "custom_price",
    "quantity",
    "unit_value",
    "total_value",
    "notes",
)
_COPIED_BOX_FIELDS = (
    "vendor_id",
    "box_type_id",
    "box_number",
    "quantity",
    "unit_value",
    "total_value",
    "items",
)


@dataclass
class PromotionResult:
    processed: int = 0
    errors: List[str] = field(default_factory=list)
    order_ids: List[str] = field(default_factory=list)


def _primary_vendor_id(upcoming_id: str) -> Optional[str]:
    for row in fetch_vendor_selections(UPCOMING_TABLES, upcoming_id):
        if row.get("vendor_id"):
            return row["vendor_id"]
    for row in fetch_box_selections(UPCOMING_TABLES, upcoming_id):
        if row.get("vendor_id"):
            return row["vendor_id"]
    return None


def _scheduled_delivery_date(
    upcoming: Dict[str, Any],
    reference: ReferenceData,
    now: datetime,
) -> Optional[str]:
    day = upcoming.get("delivery_day")
    if not day:
        return None
    try:
        found = get_next_delivery_date_for_day(
            day, reference.vendors, _primary_vendor_id(upcoming["id"]), now
        )
    except ValueError:
        logger.warning("Upcoming order %s has invalid delivery day %r", upcoming["id"], day)
        return None
    return found.isoformat() if found else None


def _copy_children(upcoming_id: str, order_id: str) -> None:
    selection_map: Dict[str, str] = {}
    for row in fetch_vendor_selections(UPCOMING_TABLES, upcoming_id):
        placed = insert_vendor_selection(PLACED_TABLES, order_id, row.get("vendor_id"))
        selection_map[row["id"]] = placed["id"]

    for row in fetch_items(UPCOMING_TABLES, upcoming_id):
        record = {key: row.get(key) for key in _COPIED_ITEM_FIELDS}
        record[PLACED_TABLES.parent_key] = order_id
        record["vendor_selection_id"] = selection_map.get(row.get("vendor_selection_id"))
        insert_item(PLACED_TABLES, record)

    for row in fetch_box_selections(UPCOMING_TABLES, upcoming_id):
        record = {key: row.get(key) for key in _COPIED_BOX_FIELDS}
        record[PLACED_TABLES.parent_key] = order_id
        insert_box_selection(PLACED_TABLES, record)


def promote_upcoming_order(
    upcoming: Dict[str, Any],
    reference: ReferenceData,
    now: datetime,
) -> Dict[str, Any]:
    """Materialize one upcoming order into ``orders``; safe to retry."""
    order = orders_repository.fetch_order_for_upcoming(upcoming["id"])
    if order is None:
        order = orders_repository.insert_order(
            {
                "client_id": upcoming["client_id"],
                "upcoming_order_id": upcoming["id"],
                "service_type": upcoming.get("service_type"),
                "case_id": upcoming.get("case_id"),
                "status": ORDER_STATUS_PENDING,
                "delivery_day": upcoming.get("delivery_day"),
                "take_effect_date": upcoming.get("take_effect_date"),
                "scheduled_delivery_date": _scheduled_delivery_date(upcoming, reference, now),
                "order_number": upcoming.get("order_number"),
                "notes": upcoming.get("notes"),
                "total_value": 0,
                "total_items": 0,
                "last_updated": now.isoformat(),
                "updated_by": upcoming.get("updated_by"),
            }
        )
        _copy_children(upcoming["id"], order["id"])

    total_value, total_items = children_total(
        fetch_items(PLACED_TABLES, order["id"]),
        fetch_box_selections(PLACED_TABLES, order["id"]),
        reference,
    )
    order = orders_repository.update_order(
        order["id"], {"total_value": total_value, "total_items": total_items}
    ) or {**order, "total_value": total_value, "total_items": total_items}

    ensure_billing_record_sync(order, remarks=f"Order #{order.get('order_number')}")
    upcoming_orders_repository.mark_processed(
        upcoming["id"], order_id=order["id"], processed_at=now
    )
    return order


def _rollover(client_id: str, reference: ReferenceData, now: datetime) -> None:
    client = fetch_client(client_id)
    if not client or not client.get("active_order"):
        return
    sync_client_order(
        client_id,
        from_stored_order(client["active_order"], client.get("service_type")),
        reference,
        skip_client_update=True,
        now=now,
    )


def process_upcoming_orders_sync(now: Optional[datetime] = None) -> PromotionResult:
    now = now or current_time()
    result = PromotionResult()
    due = upcoming_orders_repository.fetch_due_upcoming_orders(today_in_app_tz(now))
    if not due:
        return result

    reference = load_reference_data_sync()
    promoted_clients: List[str] = []
    for upcoming in due:
        try:
            order = promote_upcoming_order(upcoming, reference, now)
        except Exception as exc:
            logger.exception("Failed to promote upcoming order %s: %s", upcoming["id"], exc)
            result.errors.append(f"{upcoming['id']}: {exc}")
            continue
        result.processed += 1
        result.order_ids.append(order["id"])
        if upcoming["client_id"] not in promoted_clients:
            promoted_clients.append(upcoming["client_id"])

    for client_id in promoted_clients:
        try:
            _rollover(client_id, reference, now)
        except Exception as exc:
            logger.exception("Rollover sync failed for client %s: %s", client_id, exc)
            result.errors.append(f"rollover {client_id}: {exc}")

    logger.info(
        "Promotion run: %s processed, %s error(s)",
        result.processed,
        len(result.errors),
    )
    return result


async def process_upcoming_orders(now: Optional[datetime] = None) -> PromotionResult:
    return await asyncio.to_thread(process_upcoming_orders_sync, now)


class PromotionWorker:
    def __init__(self, interval_seconds: int = 3600) -> None:
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None
        self._last_run_at: Optional[datetime] = None
        self._last_success_at: Optional[datetime] = None
        self._last_error: Optional[str] = None
        self._last_result: Optional[PromotionResult] = None
        self._run_lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if not self._task:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def run_once(self, now: Optional[datetime] = None) -> PromotionResult:
        # Manual runs and the loop share one lock so an upcoming order is placed once.
        async with self._run_lock:
            self._last_run_at = datetime.now(timezone.utc)
            try:
                result = await process_upcoming_orders(now)
            except Exception as exc:
                self._last_error = str(exc)
                raise
            self._last_result = result
            self._last_success_at = datetime.now(timezone.utc)
            self._last_error = "; ".join(result.errors) or None
            return result

    async def _run(self) -> None:
        while True:
            try:
                await self.run_once()
            except Exception as exc:  # pragma: no cover - guard rail
                logger.exception("Promotion cycle failed: %s", exc)
            await asyncio.sleep(self.interval_seconds)

    def get_status(self) -> Dict[str, Any]:
        last = self._last_result
        return {
            "running": self.is_running,
            "interval_seconds": self.interval_seconds,
            "last_run_at": self._last_run_at,
            "last_success_at": self._last_success_at,
            "last_error": self._last_error,
            "last_processed": last.processed if last else 0,
            "last_order_ids": list(last.order_ids) if last else [],
        }


promotion_worker = PromotionWorker(interval_seconds=settings.promotion_interval_seconds)
