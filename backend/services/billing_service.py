import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from constants import (
    BILLING_STATUS_FAILED,
    BILLING_STATUS_PENDING,
    BILLING_STATUS_SUCCESS,
    BILLING_UPDATE_FAILED,
    BILLING_UPDATE_STATUSES,
    BILLING_UPDATE_SUCCESSFUL,
    LOGGER_NAME,
    ORDER_STATUS_BILLING_PENDING,
    ORDER_STATUS_COMPLETED,
)
from repositories import billing_repository, orders_repository
from repositories.clients_repository import fetch_client, update_authorized_amount
from services.date_policy import current_time, today_in_app_tz

logger = logging.getLogger(LOGGER_NAME)


def _deduct_balance(client: Dict[str, Any], amount: float) -> None:
    balance = client.get("authorized_amount")
    if balance is None:
        return
    remaining = max(0.0, float(balance) - amount)
    update_authorized_amount(client["id"], remaining)
    logger.info(
        "Client %s balance %.2f -> %.2f after order charge %.2f",
        client["id"],
        float(balance),
        remaining,
        amount,
    )


def ensure_billing_record_sync(
    order: Dict[str, Any],
    remarks: Optional[str] = None,
    status_value: str = BILLING_STATUS_PENDING,
) -> Tuple[Dict[str, Any], bool]:
    """Return the order's billing record, creating it (and charging) once."""
    existing = billing_repository.fetch_for_order(order["id"])
    if existing:
        return existing, False

    client = fetch_client(order["client_id"]) or {"id": order["client_id"]}
    amount = float(order.get("total_value") or 0)
    record = billing_repository.insert_billing_record(
        {
            "client_id": order["client_id"],
            "client_name": client.get("full_name"),
            "order_id": order["id"],
            "status": status_value,
            "amount": amount,
            "navigator": client.get("navigator_id"),
            "remarks": remarks,
            "delivery_date": order.get("scheduled_delivery_date"),
        }
    )
    _deduct_balance(client, amount)
    return record, True


async def ensure_billing_record(
    order: Dict[str, Any],
    remarks: Optional[str] = None,
    status_value: str = BILLING_STATUS_PENDING,
) -> Tuple[Dict[str, Any], bool]:
    return await asyncio.to_thread(ensure_billing_record_sync, order, remarks, status_value)


def record_delivery_proof_sync(
    order_id: str,
    proof_url: str,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    order = orders_repository.fetch_order(order_id)
    if not order:
        raise ValueError("Order not found")
    delivered_on = today_in_app_tz(now or current_time())
    updated = orders_repository.update_order(
        order_id,
        {
            "status": ORDER_STATUS_BILLING_PENDING,
            "actual_delivery_date": delivered_on.isoformat(),
            "delivery_proof_url": proof_url,
        },
    )
    if not updated:
        raise RuntimeError(f"Failed to record delivery proof for order {order_id}")
    ensure_billing_record_sync(updated, remarks="Delivery proof uploaded")
    logger.info("Order %s delivered on %s", order_id, delivered_on)
    return updated


async def record_delivery_proof(
    order_id: str,
    proof_url: str,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    return await asyncio.to_thread(record_delivery_proof_sync, order_id, proof_url, now)


def update_billing_status_sync(order_ids: List[str], status_value: str) -> List[Dict[str, Any]]:
    if status_value not in BILLING_UPDATE_STATUSES:
        raise ValueError(f"Unsupported billing status: {status_value}")
    if not order_ids:
        return []

    if status_value == BILLING_UPDATE_SUCCESSFUL:
        rows = orders_repository.update_orders_status(order_ids, ORDER_STATUS_COMPLETED)
        billing_repository.update_status_for_orders(order_ids, BILLING_STATUS_SUCCESS)
    elif status_value == BILLING_UPDATE_FAILED:
        rows = orders_repository.fetch_orders(order_ids)
        billing_repository.update_status_for_orders(order_ids, BILLING_STATUS_FAILED)
    else:
        rows = orders_repository.update_orders_status(order_ids, ORDER_STATUS_BILLING_PENDING)
        billing_repository.update_status_for_orders(order_ids, BILLING_STATUS_PENDING)

    logger.info("Billing status %s applied to %s order(s)", status_value, len(rows))
    return rows


async def update_billing_status(order_ids: List[str], status_value: str) -> List[Dict[str, Any]]:
    return await asyncio.to_thread(update_billing_status_sync, order_ids, status_value)
