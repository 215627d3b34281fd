"""
Pytest configuration and fixtures for backend tests.

Repositories talk to Supabase through a module-level ``supabase`` client;
tests swap it for an in-memory table store that understands the small
subset of the query builder the repositories use.
"""

import copy
import itertools
import os
from dataclasses import replace
from datetime import datetime, timezone

os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault(
    "SUPABASE_SERVICE_ROLE_KEY",
    "eyJhbGciOiJIUzI1NiJ9.eyJyb2xlIjoic2VydmljZV9yb2xlIn0.signature",
)
os.environ.setdefault("PROMOTION_AUTOSTART", "false")
os.environ.setdefault("APP_TIMEZONE", "America/New_York")

import pytest

REPOSITORY_MODULES = (
    "repositories.reference_repository",
    "repositories.clients_repository",
    "repositories.order_children_repository",
    "repositories.upcoming_orders_repository",
    "repositories.orders_repository",
    "repositories.billing_repository",
)

_id_counter = itertools.count(1)


class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    def __init__(self, store, table):
        self._store = store
        self._table = table
        self._op = "select"
        self._payload = None
        self._filters = []
        self._order = []
        self._limit = None
        self._negate_next = False

    # --- operations ---

    def select(self, *_columns):
        self._op = "select"
        return self

    def insert(self, payload):
        self._op = "insert"
        self._payload = payload
        return self

    def update(self, payload):
        self._op = "update"
        self._payload = payload
        return self

    def upsert(self, payload, **_kwargs):
        self._op = "upsert"
        self._payload = payload
        return self

    def delete(self):
        self._op = "delete"
        return self

    # --- filters ---

    @property
    def not_(self):
        self._negate_next = True
        return self

    def _add(self, predicate):
        if self._negate_next:
            self._negate_next = False
            self._filters.append(lambda row: not predicate(row))
        else:
            self._filters.append(predicate)
        return self

    def eq(self, column, value):
        return self._add(lambda row: row.get(column) == value)

    def neq(self, column, value):
        return self._add(lambda row: row.get(column) != value)

    def in_(self, column, values):
        values = list(values)
        return self._add(lambda row: row.get(column) in values)

    def lte(self, column, value):
        return self._add(lambda row: row.get(column) is not None and row.get(column) <= value)

    def gte(self, column, value):
        return self._add(lambda row: row.get(column) is not None and row.get(column) >= value)

    def is_(self, column, value):
        expected = None if value in (None, "null") else value
        return self._add(lambda row: row.get(column) is expected or row.get(column) == expected)

    def order(self, column, desc=False):
        self._order.append((column, desc))
        return self

    def limit(self, count):
        self._limit = count
        return self

    # --- execution ---

    def _matches(self, row):
        return all(predicate(row) for predicate in self._filters)

    def _new_row(self, record):
        row = copy.deepcopy(record)
        row.setdefault("id", f"{self._table}-{next(_id_counter)}")
        row.setdefault("created_at", datetime.now(timezone.utc).isoformat())
        return row

    def execute(self):
        rows = self._store.setdefault(self._table, [])
        if self._op == "insert":
            records = self._payload if isinstance(self._payload, list) else [self._payload]
            created = [self._new_row(record) for record in records]
            rows.extend(created)
            return FakeResponse(copy.deepcopy(created))
        if self._op == "upsert":
            records = self._payload if isinstance(self._payload, list) else [self._payload]
            written = []
            for record in records:
                current = next((row for row in rows if row.get("id") == record.get("id")), None)
                if current is None:
                    current = self._new_row(record)
                    rows.append(current)
                else:
                    current.update(copy.deepcopy(record))
                written.append(copy.deepcopy(current))
            return FakeResponse(written)
        if self._op == "update":
            updated = []
            for row in rows:
                if self._matches(row):
                    row.update(copy.deepcopy(self._payload))
                    updated.append(copy.deepcopy(row))
            return FakeResponse(updated)
        if self._op == "delete":
            removed = [row for row in rows if self._matches(row)]
            self._store[self._table] = [row for row in rows if not self._matches(row)]
            return FakeResponse(copy.deepcopy(removed))

        result = [row for row in rows if self._matches(row)]
        for column, desc in reversed(self._order):
            result.sort(
                key=lambda row: (
                    row.get(column) is None,
                    row.get(column) if row.get(column) is not None else 0,
                ),
                reverse=desc,
            )
        if self._limit is not None:
            result = result[: self._limit]
        return FakeResponse(copy.deepcopy(result))


class FakeSupabase:
    def __init__(self):
        self.tables = {}

    def table(self, name):
        return FakeQuery(self.tables, name)

    def rows(self, name):
        return self.tables.get(name, [])

    def seed(self, name, *records):
        self.tables.setdefault(name, []).extend(copy.deepcopy(list(records)))


@pytest.fixture
def fake_db(monkeypatch):
    """Fresh in-memory Supabase patched into every repository."""
    import importlib

    fake = FakeSupabase()
    for module_name in REPOSITORY_MODULES:
        module = importlib.import_module(module_name)
        monkeypatch.setattr(module, "supabase", fake)
    return fake


@pytest.fixture
def reference_rows(fake_db):
    """Vendors, menu, box types and settings shared by most tests."""
    fake_db.seed(
        "vendors",
        {
            "id": "v-mon",
            "name": "Monday Meals",
            "is_active": True,
            "delivery_days": ["Monday", "Thursday"],
            "service_type": "Food",
            "cutoff_hours": 0,
        },
        {
            "id": "v-wed",
            "name": "Wednesday Kitchen",
            "is_active": True,
            "delivery_days": '["Wednesday"]',
            "service_type": "Food,Meal",
            "cutoff_hours": None,
        },
        {
            "id": "v-box",
            "name": "Box Farm",
            "is_active": True,
            "delivery_days": ["Tuesday"],
            "service_type": "Boxes",
            "cutoff_hours": 0,
        },
        {
            "id": "v-any",
            "name": "Anyday Deli",
            "is_active": True,
            "delivery_days": [],
            "service_type": "Food",
        },
    )
    fake_db.seed(
        "menu_items",
        {"id": "m1", "vendor_id": "v-mon", "name": "Chicken Plate", "value": 10, "price_each": None},
        {"id": "m2", "vendor_id": "v-mon", "name": "Soup", "value": 3, "price_each": 4.5},
        {"id": "m3", "vendor_id": "v-wed", "name": "Veggie Bowl", "value": 7},
        {"id": "m4", "vendor_id": "v-any", "name": "Sandwich", "value": 6},
    )
    fake_db.seed(
        "box_types",
        {"id": "bt1", "name": "Standard Box", "vendor_id": "v-box", "price_each": 40},
        {"id": "bt2", "name": "Loose Box", "vendor_id": None, "price_each": 25},
    )
    fake_db.seed(
        "app_settings",
        {"id": "1", "weekly_cutoff_day": "Friday", "weekly_cutoff_time": "17:00"},
    )
    return fake_db


@pytest.fixture
def seed_client(reference_rows):
    reference_rows.seed(
        "clients",
        {
            "id": "c1",
            "full_name": "Ana Diaz",
            "navigator_id": "nav-1",
            "service_type": "Food",
            "authorized_amount": 100,
            "active_order": None,
            "assigned_driver_id": "Driver 2",
        },
    )
    return reference_rows


@pytest.fixture
def wednesday_morning():
    """Wednesday 2025-01-08 10:00 in New York; the week runs Jan 5 - Jan 11."""
    from services.date_policy import app_timezone

    return datetime(2025, 1, 8, 10, 0, tzinfo=app_timezone())


@pytest.fixture
def frozen_now(monkeypatch, wednesday_morning):
    """Pin current_time() through FAKE_TIME for code paths that take no ``now``."""
    from services import date_policy

    monkeypatch.setattr(
        date_policy,
        "settings",
        replace(date_policy.settings, fake_time=wednesday_morning.isoformat()),
    )
    return wednesday_morning


@pytest.fixture
def reference(reference_rows):
    from services.reference_service import load_reference_data_sync

    return load_reference_data_sync()


@pytest.fixture
def api_client(seed_client, frozen_now):
    from fastapi.testclient import TestClient

    from main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def placed_orders(seed_client):
    """Placed orders for Monday 2025-01-13 across three drivers and two vendors."""
    seed_client.seed(
        "clients",
        {"id": "c2", "full_name": "Ben Ortiz", "assigned_driver_id": "Driver 10"},
        {"id": "c3", "full_name": "Cara Lee", "assigned_driver_id": None},
    )
    base = {
        "service_type": "Food",
        "status": "pending",
        "delivery_day": "Monday",
        "take_effect_date": "2025-01-12",
        "scheduled_delivery_date": "2025-01-13",
    }
    seed_client.seed(
        "orders",
        {**base, "id": "o1", "client_id": "c1", "order_number": 100010, "total_value": 99, "total_items": 2},
        {**base, "id": "o2", "client_id": "c2", "order_number": 100011, "total_value": 4.5, "total_items": 1},
        {**base, "id": "o3", "client_id": "c3", "order_number": 100012, "total_value": 10, "total_items": 1},
        {**base, "id": "o4", "client_id": "c1", "order_number": 100013, "total_value": 7, "total_items": 1},
    )
    seed_client.seed(
        "order_vendor_selections",
        {"id": "s1", "order_id": "o1", "vendor_id": "v-mon"},
        {"id": "s2", "order_id": "o2", "vendor_id": "v-mon"},
        {"id": "s3", "order_id": "o3", "vendor_id": "v-mon"},
        {"id": "s4", "order_id": "o4", "vendor_id": "v-wed"},
    )
    seed_client.seed(
        "order_items",
        {"id": "i1", "order_id": "o1", "vendor_selection_id": "s1", "menu_item_id": "m1", "quantity": 2},
        {"id": "i2", "order_id": "o2", "vendor_selection_id": "s2", "menu_item_id": "m2", "quantity": 1},
        {"id": "i3", "order_id": "o3", "vendor_selection_id": "s3", "menu_item_id": "m1", "quantity": 1},
        {"id": "i4", "order_id": "o4", "vendor_selection_id": "s4", "menu_item_id": "m3", "quantity": 1},
    )
    return seed_client
