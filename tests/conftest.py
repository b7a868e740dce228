"""Pytest configuration and fixtures."""

import copy
import uuid
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime
from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient

from dropship_service.api import deps
from dropship_service.config import Settings, get_settings
from dropship_service.domain import (
    LocalOrder,
    OrderStatus,
    ProductUpsert,
    SyncRun,
    SyncRunStatus,
    UpsertResult,
)
from dropship_service.infrastructure.database.stores import TRACKING_FIELDS
from dropship_service.infrastructure.supplier.auth import TokenProvider
from dropship_service.infrastructure.supplier.client import SupplierApiClient
from dropship_service.main import create_app

SUPPLIER_BASE_URL = "https://supplier.test/api2.0/v1"
SUPPLIER_TOKEN_PATH = "/authentication/getAccessToken"
ADMIN_API_KEY = "test-admin-key"

# 2026-01-01T00:00:00Z
START_EPOCH_MS = 1_767_225_600_000


# =============================================================================
# Supplier API fake
# =============================================================================


class FakeSupplier:
    """Scriptable supplier HTTP API served through httpx.MockTransport.

    Responses are queued per path (relative to the API base); the last queued
    response repeats. A queued item is either ``(status, json_body)`` or a
    callable taking the request and returning an ``httpx.Response``.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._queues: dict[str, list[Any]] = {}
        self.on(SUPPLIER_TOKEN_PATH, (200, {"access_token": "token-1", "expires_in": 3600}))

    def on(self, path: str, *responses: Any) -> None:
        self._queues[path] = list(responses)

    def calls(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith(path)]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/api2.0/v1")
        queue = self._queues.get(path)
        if not queue:
            return httpx.Response(404, json={"message": f"no fake route for {path}"})

        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if callable(item):
            return item(request)
        status_code, body = item
        return httpx.Response(status_code, json=body)


class FakeClock:
    """Millisecond clock the tests move by hand."""

    def __init__(self, now_ms: int = START_EPOCH_MS) -> None:
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, seconds: float) -> None:
        self.now_ms += int(seconds * 1000)


# =============================================================================
# In-memory stores
# =============================================================================


class InMemoryProductStore:
    """ProductStore keyed like the SQL store: external id, else sku."""

    def __init__(self) -> None:
        self.rows: dict[str, ProductUpsert] = {}
        self.fail_for: set[str] = set()

    def _find(self, product: ProductUpsert) -> str | None:
        for product_id, row in self.rows.items():
            if product.external_product_id:
                if row.external_product_id == product.external_product_id:
                    return product_id
            elif row.external_product_id is None and row.sku == product.sku:
                return product_id
        return None

    async def upsert(self, product: ProductUpsert) -> UpsertResult:
        if product.external_product_id in self.fail_for:
            raise RuntimeError("database unavailable")
        existing = self._find(product)
        product_id = existing or str(uuid.uuid4())
        self.rows[product_id] = replace(product)
        return UpsertResult(product_id=product_id, created=existing is None)

    async def count_supplier_products(self) -> int:
        return sum(1 for row in self.rows.values() if row.external_product_id)

    def by_external_id(self, external_product_id: str) -> ProductUpsert | None:
        return next(
            (r for r in self.rows.values() if r.external_product_id == external_product_id),
            None,
        )


class InMemoryOrderStore:
    """OrderStore with the same conditional-write semantics as SqlOrderStore."""

    def __init__(self) -> None:
        self.orders: dict[str, LocalOrder] = {}

    def add(self, order: LocalOrder) -> LocalOrder:
        self.orders[order.id] = order
        return order

    async def get(self, order_id: str) -> LocalOrder | None:
        return self.orders.get(order_id)

    async def get_by_order_number(self, order_number: str) -> LocalOrder | None:
        return next((o for o in self.orders.values() if o.order_number == order_number), None)

    async def mark_submitted(
        self,
        order_id: str,
        external_order_id: str,
        external_order_number: str | None,
        submitted_at: datetime,
    ) -> bool:
        current = self.orders.get(order_id)
        if current is None or current.external_order_id is not None:
            return False
        self.orders[order_id] = current.model_copy(
            update={
                "external_order_id": external_order_id,
                "external_order_number": external_order_number,
                "submitted_at": submitted_at,
                "status": OrderStatus.PROCESSING,
            }
        )
        return True

    async def mark_failed(self, order_id: str, note: str) -> None:
        current = self.orders[order_id]
        if current.external_order_id is None:
            self.orders[order_id] = current.model_copy(
                update={"status": OrderStatus.FAILED, "notes": note}
            )

    async def update_tracking(self, order_id: str, fields: dict[str, Any]) -> None:
        unknown = set(fields) - TRACKING_FIELDS
        if unknown:
            raise ValueError(f"Not tracking fields: {sorted(unknown)}")
        self.orders[order_id] = self.orders[order_id].model_copy(update=fields)

    async def list_awaiting_tracking(
        self, statuses: list[OrderStatus], limit: int
    ) -> list[LocalOrder]:
        candidates = [
            o for o in self.orders.values() if o.external_order_id and o.status in statuses
        ]
        candidates.sort(
            key=lambda o: (o.tracking_checked_at is not None, o.tracking_checked_at or datetime.min)
        )
        return candidates[:limit]

    async def count_submitted(self) -> int:
        return sum(1 for o in self.orders.values() if o.external_order_id)

    async def count_with_status(self, status: OrderStatus) -> int:
        return sum(1 for o in self.orders.values() if o.status == status)


class InMemorySyncRunStore:
    """SyncRunStore that also keeps every saved snapshot."""

    def __init__(self) -> None:
        self.runs: dict[str, SyncRun] = {}
        self.snapshots: list[SyncRun] = []

    async def create(self, run: SyncRun) -> None:
        self.runs[run.id] = copy.deepcopy(run)
        self.snapshots.append(copy.deepcopy(run))

    async def save(self, run: SyncRun) -> None:
        self.runs[run.id] = copy.deepcopy(run)
        self.snapshots.append(copy.deepcopy(run))

    async def get(self, run_id: str) -> SyncRun | None:
        return self.runs.get(run_id)

    async def list_recent(self, limit: int = 20, sync_type: str | None = None) -> list[SyncRun]:
        runs = [r for r in self.runs.values() if sync_type is None or r.sync_type == sync_type]
        runs.sort(key=lambda r: r.started_at, reverse=True)
        return runs[:limit]

    async def last_successful(self, sync_type: str) -> SyncRun | None:
        runs = await self.list_recent(limit=len(self.runs) or 1, sync_type=sync_type)
        return next((r for r in runs if r.status == SyncRunStatus.SUCCESS), None)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def test_settings() -> Settings:
    """Get test settings with overrides."""
    return Settings(
        app_env="test",
        debug=True,
        postgres_host="localhost",
        postgres_port=5432,
        postgres_user="test",
        postgres_password="test",
        postgres_db="test_db",
        cj_api_base_url=SUPPLIER_BASE_URL,
        cj_token_url=f"{SUPPLIER_BASE_URL}{SUPPLIER_TOKEN_PATH}",
        cj_api_key="CJ0001@api@secret",
        admin_api_key=ADMIN_API_KEY,
    )


@pytest.fixture
def fake_supplier() -> FakeSupplier:
    return FakeSupplier()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeps() -> list[float]:
    """Delays (seconds) the supplier client asked to sleep."""
    return []


@pytest.fixture
def http_client(fake_supplier: FakeSupplier) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(fake_supplier.handler))


@pytest.fixture
def token_provider(
    http_client: httpx.AsyncClient, clock: FakeClock, test_settings: Settings
) -> TokenProvider:
    return TokenProvider(
        http_client=http_client,
        token_url=test_settings.cj_token_url,
        api_key=test_settings.cj_api_key,
        clock=clock,
    )


@pytest.fixture
def supplier_client(
    http_client: httpx.AsyncClient, token_provider: TokenProvider, sleeps: list[float]
) -> SupplierApiClient:
    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return SupplierApiClient(
        http_client=http_client,
        token_provider=token_provider,
        base_url=SUPPLIER_BASE_URL,
        max_retries=3,
        backoff_ms=1000,
        sleep=fake_sleep,
    )


@pytest.fixture
def product_store() -> InMemoryProductStore:
    return InMemoryProductStore()


@pytest.fixture
def order_store() -> InMemoryOrderStore:
    return InMemoryOrderStore()


@pytest.fixture
def sync_run_store() -> InMemorySyncRunStore:
    return InMemorySyncRunStore()


@pytest.fixture
def app(
    test_settings: Settings,
    supplier_client: SupplierApiClient,
    product_store: InMemoryProductStore,
    order_store: InMemoryOrderStore,
    sync_run_store: InMemorySyncRunStore,
) -> Any:
    """Create test application wired to the fakes."""
    app = create_app()
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[deps.get_supplier_client] = lambda: supplier_client
    app.dependency_overrides[deps.get_product_store] = lambda: product_store
    app.dependency_overrides[deps.get_order_store] = lambda: order_store
    app.dependency_overrides[deps.get_sync_run_store] = lambda: sync_run_store
    app.dependency_overrides[deps.database_ready] = lambda: True
    return app


@pytest.fixture
def client(app: Any) -> TestClient:
    """Create synchronous test client."""
    return TestClient(app)


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-API-Key": ADMIN_API_KEY}


# =============================================================================
# Sample data
# =============================================================================


@pytest.fixture
def make_supplier_product() -> Callable[..., dict]:
    """Build a raw supplier product listing item."""

    def _make(pid: str, **overrides: Any) -> dict:
        item = {
            "pid": pid,
            "productSku": f"SKU-{pid}",
            "productNameEn": f"Snail Mucin Essence {pid}",
            "productDescEn": "Hydrating essence",
            "sellPrice": "10.00",
            "warehouseInventoryNum": 25,
            "productImageList": [f"https://img.test/{pid}.jpg"],
            "categoryId": "cat-skincare",
            "categoryName": "Skincare",
            "variants": [
                {
                    "vid": f"{pid}-v1",
                    "variantNameEn": "100ml",
                    "variantSku": f"SKU-{pid}-100",
                    "variantSellPrice": 10.0,
                    "variantInventory": 25,
                }
            ],
        }
        item.update(overrides)
        return item

    return _make


@pytest.fixture
def make_order() -> Callable[..., LocalOrder]:
    """Build a paid local order ready for submission."""

    def _make(**overrides: Any) -> LocalOrder:
        data: dict[str, Any] = {
            "id": str(uuid.uuid4()),
            "order_number": "ORD-1001",
            "status": OrderStatus.PAID,
            "total_amount": 49.9,
            "shipping_address": {
                "name": "Jamie Doe",
                "address": "12 Rue de la Paix",
                "city": "Paris",
                "state": "Ile-de-France",
                "country": "France",
                "countryCode": "FR",
                "zip": "75002",
                "phone": "+33100000000",
                "email": "jamie@example.com",
            },
            "line_items": [
                {"cj_variant_id": "V-1", "cj_product_id": "P-1", "quantity": 2, "id": "li-1"},
                {"cj_product_id": "P-2", "quantity": 1},
            ],
        }
        data.update(overrides)
        return LocalOrder.model_validate(data)

    return _make
