"""Unit tests for the scheduled tracking refresh batch."""

from datetime import datetime

import httpx
import pytest
from celery.exceptions import Retry
from sqlalchemy.exc import SQLAlchemyError

from dropship_service.domain import OrderStatus
from dropship_service.services.tracking import TrackingReconciler
from sync_worker.tasks import track_orders
from sync_worker.tasks.track_orders import refresh_open_orders, refresh_open_orders_tracking

QUERY_PATH = "/shopping/order/query"

STATUS_BY_SUPPLIER_ID = {"CJ-A": "delivered", "CJ-B": "shipped", "CJ-C": "processing"}


def answer_by_order(request: httpx.Request) -> httpx.Response:
    order_num = request.url.params["orderNum"]
    if order_num == "CJ-FAIL":
        return httpx.Response(500, json={"message": "upstream down"})
    if order_num == "CJ-GARBLED":
        return httpx.Response(
            200, json={"code": 200, "result": True, "message": "Success", "data": ["garbled"]}
        )
    return httpx.Response(
        200,
        json={
            "code": 200,
            "result": True,
            "message": "Success",
            "data": {"orderId": order_num, "orderStatus": STATUS_BY_SUPPLIER_ID[order_num]},
        },
    )


@pytest.fixture
def reconciler(supplier_client, order_store) -> TrackingReconciler:
    return TrackingReconciler(supplier_client, order_store)


class TestRefreshOpenOrders:
    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_the_batch(
        self, reconciler, order_store, fake_supplier, make_order
    ) -> None:
        for external_id in ("CJ-A", "CJ-FAIL", "CJ-B", "CJ-C"):
            order_store.add(
                make_order(
                    order_number=f"ORD-{external_id}",
                    external_order_id=external_id,
                    status=OrderStatus.PROCESSING,
                )
            )
        fake_supplier.on(QUERY_PATH, answer_by_order)

        summary = await refresh_open_orders(reconciler, order_store, batch_size=10)

        assert summary == {
            "orders_checked": 4,
            "orders_changed": 2,
            "orders_delivered": 1,
            "errors": 1,
        }

    @pytest.mark.asyncio
    async def test_never_checked_orders_go_first(
        self, reconciler, order_store, fake_supplier, make_order
    ) -> None:
        order_store.add(
            make_order(
                external_order_id="CJ-B",
                status=OrderStatus.SHIPPED,
                tracking_checked_at=datetime(2026, 1, 2),
            )
        )
        order_store.add(
            make_order(
                external_order_id="CJ-C",
                status=OrderStatus.PROCESSING,
                tracking_checked_at=datetime(2026, 1, 1),
            )
        )
        order_store.add(make_order(external_order_id="CJ-A", status=OrderStatus.SHIPPED))
        fake_supplier.on(QUERY_PATH, answer_by_order)

        summary = await refresh_open_orders(reconciler, order_store, batch_size=2)

        queried = [r.url.params["orderNum"] for r in fake_supplier.calls(QUERY_PATH)]
        assert queried == ["CJ-A", "CJ-C"]
        assert summary["orders_checked"] == 2

    @pytest.mark.asyncio
    async def test_finished_and_unsubmitted_orders_are_skipped(
        self, reconciler, order_store, fake_supplier, make_order
    ) -> None:
        order_store.add(make_order(external_order_id="CJ-A", status=OrderStatus.DELIVERED))
        order_store.add(make_order(status=OrderStatus.PAID))
        fake_supplier.on(QUERY_PATH, answer_by_order)

        summary = await refresh_open_orders(reconciler, order_store, batch_size=10)

        assert summary["orders_checked"] == 0
        assert fake_supplier.calls(QUERY_PATH) == []

    @pytest.mark.asyncio
    async def test_malformed_supplier_answer_is_counted_not_raised(
        self, reconciler, order_store, fake_supplier, make_order
    ) -> None:
        for external_id in ("CJ-GARBLED", "CJ-A"):
            order_store.add(
                make_order(external_order_id=external_id, status=OrderStatus.PROCESSING)
            )
        fake_supplier.on(QUERY_PATH, answer_by_order)

        summary = await refresh_open_orders(reconciler, order_store, batch_size=10)

        assert summary["orders_checked"] == 2
        assert summary["errors"] == 1
        assert summary["orders_delivered"] == 1


class TestRefreshOpenOrdersTrackingTask:
    def test_returns_batch_summary(self, monkeypatch) -> None:
        summary = {"orders_checked": 1, "orders_changed": 1, "orders_delivered": 0, "errors": 0}

        async def fake_batch(batch_size: int) -> dict:
            assert batch_size == 5
            return summary

        monkeypatch.setattr(track_orders, "_refresh_batch", fake_batch)

        assert refresh_open_orders_tracking(batch_size=5) == summary

    def test_database_error_is_retried(self, monkeypatch) -> None:
        retried: list[Exception] = []

        async def failing_batch(batch_size: int) -> dict:
            raise SQLAlchemyError("connection refused")

        def fake_retry(exc=None, **kwargs):
            retried.append(exc)
            return Retry(exc=exc)

        monkeypatch.setattr(track_orders, "_refresh_batch", failing_batch)
        monkeypatch.setattr(refresh_open_orders_tracking, "retry", fake_retry)

        with pytest.raises(Retry):
            refresh_open_orders_tracking(batch_size=5)

        assert len(retried) == 1
        assert isinstance(retried[0], SQLAlchemyError)
