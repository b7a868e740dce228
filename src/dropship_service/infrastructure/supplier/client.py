"""Authenticated supplier API client with exponential-backoff retry."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from dropship_service.config import Settings
from dropship_service.exceptions import SupplierApiError, UpstreamAuthError
from dropship_service.infrastructure.supplier.auth import SUCCESS_CODE, TokenProvider
from dropship_service.infrastructure.supplier.schemas import (
    ProductListPage,
    SupplierOrderInfo,
    SupplierOrderRequest,
    SupplierOrderResult,
    SupplierProduct,
)

logger = structlog.get_logger()

TOKEN_HEADER = "CJ-Access-Token"

PRODUCT_LIST_PATH = "/product/listV2"
PRODUCT_DETAIL_PATH = "/product/query"
PRODUCT_INVENTORY_PATH = "/product/stock/getInventoryByPid"
ORDER_CREATE_PATH = "/shopping/order/createOrderV3"
ORDER_QUERY_PATH = "/shopping/order/query"


class _AttemptFailed(Exception):
    def __init__(self, http_status: int | None, message: str):
        self.http_status = http_status
        self.message = message
        super().__init__(message)


class SupplierApiClient:
    """Wraps every supplier call with token handling, envelope checks and retries."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        token_provider: TokenProvider,
        base_url: str,
        max_retries: int = 3,
        backoff_ms: int = 1000,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.http_client = http_client
        self.token_provider = token_provider
        self.base_url = base_url.rstrip("/")
        self.max_retries = max_retries
        self.backoff_ms = backoff_ms
        self.sleep = sleep

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        http_client: httpx.AsyncClient,
        token_provider: TokenProvider | None = None,
    ) -> "SupplierApiClient":
        return cls(
            http_client=http_client,
            token_provider=token_provider or TokenProvider.from_settings(settings, http_client),
            base_url=settings.cj_api_base_url,
            max_retries=settings.cj_max_retries,
            backoff_ms=settings.cj_backoff_ms,
        )

    async def call(
        self,
        endpoint: str,
        method: str = "GET",
        body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        max_retries: int | None = None,
        backoff_ms: int | None = None,
    ) -> Any:
        """Issue one logical API call and return the envelope's ``data``.

        Raises:
            SupplierApiError: after the last attempt failed.
            ConfigurationError: immediately, when credentials are missing.
        """
        max_retries = max(1, max_retries if max_retries is not None else self.max_retries)
        backoff_ms = backoff_ms if backoff_ms is not None else self.backoff_ms
        last_failure = _AttemptFailed(None, "no attempt made")

        for attempt in range(1, max_retries + 1):
            try:
                return await self._attempt(endpoint, method, body, params)
            except UpstreamAuthError as e:
                last_failure = _AttemptFailed(e.http_status, f"Authentication failed: {e.message}")
            except _AttemptFailed as e:
                last_failure = e
                if e.http_status == 401:
                    self.token_provider.clear_cache()
            except httpx.HTTPError as e:
                last_failure = _AttemptFailed(None, f"Transport error: {e!r}")

            logger.warning(
                "Supplier API call failed",
                endpoint=endpoint,
                method=method,
                attempt=attempt,
                max_retries=max_retries,
                status=last_failure.http_status,
                error=last_failure.message,
            )

            if attempt < max_retries:
                delay_ms = backoff_ms * 2 ** (attempt - 1)
                logger.info("Retrying supplier API call", endpoint=endpoint, delay_ms=delay_ms)
                await self.sleep(delay_ms / 1000)

        raise SupplierApiError(last_failure.http_status, last_failure.message)

    async def _attempt(
        self,
        endpoint: str,
        method: str,
        body: dict[str, Any] | None,
        params: dict[str, Any] | None,
    ) -> Any:
        token = await self.token_provider.get_access_token()
        response = await self.http_client.request(
            method.upper(),
            f"{self.base_url}{endpoint}",
            params=params,
            json=body,
            headers={TOKEN_HEADER: token.value, "Content-Type": "application/json"},
        )

        if not response.is_success:
            raise _AttemptFailed(response.status_code, response.text[:500] or response.reason_phrase)

        try:
            envelope = response.json()
        except ValueError:
            raise _AttemptFailed(response.status_code, "Response body is not valid JSON")

        if not isinstance(envelope, dict):
            raise _AttemptFailed(response.status_code, "Response body is not an envelope")
        if envelope.get("result") is not True or envelope.get("code") != SUCCESS_CODE:
            raise _AttemptFailed(
                response.status_code,
                f"{envelope.get('message') or 'Supplier returned an error'} (code: {envelope.get('code')})",
            )

        logger.debug("Supplier API call successful", endpoint=endpoint, method=method)
        return envelope.get("data")

    # ==================== Catalog ====================

    async def list_products(
        self,
        keyword: str | None = None,
        category_id: str | None = None,
        page: int = 1,
        page_size: int = 20,
        start_sell_price: float | None = None,
        end_sell_price: float | None = None,
        country_code: str | None = None,
    ) -> ProductListPage:
        params: dict[str, Any] = {"page": page, "size": page_size}
        if keyword:
            params["keyWord"] = keyword
        if category_id:
            params["categoryId"] = category_id
        if start_sell_price is not None:
            params["startSellPrice"] = start_sell_price
        if end_sell_price is not None:
            params["endSellPrice"] = end_sell_price
        if country_code:
            params["countryCode"] = country_code

        data = await self.call(PRODUCT_LIST_PATH, "GET", params=params)
        return ProductListPage.model_validate(data or {})

    async def get_product_details(
        self, pid: str | None = None, product_sku: str | None = None
    ) -> SupplierProduct:
        if not pid and not product_sku:
            raise ValueError("Either pid or product_sku must be provided")
        params = {"pid": pid} if pid else {"productSku": product_sku}
        data = await self.call(PRODUCT_DETAIL_PATH, "GET", params=params)
        return SupplierProduct.model_validate(data)

    async def get_product_inventory(self, pid: str) -> Any:
        return await self.call(PRODUCT_INVENTORY_PATH, "GET", params={"pid": pid})

    # ==================== Orders ====================

    async def create_order(self, order: SupplierOrderRequest) -> SupplierOrderResult:
        data = await self.call(ORDER_CREATE_PATH, "POST", body=order.to_payload())
        try:
            return SupplierOrderResult.model_validate(data)
        except ValidationError as e:
            raise SupplierApiError(None, f"Malformed order creation response: {e}") from e

    async def get_order(self, order_num: str) -> SupplierOrderInfo:
        data = await self.call(ORDER_QUERY_PATH, "GET", params={"orderNum": order_num})
        try:
            return SupplierOrderInfo.model_validate(data or {})
        except ValidationError as e:
            raise SupplierApiError(None, f"Malformed order query response: {e}") from e
