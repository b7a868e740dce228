"""Error taxonomy for the supplier integration."""


class DropshipError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(DropshipError):
    """Required configuration (usually supplier credentials) is missing."""


class UpstreamAuthError(DropshipError):
    """The supplier's token endpoint rejected the grant or answered garbage."""

    def __init__(self, message: str, http_status: int | None = None):
        self.message = message
        self.http_status = http_status
        super().__init__(message)


class SupplierApiError(DropshipError):
    """A supplier API call failed after exhausting its retries."""

    def __init__(self, http_status: int | None, message: str):
        self.http_status = http_status
        self.message = message
        super().__init__(f"{message} (status: {http_status})")


class AlreadySubmittedError(DropshipError):
    """The order already carries a supplier order id."""

    def __init__(self, order_id: str, external_order_id: str | None = None):
        self.order_id = order_id
        self.external_order_id = external_order_id
        super().__init__(
            f"Order {order_id} was already submitted to the supplier"
            + (f" as {external_order_id}" if external_order_id else "")
        )


class NotSubmittedError(DropshipError):
    """The order has not been submitted to the supplier yet."""

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order {order_id} has not been submitted to the supplier yet")


class OrderNotFoundError(DropshipError):
    """No local order matches the given reference."""

    def __init__(self, reference: str):
        self.reference = reference
        super().__init__(f"Order not found: {reference}")
