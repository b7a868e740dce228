"""Shared constants across the application."""

# Sync run types
SYNC_TYPE_PRODUCTS = "products"
SYNC_TYPES = [SYNC_TYPE_PRODUCTS]

# Order statuses still expected to move on the supplier side
OPEN_SUPPLIER_ORDER_STATUSES = [
    "processing",
    "payment_confirmed",
    "shipped",
]

# Supplier order status -> local order status (keys are lower-cased)
SUPPLIER_STATUS_MAP = {
    "pending": "pending",
    "processing": "processing",
    "payment_confirmed": "payment_confirmed",
    "in_production": "processing",
    "shipped": "shipped",
    "in_transit": "shipped",
    "delivered": "delivered",
    "cancelled": "cancelled",
    "failed": "failed",
}
DEFAULT_SUPPLIER_STATUS = "processing"

# Default limits
DEFAULT_SYNC_RUNS_LIMIT = 20
MAX_SYNC_RUNS_LIMIT = 100
MAX_SYNC_PAGE_SIZE = 200
MAX_SYNC_PAGES = 50

# Submission bookkeeping
SUPPLIER_ERROR_NOTE_PREFIX = "Supplier API error: "
