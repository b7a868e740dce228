"""Supplier sync, order submission and tracking services."""

from dropship_service.services.order_submission import OrderSubmissionService, SubmissionResult
from dropship_service.services.product_sync import ProductSyncEngine
from dropship_service.services.tracking import TrackingReconciler, TrackingUpdate

__all__ = [
    "OrderSubmissionService",
    "ProductSyncEngine",
    "SubmissionResult",
    "TrackingReconciler",
    "TrackingUpdate",
]
