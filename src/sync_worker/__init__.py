"""Celery worker for supplier sync and tracking."""
