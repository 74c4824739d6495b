"""Dependency injection for FastAPI endpoints"""

from datetime import date

from fastapi import Request
from billing_ledger.infrastructure.clients.notifications import NotificationClient
from billing_ledger.utils.date_utils import today


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_today() -> date:
    """Reference date used when a request does not supply one; tests override this"""
    return today()


def get_notification_client() -> NotificationClient:
    """Provide notification webhook client instance"""
    return NotificationClient()
