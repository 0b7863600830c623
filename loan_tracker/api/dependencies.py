"""Dependency injection for FastAPI endpoints"""

from fastapi import Depends, Request
from loan_tracker.infrastructure.storage.base import StorageBackend
from loan_tracker.infrastructure.storage.selector import StorageSelector


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_storage_selector(request: Request) -> StorageSelector:
    """Provide the application-wide backend selector"""
    return request.app.state.storage_selector


def get_storage(selector: StorageSelector = Depends(get_storage_selector)) -> StorageBackend:
    """Provide the backend that serves this request"""
    return selector.current()
