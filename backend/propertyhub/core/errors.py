"""Exception hierarchy shared by services and routes."""

import logging
from contextlib import contextmanager

from fastapi import HTTPException
from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)


class PropertyHubError(Exception):
    """Base exception for all PropertyHub errors."""


class PropertyNotFoundError(PropertyHubError):
    def __init__(self, property_id: str):
        super().__init__(f"Property not found: {property_id}")
        self.property_id = property_id


class PropertyValidationError(PropertyHubError):
    def __init__(self, message: str, details: list | None = None):
        super().__init__(message)
        self.details = details or []


class TranslationError(PropertyHubError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def is_rate_limited(self) -> bool:
        return self.status_code == 429


class TranslatorNotConfiguredError(TranslationError):
    pass


class FeedError(PropertyHubError):
    pass


@contextmanager
def database_errors(action: str):
    """Turn document-store failures into a 500 that carries the driver message."""
    try:
        yield
    except PyMongoError as exc:
        logger.exception("%s failed", action)
        raise HTTPException(status_code=500, detail={"error": action + " failed", "details": str(exc)})
