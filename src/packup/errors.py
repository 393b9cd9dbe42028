# src/packup/errors.py

"""
Error taxonomy shared by the service layer and the API handlers.

Each error carries the HTTP status it maps to, so handlers never need
a lookup table of their own.
"""

from __future__ import annotations


class PackupError(Exception):
    status_code = 500

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message or self.__class__.__name__


class ValidationError(PackupError):
    """Malformed body, bad text length, unknown status value."""

    status_code = 400


class Unauthenticated(PackupError):
    status_code = 401

    def __init__(self, message: str = "unauthorized") -> None:
        super().__init__(message)


class Forbidden(PackupError):
    status_code = 403


class NotFound(PackupError):
    """Unknown id, or an id outside the caller's visibility scope."""

    status_code = 404


class StoreError(PackupError):
    """The backing store failed. The message is internal and not for clients."""

    status_code = 500
