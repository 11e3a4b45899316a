# src/structaudit/exceptions.py
from typing import Optional


class StructAuditError(Exception):
    """Base class for all errors raised by structaudit."""


class ContentFetchError(StructAuditError):
    """
    Raised when the markup of a page could not be fetched.

    The cache entry for the URL is always evicted before this error reaches
    the caller, so calling again performs a fresh fetch.
    """

    def __init__(self, url: str, reason: str, status: Optional[int] = None):
        self.url = url
        self.reason = reason
        self.status = status
        super().__init__(f"Failed to fetch content from {url}: {reason}")
