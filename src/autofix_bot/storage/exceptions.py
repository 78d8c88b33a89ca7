"""Exceptions for content store operations."""


class ContentStoreError(Exception):
    """Base exception for content store operations."""


class NotFound(ContentStoreError):
    """Raised when a project or file does not exist."""


class InvalidPath(ContentStoreError):
    """Raised when a file path escapes its project."""
