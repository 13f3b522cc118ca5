# lambdas/api/exceptions.py
from typing import Dict, Optional


class InvalidRequestError(ValueError):
    """Request failed validation. Carries per-field messages for the 400 response."""

    def __init__(self, message: str, errors: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.errors = errors or {}


class NotFoundError(LookupError):
    """The addressed user or micropost does not exist."""
    pass


class DuplicateEmailError(Exception):
    """Another user already registered this email address."""

    def __init__(self, email: str):
        super().__init__(f"Email already registered: {email}")
        self.email = email
