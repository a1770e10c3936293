from django.core.exceptions import ValidationError


class AlreadyProcessed(Exception):
    """Raised when a request was already approved/rejected."""


class InsufficientStock(ValidationError):
    """Feed usage would take a feed type below zero."""
