import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

from .exceptions import AlreadyProcessed

logger = logging.getLogger(__name__)


def _validation_payload(exc):
    if hasattr(exc, "error_dict"):
        return {field: [str(m) for m in msgs] for field, msgs in exc.message_dict.items()}
    return {"detail": " ".join(exc.messages)}


def exception_handler(exc, context):
    """DRF handler that also maps service-layer errors.

    ValidationError -> 400, AlreadyProcessed -> 409.
    """
    if isinstance(exc, AlreadyProcessed):
        return Response({"detail": str(exc) or "Already processed."}, status=status.HTTP_409_CONFLICT)
    if isinstance(exc, DjangoValidationError):
        logger.info("Rejected %s: %s", context.get("view").__class__.__name__, exc.messages)
        return Response(_validation_payload(exc), status=status.HTTP_400_BAD_REQUEST)
    return drf_exception_handler(exc, context)
