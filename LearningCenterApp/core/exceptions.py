"""Domain error types and the API exception handler that shapes every error as {"error": ...}."""

import logging
from typing import Any

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import status
from rest_framework.exceptions import APIException, ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Something went wrong. Please try again."


class ScheduleFormatError(ValueError):
    """A schedule string does not match "<Weekdays>, H:MM AM - H:MM PM"."""


class InvalidGradeError(ValidationError):
    """Grade outside [0, assignment.points]."""
    default_code = "invalid_grade"


class DuplicateRequestError(APIException):
    """An active enrollment request or enrollment already exists for the pair."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = "An enrollment request for this class already exists."
    default_code = "duplicate_request"


class InvalidTransitionError(APIException):
    """Attempt to move a workflow object out of a terminal state."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = "This request has already been answered."
    default_code = "invalid_transition"


class DuplicateEmailError(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "A user with this email already exists."
    default_code = "duplicate_email"


class ClassFullError(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "This class has reached its maximum number of students."
    default_code = "class_full"


def _first_message(data: Any) -> str:
    """Pick the first human readable message out of DRF error data."""
    if isinstance(data, dict):
        if "detail" in data:
            return _first_message(data["detail"])
        for key, value in data.items():
            message = _first_message(value)
            if key == "non_field_errors":
                return message
            return f"{key}: {message}"
        return GENERIC_ERROR
    if isinstance(data, (list, tuple)):
        return _first_message(data[0]) if data else GENERIC_ERROR
    return str(data)


def api_exception_handler(exc: Exception, context: dict) -> Response:
    """DRF exception handler returning {"error": str} (plus "details" for field errors).

    Unexpected exceptions are logged and reported as a generic 500 so the
    client can retry the action.
    """
    if isinstance(exc, DjangoValidationError):
        exc = ValidationError(exc.message_dict if hasattr(exc, "error_dict") else exc.messages)

    response = exception_handler(exc, context)
    if response is None:
        view = context.get("view")
        logger.exception("Unhandled error in %s", type(view).__name__ if view else "request")
        return Response({"error": GENERIC_ERROR}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    data = response.data
    body = {"error": _first_message(data)}
    if isinstance(data, dict) and "detail" not in data:
        body["details"] = data
    response.data = body
    return response
