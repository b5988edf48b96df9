"""Boundary classification of failures into `ClientError` values.

Usage example:
    from backend_bridge.application.classifier import ErrorClassifier
    from backend_bridge.domain.errors import ErrorContext

    classifier = ErrorClassifier()
    try:
        response = await transport.send(request)
    except Exception as exc:
        raise classifier.classify(exc, ErrorContext(operation="list_cases")) from exc
"""

from __future__ import annotations

import httpx

from ..domain.errors import ErrorContext, ErrorKind, kind_for_status
from ..exceptions import (
    ClientError,
    NetworkError,
    RequestTimeoutError,
    UnknownClientError,
    ValidationError,
    error_for_kind,
)
from ..infrastructure.http import parse_retry_after, response_details
from ..io_validation import IncomingDataError, error_detail
from ..observability import get_logger
from ..types import ApiResponse

logger = get_logger("backend_bridge.application.classifier")


class ErrorClassifier:
    """Maps raw failures and error responses onto the closed taxonomy.

    `classify` is total: every input yields exactly one `ClientError`.
    """

    def classify(self, error: BaseException, context: ErrorContext | None = None) -> ClientError:
        context = context or ErrorContext()
        if isinstance(error, ClientError):
            return error.with_context(context)
        if isinstance(error, (httpx.TimeoutException, TimeoutError)):
            return RequestTimeoutError(
                "Request timed out before the backend answered",
                detail=str(error) or None,
                context=context,
            )
        if isinstance(error, httpx.TransportError):
            return NetworkError(
                "Could not reach the backend", detail=str(error) or None, context=context
            )
        if isinstance(error, IncomingDataError):
            return UnknownClientError(
                "Backend returned an unexpected payload", detail=str(error), context=context
            )
        if isinstance(error, (TypeError, ValueError)):
            return ValidationError("Invalid request input", detail=str(error), context=context)
        logger.warning("Unclassified failure: %s: %s", type(error).__name__, error)
        return UnknownClientError(
            "Unexpected client failure", detail=str(error) or None, context=context
        )

    def from_response(
        self, response: ApiResponse, context: ErrorContext | None = None
    ) -> ClientError:
        """Build the structured error for a non-success HTTP response."""
        kind = kind_for_status(response.status_code)
        detail = error_detail(response.json_object())
        retry_after = (
            parse_retry_after(response.headers) if kind is ErrorKind.RATE_LIMIT else None
        )
        logger.debug("Classified %s as %s", response_details(response), kind)
        return error_for_kind(
            kind,
            f"Backend request failed with status {response.status_code}",
            status=response.status_code,
            detail=detail,
            context=context,
            retry_after_seconds=retry_after,
        )
