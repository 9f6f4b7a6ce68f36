"""Centralized JSON (RFC 7807) error handling for the API."""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from flask import Flask, Response, jsonify, request
from werkzeug.exceptions import HTTPException

from sessionstore.core.logger import ensure_request_id
from sessionstore.services._shared.errors import (
    InconsistentError,
    InvalidArgumentError,
    NotFoundError,
    TransientError,
)

log = logging.getLogger(__name__)


def _http_status_to_code(status_code: int) -> str:
    """Map common HTTP status codes to canonical, stable error codes."""
    mapping = {
        400: "bad_request",
        401: "unauthorized",
        403: "forbidden",
        404: "not_found",
        405: "method_not_allowed",
        409: "conflict",
        415: "unsupported_media_type",
        422: "unprocessable_entity",
        429: "too_many_requests",
        500: "internal_server_error",
        503: "service_unavailable",
    }
    return mapping.get(status_code, "error")


def _as_problem(
    *,
    status: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Build an RFC 7807 Problem Details dict.

    :param status: HTTP status code.
    :param code: Stable machine-consumable error code.
    :param message: Human-readable error summary (safe for clients).
    :param details: Optional safe, structured details.
    :returns: Problem+JSON dictionary.
    :rtype: dict
    """
    instance = request.path if request else None
    problem = {
        "type": "about:blank",
        "title": HTTPStatus(status).phrase,
        "status": status,
        "detail": message,
        "instance": instance,
        "code": code,
    }
    if details:
        problem["details"] = details
    # Always attach correlation id
    problem["request_id"] = ensure_request_id()
    return problem


def _problem_response(problem: dict[str, Any]) -> Response:
    """
    Return a Flask response with ``application/problem+json`` media type.

    :param problem: Problem details payload.
    :returns: Flask JSON Response with proper MIME type.
    :rtype: flask.Response
    """
    resp = jsonify(problem)
    resp.mimetype = "application/problem+json"
    return resp


def init_app(app: Flask) -> None:
    """
    Attach JSON error handlers to the Flask app.

    Notes
    -----
    - Guarantees RFC 7807 responses for all handled errors.
    - An unknown/expired refresh token is an expected outcome: it maps to 401
      and is logged at INFO, never as a server error.
    - Tokens are secrets: problem bodies only carry how many were affected.
    """

    @app.errorhandler(NotFoundError)
    def handle_session_not_found(err: NotFoundError):
        problem = _as_problem(
            status=HTTPStatus.UNAUTHORIZED,
            code="session_expired",
            message="Session expired, please sign in again",
        )
        log.info("Session not found: request_id=%s", problem.get("request_id"))
        return _problem_response(problem), HTTPStatus.UNAUTHORIZED

    @app.errorhandler(InvalidArgumentError)
    def handle_invalid_argument(err: InvalidArgumentError):
        problem = _as_problem(
            status=HTTPStatus.BAD_REQUEST,
            code="invalid_argument",
            message=str(err),
            details={"field": err.field},
        )
        log.warning("InvalidArgument: field=%s request_id=%s", err.field, problem.get("request_id"))
        return _problem_response(problem), HTTPStatus.BAD_REQUEST

    @app.errorhandler(TransientError)
    def handle_transient_error(err: TransientError):
        problem = _as_problem(
            status=HTTPStatus.SERVICE_UNAVAILABLE,
            code="service_unavailable",
            message="Service temporarily unavailable",
        )
        log.warning("TransientError: %s request_id=%s", err.message, problem.get("request_id"))
        resp = _problem_response(problem)
        resp.headers["Retry-After"] = "1"
        return resp, HTTPStatus.SERVICE_UNAVAILABLE

    @app.errorhandler(InconsistentError)
    def handle_inconsistent_error(err: InconsistentError):
        problem = _as_problem(
            status=HTTPStatus.INTERNAL_SERVER_ERROR,
            code="inconsistent_state",
            message=err.message,
            details={"affected_tokens": len(err.tokens)},
        )
        log.error(
            "InconsistentError: %s affected=%d request_id=%s",
            err.message,
            len(err.tokens),
            problem.get("request_id"),
        )
        return _problem_response(problem), HTTPStatus.INTERNAL_SERVER_ERROR

    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        status = int(err.code or HTTPStatus.INTERNAL_SERVER_ERROR)
        error_code = _http_status_to_code(status)
        message = (err.description or error_code.replace("_", " ").capitalize()).strip()
        if status == HTTPStatus.NOT_FOUND and request:
            message = f"Route '{request.path}' not found"
        problem = _as_problem(status=status, code=error_code, message=message)
        level = log.error if status >= 500 else log.warning
        # Avoid leaking tracebacks for expected HTTP errors (no exc_info)
        level(
            "HTTPException: code=%s status=%s detail=%s request_id=%s",
            error_code,
            status,
            message,
            problem.get("request_id"),
        )
        return _problem_response(problem), status

    @app.errorhandler(Exception)
    def handle_unexpected_error(err: Exception):
        # Unexpected server-side error; never leak internal details
        problem = _as_problem(
            status=HTTPStatus.INTERNAL_SERVER_ERROR,
            code="internal_server_error",
            message="Unexpected error",
        )
        log.error(
            "Unhandled exception: request_id=%s",
            problem.get("request_id"),
            exc_info=True,
        )
        return _problem_response(problem), HTTPStatus.INTERNAL_SERVER_ERROR
