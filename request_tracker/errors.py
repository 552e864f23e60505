from __future__ import annotations

import re
from typing import Any, Dict

from request_tracker.ui_strings import error_message


class AppError(Exception):
    default_code = "system_error"
    default_message_key = "unexpected_error"
    default_http_status = 500
    default_critical = True

    def __init__(
        self,
        code: str | None = None,
        message_key: str | None = None,
        http_status: int | None = None,
        critical: bool | None = None,
        details: str | None = None,
        payload: Dict[str, Any] | None = None,
    ) -> None:
        self.code = (code or self.default_code).strip()
        self.message_key = (message_key or self.default_message_key).strip()
        self.http_status = int(http_status or self.default_http_status)
        self.critical = bool(self.default_critical if critical is None else critical)
        self.details = (details or "").strip() or None
        self.payload = dict(payload or {})
        super().__init__(self.details or self.code)

    def user_message(self) -> str:
        fallback = error_message("unexpected_error", "The operation could not be completed.")
        return error_message(self.message_key, fallback)

    def to_response_payload(self, request_id: str) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "error": self.code,
            "message": self.user_message(),
            "request_id": request_id,
        }
        # Extra fields never replace the envelope keys.
        for key, value in self.payload.items():
            payload.setdefault(key, value)
        return payload


class UserActionError(AppError):
    default_code = "action_invalid"
    default_message_key = "action_invalid"
    default_http_status = 400
    default_critical = False


class ValidationError(UserActionError):
    default_code = "validation_error"
    default_message_key = "validation_error"
    default_http_status = 400
    default_critical = False


class ActionNotAllowedError(ValidationError):
    default_code = "action_not_allowed_for_status"
    default_message_key = "action_not_allowed_for_status"
    default_http_status = 409


class ActionInFlightError(UserActionError):
    default_code = "action_in_flight"
    default_message_key = "action_in_flight"
    default_http_status = 409


class PermissionError(UserActionError):
    default_code = "permission_denied"
    default_message_key = "permission_denied"
    default_http_status = 403
    default_critical = False


class NotFoundError(UserActionError):
    default_code = "request_not_found"
    default_message_key = "request_not_found"
    default_http_status = 404


class TransitionConflictError(AppError):
    default_code = "transition_conflict"
    default_message_key = "transition_conflict"
    default_http_status = 409
    default_critical = False


class IntegrationError(AppError):
    default_code = "integration_error"
    default_message_key = "record_temporarily_unavailable"
    default_http_status = 502
    default_critical = False


class SystemError(AppError):
    default_code = "system_error"
    default_message_key = "unexpected_error"
    default_http_status = 500
    default_critical = True


class QuoteSelectionInvariantError(SystemError):
    default_code = "selected_quote_missing"
    default_message_key = "selected_quote_missing"


_RECORD_HTTP_CODE_PATTERN = re.compile(r"record http\s+(\d{3})", re.IGNORECASE)


def classify_record_failure(details: str | None) -> tuple[str, str, int]:
    normalized = (details or "").strip().lower()
    code_match = _RECORD_HTTP_CODE_PATTERN.search(normalized)
    if code_match:
        http_code = int(code_match.group(1))
        if http_code == 404:
            return ("request_not_found", "request_not_found", 404)
        if http_code in {403}:
            return ("permission_denied", "permission_denied", 403)
        if http_code in {409, 422}:
            return ("transition_conflict", "transition_conflict", 409)
        if 400 <= http_code < 500 and http_code not in {408, 429}:
            return ("transition_conflict", "transition_conflict", 409)

    conflict_markers = ("conflict", "invalid state", "not allowed", "already", "rejected")
    if any(marker in normalized for marker in conflict_markers):
        return ("transition_conflict", "transition_conflict", 409)

    return ("record_temporarily_unavailable", "record_temporarily_unavailable", 502)


def error_for_record_failure(details: str | None) -> AppError:
    code, message_key, http_status = classify_record_failure(details)
    if code == "transition_conflict":
        error_class = TransitionConflictError
    elif code == "request_not_found":
        error_class = NotFoundError
    elif code == "permission_denied":
        error_class = PermissionError
    else:
        error_class = IntegrationError
    return error_class(
        code=code,
        message_key=message_key,
        http_status=http_status,
        critical=False,
        details=details,
    )
