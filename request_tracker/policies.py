from __future__ import annotations

from flask import current_app, request, session

from request_tracker.errors import PermissionError as AppPermissionError
from request_tracker.workflow.models import Actor


def normalize_role(role: str | None) -> str:
    return str(role or "").strip().lower().replace("-", "_").replace(" ", "_")


def _header_actor() -> Actor | None:
    if not (current_app.testing or bool(current_app.config.get("ACTOR_HEADERS_ENABLED", False))):
        return None
    actor_id = str(request.headers.get("X-Actor-Id") or "").strip()
    if not actor_id:
        return None
    return Actor(
        id=actor_id,
        role=normalize_role(request.headers.get("X-Actor-Role")),
        name=str(request.headers.get("X-Actor-Name") or "").strip() or None,
    )


def current_actor(required: bool = True) -> Actor | None:
    """Actor for the current request: session first, then development headers.

    The role is passed through raw; the gate resolves it per request kind.
    """
    session_id = str(session.get("user_id") or "").strip()
    if session_id:
        return Actor(
            id=session_id,
            role=normalize_role(session.get("user_role")),
            name=session.get("display_name"),
        )

    actor = _header_actor()
    if actor is not None:
        return actor
    if not required:
        return None
    raise AppPermissionError(
        code="auth_required",
        message_key="auth_required",
        http_status=401,
        critical=False,
    )
