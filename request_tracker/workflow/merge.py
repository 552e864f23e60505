from __future__ import annotations

import dataclasses
from typing import Any, Dict, Mapping

from request_tracker.errors import IntegrationError
from request_tracker.workflow.models import PATCHABLE_FIELDS, Item, Quote, Request
from request_tracker.workflow.states import UnknownValueError, parse_kind, parse_raw_state


PartialRequest = Mapping[str, Any]

# Derived on the snapshot; a value sent by the server is never trusted over the items.
_DERIVED_FIELDS = frozenset({"total_estimated_cost"})

_CHILD_COLLECTIONS = ("items", "quotes")


def _shape_error(details: str) -> IntegrationError:
    return IntegrationError(
        code="unexpected_response_shape",
        message_key="record_temporarily_unavailable",
        details=details,
    )


def _normalize_value(name: str, value: Any) -> Any:
    if name == "raw_state":
        try:
            return parse_raw_state(value)
        except UnknownValueError as exc:
            raise _shape_error(str(exc)) from exc
    if name == "items":
        items = tuple(value or ())
        if not all(isinstance(item, Item) for item in items):
            raise _shape_error("items deve conter apenas Item.")
        return items
    if name == "quotes":
        quotes = tuple(value or ())
        if not all(isinstance(quote, Quote) for quote in quotes):
            raise _shape_error("quotes deve conter apenas Quote.")
        return quotes
    if name == "selected_quote_id" and value is not None:
        return str(value).strip() or None
    return value


def _check_identity(previous: Request, patch: PartialRequest) -> None:
    if "id" in patch and patch["id"] is not None and str(patch["id"]) != previous.id:
        raise _shape_error(f"Response for request {patch['id']!r} applied to {previous.id!r}.")
    if "kind" in patch and patch["kind"] is not None:
        try:
            kind = parse_kind(patch["kind"], default=None)
        except UnknownValueError as exc:
            raise _shape_error(str(exc)) from exc
        if kind != previous.kind:
            raise _shape_error(f"kind cannot change ({previous.kind.value} -> {kind.value}).")


def merge_request(previous: Request, patch: PartialRequest) -> Request:
    """Fold a (possibly trimmed) transition response into the held snapshot.

    Every field the patch defines wins, except that an absent or empty ``items``
    or ``quotes`` keeps the collection already held. Any known raw state is
    accepted, including one the local actor could not have produced.
    """
    _check_identity(previous, patch)

    changes: Dict[str, Any] = {}
    for name, value in patch.items():
        if name in ("id", "kind") or name in _DERIVED_FIELDS:
            continue
        if name not in PATCHABLE_FIELDS:
            raise _shape_error(f"Unknown field in response: {name!r}.")
        if name in _CHILD_COLLECTIONS and not value:
            continue
        changes[name] = _normalize_value(name, value)

    if not changes:
        return previous
    return dataclasses.replace(previous, **changes)
