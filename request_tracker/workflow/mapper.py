from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, List

from request_tracker.errors import IntegrationError
from request_tracker.workflow.models import Item, Quote, Request
from request_tracker.workflow.states import UnknownValueError, parse_kind, parse_raw_state


def _safe_str(value: object | None) -> str | None:
    if value is None:
        return None
    raw = str(value).strip()
    return raw or None


def _safe_float(value: object | None, default: float | None = 0.0) -> float | None:
    if value is None or isinstance(value, bool):
        return default
    try:
        parsed = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    if not math.isfinite(parsed):
        return default
    return parsed


def _first_present(payload: Dict[str, Any], *keys: str) -> tuple[bool, Any]:
    for key in keys:
        if key in payload:
            return True, payload[key]
    return False, None


def item_from_payload(payload: Dict[str, Any]) -> Item:
    data = dict(payload or {})
    return Item(
        name=_safe_str(data.get("name")) or "Item",
        quantity=_safe_float(data.get("quantity"), 0.0) or 0.0,
        estimated_cost=_safe_float(
            data.get("unit_price") if "unit_price" in data else data.get("estimated_cost", data.get("estimatedCost")),
            0.0,
        )
        or 0.0,
    )


def quote_from_payload(payload: Dict[str, Any]) -> Quote:
    data = dict(payload or {})
    _, total = _first_present(data, "quote_total", "quoteTotal")
    _, file_url = _first_present(data, "file_url", "fileUrl", "filePath", "file_path")
    quote_id = _safe_str(data.get("id"))
    if quote_id is None:
        # A selection can only ever point at an id the record itself assigned.
        raise IntegrationError(
            code="unexpected_response_shape",
            message_key="record_temporarily_unavailable",
            details="Quote has no id.",
        )
    return Quote(
        id=quote_id,
        vendor_name=_safe_str(data.get("vendor_name", data.get("vendorName"))) or "",
        quote_total=_safe_float(total, 0.0) or 0.0,
        file_url=_safe_str(file_url),
        notes=_safe_str(data.get("notes")),
    )


def _rejection_from_approvals(approvals: object) -> str | None:
    if not isinstance(approvals, list):
        return None
    for approval in approvals:
        if not isinstance(approval, dict):
            continue
        if str(approval.get("decision") or "").upper() == "REJECTED" and _safe_str(approval.get("comment")):
            return _safe_str(approval.get("comment"))
    return None


def _selected_quote_id(data: Dict[str, Any]) -> tuple[bool, str | None]:
    found, selected = _first_present(data, "selectedQuote", "selected_quote")
    if found and isinstance(selected, dict) and selected.get("id") is not None:
        return True, _safe_str(selected.get("id"))
    found_id, selected_id = _first_present(data, "selected_quote_id", "selectedQuoteId")
    if found_id:
        return True, _safe_str(selected_id)
    if found:
        return True, None
    return False, None


def _requester_id(data: Dict[str, Any]) -> tuple[bool, str | None]:
    requester = data.get("requester")
    if isinstance(requester, dict) and requester.get("id") is not None:
        return True, _safe_str(requester.get("id"))
    found, value = _first_present(data, "requester_id", "requesterId")
    return found, _safe_str(value)


def _direct_manager_id(data: Dict[str, Any]) -> tuple[bool, str | None]:
    found, value = _first_present(data, "direct_manager_id", "directManagerId")
    if found:
        return True, _safe_str(value)
    for key in ("direct_manager", "directManager"):
        manager = data.get(key)
        if isinstance(manager, dict) and manager.get("id") is not None:
            return True, _safe_str(manager.get("id"))
    return False, None


_TEXT_FIELDS = {
    "title": ("title",),
    "description": ("description",),
    "created_at": ("created_at", "createdAt"),
    "client_name": ("client_name", "clientName"),
    "location": ("location",),
    "start_time": ("start_time", "startTime"),
    "end_time": ("end_time", "endTime"),
    "active_from": ("active_from", "activeFrom"),
}

_NUMBER_FIELDS = {
    "total_cost": ("total_cost", "totalCost"),
    "total_benefit": ("total_benefit", "totalBenefit"),
    "total_price": ("total_price", "totalPrice"),
}


def patch_from_payload(payload: object) -> Dict[str, Any]:
    """Fields a (full or trimmed) record projection actually carries.

    Keys the server left out stay out of the patch, so the merge keeps
    whatever the held snapshot already has for them.
    """
    if not isinstance(payload, dict):
        raise IntegrationError(
            code="unexpected_response_shape",
            message_key="record_temporarily_unavailable",
            details="System of record response is not a JSON object.",
        )
    data = payload
    patch: Dict[str, Any] = {}

    if data.get("id") is not None:
        patch["id"] = str(data["id"])
    found, kind = _first_present(data, "type", "kind")
    if found and kind is not None:
        patch["kind"] = kind
    found, state = _first_present(data, "state", "raw_state", "rawState")
    if found and state is not None:
        patch["raw_state"] = state

    found, requester_id = _requester_id(data)
    if found:
        patch["requester_id"] = requester_id
    found, manager_id = _direct_manager_id(data)
    if found:
        patch["direct_manager_id"] = manager_id

    for name, keys in _TEXT_FIELDS.items():
        found, value = _first_present(data, *keys)
        if found:
            patch[name] = _safe_str(value)
    for name, keys in _NUMBER_FIELDS.items():
        found, value = _first_present(data, *keys)
        if found:
            patch[name] = _safe_float(value, None)

    if isinstance(data.get("items"), list):
        patch["items"] = tuple(item_from_payload(item) for item in data["items"] if isinstance(item, dict))
    if isinstance(data.get("quotes"), list):
        patch["quotes"] = tuple(quote_from_payload(quote) for quote in data["quotes"] if isinstance(quote, dict))

    found, selected_id = _selected_quote_id(data)
    if found:
        patch["selected_quote_id"] = selected_id

    rejection = _safe_str(data.get("rejection_reason", data.get("rejectionReason")))
    if rejection is None:
        rejection = _rejection_from_approvals(data.get("approvals"))
    if rejection is not None:
        patch["rejection_reason"] = rejection
    return patch


def request_from_payload(payload: object) -> Request:
    patch = patch_from_payload(payload)
    if not patch.get("id"):
        raise IntegrationError(
            code="unexpected_response_shape",
            message_key="record_temporarily_unavailable",
            details="Record has no id.",
        )
    if "raw_state" not in patch:
        raise IntegrationError(
            code="unexpected_response_shape",
            message_key="record_temporarily_unavailable",
            details=f"Record {patch['id']} has no state.",
        )
    try:
        kind = parse_kind(patch.pop("kind", None), default=None)
        raw_state = parse_raw_state(patch.pop("raw_state"))
    except UnknownValueError as exc:
        raise IntegrationError(
            code="unexpected_response_shape",
            message_key="record_temporarily_unavailable",
            details=str(exc),
        ) from exc
    request_id = patch.pop("id")
    return Request(id=request_id, kind=kind, raw_state=raw_state, **patch)


@dataclass(frozen=True)
class ApprovalEntry:
    stage: str | None
    decision: str
    comment: str | None = None
    approver_name: str | None = None
    approver_role: str | None = None
    decided_at: str | None = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage,
            "decision": self.decision,
            "comment": self.comment,
            "approver_name": self.approver_name,
            "approver_role": self.approver_role,
            "decided_at": self.decided_at,
        }


def history_from_payload(payload: object) -> List[ApprovalEntry]:
    if isinstance(payload, dict):
        payload = payload.get("data") or payload.get("items") or []
    if not isinstance(payload, list):
        return []
    entries: List[ApprovalEntry] = []
    for row in payload:
        if not isinstance(row, dict):
            continue
        approver = row.get("approver") if isinstance(row.get("approver"), dict) else {}
        entries.append(
            ApprovalEntry(
                stage=_safe_str(row.get("stage")),
                decision=str(row.get("decision") or "PENDING").upper(),
                comment=_safe_str(row.get("comment")),
                approver_name=_safe_str(approver.get("name")),
                approver_role=_safe_str(approver.get("role")),
                decided_at=_safe_str(row.get("decided_at", row.get("decidedAt"))),
            )
        )
    return entries
