from __future__ import annotations

import dataclasses
import math
from typing import Any, Dict, List

from request_tracker.errors import ActionNotAllowedError, QuoteSelectionInvariantError, ValidationError
from request_tracker.workflow.models import Quote, Request
from request_tracker.workflow.states import RawState


AUTO_LOWEST = "auto-lowest"


def quote_stage_open(request: Request) -> bool:
    return request.is_purchase and request.raw_state == RawState.DM_APPROVED


def _require_quote_stage(request: Request, action: str) -> None:
    if quote_stage_open(request):
        return
    raise ActionNotAllowedError(
        details=f"{action} needs a purchase in DM_APPROVED (current: {request.kind.value}/{request.raw_state.value}).",
        payload={"action": action, "raw_state": request.raw_state.value, "kind": request.kind.value},
    )


def _as_total(value: object) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        total = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    if not math.isfinite(total):
        return None
    return total


def quote_problems(vendor_name: object, quote_total: object, file_url: object) -> List[str]:
    problems: List[str] = []
    if not str(vendor_name or "").strip():
        problems.append("quote_vendor_required")
    total = _as_total(quote_total)
    if total is None or total < 0:
        problems.append("quote_total_invalid")
    if not str(file_url or "").strip():
        problems.append("quote_file_required")
    return problems


def add_quote(
    request: Request,
    vendor_name: str,
    quote_total: float,
    file_url: str,
    notes: str | None = None,
) -> Dict[str, Any]:
    """Validate a new quote and return the payload for the system of record.

    The id is assigned remotely; the local snapshot only changes once the
    response is merged.
    """
    _require_quote_stage(request, "add_quote")
    problems = quote_problems(vendor_name, quote_total, file_url)
    if problems:
        raise ValidationError(
            code="quote_invalid",
            message_key=problems[0],
            details=", ".join(problems),
            payload={"problems": problems},
        )
    payload: Dict[str, Any] = {
        "vendor_name": str(vendor_name).strip(),
        "quote_total": _as_total(quote_total),
        "file_url": str(file_url).strip(),
    }
    cleaned_notes = str(notes or "").strip()
    if cleaned_notes:
        payload["notes"] = cleaned_notes
    return payload


def select_quote(request: Request, choice: object) -> Dict[str, Any]:
    """Selection payload for an explicit quote id or ``AUTO_LOWEST``.

    Ranking for ``AUTO_LOWEST`` belongs to the system of record; the id it
    echoes back is accepted as is.
    """
    _require_quote_stage(request, "select_quote")
    if not request.quotes:
        raise ValidationError(
            code="quote_required_for_selection",
            message_key="quote_required_for_selection",
            details="No quotes on file.",
        )
    if choice == AUTO_LOWEST:
        return {"auto_lowest": True}

    quote_id = str(choice if choice is not None else "").strip()
    if not quote_id or quote_id not in request.quote_ids():
        raise ValidationError(
            code="quote_not_found",
            message_key="quote_required_for_selection",
            details=f"Quote {choice!r} does not belong to request {request.id}.",
        )
    return {"quote_id": quote_id}


def with_selected_quote(request: Request, quote_id: object) -> Request:
    normalized = str(quote_id).strip() if quote_id is not None else None
    if normalized and normalized not in request.quote_ids():
        raise ValidationError(
            code="quote_not_found",
            message_key="quote_required_for_selection",
            details=f"Quote {quote_id!r} does not belong to request {request.id}.",
        )
    return dataclasses.replace(request, selected_quote_id=normalized or None)


def selected_quote(request: Request) -> Quote | None:
    if request.selected_quote_id is None:
        return None
    for quote in request.quotes:
        if quote.id == request.selected_quote_id:
            return quote
    raise QuoteSelectionInvariantError(
        details=f"selected_quote_id={request.selected_quote_id!r} is not among the quotes of request {request.id}.",
        payload={"record_id": request.id, "selected_quote_id": request.selected_quote_id},
    )


def check_selection_invariant(request: Request) -> None:
    selected_quote(request)


def quotes_by_total(request: Request) -> List[Quote]:
    return sorted(request.quotes, key=lambda quote: (quote.quote_total, quote.id))
