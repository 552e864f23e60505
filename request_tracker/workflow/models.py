from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Tuple

from request_tracker.errors import ValidationError
from request_tracker.workflow.states import RawState, RequestKind, Role


@dataclass(frozen=True)
class Item:
    name: str
    quantity: float = 0.0
    estimated_cost: float = 0.0

    @property
    def line_total(self) -> float:
        return float(self.quantity) * float(self.estimated_cost)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "quantity": self.quantity,
            "estimated_cost": self.estimated_cost,
        }


@dataclass(frozen=True)
class Quote:
    id: str
    vendor_name: str
    quote_total: float = 0.0
    file_url: str | None = None
    notes: str | None = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "vendor_name": self.vendor_name,
            "quote_total": self.quote_total,
            "file_url": self.file_url,
            "notes": self.notes,
        }


@dataclass(frozen=True)
class Request:
    """Immutable snapshot of a request as last confirmed by the system of record.

    ``total_estimated_cost`` is derived from ``items`` so it always follows the
    list it belongs to. A new snapshot is produced for every change.
    """

    id: str
    kind: RequestKind
    raw_state: RawState
    requester_id: str | None = None
    direct_manager_id: str | None = None
    title: str | None = None
    description: str | None = None
    created_at: str | None = None
    items: Tuple[Item, ...] = ()
    quotes: Tuple[Quote, ...] = ()
    selected_quote_id: str | None = None
    rejection_reason: str | None = None
    client_name: str | None = None
    location: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    total_cost: float | None = None
    total_benefit: float | None = None
    total_price: float | None = None
    active_from: str | None = None

    @property
    def total_estimated_cost(self) -> float:
        return sum(item.line_total for item in self.items)

    @property
    def quote_count(self) -> int:
        return len(self.quotes)

    @property
    def is_purchase(self) -> bool:
        return self.kind == RequestKind.PURCHASE

    @property
    def is_project(self) -> bool:
        return self.kind == RequestKind.PROJECT

    def quote_ids(self) -> FrozenSet[str]:
        return frozenset(quote.id for quote in self.quotes)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "kind": self.kind.value,
            "raw_state": self.raw_state.value,
            "requester_id": self.requester_id,
            "direct_manager_id": self.direct_manager_id,
            "title": self.title,
            "description": self.description,
            "created_at": self.created_at,
            "items": [item.to_dict() for item in self.items],
            "total_estimated_cost": self.total_estimated_cost,
            "quotes": [quote.to_dict() for quote in self.quotes],
            "selected_quote_id": self.selected_quote_id,
            "rejection_reason": self.rejection_reason,
        }
        if self.is_project:
            payload.update(
                {
                    "client_name": self.client_name,
                    "location": self.location,
                    "start_time": self.start_time,
                    "end_time": self.end_time,
                    "total_cost": self.total_cost,
                    "total_benefit": self.total_benefit,
                    "total_price": self.total_price,
                    "active_from": self.active_from,
                }
            )
        return payload


REQUEST_FIELDS: FrozenSet[str] = frozenset(item.name for item in fields(Request))

# id and kind never change after creation.
PATCHABLE_FIELDS: FrozenSet[str] = REQUEST_FIELDS - {"id", "kind"}


@dataclass(frozen=True)
class Actor:
    id: str | None
    role: Role | str | None = None
    name: str | None = field(default=None, compare=False)

    def matches(self, actor_id: object) -> bool:
        if self.id is None or actor_id is None:
            return False
        return str(self.id).strip() == str(actor_id).strip()


def _parse_timestamp(value: str | None) -> datetime | None:
    raw = str(value or "").strip()
    if not raw:
        return None
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        raise ValidationError(
            code="project_schedule_invalid",
            message_key="project_schedule_invalid",
            details=f"Unparseable timestamp: {value!r}",
        ) from None
    if parsed.tzinfo is None:
        return parsed
    return parsed.astimezone(timezone.utc).replace(tzinfo=None)


def validate_project_schedule(start_time: str | None, end_time: str | None) -> None:
    """Creation-time check for project requests: the end cannot precede the start."""
    start = _parse_timestamp(start_time)
    end = _parse_timestamp(end_time)
    if start is None or end is None:
        raise ValidationError(
            code="project_schedule_invalid",
            message_key="project_schedule_invalid",
            details="Projects need both start_time and end_time.",
        )
    if end < start:
        raise ValidationError(
            code="project_schedule_invalid",
            message_key="project_schedule_invalid",
            details="end_time precedes start_time.",
        )
