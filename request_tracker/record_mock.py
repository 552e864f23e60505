from __future__ import annotations

import dataclasses
import itertools
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List

from request_tracker.record_client import RecordClient, RecordClientError
from request_tracker.workflow.models import Item, Quote, Request
from request_tracker.workflow.quotes import with_selected_quote
from request_tracker.workflow.states import RawState, RequestKind


def _iso_now() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def _conflict(message: str) -> RecordClientError:
    return RecordClientError(f"Record HTTP 409: {message}")


DEMO_REQUESTS: List[Request] = [
    Request(
        id="101",
        kind=RequestKind.PURCHASE,
        raw_state=RawState.SUBMITTED,
        requester_id="7",
        direct_manager_id="3",
        title="Laptops for the support team",
        created_at="2026-01-12T09:00:00Z",
        items=(
            Item(name="Laptop", quantity=2, estimated_cost=1200.0),
            Item(name="Docking station", quantity=2, estimated_cost=150.0),
        ),
    ),
    Request(
        id="102",
        kind=RequestKind.PURCHASE,
        raw_state=RawState.DM_APPROVED,
        requester_id="8",
        direct_manager_id="3",
        title="Office chairs",
        created_at="2026-01-14T10:30:00Z",
        items=(Item(name="Chair", quantity=6, estimated_cost=90.0),),
    ),
    Request(
        id="201",
        kind=RequestKind.PROJECT,
        raw_state=RawState.SUBMITTED,
        requester_id="7",
        title="Studio installation",
        client_name="Acme Media",
        location="Riyadh",
        start_time="2026-02-01T08:00:00Z",
        end_time="2026-02-20T18:00:00Z",
        total_cost=18000.0,
        total_benefit=6000.0,
        total_price=24000.0,
    ),
    Request(
        id="202",
        kind=RequestKind.PROJECT,
        raw_state=RawState.PROCESSING,
        requester_id="7",
        title="Event coverage",
        client_name="Northwind",
        start_time="2026-01-05T08:00:00Z",
        end_time="2026-01-06T20:00:00Z",
        total_cost=4000.0,
        total_benefit=1500.0,
        total_price=5500.0,
        active_from="2026-01-05T08:00:00Z",
    ),
]


class MockRecordClient(RecordClient):
    """In-memory system of record used in development and tests.

    It enforces the transition graph on its own and answers several calls
    with trimmed projections, the way the real backend does.
    """

    def __init__(self, requests: Iterable[Request] = ()) -> None:
        self._lock = threading.Lock()
        self._records: Dict[str, Request] = {}
        self._approvals: Dict[str, List[Dict[str, Any]]] = {}
        self._quote_ids = itertools.count(1)
        for request in requests:
            self.put_request(request)

    @classmethod
    def with_demo_data(cls) -> "MockRecordClient":
        return cls(DEMO_REQUESTS)

    def put_request(self, request: Request) -> None:
        with self._lock:
            self._records[request.id] = request
            self._approvals.setdefault(request.id, [])

    def force_state(self, request_id: str, raw_state: RawState, rejection_reason: str | None = None) -> None:
        """Simulate another actor moving the request behind this client's back."""
        with self._lock:
            record = self._get(request_id)
            self._records[request_id] = dataclasses.replace(
                record, raw_state=raw_state, rejection_reason=rejection_reason
            )

    def _get(self, request_id: str) -> Request:
        record = self._records.get(str(request_id))
        if record is None:
            raise RecordClientError(f"Record HTTP 404: request {request_id} not found")
        return record

    def _record_decision(self, request_id: str, stage: str, decision: str, comment: str | None) -> None:
        self._approvals.setdefault(request_id, []).append(
            {
                "stage": stage,
                "decision": decision,
                "comment": comment,
                "decided_at": _iso_now(),
            }
        )

    def fetch_request(self, request_id: str) -> Dict[str, Any]:
        with self._lock:
            return self._full_payload(self._get(request_id))

    def fetch_approval_history(self, request_id: str) -> List[Dict[str, Any]]:
        with self._lock:
            self._get(request_id)
            return [dict(row) for row in self._approvals.get(str(request_id), [])]

    def submit(self, request_id: str) -> Dict[str, Any]:
        with self._lock:
            record = self._get(request_id)
            if record.raw_state != RawState.DRAFT:
                raise _conflict(f"request in {record.raw_state.value} cannot be submitted")
            record = dataclasses.replace(record, raw_state=RawState.SUBMITTED)
            self._records[record.id] = record
            return self._full_payload(record)

    def approve(self, request_id: str, comment: str | None = None) -> Dict[str, Any]:
        with self._lock:
            record = self._get(request_id)
            state = record.raw_state
            if record.kind == RequestKind.PURCHASE and state == RawState.SUBMITTED:
                target, stage = RawState.DM_APPROVED, "DM"
            elif record.kind == RequestKind.PURCHASE and state in (RawState.DM_APPROVED, RawState.ACCT_APPROVED):
                if record.selected_quote_id is None:
                    raise _conflict("select a quote before final approval")
                target, stage = RawState.FINAL_APPROVED, "FINAL"
            elif record.kind == RequestKind.PROJECT and state == RawState.SUBMITTED:
                target, stage = RawState.FINAL_APPROVED, "FINAL"
            else:
                raise _conflict(f"approval not accepted in {state.value}")
            self._records[record.id] = dataclasses.replace(record, raw_state=target)
            self._record_decision(record.id, stage, "APPROVED", comment)
            return {"id": record.id, "state": target.value}

    def reject(self, request_id: str, comment: str) -> Dict[str, Any]:
        if not str(comment or "").strip():
            raise RecordClientError("Record HTTP 422: a comment is required to reject")
        with self._lock:
            record = self._get(request_id)
            state = record.raw_state
            if record.kind == RequestKind.PURCHASE and state == RawState.SUBMITTED:
                target, stage = RawState.DM_REJECTED, "DM"
            elif record.kind == RequestKind.PURCHASE and state == RawState.DM_APPROVED:
                target, stage = RawState.FINAL_REJECTED, "FINAL"
            elif record.kind == RequestKind.PROJECT and state == RawState.SUBMITTED:
                target, stage = RawState.FINAL_REJECTED, "FINAL"
            else:
                raise _conflict(f"rejection not accepted in {state.value}")
            self._records[record.id] = dataclasses.replace(record, raw_state=target, rejection_reason=comment)
            self._record_decision(record.id, stage, "REJECTED", comment)
            approvals = [dict(row) for row in self._approvals[record.id]]
            return {"id": record.id, "state": target.value, "items": [], "approvals": approvals}

    def add_quote(
        self,
        request_id: str,
        vendor_name: str,
        quote_total: float,
        file_url: str,
        notes: str | None = None,
    ) -> Dict[str, Any]:
        with self._lock:
            record = self._get(request_id)
            if record.kind != RequestKind.PURCHASE or record.raw_state != RawState.DM_APPROVED:
                raise _conflict(f"quotes can only be added in DM_APPROVED (current {record.raw_state.value})")
            quote = Quote(
                id=str(next(self._quote_ids)),
                vendor_name=vendor_name,
                quote_total=float(quote_total),
                file_url=file_url,
                notes=notes,
            )
            record = dataclasses.replace(record, quotes=record.quotes + (quote,))
            self._records[record.id] = record
            return self._full_payload(record)

    def select_quote(self, request_id: str, quote_id: str | None = None, auto_lowest: bool = False) -> Dict[str, Any]:
        with self._lock:
            record = self._get(request_id)
            if record.kind != RequestKind.PURCHASE or record.raw_state != RawState.DM_APPROVED:
                raise _conflict(f"selection not accepted in {record.raw_state.value}")
            if not record.quotes:
                raise _conflict("no quotes on file")
            if auto_lowest:
                chosen = min(record.quotes, key=lambda quote: quote.quote_total)
            else:
                chosen = next((quote for quote in record.quotes if quote.id == str(quote_id)), None)
                if chosen is None:
                    raise RecordClientError(f"Record HTTP 422: quote {quote_id} not found")
            record = with_selected_quote(record, chosen.id)
            self._records[record.id] = record
            return {
                "id": record.id,
                "state": record.raw_state.value,
                "quotes": [],
                "selected_quote": {"id": chosen.id, "vendor_name": chosen.vendor_name},
            }

    def mark_project_done(self, request_id: str) -> Dict[str, Any]:
        with self._lock:
            record = self._get(request_id)
            if record.kind != RequestKind.PROJECT or record.raw_state != RawState.PROCESSING:
                raise _conflict(f"project in {record.raw_state.value} cannot be marked done")
            self._records[record.id] = dataclasses.replace(record, raw_state=RawState.DONE)
            return {"id": record.id, "state": RawState.DONE.value}

    def confirm_client_paid(self, request_id: str, payout_reference: str | None = None) -> Dict[str, Any]:
        with self._lock:
            record = self._get(request_id)
            if record.kind != RequestKind.PROJECT or record.raw_state != RawState.DONE:
                raise _conflict(f"payment cannot be confirmed in {record.raw_state.value}")
            self._records[record.id] = dataclasses.replace(record, raw_state=RawState.PAID)
            payload: Dict[str, Any] = {"id": record.id, "state": RawState.PAID.value}
            if payout_reference:
                payload["payout_reference"] = payout_reference
            return payload

    def _full_payload(self, record: Request) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": record.id,
            "type": record.kind.value,
            "state": record.raw_state.value,
            "requester_id": record.requester_id,
            "direct_manager_id": record.direct_manager_id,
            "title": record.title,
            "description": record.description,
            "created_at": record.created_at,
            "items": [
                {"name": item.name, "quantity": item.quantity, "unit_price": item.estimated_cost}
                for item in record.items
            ],
            "quotes": [
                {
                    "id": quote.id,
                    "vendor_name": quote.vendor_name,
                    "quote_total": quote.quote_total,
                    "file_url": quote.file_url,
                    "notes": quote.notes,
                }
                for quote in record.quotes
            ],
            "selected_quote_id": record.selected_quote_id,
            "approvals": [dict(row) for row in self._approvals.get(record.id, [])],
        }
        if record.kind == RequestKind.PROJECT:
            payload.update(
                {
                    "client_name": record.client_name,
                    "location": record.location,
                    "start_time": record.start_time,
                    "end_time": record.end_time,
                    "total_cost": record.total_cost,
                    "total_benefit": record.total_benefit,
                    "total_price": record.total_price,
                    "active_from": record.active_from,
                }
            )
        return payload
