from __future__ import annotations

import logging
import threading
import time
from typing import Any, Dict, List, Mapping, Set, Tuple

from request_tracker.errors import (
    ActionInFlightError,
    ActionNotAllowedError,
    AppError,
    UserActionError,
    ValidationError,
    error_for_record_failure,
)
from request_tracker.observability import observe_dispatch
from request_tracker.record_client import RecordClient, RecordClientError
from request_tracker.workflow import quotes as quote_ledger
from request_tracker.workflow.gate import check_action, transition_target
from request_tracker.workflow.mapper import ApprovalEntry, history_from_payload, patch_from_payload, request_from_payload
from request_tracker.workflow.merge import merge_request
from request_tracker.workflow.models import Actor, Request
from request_tracker.workflow.snapshots import SnapshotStore
from request_tracker.workflow.states import Action, UnknownValueError, parse_action


def coerce_action(action: Action | str) -> Action:
    try:
        return parse_action(action)
    except UnknownValueError as exc:
        raise UserActionError(
            code="action_unknown",
            message_key="action_invalid",
            details=str(exc),
        ) from exc


class ActionDispatcher:
    """Runs workflow actions against the system of record.

    Each call is gated and validated locally first, then sent once, and its
    response (full or trimmed) is merged into the held snapshot. A failed
    call leaves the snapshot as it was.
    """

    def __init__(self, client: RecordClient, store: SnapshotStore | None = None) -> None:
        self.client = client
        self.store = store or SnapshotStore()
        self._in_flight: Set[Tuple[str, Action]] = set()
        self._in_flight_lock = threading.Lock()
        self._logger = logging.getLogger("request_tracker")

    def load(self, request_id: str) -> Request:
        snapshot = self.store.get(request_id)
        if snapshot is not None:
            return snapshot
        return self.refresh(request_id)

    def refresh(self, request_id: str) -> Request:
        try:
            payload = self.client.fetch_request(str(request_id))
        except RecordClientError as exc:
            raise error_for_record_failure(str(exc)) from exc
        return self.store.put(request_from_payload(payload))

    def history(self, request_id: str) -> List[ApprovalEntry]:
        try:
            return history_from_payload(self.client.fetch_approval_history(str(request_id)))
        except RecordClientError:
            self._logger.warning(
                "workflow_history_unavailable",
                extra={"record_id": str(request_id)},
                exc_info=True,
            )
            return []

    def is_in_flight(self, request_id: str, action: Action | str) -> bool:
        with self._in_flight_lock:
            return (str(request_id), coerce_action(action)) in self._in_flight

    def dispatch(
        self,
        actor: Actor,
        request_id: str,
        action: Action | str,
        params: Mapping[str, Any] | None = None,
    ) -> Request:
        action = coerce_action(action)
        values: Dict[str, Any] = dict(params or {})
        snapshot = self.load(request_id)

        check = check_action(actor, snapshot, action, values)
        if not check.enabled:
            if check.reason == "action_not_allowed_for_status":
                raise ActionNotAllowedError(
                    details=f"{action.value} unavailable for {snapshot.kind.value}/{snapshot.raw_state.value}.",
                    payload={"action": action.value, "raw_state": snapshot.raw_state.value},
                )
            raise ValidationError(
                code=check.reason,
                message_key=check.reason,
                payload={"action": action.value},
            )

        key = (snapshot.id, action)
        with self._in_flight_lock:
            if key in self._in_flight:
                raise ActionInFlightError(details=f"{action.value} already in flight for {snapshot.id}.")
            self._in_flight.add(key)

        started = time.perf_counter()
        try:
            return self._send(actor, snapshot, action, values, started)
        finally:
            with self._in_flight_lock:
                self._in_flight.discard(key)

    def _send(
        self,
        actor: Actor,
        snapshot: Request,
        action: Action,
        values: Dict[str, Any],
        started: float,
    ) -> Request:
        log_extra = {
            "record_id": snapshot.id,
            "action": action.value,
            "from_state": snapshot.raw_state.value,
            "target_state": (transition_target(action, snapshot) or snapshot.raw_state).value,
            "actor_id": actor.id,
        }
        try:
            payload = self._call_client(snapshot, action, values)
            patch = patch_from_payload(payload)
            if _selection_dangles(merge_request(self.store.require(snapshot.id), patch)):
                # The record selected a quote this snapshot never loaded; take its full projection.
                updated = self.store.put(request_from_payload(self.client.fetch_request(snapshot.id)))
            else:
                updated = self.store.replace(snapshot.id, lambda current: merge_request(current, patch))
        except RecordClientError as exc:
            error = error_for_record_failure(str(exc))
            self._fail(error, log_extra, started)
            raise error from exc
        except AppError as error:
            self._fail(error, log_extra, started)
            raise

        observe_dispatch(action.value, "ok", (time.perf_counter() - started) * 1000.0)
        self._logger.info(
            "workflow_action_dispatched",
            extra={**log_extra, "to_state": updated.raw_state.value},
        )
        return updated

    def _fail(self, error: AppError, log_extra: Dict[str, Any], started: float) -> None:
        observe_dispatch(str(log_extra["action"]), error.code, (time.perf_counter() - started) * 1000.0)
        self._logger.warning(
            "workflow_action_failed",
            extra={**log_extra, "error_code": error.code, "details": error.details},
        )

    def _call_client(self, snapshot: Request, action: Action, values: Dict[str, Any]) -> Dict[str, Any]:
        request_id = snapshot.id
        if action == Action.SUBMIT_DRAFT:
            return self.client.submit(request_id)
        if action == Action.APPROVE:
            return self.client.approve(request_id, comment=_clean(values.get("comment")))
        if action == Action.REJECT:
            reason = _clean(values.get("comment")) or _clean(values.get("reason"))
            return self.client.reject(request_id, str(reason))
        if action == Action.ADD_QUOTE:
            body = quote_ledger.add_quote(
                snapshot,
                vendor_name=values.get("vendor_name"),
                quote_total=values.get("quote_total"),
                file_url=values.get("file_url"),
                notes=values.get("notes"),
            )
            return self.client.add_quote(request_id, **body)
        if action == Action.SELECT_QUOTE:
            choice = quote_ledger.AUTO_LOWEST if values.get("auto_lowest") else values.get("quote_id")
            body = quote_ledger.select_quote(snapshot, choice)
            return self.client.select_quote(request_id, **body)
        if action == Action.MARK_DONE:
            return self.client.mark_project_done(request_id)
        if action == Action.CONFIRM_PAID:
            return self.client.confirm_client_paid(request_id, payout_reference=_clean(values.get("payout_reference")))
        raise UserActionError(code="action_unknown", message_key="action_invalid", details=action.value)


def _selection_dangles(request: Request) -> bool:
    return request.selected_quote_id is not None and request.selected_quote_id not in request.quote_ids()


def _clean(value: object) -> str | None:
    cleaned = str(value or "").strip()
    return cleaned or None
