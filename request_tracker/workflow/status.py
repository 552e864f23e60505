from __future__ import annotations

from typing import Dict, List, Tuple

from request_tracker.ui_strings import PROGRESS_STEPS, STAGE_LABELS, stage_label
from request_tracker.workflow.models import Request
from request_tracker.workflow.states import RawState, RequestKind, Status


_STATE_STATUS: Dict[RawState, Status] = {
    RawState.DRAFT: Status.PENDING,
    RawState.SUBMITTED: Status.PENDING,
    RawState.DM_APPROVED: Status.AWAITING_PAYMENT,
    RawState.ACCT_APPROVED: Status.AWAITING_PAYMENT,
    RawState.DM_REJECTED: Status.REJECTED,
    RawState.ACCT_REJECTED: Status.REJECTED,
    RawState.FINAL_REJECTED: Status.REJECTED,
    RawState.FINAL_APPROVED: Status.APPROVED,
    RawState.FUNDS_TRANSFERRED: Status.PROCESSED,
    RawState.PROCESSING: Status.PROCESSING,
    RawState.DONE: Status.DONE,
    RawState.PAID: Status.PAID,
}


def derive_status(raw_state: RawState, kind: RequestKind, quote_count: int) -> Status:
    if raw_state == RawState.FINAL_APPROVED and kind == RequestKind.PROJECT:
        return Status.ACTIVE
    # Quotes on an approved purchase mean the Final Manager has something to pick.
    if raw_state == RawState.DM_APPROVED and kind == RequestKind.PURCHASE and int(quote_count or 0) > 0:
        return Status.AWAITING_SELECTION
    return _STATE_STATUS[raw_state]


def derive_request_status(request: Request) -> Status:
    return derive_status(request.raw_state, request.kind, request.quote_count)


def stage_display_name(stage: str) -> str:
    return STAGE_LABELS.get(str(stage or "").strip().upper(), stage)


def next_approval_stage(request: Request) -> str | None:
    """Key of the stage the request is waiting on, or None once nothing is pending."""
    state = request.raw_state
    if request.is_project:
        mapping = {
            RawState.SUBMITTED: "final_manager_approval",
            RawState.FINAL_APPROVED: "project_execution",
            RawState.PROCESSING: "project_execution",
            RawState.DONE: "client_payment",
        }
        return mapping.get(state)

    if state == RawState.DM_APPROVED:
        return "final_manager_approval" if request.quote_count else "accountant_quotes"
    mapping = {
        RawState.SUBMITTED: "direct_manager_approval",
        RawState.ACCT_APPROVED: "final_manager_approval",
        RawState.FINAL_APPROVED: "funds_transfer",
    }
    return mapping.get(state)


def next_approval_stage_label(request: Request) -> str | None:
    return stage_label(next_approval_stage(request))


_PURCHASE_PROGRESS: Dict[RawState, Tuple[int, bool]] = {
    RawState.DRAFT: (0, False),
    RawState.SUBMITTED: (1, False),
    RawState.DM_REJECTED: (1, True),
    RawState.DM_APPROVED: (2, False),
    RawState.ACCT_REJECTED: (2, True),
    RawState.ACCT_APPROVED: (3, False),
    RawState.FINAL_REJECTED: (3, True),
    RawState.FINAL_APPROVED: (4, False),
    RawState.FUNDS_TRANSFERRED: (5, False),
}

_PROJECT_PROGRESS: Dict[RawState, Tuple[int, bool]] = {
    RawState.DRAFT: (0, False),
    RawState.SUBMITTED: (1, False),
    RawState.FINAL_REJECTED: (1, True),
    RawState.FINAL_APPROVED: (2, False),
    RawState.PROCESSING: (2, False),
    RawState.DONE: (4, False),
    RawState.PAID: (5, False),
}


def build_progress_steps(request: Request) -> List[Dict[str, object]]:
    table = _PROJECT_PROGRESS if request.is_project else _PURCHASE_PROGRESS
    current_idx, rejected = table.get(request.raw_state, (0, False))
    if request.is_purchase and request.raw_state == RawState.DM_APPROVED and request.quote_count:
        current_idx = 3

    steps: List[Dict[str, object]] = []
    for idx, step in enumerate(PROGRESS_STEPS[request.kind.value]):
        state = "future"
        if idx < current_idx:
            state = "completed"
        elif idx == current_idx:
            state = "rejected" if rejected else "current"
        steps.append({"key": step["key"], "label": step["label"], "state": state})
    return steps
