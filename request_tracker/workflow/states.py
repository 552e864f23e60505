from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet


class RequestKind(str, Enum):
    PURCHASE = "purchase"
    PROJECT = "project"


class RawState(str, Enum):
    """Lifecycle value persisted by the system of record."""

    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    DM_APPROVED = "DM_APPROVED"
    DM_REJECTED = "DM_REJECTED"
    ACCT_APPROVED = "ACCT_APPROVED"
    ACCT_REJECTED = "ACCT_REJECTED"
    FINAL_APPROVED = "FINAL_APPROVED"
    FINAL_REJECTED = "FINAL_REJECTED"
    FUNDS_TRANSFERRED = "FUNDS_TRANSFERRED"
    PROCESSING = "PROCESSING"
    DONE = "DONE"
    PAID = "PAID"


class Status(str, Enum):
    """Human-facing label derived from raw state, kind and quote count."""

    PENDING = "Pending"
    AWAITING_PAYMENT = "Awaiting Payment"
    AWAITING_SELECTION = "Awaiting Selection"
    REJECTED = "Rejected"
    APPROVED = "Approved"
    ACTIVE = "Active"
    PROCESSED = "Processed"
    PROCESSING = "Processing"
    DONE = "Done"
    PAID = "Paid"


class Role(str, Enum):
    REQUESTER = "requester"
    DIRECT_MANAGER = "direct_manager"
    ACCOUNTANT = "accountant"
    FINAL_MANAGER = "final_manager"
    ADMIN = "admin"
    SALES = "sales"


class Action(str, Enum):
    SUBMIT_DRAFT = "submit_draft"
    APPROVE = "approve"
    REJECT = "reject"
    ADD_QUOTE = "add_quote"
    SELECT_QUOTE = "select_quote"
    MARK_DONE = "mark_done"
    CONFIRM_PAID = "confirm_paid"


REJECTED_STATES: FrozenSet[RawState] = frozenset(
    {RawState.DM_REJECTED, RawState.ACCT_REJECTED, RawState.FINAL_REJECTED}
)

TERMINAL_STATES: FrozenSet[RawState] = REJECTED_STATES | {RawState.FUNDS_TRANSFERRED, RawState.PAID}


_KIND_ALIASES: Dict[str, RequestKind] = {
    "purchase": RequestKind.PURCHASE,
    "project": RequestKind.PROJECT,
}


class UnknownValueError(ValueError):
    def __init__(self, field: str, value: object) -> None:
        super().__init__(f"unknown {field}: {value!r}")
        self.field = field
        self.value = value


def parse_kind(value: object, default: RequestKind | None = RequestKind.PURCHASE) -> RequestKind:
    if isinstance(value, RequestKind):
        return value
    normalized = str(value or "").strip().lower()
    if not normalized and default is not None:
        return default
    kind = _KIND_ALIASES.get(normalized)
    if kind is None:
        raise UnknownValueError("kind", value)
    return kind


def parse_raw_state(value: object) -> RawState:
    if isinstance(value, RawState):
        return value
    normalized = str(value or "").strip().upper()
    try:
        return RawState(normalized)
    except ValueError:
        raise UnknownValueError("raw_state", value) from None


def parse_action(value: object) -> Action:
    if isinstance(value, Action):
        return value
    normalized = str(value or "").strip().lower().replace("-", "_")
    try:
        return Action(normalized)
    except ValueError:
        raise UnknownValueError("action", value) from None
