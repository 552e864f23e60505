from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Mapping, Tuple

from request_tracker.ui_strings import action_label, hint_text
from request_tracker.workflow.models import Actor, Quote, Request
from request_tracker.workflow.quotes import AUTO_LOWEST, quote_problems, selected_quote
from request_tracker.workflow.roles import EffectiveRole, resolve_effective_role
from request_tracker.workflow.states import TERMINAL_STATES, Action, RawState, RequestKind, Role


# Display order; the first permitted action is the primary one.
ACTION_ORDER: Tuple[Action, ...] = (
    Action.SUBMIT_DRAFT,
    Action.APPROVE,
    Action.SELECT_QUOTE,
    Action.ADD_QUOTE,
    Action.MARK_DONE,
    Action.CONFIRM_PAID,
    Action.REJECT,
)


@dataclass(frozen=True)
class GateResult:
    permitted_actions: FrozenSet[Action]
    hint: str | None
    effective_role: EffectiveRole
    primary_action: Action | None = None

    def allows(self, action: Action) -> bool:
        return action in self.permitted_actions

    def ordered_actions(self) -> List[Action]:
        return [action for action in ACTION_ORDER if action in self.permitted_actions]

    def to_dict(self) -> Dict[str, object]:
        return {
            "allowed_actions": [action.value for action in self.ordered_actions()],
            "primary_action": self.primary_action.value if self.primary_action else None,
            "action_labels": {action.value: action_label(action.value) for action in self.ordered_actions()},
            "hint": self.hint,
            "effective_role": self.effective_role.to_dict(),
        }


@dataclass(frozen=True)
class ActionCheck:
    action: Action
    enabled: bool
    reason: str | None = None


def gate(actor: Actor, request: Request) -> GateResult:
    """Actions ``actor`` may trigger on ``request`` plus a hint for the view.

    The result is advisory: the system of record re-validates every transition.
    """
    effective = resolve_effective_role(actor.role, request.kind)
    permitted = frozenset(_permitted_actions(actor, effective.role, request))
    primary = next((action for action in ACTION_ORDER if action in permitted), None)
    return GateResult(
        permitted_actions=permitted,
        hint=_hint(actor, effective.role, request),
        effective_role=effective,
        primary_action=primary,
    )


def _permitted_actions(actor: Actor, role: Role | None, request: Request) -> List[Action]:
    state = request.raw_state
    if role is None and not actor.matches(request.requester_id):
        return []

    if state == RawState.DRAFT:
        if role in (Role.REQUESTER, Role.DIRECT_MANAGER):
            return [Action.SUBMIT_DRAFT]
        return []

    if request.kind == RequestKind.PURCHASE:
        if state == RawState.SUBMITTED and role == Role.DIRECT_MANAGER:
            return [Action.APPROVE, Action.REJECT]
        if state == RawState.DM_APPROVED and role == Role.ACCOUNTANT:
            return [Action.ADD_QUOTE]
        if state == RawState.DM_APPROVED and role == Role.FINAL_MANAGER and request.quotes:
            actions = [Action.SELECT_QUOTE]
            # Raises on a dangling selection instead of approving a quote that is gone.
            if selected_quote(request) is not None:
                actions.append(Action.APPROVE)
            return actions
        return []

    if state == RawState.SUBMITTED and role == Role.FINAL_MANAGER:
        return [Action.APPROVE, Action.REJECT]
    if state == RawState.PROCESSING and actor.matches(request.requester_id):
        return [Action.MARK_DONE]
    if state == RawState.DONE and role == Role.ACCOUNTANT:
        return [Action.CONFIRM_PAID]
    return []


def _hint(actor: Actor, role: Role | None, request: Request) -> str:
    state = request.raw_state
    is_owner = actor.matches(request.requester_id)

    if role is None and not is_owner:
        return hint_text("unrecognized_role")
    if state == RawState.DRAFT:
        if role == Role.REQUESTER:
            return hint_text("requester_submit_draft")
        if role == Role.DIRECT_MANAGER:
            return hint_text("dm_submit_draft")
        return hint_text("waiting_draft_submission")
    if state in TERMINAL_STATES:
        return hint_text("request_closed")
    if request.kind == RequestKind.PROJECT:
        return hint_text(_project_hint_key(role, is_owner, state))
    return hint_text(_purchase_hint_key(role, is_owner, request))


def _project_hint_key(role: Role | None, is_owner: bool, state: RawState) -> str:
    if is_owner and state == RawState.PROCESSING:
        return "requester_mark_done"
    if role == Role.FINAL_MANAGER:
        return "fm_project_approve_reject" if state == RawState.SUBMITTED else "fm_project_no_action"
    if is_owner:
        if state == RawState.DONE:
            return "requester_awaiting_paid"
        if state == RawState.SUBMITTED:
            return "requester_awaiting_fm"
        return "no_actions_generic"
    if role == Role.ACCOUNTANT:
        return "acct_confirm_paid" if state == RawState.DONE else "acct_project_wait"
    if role == Role.DIRECT_MANAGER:
        return "dm_project_no_action"
    return _bystander_hint_key(role)


def _purchase_hint_key(role: Role | None, is_owner: bool, request: Request) -> str:
    state = request.raw_state
    if role == Role.DIRECT_MANAGER:
        return "dm_approve_reject" if state == RawState.SUBMITTED else "dm_no_action"
    if role == Role.ACCOUNTANT:
        if state == RawState.DM_APPROVED:
            return "acct_add_more_or_wait_fm" if request.quotes else "acct_add_quotes"
        if state == RawState.SUBMITTED:
            return "acct_purchase_wait"
        return "acct_purchase_no_action"
    if role == Role.FINAL_MANAGER:
        if state == RawState.DM_APPROVED:
            if not request.quotes:
                return "fm_waiting_quotes"
            if request.selected_quote_id is None:
                return "fm_select_quote"
            return "fm_can_approve_now"
        if state == RawState.SUBMITTED:
            return "fm_waiting_dm"
        return "fm_no_action_purchase"
    if is_owner:
        if state == RawState.SUBMITTED:
            return "requester_awaiting_dm"
        if state == RawState.DM_APPROVED:
            return "requester_awaiting_quotes"
        if state == RawState.ACCT_APPROVED:
            return "requester_awaiting_fm"
        return "no_actions_generic"
    return _bystander_hint_key(role)


def _bystander_hint_key(role: Role | None) -> str:
    if role == Role.ADMIN:
        return "admin_no_action"
    if role == Role.SALES:
        return "sales_no_action"
    return "no_actions_generic"


def transition_target(action: Action, request: Request) -> RawState | None:
    """State the action asks the system of record for; None for quote bookkeeping."""
    kind = request.kind
    state = request.raw_state
    if action == Action.SUBMIT_DRAFT:
        return RawState.SUBMITTED
    if action == Action.APPROVE:
        if kind == RequestKind.PURCHASE and state == RawState.SUBMITTED:
            return RawState.DM_APPROVED
        return RawState.FINAL_APPROVED
    if action == Action.REJECT:
        if kind == RequestKind.PURCHASE and state == RawState.SUBMITTED:
            return RawState.DM_REJECTED
        return RawState.FINAL_REJECTED
    if action == Action.MARK_DONE:
        return RawState.DONE
    if action == Action.CONFIRM_PAID:
        return RawState.PAID
    return None


def check_action(actor: Actor, request: Request, action: Action, params: Mapping[str, object] | None = None) -> ActionCheck:
    """Whether the control for ``action`` is enabled with the given inputs.

    Missing preconditions disable the control; nothing is sent over the network.
    """
    values = dict(params or {})
    result = gate(actor, request)
    if not result.allows(action):
        return ActionCheck(action=action, enabled=False, reason="action_not_allowed_for_status")

    if action == Action.REJECT:
        reason = str(values.get("comment") or values.get("reason") or "").strip()
        if not reason:
            return ActionCheck(action=action, enabled=False, reason="rejection_reason_required")
    elif action == Action.ADD_QUOTE:
        problems = quote_problems(values.get("vendor_name"), values.get("quote_total"), values.get("file_url"))
        if problems:
            return ActionCheck(action=action, enabled=False, reason=problems[0])
    elif action == Action.SELECT_QUOTE:
        choice = values.get("quote_id")
        if values.get("auto_lowest") or choice == AUTO_LOWEST:
            return ActionCheck(action=action, enabled=True)
        if choice is None or str(choice).strip() not in request.quote_ids():
            return ActionCheck(action=action, enabled=False, reason="quote_required_for_selection")
    return ActionCheck(action=action, enabled=True)


_MATRIX_ROLES: Tuple[Role, ...] = (
    Role.REQUESTER,
    Role.DIRECT_MANAGER,
    Role.ACCOUNTANT,
    Role.FINAL_MANAGER,
    Role.ADMIN,
    Role.SALES,
)


def gate_matrix(kind: RequestKind, quote_count: int = 0, selected: bool = False) -> List[Dict[str, object]]:
    """Gate outcome for every role and state of ``kind``.

    The requester row acts on its own request; every other role is a different actor.
    """
    quotes = tuple(
        Quote(id=str(idx + 1), vendor_name=f"Vendor {idx + 1}", quote_total=float(100 * (idx + 1)))
        for idx in range(max(0, int(quote_count)))
    )
    base = Request(
        id="matrix",
        kind=kind,
        raw_state=RawState.DRAFT,
        requester_id="requester",
        quotes=quotes if kind == RequestKind.PURCHASE else (),
        selected_quote_id=quotes[0].id if (selected and quotes and kind == RequestKind.PURCHASE) else None,
    )
    rows: List[Dict[str, object]] = []
    for state in RawState:
        request = dataclasses.replace(base, raw_state=state)
        for role in _MATRIX_ROLES:
            actor_id = "requester" if role == Role.REQUESTER else role.value
            result = gate(Actor(id=actor_id, role=role), request)
            rows.append(
                {
                    "role": role.value,
                    "raw_state": state.value,
                    "allowed_actions": [action.value for action in result.ordered_actions()],
                    "hint": result.hint,
                }
            )
    return rows
