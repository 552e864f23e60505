from request_tracker.workflow.dispatcher import ActionDispatcher
from request_tracker.workflow.gate import ACTION_ORDER, ActionCheck, GateResult, check_action, gate, gate_matrix
from request_tracker.workflow.merge import PartialRequest, merge_request
from request_tracker.workflow.models import Actor, Item, Quote, Request, validate_project_schedule
from request_tracker.workflow.roles import EffectiveRole, RoleBasis, resolve_effective_role
from request_tracker.workflow.snapshots import SnapshotStore
from request_tracker.workflow.states import Action, RawState, RequestKind, Role, Status
from request_tracker.workflow.status import (
    build_progress_steps,
    derive_request_status,
    derive_status,
    next_approval_stage,
    stage_display_name,
)

__all__ = [
    "ACTION_ORDER",
    "Action",
    "ActionCheck",
    "ActionDispatcher",
    "Actor",
    "EffectiveRole",
    "GateResult",
    "Item",
    "PartialRequest",
    "Quote",
    "RawState",
    "Request",
    "RequestKind",
    "Role",
    "RoleBasis",
    "SnapshotStore",
    "Status",
    "build_progress_steps",
    "check_action",
    "derive_request_status",
    "derive_status",
    "gate",
    "gate_matrix",
    "merge_request",
    "next_approval_stage",
    "resolve_effective_role",
    "stage_display_name",
    "validate_project_schedule",
]
