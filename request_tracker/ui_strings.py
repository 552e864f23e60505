from __future__ import annotations

from typing import Dict, List


FRIENDLY_TERMS: Dict[str, str] = {
    "app_name": "Request Tracker",
    "purchase": "Purchase request",
    "project": "Project request",
    "quote": "Quote",
    "requester": "Requester",
    "direct_manager": "Direct Manager",
    "accountant": "Accountant",
    "final_manager": "Final Manager",
    "admin": "Admin",
    "sales": "Sales",
}


STATUS_ITEMS: List[Dict[str, str]] = [
    {
        "key": "Pending",
        "label": "Pending",
        "description": "Draft or submitted request waiting for its first decision.",
    },
    {
        "key": "Awaiting Payment",
        "label": "Awaiting Payment",
        "description": "Approved by the Direct Manager; quotes have not been added yet.",
    },
    {
        "key": "Awaiting Selection",
        "label": "Awaiting Selection",
        "description": "Quotes are available for the Final Manager to choose from.",
    },
    {
        "key": "Rejected",
        "label": "Rejected",
        "description": "Closed by a rejection at one of the approval stages.",
    },
    {
        "key": "Approved",
        "label": "Approved",
        "description": "Purchase approved by the Final Manager.",
    },
    {
        "key": "Active",
        "label": "Active",
        "description": "Project approved by the Final Manager.",
    },
    {
        "key": "Processed",
        "label": "Processed",
        "description": "Funds transferred for the request.",
    },
    {
        "key": "Processing",
        "label": "Processing",
        "description": "Project in execution.",
    },
    {
        "key": "Done",
        "label": "Done",
        "description": "Project finished; waiting for client payment confirmation.",
    },
    {
        "key": "Paid",
        "label": "Paid",
        "description": "Client payment confirmed by the Accountant.",
    },
]


ACTION_LABELS: Dict[str, str] = {
    "submit_draft": "Submit Draft",
    "approve": "Approve",
    "reject": "Reject",
    "add_quote": "Add Quote",
    "select_quote": "Select Quote",
    "mark_done": "Mark Project Done",
    "confirm_paid": "Confirm Client Paid",
}


STAGE_LABELS: Dict[str, str] = {
    "DM": "Direct Manager",
    "ACCT": "Accountant",
    "FINAL": "Final Manager",
}


NEXT_STAGE_LABELS: Dict[str, str] = {
    "direct_manager_approval": "Direct Manager Approval",
    "accountant_quotes": "Accountant Quotes",
    "final_manager_approval": "Final Manager Approval",
    "funds_transfer": "Funds Transfer",
    "project_execution": "Project Execution",
    "client_payment": "Client Payment",
}


PROGRESS_STEPS: Dict[str, List[Dict[str, str]]] = {
    "purchase": [
        {"key": "submitted", "label": "Submitted"},
        {"key": "dm_review", "label": "Direct Manager"},
        {"key": "quotes", "label": "Quotes"},
        {"key": "final_review", "label": "Final Manager"},
        {"key": "funds", "label": "Funds Transferred"},
    ],
    "project": [
        {"key": "submitted", "label": "Submitted"},
        {"key": "final_review", "label": "Final Manager"},
        {"key": "processing", "label": "Processing"},
        {"key": "done", "label": "Done"},
        {"key": "paid", "label": "Paid"},
    ],
}


HINTS: Dict[str, str] = {
    "no_actions_generic": "No actions available for this stage.",
    "request_closed": "This request is closed; no further actions are available.",
    "unrecognized_role": "Your role could not be determined; no actions are available.",
    "admin_no_action": "Admin: workflow decisions are taken by the assigned approvers.",
    "requester_submit_draft": "Requester: submit the draft to start the approval chain.",
    "waiting_draft_submission": "Waiting for the requester to submit the draft.",
    "requester_awaiting_dm": "Requester: awaiting Direct Manager decision.",
    "requester_awaiting_quotes": "Requester: waiting for Accountant quotes and Final Manager selection.",
    "requester_awaiting_fm": "Requester: awaiting Final Manager decision.",
    "requester_mark_done": "Requester: mark the project as done when it has ended.",
    "requester_awaiting_paid": "Requester: awaiting accountant confirmation of payment.",
    "dm_submit_draft": "Direct Manager: you can submit this draft on behalf of the requester.",
    "dm_approve_reject": "Direct Manager: you can approve or reject submitted purchase requests.",
    "dm_no_action": "Direct Manager: no actions at this stage.",
    "dm_project_no_action": "Direct Manager: project requests are decided by the Final Manager.",
    "fm_project_approve_reject": "Final Manager: approve or reject this submitted project.",
    "fm_project_no_action": "Final Manager: no actions for project at this stage.",
    "fm_waiting_dm": "Final Manager: waiting for Direct Manager approval before quotes can be added.",
    "fm_waiting_quotes": "Final Manager: waiting for Accountant to add quotes before selection.",
    "fm_select_quote": "Final Manager: select a quote to approve this request.",
    "fm_can_approve_now": "Final Manager: you can approve now after selecting a quote.",
    "fm_no_action_purchase": "Final Manager: no actions until quotes are added by Accountant.",
    "acct_purchase_wait": "Accountant: waiting for Direct Manager approval before quotes can be added.",
    "acct_add_quotes": "Accountant: add quotes now.",
    "acct_add_more_or_wait_fm": "Accountant: you can add more quotes or wait for Final Manager selection.",
    "acct_purchase_no_action": "Accountant: quotes can only be added while the request awaits quotes.",
    "acct_confirm_paid": "Accountant: confirm client payment once received.",
    "acct_project_wait": "Accountant: waiting for requester to mark project done.",
    "sales_no_action": "Sales: no workflow actions are available for this role.",
}


MESSAGES: Dict[str, Dict[str, str]] = {
    "error": {
        "unexpected_error": "The operation could not be completed.",
        "action_invalid": "This action is not valid.",
        "validation_error": "Some required information is missing.",
        "action_not_allowed_for_status": "This action is not available for the current status.",
        "action_in_flight": "This action is already being processed.",
        "permission_denied": "You do not have permission for this action.",
        "request_not_found": "Request not found.",
        "transition_conflict": "The request changed in the meantime. Refresh and try again.",
        "record_temporarily_unavailable": "The request service is temporarily unavailable.",
        "selected_quote_missing": "The selected quote is no longer part of this request.",
        "rejection_reason_required": "A reason is required to reject a request.",
        "quote_vendor_required": "Vendor name is required.",
        "quote_total_invalid": "Quote total must be zero or greater.",
        "quote_file_required": "A quote file URL is required.",
        "quote_required_for_selection": "Add at least one quote before selecting.",
        "quote_selection_required": "Select a quote before approving.",
        "project_schedule_invalid": "End time must be after start time.",
        "auth_required": "Authentication required.",
    },
    "success": {
        "submit_draft": "Request submitted",
        "approve": "Request approved",
        "reject": "Request rejected",
        "add_quote": "Quote uploaded",
        "select_quote": "Quote selected",
        "mark_done": "Project marked as done",
        "confirm_paid": "Payment confirmed",
        "refreshed": "Request refreshed",
    },
}


def build_status_labels() -> Dict[str, str]:
    return {item["key"]: item["label"] for item in STATUS_ITEMS}


def build_status_descriptions() -> Dict[str, str]:
    return {item["key"]: item["description"] for item in STATUS_ITEMS}


STATUS_LABELS = build_status_labels()
STATUS_DESCRIPTIONS = build_status_descriptions()


def get_message(category: str, key: str, default: str | None = None) -> str:
    message = MESSAGES.get(category, {}).get(key)
    if message:
        return message
    if default is not None:
        return default
    return key


def error_message(key: str, default: str | None = None) -> str:
    return get_message("error", key, default)


def success_message(key: str, default: str | None = None) -> str:
    return get_message("success", key, default)


def hint_text(key: str) -> str:
    return HINTS.get(key) or HINTS["no_actions_generic"]


def action_label(action: str, fallback: str | None = None) -> str:
    label = ACTION_LABELS.get(action)
    if label:
        return label
    if fallback is not None:
        return fallback
    return action


def stage_label(stage: str | None) -> str | None:
    if not stage:
        return None
    return NEXT_STAGE_LABELS.get(stage) or STAGE_LABELS.get(stage) or stage


def frontend_bundle() -> Dict[str, object]:
    return {
        "terms": FRIENDLY_TERMS,
        "status_labels": STATUS_LABELS,
        "status_descriptions": STATUS_DESCRIPTIONS,
        "action_labels": ACTION_LABELS,
        "stage_labels": STAGE_LABELS,
        "progress_steps": PROGRESS_STEPS,
        "messages": MESSAGES,
    }
