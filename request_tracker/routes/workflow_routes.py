from __future__ import annotations

from typing import Dict

from flask import Blueprint, current_app, jsonify, request

from request_tracker.policies import current_actor
from request_tracker.ui_strings import STATUS_DESCRIPTIONS, frontend_bundle, success_message
from request_tracker.workflow.dispatcher import ActionDispatcher, coerce_action
from request_tracker.workflow.gate import ACTION_ORDER, gate
from request_tracker.workflow.models import Actor, Request
from request_tracker.workflow.states import RequestKind
from request_tracker.workflow.status import (
    build_progress_steps,
    derive_request_status,
    next_approval_stage,
    next_approval_stage_label,
)


workflow_bp = Blueprint("workflow", __name__)


def _dispatcher() -> ActionDispatcher:
    return current_app.extensions["request_tracker.dispatcher"]


def _request_view(snapshot: Request, actor: Actor) -> Dict[str, object]:
    status = derive_request_status(snapshot)
    return {
        "request": snapshot.to_dict(),
        "status": status.value,
        "status_description": STATUS_DESCRIPTIONS.get(status.value),
        "gate": gate(actor, snapshot).to_dict(),
        "next_stage": next_approval_stage(snapshot),
        "next_stage_label": next_approval_stage_label(snapshot),
        "progress_steps": build_progress_steps(snapshot),
    }


@workflow_bp.route("/api/requests/<request_id>", methods=["GET"])
def get_request(request_id: str):
    actor = current_actor()
    snapshot = _dispatcher().load(request_id)
    return jsonify(_request_view(snapshot, actor))


@workflow_bp.route("/api/requests/<request_id>/refresh", methods=["POST"])
def refresh_request(request_id: str):
    actor = current_actor()
    snapshot = _dispatcher().refresh(request_id)
    payload = _request_view(snapshot, actor)
    payload["message"] = success_message("refreshed")
    return jsonify(payload)


@workflow_bp.route("/api/requests/<request_id>/actions/<action>", methods=["POST"])
def run_action(request_id: str, action: str):
    actor = current_actor()
    resolved = coerce_action(action)
    params = request.get_json(silent=True) or {}
    if not isinstance(params, dict):
        params = {}
    snapshot = _dispatcher().dispatch(actor, request_id, resolved, params)
    payload = _request_view(snapshot, actor)
    payload["message"] = success_message(resolved.value)
    return jsonify(payload)


@workflow_bp.route("/api/requests/<request_id>/history", methods=["GET"])
def request_history(request_id: str):
    current_actor()
    entries = _dispatcher().history(request_id)
    return jsonify({"items": [entry.to_dict() for entry in entries]})


@workflow_bp.route("/api/workflow/policy", methods=["GET"])
def workflow_policy():
    bundle = frontend_bundle()
    bundle["action_order"] = [action.value for action in ACTION_ORDER]
    bundle["kinds"] = [kind.value for kind in RequestKind]
    return jsonify(bundle)
