from __future__ import annotations

import dataclasses

import click
from flask import Flask

from request_tracker.workflow.gate import gate, gate_matrix
from request_tracker.workflow.models import Actor, Quote, Request
from request_tracker.workflow.states import RawState, RequestKind
from request_tracker.workflow.status import derive_status


_KIND_CHOICE = click.Choice([kind.value for kind in RequestKind], case_sensitive=False)
_STATE_CHOICE = click.Choice([state.value for state in RawState], case_sensitive=False)


def _sample_request(kind: RequestKind, state: RawState, quotes: int, selected: bool) -> Request:
    sample_quotes = tuple(
        Quote(id=str(idx + 1), vendor_name=f"Vendor {idx + 1}", quote_total=float(100 * (idx + 1)))
        for idx in range(max(0, quotes))
    )
    request = Request(id="cli", kind=kind, raw_state=state, requester_id="requester", quotes=sample_quotes)
    if selected and sample_quotes:
        request = dataclasses.replace(request, selected_quote_id=sample_quotes[0].id)
    return request


def register_workflow_cli(app: Flask) -> None:
    @app.cli.group("workflow")
    def workflow_group() -> None:
        """Inspect derived statuses and approval-flow permissions."""

    @workflow_group.command("status")
    @click.argument("state", type=_STATE_CHOICE)
    @click.argument("kind", type=_KIND_CHOICE)
    @click.option("--quotes", type=click.IntRange(min=0), default=0, show_default=True)
    def workflow_status(state: str, kind: str, quotes: int) -> None:
        status = derive_status(RawState(state.upper()), RequestKind(kind.lower()), quotes)
        click.echo(status.value)

    @workflow_group.command("gate")
    @click.argument("role")
    @click.argument("kind", type=_KIND_CHOICE)
    @click.argument("state", type=_STATE_CHOICE)
    @click.option("--quotes", type=click.IntRange(min=0), default=0, show_default=True)
    @click.option("--selected", is_flag=True, help="Mark the first quote as selected.")
    @click.option("--owner", is_flag=True, help="The actor owns the request.")
    def workflow_gate(role: str, kind: str, state: str, quotes: int, selected: bool, owner: bool) -> None:
        request = _sample_request(RequestKind(kind.lower()), RawState(state.upper()), quotes, selected)
        actor = Actor(id="requester" if owner else "cli-actor", role=role)
        result = gate(actor, request)
        actions = ", ".join(action.value for action in result.ordered_actions()) or "-"
        effective = result.effective_role
        role_name = effective.role.value if effective.role else "-"
        click.echo(f"role: {role_name} ({effective.basis.value})")
        click.echo(f"allowed: {actions}")
        click.echo(f"hint: {result.hint}")

    @workflow_group.command("matrix")
    @click.option("--kind", type=_KIND_CHOICE, default=RequestKind.PURCHASE.value, show_default=True)
    @click.option("--quotes", type=click.IntRange(min=0), default=0, show_default=True)
    @click.option("--selected", is_flag=True)
    def workflow_matrix(kind: str, quotes: int, selected: bool) -> None:
        for row in gate_matrix(RequestKind(kind.lower()), quote_count=quotes, selected=selected):
            actions = ",".join(row["allowed_actions"]) or "-"
            click.echo(f"{row['raw_state']:<18} {row['role']:<15} {actions:<22} {row['hint']}")
