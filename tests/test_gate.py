import dataclasses
import unittest

from request_tracker.errors import QuoteSelectionInvariantError
from request_tracker.ui_strings import hint_text
from request_tracker.workflow.gate import check_action, gate, gate_matrix, transition_target
from request_tracker.workflow.models import Actor, Quote, Request
from request_tracker.workflow.quotes import AUTO_LOWEST, with_selected_quote
from request_tracker.workflow.roles import RoleBasis
from request_tracker.workflow.states import Action, RawState, RequestKind, Role


ACCOUNTANT = Actor(id="acc", role="accountant")
FINAL_MANAGER = Actor(id="fm", role="final_manager")
DIRECT_MANAGER = Actor(id="dm", role="direct_manager")


def _purchase(state: RawState = RawState.DM_APPROVED, quotes=()) -> Request:
    return Request(id="10", kind=RequestKind.PURCHASE, raw_state=state, requester_id="7", quotes=tuple(quotes))


def _project(state: RawState) -> Request:
    return Request(id="20", kind=RequestKind.PROJECT, raw_state=state, requester_id="7")


QUOTES = (
    Quote(id="1", vendor_name="Alpha", quote_total=100.0, file_url="https://files/1.pdf"),
    Quote(id="2", vendor_name="Beta", quote_total=80.0, file_url="https://files/2.pdf"),
)


class QuoteStageGateTest(unittest.TestCase):
    def test_accountant_adds_quotes_before_any_exist(self) -> None:
        result = gate(ACCOUNTANT, _purchase())
        self.assertEqual(result.permitted_actions, frozenset({Action.ADD_QUOTE}))
        self.assertEqual(result.hint, hint_text("acct_add_quotes"))

    def test_final_manager_waits_for_quotes(self) -> None:
        result = gate(FINAL_MANAGER, _purchase())
        self.assertEqual(result.permitted_actions, frozenset())
        self.assertIn("waiting for Accountant to add quotes", result.hint)

    def test_final_manager_selects_then_approves(self) -> None:
        request = _purchase(quotes=QUOTES)
        self.assertEqual(gate(FINAL_MANAGER, request).permitted_actions, frozenset({Action.SELECT_QUOTE}))

        selected = with_selected_quote(request, "2")
        result = gate(FINAL_MANAGER, selected)
        self.assertEqual(result.permitted_actions, frozenset({Action.SELECT_QUOTE, Action.APPROVE}))
        self.assertEqual(result.primary_action, Action.APPROVE)
        self.assertEqual(result.hint, hint_text("fm_can_approve_now"))

    def test_approve_presence_tracks_selection(self) -> None:
        request = _purchase(quotes=QUOTES)
        for selected_id in (None, "1", "2"):
            candidate = dataclasses.replace(request, selected_quote_id=selected_id)
            allowed = gate(FINAL_MANAGER, candidate).allows(Action.APPROVE)
            self.assertEqual(allowed, selected_id is not None)

    def test_dangling_selection_fails_loudly(self) -> None:
        request = dataclasses.replace(_purchase(quotes=QUOTES), selected_quote_id="99")
        with self.assertRaises(QuoteSelectionInvariantError):
            gate(FINAL_MANAGER, request)

    def test_accountant_keeps_adding_while_quotes_exist(self) -> None:
        result = gate(ACCOUNTANT, _purchase(quotes=QUOTES))
        self.assertEqual(result.permitted_actions, frozenset({Action.ADD_QUOTE}))
        self.assertEqual(result.hint, hint_text("acct_add_more_or_wait_fm"))


class ApprovalGateTest(unittest.TestCase):
    def test_direct_manager_decides_submitted_purchase(self) -> None:
        result = gate(DIRECT_MANAGER, _purchase(RawState.SUBMITTED))
        self.assertEqual(result.ordered_actions(), [Action.APPROVE, Action.REJECT])

    def test_final_manager_decides_submitted_project(self) -> None:
        result = gate(FINAL_MANAGER, _project(RawState.SUBMITTED))
        self.assertEqual(result.permitted_actions, frozenset({Action.APPROVE, Action.REJECT}))

    def test_direct_manager_has_nothing_on_projects(self) -> None:
        result = gate(DIRECT_MANAGER, _project(RawState.SUBMITTED))
        self.assertEqual(result.permitted_actions, frozenset())
        self.assertEqual(result.hint, hint_text("dm_project_no_action"))

    def test_draft_submission(self) -> None:
        draft = _purchase(RawState.DRAFT)
        self.assertEqual(gate(Actor(id="7", role="requester"), draft).permitted_actions, {Action.SUBMIT_DRAFT})
        self.assertEqual(gate(DIRECT_MANAGER, draft).permitted_actions, {Action.SUBMIT_DRAFT})
        self.assertEqual(gate(ACCOUNTANT, draft).permitted_actions, frozenset())

    def test_broad_manager_role_follows_kind(self) -> None:
        manager = Actor(id="m", role="manager")
        purchase_result = gate(manager, _purchase(RawState.SUBMITTED))
        self.assertEqual(purchase_result.effective_role.role, Role.DIRECT_MANAGER)
        self.assertEqual(purchase_result.effective_role.basis, RoleBasis.ASSUMED_FROM_KIND)
        self.assertTrue(purchase_result.allows(Action.APPROVE))

        project_result = gate(manager, _project(RawState.SUBMITTED))
        self.assertEqual(project_result.effective_role.role, Role.FINAL_MANAGER)
        self.assertTrue(project_result.allows(Action.REJECT))

    def test_acct_approved_is_a_valid_input(self) -> None:
        request = _purchase(RawState.ACCT_APPROVED)
        self.assertEqual(gate(FINAL_MANAGER, request).permitted_actions, frozenset())
        self.assertEqual(gate(Actor(id="7", role="requester"), request).hint, hint_text("requester_awaiting_fm"))


class ProjectExecutionGateTest(unittest.TestCase):
    def test_owner_marks_done_regardless_of_role(self) -> None:
        request = _project(RawState.PROCESSING)
        for role in ("requester", "sales", "accountant", "nobody-knows"):
            result = gate(Actor(id="7", role=role), request)
            self.assertEqual(result.permitted_actions, frozenset({Action.MARK_DONE}), role)

    def test_other_requesters_cannot_mark_done(self) -> None:
        result = gate(Actor(id="8", role="requester"), _project(RawState.PROCESSING))
        self.assertEqual(result.permitted_actions, frozenset())

    def test_accountant_confirms_payment(self) -> None:
        result = gate(ACCOUNTANT, _project(RawState.DONE))
        self.assertEqual(result.permitted_actions, frozenset({Action.CONFIRM_PAID}))
        self.assertEqual(result.hint, hint_text("acct_confirm_paid"))


class ClosedTableTest(unittest.TestCase):
    def test_unknown_role_gets_nothing(self) -> None:
        result = gate(Actor(id="x", role="janitor"), _purchase(RawState.SUBMITTED))
        self.assertEqual(result.permitted_actions, frozenset())
        self.assertEqual(result.hint, hint_text("unrecognized_role"))
        self.assertEqual(result.effective_role.basis, RoleBasis.UNRECOGNIZED)

    def test_admin_has_no_workflow_actions(self) -> None:
        admin = Actor(id="root", role="admin")
        for kind in RequestKind:
            for state in RawState:
                request = Request(id="1", kind=kind, raw_state=state, requester_id="7")
                self.assertEqual(gate(admin, request).permitted_actions, frozenset(), f"{kind}/{state}")

    def test_terminal_states_offer_nothing(self) -> None:
        for state in (RawState.DM_REJECTED, RawState.FINAL_REJECTED, RawState.FUNDS_TRANSFERRED, RawState.PAID):
            for row in gate_matrix(RequestKind.PURCHASE, quote_count=2):
                if row["raw_state"] == state.value:
                    self.assertEqual(row["allowed_actions"], [], f"{row['role']}/{state}")

    def test_every_combination_has_a_hint(self) -> None:
        for kind in RequestKind:
            for quote_count in (0, 2):
                for selected in (False, True):
                    for row in gate_matrix(kind, quote_count=quote_count, selected=selected):
                        self.assertTrue(row["hint"], row)
                        if not row["allowed_actions"]:
                            self.assertTrue(str(row["hint"]).strip())


class CheckActionTest(unittest.TestCase):
    def test_reject_needs_reason(self) -> None:
        request = _purchase(RawState.SUBMITTED)
        check = check_action(DIRECT_MANAGER, request, Action.REJECT, {"comment": "  "})
        self.assertFalse(check.enabled)
        self.assertEqual(check.reason, "rejection_reason_required")
        self.assertTrue(check_action(DIRECT_MANAGER, request, Action.REJECT, {"reason": "Budget"}).enabled)

    def test_add_quote_fields(self) -> None:
        check = check_action(ACCOUNTANT, _purchase(), Action.ADD_QUOTE, {"quote_total": 10, "file_url": "u"})
        self.assertFalse(check.enabled)
        self.assertEqual(check.reason, "quote_vendor_required")
        ok = check_action(
            ACCOUNTANT,
            _purchase(),
            Action.ADD_QUOTE,
            {"vendor_name": "Alpha", "quote_total": 0, "file_url": "https://files/a.pdf"},
        )
        self.assertTrue(ok.enabled)

    def test_select_quote_choice(self) -> None:
        request = _purchase(quotes=QUOTES)
        self.assertTrue(check_action(FINAL_MANAGER, request, Action.SELECT_QUOTE, {"quote_id": AUTO_LOWEST}).enabled)
        self.assertTrue(check_action(FINAL_MANAGER, request, Action.SELECT_QUOTE, {"quote_id": 2}).enabled)
        missing = check_action(FINAL_MANAGER, request, Action.SELECT_QUOTE, {"quote_id": "99"})
        self.assertFalse(missing.enabled)
        self.assertEqual(missing.reason, "quote_required_for_selection")

    def test_action_outside_gate(self) -> None:
        check = check_action(FINAL_MANAGER, _purchase(), Action.SELECT_QUOTE, {"quote_id": AUTO_LOWEST})
        self.assertFalse(check.enabled)
        self.assertEqual(check.reason, "action_not_allowed_for_status")


class TransitionTargetTest(unittest.TestCase):
    def test_targets(self) -> None:
        self.assertEqual(transition_target(Action.APPROVE, _purchase(RawState.SUBMITTED)), RawState.DM_APPROVED)
        self.assertEqual(transition_target(Action.APPROVE, _purchase(quotes=QUOTES)), RawState.FINAL_APPROVED)
        self.assertEqual(transition_target(Action.REJECT, _purchase(RawState.SUBMITTED)), RawState.DM_REJECTED)
        self.assertEqual(transition_target(Action.REJECT, _project(RawState.SUBMITTED)), RawState.FINAL_REJECTED)
        self.assertEqual(transition_target(Action.MARK_DONE, _project(RawState.PROCESSING)), RawState.DONE)
        self.assertIsNone(transition_target(Action.ADD_QUOTE, _purchase()))


if __name__ == "__main__":
    unittest.main()
