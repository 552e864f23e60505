import unittest

from request_tracker.errors import IntegrationError
from request_tracker.workflow.mapper import patch_from_payload
from request_tracker.workflow.merge import merge_request
from request_tracker.workflow.models import Item, Quote, Request
from request_tracker.workflow.states import RawState, RequestKind


ITEM_A = Item(name="A", quantity=1, estimated_cost=100.0)
ITEM_B = Item(name="B", quantity=2, estimated_cost=100.0)


def _request(**overrides) -> Request:
    data = {
        "id": "55",
        "kind": RequestKind.PURCHASE,
        "raw_state": RawState.SUBMITTED,
        "requester_id": "7",
        "title": "Monitors",
        "items": (ITEM_A, ITEM_B),
    }
    data.update(overrides)
    return Request(**data)


class MergeRequestTest(unittest.TestCase):
    def test_trimmed_rejection_keeps_items_and_total(self) -> None:
        previous = _request()
        self.assertEqual(previous.total_estimated_cost, 300.0)

        merged = merge_request(
            previous,
            {"items": (), "total_estimated_cost": 0, "raw_state": "DM_REJECTED"},
        )
        self.assertEqual(merged.items, (ITEM_A, ITEM_B))
        self.assertEqual(merged.total_estimated_cost, 300.0)
        self.assertEqual(merged.raw_state, RawState.DM_REJECTED)

    def test_empty_patch_is_identity(self) -> None:
        previous = _request(quotes=(Quote(id="1", vendor_name="V", quote_total=5.0),))
        merged = merge_request(previous, {})
        self.assertEqual(merged, previous)
        self.assertEqual(merged.total_estimated_cost, previous.total_estimated_cost)

    def test_other_fields_still_apply_when_collections_are_empty(self) -> None:
        previous = _request(quotes=(Quote(id="1", vendor_name="V", quote_total=5.0),))
        merged = merge_request(previous, {"quotes": [], "items": None, "title": "Screens"})
        self.assertEqual(merged.quotes, previous.quotes)
        self.assertEqual(merged.items, previous.items)
        self.assertEqual(merged.title, "Screens")

    def test_non_empty_items_replace_and_total_follows(self) -> None:
        merged = merge_request(_request(), {"items": [Item(name="C", quantity=3, estimated_cost=10.0)]})
        self.assertEqual(len(merged.items), 1)
        self.assertEqual(merged.total_estimated_cost, 30.0)

    def test_accepts_any_known_state(self) -> None:
        merged = merge_request(_request(), {"raw_state": RawState.FUNDS_TRANSFERRED})
        self.assertEqual(merged.raw_state, RawState.FUNDS_TRANSFERRED)

    def test_selected_quote_is_normalized_to_text(self) -> None:
        previous = _request(
            raw_state=RawState.DM_APPROVED,
            quotes=(Quote(id="2", vendor_name="V", quote_total=5.0),),
        )
        merged = merge_request(previous, {"selected_quote_id": 2})
        self.assertEqual(merged.selected_quote_id, "2")
        self.assertEqual(merged.quotes, previous.quotes)

    def test_previous_snapshot_is_untouched(self) -> None:
        previous = _request()
        merge_request(previous, {"raw_state": "DM_APPROVED", "title": "Other"})
        self.assertEqual(previous.raw_state, RawState.SUBMITTED)
        self.assertEqual(previous.title, "Monitors")

    def test_unknown_state_is_an_unexpected_shape(self) -> None:
        with self.assertRaises(IntegrationError) as ctx:
            merge_request(_request(), {"raw_state": "ARCHIVED"})
        self.assertEqual(ctx.exception.code, "unexpected_response_shape")

    def test_unknown_field_is_an_unexpected_shape(self) -> None:
        with self.assertRaises(IntegrationError):
            merge_request(_request(), {"priority": "high"})

    def test_identity_fields_must_match(self) -> None:
        with self.assertRaises(IntegrationError):
            merge_request(_request(), {"id": "56"})
        with self.assertRaises(IntegrationError):
            merge_request(_request(), {"kind": "project"})
        self.assertEqual(merge_request(_request(), {"id": 55, "kind": "purchase"}).id, "55")

    def test_wire_projection_round_trip(self) -> None:
        payload = {
            "id": 55,
            "state": "DM_REJECTED",
            "items": [],
            "approvals": [{"stage": "DM", "decision": "REJECTED", "comment": "Too expensive"}],
        }
        merged = merge_request(_request(), patch_from_payload(payload))
        self.assertEqual(merged.raw_state, RawState.DM_REJECTED)
        self.assertEqual(merged.rejection_reason, "Too expensive")
        self.assertEqual(merged.items, (ITEM_A, ITEM_B))


if __name__ == "__main__":
    unittest.main()
