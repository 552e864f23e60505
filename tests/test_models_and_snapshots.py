import dataclasses
import threading
import unittest

from request_tracker.errors import NotFoundError, ValidationError
from request_tracker.workflow.models import Actor, Item, Request, validate_project_schedule
from request_tracker.workflow.snapshots import SnapshotStore
from request_tracker.workflow.states import Action, RawState, RequestKind, UnknownValueError, parse_action


class RequestModelTest(unittest.TestCase):
    def test_total_follows_items(self) -> None:
        request = Request(
            id="1",
            kind=RequestKind.PURCHASE,
            raw_state=RawState.DRAFT,
            items=(Item(name="A", quantity=2, estimated_cost=10.5), Item(name="B", quantity=1, estimated_cost=4)),
        )
        self.assertEqual(request.total_estimated_cost, 25.0)
        self.assertEqual(request.to_dict()["total_estimated_cost"], 25.0)
        self.assertNotIn("client_name", request.to_dict())

    def test_snapshots_are_immutable(self) -> None:
        request = Request(id="1", kind=RequestKind.PURCHASE, raw_state=RawState.DRAFT)
        with self.assertRaises(dataclasses.FrozenInstanceError):
            request.raw_state = RawState.SUBMITTED  # type: ignore[misc]

    def test_actor_matches_by_text(self) -> None:
        self.assertTrue(Actor(id=" 7 ").matches(7))
        self.assertFalse(Actor(id=None).matches(None))
        self.assertFalse(Actor(id="7").matches("8"))

    def test_parse_action_accepts_url_form(self) -> None:
        self.assertEqual(parse_action("select-quote"), Action.SELECT_QUOTE)
        with self.assertRaises(UnknownValueError):
            parse_action("transfer_funds")


class ProjectScheduleTest(unittest.TestCase):
    def test_end_after_start(self) -> None:
        validate_project_schedule("2026-02-01T08:00:00Z", "2026-02-01T09:00:00+01:00")
        validate_project_schedule("2026-02-01T08:00:00", "2026-02-01T08:00:00")

    def test_end_before_start(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            validate_project_schedule("2026-02-02T08:00:00Z", "2026-02-01T08:00:00Z")
        self.assertEqual(ctx.exception.code, "project_schedule_invalid")

    def test_missing_or_invalid_dates(self) -> None:
        with self.assertRaises(ValidationError):
            validate_project_schedule(None, "2026-02-01T08:00:00Z")
        with self.assertRaises(ValidationError):
            validate_project_schedule("tomorrow", "2026-02-01T08:00:00Z")


class SnapshotStoreTest(unittest.TestCase):
    def test_put_get_require(self) -> None:
        store = SnapshotStore()
        self.assertIsNone(store.get("1"))
        with self.assertRaises(NotFoundError):
            store.require("1")
        request = store.put(Request(id="1", kind=RequestKind.PURCHASE, raw_state=RawState.DRAFT))
        self.assertIs(store.require("1"), request)
        self.assertEqual(store.ids(), ["1"])

    def test_failed_replace_keeps_previous(self) -> None:
        store = SnapshotStore()
        original = store.put(Request(id="1", kind=RequestKind.PURCHASE, raw_state=RawState.DRAFT))

        def _boom(current: Request) -> Request:
            raise ValueError("boom")

        with self.assertRaises(ValueError):
            store.replace("1", _boom)
        self.assertIs(store.get("1"), original)

    def test_concurrent_replacements_are_serialized(self) -> None:
        store = SnapshotStore()
        store.put(Request(id="1", kind=RequestKind.PURCHASE, raw_state=RawState.DRAFT, title="0"))

        def _bump() -> None:
            for _ in range(200):
                store.replace("1", lambda current: dataclasses.replace(current, title=str(int(current.title) + 1)))

        threads = [threading.Thread(target=_bump) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        self.assertEqual(store.require("1").title, "800")


if __name__ == "__main__":
    unittest.main()
