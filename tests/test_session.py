"""Tests for the agenda model, elapsed-time math and the session state machine.

Covers: mt.core.agenda, mt.core.elapsed, mt.core.session
"""

import os
import tempfile
import unittest

os.environ.setdefault("MEETINGTIMER_HOME", tempfile.mkdtemp(prefix="mt-tests-"))


class FakeClock:
    """Settable millisecond clock."""

    def __init__(self, now=1_609_459_200_000):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms
        return self.now


def _item(item_id="a", name="Item", estimated=5, elapsed=0, status=None):
    from mt.core.agenda import PENDING, AgendaItem
    return AgendaItem(id=item_id, name=name, estimated_minutes=estimated, elapsed=elapsed, status=status or PENDING)


def _three_items():
    return [_item("a", "Intro", 5), _item("b", "Status", 10), _item("c", "Wrap up", 5)]


def assert_invariants(test, items):
    """Active items have a start and no actual time; completed ones the reverse; at most one active."""
    active = [item for item in items if item.is_active]
    test.assertLessEqual(len(active), 1)
    for item in items:
        if item.is_active:
            test.assertIsNotNone(item.start_time)
            test.assertIsNone(item.actual_minutes)
        if item.actual_minutes is not None:
            test.assertFalse(item.is_active)
            test.assertIsNone(item.start_time)
        test.assertGreaterEqual(item.elapsed, 0)


# ──────────────────────────────────────────────────────────────────────────
# agenda.py tests
# ──────────────────────────────────────────────────────────────────────────

class TestAgendaItem(unittest.TestCase):

    def test_pending_to_dict_has_no_optional_fields(self):
        d = _item().to_dict()
        self.assertEqual(d, {"id": "a", "name": "Item", "estimatedMinutes": 5, "isActive": False, "elapsedTime": 0})

    def test_active_and_completed_to_dict(self):
        from mt.core.agenda import Active, Completed
        active = _item(status=Active(1000)).to_dict()
        self.assertTrue(active["isActive"])
        self.assertEqual(active["startTime"], 1000)
        self.assertNotIn("actualMinutes", active)

        done = _item(status=Completed(2.1)).to_dict()
        self.assertFalse(done["isActive"])
        self.assertEqual(done["actualMinutes"], 2.1)
        self.assertNotIn("startTime", done)

    def test_from_dict_reads_camel_case_record(self):
        from mt.core.agenda import AgendaItem
        item = AgendaItem.from_dict({
            "id": "x", "name": "Budget", "estimatedMinutes": 15,
            "isActive": True, "startTime": 5000, "elapsedTime": 1200,
        })
        self.assertTrue(item.is_active)
        self.assertEqual(item.start_time, 5000)
        self.assertEqual(item.elapsed, 1200)

    def test_from_dict_completed_wins_over_stale_active_flag(self):
        from mt.core.agenda import AgendaItem
        item = AgendaItem.from_dict({
            "id": "x", "name": "Budget", "estimatedMinutes": 15,
            "isActive": True, "startTime": 5000, "actualMinutes": 3.4, "elapsedTime": 0,
        })
        self.assertTrue(item.is_completed)
        self.assertFalse(item.is_active)
        self.assertIsNone(item.start_time)

    def test_from_dict_active_without_start_is_pending(self):
        from mt.core.agenda import AgendaItem
        item = AgendaItem.from_dict({"id": "x", "name": "N", "estimatedMinutes": 1, "isActive": True, "elapsedTime": 50})
        self.assertFalse(item.is_active)
        self.assertEqual(item.elapsed, 50)

    def test_from_dict_rejects_missing_or_bad_fields(self):
        from mt.core.agenda import AgendaItem
        with self.assertRaises(ValueError):
            AgendaItem.from_dict({"id": "x", "name": "N"})
        with self.assertRaises(ValueError):
            AgendaItem.from_dict({"id": "x", "name": "N", "estimatedMinutes": "ten"})
        with self.assertRaises(ValueError):
            AgendaItem.from_dict(["not", "a", "dict"])

    def test_sample_agenda(self):
        from mt.core.agenda import sample_agenda
        items = sample_agenda(1234)
        self.assertEqual(len(items), 4)
        self.assertEqual([i.estimated_minutes for i in items], [5, 10, 15, 5])
        self.assertEqual(items[0].id, "sample_1234_1")
        for item in items:
            self.assertTrue(item.untouched)


# ──────────────────────────────────────────────────────────────────────────
# elapsed.py tests
# ──────────────────────────────────────────────────────────────────────────

class TestElapsed(unittest.TestCase):

    def test_active_item_adds_open_interval(self):
        """estimated=5, 4 min banked, started a minute ago -> 5 min."""
        from mt.core.agenda import Active
        from mt.core.elapsed import current_elapsed
        now = 10_000_000
        item = _item(estimated=5, elapsed=240000, status=Active(now - 60000))
        self.assertEqual(current_elapsed(item, now), 300000)

    def test_inactive_item_returns_banked(self):
        from mt.core.elapsed import current_elapsed
        self.assertEqual(current_elapsed(_item(elapsed=4242), 99_999_999), 4242)

    def test_monotonic_and_idempotent_in_now(self):
        from mt.core.agenda import Active
        from mt.core.elapsed import current_elapsed
        item = _item(elapsed=1000, status=Active(5000))
        samples = [current_elapsed(item, now) for now in (5000, 5000, 6000, 6000, 90000)]
        self.assertEqual(samples[0], samples[1])
        self.assertEqual(samples[2], samples[3])
        self.assertEqual(samples, sorted(samples))

    def test_future_start_time_is_not_clamped(self):
        from mt.core.agenda import Active
        from mt.core.elapsed import current_elapsed
        item = _item(elapsed=10000, status=Active(20000))
        self.assertEqual(current_elapsed(item, 15000), 5000)

    def test_total_elapsed_uses_committed_actuals(self):
        from mt.core.agenda import Active, Completed
        from mt.core.elapsed import total_elapsed
        items = [
            _item("a", elapsed=130000, status=Completed(2.1)),
            _item("b", elapsed=1000, status=Active(0)),
            _item("c", elapsed=500),
        ]
        self.assertAlmostEqual(total_elapsed(items, 10000), 2.1 * 60000 + 11000 + 500)
        # The completed contribution doesn't move as time passes
        self.assertAlmostEqual(total_elapsed(items, 20000) - total_elapsed(items, 10000), 10000)

    def test_total_estimated(self):
        from mt.core.elapsed import total_estimated
        self.assertEqual(total_estimated(_three_items()), 20 * 60000)
        self.assertEqual(total_estimated([]), 0)

    def test_round_minutes(self):
        from mt.core.elapsed import round_minutes
        self.assertEqual(round_minutes(125000), 2.1)
        self.assertEqual(round_minutes(90000), 1.5)
        self.assertEqual(round_minutes(29999), 0.5)
        self.assertEqual(round_minutes(0), 0.0)

    def test_remaining_and_overtime(self):
        from mt.core.agenda import Active, Completed
        from mt.core.elapsed import is_overtime, remaining
        item = _item(estimated=1, status=Active(0))
        self.assertEqual(remaining(item, 45000), 15000)
        self.assertFalse(is_overtime(item, 45000))
        self.assertEqual(remaining(item, 75000), -15000)
        self.assertTrue(is_overtime(item, 75000))
        self.assertTrue(is_overtime(_item(estimated=2, status=Completed(2.5)), 0))
        self.assertFalse(is_overtime(_item(estimated=2, status=Completed(1.5)), 0))

    def test_progress_and_all_complete(self):
        from mt.core.agenda import Completed
        from mt.core.elapsed import all_complete, progress_percent
        items = [_item("a", status=Completed(1.0)), _item("b")]
        self.assertEqual(progress_percent(items), 50.0)
        self.assertFalse(all_complete(items))
        self.assertTrue(all_complete([_item("a", status=Completed(1.0))]))
        self.assertFalse(all_complete([]))
        self.assertEqual(progress_percent([]), 0.0)


# ──────────────────────────────────────────────────────────────────────────
# session.py tests
# ──────────────────────────────────────────────────────────────────────────

class TestMeetingSession(unittest.TestCase):

    def setUp(self):
        from mt.core.session import MeetingSession
        self.clock = FakeClock()
        self.session = MeetingSession(_three_items(), clock=self.clock)
        self.changes = []
        self.session.add_listener(lambda s: self.changes.append(s.items))

    def test_initial_state_not_started(self):
        from mt.core.session import MeetingState
        self.assertEqual(self.session.state, MeetingState.NOT_STARTED)
        self.assertFalse(self.session.is_running)
        self.assertIsNone(self.session.active_item)

    def test_start_with_no_items_is_noop(self):
        from mt.core.session import MeetingSession
        session = MeetingSession([], clock=self.clock)
        self.assertFalse(session.start())
        self.assertEqual(session.items, ())
        self.assertFalse(session.is_running)

    def test_start_activates_first_incomplete(self):
        from mt.core.session import MeetingState
        self.assertTrue(self.session.start())
        self.assertTrue(self.session.is_running)
        self.assertEqual(self.session.active_index, 0)
        self.assertEqual(self.session.active_item.start_time, self.clock.now)
        self.assertEqual(self.session.state, MeetingState.RUNNING)
        assert_invariants(self, self.session.items)

    def test_start_when_running_is_noop(self):
        self.session.start()
        self.changes.clear()
        self.assertFalse(self.session.start())
        self.assertEqual(self.changes, [])

    def test_pause_banks_active_time(self):
        from mt.core.session import MeetingState
        self.session.start()
        self.clock.advance(61000)
        self.assertTrue(self.session.pause())
        first = self.session.items[0]
        self.assertFalse(first.is_active)
        self.assertIsNone(first.start_time)
        self.assertEqual(first.elapsed, 61000)
        self.assertFalse(self.session.is_running)
        self.assertEqual(self.session.state, MeetingState.PAUSED)
        assert_invariants(self, self.session.items)

    def test_pause_when_paused_is_noop(self):
        self.assertFalse(self.session.pause())

    def test_pause_then_start_preserves_elapsed(self):
        from mt.core.elapsed import current_elapsed
        self.session.start()
        self.clock.advance(30000)
        before = current_elapsed(self.session.items[0], self.clock.now)
        self.session.pause()
        self.session.start()
        after = current_elapsed(self.session.items[0], self.clock.now)
        self.assertEqual(before, after)
        self.assertEqual(self.session.active_index, 0)

    def test_advance_records_rounded_actual_minutes(self):
        self.session.start(now=self.clock.now - 125000)
        self.assertTrue(self.session.advance())
        first = self.session.items[0]
        self.assertEqual(first.actual_minutes, 2.1)
        self.assertFalse(first.is_active)
        self.assertIsNone(first.start_time)
        assert_invariants(self, self.session.items)

    def test_advance_activates_next_item(self):
        self.session.start()
        self.clock.advance(1000)
        self.session.advance()
        self.assertEqual(self.session.active_index, 1)
        self.assertEqual(self.session.active_item.start_time, self.clock.now)

    def test_advance_past_last_item_completes_meeting(self):
        from mt.core.session import MeetingState
        self.session.start()
        for _ in range(3):
            self.clock.advance(60000)
            self.assertTrue(self.session.advance())
        self.assertIsNone(self.session.active_item)
        self.assertEqual(self.session.state, MeetingState.ALL_COMPLETE)
        self.assertEqual([i.actual_minutes for i in self.session.items], [1.0, 1.0, 1.0])
        self.assertFalse(self.session.advance())

    def test_advance_skips_already_completed_next_item(self):
        from mt.core.agenda import Active, Completed
        from mt.core.session import MeetingSession
        session = MeetingSession([
            _item("a", status=Active(self.clock.now)),
            _item("b", status=Completed(3.0)),
            _item("c"),
        ], running=True, clock=self.clock)
        session.advance()
        self.assertEqual(session.active_index, 2)
        self.assertEqual(session.items[1].actual_minutes, 3.0)
        assert_invariants(self, session.items)

    def test_advance_without_active_is_noop(self):
        self.assertFalse(self.session.advance())

    def test_previous_reopens_completed_item(self):
        self.session.start(now=self.clock.now - 125000)
        self.session.advance()
        self.clock.advance(5000)
        self.assertTrue(self.session.previous())

        first, second = self.session.items[0], self.session.items[1]
        self.assertTrue(first.is_active)
        self.assertIsNone(first.actual_minutes)
        self.assertEqual(first.elapsed, 126000)  # 2.1 min back in ms
        self.assertEqual(first.start_time, self.clock.now)
        self.assertFalse(second.is_active)
        self.assertEqual(second.elapsed, 5000)
        assert_invariants(self, self.session.items)

    def test_previous_on_first_item_is_noop(self):
        self.session.start()
        self.assertFalse(self.session.previous())
        self.assertEqual(self.session.active_index, 0)

    def test_previous_without_active_reactivates_last_completed(self):
        self.session.start()
        for _ in range(3):
            self.clock.advance(60000)
            self.session.advance()
        self.assertTrue(self.session.previous())
        self.assertEqual(self.session.active_index, 2)
        self.assertEqual(self.session.items[2].elapsed, 60000)
        assert_invariants(self, self.session.items)

    def test_previous_while_paused_leaves_item_pending(self):
        self.session.start()
        self.clock.advance(60000)
        self.session.advance()
        self.session.pause()
        self.assertTrue(self.session.previous())
        first = self.session.items[0]
        self.assertFalse(first.is_active)
        self.assertIsNone(first.actual_minutes)
        self.assertEqual(first.elapsed, 60000)
        # Resuming picks the reopened item back up
        self.session.start()
        self.assertEqual(self.session.active_index, 0)

    def test_previous_with_nothing_completed_is_noop(self):
        self.assertFalse(self.session.previous())

    def test_reset_clears_everything(self):
        self.session.start()
        self.clock.advance(60000)
        self.session.advance()
        self.assertTrue(self.session.reset())
        self.assertFalse(self.session.is_running)
        for item in self.session.items:
            self.assertTrue(item.untouched)
            self.assertIsNone(item.actual_minutes)
            self.assertIsNone(item.start_time)

    def test_reset_untouched_session_is_noop(self):
        self.assertFalse(self.session.reset())
        self.assertEqual(self.changes, [])

    def test_add_item_mid_meeting(self):
        self.session.start()
        item = self.session.add_item("  Any other business ", 3)
        self.assertIsNotNone(item)
        self.assertEqual(item.name, "Any other business")
        self.assertEqual(self.session.items[-1], item)
        self.assertTrue(item.untouched)
        self.assertEqual(self.session.active_index, 0)

    def test_add_item_invalid_is_noop(self):
        self.assertIsNone(self.session.add_item("", 5))
        self.assertIsNone(self.session.add_item("Name", 0))
        self.assertIsNone(self.session.add_item("Name", -2))
        self.assertIsNone(self.session.add_item("Dup", 5, item_id="a"))
        self.assertEqual(len(self.session.items), 3)

    def test_edit_completed_item_keeps_timing(self):
        self.session.start()
        self.clock.advance(90000)
        self.session.advance()
        self.assertTrue(self.session.edit_item("a", name="Intro (long)", estimated_minutes=8))
        first = self.session.items[0]
        self.assertEqual(first.name, "Intro (long)")
        self.assertEqual(first.estimated_minutes, 8)
        self.assertEqual(first.actual_minutes, 1.5)

    def test_edit_invalid_is_noop(self):
        self.assertFalse(self.session.edit_item("missing", name="X"))
        self.assertFalse(self.session.edit_item("a", name="   "))
        self.assertFalse(self.session.edit_item("a", estimated_minutes=0))
        self.assertFalse(self.session.edit_item("a", name="Intro"))
        self.assertEqual(self.changes, [])

    def test_delete_untouched_item(self):
        self.assertTrue(self.session.delete_item("c"))
        self.assertEqual([i.id for i in self.session.items], ["a", "b"])

    def test_delete_refused_for_touched_items(self):
        self.session.start()
        self.assertFalse(self.session.delete_item("a"))  # active
        self.clock.advance(1000)
        self.session.advance()
        self.assertFalse(self.session.delete_item("a"))  # completed
        self.clock.advance(1000)
        self.session.pause()
        self.assertFalse(self.session.delete_item("b"))  # paused with banked time
        self.assertTrue(self.session.delete_item("c"))
        self.assertEqual(len(self.session.items), 2)

    def test_move_item_keeps_timing(self):
        self.session.start()
        self.clock.advance(60000)
        self.session.advance()
        self.assertTrue(self.session.move_item("c", 0))
        self.assertEqual([i.id for i in self.session.items], ["c", "a", "b"])
        self.assertEqual(self.session.item("a").actual_minutes, 1.0)
        self.assertTrue(self.session.item("b").is_active)

    def test_move_active_item_is_noop(self):
        self.session.start()
        self.assertFalse(self.session.move_item("a", 2))
        self.assertFalse(self.session.move_item("b", 1))  # same place
        self.assertFalse(self.session.move_item("zzz", 0))

    def test_at_most_one_active_through_every_transition(self):
        s = self.session
        steps = [
            s.start, s.advance, s.previous, s.pause, s.start, s.advance, s.advance,
            s.previous, s.previous, s.pause, s.previous, s.start, s.advance, s.reset, s.start,
        ]
        for step in steps:
            self.clock.advance(7000)
            step()
            assert_invariants(self, s.items)

    def test_constructor_banks_extra_active_items(self):
        from mt.core.agenda import Active
        from mt.core.session import MeetingSession
        session = MeetingSession([
            _item("a", status=Active(self.clock.now - 1000)),
            _item("b", status=Active(self.clock.now - 2000)),
        ], running=True, clock=self.clock)
        assert_invariants(self, session.items)
        self.assertEqual(session.active_index, 0)
        self.assertEqual(session.items[1].elapsed, 2000)

    def test_constructor_marks_session_with_active_item_running(self):
        from mt.core.agenda import Active
        from mt.core.session import MeetingSession
        session = MeetingSession([_item("a", status=Active(self.clock.now))], running=False, clock=self.clock)
        self.assertTrue(session.is_running)

    def test_listener_only_called_on_change(self):
        self.session.start()
        self.session.start()
        self.session.delete_item("missing")
        self.assertEqual(len(self.changes), 1)

    def test_remove_listener(self):
        calls = []
        cb = calls.append
        self.session.add_listener(cb)
        self.session.remove_listener(cb)
        self.session.start()
        self.assertEqual(calls, [])

    def test_bank_and_rebase_active(self):
        self.session.start()
        started = self.clock.now
        self.clock.advance(20000)
        self.assertTrue(self.session.bank_active())
        item = self.session.active_item
        self.assertEqual(item.elapsed, 20000)
        self.assertEqual(item.start_time, started + 20000)

        self.clock.advance(50000)
        self.assertTrue(self.session.rebase_active())
        item = self.session.active_item
        self.assertEqual(item.elapsed, 20000)
        self.assertEqual(item.start_time, self.clock.now)

    def test_bank_and_rebase_inert_when_not_running(self):
        self.assertFalse(self.session.bank_active())
        self.assertFalse(self.session.rebase_active())

    def test_items_view_is_read_only(self):
        self.assertIsInstance(self.session.items, tuple)

    def test_replace_items_refused_while_running(self):
        from mt.core.agenda import sample_agenda
        self.session.start()
        self.assertFalse(self.session.replace_items(sample_agenda(1)))
        self.session.pause()
        self.assertTrue(self.session.replace_items(sample_agenda(1)))
        self.assertEqual(len(self.session.items), 4)

    def test_replace_items_rejects_duplicate_ids(self):
        self.assertFalse(self.session.replace_items([_item("x"), _item("x")]))

    def test_load_meeting_resets_timing(self):
        from mt.core.agenda import Completed, Meeting
        meeting = Meeting(id="1", date="2021-01-01T00:00:00.000Z", agenda_items=(
            _item("m1", "Old", 5, elapsed=300000, status=Completed(5.0)),
        ))
        self.assertTrue(self.session.load_meeting(meeting))
        self.assertEqual(len(self.session.items), 1)
        loaded = self.session.items[0]
        self.assertEqual(loaded.name, "Old")
        self.assertTrue(loaded.untouched)
        self.assertIsNone(loaded.actual_minutes)


if __name__ == "__main__":
    unittest.main()
