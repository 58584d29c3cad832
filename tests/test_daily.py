"""Tests for the daily state lifecycle."""

import pytest

from djournal.daily import decoded_image_size, needs_transition
from djournal.errors import ConflictError, PayloadTooLargeError, ValidationError

USER = "alice"


class TestDateTransition:
    """Lazy day rollover and archiving."""

    def test_first_access_creates_today(self, engine):
        """A user with no state gets an empty day for the clock's date."""
        state = engine.days.get_state(USER)
        assert state.date == "2024-01-10"
        assert state.entries == []
        assert engine.snapshots.list_dates(USER) == []

    def test_same_day_is_not_a_transition(self, engine, clock):
        """Requests later on the same day keep the state."""
        engine.days.add_entry(USER, "morning")
        clock.advance(hours=10)
        assert engine.days.check_date_transition(USER) is False
        assert len(engine.days.get_state(USER).entries) == 1

    def test_transition_archives_previous_day(self, engine, clock):
        """The first request after midnight archives yesterday and starts fresh."""
        engine.days.add_entry(USER, "yesterday's entry")
        clock.advance(days=1)

        assert engine.days.check_date_transition(USER) is True

        state = engine.days.get_state(USER)
        assert state.date == "2024-01-11"
        assert state.entries == []

        archived = engine.snapshots.get(USER, "2024-01-10")
        assert [e.text for e in archived.entries] == ["yesterday's entry"]

    def test_transition_is_idempotent(self, engine, clock):
        """A second check on the new day changes nothing."""
        engine.days.add_entry(USER, "day one")
        clock.advance(days=1)

        assert engine.days.check_date_transition(USER) is True
        engine.days.add_entry(USER, "day two")

        assert engine.days.check_date_transition(USER) is False
        assert engine.snapshots.list_dates(USER) == ["2024-01-10"]
        assert [e.text for e in engine.days.get_state(USER).entries] == ["day two"]

    def test_gap_of_several_days_produces_one_snapshot(self, engine, clock):
        """Skipped days are not back-filled."""
        engine.days.add_entry(USER, "before the trip")
        clock.advance(days=5)

        engine.days.get_state(USER)

        assert engine.snapshots.list_dates(USER) == ["2024-01-10"]
        assert engine.days.get_state(USER).date == "2024-01-15"

    def test_snapshot_is_independent_of_active_state(self, engine):
        """Editing today after a manual snapshot does not alter the snapshot."""
        engine.days.add_entry(USER, "first")
        engine.days.save_snapshot(USER)
        engine.days.add_entry(USER, "second")

        archived = engine.snapshots.get(USER, "2024-01-10")
        assert [e.text for e in archived.entries] == ["first"]

    def test_snapshot_keeps_tracker_values(self, engine, clock):
        """Timer and counter changes after a snapshot stay out of it."""
        _, timer_id = engine.trackers.create_duration_tracker(USER, "Reading")
        engine.trackers.start_timer(USER, timer_id)
        _, counter_id = engine.trackers.create_custom_counter(USER, "Coffee")
        engine.trackers.increment_counter(USER, counter_id)
        engine.days.save_snapshot(USER)

        clock.advance(minutes=5)
        engine.trackers.stop_timer(USER, timer_id)
        engine.trackers.set_manual_time(USER, timer_id, 42_000)
        engine.trackers.increment_counter(USER, counter_id)

        archived = engine.snapshots.get(USER, "2024-01-10")
        timer = archived.find_duration_tracker(timer_id)
        assert timer.is_running is True
        assert (timer.elapsed_ms, timer.value) == (0, 0)
        assert archived.find_counter(counter_id).value == 1
        assert engine.days.get_state(USER).find_counter(counter_id).value == 2

    def test_users_are_isolated(self, engine):
        """One user's entries never show up for another."""
        engine.days.add_entry(USER, "mine")
        assert engine.days.get_state("bob").entries == []

    def test_needs_transition(self):
        assert needs_transition("2024-01-10", "2024-01-11") is True
        assert needs_transition("2024-01-10", "2024-01-10") is False


class TestPersistenceAcrossDays:
    """What survives a transition and what resets."""

    def test_trackers_survive_transition(self, engine, clock):
        """Duration and time-since trackers carry over unchanged."""
        _, timer_id = engine.trackers.create_duration_tracker(USER, "Reading")
        engine.trackers.set_manual_time(USER, timer_id, 90_000)
        engine.trackers.create_time_since_tracker(USER, "Haircut", "2023-12-01")

        clock.advance(days=1)
        state = engine.days.get_state(USER)

        assert [t.name for t in state.time_since_trackers] == ["Haircut"]
        assert state.time_since_trackers[0].reference_date == "2023-12-01"
        timer = state.find_duration_tracker(timer_id)
        assert timer.value == 90
        assert timer.elapsed_ms == 90_000

    def test_counters_reset_to_zero(self, engine, clock):
        """Counter names persist while their values restart."""
        _, counter_id = engine.trackers.create_custom_counter(USER, "Coffee")
        engine.trackers.increment_counter(USER, counter_id)
        engine.trackers.increment_counter(USER, counter_id)

        clock.advance(days=1)
        state = engine.days.get_state(USER)

        assert [(c.name, c.value) for c in state.custom_counters] == [("Coffee", 0)]
        archived = engine.snapshots.get(USER, "2024-01-10")
        assert archived.find_counter(counter_id).value == 2

    def test_templates_regenerate_empty(self, engine, clock):
        """A template field comes back empty on the next day."""
        engine.days.create_template_field(USER, "mood")
        engine.days.set_template_field_value(USER, "mood", "good")

        clock.advance(days=1)
        state = engine.days.get_state(USER)

        assert [(f.key, f.value) for f in state.template_fields] == [("mood", "")]
        archived = engine.snapshots.get(USER, "2024-01-10")
        assert [(f.key, f.value) for f in archived.template_fields] == [("mood", "good")]

    def test_day_scoped_items_do_not_carry_over(self, engine, clock):
        """Tasks, entries, one-off fields and sleep start empty."""
        engine.days.add_task(USER, "water plants")
        engine.days.set_one_off_field(USER, "weather", "rain")
        engine.days.update_sleep(USER, previous_bedtime="23:00", wake_time="07:00")

        clock.advance(days=1)
        state = engine.days.get_state(USER)

        assert state.tasks == []
        assert state.one_off_fields == []
        assert state.previous_bedtime == ""
        assert state.wake_time == ""


class TestEntries:
    """Activity entries."""

    def test_entry_timestamp_is_local_time(self, engine):
        state = engine.days.add_entry(USER, "coffee")
        assert state.entries[0].timestamp == "09:30:00"
        assert state.entries[0].image is None

    def test_entries_keep_insertion_order(self, engine, clock):
        engine.days.add_entry(USER, "one")
        clock.advance(minutes=5)
        state = engine.days.add_entry(USER, "two")
        assert [e.text for e in state.entries] == ["one", "two"]
        assert state.entries[1].timestamp == "09:35:00"

    def test_empty_text_rejected(self, engine):
        with pytest.raises(ValidationError):
            engine.days.add_entry(USER, "   ")

    def test_oversized_image_rejected(self, engine):
        """An image over the limit fails and leaves entries untouched."""
        engine.days.add_entry(USER, "kept")
        engine.days.max_image_bytes = 1024
        too_big = "A" * 2000

        with pytest.raises(PayloadTooLargeError):
            engine.days.add_entry(USER, "with image", image=too_big)

        assert [e.text for e in engine.days.get_state(USER).entries] == ["kept"]

    def test_image_within_limit_is_stored(self, engine):
        engine.days.max_image_bytes = 1024
        image = "data:image/png;base64," + "A" * 100
        state = engine.days.add_entry(USER, "photo", image=image)
        assert state.entries[0].image == image

    def test_payload_too_large_is_a_validation_error(self):
        assert issubclass(PayloadTooLargeError, ValidationError)

    def test_decoded_image_size(self):
        assert decoded_image_size("AAAA") == 3
        assert decoded_image_size("AAAAA") == 4

    def test_delete_entry(self, engine):
        state = engine.days.add_entry(USER, "oops")
        entry_id = state.entries[0].id
        state = engine.days.delete_entry(USER, entry_id)
        assert state.entries == []

    def test_delete_unknown_entry_is_noop(self, engine):
        engine.days.add_entry(USER, "stay")
        state = engine.days.delete_entry(USER, "missing")
        assert len(state.entries) == 1


class TestSleep:
    def test_partial_update_keeps_other_value(self, engine):
        engine.days.update_sleep(USER, previous_bedtime="23:15")
        state = engine.days.update_sleep(USER, wake_time="06:45")
        assert state.previous_bedtime == "23:15"
        assert state.wake_time == "06:45"


class TestTemplateFields:
    """Template field registry and today's values."""

    def test_create_adds_empty_field_today(self, engine):
        templates, state = engine.days.create_template_field(USER, "energy")
        assert [t.key for t in templates] == ["energy"]
        assert [(f.key, f.value) for f in state.template_fields] == [("energy", "")]

    def test_duplicate_key_conflicts(self, engine):
        engine.days.create_template_field(USER, "energy")
        with pytest.raises(ConflictError):
            engine.days.create_template_field(USER, "energy")

    def test_empty_key_rejected(self, engine):
        with pytest.raises(ValidationError):
            engine.days.create_template_field(USER, "")

    def test_delete_removes_todays_field_by_key(self, engine):
        templates, _ = engine.days.create_template_field(USER, "energy")
        engine.days.create_template_field(USER, "focus")

        templates, state = engine.days.delete_template_field(USER, templates[0].id)

        assert [t.key for t in templates] == ["focus"]
        assert [f.key for f in state.template_fields] == ["focus"]

    def test_set_value_for_unknown_key_is_noop(self, engine):
        state = engine.days.set_template_field_value(USER, "nope", "x")
        assert state.template_fields == []


class TestOneOffFields:
    def test_set_is_an_upsert(self, engine):
        engine.days.set_one_off_field(USER, "weather", "sunny")
        state = engine.days.set_one_off_field(USER, "weather", "cloudy")
        assert [(f.key, f.value) for f in state.one_off_fields] == [("weather", "cloudy")]

    def test_delete(self, engine):
        state = engine.days.set_one_off_field(USER, "weather", "sunny")
        state = engine.days.delete_one_off_field(USER, state.one_off_fields[0].id)
        assert state.one_off_fields == []


class TestTasks:
    def test_add_toggle_delete(self, engine):
        state = engine.days.add_task(USER, "stretch")
        task_id = state.tasks[0].id
        assert state.tasks[0].done is False

        state = engine.days.toggle_task(USER, task_id)
        assert state.tasks[0].done is True

        state = engine.days.toggle_task(USER, task_id)
        assert state.tasks[0].done is False

        state = engine.days.delete_task(USER, task_id)
        assert state.tasks == []

    def test_empty_task_rejected(self, engine):
        with pytest.raises(ValidationError):
            engine.days.add_task(USER, "")
