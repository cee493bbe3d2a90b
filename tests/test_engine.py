from datetime import timedelta

import pytest

from fleeting.engine import TaskEngine
from fleeting.models import HARD_UPPER_BOUND_SECONDS, UrgencyLevel

from .fakes import START, make_settings

HOUR = 3600
DAY = 24 * HOUR


def test_add_creates_task(engine, clock):
    t = engine.add("  Water plants ", HOUR, location=" Balcony ", link="example.com")

    assert t is not None
    assert t.title == "Water plants"
    assert t.location == "Balcony"
    assert t.link == "https://example.com"
    assert t.created_at == clock.now
    assert t.expires_at == clock.now + timedelta(hours=1)
    assert t.is_completed is False
    assert engine.tasks == (t,)


@pytest.mark.parametrize("title", ["", "   ", None])
def test_add_rejects_empty_title(engine, title):
    assert engine.add(title, HOUR) is None
    assert engine.tasks == ()


@pytest.mark.parametrize("duration", [0, -1, float("nan"), float("inf"), "soon"])
def test_add_rejects_bad_duration(engine, duration):
    assert engine.add("Task", duration) is None
    assert engine.tasks == ()


def test_add_rejects_malformed_link(engine):
    assert engine.add("Task", HOUR, link="not a url") is None
    assert engine.tasks == ()


def test_blank_link_and_location_are_dropped(engine):
    t = engine.add("Task", HOUR, location="  ", link="   ")
    assert t.location is None
    assert t.link is None


@pytest.mark.parametrize("days", [1, 3, 7])
def test_add_caps_to_max_allowed_duration(repo, clock, days):
    engine = TaskEngine(repo, lambda: make_settings(max_days=days), clock=clock)
    t = engine.add("Long", 30 * DAY)
    assert t.duration == days * DAY


def test_add_never_exceeds_hard_upper_bound(repo, clock):
    engine = TaskEngine(repo, lambda: make_settings(max_days=7), clock=clock)
    t = engine.add("Long", 10 * DAY)
    assert t.duration == HARD_UPPER_BOUND_SECONDS


def test_add_until(engine, clock):
    t = engine.add_until("Meeting", clock.now + timedelta(hours=2))
    assert t.expires_at == clock.now + timedelta(hours=2)
    assert engine.add_until("Past", clock.now - timedelta(minutes=1)) is None


def test_ids_are_unique(engine):
    ids = {engine.add(f"t{i}", HOUR).id for i in range(20)}
    assert len(ids) == 20


def test_complete_twice_counts_once(engine):
    t = engine.add("Task", HOUR)

    assert engine.complete(t.id) is True
    assert engine.complete(t.id) is False

    assert engine.completed_count == 1
    assert engine.get(t.id).is_completed is True


def test_complete_unknown_id_is_noop(engine):
    assert engine.complete("missing") is False
    assert engine.completed_count == 0


def test_completed_task_leaves_active_views_immediately(engine):
    a = engine.add("a", HOUR)
    b = engine.add("b", 2 * HOUR)
    engine.complete(a.id)

    assert [t.id for t in engine.active_tasks] == [b.id]
    assert len(engine.tasks) == 2  # still stored until the next purge


def test_purge_expired_counts_and_removes(engine, clock):
    engine.add("short", HOUR)
    done = engine.add("done", HOUR)
    keep = engine.add("long", 5 * HOUR)
    engine.complete(done.id)

    clock.advance(hours=2)

    assert engine.purge_expired() == 1
    assert engine.expired_count == 1
    assert engine.completed_count == 1
    assert [t.id for t in engine.tasks] == [keep.id]


def test_purge_expired_is_idempotent(engine, clock):
    engine.add("a", HOUR)
    engine.add("b", HOUR)
    clock.advance(hours=1)  # now == expires_at counts as expired

    engine.purge_expired()
    engine.purge_expired()

    assert engine.expired_count == 2
    assert engine.tasks == ()


def test_completed_then_expired_is_not_counted_as_expired(engine, clock):
    t = engine.add("a", HOUR)
    engine.complete(t.id)
    clock.advance(hours=3)

    assert engine.purge_expired() == 0
    assert engine.expired_count == 0
    assert engine.tasks == ()


def test_purge_completed_only_removes_completed(engine, clock):
    a = engine.add("a", HOUR)
    b = engine.add("b", HOUR)
    engine.complete(a.id)
    clock.advance(hours=2)

    assert engine.purge_completed() == 1
    assert [t.id for t in engine.tasks] == [b.id]
    assert engine.expired_count == 0


def test_reset_statistics_keeps_tasks(engine, clock):
    a = engine.add("a", HOUR)
    engine.add("b", HOUR)
    engine.add("c", 5 * HOUR)
    engine.complete(a.id)
    clock.advance(hours=2)
    engine.purge_expired()
    active_before = engine.active_tasks

    engine.reset_statistics()

    assert engine.completed_count == 0
    assert engine.expired_count == 0
    assert engine.active_tasks == active_before


def test_sorted_by_expiry(engine, clock):
    late = engine.add("late", 5 * HOUR)
    first_tie = engine.add("tie-1", 2 * HOUR)
    second_tie = engine.add("tie-2", 2 * HOUR)
    soon = engine.add("soon", HOUR)
    gone = engine.add("gone", 10)
    done = engine.add("done", 3 * HOUR)
    engine.complete(done.id)
    clock.advance(seconds=30)

    ordered = engine.sorted_by_expiry

    assert [t.id for t in ordered] == [soon.id, first_tie.id, second_tie.id, late.id]
    assert gone.id not in {t.id for t in ordered}
    expiries = [t.expires_at for t in ordered]
    assert expiries == sorted(expiries)


@pytest.mark.parametrize(
    "remaining, level",
    [
        (0, UrgencyLevel.EXPIRED),
        (1, UrgencyLevel.CRITICAL),
        (HOUR, UrgencyLevel.CRITICAL),
        (HOUR + 1, UrgencyLevel.URGENT),
        (6 * HOUR, UrgencyLevel.URGENT),
        (6 * HOUR + 1, UrgencyLevel.NORMAL),
    ],
)
def test_urgency_level(engine, clock, remaining, level):
    t = engine.add("t", 2 * DAY)
    clock.now = t.expires_at - timedelta(seconds=remaining)
    assert engine.urgency_level(t) == level


def test_progress(engine, clock):
    t = engine.add("t", 4 * HOUR)
    assert t.progress(clock.now) == 1.0
    clock.advance(hours=3)
    assert t.progress(clock.now) == pytest.approx(0.25)
    clock.advance(hours=5)
    assert t.progress(clock.now) == 0.0


def test_fire_intensity_neutral_when_empty(engine):
    assert engine.fire_intensity == 0.5
    assert engine.fire_intensity == 0.5


def test_fire_intensity_drifts_toward_completion_ratio(engine):
    a = engine.add("a", HOUR)
    engine.complete(a.id)
    engine.purge_completed()
    engine.add("b", HOUR)
    # 1 completed of 2 total -> target 0.5

    first = engine.fire_intensity
    assert first == pytest.approx(0.7 * 0.98 + 0.5 * 0.02)

    for _ in range(2000):
        last = engine.fire_intensity
    assert last == pytest.approx(0.5, abs=1e-6)


def test_fire_intensity_target_has_floor(engine):
    engine.add("a", HOUR)  # 0 completed -> target clamps to 0.1
    value = engine.fire_intensity
    assert value == pytest.approx(0.7 * 0.98 + 0.1 * 0.02)


def test_observers_fire_after_mutations(engine, clock):
    calls = []
    unsubscribe = engine.subscribe(lambda: calls.append(len(engine.tasks)))

    t = engine.add("a", HOUR)
    engine.complete(t.id)
    engine.purge_completed()
    engine.reset_statistics()
    assert calls == [1, 1, 0, 0]

    engine.add("", HOUR)          # declined
    engine.complete(t.id)         # unknown now
    assert len(calls) == 4

    unsubscribe()
    engine.add("b", HOUR)
    assert len(calls) == 4


def test_tick_always_notifies(engine):
    calls = []
    engine.subscribe(lambda: calls.append(True))
    engine.tick()
    assert calls == [True]


def test_tick_notifies_once_when_purging(engine, clock):
    engine.add("a", HOUR)
    calls = []
    engine.subscribe(lambda: calls.append(len(engine.tasks)))
    clock.advance(hours=2)

    engine.tick()

    assert calls == [0]
    assert engine.expired_count == 1


def test_tick_moves_fire_intensity_once(engine, clock):
    engine.add("a", HOUR)
    engine.add("b", 5 * HOUR)
    readings = []
    engine.subscribe(lambda: readings.append(engine.fire_intensity))
    clock.advance(hours=2)

    engine.tick()

    assert len(readings) == 1
    assert readings[0] == pytest.approx(0.7 * 0.98 + 0.1 * 0.02)


def test_state_survives_restart(repo, clock):
    first = TaskEngine(repo, make_settings, clock=clock)
    a = first.add("a", HOUR, link="https://example.com/x")
    b = first.add("b", 2 * HOUR)
    first.complete(a.id)
    clock.advance(hours=1, minutes=30)
    first.purge_expired()
    c = first.add("c", HOUR)

    second = TaskEngine(repo, make_settings, clock=clock)

    assert [t.id for t in second.tasks] == [b.id, c.id]
    assert second.get(c.id) == c
    assert second.completed_count == 1
    assert second.expired_count == 0


def test_corrupt_state_starts_empty(repo, conn, clock):
    conn.execute("INSERT INTO state(key,value) VALUES('tasks','{not json')")
    conn.execute("INSERT INTO state(key,value) VALUES('completedCount','4')")
    conn.commit()

    engine = TaskEngine(repo, make_settings, clock=clock)

    assert engine.tasks == ()
    assert engine.completed_count == 0
    assert engine.expired_count == 0


def test_engine_without_repository(clock):
    engine = TaskEngine(None, make_settings, clock=clock)
    t = engine.add("a", HOUR)
    assert engine.complete(t.id)
    assert engine.completed_count == 1


