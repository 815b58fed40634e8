import pytest

from backend.models import Session
from backend.sessions import (
    get_session_details,
    get_session_history,
    reconcile_orphaned_sessions,
    resumable_session,
    record_health_metrics,
    session_summary,
    start_session,
    validate_session,
)

HOUR = 3600.0


def test_start_session_carries_bodyweight_forward(store, push_day):
    first = start_session(store, push_day.day.id, now=1000.0)
    assert first.start_time == first.date == 1000.0
    assert first.user_bodyweight == 70.0
    assert first.is_in_progress

    record_health_metrics(store, first.id, bodyweight=82.5)
    second = start_session(store, push_day.day.id, now=2000.0)
    assert second.user_bodyweight == 82.5


def test_start_session_unknown_day(store):
    with pytest.raises(ValueError):
        start_session(store, 999, now=0.0)


def test_orphaned_sessions_are_closed(store, push_day):
    now = 100 * HOUR
    old = start_session(store, push_day.day.id, now=now - 7 * HOUR)
    recent = start_session(store, push_day.day.id, now=now - 1 * HOUR)

    closed = reconcile_orphaned_sessions(store, now=now)
    assert closed == [old.id]
    assert store.get_session(old.id).end_time == old.start_time + 3 * HOUR
    assert store.get_session(recent.id).is_in_progress
    assert reconcile_orphaned_sessions(store, now=now) == []


def test_orphan_thresholds_are_configurable(store, push_day):
    now = 100 * HOUR
    session = start_session(store, push_day.day.id, now=now - 2 * HOUR)
    closed = reconcile_orphaned_sessions(
        store, now=now, max_age_hours=1, estimated_duration_hours=0.5
    )
    assert closed == [session.id]
    assert store.get_session(session.id).end_time == session.start_time + 0.5 * HOUR


def test_health_metrics_are_validated(store, push_day):
    session = start_session(store, push_day.day.id, now=0.0)
    updated = record_health_metrics(
        store, session.id, sleep_hours=7.5, protein_grams=150, bodyweight=10, notes=" good "
    )
    assert updated.user_bodyweight == 20.0
    assert store.get_session(session.id).sleep_hours == 7.5
    assert store.get_session(session.id).notes == "good"
    assert record_health_metrics(store, session.id, bodyweight=900).user_bodyweight == 500.0

    with pytest.raises(ValueError):
        record_health_metrics(store, session.id, sleep_hours=30)
    with pytest.raises(ValueError):
        record_health_metrics(store, session.id, protein_grams=-1)
    with pytest.raises(ValueError):
        record_health_metrics(store, 999, sleep_hours=8)


def test_validate_session():
    good = Session(id=1, day_template_id=1, date=0.0, start_time=10.0, end_time=20.0)
    assert validate_session(good) == []
    bad = Session(
        id=2,
        day_template_id=1,
        date=0.0,
        start_time=20.0,
        end_time=10.0,
        sleep_hours=30,
        protein_grams=-5,
        user_bodyweight=5,
    )
    assert len(validate_session(bad)) == 4
    assert validate_session(Session(id=3, day_template_id=1, date=0.0)) == [
        "Session has no start time"
    ]


def _finished_session(store, push_day, start, reps):
    session = start_session(store, push_day.day.id, now=start)
    ce = store.create_completed_exercise(session.id, push_day.bench.id)
    store.create_set(ce.id, 0, weight=100, reps=reps)
    store.create_set(ce.id, 1)
    session.end_time = start + 1800
    store.update_session(session)
    store.save()
    return session


def test_history_and_details(store, push_day):
    older = _finished_session(store, push_day, 1000.0, 5)
    newer = _finished_session(store, push_day, 5000.0, 6)
    start_session(store, push_day.day.id, now=9000.0)

    history = get_session_history(store)
    assert [item["id"] for item in history] == [newer.id, older.id]
    assert history[0]["day_name"] == "Push Day"
    assert history[0]["duration"] == 1800
    assert len(get_session_history(store, limit=1)) == 1

    details = get_session_details(store, newer.id)
    assert details["exercises"][0]["name"] == "Bench Press"
    sets = details["exercises"][0]["sets"]
    assert [s["number"] for s in sets] == [1, 2]
    assert sets[0]["reps"] == 6 and sets[0]["is_completed"]
    assert not sets[1]["is_completed"]


def test_session_summary(store, push_day):
    session = _finished_session(store, push_day, 1000.0, 5)
    summary = session_summary(store, session.id)
    lines = summary.splitlines()
    assert lines[0] == "Push Day"
    assert "Bench Press: 1 sets, top 100 kg" in lines
    assert "Total: 1 sets, 500 kg lifted" in lines
    assert lines[-1] == "Duration: 30:00"


def test_unfinished_session_is_resumable_after_reconcile(store, push_day):
    now = 100 * HOUR
    abandoned = start_session(store, push_day.day.id, now=now - 8 * HOUR)
    recent = start_session(store, push_day.day.id, now=now - 1 * HOUR)
    reconcile_orphaned_sessions(store, now=now)
    assert resumable_session(store).id == recent.id
    assert not store.get_session(abandoned.id).is_in_progress


def test_session_without_day_is_not_resumable(store, push_day):
    session = start_session(store, push_day.day.id, now=0.0)
    store.conn.execute("DELETE FROM day_templates WHERE id = ?", (push_day.day.id,))
    store.save()
    assert store.get_session(session.id).day_template_id is None
    assert resumable_session(store) is None
