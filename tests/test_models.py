from backend.models import (
    ExerciseSet,
    Session,
    all_sets_completed,
    completed_set_count,
    max_weight,
    total_volume,
)


def _set(**kwargs):
    return ExerciseSet(id=1, completed_exercise_id=1, order=0, **kwargs)


def test_set_completion_requires_weight_and_reps():
    s = _set(weight=80, reps=0)
    assert not s.derived_completed()
    s.reps = 5
    assert s.refresh_completed() is True
    assert s.is_completed
    assert s.refresh_completed() is False


def test_bodyweight_set_needs_only_reps():
    s = _set(is_bodyweight=True, reps=10)
    assert s.has_valid_weight
    assert s.derived_completed()


def test_effective_weight_uses_bodyweight_plus_extra():
    s = _set(is_bodyweight=True, reps=5, extra_weight=10)
    assert s.effective_weight(80) == 90
    assert s.effective_weight() == 80  # default bodyweight 70 + 10


def test_aggregates_count_completed_sets_only():
    done = _set(weight=100, reps=5, is_completed=True)
    todo = _set(weight=120, reps=0)
    assert completed_set_count([done, todo]) == 1
    assert not all_sets_completed([done, todo])
    assert total_volume([done, todo]) == 500
    assert max_weight([done, todo]) == 100


def test_session_duration_and_bodyweight():
    session = Session(id=1, day_template_id=1, date=0.0, start_time=100.0)
    assert session.is_in_progress
    assert session.duration(160.0) == 60.0
    assert session.bodyweight() == 70.0
    session.end_time = 130.0
    assert not session.is_in_progress
    assert session.duration(999.0) == 30.0
