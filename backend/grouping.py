"""Derive exercise groups (standalone or superset) from a day template.

Groups are never cached.  Every call re-reads the ordered templates so the
result always reflects the latest edits.  A superset is two adjacent
exercises that share the same nonzero ``superset_group`` tag.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterator, Sequence

from backend.models import ExerciseTemplate

if TYPE_CHECKING:  # pragma: no cover - for type checkers only
    from backend.store import WorkoutStore

STANDALONE = "standalone"
SUPERSET = "superset"


def superset_letter(number: int) -> str:
    """Return ``"A"`` for 1, ``"B"`` for 2 and so on."""

    return chr(64 + max(1, number))


@dataclass
class ExerciseGroup:
    kind: str
    exercises: list[ExerciseTemplate] = field(default_factory=list)
    superset_number: int | None = None

    @property
    def is_superset(self) -> bool:
        return self.kind == SUPERSET

    @property
    def display_title(self) -> str:
        if not self.is_superset:
            return ""
        return f"Superset {superset_letter(self.superset_number or 1)}"

    @property
    def member_labels(self) -> list[str]:
        """Labels such as ``["A1", "A2"]``; empty strings for standalone."""

        if not self.is_superset:
            return ["" for _ in self.exercises]
        letter = superset_letter(self.superset_number or 1)
        return [f"{letter}{idx}" for idx in range(1, len(self.exercises) + 1)]

    def index_of(self, template_id: int) -> int | None:
        for idx, template in enumerate(self.exercises):
            if template.id == template_id:
                return idx
        return None


def iter_exercise_groups(templates: Sequence[ExerciseTemplate]) -> Iterator[ExerciseGroup]:
    """Yield groups for ``templates`` in ``order``.

    Adjacent exercises with the same nonzero tag are paired.  A run of more
    than two equally tagged exercises is split into consecutive pairs with
    any odd exercise left standalone, and a tagged exercise without an
    adjacent partner is treated as standalone.
    """

    ordered = sorted(templates, key=lambda t: (t.order, t.id))
    superset_count = 0
    idx = 0
    while idx < len(ordered):
        current = ordered[idx]
        nxt = ordered[idx + 1] if idx + 1 < len(ordered) else None
        if (
            current.superset_group > 0
            and nxt is not None
            and nxt.superset_group == current.superset_group
        ):
            superset_count += 1
            yield ExerciseGroup(SUPERSET, [current, nxt], superset_count)
            idx += 2
            continue
        yield ExerciseGroup(STANDALONE, [current])
        idx += 1


def exercise_groups(templates: Sequence[ExerciseTemplate]) -> list[ExerciseGroup]:
    """Return a fresh list of groups for ``templates``."""

    return list(iter_exercise_groups(templates))


def groups_for_day(store: "WorkoutStore", day_template_id: int) -> list[ExerciseGroup]:
    return exercise_groups(store.exercise_templates_for_day(day_template_id))


def group_index_for_template(groups: Sequence[ExerciseGroup], template_id: int) -> int | None:
    for idx, group in enumerate(groups):
        if group.index_of(template_id) is not None:
            return idx
    return None


def superset_partner(
    templates: Sequence[ExerciseTemplate], template: ExerciseTemplate
) -> ExerciseTemplate | None:
    """Return the exercise paired with ``template`` or ``None``."""

    for group in iter_exercise_groups(templates):
        if not group.is_superset:
            continue
        ids = [t.id for t in group.exercises]
        if template.id in ids:
            return group.exercises[1 - ids.index(template.id)]
    return None


def next_superset_group_number(templates: Sequence[ExerciseTemplate]) -> int:
    tags = [t.superset_group for t in templates if t.superset_group > 0]
    return max(tags, default=0) + 1


def validate_superset_pairing(templates: Sequence[ExerciseTemplate]) -> list[str]:
    """Return a list of problems with the superset tags of ``templates``.

    Every nonzero tag must be shared by exactly two exercises that sit next
    to each other in ``order``.
    """

    errors: list[str] = []
    ordered = sorted(templates, key=lambda t: (t.order, t.id))
    positions: dict[int, list[int]] = {}
    for idx, template in enumerate(ordered):
        if template.superset_group > 0:
            positions.setdefault(template.superset_group, []).append(idx)
    for tag, idxs in sorted(positions.items()):
        names = ", ".join(ordered[i].name for i in idxs)
        if len(idxs) != 2:
            errors.append(f"Superset {tag} has {len(idxs)} exercises ({names}); expected 2")
        elif idxs[1] - idxs[0] != 1:
            errors.append(f"Superset {tag} exercises are not adjacent ({names})")
    return errors


def create_superset(store: "WorkoutStore", first_id: int, second_id: int) -> int:
    """Pair two adjacent standalone exercises of the same day.

    Returns the assigned superset tag.  Raises :class:`ValueError` when the
    exercises cannot form a valid pair.  The caller commits with
    :meth:`WorkoutStore.save`.
    """

    first = store.get_exercise_template(first_id)
    second = store.get_exercise_template(second_id)
    if first is None or second is None:
        raise ValueError("Exercise template not found")
    if first.day_template_id != second.day_template_id:
        raise ValueError("Superset exercises must belong to the same day")
    if first.is_in_superset or second.is_in_superset:
        raise ValueError("Exercise is already part of a superset")
    templates = store.exercise_templates_for_day(first.day_template_id)
    ids = [t.id for t in templates]
    if abs(ids.index(first.id) - ids.index(second.id)) != 1:
        raise ValueError("Superset exercises must be adjacent")
    number = next_superset_group_number(templates)
    for template in (first, second):
        template.superset_group = number
        store.update_exercise_template(template)
    return number


def remove_from_superset(store: "WorkoutStore", template_id: int) -> None:
    """Make ``template_id`` and its partner standalone again."""

    template = store.get_exercise_template(template_id)
    if template is None or not template.is_in_superset:
        return
    for other in store.exercise_templates_for_day(template.day_template_id):
        if other.superset_group == template.superset_group:
            other.superset_group = 0
            store.update_exercise_template(other)
