"""Progress recalculation.

``recalculate_progress(course, ledger)`` is a pure function: it reads the
content tree and the ledger facts and returns a new ledger with

- topics whose every gradable item is satisfied added to ``completed_topics``
- levels whose every topic is in ``completed_topics`` added to
  ``completed_levels``
- ``progress_percent`` recomputed from scratch

Completion sets only ever grow; ids added manually (or by an earlier content
version) are kept. Running it twice without new facts yields the same ledger.

Counting rules:

- every gradable item of every topic counts once
- a level's major task counts once
- the capstone project does not count (it only feeds eligibility)

A topic with no gradable items satisfies "every item satisfied" vacuously and
completes immediately; likewise a level with no topics.
"""

from dataclasses import dataclass, replace
from decimal import ROUND_HALF_UP, Decimal

from skillpath.courses.models import (
    Course,
    GradableItem,
    Level,
    MiniTask,
    Quiz,
    ReadingMaterial,
    Topic,
    Video,
)

from .models import EnrollmentLedger, TaskType


@dataclass(frozen=True, slots=True)
class ProgressTally:
    """Item counts behind a progress percentage."""

    total_items: int = 0
    completed_items: int = 0

    @property
    def percent(self) -> int:
        if self.total_items <= 0:
            return 0
        ratio = Decimal(self.completed_items) * 100 / Decimal(self.total_items)
        return int(ratio.quantize(Decimal(1), rounding=ROUND_HALF_UP))


# ==============================================================================
# Predicates
# ==============================================================================


def has_completed_submission(
    ledger: EnrollmentLedger, task_id: str, task_type: TaskType
) -> bool:
    submission = ledger.task_submissions.get(task_id)
    return (
        submission is not None
        and submission.task_type == task_type
        and submission.completed
    )


def is_item_satisfied(
    topic: Topic, item: GradableItem, ledger: EnrollmentLedger
) -> bool:
    """Progress-tracking predicate for one gradable item of a topic."""
    if isinstance(item, Video):
        video = ledger.video_progress.get(topic.id)
        return (
            video is not None
            and video.watched_percent >= item.required_watch_percent
        )
    if isinstance(item, Quiz):
        # Attempting is enough, the score is irrelevant here
        result = ledger.quiz_results.get(topic.id)
        return result is not None and result.attempted
    if isinstance(item, MiniTask):
        return has_completed_submission(ledger, topic.id, TaskType.MINI)
    if isinstance(item, ReadingMaterial):
        reading = ledger.reading_progress.get(topic.id)
        return reading is not None and reading.completed
    msg = f"Unsupported gradable item: {type(item).__name__}"
    raise TypeError(msg)


def unsatisfied_items(topic: Topic, ledger: EnrollmentLedger) -> list[GradableItem]:
    return [item for item in topic.items if not is_item_satisfied(topic, item, ledger)]


def is_topic_satisfied(topic: Topic, ledger: EnrollmentLedger) -> bool:
    """All gradable items satisfied (vacuously true with no items)."""
    return not unsatisfied_items(topic, ledger)


def is_major_task_satisfied(level: Level, ledger: EnrollmentLedger) -> bool:
    return level.major_task is not None and has_completed_submission(
        ledger, level.id, TaskType.MAJOR
    )


def missing_topics(level: Level, completed_topics: frozenset[str]) -> list[str]:
    return [topic.id for topic in level.topics if topic.id not in completed_topics]


# ==============================================================================
# Aggregation
# ==============================================================================


def tally_progress(course: Course, ledger: EnrollmentLedger) -> ProgressTally:
    """Count gradable items (plus major tasks) and how many are satisfied."""
    total = 0
    completed = 0
    for level in course.levels:
        for topic in level.topics:
            total += len(topic.items)
            completed += sum(
                1 for item in topic.items if is_item_satisfied(topic, item, ledger)
            )
        if level.major_task is not None:
            total += 1
            completed += int(is_major_task_satisfied(level, ledger))
    return ProgressTally(total_items=total, completed_items=completed)


def cascade_completion(
    course: Course, ledger: EnrollmentLedger
) -> tuple[frozenset[str], frozenset[str]]:
    """Return the enlarged (completed_topics, completed_levels) sets."""
    topics = set(ledger.completed_topics)
    levels = set(ledger.completed_levels)

    for level in course.levels:
        for topic in level.topics:
            if topic.id not in topics and is_topic_satisfied(topic, ledger):
                topics.add(topic.id)
        if level.id not in levels and not missing_topics(level, frozenset(topics)):
            levels.add(level.id)

    return frozenset(topics), frozenset(levels)


def recalculate_progress(course: Course, ledger: EnrollmentLedger) -> EnrollmentLedger:
    """Recompute completion sets and progress percent for a ledger.

    Args:
        course: Content tree of the ledger's course
        ledger: Current ledger (not modified)

    Returns:
        New ledger with enlarged completion sets and fresh progress_percent
    """
    completed_topics, completed_levels = cascade_completion(course, ledger)
    tally = tally_progress(course, ledger)
    return replace(
        ledger,
        completed_topics=completed_topics,
        completed_levels=completed_levels,
        progress_percent=tally.percent,
    )
