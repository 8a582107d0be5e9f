"""Certificate eligibility.

Stricter than progress tracking and computed independently of it:

- every video watched to the threshold (100 by default, not 90)
- every quiz attempted
- every mini task and every major task submitted
- the capstone submitted, when the course defines one

Each criterion other than the capstone also requires the course to contain
at least one item of its kind. A course without quizzes can therefore never
be certified unless ``absent_kinds_satisfied`` is set.
"""

from dataclasses import dataclass
from typing import Any

from skillpath.courses.models import Course, ItemKind
from skillpath.progress.models import EnrollmentLedger, TaskType
from skillpath.progress.recalculator import (
    has_completed_submission,
    is_major_task_satisfied,
)


DEFAULT_VIDEO_THRESHOLD = 100


@dataclass(frozen=True, slots=True)
class EligibilityReport:
    """Per-criterion verdicts.

    ``capstone_completed`` is None when the course has no capstone, and is
    then left out of ``is_eligible``.
    """

    video_completion: bool
    all_quizzes_attempted: bool
    all_mini_tasks_completed: bool
    all_major_tasks_completed: bool
    capstone_completed: bool | None = None

    @property
    def criteria(self) -> dict[str, bool]:
        criteria = {
            "video_completion": self.video_completion,
            "all_quizzes_attempted": self.all_quizzes_attempted,
            "all_mini_tasks_completed": self.all_mini_tasks_completed,
            "all_major_tasks_completed": self.all_major_tasks_completed,
        }
        if self.capstone_completed is not None:
            criteria["capstone_completed"] = self.capstone_completed
        return criteria

    @property
    def is_eligible(self) -> bool:
        return all(self.criteria.values())

    @property
    def unmet(self) -> list[str]:
        return [name for name, met in self.criteria.items() if not met]

    def to_dict(self) -> dict[str, Any]:
        return {"is_eligible": self.is_eligible, "criteria": self.criteria}


def _all_of(flags: list[bool], absent_kinds_satisfied: bool) -> bool:
    if not flags:
        return absent_kinds_satisfied
    return all(flags)


def evaluate_eligibility(
    course: Course,
    ledger: EnrollmentLedger,
    video_threshold: float = DEFAULT_VIDEO_THRESHOLD,
    absent_kinds_satisfied: bool = False,
) -> EligibilityReport:
    """Evaluate certificate criteria for a ledger.

    Args:
        course: Content tree of the ledger's course
        ledger: Enrollment ledger (not modified)
        video_threshold: Watched percent every video must reach
        absent_kinds_satisfied: Treat a criterion with no items in the course
            as met instead of failed

    Returns:
        EligibilityReport
    """
    videos: list[bool] = []
    quizzes: list[bool] = []
    mini_tasks: list[bool] = []

    for _, topic in course.iter_topics():
        kinds = topic.gradable_kinds
        if ItemKind.VIDEO in kinds:
            progress = ledger.video_progress.get(topic.id)
            videos.append(
                progress is not None and progress.watched_percent >= video_threshold
            )
        if ItemKind.QUIZ in kinds:
            result = ledger.quiz_results.get(topic.id)
            quizzes.append(result is not None and result.attempted)
        if ItemKind.MINI_TASK in kinds:
            mini_tasks.append(
                has_completed_submission(ledger, topic.id, TaskType.MINI)
            )

    major_tasks = [
        is_major_task_satisfied(level, ledger)
        for level in course.levels
        if level.major_task is not None
    ]

    capstone_completed = None
    if course.capstone is not None:
        capstone_completed = has_completed_submission(
            ledger, course.capstone_task_id, TaskType.CAPSTONE
        )

    return EligibilityReport(
        video_completion=_all_of(videos, absent_kinds_satisfied),
        all_quizzes_attempted=_all_of(quizzes, absent_kinds_satisfied),
        all_mini_tasks_completed=_all_of(mini_tasks, absent_kinds_satisfied),
        all_major_tasks_completed=_all_of(major_tasks, absent_kinds_satisfied),
        capstone_completed=capstone_completed,
    )
