"""Course content tree.

A course is an ordered list of levels, each level an ordered list of topics.
Every topic carries a list of gradable items, at most one of each kind:

    Course
    └── Level (optional MajorTask)
        └── Topic
            └── Video | Quiz | MiniTask | ReadingMaterial

The tree is immutable: progress and eligibility computations receive it as
read-only input. It is persisted as one JSON document per course
(see ``skillpath.courses.schemas``).
"""

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar
from uuid import UUID


class ItemKind(str, Enum):
    """Kinds of gradable items a topic may carry."""

    VIDEO = "video"
    QUIZ = "quiz"
    MINI_TASK = "mini_task"
    READING = "reading"


class QuestionType(str, Enum):
    """Quiz question presentation."""

    MCQ = "mcq"
    TRUE_FALSE = "true_false"
    CODE_OUTPUT = "code_output"


# Watched percentage at which a video counts toward progress
DEFAULT_REQUIRED_WATCH_PERCENT = 90


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# Whole content tree of a course, stored as one JSON document
COURSE_TREES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.course_trees (
    course_id UUID PRIMARY KEY,
    title TEXT,
    document TEXT,
    updated_at TIMESTAMP
)
"""

COURSES_TABLES_CQL = [
    COURSE_TREES_TABLE_CQL,
]


# ==============================================================================
# Gradable Items
# ==============================================================================


@dataclass(frozen=True, slots=True)
class Video:
    url: str
    required_watch_percent: int = DEFAULT_REQUIRED_WATCH_PERCENT
    duration_seconds: int | None = None

    kind: ClassVar[ItemKind] = ItemKind.VIDEO


@dataclass(frozen=True, slots=True)
class Question:
    question: str
    correct_answer: str
    options: tuple[str, ...] = ()
    question_type: QuestionType = QuestionType.MCQ
    explanation: str | None = None


@dataclass(frozen=True, slots=True)
class Quiz:
    """Practice quiz. Always has at least one question."""

    questions: tuple[Question, ...]

    kind: ClassVar[ItemKind] = ItemKind.QUIZ

    def __post_init__(self) -> None:
        if not self.questions:
            msg = "Quiz requires at least one question"
            raise ValueError(msg)

    @property
    def total_questions(self) -> int:
        return len(self.questions)


@dataclass(frozen=True, slots=True)
class MiniTask:
    title: str
    description: str | None = None
    requirements: tuple[str, ...] = ()

    kind: ClassVar[ItemKind] = ItemKind.MINI_TASK


@dataclass(frozen=True, slots=True)
class ReadingMaterial:
    content: str
    title: str | None = None

    kind: ClassVar[ItemKind] = ItemKind.READING


GradableItem = Video | Quiz | MiniTask | ReadingMaterial


# ==============================================================================
# Tree Nodes
# ==============================================================================


@dataclass(frozen=True, slots=True)
class Topic:
    """A topic and the gradable items attached to it.

    Attributes:
        id: Topic id, unique within the course
        title: Display title
        items: Gradable items, at most one per ItemKind
    """

    id: str
    title: str = ""
    items: tuple[GradableItem, ...] = ()

    def __post_init__(self) -> None:
        kinds = [item.kind for item in self.items]
        if len(kinds) != len(set(kinds)):
            msg = f"Topic {self.id} has more than one item of the same kind"
            raise ValueError(msg)

    @property
    def gradable_kinds(self) -> frozenset[ItemKind]:
        """The topic's gradable item set, as kinds."""
        return frozenset(item.kind for item in self.items)

    def item(self, kind: ItemKind) -> GradableItem | None:
        """Return the item of the given kind, if present."""
        for item in self.items:
            if item.kind == kind:
                return item
        return None

    @property
    def video(self) -> Video | None:
        return self.item(ItemKind.VIDEO)  # type: ignore[return-value]

    @property
    def quiz(self) -> Quiz | None:
        return self.item(ItemKind.QUIZ)  # type: ignore[return-value]

    @property
    def mini_task(self) -> MiniTask | None:
        return self.item(ItemKind.MINI_TASK)  # type: ignore[return-value]

    @property
    def reading(self) -> ReadingMaterial | None:
        return self.item(ItemKind.READING)  # type: ignore[return-value]


@dataclass(frozen=True, slots=True)
class MajorTask:
    title: str
    description: str | None = None
    requirements: tuple[str, ...] = ()
    estimated_time: str | None = None


@dataclass(frozen=True, slots=True)
class CapstoneProject:
    title: str
    description: str | None = None


@dataclass(frozen=True, slots=True)
class Level:
    id: str
    title: str = ""
    topics: tuple[Topic, ...] = ()
    major_task: MajorTask | None = None

    @property
    def topic_ids(self) -> tuple[str, ...]:
        return tuple(topic.id for topic in self.topics)


@dataclass(frozen=True, slots=True)
class Course:
    """Immutable content tree of one course."""

    id: UUID
    title: str
    levels: tuple[Level, ...] = ()
    capstone: CapstoneProject | None = None
    duration: str | None = None
    _topic_index: dict[str, tuple[Level, Topic]] = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        index: dict[str, tuple[Level, Topic]] = {}
        for level in self.levels:
            for topic in level.topics:
                index[topic.id] = (level, topic)
        object.__setattr__(self, "_topic_index", index)

    def iter_topics(self) -> Iterator[tuple[Level, Topic]]:
        """Yield (level, topic) pairs in course order."""
        for level in self.levels:
            for topic in level.topics:
                yield level, topic

    def find_topic(self, topic_id: str) -> Topic | None:
        entry = self._topic_index.get(topic_id)
        return entry[1] if entry else None

    def find_level(self, level_id: str) -> Level | None:
        for level in self.levels:
            if level.id == level_id:
                return level
        return None

    @property
    def capstone_task_id(self) -> str:
        """Task id under which capstone submissions are recorded."""
        return str(self.id)
