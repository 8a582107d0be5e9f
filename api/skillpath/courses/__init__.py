"""Course content trees.

Provides:
- Immutable content tree (levels, topics, gradable items)
- JSON document schema used for storage
- Course repository (Cassandra and in-memory)
"""

from .models import (
    COURSES_TABLES_CQL,
    CapstoneProject,
    Course,
    GradableItem,
    ItemKind,
    Level,
    MajorTask,
    MiniTask,
    Question,
    Quiz,
    ReadingMaterial,
    Topic,
    Video,
)


__all__ = [
    "COURSES_TABLES_CQL",
    "CapstoneProject",
    "Course",
    "GradableItem",
    "ItemKind",
    "Level",
    "MajorTask",
    "MiniTask",
    "Question",
    "Quiz",
    "ReadingMaterial",
    "Topic",
    "Video",
]
