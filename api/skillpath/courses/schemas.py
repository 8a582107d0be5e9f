"""Pydantic schemas for the stored course tree document.

The document mirrors how authors edit a course: every topic has optional
``video``, ``quiz``, ``mini_task`` and ``reading_material`` fields. Presence is
decided here, once, when the document is converted into the explicit item list
of ``skillpath.courses.models.Topic``:

- video: present when it has a non-empty ``url``
- quiz: present when it has at least one question
- mini task / major task / capstone: present when they have a non-empty title
- reading material: present when it has non-empty ``content``
"""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .models import (
    DEFAULT_REQUIRED_WATCH_PERCENT,
    CapstoneProject,
    Course,
    GradableItem,
    Level,
    MajorTask,
    MiniTask,
    Question,
    QuestionType,
    Quiz,
    ReadingMaterial,
    Topic,
    Video,
)


class VideoDocument(BaseModel):
    url: str | None = None
    duration_seconds: int | None = Field(None, ge=0)
    required_watch_percent: int = Field(
        DEFAULT_REQUIRED_WATCH_PERCENT, ge=0, le=100
    )


class QuestionDocument(BaseModel):
    question: str
    correct_answer: str
    options: list[str] = Field(default_factory=list)
    question_type: QuestionType = QuestionType.MCQ
    explanation: str | None = None


class TaskDocument(BaseModel):
    title: str | None = None
    description: str | None = None
    requirements: list[str] = Field(default_factory=list)


class MajorTaskDocument(TaskDocument):
    estimated_time: str | None = None


class ReadingDocument(BaseModel):
    title: str | None = None
    content: str | None = None


class TopicDocument(BaseModel):
    id: str = Field(..., min_length=1)
    title: str = ""
    video: VideoDocument | None = None
    quiz: list[QuestionDocument] = Field(default_factory=list)
    mini_task: TaskDocument | None = None
    reading_material: ReadingDocument | None = None

    def to_domain(self) -> Topic:
        items: list[GradableItem] = []
        if self.video and self.video.url:
            items.append(
                Video(
                    url=self.video.url,
                    required_watch_percent=self.video.required_watch_percent,
                    duration_seconds=self.video.duration_seconds,
                )
            )
        if self.quiz:
            items.append(
                Quiz(
                    questions=tuple(
                        Question(
                            question=q.question,
                            correct_answer=q.correct_answer,
                            options=tuple(q.options),
                            question_type=q.question_type,
                            explanation=q.explanation,
                        )
                        for q in self.quiz
                    )
                )
            )
        if self.mini_task and self.mini_task.title:
            items.append(
                MiniTask(
                    title=self.mini_task.title,
                    description=self.mini_task.description,
                    requirements=tuple(self.mini_task.requirements),
                )
            )
        if self.reading_material and self.reading_material.content:
            items.append(
                ReadingMaterial(
                    content=self.reading_material.content,
                    title=self.reading_material.title,
                )
            )
        return Topic(id=self.id, title=self.title, items=tuple(items))


class LevelDocument(BaseModel):
    id: str = Field(..., min_length=1)
    title: str = ""
    topics: list[TopicDocument] = Field(default_factory=list)
    major_task: MajorTaskDocument | None = None

    def to_domain(self) -> Level:
        major_task = None
        if self.major_task and self.major_task.title:
            major_task = MajorTask(
                title=self.major_task.title,
                description=self.major_task.description,
                requirements=tuple(self.major_task.requirements),
                estimated_time=self.major_task.estimated_time,
            )
        return Level(
            id=self.id,
            title=self.title,
            topics=tuple(topic.to_domain() for topic in self.topics),
            major_task=major_task,
        )


class CourseTreeDocument(BaseModel):
    """Stored JSON document of a course content tree."""

    model_config = ConfigDict(extra="ignore")

    id: UUID
    title: str
    duration: str | None = None
    levels: list[LevelDocument] = Field(default_factory=list)
    capstone_project: TaskDocument | None = None

    @model_validator(mode="after")
    def ids_unique(self) -> "CourseTreeDocument":
        # Level, topic and course ids share the task submission key space
        level_ids = [level.id for level in self.levels]
        if len(level_ids) != len(set(level_ids)):
            msg = "Level ids must be unique within a course"
            raise ValueError(msg)
        topic_ids = [topic.id for level in self.levels for topic in level.topics]
        if len(topic_ids) != len(set(topic_ids)):
            msg = "Topic ids must be unique within a course"
            raise ValueError(msg)
        shared = set(level_ids) & set(topic_ids)
        if shared:
            msg = f"Ids used by both a level and a topic: {sorted(shared)}"
            raise ValueError(msg)
        if str(self.id) in {*level_ids, *topic_ids}:
            msg = "Level and topic ids must differ from the course id"
            raise ValueError(msg)
        return self

    def to_domain(self) -> Course:
        capstone = None
        if self.capstone_project and self.capstone_project.title:
            capstone = CapstoneProject(
                title=self.capstone_project.title,
                description=self.capstone_project.description,
            )
        return Course(
            id=self.id,
            title=self.title,
            levels=tuple(level.to_domain() for level in self.levels),
            capstone=capstone,
            duration=self.duration,
        )
