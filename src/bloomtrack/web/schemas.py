"""Pydantic schemas for the Web API.

Serialization models for the registry (students, classes, subjects,
topics) and for mastery results and analytics.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field, field_validator

from bloomtrack.core.blooms import parse_level


# =============================================================================
# STUDENT SCHEMAS
# =============================================================================


class StudentCreate(BaseModel):
    """Request body for creating a student."""

    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(default="", max_length=200)


class StudentResponse(BaseModel):
    """Response for a student."""

    student_id: str
    name: str
    email: str
    created_at: str

    model_config = {"from_attributes": True}


class StudentListResponse(BaseModel):
    """Response for list of students."""

    students: list[StudentResponse]
    count: int


# =============================================================================
# CLASS SCHEMAS
# =============================================================================


class ClassCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)


class ClassResponse(BaseModel):
    class_id: str
    name: str
    created_at: str

    model_config = {"from_attributes": True}


class ClassListResponse(BaseModel):
    classes: list[ClassResponse]
    count: int


class EnrollRequest(BaseModel):
    student_id: str


class EnrollResponse(BaseModel):
    class_id: str
    student_id: str
    enrolled: bool  # False if already enrolled


# =============================================================================
# SUBJECT / TOPIC SCHEMAS
# =============================================================================


class SubjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)


class SubjectResponse(BaseModel):
    subject_id: str
    name: str
    created_at: str

    model_config = {"from_attributes": True}


class SubjectListResponse(BaseModel):
    subjects: list[SubjectResponse]
    count: int


class TopicCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)


class TopicResponse(BaseModel):
    topic_id: str
    subject_id: str
    title: str
    created_at: str

    model_config = {"from_attributes": True}


class TopicListResponse(BaseModel):
    topics: list[TopicResponse]
    count: int


# =============================================================================
# MASTERY SCHEMAS
# =============================================================================


class LevelResultSchema(BaseModel):
    """Raw score on one Bloom's level."""

    score: float = Field(..., ge=0)
    max_score: float = Field(..., ge=0)


class AssessmentResultRequest(BaseModel):
    """Request to record an assessment result."""

    student_id: str
    topic_id: str
    assessment_id: str = ""
    level_results: dict[str, LevelResultSchema] = Field(..., min_length=1)
    completed_at: datetime | None = None

    @field_validator("level_results")
    @classmethod
    def _known_levels(cls, value: dict[str, LevelResultSchema]) -> dict[str, LevelResultSchema]:
        seen = set()
        for key in value:
            level = parse_level(key)
            if level in seen:
                raise ValueError(f"Duplicate Bloom's level: {key!r}")
            seen.add(level)
        return value

    def to_payload(self) -> dict[str, Any]:
        """Mapping accepted by AssessmentResult.from_dict."""
        return {
            "student_id": self.student_id,
            "topic_id": self.topic_id,
            "assessment_id": self.assessment_id,
            "level_results": {k: v.model_dump() for k, v in self.level_results.items()},
            "completed_at": self.completed_at or datetime.now(timezone.utc),
        }


class TopicMasteryResponse(BaseModel):
    student_id: str
    topic_id: str
    subject_id: str
    levels: dict[str, float]
    overall_mastery: float
    mastery_level: str
    last_assessment_date: str | None
    assessment_count: int


class StudentMasteryListResponse(BaseModel):
    student_id: str
    masteries: list[TopicMasteryResponse]
    count: int


class TrendResponse(BaseModel):
    student_id: str
    topic_id: str
    trend: str  # improving | declining | stable


class DecayResponse(BaseModel):
    changed: int
    applied_at: str


class LeaderboardResponse(BaseModel):
    partition_type: str
    partition_id: str | None
    total_students: int
    entries: list[dict[str, Any]]


# =============================================================================
# HEALTH SCHEMAS
# =============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"  # ok | degraded
    version: str = "0.1.0"
    database: str = "ok"
    mastery_records: int = 0
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
