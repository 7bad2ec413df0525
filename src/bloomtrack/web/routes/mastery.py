"""Mastery endpoints.

Recording assessment results, per-student mastery, analytics,
leaderboards and batch decay.
"""

from datetime import datetime, timezone
from typing import Any

import structlog
from fastapi import APIRouter, HTTPException, Query, status

from bloomtrack.config.app_config import get_mastery_config
from bloomtrack.core import mastery_service
from bloomtrack.core.mastery_calculator import (
    AssessmentResult,
    TopicMastery,
    get_mastery_level,
)
from bloomtrack.db.registry_repository import EntityNotFoundError
from bloomtrack.web.schemas import (
    AssessmentResultRequest,
    DecayResponse,
    LeaderboardResponse,
    StudentMasteryListResponse,
    TopicMasteryResponse,
    TrendResponse,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/mastery", tags=["mastery"])


def _not_found(e: EntityNotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


def _to_response(mastery: TopicMastery) -> TopicMasteryResponse:
    data = mastery.to_dict()
    return TopicMasteryResponse(
        **data,
        mastery_level=get_mastery_level(
            mastery.overall_mastery, get_mastery_config().level_thresholds
        ).value,
    )


@router.post(
    "/results",
    response_model=TopicMasteryResponse,
    status_code=status.HTTP_201_CREATED,
)
async def record_result(request: AssessmentResultRequest) -> TopicMasteryResponse:
    """Record an assessment result and return the updated topic mastery."""
    result = AssessmentResult.from_dict(request.to_payload())

    try:
        mastery = mastery_service.record_assessment_result(result)
    except EntityNotFoundError as e:
        raise _not_found(e)

    return _to_response(mastery)


@router.get("/students/{student_id}", response_model=StudentMasteryListResponse)
async def get_student_mastery(student_id: str) -> StudentMasteryListResponse:
    """Topic masteries of a student, with decay applied."""
    try:
        masteries = mastery_service.get_student_mastery(student_id)
    except EntityNotFoundError as e:
        raise _not_found(e)

    items = [_to_response(m) for m in masteries]
    return StudentMasteryListResponse(student_id=student_id, masteries=items, count=len(items))


@router.get("/students/{student_id}/analytics")
async def get_student_analytics(
    student_id: str,
    growth_days: int = Query(default=30, ge=1, le=365),
) -> dict[str, Any]:
    """Mastery analytics for a student."""
    try:
        analytics = mastery_service.get_student_analytics(
            student_id, growth_period_days=growth_days
        )
    except EntityNotFoundError as e:
        raise _not_found(e)

    return analytics.to_dict()


@router.get("/students/{student_id}/topics/{topic_id}/trend", response_model=TrendResponse)
async def get_topic_trend(student_id: str, topic_id: str) -> TrendResponse:
    """Progress trend of a student on a topic."""
    try:
        trend = mastery_service.get_topic_trend(student_id, topic_id)
    except EntityNotFoundError as e:
        raise _not_found(e)

    return TrendResponse(student_id=student_id, topic_id=topic_id, trend=trend)


@router.get("/classes/{class_id}/analytics")
async def get_class_analytics(class_id: str) -> dict[str, Any]:
    """Mastery analytics for a class."""
    try:
        analytics = mastery_service.get_class_analytics(class_id)
    except EntityNotFoundError as e:
        raise _not_found(e)

    return analytics.to_dict()


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def get_leaderboard(
    partition_type: str = Query(default="global"),
    partition_id: str | None = Query(default=None),
    limit: int = Query(default=10, ge=1, le=100),
) -> LeaderboardResponse:
    """Leaderboard for a class, subject, topic, or all students."""
    try:
        leaderboard = mastery_service.get_leaderboard(partition_type, partition_id, limit)
    except EntityNotFoundError as e:
        raise _not_found(e)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return LeaderboardResponse(**leaderboard.to_dict())


@router.post("/decay", response_model=DecayResponse)
async def apply_decay() -> DecayResponse:
    """Apply time-based decay to every stored mastery."""
    now = datetime.now(timezone.utc)
    changed = mastery_service.apply_decay_to_all(now=now)
    logger.info("api.decay_applied", changed=changed)
    return DecayResponse(changed=changed, applied_at=now.isoformat())
