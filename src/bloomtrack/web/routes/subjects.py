"""Subject and topic endpoints."""

from fastapi import APIRouter, HTTPException, status

from bloomtrack.db import registry_repository as registry
from bloomtrack.db.registry_repository import EntityNotFoundError
from bloomtrack.web.schemas import (
    SubjectCreate,
    SubjectListResponse,
    SubjectResponse,
    TopicCreate,
    TopicListResponse,
    TopicResponse,
)

router = APIRouter(prefix="/api/subjects", tags=["subjects"])


@router.get("", response_model=SubjectListResponse)
async def list_subjects() -> SubjectListResponse:
    """List all subjects."""
    subjects = [SubjectResponse.model_validate(s) for s in registry.list_subjects()]
    return SubjectListResponse(subjects=subjects, count=len(subjects))


@router.post("", response_model=SubjectResponse, status_code=status.HTTP_201_CREATED)
async def create_subject(subject_data: SubjectCreate) -> SubjectResponse:
    """Create a new subject."""
    return SubjectResponse.model_validate(registry.insert_subject(subject_data.name))


@router.get("/{subject_id}/topics", response_model=TopicListResponse)
async def list_topics(subject_id: str) -> TopicListResponse:
    """List the topics of a subject."""
    if registry.get_subject(subject_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Subject '{subject_id}' not found",
        )

    topics = [TopicResponse.model_validate(t) for t in registry.list_topics(subject_id)]
    return TopicListResponse(topics=topics, count=len(topics))


@router.post(
    "/{subject_id}/topics",
    response_model=TopicResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_topic(subject_id: str, topic_data: TopicCreate) -> TopicResponse:
    """Create a topic under a subject."""
    try:
        topic = registry.insert_topic(subject_id, topic_data.title)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    return TopicResponse.model_validate(topic)
