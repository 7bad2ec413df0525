"""Class endpoints."""

from fastapi import APIRouter, HTTPException, status

from bloomtrack.db import registry_repository as registry
from bloomtrack.db.registry_repository import EntityNotFoundError
from bloomtrack.web.schemas import (
    ClassCreate,
    ClassListResponse,
    ClassResponse,
    EnrollRequest,
    EnrollResponse,
)

router = APIRouter(prefix="/api/classes", tags=["classes"])


@router.get("", response_model=ClassListResponse)
async def list_classes() -> ClassListResponse:
    """List all classes."""
    classes = [ClassResponse.model_validate(c) for c in registry.list_classes()]
    return ClassListResponse(classes=classes, count=len(classes))


@router.post("", response_model=ClassResponse, status_code=status.HTTP_201_CREATED)
async def create_class(class_data: ClassCreate) -> ClassResponse:
    """Create a new class."""
    return ClassResponse.model_validate(registry.insert_class(class_data.name))


@router.post("/{class_id}/enroll", response_model=EnrollResponse)
async def enroll_student(class_id: str, request: EnrollRequest) -> EnrollResponse:
    """Enroll a student into a class (idempotent)."""
    try:
        enrolled = registry.enroll_student(class_id, request.student_id)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    return EnrollResponse(class_id=class_id, student_id=request.student_id, enrolled=enrolled)
