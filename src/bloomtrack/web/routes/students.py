"""Student endpoints."""

from fastapi import APIRouter, HTTPException, status

from bloomtrack.db import registry_repository as registry
from bloomtrack.db.registry_repository import DuplicateEntityError
from bloomtrack.utils.validators import validate_email
from bloomtrack.web.schemas import (
    StudentCreate,
    StudentListResponse,
    StudentResponse,
)

router = APIRouter(prefix="/api/students", tags=["students"])


@router.get("", response_model=StudentListResponse)
async def list_students() -> StudentListResponse:
    """List all students."""
    students = [StudentResponse.model_validate(s) for s in registry.list_students()]
    return StudentListResponse(students=students, count=len(students))


@router.get("/{student_id}", response_model=StudentResponse)
async def get_student(student_id: str) -> StudentResponse:
    """Get a specific student by ID."""
    student = registry.get_student(student_id)

    if student is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Student '{student_id}' not found",
        )

    return StudentResponse.model_validate(student)


@router.post("", response_model=StudentResponse, status_code=status.HTTP_201_CREATED)
async def create_student(student_data: StudentCreate) -> StudentResponse:
    """Create a new student."""
    # Validate email if provided
    if student_data.email and not validate_email(student_data.email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid email format",
        )

    try:
        student = registry.insert_student(student_data.name, student_data.email)
    except DuplicateEntityError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    return StudentResponse.model_validate(student)


@router.delete("/{student_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_student(student_id: str) -> None:
    """Delete a student by ID."""
    if not registry.delete_student(student_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Student '{student_id}' not found",
        )
