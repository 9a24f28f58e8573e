from __future__ import annotations
from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from ..deps import get_store
from ..errors import ValidationFailed
from ..progress import ProgressTracker
from ..records import Course, Enrollment, User
from ..store import DomainStore
from .auth import get_current_user
from .courses import load_course


router = APIRouter(prefix="/enrollments", tags=["enrollments"])


class EnrollRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    course_id: str = Field(alias="courseId")


@router.post("", response_model=Enrollment)
async def enroll(req: EnrollRequest, user: User = Depends(get_current_user), store: DomainStore = Depends(get_store)):
    if not user.org_id:
        raise ValidationFailed("No organization associated with user")
    course = load_course(store, req.course_id, user)
    return ProgressTracker(store).enroll(user, course)


@router.get("/my")
async def my_enrollments(user: User = Depends(get_current_user), store: DomainStore = Depends(get_store)):
    tracker = ProgressTracker(store)
    results = []
    for enrollment in store.list(Enrollment, user_id=user.id):
        course = store.get(Course, enrollment.course_id)
        total = tracker.module_count(enrollment.course_id)
        results.append({
            **enrollment.model_dump(),
            "course": course,
            "total_modules": total,
            "progress_percent": tracker.progress_percent(enrollment, total),
        })
    return results
