from __future__ import annotations
from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from ..deps import get_store
from ..errors import ValidationFailed
from ..records import Badge, Course, Enrollment, User
from ..store import DomainStore
from .auth import require_admin


router = APIRouter(prefix="/analytics", tags=["analytics"])


def overview(store: DomainStore, org_id: str) -> Dict[str, Any]:
    courses = store.list(Course, org_id=org_id)
    enrollments: List[Enrollment] = store.list(Enrollment, org_id=org_id)
    completed = [e for e in enrollments if e.status == "completed" and e.completed_at is not None]
    certificates = sum(len(store.list(Badge, course_id=c.id)) for c in courses)
    durations = [(e.completed_at - e.started_at).total_seconds() / 60 for e in completed]
    return {
        "total_courses": len(courses),
        "active_courses": sum(1 for c in courses if c.status == "published"),
        "active_learners": len({e.user_id for e in enrollments}),
        "total_enrollments": len(enrollments),
        "completion_rate": round(100 * len(completed) / len(enrollments)) if enrollments else 0,
        "certificates_issued": certificates,
        "avg_completion_minutes": round(sum(durations) / len(durations), 1) if durations else None,
    }


@router.get("/overview")
async def analytics_overview(user: User = Depends(require_admin), store: DomainStore = Depends(get_store)):
    if not user.org_id:
        raise ValidationFailed("No organization associated with user")
    return overview(store, user.org_id)
