from __future__ import annotations
import logging
from typing import Any, Callable, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from ..assembly import generate_course
from ..deps import get_client_factory, get_store
from ..errors import NotFound
from ..generator import validate_generation_input
from ..policy import ensure_same_org
from ..progress import ProgressTracker
from ..records import Course, Module, Question, User, utcnow
from ..store import DomainStore
from .auth import get_current_user, require_admin


router = APIRouter(prefix="/courses", tags=["courses"])

logger = logging.getLogger(__name__)


class GenerateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = None
    content: str
    module_count: str = Field(default="3-5", alias="moduleCount")
    difficulty: str = "intermediate"
    pass_score: int = Field(default=80, alias="passScore")


class CourseUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = Field(default=None, min_length=1)
    status: Optional[Literal["draft", "published"]] = None
    pass_score: Optional[int] = Field(default=None, alias="passScore", ge=50, le=100)
    est_minutes: Optional[int] = Field(default=None, alias="estMinutes", ge=0)


def load_course(store: DomainStore, course_id: str, user: User) -> Course:
    course = store.get(Course, course_id)
    if course is None:
        raise NotFound("Course not found")
    ensure_same_org(user, course)
    return course


def course_tree(store: DomainStore, course: Course) -> Dict[str, Any]:
    modules = store.list(Module, course_id=course.id)
    return {
        "course": course,
        "modules": [
            {**m.model_dump(), "questions": store.list(Question, module_id=m.id)}
            for m in modules
        ],
    }


def delete_module_tree(store: DomainStore, module: Module) -> None:
    for question in store.list(Question, module_id=module.id):
        store.delete(Question, question.id)
    store.delete(Module, module.id)


@router.post("/generate")
async def generate(
    req: GenerateRequest,
    user: User = Depends(require_admin),
    store: DomainStore = Depends(get_store),
    client_factory: Callable[[], Any] = Depends(get_client_factory),
):
    # Reject bad input before a client is built or an upload recorded
    validate_generation_input(req.content, req.module_count, req.difficulty, req.pass_score)
    client = client_factory()
    try:
        course = await generate_course(
            store,
            client,
            user,
            req.content,
            title=req.title,
            module_count=req.module_count,
            difficulty=req.difficulty,
            pass_score=req.pass_score,
        )
    finally:
        await client.aclose()
    return {"course": course, "success": True}


@router.get("", response_model=List[Course])
async def list_courses(user: User = Depends(get_current_user), store: DomainStore = Depends(get_store)):
    if not user.org_id:
        return []
    return store.list(Course, org_id=user.org_id)


@router.get("/{course_id}")
async def get_course(course_id: str, user: User = Depends(get_current_user), store: DomainStore = Depends(get_store)):
    course = load_course(store, course_id, user)
    return course_tree(store, course)


@router.patch("/{course_id}", response_model=Course)
async def update_course(
    course_id: str,
    req: CourseUpdate,
    user: User = Depends(require_admin),
    store: DomainStore = Depends(get_store),
):
    course = load_course(store, course_id, user)
    changes = req.model_dump(exclude_none=True)
    if changes.get("status") == "published" and course.status != "published":
        changes["published_at"] = utcnow()
    elif changes.get("status") == "draft":
        changes["published_at"] = None
    updated = store.update(Course, course.id, **changes)
    if updated is None:
        raise NotFound("Course not found")
    return updated


@router.delete("/{course_id}")
async def delete_course(course_id: str, user: User = Depends(require_admin), store: DomainStore = Depends(get_store)):
    course = load_course(store, course_id, user)
    for module in store.list(Module, course_id=course.id):
        delete_module_tree(store, module)
    store.delete(Course, course.id)
    logger.info("Deleted course %s", course.id)
    return {"success": True}


@router.get("/{course_id}/modules/status")
async def module_status(course_id: str, user: User = Depends(get_current_user), store: DomainStore = Depends(get_store)):
    course = load_course(store, course_id, user)
    tracker = ProgressTracker(store)
    enrollment = tracker.get_enrollment(user.id, course.id)
    modules = store.list(Module, course_id=course.id)
    return {
        "enrolled": enrollment is not None,
        "completed": enrollment is not None and enrollment.status == "completed",
        "progress_percent": tracker.progress_percent(enrollment, len(modules)) if enrollment else 0,
        "modules": [
            {
                "id": m.id,
                "index": m.index,
                "title": m.title,
                "unlocked": tracker.module_unlocked(enrollment, m.index),
                "completed": tracker.module_completed(enrollment, m.index),
            }
            for m in modules
        ],
    }
