from __future__ import annotations
from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from ..badges import BadgeIssuer
from ..deps import get_store
from ..errors import NotFound, ValidationFailed
from ..records import Attempt, Badge, Module, Question, User
from ..store import DomainStore
from .auth import get_current_user
from .courses import load_course


router = APIRouter(tags=["attempts"])


class AttemptRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question_id: str = Field(alias="questionId")
    selected_index: int = Field(alias="selectedIndex")


class BadgeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    course_id: str = Field(alias="courseId")
    name: str = Field(min_length=1)


@router.post("/attempts", response_model=Attempt)
async def record_attempt(req: AttemptRequest, user: User = Depends(get_current_user), store: DomainStore = Depends(get_store)):
    # No unlock check here: any learner in the org may log an attempt for any question
    question = store.get(Question, req.question_id)
    if question is None:
        raise NotFound("Question not found")
    module = store.get(Module, question.module_id)
    if module is None:
        raise NotFound("Module not found")
    load_course(store, module.course_id, user)
    if not 0 <= req.selected_index < len(question.options):
        raise ValidationFailed(f"selectedIndex must be between 0 and {len(question.options) - 1}")
    return store.create(
        Attempt(
            user_id=user.id,
            course_id=module.course_id,
            module_id=module.id,
            question_id=question.id,
            selected_index=req.selected_index,
            is_correct=req.selected_index == question.correct_index,
        )
    )


@router.get("/attempts/{course_id}", response_model=List[Attempt])
async def my_attempts(course_id: str, user: User = Depends(get_current_user), store: DomainStore = Depends(get_store)):
    return store.list(Attempt, user_id=user.id, course_id=course_id)


@router.post("/badges", response_model=Badge)
async def award_badge(req: BadgeRequest, user: User = Depends(get_current_user), store: DomainStore = Depends(get_store)):
    course = load_course(store, req.course_id, user)
    return BadgeIssuer(store).award(user.id, course.id, req.name)


@router.get("/badges/my", response_model=List[Badge])
async def my_badges(user: User = Depends(get_current_user), store: DomainStore = Depends(get_store)):
    return BadgeIssuer(store).badges_for(user.id)
