from __future__ import annotations
from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from ..deps import get_store
from ..quiz import close_session, get_session, open_session
from ..records import User
from ..store import DomainStore
from .auth import get_current_user
from .courses import load_course


router = APIRouter(prefix="/quiz", tags=["quiz"])


class OpenRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    course_id: str = Field(alias="courseId")
    module_id: str = Field(alias="moduleId")


class SelectRequest(BaseModel):
    option: int


@router.post("/sessions")
async def open_quiz(req: OpenRequest, user: User = Depends(get_current_user), store: DomainStore = Depends(get_store)):
    load_course(store, req.course_id, user)
    session = open_session(store, user, req.course_id, req.module_id)
    return session.snapshot()


@router.get("/sessions/{session_id}")
async def get_quiz(session_id: str, user: User = Depends(get_current_user)):
    return get_session(session_id, user).snapshot()


@router.post("/sessions/{session_id}/start")
async def start_quiz(session_id: str, user: User = Depends(get_current_user), store: DomainStore = Depends(get_store)):
    session = get_session(session_id, user, store)
    session.start()
    return session.snapshot()


@router.post("/sessions/{session_id}/select")
async def select_option(
    session_id: str,
    req: SelectRequest,
    user: User = Depends(get_current_user),
    store: DomainStore = Depends(get_store),
):
    session = get_session(session_id, user, store)
    session.select_option(req.option)
    return session.snapshot()


@router.post("/sessions/{session_id}/submit")
async def submit_answer(session_id: str, user: User = Depends(get_current_user), store: DomainStore = Depends(get_store)):
    session = get_session(session_id, user, store)
    attempt = session.submit_answer()
    return {"attempt": attempt, "state": session.snapshot()}


@router.post("/sessions/{session_id}/next")
async def next_question(session_id: str, user: User = Depends(get_current_user), store: DomainStore = Depends(get_store)):
    session = get_session(session_id, user, store)
    session.next()
    return session.snapshot()


@router.post("/sessions/{session_id}/previous")
async def previous_question(session_id: str, user: User = Depends(get_current_user), store: DomainStore = Depends(get_store)):
    session = get_session(session_id, user, store)
    session.previous()
    return session.snapshot()


@router.post("/sessions/{session_id}/retry")
async def retry_quiz(session_id: str, user: User = Depends(get_current_user), store: DomainStore = Depends(get_store)):
    session = get_session(session_id, user, store)
    session.retry()
    return session.snapshot()


@router.post("/sessions/{session_id}/complete")
async def complete_quiz(session_id: str, user: User = Depends(get_current_user), store: DomainStore = Depends(get_store)):
    session = get_session(session_id, user, store)
    outcome = session.complete()
    close_session(session_id)
    return {
        "passed": outcome.passed,
        "score_percent": outcome.score_percent,
        "badge": outcome.badge,
        "enrollment": outcome.enrollment,
    }
