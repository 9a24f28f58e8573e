from __future__ import annotations
import logging
from typing import Any, Callable, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from ..assembly import build_questions
from ..deps import get_client_factory, get_store
from ..errors import NotFound
from ..generator import improve_module_content, regenerate_quiz
from ..records import Module, Question, User
from ..store import DomainStore
from .auth import require_admin
from .courses import delete_module_tree, load_course


router = APIRouter(prefix="/modules", tags=["modules"])

logger = logging.getLogger(__name__)


class ModuleUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = Field(default=None, min_length=1)
    content_html: Optional[str] = Field(default=None, alias="contentHtml")
    learning_objectives: Optional[List[str]] = Field(default=None, alias="learningObjectives", min_length=1)


class ImproveRequest(BaseModel):
    feedback: Optional[str] = None


class RegenerateQuizRequest(BaseModel):
    difficulty: str = "intermediate"


def load_module(store: DomainStore, module_id: str, user: User) -> Module:
    module = store.get(Module, module_id)
    if module is None:
        raise NotFound("Module not found")
    load_course(store, module.course_id, user)
    return module


@router.patch("/{module_id}", response_model=Module)
async def update_module(
    module_id: str,
    req: ModuleUpdate,
    user: User = Depends(require_admin),
    store: DomainStore = Depends(get_store),
):
    module = load_module(store, module_id, user)
    updated = store.update(Module, module.id, **req.model_dump(exclude_none=True))
    if updated is None:
        raise NotFound("Module not found")
    return updated


@router.delete("/{module_id}")
async def delete_module(module_id: str, user: User = Depends(require_admin), store: DomainStore = Depends(get_store)):
    module = load_module(store, module_id, user)
    delete_module_tree(store, module)
    # Keep indices dense: 0, 1, 2, ...
    for i, remaining in enumerate(store.list(Module, course_id=module.course_id)):
        if remaining.index != i:
            store.update(Module, remaining.id, index=i)
    logger.info("Deleted module %s from course %s", module.id, module.course_id)
    return {"success": True}


@router.post("/{module_id}/improve", response_model=Module)
async def improve_module(
    module_id: str,
    req: ImproveRequest,
    user: User = Depends(require_admin),
    store: DomainStore = Depends(get_store),
    client_factory: Callable[[], Any] = Depends(get_client_factory),
):
    module = load_module(store, module_id, user)
    client = client_factory()
    try:
        revision = await improve_module_content(client, module.content_html, req.feedback)
    finally:
        await client.aclose()
    updated = store.update(
        Module,
        module.id,
        content_html=revision.content_html,
        learning_objectives=revision.learning_objectives,
    )
    if updated is None:
        raise NotFound("Module not found")
    return updated


@router.post("/{module_id}/regenerate-quiz", response_model=List[Question])
async def regenerate_module_quiz(
    module_id: str,
    req: RegenerateQuizRequest,
    user: User = Depends(require_admin),
    store: DomainStore = Depends(get_store),
    client_factory: Callable[[], Any] = Depends(get_client_factory),
):
    module = load_module(store, module_id, user)
    client = client_factory()
    try:
        drafts = await regenerate_quiz(client, module.content_html, req.difficulty)
    finally:
        await client.aclose()
    replacement = build_questions(module.id, drafts)
    for question in store.list(Question, module_id=module.id):
        store.delete(Question, question.id)
    store.create_all(replacement)
    return store.list(Question, module_id=module.id)
