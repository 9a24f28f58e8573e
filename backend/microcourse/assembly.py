"""Persists generator drafts as courses, and the end-to-end generation use case."""

from __future__ import annotations
import logging
from typing import Any, List, Optional, Tuple

from pydantic import ValidationError

from .errors import GenerationFailed, ValidationFailed
from .generator import CourseDraft, QuestionDraft, generate_course_draft, validate_generation_input
from .records import Course, Module, Question, Record, Upload, User
from .store import DomainStore


logger = logging.getLogger(__name__)


def build_questions(module_id: str, drafts: List[QuestionDraft]) -> List[Question]:
	return [
		Question(
			module_id=module_id,
			index=j,
			stem_html=q.stem_html,
			options=list(q.options),
			correct_index=q.correct_index,
			rationale_html=q.rationale_html,
		)
		for j, q in enumerate(drafts)
	]


def build_course_tree(
	draft: CourseDraft,
	org_id: str,
	creator_id: str,
	pass_score: int,
	title: Optional[str] = None,
) -> Tuple[Course, List[Record]]:
	"""Builds the course, its modules and their questions without persisting anything.

	Returns the course together with the full tree, course first.
	"""
	if not draft.modules:
		raise ValidationFailed("Course draft has no modules")
	try:
		course = Course(
			org_id=org_id,
			title=(title or "").strip() or draft.title,
			status="draft",
			pass_score=pass_score,
			est_minutes=draft.estimated_minutes,
			created_by=creator_id,
		)
		tree: List[Record] = [course]
		for i, module_draft in enumerate(draft.modules):
			if not module_draft.questions:
				raise ValidationFailed(f"Module {i} ({module_draft.title!r}) has no questions")
			module = Module(
				course_id=course.id,
				index=i,
				title=module_draft.title,
				content_html=module_draft.content_html,
				learning_objectives=list(module_draft.learning_objectives),
			)
			tree.append(module)
			tree.extend(build_questions(module.id, module_draft.questions))
	except ValidationError as e:
		raise ValidationFailed(f"Incomplete course draft: {e.errors()[0]['msg']}") from e
	return course, tree


def assemble_course(
	store: DomainStore,
	draft: CourseDraft,
	org_id: str,
	creator_id: str,
	pass_score: int,
	*,
	title: Optional[str] = None,
	upload_id: Optional[str] = None,
) -> Course:
	course, tree = build_course_tree(draft, org_id, creator_id, pass_score, title=title)
	store.create_all(tree)
	if upload_id is not None:
		store.update(Upload, upload_id, processed=True, error=None)
	logger.info("Assembled course %s with %d modules", course.id, len(draft.modules))
	return course


async def generate_course(
	store: DomainStore,
	client: Any,
	user: User,
	content: str,
	*,
	title: Optional[str] = None,
	module_count: str = "3-5",
	difficulty: str = "intermediate",
	pass_score: int = 80,
) -> Course:
	if not user.org_id:
		raise ValidationFailed("No organization associated with user")
	text = validate_generation_input(content, module_count, difficulty, pass_score)
	upload = store.create(Upload(org_id=user.org_id, source="paste", content=text))
	logger.info("Generating course for org %s from upload %s", user.org_id, upload.id)
	try:
		draft = await generate_course_draft(client, text, module_count, difficulty, pass_score)
		course = assemble_course(
			store,
			draft,
			user.org_id,
			user.id,
			pass_score,
			title=title,
			upload_id=upload.id,
		)
	except (GenerationFailed, ValidationFailed) as e:
		logger.exception("Course generation failed for upload %s", upload.id)
		store.update(Upload, upload.id, error=e.detail)
		raise GenerationFailed(e.detail) from e
	except Exception as e:
		logger.exception("Course generation failed for upload %s", upload.id)
		store.update(Upload, upload.id, error=str(e) or type(e).__name__)
		raise
	return course
