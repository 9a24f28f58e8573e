"""One learner's pass through one module: content, then quiz, then results."""

from __future__ import annotations
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional

from .badges import BadgeIssuer, completion_badge_name
from .errors import InvalidTransition, NotFound, ValidationFailed
from .progress import ProgressTracker
from .records import Attempt, Badge, Course, Enrollment, Module, Question, User, utcnow
from .store import DomainStore


logger = logging.getLogger(__name__)

Phase = Literal["content", "quiz", "results"]


def score_percent(correct: int, total: int) -> int:
	# Round half up; round() would send 62.5 to 62
	return (200 * correct + total) // (2 * total)


@dataclass(frozen=True)
class QuizOutcome:
	passed: bool
	score_percent: int
	badge: Optional[Badge]
	enrollment: Optional[Enrollment]


class QuizSession:
	def __init__(
		self,
		store: DomainStore,
		tracker: ProgressTracker,
		issuer: BadgeIssuer,
		*,
		user_id: str,
		course: Course,
		module: Module,
		questions: List[Question],
		total_modules: int,
		enrollment: Optional[Enrollment] = None,
		session_id: Optional[str] = None,
	) -> None:
		if not questions:
			raise ValidationFailed("Module has no questions")
		self.session_id = session_id or uuid.uuid4().hex
		self.store = store
		self.tracker = tracker
		self.issuer = issuer
		self.user_id = user_id
		self.course = course
		self.module = module
		self.questions = questions
		self.total_modules = total_modules
		self.enrollment = enrollment
		self.phase: Phase = "content"
		self.current_question_index = 0
		self.selected: List[Optional[int]] = [None] * len(questions)
		self.submitted: List[bool] = [False] * len(questions)
		self.correct_count = 0
		self.show_feedback = False
		self.final_score_percent: Optional[int] = None
		self.passed = False
		self.badge: Optional[Badge] = None
		self.closed = False
		self.last_active_at = utcnow()

	def attach(self, store: DomainStore, issuer: Optional[BadgeIssuer] = None) -> None:
		# Sessions outlive the request whose store opened them
		self.store = store
		self.tracker = ProgressTracker(store)
		self.issuer = issuer or BadgeIssuer(store, deduplicate=self.issuer.deduplicate)

	@property
	def current_question(self) -> Question:
		return self.questions[self.current_question_index]

	@property
	def is_last_question(self) -> bool:
		return self.current_question_index == len(self.questions) - 1

	@property
	def is_final_module(self) -> bool:
		return self.module.index == self.total_modules - 1

	def _require_phase(self, phase: Phase) -> None:
		if self.closed:
			raise InvalidTransition("Quiz session is already complete")
		if self.phase != phase:
			raise InvalidTransition(f"Not allowed in the {self.phase} phase")

	def start(self) -> None:
		self._require_phase("content")
		self.phase = "quiz"

	def select_option(self, option_index: int) -> None:
		self._require_phase("quiz")
		i = self.current_question_index
		if self.submitted[i]:
			raise InvalidTransition("Question already submitted")
		if not 0 <= option_index < len(self.current_question.options):
			raise ValidationFailed(f"option must be between 0 and {len(self.current_question.options) - 1}")
		self.selected[i] = option_index

	def submit_answer(self) -> Attempt:
		self._require_phase("quiz")
		i = self.current_question_index
		if self.submitted[i]:
			raise InvalidTransition("Question already submitted")
		choice = self.selected[i]
		if choice is None:
			raise InvalidTransition("Select an option before submitting")
		question = self.current_question
		is_correct = choice == question.correct_index
		attempt = self.store.create(
			Attempt(
				user_id=self.user_id,
				course_id=self.course.id,
				module_id=self.module.id,
				question_id=question.id,
				selected_index=choice,
				is_correct=is_correct,
			)
		)
		self.submitted[i] = True
		if is_correct:
			self.correct_count += 1
		self.show_feedback = True
		return attempt

	def next(self) -> None:
		self._require_phase("quiz")
		if not self.submitted[self.current_question_index]:
			raise InvalidTransition("Submit an answer before moving on")
		if not self.is_last_question:
			self.current_question_index += 1
			self.show_feedback = self.submitted[self.current_question_index]
			return
		self.final_score_percent = score_percent(self.correct_count, len(self.questions))
		self.passed = self.final_score_percent >= self.course.pass_score
		self.phase = "results"
		logger.info(
			"User %s scored %d%% on module %s (pass %d%%)",
			self.user_id,
			self.final_score_percent,
			self.module.id,
			self.course.pass_score,
		)
		if self.passed and self.is_final_module:
			self.badge = self.issuer.award(self.user_id, self.course.id, completion_badge_name(self.course))

	def previous(self) -> None:
		self._require_phase("quiz")
		if self.current_question_index == 0:
			raise InvalidTransition("Already at the first question")
		self.current_question_index -= 1
		self.show_feedback = self.submitted[self.current_question_index]

	def retry(self) -> None:
		self._require_phase("results")
		if self.passed:
			raise InvalidTransition("Module already passed")
		self.phase = "quiz"
		self.current_question_index = 0
		self.selected = [None] * len(self.questions)
		self.submitted = [False] * len(self.questions)
		self.correct_count = 0
		self.show_feedback = False
		self.final_score_percent = None

	def complete(self) -> QuizOutcome:
		self._require_phase("results")
		# Another session may have moved the cursor since this one opened
		self.enrollment = self.tracker.get_enrollment(self.user_id, self.course.id)
		if self.passed and self.enrollment is not None:
			self.enrollment = self.tracker.advance(self.enrollment, self.module.index)
		self.closed = True
		return QuizOutcome(
			passed=self.passed,
			score_percent=self.final_score_percent or 0,
			badge=self.badge,
			enrollment=self.enrollment,
		)

	def snapshot(self) -> Dict[str, Any]:
		state: Dict[str, Any] = {
			"session_id": self.session_id,
			"course_id": self.course.id,
			"module_id": self.module.id,
			"module_index": self.module.index,
			"total_modules": self.total_modules,
			"phase": self.phase,
			"pass_score": self.course.pass_score,
			"total_questions": len(self.questions),
			"correct_count": self.correct_count,
			"closed": self.closed,
		}
		if self.phase == "content":
			state["module"] = {
				"title": self.module.title,
				"content_html": self.module.content_html,
				"learning_objectives": self.module.learning_objectives,
			}
		elif self.phase == "quiz":
			i = self.current_question_index
			question = self.current_question
			state["current_question_index"] = i
			state["question"] = {
				"id": question.id,
				"index": question.index,
				"stem_html": question.stem_html,
				"options": question.options,
			}
			state["selected"] = self.selected[i]
			state["submitted"] = self.submitted[i]
			state["show_feedback"] = self.show_feedback
			if self.show_feedback:
				state["feedback"] = {
					"correct_index": question.correct_index,
					"selected_index": self.selected[i],
					"is_correct": self.selected[i] == question.correct_index,
					"rationale_html": question.rationale_html,
				}
		else:
			state["results"] = {
				"score_percent": self.final_score_percent,
				"passed": self.passed,
				"badge": self.badge.model_dump(mode="json") if self.badge else None,
			}
		return state


_sessions: Dict[str, QuizSession] = {}


def open_session(
	store: DomainStore,
	user: User,
	course_id: str,
	module_id: str,
	*,
	issuer: Optional[BadgeIssuer] = None,
) -> QuizSession:
	course = store.get(Course, course_id)
	if course is None:
		raise NotFound("Course not found")
	module = store.get(Module, module_id)
	if module is None or module.course_id != course.id:
		raise NotFound("Module not found")
	tracker = ProgressTracker(store)
	enrollment = tracker.get_enrollment(user.id, course.id)
	if not tracker.module_unlocked(enrollment, module.index):
		raise InvalidTransition("Module is locked")
	session = QuizSession(
		store,
		tracker,
		issuer or BadgeIssuer(store),
		user_id=user.id,
		course=course,
		module=module,
		questions=store.list(Question, module_id=module.id),
		total_modules=tracker.module_count(course.id),
		enrollment=enrollment,
	)
	_sessions[session.session_id] = session
	return session


def get_session(session_id: str, user: User, store: Optional[DomainStore] = None) -> QuizSession:
	session = _sessions.get(session_id)
	if session is None or session.user_id != user.id:
		raise NotFound("Quiz session not found")
	if store is not None:
		session.attach(store)
	session.last_active_at = utcnow()
	return session


def close_session(session_id: str) -> None:
	_sessions.pop(session_id, None)
