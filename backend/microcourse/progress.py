"""Enrollment lookup and the forward-only module progress cursor."""

from __future__ import annotations
import logging
from typing import Optional

from .errors import InvalidTransition, NotFound
from .records import Course, Enrollment, Module, User, utcnow
from .store import DomainStore


logger = logging.getLogger(__name__)


class ProgressTracker:
	def __init__(self, store: DomainStore) -> None:
		self.store = store

	def get_enrollment(self, user_id: str, course_id: str) -> Optional[Enrollment]:
		return self.store.find(Enrollment, user_id=user_id, course_id=course_id)

	def enroll(self, user: User, course: Course) -> Enrollment:
		"""Returns the learner's enrollment in the course, creating it on first call."""
		existing = self.get_enrollment(user.id, course.id)
		if existing is not None:
			return existing
		enrollment = self.store.create(
			Enrollment(org_id=course.org_id, course_id=course.id, user_id=user.id)
		)
		logger.info("Enrolled user %s in course %s", user.id, course.id)
		return enrollment

	def module_count(self, course_id: str) -> int:
		return len(self.store.list(Module, course_id=course_id))

	@staticmethod
	def module_unlocked(enrollment: Optional[Enrollment], module_index: int) -> bool:
		if enrollment is None:
			# Preview access
			return module_index == 0
		if enrollment.status == "completed":
			return True
		return module_index <= enrollment.progress.current_module_index

	@staticmethod
	def module_completed(enrollment: Optional[Enrollment], module_index: int) -> bool:
		if enrollment is None:
			return False
		if enrollment.status == "completed":
			return True
		return module_index < enrollment.progress.current_module_index

	@staticmethod
	def progress_percent(enrollment: Enrollment, total_modules: int) -> int:
		if enrollment.status == "completed":
			return 100
		if total_modules <= 0:
			return 0
		cursor = min(enrollment.progress.current_module_index, total_modules)
		return (200 * cursor + total_modules) // (2 * total_modules)

	def advance(self, enrollment: Enrollment, passed_module_index: int) -> Enrollment:
		"""Records that the learner passed a module.

		Passing the module at the cursor moves it to the next one, or completes
		the enrollment when it was the last module. Re-passing an earlier module
		changes nothing. The stored record is the source of truth, not the
		copy passed in.
		"""
		current = self.store.get(Enrollment, enrollment.id)
		if current is None:
			raise NotFound("Enrollment not found")
		if current.status == "completed":
			return current
		cursor = current.progress.current_module_index
		if passed_module_index < cursor:
			return current
		if passed_module_index > cursor:
			raise InvalidTransition(f"Module {passed_module_index} is locked (current module is {cursor})")

		last_index = self.module_count(current.course_id) - 1
		if passed_module_index >= last_index:
			updated = self.store.update(
				Enrollment,
				current.id,
				status="completed",
				completed_at=utcnow(),
			)
			logger.info("Enrollment %s completed", current.id)
		else:
			updated = self.store.update(
				Enrollment,
				current.id,
				progress=current.progress.advanced_to(passed_module_index + 1),
			)
			logger.info("Enrollment %s advanced to module %d", current.id, passed_module_index + 1)
		if updated is None:
			raise NotFound("Enrollment not found")
		return updated
