from __future__ import annotations
import logging
from typing import List, Optional

from .records import Badge, Course
from .settings import settings
from .store import DomainStore


logger = logging.getLogger(__name__)


def completion_badge_name(course: Course) -> str:
	return f"{course.title} Completion"


class BadgeIssuer:
	def __init__(self, store: DomainStore, *, deduplicate: Optional[bool] = None) -> None:
		self.store = store
		self.deduplicate = settings.badge_deduplicate if deduplicate is None else deduplicate

	def award(self, user_id: str, course_id: str, name: str) -> Badge:
		if self.deduplicate:
			existing = self.store.find(Badge, user_id=user_id, course_id=course_id)
			if existing is not None:
				return existing
		# certificate_url is filled in later by whatever renders certificates
		badge = self.store.create(Badge(user_id=user_id, course_id=course_id, name=name))
		logger.info("Awarded badge %r to user %s for course %s", name, user_id, course_id)
		return badge

	def badges_for(self, user_id: str) -> List[Badge]:
		return self.store.list(Badge, user_id=user_id)
