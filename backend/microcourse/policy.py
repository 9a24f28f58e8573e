from __future__ import annotations
from typing import Iterable

from .errors import Forbidden
from .records import Course, User


ADMIN_ROLES = ("owner", "admin")


def authorize(user_roles: Iterable[str], required_roles: Iterable[str]) -> bool:
	"""True when the user holds at least one of the required roles."""
	required = set(required_roles)
	if not required:
		return True
	return bool(required.intersection(user_roles))


def ensure_roles(user: User, required_roles: Iterable[str]) -> None:
	if not authorize(user.roles, required_roles):
		raise Forbidden("Insufficient permissions")


def ensure_same_org(user: User, course: Course) -> None:
	if user.org_id is None or course.org_id != user.org_id:
		raise Forbidden("Access denied")
