"""Persistence for domain records.

``DomainStore`` is what the services depend on. ``SqlStore`` backs it with a
SQLAlchemy session; ``MemoryStore`` keeps everything in process dicts.
"""

from __future__ import annotations
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Type, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session

from .errors import InvalidTransition
from .records import (
	Attempt,
	AuthSession,
	Badge,
	Course,
	Enrollment,
	Module,
	Organization,
	Question,
	Record,
	Upload,
	User,
)
from .models import (
	AttemptRow,
	AuthSessionRow,
	BadgeRow,
	CourseRow,
	EnrollmentRow,
	ModuleRow,
	OrganizationRow,
	QuestionRow,
	UploadRow,
	UserRow,
)

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=Record)

ROW_FOR: Dict[Type[Record], Any] = {
	User: UserRow,
	Organization: OrganizationRow,
	Course: CourseRow,
	Module: ModuleRow,
	Question: QuestionRow,
	Enrollment: EnrollmentRow,
	Attempt: AttemptRow,
	Badge: BadgeRow,
	Upload: UploadRow,
	AuthSession: AuthSessionRow,
}

APPEND_ONLY = (Attempt,)


def _ordered_by_index(kind: Type[Record]) -> bool:
	return "index" in kind.model_fields


def _check_mutable(kind: Type[Record]) -> None:
	if issubclass(kind, APPEND_ONLY):
		raise InvalidTransition(f"{kind.__name__} records are append-only")


def _merge(record: R, changes: Dict[str, Any]) -> R:
	unknown = set(changes) - set(type(record).model_fields)
	if unknown or "id" in changes:
		raise ValueError(f"cannot update fields {sorted(unknown | ({'id'} & set(changes)))}")
	data = record.model_dump()
	data.update(changes)
	return type(record).model_validate(data)


class DomainStore(ABC):
	"""Create/get/update/delete by id plus filtered listing per record type.

	``list`` returns records ordered by ``index`` for indexed types (modules,
	questions); other types come back in insertion order, which callers must
	not rely on.
	"""

	@abstractmethod
	def create(self, record: R) -> R: ...

	@abstractmethod
	def create_all(self, records: Iterable[Record]) -> None:
		"""Persist every record or none of them."""

	@abstractmethod
	def get(self, kind: Type[R], record_id: str) -> Optional[R]: ...

	@abstractmethod
	def update(self, kind: Type[R], record_id: str, **changes: Any) -> Optional[R]: ...

	@abstractmethod
	def delete(self, kind: Type[Record], record_id: str) -> bool: ...

	@abstractmethod
	def list(self, kind: Type[R], **filters: Any) -> List[R]: ...

	def find(self, kind: Type[R], **filters: Any) -> Optional[R]:
		found = self.list(kind, **filters)
		return found[0] if found else None


class MemoryStore(DomainStore):
	def __init__(self) -> None:
		self._tables: Dict[Type[Record], Dict[str, Record]] = {kind: {} for kind in ROW_FOR}

	def create(self, record: R) -> R:
		self._check_unique(record)
		self._tables[type(record)][record.id] = record.model_copy(deep=True)
		return record.model_copy(deep=True)

	def create_all(self, records: Iterable[Record]) -> None:
		staged = list(records)
		for record in staged:
			self._check_unique(record)
		for record in staged:
			self._tables[type(record)][record.id] = record.model_copy(deep=True)

	def get(self, kind: Type[R], record_id: str) -> Optional[R]:
		record = self._tables[kind].get(record_id)
		return record.model_copy(deep=True) if record is not None else None

	def update(self, kind: Type[R], record_id: str, **changes: Any) -> Optional[R]:
		_check_mutable(kind)
		current = self._tables[kind].get(record_id)
		if current is None:
			return None
		updated = _merge(current, changes)
		self._tables[kind][record_id] = updated
		return updated.model_copy(deep=True)

	def delete(self, kind: Type[Record], record_id: str) -> bool:
		_check_mutable(kind)
		return self._tables[kind].pop(record_id, None) is not None

	def list(self, kind: Type[R], **filters: Any) -> List[R]:
		matches = [
			r.model_copy(deep=True)
			for r in self._tables[kind].values()
			if all(getattr(r, k) == v for k, v in filters.items())
		]
		if _ordered_by_index(kind):
			matches.sort(key=lambda r: r.index)
		return matches

	def _check_unique(self, record: Record) -> None:
		table = self._tables[type(record)]
		if record.id in table:
			raise ValueError(f"duplicate {type(record).__name__} id {record.id}")
		if isinstance(record, User) and any(u.email == record.email for u in table.values()):
			raise ValueError(f"email {record.email} already registered")


class SqlStore(DomainStore):
	def __init__(self, db: Session) -> None:
		self.db = db

	def _to_row(self, record: Record) -> Any:
		return ROW_FOR[type(record)](**record.model_dump())

	def _commit(self) -> None:
		try:
			self.db.commit()
		except Exception:
			logger.warning("Rolling back failed commit")
			self.db.rollback()
			raise

	def create(self, record: R) -> R:
		self.db.add(self._to_row(record))
		self._commit()
		return record

	def create_all(self, records: Iterable[Record]) -> None:
		try:
			self.db.add_all([self._to_row(r) for r in records])
			self.db.commit()
		except Exception:
			logger.warning("Rolling back batch insert")
			self.db.rollback()
			raise

	def get(self, kind: Type[R], record_id: str) -> Optional[R]:
		row = self.db.get(ROW_FOR[kind], record_id)
		return kind.model_validate(row) if row is not None else None

	def update(self, kind: Type[R], record_id: str, **changes: Any) -> Optional[R]:
		_check_mutable(kind)
		row = self.db.get(ROW_FOR[kind], record_id)
		if row is None:
			return None
		updated = _merge(kind.model_validate(row), changes)
		for key, value in updated.model_dump().items():
			setattr(row, key, value)
		self.db.add(row)
		self._commit()
		return updated

	def delete(self, kind: Type[Record], record_id: str) -> bool:
		_check_mutable(kind)
		row = self.db.get(ROW_FOR[kind], record_id)
		if row is None:
			return False
		self.db.delete(row)
		self._commit()
		return True

	def list(self, kind: Type[R], **filters: Any) -> List[R]:
		row_cls = ROW_FOR[kind]
		stmt = select(row_cls).filter_by(**filters)
		if _ordered_by_index(kind):
			stmt = stmt.order_by(row_cls.index)
		return [kind.model_validate(row) for row in self.db.scalars(stmt)]
