"""Domain records shared by the stores, the services and the routers."""

from __future__ import annotations
import uuid
from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


Role = Literal["owner", "admin", "learner"]
CourseStatus = Literal["draft", "published"]
EnrollmentStatus = Literal["in_progress", "completed"]


def new_id() -> str:
	return uuid.uuid4().hex


def utcnow() -> datetime:
	# Naive UTC, which is what SQLite hands back
	return datetime.now(timezone.utc).replace(tzinfo=None)


class Record(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	id: str = Field(default_factory=new_id)


class User(Record):
	email: str
	display_name: str
	org_id: Optional[str] = None
	roles: List[Role] = Field(default_factory=lambda: ["learner"])
	created_at: datetime = Field(default_factory=utcnow)


class Organization(Record):
	name: str
	owner_id: Optional[str] = None
	plan_tier: str = "starter"
	created_at: datetime = Field(default_factory=utcnow)


class Course(Record):
	org_id: str
	title: str
	status: CourseStatus = "draft"
	pass_score: int = Field(default=80, ge=50, le=100)
	est_minutes: Optional[int] = None
	created_by: str
	published_at: Optional[datetime] = None
	created_at: datetime = Field(default_factory=utcnow)


class Module(Record):
	course_id: str
	index: int = Field(ge=0)
	title: str
	content_html: str
	learning_objectives: List[str] = Field(min_length=1)


class Question(Record):
	module_id: str
	index: int = Field(ge=0)
	stem_html: str
	options: List[str] = Field(min_length=2)
	correct_index: int = Field(ge=0)
	rationale_html: str

	@model_validator(mode="after")
	def _correct_index_in_range(self) -> "Question":
		if self.correct_index >= len(self.options):
			raise ValueError(f"correct_index {self.correct_index} out of range for {len(self.options)} options")
		return self


class Progress(BaseModel):
	"""Position of the learner's next module; only ever moves forward."""

	current_module_index: int = Field(default=0, ge=0)

	def advanced_to(self, module_index: int) -> "Progress":
		if module_index < self.current_module_index:
			raise ValueError(
				f"progress cannot move backward ({self.current_module_index} -> {module_index})"
			)
		return Progress(current_module_index=module_index)


class Enrollment(Record):
	org_id: str
	course_id: str
	user_id: str
	status: EnrollmentStatus = "in_progress"
	progress: Progress = Field(default_factory=Progress)
	started_at: datetime = Field(default_factory=utcnow)
	completed_at: Optional[datetime] = None


class Attempt(Record):
	user_id: str
	course_id: str
	module_id: str
	question_id: str
	selected_index: int
	is_correct: bool
	created_at: datetime = Field(default_factory=utcnow)


class Badge(Record):
	user_id: str
	course_id: str
	name: str
	awarded_at: datetime = Field(default_factory=utcnow)
	certificate_url: Optional[str] = None


class Upload(Record):
	org_id: str
	source: str
	content: str
	processed: bool = False
	error: Optional[str] = None
	created_at: datetime = Field(default_factory=utcnow)


class AuthSession(Record):
	user_id: str
	created_at: datetime = Field(default_factory=utcnow)
	last_activity_at: datetime = Field(default_factory=utcnow)
