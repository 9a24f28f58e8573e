from __future__ import annotations
from sqlalchemy import Column, String, DateTime, Integer, Text, Boolean, JSON, UniqueConstraint
from .db import Base


class UserRow(Base):
	__tablename__ = "users"
	id = Column(String(32), primary_key=True)
	email = Column(String(256), nullable=False, unique=True, index=True)
	display_name = Column(String(256), nullable=False)
	org_id = Column(String(32), nullable=True, index=True)
	roles = Column(JSON, nullable=False)
	created_at = Column(DateTime, nullable=False)


class OrganizationRow(Base):
	__tablename__ = "orgs"
	id = Column(String(32), primary_key=True)
	name = Column(String(256), nullable=False)
	owner_id = Column(String(32), nullable=True)
	plan_tier = Column(String(32), default="starter", nullable=False)
	created_at = Column(DateTime, nullable=False)


class CourseRow(Base):
	__tablename__ = "courses"
	id = Column(String(32), primary_key=True)
	org_id = Column(String(32), nullable=False, index=True)
	title = Column(String(512), nullable=False)
	status = Column(String(16), default="draft", nullable=False)
	pass_score = Column(Integer, default=80, nullable=False)
	est_minutes = Column(Integer, nullable=True)
	created_by = Column(String(32), nullable=False)
	published_at = Column(DateTime, nullable=True)
	created_at = Column(DateTime, nullable=False)


class ModuleRow(Base):
	__tablename__ = "modules"
	# Indices are dense per course: 0, 1, 2, ...
	__table_args__ = (UniqueConstraint("course_id", "index", name="uq_module_course_index"),)
	id = Column(String(32), primary_key=True)
	course_id = Column(String(32), nullable=False, index=True)
	index = Column(Integer, nullable=False)
	title = Column(String(512), nullable=False)
	content_html = Column(Text, nullable=False)
	learning_objectives = Column(JSON, nullable=False)


class QuestionRow(Base):
	__tablename__ = "questions"
	__table_args__ = (UniqueConstraint("module_id", "index", name="uq_question_module_index"),)
	id = Column(String(32), primary_key=True)
	module_id = Column(String(32), nullable=False, index=True)
	index = Column(Integer, nullable=False)
	stem_html = Column(Text, nullable=False)
	options = Column(JSON, nullable=False)
	correct_index = Column(Integer, nullable=False)
	rationale_html = Column(Text, nullable=False)


class EnrollmentRow(Base):
	__tablename__ = "enrollments"
	__table_args__ = (UniqueConstraint("user_id", "course_id", name="uq_enrollment_user_course"),)
	id = Column(String(32), primary_key=True)
	org_id = Column(String(32), nullable=False, index=True)
	course_id = Column(String(32), nullable=False, index=True)
	user_id = Column(String(32), nullable=False, index=True)
	status = Column(String(16), default="in_progress", nullable=False)
	progress = Column(JSON, nullable=False)  # {"current_module_index": int}
	started_at = Column(DateTime, nullable=False)
	completed_at = Column(DateTime, nullable=True)


class AttemptRow(Base):
	__tablename__ = "attempts"
	id = Column(String(32), primary_key=True)
	user_id = Column(String(32), nullable=False, index=True)
	course_id = Column(String(32), nullable=False, index=True)
	module_id = Column(String(32), nullable=False)
	question_id = Column(String(32), nullable=False)
	selected_index = Column(Integer, nullable=False)
	is_correct = Column(Boolean, nullable=False)
	created_at = Column(DateTime, nullable=False)


class BadgeRow(Base):
	__tablename__ = "badges"
	id = Column(String(32), primary_key=True)
	user_id = Column(String(32), nullable=False, index=True)
	course_id = Column(String(32), nullable=False, index=True)
	name = Column(String(512), nullable=False)
	awarded_at = Column(DateTime, nullable=False)
	certificate_url = Column(String(1024), nullable=True)


class UploadRow(Base):
	__tablename__ = "uploads"
	id = Column(String(32), primary_key=True)
	org_id = Column(String(32), nullable=False, index=True)
	source = Column(String(32), nullable=False)
	content = Column(Text, nullable=False)
	processed = Column(Boolean, default=False, nullable=False)
	error = Column(Text, nullable=True)
	created_at = Column(DateTime, nullable=False)


class AuthSessionRow(Base):
	__tablename__ = "auth_sessions"
	# Primary key is the token's jti
	id = Column(String(32), primary_key=True)
	user_id = Column(String(32), nullable=False, index=True)
	created_at = Column(DateTime, nullable=False)
	last_activity_at = Column(DateTime, nullable=False)
