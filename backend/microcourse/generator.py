"""Turns SOP text into a structured course draft through the completion client."""

from __future__ import annotations
import json
import logging
import re
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .errors import GenerationFailed, ValidationFailed


logger = logging.getLogger(__name__)

MIN_SOP_CHARS = 100
MODULE_COUNT_HINTS = ("3-5", "5-7", "auto")
DIFFICULTIES = ("beginner", "intermediate", "advanced")
PASS_SCORE_MIN = 50
PASS_SCORE_MAX = 100


class _Draft(BaseModel):
	model_config = ConfigDict(populate_by_name=True)


class QuestionDraft(_Draft):
	stem_html: str = Field(alias="stemHtml", min_length=1)
	options: List[str] = Field(min_length=2)
	correct_index: int = Field(alias="correctIndex", ge=0)
	rationale_html: str = Field(default="", alias="rationaleHtml")

	@model_validator(mode="after")
	def _correct_index_in_range(self) -> "QuestionDraft":
		if self.correct_index >= len(self.options):
			raise ValueError("correctIndex does not point at an option")
		return self


class ModuleDraft(_Draft):
	title: str = Field(min_length=1)
	content_html: str = Field(alias="contentHtml")
	learning_objectives: List[str] = Field(alias="learningObjectives", min_length=1)
	questions: List[QuestionDraft] = Field(min_length=1)


class CourseDraft(_Draft):
	title: str = Field(min_length=1)
	estimated_minutes: Optional[int] = Field(default=None, alias="estimatedMinutes", ge=0)
	modules: List[ModuleDraft] = Field(min_length=1)


class ModuleRevision(_Draft):
	content_html: str = Field(alias="contentHtml", min_length=1)
	learning_objectives: List[str] = Field(alias="learningObjectives", min_length=1)


class _QuizDraft(_Draft):
	questions: List[QuestionDraft] = Field(min_length=1)


def validate_generation_input(sop_text: str, module_count: str, difficulty: str, pass_score: int) -> str:
	text = (sop_text or "").strip()
	if len(text) < MIN_SOP_CHARS:
		raise ValidationFailed(f"SOP content must be at least {MIN_SOP_CHARS} characters")
	if module_count not in MODULE_COUNT_HINTS:
		raise ValidationFailed(f"moduleCount must be one of {list(MODULE_COUNT_HINTS)}")
	if difficulty not in DIFFICULTIES:
		raise ValidationFailed(f"difficulty must be one of {list(DIFFICULTIES)}")
	if isinstance(pass_score, bool) or not isinstance(pass_score, int) or not PASS_SCORE_MIN <= pass_score <= PASS_SCORE_MAX:
		raise ValidationFailed(f"passScore must be an integer between {PASS_SCORE_MIN} and {PASS_SCORE_MAX}")
	return text


def _module_count_phrase(module_count: str) -> str:
	if module_count == "auto":
		return "as many modules as the content naturally divides into (usually 3-7)"
	return f"{module_count} modules"


def build_course_system_prompt(module_count: str, difficulty: str, pass_score: int) -> str:
	return (
		"You are an expert instructional designer. Create concise, safety-aware micro-learning courses from business SOPs. "
		"Use plain language and active voice. Focus on practical, actionable content that learners can immediately apply.\n\n"
		"Your task is to convert the provided SOP into a structured micro-course with modules, learning objectives, content, and assessment questions.\n\n"
		"Guidelines:\n"
		f"- Create {_module_count_phrase(module_count)} based on logical content divisions\n"
		"- Each module should take 3-5 minutes to complete\n"
		f"- Write content at {difficulty} level\n"
		"- Include 3-5 multiple choice questions per module, each with exactly 4 options and one correct answer\n"
		"- Ensure questions test comprehension and application\n"
		f"- Pass score is {pass_score}%\n\n"
		"Respond with valid JSON in this exact format:\n"
		"{\n"
		'  "title": "Course title based on SOP content",\n'
		'  "estimatedMinutes": 15,\n'
		'  "modules": [\n'
		"    {\n"
		'      "title": "Module title",\n'
		'      "contentHtml": "<p>HTML formatted content explaining key concepts...</p>",\n'
		'      "learningObjectives": ["Objective 1", "Objective 2", "Objective 3"],\n'
		'      "questions": [\n'
		"        {\n"
		'          "stemHtml": "<p>Question text here?</p>",\n'
		'          "options": ["Option A", "Option B", "Option C", "Option D"],\n'
		'          "correctIndex": 1,\n'
		'          "rationaleHtml": "<p>Explanation of why this is correct...</p>"\n'
		"        }\n"
		"      ]\n"
		"    }\n"
		"  ]\n"
		"}"
	)


def extract_json_object(text: str) -> Dict[str, Any]:
	try:
		data = json.loads(text)
		if isinstance(data, dict):
			return data
	except Exception:
		pass
	code_block = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", text)
	if code_block:
		try:
			data = json.loads(code_block.group(1))
			if isinstance(data, dict):
				return data
		except Exception:
			pass
	first = text.find("{")
	last = text.rfind("}")
	if first != -1 and last > first:
		try:
			data = json.loads(text[first : last + 1])
			if isinstance(data, dict):
				return data
		except Exception:
			pass
	raise GenerationFailed("Generator did not return a JSON object")


async def _complete(client: Any, prompt: str, *, system: Optional[str] = None, max_tokens: Optional[int] = None) -> Dict[str, Any]:
	try:
		raw = await client.generate(prompt, system=system, json_mode=True, max_tokens=max_tokens)
	except GenerationFailed:
		raise
	except Exception as e:
		raise GenerationFailed(f"Failed to generate course: {e}") from e
	return extract_json_object(raw or "")


async def generate_course_draft(
	client: Any,
	sop_text: str,
	module_count: str = "3-5",
	difficulty: str = "intermediate",
	pass_score: int = 80,
) -> CourseDraft:
	text = validate_generation_input(sop_text, module_count, difficulty, pass_score)
	system = build_course_system_prompt(module_count, difficulty, pass_score)
	data = await _complete(client, f"Convert this SOP into a micro-course:\n\n{text}", system=system, max_tokens=4000)
	try:
		draft = CourseDraft.model_validate(data)
	except ValidationError as e:
		raise GenerationFailed(f"Invalid course structure generated: {e.error_count()} problem(s), first: {e.errors()[0]['msg']}") from e
	logger.info("Generated draft %r with %d modules", draft.title, len(draft.modules))
	return draft


async def improve_module_content(client: Any, content_html: str, feedback: Optional[str] = None) -> ModuleRevision:
	prompt = (
		"Improve this training module content based on feedback. Keep it concise (3-5 minutes reading time) and practical.\n\n"
		f"Current content: {content_html}\n"
		+ (f"Feedback: {feedback}\n" if feedback else "")
		+ "\nRespond with JSON:\n"
		'{\n  "contentHtml": "<p>Improved HTML content...</p>",\n  "learningObjectives": ["Objective 1", "Objective 2", "Objective 3"]\n}'
	)
	data = await _complete(client, prompt)
	try:
		return ModuleRevision.model_validate(data)
	except ValidationError as e:
		raise GenerationFailed(f"Invalid module revision generated: {e.errors()[0]['msg']}") from e


async def regenerate_quiz(client: Any, content_html: str, difficulty: str = "intermediate") -> List[QuestionDraft]:
	if difficulty not in DIFFICULTIES:
		raise ValidationFailed(f"difficulty must be one of {list(DIFFICULTIES)}")
	prompt = (
		"Generate 3-5 multiple choice questions for this training module content. Focus on practical application and comprehension.\n\n"
		f"Module content: {content_html}\n"
		f"Difficulty: {difficulty}\n\n"
		"Each question should have 4 options with only one correct answer. Include clear explanations.\n\n"
		"Respond with JSON:\n"
		'{\n  "questions": [\n    {\n      "stemHtml": "<p>Question text?</p>",\n'
		'      "options": ["Option A", "Option B", "Option C", "Option D"],\n'
		'      "correctIndex": 1,\n      "rationaleHtml": "<p>Explanation...</p>"\n    }\n  ]\n}'
	)
	data = await _complete(client, prompt)
	try:
		return _QuizDraft.model_validate(data).questions
	except ValidationError as e:
		raise GenerationFailed(f"Invalid quiz generated: {e.errors()[0]['msg']}") from e
