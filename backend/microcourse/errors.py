"""Domain error taxonomy, mapped to HTTP status codes in ``main``."""

from __future__ import annotations


class DomainError(Exception):
	status_code = 500

	def __init__(self, detail: str) -> None:
		super().__init__(detail)
		self.detail = detail


class ValidationFailed(DomainError):
	status_code = 400


class NotAuthenticated(DomainError):
	status_code = 401


class Forbidden(DomainError):
	status_code = 403


class NotFound(DomainError):
	status_code = 404


class InvalidTransition(DomainError):
	"""An operation that is not legal in the record's current state."""

	status_code = 409


class GenerationFailed(DomainError):
	"""The course generator errored or returned unusable output."""

	status_code = 502
