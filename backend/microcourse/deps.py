from __future__ import annotations
from typing import Any, Callable

from fastapi import Depends
from sqlalchemy.orm import Session

from .db import get_db
from .errors import GenerationFailed
from .llm_client import CompletionClient
from .store import DomainStore, SqlStore


def get_store(db: Session = Depends(get_db)) -> DomainStore:
	return SqlStore(db)


def _build_client() -> Any:
	try:
		return CompletionClient()
	except ValueError as e:
		raise GenerationFailed(str(e)) from e


def get_client_factory() -> Callable[[], Any]:
	return _build_client
