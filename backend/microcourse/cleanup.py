from __future__ import annotations
from datetime import datetime, timedelta
from typing import Optional

from . import quiz
from .records import AuthSession, utcnow
from .settings import settings
from .store import DomainStore


def purge_stale_sessions(store: DomainStore, now: Optional[datetime] = None) -> int:
	# A session idle for longer than the token lifetime can no longer be used
	threshold = (now or utcnow()) - timedelta(minutes=max(settings.access_token_expire_minutes, 1))
	removed = 0
	for session in store.list(AuthSession):
		if session.last_activity_at < threshold and store.delete(AuthSession, session.id):
			removed += 1
	return removed


def purge_idle_quiz_sessions(now: Optional[datetime] = None) -> int:
	threshold = (now or utcnow()) - timedelta(minutes=max(settings.quiz_session_idle_minutes, 1))
	stale = [sid for sid, s in list(quiz._sessions.items()) if s.last_active_at < threshold]
	for sid in stale:
		quiz.close_session(sid)
	return len(stale)
