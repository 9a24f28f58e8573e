from datetime import timedelta

from conftest import make_draft
from microcourse import quiz
from microcourse.assembly import assemble_course
from microcourse.cleanup import purge_idle_quiz_sessions, purge_stale_sessions
from microcourse.generator import CourseDraft
from microcourse.records import AuthSession, Module, User, utcnow
from microcourse.settings import settings


def test_purge_removes_only_idle_sessions(store) -> None:
    now = utcnow()
    lifetime = timedelta(minutes=settings.access_token_expire_minutes)
    fresh = store.create(AuthSession(user_id="u1", last_activity_at=now))
    stale = store.create(AuthSession(user_id="u2", last_activity_at=now - lifetime - timedelta(minutes=1)))

    assert purge_stale_sessions(store, now=now) == 1
    assert store.get(AuthSession, stale.id) is None
    assert store.get(AuthSession, fresh.id) is not None
    assert purge_stale_sessions(store, now=now) == 0


def test_idle_quiz_sessions_are_dropped(memory_store) -> None:
    course = assemble_course(memory_store, CourseDraft.model_validate(make_draft()), "org-1", "owner-1", 80)
    module = memory_store.list(Module, course_id=course.id)[0]
    user = memory_store.create(User(email="l@acme.test", display_name="l", org_id="org-1"))
    idle = quiz.open_session(memory_store, user, course.id, module.id)
    active = quiz.open_session(memory_store, user, course.id, module.id)
    try:
        now = utcnow()
        idle.last_active_at = now - timedelta(minutes=settings.quiz_session_idle_minutes + 1)
        active.last_active_at = now

        assert purge_idle_quiz_sessions(now=now) == 1
        assert idle.session_id not in quiz._sessions
        assert quiz.get_session(active.session_id, user) is active
    finally:
        quiz._sessions.clear()
