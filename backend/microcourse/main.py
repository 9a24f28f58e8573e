import asyncio
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .cleanup import purge_idle_quiz_sessions, purge_stale_sessions
from .db import SessionLocal, init_db
from .errors import DomainError, NotAuthenticated
from .settings import settings
from .store import SqlStore
from .routers import health, auth
from .routers import courses
from .routers import modules
from .routers import enrollments
from .routers import quiz
from .routers import attempts
from .routers import members
from .routers import analytics

logger = logging.getLogger(__name__)

app = FastAPI(title="SOP Micro-Course API")
app.include_router(health.router)
app.include_router(auth.router)
app.include_router(courses.router)
app.include_router(modules.router)
app.include_router(enrollments.router)
app.include_router(quiz.router)
app.include_router(attempts.router)
app.include_router(members.router)
app.include_router(analytics.router)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
	if exc.status_code >= 500:
		logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
	headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, NotAuthenticated) else None
	return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=headers)


@app.get("/info")
def root():
	return {"status": "ok", "llm_provider": settings.llm_provider, "llm_configured": settings.llm_configured()}


def _purge_once() -> None:
	db = SessionLocal()
	try:
		removed = purge_stale_sessions(SqlStore(db))
		if removed:
			logger.info("Purged %d stale sessions", removed)
	except Exception:
		logger.exception("Session cleanup failed")
	finally:
		db.close()
	dropped = purge_idle_quiz_sessions()
	if dropped:
		logger.info("Dropped %d idle quiz sessions", dropped)


async def _cleanup_watcher():
	# Run once at startup, then hourly
	while True:
		_purge_once()
		await asyncio.sleep(60 * 60)


@app.on_event("startup")
async def startup_event():
	logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
	logging.getLogger("httpx").setLevel(logging.WARNING)
	# Initialize DB schema
	init_db()
	# Start periodic cleanup loop
	asyncio.create_task(_cleanup_watcher())
